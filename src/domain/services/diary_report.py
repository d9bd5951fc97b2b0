"""日誌レポート生成

DiarySession（メモリ上）とStoredSession（DB再構築）のどちらも同じ形で描画する。
空のセクションは見出しごと省略する。
"""

from datetime import date
from typing import Dict, Iterable, List, Optional, Union

from domain.models.records import Accomplishment, DiarySession, StoredSession

SessionLike = Union[DiarySession, StoredSession]

RULE_LINE = "---"


def format_duration(total_duration_ms: int) -> str:
    """累積時間を "~N minutes" / "< 1 minute" に整形"""
    minutes = total_duration_ms // 60000
    if minutes > 0:
        return f"~{minutes} minutes"
    return "< 1 minute"


def group_by_category(accomplishments: Iterable[Accomplishment]) -> Dict[str, List[Accomplishment]]:
    """カテゴリ別にまとめる（カテゴリ順は初出順）"""
    groups: Dict[str, List[Accomplishment]] = {}
    for accomplishment in accomplishments:
        groups.setdefault(accomplishment.category, []).append(accomplishment)
    return groups


def generate_diary_content(session: SessionLike) -> str:
    """セッションをMarkdown形式のテキストにする

    Args:
        session: DiarySession または StoredSession

    Returns:
        レポート本文（末尾は区切り線）
    """
    lines: List[str] = [f"**Duration:** {format_duration(session.total_duration_ms)}", ""]

    if session.accomplishments:
        lines.append("### ✅ **Accomplishments**")
        lines.append("")
        for category, accomplishments in group_by_category(session.accomplishments).items():
            lines.append(f"#### **{category}**")
            for acc in accomplishments:
                duration = f" _({acc.duration_ms}ms)_" if acc.duration_ms is not None else ""
                lines.append(f"- **{acc.description}**{duration}")
                if acc.files_affected:
                    lines.append(f"  - Files: {', '.join(acc.files_affected)}")
            lines.append("")

    if session.objectives:
        lines.append("### 🎯 **Session Objectives**")
        lines.extend(f"- {objective}" for objective in session.objectives)
        lines.append("")

    if session.issues:
        lines.append("### ⚠️ **Issues Encountered**")
        lines.extend(f"- {issue}" for issue in session.issues)
        lines.append("")

    if session.tool_usage:
        lines.append("### 🛠 **Tools Used**")
        lines.extend(f"- {tool}: {count} times" for tool, count in session.tool_usage.items())
        lines.append("")

    files = session.unique_files_modified()
    if files:
        lines.append("### 📁 **Files Modified**")
        lines.extend(f"- {path}" for path in files)
        lines.append("")

    lines.append(RULE_LINE)
    return "\n".join(lines) + "\n"


def render_dry_run(session: DiarySession, today: Optional[date] = None) -> str:
    """dry-run時の確定レポート（日付ヘッダ付き）"""
    today = today or date.today()
    return f"=== DIARY ENTRY FOR {today.strftime('%Y-%m-%d')} ===\n{generate_diary_content(session)}"


def render_recent_sessions(sessions: Iterable[StoredSession]) -> str:
    """--show-recent の出力（新しい順、区切り線で分割）"""
    parts = ["", "=== RECENT DIARY ENTRIES ==="]
    for session in sessions:
        started = session.start_time.strftime("%Y-%m-%d %H:%M:%S")
        parts.append("")
        parts.append(f"## Session {started} - {format_duration(session.total_duration_ms)}")
        parts.append("")
        parts.append(generate_diary_content(session).rstrip("\n"))
    return "\n".join(parts) + "\n"
