"""プロンプト・ツール呼び出しの分類サービス

キーワード表は上から評価し、最初に一致した1件だけを採用する。
1発話から類似の成果が複数行生成されるのを防ぐため。
"""

import re
from typing import List, Optional, Tuple

from domain.models.records import Accomplishment, ToolCallRecord
from shared.constants import (
    CATEGORY_ANALYSIS,
    CATEGORY_CODE_ANALYSIS,
    CATEGORY_CODE_DEVELOPMENT,
    CATEGORY_GENERAL,
    CATEGORY_OTHER,
    DESCRIPTION_MAX_LEN,
    DESCRIPTION_MIN_LEN,
    DESCRIPTION_TRUNCATE_LEN,
    GENERAL_PROMPT_MIN_LEN,
    ISSUE_MAX_LEN,
    OBJECTIVE_MAX_LEN,
    RESPONSE_MIN_LEN,
)

# (キーワード群, カテゴリ, 既定の説明) - 順序が優先順位
PROMPT_PATTERNS: List[Tuple[Tuple[str, ...], str, str]] = [
    # Code Development
    (("write", "create", "implement", "add", "build", "develop", "code", "program"),
     CATEGORY_CODE_DEVELOPMENT, "Implemented new functionality"),
    (("fix", "debug", "resolve", "solve", "repair", "correct"),
     CATEGORY_CODE_DEVELOPMENT, "Fixed code issues"),
    (("refactor", "optimize", "improve", "enhance", "update"),
     CATEGORY_CODE_DEVELOPMENT, "Improved code quality"),
    (("test", "unit test", "integration test"),
     CATEGORY_CODE_DEVELOPMENT, "Added tests"),
    # Documentation
    (("document", "write docs", "readme", "comment", "explain"),
     "Documentation", "Created documentation"),
    # Analysis & Research
    (("analyze", "investigate", "research", "study", "examine", "explore", "understand"),
     CATEGORY_ANALYSIS, "Analyzed codebase"),
    (("find", "search", "look for", "locate"),
     "Code Search", "Searched for information"),
    (("review", "check", "verify", "validate"),
     "Code Review", "Reviewed code"),
    # Configuration & Setup
    (("configure", "setup", "install", "deploy", "initialize"),
     "System Operations", "Configured system"),
    (("migrate", "upgrade", "update dependencies"),
     "System Operations", "Updated dependencies"),
    # Database
    (("database", "sql", "query", "schema", "migration"),
     "Database Operations", "Worked with database"),
    # UI/UX
    (("ui", "user interface", "frontend", "styling", "css", "design"),
     "Frontend Development", "Worked on user interface"),
    (("component", "react", "angular", "vue"),
     "Frontend Development", "Developed UI components"),
    # Planning & Organization
    (("plan", "organize", "structure", "architect", "design"),
     "Planning", "Planned project structure"),
    (("todo", "task", "milestone", "goal"),
     "Project Management", "Managed tasks"),
]

GENERAL_DESCRIPTION = "Worked on project task"
RESPONSE_DESCRIPTION = "Analysis and response provided"

# 拡張子ごとに1パターン。ヒューリスティックなので過不足はあり得る
_FILE_EXTENSIONS = (
    "rs", "js", "ts", "py", "go", "java", "cpp", "c", "h",
    "json", "yaml", "yml", "toml", "md",
)
FILE_PATTERNS = [re.compile(r"[\w/.-]+\." + ext) for ext in _FILE_EXTENSIONS]

TOOL_CATEGORIES = {
    "Edit": CATEGORY_CODE_DEVELOPMENT,
    "Write": CATEGORY_CODE_DEVELOPMENT,
    "MultiEdit": CATEGORY_CODE_DEVELOPMENT,
    "Read": CATEGORY_CODE_ANALYSIS,
    "Glob": CATEGORY_CODE_ANALYSIS,
    "LS": CATEGORY_CODE_ANALYSIS,
    "Bash": "System Operations",
    "Grep": "Code Search",
    "Task": "AI Collaboration",
    "TodoWrite": "Project Management",
    "WebFetch": "Research",
}


def summarize_objective(prompt: str) -> str:
    """プロンプトの先頭100文字を目的とする"""
    return prompt[:OBJECTIVE_MAX_LEN]


def generate_description(prompt: str, default: str) -> str:
    """プロンプト1行目から成果の説明文を生成

    Args:
        prompt: 元のプロンプト
        default: カテゴリの既定の説明

    Returns:
        "<既定>: <抜粋>" または既定の説明のみ
    """
    first_line = prompt.split("\n", 1)[0].strip()

    if len(first_line) > DESCRIPTION_MAX_LEN:
        return f"{default}: {first_line[:DESCRIPTION_TRUNCATE_LEN].strip()}"
    if len(first_line) > DESCRIPTION_MIN_LEN:
        return f"{default}: {first_line}"
    return default


def extract_files(prompt: str) -> List[str]:
    """プロンプト中のファイルパスらしき文字列を抽出（ソート・重複除去済み）"""
    files = []
    for pattern in FILE_PATTERNS:
        files.extend(pattern.findall(prompt))
    return sorted(set(files))


def match_prompt_pattern(prompt: str) -> Optional[Tuple[str, str]]:
    """最初に一致したキーワード群の (カテゴリ, 既定の説明) を返す"""
    prompt_lower = prompt.lower()
    for keywords, category, default in PROMPT_PATTERNS:
        if any(keyword in prompt_lower for keyword in keywords):
            return category, default
    return None


def classify_prompt(prompt: str, duration_ms: Optional[int] = None) -> Optional[Accomplishment]:
    """プロンプトから成果を最大1件推定する

    一致なし かつ 20文字以下の短いプロンプトはNone。
    """
    matched = match_prompt_pattern(prompt)
    if matched is None:
        if len(prompt) <= GENERAL_PROMPT_MIN_LEN:
            return None
        matched = (CATEGORY_GENERAL, GENERAL_DESCRIPTION)

    category, default = matched
    return Accomplishment(
        category=category,
        description=generate_description(prompt, default),
        duration_ms=duration_ms,
        files_affected=extract_files(prompt),
    )


def categorize_tool(tool_name: str) -> str:
    return TOOL_CATEGORIES.get(tool_name, CATEGORY_OTHER)


def classify_tool_call(tool_call: ToolCallRecord) -> Accomplishment:
    """ツール呼び出し1件を成果1件に変換

    parameters.file_pathがあれば影響ファイルとして記録し、説明を
    "Modified <path>" にする。
    """
    file_path = tool_call.file_path
    if file_path is not None:
        description = f"Modified {file_path}"
        files = [file_path]
    else:
        description = f"Used {tool_call.tool_name} tool"
        files = []

    return Accomplishment(
        category=categorize_tool(tool_call.tool_name),
        description=description,
        duration_ms=tool_call.duration_ms,
        files_affected=files,
    )


def classify_response(response: str, duration_ms: Optional[int] = None) -> Optional[Accomplishment]:
    """アシスタント応答（50文字超）を汎用のAnalysis成果にする"""
    if len(response) <= RESPONSE_MIN_LEN:
        return None
    return Accomplishment(
        category=CATEGORY_ANALYSIS,
        description=RESPONSE_DESCRIPTION,
        duration_ms=duration_ms,
    )


def format_issue(error: str) -> str:
    """エラー文を課題文字列にする（150文字超は "..." 付きで切り詰め）"""
    if len(error) > ISSUE_MAX_LEN:
        error = f"{error[:ISSUE_MAX_LEN]}..."
    return f"Error encountered: {error}"
