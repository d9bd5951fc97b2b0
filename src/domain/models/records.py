"""データモデル定義"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class EventKind(str, Enum):
    """入力イベント種別

    event_typeの文字列値に対応。未知の値はOTHERとして扱う。
    """
    SESSION_START = "session_start"
    USER_PROMPT = "user_prompt"
    MESSAGE = "message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    ERROR = "error"
    SESSION_END = "session_end"
    OTHER = "other"

    @classmethod
    def from_event_type(cls, event_type: str) -> "EventKind":
        """event_type文字列から種別を解決（未知ならOTHER）"""
        try:
            return cls(event_type)
        except ValueError:
            return cls.OTHER


@dataclass
class ToolCallRecord:
    """ツール呼び出しレコード"""

    tool_name: str
    parameters: Optional[Any] = None  # 任意のJSON値
    result: Optional[str] = None
    duration_ms: Optional[int] = None
    success: Optional[bool] = None

    @property
    def file_path(self) -> Optional[str]:
        """parameters.file_path（文字列の場合のみ）"""
        if isinstance(self.parameters, dict):
            value = self.parameters.get("file_path")
            if isinstance(value, str):
                return value
        return None


@dataclass
class ClaudeEvent:
    """入力イベント（解析後は不変として扱う）"""

    event_type: str
    timestamp: Optional[str] = None
    context: Optional[Any] = None
    session_id: Optional[str] = None
    user_prompt: Optional[str] = None
    assistant_response: Optional[str] = None
    tool_calls: Optional[List[ToolCallRecord]] = None
    duration_ms: Optional[int] = None
    error: Optional[str] = None

    @property
    def kind(self) -> EventKind:
        return EventKind.from_event_type(self.event_type)


@dataclass
class Accomplishment:
    """成果レコード

    files_affectedは重複除去・辞書順ソート済みで保持する。
    """

    category: str
    description: str
    duration_ms: Optional[int] = None
    files_affected: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.description:
            raise ValueError("Accomplishment description must not be empty")
        self.files_affected = sorted(set(self.files_affected))


@dataclass
class DiarySession:
    """1回のhook起動で観測したセッションの集約

    start_timeは生成時に一度だけ設定され、以後変更できない。
    end_timeは未設定→設定済みへ一度だけ遷移する（end()経由）。
    """

    start_time: datetime = field(default_factory=lambda: datetime.now().astimezone())
    end_time: Optional[datetime] = None
    objectives: List[str] = field(default_factory=list)
    accomplishments: List[Accomplishment] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    files_modified: List[str] = field(default_factory=list)  # 重複除去は出力・保存時
    tool_usage: Dict[str, int] = field(default_factory=dict)
    total_duration_ms: int = 0

    def __setattr__(self, name, value):
        if name == "start_time" and "start_time" in self.__dict__:
            raise AttributeError("start_time is immutable once assigned")
        super().__setattr__(name, value)

    def end(self, end_time: Optional[datetime] = None) -> datetime:
        """終了時刻を記録する

        Args:
            end_time: 終了時刻（省略時は現在時刻）

        Returns:
            記録した終了時刻

        Raises:
            ValueError: 既に終了時刻が記録済みの場合
        """
        if self.end_time is not None:
            raise ValueError(f"Session already ended at {self.end_time.isoformat()}")
        self.end_time = end_time or datetime.now().astimezone()
        return self.end_time

    def count_tool(self, tool_name: str) -> None:
        self.tool_usage[tool_name] = self.tool_usage.get(tool_name, 0) + 1

    def unique_files_modified(self) -> List[str]:
        return sorted(set(self.files_modified))


@dataclass
class StoredSession:
    """DBから再構築したセッション（--show-recent用）"""

    id: int
    start_time: datetime
    end_time: Optional[datetime]
    total_duration_ms: int
    objectives: List[str] = field(default_factory=list)
    accomplishments: List[Accomplishment] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    files_modified: List[str] = field(default_factory=list)
    tool_usage: Dict[str, int] = field(default_factory=dict)

    def unique_files_modified(self) -> List[str]:
        return sorted(set(self.files_modified))
