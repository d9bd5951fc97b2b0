"""例外定義

DiaryErrorを基底とし、呼び出し側が原因と対象（パス・セッションID）を
診断ストリームだけで特定できるよう属性を保持する。
"""

from pathlib import Path
from typing import Optional


class DiaryError(Exception):
    """diary hook の基底例外"""


class EventParseError(DiaryError):
    """入力行が構造化イベントとして解釈できない"""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line


class StorageInitError(DiaryError):
    """ストレージ初期化失敗（致命的）"""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(f"{message}: {path}" if path is not None else message)
        self.path = path


class PersistenceError(DiaryError):
    """1回の保存処理の失敗"""

    def __init__(self, operation: str, session_id: Optional[int], cause: Exception):
        super().__init__(f"{operation} failed (session={session_id}): {cause}")
        self.operation = operation
        self.session_id = session_id
        self.cause = cause


class FinalizationError(DiaryError):
    """確定保存の失敗（致命的）"""

    def __init__(self, session_id: Optional[int], cause: Exception):
        super().__init__(f"Failed to finalize session {session_id}: {cause}")
        self.session_id = session_id
        self.cause = cause


class AlreadyFinalizedError(DiaryError):
    """同一セッションの2回目の確定保存"""
