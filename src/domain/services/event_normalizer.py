"""入力行 → ClaudeEvent 正規化

JSONとして解釈できない行も破棄せず、生テキストをプロンプトとする
user_promptイベントに包んで返す。
"""

import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from domain.models.records import ClaudeEvent, EventKind, ToolCallRecord
from shared.exceptions import EventParseError

_OPTIONAL_TEXT_FIELDS = ("timestamp", "session_id", "user_prompt", "assistant_response", "error")

# SQLiteのINTEGER上限（符号付き64bit）
_MAX_DURATION_MS = 2**63 - 1


def _is_encodable(text: str) -> bool:
    """UTF-8として保存できる文字列か（JSONの \\ud800 等の孤立サロゲートは不可）"""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _checked_str(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise EventParseError(f"field '{key}' must be a string")
    if not _is_encodable(value):
        raise EventParseError(f"field '{key}' is not valid UTF-8 text")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    return _checked_str(value, key)


def _optional_duration(data: Dict[str, Any], key: str = "duration_ms") -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    # boolはintのサブクラスなので除外
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _MAX_DURATION_MS:
        raise EventParseError(f"field '{key}' must be an integer between 0 and {_MAX_DURATION_MS}")
    return value


def _parse_tool_call(data: Any) -> ToolCallRecord:
    if not isinstance(data, dict):
        raise EventParseError("tool_calls entries must be objects")
    if data.get("tool_name") is None:
        raise EventParseError("tool call requires a string 'tool_name'")
    tool_name = _checked_str(data["tool_name"], "tool_name")
    success = data.get("success")
    if success is not None and not isinstance(success, bool):
        raise EventParseError("field 'success' must be a boolean")
    parameters = data.get("parameters")
    # file_pathは変更ファイル・成果説明として保存される
    if isinstance(parameters, dict) and isinstance(parameters.get("file_path"), str):
        _checked_str(parameters["file_path"], "parameters.file_path")
    return ToolCallRecord(
        tool_name=tool_name,
        parameters=parameters,
        result=_optional_str(data, "result"),
        duration_ms=_optional_duration(data),
        success=success,
    )


def event_from_dict(data: Any) -> ClaudeEvent:
    """辞書から ClaudeEvent を構築

    Args:
        data: json.loads()の結果

    Returns:
        ClaudeEvent

    Raises:
        EventParseError: 必須のevent_typeが無い、または型が不正な場合
    """
    if not isinstance(data, dict):
        raise EventParseError("event must be a JSON object")
    event_type = data.get("event_type")
    if not isinstance(event_type, str):
        raise EventParseError("missing string field 'event_type'")

    fields = {key: _optional_str(data, key) for key in _OPTIONAL_TEXT_FIELDS}

    tool_calls: Optional[List[ToolCallRecord]] = None
    raw_calls = data.get("tool_calls")
    if raw_calls is not None:
        if not isinstance(raw_calls, list):
            raise EventParseError("field 'tool_calls' must be an array")
        tool_calls = [_parse_tool_call(item) for item in raw_calls]

    return ClaudeEvent(
        event_type=event_type,
        context=data.get("context"),
        tool_calls=tool_calls,
        duration_ms=_optional_duration(data),
        **fields,
    )


def parse_event_line(line: str) -> ClaudeEvent:
    """1行のJSONを ClaudeEvent として厳密に解釈する

    Raises:
        EventParseError: JSONでない、またはイベント形式でない場合
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise EventParseError(f"invalid JSON: {e}", line) from e
    try:
        return event_from_dict(data)
    except EventParseError as e:
        e.line = line
        raise


def fallback_event(line: str) -> ClaudeEvent:
    """解釈できなかった行をプロンプトとして包む

    stdinのsurrogateescape由来の孤立サロゲートは置換文字にする。
    """
    return ClaudeEvent(
        event_type=EventKind.USER_PROMPT.value,
        timestamp=datetime.now().astimezone().isoformat(),
        user_prompt=line.encode("utf-8", "replace").decode("utf-8"),
    )


def normalize_line(
    line: str,
    on_parse_error: Optional[Callable[[EventParseError], None]] = None,
) -> ClaudeEvent:
    """1行から必ず1つのイベントを生成

    Args:
        line: 入力行（改行除去済み）
        on_parse_error: 解釈失敗時の通知先（verbose時のみ渡される想定）

    Returns:
        ClaudeEvent
    """
    try:
        return parse_event_line(line)
    except EventParseError as e:
        if on_parse_error is not None:
            on_parse_error(e)
        return fallback_event(line)
