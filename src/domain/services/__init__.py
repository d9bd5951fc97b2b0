"""ドメインサービス"""

from .event_normalizer import normalize_line, parse_event_line
from .session_accumulator import SessionAccumulator
from .diary_report import generate_diary_content, render_dry_run, render_recent_sessions

__all__ = [
    'normalize_line',
    'parse_event_line',
    'SessionAccumulator',
    'generate_diary_content',
    'render_dry_run',
    'render_recent_sessions',
]
