#!/usr/bin/env python3
"""claude-diary-hook CLI エントリーポイント"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional


def build_parser() -> argparse.ArgumentParser:
    """引数パーサを構築"""
    parser = argparse.ArgumentParser(
        prog="claude-diary-hook",
        description="Claude Code daily diary hook - logs activities automatically",
    )
    parser.add_argument(
        "--version", action="store_true", help="バージョン表示"
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="設定ファイルのパス（省略時は~/.claude/diary.yaml等）",
    )
    parser.add_argument(
        "--diary-dir", type=Path, default=None,
        help="日誌DBの格納ディレクトリ",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="詳細な診断をstderrに出力",
    )
    parser.add_argument(
        "--test", "--dry-run", dest="test", action="store_true",
        help="保存せず、確定時のレポートをstdoutに表示",
    )
    parser.add_argument(
        "--show-recent", action="store_true",
        help="DBから直近のセッションを表示",
    )
    parser.add_argument(
        "--limit", type=int, default=None,
        help="--show-recent で表示するセッション数（デフォルト5）",
    )
    return parser


def show_recent(diary_dir: Optional[Path], limit: int, dry_run: bool) -> int:
    """直近セッションを表示

    Returns:
        終了コード
    """
    from domain.hooks.base_hook import ExitCode
    from domain.services.diary_report import render_recent_sessions
    from infrastructure.db.diary_db import DiaryDB
    from infrastructure.db.diary_repository import DiaryRepository
    from shared.exceptions import StorageInitError

    if dry_run:
        print("Recent entries not available in test mode")
        return ExitCode.SUCCESS

    try:
        db_path = DiaryDB.prepare_storage(diary_dir)
        with DiaryDB(db_path) as db:
            sessions = DiaryRepository(db).get_recent_sessions(limit)
    except StorageInitError as e:
        print(f"Storage initialization failed: {e}", file=sys.stderr)
        return ExitCode.ERROR

    print(render_recent_sessions(sessions), end="")
    return ExitCode.SUCCESS


def main(argv: Optional[List[str]] = None) -> int:
    """メインエントリーポイント"""
    parser = build_parser()
    args = parser.parse_args(argv)

    # SQLiteのLIMITは負数で無制限になる
    if args.limit is not None and args.limit < 1:
        parser.error("--limit must be 1 or greater")

    if args.version:
        from shared.version import __version__
        print(f"claude-diary-hook v{__version__}")
        return 0

    from infrastructure.config.config_manager import ConfigManager
    config = ConfigManager(config_path=args.config)

    diary_dir = args.diary_dir or config.diary_dir
    verbose = args.verbose or config.verbose

    if args.show_recent:
        limit = args.limit if args.limit is not None else config.recent_limit
        return int(show_recent(diary_dir, limit, args.test))

    from domain.hooks.diary_hook import DiaryHook
    hook = DiaryHook(
        diary_dir=diary_dir,
        verbose=verbose,
        dry_run=args.test,
        log_file=config.log_file,
        log_level=config.log_level,
    )
    return int(hook.run())


if __name__ == "__main__":
    sys.exit(main())
