"""日誌hook: stdinのイベントをセッション記録として保存"""

from datetime import date
from pathlib import Path
from typing import Optional

from domain.hooks.base_hook import BaseHook
from domain.services.diary_report import render_dry_run
from domain.services.event_normalizer import normalize_line
from domain.services.session_accumulator import SessionAccumulator
from infrastructure.db.diary_db import DiaryDB
from infrastructure.db.diary_repository import DiaryRepository
from shared.exceptions import EventParseError


class DiaryHook(BaseHook):
    """1行1イベントのJSONを読み、セッション記録を逐次保存するhook

    フロー:
      1. setup: 格納先の準備（旧配置からの移設含む）とDB接続
      2. 各行: 正規化 → 集約へ反映 → 逐次保存
      3. 入力終端: session_end未受信なら終了時刻を記録して確定保存

    dry_run時はDBに触れず、確定時にレポートをstdoutへ出力する。
    """

    def __init__(
        self,
        diary_dir: Optional[Path] = None,
        verbose: bool = False,
        dry_run: bool = False,
        log_file: Optional[Path] = None,
        log_level: str = "INFO",
    ):
        """初期化

        Args:
            diary_dir: 格納ディレクトリ（省略時は~/.claude）
            verbose: 詳細診断をstderrへ出すか
            dry_run: 保存せずレポートを表示するか
            log_file: ログファイル
            log_level: ログレベル
        """
        super().__init__(log_file=log_file, verbose=verbose, log_level=log_level)
        self.diary_dir = diary_dir
        self.dry_run = dry_run
        self._db: Optional[DiaryDB] = None
        self.accumulator: Optional[SessionAccumulator] = None
        self._report_printed = False

    def setup(self) -> None:
        """格納先を準備して集約を作成"""
        if self.dry_run:
            self.accumulator = SessionAccumulator()
            return

        db_path = DiaryDB.prepare_storage(self.diary_dir)
        self._db = DiaryDB(db_path)
        self._db.connect()
        self.diagnostic(f"Database initialized: {db_path}")
        self.accumulator = SessionAccumulator(DiaryRepository(self._db))

    def _on_parse_error(self, error: EventParseError) -> None:
        if self.verbose:
            self.diagnostic(f"Failed to parse JSON: {error} (input: {error.line})")

    def process_line(self, line: str) -> None:
        """1行をイベントとして処理"""
        assert self.accumulator is not None
        event = normalize_line(line, on_parse_error=self._on_parse_error)
        if self.verbose:
            self.diagnostic(f"Processing event: {event.event_type}")
        self.accumulator.process_event(event)
        self._print_report_if_finalized()

    def finish(self) -> None:
        """session_end未受信ならここで確定保存"""
        assert self.accumulator is not None
        try:
            if not self.accumulator.finalized:
                self.accumulator.end_session()
            self._print_report_if_finalized()
            if self.accumulator.session_id is not None:
                self.diagnostic(f"Saved session {self.accumulator.session_id} to database: {self._db.db_path}")
        finally:
            if self._db is not None:
                self._db.close()

    def _print_report_if_finalized(self) -> None:
        if self.dry_run and self.accumulator.finalized and not self._report_printed:
            print(render_dry_run(self.accumulator.session, date.today()))
            self._report_printed = True
