"""フック処理の基底クラス"""

import logging
import sys
from abc import ABC, abstractmethod
from enum import IntEnum
from pathlib import Path
from typing import Iterable, Iterator, Optional, TextIO

from shared.exceptions import DiaryError, FinalizationError, StorageInitError


class ExitCode(IntEnum):
    """終了コード

    - SUCCESS (0): 全入力を処理し確定保存まで完了
    - ERROR (1): ストレージ初期化失敗・確定保存失敗などの致命的エラー
    """
    SUCCESS = 0
    ERROR = 1


class BaseHook(ABC):
    """行指向でstdinを読むhook処理の基底クラス

    1行ごとにprocess_line()を呼び、行単位の失敗(DiaryError)は診断出力して
    次の行へ進む。入力終端でfinish()を呼ぶ。
    """

    def __init__(self, log_file: Optional[Path] = None, verbose: bool = False, log_level: str = "INFO"):
        """
        初期化

        Args:
            log_file: ログファイルのパス（デフォルト: /tmp/claude_diary_hook.log）
            verbose: 詳細な診断をstderrにも出すか
            log_level: ファイルログのレベル
        """
        self.verbose = verbose
        self.log_file = log_file or Path("/tmp/claude_diary_hook.log")
        self._setup_logging(log_level)

    def _setup_logging(self, log_level: str = "INFO"):
        """ロギングの設定"""
        # ログはファイルに出力。stderrはverbose時の診断専用
        logging.basicConfig(
            level=getattr(logging, log_level, logging.INFO),
            format='[%(asctime)s] %(levelname)s: %(message)s',
            handlers=[logging.FileHandler(self.log_file)]
        )

        self.logger = logging.getLogger(self.__class__.__name__)

    def log_debug(self, message: str):
        """デバッグログ出力"""
        self.logger.debug(message)

    def log_info(self, message: str):
        """情報ログ出力"""
        self.logger.info(message)

    def log_warning(self, message: str):
        """警告ログ出力"""
        self.logger.warning(message)

    def log_error(self, message: str):
        """エラーログ出力"""
        self.logger.error(message)

    def diagnostic(self, message: str, always: bool = False) -> None:
        """診断メッセージ（verbose時、またはalways=Trueでstderrへ）"""
        self.log_info(message)
        if always or self.verbose:
            print(message, file=sys.stderr)

    def read_lines(self, stream: Optional[TextIO] = None) -> Iterator[str]:
        """
        入力から空行を除いた行を順に返す

        Args:
            stream: 入力ストリーム（デフォルト: sys.stdin）
        """
        for raw in stream if stream is not None else sys.stdin:
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            yield line

    @abstractmethod
    def setup(self) -> None:
        """
        入力を読む前の初期化（ストレージ準備など）

        Raises:
            StorageInitError: 初期化に失敗した場合
        """
        pass

    @abstractmethod
    def process_line(self, line: str) -> None:
        """
        1行分の処理

        Args:
            line: 入力行
        """
        pass

    @abstractmethod
    def finish(self) -> None:
        """入力終端での後処理"""
        pass

    def run(self, lines: Optional[Iterable[str]] = None) -> int:
        """
        フックのメインエントリーポイント

        Args:
            lines: 入力行（デフォルト: stdinから読み取り）

        Returns:
            ExitCode（SUCCESS=0, ERROR=1）
        """
        self.log_info(f"{'='*10} {self.__class__.__name__} Started {'='*10}")

        try:
            self.setup()

            for line in lines if lines is not None else self.read_lines():
                try:
                    self.process_line(line)
                except FinalizationError:
                    raise
                except DiaryError as e:
                    self.log_error(f"Error processing event: {e}")
                    print(f"Error processing event: {e}", file=sys.stderr)

            self.finish()
            return ExitCode.SUCCESS

        except StorageInitError as e:
            self.log_error(f"Storage initialization failed: {e}")
            print(f"Storage initialization failed: {e}", file=sys.stderr)
            return ExitCode.ERROR
        except FinalizationError as e:
            self.log_error(str(e))
            print(str(e), file=sys.stderr)
            return ExitCode.ERROR
        except Exception as e:
            self.log_error(f"Unexpected error in run: {e}")
            print(f"Unexpected error: {e}", file=sys.stderr)
            return ExitCode.ERROR
        finally:
            self.log_info(f"{'='*10} {self.__class__.__name__} Ended {'='*10}")
