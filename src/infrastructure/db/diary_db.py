"""DiaryDB - 日誌データベース"""

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from shared.constants import DEFAULT_DIARY_DIRNAME, DIARY_DB_FILENAME, LEGACY_DIARY_SUBDIR
from shared.exceptions import StorageInitError

logger = logging.getLogger(__name__)


# IF NOT EXISTSで冪等。既存の旧形式DB（schema_versionなし）にもそのまま適用できる
# tool_usageは(session_id, tool_name)に一意制約を持たない。確定保存は素のINSERTのため
_SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sessions (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    start_time          TEXT NOT NULL,
    end_time            TEXT,
    total_duration_ms   INTEGER DEFAULT 0,
    created_at          TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS accomplishments (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          INTEGER NOT NULL,
    category            TEXT NOT NULL,
    description         TEXT NOT NULL,
    duration_ms         INTEGER,
    created_at          TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (session_id) REFERENCES sessions (id)
);

CREATE TABLE IF NOT EXISTS accomplishment_files (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    accomplishment_id   INTEGER NOT NULL,
    file_path           TEXT NOT NULL,
    FOREIGN KEY (accomplishment_id) REFERENCES accomplishments (id)
);

CREATE TABLE IF NOT EXISTS objectives (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          INTEGER NOT NULL,
    objective           TEXT NOT NULL,
    created_at          TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (session_id) REFERENCES sessions (id)
);

CREATE TABLE IF NOT EXISTS issues (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          INTEGER NOT NULL,
    issue               TEXT NOT NULL,
    created_at          TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (session_id) REFERENCES sessions (id)
);

CREATE TABLE IF NOT EXISTS tool_usage (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          INTEGER NOT NULL,
    tool_name           TEXT NOT NULL,
    usage_count         INTEGER DEFAULT 1,
    FOREIGN KEY (session_id) REFERENCES sessions (id)
);

CREATE TABLE IF NOT EXISTS files_modified (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          INTEGER NOT NULL,
    file_path           TEXT NOT NULL,
    created_at          TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (session_id) REFERENCES sessions (id)
);

CREATE INDEX IF NOT EXISTS idx_sessions_start_time ON sessions(start_time);
CREATE INDEX IF NOT EXISTS idx_accomplishments_session ON accomplishments(session_id, description);
CREATE INDEX IF NOT EXISTS idx_accomplishment_files_acc ON accomplishment_files(accomplishment_id);
CREATE INDEX IF NOT EXISTS idx_objectives_session ON objectives(session_id);
CREATE INDEX IF NOT EXISTS idx_issues_session ON issues(session_id);
CREATE INDEX IF NOT EXISTS idx_tool_usage_session ON tool_usage(session_id, tool_name);
CREATE INDEX IF NOT EXISTS idx_files_modified_session ON files_modified(session_id);
"""


class DiaryDB:
    """日誌SQLiteデータベース"""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path):
        """初期化

        Args:
            db_path: データベースファイルパス
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    def connect(self) -> sqlite3.Connection:
        """データベースに接続する

        未接続の場合のみ新規接続を作成。
        WALモード有効化、外部キー制約有効化、タイムアウト5秒。
        日誌は永続データのため、破損DBは削除せずStorageInitErrorとする。

        Returns:
            sqlite3.Connection: データベース接続

        Raises:
            StorageInitError: ディレクトリ作成・接続・スキーマ作成に失敗した場合
        """
        if self._conn is not None:
            return self._conn

        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageInitError(f"Failed to create diary directory ({e})", self._db_path.parent) from e

        try:
            self._conn = sqlite3.connect(str(self._db_path), timeout=5)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._ensure_schema()
        except sqlite3.Error as e:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            raise StorageInitError(f"Failed to open database ({e})", self._db_path) from e

        logger.info("Database initialized: %s", self._db_path)
        return self._conn

    def close(self) -> None:
        """接続をクローズする"""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        """接続プロパティ（未接続なら自動接続）"""
        if self._conn is None:
            self.connect()
        return self._conn  # type: ignore[return-value]

    def __enter__(self) -> "DiaryDB":
        """コンテキストマネージャ: 開始"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """コンテキストマネージャ: 終了"""
        self.close()

    def _ensure_schema(self) -> None:
        """スキーマの確認と作成

        schema_versionテーブルが無ければスキーマ全体を作成する。
        IF NOT EXISTSのため並列起動した複数hookが同時に実行しても安全。
        """
        assert self._conn is not None

        cursor = self._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if cursor.fetchone() is None:
            self._conn.executescript(_SCHEMA_V1)
            now = datetime.now(timezone.utc).isoformat()
            self._conn.execute(
                "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                (self.SCHEMA_VERSION, now),
            )
            self._conn.commit()
            return

        cursor = self._conn.execute("SELECT MAX(version) FROM schema_version")
        row = cursor.fetchone()
        current_version = row[0] if row and row[0] is not None else 0
        if current_version > self.SCHEMA_VERSION:
            logger.warning(
                "Database schema v%s is newer than supported v%s: %s",
                current_version, self.SCHEMA_VERSION, self._db_path,
            )

    @staticmethod
    def default_diary_dir() -> Path:
        """既定の格納ディレクトリ（~/.claude）"""
        return Path.home() / DEFAULT_DIARY_DIRNAME

    @classmethod
    def resolve_db_path(cls, diary_dir: Optional[Path] = None) -> Path:
        """データベースパスを解決する

        Args:
            diary_dir: 格納ディレクトリの指定（省略時は~/.claude）

        Returns:
            Path: <diary_dir>/diary.db
        """
        base = Path(diary_dir) if diary_dir is not None else cls.default_diary_dir()
        return base / DIARY_DB_FILENAME

    @classmethod
    def prepare_storage(cls, diary_dir: Optional[Path] = None) -> Path:
        """格納先ディレクトリを作成し、旧配置のDBを一度だけ移設する

        旧配置 <diary_dir>/diaries/diary.db が存在し新配置が未作成の場合に
        移動し、空になった旧ディレクトリを削除する。

        Args:
            diary_dir: 格納ディレクトリの指定

        Returns:
            Path: 新配置のデータベースパス

        Raises:
            StorageInitError: ディレクトリ作成・移設に失敗した場合
        """
        db_path = cls.resolve_db_path(diary_dir)
        base = db_path.parent
        try:
            base.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageInitError(f"Failed to create diary directory ({e})", base) from e

        legacy_dir = base / LEGACY_DIARY_SUBDIR
        legacy_db = legacy_dir / DIARY_DB_FILENAME
        if legacy_db.exists() and not db_path.exists():
            logger.info("Migrating database from old location: %s -> %s", legacy_db, db_path)
            try:
                legacy_db.rename(db_path)
            except OSError as e:
                raise StorageInitError(
                    f"Failed to migrate database from {legacy_db} ({e})", db_path
                ) from e

            try:
                if not any(legacy_dir.iterdir()):
                    legacy_dir.rmdir()
            except OSError as e:
                logger.warning("Failed to remove legacy directory %s: %s", legacy_dir, e)

        return db_path
