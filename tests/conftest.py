"""pytest設定 - テストモジュールのパス設定と共通フィクスチャ"""

import sys
from pathlib import Path

import pytest

# プロジェクトルートとsrcディレクトリのパス
project_root = Path(__file__).parent.parent
src_dir = project_root / "src"

# 正しいパスを先頭に追加（既存の場合は一度削除してから先頭へ）
for path in [str(src_dir), str(project_root)]:
    if path in sys.path:
        sys.path.remove(path)
    sys.path.insert(0, path)

from infrastructure.db.diary_db import DiaryDB  # noqa: E402
from infrastructure.db.diary_repository import DiaryRepository  # noqa: E402


@pytest.fixture
def db(tmp_path):
    """テストごとに独立したDiaryDB"""
    diary_db = DiaryDB(tmp_path / ".claude" / "diary.db")
    diary_db.connect()
    yield diary_db
    diary_db.close()


@pytest.fixture
def repo(db):
    """DiaryRepositoryインスタンス"""
    return DiaryRepository(db)


@pytest.fixture
def count_rows(db):
    """セッションに属する行数を返す関数"""
    def _count(table: str, session_id: int) -> int:
        return db.conn.execute(
            f"SELECT COUNT(*) FROM {table} WHERE session_id = ?", (session_id,)
        ).fetchone()[0]
    return _count
