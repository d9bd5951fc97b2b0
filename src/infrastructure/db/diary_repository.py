"""DiaryRepository - セッション記録の逐次保存・確定保存・取得"""

import logging
import re
import sqlite3
from datetime import datetime
from typing import Dict, List, Optional

from domain.models.records import Accomplishment, DiarySession, StoredSession
from infrastructure.db.diary_db import DiaryDB
from shared.exceptions import PersistenceError

logger = logging.getLogger(__name__)

# 旧形式のRFC3339はナノ秒精度の場合がある
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")

# sqlite3はバインド値の変換失敗をsqlite3.Error以外で送出する
# （UnicodeEncodeError: 孤立サロゲート、OverflowError: 64bit超の整数）
_WRITE_ERRORS = (sqlite3.Error, ValueError, OverflowError)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    """保存済みのISO8601/RFC3339文字列を datetime に変換"""
    if not value:
        return None
    value = _FRACTION_RE.sub(r"\1", value.replace("Z", "+00:00"))
    return datetime.fromisoformat(value)


class DiaryRepository:
    """セッション記録の永続化

    逐次保存(save_incremental)と確定保存(finalize)は意図的に非対称:
    - 逐次保存: 成果・目的は同一テキストの既存行があれば挿入しない。
      ツール使用数は(session, tool)単位で置き換える。課題・変更ファイルは書かない。
    - 確定保存: 既存チェックなしで全件INSERTする。1セッションにつき1回だけ
      呼ぶ前提で、2回呼ぶと成果・目的・課題・ツール使用数の行が重複する。
    """

    def __init__(self, db: DiaryDB):
        """初期化

        Args:
            db: DiaryDBインスタンス
        """
        self._db = db

    def create_session(self, start_time: datetime) -> int:
        """sessions行を作成してIDを返す

        Args:
            start_time: セッション開始時刻

        Returns:
            採番されたセッションID
        """
        try:
            cursor = self._db.conn.execute(
                "INSERT INTO sessions (start_time) VALUES (?)",
                (start_time.isoformat(),),
            )
            self._db.conn.commit()
        except _WRITE_ERRORS as e:
            self._db.conn.rollback()
            raise PersistenceError("create_session", None, e) from e
        return cursor.lastrowid

    def save_incremental(self, session_id: int, session: DiarySession) -> None:
        """逐次保存（冪等）

        1. sessions.total_duration_ms を更新
        2. 既存の成果説明・目的テキストを取得し、集合に無いものだけINSERT
        3. tool_usage を (session_id, tool_name) 単位で DELETE→INSERT

        Args:
            session_id: セッションID
            session: メモリ上の集約
        """
        conn = self._db.conn
        try:
            conn.execute(
                "UPDATE sessions SET total_duration_ms = ? WHERE id = ?",
                (session.total_duration_ms, session_id),
            )

            saved_descriptions = {
                row[0] for row in conn.execute(
                    "SELECT description FROM accomplishments WHERE session_id = ?",
                    (session_id,),
                )
            }
            for accomplishment in session.accomplishments:
                if accomplishment.description in saved_descriptions:
                    continue
                self._insert_accomplishment(session_id, accomplishment)
                saved_descriptions.add(accomplishment.description)

            saved_objectives = {
                row[0] for row in conn.execute(
                    "SELECT objective FROM objectives WHERE session_id = ?",
                    (session_id,),
                )
            }
            for objective in session.objectives:
                if objective in saved_objectives:
                    continue
                conn.execute(
                    "INSERT INTO objectives (session_id, objective) VALUES (?, ?)",
                    (session_id, objective),
                )
                saved_objectives.add(objective)

            for tool_name, count in session.tool_usage.items():
                conn.execute(
                    "DELETE FROM tool_usage WHERE session_id = ? AND tool_name = ?",
                    (session_id, tool_name),
                )
                conn.execute(
                    "INSERT INTO tool_usage (session_id, tool_name, usage_count) VALUES (?, ?, ?)",
                    (session_id, tool_name, count),
                )

            conn.commit()
        except _WRITE_ERRORS as e:
            conn.rollback()
            raise PersistenceError("save_incremental", session_id, e) from e

    def finalize(self, session_id: int, session: DiarySession) -> None:
        """確定保存（非冪等）

        end_time・total_duration_msを更新し、成果・目的・課題・ツール使用数を
        既存チェックなしでINSERT、変更ファイルは重複除去・ソートしてINSERTする。

        Args:
            session_id: セッションID
            session: メモリ上の集約
        """
        conn = self._db.conn
        end_time = session.end_time.isoformat() if session.end_time else None
        try:
            conn.execute(
                "UPDATE sessions SET end_time = ?, total_duration_ms = ? WHERE id = ?",
                (end_time, session.total_duration_ms, session_id),
            )
            for accomplishment in session.accomplishments:
                self._insert_accomplishment(session_id, accomplishment)
            conn.executemany(
                "INSERT INTO objectives (session_id, objective) VALUES (?, ?)",
                [(session_id, objective) for objective in session.objectives],
            )
            conn.executemany(
                "INSERT INTO issues (session_id, issue) VALUES (?, ?)",
                [(session_id, issue) for issue in session.issues],
            )
            conn.executemany(
                "INSERT INTO tool_usage (session_id, tool_name, usage_count) VALUES (?, ?, ?)",
                [(session_id, name, count) for name, count in session.tool_usage.items()],
            )
            conn.executemany(
                "INSERT INTO files_modified (session_id, file_path) VALUES (?, ?)",
                [(session_id, path) for path in session.unique_files_modified()],
            )
            conn.commit()
        except _WRITE_ERRORS as e:
            conn.rollback()
            raise PersistenceError("finalize", session_id, e) from e

        logger.info("Saved session %s to database: %s", session_id, self._db.db_path)

    def _insert_accomplishment(self, session_id: int, accomplishment: Accomplishment) -> int:
        cursor = self._db.conn.execute(
            """
            INSERT INTO accomplishments (session_id, category, description, duration_ms)
            VALUES (?, ?, ?, ?)
            """,
            (session_id, accomplishment.category, accomplishment.description, accomplishment.duration_ms),
        )
        acc_id = cursor.lastrowid
        self._db.conn.executemany(
            "INSERT INTO accomplishment_files (accomplishment_id, file_path) VALUES (?, ?)",
            [(acc_id, path) for path in accomplishment.files_affected],
        )
        return acc_id

    def get_recent_sessions(self, limit: int = 5) -> List[StoredSession]:
        """直近のセッションを再構築して取得

        ORDER BY start_time DESC。成果・目的などの子行は挿入順(id順)。

        Args:
            limit: 取得件数上限

        Returns:
            StoredSessionのリスト（新しい順）
        """
        cursor = self._db.conn.execute(
            """
            SELECT id, start_time, end_time, total_duration_ms
            FROM sessions
            ORDER BY start_time DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        )
        sessions = []
        for row in cursor.fetchall():
            sessions.append(StoredSession(
                id=row[0],
                start_time=_parse_time(row[1]),
                end_time=_parse_time(row[2]),
                total_duration_ms=row[3] or 0,
                accomplishments=self._load_accomplishments(row[0]),
                objectives=self._load_column("objectives", "objective", row[0]),
                issues=self._load_column("issues", "issue", row[0]),
                files_modified=self._load_column("files_modified", "file_path", row[0]),
                tool_usage=self._load_tool_usage(row[0]),
            ))
        return sessions

    def _load_accomplishments(self, session_id: int) -> List[Accomplishment]:
        rows = self._db.conn.execute(
            """
            SELECT id, category, description, duration_ms
            FROM accomplishments
            WHERE session_id = ?
            ORDER BY id
            """,
            (session_id,),
        ).fetchall()

        files: Dict[int, List[str]] = {}
        for acc_id, file_path in self._db.conn.execute(
            """
            SELECT f.accomplishment_id, f.file_path
            FROM accomplishment_files f
            JOIN accomplishments a ON a.id = f.accomplishment_id
            WHERE a.session_id = ?
            ORDER BY f.id
            """,
            (session_id,),
        ):
            files.setdefault(acc_id, []).append(file_path)

        return [
            Accomplishment(
                category=row[1],
                description=row[2],
                duration_ms=row[3],
                files_affected=files.get(row[0], []),
            )
            for row in rows
        ]

    def _load_column(self, table: str, column: str, session_id: int) -> List[str]:
        # table/columnは内部固定値のみ
        cursor = self._db.conn.execute(
            f"SELECT {column} FROM {table} WHERE session_id = ? ORDER BY id",
            (session_id,),
        )
        return [row[0] for row in cursor.fetchall()]

    def _load_tool_usage(self, session_id: int) -> Dict[str, int]:
        cursor = self._db.conn.execute(
            "SELECT tool_name, usage_count FROM tool_usage WHERE session_id = ? ORDER BY id",
            (session_id,),
        )
        return {row[0]: row[1] for row in cursor.fetchall()}
