"""データベースインフラストラクチャ"""

from domain.models.records import Accomplishment, DiarySession, StoredSession
from infrastructure.db.diary_db import DiaryDB
from infrastructure.db.diary_repository import DiaryRepository

__all__ = [
    "DiaryDB",
    "DiaryRepository",
    "Accomplishment",
    "DiarySession",
    "StoredSession",
]
