"""SessionAccumulator - イベントをセッション集約へ畳み込む"""

import logging
from typing import Optional

from domain.models.records import ClaudeEvent, DiarySession, EventKind
from domain.services import activity_classifier
from infrastructure.db.diary_repository import DiaryRepository
from shared.exceptions import AlreadyFinalizedError, FinalizationError, PersistenceError

logger = logging.getLogger(__name__)


class SessionAccumulator:
    """1回のhook起動で観測した活動の集約と保存要求

    イベントごとに集約を更新し、直後に逐次保存する。session_endで確定保存。
    repositoryがNoneの場合（dry-run）は一切保存しない。

    セッションIDは最初の書き込み時にrepositoryから採番し、以後は
    同じIDを使い続ける。
    """

    def __init__(self, repository: Optional[DiaryRepository] = None, session: Optional[DiarySession] = None):
        """初期化

        Args:
            repository: 永続化先（Noneならdry-run）
            session: 既存の集約（省略時は新規作成）
        """
        self._repository = repository
        self.session = session or DiarySession()
        self._session_id: Optional[int] = None
        self._finalized = False

    @property
    def session_id(self) -> Optional[int]:
        return self._session_id

    @property
    def finalized(self) -> bool:
        return self._finalized

    def get_or_create_session_id(self) -> Optional[int]:
        """セッションIDを取得（未採番なら採番してキャッシュ）"""
        if self._session_id is None and self._repository is not None:
            self._session_id = self._repository.create_session(self.session.start_time)
            logger.debug("Created session row %s", self._session_id)
        return self._session_id

    def process_event(self, event: ClaudeEvent) -> None:
        """イベント1件を集約に反映し、保存を要求する

        種別に関係なく、先にツール使用数と所要時間を加算する。

        Args:
            event: 正規化済みイベント

        Raises:
            PersistenceError: 逐次保存に失敗した場合（集約の状態は保持される）
            FinalizationError: session_endでの確定保存に失敗した場合
            AlreadyFinalizedError: 確定済みのセッションに再度session_endが来た場合
        """
        logger.debug("Processing event: %s", event.event_type)

        for tool_call in event.tool_calls or []:
            self.session.count_tool(tool_call.tool_name)

        if event.duration_ms is not None:
            self.session.total_duration_ms += event.duration_ms

        kind = event.kind
        if kind in (EventKind.SESSION_START, EventKind.USER_PROMPT, EventKind.MESSAGE):
            self._infer_from_prompt(event)
        elif kind in (EventKind.TOOL_CALL, EventKind.TOOL_RESULT):
            self._process_tool_activity(event)
        elif kind == EventKind.ERROR:
            self._process_error(event)
        elif kind == EventKind.SESSION_END:
            self.end_session()
            return
        else:
            self._process_generic_activity(event)

        self.save_current_data()

    def _infer_from_prompt(self, event: ClaudeEvent) -> None:
        prompt = event.user_prompt
        if prompt is None:
            return
        self.session.objectives.append(activity_classifier.summarize_objective(prompt))
        accomplishment = activity_classifier.classify_prompt(prompt, event.duration_ms)
        if accomplishment is not None:
            self.session.accomplishments.append(accomplishment)

    def _process_tool_activity(self, event: ClaudeEvent) -> None:
        for tool_call in event.tool_calls or []:
            accomplishment = activity_classifier.classify_tool_call(tool_call)
            if tool_call.file_path is not None:
                self.session.files_modified.append(tool_call.file_path)
            self.session.accomplishments.append(accomplishment)

    def _process_error(self, event: ClaudeEvent) -> None:
        if event.error is not None:
            self.session.issues.append(activity_classifier.format_issue(event.error))

    def _process_generic_activity(self, event: ClaudeEvent) -> None:
        if event.assistant_response is None:
            return
        accomplishment = activity_classifier.classify_response(event.assistant_response, event.duration_ms)
        if accomplishment is not None:
            self.session.accomplishments.append(accomplishment)

    def save_current_data(self) -> None:
        """逐次保存（dry-runでは何もしない）"""
        if self._repository is None:
            return
        session_id = self.get_or_create_session_id()
        self._repository.save_incremental(session_id, self.session)

    def end_session(self) -> None:
        """終了時刻を記録して確定保存する

        Raises:
            AlreadyFinalizedError: 既に確定済みの場合
            FinalizationError: 確定保存に失敗した場合
        """
        if self._finalized:
            raise AlreadyFinalizedError(f"Session {self._session_id} is already finalized")
        if self.session.end_time is None:
            self.session.end()
        self.finalize()

    def finalize(self) -> None:
        """確定保存（1回限り）

        失敗時も確定済みとして扱い、同じ状態での再試行による行の重複を防ぐ。

        Raises:
            AlreadyFinalizedError: 既に確定済みの場合
            FinalizationError: 確定保存に失敗した場合
        """
        if self._finalized:
            raise AlreadyFinalizedError(f"Session {self._session_id} is already finalized")
        self._finalized = True

        if self._repository is None:
            return

        try:
            session_id = self.get_or_create_session_id()
            self._repository.finalize(session_id, self.session)
        except PersistenceError as e:
            raise FinalizationError(self._session_id, e) from e
