"""Business logic for running quiz sessions shared between the API and the ticker."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import date
from threading import Lock
from uuid import uuid4

from exam_app.constants.quiz_constants import (
    RETAINED_FINISHED_SESSIONS,
    TICK_INTERVAL_SECONDS,
    TURN_DURATION_SECONDS,
)
from exam_app.core.errors import GenerationFailure, InvariantViolation, PersistenceFailure, SessionNotFoundError
from exam_app.core.models import (
    HistoryRecord,
    QuizConfiguration,
    QuizResult,
    SessionPhase,
    SessionSnapshot,
)
from exam_app.core.question_provider import QuestionProvider
from exam_app.core.quiz_config import preferred_topics_hint
from exam_app.core.services.game_session import QuizSession
from exam_app.core.services.history_repository import HistoryRepository
from exam_app.core.services.history_stats import DashboardSummary, build_dashboard
from exam_app.core.services.turn_clock import TurnTicker

logger = logging.getLogger(__name__)

_FINISHED_PHASES = (SessionPhase.DONE, SessionPhase.FAILED, SessionPhase.CANCELLED)


@dataclass(slots=True)
class _SessionSlot:
    session: QuizSession
    user_id: str | None
    preferred_topics: tuple[str, ...] = ()
    ticker: TurnTicker | None = None
    persisted: bool = False


class QuizManager:
    """Facade over quiz sessions, the question provider and history storage.

    Every session mutation happens under one lock, so ticks from the
    background ticker never interleave with requests. The question provider
    is called outside the lock while the session sits in LOADING.

    Only the newest ``retained_finished_sessions`` finished, failed or
    cancelled sessions are kept; older ones are evicted when a new session
    starts. Clients may also drop a session early with ``discard_session``.
    """

    def __init__(
        self,
        question_provider: QuestionProvider,
        history_repository: HistoryRepository,
        turn_duration: int = TURN_DURATION_SECONDS,
        auto_tick: bool = True,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        strict_invariants: bool = True,
        retained_finished_sessions: int = RETAINED_FINISHED_SESSIONS,
    ) -> None:
        self._lock = Lock()
        self._provider = question_provider
        self._history = history_repository
        self._turn_duration = turn_duration
        self._auto_tick = auto_tick
        self._tick_interval = tick_interval
        self._strict = strict_invariants
        self._retained_finished = retained_finished_sessions
        self._sessions: dict[str, _SessionSlot] = {}
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="HistoryWriter")
        self._writes_lock = Lock()
        self._pending_writes: set[Future] = set()

    # --- Session lifecycle ---

    def start_session(
        self,
        config: QuizConfiguration,
        user_id: str | None = None,
        preferred_topics: Sequence[str] = (),
    ) -> str:
        """Create a session, fetch its questions and return the session id."""
        session_id = uuid4().hex
        slot = _SessionSlot(
            session=QuizSession(config, turn_duration=self._turn_duration, strict=self._strict),
            user_id=user_id,
            preferred_topics=tuple(preferred_topics_hint(config, preferred_topics)),
        )
        with self._lock:
            self._evict_finished_sessions()
            self._sessions[session_id] = slot
        logger.info("Starting session %s for %s / %s", session_id, config.exam, config.subject)
        self._load_questions(session_id, slot)
        return session_id

    def retry_session(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            slot = self._get_slot(session_id)
            slot.session.begin_retry()
        logger.info("Retrying question generation for session %s", session_id)
        self._load_questions(session_id, slot)
        return self.get_snapshot(session_id)

    def cancel_session(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            slot = self._get_slot(session_id)
            slot.session.cancel()
            ticker = self._detach_ticker(slot)
            snapshot = slot.session.snapshot(session_id)
        if ticker is not None:
            ticker.stop()
        return snapshot

    def discard_session(self, session_id: str) -> None:
        """Forget a finished, failed or cancelled session."""
        with self._lock:
            slot = self._get_slot(session_id)
            if slot.session.phase in (SessionPhase.ACTIVE, SessionPhase.LOADING):
                slot.session.cancel()
            ticker = self._detach_ticker(slot)
            del self._sessions[session_id]
        if ticker is not None:
            ticker.stop()

    # --- Active session operations ---

    def select_option(self, session_id: str, option_index: int) -> SessionSnapshot:
        with self._lock:
            slot = self._get_slot(session_id)
            slot.session.select_option(option_index)
            return slot.session.snapshot(session_id)

    def advance(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            slot = self._get_slot(session_id)
            slot.session.advance()
            ticker = self._after_mutation(slot)
            snapshot = slot.session.snapshot(session_id)
        if ticker is not None:
            ticker.stop()
        return snapshot

    def go_back(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            slot = self._get_slot(session_id)
            slot.session.go_back()
            return slot.session.snapshot(session_id)

    def tick(self, session_id: str) -> bool:
        """Advance the session clock by one second. Returns False once there is nothing to tick."""
        with self._lock:
            slot = self._sessions.get(session_id)
            if slot is None or not slot.session.is_active():
                return False
            still_active = slot.session.tick()
            if not still_active:
                self._after_mutation(slot)
            return still_active

    # --- Read access ---

    def get_snapshot(self, session_id: str) -> SessionSnapshot:
        with self._lock:
            return self._get_slot(session_id).session.snapshot(session_id)

    def get_config(self, session_id: str) -> QuizConfiguration:
        with self._lock:
            return self._get_slot(session_id).session.config

    def get_result(self, session_id: str) -> QuizResult:
        with self._lock:
            session = self._get_slot(session_id).session
            if session.result is None:
                raise InvariantViolation(f"Session is {session.phase.value}; no result is available yet.")
            return session.result

    def get_session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def is_ticking(self, session_id: str) -> bool:
        with self._lock:
            ticker = self._get_slot(session_id).ticker
        return ticker is not None and ticker.is_running()

    # --- History ---

    def get_history(self, user_id: str | None) -> list[HistoryRecord]:
        try:
            return self._history.get_history(user_id)
        except Exception as exc:
            failure = PersistenceFailure(f"Unable to read history for {user_id!r}: {exc}")
            logger.error("%s", failure)
            return []

    def get_dashboard(self, user_id: str | None, today: date | None = None) -> DashboardSummary:
        return build_dashboard(self.get_history(user_id), today=today)

    def flush_pending_writes(self, timeout: float | None = None) -> None:
        with self._writes_lock:
            pending = list(self._pending_writes)
        wait(pending, timeout=timeout)
        with self._writes_lock:
            self._pending_writes.difference_update(future for future in pending if future.done())

    def get_pending_write_count(self) -> int:
        with self._writes_lock:
            return len(self._pending_writes)

    def shutdown(self) -> None:
        with self._lock:
            tickers = [self._detach_ticker(slot) for slot in self._sessions.values()]
        for ticker in tickers:
            if ticker is not None:
                ticker.stop()
        self.flush_pending_writes()
        self._writer.shutdown(wait=True)

    # --- Internals ---

    def _get_slot(self, session_id: str) -> _SessionSlot:
        slot = self._sessions.get(session_id)
        if slot is None:
            raise SessionNotFoundError(f"Unknown session '{session_id}'.")
        return slot

    def _load_questions(self, session_id: str, slot: _SessionSlot) -> None:
        config = slot.session.config
        questions: list = []
        failure: GenerationFailure | None = None
        try:
            questions = self._provider.generate_questions(config, slot.preferred_topics)
        except GenerationFailure as exc:
            failure = exc
        except Exception as exc:
            failure = GenerationFailure(f"Question generation failed: {exc}")

        with self._lock:
            if slot.session.phase is not SessionPhase.LOADING:
                # Cancelled while the provider was working.
                return
            if failure is not None:
                logger.warning("Session %s: %s", session_id, failure)
                slot.session.fail(str(failure))
                return
            slot.session.load_questions(questions)
            if slot.session.is_active() and self._auto_tick:
                slot.ticker = TurnTicker(
                    lambda: self.tick(session_id),
                    interval=self._tick_interval,
                    name=f"TurnTicker-{session_id[:8]}",
                )
                slot.ticker.start()

    def _after_mutation(self, slot: _SessionSlot) -> TurnTicker | None:
        """Persist finished sessions once and hand back a ticker that must be stopped."""
        if slot.session.phase is not SessionPhase.DONE:
            return None
        if not slot.persisted and slot.session.result is not None:
            slot.persisted = True
            future = self._writer.submit(
                self._persist_result, slot.session.result, slot.session.config, slot.user_id
            )
            with self._writes_lock:
                self._pending_writes.add(future)
            future.add_done_callback(self._forget_write)
        return self._detach_ticker(slot)

    def _persist_result(self, result: QuizResult, config: QuizConfiguration, user_id: str | None) -> None:
        try:
            self._history.save_result(result, config.exam, config.subject, user_id)
        except Exception as exc:
            failure = PersistenceFailure(f"Saving result for {user_id!r} failed: {exc}")
            logger.error("%s", failure)
            return
        logger.info("Saved result for %s (%s / %s)", user_id, config.exam, config.subject)

    def _forget_write(self, future: Future) -> None:
        with self._writes_lock:
            self._pending_writes.discard(future)

    def _evict_finished_sessions(self) -> None:
        finished = [
            session_id
            for session_id, slot in self._sessions.items()
            if slot.session.phase in _FINISHED_PHASES
        ]
        overflow = len(finished) - self._retained_finished
        for session_id in finished[: max(overflow, 0)]:
            del self._sessions[session_id]
            logger.debug("Evicted finished session %s", session_id)

    @staticmethod
    def _detach_ticker(slot: _SessionSlot) -> TurnTicker | None:
        ticker = slot.ticker
        slot.ticker = None
        return ticker
