"""State machine for one quiz session, solo or head-to-head."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from exam_app.constants.quiz_constants import OPTION_COUNT, TURN_DURATION_SECONDS
from exam_app.core.errors import InvariantViolation
from exam_app.core.models import (
    Question,
    QuizConfiguration,
    QuizMode,
    QuizResult,
    SessionPhase,
    SessionSnapshot,
)
from exam_app.core.services.scoreboard import build_quiz_result
from exam_app.core.services.turn_clock import TurnClock

logger = logging.getLogger(__name__)


class QuizSession:
    """Owns questions, answers and timing for a single quiz.

    Sessions start in LOADING and become ACTIVE once questions are loaded.
    Manual advancement and timer expiry go through the same transition, and
    the last transition scores the session and moves it to DONE.

    With ``strict`` set, illegal calls raise InvariantViolation. Otherwise
    they are logged and ignored, leaving state untouched.
    """

    def __init__(
        self,
        config: QuizConfiguration,
        turn_duration: int = TURN_DURATION_SECONDS,
        strict: bool = True,
    ) -> None:
        self._config = config
        self._strict = strict
        self._clock = TurnClock(turn_duration)
        self._phase = SessionPhase.LOADING
        self._failure_message: str | None = None
        self._result: QuizResult | None = None
        self._reset_progress([])

    # --- Lifecycle ---

    @property
    def config(self) -> QuizConfiguration:
        return self._config

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def result(self) -> QuizResult | None:
        return self._result

    @property
    def failure_message(self) -> str | None:
        return self._failure_message

    def is_active(self) -> bool:
        return self._phase is SessionPhase.ACTIVE

    def load_questions(self, questions: Sequence[Question]) -> None:
        """Move from LOADING to ACTIVE, or to FAILED if the list is empty."""
        if not self._require(SessionPhase.LOADING, "load questions"):
            return
        if not questions:
            self.fail("No questions were generated for this quiz.")
            return
        self._reset_progress(list(questions))
        self._phase = SessionPhase.ACTIVE
        logger.info(
            "Session active: %s questions, mode=%s", len(self._questions), self._config.mode.value
        )

    def fail(self, message: str) -> None:
        if not self._require(SessionPhase.LOADING, "record a generation failure"):
            return
        self._failure_message = message
        self._phase = SessionPhase.FAILED
        logger.info("Session failed to load: %s", message)

    def begin_retry(self) -> None:
        if not self._require(SessionPhase.FAILED, "retry"):
            return
        self._failure_message = None
        self._phase = SessionPhase.LOADING

    def cancel(self) -> None:
        """Discard all session state. Legal in any phase before DONE."""
        if self._phase is SessionPhase.CANCELLED:
            return
        if self._phase is SessionPhase.DONE:
            self._violation("Cannot cancel a session that has already finished.")
            return
        self._reset_progress([])
        self._phase = SessionPhase.CANCELLED
        logger.info("Session cancelled.")

    # --- Active operations ---

    def select_option(self, option_index: int) -> None:
        if not self._require(SessionPhase.ACTIVE, "select an option"):
            return
        if not 0 <= option_index < OPTION_COUNT:
            self._violation(f"Option index {option_index} out of range.")
            return
        self._answers[self._active_party - 1][self._current_index] = option_index

    def tick(self) -> bool:
        """Account one elapsed second. Returns True while the session stays active."""
        if not self._require(SessionPhase.ACTIVE, "tick"):
            return False
        self._elapsed[self._active_party - 1] += 1
        if self._clock.tick():
            self._transition()
        return self.is_active()

    def advance(self) -> None:
        if not self._require(SessionPhase.ACTIVE, "advance"):
            return
        self._transition()

    def go_back(self) -> None:
        """Step back one question in solo mode. Answers and timer are kept."""
        if not self._require(SessionPhase.ACTIVE, "go back"):
            return
        if self._config.mode is not QuizMode.SOLO:
            self._violation("Going back is only available in solo mode.")
            return
        self._current_index = max(0, self._current_index - 1)

    # --- Read access ---

    def get_questions(self) -> list[Question]:
        return list(self._questions)

    def get_question_count(self) -> int:
        return len(self._questions)

    def get_current_index(self) -> int:
        return self._current_index

    def get_active_party(self) -> int:
        return self._active_party

    def get_time_remaining(self) -> int:
        return self._clock.remaining

    def get_answers(self, party: int) -> list[int | None]:
        return list(self._answers[party - 1])

    def get_elapsed_seconds(self, party: int) -> int:
        return self._elapsed[party - 1]

    def get_current_selection(self) -> int | None:
        if not self.is_active():
            return None
        return self._answers[self._active_party - 1][self._current_index]

    def get_progress_percent(self) -> float:
        total = len(self._questions)
        if self._phase is SessionPhase.DONE:
            return 100.0
        if not total or not self.is_active():
            return 0.0
        if self._config.mode is QuizMode.VERSUS:
            turn_share = 1.0 if self._active_party == 2 else 0.5
            return (self._current_index / total) * 100 + (1 / total) * 100 * turn_share
        return ((self._current_index + 1) / total) * 100

    def snapshot(self, session_id: str) -> SessionSnapshot:
        question = self._questions[self._current_index] if self.is_active() else None
        return SessionSnapshot(
            session_id=session_id,
            phase=self._phase,
            mode=self._config.mode,
            total_questions=len(self._questions),
            current_index=self._current_index,
            active_party=self._active_party,
            active_party_name=self._config.party_name(self._active_party),
            time_remaining=self._clock.remaining,
            elapsed_seconds=tuple(self._elapsed),
            current_selection=self.get_current_selection(),
            progress_percent=self.get_progress_percent(),
            question_id=question.id if question else None,
            question_text=question.text if question else None,
            options=tuple(question.options) if question else (),
            failure_message=self._failure_message,
        )

    # --- Internals ---

    def _transition(self) -> None:
        is_last = self._current_index >= len(self._questions) - 1
        if self._config.mode is QuizMode.VERSUS and self._active_party == 1:
            self._active_party = 2
            self._clock.reset()
            return
        if is_last:
            self._finalize()
            return
        self._current_index += 1
        self._active_party = 1
        self._clock.reset()

    def _finalize(self) -> None:
        self._result = build_quiz_result(
            self._config,
            self._questions,
            self._answers,
            self._elapsed,
        )
        self._phase = SessionPhase.DONE
        logger.info(
            "Session finished: %s/%s for %s",
            self._result.player_one.score,
            self._result.total_questions,
            self._result.player_one.name,
        )

    def _reset_progress(self, questions: list[Question]) -> None:
        parties = self._config.party_count
        self._questions: list[Question] = questions
        self._answers: list[list[int | None]] = [[None] * len(questions) for _ in range(parties)]
        self._elapsed: list[int] = [0] * parties
        self._current_index = 0
        self._active_party = 1
        self._clock.reset()

    def _require(self, phase: SessionPhase, action: str) -> bool:
        if self._phase is phase:
            return True
        self._violation(f"Cannot {action} while the session is {self._phase.value}.")
        return False

    def _violation(self, message: str) -> None:
        if self._strict:
            raise InvariantViolation(message)
        logger.warning("Ignored invalid session operation: %s", message)
