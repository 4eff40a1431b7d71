"""Domain models for the exam application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuizMode(str, Enum):
    SOLO = "solo"
    VERSUS = "1vs1"


class SessionPhase(str, Enum):
    """Lifecycle of a quiz session. Finalizing is folded into the last advance."""

    LOADING = "loading"
    ACTIVE = "active"
    FAILED = "failed"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class QuizConfiguration:
    """Immutable quiz setup, resolved once before a session starts."""

    exam: str
    subject: str
    topics: frozenset[str]
    question_count: int
    difficulty: Difficulty
    mode: QuizMode
    player_one_name: str
    player_two_name: str | None = None
    allow_general_syllabus: bool = True

    @property
    def party_count(self) -> int:
        return 2 if self.mode is QuizMode.VERSUS else 1

    def party_name(self, party: int) -> str:
        if party == 2 and self.player_two_name is not None:
            return self.player_two_name
        return self.player_one_name


@dataclass(slots=True)
class Explanation:
    concept: str
    steps: list[str] = field(default_factory=list)
    tricks: list[str] = field(default_factory=list)
    visual_aid: str | None = None


@dataclass(slots=True)
class Question:
    """Multiple-choice question with exactly four options."""

    id: str
    text: str
    options: list[str]
    correct_index: int
    explanation: Explanation
    topic: str | None = None


@dataclass(frozen=True, slots=True)
class AnswerRecord:
    """One party's final answer for one question, kept for the review screen."""

    question_id: str
    selected_option: int | None
    is_correct: bool


@dataclass(frozen=True, slots=True)
class PlayerResult:
    name: str
    score: int
    accuracy: float
    time_taken: int
    answers: tuple[AnswerRecord, ...]


@dataclass(frozen=True, slots=True)
class QuizResult:
    mode: QuizMode
    total_questions: int
    questions: tuple[Question, ...]
    player_one: PlayerResult
    player_two: PlayerResult | None = None

    def players(self) -> list[PlayerResult]:
        if self.player_two is None:
            return [self.player_one]
        return [self.player_one, self.player_two]


@dataclass(frozen=True, slots=True)
class HistoryRecord:
    """Persisted summary of one completed quiz."""

    timestamp: datetime
    exam_name: str
    subject_name: str
    score: int
    accuracy: float
    total_questions: int
    user_id: str | None = None


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """Read-only view of a session handed to clients.

    Only the text and options of the current question are exposed, so the
    correct option stays on the server while the session is active.
    """

    session_id: str
    phase: SessionPhase
    mode: QuizMode
    total_questions: int
    current_index: int
    active_party: int
    active_party_name: str
    time_remaining: int
    elapsed_seconds: tuple[int, ...]
    current_selection: int | None
    progress_percent: float
    question_id: str | None = None
    question_text: str | None = None
    options: tuple[str, ...] = ()
    failure_message: str | None = None

    @property
    def can_retry(self) -> bool:
        return self.phase is SessionPhase.FAILED
