"""Build and validate quiz configurations before a session starts."""

from __future__ import annotations

import random
from collections.abc import Iterable, Sequence

from exam_app.constants.catalog import SYLLABUS, all_exams, find_syllabus
from exam_app.constants.quiz_constants import (
    DEFAULT_PLAYER_ONE_NAME,
    DEFAULT_PLAYER_TWO_NAME,
    DEFAULT_QUESTION_COUNT,
    MAX_QUESTION_COUNT,
    MIN_QUESTION_COUNT,
)
from exam_app.core.models import Difficulty, QuizConfiguration, QuizMode


def build_configuration(
    exam: str,
    subject: str,
    topics: Iterable[str] = (),
    question_count: int = DEFAULT_QUESTION_COUNT,
    difficulty: Difficulty | str = Difficulty.MEDIUM,
    mode: QuizMode | str = QuizMode.SOLO,
    player_one_name: str | None = None,
    player_two_name: str | None = None,
    allow_general_syllabus: bool = True,
) -> QuizConfiguration:
    """Validate inputs and resolve defaults once for a new quiz."""
    cleaned_exam = exam.strip()
    cleaned_subject = subject.strip()
    if not cleaned_exam:
        raise ValueError("Exam must not be empty.")
    if not cleaned_subject:
        raise ValueError("Subject must not be empty.")

    if isinstance(question_count, bool) or not isinstance(question_count, int):
        raise ValueError("Question count must be an integer.")
    if not MIN_QUESTION_COUNT <= question_count <= MAX_QUESTION_COUNT:
        raise ValueError(
            f"Question count must be between {MIN_QUESTION_COUNT} and {MAX_QUESTION_COUNT}."
        )

    cleaned_topics = frozenset(topic.strip() for topic in topics if topic.strip())
    if not cleaned_topics and not allow_general_syllabus:
        raise ValueError("Select at least one topic.")

    resolved_mode = _coerce_enum(QuizMode, mode, "mode")
    resolved_difficulty = _coerce_enum(Difficulty, difficulty, "difficulty")

    second_name = None
    if resolved_mode is QuizMode.VERSUS:
        second_name = _name_or_default(player_two_name, DEFAULT_PLAYER_TWO_NAME)

    return QuizConfiguration(
        exam=cleaned_exam,
        subject=cleaned_subject,
        topics=cleaned_topics,
        question_count=question_count,
        difficulty=resolved_difficulty,
        mode=resolved_mode,
        player_one_name=_name_or_default(player_one_name, DEFAULT_PLAYER_ONE_NAME),
        player_two_name=second_name,
        allow_general_syllabus=allow_general_syllabus,
    )


def random_configuration(
    rng: random.Random | None = None,
    mode: QuizMode = QuizMode.SOLO,
) -> QuizConfiguration:
    """Pick a random exam, subject and topic for a quick practice round."""
    rng = rng or random.Random()
    syllabus = rng.choice(SYLLABUS)
    return build_configuration(
        exam=rng.choice(all_exams()),
        subject=syllabus.name,
        topics=[rng.choice(syllabus.subtopics)],
        question_count=rng.randrange(MIN_QUESTION_COUNT, MAX_QUESTION_COUNT),
        difficulty=Difficulty.MEDIUM,
        mode=mode,
    )


def preferred_topics_hint(config: QuizConfiguration, preferred_topics: Sequence[str]) -> list[str]:
    """Preferred topics that belong to the configured subject, in the given order."""
    syllabus = find_syllabus(config.subject)
    if syllabus is None:
        return []
    allowed = set(syllabus.subtopics)
    hint: list[str] = []
    for topic in preferred_topics:
        if topic in allowed and topic not in hint:
            hint.append(topic)
    return hint


def _name_or_default(name: str | None, default: str) -> str:
    if name is None:
        return default
    stripped = name.strip()
    return stripped or default


def _coerce_enum(enum_type, value, label: str):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError as exc:
        choices = ", ".join(member.value for member in enum_type)
        raise ValueError(f"Unknown {label} '{value}'. Expected one of: {choices}.") from exc
