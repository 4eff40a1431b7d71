"""Question sources consumed by the session manager."""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from exam_app.core.errors import GenerationFailure
from exam_app.core.models import Question, QuizConfiguration
from exam_app.core.question_importer import QuestionImportError, load_questions_from_file

logger = logging.getLogger(__name__)

_BANK_SUFFIXES = (".txt", ".json")


class QuestionProvider(Protocol):
    """Produces the question list for a configured quiz.

    The returned list may be shorter than ``config.question_count``.
    """

    def generate_questions(
        self,
        config: QuizConfiguration,
        preferred_topics: Sequence[str] = (),
    ) -> list[Question]: ...


class StaticQuestionProvider:
    """Serves a fixed list of questions in order, filtered by topic and truncated."""

    def __init__(self, questions: Sequence[Question]) -> None:
        self._questions = list(questions)

    def generate_questions(
        self,
        config: QuizConfiguration,
        preferred_topics: Sequence[str] = (),
    ) -> list[Question]:
        return select_questions(self._questions, config, preferred_topics)


class QuestionBankProvider:
    """Draws questions from per-subject bank files in a directory.

    A subject such as "Quantitative Aptitude" is looked up as
    ``quantitative-aptitude.txt`` or ``quantitative-aptitude.json``.
    """

    def __init__(self, bank_directory: Path, rng: random.Random | None = None) -> None:
        self._bank_directory = Path(bank_directory)
        self._rng = rng or random.Random()

    def generate_questions(
        self,
        config: QuizConfiguration,
        preferred_topics: Sequence[str] = (),
    ) -> list[Question]:
        bank_path = self.find_bank(config.subject)
        if bank_path is None:
            raise GenerationFailure(f"No question bank available for '{config.subject}'.")
        try:
            bank = load_questions_from_file(bank_path)
        except QuestionImportError as exc:
            raise GenerationFailure(str(exc)) from exc

        drawn = select_questions(bank.questions, config, preferred_topics, rng=self._rng)
        if not drawn:
            topics = ", ".join(sorted(config.topics))
            raise GenerationFailure(f"Bank {bank_path.name} has no questions on {topics}.")
        if len(drawn) < config.question_count:
            logger.warning(
                "Bank %s has %s questions; %s were requested.",
                bank_path.name,
                len(drawn),
                config.question_count,
            )
        return _with_session_ids(drawn)

    def find_bank(self, subject: str) -> Path | None:
        slug = subject_slug(subject)
        for suffix in _BANK_SUFFIXES:
            candidate = self._bank_directory / f"{slug}{suffix}"
            if candidate.is_file():
                return candidate
        return None


def select_questions(
    questions: Sequence[Question],
    config: QuizConfiguration,
    preferred_topics: Sequence[str] = (),
    rng: random.Random | None = None,
) -> list[Question]:
    """Pick up to ``config.question_count`` questions, favouring the chosen topics.

    Questions tagged with a preferred topic come first, then questions tagged
    with one of the configured topics, then everything else. When the
    configuration names topics and disallows the general syllabus, questions
    outside those topics are dropped. Ties keep the shuffled (or given) order.
    """
    pool = list(questions)
    if rng is not None:
        rng.shuffle(pool)

    chosen = {topic.casefold() for topic in config.topics}
    preferred = {topic.casefold() for topic in preferred_topics}
    if chosen and not config.allow_general_syllabus:
        pool = [question for question in pool if _topic_key(question) in chosen]

    def rank(question: Question) -> int:
        key = _topic_key(question)
        if key in preferred:
            return 0
        if key in chosen:
            return 1
        return 2

    return sorted(pool, key=rank)[: config.question_count]


def subject_slug(subject: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", subject.strip().lower()).strip("-")


def _topic_key(question: Question) -> str | None:
    return question.topic.casefold() if question.topic else None


def _with_session_ids(questions: list[Question]) -> list[Question]:
    token = uuid4().hex[:8]
    return [
        Question(
            id=f"q-{index}-{token}",
            text=question.text,
            options=list(question.options),
            correct_index=question.correct_index,
            explanation=question.explanation,
            topic=question.topic,
        )
        for index, question in enumerate(questions)
    ]
