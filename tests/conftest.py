"""Shared builders for quiz core tests."""

from __future__ import annotations

import pytest

from exam_app.core.models import Explanation, Question, QuizMode
from exam_app.core.quiz_config import build_configuration


def make_question(index: int, correct_index: int = 0) -> Question:
    return Question(
        id=f"q{index}",
        text=f"Question {index}?",
        options=["A", "B", "C", "D"],
        correct_index=correct_index,
        explanation=Explanation(concept=f"Concept {index}", steps=["step"], tricks=[]),
    )


def make_questions(count: int) -> list[Question]:
    return [make_question(index, correct_index=index % 4) for index in range(count)]


def make_config(mode: QuizMode = QuizMode.SOLO, question_count: int = 5, **overrides):
    values = {
        "exam": "IBPS PO",
        "subject": "Quantitative Aptitude",
        "topics": ["Arithmetic"],
        "question_count": question_count,
        "mode": mode,
    }
    values.update(overrides)
    return build_configuration(**values)


@pytest.fixture
def solo_config():
    return make_config(QuizMode.SOLO)


@pytest.fixture
def versus_config():
    return make_config(QuizMode.VERSUS, player_one_name="Asha", player_two_name="Ravi")
