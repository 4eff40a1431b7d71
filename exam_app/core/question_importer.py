"""Utilities for importing question banks from text or JSON files.

Text format (repeat blocks separated by blank lines or '---'):

    Q: Question text (markdown + LaTeX are passed through untouched).
       Additional lines until the next marker belong to the question.
    A: First option text
    B: Second option text
    C: Third option text
    D: Fourth option text
    CORRECT: A|B|C|D
    CONCEPT: The core concept tested
    STEP: One step of the worked solution   (repeatable)
    TRICK: A shortcut or tip                (repeatable)
    VISUAL: <svg ...>...</svg>              (optional)
    TOPIC: Syllabus sub-topic               (optional)

Example:

    Q: What is $15\\%$ of 200?
    A: 20
    B: 30
    C: 35
    D: 15
    CORRECT: B
    CONCEPT: Percentages
    STEP: 10% of 200 is 20 and 5% is 10.
    STEP: 20 + 10 = 30.
    TRICK: Split awkward percentages into 10% and 5% pieces.
    TOPIC: Arithmetic
    TOPIC: Arithmetic

JSON banks hold a list of objects shaped like the question generator's
output: ``id``, ``text``, ``options``, ``correctIndex`` and an
``explanation`` object with ``concept``, ``steps``, ``tricks`` and an
optional ``visualAid``, plus an optional ``topic``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from exam_app.constants.quiz_constants import OPTION_COUNT
from exam_app.core.models import Explanation, Question


class QuestionImportError(Exception):
    """Raised when a question bank cannot be parsed."""


@dataclass(slots=True)
class ImportedBank:
    """Container for imported bank metadata and questions."""

    source_path: Path
    questions: list[Question]


_OPTION_ORDER = ["A", "B", "C", "D"]
_LIST_MARKERS = {"STEP": "steps", "TRICK": "tricks"}


def load_questions_from_file(file_path: Path) -> ImportedBank:
    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise QuestionImportError(f"Unable to read question bank {file_path}: {exc}") from exc

    if file_path.suffix.lower() == ".json":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise QuestionImportError(f"Invalid JSON in {file_path.name}: {exc}") from exc
        questions = questions_from_payload(payload)
    else:
        questions = parse_question_text(text)

    if not questions:
        raise QuestionImportError("Question bank did not contain any questions.")
    return ImportedBank(source_path=file_path, questions=questions)


def parse_question_text(text: str) -> list[Question]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    return [_parse_block(block, position) for position, block in enumerate(blocks) if block]


def questions_from_payload(payload: Any) -> list[Question]:
    """Build questions from decoded generator JSON."""
    if not isinstance(payload, list):
        raise QuestionImportError("Question payload must be a JSON array.")

    questions: list[Question] = []
    for position, item in enumerate(payload):
        if not isinstance(item, dict):
            raise QuestionImportError(f"Question {position} must be an object.")
        explanation = item.get("explanation") or {}
        if not isinstance(explanation, dict):
            raise QuestionImportError(f"Question {position} explanation must be an object.")
        questions.append(
            _build_question(
                question_id=str(item.get("id") or f"q-{position}"),
                text=item.get("text", ""),
                options=item.get("options", []),
                correct_index=item.get("correctIndex"),
                concept=explanation.get("concept", ""),
                steps=explanation.get("steps", []),
                tricks=explanation.get("tricks", []),
                visual_aid=explanation.get("visualAid"),
                topic=item.get("topic"),
            )
        )
    return questions


def _parse_block(block: str, position: int) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    concept = ""
    lists: dict[str, list[str]] = {"steps": [], "tricks": []}
    visual_aid: str | None = None
    topic: str | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        marker, _, value = line.partition(":")
        marker = marker.strip().upper()

        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if marker == "CORRECT":
            correct_letter = value.strip().upper()
            current_section = None
            continue

        if marker == "CONCEPT":
            concept = value.strip()
            current_section = "CONCEPT"
            continue

        if marker in _LIST_MARKERS:
            lists[_LIST_MARKERS[marker]].append(value.strip())
            current_section = marker
            continue

        if marker == "VISUAL":
            visual_aid = value.strip()
            current_section = "VISUAL"
            continue

        if marker == "TOPIC":
            topic = value.strip()
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        elif current_section == "CONCEPT":
            concept = f"{concept}\n{line}"
        elif current_section in _LIST_MARKERS:
            entries = lists[_LIST_MARKERS[current_section]]
            entries[-1] = f"{entries[-1]}\n{line}"
        elif current_section == "VISUAL":
            visual_aid = f"{visual_aid}\n{line}"
        else:
            raise QuestionImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    if not question_lines:
        raise QuestionImportError("Question text missing (Q: ...)")
    if len(options) != OPTION_COUNT:
        raise QuestionImportError("Each question must define exactly four options (A-D).")
    if correct_letter is None:
        raise QuestionImportError("Each question must name its CORRECT option.")
    if correct_letter not in _OPTION_ORDER:
        raise QuestionImportError("CORRECT must be one of A, B, C, or D.")

    return _build_question(
        question_id=f"q-{position}",
        text="\n".join(question_lines),
        options=[options[letter] for letter in _OPTION_ORDER],
        correct_index=_OPTION_ORDER.index(correct_letter),
        concept=concept,
        steps=lists["steps"],
        tricks=lists["tricks"],
        visual_aid=visual_aid,
        topic=topic,
    )


def _build_question(
    question_id: str,
    text: Any,
    options: Any,
    correct_index: Any,
    concept: Any,
    steps: Any,
    tricks: Any,
    visual_aid: Any,
    topic: Any = None,
) -> Question:
    if not isinstance(text, str) or not text.strip():
        raise QuestionImportError(f"Question {question_id} text cannot be empty.")
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        raise QuestionImportError(f"Question {question_id} must have exactly four options.")
    cleaned_options = [str(option).strip() for option in options]
    if any(not option for option in cleaned_options):
        raise QuestionImportError(f"Question {question_id} has an empty option.")
    if isinstance(correct_index, bool) or not isinstance(correct_index, int):
        raise QuestionImportError(f"Question {question_id} correct index must be an integer.")
    if not 0 <= correct_index < OPTION_COUNT:
        raise QuestionImportError(f"Question {question_id} correct index must be between 0 and 3.")
    if not isinstance(steps, list) or not isinstance(tricks, list):
        raise QuestionImportError(f"Question {question_id} steps and tricks must be lists.")
    if topic is not None and not isinstance(topic, str):
        raise QuestionImportError(f"Question {question_id} topic must be a string.")

    return Question(
        id=question_id,
        text=text.strip(),
        options=cleaned_options,
        correct_index=correct_index,
        explanation=Explanation(
            concept=str(concept or "").strip(),
            steps=[str(step).strip() for step in steps],
            tricks=[str(trick).strip() for trick in tricks],
            visual_aid=visual_aid or None,
        ),
        topic=topic.strip() if topic and topic.strip() else None,
    )
