"""Exam catalog and syllabus offered on the quiz configuration screen."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExamCategory:
    id: str
    name: str
    exams: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class SyllabusTopic:
    id: str
    name: str
    subtopics: tuple[str, ...]


EXAM_CATEGORIES: tuple[ExamCategory, ...] = (
    ExamCategory(
        id="railway",
        name="Railway Exams",
        exams=("RRB NTPC", "RRB Group D", "RRB JE", "RRB ALP", "RPF"),
    ),
    ExamCategory(
        id="bank",
        name="Bank Exams",
        exams=("IBPS PO", "IBPS Clerk", "SBI PO", "SBI Clerk", "RBI Grade B", "RBI Assistant"),
    ),
)

SYLLABUS: tuple[SyllabusTopic, ...] = (
    SyllabusTopic(
        id="gs",
        name="General Studies",
        subtopics=("Current Affairs", "History", "Geography", "Polity", "Economy", "Science"),
    ),
    SyllabusTopic(
        id="quant",
        name="Quantitative Aptitude",
        subtopics=("Arithmetic", "Algebra", "Geometry", "Trigonometry", "Mensuration", "DI"),
    ),
    SyllabusTopic(
        id="english",
        name="English",
        subtopics=("Reading Comprehension", "Cloze Test", "Error Spotting", "Vocabulary"),
    ),
    SyllabusTopic(
        id="reasoning",
        name="Reasoning",
        subtopics=("Puzzles", "Syllogism", "Coding-Decoding", "Blood Relations", "Series"),
    ),
)


def all_exams() -> list[str]:
    return [exam for category in EXAM_CATEGORIES for exam in category.exams]


def find_syllabus(subject: str) -> SyllabusTopic | None:
    """Look up a syllabus entry by display name or id, case-insensitively."""
    wanted = subject.strip().lower()
    for topic in SYLLABUS:
        if topic.name.lower() == wanted or topic.id == wanted:
            return topic
    return None
