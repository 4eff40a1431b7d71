"""Reduce raw per-party answers into scored results."""

from __future__ import annotations

from collections.abc import Sequence

from exam_app.core.models import (
    AnswerRecord,
    PlayerResult,
    Question,
    QuizConfiguration,
    QuizMode,
    QuizResult,
)


def score_player(
    questions: Sequence[Question],
    answers: Sequence[int | None],
    elapsed_seconds: int,
    name: str,
) -> PlayerResult:
    """Score one party's answers against the question list."""
    if len(answers) != len(questions):
        raise ValueError("Answer list length must match the number of questions.")

    records: list[AnswerRecord] = []
    for question, selected in zip(questions, answers):
        is_correct = selected is not None and selected == question.correct_index
        records.append(
            AnswerRecord(
                question_id=question.id,
                selected_option=selected,
                is_correct=is_correct,
            )
        )

    score = sum(1 for record in records if record.is_correct)
    accuracy = (score / len(questions)) * 100 if questions else 0.0
    return PlayerResult(
        name=name,
        score=score,
        accuracy=accuracy,
        time_taken=elapsed_seconds,
        answers=tuple(records),
    )


def build_quiz_result(
    config: QuizConfiguration,
    questions: Sequence[Question],
    answers_by_party: Sequence[Sequence[int | None]],
    elapsed_by_party: Sequence[int],
) -> QuizResult:
    """Build the terminal result, keeping the full question list for review."""
    player_one = score_player(questions, answers_by_party[0], elapsed_by_party[0], config.party_name(1))
    player_two = None
    if config.mode is QuizMode.VERSUS:
        player_two = score_player(questions, answers_by_party[1], elapsed_by_party[1], config.party_name(2))

    return QuizResult(
        mode=config.mode,
        total_questions=len(questions),
        questions=tuple(questions),
        player_one=player_one,
        player_two=player_two,
    )


def rank_players(result: QuizResult) -> list[PlayerResult]:
    """Return players sorted by score, then by the time they took."""
    return sorted(result.players(), key=lambda player: (-player.score, player.time_taken))


def determine_winner(result: QuizResult) -> PlayerResult | None:
    """Winner of a head-to-head quiz, or None for solo quizzes and exact ties."""
    if result.player_two is None:
        return None
    first, second = rank_players(result)
    if (first.score, first.time_taken) == (second.score, second.time_taken):
        return None
    return first
