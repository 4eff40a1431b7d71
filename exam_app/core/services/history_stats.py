"""Streak and rolling statistics derived from quiz history."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from exam_app.constants.quiz_constants import (
    CHART_WINDOW_DAYS,
    RECENT_ACTIVITY_LIMIT,
    XP_PER_CORRECT_ANSWER,
    XP_PER_LEVEL,
    XP_PER_QUIZ,
)
from exam_app.core.models import HistoryRecord, QuizResult


@dataclass(frozen=True, slots=True)
class HistoryStats:
    total_quizzes: int
    avg_accuracy: float
    xp: int
    level: int


@dataclass(frozen=True, slots=True)
class DailyAccuracy:
    day: date
    label: str
    accuracy: float
    quiz_count: int


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    stats: HistoryStats
    streak: int
    daily_accuracy: list[DailyAccuracy]
    recent: list[HistoryRecord]


def local_date(timestamp: datetime) -> date:
    """Calendar date of ``timestamp`` in local time. Naive values are taken as local."""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone()
    return timestamp.date()


def calculate_streak(history: Iterable[HistoryRecord], today: date | None = None) -> int:
    """Consecutive days with at least one quiz, ending today or yesterday.

    A latest activity date after ``today`` does not count as a live streak.
    """
    active_dates = sorted({local_date(record.timestamp) for record in history}, reverse=True)
    if not active_dates:
        return 0

    today = today or date.today()
    if (today - active_dates[0]).days not in (0, 1):
        return 0

    streak = 1
    for previous, current in zip(active_dates, active_dates[1:]):
        if (previous - current).days == 1:
            streak += 1
        else:
            break
    return streak


def compute_stats(history: Sequence[HistoryRecord]) -> HistoryStats:
    total = len(history)
    avg_accuracy = sum(record.accuracy for record in history) / total if total else 0.0
    xp = XP_PER_QUIZ * total + XP_PER_CORRECT_ANSWER * sum(record.score for record in history)
    return HistoryStats(
        total_quizzes=total,
        avg_accuracy=avg_accuracy,
        xp=xp,
        level=xp // XP_PER_LEVEL + 1,
    )


def daily_accuracy_series(
    history: Iterable[HistoryRecord],
    today: date | None = None,
    days: int = CHART_WINDOW_DAYS,
) -> list[DailyAccuracy]:
    """Mean accuracy per day for the trailing window, oldest day first."""
    today = today or date.today()
    buckets: dict[date, list[float]] = defaultdict(list)
    for record in history:
        buckets[local_date(record.timestamp)].append(record.accuracy)

    series: list[DailyAccuracy] = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        values = buckets.get(day, [])
        series.append(
            DailyAccuracy(
                day=day,
                label=day.strftime("%a"),
                accuracy=sum(values) / len(values) if values else 0.0,
                quiz_count=len(values),
            )
        )
    return series


def history_record_from_result(
    result: QuizResult,
    exam_name: str,
    subject_name: str,
    user_id: str | None = None,
    timestamp: datetime | None = None,
) -> HistoryRecord:
    """Summary row persisted for a finished quiz. Party one's numbers are kept."""
    return HistoryRecord(
        timestamp=timestamp or datetime.now().astimezone(),
        exam_name=exam_name,
        subject_name=subject_name,
        score=result.player_one.score,
        accuracy=result.player_one.accuracy,
        total_questions=result.total_questions,
        user_id=user_id,
    )


def build_dashboard(history: Sequence[HistoryRecord], today: date | None = None) -> DashboardSummary:
    newest_first = sorted(history, key=lambda record: record.timestamp.astimezone(), reverse=True)
    return DashboardSummary(
        stats=compute_stats(history),
        streak=calculate_streak(history, today=today),
        daily_accuracy=daily_accuracy_series(history, today=today),
        recent=newest_first[:RECENT_ACTIVITY_LIMIT],
    )
