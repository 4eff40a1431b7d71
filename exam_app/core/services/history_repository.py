"""Storage boundary for completed quiz history."""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Protocol

from exam_app.core.models import HistoryRecord, QuizResult
from exam_app.core.services.history_stats import history_record_from_result


class HistoryRepository(Protocol):
    """Anything that can persist finished quizzes and read them back per user."""

    def save_result(
        self,
        result: QuizResult,
        exam_name: str,
        subject_name: str,
        user_id: str | None,
    ) -> HistoryRecord: ...

    def get_history(self, user_id: str | None) -> list[HistoryRecord]: ...


class InMemoryHistoryRepository:
    """Keeps history rows in process memory."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._records: list[HistoryRecord] = []

    def save_result(
        self,
        result: QuizResult,
        exam_name: str,
        subject_name: str,
        user_id: str | None,
        timestamp: datetime | None = None,
    ) -> HistoryRecord:
        if not exam_name.strip() or not subject_name.strip():
            raise ValueError("Exam and subject names are required to save a result.")
        record = history_record_from_result(
            result,
            exam_name=exam_name,
            subject_name=subject_name,
            user_id=user_id,
            timestamp=timestamp,
        )
        with self._lock:
            self._records.append(record)
        return record

    def get_history(self, user_id: str | None) -> list[HistoryRecord]:
        """Return the user's records, newest first."""
        with self._lock:
            records = [record for record in self._records if record.user_id == user_id]
        return sorted(records, key=lambda record: record.timestamp.astimezone(), reverse=True)

    def get_record_count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records = []
