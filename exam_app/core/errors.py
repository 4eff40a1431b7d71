"""Exception types raised by the quiz core."""

from __future__ import annotations


class ExamAppError(Exception):
    """Base class for quiz core errors."""


class GenerationFailure(ExamAppError):
    """The question provider could not produce a usable question list."""


class InvariantViolation(ExamAppError, RuntimeError):
    """An operation was called in a state where it is not legal."""


class PersistenceFailure(ExamAppError):
    """Saving a result or reading history failed."""


class SessionNotFoundError(ExamAppError, KeyError):
    """No session is registered under the requested id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message for HTTP details.
        return str(self.args[0]) if self.args else "Session not found."
