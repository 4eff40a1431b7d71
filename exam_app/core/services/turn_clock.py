"""Per-turn countdown and the periodic driver that ticks it."""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Event, Lock, Thread, current_thread

from exam_app.constants.quiz_constants import TICK_INTERVAL_SECONDS, TURN_DURATION_SECONDS

logger = logging.getLogger(__name__)


class TurnClock:
    """Countdown for the active party's current turn."""

    def __init__(self, duration: int = TURN_DURATION_SECONDS) -> None:
        if duration <= 0:
            raise ValueError("Turn duration must be a positive integer.")
        self._duration = duration
        self._remaining = duration

    @property
    def duration(self) -> int:
        return self._duration

    @property
    def remaining(self) -> int:
        return self._remaining

    def reset(self) -> None:
        self._remaining = self._duration

    def tick(self) -> bool:
        """Count down one second. Returns True when the turn has just expired."""
        if self._remaining == 0:
            return False
        self._remaining -= 1
        return self._remaining == 0


class TurnTicker:
    """Calls ``callback`` once per interval on a daemon thread.

    The callback returns False when there is nothing left to tick, which
    stops the ticker. ``stop`` may be called from any thread, including from
    inside the callback.
    """

    def __init__(
        self,
        callback: Callable[[], bool],
        interval: float = TICK_INTERVAL_SECONDS,
        name: str = "TurnTicker",
    ) -> None:
        self._callback = callback
        self._interval = interval
        self._name = name
        self._stop_event = Event()
        self._thread: Thread | None = None
        self._lock = Lock()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("Ticker has already been started.")
            self._thread = Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not current_thread():
            thread.join(timeout=self._interval * 2)

    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                keep_going = self._callback()
            except Exception:
                logger.exception("Ticker %s callback failed; stopping.", self._name)
                break
            if not keep_going:
                break
        self._stop_event.set()
        logger.debug("Ticker %s stopped.", self._name)
