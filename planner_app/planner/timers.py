"""Focus (pomodoro) timers for tasks, independent of any UI toolkit."""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

LOGGER = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"
PAUSED = "paused"
FINISHED = "finished"


class FocusSession:
    """Countdown for one task.

    Idle -> Running <-> Paused -> Finished. ``started_at`` is the wall-clock
    moment of the first start; when the countdown reaches zero the session
    finishes and ``on_complete(started_at, ended_at)`` fires once.
    """

    def __init__(
        self,
        duration_minutes: float = 45,
        on_tick: Callable[[float], None] | None = None,
        on_complete: Callable[[datetime, datetime], None] | None = None,
        tick_seconds: float = 1.0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.duration_seconds = duration_minutes * 60.0
        self.on_tick = on_tick
        self.on_complete = on_complete
        self.tick_seconds = tick_seconds
        self.clock = clock
        self.state = IDLE
        self.started_at: Optional[datetime] = None
        self._elapsed = 0.0
        self._resumed_at: float | None = None
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def start(self) -> None:
        if self.state in (RUNNING, FINISHED):
            return
        if self.state == PAUSED:
            self.resume()
            return
        self.started_at = self.clock()
        self.state = RUNNING
        self._resumed_at = time.monotonic()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()
        LOGGER.debug("Focus session started for %.0f seconds", self.duration_seconds)

    def pause(self) -> None:
        with self._lock:
            if self.state != RUNNING:
                return
            self._capture_elapsed()
            self.state = PAUSED

    def resume(self) -> None:
        with self._lock:
            if self.state != PAUSED:
                return
            self.state = RUNNING
            self._resumed_at = time.monotonic()

    def reset(self) -> None:
        """Abandon the session without logging anything."""
        with self._lock:
            self.state = IDLE
            self.started_at = None
            self._elapsed = 0.0
            self._resumed_at = None
            if self._stop_event:
                self._stop_event.set()
            self._thread = None
            self._stop_event = None

    def join(self, timeout: Optional[float] = None) -> bool:
        """Block until the countdown thread exits; True once finished."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self.state == FINISHED

    def remaining_seconds(self) -> float:
        with self._lock:
            return max(self.duration_seconds - self._current_elapsed(), 0.0)

    @property
    def formatted(self) -> str:
        remaining = int(round(self.remaining_seconds()))
        minutes, seconds = divmod(remaining, 60)
        return f"{minutes:02d}:{seconds:02d}"

    def _current_elapsed(self) -> float:
        if self.state == RUNNING and self._resumed_at is not None:
            return self._elapsed + (time.monotonic() - self._resumed_at)
        return self._elapsed

    def _capture_elapsed(self) -> None:
        if self._resumed_at is None:
            return
        self._elapsed += time.monotonic() - self._resumed_at
        self._resumed_at = None

    def _loop(self) -> None:
        stop_event = self._stop_event
        assert stop_event is not None
        while not stop_event.wait(self.tick_seconds):
            with self._lock:
                if self.state != RUNNING:
                    continue
                elapsed = self._current_elapsed()
                finished = elapsed >= self.duration_seconds
                if finished:
                    self._capture_elapsed()
                    self.state = FINISHED
            if self.on_tick:
                try:
                    self.on_tick(max(self.duration_seconds - elapsed, 0.0))
                except Exception:  # noqa: BLE001
                    LOGGER.exception("Focus tick callback failed")
            if finished:
                self._finish()
                return

    def _finish(self) -> None:
        with self._lock:
            if self.state != FINISHED:
                LOGGER.debug("Focus session was reset before completion; nothing to report")
                return
            elapsed = self._elapsed
            ended_at = self.clock()
            started_at = self.started_at or ended_at - timedelta(seconds=elapsed)
        LOGGER.info("Focus session finished after %.0f seconds", elapsed)
        if self.on_complete:
            try:
                self.on_complete(started_at, ended_at)
            except Exception:  # noqa: BLE001
                LOGGER.exception("Focus completion callback failed")


class FocusSessionManager:
    """Manage focus sessions keyed by task id."""

    def __init__(self, tick_seconds: float = 1.0, clock: Callable[[], datetime] = datetime.now) -> None:
        self.tick_seconds = tick_seconds
        self.clock = clock
        self.sessions: Dict[str, FocusSession] = {}

    def start(
        self,
        task_id: str,
        duration_minutes: float,
        on_complete: Callable[[datetime, datetime], None] | None = None,
        on_tick: Callable[[float], None] | None = None,
    ) -> FocusSession:
        previous = self.sessions.get(task_id)
        if previous is not None:
            previous.reset()
        session = FocusSession(
            duration_minutes,
            on_tick=on_tick,
            on_complete=on_complete,
            tick_seconds=self.tick_seconds,
            clock=self.clock,
        )
        self.sessions[task_id] = session
        session.start()
        return session

    def get(self, task_id: str) -> Optional[FocusSession]:
        return self.sessions.get(task_id)

    def pause(self, task_id: str) -> FocusSession:
        session = self.sessions[task_id]
        session.pause()
        return session

    def resume(self, task_id: str) -> FocusSession:
        session = self.sessions[task_id]
        session.resume()
        return session

    def cancel(self, task_id: str) -> None:
        session = self.sessions.pop(task_id, None)
        if session is not None:
            session.reset()
            LOGGER.debug("Cancelled focus session for task %s", task_id)
