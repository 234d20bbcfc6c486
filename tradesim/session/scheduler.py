"""Repeating-timer abstraction used to drive the simulation tick.

The engine never sleeps or spawns threads itself; it asks a scheduler for a
repeating callback and keeps the returned handle so it can cancel it.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ScheduledHandle(ABC):
    """Handle to a repeating callback registered with a scheduler."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop the callback from firing again.

        Safe to call more than once.
        """
        pass

    @property
    @abstractmethod
    def active(self) -> bool:
        """True until the handle has been cancelled."""
        pass


class BaseScheduler(ABC):
    """Abstract base class for scheduler implementations."""

    @abstractmethod
    def schedule_repeating(
        self,
        interval: float,
        callback: Callable[[], None],
    ) -> ScheduledHandle:
        """Fire ``callback`` every ``interval`` seconds until cancelled.

        A firing always completes before the next one is scheduled, so a
        callback never runs concurrently with itself.

        Args:
            interval: Seconds between firings. Must be positive.
            callback: Zero-argument callable.

        Returns:
            Handle used to cancel the schedule.

        Raises:
            ValueError: If interval is not positive.
        """
        pass


class _ThreadHandle(ScheduledHandle):
    """Runs a callback on a dedicated daemon thread."""

    def __init__(self, interval: float, callback: Callable[[], None], name: str):
        self._interval = interval
        self._callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        # Event.wait returns True once cancel() sets the flag.
        while not self._stopped.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Scheduled callback failed")

    def cancel(self) -> None:
        self._stopped.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join()

    @property
    def active(self) -> bool:
        return not self._stopped.is_set()


class ThreadScheduler(BaseScheduler):
    """Wall-clock scheduler backed by one daemon thread per handle."""

    def __init__(self, thread_name: str = "tradesim-tick"):
        self._thread_name = thread_name

    def schedule_repeating(
        self,
        interval: float,
        callback: Callable[[], None],
    ) -> ScheduledHandle:
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        handle = _ThreadHandle(interval, callback, self._thread_name)
        handle.start()
        return handle


class _ManualHandle(ScheduledHandle):
    def __init__(self, interval: float, callback: Callable[[], None], due: float):
        self.interval = interval
        self.callback = callback
        self.due = due
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def active(self) -> bool:
        return not self._cancelled


class ManualScheduler(BaseScheduler):
    """Deterministic scheduler driven by explicit calls to :meth:`advance`.

    Time only moves when the owner says so, which makes tick-driven
    behaviour reproducible in tests and in step-by-step replays.
    """

    def __init__(self):
        self._now = 0.0
        self._handles: list[_ManualHandle] = []

    @property
    def now(self) -> float:
        return self._now

    @property
    def active_handles(self) -> list[ScheduledHandle]:
        """Handles that have not been cancelled."""
        return [h for h in self._handles if h.active]

    def schedule_repeating(
        self,
        interval: float,
        callback: Callable[[], None],
    ) -> ScheduledHandle:
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        handle = _ManualHandle(interval, callback, self._now + interval)
        self._handles.append(handle)
        return handle

    def advance(self, seconds: float) -> int:
        """Move time forward, firing every callback that falls due.

        Firings are delivered in due-time order; a callback that cancels a
        handle prevents that handle's later firings within the same call.

        Args:
            seconds: Amount of time to advance. Must not be negative.

        Returns:
            Number of callbacks fired.
        """
        if seconds < 0:
            raise ValueError("Cannot advance time backwards")
        target = self._now + seconds
        fired = 0
        while True:
            due = self._next_due(target)
            if due is None:
                break
            self._now = due.due
            due.due += due.interval
            due.callback()
            fired += 1
        self._now = target
        self._handles = [h for h in self._handles if h.active]
        return fired

    def fire(self) -> int:
        """Fire every active handle once, regardless of due time."""
        fired = 0
        for handle in self.active_handles:
            if handle.active:
                handle.callback()
                fired += 1
        return fired

    def _next_due(self, target: float) -> Optional[_ManualHandle]:
        candidates = [h for h in self._handles if h.active and h.due <= target]
        if not candidates:
            return None
        return min(candidates, key=lambda h: h.due)
