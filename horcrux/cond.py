"""Broadcast-only condition variable supporting timed waits."""

from __future__ import annotations

import threading


class Cond:
    """Condition variable whose waiters are all released by broadcast()."""

    def __init__(self, lock) -> None:
        self.lock = lock
        self._guard = threading.Lock()
        self._event = threading.Event()

    def notify_event(self) -> threading.Event:
        """Return the event that the next broadcast will set."""
        with self._guard:
            return self._event

    def wait(self) -> None:
        event = self.notify_event()
        self.lock.release()
        try:
            event.wait()
        finally:
            self.lock.acquire()

    def wait_with_timeout(self, timeout: float) -> None:
        event = self.notify_event()
        self.lock.release()
        try:
            event.wait(timeout)
        finally:
            self.lock.acquire()

    def broadcast(self) -> None:
        with self._guard:
            old, self._event = self._event, threading.Event()
        old.set()