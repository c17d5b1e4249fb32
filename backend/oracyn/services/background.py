"""
Coordination primitives shared by the orchestrators.

- ChatLocks: one lock per chat id, serializing appends to a conversation
- TaskTracker: runs background continuations and records their outcome
  so failures are logged, counted and visible on /api/status
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

from fastapi import BackgroundTasks

from oracyn.core.logging import get_logger

LOGGER = get_logger(__name__)


class ChatLocks:
    """Registry of per-chat `threading.Lock` objects.

    Sync endpoints and background tasks run in a threadpool, so a thread
    lock is the right primitive. Locks are created lazily and dropped when
    a chat is deleted.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def for_chat(self, chat_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(chat_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[chat_id] = lock
            return lock

    def discard(self, chat_id: int) -> None:
        with self._guard:
            self._locks.pop(chat_id, None)


class TaskTracker:
    """Error channel for work that runs after the response is sent."""

    def __init__(self, max_failures: int = 20):
        self._lock = threading.Lock()
        self.scheduled = 0
        self.succeeded = 0
        self.failed = 0
        self.recent_failures: Deque[dict] = deque(maxlen=max_failures)

    def submit(self, background_tasks: BackgroundTasks, name: str, func: Callable, *args, **kwargs) -> None:
        """Schedule `func` to run once the current response has been sent."""
        with self._lock:
            self.scheduled += 1
        background_tasks.add_task(self.run, name, func, *args, **kwargs)

    def run(self, name: str, func: Callable, *args, **kwargs) -> None:
        started = time.monotonic()
        try:
            func(*args, **kwargs)
        except Exception as e:
            # Nobody is waiting on this task any more; record the failure here.
            LOGGER.exception(f"Background task '{name}' failed")
            with self._lock:
                self.failed += 1
                self.recent_failures.append({
                    "task": name,
                    "error": f"{type(e).__name__}: {e}",
                    "at": time.time(),
                })
            return

        with self._lock:
            self.succeeded += 1
        LOGGER.debug(f"Background task '{name}' finished in {time.monotonic() - started:.2f}s")

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "scheduled": self.scheduled,
                "succeeded": self.succeeded,
                "failed": self.failed,
                "pending": self.scheduled - self.succeeded - self.failed,
                "recent_failures": list(self.recent_failures),
            }
