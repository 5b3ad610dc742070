import threading
from collections import deque
from contextlib import contextmanager
from typing import Iterator, Optional

from spoilr.domain.errors import StageCancelled


class SlotPool:
    """FIFO counting semaphore with a resizable limit.

    Waiters are admitted strictly in arrival order. Resizing only affects
    admissions after the change; units already held are never revoked.
    """

    def __init__(self, limit: int, name: str = "slots"):
        if limit < 1:
            raise ValueError(f"{name} limit must be at least 1")
        self.name = name
        self._limit = limit
        self._in_use = 0
        self._waiters: deque = deque()
        self._cond = threading.Condition()

    @property
    def limit(self) -> int:
        with self._cond:
            return self._limit

    @property
    def in_use(self) -> int:
        with self._cond:
            return self._in_use

    @property
    def waiting(self) -> int:
        with self._cond:
            return len(self._waiters)

    def resize(self, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"{self.name} limit must be at least 1")
        with self._cond:
            self._limit = limit
            self._cond.notify_all()

    def wake(self) -> None:
        """Wakes every waiter so it can re-check its cancel event."""
        with self._cond:
            self._cond.notify_all()

    def acquire(self, cancel_event: Optional[threading.Event] = None) -> bool:
        """Blocks until a unit is free and this caller is first in line.

        Returns False, without holding a unit, if cancel_event gets set first.
        """
        ticket = object()
        with self._cond:
            self._waiters.append(ticket)
            try:
                while self._waiters[0] is not ticket or self._in_use >= self._limit:
                    if cancel_event is not None and cancel_event.is_set():
                        return False
                    self._cond.wait()
                if cancel_event is not None and cancel_event.is_set():
                    return False
                self._in_use += 1
                return True
            finally:
                self._waiters.remove(ticket)
                self._cond.notify_all()

    def release(self) -> None:
        with self._cond:
            if self._in_use == 0:
                raise RuntimeError(f"{self.name}: release without acquire")
            self._in_use -= 1
            self._cond.notify_all()

    @contextmanager
    def slot(self, cancel_event: Optional[threading.Event] = None) -> Iterator[None]:
        """Scoped acquisition; raises StageCancelled if cancelled while waiting."""
        if not self.acquire(cancel_event):
            raise StageCancelled(f"cancelled while waiting for {self.name}")
        try:
            yield
        finally:
            self.release()
