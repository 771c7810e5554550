import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from farmledger.runtime.errors import ReentrantCall


class NonReentrantGuard:
    """
    Serializes engine operations and rejects re-entry.

    A second thread waits for the current operation to finish. The thread
    already inside an operation (e.g. re-entering from an asset transfer hook)
    gets ReentrantCall immediately instead of deadlocking.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._active_op: str = ""

    @property
    def held(self) -> bool:
        return self._owner is not None

    @contextmanager
    def hold(self, op: str) -> Iterator[None]:
        me = threading.get_ident()
        if self._owner == me:
            raise ReentrantCall(op, self._active_op)
        self._lock.acquire()
        self._owner = me
        self._active_op = str(op)
        try:
            yield
        finally:
            self._owner = None
            self._active_op = ""
            self._lock.release()
