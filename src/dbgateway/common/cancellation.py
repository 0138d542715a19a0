from __future__ import annotations

import threading
from typing import Callable, List, Optional

from dbgateway.common.errors import OperationCancelledError
from dbgateway.common.logger import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Cancellation signal owned by one server instance.

    Every database operation issued through the server checks it; once
    cancelled, operations fail with OperationCancelledError until reset.
    Callbacks registered with `add_callback` run on every `cancel()` so
    work already inside the driver can be interrupted.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._callbacks: List[Callable[[], None]] = []
        self._lock = threading.Lock()

    def add_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def cancel(self) -> None:
        self._event.set()
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback {callback!r} failed: {e}")

    def reset(self) -> None:
        self._event.clear()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout=timeout)

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"{operation} cancelled: server is shutting down")
