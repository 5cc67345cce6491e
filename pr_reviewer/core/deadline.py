# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Caller-supplied deadline / cancellation token.

A Deadline is attached to a transaction when it begins; every data-access
call made through that transaction checks it, so an expired or cancelled
operation fails at its next storage step and its unit of work rolls back.
"""

import threading
import time
from typing import Optional

from pr_reviewer.core.errors import DeadlineExceededError


class Deadline:
    """Optional timeout plus an explicit cancel switch."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._expires_at: Optional[float] = (
            time.monotonic() + timeout if timeout is not None else None
        )
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left, ``None`` when there is no timeout."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def check(self) -> None:
        if self._cancelled.is_set():
            raise DeadlineExceededError("operation cancelled by caller")
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            raise DeadlineExceededError()
