"""Request context carried through every external store call.

A :class:`RequestContext` bundles a cancellation flag and an optional
deadline.  Components call :meth:`RequestContext.check` before each
external call; a cancelled or expired context raises
:class:`~bucket_policy_sync.errors.OperationCancelledError`, which is never
treated as a soft failure.

Example
-------
>>> ctx = RequestContext.with_timeout(5.0)
>>> ctx.check()
>>> ctx.cancel()
>>> ctx.cancelled
True
"""
from __future__ import annotations

import threading
import time
import uuid

from bucket_policy_sync.errors import OperationCancelledError


class RequestContext:
    """Cancellation and deadline state for a single policy request.

    Parameters
    ----------
    deadline:
        Absolute ``time.monotonic()`` value after which the context is
        considered expired.  ``None`` disables the deadline.
    request_id:
        Identifier stamped on log lines.  A random UUID is generated if not
        supplied.
    """

    def __init__(
        self,
        deadline: float | None = None,
        request_id: str | None = None,
    ) -> None:
        self._deadline = deadline
        self._cancelled = threading.Event()
        self._reason = "operation cancelled"
        self.request_id: str = request_id or str(uuid.uuid4())

    @classmethod
    def with_timeout(cls, seconds: float, request_id: str | None = None) -> RequestContext:
        """Return a context that expires ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds, request_id=request_id)

    @classmethod
    def background(cls) -> RequestContext:
        """Return a context with no deadline."""
        return cls()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def cancel(self, reason: str = "operation cancelled") -> None:
        """Mark the context as cancelled."""
        self._reason = reason
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        """``True`` once :meth:`cancel` was called or the deadline passed."""
        return self._cancelled.is_set() or self.expired

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        """Raise :class:`OperationCancelledError` if the context is done.

        Raises
        ------
        OperationCancelledError
            When the context was cancelled or its deadline has passed.
        """
        if self._cancelled.is_set():
            raise OperationCancelledError(self._reason)
        if self.expired:
            raise OperationCancelledError("deadline exceeded")
