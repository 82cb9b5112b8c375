from trace_blockstore.errors import BlockStoreError

import threading
import time


class CancelledError(BlockStoreError):
    """The operation's context was cancelled."""


class DeadlineExceededError(CancelledError):
    """The operation's context ran past its deadline."""


class Context:
    """Cancellation and deadline carrier threaded through store round trips.

    A context is checked, never polled in the background: each store call,
    listing page, streamed chunk and ranged-read iteration calls ``check``
    before going to the network. Cancelling a parent cancels every context
    derived from it with ``with_timeout``.
    """

    def __init__(self, timeout=None, parent=None):
        self._cancelled = threading.Event()
        self._parent = parent
        deadline = None
        if timeout is not None:
            deadline = time.monotonic() + timeout
        if parent is not None and parent.deadline is not None:
            if deadline is None or parent.deadline < deadline:
                deadline = parent.deadline
        self.deadline = deadline

    @classmethod
    def background(cls):
        return cls()

    def with_timeout(self, timeout):
        return Context(timeout=timeout, parent=self)

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self):
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self):
        """Seconds left before the deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def check(self, operation=""):
        if self.cancelled:
            raise CancelledError(f"{operation or 'operation'} cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise DeadlineExceededError(
                f"{operation or 'operation'} exceeded its deadline"
            )

    def __repr__(self):
        return f"<Context deadline={self.deadline} cancelled={self.cancelled}>"


def ensure_context(ctx, timeout=None):
    """Return ``ctx``, or a new context bounded by ``timeout`` if it is None."""
    if ctx is not None:
        return ctx
    return Context(timeout=timeout)
