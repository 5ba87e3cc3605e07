"""
Switchyard cancellation handles.

A Context is a cooperative, cause-carrying cancellation token. Environments
expose one to actions (see Environment.context); the dispatcher cancels every
handle owned along the traversed chain when a top-level run finishes.

Semantics
- cancel(cause) is idempotent: only the first call records a cause and fires
  the registered callbacks; later calls return False.
- A cause of None is recorded as a Cancelled fault ("context canceled").
- derive() returns a child handle that is cancelled (with the same cause) when
  its parent is; cancelling the child never affects the parent.
- A cancelled child unregisters itself from its parent, so a long-lived
  parent does not accumulate dead children.
- Cancellation never interrupts anything by itself. Observers either poll
  `cancelled`, block in wait(), or register on_cancel() callbacks.
"""
import threading

from .faults import Cancelled


class Context:
    """
    Thread-safe cancellation token with an optional parent.

    Attributes
    - parent: the Context this one was derived from (or None).
    - cause: the exception recorded at cancellation time (None while active).
    """

    def __init__(self, parent=None, /):
        if parent is not None and not isinstance(parent, Context):
            raise TypeError("Context() argument must be a context")
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._callbacks = []
        self._cause = None
        self._parent = parent
        self._link = None
        if parent is not None:
            self._link = lambda cause: self.cancel(cause)
            parent.on_cancel(self._link)

    @property
    def parent(self):
        return self._parent

    @property
    def cause(self):
        return self._cause

    @property
    def cancelled(self):
        return self._event.is_set()

    def derive(self):
        """
        Return a new child Context cancelled together with this one.
        """
        return Context(self)

    def cancel(self, cause=None, /):
        """
        Cancel this context and every context derived from it.

        Returns True if this call performed the cancellation, False if the
        context had already been cancelled.
        """
        if cause is not None and not isinstance(cause, BaseException):
            raise TypeError("cancel() argument must be an exception or None")
        with self._lock:
            if self._event.is_set():
                return False
            self._cause = cause if cause is not None else Cancelled()
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        if self._parent is not None:
            self._parent._detach(self._link)
        for callback in callbacks:
            callback(self._cause)
        return True

    def on_cancel(self, callback, /):
        """
        Register callback(cause) to run on cancellation.

        If the context is already cancelled, the callback runs immediately.
        """
        if not callable(callback):
            raise TypeError("on_cancel() argument must be callable")
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback(self._cause)

    def _detach(self, callback, /):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def wait(self, timeout=None, /):
        """
        Block until cancelled or until timeout seconds elapse; return `cancelled`.
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise self._cause

    def __repr__(self):
        state = "cancelled" if self.cancelled else "active"
        return f"context({state}, cause={self._cause!r})"


def background():
    """
    Return a fresh, never-owned root Context.
    """
    return Context()


__all__ = (
    "Context",
    "background",
)
