"""
Process-wide scheduler lifecycle.

LifecycleGuard hands every caller the same scheduler and makes sure it is
started exactly once, no matter how many entry points (process start, the
first screen that shows sync jobs, a reconnect after login) ask for it.
The guard is created by the composition root and passed around; there is
no module-level instance.

ExecutionExtender is the hook for platforms that suspend backgrounded apps:
a run asks for extra execution time before it starts and gives it back when
it ends. Desktop and server processes use NullExecutionExtender.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Protocol

logger = logging.getLogger(__name__)


class ExecutionExtender(Protocol):
    def begin(self, reason: str) -> Any:
        """Request extra execution time. Returns a token for end()."""

    def end(self, token: Any) -> None:
        """Release the request made by begin()."""


class NullExecutionExtender:
    """No-op extender for platforms without background suspension."""

    def begin(self, reason: str) -> None:
        return None

    def end(self, token: Any) -> None:
        pass


@contextmanager
def extended_execution(extender: ExecutionExtender, reason: str) -> Iterator[None]:
    """
    Wrap a sync run in a begin/end pair. Hook failures are logged and never
    affect the run itself.
    """
    token = None
    try:
        token = extender.begin(reason)
    except Exception as exc:
        logger.warning("Could not extend execution for %s: %s", reason, exc)
    try:
        yield
    finally:
        try:
            extender.end(token)
        except Exception as exc:
            logger.warning("Could not release execution extension for %s: %s", reason, exc)


class LifecycleGuard:
    """
    Owns the single scheduler for this process.

    Usage:
        guard = LifecycleGuard(lambda: SyncScheduler(...))
        scheduler = guard.ensure_started()   # from inside the event loop
    """

    def __init__(self, factory: Callable[[], Any]):
        """
        Args:
            factory: Builds the scheduler. Called at most once.
        """
        self._factory = factory
        self._instance = None
        self._lock = threading.Lock()

    @property
    def instance(self) -> Optional[Any]:
        return self._instance

    def get(self):
        """Return the process scheduler, creating it (not starting it) if needed."""
        with self._lock:
            if self._instance is None:
                logger.info("Creating sync scheduler")
                self._instance = self._factory()
            return self._instance

    def ensure_started(self):
        """
        Return the process scheduler, creating and starting it on first call.

        Must be called from the thread running the event loop; the scheduler's
        own start() is idempotent, so repeated calls only log.
        """
        scheduler = self.get()
        with self._lock:
            scheduler.start()
        return scheduler
