"""Process-local record of which users are currently draining."""

import threading


class DrainRegistry:
    """Set of user ids with an active drain loop.

    Shared by every orchestrator in the process so one user never has two
    drain loops at once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: set[str] = set()

    def try_acquire(self, user_id: str) -> bool:
        """Mark ``user_id`` as draining; False if it already was."""
        with self._lock:
            if user_id in self._active:
                return False
            self._active.add(user_id)
            return True

    def release(self, user_id: str) -> None:
        """Clear the draining marker for ``user_id``."""
        with self._lock:
            self._active.discard(user_id)

    def is_draining(self, user_id: str) -> bool:
        """Whether a drain loop is active for ``user_id``."""
        with self._lock:
            return user_id in self._active
