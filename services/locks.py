import threading
from contextlib import contextmanager


class ResourceLocks:
    """
    In-process mutual exclusion keyed by contested resource, e.g. "court:3".

    Keys are always acquired in sorted order so two requests touching the
    same court and equipment cannot deadlock each other. Multi-process
    deployments additionally rely on SELECT ... FOR UPDATE row locks taken
    by the stores.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, *keys: str):
        ordered = sorted(set(k for k in keys if k))
        acquired = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def court_key(court_id) -> str:
    return f"court:{court_id}"


def coach_key(coach_id):
    return f"coach:{coach_id}" if coach_id else None


def equipment_key(equipment_id) -> str:
    return f"equipment:{equipment_id}"


# shared by every BookingService built inside this process
resource_locks = ResourceLocks()
