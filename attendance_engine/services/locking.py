"""
Per-(employee_id, work_date) serialization.

The in-process keyed lock orders competing requests handled by the same worker
process; the row lock (SELECT ... FOR UPDATE) and the record's version_id
compare-and-swap cover requests served by other processes.
"""
import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Tuple

Key = Tuple[int, date]

_registry_lock = threading.Lock()
_locks: Dict[Key, list] = {}  # key -> [lock, holders]


@contextmanager
def record_lock(employee_id: int, work_date: date):
    """Hold the lock for one employee-day; different keys never contend."""
    key = (employee_id, work_date)
    with _registry_lock:
        entry = _locks.get(key)
        if entry is None:
            entry = [threading.Lock(), 0]
            _locks[key] = entry
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _registry_lock:
            entry[1] -= 1
            if entry[1] == 0:
                _locks.pop(key, None)


def active_keys() -> int:
    """Number of keys currently held or awaited (used by tests)."""
    with _registry_lock:
        return len(_locks)
