# app/store/ledger.py

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Tuple

from app.core.errors import InsufficientStock, ValidationError


class KeyedLocks:
    """
    One lock per key, created on demand.

    The registry lock is only held while checking a key's lock out or in, so
    callers working on different keys never wait on each other. An entry is
    dropped as soon as nobody holds or waits on it.
    """

    def __init__(self):
        self._registry_lock = threading.Lock()
        # key -> [lock, holders and waiters]
        self._locks: Dict[Hashable, list] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._registry_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable) -> None:
        with self._registry_lock:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: Hashable) -> Iterator[None]:
        # Sorted acquisition keeps multi-key holders deadlock free
        ordered = sorted(set(keys), key=repr)
        locks = [self._checkout(k) for k in ordered]
        acquired = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._checkin(key)


class StockLedger:
    """
    On-hand quantity per (base_code, equipment_code).

    adjust() is the only way to change a quantity and is atomic per key.
    Reads take no lock: each key's value is replaced in a single assignment,
    so a reader always sees the value before or after an adjust.
    """

    def __init__(self):
        self._quantities: Dict[Tuple[str, str], int] = defaultdict(int)
        self._locks = KeyedLocks()

    def adjust(self, base_code: str, equipment_code: str, delta: int) -> int:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("Stock delta must be an integer")

        key = (base_code, equipment_code)
        with self._locks.hold(key):
            current = self._quantities.get(key, 0)
            new_quantity = current + delta
            if new_quantity < 0:
                raise InsufficientStock(base_code, equipment_code, current, -delta)
            self._quantities[key] = new_quantity
            return new_quantity

    def quantity(self, base_code: str, equipment_code: str) -> int:
        return self._quantities.get((base_code, equipment_code), 0)

    def levels(self, base_code: str | None = None, equipment_code: str | None = None) -> List[Dict]:
        snapshot = list(self._quantities.items())
        return [
            {"base_code": b, "equipment_code": e, "quantity": q}
            for (b, e), q in sorted(snapshot)
            if (base_code is None or b == base_code)
            and (equipment_code is None or e == equipment_code)
        ]
