"""Per-pair serialization of engine operations."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass
class _PairLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    holders: int = 0


class PairLocks:
    """Registry of locks keyed by (student_id, course_id).

    Operations on the same pair run one at a time; operations on different
    pairs never wait on each other. Entries are dropped once nobody holds or
    waits on them, so the registry only grows with the number of pairs in
    flight.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], _PairLock] = {}

    @contextmanager
    def hold(self, student_id: str, course_id: str) -> Iterator[None]:
        """Hold the lock for a pair for the duration of the block."""
        key = (student_id, course_id)
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _PairLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
