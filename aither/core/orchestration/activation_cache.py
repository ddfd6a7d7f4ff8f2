"""ActivationCache - which units are already active in this process.

The cache is an explicit object owned by an Orchestrator and handed to its
loader, so separate orchestrations (and tests) never share state. All access
is serialized by one re-entrant lock; ``claim`` is the atomic
check-then-mark that keeps two workers from activating the same unit.
"""

from __future__ import annotations

import threading

from aither.core.domain.unit import ActivationRecord


class ActivationCache:
    """Thread-safe registry of successful activations.

    Invariant: a name is present only after its activation succeeded.

    Examples
    --------
    >>> from datetime import datetime
    >>> cache = ActivationCache()
    >>> cache.claim("Logging")
    True
    >>> cache.claim("Logging")  # already in flight
    False
    >>> cache.record(ActivationRecord("Logging", "Logging", datetime.now()))
    >>> cache.is_active("Logging")
    True
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, ActivationRecord] = {}
        self._in_flight: set[str] = set()

    def is_active(self, name: str) -> bool:
        with self._lock:
            return name in self._records

    def get(self, name: str) -> ActivationRecord | None:
        with self._lock:
            return self._records.get(name)

    def records(self) -> dict[str, ActivationRecord]:
        with self._lock:
            return dict(self._records)

    def claim(self, name: str) -> bool:
        """Mark ``name`` as being activated.

        Returns False when the unit is already active or another worker holds
        the claim.
        """
        with self._lock:
            if name in self._records or name in self._in_flight:
                return False
            self._in_flight.add(name)
            return True

    def release(self, name: str) -> None:
        """Drop a claim without recording (used after a failed activation)."""
        with self._lock:
            self._in_flight.discard(name)

    def record(self, record: ActivationRecord) -> None:
        """Store a successful activation, replacing any previous record."""
        with self._lock:
            self._records[record.name] = record
            self._in_flight.discard(record.name)

    def invalidate(self, name: str) -> None:
        with self._lock:
            self._records.pop(name, None)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._in_flight.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records
