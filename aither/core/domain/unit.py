"""Domain records describing units and the outcome of loading them."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from aither.core.exceptions import ValidationError


@dataclass(frozen=True, slots=True)
class UnitDescriptor:
    """Immutable description of a capability unit.

    Attributes
    ----------
    name : str
        Unique unit name (e.g. ``"LabRunner"``)
    location_ref : str
        Where the unit lives, relative to the units root or absolute
    description : str
        Human readable summary
    required : bool
        Required units must activate for the system to be healthy
    dependencies : tuple[str, ...]
        Ordered, de-duplicated names of units that must be active first
    optional_dependencies : tuple[str, ...]
        Dependencies honoured only when the graph is built with optional edges
    """

    name: str
    location_ref: str = ""
    description: str = ""
    required: bool = False
    dependencies: tuple[str, ...] = ()
    optional_dependencies: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("name", "cannot be empty")
        object.__setattr__(self, "name", sys.intern(self.name))
        object.__setattr__(self, "location_ref", self.location_ref or self.name)
        object.__setattr__(self, "dependencies", _ordered_unique(self.dependencies, self.name))
        object.__setattr__(
            self,
            "optional_dependencies",
            tuple(
                d
                for d in _ordered_unique(self.optional_dependencies, self.name)
                if d not in self.dependencies
            ),
        )


def _ordered_unique(names: tuple[str, ...] | list[str], owner: str) -> tuple[str, ...]:
    # Self-references are dropped; a unit cannot wait on itself
    seen: dict[str, None] = {}
    for name in names:
        if name and name != owner:
            seen.setdefault(sys.intern(name), None)
    return tuple(seen)


class LoadStatus(StrEnum):
    """Outcome of a single unit load attempt."""

    IMPORTED = "Imported"
    ALREADY_LOADED = "AlreadyLoaded"
    PATH_NOT_FOUND = "PathNotFound"
    NO_ENTRIES_FOUND = "NoEntriesFound"
    FAILED = "Failed"

    @property
    def is_skip(self) -> bool:
        return self in (
            LoadStatus.ALREADY_LOADED,
            LoadStatus.PATH_NOT_FOUND,
            LoadStatus.NO_ENTRIES_FOUND,
        )


@dataclass(frozen=True, slots=True)
class ActivationRecord:
    """Bookkeeping for a successfully activated unit."""

    name: str
    location_ref: str
    activated_at: datetime
    description: str = ""
    entry_count: int = 0


@dataclass(frozen=True, slots=True)
class LoadResult:
    """Result of attempting to bring one unit online."""

    name: str
    status: LoadStatus
    message: str = ""
    duration_seconds: float = 0.0
    error_detail: str | None = None

    @property
    def success(self) -> bool:
        return self.status is not LoadStatus.FAILED


@dataclass(slots=True)
class OrchestrationReport:
    """Aggregated outcome of a load run.

    ``details`` is in completion order, not submission order.
    """

    load_order: tuple[str, ...] = ()
    details: list[LoadResult] = field(default_factory=list)
    degraded: bool = False
    duration_seconds: float = 0.0

    @property
    def imported_count(self) -> int:
        return sum(1 for r in self.details if r.status is LoadStatus.IMPORTED)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.details if r.status is LoadStatus.FAILED)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.details if r.status.is_skip)

    def add(self, result: LoadResult) -> None:
        self.details.append(result)

    def result_for(self, name: str) -> LoadResult | None:
        for result in self.details:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "imported_count": self.imported_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "degraded": self.degraded,
            "duration_seconds": round(self.duration_seconds, 4),
            "load_order": list(self.load_order),
            "details": [
                {
                    "name": r.name,
                    "status": r.status.value,
                    "success": r.success,
                    "message": r.message,
                    "duration_seconds": round(r.duration_seconds, 4),
                    "error_detail": r.error_detail,
                }
                for r in self.details
            ],
        }


@dataclass(frozen=True, slots=True)
class UnitStatus:
    """Status row for a known unit, independent of the current run."""

    name: str
    available: bool
    active: bool
    last_activation: datetime | None = None
    required: bool = False
