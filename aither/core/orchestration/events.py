"""Simple event data classes emitted while units are loaded."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(slots=True)
class Event:
    """Base class for all events - provides timestamp."""

    timestamp: datetime = field(default_factory=datetime.now, init=False)

    def log_message(self) -> str:
        return f"{self.__class__.__name__} at {self.timestamp.isoformat()}"


EventObserver = Callable[[Event], None]


# Group events
@dataclass(slots=True)
class GroupStarted(Event):
    """A depth group has started loading."""

    group_index: int
    units: list[str]
    concurrency: int

    def log_message(self) -> str:
        return (
            f"Group {self.group_index} started: {len(self.units)} unit(s), "
            f"concurrency {self.concurrency} ({', '.join(self.units)})"
        )


@dataclass(slots=True)
class GroupCompleted(Event):
    """Every unit of a depth group has finished (succeeded or failed)."""

    group_index: int
    duration_ms: float
    failed: int = 0

    def log_message(self) -> str:
        failures = f", {self.failed} failed" if self.failed else ""
        return f"Group {self.group_index} completed in {self.duration_ms / 1000:.2f}s{failures}"


# Unit events
@dataclass(slots=True)
class UnitActivated(Event):
    """A unit activated successfully."""

    name: str
    entry_count: int
    duration_ms: float

    def log_message(self) -> str:
        return (
            f"Unit '{self.name}' activated with {self.entry_count} entries "
            f"in {self.duration_ms / 1000:.2f}s"
        )


@dataclass(slots=True)
class UnitSkipped(Event):
    """A unit was not activated (already active or nothing to load)."""

    name: str
    reason: str

    def log_message(self) -> str:
        return f"Unit '{self.name}' skipped: {self.reason}"


@dataclass(slots=True)
class UnitFailed(Event):
    """A unit failed to activate."""

    name: str
    error: BaseException
    required: bool = False

    def log_message(self) -> str:
        kind = "Required unit" if self.required else "Unit"
        return f"{kind} '{self.name}' failed: {self.error}"


@dataclass(slots=True)
class LoaderDegraded(Event):
    """The worker pool became unusable; loading continues sequentially."""

    reason: str

    def log_message(self) -> str:
        return f"Parallel loading unavailable, continuing sequentially: {self.reason}"
