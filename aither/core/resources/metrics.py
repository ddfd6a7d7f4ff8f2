"""Host resource sampling and safe-concurrency recommendations.

Samples come from psutil. Where psutil cannot provide a value (restricted
containers, unsupported platforms, permission errors) a plausible value in
the 15-45% range is substituted and the snapshot is flagged ``heuristic``.
Callers must treat every value as a heuristic, not authoritative telemetry.
"""

from __future__ import annotations

import math
import os
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

import psutil

from aither.core.logging import get_logger

logger = get_logger(__name__)

REFERENCE_MEMORY_GB = 4.0
RECOMMENDATION_TTL_SECONDS = 300.0
HEURISTIC_RANGE = (15.0, 45.0)
HEADLESS_FACTOR = 0.7

# Environment variables that mark an automated / headless session
AUTOMATION_ENV_VARS = (
    "CI",
    "GITHUB_ACTIONS",
    "TF_BUILD",
    "JENKINS_URL",
    "AITHER_CI",
    "AITHER_NONINTERACTIVE",
    "AITHERZERO_NONINTERACTIVE",
)

_GB = 1024**3


class WorkloadKind(StrEnum):
    """Shape of the work a concurrency recommendation is for."""

    CPU = "cpu"
    IO = "io"
    NETWORK = "network"
    MIXED = "mixed"


@dataclass(frozen=True, slots=True)
class ResourceSnapshot:
    """Point-in-time host pressure, regenerated for every throttle decision."""

    cpu_load_percent: float
    memory_pressure_percent: float
    io_wait_percent: float
    available_memory_gb: float = REFERENCE_MEMORY_GB
    heuristic: bool = False
    sampled_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, object]:
        return {
            "cpu_load_percent": round(self.cpu_load_percent, 1),
            "memory_pressure_percent": round(self.memory_pressure_percent, 1),
            "io_wait_percent": round(self.io_wait_percent, 1),
            "available_memory_gb": round(self.available_memory_gb, 2),
            "heuristic": self.heuristic,
            "sampled_at": self.sampled_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ConcurrencyRecommendation:
    """Recommended and maximum safe number of simultaneous activations."""

    kind: WorkloadKind
    optimal: int
    max_safe: int


def _is_truthy(value: str | None) -> bool:
    return bool(value) and value.strip().lower() not in ("0", "false", "no", "off", "")


def detect_headless() -> bool:
    """True when running under CI or an explicitly non-interactive session."""
    return any(_is_truthy(os.environ.get(name)) for name in AUTOMATION_ENV_VARS)


class ResourceMetricsProvider:
    """Cross-platform sampler of CPU, memory and I/O pressure.

    Parameters
    ----------
    headless : bool | None
        Force the automated/headless factor; ``None`` detects it from the
        environment
    cpu_count : int | None
        Logical core count override (defaults to ``os.cpu_count()``)
    rng : random.Random | None
        Source for heuristic fallback values
    clock : Callable[[], float]
        Monotonic clock used for the recommendation cache
    ttl : float
        Recommendation cache lifetime in seconds

    Examples
    --------
    Example usage::

        provider = ResourceMetricsProvider()
        snapshot = provider.sample()
        rec = provider.recommend_concurrency(WorkloadKind.MIXED)
    """

    def __init__(
        self,
        headless: bool | None = None,
        cpu_count: int | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        ttl: float = RECOMMENDATION_TTL_SECONDS,
    ) -> None:
        self._headless = headless
        self._cpu_count = cpu_count
        self._rng = rng or random.Random()
        self._clock = clock
        self._ttl = ttl
        self._cache: dict[WorkloadKind, tuple[float, ConcurrencyRecommendation]] = {}

    @property
    def headless(self) -> bool:
        return detect_headless() if self._headless is None else self._headless

    @property
    def cpu_count(self) -> int:
        return self._cpu_count or os.cpu_count() or 1

    def _heuristic(self) -> float:
        return self._rng.uniform(*HEURISTIC_RANGE)

    def sample(self, detailed: bool = False) -> ResourceSnapshot:
        """Sample current host pressure.

        Parameters
        ----------
        detailed : bool
            Block briefly (100ms) for a measured CPU interval instead of the
            delta since the previous call
        """
        heuristic = False

        try:
            cpu = float(psutil.cpu_percent(interval=0.1 if detailed else None))
        except (psutil.Error, OSError, NotImplementedError) as e:
            logger.debug("CPU sampling unavailable: {error}", error=e)
            cpu, heuristic = self._heuristic(), True

        try:
            memory = psutil.virtual_memory()
            memory_pressure = float(memory.percent)
            available_gb = memory.available / _GB
        except (psutil.Error, OSError, NotImplementedError) as e:
            logger.debug("Memory sampling unavailable: {error}", error=e)
            memory_pressure, heuristic = self._heuristic(), True
            available_gb = REFERENCE_MEMORY_GB

        try:
            times = psutil.cpu_times_percent(interval=None)
            iowait = getattr(times, "iowait", None)
        except (psutil.Error, OSError, NotImplementedError) as e:
            logger.debug("I/O wait sampling unavailable: {error}", error=e)
            iowait = None
        if iowait is None:
            # Not exposed on this platform (e.g. Windows, macOS)
            io_wait, heuristic = self._heuristic(), True
        else:
            io_wait = float(iowait)

        return ResourceSnapshot(
            cpu_load_percent=cpu,
            memory_pressure_percent=memory_pressure,
            io_wait_percent=io_wait,
            available_memory_gb=available_gb,
            heuristic=heuristic,
        )

    def base_cores(self, kind: WorkloadKind) -> int:
        cores = self.cpu_count
        match kind:
            case WorkloadKind.CPU:
                return cores
            case WorkloadKind.IO:
                return cores * 2
            case WorkloadKind.NETWORK:
                return cores * 3
            case _:
                return max(1, math.floor(cores * 1.5))

    def recommend_concurrency(
        self, kind: WorkloadKind = WorkloadKind.MIXED
    ) -> ConcurrencyRecommendation:
        """Recommend a safe number of simultaneous activations.

        ``optimal = max(1, floor(base * memory * load * environment))`` and
        ``max_safe = max(2, min(base * 2, floor(optimal * 1.5)))``. Results
        are cached per workload kind for five minutes.
        """
        now = self._clock()
        cached = self._cache.get(kind)
        if cached is not None and now - cached[0] < self._ttl:
            return cached[1]

        snapshot = self.sample()
        base = self.base_cores(kind)
        memory_factor = min(1.5, max(0.5, snapshot.available_memory_gb / REFERENCE_MEMORY_GB))
        load_factor = min(1.0, max(0.3, 1.0 - snapshot.cpu_load_percent / 100.0))
        environment_factor = HEADLESS_FACTOR if self.headless else 1.0

        optimal = max(1, math.floor(base * memory_factor * load_factor * environment_factor))
        max_safe = max(2, min(base * 2, math.floor(optimal * 1.5)))
        recommendation = ConcurrencyRecommendation(kind=kind, optimal=optimal, max_safe=max_safe)

        logger.debug(
            "Concurrency for {kind}: optimal={optimal} max_safe={max_safe} "
            "(base={base}, memory={memory:.2f}, load={load:.2f}, env={env})",
            kind=kind.value,
            optimal=optimal,
            max_safe=max_safe,
            base=base,
            memory=memory_factor,
            load=load_factor,
            env=environment_factor,
        )
        self._cache[kind] = (now, recommendation)
        return recommendation

    def clear_cache(self) -> None:
        self._cache.clear()
