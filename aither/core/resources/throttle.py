"""ThrottleController - decides how many units of a group may activate at once."""

from __future__ import annotations

from aither.core.logging import get_logger
from aither.core.resources.metrics import ResourceMetricsProvider, ResourceSnapshot, WorkloadKind

logger = get_logger(__name__)


class ThrottleController:
    """Resource-aware concurrency limit for one depth group.

    The limit is ``min(override or recommend(MIXED).optimal, group_size)``
    and never below 1. A fresh snapshot is sampled for every decision so the
    log shows the pressure the decision was made under.
    """

    def __init__(self, metrics: ResourceMetricsProvider | None = None) -> None:
        self.metrics = metrics or ResourceMetricsProvider()
        self.last_snapshot: ResourceSnapshot | None = None

    def group_concurrency(self, group_size: int, override: int | None = None) -> int:
        if group_size <= 1:
            return 1

        self.last_snapshot = self.metrics.sample()
        if override is not None:
            limit = override
            source = "override"
        else:
            limit = self.metrics.recommend_concurrency(WorkloadKind.MIXED).optimal
            source = "recommendation"

        limit = max(1, min(limit, group_size))
        logger.debug(
            "Throttle: {limit} of {size} units at once ({source}; cpu={cpu:.0f}% "
            "mem={mem:.0f}% iowait={io:.0f}%{heuristic})",
            limit=limit,
            size=group_size,
            source=source,
            cpu=self.last_snapshot.cpu_load_percent,
            mem=self.last_snapshot.memory_pressure_percent,
            io=self.last_snapshot.io_wait_percent,
            heuristic=", heuristic" if self.last_snapshot.heuristic else "",
        )
        return limit
