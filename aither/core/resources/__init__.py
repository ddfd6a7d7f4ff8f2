"""Host resource sampling and throttling."""

from aither.core.resources.metrics import (
    ConcurrencyRecommendation,
    ResourceMetricsProvider,
    ResourceSnapshot,
    WorkloadKind,
    detect_headless,
)
from aither.core.resources.throttle import ThrottleController

__all__ = [
    "ConcurrencyRecommendation",
    "ResourceMetricsProvider",
    "ResourceSnapshot",
    "ThrottleController",
    "WorkloadKind",
    "detect_headless",
]
