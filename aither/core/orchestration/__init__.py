"""Orchestration layer for unit activation.

The orchestration layer is responsible for:
- Loading resolved units group by group with bounded concurrency
- Tracking which units are active in the process
- Falling back to the declared load order when resolution is unavailable

Examples
--------
Example usage::

    from aither.core.orchestration import Orchestrator
    orchestrator = Orchestrator()
    report = await orchestrator.load_all(required_only=True)
"""

from aither.core.orchestration.activation_cache import ActivationCache
from aither.core.orchestration.activators import (
    CallableActivator,
    ModuleActivator,
    UnitActivator,
)
from aither.core.orchestration.events import (
    Event,
    EventObserver,
    GroupCompleted,
    GroupStarted,
    LoaderDegraded,
    UnitActivated,
    UnitFailed,
    UnitSkipped,
)
from aither.core.orchestration.loader import GroupedParallelLoader
from aither.core.orchestration.orchestrator import (
    Orchestrator,
    OrchestratorState,
    StateTransition,
)

__all__ = [
    "ActivationCache",
    "CallableActivator",
    "Event",
    "EventObserver",
    "GroupCompleted",
    "GroupStarted",
    "GroupedParallelLoader",
    "LoaderDegraded",
    "ModuleActivator",
    "Orchestrator",
    "OrchestratorState",
    "StateTransition",
    "UnitActivated",
    "UnitActivator",
    "UnitFailed",
    "UnitSkipped",
]
