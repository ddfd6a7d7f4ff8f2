"""Aither core - dependency-aware activation of capability units.

Example usage:
    from aither.core import Orchestrator

    orchestrator = Orchestrator()
    ok = await orchestrator.initialize()
"""

from aither.core.exceptions import (
    ActivationFailedError,
    AitherError,
    CircularDependencyError,
    ConcurrencyUnavailableError,
    ConfigurationError,
    InvalidTransitionError,
    ManifestUnreadableError,
    OrchestratorError,
    RegistryUnavailableError,
    UnitTimeoutError,
    ValidationError,
)
from aither.core.orchestration.orchestrator import Orchestrator, OrchestratorState

__all__ = [
    "ActivationFailedError",
    "AitherError",
    "CircularDependencyError",
    "ConcurrencyUnavailableError",
    "ConfigurationError",
    "InvalidTransitionError",
    "ManifestUnreadableError",
    "Orchestrator",
    "OrchestratorState",
    "OrchestratorError",
    "RegistryUnavailableError",
    "UnitTimeoutError",
    "ValidationError",
]
