"""Core exception hierarchy for the Aither orchestration engine.

All Aither exceptions inherit from AitherError for easy exception handling.
Per-unit errors (manifest, activation, timeout) are absorbed by the loader
and surfaced through LoadResult records; only resolution-level failures
reach the Orchestrator, which turns them into a degraded fallback run.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class AitherError(Exception):
    """Base exception for all Aither errors."""


# ============================================================================
# Configuration & Validation Errors
# ============================================================================


class ConfigurationError(AitherError):
    """Raised when configuration is invalid or missing.

    Examples
    --------
    Example usage::

        raise ConfigurationError("orchestration", "concurrency must be positive")
    """

    def __init__(self, component: str, reason: str) -> None:
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


class ValidationError(AitherError):
    """Raised when data validation fails.

    Examples
    --------
    Example usage::

        raise ValidationError("name", "cannot be empty")
    """

    def __init__(self, field: str, constraint: str, value: object = None) -> None:
        if value is not None:
            msg = f"Validation failed for '{field}': {constraint} (got {value!r})"
        else:
            msg = f"Validation failed for '{field}': {constraint}"
        super().__init__(msg)
        self.field = field
        self.constraint = constraint
        self.value = value


# ============================================================================
# Registry & Graph Errors
# ============================================================================


class RegistryUnavailableError(AitherError):
    """Raised when the unit registry root cannot be reached.

    Fatal to dependency-aware mode only: the Orchestrator falls back to the
    static declaration order.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Unit registry '{path}' unavailable: {reason}")
        self.path = path
        self.reason = reason


class ManifestUnreadableError(AitherError):
    """Raised when a unit manifest is missing or cannot be parsed.

    Non-fatal: the unit is treated as having no dependencies.
    """

    def __init__(self, unit_name: str, reason: str) -> None:
        super().__init__(f"Manifest for unit '{unit_name}' unreadable: {reason}")
        self.unit_name = unit_name
        self.reason = reason


class CircularDependencyError(AitherError):
    """Describes units caught in a dependency cycle.

    The resolver never raises this; cycles are ordered alphabetically and
    reported on ResolvedOrder.circular_dependencies. Callers that want strict
    behaviour can raise it themselves from that set.
    """

    def __init__(self, units: set[str] | frozenset[str]) -> None:
        members = ", ".join(sorted(units))
        super().__init__(f"Circular dependencies detected between: {members}")
        self.units = frozenset(units)


# ============================================================================
# Activation Errors
# ============================================================================


class ActivationFailedError(AitherError):
    """Raised when a unit fails to activate."""

    def __init__(self, unit_name: str, original_error: Exception | None = None) -> None:
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Unit '{unit_name}' failed to activate{detail}")
        self.unit_name = unit_name
        self.original_error = original_error


class UnitTimeoutError(ActivationFailedError):
    """Raised when a unit activation exceeds its timeout."""

    def __init__(self, unit_name: str, timeout: float) -> None:
        super().__init__(unit_name)
        self.args = (f"Unit '{unit_name}' activation timed out after {timeout}s",)
        self.timeout = timeout


class ConcurrencyUnavailableError(AitherError):
    """Raised when the worker pool cannot dispatch an activation.

    Non-fatal: the loader degrades to sequential activation.
    """


# ============================================================================
# Orchestrator Errors
# ============================================================================


class OrchestratorError(AitherError):
    """Raised for unrecoverable orchestration failures."""


class InvalidTransitionError(OrchestratorError):
    """Raised when an orchestrator state transition is not allowed."""

    def __init__(self, from_state: str, to_state: str) -> None:
        super().__init__(f"Invalid orchestrator transition: {from_state} -> {to_state}")
        self.from_state = from_state
        self.to_state = to_state
