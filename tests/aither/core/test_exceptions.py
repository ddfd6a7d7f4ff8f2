"""Tests for the Aither exception hierarchy."""

import pytest

from aither.core.exceptions import (
    ActivationFailedError,
    AitherError,
    CircularDependencyError,
    ConcurrencyUnavailableError,
    InvalidTransitionError,
    OrchestratorError,
    RegistryUnavailableError,
    UnitTimeoutError,
    ValidationError,
)


class TestExceptions:
    """Messages and attributes of the exception types."""

    @pytest.mark.parametrize(
        "error",
        [
            RegistryUnavailableError("/units", "path does not exist"),
            CircularDependencyError({"B", "A"}),
            UnitTimeoutError("Lab", 5.0),
            ConcurrencyUnavailableError("can't start new thread"),
            InvalidTransitionError("loaded", "loaded"),
        ],
    )
    def test_all_are_aither_errors(self, error):
        assert isinstance(error, AitherError)

    def test_circular_members_sorted(self):
        error = CircularDependencyError(frozenset({"Net", "Disk"}))

        assert str(error) == "Circular dependencies detected between: Disk, Net"
        assert error.units == {"Disk", "Net"}

    def test_timeout_is_activation_failure(self):
        error = UnitTimeoutError("Lab", 2.5)

        assert isinstance(error, ActivationFailedError)
        assert str(error) == "Unit 'Lab' activation timed out after 2.5s"
        assert error.timeout == 2.5

    def test_activation_failure_wraps_original(self):
        original = ImportError("no module named x")
        error = ActivationFailedError("Lab", original)

        assert "no module named x" in str(error)
        assert error.original_error is original

    def test_validation_error_includes_value(self):
        assert "(got 0)" in str(ValidationError("concurrency", "must be positive", 0))
        assert "got" not in str(ValidationError("name", "cannot be empty"))

    def test_invalid_transition(self):
        error = InvalidTransitionError("uninitialized", "loaded")

        assert isinstance(error, OrchestratorError)
        assert error.from_state == "uninitialized"
