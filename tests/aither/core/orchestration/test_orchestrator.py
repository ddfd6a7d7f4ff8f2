"""Tests for the Orchestrator state machine, fallback and status reporting."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import FakeActivator

from aither.core.config.models import AitherConfig, OrchestrationConfig, UnitEntry
from aither.core.domain.unit import LoadStatus
from aither.core.exceptions import InvalidTransitionError
from aither.core.orchestration.activators import CallableActivator
from aither.core.orchestration.events import GroupStarted
from aither.core.orchestration.orchestrator import Orchestrator, OrchestratorState
from aither.core.registry.sources import StaticRegistry

ENTRIES = [
    UnitEntry("Logging", required=True),
    UnitEntry("Config", required=True),
    UnitEntry("Lab"),
]


def write_unit(root: Path, name: str, dependencies: tuple[str, ...] | list[str] = ()) -> None:
    unit_dir = root / name
    unit_dir.mkdir(parents=True, exist_ok=True)
    deps = ", ".join(dependencies)
    (unit_dir / "unit.yaml").write_text(f"Name: {name}\nDependencies: [{deps}]\n")


@pytest.fixture
def units_root(tmp_path) -> Path:
    root = tmp_path / "units"
    write_unit(root, "Logging")
    write_unit(root, "Config", ["Logging"])
    write_unit(root, "Lab", ["Config", "Logging"])
    return root


def make_orchestrator(
    root: Path,
    entries=ENTRIES,
    activator: FakeActivator | None = None,
    **settings,
) -> Orchestrator:
    settings.setdefault("concurrency", 2)
    config = AitherConfig(project_root=root.parent, orchestration=OrchestrationConfig(**settings))
    return Orchestrator(
        config,
        source=StaticRegistry(root, entries),
        activator=activator or FakeActivator(),
    )


class TestStateMachine:
    """Tests for orchestrator state transitions."""

    def test_starts_uninitialized(self, units_root):
        orchestrator = make_orchestrator(units_root)

        assert orchestrator.state is OrchestratorState.UNINITIALIZED
        assert orchestrator.history == []

    @pytest.mark.asyncio
    async def test_successful_run(self, units_root):
        orchestrator = make_orchestrator(units_root)

        report = await orchestrator.load_all()

        assert orchestrator.state is OrchestratorState.LOADED
        assert [(t.from_state, t.to_state) for t in orchestrator.history] == [
            (OrchestratorState.UNINITIALIZED, OrchestratorState.RESOLVING),
            (OrchestratorState.RESOLVING, OrchestratorState.LOADED),
        ]
        assert report.load_order == ("Logging", "Config", "Lab")
        assert report.imported_count == 3
        assert orchestrator.last_report is report
        assert orchestrator.used_fallback is False

    @pytest.mark.asyncio
    async def test_reorchestration(self, units_root):
        activator = FakeActivator()
        orchestrator = make_orchestrator(units_root, activator=activator)

        await orchestrator.load_all()
        second = await orchestrator.load_all()

        assert len(orchestrator.history) == 4
        assert orchestrator.history[2].from_state is OrchestratorState.LOADED
        assert {r.status for r in second.details} == {LoadStatus.ALREADY_LOADED}
        assert activator.calls == ["Logging", "Config", "Lab"]

    def test_invalid_transition(self, units_root):
        orchestrator = make_orchestrator(units_root)

        with pytest.raises(InvalidTransitionError, match="uninitialized -> loaded"):
            orchestrator._transition(OrchestratorState.LOADED)

        assert orchestrator.state is OrchestratorState.UNINITIALIZED


class TestFallback:
    """Loading in declaration order when resolution is unavailable."""

    @pytest.mark.asyncio
    async def test_missing_registry_root(self, tmp_path, log_capture):
        activator = FakeActivator(duration=0.01)
        entries = [UnitEntry("Lab"), UnitEntry("Logging", required=True), UnitEntry("Config")]
        orchestrator = make_orchestrator(tmp_path / "missing", entries, activator)

        report = await orchestrator.load_all()

        assert orchestrator.state is OrchestratorState.LOADED
        assert OrchestratorState.DEGRADED_FALLBACK in [t.to_state for t in orchestrator.history]
        assert orchestrator.used_fallback is True
        # Declaration order, not dependency order
        assert activator.calls == ["Lab", "Logging", "Config"]
        assert activator.high_water == 1
        assert report.imported_count == 3
        assert any(
            log["level"] == "ERROR" and "using declared load order" in log["message"]
            for log in log_capture
        )

    @pytest.mark.asyncio
    async def test_fallback_reason_recorded(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path / "missing")

        await orchestrator.load_all()

        fallback = next(
            t for t in orchestrator.history if t.to_state is OrchestratorState.DEGRADED_FALLBACK
        )
        assert "does not exist" in fallback.reason

    @pytest.mark.asyncio
    async def test_fallback_required_only(self, tmp_path):
        activator = FakeActivator()
        orchestrator = make_orchestrator(tmp_path / "missing", activator=activator)

        await orchestrator.load_all(required_only=True)

        assert activator.calls == ["Logging", "Config"]

    @pytest.mark.asyncio
    async def test_recovers_after_refresh(self, tmp_path, units_root):
        missing = tmp_path / "later"
        orchestrator = make_orchestrator(missing)
        await orchestrator.load_all()
        assert orchestrator.used_fallback is True

        units_root.rename(missing)
        orchestrator.refresh_graph()
        await orchestrator.load_all(force=True)

        assert orchestrator.used_fallback is False
        assert orchestrator.last_report.load_order == ("Logging", "Config", "Lab")


class TestInterruptedRun:
    """Runs that end with an exception or a unit exiting the interpreter."""

    @pytest.mark.asyncio
    async def test_unit_sys_exit_is_recorded_as_failure(self, units_root):
        activator = CallableActivator({
            "Logging": lambda d: 1,
            "Config": lambda d: 1,
            "Lab": lambda d: sys.exit(3),
        })
        orchestrator = make_orchestrator(units_root, activator=activator)

        report = await orchestrator.load_all()

        assert orchestrator.state is OrchestratorState.LOADED
        assert report.result_for("Lab").status is LoadStatus.FAILED
        assert report.imported_count == 2

        second = await orchestrator.load_all()
        assert orchestrator.state is OrchestratorState.LOADED
        assert second.result_for("Lab").status is LoadStatus.FAILED

    @pytest.mark.asyncio
    async def test_escaping_exception_moves_to_failed(self, units_root, log_capture):
        orchestrator = make_orchestrator(units_root)

        with (
            patch.object(orchestrator.loader, "load_all", side_effect=asyncio.CancelledError()),
            pytest.raises(asyncio.CancelledError),
        ):
            await orchestrator.load_all()

        assert orchestrator.state is OrchestratorState.FAILED
        assert orchestrator.history[-1].from_state is OrchestratorState.RESOLVING
        assert "CancelledError" in orchestrator.history[-1].reason
        assert any("Orchestration interrupted" in log["message"] for log in log_capture)

    @pytest.mark.asyncio
    async def test_retry_after_failed_run(self, units_root):
        orchestrator = make_orchestrator(units_root)

        with (
            patch.object(orchestrator.loader, "load_all", side_effect=RuntimeError("boom")),
            pytest.raises(RuntimeError, match="boom"),
        ):
            await orchestrator.load_all()
        assert orchestrator.state is OrchestratorState.FAILED

        report = await orchestrator.load_all()

        assert orchestrator.state is OrchestratorState.LOADED
        assert report.imported_count == 3
        assert orchestrator.history[-2].from_state is OrchestratorState.FAILED

    @pytest.mark.asyncio
    async def test_failure_during_fallback(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path / "missing")

        with (
            patch.object(orchestrator.loader, "load_all", side_effect=RuntimeError("boom")),
            pytest.raises(RuntimeError),
        ):
            await orchestrator.load_all()

        assert [t.to_state for t in orchestrator.history] == [
            OrchestratorState.RESOLVING,
            OrchestratorState.DEGRADED_FALLBACK,
            OrchestratorState.FAILED,
        ]


class TestInitialize:
    """Tests for initialize and health_check."""

    @pytest.mark.asyncio
    async def test_healthy(self, units_root, log_capture):
        orchestrator = make_orchestrator(units_root)

        assert await orchestrator.initialize() is True
        assert orchestrator.health_check() is True
        assert any("Initialization complete" in log["message"] for log in log_capture)

    @pytest.mark.asyncio
    async def test_nothing_imported(self, units_root):
        activator = FakeActivator(missing={"Logging", "Config", "Lab"})
        orchestrator = make_orchestrator(units_root, activator=activator)

        assert await orchestrator.initialize() is False

    @pytest.mark.asyncio
    async def test_required_unit_failure(self, units_root, log_capture):
        activator = FakeActivator(failing={"Config"})
        orchestrator = make_orchestrator(units_root, activator=activator)

        assert await orchestrator.initialize() is False
        assert any(
            log["level"] == "CRITICAL" and "Required units not active: Config" in log["message"]
            for log in log_capture
        )

    @pytest.mark.asyncio
    async def test_optional_failure_is_healthy(self, units_root):
        orchestrator = make_orchestrator(units_root, activator=FakeActivator(failing={"Lab"}))

        assert await orchestrator.initialize() is True
        assert orchestrator.last_report.failed_count == 1

    @pytest.mark.asyncio
    async def test_required_only(self, units_root):
        activator = FakeActivator()
        orchestrator = make_orchestrator(units_root, activator=activator)

        assert await orchestrator.initialize(required_only=True) is True
        assert activator.calls == ["Logging", "Config"]


class TestLoading:
    """Tests for subset loading, concurrency settings and events."""

    @pytest.mark.asyncio
    async def test_subset_pulls_in_dependencies(self, units_root):
        activator = FakeActivator()
        orchestrator = make_orchestrator(units_root, activator=activator)

        report = await orchestrator.load_all(subset=["Config"])

        assert activator.calls == ["Logging", "Config"]
        assert report.load_order == ("Logging", "Config")

    @pytest.mark.asyncio
    async def test_configured_concurrency(self, tmp_path):
        root = tmp_path / "units"
        names = ["A", "B", "C", "D"]
        for name in names:
            write_unit(root, name)
        activator = FakeActivator(duration=0.02)
        orchestrator = make_orchestrator(
            root, [UnitEntry(n) for n in names], activator, concurrency=1
        )

        await orchestrator.load_all()

        assert activator.high_water == 1

    @pytest.mark.asyncio
    async def test_observer_receives_events(self, units_root):
        events = []
        config = AitherConfig(
            project_root=units_root.parent, orchestration=OrchestrationConfig(concurrency=2)
        )
        orchestrator = Orchestrator(
            config,
            source=StaticRegistry(units_root, ENTRIES),
            activator=FakeActivator(),
            observer=events.append,
        )

        await orchestrator.load_all()

        assert [e.units for e in events if isinstance(e, GroupStarted)] == [
            ["Logging"],
            ["Config"],
            ["Lab"],
        ]

    def test_configured_logging_unit(self, units_root):
        orchestrator = make_orchestrator(units_root, logging_unit="Config")

        resolved = orchestrator.resolve()

        assert resolved.load_order[0] == "Config"

    def test_refresh_graph_rereads_manifests(self, units_root):
        orchestrator = make_orchestrator(units_root)
        assert orchestrator.graph.dependencies_of("Lab") == ("Config", "Logging")

        write_unit(units_root, "Lab", ["Logging"])
        assert orchestrator.graph.dependencies_of("Lab") == ("Config", "Logging")

        assert orchestrator.refresh_graph().dependencies_of("Lab") == ("Logging",)


class TestStatus:
    """Tests for get_status."""

    @pytest.mark.asyncio
    async def test_status_after_load(self, units_root):
        activator = FakeActivator(missing={"Lab"})
        orchestrator = make_orchestrator(units_root, activator=activator)

        await orchestrator.load_all()
        statuses = {s.name: s for s in orchestrator.get_status()}

        assert statuses["Logging"].active is True
        assert statuses["Logging"].required is True
        assert statuses["Logging"].last_activation is not None
        assert statuses["Lab"].active is False
        assert statuses["Lab"].available is False

    def test_status_without_registry(self, tmp_path):
        orchestrator = make_orchestrator(tmp_path / "missing")

        statuses = orchestrator.get_status()

        assert [s.name for s in statuses] == ["Logging", "Config", "Lab"]
        assert not any(s.active for s in statuses)
