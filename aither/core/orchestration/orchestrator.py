"""Orchestrator - dependency-aware unit activation with a legacy fallback.

The orchestrator is an explicit state machine::

    UNINITIALIZED -> RESOLVING -> LOADED
    UNINITIALIZED -> RESOLVING -> DEGRADED_FALLBACK -> LOADED
    LOADED -> RESOLVING                      (re-orchestration)
    RESOLVING | DEGRADED_FALLBACK -> FAILED  (run interrupted)
    FAILED -> RESOLVING                      (retry)

In ``RESOLVING`` the unit graph is built and resolved. If the registry cannot
be reached or resolution fails for any reason, the orchestrator enters
``DEGRADED_FALLBACK`` and activates the statically declared units in
declaration order, one at a time, without dependency awareness.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from aither.core.config import AitherConfig, load_config
from aither.core.domain.graph import DependencyGraph, build_graph
from aither.core.domain.resolver import ResolvedOrder, resolve
from aither.core.domain.unit import OrchestrationReport, UnitDescriptor, UnitStatus
from aither.core.exceptions import InvalidTransitionError
from aither.core.logging import get_logger
from aither.core.orchestration.activation_cache import ActivationCache
from aither.core.orchestration.activators import ModuleActivator, UnitActivator
from aither.core.orchestration.events import EventObserver
from aither.core.orchestration.loader import GroupedParallelLoader
from aither.core.registry.sources import UnitSource, source_from_config
from aither.core.resources.metrics import ResourceMetricsProvider
from aither.core.resources.throttle import ThrottleController

logger = get_logger(__name__)


class OrchestratorState(StrEnum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    DEGRADED_FALLBACK = "degraded_fallback"
    LOADED = "loaded"
    FAILED = "failed"


_TRANSITIONS: dict[OrchestratorState, frozenset[OrchestratorState]] = {
    OrchestratorState.UNINITIALIZED: frozenset({OrchestratorState.RESOLVING}),
    OrchestratorState.RESOLVING: frozenset(
        {OrchestratorState.LOADED, OrchestratorState.DEGRADED_FALLBACK, OrchestratorState.FAILED}
    ),
    OrchestratorState.DEGRADED_FALLBACK: frozenset(
        {OrchestratorState.LOADED, OrchestratorState.FAILED}
    ),
    OrchestratorState.LOADED: frozenset({OrchestratorState.RESOLVING}),
    OrchestratorState.FAILED: frozenset({OrchestratorState.RESOLVING}),
}


@dataclass(slots=True)
class StateTransition:
    """Record of a single orchestrator state change."""

    from_state: OrchestratorState
    to_state: OrchestratorState
    timestamp: float = field(default_factory=time.time)
    reason: str | None = None


class Orchestrator:
    """Coordinates unit discovery, resolution and grouped loading.

    The orchestrator owns the dependency graph and the activation cache; both
    live as long as the orchestrator does. The graph is built on first use
    and only rebuilt by :meth:`refresh_graph`.

    Parameters
    ----------
    config : AitherConfig | None
        Configuration; loaded from the environment when omitted
    source : UnitSource | None
        Unit discovery; derived from ``config`` when omitted
    activator : UnitActivator | None
        Defaults to importing units from the units search path
    cache : ActivationCache | None
        Activation cache to use; a fresh one per orchestrator by default
    metrics : ResourceMetricsProvider | None
        Resource sampler behind the throttle controller
    observer : EventObserver | None
        Receives loader events

    Examples
    --------
    Example usage::

        orchestrator = Orchestrator()
        ok = await orchestrator.initialize(required_only=True)
        for status in orchestrator.get_status():
            print(status.name, status.active)
    """

    def __init__(
        self,
        config: AitherConfig | None = None,
        source: UnitSource | None = None,
        activator: UnitActivator | None = None,
        cache: ActivationCache | None = None,
        metrics: ResourceMetricsProvider | None = None,
        observer: EventObserver | None = None,
    ) -> None:
        self.config = config or load_config()
        self.source = source or source_from_config(self.config)
        self.activator = activator or ModuleActivator(self.source.root)
        self.cache = cache if cache is not None else ActivationCache()

        settings = self.config.orchestration
        self.metrics = metrics or ResourceMetricsProvider(headless=settings.headless)
        self.loader = GroupedParallelLoader(
            self.activator,
            self.cache,
            throttle=ThrottleController(self.metrics),
            unit_timeout=settings.unit_timeout,
            observer=observer,
        )

        self._state = OrchestratorState.UNINITIALIZED
        self.history: list[StateTransition] = []
        self.last_report: OrchestrationReport | None = None
        self._graph: DependencyGraph | None = None
        self._descriptors: dict[str, UnitDescriptor] = {}

    @property
    def state(self) -> OrchestratorState:
        return self._state

    def _transition(self, to_state: OrchestratorState, reason: str | None = None) -> None:
        if to_state not in _TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state.value, to_state.value)
        self.history.append(StateTransition(self._state, to_state, reason=reason))
        logger.debug(
            "Orchestrator {from_state} -> {to_state}",
            from_state=self._state.value,
            to_state=to_state.value,
        )
        self._state = to_state

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    @property
    def graph(self) -> DependencyGraph:
        """The dependency graph, built from the unit source on first access.

        Raises
        ------
        RegistryUnavailableError
            If the unit source cannot be reached
        """
        if self._graph is None:
            descriptors = self.source.load_descriptors()
            self._graph = build_graph(
                descriptors, include_optional=self.config.orchestration.include_optional
            )
            self._descriptors = {d.name: d for d in descriptors}
        return self._graph

    def refresh_graph(self) -> DependencyGraph:
        """Discard the cached graph and rebuild it from the unit source."""
        self._graph = None
        self._descriptors = {}
        return self.graph

    def resolve(self, subset: Iterable[str] | None = None) -> ResolvedOrder:
        """Resolve the activation order without loading anything.

        Raises
        ------
        RegistryUnavailableError
            If the unit source cannot be reached
        """
        return resolve(self.graph, subset, logging_unit=self.config.orchestration.logging_unit)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_all(
        self,
        subset: Iterable[str] | None = None,
        required_only: bool = False,
        force: bool = False,
        concurrency_override: int | None = None,
    ) -> OrchestrationReport:
        """Resolve and activate units.

        Parameters
        ----------
        subset : Iterable[str] | None
            Load only these units and their transitive dependencies
        required_only : bool
            Load only units marked as required
        force : bool
            Re-activate units that are already active
        concurrency_override : int | None
            Fixed per-group concurrency; defaults to the configured value,
            then to the resource recommendation

        Returns
        -------
        OrchestrationReport
            Outcome of every unit considered in this run
        """
        self._transition(OrchestratorState.RESOLVING)
        if concurrency_override is None:
            concurrency_override = self.config.orchestration.concurrency

        try:
            try:
                resolved = self.resolve(subset)
            except Exception as e:
                logger.error(
                    "Dependency resolution unavailable ({error}), using declared load order",
                    error=e,
                )
                self._transition(OrchestratorState.DEGRADED_FALLBACK, reason=str(e))
                report = await self._load_fallback(required_only, force)
            else:
                report = await self.loader.load_all(
                    resolved,
                    self._descriptors,
                    required_only=required_only,
                    force=force,
                    concurrency_override=concurrency_override,
                )
        except BaseException as e:
            logger.error("Orchestration interrupted: {error!r}", error=e)
            self._transition(OrchestratorState.FAILED, reason=repr(e))
            raise

        self._transition(OrchestratorState.LOADED)
        self.last_report = report
        return report

    async def _load_fallback(self, required_only: bool, force: bool) -> OrchestrationReport:
        """Load declared units in declaration order, sequentially."""
        descriptors = {
            entry.name: UnitDescriptor(
                name=entry.name,
                location_ref=entry.path,
                description=entry.description,
                required=entry.required,
            )
            for entry in self.source.declared()
        }
        if not descriptors:
            logger.warning("No statically declared units to fall back to")
        return await self.loader.load_all(
            [list(descriptors)],
            descriptors,
            required_only=required_only,
            force=force,
            sequential=True,
        )

    async def initialize(self, required_only: bool = False, force: bool = False) -> bool:
        """Load units and verify that every required unit is active.

        Returns
        -------
        bool
            False when nothing was imported and nothing is active, or when the
            health check fails
        """
        report = await self.load_all(required_only=required_only, force=force)

        if report.imported_count == 0 and len(self.cache) == 0:
            logger.error("Initialization imported no units")
            return False

        if not self.health_check():
            return False

        logger.info(
            "Initialization complete: {active} unit(s) active{mode}",
            active=len(self.cache),
            mode=" (legacy order)" if self.used_fallback else "",
        )
        return True

    @property
    def used_fallback(self) -> bool:
        """Whether the most recent run went through the legacy fallback."""
        for transition in reversed(self.history):
            if transition.from_state is OrchestratorState.RESOLVING:
                return transition.to_state is OrchestratorState.DEGRADED_FALLBACK
        return False

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def known_units(self) -> list[UnitDescriptor]:
        """Every unit the orchestrator knows about.

        Uses the resolved graph's descriptors when available; otherwise the
        statically declared units.
        """
        if self._graph is None:
            try:
                self.graph
            except Exception as e:
                logger.debug("Graph unavailable for status ({error})", error=e)
        if self._descriptors:
            return list(self._descriptors.values())
        return [
            UnitDescriptor(
                name=entry.name,
                location_ref=entry.path,
                description=entry.description,
                required=entry.required,
            )
            for entry in self.source.declared()
        ]

    def get_status(self) -> list[UnitStatus]:
        """Status of every known unit, whether or not it was part of the last run."""
        statuses = []
        for descriptor in self.known_units():
            record = self.cache.get(descriptor.name)
            statuses.append(
                UnitStatus(
                    name=descriptor.name,
                    available=self.activator.is_available(descriptor),
                    active=record is not None,
                    last_activation=record.activated_at if record else None,
                    required=descriptor.required,
                )
            )
        return statuses

    def health_check(self) -> bool:
        """True when every required known unit is active."""
        missing = [
            d.name for d in self.known_units() if d.required and not self.cache.is_active(d.name)
        ]
        if missing:
            logger.critical("Required units not active: {units}", units=", ".join(missing))
            return False
        return True
