"""GroupedParallelLoader - activates resolved units group by group.

Groups come from ``ResolvedOrder.groups()`` and run strictly one after the
other: a group starts only once every unit of the previous group has
finished, successfully or not. Inside a group, units activate concurrently,
bounded by the limit the ThrottleController picks for the group.

A unit's failure is recorded and never stops its group or the run. If the
worker pool itself cannot be used the loader logs the degradation and
activates everything that is left one unit at a time.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import time
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any

from aither.core.domain.resolver import ResolvedOrder
from aither.core.domain.unit import (
    ActivationRecord,
    LoadResult,
    LoadStatus,
    OrchestrationReport,
    UnitDescriptor,
)
from aither.core.exceptions import ConcurrencyUnavailableError, UnitTimeoutError
from aither.core.logging import get_logger
from aither.core.orchestration.activation_cache import ActivationCache
from aither.core.orchestration.activators import UnitActivator
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
from aither.core.resources.throttle import ThrottleController

logger = get_logger(__name__)


class GroupedParallelLoader:
    """Loads depth groups in order with bounded concurrency inside each group.

    Parameters
    ----------
    activator : UnitActivator
        Brings individual units online
    cache : ActivationCache
        Shared record of active units, owned by the caller
    throttle : ThrottleController | None
        Decides the per-group concurrency limit
    unit_timeout : float | None
        Seconds before an activation is recorded as failed
    observer : EventObserver | None
        Receives every loader event (in addition to logging)

    Examples
    --------
    Example usage::

        loader = GroupedParallelLoader(ModuleActivator(units_root), ActivationCache())
        report = await loader.load_all(resolved, descriptors, concurrency_override=2)
    """

    def __init__(
        self,
        activator: UnitActivator,
        cache: ActivationCache,
        throttle: ThrottleController | None = None,
        unit_timeout: float | None = None,
        observer: EventObserver | None = None,
    ) -> None:
        self.activator = activator
        self.cache = cache
        self.throttle = throttle or ThrottleController()
        self.unit_timeout = unit_timeout
        self.observer = observer
        self.degraded = False

    def _emit(self, event: Event, level: str = "INFO") -> None:
        logger.log(level, event.log_message())
        if self.observer is not None:
            try:
                self.observer(event)
            except Exception as e:
                logger.warning("Loader observer failed: {error}", error=e)

    async def load_all(
        self,
        resolved: ResolvedOrder | Iterable[Iterable[str]],
        descriptors: Mapping[str, UnitDescriptor],
        required_only: bool = False,
        force: bool = False,
        concurrency_override: int | None = None,
        sequential: bool = False,
    ) -> OrchestrationReport:
        """Load every unit of ``resolved``.

        Parameters
        ----------
        resolved : ResolvedOrder | Iterable[Iterable[str]]
            A resolved order (grouped by depth) or explicit groups
        descriptors : Mapping[str, UnitDescriptor]
            Descriptor for every unit name that may appear in the groups
        required_only : bool
            Skip units whose descriptor is not marked required
        force : bool
            Re-activate units that are already active
        concurrency_override : int | None
            Fixed per-group concurrency instead of the resource recommendation
        sequential : bool
            Activate one unit at a time (legacy fallback mode)

        Returns
        -------
        OrchestrationReport
            Per-unit results in completion order
        """
        if isinstance(resolved, ResolvedOrder):
            groups = resolved.groups()
            circular = resolved.circular_dependencies
            load_order = resolved.load_order
        else:
            groups = [list(group) for group in resolved]
            circular = frozenset()
            load_order = tuple(name for group in groups for name in group)

        self.degraded = False
        report = OrchestrationReport(load_order=load_order)
        started = time.perf_counter()

        for index, group in enumerate(groups, 1):
            units = [name for name in group if self._selected(name, descriptors, required_only)]
            if not units:
                continue

            if sequential or self.degraded or set(units) <= circular:
                limit = 1
            else:
                limit = self.throttle.group_concurrency(len(units), concurrency_override)

            group_started = time.perf_counter()
            self._emit(GroupStarted(group_index=index, units=units, concurrency=limit))

            results = await self._load_group(units, descriptors, force, limit)
            for result in results:
                report.add(result)

            self._emit(
                GroupCompleted(
                    group_index=index,
                    duration_ms=(time.perf_counter() - group_started) * 1000,
                    failed=sum(1 for r in results if r.status is LoadStatus.FAILED),
                )
            )

        report.duration_seconds = time.perf_counter() - started
        report.degraded = self.degraded
        logger.info(
            "Loaded {imported} unit(s), {failed} failed, {skipped} skipped in {duration:.2f}s",
            imported=report.imported_count,
            failed=report.failed_count,
            skipped=report.skipped_count,
            duration=report.duration_seconds,
        )
        return report

    def _selected(
        self, name: str, descriptors: Mapping[str, UnitDescriptor], required_only: bool
    ) -> bool:
        descriptor = descriptors.get(name)
        if descriptor is None:
            logger.warning("No descriptor for unit '{name}', skipping", name=name)
            return False
        return descriptor.required or not required_only

    async def _load_group(
        self,
        units: list[str],
        descriptors: Mapping[str, UnitDescriptor],
        force: bool,
        limit: int,
    ) -> list[LoadResult]:
        """Activate one group and wait for all of it; results in completion order.

        Synchronous activations always run on the group's worker pool so the
        per-unit timeout can fire. The pool has a worker slot per unit: a
        timed-out activation keeps its thread until it returns, and queued
        siblings must not wait behind it. The pool is shut down without
        waiting, so abandoned activations may still finish in the background.
        """
        completed: list[LoadResult] = []
        pool = ThreadPoolExecutor(max_workers=len(units), thread_name_prefix="aither-unit")
        try:
            if limit <= 1:
                for name in units:
                    completed.append(await self._load_unit(descriptors[name], force, pool))
                return completed

            semaphore = asyncio.Semaphore(limit)

            async def load_with_semaphore(descriptor: UnitDescriptor) -> None:
                async with semaphore:
                    result = await self._load_unit(descriptor, force, pool)
                completed.append(result)

            await asyncio.gather(*(load_with_semaphore(descriptors[name]) for name in units))
            return completed
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    async def _load_unit(
        self,
        descriptor: UnitDescriptor,
        force: bool,
        pool: ThreadPoolExecutor,
    ) -> LoadResult:
        """Load a single unit; only interrupts such as cancellation propagate."""
        name = descriptor.name
        started = time.perf_counter()

        if force:
            self.cache.invalidate(name)

        if not self.cache.claim(name):
            self._emit(UnitSkipped(name=name, reason="already loaded"), level="DEBUG")
            return LoadResult(name, LoadStatus.ALREADY_LOADED, "Unit already active")

        try:
            skip = self.activator.probe(descriptor)
            if skip is not None:
                self.cache.release(name)
                message = (
                    f"Location '{descriptor.location_ref}' not found"
                    if skip is LoadStatus.PATH_NOT_FOUND
                    else f"No loadable entries at '{descriptor.location_ref}'"
                )
                self._emit(UnitSkipped(name=name, reason=message), level="WARNING")
                return LoadResult(name, skip, message, time.perf_counter() - started)

            entry_count = await self._activate_with_timeout(descriptor, pool)
        except (Exception, SystemExit) as e:
            # sys.exit() inside unit code fails the unit, not the process
            self.cache.release(name)
            duration = time.perf_counter() - started
            self._emit(
                UnitFailed(name=name, error=e, required=descriptor.required),
                level="CRITICAL" if descriptor.required else "ERROR",
            )
            return LoadResult(
                name,
                LoadStatus.FAILED,
                f"Activation failed: {e}",
                duration,
                error_detail=f"{type(e).__name__}: {e}",
            )
        except BaseException:
            self.cache.release(name)
            raise

        duration = time.perf_counter() - started
        self.cache.record(
            ActivationRecord(
                name=name,
                location_ref=descriptor.location_ref,
                activated_at=datetime.now(),
                description=descriptor.description,
                entry_count=entry_count,
            )
        )
        self._emit(
            UnitActivated(name=name, entry_count=entry_count, duration_ms=duration * 1000)
        )
        return LoadResult(name, LoadStatus.IMPORTED, f"Imported {entry_count} entries", duration)

    async def _activate_with_timeout(
        self, descriptor: UnitDescriptor, pool: ThreadPoolExecutor
    ) -> int:
        if self.unit_timeout is None:
            return await self._activate(descriptor, pool)
        try:
            async with asyncio.timeout(self.unit_timeout):
                return await self._activate(descriptor, pool)
        except TimeoutError as e:
            # The worker thread cannot be interrupted; only the wait is abandoned
            raise UnitTimeoutError(descriptor.name, self.unit_timeout) from e

    async def _activate(self, descriptor: UnitDescriptor, pool: ThreadPoolExecutor) -> int:
        if self.activator.is_async(descriptor):
            result: Any = self.activator.activate(descriptor)
        elif self.degraded:
            result = self.activator.activate(descriptor)
        else:
            try:
                result = await self._dispatch(descriptor, pool)
            except ConcurrencyUnavailableError as e:
                self._degrade(str(e))
                result = self.activator.activate(descriptor)

        if inspect.isawaitable(result):
            result = await result
        return int(result or 0)

    async def _dispatch(self, descriptor: UnitDescriptor, pool: ThreadPoolExecutor) -> Any:
        """Run a synchronous activation on the worker pool."""
        ctx = contextvars.copy_context()
        try:
            future = asyncio.get_running_loop().run_in_executor(
                pool, ctx.run, self.activator.activate, descriptor
            )
        except RuntimeError as e:
            # Raised synchronously when the pool cannot start a worker thread
            raise ConcurrencyUnavailableError(str(e)) from e
        return await future

    def _degrade(self, reason: str) -> None:
        if not self.degraded:
            self.degraded = True
            self._emit(LoaderDegraded(reason=reason), level="WARNING")
