"""Configuration file for pytest containing fixtures and configuration.

This module provides fixtures that can be used across multiple test files:
- log_capture: records loguru messages emitted during a test
- fake_activator: instrumented activator with configurable duration and failures
- aither_env: clears AITHER_* environment variables and config caches
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Iterable

import pytest
from loguru import logger

from aither.core.config import clear_config_cache
from aither.core.domain.unit import LoadStatus, UnitDescriptor
from aither.core.orchestration.activators import UnitActivator
from aither.core.resources.metrics import AUTOMATION_ENV_VARS


class FakeActivator(UnitActivator):
    """Activator for tests that sleeps instead of importing anything.

    Tracks the highest number of activations running at the same time.
    """

    def __init__(
        self,
        duration: float = 0.0,
        durations: dict[str, float] | None = None,
        failing: Iterable[str] = (),
        missing: Iterable[str] = (),
        empty: Iterable[str] = (),
        entry_count: int = 1,
    ) -> None:
        self.duration = duration
        self.durations = durations or {}
        self.failing = set(failing)
        self.missing = set(missing)
        self.empty = set(empty)
        self.entry_count = entry_count
        self.calls: list[str] = []
        self.running = 0
        self.high_water = 0
        self._lock = threading.Lock()

    def probe(self, descriptor: UnitDescriptor) -> LoadStatus | None:
        if descriptor.name in self.missing:
            return LoadStatus.PATH_NOT_FOUND
        if descriptor.name in self.empty:
            return LoadStatus.NO_ENTRIES_FOUND
        return None

    def activate(self, descriptor: UnitDescriptor) -> int:
        with self._lock:
            self.calls.append(descriptor.name)
            self.running += 1
            self.high_water = max(self.high_water, self.running)
        try:
            time.sleep(self.durations.get(descriptor.name, self.duration))
            if descriptor.name in self.failing:
                raise RuntimeError(f"{descriptor.name} exploded")
            return self.entry_count
        finally:
            with self._lock:
                self.running -= 1


class AsyncFakeActivator(FakeActivator):
    """Coroutine-based variant of FakeActivator."""

    async def activate(self, descriptor: UnitDescriptor) -> int:  # type: ignore[override]
        self.calls.append(descriptor.name)
        self.running += 1
        self.high_water = max(self.high_water, self.running)
        try:
            await asyncio.sleep(self.durations.get(descriptor.name, self.duration))
            if descriptor.name in self.failing:
                raise RuntimeError(f"{descriptor.name} exploded")
            return self.entry_count
        finally:
            self.running -= 1


@pytest.fixture
def fake_activator() -> FakeActivator:
    """Fixture providing an instant, always-successful fake activator."""
    return FakeActivator()


@pytest.fixture
def log_capture():
    """Fixture to capture loguru logs."""
    captured_logs: list[dict] = []

    def sink(message):
        record = message.record
        captured_logs.append({
            "level": record["level"].name,
            "message": record["message"],
            "extra": dict(record["extra"]),
        })

    handler_id = logger.add(sink, level="DEBUG", format="{message}")
    yield captured_logs
    logger.remove(handler_id)


@pytest.fixture
def aither_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Isolate tests from the host's AITHER_* variables, CI flags and config files."""
    import os

    for name in list(os.environ):
        if name.startswith(("AITHER_", "AITHERZERO_")):
            monkeypatch.delenv(name, raising=False)
    for name in AUTOMATION_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    yield monkeypatch
    clear_config_cache()
