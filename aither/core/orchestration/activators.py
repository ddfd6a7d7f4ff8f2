"""Unit activators: how a descriptor is turned into a live unit.

The loader only needs two things from an activator:

- ``probe`` - cheap check whether the unit's location resolves to anything
  loadable (``None`` means "go ahead")
- ``activate`` - bring the unit online and return its entry count; may be a
  plain function (run on a worker thread) or a coroutine function

``ModuleActivator`` imports Python units from the units search path.
``CallableActivator`` wraps in-process callables.
"""

from __future__ import annotations

import importlib.util
import inspect
import sys
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from pathlib import Path
from types import ModuleType

from aither.core.domain.unit import LoadStatus, UnitDescriptor
from aither.core.exceptions import ActivationFailedError
from aither.core.logging import get_logger_for_unit

MODULE_PREFIX = "aither_unit_"


class UnitActivator(ABC):
    """Interface for bringing a unit online."""

    def probe(self, descriptor: UnitDescriptor) -> LoadStatus | None:
        """Return a skip status when the unit cannot be loaded, else None."""
        return None

    @abstractmethod
    def activate(self, descriptor: UnitDescriptor) -> int | Awaitable[int]:
        """Activate the unit and return the number of entries it exposes.

        Raises
        ------
        Exception
            Any error marks the unit as failed; it is never re-raised past
            the loader
        """

    def is_async(self, descriptor: UnitDescriptor) -> bool:
        """Whether ``activate`` should be awaited on the event loop instead of a worker."""
        return inspect.iscoroutinefunction(self.activate)

    def is_available(self, descriptor: UnitDescriptor) -> bool:
        return self.probe(descriptor) is None


class ModuleActivator(UnitActivator):
    """Import units as Python modules from the units search path.

    A unit directory is loaded through its ``__init__.py``, or through
    ``<dir>/<name>.py`` when it is not a package. A ``location_ref`` may also
    point straight at a ``.py`` file.

    Parameters
    ----------
    root : str | Path
        Units search path used for relative location references
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def location_of(self, descriptor: UnitDescriptor) -> Path:
        path = Path(descriptor.location_ref)
        return path if path.is_absolute() else self.root / path

    def entry_file(self, descriptor: UnitDescriptor) -> Path | None:
        location = self.location_of(descriptor)
        if location.is_file():
            return location if location.suffix == ".py" else None
        for candidate in (location / "__init__.py", location / f"{location.name}.py"):
            if candidate.is_file():
                return candidate
        return None

    def probe(self, descriptor: UnitDescriptor) -> LoadStatus | None:
        if not self.location_of(descriptor).exists():
            return LoadStatus.PATH_NOT_FOUND
        if self.entry_file(descriptor) is None:
            return LoadStatus.NO_ENTRIES_FOUND
        return None

    def activate(self, descriptor: UnitDescriptor) -> int:
        entry = self.entry_file(descriptor)
        if entry is None:
            raise ActivationFailedError(descriptor.name, FileNotFoundError(descriptor.location_ref))

        module_name = f"{MODULE_PREFIX}{descriptor.name}"
        is_package = entry.name == "__init__.py"
        spec = importlib.util.spec_from_file_location(
            module_name,
            entry,
            submodule_search_locations=[str(entry.parent)] if is_package else None,
        )
        if spec is None or spec.loader is None:
            raise ActivationFailedError(descriptor.name, ImportError(f"cannot load {entry}"))

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise

        count = count_entries(module)
        get_logger_for_unit(descriptor.name).debug(
            "Imported {module} with {count} entries", module=module_name, count=count
        )
        return count


def count_entries(module: ModuleType) -> int:
    """Number of public entries: ``__all__`` when declared, else public callables."""
    exported = getattr(module, "__all__", None)
    if exported is not None:
        return len(exported)
    return sum(
        1
        for name, value in vars(module).items()
        if not name.startswith("_")
        and callable(value)
        and getattr(value, "__module__", None) == module.__name__
    )


class CallableActivator(UnitActivator):
    """Activate units by calling registered in-process callables.

    Each callable receives the descriptor and may return an entry count
    (``None`` counts as 0). Units without a callable probe as
    ``PATH_NOT_FOUND``.

    Examples
    --------
    Example usage::

        activator = CallableActivator({"Logging": setup_logging})
    """

    def __init__(
        self,
        callables: Mapping[str, Callable[[UnitDescriptor], int | None | Awaitable[int | None]]],
    ) -> None:
        self.callables = dict(callables)

    def probe(self, descriptor: UnitDescriptor) -> LoadStatus | None:
        if descriptor.name not in self.callables:
            return LoadStatus.PATH_NOT_FOUND
        return None

    def is_async(self, descriptor: UnitDescriptor) -> bool:
        return inspect.iscoroutinefunction(self.callables.get(descriptor.name))

    def activate(self, descriptor: UnitDescriptor) -> int | Awaitable[int]:
        fn = self.callables[descriptor.name]
        if inspect.iscoroutinefunction(fn):
            return self._activate_async(fn, descriptor)
        return fn(descriptor) or 0  # type: ignore[return-value]

    @staticmethod
    async def _activate_async(fn: Callable, descriptor: UnitDescriptor) -> int:
        return (await fn(descriptor)) or 0
