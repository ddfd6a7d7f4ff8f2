"""Unit sources: where the orchestrator learns which units exist.

Two variants share the ``UnitSource`` interface:

- ``StaticRegistry`` - units declared up front (configuration or code); the
  declaration order doubles as the legacy fallback order.
- ``FilesystemScan`` - every sub-directory of the units root that holds a
  manifest is a unit.

Both turn their entries into immutable ``UnitDescriptor`` values; graph
building and resolution never touch the filesystem.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path

from aither.core.config.models import AitherConfig, UnitEntry
from aither.core.domain.unit import UnitDescriptor
from aither.core.exceptions import ManifestUnreadableError, RegistryUnavailableError
from aither.core.logging import get_logger
from aither.core.registry.manifest import UnitManifest, find_manifest, read_manifest

logger = get_logger(__name__)


class UnitSource(ABC):
    """Interface for unit discovery."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    @abstractmethod
    def declared(self) -> list[UnitEntry]:
        """Statically known entries in declaration order.

        Must not raise when the root is unreachable.
        """

    @abstractmethod
    def load_descriptors(self) -> list[UnitDescriptor]:
        """Build descriptors, reading each unit's manifest.

        Raises
        ------
        RegistryUnavailableError
            If the registry root cannot be reached
        """

    def is_reachable(self) -> bool:
        return self.root.is_dir()

    def location_of(self, location_ref: str) -> Path:
        """Resolve a location reference against the units root."""
        path = Path(location_ref)
        return path if path.is_absolute() else self.root / path

    def _ensure_reachable(self) -> None:
        if not self.root.exists():
            raise RegistryUnavailableError(str(self.root), "path does not exist")
        if not self.root.is_dir():
            raise RegistryUnavailableError(str(self.root), "not a directory")

    def _descriptor_for(self, entry: UnitEntry) -> UnitDescriptor:
        """Combine a declaration with its manifest; unreadable manifests mean no deps."""
        manifest: UnitManifest | None
        try:
            manifest = read_manifest(self.location_of(entry.path), entry.name)
        except ManifestUnreadableError as e:
            logger.warning(
                "{error}; treating '{name}' as dependency-free", error=e, name=entry.name
            )
            manifest = None

        if manifest is None:
            return UnitDescriptor(
                name=entry.name,
                location_ref=entry.path,
                description=entry.description,
                required=entry.required,
            )

        if manifest.name and manifest.name != entry.name:
            logger.debug(
                "Manifest name '{manifest_name}' differs from registry name '{name}'",
                manifest_name=manifest.name,
                name=entry.name,
            )
        return UnitDescriptor(
            name=entry.name,
            location_ref=entry.path,
            description=entry.description or manifest.description,
            required=entry.required or bool(manifest.required),
            dependencies=tuple(manifest.dependencies),
            optional_dependencies=tuple(manifest.optional_dependencies),
        )


class StaticRegistry(UnitSource):
    """Units declared explicitly, in a fixed order.

    Examples
    --------
    >>> registry = StaticRegistry("units", [UnitEntry("Logging", required=True)])
    >>> [entry.name for entry in registry.declared()]
    ['Logging']
    """

    def __init__(self, root: str | Path, entries: Iterable[UnitEntry]) -> None:
        super().__init__(root)
        self.entries: tuple[UnitEntry, ...] = tuple(entries)

    def declared(self) -> list[UnitEntry]:
        return list(self.entries)

    def load_descriptors(self) -> list[UnitDescriptor]:
        self._ensure_reachable()
        return [self._descriptor_for(entry) for entry in self.entries]


class FilesystemScan(UnitSource):
    """Discover units by scanning the units root for manifests.

    Directories are visited in name order so discovery is deterministic.
    """

    def declared(self) -> list[UnitEntry]:
        if not self.is_reachable():
            return []
        return self._scan()

    def load_descriptors(self) -> list[UnitDescriptor]:
        self._ensure_reachable()
        return [self._descriptor_for(entry) for entry in self._scan()]

    def _scan(self) -> list[UnitEntry]:
        entries: list[UnitEntry] = []
        for unit_dir in sorted(p for p in self.root.iterdir() if p.is_dir()):
            if find_manifest(unit_dir) is None:
                continue
            try:
                manifest = read_manifest(unit_dir, unit_dir.name)
            except ManifestUnreadableError as e:
                logger.warning(
                    "{error}; registering '{name}' without metadata", error=e, name=unit_dir.name
                )
                entries.append(UnitEntry(name=unit_dir.name, path=unit_dir.name))
                continue
            entries.append(
                UnitEntry(
                    name=manifest.name or unit_dir.name,
                    path=unit_dir.name,
                    description=manifest.description,
                    required=bool(manifest.required),
                )
            )
        logger.debug("Scanned {root}: {count} units", root=self.root, count=len(entries))
        return entries


# Catalog of the platform's stock units, in legacy load order.
DEFAULT_UNITS: tuple[UnitEntry, ...] = (
    UnitEntry("Logging", description="Centralized logging", required=True, profile="minimal"),
    UnitEntry(
        "ConfigurationCore",
        description="Configuration storage and environments",
        required=True,
        profile="minimal",
    ),
    UnitEntry("SecureCredentials", description="Credential storage", profile="minimal"),
    UnitEntry("ParallelExecution", description="Runspace-style parallel jobs", profile="minimal"),
    UnitEntry("LabRunner", description="Lab automation", profile="standard"),
    UnitEntry("OpenTofuProvider", description="Infrastructure deployment", profile="standard"),
    UnitEntry("RemoteConnection", description="Remote session management", profile="standard"),
    UnitEntry("BackupManager", description="Backup and cleanup", profile="standard"),
    UnitEntry("ScriptManager", description="Script repository", profile="standard"),
    UnitEntry("UnifiedMaintenance", description="Maintenance workflows", profile="standard"),
    UnitEntry("ISOManager", description="ISO download and inventory", profile="developer"),
    UnitEntry("ISOCustomizer", description="ISO customization", profile="developer"),
    UnitEntry("DevEnvironment", description="Developer environment setup", profile="developer"),
    UnitEntry("PatchManager", description="Git patch workflow", profile="developer"),
    UnitEntry("TestingFramework", description="Test orchestration", profile="developer"),
    UnitEntry("RepoSync", description="Repository synchronisation", profile="full"),
    UnitEntry("AIToolsIntegration", description="AI tooling installers", profile="full"),
)


def default_registry(root: str | Path) -> StaticRegistry:
    """StaticRegistry over the stock unit catalog."""
    return StaticRegistry(root, DEFAULT_UNITS)


def source_from_config(config: AitherConfig) -> UnitSource:
    """Build the unit source described by ``config``.

    Static discovery uses the configured ``units`` (or the stock catalog when
    none are declared), narrowed to the active profile.
    """
    root = config.resolved_units_path
    if config.orchestration.discovery == "scan":
        return FilesystemScan(root)
    entries = config.units or list(DEFAULT_UNITS)
    return StaticRegistry(root, [entry for entry in entries if entry.in_profile(config.profile)])
