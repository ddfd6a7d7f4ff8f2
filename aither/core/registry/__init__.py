"""Unit registry: sources and manifests."""

from aither.core.registry.manifest import MANIFEST_FILENAMES, UnitManifest, read_manifest
from aither.core.registry.sources import (
    DEFAULT_UNITS,
    FilesystemScan,
    StaticRegistry,
    UnitSource,
    default_registry,
    source_from_config,
)

__all__ = [
    "DEFAULT_UNITS",
    "MANIFEST_FILENAMES",
    "FilesystemScan",
    "StaticRegistry",
    "UnitManifest",
    "UnitSource",
    "default_registry",
    "read_manifest",
    "source_from_config",
]
