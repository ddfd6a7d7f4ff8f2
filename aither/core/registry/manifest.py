"""Unit manifest parsing.

A manifest is a ``unit.yaml`` (or ``unit.yml`` / ``unit.json``) file in the
unit's directory. Only the dependency lists matter to the orchestrator; any
other field is kept as opaque extra data.

Example::

    Name: LabRunner
    Version: 1.4.0
    Description: Lab automation and provisioning
    Dependencies: [Logging, ConfigurationCore]
    OptionalDependencies: [RemoteConnection]
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from aither.core.exceptions import ManifestUnreadableError

MANIFEST_FILENAMES = ("unit.yaml", "unit.yml", "unit.json")

_KEY_ALIASES = {
    "optionaldependencies": "optional_dependencies",
    "requiredmodules": "dependencies",
}


class UnitManifest(BaseModel):
    """Structured declaration of a unit's metadata and dependencies."""

    model_config = ConfigDict(extra="allow", frozen=True)

    name: str | None = None
    version: str | None = None
    description: str = ""
    required: bool | None = None
    dependencies: list[str] = Field(default_factory=list)
    optional_dependencies: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        """Accept ``Dependencies``, ``optional-dependencies`` and similar spellings."""
        if not isinstance(data, dict):
            return data
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            norm = str(key).strip().lower().replace("-", "_")
            norm = _KEY_ALIASES.get(norm.replace("_", ""), norm)
            normalized[norm] = value
        return normalized

    @field_validator("dependencies", "optional_dependencies", mode="before")
    @classmethod
    def _coerce_names(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        names: list[str] = []
        for item in value:
            if isinstance(item, dict):
                lowered = {str(k).lower(): v for k, v in item.items()}
                item = lowered.get("name") or lowered.get("modulename")
            if item:
                names.append(str(item))
        return names

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> str | None:
        # YAML reads an unquoted 1.4 as a float
        return None if value is None else str(value)

    @property
    def extra_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


def find_manifest(unit_dir: Path) -> Path | None:
    """Return the first manifest file present in ``unit_dir``."""
    for filename in MANIFEST_FILENAMES:
        candidate = unit_dir / filename
        if candidate.is_file():
            return candidate
    return None


def read_manifest(unit_dir: Path, unit_name: str) -> UnitManifest:
    """Read and validate the manifest of the unit at ``unit_dir``.

    Raises
    ------
    ManifestUnreadableError
        If no manifest exists or it cannot be parsed
    """
    manifest_path = find_manifest(unit_dir)
    if manifest_path is None:
        raise ManifestUnreadableError(unit_name, f"no manifest in {unit_dir}")

    try:
        with manifest_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ManifestUnreadableError(unit_name, str(e)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ManifestUnreadableError(
            unit_name, f"expected a mapping in {manifest_path.name}, got {type(data).__name__}"
        )

    try:
        return UnitManifest.model_validate(data)
    except PydanticValidationError as e:
        raise ManifestUnreadableError(unit_name, str(e)) from e
