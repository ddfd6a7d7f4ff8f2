"""Configuration data models for Aither."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from aither.core.exceptions import ValidationError

Profile = Literal["minimal", "standard", "developer", "full"]

PROFILE_RANK: dict[str, int] = {"minimal": 0, "standard": 1, "developer": 2, "full": 3}


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration.

    Attributes
    ----------
    level : str, default="INFO"
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (console, json, structured, rich)
    output_file : str | None, default=None
        Optional file path to write logs to
    use_color : bool, default=True
        Use ANSI color codes (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output

    Examples
    --------
    TOML configuration:

    ```toml
    [tool.aither.logging]
    level = "DEBUG"
    format = "rich"
    ```

    Environment variable overrides:

    ```bash
    export AITHER_LOG_LEVEL=DEBUG
    export AITHER_LOG_FORMAT=json
    export AITHER_LOG_FILE=logs/aither.log
    ```
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "structured", "rich"] = "structured"
    output_file: str | None = None
    use_color: bool = True
    include_timestamp: bool = True

    def __post_init__(self) -> None:
        if self.level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValidationError("logging.level", "unknown log level", self.level)
        if self.format not in ("console", "json", "structured", "rich"):
            raise ValidationError("logging.format", "unknown log format", self.format)


@dataclass(frozen=True, slots=True)
class UnitEntry:
    """Static registry declaration of one unit.

    ``profile`` is the smallest install profile that includes the unit;
    required units are part of every profile.
    """

    name: str
    path: str = ""
    description: str = ""
    required: bool = False
    profile: Profile = "standard"

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("name", "cannot be empty")
        if self.profile not in PROFILE_RANK:
            raise ValidationError("profile", f"must be one of {list(PROFILE_RANK)}", self.profile)
        if not self.path:
            object.__setattr__(self, "path", self.name)

    def in_profile(self, profile: str) -> bool:
        return self.required or PROFILE_RANK[self.profile] <= PROFILE_RANK.get(profile, 3)


@dataclass(frozen=True, slots=True)
class OrchestrationConfig:
    """Settings for resolution and loading.

    Attributes
    ----------
    discovery : str
        ``"static"`` uses the declared ``units`` list, ``"scan"`` scans
        ``units_path`` for manifests
    include_optional : bool
        Treat optional dependencies as ordering edges
    logging_unit : str | None
        Unit always activated first
    concurrency : int | None
        Fixed per-group concurrency, overriding the resource recommendation
    unit_timeout : float | None
        Seconds before an activation is recorded as failed
    headless : bool | None
        Force the automated/headless throttle factor on or off
    """

    discovery: Literal["static", "scan"] = "static"
    include_optional: bool = False
    logging_unit: str | None = "Logging"
    concurrency: int | None = None
    unit_timeout: float | None = None
    headless: bool | None = None

    def __post_init__(self) -> None:
        if self.concurrency is not None and self.concurrency < 1:
            raise ValidationError("concurrency", "must be positive", self.concurrency)
        if self.unit_timeout is not None and self.unit_timeout <= 0:
            raise ValidationError("unit_timeout", "must be positive", self.unit_timeout)


@dataclass(slots=True)
class AitherConfig:
    """Complete Aither configuration."""

    project_root: Path = field(default_factory=Path.cwd)
    units_path: Path | None = None
    profile: Profile = "standard"
    units: list[UnitEntry] = field(default_factory=list)
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def resolved_units_path(self) -> Path:
        """Units search path, defaulting to ``<project_root>/units``."""
        if self.units_path is None:
            return self.project_root / "units"
        if self.units_path.is_absolute():
            return self.units_path
        return self.project_root / self.units_path
