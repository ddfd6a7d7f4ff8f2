"""TOML configuration loader for Aither."""

from __future__ import annotations

import os
import re
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from aither.core.config.models import (
    PROFILE_RANK,
    AitherConfig,
    LoggingConfig,
    OrchestrationConfig,
    UnitEntry,
)
from aither.core.exceptions import ConfigurationError, ValidationError
from aither.core.logging import get_logger

# Constants for boolean environment variable parsing
_TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSY_VALUES = frozenset({"false", "0", "no", "off", "disabled"})

logger = get_logger(__name__)


def _parse_bool_env(value: str) -> bool:
    """Parse boolean from environment variable value.

    Raises
    ------
    ValueError
        If value is not a recognized boolean string
    """
    normalized = value.lower().strip()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False
    expected = sorted(_TRUTHY_VALUES | _FALSY_VALUES)
    raise ValueError(f"Invalid boolean value: {value!r}. Expected one of: {expected}")


def project_root_from_env() -> Path | None:
    """Project root from ``AITHER_ROOT`` (or the legacy ``AITHERZERO_ROOT``)."""
    value = os.getenv("AITHER_ROOT") or os.getenv("AITHERZERO_ROOT")
    return Path(value) if value else None


_CONFIG_NAMES = ("aither.toml", ".aither.toml")


def _has_aither_table(pyproject: Path) -> bool:
    try:
        with pyproject.open("rb") as f:
            return "aither" in tomllib.load(f).get("tool", {})
    except tomllib.TOMLDecodeError as e:
        logger.warning("Skipping unreadable {path}: {error}", path=pyproject, error=e)
        return False


def _env_value(match: re.Match[str]) -> str:
    value = os.environ.get(match.group(1))
    if value is None:
        logger.debug(
            "Environment variable ${{{name}}} not found, keeping placeholder", name=match.group(1)
        )
        return match.group(0)
    return value


@lru_cache(maxsize=32)
def _load_and_parse_cached(path_str: str) -> AitherConfig:
    """Cached configuration loader."""
    return ConfigLoader()._load_and_parse(Path(path_str))


class ConfigLoader:
    """Loads and processes Aither configuration from TOML files."""

    ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

    def load_from_toml(self, path: str | Path | None = None) -> AitherConfig:
        """Load configuration from a TOML file.

        Parameters
        ----------
        path : str | Path | None
            Path to TOML file. If None, searches for aither.toml or pyproject.toml

        Returns
        -------
        AitherConfig
            Parsed configuration with environment variables applied
        """
        config_path = self._find_config_file(path)
        return _load_and_parse_cached(str(config_path.absolute()))

    def _load_and_parse(self, config_path: Path) -> AitherConfig:
        logger.info("Loading configuration from {path}", path=config_path)

        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(str(config_path), f"invalid TOML: {e}") from e

        if "tool" in data and "aither" in data.get("tool", {}):
            aither_data = data["tool"]["aither"]
        elif config_path.name == "pyproject.toml":
            logger.warning("No [tool.aither] section found in pyproject.toml, using defaults")
            aither_data = {}
        else:
            aither_data = data

        aither_data = self._substitute_env_vars(aither_data)
        return self._parse_config(aither_data, base_dir=config_path.parent.absolute())

    def _find_config_file(self, path: str | Path | None) -> Path:
        """Locate the configuration file.

        Order: explicit ``path``, ``AITHER_CONFIG_PATH``, ``aither.toml`` /
        ``.aither.toml`` in the project root or working directory, then the
        nearest ``pyproject.toml`` with a ``[tool.aither]`` table.

        Raises
        ------
        FileNotFoundError
            If ``path`` does not exist or nothing is found
        """
        if path:
            explicit = Path(path)
            if not explicit.exists():
                raise FileNotFoundError(f"Configuration file not found: {explicit}")
            return explicit

        if env_path := os.getenv("AITHER_CONFIG_PATH"):
            if Path(env_path).exists():
                logger.debug("Using config from AITHER_CONFIG_PATH: {path}", path=env_path)
                return Path(env_path)
            logger.warning("AITHER_CONFIG_PATH set but file not found: {path}", path=env_path)

        roots = [r for r in (project_root_from_env(), Path.cwd()) if r is not None]
        for candidate in (root / name for root in roots for name in _CONFIG_NAMES):
            if candidate.exists():
                return candidate

        cwd = Path.cwd()
        for directory in (cwd, *cwd.parents):
            pyproject = directory / "pyproject.toml"
            if pyproject.exists() and _has_aither_table(pyproject):
                return pyproject

        raise FileNotFoundError(
            f"No configuration file found (looked for {', '.join(_CONFIG_NAMES)} "
            "and pyproject.toml [tool.aither])"
        )

    def _substitute_env_vars(self, data: Any) -> Any:
        """Recursively replace ``${VAR}`` with environment values; unknown names stay as-is."""
        match data:
            case str():
                return self.ENV_VAR_PATTERN.sub(_env_value, data)
            case dict():
                return {key: self._substitute_env_vars(value) for key, value in data.items()}
            case list():
                return [self._substitute_env_vars(item) for item in data]
            case _:
                return data

    def _parse_config(self, data: dict[str, Any], base_dir: Path | None = None) -> AitherConfig:
        """Parse raw TOML data into AitherConfig, applying environment overrides.

        Environment variables take precedence over TOML values:
        - AITHER_ROOT / AITHERZERO_ROOT: project root
        - AITHER_UNITS_PATH: units search path
        - AITHER_PROFILE: minimal | standard | developer | full
        - AITHER_CONCURRENCY: fixed per-group concurrency
        - AITHER_UNIT_TIMEOUT: per-unit activation timeout in seconds
        - AITHER_INCLUDE_OPTIONAL: honour optional dependencies (true/false)
        """
        base_dir = base_dir or Path.cwd()

        project_root = Path(data.get("project_root", "."))
        if not project_root.is_absolute():
            project_root = base_dir / project_root
        if env_root := project_root_from_env():
            project_root = env_root

        units_path = data.get("units_path")
        if env_units := os.getenv("AITHER_UNITS_PATH"):
            units_path = env_units

        profile = os.getenv("AITHER_PROFILE", data.get("profile", "standard")).lower()
        if profile not in PROFILE_RANK:
            raise ValidationError("profile", f"must be one of {list(PROFILE_RANK)}", profile)

        try:
            units = [UnitEntry(**entry) for entry in data.get("units", [])]
        except TypeError as e:
            raise ConfigurationError("units", str(e)) from e
        if units:
            logger.debug("Loaded {count} unit declarations", count=len(units))

        return AitherConfig(
            project_root=project_root,
            units_path=Path(units_path) if units_path else None,
            profile=profile,  # type: ignore[arg-type]
            units=units,
            orchestration=self._parse_orchestration_config(data.get("orchestration", {})),
            logging=self._parse_logging_config(data.get("logging", {})),
        )

    def _parse_orchestration_config(self, section: dict[str, Any]) -> OrchestrationConfig:
        values = dict(section)

        if env_concurrency := os.getenv("AITHER_CONCURRENCY"):
            try:
                values["concurrency"] = int(env_concurrency)
            except ValueError:
                logger.warning("Invalid AITHER_CONCURRENCY value: {value}", value=env_concurrency)

        if env_timeout := os.getenv("AITHER_UNIT_TIMEOUT"):
            try:
                values["unit_timeout"] = float(env_timeout)
            except ValueError:
                logger.warning("Invalid AITHER_UNIT_TIMEOUT value: {value}", value=env_timeout)

        if env_optional := os.getenv("AITHER_INCLUDE_OPTIONAL"):
            try:
                values["include_optional"] = _parse_bool_env(env_optional)
            except ValueError as e:
                logger.warning("Invalid AITHER_INCLUDE_OPTIONAL value: {error}", error=e)

        try:
            return OrchestrationConfig(**values)
        except TypeError as e:
            raise ConfigurationError("orchestration", str(e)) from e

    def _parse_logging_config(self, section: dict[str, Any]) -> LoggingConfig:
        level = section.get("level", "INFO")
        format_type = section.get("format", "structured")
        output_file = section.get("output_file")
        use_color = section.get("use_color", True)
        include_timestamp = section.get("include_timestamp", True)

        if env_level := os.getenv("AITHER_LOG_LEVEL"):
            level = env_level
        if env_format := os.getenv("AITHER_LOG_FORMAT"):
            format_type = env_format
        if env_file := os.getenv("AITHER_LOG_FILE"):
            output_file = env_file
        if env_color := os.getenv("AITHER_LOG_COLOR"):
            try:
                use_color = _parse_bool_env(env_color)
            except ValueError as e:
                logger.warning("Invalid AITHER_LOG_COLOR value: {error}", error=e)

        return LoggingConfig(
            level=str(level).upper(),  # type: ignore[arg-type]
            format=str(format_type).lower(),  # type: ignore[arg-type]
            output_file=output_file,
            use_color=use_color,
            include_timestamp=include_timestamp,
        )


def load_config(path: str | Path | None = None) -> AitherConfig:
    """Load configuration from a TOML file, or defaults when none is found."""
    try:
        return ConfigLoader().load_from_toml(path)
    except FileNotFoundError:
        if path:
            raise
        logger.info("No configuration file found, using defaults")
        return get_default_config()


def get_default_config() -> AitherConfig:
    """Default configuration with environment overrides applied."""
    return ConfigLoader()._parse_config({})


def clear_config_cache() -> None:
    """Clear configuration caches (for tests or after editing config files)."""
    _load_and_parse_cached.cache_clear()
