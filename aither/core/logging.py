"""Loguru setup shared by the orchestrator, the loader and the CLI.

Every module logs through ``get_logger(__name__)``; messages use loguru's
brace style with keyword arguments so the json sink keeps them as fields::

    logger = get_logger(__name__)
    logger.info("Group {index} started with {count} unit(s)", index=1, count=3)

Handlers are installed on first use from ``AITHER_LOG_LEVEL`` and
``AITHER_LOG_FORMAT``; the CLI calls :func:`configure_logging` explicitly
with the configured (or ``--log-level``) values.
"""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from loguru import logger
from rich.logging import RichHandler

if TYPE_CHECKING:
    from loguru import Logger

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["console", "json", "structured", "rich"]


@dataclass(frozen=True, slots=True)
class _Settings:
    level: str
    format: str
    output_file: str | None
    use_color: bool
    include_timestamp: bool


_active: _Settings | None = None
_handler_ids: list[int] = []


def _text_format(settings: _Settings, colorize: bool) -> str:
    """Line format for the console and structured sinks."""
    if settings.format == "console":
        stamp = "{time:YYYY-MM-DD HH:mm:ss} " if settings.include_timestamp else ""
        return stamp + "{level: <8} | {extra[module]} | {message}"

    stamp = "<green>{time:HH:mm:ss.SSS}</green> " if settings.include_timestamp else ""
    level = "<level>{level: <8}</level>" if colorize else "{level: <8}"
    return stamp + level + " <cyan>{extra[module]}</cyan> | <level>{message}</level>"


def _stderr_handler(settings: _Settings) -> dict[str, Any]:
    """Keyword arguments for ``logger.add`` describing the main sink."""
    match settings.format:
        case "rich":
            sink = RichHandler(
                rich_tracebacks=True,
                markup=False,
                show_time=settings.include_timestamp,
                show_path=False,
            )
            return {"sink": sink, "format": "{message}"}
        case "json":
            return {"sink": sys.stderr, "serialize": True}
        case _:
            colorize = (
                settings.format == "structured" and settings.use_color and sys.stderr.isatty()
            )
            return {
                "sink": sys.stderr,
                "format": _text_format(settings, colorize),
                "colorize": colorize,
            }


def configure_logging(
    level: LogLevel = "INFO",
    format: LogFormat = "structured",
    output_file: str | Path | None = None,
    use_color: bool = True,
    include_timestamp: bool = True,
    force_reconfigure: bool = False,
) -> None:
    """Install Aither's loguru handlers.

    Calling again with identical settings is a no-op. Only handlers added
    here are removed on reconfiguration, so sinks added by other code (test
    capture sinks, for instance) keep receiving messages.

    Parameters
    ----------
    level : LogLevel, default="INFO"
        Minimum level for every Aither handler
    format : LogFormat, default="structured"
        ``console`` (plain), ``structured`` (colored when stderr is a TTY),
        ``json`` (one serialized record per line) or ``rich``
    output_file : str | Path | None, default=None
        Also write JSON lines to this file, rotated at 10 MB
    use_color : bool, default=True
        Allow ANSI colors in the structured format
    include_timestamp : bool, default=True
        Prefix lines with the time
    force_reconfigure : bool, default=False
        Reinstall handlers even when the settings did not change
    """
    global _active

    settings = _Settings(
        level=level,
        format=format,
        output_file=str(output_file) if output_file else None,
        use_color=use_color,
        include_timestamp=include_timestamp,
    )
    if settings == _active and not force_reconfigure:
        return

    while _handler_ids:
        with suppress(ValueError):
            logger.remove(_handler_ids.pop())

    # Records from loguru's global logger carry no module binding
    logger.configure(extra={"module": "aither"})

    _handler_ids.append(logger.add(level=level, diagnose=False, **_stderr_handler(settings)))

    if settings.output_file:
        path = Path(settings.output_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _handler_ids.append(
            logger.add(path, level=level, serialize=True, rotation="10 MB", retention="1 week")
        )

    _active = settings


@lru_cache(maxsize=256)
def get_logger(name: str) -> Logger:
    """Logger bound to ``module=name``; configures from the environment on first use."""
    _ensure_configured()
    return logger.bind(module=name)


def get_logger_for_unit(unit_name: str) -> Logger:
    """Logger for messages about one capability unit.

    Bound with ``module=aither.unit.<name>`` and ``unit=<name>`` so json
    output can be filtered per unit.
    """
    _ensure_configured()
    return logger.bind(module=f"aither.unit.{unit_name}", unit=unit_name)


def _ensure_configured() -> None:
    if _active is None:
        configure_logging(
            level=os.getenv("AITHER_LOG_LEVEL", "INFO").upper(),  # type: ignore[arg-type]
            format=os.getenv("AITHER_LOG_FORMAT", "structured").lower(),  # type: ignore[arg-type]
        )
