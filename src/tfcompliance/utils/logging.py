"""Logging setup for the tfcompliance CLI and embedding hosts.

Records go to ``tfcompliance.log`` under ``~/.tfcompliance/logs`` (or the
directory named by ``TFCOMPLIANCE_LOG_DIR``) and optionally to stderr. The
``enable_debug_logging`` setting decides how verbose both outputs are; it can be
flipped at runtime through :func:`set_debug_enabled`.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - import only for type checking
    from ..services.settings import Settings

__all__ = [
    "PACKAGE_LOGGER",
    "LogLevels",
    "configure_from_settings",
    "get_log_path",
    "levels_for",
    "set_debug_enabled",
    "setup_logging",
]

PACKAGE_LOGGER = "tfcompliance"
LOG_FILE_NAME = "tfcompliance.log"
LOG_DIR_ENV = "TFCOMPLIANCE_LOG_DIR"

_DEFAULT_LOG_DIR = Path.home() / ".tfcompliance" / "logs"
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore")
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_CONSOLE_FORMAT = "%(levelname)s: %(message)s"
_CONFIGURED = False
_LOG_PATH: Path | None = None
_FILE_HANDLER: logging.Handler | None = None
_LEVELS: "LogLevels | None" = None


@dataclass(slots=True, frozen=True)
class LogLevels:
    """Thresholds applied to the log file, the console and the package logger."""

    file: int
    console: int
    package: int = logging.NOTSET


def levels_for(debug: bool) -> LogLevels:
    """Return the thresholds for normal or debug operation.

    Normal operation keeps INFO in the file and only warnings on the console. Debug
    operation lets everything from the ``tfcompliance`` loggers through to both.
    """

    if debug:
        return LogLevels(file=logging.DEBUG, console=logging.DEBUG, package=logging.DEBUG)
    return LogLevels(file=logging.INFO, console=logging.WARNING)


def configure_from_settings(
    settings: "Settings",
    *,
    debug: bool = False,
    log_dir: Path | str | None = None,
    console: bool = True,
    force: bool = False,
) -> Path:
    """Configure logging for ``settings``; ``debug`` forces debug output on."""

    return setup_logging(
        levels_for(debug or settings.enable_debug_logging),
        log_dir=log_dir,
        console=console,
        force=force,
    )


def setup_logging(
    levels: LogLevels | None = None,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Install a rotating file handler and optional console handler on the root logger.

    Calling it again is a no-op unless ``force`` is set.
    """

    global _CONFIGURED, _LOG_PATH, _FILE_HANDLER, _LEVELS
    if _CONFIGURED and not force and _LOG_PATH is not None:
        return _LOG_PATH

    levels = levels or levels_for(False)
    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(levels.file)
    file_handler.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handlers: list[logging.Handler] = [file_handler]

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(levels.console)
        console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
        handlers.append(console_handler)

    root_level = min(levels.file, levels.console if console else levels.file)
    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    logging.getLogger(PACKAGE_LOGGER).setLevel(levels.package)
    _quiet_dependencies(root_level)

    _CONFIGURED = True
    _LOG_PATH = log_path
    _FILE_HANDLER = file_handler
    _LEVELS = levels
    return log_path


def set_debug_enabled(enabled: bool) -> None:
    """Switch debug output on, or back to the levels :func:`setup_logging` installed.

    The ``tfcompliance`` loggers and the log file follow the switch; the console
    keeps its threshold.
    """

    levels = _LEVELS or levels_for(False)
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if enabled else levels.package)
    if _FILE_HANDLER is not None:
        _FILE_HANDLER.setLevel(logging.DEBUG if enabled else levels.file)


def get_log_path() -> Path | None:
    """Return the currently configured log file if available."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    return Path(log_dir or os.environ.get(LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()


def _quiet_dependencies(root_level: int) -> None:
    # httpx logs every request at INFO.
    quiet_level = max(root_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)
