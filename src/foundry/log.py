"""Terminal logging for build policy decisions.

Every decision is reported under a scope such as ``git (core)``,
``foundry-publishing`` or ``toolchain``; ``scoped()`` returns a logger that
prefixes each line with ``<scope>: ``. ``FOUNDRY_LOG_LEVEL`` accepts the
Gradle level names (``quiet``, ``lifecycle``, ``info``, ``debug``) plus
``warning`` and ``error``.
"""

from __future__ import annotations

import os
import sys
from enum import IntEnum

from rich.console import Console
from rich.text import Text

LOG_LEVEL_ENV_VAR = "FOUNDRY_LOG_LEVEL"


class LogLevel(IntEnum):
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40


_LEVEL_NAMES = {
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "lifecycle": LogLevel.INFO,
    "warn": LogLevel.WARNING,
    "warning": LogLevel.WARNING,
    "error": LogLevel.ERROR,
    "quiet": LogLevel.ERROR,
}
_STYLES = {
    LogLevel.DEBUG: "dim",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "bold red",
}
_active_level: LogLevel | None = None


def parse_level(name: str | None) -> LogLevel:
    """Map a level name to a ``LogLevel``; blank or unknown names mean INFO.

    Example:
        >>> parse_level("quiet")
        <LogLevel.ERROR: 40>
        >>> parse_level("Lifecycle")
        <LogLevel.INFO: 20>
    """
    if not name:
        return LogLevel.INFO
    return _LEVEL_NAMES.get(name.strip().lower(), LogLevel.INFO)


def configured_level() -> LogLevel:
    global _active_level
    if _active_level is None:
        _active_level = parse_level(os.environ.get(LOG_LEVEL_ENV_VAR))
    return _active_level


def set_level(name: str | None) -> None:
    global _active_level
    _active_level = parse_level(name)


def reset_level() -> None:
    """Forget the active level so the next message re-reads the environment."""
    global _active_level
    _active_level = None


def _no_color() -> bool:
    return bool(os.environ.get("NO_COLOR") or os.environ.get("FOUNDRY_NO_COLOR"))


def emit(level: LogLevel, message: str) -> None:
    """Print ``message`` if ``level`` is enabled.

    Warnings and errors go to stderr, everything else to stdout.
    """
    if level < configured_level():
        return
    console = Console(
        file=sys.stderr if level >= LogLevel.WARNING else sys.stdout,
        soft_wrap=True,
        highlight=False,
        no_color=_no_color(),
    )
    console.print(Text(message, style=_STYLES.get(level, "")))


class ScopedLog:
    """Logger bound to one component scope."""

    def __init__(self, scope: str) -> None:
        self.scope = scope

    def __repr__(self) -> str:
        return f"ScopedLog({self.scope!r})"

    def format(self, message: str) -> str:
        return f"{self.scope}: {message}"

    def debug(self, message: str) -> None:
        emit(LogLevel.DEBUG, self.format(message))

    def info(self, message: str) -> None:
        emit(LogLevel.INFO, self.format(message))

    def warning(self, message: str) -> None:
        emit(LogLevel.WARNING, self.format(message))

    def error(self, message: str) -> None:
        emit(LogLevel.ERROR, self.format(message))


def scoped(scope: str) -> ScopedLog:
    """Return a logger that prefixes messages with ``scope``.

    Example:
        >>> scoped("git (core)").format("no tags reachable from HEAD")
        'git (core): no tags reachable from HEAD'
    """
    return ScopedLog(scope)
