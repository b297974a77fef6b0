"""Failure contracts for build policy configuration.

Declarative input that cannot be interpreted raises a ``FoundryFailure``
at configuration time. Optional integrations (git metadata, optional
repositories) never raise; they degrade to an absent result and a log line.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

FailureCode = Literal[
    "validation_failed",
    "dependency_missing",
    "policy_blocked",
]


class FoundryFailure(Exception):
    """Expected failure raised while configuring or gating a build.

    Use ``raise ConfigurationError(...) from exc`` to chain the causing
    exception; it is available as ``__cause__``.
    """

    def __init__(
        self,
        code: FailureCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.recovery_hint = recovery_hint


class ConfigurationError(FoundryFailure):
    """Malformed declarative input (property value, version, build file)."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("validation_failed", message, recovery_hint=recovery_hint)


class DependencyMissingError(FoundryFailure):
    """Required external tool is missing or unavailable."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("dependency_missing", message, recovery_hint=recovery_hint)


class DirtyRepositoryError(FoundryFailure):
    """The working tree has uncommitted changes and publishing requires a clean one."""

    def __init__(self, changes: Sequence[str]) -> None:
        self.changes = tuple(changes)
        listing = "\n".join(f"  {line}" for line in self.changes)
        super().__init__(
            "policy_blocked",
            f"repository has uncommitted changes:\n{listing}",
            recovery_hint="commit or stash local changes before publishing",
        )
