"""Resolve string-keyed build properties into typed values.

This is the only place that performs lookups by property name. Policy
modules receive plain booleans, integers and ``Credentials`` objects.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from .errors import ConfigurationError

T = TypeVar("T")

PropertySource = Mapping[str, str]
DefaultSource = Literal["property", "env", "built-in"]

FORCE_SIGN_PROPERTY = "forceSign"
STRICT_VERSIONS_PROPERTY = "strictMultireleaseVersions"
CI_ENV_VAR = "CI"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class ResolvedDefault(Generic[T]):
    """One resolved default value and where it came from."""

    name: str
    value: T
    source: DefaultSource
    raw_value: str | None = None


@dataclass(frozen=True)
class Credentials:
    """Username/password pair for a remote repository."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


def parse_bool(raw: str, *, source: str) -> bool:
    """Parse a boolean property string.

    Args:
        raw: Raw property or environment value.
        source: Property name used in the error message.

    Returns:
        Parsed boolean.

    Raises:
        ConfigurationError: If the value is not a recognized boolean.

    Example:
        >>> parse_bool("TRUE", source="CI")
        True
        >>> parse_bool("off", source="CI")
        False
    """
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{source} must be one of: 1, true, yes, on, 0, false, no, off (got {raw!r})"
    )


def resolve_strict_versions_default(
    properties: PropertySource,
    environ: Mapping[str, str] | None = None,
) -> ResolvedDefault[bool]:
    """Resolve the default for strict toolchain versions.

    The ``strictMultireleaseVersions`` property wins over the ``CI``
    environment variable; both absent means lenient.

    Args:
        properties: Build property source.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Resolved value and source metadata.
    """
    raw = properties.get(STRICT_VERSIONS_PROPERTY)
    if raw is not None and raw.strip():
        return ResolvedDefault(
            name=STRICT_VERSIONS_PROPERTY,
            value=parse_bool(raw, source=STRICT_VERSIONS_PROPERTY),
            source="property",
            raw_value=raw,
        )
    env = os.environ if environ is None else environ
    raw_env = env.get(CI_ENV_VAR, "")
    if raw_env.strip():
        return ResolvedDefault(
            name=CI_ENV_VAR,
            value=parse_bool(raw_env, source=CI_ENV_VAR),
            source="env",
            raw_value=raw_env,
        )
    return ResolvedDefault(name=STRICT_VERSIONS_PROPERTY, value=False, source="built-in")


def force_sign_requested(properties: PropertySource) -> bool:
    """Return whether ``forceSign`` is present; its value is ignored."""
    return FORCE_SIGN_PROPERTY in properties


def credential_property_names(repository_name: str) -> tuple[str, str]:
    """Return the username and password property names for a repository.

    Example:
        >>> credential_property_names("sonatype")
        ('sonatypeUsername', 'sonatypePassword')
    """
    return f"{repository_name}Username", f"{repository_name}Password"


def repository_credentials(
    properties: PropertySource, repository_name: str
) -> Credentials | None:
    """Look up credentials for a repository, or ``None`` unless both are set."""
    username_key, password_key = credential_property_names(repository_name)
    username = properties.get(username_key)
    password = properties.get(password_key)
    if username is None or password is None:
        return None
    return Credentials(username=username, password=password)


def describe_resolved_default(resolved: ResolvedDefault[object]) -> str:
    """Describe where a resolved default came from for diagnostics."""
    if resolved.source == "built-in":
        return f"{resolved.name}={resolved.value!r} (built-in default)"
    kind = "environment variable" if resolved.source == "env" else "property"
    return f"{resolved.name}={resolved.value!r} (from {kind} {resolved.raw_value!r})"
