"""Java toolchain selection policy.

``ToolchainVersions`` collects the declarative inputs while a build is
being configured; ``freeze()`` produces an immutable ``ToolchainConfig`` that
the pure policy functions consume.

Example:
    >>> config = ToolchainConfig(target=8, minimum_toolchain=11)
    >>> actual_version(config, 17)
    17
    >>> actual_version(config.model_copy(update={"strict_versions": True}), 17)
    11
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from . import exec as exec_util
from . import log
from .errors import ConfigurationError
from .properties import PropertySource, describe_resolved_default, resolve_strict_versions_default

DEFAULT_TARGET = 8
DEFAULT_MINIMUM_TOOLCHAIN = 11

_log = log.scoped("toolchain")

_JAVA_VERSION_RE = re.compile(r"^(?P<major>\d+)(?:\.(?P<minor>\d+))?")
_JAVA_VERSION_OUTPUT_RE = re.compile(r'version\s+"(?P<version>[^"]+)"')
_RELEASE_FILE_RE = re.compile(r'^JAVA_VERSION="?(?P<version>[^"\s]+)"?\s*$', re.MULTILINE)


def _require_version(value: object, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field} must be an integer Java version (got {value!r})")
    if value <= 0:
        raise ConfigurationError(f"{field} must be a positive Java version (got {value})")
    return value


def _require_flag(value: object, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{field} must be a boolean (got {value!r})")
    return value


class ToolchainConfig(BaseModel):
    """Immutable toolchain inputs.

    Attributes:
        target: Java language version to compile for.
        minimum_toolchain: Lowest toolchain allowed to run the build.
        strict_versions: Always build with exactly the computed minimum.
        test_with: Versions to test against; always contains ``target``.
        preview_features_enabled: Pass ``--enable-preview`` to the compiler.
    """

    model_config = ConfigDict(frozen=True)

    target: int = Field(default=DEFAULT_TARGET, gt=0)
    minimum_toolchain: int = Field(default=DEFAULT_MINIMUM_TOOLCHAIN, gt=0)
    strict_versions: bool = False
    test_with: frozenset[int] = frozenset()
    preview_features_enabled: bool = False

    @model_validator(mode="before")
    @classmethod
    def include_target_in_test_with(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        target = data.get("target", DEFAULT_TARGET)
        extra = data.get("test_with") or ()
        data = dict(data)
        data["test_with"] = frozenset({*extra, target})
        return data

    @field_validator("test_with", mode="after")
    @classmethod
    def validate_test_with(cls, value: frozenset[int]) -> frozenset[int]:
        for version in value:
            if version <= 0:
                raise ValueError(f"test version must be positive (got {version})")
        return value

    @property
    def minimum_version(self) -> int:
        return max(self.minimum_toolchain, self.target)


def actual_version(config: ToolchainConfig, current_runtime_version: int) -> int:
    """Resolve the Java version the build should run with.

    The floor is ``max(minimum_toolchain, target)``. A newer local runtime is
    used opportunistically unless strict versions are requested.
    """
    minimum = config.minimum_version
    if config.strict_versions or current_runtime_version < minimum:
        return minimum
    return current_runtime_version


class ToolchainVersions:
    """Mutable toolchain configuration used while a build is being configured."""

    def __init__(self, *, strict_versions: bool = False) -> None:
        self._target = DEFAULT_TARGET
        self._minimum_toolchain = DEFAULT_MINIMUM_TOOLCHAIN
        self._strict_versions = _require_flag(strict_versions, field="strict_versions")
        self._extra_test_versions: set[int] = set()
        self._preview_features_enabled = False

    @classmethod
    def from_properties(
        cls,
        properties: PropertySource,
        environ: Mapping[str, str] | None = None,
    ) -> ToolchainVersions:
        """Create versions whose strict default follows build properties and CI."""
        resolved = resolve_strict_versions_default(properties, environ)
        _log.debug(f"strict versions {describe_resolved_default(resolved)}")
        return cls(strict_versions=resolved.value)

    @property
    def target(self) -> int:
        return self._target

    @target.setter
    def target(self, value: int) -> None:
        self._target = _require_version(value, field="target")

    @property
    def minimum_toolchain(self) -> int:
        return self._minimum_toolchain

    @minimum_toolchain.setter
    def minimum_toolchain(self, value: int) -> None:
        self._minimum_toolchain = _require_version(value, field="minimum_toolchain")

    @property
    def strict_versions(self) -> bool:
        return self._strict_versions

    @strict_versions.setter
    def strict_versions(self, value: bool) -> None:
        self._strict_versions = _require_flag(value, field="strict_versions")

    @property
    def preview_features_enabled(self) -> bool:
        return self._preview_features_enabled

    @preview_features_enabled.setter
    def preview_features_enabled(self, value: bool) -> None:
        self._preview_features_enabled = _require_flag(
            value, field="preview_features_enabled"
        )

    @property
    def test_with(self) -> frozenset[int]:
        # target is always tested, even if it changes after extras were added
        return frozenset({*self._extra_test_versions, self._target})

    def add_test_versions(self, *versions: int) -> None:
        for version in versions:
            self._extra_test_versions.add(_require_version(version, field="test_with"))

    def freeze(self) -> ToolchainConfig:
        try:
            return ToolchainConfig(
                target=self._target,
                minimum_toolchain=self._minimum_toolchain,
                strict_versions=self._strict_versions,
                test_with=self.test_with,
                preview_features_enabled=self._preview_features_enabled,
            )
        except ValidationError as exc:
            raise ConfigurationError(f"invalid toolchain configuration:\n{exc}") from exc

    def actual_version(self, runtime_version: int | None = None) -> int:
        """Resolve the build toolchain, sampling the local runtime when not given."""
        config = self.freeze()
        if runtime_version is None:
            runtime_version = detect_runtime_version()
        if runtime_version is None:
            return config.minimum_version
        return actual_version(config, runtime_version)


def java_version_number(text: str) -> int:
    """Return the feature release number of a Java version string.

    Example:
        >>> java_version_number("1.8.0_292")
        8
        >>> java_version_number("17.0.2")
        17
        >>> java_version_number("22-ea")
        22
    """
    match = _JAVA_VERSION_RE.match(text.strip())
    if not match:
        raise ConfigurationError(f"unrecognized Java version: {text!r}")
    major = int(match.group("major"))
    minor = match.group("minor")
    if major == 1 and minor is not None:
        major = int(minor)
    if major <= 0:
        raise ConfigurationError(f"unrecognized Java version: {text!r}")
    return major


def java_version_string(number: int) -> str:
    """Render a version number the way ``javac -source`` expects it.

    Example:
        >>> java_version_string(8)
        '1.8'
        >>> java_version_string(17)
        '17'
    """
    if number <= 8:
        return f"1.{number}"
    return str(number)


def _version_from_release_file(java_home: Path) -> str | None:
    release = java_home / "release"
    try:
        content = release.read_text(encoding="utf-8")
    except OSError:
        return None
    match = _RELEASE_FILE_RE.search(content)
    return match.group("version") if match else None


def _version_from_java_command(
    java_home: Path | None, runner: exec_util.CommandRunner | None
) -> str | None:
    java = str(java_home / "bin" / "java") if java_home else "java"
    result = exec_util.run_with_runner(
        exec_util.CommandRequest(argv=(java, "-version"), timeout_seconds=30.0),
        runner=runner,
    )
    if result is None or not result.ok:
        return None
    # java -version reports on stderr
    match = _JAVA_VERSION_OUTPUT_RE.search(result.stderr or result.stdout)
    return match.group("version") if match else None


def detect_runtime_version(
    environ: Mapping[str, str] | None = None,
    *,
    runner: exec_util.CommandRunner | None = None,
) -> int | None:
    """Sample the locally available Java runtime version.

    Reads ``$JAVA_HOME/release`` when present, then falls back to
    ``java -version``. Returns ``None`` when no runtime can be found.
    """
    env = os.environ if environ is None else environ
    raw_home = env.get("JAVA_HOME", "").strip()
    java_home = Path(raw_home) if raw_home else None
    raw = _version_from_release_file(java_home) if java_home else None
    if raw is None:
        raw = _version_from_java_command(java_home, runner)
    if raw is None:
        _log.warning("no local Java runtime found; using the minimum toolchain")
        return None
    try:
        return java_version_number(raw)
    except ConfigurationError:
        _log.warning(f"ignoring unrecognized local Java version {raw!r}")
        return None


def compiler_args(config: ToolchainConfig, toolchain_version: int) -> list[str]:
    """Return javac flags that compile for ``config.target`` on the given toolchain.

    Example:
        >>> compiler_args(ToolchainConfig(target=8), 17)
        ['--release', '8']
        >>> compiler_args(ToolchainConfig(target=8), 8)
        ['-source', '1.8', '-target', '1.8']
    """
    if toolchain_version >= 9:
        args = ["--release", str(config.target)]
    else:
        rendered = java_version_string(config.target)
        args = ["-source", rendered, "-target", rendered]
    if config.preview_features_enabled:
        args.append("--enable-preview")
    return args


@dataclass(frozen=True)
class ToolchainTestRun:
    """An extra test run on a toolchain other than the build toolchain."""

    version: int
    task_name: str


def extra_test_runs(config: ToolchainConfig, actual: int) -> list[ToolchainTestRun]:
    """Return extra test runs, ordered by version.

    The version the main build runs on is covered by the regular test task
    and is not repeated.

    Example:
        >>> runs = extra_test_runs(ToolchainConfig(target=8, test_with={11, 17}), 17)
        >>> [run.task_name for run in runs]
        ['testJava8', 'testJava11']
    """
    return [
        ToolchainTestRun(version=version, task_name=f"testJava{version}")
        for version in sorted(config.test_with)
        if version != actual
    ]
