"""Declarative build configuration files.

A project may keep its build policy in ``foundry.json`` next to the build
script. The file is validated with Pydantic models and then applied to the
mutable configuration objects (``ToolchainVersions``, ``RepositoryRegistry``).

Example:
    >>> config = parse_build_config({"version": "1.0.0-SNAPSHOT", "toolchain": {"target": 17}})
    >>> config.toolchain.target
    17
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .pom import LICENSE_PRESETS, ProjectMetadata, license_for_spdx
from .publishing import RepositoryRegistry
from .toolchain import ToolchainVersions

BUILD_CONFIG_FILENAME = "foundry.json"


class ToolchainSection(BaseModel):
    """Toolchain overrides; unset fields keep their defaults."""

    model_config = ConfigDict(extra="forbid")

    target: int | None = Field(default=None, gt=0)
    minimum_toolchain: int | None = Field(default=None, gt=0)
    strict_versions: bool | None = None
    test_with: list[int] = Field(default_factory=list)
    preview_features_enabled: bool | None = None


class RepositorySection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    url: str
    releases: bool = True
    snapshots: bool = True


class MetadataSection(BaseModel):
    """Project metadata presets.

    Attributes:
        github: ``owner/repo`` on GitHub.
        gitlab: ``owner/repo`` on GitLab.
        license: SPDX identifier of a preset license.
        ci: Whether to record the forge's CI system.
    """

    model_config = ConfigDict(extra="forbid")

    github: str | None = None
    gitlab: str | None = None
    license: str | None = None
    ci: bool = True

    @field_validator("github", "gitlab", mode="after")
    @classmethod
    def validate_slug(cls, value: str | None) -> str | None:
        if value is None:
            return None
        parts = value.strip().strip("/").split("/")
        if len(parts) != 2 or not all(parts):
            raise ValueError(f"expected 'owner/repo' (got {value!r})")
        return "/".join(parts)


class BuildConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    group: str | None = None
    version: str | None = None
    description: str | None = None
    toolchain: ToolchainSection = Field(default_factory=ToolchainSection)
    repositories: list[RepositorySection] = Field(default_factory=list)
    metadata: MetadataSection = Field(default_factory=MetadataSection)

    def apply_toolchain(self, versions: ToolchainVersions) -> None:
        section = self.toolchain
        if section.target is not None:
            versions.target = section.target
        if section.minimum_toolchain is not None:
            versions.minimum_toolchain = section.minimum_toolchain
        if section.strict_versions is not None:
            versions.strict_versions = section.strict_versions
        if section.preview_features_enabled is not None:
            versions.preview_features_enabled = section.preview_features_enabled
        versions.add_test_versions(*section.test_with)

    def apply_repositories(self, registry: RepositoryRegistry) -> None:
        for repository in self.repositories:
            registry.declare(
                repository.name,
                repository.url,
                releases=repository.releases,
                snapshots=repository.snapshots,
            )

    def project_metadata(self) -> ProjectMetadata:
        section = self.metadata
        if section.github and section.gitlab:
            raise ConfigurationError("metadata may set github or gitlab, not both")
        if section.github:
            owner, repo = section.github.split("/")
            metadata = ProjectMetadata.github(owner, repo, ci=section.ci)
        elif section.gitlab:
            owner, repo = section.gitlab.split("/")
            metadata = ProjectMetadata.gitlab(owner, repo, ci=section.ci)
        else:
            metadata = ProjectMetadata()
        if section.license:
            try:
                metadata = metadata.with_license(license_for_spdx(section.license))
            except KeyError as exc:
                raise ConfigurationError(
                    f"unknown license identifier: {section.license}",
                    recovery_hint="use one of: " + ", ".join(LICENSE_PRESETS),
                ) from exc
        return metadata


def build_config_path(project_dir: Path) -> Path:
    return project_dir / BUILD_CONFIG_FILENAME


def load_json(path: Path) -> dict | None:
    """Load a JSON object from disk, or ``None`` if the file does not exist.

    Raises:
        ConfigurationError: If the file is not valid JSON or not an object.
    """
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"invalid JSON in {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"expected a JSON object in {path}")
    return payload


def parse_build_config(payload: dict, source: Path | str | None = None) -> BuildConfig:
    """Validate a build config payload."""
    try:
        return BuildConfig.model_validate(payload)
    except ValidationError as exc:
        location = f" at {source}" if source else ""
        raise ConfigurationError(f"invalid build config{location}:\n{exc}") from exc


def load_build_config(project_dir: Path) -> BuildConfig | None:
    """Load ``foundry.json`` from a project directory when it exists."""
    path = build_config_path(project_dir)
    payload = load_json(path)
    if payload is None:
        return None
    return parse_build_config(payload, source=path)
