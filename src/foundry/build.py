"""Per-project wiring of the toolchain, publishing and git policies."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from . import config as build_config
from . import exec as exec_util
from . import git, log
from .pom import PomMetadata, ProjectMetadata, build_pom_metadata
from .properties import PropertySource
from .publishing import PublishTargets, RepositoryRegistry, SigningGate
from .toolchain import ToolchainVersions
from .versioning import VersionState, classify

DEFAULT_VERSION = "0.0.0-SNAPSHOT"


@dataclass
class Build:
    """Configuration state for one project in a build invocation.

    ``version`` may change until execution starts; publish eligibility for
    repositories declared later, and the signing gate, read it lazily.
    """

    project_dir: Path
    name: str
    group: str | None
    version: str
    description: str | None
    toolchain: ToolchainVersions
    repositories: RepositoryRegistry
    metadata: ProjectMetadata
    git: git.GitMetadata
    publish_targets: PublishTargets = field(init=False)
    signing: SigningGate = field(init=False)

    def version_state(self) -> VersionState:
        return classify(self.version)

    def pom(self) -> PomMetadata:
        return build_pom_metadata(self.name, self.description, self.metadata)

    def manifest_attributes(self) -> dict[str, str]:
        return git.manifest_attributes(self.git)

    def require_clean(self) -> None:
        git.require_clean(self.git.repository())


def configure_build(
    project_dir: Path,
    *,
    name: str | None = None,
    properties: PropertySource | None = None,
    environ: Mapping[str, str] | None = None,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
    root: Build | None = None,
) -> Build:
    """Create the build state for a project directory.

    Reads ``foundry.json`` when present. String-keyed build properties are
    resolved here and nowhere else.

    A subproject passes its ``root`` build: the root's group, version and
    description, as they are at this moment, become the subproject's
    defaults; the subproject's own build file still overrides them.

    Raises:
        ConfigurationError: If properties or the build file are malformed.
    """
    props: PropertySource = properties if properties is not None else {}
    env = os.environ if environ is None else environ
    project_name = name or project_dir.resolve().name
    loaded = build_config.load_build_config(project_dir)

    toolchain = ToolchainVersions.from_properties(props, env)
    repositories = RepositoryRegistry()
    metadata = ProjectMetadata()
    scope = log.scoped(project_name)
    group: str | None = None
    version = DEFAULT_VERSION
    description: str | None = None
    if root is not None:
        scope.debug(f"inheriting group, version and description from {root.name}")
        group, version, description = root.group, root.version, root.description
    if loaded is not None:
        loaded.apply_toolchain(toolchain)
        metadata = loaded.project_metadata()
        group = loaded.group or group
        version = loaded.version or version
        description = loaded.description or description
    else:
        scope.debug(f"no {build_config.BUILD_CONFIG_FILENAME}; using defaults")

    build = Build(
        project_dir=project_dir,
        name=project_name,
        group=group,
        version=version,
        description=description,
        toolchain=toolchain,
        repositories=repositories,
        metadata=metadata,
        git=git.GitMetadata(project_dir, project_name, git_path=git_path, runner=runner),
    )
    build.publish_targets = PublishTargets.from_properties(
        repositories, version=lambda: build.version, properties=props
    )
    build.signing = SigningGate.from_properties(props, version=lambda: build.version)
    if loaded is not None:
        loaded.apply_repositories(repositories)
    return build
