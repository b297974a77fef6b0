"""Publish-repository eligibility and signing requirements.

Repositories are declared into a ``RepositoryRegistry`` at any point while
builds are being configured. ``PublishTargets`` subscribes to the registry
and decides each repository as soon as it becomes visible, using the
version state and credentials at that moment. A release build with
credentials for both a releases-only and a snapshots-only repository
publishes to the first and skips the second, logging both decisions.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from . import log
from .errors import ConfigurationError
from .properties import (
    Credentials,
    PropertySource,
    force_sign_requested,
    repository_credentials,
)
from .versioning import VersionState, classify

REQUIRE_CLEAN_TASK = "requireClean"
MAVEN_LOCAL_REPOSITORY = "mavenLocal"
_log = log.scoped("foundry-publishing")

VersionSupplier = Callable[[], str]
CredentialsLookup = Callable[[str], Credentials | None]
RepositoryCallback = Callable[["RemoteRepository"], None]


class RemoteRepository(BaseModel):
    """A remote Maven repository that may receive published artifacts.

    Attributes:
        name: Unique repository name; also the credential property prefix.
        url: Repository URL.
        releases: Whether release versions may be published here.
        snapshots: Whether snapshot versions may be published here.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    releases: bool = True
    snapshots: bool = True

    @field_validator("name", "url", mode="before")
    @classmethod
    def normalize_required(cls, value: object) -> object:
        if isinstance(value, str):
            normalized = value.strip()
            if not normalized:
                raise ValueError("must not be empty")
            return normalized
        return value

    def accepts(self, state: VersionState) -> bool:
        if state is VersionState.RELEASE:
            return self.releases
        return self.snapshots


class Subscription:
    """Handle returned by ``RepositoryRegistry.on_repository_added``."""

    def __init__(self, registry: RepositoryRegistry, callback: RepositoryCallback) -> None:
        self._registry = registry
        self._callback = callback

    def cancel(self) -> None:
        self._registry._unsubscribe(self._callback)


class RepositoryRegistry:
    """Growable, observable collection of declared repositories."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._repositories: dict[str, RemoteRepository] = {}
        self._callbacks: list[RepositoryCallback] = []

    def __iter__(self) -> Iterator[RemoteRepository]:
        with self._lock:
            return iter(list(self._repositories.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._repositories)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._repositories

    def get(self, name: str) -> RemoteRepository | None:
        with self._lock:
            return self._repositories.get(name)

    def add(self, repository: RemoteRepository) -> None:
        """Declare a repository and notify every subscriber.

        Raises:
            ConfigurationError: If a repository with the same name exists, or
                the name is reserved for the local Maven repository.
        """
        if repository.name == MAVEN_LOCAL_REPOSITORY:
            raise ConfigurationError(
                f"repository name {MAVEN_LOCAL_REPOSITORY!r} is reserved for the local Maven "
                "repository",
                recovery_hint="declare remote repositories under another name",
            )
        with self._lock:
            if repository.name in self._repositories:
                raise ConfigurationError(f"duplicate repository name: {repository.name}")
            self._repositories[repository.name] = repository
            callbacks = list(self._callbacks)
        for callback in callbacks:
            callback(repository)

    def declare(self, name: str, url: str, *, releases: bool, snapshots: bool) -> None:
        try:
            repository = RemoteRepository(
                name=name, url=url, releases=releases, snapshots=snapshots
            )
        except ValidationError as exc:
            raise ConfigurationError(f"invalid repository {name!r}:\n{exc}") from exc
        self.add(repository)

    def publish_releases_to(self, name: str, url: str) -> None:
        self.declare(name, url, releases=True, snapshots=False)

    def publish_snapshots_to(self, name: str, url: str) -> None:
        self.declare(name, url, releases=False, snapshots=True)

    def publish_all_to(self, name: str, url: str) -> None:
        self.declare(name, url, releases=True, snapshots=True)

    def on_repository_added(self, callback: RepositoryCallback) -> Subscription:
        """Call ``callback`` for every repository, past and future.

        Repositories declared before the subscription are replayed
        immediately; later ones are delivered as they are added. Each
        repository is delivered to a subscriber exactly once.
        """
        with self._lock:
            existing = list(self._repositories.values())
            self._callbacks.append(callback)
        for repository in existing:
            callback(repository)
        return Subscription(self, callback)

    def _unsubscribe(self, callback: RepositoryCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


def can_publish_to(
    repository: RemoteRepository, state: VersionState, credentials_present: bool
) -> bool:
    """Decide whether the build may publish to ``repository``.

    Missing credentials always disqualify a repository; otherwise it must
    accept the current release/snapshot state. Every decision is logged at
    info level so operators can see why a repository was skipped.
    """
    name = repository.name
    if not credentials_present:
        _log.info(f"skipping repository {name} because username or password was not set")
        return False
    if state is VersionState.RELEASE and repository.releases:
        _log.info(
            f"adding repository {name} because it accepts releases "
            "and this project is in a release state"
        )
        return True
    if state is VersionState.SNAPSHOT and repository.snapshots:
        _log.info(
            f"adding repository {name} because it accepts snapshots "
            "and this project is in a snapshot state"
        )
        return True
    _log.info(f"skipping repository {name} because release/snapshot constraint not met")
    return False


@dataclass(frozen=True)
class PublishTarget:
    """A repository the current build publishes to, with its credentials."""

    repository: RemoteRepository
    credentials: Credentials


def _as_supplier(version: str | VersionSupplier) -> VersionSupplier:
    if callable(version):
        return version
    return lambda: version


class PublishTargets:
    """Reactive filter of eligible publish repositories."""

    def __init__(
        self,
        registry: RepositoryRegistry,
        *,
        version: str | VersionSupplier,
        credentials: CredentialsLookup,
    ) -> None:
        self._version = _as_supplier(version)
        self._credentials = credentials
        self._lock = threading.Lock()
        self._decisions: dict[str, bool] = {}
        self._eligible: list[PublishTarget] = []
        self._subscription = registry.on_repository_added(self._evaluate)

    @classmethod
    def from_properties(
        cls,
        registry: RepositoryRegistry,
        *,
        version: str | VersionSupplier,
        properties: PropertySource,
    ) -> PublishTargets:
        """Look up ``${name}Username``/``${name}Password`` in build properties."""
        return cls(
            registry,
            version=version,
            credentials=lambda name: repository_credentials(properties, name),
        )

    def _evaluate(self, repository: RemoteRepository) -> None:
        credentials = self._credentials(repository.name)
        state = classify(self._version())
        eligible = can_publish_to(repository, state, credentials is not None)
        with self._lock:
            self._decisions[repository.name] = eligible
            if eligible and credentials is not None:
                self._eligible.append(PublishTarget(repository=repository, credentials=credentials))

    def eligible(self) -> list[PublishTarget]:
        """Return eligible targets in the order they were decided."""
        with self._lock:
            return list(self._eligible)

    def decisions(self) -> dict[str, bool]:
        with self._lock:
            return dict(self._decisions)

    def close(self) -> None:
        """Stop evaluating repositories declared from now on."""
        self._subscription.cancel()


def must_sign(force_sign: bool, state: VersionState) -> bool:
    """Return whether artifacts must be signed.

    Example:
        >>> must_sign(False, VersionState.SNAPSHOT)
        False
        >>> must_sign(True, VersionState.SNAPSHOT)
        True
    """
    return force_sign or state is VersionState.RELEASE


class SigningGate:
    """Execution-time predicate deciding whether a sign task runs.

    Inputs are suppliers so late configuration (a version set after the
    sign task was wired) is honored.
    """

    def __init__(self, *, force_sign: Callable[[], bool], version: str | VersionSupplier) -> None:
        self._force_sign = force_sign
        self._version = _as_supplier(version)

    @classmethod
    def from_properties(
        cls, properties: PropertySource, *, version: str | VersionSupplier
    ) -> SigningGate:
        return cls(force_sign=lambda: force_sign_requested(properties), version=version)

    def should_run(self) -> bool:
        return must_sign(self._force_sign(), classify(self._version()))


@dataclass(frozen=True)
class PublishTask:
    """A Maven publish task in the host task graph.

    Attributes:
        name: Task name.
        repository: Target repository name; ``mavenLocal`` for the local
            Maven repository.
    """

    name: str
    repository: str

    @property
    def local(self) -> bool:
        return self.repository == MAVEN_LOCAL_REPOSITORY


def publish_task_dependencies(task: PublishTask) -> tuple[str, ...]:
    """Return the tasks a publish task must depend on.

    Example:
        >>> publish_task_dependencies(PublishTask("publishToMavenLocal", MAVEN_LOCAL_REPOSITORY))
        ()
        >>> publish_task_dependencies(PublishTask("publishToSonatype", "sonatype"))
        ('requireClean',)
    """
    if task.local:
        return ()
    return (REQUIRE_CLEAN_TASK,)
