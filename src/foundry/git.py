"""Read-only git metadata for build policy decisions.

Every query is fail-soft: a missing repository, a repository without
commits, a missing ``git`` executable or an unexpected git failure all
produce an absent result (``None`` or an empty list) plus a log line.

Repository discovery is memoized per ``(project directory, label)`` in a
process-wide ``GitSessionCache`` so that concurrently configured modules
sharing a checkout open it only once.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from . import exec as exec_util
from . import log
from .errors import DependencyMissingError, DirtyRepositoryError

HEAD = "HEAD"
_HEADS_PREFIX = "refs/heads/"
_TAGS_PREFIX = "refs/tags/"
_PEELED_SUFFIX = "^{}"
_SHORT_HASH_LENGTH = 7

_require_clean_log = log.scoped("requireClean")


@dataclass(frozen=True)
class CommitId:
    """A full commit object id."""

    hex: str

    @property
    def short(self) -> str:
        return self.hex[:_SHORT_HASH_LENGTH]

    def __str__(self) -> str:
        return self.hex


def shorten_ref_name(name: str) -> str:
    """Strip the ``refs/heads/``, ``refs/tags/`` or ``refs/remotes/`` prefix.

    Example:
        >>> shorten_ref_name("refs/heads/main")
        'main'
        >>> shorten_ref_name("refs/tags/v1.0.0")
        'v1.0.0'
    """
    for prefix in (_HEADS_PREFIX, _TAGS_PREFIX, "refs/remotes/"):
        if name.startswith(prefix):
            return name[len(prefix) :]
    return name


@dataclass(frozen=True)
class BranchRef:
    """The branch ``HEAD`` points at, as a full ref name."""

    name: str

    @property
    def short_name(self) -> str:
        return shorten_ref_name(self.name)


@dataclass(frozen=True)
class TagRef:
    """A tag ref.

    Attributes:
        name: Full ref name (``refs/tags/...``).
        object_id: Object the ref points at (a tag object when annotated).
        peeled_id: Object reached after peeling annotated tags.
    """

    name: str
    object_id: str
    peeled_id: str

    @property
    def short_name(self) -> str:
        return shorten_ref_name(self.name)

    @property
    def annotated(self) -> bool:
        return self.object_id != self.peeled_id


def parse_show_ref_tags(output: str) -> list[TagRef]:
    """Parse ``git show-ref --tags --dereference`` output.

    Peeled lines (``<ref>^{}``) replace the object id the tag resolves to.
    Order follows git's enumeration order.

    Raises:
        ValueError: If a line is malformed.

    Example:
        >>> tags = parse_show_ref_tags(
        ...     "aaa refs/tags/v1\\nbbb refs/tags/v2\\nccc refs/tags/v2^{}\\n"
        ... )
        >>> [(tag.short_name, tag.peeled_id) for tag in tags]
        [('v1', 'aaa'), ('v2', 'ccc')]
    """
    object_ids: dict[str, str] = {}
    peeled: dict[str, str] = {}
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        parts = stripped.split()
        if len(parts) != 2:
            raise ValueError(f"unexpected show-ref line: {line!r}")
        object_id, ref = parts
        if ref.endswith(_PEELED_SUFFIX):
            peeled[ref[: -len(_PEELED_SUFFIX)]] = object_id
        else:
            object_ids[ref] = object_id
    return [
        TagRef(name=ref, object_id=object_id, peeled_id=peeled.get(ref, object_id))
        for ref, object_id in object_ids.items()
    ]


class GitRepository:
    """Handle to an on-disk repository, queried through the ``git`` CLI."""

    def __init__(
        self,
        root: Path,
        *,
        label: str,
        git_path: str | None = None,
        runner: exec_util.CommandRunner | None = None,
    ) -> None:
        self.root = root
        self.label = label
        self._git = (git_path or "").strip() or "git"
        self._runner = runner
        self._log = log.scoped(f"git ({label})")

    def __repr__(self) -> str:
        return f"GitRepository(root={str(self.root)!r}, label={self.label!r})"

    def _run(self, args: list[str]) -> exec_util.CommandResult | None:
        result = exec_util.run_with_runner(
            exec_util.CommandRequest(argv=(self._git, "-C", str(self.root), *args)),
            runner=self._runner,
        )
        if result is None:
            self._log.error(f"unable to run {self._git}")
        return result

    def commit(self) -> CommitId | None:
        """Return the commit ``HEAD`` resolves to, or ``None`` without commits."""
        result = self._run(["rev-parse", "--verify", "--quiet", f"{HEAD}^{{commit}}"])
        if result is None:
            return None
        if not result.ok:
            if result.stderr.strip():
                self._log.error(f"failed to query the current HEAD commit: {result.detail()}")
            return None
        value = result.stdout.strip()
        return CommitId(value) if value else None

    def branch(self) -> BranchRef | None:
        """Return the checked-out branch, or ``None`` when ``HEAD`` is detached."""
        result = self._run(["symbolic-ref", "--quiet", HEAD])
        if result is None:
            return None
        if not result.ok:
            # exit status 1 without output means a detached HEAD
            if result.stderr.strip():
                self._log.error(f"failed to query the current branch: {result.detail()}")
            return None
        value = result.stdout.strip()
        return BranchRef(value) if value else None

    def branch_name(self) -> str | None:
        branch = self.branch()
        return branch.short_name if branch else None

    def tags(self) -> list[TagRef]:
        """Return every tag, or an empty list when the query fails."""
        result = self._run(["show-ref", "--tags", "--dereference"])
        if result is None:
            return []
        if not result.ok:
            # show-ref exits 1 with no output when there are no tags
            if result.returncode != 1 or result.stderr.strip() or result.stdout.strip():
                self._log.error(f"failed to query the list of tags: {result.detail()}")
            return []
        try:
            return parse_show_ref_tags(result.stdout)
        except ValueError as exc:
            self._log.error(f"failed to parse the list of tags: {exc}")
            return []

    def head_tag(self) -> TagRef | None:
        """Return the first tag whose peeled commit is ``HEAD``.

        When several tags point at ``HEAD`` the first in git's enumeration
        order wins; no lexical or chronological order is promised.
        """
        head = self.commit()
        if head is None:
            return None
        for tag in self.tags():
            if tag.peeled_id == head.hex:
                return tag
        return None

    def describe(self) -> str | None:
        """Return ``git describe --tags --long`` output.

        ``None`` when there are no commits yet or no tag is reachable.
        """
        if self.commit() is None:
            self._log.debug("no commits yet; skipping describe")
            return None
        result = self._run(["describe", "--tags", "--long"])
        if result is None:
            return None
        if not result.ok:
            stderr = result.stderr.lower()
            if "no names found" in stderr or "no tags can describe" in stderr:
                self._log.debug("no tags reachable from HEAD")
            else:
                self._log.error(f"failed to query a 'describe' result: {result.detail()}")
            return None
        return result.stdout.strip() or None

    def status(self) -> list[str] | None:
        """Return ``git status --porcelain`` lines, or ``None`` on error."""
        result = self._run(["status", "--porcelain"])
        if result is None:
            return None
        if not result.ok:
            self._log.error(f"failed to query working tree status: {result.detail()}")
            return None
        return [line for line in result.stdout.splitlines() if line.strip()]

    def is_clean(self) -> bool | None:
        """``True`` if clean, ``False`` if dirty, ``None`` on error."""
        lines = self.status()
        if lines is None:
            return None
        return not lines


def discover_repository(
    start: Path,
    *,
    label: str,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> GitRepository | None:
    """Find the repository containing ``start``.

    Returns:
        A ``GitRepository`` rooted at the work tree top level, or ``None``.
    """
    git = (git_path or "").strip() or "git"
    scope = log.scoped(f"git ({label})")
    result = exec_util.run_with_runner(
        exec_util.CommandRequest(argv=(git, "-C", str(start), "rev-parse", "--show-toplevel")),
        runner=runner,
    )
    if result is None:
        scope.warning(f"unable to run {git}; git metadata disabled")
        return None
    if not result.ok:
        scope.info(f"no git repository found at or above {start}")
        return None
    top_level = result.stdout.strip()
    if not top_level:
        return None
    return GitRepository(Path(top_level), label=label, git_path=git_path, runner=runner)


def _cache_key(project_dir: Path, label: str) -> tuple[str, str]:
    try:
        return str(project_dir.resolve()), label
    except OSError:
        return str(project_dir), label


class GitSessionCache:
    """Compute-once cache of repository handles per ``(directory, label)``.

    Concurrent first access for a key performs discovery once; other callers
    block on the key's lock and reuse the result. A missing repository is
    cached too and is not rediscovered.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._sessions: dict[tuple[str, str], GitRepository | None] = {}

    def _key_lock(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    def get(
        self,
        project_dir: Path,
        label: str,
        *,
        git_path: str | None = None,
        runner: exec_util.CommandRunner | None = None,
    ) -> GitRepository | None:
        key = _cache_key(project_dir, label)
        with self._key_lock(key):
            if key in self._sessions:
                return self._sessions[key]
            repository = discover_repository(
                project_dir, label=label, git_path=git_path, runner=runner
            )
            self._sessions[key] = repository
            return repository

    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)

    def clear(self) -> None:
        with self._guard:
            self._sessions.clear()
            self._locks.clear()


_SESSIONS = GitSessionCache()


def session_cache() -> GitSessionCache:
    return _SESSIONS


def open_repository(
    project_dir: Path,
    label: str,
    *,
    git_path: str | None = None,
    runner: exec_util.CommandRunner | None = None,
) -> GitRepository | None:
    """Open (once per process) the repository for a project directory."""
    return _SESSIONS.get(project_dir, label, git_path=git_path, runner=runner)


class GitMetadata:
    """Lazy git metadata for one project.

    The repository is looked up on first use through the session cache; all
    queries return absent results when no repository exists.
    """

    def __init__(
        self,
        project_dir: Path,
        label: str,
        *,
        cache: GitSessionCache | None = None,
        git_path: str | None = None,
        runner: exec_util.CommandRunner | None = None,
    ) -> None:
        self.project_dir = project_dir
        self.label = label
        self._cache = cache or _SESSIONS
        self._git_path = git_path
        self._runner = runner

    def repository(self) -> GitRepository | None:
        return self._cache.get(
            self.project_dir, self.label, git_path=self._git_path, runner=self._runner
        )

    def commit(self) -> CommitId | None:
        repository = self.repository()
        return repository.commit() if repository else None

    def branch(self) -> BranchRef | None:
        repository = self.repository()
        return repository.branch() if repository else None

    def branch_name(self) -> str | None:
        repository = self.repository()
        return repository.branch_name() if repository else None

    def tags(self) -> list[TagRef]:
        repository = self.repository()
        return repository.tags() if repository else []

    def head_tag(self) -> TagRef | None:
        repository = self.repository()
        return repository.head_tag() if repository else None

    def describe(self) -> str | None:
        repository = self.repository()
        return repository.describe() if repository else None


def manifest_attributes(metadata: GitMetadata) -> dict[str, str]:
    """Return jar manifest attributes describing the checked-out source.

    Absent values are omitted rather than written empty.
    """
    attributes: dict[str, str] = {}
    commit = metadata.commit()
    if commit is not None:
        attributes["Git-Commit"] = commit.hex
    branch = metadata.branch_name()
    if branch:
        attributes["Git-Branch"] = branch
    return attributes


def require_clean(repository: GitRepository | None) -> None:
    """Fail when the working tree has uncommitted changes.

    Projects outside a git repository have nothing to check.

    Raises:
        DirtyRepositoryError: If ``git status`` reports changes.
        DependencyMissingError: If the status cannot be determined.
    """
    if repository is None:
        _require_clean_log.info("no git repository; skipping clean check")
        return
    changes = repository.status()
    if changes is None:
        raise DependencyMissingError(
            f"unable to determine working tree status for {repository.root}",
            recovery_hint="ensure git is installed and the repository is readable",
        )
    if changes:
        raise DirtyRepositoryError(changes)
