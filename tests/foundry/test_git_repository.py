"""Git queries against real repositories created in a temp directory."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from foundry import git

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def _git(repo: Path, *args: str) -> str:
    completed = subprocess.run(
        [
            "git",
            "-c",
            "commit.gpgsign=false",
            "-c",
            "tag.gpgsign=false",
            "-C",
            str(repo),
            *args,
        ],
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout.strip()


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(name, "Foundry Tests")
    for name in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(name, "tests@example.com")
    root = tmp_path / "checkout"
    root.mkdir()
    _git(root, "init", "-q")
    _git(root, "symbolic-ref", "HEAD", "refs/heads/main")
    return root


def _commit(repo: Path, message: str) -> str:
    _git(repo, "commit", "-q", "--allow-empty", "-m", message)
    return _git(repo, "rev-parse", "HEAD")


def test_empty_repository(repo: Path) -> None:
    repository = git.discover_repository(repo, label="core")

    assert repository is not None
    assert repository.root == repo.resolve()
    assert repository.commit() is None
    assert repository.branch_name() == "main"
    assert repository.tags() == []
    assert repository.head_tag() is None
    assert repository.describe() is None
    assert repository.is_clean() is True


def test_discovery_from_subdirectory(repo: Path) -> None:
    nested = repo / "modules" / "core"
    nested.mkdir(parents=True)

    repository = git.discover_repository(nested, label="core")

    assert repository is not None
    assert repository.root == repo.resolve()


def test_tags_describe_and_head_tag(repo: Path) -> None:
    _commit(repo, "initial")
    _git(repo, "tag", "-a", "v0.1", "-m", "first")
    head = _commit(repo, "second")
    _git(repo, "tag", "-a", "v1.0", "-m", "release")
    _git(repo, "tag", "v1.0-lite")
    repository = git.discover_repository(repo, label="core")
    assert repository is not None

    assert repository.commit() == git.CommitId(head)
    names = [tag.short_name for tag in repository.tags()]
    assert names == ["v0.1", "v1.0", "v1.0-lite"]
    head_tag = repository.head_tag()
    assert head_tag is not None
    assert head_tag.short_name == "v1.0"
    assert head_tag.annotated is True
    assert head_tag.peeled_id == head
    described = repository.describe()
    assert described is not None
    assert described.startswith("v1.0")
    assert f"-0-g{head[:7]}" in described


def test_describe_counts_commits_since_tag(repo: Path) -> None:
    _commit(repo, "initial")
    _git(repo, "tag", "-a", "v2.0", "-m", "release")
    head = _commit(repo, "after")
    repository = git.discover_repository(repo, label="core")
    assert repository is not None

    assert repository.head_tag() is None
    assert repository.describe() == f"v2.0-1-g{head[:7]}"


def test_untagged_history_has_no_describe(repo: Path) -> None:
    _commit(repo, "initial")
    repository = git.discover_repository(repo, label="core")
    assert repository is not None

    assert repository.describe() is None


def test_detached_head(repo: Path) -> None:
    head = _commit(repo, "initial")
    _git(repo, "checkout", "-q", "--detach", head)
    repository = git.discover_repository(repo, label="core")
    assert repository is not None

    assert repository.branch() is None
    assert repository.commit() == git.CommitId(head)


def test_dirty_working_tree(repo: Path) -> None:
    _commit(repo, "initial")
    (repo / "scratch.txt").write_text("draft\n", encoding="utf-8")
    repository = git.discover_repository(repo, label="core")
    assert repository is not None

    assert repository.status() == ["?? scratch.txt"]
    assert repository.is_clean() is False


def test_directory_outside_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))

    metadata = git.GitMetadata(plain, "plain")

    assert metadata.repository() is None
    assert metadata.commit() is None
    assert metadata.describe() is None


def test_undecodable_tag_name(repo: Path) -> None:
    head = _commit(repo, "initial")
    tags_dir = os.fsencode(repo / ".git" / "refs" / "tags")
    with open(os.path.join(tags_dir, b"v1-\xe9"), "w", encoding="ascii") as fh:
        fh.write(f"{head}\n")
    metadata = git.GitMetadata(repo, "core")

    tags = metadata.tags()

    assert len(tags) == 1
    assert tags[0].short_name == "v1-\ufffd"
    assert tags[0].peeled_id == head
    assert metadata.head_tag() == tags[0]


def test_undecodable_branch_name(repo: Path) -> None:
    head = _commit(repo, "initial")
    git_dir = os.fsencode(repo / ".git")
    with open(os.path.join(git_dir, b"refs", b"heads", b"caf\xe9"), "w", encoding="ascii") as fh:
        fh.write(f"{head}\n")
    with open(os.path.join(git_dir, b"HEAD"), "wb") as fh:
        fh.write(b"ref: refs/heads/caf\xe9\n")
    metadata = git.GitMetadata(repo, "core")

    assert metadata.branch_name() == "caf\ufffd"
    assert metadata.commit() == git.CommitId(head)
