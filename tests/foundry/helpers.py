from __future__ import annotations

from pathlib import Path

from foundry import exec as exec_util

REPO_ROOT = Path("/work/project")
HEAD_SHA = "a" * 40
OTHER_SHA = "b" * 40
TAG_OBJECT_SHA = "c" * 40


def result(
    stdout: str = "", *, returncode: int = 0, stderr: str = ""
) -> exec_util.CommandResult:
    return exec_util.CommandResult(
        argv=(), returncode=returncode, stdout=stdout, stderr=stderr
    )


class FakeGitRunner:
    """Command runner answering git subcommands from a canned table.

    Keys are the argv tail after ``git -C <dir>``; unknown commands fail
    like git does for a bad invocation.
    """

    def __init__(
        self,
        responses: dict[tuple[str, ...], exec_util.CommandResult] | None = None,
        *,
        missing_git: bool = False,
    ) -> None:
        self.responses = dict(responses or {})
        self.missing_git = missing_git
        self.calls: list[tuple[str, ...]] = []

    def run(self, request: exec_util.CommandRequest) -> exec_util.CommandResult | None:
        self.calls.append(request.argv)
        if self.missing_git:
            return None
        tail = tuple(request.argv[3:])
        response = self.responses.get(tail)
        if response is None:
            return result(returncode=129, stderr=f"unexpected git call: {' '.join(tail)}")
        return exec_util.CommandResult(
            argv=request.argv,
            returncode=response.returncode,
            stdout=response.stdout,
            stderr=response.stderr,
        )

    def count(self, *tail: str) -> int:
        return sum(1 for argv in self.calls if tuple(argv[3:]) == tail)


def repository_responses(
    *,
    head: str | None = HEAD_SHA,
    branch: str | None = "refs/heads/main",
    show_ref: str | None = None,
    describe: str | None = None,
    status: str = "",
) -> dict[tuple[str, ...], exec_util.CommandResult]:
    """Build responses for a repository rooted at ``REPO_ROOT``."""
    responses = {
        ("rev-parse", "--show-toplevel"): result(f"{REPO_ROOT}\n"),
        ("rev-parse", "--verify", "--quiet", "HEAD^{commit}"): (
            result(f"{head}\n") if head else result(returncode=1)
        ),
        ("symbolic-ref", "--quiet", "HEAD"): (
            result(f"{branch}\n") if branch else result(returncode=1)
        ),
        ("show-ref", "--tags", "--dereference"): (
            result(show_ref) if show_ref else result(returncode=1)
        ),
        ("status", "--porcelain"): result(status),
    }
    if describe is not None:
        responses[("describe", "--tags", "--long")] = result(f"{describe}\n")
    else:
        responses[("describe", "--tags", "--long")] = result(
            returncode=128, stderr="fatal: No names found, cannot describe anything."
        )
    return responses
