"""Release/snapshot classification of project version strings."""

from __future__ import annotations

from enum import Enum

SNAPSHOT_SUFFIX = "-SNAPSHOT"


class VersionState(str, Enum):
    RELEASE = "release"
    SNAPSHOT = "snapshot"


def classify(version: str) -> VersionState:
    """Classify a version string as a release or a snapshot.

    Only the Maven ``-SNAPSHOT`` suffix matters; the match is case-sensitive
    and nothing else about the version is parsed or validated.

    Example:
        >>> classify("1.2.3-SNAPSHOT")
        <VersionState.SNAPSHOT: 'snapshot'>
        >>> classify("1.2.3")
        <VersionState.RELEASE: 'release'>
    """
    if version.endswith(SNAPSHOT_SUFFIX):
        return VersionState.SNAPSHOT
    return VersionState.RELEASE


def is_snapshot(version: str) -> bool:
    return classify(version) is VersionState.SNAPSHOT


def is_release(version: str) -> bool:
    return classify(version) is VersionState.RELEASE
