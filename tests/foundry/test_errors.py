from foundry import errors


def test_failure_codes() -> None:
    assert errors.ConfigurationError("bad").code == "validation_failed"
    assert errors.DependencyMissingError("no git").code == "dependency_missing"
    assert errors.DirtyRepositoryError([" M a"]).code == "policy_blocked"


def test_failures_share_a_base_class() -> None:
    for failure in (
        errors.ConfigurationError("bad"),
        errors.DependencyMissingError("no git"),
        errors.DirtyRepositoryError([]),
    ):
        assert isinstance(failure, errors.FoundryFailure)


def test_dirty_repository_lists_changes() -> None:
    failure = errors.DirtyRepositoryError([" M build.gradle", "?? notes.txt"])

    assert failure.changes == (" M build.gradle", "?? notes.txt")
    assert str(failure) == (
        "repository has uncommitted changes:\n   M build.gradle\n  ?? notes.txt"
    )
    assert failure.recovery_hint == "commit or stash local changes before publishing"


def test_recovery_hint_is_optional() -> None:
    failure = errors.ConfigurationError("bad value", recovery_hint="use true or false")

    assert str(failure) == "bad value"
    assert failure.recovery_hint == "use true or false"
    assert errors.ConfigurationError("bad value").recovery_hint is None
