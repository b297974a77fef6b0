import json
from pathlib import Path

import pytest

from foundry import config
from foundry.errors import ConfigurationError
from foundry.publishing import RepositoryRegistry
from foundry.toolchain import ToolchainVersions


def _write(project_dir: Path, payload: object) -> Path:
    path = project_dir / "foundry.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_missing_file_is_none(tmp_path: Path) -> None:
    assert config.load_build_config(tmp_path) is None


def test_load_full_config(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {
            "version": "2.1.0-SNAPSHOT",
            "description": "Widgets",
            "toolchain": {
                "target": 17,
                "minimum_toolchain": 17,
                "strict_versions": True,
                "test_with": [21],
                "preview_features_enabled": True,
            },
            "repositories": [
                {"name": "releases", "url": "https://repo.example.com/r", "snapshots": False},
                {"name": "snapshots", "url": "https://repo.example.com/s", "releases": False},
            ],
            "metadata": {"github": "example/widgets", "license": "MIT"},
        },
    )

    loaded = config.load_build_config(tmp_path)

    assert loaded is not None
    assert loaded.version == "2.1.0-SNAPSHOT"
    versions = ToolchainVersions()
    loaded.apply_toolchain(versions)
    frozen = versions.freeze()
    assert frozen.target == 17
    assert frozen.strict_versions is True
    assert frozen.preview_features_enabled is True
    assert frozen.test_with == frozenset({17, 21})

    registry = RepositoryRegistry()
    loaded.apply_repositories(registry)
    assert registry.get("releases").snapshots is False
    assert registry.get("snapshots").releases is False

    metadata = loaded.project_metadata()
    assert metadata.scm.url == "https://github.com/example/widgets"
    assert metadata.license.spdx == "MIT"


def test_partial_toolchain_keeps_defaults() -> None:
    loaded = config.parse_build_config({"toolchain": {"minimum_toolchain": 17}})
    versions = ToolchainVersions(strict_versions=True)

    loaded.apply_toolchain(versions)

    assert versions.target == 8
    assert versions.minimum_toolchain == 17
    assert versions.strict_versions is True


def test_invalid_json_is_a_configuration_error(tmp_path: Path) -> None:
    (tmp_path / "foundry.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError) as excinfo:
        config.load_build_config(tmp_path)

    assert "invalid JSON" in str(excinfo.value)


def test_non_object_payload_is_rejected(tmp_path: Path) -> None:
    _write(tmp_path, ["not", "an", "object"])

    with pytest.raises(ConfigurationError):
        config.load_build_config(tmp_path)


@pytest.mark.parametrize(
    "payload",
    [
        {"toolchain": {"target": 0}},
        {"toolchain": {"target": "seventeen"}},
        {"toolchain": {"jdk": 17}},
        {"repositories": [{"name": "central"}]},
        {"metadata": {"github": "no-slash"}},
        {"unknown": True},
    ],
)
def test_invalid_payloads(tmp_path: Path, payload: dict) -> None:
    path = _write(tmp_path, payload)

    with pytest.raises(ConfigurationError) as excinfo:
        config.load_build_config(tmp_path)

    assert str(path) in str(excinfo.value)


def test_github_and_gitlab_are_exclusive() -> None:
    loaded = config.parse_build_config(
        {"metadata": {"github": "example/widgets", "gitlab": "example/widgets"}}
    )

    with pytest.raises(ConfigurationError):
        loaded.project_metadata()


def test_unknown_license_has_recovery_hint() -> None:
    loaded = config.parse_build_config({"metadata": {"license": "WTFPL"}})

    with pytest.raises(ConfigurationError) as excinfo:
        loaded.project_metadata()

    assert "Apache-2.0" in (excinfo.value.recovery_hint or "")


def test_gitlab_slug_is_normalized() -> None:
    loaded = config.parse_build_config({"metadata": {"gitlab": "/group/tool/", "ci": False}})

    metadata = loaded.project_metadata()

    assert metadata.scm.url == "https://gitlab.com/group/tool"
    assert metadata.ci is None


def test_duplicate_repository_in_file(tmp_path: Path) -> None:
    _write(
        tmp_path,
        {
            "repositories": [
                {"name": "central", "url": "https://repo.example.com/a"},
                {"name": "central", "url": "https://repo.example.com/b"},
            ]
        },
    )
    loaded = config.load_build_config(tmp_path)

    with pytest.raises(ConfigurationError):
        loaded.apply_repositories(RepositoryRegistry())
