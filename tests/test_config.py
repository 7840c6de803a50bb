from __future__ import annotations

from pathlib import Path

import pytest

from toolchain_release.config import ConfigError, ReleaseConfig, load_config


def test_defaults_follow_workflow_env() -> None:
    config = load_config(env={})

    assert config.build.args == ["--incremental", "--verbose"]
    assert config.pack.level == 5
    assert config.pack.digest_file == "sha256sum.txt"
    assert config.pack.archive_name == "rust9x.tar.xz"
    assert config.cache.key == "Windows-build"
    assert config.cache.max_age_minutes == 60
    assert config.trigger_patterns == ["*.*"]
    assert config.release.prerelease_keywords == ["alpha", "beta", "rc"]
    assert config.release.repo is None


def test_yaml_overrides_and_environment(tmp_path: Path) -> None:
    path = tmp_path / "toolchain-release.yml"
    path.write_text(
        """
build:
  args: --verbose
pack:
  format: 7z
  level: 9
release:
  installation_url: https://example.invalid/install
""".strip()
        + "\n",
        encoding="utf-8",
    )

    config = load_config(path, env={"GITHUB_REPOSITORY": "octo/rust9x", "GITHUB_SERVER_URL": "https://ghe.example"})

    assert config.build.args == ["--verbose"]
    assert config.pack.archive_name == "rust9x.7z"
    assert config.pack.level == 9
    assert config.release.repo == "octo/rust9x"
    assert config.release.server_url == "https://ghe.example"


def test_explicit_repo_wins_over_environment() -> None:
    config = ReleaseConfig.model_validate({"release": {"repo": "me/fork"}})
    assert config.apply_environment({"GITHUB_REPOSITORY": "octo/rust9x"}).release.repo == "me/fork"


def test_unknown_keys_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("pack:\n  codec: zstd\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path, env={})


def test_level_out_of_range_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("pack:\n  level: 12\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path, env={})


def test_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yml", env={})


def test_non_mapping_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path, env={})
