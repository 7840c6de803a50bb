from __future__ import annotations

from pathlib import Path

import pytest

from toolchain_release import secrets


def test_env_resolver(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RELEASE_TOKEN", "abc")
    info = secrets.resolve_secret_info("RELEASE_TOKEN")
    assert info.value == "abc"
    assert info.resolver == "env"


def test_dotenv_resolver_used_after_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RELEASE_TOKEN", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("RELEASE_TOKEN=from-file\n", encoding="utf-8")
    secrets.use_dotenv(env_file)

    info = secrets.resolve_secret_info("RELEASE_TOKEN")

    assert info.value == "from-file"
    assert info.resolver == "dotenv"
    assert [attempt.success for attempt in info.attempts] == [False, True]


def test_missing_secret_lists_attempts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RELEASE_TOKEN", raising=False)
    secrets.use_dotenv(tmp_path / ".env")

    info = secrets.resolve_secret_info("RELEASE_TOKEN")

    assert info.value is None
    summary = info.describe_attempts()
    assert "env (missing)" in summary
    assert f"dotenv@{tmp_path / '.env'} (missing)" in summary
