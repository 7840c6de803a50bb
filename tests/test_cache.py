from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from toolchain_release.cache import (
    CacheError,
    DirectoryCacheStore,
    GitHubCachePurger,
    remove_host_link,
)
from toolchain_release.github import GitHubClient

from .conftest import FakeSession


def _populate(build_dir: Path) -> None:
    (build_dir / "stage0" / "bin").mkdir(parents=True)
    (build_dir / "stage0" / "bin" / "rustc").write_text("binary", encoding="utf-8")
    (build_dir / "config.stamp").write_text("stamp", encoding="utf-8")


def test_restore_miss_is_not_an_error(tmp_path: Path) -> None:
    store = DirectoryCacheStore(tmp_path / "cache")
    result = store.restore("Windows-build", tmp_path / "build")
    assert result.hit is False
    assert not (tmp_path / "build").exists()


def test_save_then_restore_replaces_directory(tmp_path: Path) -> None:
    store = DirectoryCacheStore(tmp_path / "cache")
    build_dir = tmp_path / "build"
    _populate(build_dir)
    entry = store.save("Windows-build", build_dir)
    assert entry.size > 0

    (build_dir / "stale.txt").write_text("stale", encoding="utf-8")
    result = store.restore("Windows-build", build_dir)

    assert result.hit is True
    assert (build_dir / "stage0" / "bin" / "rustc").read_text(encoding="utf-8") == "binary"
    assert not (build_dir / "stale.txt").exists()


def test_save_missing_directory_raises(tmp_path: Path) -> None:
    store = DirectoryCacheStore(tmp_path / "cache")
    with pytest.raises(CacheError):
        store.save("Windows-build", tmp_path / "missing")


def test_index_entry_without_blob_is_a_miss(tmp_path: Path) -> None:
    store = DirectoryCacheStore(tmp_path / "cache")
    build_dir = tmp_path / "build"
    _populate(build_dir)
    entry = store.save("Windows-build", build_dir)
    (store.root / entry.blob).unlink()

    assert store.restore("Windows-build", tmp_path / "other").hit is False
    assert "Windows-build" not in store.load_index().entries


def test_corrupt_index_raises_cache_error(tmp_path: Path) -> None:
    store = DirectoryCacheStore(tmp_path / "cache")
    store.root.mkdir()
    store.index_path.write_text("{not json", encoding="utf-8")

    with pytest.raises(CacheError, match="Invalid cache index"):
        store.restore("Windows-build", tmp_path / "build")


def test_purge_removes_entries_older_than_threshold(tmp_path: Path) -> None:
    store = DirectoryCacheStore(tmp_path / "cache")
    build_dir = tmp_path / "build"
    _populate(build_dir)
    old = store.save("old-key", build_dir)
    store.save("fresh-key", build_dir)

    later = datetime.now(timezone.utc) + timedelta(minutes=30)
    index = store.load_index()
    index.entries["old-key"] = old.model_copy(update={"last_accessed_at": later - timedelta(minutes=90)})
    store.index_path.write_text(index.model_dump_json(), encoding="utf-8")

    removed = store.purge(60, now=later)

    assert [entry.key for entry in removed] == ["old-key"]
    assert set(store.load_index().entries) == {"fresh-key"}


def test_github_purger_deletes_stale_caches(github_client: GitHubClient, fake_session: FakeSession) -> None:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    fake_session.add(
        "GET",
        "/repos/octo/rust9x/actions/caches",
        payload={
            "total_count": 2,
            "actions_caches": [
                {"id": 11, "key": "Windows-build", "created_at": "2024-05-01T09:00:00Z",
                 "last_accessed_at": "2024-05-01T10:00:00Z", "size_in_bytes": 10},
                {"id": 12, "key": "Windows-build-2", "created_at": "2024-05-01T11:30:00Z",
                 "last_accessed_at": "2024-05-01T11:30:00Z", "size_in_bytes": 10},
            ],
        },
    )
    fake_session.add("DELETE", "/repos/octo/rust9x/actions/caches/11", status_code=204)

    removed = GitHubCachePurger(github_client, "octo/rust9x").purge(60, now=now)

    assert [entry.key for entry in removed] == ["Windows-build"]
    assert len(fake_session.find("DELETE", "/actions/caches/11")) == 1
    assert not fake_session.find("DELETE", "/actions/caches/12")


def test_github_purger_accepts_long_fractional_seconds(
    github_client: GitHubClient, fake_session: FakeSession
) -> None:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    fake_session.add(
        "GET",
        "/repos/octo/rust9x/actions/caches",
        payload={
            "total_count": 2,
            "actions_caches": [
                {"id": 21, "key": "Windows-build", "created_at": "2024-05-01T09:00:00.1234567Z",
                 "last_accessed_at": "2024-05-01T10:00:00.123456789Z", "size_in_bytes": 10},
                {"id": 22, "key": "Windows-build-2", "created_at": "2024-05-01T11:30:00.5Z",
                 "last_accessed_at": "2024-05-01T11:30:00.12Z", "size_in_bytes": 10},
            ],
        },
    )
    fake_session.add("DELETE", "/repos/octo/rust9x/actions/caches/21", status_code=204)

    removed = GitHubCachePurger(github_client, "octo/rust9x").purge(60, now=now)

    assert [entry.blob for entry in removed] == ["21"]
    assert removed[0].last_accessed_at == datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=timezone.utc)
    assert not fake_session.find("DELETE", "/actions/caches/22")


def test_remove_host_link_missing_is_fine(tmp_path: Path) -> None:
    assert remove_host_link(tmp_path) is False


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_remove_host_link_removes_symlink_only(tmp_path: Path) -> None:
    target = tmp_path / "x86_64-unknown-linux-gnu"
    target.mkdir()
    (target / "keep.txt").write_text("keep", encoding="utf-8")
    (tmp_path / "host").symlink_to(target, target_is_directory=True)

    assert remove_host_link(tmp_path) is True
    assert not (tmp_path / "host").exists()
    assert (target / "keep.txt").exists()


def test_remove_host_link_refuses_non_empty_directory(tmp_path: Path) -> None:
    (tmp_path / "host").mkdir()
    (tmp_path / "host" / "file").write_text("x", encoding="utf-8")
    with pytest.raises(OSError):
        remove_host_link(tmp_path)
