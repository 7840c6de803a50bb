"""Key-addressed build cache backed by a local directory of tar blobs."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import tarfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"


class CacheError(RuntimeError):
    """Raised when a cache blob cannot be saved or restored."""


class CacheEntry(BaseModel):
    key: str
    blob: str
    size: int = 0
    created_at: datetime
    last_accessed_at: datetime

    model_config = ConfigDict(extra="forbid")


class CacheIndex(BaseModel):
    entries: Dict[str, CacheEntry] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


@dataclass(slots=True)
class CacheRestoreResult:
    key: str
    hit: bool
    path: Path
    size: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {"key": self.key, "hit": self.hit, "path": str(self.path), "size": self.size}


class CacheStore(ABC):
    name: str

    @abstractmethod
    def restore(self, key: str, path: Path) -> CacheRestoreResult:
        ...

    @abstractmethod
    def save(self, key: str, path: Path) -> CacheEntry:
        ...

    @abstractmethod
    def purge(self, max_age_minutes: int, *, now: Optional[datetime] = None) -> List[CacheEntry]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _blob_name(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:24] + ".tar"


def _clear_path(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


class DirectoryCacheStore(CacheStore):
    """Stores one tar blob per key plus a JSON index of access times."""

    name = "directory"

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_FILE

    def load_index(self) -> CacheIndex:
        if not self.index_path.exists():
            return CacheIndex()
        try:
            payload = json.loads(self.index_path.read_text(encoding="utf-8"))
            return CacheIndex.model_validate(payload)
        except (json.JSONDecodeError, ValueError) as exc:
            raise CacheError(f"Invalid cache index at {self.index_path}: {exc}") from exc

    def _write_index(self, index: CacheIndex) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.index_path.write_text(index.model_dump_json(indent=2) + "\n", encoding="utf-8")

    def restore(self, key: str, path: Path) -> CacheRestoreResult:
        index = self.load_index()
        entry = index.entries.get(key)
        if entry is None:
            logger.info("Cache miss for key %s", key)
            return CacheRestoreResult(key=key, hit=False, path=path)

        blob = self.root / entry.blob
        if not blob.exists():
            logger.warning("Cache index lists %s but blob %s is missing", key, blob)
            del index.entries[key]
            self._write_index(index)
            return CacheRestoreResult(key=key, hit=False, path=path)

        _clear_path(path)
        path.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(blob, "r") as archive:
                if hasattr(tarfile, "data_filter"):
                    archive.extractall(path, filter="tar")
                else:  # pragma: no cover - interpreters without extraction filters
                    archive.extractall(path)
        except (tarfile.TarError, OSError) as exc:
            raise CacheError(f"Failed to restore cache '{key}' from {blob}: {exc}") from exc

        index.entries[key] = entry.model_copy(update={"last_accessed_at": _utcnow()})
        self._write_index(index)
        logger.info("Restored cache %s into %s", key, path)
        return CacheRestoreResult(key=key, hit=True, path=path, size=entry.size)

    def save(self, key: str, path: Path) -> CacheEntry:
        if not path.exists():
            raise CacheError(f"Cannot save cache '{key}': {path} does not exist.")

        self.root.mkdir(parents=True, exist_ok=True)
        blob = self.root / _blob_name(key)
        staging = blob.with_suffix(".tar.partial")
        try:
            with tarfile.open(staging, "w") as archive:
                for item in sorted(path.iterdir(), key=lambda entry: entry.name):
                    archive.add(item, arcname=item.name)
            os.replace(staging, blob)
        except (tarfile.TarError, OSError) as exc:
            if staging.exists():
                staging.unlink()
            raise CacheError(f"Failed to save cache '{key}' from {path}: {exc}") from exc

        now = _utcnow()
        index = self.load_index()
        previous = index.entries.get(key)
        entry = CacheEntry(
            key=key,
            blob=blob.name,
            size=blob.stat().st_size,
            created_at=now,
            last_accessed_at=now,
        )
        if previous is not None and previous.blob != entry.blob:
            (self.root / previous.blob).unlink(missing_ok=True)
        index.entries[key] = entry
        self._write_index(index)
        logger.info("Saved cache %s (%d bytes)", key, entry.size)
        return entry

    def purge(self, max_age_minutes: int, *, now: Optional[datetime] = None) -> List[CacheEntry]:
        cutoff = (now or _utcnow()) - timedelta(minutes=max_age_minutes)
        index = self.load_index()
        removed: List[CacheEntry] = []
        for key, entry in list(index.entries.items()):
            if entry.last_accessed_at >= cutoff:
                continue
            (self.root / entry.blob).unlink(missing_ok=True)
            del index.entries[key]
            removed.append(entry)
        if removed:
            self._write_index(index)
        logger.info("Purged %d cache entries older than %d minutes", len(removed), max_age_minutes)
        return removed
