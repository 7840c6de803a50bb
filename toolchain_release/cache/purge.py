"""Purge stale GitHub Actions caches through the REST API."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from ..github import GitHubClient
from .store import CacheEntry

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d+)")


def _parse_timestamp(value: object) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    # fromisoformat on 3.10 only takes 3 or 6 fractional digits
    normalized = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), value, count=1)
    return datetime.fromisoformat(normalized.replace("Z", "+00:00"))


def _to_entry(payload: Dict[str, object]) -> Optional[CacheEntry]:
    accessed = _parse_timestamp(payload.get("last_accessed_at"))
    created = _parse_timestamp(payload.get("created_at")) or accessed
    if accessed is None or created is None:
        return None
    return CacheEntry(
        key=str(payload.get("key", "")),
        blob=str(payload.get("id")),
        size=int(payload.get("size_in_bytes") or 0),
        created_at=created,
        last_accessed_at=accessed,
    )


class GitHubCachePurger:
    """Deletes repository caches whose last access is older than a threshold."""

    name = "github"

    def __init__(self, client: GitHubClient, repo: str) -> None:
        self.client = client
        self.repo = repo

    def purge(self, max_age_minutes: int, *, now: Optional[datetime] = None) -> List[CacheEntry]:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=max_age_minutes)
        removed: List[CacheEntry] = []
        for payload in self.client.list_caches(self.repo):
            entry = _to_entry(payload)
            if entry is None:
                logger.debug("Skipping cache without timestamps: %s", payload.get("id"))
                continue
            if entry.last_accessed_at >= cutoff:
                continue
            logger.info("Deleting cache %s (%s) last accessed %s", entry.blob, entry.key, entry.last_accessed_at)
            self.client.delete_cache(self.repo, int(entry.blob))
            removed.append(entry)
        return removed
