"""Build cache restore, save and purge helpers."""

from .links import remove_host_link
from .purge import GitHubCachePurger
from .store import CacheEntry, CacheError, CacheIndex, CacheRestoreResult, CacheStore, DirectoryCacheStore

__all__ = [
    "CacheEntry",
    "CacheError",
    "CacheIndex",
    "CacheRestoreResult",
    "CacheStore",
    "DirectoryCacheStore",
    "GitHubCachePurger",
    "remove_host_link",
]
