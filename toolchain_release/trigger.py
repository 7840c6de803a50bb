"""Tag-push gate deciding whether a ref starts a release run."""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Iterable, Optional

TAG_REF_PREFIX = "refs/tags/"
DEFAULT_TAG_PATTERNS = ("*.*",)


def tag_from_ref(ref: str) -> str:
    """Return the tag name of ``ref`` (``refs/tags/release/1.2`` -> ``release/1.2``).

    Refs outside ``refs/tags/`` yield their last path segment.
    """

    if is_tag_ref(ref):
        return ref[len(TAG_REF_PREFIX) :]
    return ref.rstrip("/").split("/")[-1]


def is_tag_ref(ref: str) -> bool:
    return ref.startswith(TAG_REF_PREFIX)


def tag_matches(tag: str, pattern: str) -> bool:
    """Glob match where ``*`` never crosses a ``/``, as in workflow tag filters."""

    tag_parts = tag.split("/")
    pattern_parts = pattern.split("/")
    if len(tag_parts) != len(pattern_parts):
        return False
    return all(fnmatchcase(part, glob) for part, glob in zip(tag_parts, pattern_parts))


def match_trigger(ref: str, patterns: Iterable[str] = DEFAULT_TAG_PATTERNS) -> Optional[str]:
    """Return the full tag name when ``ref`` is a tag push matching any of ``patterns``."""

    if not is_tag_ref(ref):
        return None
    tag = tag_from_ref(ref)
    if not tag:
        return None
    if any(tag_matches(tag, pattern) for pattern in patterns):
        return tag
    return None
