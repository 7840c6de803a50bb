"""Resolve previous tag, changelog comparison link and prerelease flag for a tag."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from .github import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

DEFAULT_PRERELEASE_KEYWORDS = ("alpha", "beta", "rc")
COMPARISON_TEMPLATE = "**Full Changelog**: {server}/{repo}/compare/{previous}...{current}"


class ReleaseRecord(BaseModel):
    """Subset of a release object returned by the releases API."""

    tag_name: Optional[str] = None
    name: Optional[str] = None
    draft: bool = False
    prerelease: bool = False

    model_config = ConfigDict(extra="ignore")


@dataclass(slots=True)
class ReleaseMetadata:
    tag: str
    previous_tag: Optional[str]
    comparison: str
    prerelease: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "tag": self.tag,
            "previous_tag": self.previous_tag,
            "comparison": self.comparison,
            "prerelease": self.prerelease,
        }


def parse_releases(payload: Iterable[object]) -> List[ReleaseRecord]:
    try:
        return [ReleaseRecord.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise GitHubAPIError(f"Malformed release list: {exc}") from exc


def fetch_releases(client: GitHubClient, repo: str) -> List[ReleaseRecord]:
    return parse_releases(client.list_releases(repo))


def previous_tag(releases: Sequence[ReleaseRecord], current_tag: Optional[str] = None) -> Optional[str]:
    """Tag of the latest release, or of the one before it when the latest is ``current_tag``.

    Only the first two records are considered. Missing or blank tags count as absent.
    """

    for record in releases[:2]:
        tag = (record.tag_name or "").strip()
        if not tag:
            return None
        if current_tag is not None and tag == current_tag:
            continue
        return tag
    return None


def comparison_text(server_url: str, repo: str, previous: Optional[str], current: str) -> str:
    if not previous:
        return ""
    return COMPARISON_TEMPLATE.format(
        server=server_url.rstrip("/"),
        repo=repo,
        previous=previous,
        current=current,
    )


def is_prerelease(tag: str, keywords: Iterable[str] = DEFAULT_PRERELEASE_KEYWORDS) -> bool:
    lowered = tag.lower()
    return any(keyword.lower() in lowered for keyword in keywords if keyword)


def build_release_metadata(
    tag: str,
    releases: Sequence[ReleaseRecord],
    *,
    repo: str,
    server_url: str = "https://github.com",
    keywords: Iterable[str] = DEFAULT_PRERELEASE_KEYWORDS,
) -> ReleaseMetadata:
    prerelease = is_prerelease(tag, keywords)
    previous = previous_tag(releases, tag)
    if previous is None:
        logger.info("No previous release found for %s; comparison left empty", repo)
        return ReleaseMetadata(tag=tag, previous_tag=None, comparison="", prerelease=prerelease)
    return ReleaseMetadata(
        tag=tag,
        previous_tag=previous,
        comparison=comparison_text(server_url, repo, previous, tag),
        prerelease=prerelease,
    )


def resolve_release_metadata(
    client: GitHubClient,
    *,
    repo: str,
    tag: str,
    server_url: str = "https://github.com",
    keywords: Iterable[str] = DEFAULT_PRERELEASE_KEYWORDS,
) -> ReleaseMetadata:
    releases = fetch_releases(client, repo)
    return build_release_metadata(tag, releases, repo=repo, server_url=server_url, keywords=keywords)
