"""Release hosting adapters used during publish."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..github import GitHubAPIError, GitHubClient, resolve_token
from .models import PublishContext, UploadResult

logger = logging.getLogger(__name__)


class ReleaseAdapter(ABC):
    name: str

    @abstractmethod
    def publish(self, context: PublishContext) -> UploadResult:
        ...


class NoOpAdapter(ReleaseAdapter):
    name = "noop"

    def publish(self, context: PublishContext) -> UploadResult:
        logs = ["NoOp adapter selected; skipping upload."]
        logs.extend(f"Asset ready at {path}" for path in context.files)
        return UploadResult(adapter=self.name, status="skipped", logs=logs)


def merge_body(existing: Optional[str], body: str, *, append: bool) -> str:
    if not append or not existing:
        return body
    return f"{existing.rstrip()}\n\n{body}"


class GitHubReleaseAdapter(ReleaseAdapter):
    """Create or update the release for a tag and attach files as assets."""

    name = "github"

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    def publish(self, context: PublishContext) -> UploadResult:
        logs = []
        release = self.client.get_release_by_tag(context.repo, context.tag)
        if release is None:
            release = self.client.create_release(
                context.repo,
                {
                    "tag_name": context.tag,
                    "name": context.tag,
                    "body": context.body,
                    "prerelease": context.prerelease,
                },
            )
            logs.append(f"Created release {context.repo}@{context.tag}.")
        else:
            release = self.client.update_release(
                context.repo,
                int(release["id"]),
                {
                    "body": merge_body(release.get("body"), context.body, append=context.append_body),
                    "prerelease": context.prerelease,
                },
            )
            logs.append(f"Updated release {context.repo}@{context.tag}.")

        existing_assets = {asset.get("name"): asset for asset in release.get("assets") or []}
        uploaded = []
        for path in context.files:
            previous = existing_assets.get(path.name)
            if previous is not None:
                self.client.delete_asset(context.repo, int(previous["id"]))
                logs.append(f"Replaced existing asset {path.name}.")
            asset = self.client.upload_asset(str(release["upload_url"]), path)
            uploaded.append(str(asset.get("browser_download_url") or path.name))
            logs.append(f"Uploaded {path.name}.")

        return UploadResult(
            adapter=self.name,
            status="succeeded",
            url=release.get("html_url"),
            assets=uploaded,
            details={"release_id": release.get("id")},
            logs=logs,
        )


def build_adapter(name: str, *, options: Optional[Dict[str, object]] = None) -> ReleaseAdapter:
    lowered = (name or "noop").lower()
    opts = options or {}
    if lowered in ("noop", "none"):
        return NoOpAdapter()
    if lowered in ("github", "gh"):
        client = opts.get("client")
        if client is None:
            token = resolve_token(str(opts.get("token-env", "GITHUB_TOKEN")))
            client = GitHubClient(token=token, api_url=str(opts.get("api-url", "https://api.github.com")))
        if not isinstance(client, GitHubClient):
            raise GitHubAPIError("GitHub adapter option 'client' must be a GitHubClient.")
        return GitHubReleaseAdapter(client)
    raise ValueError(f"Unknown publish adapter '{name}'")
