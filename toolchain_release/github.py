"""Thin GitHub REST client shared by release metadata, publishing and cache purge."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from requests import Response, Session
from requests.exceptions import RequestException

from .secrets import SecretSpec, register_secret, resolve_secret_info

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
ACCEPT_HEADER = "application/vnd.github+json"

register_secret(SecretSpec(name="GITHUB_TOKEN", description="Token for release and cache API calls"))


class GitHubAPIError(RuntimeError):
    """Raised when a GitHub REST call fails or returns an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def resolve_token(token_env: str = "GITHUB_TOKEN", *, required: bool = True) -> Optional[str]:
    info = resolve_secret_info(token_env)
    if not info.value and required:
        raise GitHubAPIError(
            f"GitHub token '{token_env}' not resolved. Checked resolvers: {info.describe_attempts()}."
        )
    return info.value


class GitHubClient:
    """Minimal wrapper over :class:`requests.Session` with the standard API headers."""

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        session: Optional[Session] = None,
        timeout: int = 30,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Accept": ACCEPT_HEADER,
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if extra:
            headers.update(extra)
        return headers

    def url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.api_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        expected: tuple[int, ...] = (200,),
        allow_missing: bool = False,
        **kwargs: Any,
    ) -> Optional[Response]:
        url = self.url(path)
        headers = self.headers(kwargs.pop("headers", None))
        logger.debug("%s %s", method, url)
        try:
            response: Response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except RequestException as exc:
            raise GitHubAPIError(f"{method} {url} failed: {exc}") from exc

        if allow_missing and response.status_code == 404:
            return None
        if response.status_code not in expected:
            raise GitHubAPIError(
                f"{method} {url} returned {response.status_code}: {response.text or response.reason}",
                status_code=response.status_code,
            )
        return response

    def get_json(self, path: str, *, params: Optional[Dict[str, object]] = None, allow_missing: bool = False) -> Any:
        response = self.request("GET", path, params=params, allow_missing=allow_missing)
        if response is None:
            return None
        return response.json()

    def list_releases(self, repo: str, *, per_page: int = 30) -> List[Dict[str, Any]]:
        payload = self.get_json(f"repos/{repo}/releases", params={"per_page": per_page})
        if not isinstance(payload, list):
            raise GitHubAPIError(f"Unexpected releases payload for {repo}: expected a list.")
        return payload

    def get_release_by_tag(self, repo: str, tag: str) -> Optional[Dict[str, Any]]:
        return self.get_json(f"repos/{repo}/releases/tags/{tag}", allow_missing=True)

    def create_release(self, repo: str, payload: Dict[str, object]) -> Dict[str, Any]:
        response = self.request("POST", f"repos/{repo}/releases", json=payload, expected=(201,))
        return response.json()

    def update_release(self, repo: str, release_id: int, payload: Dict[str, object]) -> Dict[str, Any]:
        response = self.request("PATCH", f"repos/{repo}/releases/{release_id}", json=payload)
        return response.json()

    def delete_asset(self, repo: str, asset_id: int) -> None:
        self.request("DELETE", f"repos/{repo}/releases/assets/{asset_id}", expected=(204,))

    def upload_asset(self, upload_url: str, path: Path) -> Dict[str, Any]:
        # upload_url is a URI template: .../assets{?name,label}
        base_url = upload_url.split("{", 1)[0]
        with path.open("rb") as handle:
            response = self.request(
                "POST",
                base_url,
                params={"name": path.name},
                data=handle,
                headers={"Content-Type": "application/octet-stream"},
                expected=(201,),
            )
        return response.json()

    def list_caches(self, repo: str, *, per_page: int = 100) -> List[Dict[str, Any]]:
        caches: List[Dict[str, Any]] = []
        page = 1
        while True:
            payload = self.get_json(
                f"repos/{repo}/actions/caches",
                params={"per_page": per_page, "page": page},
            )
            entries = payload.get("actions_caches", []) if isinstance(payload, dict) else []
            caches.extend(entries)
            total = payload.get("total_count", 0) if isinstance(payload, dict) else 0
            if not entries or len(caches) >= total:
                return caches
            page += 1

    def delete_cache(self, repo: str, cache_id: int) -> None:
        self.request("DELETE", f"repos/{repo}/actions/caches/{cache_id}", expected=(204,))
