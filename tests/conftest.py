from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

from toolchain_release import secrets
from toolchain_release.github import GitHubClient


@pytest.fixture(autouse=True)
def _isolate_secret_resolvers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(secrets, "_resolvers", [])
    secrets.register_resolver(secrets.EnvResolver(), priority=0, name="env")


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.reason = "OK" if status_code < 400 else "Error"
        self.headers: Dict[str, str] = {}

    def json(self) -> Any:
        return self._payload


Handler = Union[FakeResponse, Callable[[Dict[str, Any]], FakeResponse]]


class FakeSession:
    """Routes requests by method and URL suffix; records every call."""

    def __init__(self) -> None:
        self.routes: List[Tuple[str, str, Handler]] = []
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, suffix: str, status_code: int = 200, payload: Any = None) -> "FakeSession":
        self.routes.append((method, suffix, FakeResponse(status_code, payload)))
        return self

    def add_handler(self, method: str, suffix: str, handler: Callable[[Dict[str, Any]], FakeResponse]) -> "FakeSession":
        self.routes.append((method, suffix, handler))
        return self

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        data = kwargs.get("data")
        if hasattr(data, "read"):
            kwargs["data"] = data.read()
        call = {"method": method, "url": url, **kwargs}
        self.calls.append(call)
        for route_method, suffix, handler in self.routes:
            if route_method == method and url.endswith(suffix):
                return handler(call) if callable(handler) else handler
        raise AssertionError(f"Unexpected request {method} {url}")

    def find(self, method: str, suffix: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["method"] == method and call["url"].endswith(suffix)]


@pytest.fixture()
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def github_client(fake_session: FakeSession) -> GitHubClient:
    return GitHubClient(token="token-123", session=fake_session)  # type: ignore[arg-type]


def release_payload(
    release_id: int = 1,
    tag: str = "v1.2.0",
    *,
    body: Optional[str] = None,
    assets: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    return {
        "id": release_id,
        "tag_name": tag,
        "body": body,
        "html_url": f"https://github.com/octo/rust9x/releases/tag/{tag}",
        "upload_url": f"https://uploads.github.com/repos/octo/rust9x/releases/{release_id}/assets{{?name,label}}",
        "assets": assets or [],
    }
