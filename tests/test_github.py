from __future__ import annotations

from pathlib import Path

import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError

from toolchain_release.github import GitHubAPIError, GitHubClient, resolve_token

from .conftest import FakeResponse, FakeSession


def test_requests_carry_api_headers(github_client: GitHubClient, fake_session: FakeSession) -> None:
    fake_session.add("GET", "/repos/octo/rust9x/releases", payload=[])

    assert github_client.list_releases("octo/rust9x") == []

    headers = fake_session.calls[0]["headers"]
    assert headers["Accept"] == "application/vnd.github+json"
    assert headers["X-GitHub-Api-Version"] == "2022-11-28"
    assert headers["Authorization"] == "Bearer token-123"


def test_anonymous_client_omits_authorization(fake_session: FakeSession) -> None:
    client = GitHubClient(session=fake_session)  # type: ignore[arg-type]
    assert "Authorization" not in client.headers()


def test_unexpected_status_raises(github_client: GitHubClient, fake_session: FakeSession) -> None:
    fake_session.add("GET", "/repos/octo/rust9x/releases", status_code=403, payload={"message": "nope"})

    with pytest.raises(GitHubAPIError) as excinfo:
        github_client.list_releases("octo/rust9x")
    assert excinfo.value.status_code == 403


def test_transport_errors_are_wrapped(github_client: GitHubClient, fake_session: FakeSession) -> None:
    def _boom(call: dict) -> None:
        raise RequestsConnectionError("offline")

    fake_session.add_handler("GET", "/releases", _boom)  # type: ignore[arg-type]
    with pytest.raises(GitHubAPIError, match="offline"):
        github_client.list_releases("octo/rust9x")


def test_missing_release_by_tag_returns_none(github_client: GitHubClient, fake_session: FakeSession) -> None:
    fake_session.add("GET", "/releases/tags/v9.9", status_code=404, payload={"message": "Not Found"})
    assert github_client.get_release_by_tag("octo/rust9x", "v9.9") is None


def test_upload_asset_strips_uri_template(tmp_path: Path, github_client: GitHubClient, fake_session: FakeSession) -> None:
    asset = tmp_path / "rust9x.tar.xz"
    asset.write_bytes(b"payload")
    fake_session.add("POST", "/releases/1/assets", status_code=201, payload={"name": asset.name})

    github_client.upload_asset("https://uploads.github.com/repos/octo/rust9x/releases/1/assets{?name,label}", asset)

    call = fake_session.calls[0]
    assert call["url"] == "https://uploads.github.com/repos/octo/rust9x/releases/1/assets"
    assert call["params"] == {"name": "rust9x.tar.xz"}
    assert call["data"] == b"payload"
    assert call["headers"]["Content-Type"] == "application/octet-stream"


def test_list_caches_paginates(github_client: GitHubClient, fake_session: FakeSession) -> None:
    pages = {
        1: {"total_count": 3, "actions_caches": [{"id": 1}, {"id": 2}]},
        2: {"total_count": 3, "actions_caches": [{"id": 3}]},
    }

    def _page(call: dict) -> FakeResponse:
        return FakeResponse(200, pages[call["params"]["page"]])

    fake_session.add_handler("GET", "/actions/caches", _page)

    caches = github_client.list_caches("octo/rust9x", per_page=2)

    assert [cache["id"] for cache in caches] == [1, 2, 3]


def test_resolve_token_reports_resolvers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    assert resolve_token(required=False) is None
    with pytest.raises(GitHubAPIError, match="Checked resolvers: env"):
        resolve_token()
