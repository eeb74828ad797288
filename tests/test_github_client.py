"""
Tests for release selection against a faked GitHub API.
"""

import pytest
import requests

from conftest import API, FakeResponse, FakeSession, release_json
from execman.core.github_client import GitHubAPIClient
from execman.core.source import parse_source
from execman.exceptions import (
    APIError,
    MalformedResponseError,
    NoSuitableReleaseError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
)

RELEASES = f"{API}/repos/acme/tool/releases"


def make_client(routes) -> GitHubAPIClient:
    return GitHubAPIClient(session=FakeSession(routes))


class TestLatestRelease:

    def test_returns_first_stable_release(self):
        client = make_client({RELEASES: FakeResponse.json_body([
            release_json("v2.0.0-rc1", [], prerelease=True),
            release_json("v1.2.0", [("tool_linux_amd64.tar.gz", "u", 10)]),
            release_json("v1.1.0", []),
        ])})

        release = client.get_latest_release("acme", "tool")

        assert release.tag == "v1.2.0"
        assert release.title == "Release v1.2.0"
        assert not release.is_prerelease
        assert [a.name for a in release.assets] == ["tool_linux_amd64.tar.gz"]
        assert release.assets[0].size == 10

    def test_includes_prereleases_when_asked(self):
        client = make_client({RELEASES: FakeResponse.json_body([
            release_json("v2.0.0-rc1", [], prerelease=True),
            release_json("v1.2.0", []),
        ])})

        assert client.get_latest_release("acme", "tool", include_prereleases=True).tag == "v2.0.0-rc1"

    def test_only_prereleases_is_distinct_failure(self):
        client = make_client({RELEASES: FakeResponse.json_body([
            release_json("v2.0.0-rc2", [], prerelease=True),
            release_json("v2.0.0-rc1", [], prerelease=True),
        ])})

        with pytest.raises(NoSuitableReleaseError):
            client.get_latest_release("acme", "tool")

    def test_empty_list_is_not_found(self):
        client = make_client({RELEASES: FakeResponse.json_body([])})
        with pytest.raises(NotFoundError):
            client.get_latest_release("acme", "tool")


class TestPinnedRelease:

    def test_fetches_tag_directly(self):
        session = FakeSession({
            f"{RELEASES}/tags/v1.0.0": FakeResponse.json_body(release_json("v1.0.0", [])),
        })
        client = GitHubAPIClient(session=session)

        release = client.select_release(parse_source("acme/tool@v1.0.0"))

        assert release.tag == "v1.0.0"
        assert session.calls == [f"{RELEASES}/tags/v1.0.0"]

    def test_pinned_prerelease_is_accepted(self):
        client = make_client({
            f"{RELEASES}/tags/v2.0.0-rc1": FakeResponse.json_body(
                release_json("v2.0.0-rc1", [], prerelease=True)
            ),
        })
        release = client.select_release(parse_source("acme/tool@v2.0.0-rc1"))
        assert release.is_prerelease

    def test_tag_is_url_encoded(self):
        session = FakeSession({
            f"{RELEASES}/tags/release%2Fv1": FakeResponse.json_body(release_json("release/v1", [])),
        })

        release = GitHubAPIClient(session=session).get_release("acme", "tool", "release/v1")

        assert release.tag == "release/v1"
        assert session.calls == [f"{RELEASES}/tags/release%2Fv1"]

    def test_missing_tag(self):
        client = make_client({})
        with pytest.raises(NotFoundError) as excinfo:
            client.get_release("acme", "tool", "v9.9.9")
        assert excinfo.value.status_code == 404
        assert excinfo.value.context["tag"] == "v9.9.9"
        assert "v9.9.9" in str(excinfo.value)


class TestErrors:

    @pytest.mark.parametrize("status, error", [
        (404, NotFoundError),
        (401, UnauthorizedError),
        (403, RateLimitedError),
        (500, APIError),
    ])
    def test_status_codes_map_to_error_kinds(self, status, error):
        client = make_client({RELEASES: FakeResponse(status, b"{}")})
        with pytest.raises(error) as excinfo:
            client.get_latest_release("acme", "tool")
        assert excinfo.value.status_code == status
        assert excinfo.value.context["owner"] == "acme"
        assert excinfo.value.context["project"] == "tool"

    def test_rate_limit_reports_reset(self):
        client = make_client({RELEASES: FakeResponse(
            403, b"{}", headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"}
        )})
        with pytest.raises(RateLimitedError) as excinfo:
            client.get_latest_release("acme", "tool")
        assert "rate limit" in str(excinfo.value)
        assert excinfo.value.context["rate_limit_reset"] == 1700000000

    @pytest.mark.parametrize("headers", [
        {"X-RateLimit-Remaining": ""},
        {"X-RateLimit-Remaining": "many", "X-RateLimit-Reset": "soon"},
    ])
    def test_malformed_rate_limit_headers_are_ignored(self, headers):
        client = make_client({
            RELEASES: FakeResponse.json_body([release_json("v1.0.0", [])], headers=headers),
        })

        assert client.get_latest_release("acme", "tool").tag == "v1.0.0"
        assert client.rate_limit_remaining is None
        assert client.rate_limit_reset is None

    def test_malformed_reset_on_forbidden(self):
        client = make_client({RELEASES: FakeResponse(
            403, b"{}", headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "later"}
        )})
        with pytest.raises(RateLimitedError) as excinfo:
            client.get_latest_release("acme", "tool")
        assert "rate_limit_reset" not in excinfo.value.context

    def test_invalid_json(self):
        client = make_client({RELEASES: FakeResponse(200, b"<html>")})
        with pytest.raises(MalformedResponseError):
            client.get_latest_release("acme", "tool")

    def test_missing_fields(self):
        client = make_client({RELEASES: FakeResponse.json_body([{"name": "no tag"}])})
        with pytest.raises(MalformedResponseError):
            client.get_latest_release("acme", "tool")

    def test_object_instead_of_list(self):
        client = make_client({RELEASES: FakeResponse.json_body({"message": "hi"})})
        with pytest.raises(MalformedResponseError):
            client.get_latest_release("acme", "tool")

    def test_transport_failure_is_api_error(self):
        client = make_client({RELEASES: requests.exceptions.ConnectionError("refused")})
        with pytest.raises(APIError):
            client.get_latest_release("acme", "tool")


class TestSession:

    def test_token_sets_authorization_header(self):
        session = FakeSession()
        GitHubAPIClient(github_token="ghp_secret", session=session)
        assert session.headers["Authorization"] == "token ghp_secret"

    def test_no_token_no_header(self):
        session = FakeSession()
        GitHubAPIClient(session=session)
        assert "Authorization" not in session.headers
        assert session.headers["User-Agent"].startswith("execman/")

    def test_context_manager_closes_session(self):
        session = FakeSession()
        with GitHubAPIClient(session=session):
            pass
        assert session.closed
