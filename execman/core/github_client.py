"""
GitHub API Client for Release Selection

Handles interaction with GitHub's REST API to:
- List a project's releases (newest first) and pick the latest one that
  satisfies the prerelease policy
- Fetch a single release by tag when a version is pinned
- Map HTTP failures onto distinct, reportable error kinds
"""

import json
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field

import requests
from requests.utils import quote

from .. import __version__
from ..exceptions import (
    APIError,
    MalformedResponseError,
    NoSuitableReleaseError,
    NotFoundError,
    RateLimitedError,
    UnauthorizedError,
)
from .source import Source


def _header_int(headers, name: str) -> Optional[int]:
    """Read an integer header, ignoring missing or malformed values."""
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ReleaseAsset:
    """
    Information about a release asset (downloadable file).

    Attributes:
        name: Asset filename
        download_url: Direct download URL
        size: File size in bytes
    """
    name: str
    download_url: str
    size: int = 0


@dataclass
class Release:
    """
    Information about a GitHub release.

    Attributes:
        tag: Git tag name (version)
        title: Release name/title
        is_prerelease: Whether this is a pre-release
        assets: Downloadable assets, in upstream order
    """
    tag: str
    title: str = ""
    is_prerelease: bool = False
    assets: List[ReleaseAsset] = field(default_factory=list)


class GitHubAPIClient:
    """
    Client for interacting with GitHub's REST API to select releases.

    No retry is performed; callers wanting resilience wrap calls in their
    own retry policy.
    """

    def __init__(self, github_token: Optional[str] = None, timeout: float = 30,
                 base_url: str = "https://api.github.com",
                 session: Optional[requests.Session] = None):
        """
        Initialize the GitHub API client.

        Args:
            github_token: Optional GitHub Personal Access Token
            timeout: Per-request timeout in seconds
            base_url: API root, overridable for GitHub Enterprise
            session: Optional pre-configured requests session
        """
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.rate_limit_remaining: Optional[int] = None
        self.rate_limit_reset: Optional[int] = None

        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/vnd.github.v3+json',
            'User-Agent': f'execman/{__version__}'
        })

        if github_token:
            self.session.headers['Authorization'] = f'token {github_token}'
            self.logger.debug("GitHub API client initialized with authentication token")
        else:
            self.logger.debug("GitHub API client initialized without authentication (rate limited)")

    def select_release(self, source: Source, include_prereleases: bool = False) -> Release:
        """
        Pick the release a source refers to.

        A pinned version is fetched directly by tag; otherwise the release
        list is scanned for the newest release passing the prerelease filter.
        """
        if source.is_pinned:
            return self.get_release(source.owner, source.project, source.version)
        return self.get_latest_release(source.owner, source.project, include_prereleases)

    def get_latest_release(self, owner: str, project: str,
                           include_prereleases: bool = False) -> Release:
        """
        Get the newest release satisfying the prerelease policy.

        Args:
            owner: Repository owner
            project: Repository name
            include_prereleases: Whether pre-releases are acceptable

        Returns:
            Release: The first acceptable release in upstream order

        Raises:
            NotFoundError: Repository missing or it has no releases
            NoSuitableReleaseError: Only pre-releases exist and they are excluded
        """
        self.logger.info(f"Fetching releases for {owner}/{project}")
        context = {"owner": owner, "project": project}

        releases_data = self._make_api_request(f"/repos/{owner}/{project}/releases", context)
        if not isinstance(releases_data, list):
            raise MalformedResponseError(
                f"Expected a list of releases for {owner}/{project}", context
            )
        if not releases_data:
            raise NotFoundError(f"No releases found for {owner}/{project}", context)

        for release_data in releases_data:
            release = self._parse_release_data(release_data, context)
            if not release.is_prerelease or include_prereleases:
                self.logger.debug(f"Selected {owner}/{project} {release.tag}")
                return release
            self.logger.debug(f"Skipping pre-release {release.tag}")

        raise NoSuitableReleaseError(
            f"No suitable releases found for {owner}/{project} "
            f"({len(releases_data)} pre-releases skipped)",
            context,
        )

    def get_release(self, owner: str, project: str, tag: str) -> Release:
        """
        Get a specific release by tag.

        Raises:
            NotFoundError: Repository or tag does not exist
        """
        self.logger.info(f"Fetching release {tag} for {owner}/{project}")
        context = {"owner": owner, "project": project, "tag": tag}
        release_data = self._make_api_request(
            f"/repos/{owner}/{project}/releases/tags/{quote(tag, safe='')}", context
        )
        return self._parse_release_data(release_data, context)

    def _make_api_request(self, endpoint: str, context: Dict[str, Any]) -> Any:
        """
        Make a request to the GitHub API and decode the JSON body.

        Args:
            endpoint: API endpoint to request
            context: Error context (owner/project/tag)

        Returns:
            Decoded JSON payload
        """
        url = f"{self.base_url}{endpoint}"
        context = dict(context, url=url)

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self.logger.error(f"API request failed for {url}: {e}")
            raise APIError(f"Request to {url} failed: {e}", context) from e

        # Update rate limiting info
        remaining = _header_int(response.headers, 'X-RateLimit-Remaining')
        if remaining is not None:
            self.rate_limit_remaining = remaining
        reset = _header_int(response.headers, 'X-RateLimit-Reset')
        if reset is not None:
            self.rate_limit_reset = reset

        status = response.status_code
        if status != 200:
            self._raise_for_status(status, response, context)

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            self.logger.error(f"Failed to parse JSON response from {url}: {e}")
            raise MalformedResponseError(f"Invalid JSON from {url}: {e}", context) from e

    def _raise_for_status(self, status: int, response: requests.Response,
                          context: Dict[str, Any]) -> None:
        slug = f"{context.get('owner')}/{context.get('project')}"
        if status == 404:
            if 'tag' in context:
                message = f"Release {context['tag']} not found for {slug}"
            else:
                message = f"Repository {slug} not found"
            raise NotFoundError(message, context, status_code=status)
        if status == 401:
            raise UnauthorizedError(
                f"Authentication required for {slug} (check your GitHub token)",
                context, status_code=status,
            )
        if status in (403, 429):
            if self.rate_limit_reset is not None:
                context["rate_limit_reset"] = self.rate_limit_reset
            if self.rate_limit_remaining == 0:
                message = f"GitHub API rate limit exceeded while fetching {slug}"
            else:
                message = f"Access to {slug} forbidden"
            raise RateLimitedError(message, context, status_code=status)
        raise APIError(
            f"GitHub API error (status {status}) for {slug}: {response.text[:200]}",
            context, status_code=status,
        )

    def _parse_release_data(self, data: Any, context: Dict[str, Any]) -> Release:
        """
        Parse release data from GitHub API response.

        Args:
            data: Raw release data from API
            context: Error context

        Returns:
            Release: Parsed release object
        """
        try:
            assets = [
                ReleaseAsset(
                    name=asset_data['name'],
                    download_url=asset_data['browser_download_url'],
                    size=int(asset_data.get('size') or 0),
                )
                for asset_data in data.get('assets') or []
            ]
            return Release(
                tag=data['tag_name'],
                title=data.get('name') or '',
                is_prerelease=bool(data.get('prerelease', False)),
                assets=assets,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedResponseError(f"Malformed release data: {e}", context) from e

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
