"""
GitHub REST API client for rgf.

Lists the forks of a repository and reports the API rate limit.
The token is passed in explicitly (the CLI reads it from GITHUB_TOKEN).

Supports:
- Transparent pagination (lazy, restartable per call)
- Waiting out a rate limit once before giving up
- Exponential backoff on transport failures and 5xx responses
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator

import requests

from . import __version__
from .config import GitHubConfig, RetryConfig
from .errors import (
    DirectoryUnavailable,
    HostingAPIError,
    InvalidArguments,
    RateLimited,
    Unauthorized,
)


logger = logging.getLogger(__name__)

_REMOTE_URL_PATTERNS = [
    re.compile(r"^https?://[^/]+/(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
    re.compile(r"^ssh://(?:[^@/]+@)?[^/]+/(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
    re.compile(r"^(?:[^@/]+@)?[^:/]+:(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"),
]


@dataclass(frozen=True)
class RepoRef:
    """An ``owner/name`` pair identifying a hosted repository."""
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "RepoRef":
        """Parse ``owner/repo``."""
        parts = value.strip().split("/")
        if len(parts) != 2 or not all(parts):
            raise InvalidArguments(
                f"Invalid repository format '{value}': expected <owner>/<repo>"
            )
        return cls(owner=parts[0], name=parts[1])

    @classmethod
    def from_remote_url(cls, url: str) -> "RepoRef | None":
        """Extract ``owner/name`` from an https, ssh or scp-style remote url."""
        for pattern in _REMOTE_URL_PATTERNS:
            match = pattern.match(url.strip())
            if match:
                return cls(owner=match.group("owner"), name=match.group("name"))
        return None


@dataclass(frozen=True)
class ForkDescriptor:
    """Parsed GitHub fork data."""
    owner: str
    name: str
    clone_url: str
    is_fork: bool = True
    parent: RepoRef | None = None
    forks_count: int = 0

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot of the core API rate limit."""
    limit: int
    remaining: int
    used: int
    reset_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ForkPager:
    """
    Page-by-page producer of forks for one repository.

    ``next_page()`` returns the next list of forks, or None once the listing
    is exhausted. Pages are requested strictly in order.
    """

    def __init__(
        self,
        client: "GitHubClient",
        ref: RepoRef,
        per_page: int,
        start_page: int = 1,
        max_pages: int | None = None,
    ):
        self.client = client
        self.ref = ref
        self.per_page = per_page
        self.page = start_page
        self.max_pages = max_pages
        self._fetched = 0
        self._done = False

    def next_page(self) -> list[ForkDescriptor] | None:
        if self._done:
            return None
        if self.max_pages is not None and self._fetched >= self.max_pages:
            self._done = True
            return None

        params = {
            "sort": self.client.github.sort,
            "per_page": self.per_page,
            "page": self.page,
        }
        endpoint = f"/repos/{self.ref.owner}/{self.ref.name}/forks"
        response = self.client._request("GET", endpoint, params=params)
        items = self.client._json(response)
        if not isinstance(items, list):
            raise HostingAPIError(
                f"Unexpected fork listing for {self.ref.full_name}: expected a JSON array",
                response.status_code,
            )
        self._fetched += 1
        self.page += 1

        if not items:
            self._done = True
            return None
        if len(items) < self.per_page:
            self._done = True

        return [self.client._parse_fork(item, self.ref) for item in items]


class GitHubClient:
    """GitHub REST API client with pagination and rate limit handling."""

    def __init__(
        self,
        token: str | None = None,
        github: GitHubConfig | None = None,
        retry: RetryConfig | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.token = token
        self.github = github or GitHubConfig()
        self.retry = retry or RetryConfig()
        self.session = session or requests.Session()
        self._sleep = sleep
        self._clock = clock

        if self.token:
            self.session.headers["Authorization"] = f"token {self.token}"

        self.session.headers["Accept"] = "application/vnd.github.v3+json"
        self.session.headers["User-Agent"] = f"rgf/{__version__}"

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Make an API request with retry and rate limit handling."""
        url = f"{self.github.api_base}{endpoint}"
        transport_failures = 0
        rate_limit_hits = 0

        while True:
            try:
                response = self.session.request(
                    method, url, params=params, timeout=self.github.timeout, **kwargs
                )
            except requests.RequestException as e:
                rate_limit_hits = 0
                transport_failures = self._backoff_or_raise(
                    transport_failures, f"Request failed: {e}"
                )
                continue

            if response.status_code == 401:
                raise Unauthorized("GitHub rejected the token (401 Unauthorized)")

            reset_at = self._rate_limit_reset(response)
            if reset_at is not None:
                rate_limit_hits += 1
                if rate_limit_hits > self.retry.rate_limit_retries:
                    raise RateLimited(reset_at)
                wait = max(0.0, (reset_at - self._clock()).total_seconds())
                if wait > self.retry.max_rate_limit_wait:
                    raise RateLimited(reset_at)
                logger.warning(
                    "Rate limited on %s; waiting %.0fs until %s",
                    endpoint, wait, reset_at.isoformat(),
                )
                self._sleep(wait)
                continue

            if response.status_code >= 500:
                rate_limit_hits = 0
                transport_failures = self._backoff_or_raise(
                    transport_failures,
                    f"GitHub API error: {response.status_code} - {response.text}",
                )
                continue

            if response.status_code >= 400:
                raise HostingAPIError(
                    f"GitHub API error: {response.status_code} - {response.text}",
                    response.status_code,
                )

            return response

    def _json(self, response: requests.Response) -> Any:
        """Decode a response body, keeping decode errors inside the error taxonomy."""
        try:
            return response.json()
        except ValueError as e:
            raise HostingAPIError(
                f"Invalid JSON from GitHub API: {e}", response.status_code
            ) from e

    def _backoff_or_raise(self, failures: int, message: str) -> int:
        """Sleep before the next attempt, or raise once retries are used up."""
        if failures >= self.retry.transport_retries:
            raise DirectoryUnavailable(message)
        delay = self.retry.backoff(failures)
        logger.warning("%s; retrying in %.1fs", message, delay)
        self._sleep(delay)
        return failures + 1

    def _rate_limit_reset(self, response: requests.Response) -> datetime | None:
        """Return the reset time if ``response`` is a rate limit signal."""
        if response.status_code not in (403, 429):
            return None

        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return self._clock() + timedelta(seconds=int(retry_after))
            except ValueError:
                pass

        if response.headers.get("X-RateLimit-Remaining") == "0":
            reset = response.headers.get("X-RateLimit-Reset")
            if reset is not None:
                try:
                    return datetime.fromtimestamp(int(reset), tz=timezone.utc)
                except ValueError:
                    pass
            return self._clock()

        if response.status_code == 429:
            return self._clock()

        return None

    def fork_pages(
        self,
        owner: str,
        repo: str,
        start_page: int = 1,
        per_page: int | None = None,
        max_pages: int | None = None,
    ) -> ForkPager:
        """Create a fresh pager over the forks of ``owner/repo``."""
        return ForkPager(
            self,
            RepoRef(owner, repo),
            per_page=per_page or self.github.per_page,
            start_page=start_page,
            max_pages=max_pages,
        )

    def list_forks(
        self,
        owner: str,
        repo: str,
        start_page: int = 1,
        per_page: int | None = None,
        limit: int | None = None,
    ) -> Iterator[ForkDescriptor]:
        """
        Iterate over the forks of a repository in server order.

        Args:
            owner: Repository owner
            repo: Repository name
            start_page: First page to request
            per_page: Page size (defaults to the configured size)
            limit: Stop after this many forks

        Each call starts a new listing; nothing is cached between calls.
        """
        per_page = per_page or self.github.per_page
        max_pages = None
        if limit is not None:
            max_pages = -(-limit // per_page)

        pager = self.fork_pages(owner, repo, start_page, per_page, max_pages)
        count = 0
        while True:
            page = pager.next_page()
            if page is None:
                return
            for fork in page:
                if limit is not None and count >= limit:
                    return
                yield fork
                count += 1

    def clone_url(self, ref: RepoRef) -> str:
        """Clone url of a repository on the web host."""
        return f"{self.github.web_base}/{ref.owner}/{ref.name}.git"

    def rate_limit(self) -> RateLimitStatus:
        """Check current rate limit status."""
        response = self._request("GET", "/rate_limit")
        data = self._json(response)
        if not isinstance(data, dict):
            raise HostingAPIError("Unexpected rate limit response: expected a JSON object", response.status_code)
        core = (data.get("resources") or {}).get("core") or data.get("rate") or {}
        limit = int(core.get("limit", 0))
        remaining = int(core.get("remaining", 0))
        return RateLimitStatus(
            limit=limit,
            remaining=remaining,
            used=int(core.get("used", limit - remaining)),
            reset_at=datetime.fromtimestamp(int(core.get("reset", 0)), tz=timezone.utc),
        )

    def _parse_fork(self, data: dict[str, Any], parent: RepoRef) -> ForkDescriptor:
        """Parse raw repository data into a ForkDescriptor."""
        owner = data.get("owner") or {}
        return ForkDescriptor(
            owner=owner.get("login", ""),
            name=data.get("name", ""),
            clone_url=data.get("clone_url", ""),
            is_fork=bool(data.get("fork", True)),
            parent=parent,
            forks_count=data.get("forks_count", 0) or 0,
        )
