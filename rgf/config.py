"""
Configuration management for rgf.

Loads:
- rgf.yml: optional settings for the GitHub client and its retry policy
- GITHUB_TOKEN: API token from the environment (or a .env file)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .errors import InvalidArguments


CONFIG_FILENAME = "rgf.yml"
TOKEN_ENV_VAR = "GITHUB_TOKEN"


@dataclass
class GitHubConfig:
    """GitHub API settings."""
    api_base: str = "https://api.github.com"
    web_base: str = "https://github.com"
    per_page: int = 100
    sort: str = "newest"  # newest, oldest, stargazers, watchers
    timeout: float = 30.0


@dataclass
class RetryConfig:
    """Retry policy for directory requests."""
    transport_retries: int = 2
    backoff_base: float = 0.5
    backoff_factor: float = 2.0
    rate_limit_retries: int = 1
    # Fail instead of sleeping when the reset is further away than this
    max_rate_limit_wait: float = 3600.0

    def backoff(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        return self.backoff_base * (self.backoff_factor ** attempt)


@dataclass
class RgfConfig:
    """Complete rgf configuration."""
    github: GitHubConfig = field(default_factory=GitHubConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    token: str | None = None

    @classmethod
    def load(
        cls,
        repo_root: Path | None = None,
        config_path: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "RgfConfig":
        """Load configuration from ``config_path`` or ``repo_root/rgf.yml``."""
        if config_path is None and repo_root is not None:
            config_path = repo_root / CONFIG_FILENAME

        config = cls()
        if config_path is not None and config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise InvalidArguments(f"{config_path}: expected a mapping at top level")
            config = cls._parse(data)

        env = os.environ if env is None else env
        config.token = env.get(TOKEN_ENV_VAR) or None
        return config

    @classmethod
    def _parse(cls, data: dict[str, Any]) -> "RgfConfig":
        """Parse configuration dictionary."""
        defaults_gh = GitHubConfig()
        gh_data = data.get("github") or {}
        github = GitHubConfig(
            api_base=str(gh_data.get("api_base", defaults_gh.api_base)).rstrip("/"),
            web_base=str(gh_data.get("web_base", defaults_gh.web_base)).rstrip("/"),
            per_page=int(gh_data.get("per_page", defaults_gh.per_page)),
            sort=gh_data.get("sort", defaults_gh.sort),
            timeout=float(gh_data.get("timeout", defaults_gh.timeout)),
        )
        if not 1 <= github.per_page <= 100:
            raise InvalidArguments("github.per_page must be between 1 and 100")

        defaults_retry = RetryConfig()
        retry_data = data.get("retry") or {}
        retry = RetryConfig(
            transport_retries=int(retry_data.get("transport_retries", defaults_retry.transport_retries)),
            backoff_base=float(retry_data.get("backoff_base", defaults_retry.backoff_base)),
            backoff_factor=float(retry_data.get("backoff_factor", defaults_retry.backoff_factor)),
            rate_limit_retries=int(retry_data.get("rate_limit_retries", defaults_retry.rate_limit_retries)),
            max_rate_limit_wait=float(
                retry_data.get("max_rate_limit_wait", defaults_retry.max_rate_limit_wait)
            ),
        )

        return cls(github=github, retry=retry)


def get_repo_root(start: Path | None = None) -> Path:
    """Find the repository root (directory containing .git)."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / ".git").exists():
            return current
        current = current.parent
    # No .git found, use starting directory
    return (start or Path.cwd()).resolve()
