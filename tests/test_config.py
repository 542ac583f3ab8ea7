from __future__ import annotations

import pytest

from rgf.config import RgfConfig, RetryConfig, get_repo_root
from rgf.errors import InvalidArguments


def test_config_defaults_without_file(tmp_path):
    config = RgfConfig.load(tmp_path, env={})

    assert config.github.api_base == "https://api.github.com"
    assert config.github.per_page == 100
    assert config.github.sort == "newest"
    assert config.retry.transport_retries == 2
    assert config.retry.rate_limit_retries == 1
    assert config.token is None


def test_config_load_overrides(tmp_path):
    (tmp_path / "rgf.yml").write_text(
        """
github:
  api_base: https://ghe.example.com/api/v3/
  web_base: https://ghe.example.com
  per_page: 30
  sort: oldest
  timeout: 5
retry:
  transport_retries: 4
  backoff_base: 0.1
  max_rate_limit_wait: 60
        """.strip()
    )

    config = RgfConfig.load(tmp_path, env={"GITHUB_TOKEN": "abc"})

    assert config.github.api_base == "https://ghe.example.com/api/v3"
    assert config.github.web_base == "https://ghe.example.com"
    assert config.github.per_page == 30
    assert config.github.sort == "oldest"
    assert config.github.timeout == 5.0
    assert config.retry.transport_retries == 4
    assert config.retry.backoff_base == 0.1
    assert config.retry.backoff_factor == 2.0
    assert config.retry.max_rate_limit_wait == 60.0
    assert config.token == "abc"


def test_config_explicit_path(tmp_path):
    path = tmp_path / "custom.yml"
    path.write_text("github:\n  per_page: 10\n")

    config = RgfConfig.load(config_path=path, env={})

    assert config.github.per_page == 10


def test_config_empty_token_is_none(tmp_path):
    config = RgfConfig.load(tmp_path, env={"GITHUB_TOKEN": ""})
    assert config.token is None


def test_config_rejects_bad_per_page(tmp_path):
    (tmp_path / "rgf.yml").write_text("github:\n  per_page: 500\n")

    with pytest.raises(InvalidArguments):
        RgfConfig.load(tmp_path, env={})


def test_config_rejects_non_mapping(tmp_path):
    (tmp_path / "rgf.yml").write_text("- just\n- a list\n")

    with pytest.raises(InvalidArguments):
        RgfConfig.load(tmp_path, env={})


def test_retry_backoff_is_exponential():
    retry = RetryConfig()
    assert [retry.backoff(n) for n in range(3)] == [0.5, 1.0, 2.0]


def test_get_repo_root_finds_git_dir(tmp_path):
    (tmp_path / ".git").mkdir()
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert get_repo_root(nested) == tmp_path.resolve()
