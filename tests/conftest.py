from __future__ import annotations

from pathlib import Path

import pytest

from rgf.errors import GitCommandError
from rgf.github import ForkDescriptor, RepoRef
from rgf.repo import RepositoryLocator


class FakeGit:
    """In-memory stand-in for rgf.git.Git."""

    def __init__(self):
        self.repos: dict[Path, list[tuple[str, str]]] = {}
        self.fail_add: dict[str, Exception] = {}
        self.fail_clone = False
        self.calls: list[tuple] = []

    def toplevel(self, path: Path) -> Path | None:
        for root in self.repos:
            if path == root or root in path.parents:
                return root
        return None

    def remotes(self, root: Path) -> list[tuple[str, str]]:
        return list(self.repos[root])

    def add_remote(self, root: Path, name: str, url: str) -> None:
        self.calls.append(("add", name, url))
        if name in self.fail_add:
            raise self.fail_add[name]
        if any(existing == name for existing, _ in self.repos[root]):
            raise GitCommandError(
                ["remote", "add", name, url], 3, f"error: remote {name} already exists."
            )
        self.repos[root].append((name, url))

    def clone(self, url: str, target: Path) -> None:
        self.calls.append(("clone", url, target))
        if self.fail_clone:
            raise GitCommandError(["clone", url, str(target)], 128, "fatal: repository not found")
        self.repos[target] = [("origin", url)]


class FakeDirectory:
    """Fork directory serving a fixed listing."""

    def __init__(self, forks=(), error: Exception | None = None):
        self.forks = list(forks)
        self.error = error
        self.calls: list[tuple] = []

    def list_forks(self, owner: str, repo: str, **options):
        self.calls.append((owner, repo, options))
        if self.error is not None:
            raise self.error
        return iter(list(self.forks))

    def clone_url(self, ref: RepoRef) -> str:
        return f"https://h/{ref.owner}/{ref.name}.git"


def _make_fork(owner: str, name: str = "y", url: str | None = None) -> ForkDescriptor:
    return ForkDescriptor(
        owner=owner,
        name=name,
        clone_url=url or f"https://h/{owner}/{name}",
        parent=RepoRef("x", "y"),
    )


@pytest.fixture
def make_fork():
    return _make_fork


@pytest.fixture
def fake_git():
    return FakeGit()


@pytest.fixture
def locator(fake_git):
    return RepositoryLocator(fake_git)


@pytest.fixture
def directory_factory():
    return FakeDirectory
