"""
Repository locator.

Decides whether a path lives inside a git repository. Existing repositories
come back as a RepositoryHandle with their remotes; anything else becomes a
NeedsClone marker. Nothing is written to disk here.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Union

from .errors import NoRemoteFound
from .git import Git


logger = logging.getLogger(__name__)

ORIGIN = "origin"


@dataclass(frozen=True)
class RemoteEntry:
    """A configured remote."""
    name: str
    url: str


@dataclass(frozen=True)
class NeedsClone:
    """Marker for a path that is not inside a repository."""
    target_path: Path


class RepositoryHandle:
    """Live view of a local repository's remotes, with the ability to add one."""

    def __init__(self, root: Path, remotes: list[RemoteEntry], git: Git):
        self.root = root
        self.remotes = list(remotes)
        self._git = git
        self._borrowed = False

    @property
    def origin(self) -> RemoteEntry:
        """The remote named 'origin', else the first configured remote."""
        if not self.remotes:
            raise NoRemoteFound(f"Repository at {self.root} has no remotes")
        for remote in self.remotes:
            if remote.name == ORIGIN:
                return remote
        return self.remotes[0]

    def add_remote(self, name: str, url: str) -> RemoteEntry:
        self._git.add_remote(self.root, name, url)
        entry = RemoteEntry(name, url)
        self.remotes.append(entry)
        logger.info("Added remote %s -> %s", name, url)
        return entry

    @contextmanager
    def borrow(self) -> Iterator["RepositoryHandle"]:
        """Exclusive use of the handle for one reconciliation pass."""
        if self._borrowed:
            raise RuntimeError(f"Repository at {self.root} is already being reconciled")
        self._borrowed = True
        try:
            yield self
        finally:
            self._borrowed = False

    def __repr__(self) -> str:
        return f"RepositoryHandle(root={self.root!r}, remotes={len(self.remotes)})"


LocateResult = Union[RepositoryHandle, NeedsClone]


class RepositoryLocator:
    """Resolves filesystem paths to repositories."""

    def __init__(self, git: Git | None = None):
        self.git = git or Git()

    def locate(self, path: Path) -> LocateResult:
        """
        Locate the repository containing ``path``.

        Returns a handle whose ``origin`` is already resolved, or NeedsClone
        when ``path`` is not inside a repository.

        Raises:
            NoRemoteFound: the repository has no remotes configured
        """
        root = self.git.toplevel(path)
        if root is None:
            logger.debug("%s is not inside a repository", path)
            return NeedsClone(path)

        remotes = [RemoteEntry(name, url) for name, url in self.git.remotes(root)]
        handle = RepositoryHandle(root, remotes, self.git)
        origin = handle.origin
        logger.debug("Found repository %s (origin %s -> %s)", root, origin.name, origin.url)
        return handle
