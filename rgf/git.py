"""Thin wrapper around the git executable."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .errors import GitCommandError


logger = logging.getLogger(__name__)


class Git:
    """Runs git commands through subprocess."""

    def __init__(self, executable: str = "git"):
        self.executable = executable

    def _run(self, args: list[str], cwd: Path | None = None) -> str:
        logger.debug("git %s (cwd=%s)", " ".join(args), cwd)
        try:
            result = subprocess.run(
                [self.executable, *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise GitCommandError(args, e.returncode, e.stderr or "") from e
        except OSError as e:
            raise GitCommandError(args, -1, str(e)) from e
        return result.stdout

    def toplevel(self, path: Path) -> Path | None:
        """Root of the work tree containing ``path``, or None outside a repository."""
        if not path.is_dir():
            return None
        try:
            out = self._run(["rev-parse", "--show-toplevel"], cwd=path)
        except GitCommandError as e:
            # git itself could not be started
            if e.returncode == -1:
                raise
            return None
        return Path(out.strip())

    def remotes(self, root: Path) -> list[tuple[str, str]]:
        """(name, url) pairs in the order they appear in the git config."""
        try:
            out = self._run(
                ["config", "--get-regexp", r"^remote\..*\.url$"], cwd=root
            )
        except GitCommandError as e:
            # Exit status 1 means no matching keys
            if e.returncode == 1:
                return []
            raise

        remotes = []
        for line in out.splitlines():
            key, _, url = line.partition(" ")
            name = key[len("remote."):-len(".url")]
            remotes.append((name, url))
        return remotes

    def add_remote(self, root: Path, name: str, url: str) -> None:
        self._run(["remote", "add", name, url], cwd=root)

    def clone(self, url: str, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        self._run(["clone", url, str(target)])
