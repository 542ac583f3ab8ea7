"""Error taxonomy for rgf.

Every error carries a ``kind`` that the CLI prints next to the message.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .github import ForkDescriptor


class RgfError(Exception):
    """Base exception for all rgf errors."""

    kind = "RgfError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArguments(RgfError):
    """Command line arguments could not be interpreted."""

    kind = "InvalidArguments"


class NotARepository(RgfError):
    """Path is not inside a git repository and cloning was not requested."""

    kind = "NotARepository"


class NoRemoteFound(RgfError):
    """Repository has no remotes at all."""

    kind = "NoRemoteFound"


class GitCommandError(RgfError):
    """A git invocation exited with a non-zero status."""

    kind = "GitCommandError"

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = ""):
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"git {' '.join(args)} failed: {detail}")
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr


class CloneFailed(RgfError):
    """Cloning the upstream repository failed."""

    kind = "CloneFailed"


class AddRemoteFailed(RgfError):
    """Adding a single remote failed. Recorded per item, never aborts a pass."""

    kind = "AddRemoteFailed"

    def __init__(self, descriptor: "ForkDescriptor", cause: Exception):
        super().__init__(f"Failed to add remote for {descriptor.full_name}: {cause}")
        self.descriptor = descriptor
        self.cause = cause


class Unauthorized(RgfError):
    """The hosting API rejected the token."""

    kind = "Unauthorized"


class RateLimited(RgfError):
    """Rate limit exceeded and the retry budget is used up."""

    kind = "RateLimited"

    def __init__(self, reset_at: datetime | None):
        when = reset_at.isoformat() if reset_at else "unknown"
        super().__init__(f"GitHub API rate limit exceeded (resets at {when})")
        self.reset_at = reset_at


class DirectoryUnavailable(RgfError):
    """The fork directory could not be reached after retries."""

    kind = "DirectoryUnavailable"


class HostingAPIError(RgfError):
    """Non-retryable error response from the hosting API."""

    kind = "HostingAPIError"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
