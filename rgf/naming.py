"""Remote naming policy: map a fork to a unique local remote name."""

from __future__ import annotations

import re
from typing import Mapping

from .github import ForkDescriptor


_UNSAFE = re.compile(r"[^a-z0-9]")


def normalize_url(url: str) -> str:
    """Comparable form of a remote url (no trailing slash or .git, lowercased)."""
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.lower()


def same_url(a: str, b: str) -> bool:
    return normalize_url(a) == normalize_url(b)


def candidate_name(owner: str) -> str:
    """Owner lowercased with every non-alphanumeric character replaced by '-'."""
    return _UNSAFE.sub("-", owner.lower())


def name_for(descriptor: ForkDescriptor, existing: Mapping[str, str]) -> str:
    """
    Choose the remote name for ``descriptor``.

    ``existing`` maps remote names to urls. Candidates are tried in order
    ``owner``, ``owner-2``, ``owner-3`` ... Names compare case-insensitively.
    A taken name that already points at the fork's clone url is returned
    as is; use :func:`is_present` to tell that case from a free name.
    """
    by_lower = {name.lower(): (name, url) for name, url in existing.items()}
    base = candidate_name(descriptor.owner)

    suffix = 1
    while True:
        candidate = base if suffix == 1 else f"{base}-{suffix}"
        taken = by_lower.get(candidate.lower())
        if taken is None:
            return candidate
        name, url = taken
        if same_url(url, descriptor.clone_url):
            return name
        suffix += 1


def is_present(descriptor: ForkDescriptor, existing: Mapping[str, str], name: str) -> bool:
    """True if ``name`` is already configured for the fork's clone url."""
    url = existing.get(name)
    return url is not None and same_url(url, descriptor.clone_url)
