"""
Reconciliation of local remotes with the fork listing.

A pass moves through the phases

    START -> LOCATING -> LISTING -> DIFFING -> APPLYING -> DONE

and drops into FAILED from any non-terminal phase. ``advance`` is the pure
transition function; ``Reconciler`` drives it and performs the effects.
Remotes are only ever added, never removed or rewritten.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Protocol, Union

from .errors import AddRemoteFailed, CloneFailed, GitCommandError, RgfError
from .github import ForkDescriptor, RepoRef
from .naming import is_present, name_for, normalize_url
from .repo import NeedsClone, RemoteEntry, RepositoryHandle, RepositoryLocator


logger = logging.getLogger(__name__)


class Phase(str, Enum):
    START = "start"
    LOCATING = "locating"
    LISTING = "listing"
    DIFFING = "diffing"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


_NEXT = {
    Phase.START: Phase.LOCATING,
    Phase.LOCATING: Phase.LISTING,
    Phase.LISTING: Phase.DIFFING,
    Phase.DIFFING: Phase.APPLYING,
    Phase.APPLYING: Phase.DONE,
}


def advance(phase: Phase, ok: bool = True) -> Phase:
    """Next phase after ``phase`` completes (``ok``) or fails."""
    if phase in (Phase.DONE, Phase.FAILED):
        return phase
    if not ok:
        return Phase.FAILED
    return _NEXT[phase]


@dataclass(frozen=True)
class ToAdd:
    fork: ForkDescriptor
    name: str

    @property
    def url(self) -> str:
        return self.fork.clone_url


@dataclass(frozen=True)
class AlreadyPresent:
    fork: ForkDescriptor
    name: str


Action = Union[ToAdd, AlreadyPresent]


def plan(forks: Iterable[ForkDescriptor], remotes: Iterable[RemoteEntry]) -> list[Action]:
    """
    Classify each fork as ToAdd or AlreadyPresent, in listing order.

    A fork whose url is configured under any name is already present. Names
    chosen for earlier forks count as taken for later ones, so the same
    owner twice gets ``owner`` and ``owner-2``.
    """
    existing: dict[str, str] = {}
    by_url: dict[str, str] = {}
    for remote in remotes:
        existing[remote.name] = remote.url
        by_url.setdefault(normalize_url(remote.url), remote.name)

    actions: list[Action] = []
    for fork in forks:
        known = by_url.get(normalize_url(fork.clone_url))
        if known is not None:
            actions.append(AlreadyPresent(fork, known))
            continue

        name = name_for(fork, existing)
        if is_present(fork, existing, name):
            actions.append(AlreadyPresent(fork, name))
            continue

        existing[name] = fork.clone_url
        by_url[normalize_url(fork.clone_url)] = name
        actions.append(ToAdd(fork, name))
    return actions


class ForkDirectory(Protocol):
    def list_forks(self, owner: str, repo: str, **options: Any) -> Iterable[ForkDescriptor]: ...

    def clone_url(self, ref: RepoRef) -> str: ...


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation pass."""
    phase: Phase = Phase.START
    forks: list[ForkDescriptor] = field(default_factory=list)
    added: list[RemoteEntry] = field(default_factory=list)
    already_present: list[ForkDescriptor] = field(default_factory=list)
    failed: list[tuple[ForkDescriptor, AddRemoteFailed]] = field(default_factory=list)
    planned: list[RemoteEntry] = field(default_factory=list)
    error: RgfError | None = None
    repository: Path | None = None

    @property
    def ok(self) -> bool:
        return self.phase == Phase.DONE and not self.failed


class Reconciler:
    """Drives one reconciliation pass."""

    def __init__(
        self,
        locator: RepositoryLocator,
        directory: ForkDirectory,
        dry_run: bool = False,
        list_options: dict[str, Any] | None = None,
    ):
        self.locator = locator
        self.directory = directory
        self.dry_run = dry_run
        self.list_options = list_options or {}

    def reconcile(
        self,
        target: RepositoryHandle | NeedsClone,
        owner: str,
        repo: str,
    ) -> ReconciliationReport:
        """
        Bring the remotes of ``target`` in line with the forks of ``owner/repo``.

        Errors before APPLYING end the pass in FAILED with ``report.error``
        set. Add failures are collected in ``report.failed``.
        """
        report = ReconciliationReport()
        ref = RepoRef(owner, repo)

        report.phase = advance(report.phase)
        try:
            handle = self._resolve(target, ref)
        except RgfError as e:
            return self._fail(report, e)
        report.repository = handle.root

        with handle.borrow():
            report.phase = advance(report.phase)
            try:
                report.forks = list(self.directory.list_forks(owner, repo, **self.list_options))
            except RgfError as e:
                return self._fail(report, e)
            logger.info("Listed %d forks of %s", len(report.forks), ref.full_name)

            report.phase = advance(report.phase)
            actions = plan(report.forks, handle.remotes)

            report.phase = advance(report.phase)
            self._apply(handle, actions, report)

        report.phase = advance(report.phase)
        return report

    def _resolve(self, target: RepositoryHandle | NeedsClone, ref: RepoRef) -> RepositoryHandle:
        if isinstance(target, RepositoryHandle):
            return target

        url = self.directory.clone_url(ref)
        logger.info("Cloning %s into %s", url, target.target_path)
        try:
            self.locator.git.clone(url, target.target_path)
        except (GitCommandError, OSError) as e:
            raise CloneFailed(f"Could not clone {url} into {target.target_path}: {e}") from e

        located = self.locator.locate(target.target_path)
        if isinstance(located, NeedsClone):
            raise CloneFailed(f"No repository found at {target.target_path} after cloning {url}")
        return located

    def _apply(
        self,
        handle: RepositoryHandle,
        actions: list[Action],
        report: ReconciliationReport,
    ) -> None:
        for action in actions:
            if isinstance(action, AlreadyPresent):
                report.already_present.append(action.fork)
                continue

            if self.dry_run:
                report.planned.append(RemoteEntry(action.name, action.url))
                continue

            try:
                report.added.append(handle.add_remote(action.name, action.url))
            except RgfError as e:
                logger.warning("Failed to add remote %s: %s", action.name, e)
                report.failed.append((action.fork, AddRemoteFailed(action.fork, e)))

    def _fail(self, report: ReconciliationReport, error: RgfError) -> ReconciliationReport:
        logger.error("Reconciliation failed while %s: %s", report.phase.value, error)
        report.phase = advance(report.phase, ok=False)
        report.error = error
        return report
