"""
rgf CLI - Add all forks of a GitHub repository as remotes.

Modes:
    --list        - Print the forks of OWNER/REPO
    --add         - Add missing forks as remotes of the local repository
    --rate-limit  - Show the GitHub API rate limit status
"""

from __future__ import annotations

import json
import logging
import sys
from email.utils import format_datetime
from pathlib import Path
from typing import NoReturn

import click
from dotenv import load_dotenv

from .config import get_repo_root

# Load .env file from current directory or repo root
load_dotenv()
try:
    load_dotenv(get_repo_root() / ".env")
except OSError:
    pass

from . import __version__
from .config import RgfConfig, TOKEN_ENV_VAR
from .errors import InvalidArguments, NotARepository, RgfError
from .github import ForkDescriptor, GitHubClient, RateLimitStatus, RepoRef
from .reconcile import Phase, ReconciliationReport, Reconciler
from .repo import NeedsClone, RepositoryLocator


logger = logging.getLogger(__name__)


def format_rate_limit(status: RateLimitStatus) -> str:
    """One-line rate limit summary with the reset time in local time."""
    reset = format_datetime(status.reset_at.astimezone())
    return (
        f"rate-limit:{status.used}/{status.limit} "
        f"available:{status.remaining} reset-at:{reset}"
    )


def format_fork(fork: ForkDescriptor, verbose: bool = False) -> str:
    if verbose:
        return f"{fork.full_name} | {fork.forks_count}"
    return fork.full_name


def fork_to_dict(fork: ForkDescriptor) -> dict:
    return {
        "owner": fork.owner,
        "name": fork.name,
        "full_name": fork.full_name,
        "clone_url": fork.clone_url,
        "fork": fork.is_fork,
        "parent": fork.parent.full_name if fork.parent else None,
        "forks_count": fork.forks_count,
    }


def report_to_dict(report: ReconciliationReport) -> dict:
    return {
        "phase": report.phase.value,
        "repository": str(report.repository) if report.repository else None,
        "added": [{"name": r.name, "url": r.url} for r in report.added],
        "planned": [{"name": r.name, "url": r.url} for r in report.planned],
        "already_present": [f.full_name for f in report.already_present],
        "failed": [
            {"fork": fork.full_name, "reason": str(reason)}
            for fork, reason in report.failed
        ],
        "error": (
            {"kind": report.error.kind, "message": report.error.message}
            if report.error else None
        ),
    }


def echo_report(report: ReconciliationReport) -> None:
    """Print per-remote lines and a summary."""
    for remote in report.added:
        click.echo(f"+ {remote.name} {remote.url}")
    for remote in report.planned:
        click.echo(f"(+) {remote.name} {remote.url}")
    for fork in report.already_present:
        click.echo(f"= {fork.full_name}")
    for fork, reason in report.failed:
        click.echo(f"! {fork.full_name}: {reason.cause}", err=True)

    summary = (
        f"\nAdded: {len(report.added)}, "
        f"already present: {len(report.already_present)}, "
        f"failed: {len(report.failed)}"
    )
    if report.planned:
        summary += f", would add: {len(report.planned)}"
    click.echo(summary)


def fail(error: RgfError) -> NoReturn:
    """Print an error and exit with status 1."""
    click.echo(f"Error [{error.kind}]: {error.message}", err=True)
    sys.exit(1)


def resolve_repository(repository: str | None, locator: RepositoryLocator, path: Path) -> RepoRef:
    """OWNER/REPO from the argument, or from the local repository's origin."""
    if repository:
        return RepoRef.parse(repository)

    located = locator.locate(path)
    if isinstance(located, NeedsClone):
        raise InvalidArguments("OWNER/REPO is required outside a git repository")
    origin = located.origin
    ref = RepoRef.from_remote_url(origin.url)
    if ref is None:
        raise InvalidArguments(
            f"Cannot infer OWNER/REPO from remote '{origin.name}' ({origin.url})"
        )
    logger.debug("Using %s from remote %s", ref.full_name, origin.name)
    return ref


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("repository", required=False)
@click.option("-l", "--list", "list_forks", is_flag=True, help="Only list the forks")
@click.option("-a", "--add", "add", is_flag=True, help="Add the forks as remotes of the local repository")
@click.option("-d", "--dry-run", is_flag=True, help="Do everything except actually add the remotes")
@click.option("--rate-limit", is_flag=True, help="View current rate limit status")
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page at which listing starts")
@click.option("--per-page", default=None, type=click.IntRange(1, 100), help="Forks per API request")
@click.option("--limit", default=None, type=click.IntRange(min=1), help="Maximum number of forks")
@click.option("--path", default=".", type=click.Path(path_type=Path), help="Local repository path")
@click.option("--clone", is_flag=True, help="Clone OWNER/REPO when PATH is not a repository")
@click.option("-t", "--token", envvar=TOKEN_ENV_VAR, default=None, help="GitHub token")
@click.option("--config", "config_path", default=None, type=click.Path(path_type=Path, exists=True, dir_okay=False),
              help="Path to rgf.yml")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.version_option(version=__version__)
def main(
    repository: str | None,
    list_forks: bool,
    add: bool,
    dry_run: bool,
    rate_limit: bool,
    page: int,
    per_page: int | None,
    limit: int | None,
    path: Path,
    clone: bool,
    token: str | None,
    config_path: Path | None,
    as_json: bool,
    verbose: bool,
):
    """Add all forks of a GitHub repository as remotes to the local repository.

    REPOSITORY is the upstream in <owner>/<repo> form. With --add it may be
    omitted when the local origin points at GitHub.

    Examples:

        rgf google/battery-historian --list

        rgf google/battery-historian --add --dry-run

        rgf --rate-limit
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not (list_forks or add or rate_limit):
        raise click.UsageError("Nothing to do: pass --list, --add or --rate-limit")

    path = path.expanduser()
    locator = RepositoryLocator()

    try:
        config = RgfConfig.load(get_repo_root(path if path.is_dir() else None), config_path)
        if token:
            config.token = token
        client = GitHubClient(token=config.token, github=config.github, retry=config.retry)

        ref = None
        if list_forks or add:
            ref = resolve_repository(repository, locator, path)
    except InvalidArguments as e:
        raise click.UsageError(e.message)
    except RgfError as e:
        fail(e)

    list_options = {"start_page": page, "per_page": per_page, "limit": limit}

    if rate_limit:
        try:
            status = client.rate_limit()
        except RgfError as e:
            fail(e)
        if as_json:
            click.echo(json.dumps({
                "limit": status.limit,
                "remaining": status.remaining,
                "used": status.used,
                "reset_at": status.reset_at.isoformat(),
            }, indent=2))
        else:
            click.echo(format_rate_limit(status))

    if list_forks and not add:
        try:
            forks = list(client.list_forks(ref.owner, ref.name, **list_options))
        except RgfError as e:
            fail(e)
        if as_json:
            click.echo(json.dumps([fork_to_dict(f) for f in forks], indent=2))
        else:
            for fork in forks:
                click.echo(format_fork(fork, verbose))

    if add:
        try:
            target = locator.locate(path)
        except RgfError as e:
            fail(e)

        if isinstance(target, NeedsClone):
            if not clone:
                fail(NotARepository(f"{path} is not inside a git repository (use --clone)"))
            if path.exists():
                # An earlier --clone run may already have created path/<repo>
                try:
                    target = locator.locate(path / ref.name)
                except RgfError as e:
                    fail(e)

        reconciler = Reconciler(locator, client, dry_run=dry_run, list_options=list_options)
        report = reconciler.reconcile(target, ref.owner, ref.name)

        if as_json:
            data = report_to_dict(report)
            if list_forks:
                data["forks"] = [fork_to_dict(f) for f in report.forks]
            click.echo(json.dumps(data, indent=2))
        else:
            if list_forks:
                for fork in report.forks:
                    click.echo(format_fork(fork, verbose))
            if report.phase == Phase.FAILED:
                fail(report.error)
            echo_report(report)

        if not report.ok:
            sys.exit(1)


if __name__ == "__main__":
    main()
