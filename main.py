#!/usr/bin/env -S uv --quiet run --script
# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "click",
#     "rich",
#     "PyYAML",
# ]
# ///

import asyncio
import os
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from prcheckout.config import AppConfig, load_config
from prcheckout.git_service import GitCommandError, GitRepository
from prcheckout.github import PullRequestLoadError, load_pull_request
from prcheckout.metadata import (
    build_association_index,
    get_matching_pull_request_metadata_for_branch,
    is_remote_created_for_pull_request,
)
from prcheckout.models import Remote
from prcheckout.resolver import (
    CheckoutError,
    associate_branch_with_pull_request,
    checkout_pull_request,
    get_pull_request_merge_base,
)

SEVERITY_STYLES = {
    "information": "dim",
    "warning": "yellow",
    "error": "bold red",
}


class Notifier:
    def __init__(self, console: Console, verbose: bool) -> None:
        self._console = console
        self._verbose = verbose
        self._seen: set[str] = set()

    def notify(self, message: str, severity: str = "information") -> None:
        if severity == "information" and not self._verbose:
            return
        style = SEVERITY_STYLES.get(severity, "")
        self._console.print(message, style=style, markup=False, highlight=False)

    def notify_once(self, key: str, message: str, severity: str = "error") -> None:
        if key in self._seen:
            return
        self._seen.add(key)
        self.notify(message, severity=severity)


class CliState:
    def __init__(self, repository: GitRepository, config: AppConfig) -> None:
        self.repository = repository
        self.config = config

    async def known_remotes(self) -> list[Remote]:
        remotes = []
        for remote in await self.repository.get_remotes():
            protocol = remote.git_protocol
            if protocol is None or protocol.host not in self.config.hosts:
                continue
            # fork remotes are found again through branch associations
            if await is_remote_created_for_pull_request(self.repository, remote.name):
                continue
            remotes.append(remote)
        return remotes


def run_async(coro):
    try:
        return asyncio.run(coro)
    except (CheckoutError, GitCommandError, PullRequestLoadError) as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.option(
    "--repo",
    "repo_path",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="Repository to operate on.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Configuration file (defaults to $XDG_CONFIG_HOME/prcheckout/config.yaml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Show progress messages.")
@click.pass_context
def cli(ctx: click.Context, repo_path: str, config_path: Optional[str], verbose: bool) -> None:
    """Check out pull requests as local branches and find them again later."""
    notifier = Notifier(Console(stderr=True), verbose)
    repository = GitRepository(
        os.path.abspath(repo_path), notifier.notify, notifier.notify_once
    )
    ctx.obj = CliState(repository, load_config(config_path))


@cli.command()
@click.argument("number", type=int)
@click.pass_obj
def checkout(state: CliState, number: int) -> None:
    """Check out pull request NUMBER."""

    async def do_checkout() -> str:
        pull_request = await load_pull_request(
            state.repository, number, state.config.gh_command
        )
        return await checkout_pull_request(
            state.repository,
            await state.known_remotes(),
            pull_request,
            prefix=state.config.branch_prefix,
            fast_forward=state.config.fast_forward,
        )

    click.echo(run_async(do_checkout()))


@cli.command()
@click.argument("branch", required=False)
@click.pass_obj
def which(state: CliState, branch: Optional[str]) -> None:
    """Show the pull request associated with BRANCH (default: current branch)."""

    async def do_which():
        name = branch or await state.repository.get_current_branch()
        if not name:
            return None, None
        return name, await get_matching_pull_request_metadata_for_branch(
            state.repository, name
        )

    name, metadata = run_async(do_which())
    if name is None:
        raise click.ClickException("Not on a branch")
    if metadata is None:
        raise click.ClickException(f"No pull request associated with {name}")
    click.echo(f"{metadata.owner}/{metadata.repository_name}#{metadata.number}")


@cli.command("list")
@click.pass_obj
def list_associations(state: CliState) -> None:
    """List branches associated with pull requests."""

    async def do_list():
        index = await build_association_index(state.repository)
        rows = []
        for branch, metadata in sorted(index, key=lambda item: item[0]):
            remote_name = await state.repository.get_config(f"branch.{branch}.remote")
            created = bool(remote_name) and await is_remote_created_for_pull_request(
                state.repository, remote_name
            )
            rows.append((branch, metadata, remote_name or "", created))
        return rows

    rows = run_async(do_list())
    if not rows:
        click.echo("No branches are associated with pull requests.")
        return
    table = Table("Branch", "Pull Request", "Remote")
    for branch, metadata, remote_name, created in rows:
        table.add_row(
            branch,
            f"{metadata.owner}/{metadata.repository_name}#{metadata.number}",
            f"{remote_name} (fork)" if created else remote_name,
        )
    Console().print(table)


@cli.command()
@click.argument("branch")
@click.argument("number", type=int)
@click.pass_obj
def associate(state: CliState, branch: str, number: int) -> None:
    """Record that BRANCH holds pull request NUMBER."""

    async def do_associate() -> None:
        if await state.repository.get_branch(branch) is None:
            raise CheckoutError(f"No local branch named {branch}")
        pull_request = await load_pull_request(
            state.repository, number, state.config.gh_command
        )
        await associate_branch_with_pull_request(state.repository, pull_request, branch)

    run_async(do_associate())


@cli.command("merge-base")
@click.argument("number", type=int)
@click.option("--remote", "remote_name", default=None, help="Remote to fetch from.")
@click.pass_obj
def merge_base(state: CliState, number: int, remote_name: Optional[str]) -> None:
    """Print the merge base of pull request NUMBER."""

    async def do_merge_base() -> Optional[str]:
        pull_request = await load_pull_request(
            state.repository, number, state.config.gh_command
        )
        remotes = await state.repository.get_remotes()
        remote = next((r for r in remotes if r.name == remote_name), None)
        if remote is None and remote_name is None:
            base_url = pull_request.base.repository_clone_url
            remote = next(
                (r for r in remotes if r.git_protocol and r.git_protocol.equals(base_url)),
                None,
            )
        if remote is None:
            raise CheckoutError(f"No remote found for pull request #{number}")
        return await get_pull_request_merge_base(state.repository, remote, pull_request)

    result = run_async(do_merge_base())
    if not result:
        raise click.ClickException(f"No merge base found for pull request #{number}")
    click.echo(result)


if __name__ == "__main__":
    cli()
