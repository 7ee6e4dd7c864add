"""Pull request checkout and re-discovery.

Every workflow here is a straight sequence of awaited git calls. The first
failing call raises and aborts the workflow with nothing rolled back; all of
them can be re-run to finish a partial checkout.
"""

from typing import Iterable, Optional

from .git_service import GitRepository
from .metadata import (
    branch_metadata_key,
    build_association_index,
    build_pull_request_metadata,
    remote_metadata_key,
)
from .models import DEFAULT_BRANCH_PREFIX, PullRequest, PullRequestBranch, Remote
from .naming import canonical_branch_name, unique_remote_name
from .protocol import Protocol


class CheckoutError(Exception):
    pass


class MissingTrackingBranchError(CheckoutError):
    def __init__(self, tracked_branch: str) -> None:
        self.tracked_branch = tracked_branch
        super().__init__(f"Could not find branch '{tracked_branch}'.")


async def create_and_checkout(
    repository: GitRepository,
    pull_request: PullRequest,
    prefix: str = DEFAULT_BRANCH_PREFIX,
) -> str:
    branch_name = canonical_branch_name(pull_request, prefix)
    if await repository.get_branch(branch_name) is not None:
        repository.log(
            f"Branch {branch_name} exists locally, checking it out without fetching"
        )
        await repository.checkout(branch_name)
    else:
        repository.log(f"Branch {branch_name} is from a fork, resolving its remote")
        head = pull_request.head
        remote_name = await resolve_or_create_remote(
            repository, head.repository_clone_url
        )
        await repository.fetch(remote_name, f"{head.ref}:{branch_name}")
        await repository.checkout(branch_name)
        await repository.set_tracking_branch(
            branch_name, f"refs/remotes/{remote_name}/{head.ref}"
        )
    await associate_branch_with_pull_request(repository, pull_request, branch_name)
    return branch_name


async def resolve_or_create_remote(repository: GitRepository, clone_url: Protocol) -> str:
    remotes = await repository.get_remotes()
    for remote in remotes:
        if Protocol(remote.url).equals(clone_url):
            repository.log(f"Reusing remote {remote.name} for {clone_url}")
            return remote.name
    remote_name = unique_remote_name(remotes, clone_url.owner or "fork")
    url = clone_url.normalize_uri() or clone_url.url
    repository.log(f"Adding remote {remote_name} for {url}")
    await repository.add_remote(remote_name, url)
    await repository.set_config(remote_metadata_key(remote_name), "true")
    return remote_name


async def fetch_and_checkout(
    repository: GitRepository,
    remote: Remote,
    branch_name: str,
    pull_request: PullRequest,
    fast_forward: bool = True,
) -> None:
    await repository.fetch(remote.name)
    branch = await repository.get_branch(branch_name)
    if branch is None:
        repository.log(f"Branch {remote.name}/{branch_name} is not on local disk yet")
        await fetch_and_create_branch(repository, remote, branch_name)
        branch = await repository.get_branch(branch_name)

    await repository.checkout(branch_name)

    if branch is None or not branch.upstream:
        await repository.set_tracking_branch(
            branch_name, f"refs/remotes/{remote.name}/{branch_name}"
        )
    elif fast_forward and branch.behind and branch.ahead == 0:
        repository.log(f"Fast-forwarding {branch_name} by {branch.behind} commit(s)")
        await repository.run(["pull"])

    await associate_branch_with_pull_request(repository, pull_request, branch_name)


async def fetch_and_create_branch(
    repository: GitRepository, remote: Remote, branch_name: str
) -> None:
    tracked_branch_name = f"refs/remotes/{remote.name}/{branch_name}"
    repository.log(f"Creating {branch_name} from {tracked_branch_name}")
    tracked_branch = await repository.get_branch(tracked_branch_name)
    if tracked_branch is None:
        raise MissingTrackingBranchError(tracked_branch_name)
    await repository.create_branch(branch_name, tracked_branch.commit)
    await repository.set_tracking_branch(branch_name, tracked_branch_name)


def get_head_remote_for_pull_request(
    remotes: Iterable[Remote], pull_request: PullRequest
) -> Optional[Remote]:
    head_url = pull_request.head.repository_clone_url
    for remote in remotes:
        protocol = remote.git_protocol
        if protocol is not None and protocol.equals(head_url):
            return remote
    return None


async def get_branch_for_pull_request_from_existing_remotes(
    repository: GitRepository,
    remotes: Iterable[Remote],
    pull_request: PullRequest,
) -> Optional[PullRequestBranch]:
    head_remote = get_head_remote_for_pull_request(remotes, pull_request)
    if head_remote is not None:
        # head lives in a known repository, no fork handling needed
        return PullRequestBranch(remote=head_remote, branch=pull_request.head.ref)

    index = await build_association_index(repository)
    branches = index.branches_for(build_pull_request_metadata(pull_request))
    if not branches:
        return None
    branch_name = branches[0]
    remote_name = await repository.get_config(f"branch.{branch_name}.remote")
    for remote in await repository.get_remotes():
        if remote.name == remote_name:
            return PullRequestBranch(remote=remote, branch=branch_name)
    return None


async def associate_branch_with_pull_request(
    repository: GitRepository, pull_request: PullRequest, branch_name: str
) -> None:
    repository.log(f"Associating {branch_name} with pull request #{pull_request.number}")
    await repository.set_config(
        branch_metadata_key(branch_name), build_pull_request_metadata(pull_request)
    )


async def checkout_pull_request(
    repository: GitRepository,
    remotes: Iterable[Remote],
    pull_request: PullRequest,
    prefix: str = DEFAULT_BRANCH_PREFIX,
    fast_forward: bool = True,
) -> str:
    target = await get_branch_for_pull_request_from_existing_remotes(
        repository, remotes, pull_request
    )
    if target is None:
        return await create_and_checkout(repository, pull_request, prefix)
    await fetch_and_checkout(
        repository, target.remote, target.branch, pull_request, fast_forward
    )
    return target.branch


async def get_pull_request_merge_base(
    repository: GitRepository, remote: Remote, pull_request: PullRequest
) -> Optional[str]:
    base, head = pull_request.base, pull_request.head
    merge_base = await repository.get_merge_base(base.sha, head.sha)
    if merge_base:
        return merge_base
    repository.log(f"Merge base for #{pull_request.number} not local, fetching")
    await repository.fetch(remote.name, f"refs/pull/{pull_request.number}/head")
    await repository.fetch(remote.name, base.ref)
    return await repository.get_merge_base(base.sha, head.sha)
