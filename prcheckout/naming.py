from typing import Iterable

from .git_service import GitRepository
from .models import DEFAULT_BRANCH_PREFIX, PullRequest, Remote


def canonical_branch_name(
    pull_request: PullRequest, prefix: str = DEFAULT_BRANCH_PREFIX
) -> str:
    return f"{prefix}/{pull_request.author.login}/{pull_request.number}"


async def branch_name_for_pull_request(
    repository: GitRepository,
    pull_request: PullRequest,
    prefix: str = DEFAULT_BRANCH_PREFIX,
) -> str:
    """Return the canonical name, suffixed ``-1``, ``-2``... while taken.

    The name is free when this returns; nothing reserves it.
    """
    branch_name = canonical_branch_name(pull_request, prefix)
    result = branch_name
    number = 1
    while await repository.get_branch(result) is not None:
        result = f"{branch_name}-{number}"
        number += 1
    return result


def unique_remote_name(remotes: Iterable[Remote], name: str) -> str:
    taken = {remote.name for remote in remotes}
    unique_name = name
    number = 1
    while unique_name in taken:
        unique_name = f"{name}{number}"
        number += 1
    return unique_name
