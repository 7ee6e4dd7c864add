"""Pull request metadata stored in the repository config.

Each checked out pull request leaves one entry behind::

    branch.<branch>.github-pr-owner-number = <owner>#<repository>#<number>

The owner and repository are those of the pull request *base*. Remotes added
for forks carry ``remote.<name>.github-pr-remote = true``.
"""

from __future__ import annotations

import re
from typing import Iterable, Iterator, Optional

from .git_service import GitRepository
from .models import (
    ConfigEntry,
    PR_METADATA_KEY,
    PR_REMOTE_METADATA_KEY,
    PullRequest,
    PullRequestMetadata,
)

_BRANCH_KEY_RE = re.compile(r"^branch\.(.+)\." + re.escape(PR_METADATA_KEY) + r"$")
# greedy: the last two '#' delimit repository name and number
_METADATA_RE = re.compile(r"^(.*)#(.*)#(\d+)$")


def branch_metadata_key(branch_name: str) -> str:
    return f"branch.{branch_name}.{PR_METADATA_KEY}"


def remote_metadata_key(remote_name: str) -> str:
    return f"remote.{remote_name}.{PR_REMOTE_METADATA_KEY}"


def build_pull_request_metadata(pull_request: PullRequest) -> str:
    base = pull_request.base.repository_clone_url
    return f"{base.owner}#{base.repository_name}#{pull_request.number}"


def format_metadata(metadata: PullRequestMetadata) -> str:
    return f"{metadata.owner}#{metadata.repository_name}#{metadata.number}"


def parse_pull_request_metadata(value: Optional[str]) -> Optional[PullRequestMetadata]:
    if not value:
        return None
    match = _METADATA_RE.match(value)
    if match is None:
        return None
    owner, repository_name, number = match.groups()
    return PullRequestMetadata(
        owner=owner, repository_name=repository_name, number=int(number)
    )


class BranchAssociationIndex:
    """Branch name to pull request map built from a config listing.

    Branches may be renamed after checkout, so lookups by pull request go
    through the stored values rather than the ``pr/<login>/<number>`` naming
    scheme.
    """

    def __init__(self, associations: dict[str, PullRequestMetadata]) -> None:
        self._associations = associations

    @classmethod
    def from_configs(cls, entries: Iterable[ConfigEntry]) -> BranchAssociationIndex:
        associations: dict[str, PullRequestMetadata] = {}
        for entry in entries:
            match = _BRANCH_KEY_RE.match(entry.key)
            if match is None:
                continue
            metadata = parse_pull_request_metadata(entry.value)
            if metadata is None:
                continue
            associations[match.group(1)] = metadata
        return cls(associations)

    def get(self, branch_name: str) -> Optional[PullRequestMetadata]:
        return self._associations.get(branch_name)

    def branches_for(self, value: str) -> list[str]:
        return [
            branch
            for branch, metadata in self._associations.items()
            if format_metadata(metadata) == value
        ]

    def __iter__(self) -> Iterator[tuple[str, PullRequestMetadata]]:
        return iter(self._associations.items())

    def __len__(self) -> int:
        return len(self._associations)


async def build_association_index(repository: GitRepository) -> BranchAssociationIndex:
    return BranchAssociationIndex.from_configs(await repository.get_configs())


async def get_matching_pull_request_metadata_for_branch(
    repository: GitRepository, branch_name: str
) -> Optional[PullRequestMetadata]:
    value = await repository.get_config(branch_metadata_key(branch_name))
    return parse_pull_request_metadata(value)


async def is_remote_created_for_pull_request(
    repository: GitRepository, remote_name: str
) -> bool:
    return await repository.get_config(remote_metadata_key(remote_name)) == "true"
