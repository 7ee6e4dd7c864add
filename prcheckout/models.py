from dataclasses import dataclass
from typing import Optional

from .protocol import Protocol


@dataclass
class PullRequestMetadata:
    owner: str
    repository_name: str
    number: int


@dataclass
class Author:
    login: str


@dataclass
class GitHubRef:
    ref: str
    sha: str
    repository_clone_url: Protocol


@dataclass
class PullRequest:
    number: int
    author: Author
    head: GitHubRef
    base: GitHubRef
    title: str = ""
    url: str = ""


@dataclass
class Branch:
    name: str
    commit: str
    upstream: Optional[str] = None
    ahead: Optional[int] = None
    behind: Optional[int] = None


@dataclass
class Remote:
    name: str
    url: str

    @property
    def git_protocol(self) -> Optional[Protocol]:
        protocol = Protocol(self.url)
        if protocol.owner is None:
            return None
        return protocol


@dataclass
class ConfigEntry:
    key: str
    value: str


@dataclass
class PullRequestBranch:
    remote: Remote
    branch: str


PR_METADATA_KEY = "github-pr-owner-number"
PR_REMOTE_METADATA_KEY = "github-pr-remote"
DEFAULT_BRANCH_PREFIX = "pr"
