import json
from typing import Optional

from .git_service import GitRepository
from .models import Author, GitHubRef, PullRequest
from .protocol import Protocol

PR_FIELDS = (
    "number,title,url,author,headRefName,headRefOid,"
    "headRepository,headRepositoryOwner,baseRefName,baseRefOid"
)
REPO_FIELDS = "name,owner,url"


class PullRequestLoadError(Exception):
    pass


def _load_json(raw: str, what: str) -> dict:
    if not raw:
        raise PullRequestLoadError(f"No data returned for {what}")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise PullRequestLoadError(f"Failed to parse {what}: {exc}") from exc
    if not isinstance(data, dict):
        raise PullRequestLoadError(f"Unexpected data for {what}")
    return data


def _login(value: object) -> Optional[str]:
    if isinstance(value, dict):
        login = value.get("login")
        if isinstance(login, str) and login:
            return login
    return None


def parse_pull_request(pr_data: dict, repo_data: dict) -> PullRequest:
    try:
        base_url = Protocol(str(repo_data["url"]))
        host = base_url.host or "github.com"
        base_owner = _login(repo_data.get("owner")) or base_url.owner
        base_name = str(repo_data.get("name") or base_url.repository_name)
        head_repo = pr_data.get("headRepository") or {}
        head_owner = _login(pr_data.get("headRepositoryOwner")) or base_owner
        head_name = str(head_repo.get("name") or base_name)
        number = int(pr_data["number"])
        head = GitHubRef(
            ref=str(pr_data["headRefName"]),
            sha=str(pr_data["headRefOid"]),
            repository_clone_url=Protocol(f"https://{host}/{head_owner}/{head_name}"),
        )
        base = GitHubRef(
            ref=str(pr_data["baseRefName"]),
            sha=str(pr_data["baseRefOid"]),
            repository_clone_url=Protocol(f"https://{host}/{base_owner}/{base_name}"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise PullRequestLoadError(f"Incomplete pull request data: {exc}") from exc
    return PullRequest(
        number=number,
        author=Author(login=_login(pr_data.get("author")) or head_owner),
        head=head,
        base=base,
        title=str(pr_data.get("title") or ""),
        url=str(pr_data.get("url") or ""),
    )


async def load_pull_request(
    repository: GitRepository, number: int, gh_command: str = "gh"
) -> PullRequest:
    pr_raw = await repository.run_git(
        [gh_command, "pr", "view", str(number), "--json", PR_FIELDS]
    )
    repo_raw = await repository.run_git([gh_command, "repo", "view", "--json", REPO_FIELDS])
    return parse_pull_request(
        _load_json(pr_raw, f"pull request #{number}"), _load_json(repo_raw, "repository")
    )
