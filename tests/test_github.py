import json

import pytest

from prcheckout.github import PR_FIELDS, REPO_FIELDS, PullRequestLoadError, load_pull_request

from tests.utils import FakeGit, make_repository

PR_DATA = {
    "number": 42,
    "title": "Add feature X",
    "url": "https://github.com/octocat/hello-world/pull/42",
    "author": {"login": "forker"},
    "headRefName": "feature-x",
    "headRefOid": "headsha",
    "headRepository": {"id": "R_1", "name": "hello-world"},
    "headRepositoryOwner": {"id": "U_1", "login": "forker"},
    "baseRefName": "main",
    "baseRefOid": "basesha",
}
REPO_DATA = {
    "name": "hello-world",
    "owner": {"login": "octocat"},
    "url": "https://github.com/octocat/hello-world",
}


def fake_gh(pr_data: object, repo_data: object) -> FakeGit:
    fake = FakeGit()
    fake.set(["gh", "pr", "view", "42", "--json", PR_FIELDS], json.dumps(pr_data))
    fake.set(["gh", "repo", "view", "--json", REPO_FIELDS], json.dumps(repo_data))
    return fake


@pytest.mark.asyncio
async def test_load_pull_request_from_fork() -> None:
    repo = make_repository(fake_gh(PR_DATA, REPO_DATA))

    pull_request = await load_pull_request(repo, 42)

    assert pull_request.number == 42
    assert pull_request.author.login == "forker"
    assert pull_request.head.ref == "feature-x"
    assert pull_request.head.sha == "headsha"
    assert pull_request.head.repository_clone_url.owner == "forker"
    assert pull_request.base.ref == "main"
    assert pull_request.base.repository_clone_url.normalize_uri() == (
        "https://github.com/octocat/hello-world"
    )
    assert pull_request.title == "Add feature X"


@pytest.mark.asyncio
async def test_deleted_fork_falls_back_to_base_repository() -> None:
    pr_data = dict(PR_DATA, headRepository=None, headRepositoryOwner=None, author=None)
    repo = make_repository(fake_gh(pr_data, REPO_DATA))

    pull_request = await load_pull_request(repo, 42)

    assert pull_request.head.repository_clone_url.owner == "octocat"
    assert pull_request.author.login == "octocat"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("pr_data", "message"),
    [
        ("", "No data returned"),
        ([], "Unexpected data"),
        ({"number": 42}, "Incomplete pull request data"),
    ],
)
async def test_load_pull_request_errors(pr_data, message) -> None:
    fake = fake_gh(pr_data, REPO_DATA)
    if pr_data == "":
        fake.set(["gh", "pr", "view", "42", "--json", PR_FIELDS], "")
    repo = make_repository(fake)

    with pytest.raises(PullRequestLoadError, match=message):
        await load_pull_request(repo, 42)


@pytest.mark.asyncio
async def test_load_pull_request_rejects_invalid_json() -> None:
    fake = fake_gh(PR_DATA, REPO_DATA)
    fake.set(["gh", "repo", "view", "--json", REPO_FIELDS], "{not json")

    with pytest.raises(PullRequestLoadError, match="Failed to parse repository"):
        await load_pull_request(make_repository(fake), 42)
