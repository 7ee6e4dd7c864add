from __future__ import annotations

from typing import Iterable, Optional

from prcheckout.git_service import GitCommandError, GitRepository
from prcheckout.models import (
    Author,
    Branch,
    ConfigEntry,
    GitHubRef,
    PullRequest,
    Remote,
)
from prcheckout.protocol import Protocol


class FakeGit:
    def __init__(self) -> None:
        self._outputs: dict[tuple[str, ...], str] = {}
        self._failures: dict[tuple[str, ...], str] = {}
        self.calls: list[tuple[tuple[str, ...], str | None]] = []

    def set(self, args: list[str], output: str) -> None:
        self._outputs[tuple(args)] = output

    def fail(self, args: list[str], detail: str, returncode: int = 1) -> None:
        self._failures[tuple(args)] = detail
        self._returncode = returncode

    async def __call__(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        ok_returncodes: Iterable[int] = (0,),
        strip: bool = True,
    ) -> str:
        key = tuple(args)
        self.calls.append((key, cwd))
        if key in self._failures:
            raise GitCommandError(" ".join(args), self._returncode, self._failures[key])
        out = self._outputs.get(key, "")
        return out.strip() if strip else out

    def commands(self) -> list[tuple[str, ...]]:
        return [args for args, _ in self.calls]


def noop_notify(message: str, severity: str = "information") -> None:
    return


def noop_notify_once(key: str, message: str, severity: str = "error") -> None:
    return


def make_repository(fake: FakeGit, root: str = "/repo") -> GitRepository:
    return GitRepository(root, noop_notify, noop_notify_once, runner=fake)


class FakeRepository:
    """In-memory stand-in for GitRepository that behaves like a small git repo."""

    def __init__(self) -> None:
        self.branches: dict[str, Branch] = {}
        self.config: dict[str, str] = {}
        # remote name -> {branch: sha} as served by the remote
        self.remote_heads: dict[str, dict[str, str]] = {}
        self.merge_bases: list[Optional[str]] = []
        self.current: Optional[str] = None
        self.calls: list[tuple] = []
        self.messages: list[str] = []

    def add_branch(self, name: str, commit: str = "c0ffee", **kwargs) -> Branch:
        branch = Branch(name=name, commit=commit, **kwargs)
        self.branches[name] = branch
        return branch

    def add_existing_remote(self, name: str, url: str) -> None:
        self.config[f"remote.{name}.url"] = url

    def log(self, message: str, severity: str = "information") -> None:
        self.messages.append(message)

    def called(self, operation: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == operation]

    async def get_branch(self, name: str) -> Optional[Branch]:
        self.calls.append(("get_branch", name))
        return self.branches.get(name)

    async def get_current_branch(self) -> Optional[str]:
        return self.current

    async def checkout(self, name: str) -> None:
        self.calls.append(("checkout", name))
        if name not in self.branches:
            raise GitCommandError(f"git checkout {name}", 1, "pathspec did not match")
        self.current = name

    async def create_branch(self, name: str, commit: str) -> None:
        self.calls.append(("create_branch", name, commit))
        self.add_branch(name, commit)

    async def set_tracking_branch(self, name: str, upstream: str) -> None:
        self.calls.append(("set_tracking_branch", name, upstream))
        _, _, remote, merge = upstream.split("/", 3)
        self.branches[name].upstream = upstream
        self.branches[name].ahead = 0
        self.branches[name].behind = 0
        self.config[f"branch.{name}.remote"] = remote
        self.config[f"branch.{name}.merge"] = f"refs/heads/{merge}"

    async def fetch(self, remote: str, ref: Optional[str] = None) -> None:
        self.calls.append(("fetch", remote, ref))
        heads = self.remote_heads.get(remote, {})
        if ref and ":" in ref:
            source, destination = ref.split(":", 1)
            if source not in heads:
                raise GitCommandError(
                    f"git fetch {remote} {ref}", 128, f"couldn't find remote ref {source}"
                )
            self.add_branch(destination, heads[source])
            return
        for branch, sha in heads.items():
            tracked = f"refs/remotes/{remote}/{branch}"
            self.branches[tracked] = Branch(name=tracked, commit=sha)

    async def run(self, args: list[str]) -> str:
        self.calls.append(("run", tuple(args)))
        return ""

    async def get_config(self, key: str) -> Optional[str]:
        return self.config.get(key)

    async def get_configs(self) -> list[ConfigEntry]:
        return [ConfigEntry(key=key, value=value) for key, value in self.config.items()]

    async def set_config(self, key: str, value: str) -> None:
        self.calls.append(("set_config", key, value))
        self.config[key] = value

    async def add_remote(self, name: str, url: str) -> None:
        self.calls.append(("add_remote", name, url))
        self.config[f"remote.{name}.url"] = url

    async def get_remotes(self) -> list[Remote]:
        return [
            Remote(name=key[len("remote."):-len(".url")], url=value)
            for key, value in self.config.items()
            if key.startswith("remote.") and key.endswith(".url")
        ]

    async def get_merge_base(self, first: str, second: str) -> Optional[str]:
        self.calls.append(("get_merge_base", first, second))
        return self.merge_bases.pop(0) if self.merge_bases else None


def make_pull_request(
    number: int = 42,
    login: str = "forker",
    head_owner: str = "forker",
    head_ref: str = "feature-x",
    base_owner: str = "octocat",
    repository: str = "hello-world",
) -> PullRequest:
    return PullRequest(
        number=number,
        author=Author(login=login),
        head=GitHubRef(
            ref=head_ref,
            sha="headsha",
            repository_clone_url=Protocol(f"https://github.com/{head_owner}/{repository}"),
        ),
        base=GitHubRef(
            ref="main",
            sha="basesha",
            repository_clone_url=Protocol(f"https://github.com/{base_owner}/{repository}"),
        ),
        title="Add feature X",
        url=f"https://github.com/{base_owner}/{repository}/pull/{number}",
    )
