import asyncio
import re
from typing import Iterable, Optional, Callable, Awaitable

from .models import Branch, ConfigEntry, Remote

NotifyFn = Callable[..., None]
NotifyOnceFn = Callable[..., None]
RunnerFn = Callable[..., Awaitable[str]]

_REMOTE_URL_RE = re.compile(r"^remote\.(.+)\.url$")
_TRACK_RE = re.compile(r"(ahead|behind) (\d+)")
_MISSING_COMMIT_RE = re.compile(
    r"not a valid (?:commit|object) name|bad object|unknown revision", re.IGNORECASE
)
_BRANCH_FORMAT = "%(refname)%00%(objectname)%00%(upstream)%00%(upstream:track)"


class GitCommandError(Exception):
    """Raised when a git (or gh) command exits with an unexpected status."""

    def __init__(self, command: str, returncode: Optional[int], detail: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.detail = detail
        suffix = f": {detail}" if detail else f" (exit {returncode})"
        super().__init__(f"Command failed: {command}{suffix}")


class GitRepository:
    def __init__(
        self,
        root: str,
        notify: NotifyFn,
        notify_once: NotifyOnceFn,
        runner: Optional[RunnerFn] = None,
    ) -> None:
        self.root = root
        self._notify = notify
        self._notify_once = notify_once
        self._runner = runner

    def log(self, message: str, severity: str = "information") -> None:
        try:
            self._notify(message, severity=severity)
        except Exception:
            pass

    async def run_git(
        self,
        args: list[str],
        ok_returncodes: Iterable[int] = (0,),
        strip: bool = True,
        report: bool = True,
    ) -> str:
        if self._runner is not None:
            return await self._runner(
                args, cwd=self.root, ok_returncodes=ok_returncodes, strip=strip
            )
        command = " ".join(args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=self.root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            name = args[0] if args else "command"
            self._report(f"cmd_missing:{name}", f"Command not found: {name}")
            raise GitCommandError(command, None, f"command not found: {name}") from exc
        stdout, stderr = await proc.communicate()
        if proc.returncode not in set(ok_returncodes):
            detail = (
                stderr.decode(errors="replace").strip()
                or stdout.decode(errors="replace").strip()
            )
            error = GitCommandError(command, proc.returncode, detail)
            if report:
                self._report(f"git_fail:{self.root}:{command}", str(error))
            raise error
        out = stdout.decode(errors="replace")
        return out.strip() if strip else out

    def _report(self, key: str, message: str) -> None:
        try:
            self._notify_once(key, message, severity="error")
        except Exception:
            pass

    async def run(self, args: list[str]) -> str:
        return await self.run_git(["git", *args])

    async def get_branch(self, name: str) -> Optional[Branch]:
        ref = name if name.startswith("refs/") else f"refs/heads/{name}"
        raw = await self.run_git(
            ["git", "for-each-ref", f"--format={_BRANCH_FORMAT}", ref]
        )
        for line in raw.splitlines():
            parts = line.split("\0")
            if len(parts) != 4 or parts[0] != ref:
                continue
            _, commit, upstream, track = parts
            if not upstream:
                return Branch(name=name, commit=commit)
            ahead: Optional[int] = None
            behind: Optional[int] = None
            if track != "[gone]":
                counts = dict(_TRACK_RE.findall(track))
                ahead = int(counts.get("ahead", 0))
                behind = int(counts.get("behind", 0))
            return Branch(
                name=name,
                commit=commit,
                upstream=upstream,
                ahead=ahead,
                behind=behind,
            )
        return None

    async def get_current_branch(self) -> Optional[str]:
        out = await self.run_git(
            ["git", "symbolic-ref", "--quiet", "--short", "HEAD"],
            ok_returncodes=(0, 1),
        )
        return out or None

    async def checkout(self, name: str) -> None:
        await self.run_git(["git", "checkout", name])

    async def create_branch(self, name: str, commit: str) -> None:
        await self.run_git(["git", "branch", name, commit])

    async def set_tracking_branch(self, name: str, upstream: str) -> None:
        await self.run_git(["git", "branch", f"--set-upstream-to={upstream}", name])

    async def fetch(self, remote: str, ref: Optional[str] = None) -> None:
        args = ["git", "fetch", remote]
        if ref:
            args.append(ref)
        await self.run_git(args)

    async def get_config(self, key: str) -> Optional[str]:
        out = await self.run_git(
            ["git", "config", "--local", "--get", key], ok_returncodes=(0, 1)
        )
        return out or None

    async def get_configs(self) -> list[ConfigEntry]:
        raw = await self.run_git(
            ["git", "config", "--local", "--list", "--null"], strip=False
        )
        entries: list[ConfigEntry] = []
        for item in raw.split("\0"):
            if not item:
                continue
            key, _, value = item.partition("\n")
            entries.append(ConfigEntry(key=key, value=value))
        return entries

    async def set_config(self, key: str, value: str) -> None:
        await self.run_git(["git", "config", "--local", key, value])

    async def add_remote(self, name: str, url: str) -> None:
        await self.run_git(["git", "remote", "add", name, url])

    async def get_remotes(self) -> list[Remote]:
        remotes: dict[str, Remote] = {}
        for entry in await self.get_configs():
            match = _REMOTE_URL_RE.match(entry.key)
            # git fetches from the first url only
            if match and match.group(1) not in remotes:
                remotes[match.group(1)] = Remote(name=match.group(1), url=entry.value)
        return list(remotes.values())

    async def get_merge_base(self, first: str, second: str) -> Optional[str]:
        try:
            # 1: no common ancestor
            out = await self.run_git(
                ["git", "merge-base", first, second],
                ok_returncodes=(0, 1),
                report=False,
            )
        except GitCommandError as exc:
            # 128 is any fatal error, only a missing commit means "not found"
            if exc.returncode == 128 and _MISSING_COMMIT_RE.search(exc.detail):
                return None
            self._report(f"git_fail:{self.root}:{exc.command}", str(exc))
            raise
        return out or None
