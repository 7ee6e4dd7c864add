"""Clone URL identity.

A ``Protocol`` wraps a remote URL as git understands it and extracts the
hosting identity (host, owner, repository name) so two URLs that point at the
same repository compare equal regardless of transport, case or ``.git``
suffix:

    https://github.com/Octocat/Hello-World.git
    git@github.com:octocat/hello-world
    ssh://git@github.com/octocat/hello-world.git
"""

from __future__ import annotations

from enum import Enum
import re
from urllib.parse import urlsplit


class ProtocolType(Enum):
    LOCAL = "local"
    HTTP = "http"
    SSH = "ssh"
    GIT = "git"
    OTHER = "other"


_SCHEMES = {
    "http": ProtocolType.HTTP,
    "https": ProtocolType.HTTP,
    "ssh": ProtocolType.SSH,
    "git+ssh": ProtocolType.SSH,
    "git": ProtocolType.GIT,
    "file": ProtocolType.LOCAL,
}

# user@host:owner/repo, but not C:\path or host-less paths
_SCP_LIKE_RE = re.compile(r"^(?:[^@/:]+@)?(?P<host>[^@/:]{2,}):(?P<path>[^/\\].*)$")


class Protocol:
    def __init__(self, url: str) -> None:
        self.url = url.strip()
        self.type = ProtocolType.OTHER
        self.host: str | None = None
        self.owner: str | None = None
        self.repository_name: str | None = None
        self._parse()

    def _parse(self) -> None:
        url = self.url
        if not url:
            return
        if "://" not in url:
            match = _SCP_LIKE_RE.match(url)
            if match is None:
                self.type = ProtocolType.LOCAL
                return
            self.type = ProtocolType.SSH
            self.host = match.group("host").lower()
            self._parse_path(match.group("path"))
            return
        parts = urlsplit(url)
        self.type = _SCHEMES.get(parts.scheme.lower(), ProtocolType.OTHER)
        if self.type in (ProtocolType.LOCAL, ProtocolType.OTHER):
            return
        if not parts.hostname:
            return
        host = parts.hostname.lower()
        if self.type is ProtocolType.HTTP and parts.port:
            host = f"{host}:{parts.port}"
        self.host = host
        self._parse_path(parts.path)

    def _parse_path(self, path: str) -> None:
        path = path.strip("/")
        if path.endswith(".git"):
            path = path[: -len(".git")]
        segments = [segment for segment in path.split("/") if segment]
        if len(segments) < 2:
            return
        self.owner = segments[-2]
        self.repository_name = segments[-1]

    def normalize_uri(self) -> str | None:
        if self.host is None or self.owner is None:
            return None
        return f"https://{self.host}/{self.owner}/{self.repository_name}"

    def equals(self, other: Protocol | None) -> bool:
        if other is None:
            return False
        mine = self.normalize_uri()
        theirs = other.normalize_uri()
        if mine is None or theirs is None:
            return self.url == other.url
        return mine.casefold() == theirs.casefold()

    def __str__(self) -> str:
        return self.url

    def __repr__(self) -> str:
        return f"Protocol({self.url!r})"
