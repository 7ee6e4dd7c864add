from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os
import yaml

from .models import DEFAULT_BRANCH_PREFIX


DEFAULT_CONFIG_PATHS = (
    Path(os.environ.get("XDG_CONFIG_HOME", "~/.config")).expanduser()
    / "prcheckout"
    / "config.yaml",
    Path(os.environ.get("XDG_CONFIG_HOME", "~/.config")).expanduser()
    / "prcheckout"
    / "config.yml",
)


def normalize_host_list(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip().lower()
        return [text] if text else []
    if isinstance(value, (list, tuple)):
        hosts: list[str] = []
        for item in value:
            if item is None:
                continue
            text = str(item).strip().lower()
            if text and text not in hosts:
                hosts.append(text)
        return hosts
    return []


def _coerce_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"1", "true", "yes", "y", "on"}:
            return True
        if text in {"0", "false", "no", "n", "off"}:
            return False
    return default


def _coerce_str(value: object, default: str) -> str:
    if isinstance(value, str):
        text = value.strip()
        if text:
            return text
    return default


@dataclass(frozen=True)
class AppConfig:
    branch_prefix: str = DEFAULT_BRANCH_PREFIX
    fast_forward: bool = True
    hosts: tuple[str, ...] = ("github.com",)
    gh_command: str = "gh"


def _parse_config(data: object) -> AppConfig:
    if not isinstance(data, dict):
        return AppConfig()
    # no empty ref components
    branch_prefix = _coerce_str(data.get("branch_prefix"), DEFAULT_BRANCH_PREFIX).strip("/")
    branch_prefix = branch_prefix or DEFAULT_BRANCH_PREFIX
    fast_forward = _coerce_bool(data.get("fast_forward"), True)
    hosts = tuple(normalize_host_list(data.get("hosts"))) or ("github.com",)
    gh_command = _coerce_str(data.get("gh_command"), "gh")
    return AppConfig(
        branch_prefix=branch_prefix,
        fast_forward=fast_forward,
        hosts=hosts,
        gh_command=gh_command,
    )


def load_config(config_path: str | None = None) -> AppConfig:
    paths = [Path(config_path).expanduser()] if config_path else DEFAULT_CONFIG_PATHS
    for path in paths:
        if not path.exists():
            continue
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except (OSError, yaml.YAMLError):
            return AppConfig()
        return _parse_config(data)
    return AppConfig()
