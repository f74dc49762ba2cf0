"""Configuration for prdeb.

Paths are resolved once from the environment at import time. The GitHub
token comes from the `hub` client's YAML config unless GITHUB_TOKEN is set.

Environment Variables:
    PRDEB_MARK_DIR: Marker directory (default: /var/lib/prdeb)
    PRDEB_WORK_DIR: Download/modify scratch root (default: /tmp/prdeb)
    PRDEB_GITHUB_ORG: GitHub organization (default: linuxdeepin)
    PRDEB_GERRIT_URL: Gerrit server (default: https://gerrit.uniontech.com)
    GITHUB_TOKEN: GitHub access token, overrides the hub config
    HUB_CONFIG: Path of the hub config (default: ~/.config/hub)
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import yaml

from prdeb.exceptions import ConfigError


TOOL_NAME = "prdeb"

MARK_DIR = Path(os.getenv("PRDEB_MARK_DIR", "/var/lib/prdeb"))
WORK_DIR = Path(os.getenv("PRDEB_WORK_DIR", "/tmp/prdeb"))
DEB_DOWNLOAD_DIR = WORK_DIR / "deb_download"
DEB_MODIFIED_DIR = WORK_DIR / "deb_modified"

GITHUB_ORGANIZATION = os.getenv("PRDEB_GITHUB_ORG", "linuxdeepin")
GITHUB_API_URL = "https://api.github.com"
GERRIT_URL = os.getenv("PRDEB_GERRIT_URL", "https://gerrit.uniontech.com")


@dataclass
class HubHost:
    """One host entry of the hub config."""

    host: str
    user: str = ""
    access_token: str = ""
    protocol: str = ""
    unix_socket: str = ""


def get_home() -> Path:
    home = os.getenv("HOME")
    if home:
        return Path(home)
    return Path.home()


def hub_config_path() -> Path:
    override = os.getenv("HUB_CONFIG")
    if override:
        return Path(override)
    return get_home() / ".config" / "hub"


def parse_hub_config(text: str) -> List[HubHost]:
    """Parse hub's YAML config.

    The file maps each host to a list holding one properties mapping:

        github.com:
        - user: alice
          oauth_token: 0123abcd
          protocol: https

    Raises:
        ConfigError: If the document is not valid YAML or not a mapping
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid hub config: {e}") from e
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ConfigError("invalid hub config: top level is not a mapping")

    hosts = []
    for host, entries in data.items():
        if not isinstance(entries, list) or not entries:
            continue
        props = entries[0] if isinstance(entries[0], dict) else {}
        hosts.append(HubHost(
            host=str(host),
            user=str(props.get("user", "")),
            access_token=str(props.get("oauth_token", "")),
            protocol=str(props.get("protocol", "")),
            unix_socket=str(props.get("unix_socket", "")),
        ))
    return hosts


def get_github_token(path: Optional[Path] = None) -> str:
    """Return the GitHub token from GITHUB_TOKEN or the hub config.

    Raises:
        ConfigError: If no token can be found
    """
    token = os.getenv("GITHUB_TOKEN")
    if token:
        return token

    path = path or hub_config_path()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read hub config {path}: {e}") from e

    for host in parse_hub_config(text):
        if host.host == "github.com":
            return host.access_token
    raise ConfigError(f"host github.com not found in hub config {path}")
