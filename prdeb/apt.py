"""Package manager adapter (apt-get / apt-cache)."""
from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from prdeb.exceptions import PackageManagerError
from prdeb.runner import CommandRunner


_POLICY_RE = re.compile(r"^\s*(Installed|Candidate):\s*(\S+)\s*$", re.MULTILINE)


def c_locale_env() -> Dict[str, str]:
    """Current environment with untranslated command output."""
    env = dict(os.environ)
    env["LC_ALL"] = "C"
    return env


def parse_policy(text: str) -> Tuple[Optional[str], Optional[str]]:
    """Return (installed, candidate) from `apt-cache policy` output."""
    found = {}
    for key, value in _POLICY_RE.findall(text):
        found.setdefault(key, None if value == "(none)" else value)
    return found.get("Installed"), found.get("Candidate")


class AptPackageManager:
    """Install, simulate and reinstall through apt-get."""

    def __init__(self, runner: CommandRunner, use_sudo: bool = True):
        self.runner = runner
        self.use_sudo = use_sudo

    def _apt_get(self, args: List[str], sudo: bool = True) -> List[str]:
        cmd = ["apt-get"] + args
        if sudo and self.use_sudo:
            cmd = ["sudo"] + cmd
        return cmd

    def install(self, paths: Sequence[Union[str, Path]], simulate: bool = False) -> None:
        """Install local archives, allowing downgrades and reinstalls.

        Raises:
            PackageManagerError: If apt-get exits non-zero
        """
        targets = [str(p) for p in paths]
        if not targets:
            return
        args = ["install", "-y", "--allow-downgrades", "--reinstall"]
        if simulate:
            args.append("-s")
        cmd = self._apt_get(args + targets, sudo=not simulate)
        result = self.runner.run(cmd, capture=False)
        if not result.ok:
            raise PackageManagerError(
                f"apt-get install failed with status {result.returncode}", targets
            )

    def reinstall_missing(self, packages: Sequence[str]) -> None:
        """Reinstall packages from the configured repositories.

        Raises:
            PackageManagerError: If apt-get exits non-zero
        """
        packages = list(packages)
        if not packages:
            return
        cmd = self._apt_get(
            ["install", "-y", "--allow-downgrades", "--reinstall", "--fix-missing"] + packages
        )
        result = self.runner.run(cmd, capture=False)
        if not result.ok:
            raise PackageManagerError(
                f"apt-get reinstall failed with status {result.returncode}", packages
            )

    def policy(self, package: str) -> Tuple[Optional[str], Optional[str]]:
        # Installed:/Candidate: labels are translated under other locales
        result = self.runner.run(["apt-cache", "policy", package], env=c_locale_env())
        if not result.ok:
            print(f"WARNING: apt-cache policy {package} failed: {result.error_text.strip()}",
                  file=sys.stderr)
            return None, None
        return parse_policy(result.text)


def resolve_target_version(apt: AptPackageManager, package: str) -> Optional[str]:
    """Pick the version a CI build of `package` should carry.

    The candidate is used only when nothing is installed; otherwise the
    installed version wins. None means leave Version/Depends alone.
    """
    installed, candidate = apt.policy(package)
    if installed is None and candidate is not None:
        return candidate
    return installed
