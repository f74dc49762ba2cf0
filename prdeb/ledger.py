"""
ledger.py - Marker-file ledger of packages installed by prdeb.

One empty file per package name lives in the marker directory; its
presence is the only persisted state. Provenance is not stored here but
read back from the installed package's description.

No locking: two prdeb processes must not share a marker directory.
"""
from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from prdeb.config import MARK_DIR
from prdeb.exceptions import MetadataQueryError
from prdeb.provenance import ProvenanceRecord, extract_record
from prdeb.runner import CommandRunner


DPKG_QUERY_FORMAT = "${db:Status-Status}\\n${Description}\\n"


def needs_sudo(mark_dir: Path) -> bool:
    """True unless we are root or can write the marker directory ourselves."""
    if os.geteuid() == 0:
        return False
    if mark_dir.exists():
        return not os.access(mark_dir, os.W_OK)
    parent = mark_dir.parent
    while not parent.exists():
        parent = parent.parent
    return not os.access(parent, os.W_OK)


def describe_installed(runner: CommandRunner, package: str) -> Optional[str]:
    """Return the rendered Description of an installed package.

    Returns None when the package is unknown to dpkg or not in the
    "installed" state.

    Raises:
        MetadataQueryError: On any other dpkg-query failure
    """
    result = runner.run(["dpkg-query", "-f", DPKG_QUERY_FORMAT, "--show", package])
    if result.returncode == 1:
        return None
    if not result.ok:
        raise MetadataQueryError(package, result.error_text.strip() or f"status {result.returncode}")

    status, _, description = result.text.partition("\n")
    if status.strip() != "installed":
        return None
    return description


@dataclass
class LedgerEntry:
    """Packages installed from one CI job."""
    record: ProvenanceRecord
    packages: List[str] = field(default_factory=list)

    @property
    def job_url(self) -> str:
        return self.record.ci_url

    @property
    def pkgs(self) -> str:
        return " ".join(self.packages)


@dataclass
class LedgerStatus:
    """Grouped view of the ledger.

    Attributes:
        jobs: CI job URL -> entry
        invalid: Marked packages whose installed description has no block
    """
    jobs: Dict[str, LedgerEntry] = field(default_factory=dict)
    invalid: List[str] = field(default_factory=list)

    def sorted_entries(self) -> List[LedgerEntry]:
        return [self.jobs[url] for url in sorted(self.jobs)]

    @property
    def empty(self) -> bool:
        return not self.jobs and not self.invalid


class InstallLedger:
    """Record, enumerate and erase install markers."""

    def __init__(
        self,
        runner: CommandRunner,
        mark_dir: Path = MARK_DIR,
        use_sudo: Optional[bool] = None,
    ):
        self.runner = runner
        self.mark_dir = Path(mark_dir)
        self.use_sudo = needs_sudo(self.mark_dir) if use_sudo is None else use_sudo

    def marker(self, package: str) -> Path:
        if not package or "/" in package or package in (".", ".."):
            raise ValueError(f"invalid package name: {package!r}")
        return self.mark_dir / package

    def record(self, package: str) -> None:
        path = self.marker(package)
        if not self.mark_dir.exists():
            if self.use_sudo:
                self.runner.check(["sudo", "mkdir", "-p", "-m", "0755", str(self.mark_dir)])
            else:
                self.mark_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        if path.exists():
            return
        if self.use_sudo:
            self.runner.check(["sudo", "touch", str(path)])
        else:
            path.touch()
        print(f"[ledger] marked {package}", file=sys.stderr)

    def erase(self, package: str) -> None:
        path = self.marker(package)
        if not path.exists():
            return
        if self.use_sudo:
            self.runner.check(["sudo", "rm", "-f", str(path)])
        else:
            path.unlink(missing_ok=True)
        print(f"[ledger] unmarked {package}", file=sys.stderr)

    def packages(self) -> List[str]:
        if not self.mark_dir.is_dir():
            return []
        return sorted(p.name for p in self.mark_dir.iterdir() if p.is_file())

    def query_provenance(self, package: str) -> Optional[ProvenanceRecord]:
        """Provenance embedded in the installed package, if any.

        Query failures are reported and treated as "no provenance".
        """
        try:
            description = describe_installed(self.runner, package)
        except MetadataQueryError as e:
            print(f"WARNING: {e}", file=sys.stderr)
            return None
        if description is None:
            return None
        return extract_record(description)

    def list_grouped_by_job(self) -> LedgerStatus:
        status = LedgerStatus()
        for package in self.packages():
            record = self.query_provenance(package)
            if record is None:
                status.invalid.append(package)
                continue
            entry = status.jobs.get(record.ci_url)
            if entry is None:
                entry = status.jobs[record.ci_url] = LedgerEntry(record=record)
            entry.packages.append(package)
        return status
