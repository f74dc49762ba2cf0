"""
restore.py - Put tracked packages back to their repository versions.

Behavior:
    - Selects ledger entries whose PR_REPO or PR_USER equals the pattern
      ("all" selects everything)
    - Reinstalls the selected packages from the repositories in one batch
    - Re-checks every selected and every invalid package: markers of those
      no longer carrying provenance are erased, the rest stay for a later run

A failed reinstall leaves the ledger untouched.
"""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import List

from prdeb.apt import AptPackageManager
from prdeb.ledger import InstallLedger, LedgerStatus


RESTORE_ALL = "all"


@dataclass
class RestoreResult:
    selected: List[str] = field(default_factory=list)
    erased: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)


def select_packages(status: LedgerStatus, pattern: str) -> List[str]:
    """Flatten the packages of every entry matching pattern, sorted."""
    selected = set()
    for entry in status.jobs.values():
        rec = entry.record
        if pattern == RESTORE_ALL or pattern in (rec.pr_repo, rec.pr_user):
            selected.update(entry.packages)
    return sorted(selected)


def restore(ledger: InstallLedger, apt: AptPackageManager, pattern: str) -> RestoreResult:
    """
    Reinstall tracked packages matching pattern and untrack restored ones.

    Raises:
        PackageManagerError: If the reinstall batch fails (no marker changes)
    """
    status = ledger.list_grouped_by_job()
    result = RestoreResult(selected=select_packages(status, pattern))

    if result.selected:
        print(f"[restore] reinstalling: {' '.join(result.selected)}", file=sys.stderr)
        apt.reinstall_missing(result.selected)

    for package in result.selected + [p for p in status.invalid if p not in result.selected]:
        if ledger.query_provenance(package) is None:
            ledger.erase(package)
            result.erased.append(package)
        else:
            print(f"WARNING: {package} still carries provenance, keeping its marker",
                  file=sys.stderr)
            result.pending.append(package)

    return result
