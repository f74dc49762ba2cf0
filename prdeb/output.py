"""
Formatted output for --status and --restore.
"""
from typing import List, Tuple

from prdeb.ledger import LedgerStatus


RESTORED = "restored"
PENDING = "still modified"
FAILED = "failed"

_SYMBOLS = {RESTORED: "+", PENDING: "!", FAILED: "x"}


class ResultReporter:
    """Collect per-package restore outcomes and render a summary."""

    def __init__(self, title: str = ""):
        self.title = title
        self.results: List[Tuple[str, str]] = []  # (outcome, package)

    def ok(self, package: str):
        self.results.append((RESTORED, package))

    def warn(self, package: str):
        self.results.append((PENDING, package))

    def fail(self, package: str):
        self.results.append((FAILED, package))

    def count(self, outcome: str) -> int:
        return sum(1 for o, _ in self.results if o == outcome)

    def report(self, width: int = 60) -> str:
        """Packages grouped by outcome, then a one-line verdict."""
        lines = ["=" * width]
        if self.title:
            lines += [self.title, "=" * width]

        for outcome in (RESTORED, PENDING, FAILED):
            packages = [p for o, p in self.results if o == outcome]
            if not packages:
                continue
            lines.append(f"[{outcome}]")
            lines.extend(f"  [{_SYMBOLS[outcome]}] {p}" for p in packages)
            lines.append("")

        lines.append("-" * width)
        restored, pending, failed = self.count(RESTORED), self.count(PENDING), self.count(FAILED)
        if failed:
            lines.append(f"FAILED: {failed} errors, {pending} still modified")
        elif pending:
            lines.append(f"PENDING: {restored} restored, {pending} still modified")
        else:
            lines.append(f"DONE: {restored} packages restored")
        lines.append("=" * width)
        return "\n".join(lines)

    @property
    def success(self) -> bool:
        return self.count(PENDING) == 0 and self.count(FAILED) == 0


def format_status(status: LedgerStatus) -> str:
    """Render the grouped ledger, one block per CI job sorted by job URL."""
    if status.empty:
        return "No packages installed by prdeb."
    blocks = []
    for entry in status.sorted_entries():
        rec = entry.record
        blocks.append("\n".join([
            f"Repo: {rec.pr_repo}",
            f"Package: {entry.pkgs}",
            f"Title: {rec.pr_title}",
            f"User: {rec.pr_user}",
            f"PR url: {rec.pr_url}",
            f"Job url: {entry.job_url}",
        ]))
    if status.invalid:
        blocks.append(f"Invalid: {' '.join(status.invalid)}")
    return "\n\n".join(blocks)
