"""
provenance.py - Provenance records embedded in package descriptions.

A record says which pull request and CI job produced an installed package.
It is written into the package's Description as a delimited block:

    <original description>
    The following information is added by prdeb
    =begin
    PR_URL=https://github.com/linuxdeepin/dde-dock/pull/7
    ...
    =end

and read back later from `dpkg-query`'s rendering of the description.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from prdeb.config import TOOL_NAME


BLOCK_HEADER = f"The following information is added by {TOOL_NAME}"
BLOCK_BEGIN = "=begin"
BLOCK_END = "=end"

# Serialization order; DEPENDS only appears when the version was rewritten.
KEYS = (
    "DEPENDS",
    "PR_URL",
    "PR_REPO",
    "PR_NUM",
    "PR_USER",
    "PR_TITLE",
    "PR_STATE",
    "CI_URL",
    "DEB_URL",
    "DEB_MODIFY_TIME",
)


@dataclass(frozen=True)
class PullRequestId:
    repo: str
    num: int

    def __str__(self) -> str:
        return f"{self.repo}#{self.num}"


@dataclass(frozen=True)
class PullRequestDetail:
    """What the pull request (or Gerrit change) lookup tells us."""
    id: PullRequestId
    url: str = ""
    user: str = ""
    title: str = ""
    state: str = ""
    head_sha: str = ""


def _single_line(value: str) -> str:
    return " ".join(str(value).splitlines())


def rfc3339_now() -> str:
    return datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")


@dataclass(frozen=True)
class ProvenanceRecord:
    """Where an installed package came from."""
    pr_url: str
    pr_repo: str
    pr_num: int
    pr_user: str
    pr_title: str
    pr_state: str
    ci_url: str
    deb_url: str
    deb_modify_time: str
    depends: Optional[str] = None

    @classmethod
    def build(
        cls,
        detail: PullRequestDetail,
        ci_url: str,
        deb_url: str,
        modify_time: Optional[str] = None,
    ) -> "ProvenanceRecord":
        return cls(
            pr_url=detail.url,
            pr_repo=detail.id.repo,
            pr_num=detail.id.num,
            pr_user=detail.user,
            pr_title=detail.title,
            pr_state=detail.state,
            ci_url=ci_url,
            deb_url=deb_url,
            deb_modify_time=modify_time or rfc3339_now(),
        )

    def with_depends(self, depends: str) -> "ProvenanceRecord":
        return replace(self, depends=depends)

    def to_dict(self) -> Dict[str, str]:
        data = {
            "DEPENDS": self.depends,
            "PR_URL": self.pr_url,
            "PR_REPO": self.pr_repo,
            "PR_NUM": str(self.pr_num),
            "PR_USER": self.pr_user,
            "PR_TITLE": self.pr_title,
            "PR_STATE": self.pr_state,
            "CI_URL": self.ci_url,
            "DEB_URL": self.deb_url,
            "DEB_MODIFY_TIME": self.deb_modify_time,
        }
        return {k: _single_line(v) for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "ProvenanceRecord":
        num = data.get("PR_NUM", "")
        return cls(
            pr_url=data.get("PR_URL", ""),
            pr_repo=data.get("PR_REPO", ""),
            pr_num=int(num) if num.isdigit() else 0,
            pr_user=data.get("PR_USER", ""),
            pr_title=data.get("PR_TITLE", ""),
            pr_state=data.get("PR_STATE", ""),
            ci_url=data.get("CI_URL", ""),
            deb_url=data.get("DEB_URL", ""),
            deb_modify_time=data.get("DEB_MODIFY_TIME", ""),
            depends=data.get("DEPENDS"),
        )

    def block_lines(self) -> List[str]:
        """Header, delimiters and KEY=VALUE lines, without indentation."""
        lines = [BLOCK_HEADER, BLOCK_BEGIN]
        lines.extend(f"{k}={v}" for k, v in self.to_dict().items())
        lines.append(BLOCK_END)
        return lines


def parse_block(lines: Iterable[str]) -> Dict[str, str]:
    """Collect KEY=VALUE pairs between =begin and =end.

    Lines are stripped first, so this works on raw Description values
    (continuation lines start with a space) and on dpkg-query output alike.
    Returns an empty dict when there is no block.
    """
    fields: Dict[str, str] = {}
    inside = False
    for raw in lines:
        line = raw.strip()
        if not inside:
            if line == BLOCK_BEGIN:
                inside = True
            continue
        if line == BLOCK_END:
            break
        key, sep, value = line.partition("=")
        if not sep:
            continue
        fields[key] = value
    return fields


def extract_record(text: str) -> Optional[ProvenanceRecord]:
    fields = parse_block(text.splitlines())
    if not fields:
        return None
    return ProvenanceRecord.from_dict(fields)


def strip_block(lines: List[str]) -> List[str]:
    """Drop an embedded block (header through =end) from description lines."""
    kept: List[str] = []
    skipping = False
    for raw in lines:
        line = raw.strip()
        if not skipping and line in (BLOCK_HEADER, BLOCK_BEGIN):
            skipping = True
        if not skipping:
            kept.append(raw)
        elif line == BLOCK_END:
            skipping = False
    return kept
