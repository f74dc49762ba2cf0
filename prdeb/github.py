"""GitHub pull request lookup.

Resolves a command-line pull request reference to a PullRequestDetail and
the URL of the CI job that built it (taken from the head commit's
successful status).
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

import requests

from prdeb.config import GITHUB_API_URL, GITHUB_ORGANIZATION
from prdeb.exceptions import PullRequestLookupError
from prdeb.provenance import PullRequestDetail, PullRequestId
from prdeb.runner import CommandRunner


_REF_RE = re.compile(r"^(\S+)#(\d+)$")


def parse_pull_url(url: str, organization: str = GITHUB_ORGANIZATION) -> PullRequestId:
    m = re.match(rf"https://github\.com/{re.escape(organization)}/([^/]+)/pull/(\d+)", url)
    if m is None:
        raise PullRequestLookupError(f"invalid pull url: {url}")
    return PullRequestId(repo=m.group(1), num=int(m.group(2)))


def repo_from_git_config(runner: CommandRunner, organization: str = GITHUB_ORGANIZATION) -> str:
    """Name of the organization's repo among the current checkout's remotes."""
    result = runner.run(["git", "config", "--local", "--get-regexp", r"remote\..*\.url"])
    if not result.ok:
        raise PullRequestLookupError("cannot read git remotes of the current directory")
    pattern = re.compile(rf"github\.com[:/]{re.escape(organization)}/(.+)$")
    for line in result.text.splitlines():
        m = pattern.search(line.strip())
        if m:
            repo = m.group(1)
            if repo.endswith(".git"):
                repo = repo[:-len(".git")]
            return repo
    raise PullRequestLookupError("repo not found in remote urls")


def parse_pr_ref(
    arg: str,
    runner: CommandRunner,
    organization: str = GITHUB_ORGANIZATION,
) -> PullRequestId:
    """Accepts `7`, `dde-dock#7` or a full pull request URL."""
    arg = arg.strip()
    if arg.isdigit():
        return PullRequestId(repo=repo_from_git_config(runner, organization), num=int(arg))
    m = _REF_RE.match(arg)
    if m:
        return PullRequestId(repo=m.group(1), num=int(m.group(2)))
    return parse_pull_url(arg, organization)


class PullRequestCache:
    """Pull request details keyed by (repo, number).

    The caller decides how long one lives; the CLI uses one per invocation.
    """

    def __init__(self):
        self._items: Dict[Tuple[str, int], PullRequestDetail] = {}

    def get(self, pr_id: PullRequestId) -> Optional[PullRequestDetail]:
        return self._items.get((pr_id.repo, pr_id.num))

    def put(self, detail: PullRequestDetail) -> None:
        self._items[(detail.id.repo, detail.id.num)] = detail

    def __len__(self) -> int:
        return len(self._items)


class GithubClient:
    """Read-only access to pull requests and commit statuses."""

    def __init__(
        self,
        session: requests.Session,
        organization: str = GITHUB_ORGANIZATION,
        token: str = "",
        cache: Optional[PullRequestCache] = None,
        api_url: str = GITHUB_API_URL,
    ):
        self.session = session
        self.organization = organization
        self.api_url = api_url.rstrip("/")
        self.cache = cache if cache is not None else PullRequestCache()
        self.headers = {"Accept": "application/vnd.github+json"}
        if token:
            self.headers["Authorization"] = f"token {token}"

    def _get(self, path: str):
        url = f"{self.api_url}{path}"
        try:
            resp = self.session.get(url, headers=self.headers, timeout=30)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise PullRequestLookupError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise PullRequestLookupError(f"GET {url} returned invalid JSON: {e}") from e

    def get_pull_request(self, pr_id: PullRequestId) -> PullRequestDetail:
        cached = self.cache.get(pr_id)
        if cached is not None:
            return cached

        data = self._get(f"/repos/{self.organization}/{pr_id.repo}/pulls/{pr_id.num}")
        base_repo = ((data.get("base") or {}).get("repo") or {}).get("name") or pr_id.repo
        detail = PullRequestDetail(
            id=PullRequestId(repo=base_repo, num=int(data.get("number") or pr_id.num)),
            url=data.get("html_url", ""),
            user=(data.get("user") or {}).get("login", ""),
            title=data.get("title", ""),
            state=data.get("state", ""),
            head_sha=(data.get("head") or {}).get("sha", ""),
        )
        self.cache.put(detail)
        return detail

    def list_statuses(self, repo: str, ref: str) -> List[dict]:
        return self._get(f"/repos/{self.organization}/{repo}/commits/{ref}/statuses")

    def find_job_url(self, detail: PullRequestDetail) -> str:
        """URL of the CI job behind the first successful status."""
        if not detail.head_sha:
            raise PullRequestLookupError("failed to get pull request ref")
        statuses = self.list_statuses(detail.id.repo, detail.head_sha)

        for status in statuses:
            if status.get("state") == "success":
                target = status.get("target_url") or ""
                if not target:
                    raise PullRequestLookupError("target url is empty")
                if target.endswith("/console"):
                    target = target[:-len("/console")]
                return target

        message = "not found success status"
        if statuses and statuses[0].get("target_url"):
            message += f", please see {statuses[0]['target_url']}"
        raise PullRequestLookupError(message)
