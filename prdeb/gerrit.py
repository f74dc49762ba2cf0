"""Gerrit change lookup.

Jenkins reports its result as a change message such as

    Build Successful

    https://jenkins.example.com/job/gerrit-pipeline/1750/ : SUCCESS

and the last such URL is the job to install from.
"""
from __future__ import annotations

import json
import re
from typing import Tuple
from urllib.parse import quote, urlparse

import requests

from prdeb.config import GERRIT_URL
from prdeb.exceptions import PullRequestLookupError
from prdeb.provenance import PullRequestDetail, PullRequestId


XSSI_PREFIX = ")]}'"
JENKINS_AUTHOR = "jenkins"

_SUCCESS_RE = re.compile(r"(https://\S+) : SUCCESS")


class GerritClient:

    def __init__(self, session: requests.Session, base_url: str = GERRIT_URL):
        self.session = session
        self.base_url = base_url.rstrip("/")

    def get_change(self, change_id: str) -> dict:
        url = f"{self.base_url}/changes/{quote(change_id, safe='')}/detail"
        try:
            resp = self.session.get(url, timeout=30)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise PullRequestLookupError(f"GET {url} failed: {e}") from e

        body = resp.text
        if body.startswith(XSSI_PREFIX):
            body = body[len(XSSI_PREFIX):]
        try:
            return json.loads(body)
        except ValueError as e:
            raise PullRequestLookupError(f"GET {url} returned invalid JSON: {e}") from e

    def find_job_url(self, change_id: str) -> Tuple[str, PullRequestDetail]:
        change = self.get_change(change_id)
        number = int(change.get("_number") or 0)
        project = change.get("project", "")
        detail = PullRequestDetail(
            id=PullRequestId(repo=project, num=number),
            url=f"{self.base_url}/c/{project}/+/{number}",
            user=(change.get("owner") or {}).get("name", ""),
            title=change.get("subject", ""),
            state=change.get("status", ""),
            head_sha=change.get("current_revision", ""),
        )

        job_url = ""
        for msg in change.get("messages") or []:
            if (msg.get("author") or {}).get("name") != JENKINS_AUTHOR:
                continue
            m = _SUCCESS_RE.search(msg.get("message", ""))
            if m and urlparse(m.group(1)).netloc:
                job_url = m.group(1)
        if not job_url:
            raise PullRequestLookupError(f"not found job url for change {change_id}")
        return job_url, detail
