#!/usr/bin/env python3
"""
test_gerrit.py - Tests for Gerrit change lookup.
"""
import json

import pytest

from prdeb.exceptions import PullRequestLookupError
from prdeb.gerrit import GerritClient

from conftest import FakeSession


BASE = "https://gerrit.example.com"

CHANGE = {
    "project": "dde-dock",
    "_number": 1234,
    "subject": "fix tray",
    "status": "NEW",
    "owner": {"name": "alice"},
    "current_revision": "abc123",
    "messages": [
        {"author": {"name": "jenkins"},
         "message": "Build Started https://jenkins.example.com/job/p/1/"},
        {"author": {"name": "jenkins"},
         "message": "Build Successful\n\nhttps://jenkins.example.com/job/p/1/ : SUCCESS"},
        {"author": {"name": "bob"},
         "message": "https://evil.example.com/job/9/ : SUCCESS"},
        {"author": {"name": "jenkins"},
         "message": "Build Successful\n\nhttps://jenkins.example.com/job/p/2/ : SUCCESS"},
    ],
}


def session_for(change, change_id="I0123"):
    return FakeSession({f"{BASE}/changes/{change_id}/detail": ")]}'\n" + json.dumps(change)})


class TestGerrit:

    def test_last_jenkins_success_wins(self):
        job_url, detail = GerritClient(session_for(CHANGE), BASE).find_job_url("I0123")

        assert job_url == "https://jenkins.example.com/job/p/2/"
        assert detail.id.repo == "dde-dock"
        assert detail.id.num == 1234
        assert detail.url == f"{BASE}/c/dde-dock/+/1234"
        assert detail.user == "alice"
        assert detail.title == "fix tray"
        assert detail.state == "NEW"

    def test_no_successful_build(self):
        change = dict(CHANGE, messages=CHANGE["messages"][:1])
        with pytest.raises(PullRequestLookupError, match="not found job url"):
            GerritClient(session_for(change), BASE).find_job_url("I0123")

    def test_unknown_change(self):
        with pytest.raises(PullRequestLookupError, match="404"):
            GerritClient(FakeSession(), BASE).get_change("I0123")

    def test_bad_body(self):
        session = FakeSession({f"{BASE}/changes/I0123/detail": ")]}'\nnot json"})
        with pytest.raises(PullRequestLookupError, match="invalid JSON"):
            GerritClient(session, BASE).get_change("I0123")
