"""
install.py - Install the packages a CI job built for a pull request.

Per package:
    prompt -> download -> mutate (embed provenance) -> apt-get install -> mark

A failure stops the batch. Packages marked before the failure stay marked.
"""
from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List, Optional, TextIO

import requests

from prdeb import jobs
from prdeb.apt import AptPackageManager, resolve_target_version
from prdeb.config import DEB_DOWNLOAD_DIR, DEB_MODIFIED_DIR
from prdeb.ledger import InstallLedger
from prdeb.mutator import mutate_deb
from prdeb.provenance import ProvenanceRecord, PullRequestDetail
from prdeb.runner import CommandRunner


Asker = Callable[[str, bool], bool]


def ask_yes_no(prompt: str, default_yes: bool, stream: Optional[TextIO] = None) -> bool:
    suffix = " (Yes/n) " if default_yes else " (y/No) "
    print(prompt + suffix, end="", flush=True)
    line = (stream or sys.stdin).readline()
    answer = line.strip()
    if not answer:
        return default_yes
    return answer[0] in "yY"


def assume_default(prompt: str, default_yes: bool) -> bool:
    print(f"{prompt} {'yes' if default_yes else 'no'}")
    return default_yes


class Installer:
    """Drives the install of one job's packages."""

    def __init__(
        self,
        runner: CommandRunner,
        ledger: InstallLedger,
        apt: AptPackageManager,
        session: requests.Session,
        download_dir: Path = DEB_DOWNLOAD_DIR,
        modified_dir: Path = DEB_MODIFIED_DIR,
        ask: Asker = ask_yes_no,
        resolve_versions: bool = True,
        simulate: bool = False,
    ):
        self.runner = runner
        self.ledger = ledger
        self.apt = apt
        self.session = session
        self.download_dir = Path(download_dir)
        self.modified_dir = Path(modified_dir)
        self.ask = ask
        self.resolve_versions = resolve_versions
        self.simulate = simulate

    def _resolve(self, package: str) -> Optional[str]:
        return resolve_target_version(self.apt, package)

    def install_deb(self, deb_url: str, package: str, detail: PullRequestDetail, job_url: str) -> Path:
        print(f"[install] download from {deb_url}", file=sys.stderr)
        downloaded = jobs.download(self.session, deb_url, self.download_dir)

        record = ProvenanceRecord.build(detail, ci_url=job_url, deb_url=deb_url)
        modified = mutate_deb(
            self.runner,
            downloaded,
            record,
            self.modified_dir,
            resolve_version=self._resolve if self.resolve_versions else None,
        )

        self.apt.install([modified], simulate=self.simulate)
        if self.simulate:
            print(f"[install] simulated {package}, not marked", file=sys.stderr)
        else:
            self.ledger.record(package)
        return modified

    def install_job(self, job_url: str, detail: PullRequestDetail) -> List[str]:
        """Offer and install each .deb of the job. Returns installed names."""
        print(f"[install] {detail.id} {detail.title!r} by {detail.user} ({detail.state})",
              file=sys.stderr)
        print(f"[install] job: {job_url}", file=sys.stderr)

        deb_urls = jobs.get_deb_urls(self.session, job_url)
        if not deb_urls:
            print(f"WARNING: no .deb artifacts found at {job_url}", file=sys.stderr)
            return []

        installed = []
        for deb_url in deb_urls:
            try:
                package = jobs.parse_deb_filename(jobs.url_basename(deb_url)).package
            except ValueError as e:
                print(f"WARNING: skipping {deb_url}: {e}", file=sys.stderr)
                continue
            if not self.ask(f"install {package}?", jobs.default_answer(package)):
                continue
            self.install_deb(deb_url, package, detail, job_url)
            installed.append(package)
        return installed
