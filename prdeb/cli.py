#!/usr/bin/env python3
"""
prdeb - Install CI-built packages of a pull request, and undo it later.

Usage:
    prdeb REF                       # install from a pull request
    prdeb --gerrit CHANGE           # install from a Gerrit change
    prdeb --job URL REF             # install from an explicit CI job
    prdeb --status                  # show what is installed, by job
    prdeb --restore all|REPO|USER   # reinstall repository versions

REF is a pull request number (repo taken from the current git checkout),
`repo#num`, or a full pull request URL.
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

import requests

from prdeb import __version__, config
from prdeb.apt import AptPackageManager
from prdeb.exceptions import (
    ConfigError,
    PackageManagerError,
    PrDebError,
    PullRequestLookupError,
)
from prdeb.gerrit import GerritClient
from prdeb.github import GithubClient, PullRequestCache, parse_pr_ref
from prdeb.install import Installer, ask_yes_no, assume_default
from prdeb.ledger import InstallLedger
from prdeb.output import ResultReporter, format_status
from prdeb.restore import restore
from prdeb.runner import CommandRunner


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PACKAGE_MANAGER = 2
EXIT_LOOKUP = 3
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="prdeb",
        description="Install CI-built packages of a pull request and restore them later",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    prdeb 42
    prdeb dde-dock#42
    prdeb https://github.com/linuxdeepin/dde-dock/pull/42
    prdeb --gerrit I0123456789abcdef
    prdeb --status
    prdeb --restore dde-dock
""",
    )
    ap.add_argument("ref", nargs="?", help="Pull request number, repo#num or URL")
    ap.add_argument("--status", action="store_true", help="Show installed packages grouped by job")
    ap.add_argument("--restore", metavar="PATTERN",
                    help="Reinstall repository versions: 'all', a repo name or a user login")
    ap.add_argument("--gerrit", metavar="CHANGE", help="Install from a Gerrit change")
    ap.add_argument("--job", metavar="URL", help="Install from this CI job instead of the PR status")
    ap.add_argument("--dry-run", action="store_true", help="Simulate the install, mark nothing")
    ap.add_argument("--yes", action="store_true", help="Accept default answers without asking")
    ap.add_argument("--no-version-rewrite", dest="rewrite_version", action="store_false",
                    help="Keep the built Version instead of the installed/candidate one")
    ap.add_argument("-v", "--verbose", action="store_true", help="Echo every command run")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


def cmd_status(ledger: InstallLedger) -> int:
    print(format_status(ledger.list_grouped_by_job()))
    return EXIT_OK


def cmd_restore(ledger: InstallLedger, apt: AptPackageManager, pattern: str) -> int:
    reporter = ResultReporter(f"prdeb restore {pattern}")
    try:
        result = restore(ledger, apt, pattern)
    except PackageManagerError as e:
        for package in e.packages:
            reporter.fail(package)
        print(reporter.report())
        raise

    for package in result.erased:
        reporter.ok(package)
    for package in result.pending:
        reporter.warn(package)
    if not result.erased and not result.pending:
        print(f"Nothing to restore for {pattern!r}.")
        return EXIT_OK

    print(reporter.report())
    return EXIT_OK if reporter.success else EXIT_ERROR


def github_client(session: requests.Session) -> GithubClient:
    try:
        token = config.get_github_token()
    except ConfigError as e:
        print(f"WARNING: failed to get github access token: {e}", file=sys.stderr)
        token = ""
    return GithubClient(session, token=token, cache=PullRequestCache())


def cmd_install(args: argparse.Namespace, runner: CommandRunner, installer: Installer,
                session: requests.Session) -> int:
    if args.gerrit:
        job_url, detail = GerritClient(session).find_job_url(args.gerrit)
    else:
        client = github_client(session)
        detail = client.get_pull_request(parse_pr_ref(args.ref, runner))
        job_url = args.job or client.find_job_url(detail)

    installed = installer.install_job(job_url, detail)
    if installed:
        verb = "Simulated" if args.dry_run else "Installed"
        print(f"\n{verb}: {' '.join(installed)}")
    else:
        print("\nNothing installed.")
    return EXIT_OK


def main(
    argv: Optional[List[str]] = None,
    runner: Optional[CommandRunner] = None,
    session: Optional[requests.Session] = None,
) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    if not (args.status or args.restore or args.gerrit or args.ref):
        ap.print_usage(sys.stderr)
        print("prdeb: error: a pull request reference, --gerrit, --status or --restore is required",
              file=sys.stderr)
        return EXIT_ERROR
    if args.gerrit and args.job:
        ap.print_usage(sys.stderr)
        print("prdeb: error: --job cannot be combined with --gerrit", file=sys.stderr)
        return EXIT_ERROR

    runner = runner or CommandRunner(verbose=args.verbose)
    ledger = InstallLedger(runner, config.MARK_DIR)
    apt = AptPackageManager(runner)

    try:
        if args.status:
            return cmd_status(ledger)
        if args.restore:
            return cmd_restore(ledger, apt, args.restore)

        session = session or requests.Session()
        installer = Installer(
            runner,
            ledger,
            apt,
            session,
            download_dir=config.DEB_DOWNLOAD_DIR,
            modified_dir=config.DEB_MODIFIED_DIR,
            ask=assume_default if args.yes else ask_yes_no,
            resolve_versions=args.rewrite_version,
            simulate=args.dry_run,
        )
        return cmd_install(args, runner, installer, session)

    except PackageManagerError as e:
        print("\nPACKAGE MANAGER ERROR:", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return EXIT_PACKAGE_MANAGER

    except (PullRequestLookupError, ConfigError) as e:
        print("\nLOOKUP ERROR:", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return EXIT_LOOKUP

    except (PrDebError, OSError) as e:
        print("\nERROR:", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return EXIT_ERROR

    except KeyboardInterrupt:
        print("\ninterrupted", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    raise SystemExit(main())
