"""prdeb - install CI-built packages of a pull request and restore them.

Example usage:
    from prdeb import CommandRunner, InstallLedger, mutate_deb

    runner = CommandRunner()
    tagged = mutate_deb(runner, Path("foo_1.0_amd64.deb"), record, Path("/tmp/out"))
    InstallLedger(runner).record("foo")
"""

from prdeb.exceptions import (
    ArchiveReadError,
    MalformedControlError,
    MetadataQueryError,
    PackageManagerError,
    PrDebError,
    UnknownCompressionError,
)
from prdeb.runner import CommandResult, CommandRunner
from prdeb.provenance import ProvenanceRecord, PullRequestDetail, PullRequestId
from prdeb.mutator import mutate_deb
from prdeb.ledger import InstallLedger, LedgerEntry, LedgerStatus
from prdeb.restore import restore

__all__ = [
    "ArchiveReadError",
    "MalformedControlError",
    "MetadataQueryError",
    "PackageManagerError",
    "PrDebError",
    "UnknownCompressionError",
    "CommandResult",
    "CommandRunner",
    "ProvenanceRecord",
    "PullRequestDetail",
    "PullRequestId",
    "mutate_deb",
    "InstallLedger",
    "LedgerEntry",
    "LedgerStatus",
    "restore",
]

__version__ = "0.1.0"
