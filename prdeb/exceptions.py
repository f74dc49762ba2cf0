"""Exceptions raised by prdeb."""
from __future__ import annotations

from typing import List, Optional


class PrDebError(Exception):
    """Base exception for prdeb operations."""
    pass


class CommandError(PrDebError):
    """Raised when an external command exits non-zero.

    Attributes:
        args_list: The command line that was run
        returncode: Exit status of the command
        stderr: Captured standard error (may be empty)
    """

    def __init__(self, args_list: List[str], returncode: int, stderr: str = ""):
        message = f"command {' '.join(args_list)!r} exited with status {returncode}"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)
        self.args_list = list(args_list)
        self.returncode = returncode
        self.stderr = stderr


class ArchiveReadError(PrDebError):
    """Package archive members could not be listed or located."""
    pass


class UnknownCompressionError(PrDebError):
    """The control member uses a compression we cannot handle.

    Attributes:
        member: Name of the control member, e.g. control.tar.zst
    """

    def __init__(self, member: str):
        super().__init__(f"unknown control.tar compression: {member!r}")
        self.member = member


class MalformedControlError(PrDebError):
    """Control metadata could not be parsed."""
    pass


class MutationError(PrDebError):
    """The working copy of an archive could not be prepared."""
    pass


class MetadataQueryError(PrDebError):
    """Querying an installed package's description failed."""

    def __init__(self, package: str, reason: str):
        super().__init__(f"failed to query {package}: {reason}")
        self.package = package
        self.reason = reason


class PackageManagerError(PrDebError):
    """The package manager rejected an install or reinstall batch.

    Attributes:
        packages: Packages or archive paths in the failed batch
    """

    def __init__(self, message: str, packages: Optional[List[str]] = None):
        super().__init__(message)
        self.packages = packages or []


class ConfigError(PrDebError):
    """Configuration could not be loaded."""
    pass


class PullRequestLookupError(PrDebError):
    """A pull request, change or CI job could not be resolved."""
    pass


class DownloadError(PrDebError):
    """An artifact download failed."""
    pass
