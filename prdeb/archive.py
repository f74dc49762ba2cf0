"""Archive utilities for binary package (.deb) files.

A .deb is an `ar` container. Its members are listed, extracted and replaced
with the `ar` tool; the nested control tarball is read and rewritten with
tarfile using the codec implied by the member's suffix.
"""
from __future__ import annotations

import io
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from prdeb.exceptions import ArchiveReadError, CommandError, UnknownCompressionError
from prdeb.runner import CommandRunner


CONTROL_MEMBER_PREFIX = "control.tar"

# member suffix -> tarfile compression
CODECS = {
    ".gz": "gz",
    ".xz": "xz",
    "": "",
}

CONTROL_FILE_NAMES = ("./control", "control")


@dataclass(frozen=True)
class ControlMember:
    """The control tarball member of a package archive."""
    name: str
    codec: str

    @property
    def read_mode(self) -> str:
        return f"r:{self.codec}"

    @property
    def write_mode(self) -> str:
        return f"w:{self.codec}"


def list_members(runner: CommandRunner, archive: Path) -> List[str]:
    """Return archive member names in archive order.

    Raises:
        ArchiveReadError: If `ar t` fails or lists nothing
    """
    result = runner.run(["ar", "t", str(archive)])
    if not result.ok:
        raise ArchiveReadError(
            f"cannot list members of {archive}: {result.error_text.strip() or result.returncode}"
        )
    members = [line.strip() for line in result.text.splitlines() if line.strip()]
    if not members:
        raise ArchiveReadError(f"no members in {archive}")
    return members


def find_control_member(members: List[str]) -> ControlMember:
    """Locate the control tarball and its codec.

    Raises:
        ArchiveReadError: If no member name starts with control.tar
        UnknownCompressionError: If the suffix is neither .gz, .xz nor empty
    """
    for name in members:
        if not name.startswith(CONTROL_MEMBER_PREFIX):
            continue
        suffix = name[len(CONTROL_MEMBER_PREFIX):]
        if suffix not in CODECS:
            raise UnknownCompressionError(name)
        return ControlMember(name=name, codec=CODECS[suffix])
    raise ArchiveReadError("control tar member not found in deb file")


def extract_member(runner: CommandRunner, archive: Path, member: str, dest_dir: Path) -> Path:
    """Extract one member into dest_dir and return its path."""
    try:
        runner.check(["ar", "x", str(archive), member], cwd=dest_dir)
    except CommandError as e:
        raise ArchiveReadError(f"cannot extract {member} from {archive}: {e}") from e
    path = dest_dir / member
    if not path.is_file():
        raise ArchiveReadError(f"{member} missing after extraction from {archive}")
    return path


def replace_member(runner: CommandRunner, archive: Path, member_path: Path) -> None:
    """Replace (in place, keeping order) the member named like member_path."""
    runner.check(["ar", "r", str(archive), member_path.name], cwd=member_path.parent)


def _find_control_info(tar: tarfile.TarFile) -> Optional[tarfile.TarInfo]:
    for name in CONTROL_FILE_NAMES:
        try:
            info = tar.getmember(name)
        except KeyError:
            continue
        if info.isfile():
            return info
    return None


def read_control_file(tarball: Path, member: ControlMember) -> bytes:
    """Return the bytes of the control file inside the control tarball.

    Raises:
        ArchiveReadError: If the tarball is unreadable or has no control file
    """
    try:
        with tarfile.open(tarball, member.read_mode) as tar:
            info = _find_control_info(tar)
            if info is None:
                raise ArchiveReadError(f"no control file in {member.name}")
            f = tar.extractfile(info)
            return f.read()
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveReadError(f"cannot read {member.name}: {e}") from e


def write_control_file(tarball: Path, member: ControlMember, content: bytes) -> None:
    """Rewrite the control tarball with a new control file.

    All other entries (md5sums, maintainer scripts...) are carried over
    unchanged and in their original order.
    """
    entries: List[Tuple[tarfile.TarInfo, Optional[bytes]]] = []
    try:
        with tarfile.open(tarball, member.read_mode) as tar:
            for info in tar.getmembers():
                data = None
                if info.isfile():
                    data = tar.extractfile(info).read()
                entries.append((info, data))
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveReadError(f"cannot read {member.name}: {e}") from e

    replaced = False
    with tarfile.open(tarball, member.write_mode, format=tarfile.GNU_FORMAT) as tar:
        for info, data in entries:
            if info.isfile() and info.name in CONTROL_FILE_NAMES and not replaced:
                data = content
                info.size = len(content)
                replaced = True
            tar.addfile(info, io.BytesIO(data) if data is not None else None)

    if not replaced:
        raise ArchiveReadError(f"no control file in {member.name}")
