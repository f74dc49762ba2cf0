"""
mutator.py - Rebuild a .deb with provenance embedded in its control file.

Workflow:
1. Copy the archive into the output directory (the source is never touched)
2. Find control.tar[.gz|.xz] in the copy
3. Extract it into a fresh scratch directory
4. Pull out ./control, parse, mutate, serialize, write it back
5. Repack the control tarball and replace the member in the copy

The scratch directory is removed on every exit path. On failure the
partial copy is removed and the error propagates unchanged.
"""
from __future__ import annotations

import shutil
import sys
import tempfile
from pathlib import Path
from typing import Callable, Optional

from prdeb import archive, control
from prdeb.exceptions import MutationError
from prdeb.provenance import ProvenanceRecord
from prdeb.runner import CommandRunner


VersionResolver = Callable[[str], Optional[str]]


def mutate_deb(
    runner: CommandRunner,
    archive_path: Path,
    provenance: ProvenanceRecord,
    out_dir: Path,
    resolve_version: Optional[VersionResolver] = None,
) -> Path:
    """
    Write a provenance-tagged copy of archive_path into out_dir.

    Args:
        runner: Runs the `ar` commands
        archive_path: Source .deb (left untouched)
        provenance: Record to embed
        out_dir: Directory receiving the mutated copy
        resolve_version: Maps a package name to the Version the copy should
            carry, or None to keep the built version

    Returns:
        Path of the mutated copy

    Raises:
        MutationError: The source cannot be copied into out_dir
        ArchiveReadError, UnknownCompressionError, MalformedControlError,
        CommandError: The copy is discarded, the source is unchanged
    """
    archive_path = Path(archive_path).resolve()
    out_dir = Path(out_dir).resolve()
    work_path = out_dir / archive_path.name
    if work_path == archive_path:
        raise MutationError(f"output directory must differ from the source: {out_dir}")

    print(f"[mutate] {archive_path.name} -> {work_path}", file=sys.stderr)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(archive_path, work_path)
    except OSError as e:
        raise MutationError(f"cannot copy {archive_path} to {out_dir}: {e}") from e

    scratch = Path(tempfile.mkdtemp(prefix=f"{archive_path.stem}-", suffix=".prdeb"))
    try:
        member = archive.find_control_member(archive.list_members(runner, work_path))
        tarball = archive.extract_member(runner, work_path, member.name, scratch)

        control_path = scratch / "control"
        control_path.write_bytes(archive.read_control_file(tarball, member))

        paragraph = control.parse(control_path)
        new_version = None
        if resolve_version is not None:
            new_version = resolve_version(paragraph["Package"])
            if new_version and new_version != paragraph.get("Version"):
                print(f"[mutate] version {paragraph.get('Version')} -> {new_version}",
                      file=sys.stderr)
        mutated = control.mutate(paragraph, provenance, new_version)
        control_path.write_bytes(control.serialize(mutated))

        archive.write_control_file(tarball, member, control_path.read_bytes())
        archive.replace_member(runner, work_path, tarball)
    except Exception:
        work_path.unlink(missing_ok=True)
        raise
    finally:
        shutil.rmtree(scratch, ignore_errors=True)

    return work_path
