"""
control.py - Read, mutate and write a binary package's control paragraph.

The paragraph is held as a debian.deb822.Deb822 (ordered, field order is
preserved on output). Mutation embeds a provenance block at the end of
Description and, when a replacement version is given, rewrites Version and
the Depends clauses pinned to the old version.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Union

from debian.deb822 import Deb822

from prdeb.exceptions import MalformedControlError
from prdeb.provenance import ProvenanceRecord, strip_block


ControlParagraph = Deb822

_FIELD_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.+-]*\s*:")
_RELATION_RE = re.compile(r"\(\s*(<<|<=|>=|>>|=|<|>)\s*([^\s)]+)\s*\)")


def _check_syntax(text: str) -> None:
    lines = text.strip("\n").split("\n")
    if not lines or not lines[0].strip():
        raise MalformedControlError("empty control file")
    for lineno, line in enumerate(lines, 1):
        if not line.strip():
            raise MalformedControlError(f"line {lineno}: more than one paragraph")
        if line[0] in " \t":
            if lineno == 1:
                raise MalformedControlError("line 1: continuation line without a field")
            continue
        if not _FIELD_RE.match(line):
            raise MalformedControlError(f"line {lineno}: not a field: {line!r}")


def parse_text(text: str) -> ControlParagraph:
    """Parse one control paragraph.

    Raises:
        MalformedControlError: On syntax errors or a missing Package field
    """
    _check_syntax(text)
    paragraph = Deb822(text.strip("\n").split("\n"))
    if not paragraph.get("Package"):
        raise MalformedControlError("control paragraph has no Package field")
    return paragraph


def parse_bytes(data: bytes) -> ControlParagraph:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedControlError(f"control file is not UTF-8: {e}") from e
    return parse_text(text)


def parse(path: Union[str, Path]) -> ControlParagraph:
    return parse_bytes(Path(path).read_bytes())


def serialize(paragraph: ControlParagraph) -> bytes:
    text = paragraph.dump()
    if not text.endswith("\n"):
        text += "\n"
    return text.encode("utf-8")


def copy_paragraph(paragraph: ControlParagraph) -> ControlParagraph:
    result = Deb822()
    for key in paragraph:
        result[key] = paragraph[key]
    return result


def fold_value(value: str) -> str:
    """Join a multi-line field value into one line."""
    return " ".join(part.strip() for part in value.split("\n") if part.strip())


def replace_depends_version(depends: str, old_version: str, new_version: str) -> str:
    """Rewrite relations whose version is exactly old_version.

    No version comparison is done: `(= 1.0)` matches old_version "1.0",
    `(= 1.0.0)` does not.
    """
    def _sub(m: "re.Match[str]") -> str:
        op, version = m.group(1), m.group(2)
        if version != old_version:
            return m.group(0)
        return f"({op} {new_version})"

    return _RELATION_RE.sub(_sub, depends)


def embed_provenance(description: str, record: ProvenanceRecord) -> str:
    """Append the provenance block to a Description value.

    Any block embedded by an earlier run is dropped first. The result never
    ends with a newline.
    """
    lines = description.rstrip("\n").split("\n")
    synopsis, extended = lines[0], strip_block(lines[1:])

    body: List[str] = []
    for line in extended:
        if not line.strip():
            body.append(" .")
        elif line[0] in " \t":
            body.append(line)
        else:
            body.append(" " + line)
    body.extend(" " + line for line in record.block_lines())
    return "\n".join([synopsis] + body)


def mutate(
    paragraph: ControlParagraph,
    provenance: ProvenanceRecord,
    new_version: Optional[str] = None,
) -> ControlParagraph:
    """Return a copy of paragraph carrying provenance (and maybe a new version).

    The original Depends is recorded in the block as DEPENDS whenever the
    version is rewritten, before any clause is changed.
    """
    result = copy_paragraph(paragraph)
    record = provenance
    old_version = result.get("Version")

    if new_version and new_version != old_version:
        result["Version"] = new_version
        depends = result.get("Depends")
        if depends is not None and old_version:
            record = record.with_depends(fold_value(depends))
            result["Depends"] = replace_depends_version(depends, old_version, new_version)

    result["Description"] = embed_provenance(result.get("Description", ""), record)
    return result
