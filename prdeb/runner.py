"""Blocking command runner.

Everything prdeb does to the system (ar, apt-get, dpkg-query, sudo) goes
through a CommandRunner so tests can substitute canned output.
"""
from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from prdeb.exceptions import CommandError


PathLike = Union[str, Path]


@dataclass
class CommandResult:
    """Outcome of one command invocation."""
    args: List[str]
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def error_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


@dataclass
class CommandRunner:
    """Run external commands to completion.

    There is no timeout: a hung command hangs the caller.
    """
    verbose: bool = False
    history: List[List[str]] = field(default_factory=list)

    def run(
        self,
        args: Sequence[PathLike],
        cwd: Optional[PathLike] = None,
        capture: bool = True,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        argv = [str(a) for a in args]
        self.history.append(argv)
        if self.verbose:
            where = f" (in {cwd})" if cwd else ""
            print(f"[run] {' '.join(argv)}{where}", file=sys.stderr)

        try:
            proc = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                capture_output=capture,
                env=dict(env) if env is not None else None,
            )
        except FileNotFoundError as e:
            return CommandResult(argv, 127, b"", str(e).encode("utf-8"))

        return CommandResult(argv, proc.returncode, proc.stdout or b"", proc.stderr or b"")

    def check(
        self,
        args: Sequence[PathLike],
        cwd: Optional[PathLike] = None,
        capture: bool = True,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        """Run and raise CommandError on a non-zero exit."""
        result = self.run(args, cwd=cwd, capture=capture, env=env)
        if not result.ok:
            raise CommandError(result.args, result.returncode, result.error_text)
        return result
