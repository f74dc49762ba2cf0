"""Shared fixtures: fake command runner, ar emulation, .deb builder, fake HTTP.

Nothing here touches the real package manager or network.
"""
import io
import json
import sys
import tarfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
import requests
from debian.deb822 import Deb822

# tests/ -> repo root
REPO_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(REPO_ROOT))

from prdeb.runner import CommandResult, CommandRunner


AR_MAGIC = b"!<arch>\n"

SAMPLE_CONTROL = """\
Package: foo
Version: 1.0
Architecture: amd64
Maintainer: Deepin Packages Builder <packages@deepin.com>
Installed-Size: 120
Depends: libc6 (>= 2.14), libfoo1 (= 1.0), libbar (= 2.0)
Section: utils
Priority: optional
Homepage: https://github.com/linuxdeepin/foo
Description: foo utility
 foo does things.
 .
 It does them well.
"""

CODEC_SUFFIX = {"gz": ".gz", "xz": ".xz", "": ""}


# =============================================================================
# ar format
# =============================================================================

def write_ar(path: Path, members: List[Tuple[str, bytes]]) -> None:
    with open(path, "wb") as f:
        f.write(AR_MAGIC)
        for name, data in members:
            header = f"{name + '/':<16}{0:<12}{0:<6}{0:<6}{'100644':<8}{len(data):<10}`\n"
            f.write(header.encode("ascii"))
            f.write(data)
            if len(data) % 2:
                f.write(b"\n")


def read_ar(path: Path) -> List[Tuple[str, bytes]]:
    members = []
    with open(path, "rb") as f:
        if f.read(8) != AR_MAGIC:
            raise ValueError("Missing ar global header")
        while True:
            hdr = f.read(60)
            if not hdr:
                break
            if len(hdr) < 60:
                raise ValueError("Truncated member header")
            name = hdr[0:16].decode("ascii").strip().rstrip("/")
            size = int(hdr[48:58].decode("ascii").strip() or "0")
            data = f.read(size)
            if size % 2 == 1:
                f.read(1)
            members.append((name, data))
    return members


def ar_command(args: List[str], cwd: Optional[str]) -> CommandResult:
    """Emulate `ar t|x|r ARCHIVE [MEMBER...]`."""
    op, archive = args[1], Path(args[2])
    if not archive.is_absolute() and cwd:
        archive = Path(cwd) / archive
    try:
        members = read_ar(archive)
    except (OSError, ValueError) as e:
        return CommandResult(args, 1, b"", str(e).encode())

    if op == "t":
        out = "".join(f"{name}\n" for name, _ in members)
        return CommandResult(args, 0, out.encode())
    if op == "x":
        wanted = args[3:] or [name for name, _ in members]
        found = dict(members)
        for name in wanted:
            if name not in found:
                return CommandResult(args, 1, b"", f"no entry {name}".encode())
            (Path(cwd) / name).write_bytes(found[name])
        return CommandResult(args, 0)
    if op == "r":
        for name in args[3:]:
            data = (Path(cwd) / name).read_bytes()
            names = [n for n, _ in members]
            if name in names:
                members[names.index(name)] = (name, data)
            else:
                members.append((name, data))
        write_ar(archive, members)
        return CommandResult(args, 0)
    return CommandResult(args, 1, b"", b"unsupported ar operation")


# =============================================================================
# .deb building / reading
# =============================================================================

def _tar_bytes(files: Dict[str, bytes], codec: str) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode=f"w:{codec}", format=tarfile.GNU_FORMAT) as tar:
        root = tarfile.TarInfo("./")
        root.type = tarfile.DIRTYPE
        root.mode = 0o755
        tar.addfile(root)
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def build_deb(path: Path, control_text: str = SAMPLE_CONTROL, codec: str = "gz") -> Path:
    control_tar = _tar_bytes({
        "./control": control_text.encode("utf-8"),
        "./md5sums": b"d41d8cd98f00b204e9800998ecf8427e  usr/bin/foo\n",
    }, codec)
    data_tar = _tar_bytes({"./usr/bin/foo": b"#!/bin/sh\n"}, "gz")
    write_ar(path, [
        ("debian-binary", b"2.0\n"),
        (f"control.tar{CODEC_SUFFIX.get(codec, codec)}", control_tar),
        ("data.tar.gz", data_tar),
    ])
    return path


def control_tar_names(deb: Path) -> List[str]:
    members = dict(read_ar(deb))
    name = next(n for n in members if n.startswith("control.tar"))
    codec = {".gz": "gz", ".xz": "xz", "": ""}[name[len("control.tar"):]]
    with tarfile.open(fileobj=io.BytesIO(members[name]), mode=f"r:{codec}") as tar:
        return tar.getnames()


def read_deb_control(deb: Path) -> str:
    members = dict(read_ar(deb))
    name = next(n for n in members if n.startswith("control.tar"))
    codec = {".gz": "gz", ".xz": "xz", "": ""}[name[len("control.tar"):]]
    with tarfile.open(fileobj=io.BytesIO(members[name]), mode=f"r:{codec}") as tar:
        return tar.extractfile("./control").read().decode("utf-8")


# =============================================================================
# Fake runner and system
# =============================================================================

class FakeRunner(CommandRunner):
    """Dispatch commands to handlers by argv prefix; latest registration wins."""

    def __init__(self):
        super().__init__()
        self.handlers = []
        # env passed with each history entry
        self.envs: List[Optional[dict]] = []

    def on(self, prefix, handler=None, returncode=0, stdout=b"", stderr=b""):
        if handler is None:
            out = stdout.encode() if isinstance(stdout, str) else stdout
            err = stderr.encode() if isinstance(stderr, str) else stderr

            def handler(args, cwd):
                return CommandResult(args, returncode, out, err)

        self.handlers.insert(0, (list(prefix), handler))

    def run(self, args, cwd=None, capture=True, env=None):
        argv = [str(a) for a in args]
        self.history.append(argv)
        self.envs.append(dict(env) if env is not None else None)
        for prefix, handler in self.handlers:
            if argv[:len(prefix)] == prefix:
                return handler(argv, cwd)
        return CommandResult(argv, 127, b"", b"unexpected command")

    def called(self, *prefix) -> List[List[str]]:
        return [a for a in self.history if a[:len(prefix)] == list(prefix)]

    def envs_for(self, *prefix) -> List[Optional[dict]]:
        return [e for a, e in zip(self.history, self.envs) if a[:len(prefix)] == list(prefix)]


class FakeSystem:
    """dpkg/apt state behind a FakeRunner.

    installed maps package name -> rendered Description.
    """

    def __init__(self, runner: FakeRunner):
        self.runner = runner
        self.installed: Dict[str, str] = {}
        self.policies: Dict[str, Tuple[str, str]] = {}
        self.apt_fails = False
        # packages whose reinstall leaves the CI build in place
        self.sticky: set = set()
        runner.on(["dpkg-query"], self._dpkg_query)
        runner.on(["apt-get"], self._apt_get)
        runner.on(["sudo", "apt-get"], self._apt_get)
        runner.on(["apt-cache", "policy"], self._policy)

    def install_description(self, package: str, description: str) -> None:
        self.installed[package] = description

    def _dpkg_query(self, args, cwd):
        package = args[-1]
        if package not in self.installed:
            msg = f"dpkg-query: no packages found matching {package}\n"
            return CommandResult(args, 1, b"", msg.encode())
        return CommandResult(args, 0, f"installed\n{self.installed[package]}\n".encode())

    def _apt_get(self, args, cwd):
        if self.apt_fails:
            return CommandResult(args, 100, b"", b"E: broken")
        if "-s" in args:
            return CommandResult(args, 0)
        targets = [a for a in args[args.index("install") + 1:] if not a.startswith("-")]
        for target in targets:
            if target.endswith(".deb"):
                paragraph = Deb822(read_deb_control(Path(target)).splitlines())
                self.installed[paragraph["Package"]] = paragraph["Description"]
            elif target not in self.sticky:
                self.installed[target] = f"{target} from the archive\n plain description"
        return CommandResult(args, 0)

    def _policy(self, args, cwd):
        package = args[-1]
        installed, candidate = self.policies.get(package, ("(none)", "(none)"))
        out = f"{package}:\n  Installed: {installed}\n  Candidate: {candidate}\n  Version table:\n"
        return CommandResult(args, 0, out.encode())


# =============================================================================
# Fake HTTP
# =============================================================================

class FakeResponse:

    def __init__(self, content=b"", status_code=200, url=""):
        if isinstance(content, (dict, list)):
            content = json.dumps(content)
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.content = content
        self.status_code = status_code
        self.url = url

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} for {self.url}")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests: List[Tuple[str, dict]] = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if url not in self.routes:
            return FakeResponse(b"not found", 404, url)
        value = self.routes[url]
        if isinstance(value, FakeResponse):
            return value
        return FakeResponse(value, 200, url)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def runner():
    r = FakeRunner()
    r.on(["ar"], ar_command)
    return r


@pytest.fixture
def system(runner):
    return FakeSystem(runner)


@pytest.fixture
def make_deb(tmp_path):
    def _make(name="foo_1.0_amd64.deb", control_text=SAMPLE_CONTROL, codec="gz"):
        src = tmp_path / "src"
        src.mkdir(exist_ok=True)
        return build_deb(src / name, control_text, codec)
    return _make


@pytest.fixture
def fake_session():
    return FakeSession()
