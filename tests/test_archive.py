#!/usr/bin/env python3
"""
test_archive.py - Tests for .deb member inspection.

Tests:
1. Member listing through `ar t`, including failure modes
2. Control member lookup and codec selection
3. Control tarball rewrite keeps every other entry
"""
import pytest

from prdeb import archive
from prdeb.archive import ControlMember
from prdeb.exceptions import ArchiveReadError, UnknownCompressionError

from conftest import control_tar_names


class TestListMembers:

    def test_lists_members_in_archive_order(self, runner, make_deb):
        deb = make_deb()
        assert archive.list_members(runner, deb) == [
            "debian-binary", "control.tar.gz", "data.tar.gz",
        ]

    def test_listing_failure_raises(self, runner, tmp_path):
        runner.on(["ar", "t"], returncode=1, stderr="ar: not an archive")
        with pytest.raises(ArchiveReadError, match="not an archive"):
            archive.list_members(runner, tmp_path / "x.deb")

    def test_empty_listing_raises(self, runner, tmp_path):
        runner.on(["ar", "t"], stdout="\n\n")
        with pytest.raises(ArchiveReadError, match="no members"):
            archive.list_members(runner, tmp_path / "x.deb")


class TestFindControlMember:

    @pytest.mark.parametrize("name,codec", [
        ("control.tar.gz", "gz"),
        ("control.tar.xz", "xz"),
        ("control.tar", ""),
    ])
    def test_codec_from_suffix(self, name, codec):
        member = archive.find_control_member(["debian-binary", name, "data.tar.xz"])
        assert member == ControlMember(name=name, codec=codec)

    def test_unknown_suffix(self):
        with pytest.raises(UnknownCompressionError) as exc:
            archive.find_control_member(["debian-binary", "control.tar.zst"])
        assert exc.value.member == "control.tar.zst"

    def test_missing_control_member(self):
        with pytest.raises(ArchiveReadError, match="control tar member not found"):
            archive.find_control_member(["debian-binary", "data.tar.xz"])

    def test_modes(self):
        assert ControlMember("control.tar", "").read_mode == "r:"
        assert ControlMember("control.tar.xz", "xz").write_mode == "w:xz"


class TestControlTarball:

    def test_rewrite_replaces_only_control(self, runner, make_deb, tmp_path):
        deb = make_deb(codec="xz")
        member = archive.find_control_member(archive.list_members(runner, deb))
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        tarball = archive.extract_member(runner, deb, member.name, scratch)

        archive.write_control_file(tarball, member, b"Package: foo\nVersion: 2\n")

        assert archive.read_control_file(tarball, member) == b"Package: foo\nVersion: 2\n"
        archive.replace_member(runner, deb, tarball)
        names = control_tar_names(deb)
        assert len(names) == 3
        assert names[1:] == ["./control", "./md5sums"]

    def test_extract_missing_member(self, runner, make_deb, tmp_path):
        deb = make_deb()
        with pytest.raises(ArchiveReadError):
            archive.extract_member(runner, deb, "control.tar.xz", tmp_path)

    def test_corrupt_tarball(self, tmp_path):
        bad = tmp_path / "control.tar.gz"
        bad.write_bytes(b"not gzip at all")
        with pytest.raises(ArchiveReadError):
            archive.read_control_file(bad, ControlMember("control.tar.gz", "gz"))
