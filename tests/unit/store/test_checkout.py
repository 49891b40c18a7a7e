# -*- Mode:Python; indent-tabs-mode:nil; tab-width:4 -*-
#
# Copyright 2026 Canonical Ltd.
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU Lesser General Public
# License version 3 as published by the Free Software Foundation.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
# Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

import os
from pathlib import Path

import pytest
from craft_runtime import errors
from craft_runtime.store import OverwriteMode, checkout, commit
from craft_runtime.store.errors import ChecksumMismatch, RevisionNotFound

from tests.fake_image import list_tree


@pytest.fixture
def committed(store, tmp_path, file_tree):
    """Commit a directory created from a dictionary of files."""

    def _commit(ref: str, files: dict, *, setup=None) -> str:
        source = tmp_path / "sources" / ref.replace("/", "_")
        source.mkdir(parents=True)
        file_tree(source, files)
        if setup:
            setup(source)
        return commit(store, source, ref, f"Commit {ref}")

    return _commit


class TestCheckout:
    """Materialize trees on the filesystem."""

    def test_checkout(self, store, committed, tmp_path):
        checksum = committed(
            "foo", {"a": "1", "dir/b": "2", "empty": None}, setup=_add_symlink
        )

        result = checkout(store, "foo", tmp_path / "target")

        assert result == checksum
        assert list_tree(tmp_path / "target") == {
            "a": b"1",
            "dir": None,
            "dir/b": b"2",
            "empty": None,
            "link": ("symlink", "dir/b"),
        }

    def test_checkout_by_checksum(self, store, committed, tmp_path):
        checksum = committed("foo", {"a": "1"})
        checkout(store, checksum, tmp_path / "target")
        assert (tmp_path / "target/a").read_text() == "1"

    def test_checkout_missing(self, store, tmp_path):
        with pytest.raises(RevisionNotFound):
            checkout(store, "foo", tmp_path / "target")

    def test_idempotent(self, store, committed, tmp_path):
        committed("foo", {"a": "1", "dir/b": "2", "dir/sub/c": "3"})

        checkout(store, "foo", tmp_path / "first")
        checkout(store, "foo", tmp_path / "second")

        assert list_tree(tmp_path / "first") == list_tree(tmp_path / "second")

    def test_modes(self, store, committed, tmp_path):
        def setup(source: Path):
            (source / "exec").chmod(0o755)
            (source / "private").chmod(0o600)
            (source / "dir").chmod(0o750)

        committed("foo", {"exec": "x", "private": "y", "dir/z": "z"}, setup=setup)
        checkout(store, "foo", tmp_path / "target")

        assert (tmp_path / "target/exec").stat().st_mode & 0o777 == 0o755
        assert (tmp_path / "target/private").stat().st_mode & 0o777 == 0o600
        assert (tmp_path / "target/dir").stat().st_mode & 0o777 == 0o750

    def test_user_mode_directories_writable(self, store, committed, tmp_path):
        committed("foo", {"dir/z": "z"}, setup=lambda s: (s / "dir").chmod(0o555))
        checkout(store, "foo", tmp_path / "target")

        assert (tmp_path / "target/dir").stat().st_mode & 0o777 == 0o755

    def test_hardlinks_within_checkout(self, store, committed, tmp_path):
        def setup(source: Path):
            os.link(source / "a", source / "b")

        committed("foo", {"a": "same"}, setup=setup)
        checkout(store, "foo", tmp_path / "target")

        first = (tmp_path / "target/a").stat()
        second = (tmp_path / "target/b").stat()
        assert first.st_ino == second.st_ino
        assert first.st_nlink == 2

    def test_corrupted_content(self, store, committed, tmp_path):
        committed("foo", {"a": "original"})
        content_file = next((store.path / "objects").rglob("*.file"))
        content_file.chmod(0o644)
        content_file.write_text("tampered")

        with pytest.raises(ChecksumMismatch) as raised:
            checkout(store, "foo", tmp_path / "target")

        assert raised.value.path is not None
        assert not (tmp_path / "target/a").exists()


class TestOverwriteModes:
    """Checkouts into populated directories."""

    def test_union(self, store, committed, file_tree, tmp_path):
        committed("foo", {"a": "new", "b": "x"})
        target = file_tree(tmp_path / "target", {"a": "old", "c": "kept"})

        checkout(store, "foo", target, mode=OverwriteMode.UNION)

        assert list_tree(target) == {"a": b"new", "b": b"x", "c": b"kept"}

    def test_union_merges_directories(self, store, committed, file_tree, tmp_path):
        committed("foo", {"dir/a": "new"})
        target = file_tree(tmp_path / "target", {"dir/b": "old"})

        checkout(store, "foo", target)

        assert list_tree(target) == {"dir": None, "dir/a": b"new", "dir/b": b"old"}

    def test_union_directory_replaces_file(
        self, store, committed, file_tree, tmp_path
    ):
        committed("foo", {"x/a": "new"})
        target = file_tree(tmp_path / "target", {"x": "file"})

        checkout(store, "foo", target)

        assert list_tree(target) == {"x": None, "x/a": b"new"}

    def test_union_file_replaces_directory(
        self, store, committed, file_tree, tmp_path
    ):
        committed("foo", {"x": "file"})
        target = file_tree(tmp_path / "target", {"x/a": "old"})

        checkout(store, "foo", target)

        assert list_tree(target) == {"x": b"file"}

    def test_union_directory_replaces_symlink(
        self, store, committed, file_tree, tmp_path
    ):
        committed("foo", {"x/a": "new"})
        target = file_tree(tmp_path / "target", {"real/b": "old"})
        (target / "x").symlink_to("real")

        checkout(store, "foo", target)

        assert list_tree(target) == {
            "real": None,
            "real/b": b"old",
            "x": None,
            "x/a": b"new",
        }

    def test_none_mode_existing_file(self, store, committed, file_tree, tmp_path):
        committed("foo", {"a": "new"})
        target = file_tree(tmp_path / "target", {"a": "old"})

        with pytest.raises(errors.FilesystemError):
            checkout(store, "foo", target, mode=OverwriteMode.NONE)

        assert (target / "a").read_text() == "old"

    def test_none_mode_new_files(self, store, committed, tmp_path):
        committed("foo", {"a": "new"})
        checkout(store, "foo", tmp_path / "target", mode=OverwriteMode.NONE)
        assert (tmp_path / "target/a").read_text() == "new"

    def test_none_mode_existing_directory(self, store, committed, file_tree, tmp_path):
        committed("foo", {"d/a": "new"})
        target = file_tree(tmp_path / "target", {"d/b": "old"})

        checkout(store, "foo", target, mode=OverwriteMode.NONE)

        assert (target / "d/a").read_text() == "new"
        assert (target / "d/b").read_text() == "old"


class TestWhiteouts:
    """OCI whiteout processing."""

    def test_whiteout_file(self, store, committed, file_tree, tmp_path):
        committed("foo", {".wh.a": "", "dir/.wh.b": "", "c": "new"})
        target = file_tree(
            tmp_path / "target", {"a": "old", "dir/b": "old", "dir/d": "kept"}
        )

        checkout(store, "foo", target, mode=OverwriteMode.UNION_WHITEOUTS)

        assert list_tree(target) == {"c": b"new", "dir": None, "dir/d": b"kept"}

    def test_whiteout_directory(self, store, committed, file_tree, tmp_path):
        committed("foo", {".wh.dir": ""})
        target = file_tree(tmp_path / "target", {"dir/a": "old", "b": "kept"})

        checkout(store, "foo", target, mode=OverwriteMode.UNION_WHITEOUTS)

        assert list_tree(target) == {"b": b"kept"}

    def test_whiteout_missing_entry(self, store, committed, tmp_path):
        committed("foo", {".wh.missing": "", "a": "new"})
        checkout(
            store, "foo", tmp_path / "target", mode=OverwriteMode.UNION_WHITEOUTS
        )
        assert list_tree(tmp_path / "target") == {"a": b"new"}

    def test_opaque_directory(self, store, committed, file_tree, tmp_path):
        committed("foo", {"dir/.wh..wh..opq": "", "dir/new": "new"})
        target = file_tree(tmp_path / "target", {"dir/old": "old", "other": "kept"})

        checkout(store, "foo", target, mode=OverwriteMode.UNION_WHITEOUTS)

        assert list_tree(target) == {"dir": None, "dir/new": b"new", "other": b"kept"}

    def test_union_keeps_whiteout_files(self, store, committed, file_tree, tmp_path):
        committed("foo", {".wh.a": ""})
        target = file_tree(tmp_path / "target", {"a": "old"})

        checkout(store, "foo", target, mode=OverwriteMode.UNION)

        assert list_tree(target) == {".wh.a": b"", "a": b"old"}


def _add_symlink(source: Path) -> None:
    (source / "link").symlink_to("dir/b")
