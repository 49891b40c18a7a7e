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
import stat

import pytest
import yaml
from craft_runtime import errors
from craft_runtime.store import (
    EntryType,
    FileMetadata,
    MutableTree,
    commit,
    write_directory,
)
from craft_runtime.store.errors import StoreLocked


class TestCommit:
    """Snapshot directories into the store."""

    def test_commit(self, store, tmp_path, file_tree):
        source = file_tree(tmp_path / "source", {"a": "1", "dir/b": "2", "e": None})
        (source / "link").symlink_to("a")

        checksum = commit(store, source, "foo", "First", body="details")

        assert store.resolve_ref("foo") == checksum
        data = store.read_commit(checksum)
        assert data.parent is None
        assert data.subject == "First"
        assert data.body == "details"

        tree = store.read_tree(data.root)
        assert [(e.name, e.type) for e in tree.entries] == [
            ("a", EntryType.FILE),
            ("dir", EntryType.DIRECTORY),
            ("e", EntryType.DIRECTORY),
            ("link", EntryType.SYMLINK),
        ]
        content, _ = store.read_blob(tree.get("link").checksum)
        assert content == b"a"

    def test_commit_chain(self, store, tmp_path, file_tree):
        source = file_tree(tmp_path / "source", {"a": "1"})
        first = commit(store, source, "foo", "First")
        (source / "a").write_text("2")
        second = commit(store, source, "foo", "Second")

        assert store.read_commit(second).parent == first
        assert [c for c, _ in store.history("foo")] == [second, first]

    def test_commit_same_content(self, store, tmp_path, file_tree):
        source = file_tree(tmp_path / "source", {"a": "1"})
        first = commit(store, source, "foo", "Commit")
        second = commit(store, source, "bar", "Commit")

        assert store.read_commit(first).root == store.read_commit(second).root

    def test_commit_updates_summary(self, store, tmp_path, file_tree):
        source = file_tree(tmp_path / "source", {"a": "1"})
        checksum = commit(store, source, "foo", "Commit")

        assert store.read_summary()["refs"]["foo"]["checksum"] == checksum

    def test_commit_directory_metadata(self, store, tmp_path, file_tree):
        source = file_tree(tmp_path / "source", {"dir/a": "1"})
        (source / "dir").chmod(0o750)

        checksum = commit(store, source, "foo", "Commit")

        root = store.read_tree(store.read_commit(checksum).root)
        subdir = store.read_tree(root.get("dir").checksum)
        assert subdir.metadata.mode == 0o750
        assert subdir.metadata.uid == os.getuid()

    def test_commit_hardlinks(self, store, tmp_path, file_tree, mocker):
        source = file_tree(tmp_path / "source", {"a": "content"})
        os.link(source / "a", source / "b")
        spy = mocker.spy(store, "_write_path")

        checksum = commit(store, source, "foo", "Commit")

        root = store.read_tree(store.read_commit(checksum).root)
        assert root.get("a").checksum == root.get("b").checksum
        assert spy.call_count == 1

    def test_commit_skips_special_files(self, store, tmp_path, file_tree):
        source = file_tree(tmp_path / "source", {"a": "1"})
        os.mkfifo(source / "fifo")

        checksum = commit(store, source, "foo", "Commit")

        root = store.read_tree(store.read_commit(checksum).root)
        assert [e.name for e in root.entries] == ["a"]

    def test_commit_missing_directory(self, store, tmp_path):
        with pytest.raises(errors.FilesystemError) as raised:
            commit(store, tmp_path / "missing", "foo", "Commit")

        assert raised.value.path == str(tmp_path / "missing")
        assert store.resolve_ref("foo", allow_missing=True) is None

    def test_commit_with_concurrent_prune(self, store, tmp_path, file_tree, mocker):
        source = file_tree(tmp_path / "source", {"a": "1"})
        safe_dump = yaml.safe_dump

        def dump_during_prune(*args, **kwargs):
            with pytest.raises(StoreLocked):
                store.prune()
            return safe_dump(*args, **kwargs)

        mocker.patch("yaml.safe_dump", side_effect=dump_during_prune)

        checksum = commit(store, source, "foo", "Commit")

        assert store.resolve_ref("foo") == checksum
        assert store.read_summary()["refs"]["foo"]["checksum"] == checksum

    def test_commit_summary_error(self, store, tmp_path, file_tree, mocker):
        source = file_tree(tmp_path / "source", {"a": "1"})
        mocker.patch.object(
            store,
            "regenerate_summary",
            side_effect=PermissionError(13, "Permission denied", "summary.yaml"),
        )

        with pytest.raises(errors.FilesystemError) as raised:
            commit(store, source, "foo", "Commit")

        assert raised.value.action == "commit"
        assert raised.value.path == "summary.yaml"


class TestMutableTree:
    """In-memory trees written bottom-up."""

    def test_replace_entries(self, store):
        tree = MutableTree()
        with store.transaction() as txn:
            blob = txn.put_blob(b"data", FileMetadata())
            tree.ensure_dir("x")
            tree.add_file("x", EntryType.FILE, blob)
            tree.add_file("y", EntryType.FILE, blob)
            tree.ensure_dir("y").ensure_dir("z")
            checksum = tree.write(txn)

        root = store.read_tree(checksum)
        assert root.get("x").type == EntryType.FILE
        assert root.get("y").type == EntryType.DIRECTORY
        subdir = store.read_tree(root.get("y").checksum)
        assert subdir.get("z").type == EntryType.DIRECTORY

    def test_write_directory(self, store, tmp_path, file_tree):
        source = file_tree(tmp_path / "source", {"a": "1"})
        source.chmod(0o700)

        with store.transaction() as txn:
            checksum = write_directory(txn, source)

        root = store.read_tree(checksum)
        assert stat.S_IMODE(root.metadata.mode) == 0o700
        assert root.get("a") is not None
