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

"""Snapshot directories into the object store."""

import logging
import os
import stat
from pathlib import Path

from craft_runtime import errors, xattrs
from craft_runtime.utils.file_utils import FileIdentity

from .objects import DirMetadata, EntryType, TreeEntry
from .repository import ObjectStore
from .transaction import Transaction

logger = logging.getLogger(__name__)


class MutableTree:
    """An in-memory directory tree to be written to the store.

    :param metadata: The directory metadata.
    """

    def __init__(self, metadata: DirMetadata | None = None) -> None:
        self.metadata = metadata or DirMetadata()
        self.files: dict[str, TreeEntry] = {}
        self.subdirs: dict[str, "MutableTree"] = {}

    def add_file(self, name: str, entry_type: EntryType, checksum: str) -> None:
        """Add or replace a file or symlink entry."""
        self.subdirs.pop(name, None)
        self.files[name] = TreeEntry(name=name, type=entry_type, checksum=checksum)

    def ensure_dir(
        self, name: str, metadata: DirMetadata | None = None
    ) -> "MutableTree":
        """Obtain a subdirectory, creating it if needed."""
        self.files.pop(name, None)
        if name not in self.subdirs:
            self.subdirs[name] = MutableTree(metadata)
        return self.subdirs[name]

    def write(self, txn: Transaction) -> str:
        """Write this tree and its descendants, bottom-up.

        :param txn: The transaction to write objects in.

        :return: The checksum of this tree.
        """
        entries = list(self.files.values())
        for name, subdir in self.subdirs.items():
            checksum = subdir.write(txn)
            entries.append(
                TreeEntry(name=name, type=EntryType.DIRECTORY, checksum=checksum)
            )

        return txn.put_tree(entries, self.metadata)


def commit(
    store: ObjectStore,
    directory: Path,
    ref: str,
    subject: str,
    *,
    body: str | None = None,
) -> str:
    """Snapshot a directory and publish it as the new head of a ref.

    :param store: The object store.
    :param directory: The directory to snapshot.
    :param ref: The ref to update.
    :param subject: The commit subject.
    :param body: The commit message body.

    :return: The new commit checksum.

    :raise RefConflict: If the ref was updated by someone else meanwhile.
    :raise FilesystemError: If the directory can't be read.
    """
    parent = store.resolve_ref(ref, allow_missing=True)
    logger.debug("commit %s to %s (parent %s)", directory, ref, parent)

    try:
        with store.transaction() as txn:
            root = write_directory(txn, directory)
            checksum = txn.put_commit(parent, root, subject, body=body)
            txn.update_ref(ref, checksum, parent)
        store.regenerate_summary()
    except OSError as err:
        raise errors.FilesystemError.from_os_error("commit", err) from err

    logger.info("Committed %s as %s", ref, checksum)
    return checksum


def write_directory(txn: Transaction, directory: Path) -> str:
    """Write a directory and its contents to the store.

    :param txn: The transaction to write objects in.
    :param directory: The directory to write.

    :return: The checksum of the root tree.
    """
    tree = MutableTree(_dir_metadata(directory))
    _populate(txn, tree, directory, {})
    return tree.write(txn)


def _populate(
    txn: Transaction,
    tree: MutableTree,
    directory: Path,
    written: dict[FileIdentity, str],
) -> None:
    with os.scandir(directory) as it:
        dir_entries = sorted(it, key=lambda e: e.name)

    for dir_entry in dir_entries:
        path = Path(dir_entry.path)
        st = dir_entry.stat(follow_symlinks=False)

        if stat.S_ISDIR(st.st_mode):
            subtree = tree.ensure_dir(dir_entry.name, _dir_metadata(path))
            _populate(txn, subtree, path, written)
        elif stat.S_ISLNK(st.st_mode):
            tree.add_file(dir_entry.name, EntryType.SYMLINK, txn.put_file(path))
        elif stat.S_ISREG(st.st_mode):
            identity = FileIdentity(st.st_dev, st.st_ino)
            checksum = written.get(identity)
            if checksum is None:
                checksum = txn.put_file(path)
                if st.st_nlink > 1:
                    written[identity] = checksum
            else:
                logger.debug("hardlink %s already stored as %s", path, checksum)
            tree.add_file(dir_entry.name, EntryType.FILE, checksum)
        else:
            logger.warning("Skipping special file %s", path)


def _dir_metadata(path: Path) -> DirMetadata:
    st = os.stat(path, follow_symlinks=False)
    return DirMetadata(
        mode=stat.S_IMODE(st.st_mode),
        uid=st.st_uid,
        gid=st.st_gid,
        xattrs=xattrs.read_xattrs(str(path)),
    )
