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

"""Scoped write operations against the object store."""

import contextlib
import logging
import time
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING

from . import errors
from .objects import (
    Commit,
    DirMetadata,
    FileMetadata,
    ObjectType,
    Tree,
    TreeEntry,
)

if TYPE_CHECKING:
    from .repository import ObjectStore

logger = logging.getLogger(__name__)


class Transaction:
    """A store write transaction.

    Objects written in a transaction are protected from garbage collection
    until the transaction ends, and remain unreachable until a ref points
    to them. Ref updates are deferred and applied together, with
    compare-and-set semantics, when the transaction context exits without
    errors. If any ref doesn't have its expected value, no ref is changed.

    :param store: The object store to write to.
    """

    def __init__(self, store: "ObjectStore") -> None:
        self._store = store
        self._ref_updates: dict[str, tuple[str, str | None]] = {}
        self._stack: contextlib.ExitStack | None = None

    def __enter__(self) -> "Transaction":
        if self._stack is not None:
            raise RuntimeError("transaction already started")

        self._stack = contextlib.ExitStack()
        self._stack.enter_context(self._store._transaction_lock())
        logger.debug("begin transaction on %s", self._store.path)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        stack = self._stack
        self._stack = None
        if stack is None:
            return

        with stack:
            if exc_type is None:
                self._store._apply_ref_updates(self._ref_updates)
                logger.debug("commit transaction on %s", self._store.path)
            else:
                logger.debug("abort transaction on %s", self._store.path)
        self._ref_updates = {}

    def _ensure_active(self) -> None:
        if self._stack is None:
            raise RuntimeError("transaction is not active")

    def put_blob(self, content: bytes, metadata: FileMetadata) -> str:
        """Write a file object.

        :param content: The file contents, or the target of a symlink.
        :param metadata: The file metadata.

        :return: The file object checksum.
        """
        self._ensure_active()
        return self._store._write_file(metadata, content)

    def put_file(self, path: Path) -> str:
        """Write a file object from a regular file or symlink on disk.

        Symlinks are not followed, the link target is stored instead.

        :param path: The file to store.

        :return: The file object checksum.
        """
        self._ensure_active()
        return self._store._write_path(path)

    def put_tree(
        self, entries: Iterable[TreeEntry], metadata: DirMetadata | None = None
    ) -> str:
        """Write a tree object.

        :param entries: The tree entries, names must be unique.
        :param metadata: The directory metadata.

        :return: The tree checksum.

        :raise InvalidTree: If entry names are invalid or duplicated.
        :raise ObjectNotFound: If an entry refers to a missing object.
        """
        self._ensure_active()
        tree = Tree.new(entries, metadata)

        for entry in tree.entries:
            object_type = entry.type.object_type
            if not self._store.has_object(entry.checksum, object_type):
                raise errors.ObjectNotFound(entry.checksum, object_type.value)

        return self._store._write_record(ObjectType.TREE, tree.encode())

    def put_commit(
        self,
        parent: str | None,
        root: str,
        subject: str,
        *,
        body: str | None = None,
        timestamp: int | None = None,
    ) -> str:
        """Write a commit object.

        :param parent: The parent commit checksum, if any.
        :param root: The root tree checksum.
        :param subject: The commit subject.
        :param body: The commit message body.
        :param timestamp: The commit time, defaults to now.

        :return: The commit checksum.

        :raise ObjectNotFound: If the root tree or parent commit are missing.
        """
        self._ensure_active()
        if not self._store.has_object(root, ObjectType.TREE):
            raise errors.ObjectNotFound(root, ObjectType.TREE.value)

        if parent is not None and not self._store.has_object(
            parent, ObjectType.COMMIT
        ):
            raise errors.ObjectNotFound(parent, ObjectType.COMMIT.value)

        commit = Commit(
            parent=parent,
            root=root,
            subject=subject,
            body=body,
            timestamp=int(time.time()) if timestamp is None else timestamp,
        )
        return self._store._write_record(ObjectType.COMMIT, commit.encode())

    def update_ref(
        self, name: str, checksum: str, expected_previous: str | None
    ) -> None:
        """Schedule a ref update for when the transaction is committed.

        :param name: The ref name.
        :param checksum: The commit the ref will point to.
        :param expected_previous: The commit the ref must point to when the
            update is applied, or None if the ref must not exist.
        """
        self._ensure_active()
        self._store._ref_path(name)  # validate the name early

        if name in self._ref_updates:
            expected_previous = self._ref_updates[name][1]

        self._ref_updates[name] = (checksum, expected_previous)
