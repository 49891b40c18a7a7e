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

"""The content-addressed object store.

Objects are kept under ``objects/``, sharded by the first two hex digits
of their checksum. Every object file is written to a temporary file and
renamed in place, so an object is never visible before it is complete.
Refs are plain files under ``refs/`` containing a commit checksum, and
are only changed through transactions.
"""

import contextlib
import dataclasses
import fcntl
import hashlib
import logging
import os
import shutil
import stat
import tempfile
from collections.abc import Generator, Iterator
from pathlib import Path
from typing import Any

import yaml

from craft_runtime import xattrs
from craft_runtime.utils import file_utils

from . import errors
from .objects import (
    Commit,
    FileMetadata,
    FileObject,
    FileType,
    ObjectType,
    Tree,
    is_checksum,
    object_checksum,
    validate_entries,
)
from .transaction import Transaction

logger = logging.getLogger(__name__)

STORE_VERSION = 1

_GC_LOCK = "gc.lock"
_REFS_LOCK = "refs.lock"

# File objects keep their record and contents in separate files. The
# contents file is written last and marks the object as present.
_FILE_RECORD_SUFFIX = "filemeta"

_RECORD_SUFFIXES = {
    ObjectType.FILE: _FILE_RECORD_SUFFIX,
    ObjectType.TREE: "tree",
    ObjectType.COMMIT: "commit",
}

_SUFFIX_TYPES = {
    "file": ObjectType.FILE,
    _FILE_RECORD_SUFFIX: ObjectType.FILE,
    "tree": ObjectType.TREE,
    "commit": ObjectType.COMMIT,
}


@dataclasses.dataclass
class PruneResult:
    """The outcome of a store garbage collection."""

    objects_total: int = 0
    objects_removed: int = 0
    bytes_freed: int = 0


class ObjectStore:
    """A content-addressed store of files, trees and commits.

    :param path: The store location.
    :param create: Initialize the store if it doesn't exist.

    :raise StoreNotFound: If the store doesn't exist and ``create`` is not set.
    """

    def __init__(self, path: Path | str, *, create: bool = False) -> None:
        self.path = Path(path).expanduser().resolve()
        self._objects_dir = self.path / "objects"
        self._refs_dir = self.path / "refs"
        self._tmp_dir = self.path / "tmp"
        self._config_file = self.path / "config.yaml"
        self._summary_file = self.path / "summary.yaml"

        if create and not self._config_file.exists():
            self._initialize()

        if not self._config_file.is_file():
            raise errors.StoreNotFound(str(self.path))

        with open(self._config_file) as config_file:
            config = yaml.safe_load(config_file) or {}

        if config.get("version") != STORE_VERSION:
            raise errors.StoreNotFound(str(self.path))

    def __repr__(self) -> str:
        return f"ObjectStore({str(self.path)!r})"

    def _initialize(self) -> None:
        logger.debug("initialize object store at %s", self.path)
        for directory in (self._objects_dir, self._refs_dir, self._tmp_dir):
            directory.mkdir(parents=True, exist_ok=True)

        config = {"version": STORE_VERSION, "mode": "user"}
        with file_utils.atomic_writer(self._config_file) as tmp_file:
            tmp_file.write_text(yaml.safe_dump(config))

    @property
    def uri(self) -> str:
        """The store location as a file URI."""
        return self.path.as_uri()

    def transaction(self) -> Transaction:
        """Create a write transaction on this store.

        The transaction must be used as a context manager::

            with store.transaction() as txn:
                checksum = txn.put_blob(b"data", FileMetadata())
        """
        return Transaction(self)

    # Objects

    def _object_path(self, checksum: str, suffix: str) -> Path:
        return self._objects_dir / checksum[:2] / f"{checksum[2:]}.{suffix}"

    def _record_path(self, checksum: str, object_type: ObjectType) -> Path:
        return self._object_path(checksum, _RECORD_SUFFIXES[object_type])

    def content_path(self, checksum: str) -> Path:
        """Obtain the path to the contents of a file object.

        :param checksum: The file object checksum.

        :raise ObjectNotFound: If the object is not in the store.
        """
        path = self._object_path(checksum, "file")
        if not path.is_file():
            raise errors.ObjectNotFound(checksum, ObjectType.FILE.value)
        return path

    def has_object(self, checksum: str, object_type: ObjectType) -> bool:
        """Verify if an object is present in the store.

        :param checksum: The object checksum.
        :param object_type: The object type.
        """
        if not is_checksum(checksum):
            return False

        if object_type == ObjectType.FILE:
            return self._object_path(checksum, "file").is_file()

        return self._record_path(checksum, object_type).is_file()

    def _write_record(self, object_type: ObjectType, record: bytes) -> str:
        checksum = object_checksum(object_type, record)
        path = self._record_path(checksum, object_type)
        if path.exists():
            logger.debug("%s %s already in store", object_type.value, checksum)
            return checksum

        path.parent.mkdir(exist_ok=True)
        with file_utils.atomic_writer(path, tmp_dir=self._tmp_dir) as tmp_file:
            tmp_file.write_bytes(record)

        logger.debug("stored %s %s", object_type.value, checksum)
        return checksum

    def _write_file(self, metadata: FileMetadata, content: bytes | Path) -> str:
        # Contents are copied first and hashed from the copy, so the stored
        # digest always matches the stored contents.
        fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=self._tmp_dir)
        os.close(fd)
        tmp_file = Path(tmp_name)
        tmp_file.chmod(0o644)
        try:
            if isinstance(content, Path):
                shutil.copyfile(content, tmp_file)
            else:
                tmp_file.write_bytes(content)

            file_object = FileObject(
                **metadata.model_dump(),
                size=tmp_file.stat().st_size,
                content_digest=file_utils.calculate_hash(tmp_file, algorithm="sha256"),
            )
            record = file_object.encode()
            checksum = object_checksum(ObjectType.FILE, record)

            if self.has_object(checksum, ObjectType.FILE):
                logger.debug("file %s already in store", checksum)
                return checksum

            self._write_record(ObjectType.FILE, record)
            os.replace(tmp_file, self._object_path(checksum, "file"))
        finally:
            with contextlib.suppress(FileNotFoundError):
                tmp_file.unlink()

        logger.debug("stored file %s (%d bytes)", checksum, file_object.size)
        return checksum

    def _write_path(self, path: Path) -> str:
        st = os.lstat(path)
        if stat.S_ISLNK(st.st_mode):
            file_type = FileType.SYMLINK
            content: bytes | Path = os.fsencode(os.readlink(path))
        elif stat.S_ISREG(st.st_mode):
            file_type = FileType.REGULAR
            content = path
        else:
            raise ValueError(f"{str(path)!r} is not a regular file or symlink")

        metadata = FileMetadata(
            file_type=file_type,
            mode=stat.S_IMODE(st.st_mode),
            uid=st.st_uid,
            gid=st.st_gid,
            xattrs=xattrs.read_xattrs(str(path)),
        )
        return self._write_file(metadata, content)

    def _read_record(self, checksum: str, object_type: ObjectType) -> bytes:
        if not is_checksum(checksum):
            raise errors.ObjectNotFound(checksum, object_type.value)

        path = self._record_path(checksum, object_type)
        try:
            data = path.read_bytes()
        except FileNotFoundError as err:
            raise errors.ObjectNotFound(checksum, object_type.value) from err

        obtained = object_checksum(object_type, data)
        if obtained != checksum:
            raise errors.ChecksumMismatch(
                expected=checksum, obtained=obtained, path=str(path)
            )

        return data

    def read_file_object(self, checksum: str) -> FileObject:
        """Read the record of a file object.

        :param checksum: The file object checksum.

        :raise ObjectNotFound: If the object is not in the store.
        :raise ChecksumMismatch: If the record is corrupted.
        """
        if not self.has_object(checksum, ObjectType.FILE):
            raise errors.ObjectNotFound(checksum, ObjectType.FILE.value)

        return FileObject.decode(self._read_record(checksum, ObjectType.FILE))

    def read_blob(self, checksum: str) -> tuple[bytes, FileObject]:
        """Read the contents and metadata of a file object.

        :param checksum: The file object checksum.

        :return: A tuple containing the file contents and its record.

        :raise ObjectNotFound: If the object is not in the store.
        :raise ChecksumMismatch: If the record or contents are corrupted.
        """
        file_object = self.read_file_object(checksum)
        path = self.content_path(checksum)
        content = path.read_bytes()

        obtained = hashlib.sha256(content).hexdigest()
        if obtained != file_object.content_digest:
            raise errors.ChecksumMismatch(
                expected=file_object.content_digest, obtained=obtained, path=str(path)
            )

        return content, file_object

    def read_tree(self, checksum: str) -> Tree:
        """Read a tree object.

        :param checksum: The tree checksum.

        :raise ObjectNotFound: If the object is not in the store.
        :raise ChecksumMismatch: If the record is corrupted.
        """
        tree = Tree.decode(self._read_record(checksum, ObjectType.TREE))
        validate_entries(tree.entries)
        return tree

    def read_commit(self, checksum: str) -> Commit:
        """Read a commit object.

        :param checksum: The commit checksum.

        :raise ObjectNotFound: If the object is not in the store.
        :raise ChecksumMismatch: If the record is corrupted.
        """
        return Commit.decode(self._read_record(checksum, ObjectType.COMMIT))

    # Refs

    def _ref_path(self, name: str) -> Path:
        components = name.split("/")
        if any(c in ("", ".", "..") for c in components):
            raise errors.InvalidRefName(name)
        return self._refs_dir.joinpath(*components)

    def resolve_ref(self, name: str, *, allow_missing: bool = False) -> str | None:
        """Obtain the commit checksum a ref points to.

        :param name: The ref name.
        :param allow_missing: Return None instead of failing if the ref
            doesn't exist.

        :raise RefNotFound: If the ref doesn't exist and ``allow_missing``
            is not set.
        """
        path = self._ref_path(name)
        try:
            return path.read_text().strip()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as err:
            if allow_missing:
                return None
            raise errors.RefNotFound(name) from err

    def resolve_rev(self, rev: str) -> str:
        """Obtain the commit checksum for a ref name or commit checksum.

        :param rev: The ref name or commit checksum.

        :raise RevisionNotFound: If the revision can't be resolved.
        """
        if is_checksum(rev) and self.has_object(rev, ObjectType.COMMIT):
            return rev

        try:
            checksum = self.resolve_ref(rev, allow_missing=True)
        except errors.InvalidRefName as err:
            raise errors.RevisionNotFound(rev) from err

        if checksum is None:
            raise errors.RevisionNotFound(rev)

        return checksum

    def list_refs(self, prefix: str = "") -> dict[str, str]:
        """List refs and the commits they point to.

        :param prefix: Only list refs with names starting with this prefix.

        :return: A dictionary mapping ref names to commit checksums.
        """
        refs: dict[str, str] = {}
        for root, _, files in os.walk(self._refs_dir):
            for file_name in files:
                path = Path(root, file_name)
                name = path.relative_to(self._refs_dir).as_posix()
                if name.startswith(prefix):
                    refs[name] = path.read_text().strip()

        return dict(sorted(refs.items()))

    def history(self, rev: str) -> Iterator[tuple[str, Commit]]:
        """Iterate over commits following parent links.

        :param rev: The ref name or commit checksum to start from.

        :return: An iterator of commit checksums and commits, newest first.
        """
        checksum: str | None = self.resolve_rev(rev)
        while checksum:
            commit = self.read_commit(checksum)
            yield checksum, commit
            checksum = commit.parent

    @contextlib.contextmanager
    def _lock(self, name: str, operation: int) -> Generator[None, None, None]:
        with open(self.path / name, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), operation)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _write_ref(self, name: str, checksum: str | None) -> None:
        path = self._ref_path(name)
        if checksum is None:
            path.unlink()
            self._remove_empty_ref_dirs(path.parent)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        with file_utils.atomic_writer(path, tmp_dir=self._tmp_dir) as tmp_file:
            tmp_file.write_text(checksum + "\n")

    def _remove_empty_ref_dirs(self, directory: Path) -> None:
        while directory != self._refs_dir and not any(directory.iterdir()):
            directory.rmdir()
            directory = directory.parent

    def _apply_ref_updates(self, updates: dict[str, tuple[str, str | None]]) -> None:
        """Update refs with compare-and-set semantics.

        Either all refs are updated or none is.

        :param updates: A dictionary mapping ref names to tuples containing
            the new checksum and the expected current checksum.

        :raise RefConflict: If a ref doesn't have its expected value.
        """
        if not updates:
            return

        with self._lock(_REFS_LOCK, fcntl.LOCK_EX):
            for name, (checksum, expected) in updates.items():
                current = self.resolve_ref(name, allow_missing=True)
                if current != expected:
                    raise errors.RefConflict(
                        name=name, expected=expected, current=current
                    )
                if not self.has_object(checksum, ObjectType.COMMIT):
                    raise errors.ObjectNotFound(checksum, ObjectType.COMMIT.value)

            applied: list[tuple[str, str | None]] = []
            try:
                for name, (checksum, expected) in updates.items():
                    self._write_ref(name, checksum)
                    applied.append((name, expected))
                    logger.debug("ref %s: %s -> %s", name, expected, checksum)
            except BaseException:
                for name, previous in reversed(applied):
                    self._write_ref(name, previous)
                raise

    def remove_ref(self, name: str, *, allow_missing: bool = False) -> None:
        """Detach a ref. Objects are not removed.

        :param name: The ref name.
        :param allow_missing: Don't fail if the ref doesn't exist.

        :raise RefNotFound: If the ref doesn't exist and ``allow_missing``
            is not set.
        """
        with self._lock(_REFS_LOCK, fcntl.LOCK_EX):
            if self.resolve_ref(name, allow_missing=True) is None:
                if allow_missing:
                    return
                raise errors.RefNotFound(name)

            self._write_ref(name, None)
            logger.debug("removed ref %s", name)

    def regenerate_summary(self) -> None:
        """Rewrite the index of refs used by external readers."""
        summary: dict[str, Any] = {"refs": {}}
        for name, checksum in self.list_refs().items():
            commit = self.read_commit(checksum)
            summary["refs"][name] = {
                "checksum": checksum,
                "subject": commit.subject,
                "timestamp": commit.timestamp,
            }

        # Prune clears the temporary directory, keep it out while writing.
        with self._transaction_lock(), file_utils.atomic_writer(
            self._summary_file, tmp_dir=self._tmp_dir
        ) as tmp_file:
            tmp_file.write_text(yaml.safe_dump(summary, sort_keys=True))

    def read_summary(self) -> dict[str, Any]:
        """Read the index of refs."""
        if not self._summary_file.exists():
            return {"refs": {}}

        with open(self._summary_file) as summary_file:
            return yaml.safe_load(summary_file)

    # Garbage collection

    @contextlib.contextmanager
    def _transaction_lock(self) -> Generator[None, None, None]:
        with self._lock(_GC_LOCK, fcntl.LOCK_SH):
            yield

    def _reachable_objects(self) -> set[tuple[str, ObjectType]]:
        reachable: set[tuple[str, ObjectType]] = set()

        for name, head in self.list_refs().items():
            checksum: str | None = head
            while checksum and (checksum, ObjectType.COMMIT) not in reachable:
                try:
                    commit = self.read_commit(checksum)
                except errors.ObjectNotFound:
                    if checksum == head:
                        raise
                    logger.debug("history of %s ends at %s", name, checksum)
                    break

                reachable.add((checksum, ObjectType.COMMIT))
                self._mark_tree(commit.root, reachable)
                checksum = commit.parent

        return reachable

    def _mark_tree(self, root: str, reachable: set[tuple[str, ObjectType]]) -> None:
        pending = [root]
        while pending:
            checksum = pending.pop()
            if (checksum, ObjectType.TREE) in reachable:
                continue

            reachable.add((checksum, ObjectType.TREE))
            for entry in self.read_tree(checksum).entries:
                if entry.type.object_type == ObjectType.TREE:
                    pending.append(entry.checksum)
                else:
                    reachable.add((entry.checksum, ObjectType.FILE))

    def prune(self) -> PruneResult:
        """Remove objects not reachable from the history of any ref.

        :raise StoreLocked: If a transaction is in progress.
        """
        try:
            with self._lock(_GC_LOCK, fcntl.LOCK_EX | fcntl.LOCK_NB):
                return self._prune()
        except BlockingIOError as err:
            raise errors.StoreLocked(str(self.path)) from err

    def _prune(self) -> PruneResult:
        result = PruneResult()
        reachable = self._reachable_objects()

        for shard in sorted(self._objects_dir.iterdir()):
            for path in sorted(shard.iterdir()):
                name, _, suffix = path.name.partition(".")
                object_type = _SUFFIX_TYPES.get(suffix)
                if object_type is None:
                    logger.warning("Unexpected file in object store: %s", path)
                    continue

                is_record = suffix != "file"
                if is_record:
                    result.objects_total += 1

                if (shard.name + name, object_type) in reachable:
                    continue

                result.bytes_freed += path.lstat().st_size
                path.unlink()
                if is_record:
                    result.objects_removed += 1

            if not any(shard.iterdir()):
                shard.rmdir()

        # No transaction is running, leftovers are from interrupted writes.
        for path in self._tmp_dir.iterdir():
            file_utils.remove_entry(path)

        logger.info(
            "Pruned %d of %d objects, %d bytes freed",
            result.objects_removed,
            result.objects_total,
            result.bytes_freed,
        )
        return result
