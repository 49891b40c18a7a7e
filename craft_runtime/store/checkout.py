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

"""Materialize stored trees on the filesystem."""

import enum
import logging
import os
import shutil
import uuid
from pathlib import Path

from craft_runtime import errors, xattrs
from craft_runtime.utils import file_utils, oci_utils

from .errors import ChecksumMismatch
from .objects import DirMetadata, EntryType, FileObject, FileType, TreeEntry
from .repository import ObjectStore

logger = logging.getLogger(__name__)


class OverwriteMode(enum.Enum):
    """How to handle entries already present in the checkout target.

    - ``NONE``: fail if an entry to be written already exists.
    - ``UNION``: replace existing files and symlinks, merge directories.
    - ``UNION_WHITEOUTS``: as ``UNION``, also processing OCI whiteout files
      and opaque directory markers in the incoming tree.
    """

    NONE = "none"
    UNION = "union"
    UNION_WHITEOUTS = "union-whiteouts"


def checkout(
    store: ObjectStore,
    rev: str,
    target: Path,
    *,
    mode: OverwriteMode = OverwriteMode.UNION,
    user_mode: bool = True,
) -> str:
    """Check out the tree of a commit into a directory.

    :param store: The object store.
    :param rev: The ref name or commit checksum to check out.
    :param target: The directory to check out into, created if needed.
    :param mode: How to handle entries already present in the target.
    :param user_mode: Don't restore file ownership.

    :return: The checksum of the commit checked out.

    :raise RevisionNotFound: If the revision can't be resolved.
    :raise ChecksumMismatch: If restored contents don't match the store.
    :raise FilesystemError: If a file can't be written.
    """
    commit_checksum = store.resolve_rev(rev)
    commit = store.read_commit(commit_checksum)
    logger.debug("checkout %s (%s) to %s", rev, commit_checksum, target)

    handler = _CheckoutHandler(store, mode=mode, user_mode=user_mode)
    try:
        created = not target.exists()
        target.mkdir(parents=True, exist_ok=True)
        handler.checkout_tree(commit.root, target, created=created)
    except OSError as err:
        raise errors.FilesystemError.from_os_error("check out", err) from err

    return commit_checksum


class _CheckoutHandler:
    """Materialize the trees of a single checkout operation.

    Files with the same checksum are hardlinked to the first copy written
    in this checkout.
    """

    def __init__(self, store: ObjectStore, *, mode: OverwriteMode, user_mode: bool):
        self._store = store
        self._mode = mode
        self._user_mode = user_mode
        self._links: dict[str, Path] = {}

    def checkout_tree(self, checksum: str, directory: Path, *, created: bool) -> None:
        tree = self._store.read_tree(checksum)
        entries = tree.entries

        if self._mode == OverwriteMode.UNION_WHITEOUTS:
            entries = self._apply_whiteouts(entries, directory, created=created)

        for entry in entries:
            destination = directory / entry.name
            if entry.type == EntryType.DIRECTORY:
                self._checkout_directory(entry, destination)
            else:
                self._checkout_file(entry, destination)

        if created:
            self._apply_dir_metadata(directory, tree.metadata)

    def _apply_whiteouts(
        self, entries: list[TreeEntry], directory: Path, *, created: bool
    ) -> list[TreeEntry]:
        remaining: list[TreeEntry] = []
        for entry in entries:
            if oci_utils.is_oci_opaque_marker(entry.name):
                if not created:
                    logger.debug("opaque directory: %s", directory)
                    for child in list(directory.iterdir()):
                        file_utils.remove_entry(child)
            elif oci_utils.is_oci_whiteout_file(entry.name):
                whited_out = directory / oci_utils.oci_whited_out_name(entry.name)
                if whited_out.exists() or whited_out.is_symlink():
                    logger.debug("whiteout: %s", whited_out)
                    file_utils.remove_entry(whited_out)
            else:
                remaining.append(entry)

        return remaining

    def _check_overwrite(self, destination: Path) -> None:
        if self._mode == OverwriteMode.NONE:
            raise errors.FilesystemError(
                action="check out", path=str(destination), message="file exists"
            )

    def _checkout_directory(self, entry: TreeEntry, destination: Path) -> None:
        created = False
        if destination.is_symlink() or (
            destination.exists() and not destination.is_dir()
        ):
            self._check_overwrite(destination)
            destination.unlink()

        if not destination.exists():
            destination.mkdir()
            created = True

        self.checkout_tree(entry.checksum, destination, created=created)

    def _checkout_file(self, entry: TreeEntry, destination: Path) -> None:
        file_object = self._store.read_file_object(entry.checksum)

        if destination.exists() or destination.is_symlink():
            self._check_overwrite(destination)
            if destination.is_dir() and not destination.is_symlink():
                shutil.rmtree(destination)

        tmp_path = destination.with_name(f".tmp-{uuid.uuid4().hex}")
        try:
            if file_object.file_type == FileType.SYMLINK:
                self._write_symlink(entry.checksum, file_object, tmp_path)
            else:
                self._write_regular(entry.checksum, file_object, tmp_path)
            os.replace(tmp_path, destination)
        finally:
            if tmp_path.is_symlink() or tmp_path.exists():
                tmp_path.unlink()

        if file_object.file_type == FileType.REGULAR:
            self._links.setdefault(entry.checksum, destination)

    def _write_symlink(
        self, checksum: str, file_object: FileObject, path: Path
    ) -> None:
        content, _ = self._store.read_blob(checksum)
        os.symlink(os.fsdecode(content), path)

        if not self._user_mode:
            os.chown(path, file_object.uid, file_object.gid, follow_symlinks=False)

    def _write_regular(
        self, checksum: str, file_object: FileObject, path: Path
    ) -> None:
        first_copy = self._links.get(checksum)
        if first_copy and first_copy.is_file():
            os.link(first_copy, path, follow_symlinks=False)
            return

        shutil.copyfile(self._store.content_path(checksum), path)

        obtained = file_utils.calculate_hash(path, algorithm="sha256")
        if obtained != file_object.content_digest:
            raise ChecksumMismatch(
                expected=file_object.content_digest, obtained=obtained, path=str(path)
            )

        if not self._user_mode:
            os.chown(path, file_object.uid, file_object.gid)

        os.chmod(path, file_object.mode)
        xattrs.write_xattrs(str(path), file_object.xattrs)

    def _apply_dir_metadata(self, directory: Path, metadata: DirMetadata) -> None:
        mode = metadata.mode
        if self._user_mode:
            # Directories must stay writable for layers checked out later.
            mode |= 0o700
        else:
            os.chown(directory, metadata.uid, metadata.gid)

        os.chmod(directory, mode)
        xattrs.write_xattrs(str(directory), metadata.xattrs)
