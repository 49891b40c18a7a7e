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

"""Fold a standard filesystem layout into a prefix-rooted layout.

Files are moved, not copied. Entries that are already present in the
destination as the same file (hardlinks, or symlinks resolving to the
source entry) are never duplicated.
"""

import logging
import os
import uuid
from pathlib import Path

from craft_runtime import errors
from craft_runtime.utils import file_utils

logger = logging.getLogger(__name__)

# The directory containing the runtime payload.
FILES_DIR_NAME = "files"


def merge(source: Path, target: Path, *, keep_source_root: bool = False) -> None:
    """Move the contents of a directory into another, merging subdirectories.

    Existing files in the target are replaced. Existing directories are
    merged recursively, and a non-directory entry in the place of a
    directory to be merged is removed first. Directories are never merged
    through symlinks.

    :param source: The directory to move entries from.
    :param target: The directory to move entries to, created if needed with
        the permissions and ownership of ``source``.
    :param keep_source_root: Don't remove the source directory after its
        contents are moved.

    :raise FilesystemError: If an entry can't be moved or removed.
    """
    logger.debug("merge %s into %s", source, target)
    try:
        _merge(source, target, keep_source_root=keep_source_root)
    except OSError as err:
        raise errors.FilesystemError.from_os_error("merge", err) from err


def _merge(source: Path, target: Path, *, keep_source_root: bool) -> None:
    # Take a snapshot of the listing, the target may be inside the source.
    children = sorted(source.iterdir())

    for child in children:
        dest = target / child.name
        child_st = child.lstat()

        if dest.is_symlink() and _resolves_to(dest, child_st):
            logger.debug("remove symlink %s to %s", dest, child)
            dest.unlink()

        if child.is_dir() and not child.is_symlink():
            if dest.is_symlink() or (os.path.lexists(dest) and not dest.is_dir()):
                dest.unlink()
            _merge(child, dest, keep_source_root=False)
            continue

        if _is_same_instance(child, child_st, dest):
            logger.debug("%s is already in %s", child, target)
            child.unlink()
            continue

        if dest.is_dir() and not dest.is_symlink():
            file_utils.remove_entry(dest)

        _ensure_directory(source, target)
        file_utils.move(child, dest)

    # Empty source directories are kept. A child skipped as a duplicate
    # was found in the target, so the target already exists.
    _ensure_directory(source, target)

    if not keep_source_root:
        source.rmdir()


def _resolves_to(symlink: Path, st: os.stat_result) -> bool:
    try:
        target_st = symlink.stat()
    except OSError:
        return False

    return (target_st.st_dev, target_st.st_ino) == (st.st_dev, st.st_ino)


def _is_same_instance(child: Path, child_st: os.stat_result, dest: Path) -> bool:
    """Verify if a non-directory entry is already present at the destination.

    This is the case for hardlinks of the same file, and for symlinks
    pointing to the destination entry itself.
    """
    dest_id = file_utils.file_identity(dest)
    if dest_id is None:
        return False

    if dest_id == (child_st.st_dev, child_st.st_ino):
        return True

    return child.is_symlink() and _resolves_to(child, dest.lstat())


def _ensure_directory(source: Path, target: Path) -> None:
    if not target.is_dir():
        file_utils.create_similar_directory(source, target)


def reorganize(root: Path) -> None:
    """Restructure an image tree so its payload lives under ``files``.

    The contents of ``usr/local`` and ``usr`` are merged into the root,
    and then the whole root is moved into the ``files`` subdirectory.

    :param root: The tree to reorganize.

    :raise FilesystemError: If an entry can't be moved or removed.
    """
    usr_dir = root / "usr"
    local_dir = usr_dir / "local"

    if local_dir.is_dir() and not local_dir.is_symlink():
        merge(local_dir, root, keep_source_root=True)
        _remove_leftover(local_dir)

    if usr_dir.is_dir() and not usr_dir.is_symlink():
        merge(usr_dir, root, keep_source_root=True)
        _remove_leftover(usr_dir)

    promote(root, FILES_DIR_NAME)


def _remove_leftover(path: Path) -> None:
    try:
        if os.path.lexists(path):
            file_utils.remove_entry(path)
    except OSError as err:
        raise errors.FilesystemError.from_os_error("remove", err) from err


def promote(root: Path, name: str) -> Path:
    """Move all entries of a directory into a new subdirectory of it.

    :param root: The directory containing entries to move.
    :param name: The name of the subdirectory to create.

    :return: The path of the new subdirectory.

    :raise FilesystemError: If an entry can't be moved.
    """
    tmp_dir = root / f".promote-{uuid.uuid4().hex}"
    destination = root / name

    merge(root, tmp_dir, keep_source_root=True)
    try:
        os.rename(tmp_dir, destination)
    except OSError as err:
        raise errors.FilesystemError.from_os_error("rename", err) from err

    logger.debug("promoted contents of %s to %s", root, destination)
    return destination
