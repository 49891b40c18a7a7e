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

"""File-related utilities."""

import contextlib
import errno
import hashlib
import logging
import os
import shutil
import stat
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import NamedTuple

logger = logging.getLogger(__name__)


class FileIdentity(NamedTuple):
    """A stable identifier for a file instance in the hosting filesystem."""

    device: int
    inode: int


def file_identity(path: Path, *, follow_symlinks: bool = False) -> FileIdentity | None:
    """Obtain the device and inode pair of a file.

    :param path: The file to identify.
    :param follow_symlinks: Whether to identify the file a symlink points to.

    :return: The file identity, or None if the file doesn't exist (or the
        symlink is dangling, when following symlinks).
    """
    try:
        st = os.stat(path, follow_symlinks=follow_symlinks)
    except (FileNotFoundError, NotADirectoryError):
        return None

    return FileIdentity(st.st_dev, st.st_ino)


def remove_entry(path: Path) -> None:
    """Remove a file, symlink or directory tree.

    :param path: The entry to remove.
    """
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def move(source: Path, destination: Path) -> None:
    """Move regular files, directories, or special files from source to destination.

    An existing non-directory destination is replaced.

    :param source: The file or directory to move.
    :param destination: The new path of the file or directory.
    """
    try:
        os.replace(source, destination)
        return
    except OSError as err:
        if err.errno != errno.EXDEV:
            raise

    src_stat = source.stat(follow_symlinks=False)
    src_mode = src_stat.st_mode

    if stat.S_ISCHR(src_mode) or stat.S_ISBLK(src_mode):
        os.mknod(destination, src_mode, src_stat.st_rdev)
        shutil.copystat(source, destination, follow_symlinks=False)
        os.chown(destination, src_stat.st_uid, src_stat.st_gid)
        source.unlink()
        return

    shutil.move(source, destination)


def create_similar_directory(source: Path, destination: Path) -> None:
    """Create a directory with the same permission bits and owner information.

    :param source: Directory from which to copy name, permission bits, and
         owner information.
    :param destination: Directory to create and to which the ``source``
         information will be copied.
    """
    st = os.stat(source, follow_symlinks=False)
    os.makedirs(destination, exist_ok=True)

    try:
        os.chown(destination, st.st_uid, st.st_gid, follow_symlinks=False)
    except PermissionError as exception:
        logger.debug("Unable to chown %s: %s", destination, exception)

    shutil.copystat(source, destination, follow_symlinks=False)


@contextlib.contextmanager
def atomic_writer(
    destination: Path, *, tmp_dir: Path | None = None
) -> Generator[Path, None, None]:
    """Produce a file atomically.

    Yield a temporary path to be written to. When the context exits without
    errors, the temporary file is renamed over ``destination``, so readers
    either see the previous file or the complete new one.

    :param destination: The file to create or replace.
    :param tmp_dir: The directory to hold the temporary file, it must be in
        the same filesystem as the destination. Defaults to the destination
        directory.
    """
    directory = tmp_dir or destination.parent
    fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    os.close(fd)
    tmp_path = Path(tmp_name)
    tmp_path.chmod(0o644)
    try:
        yield tmp_path
        os.replace(tmp_path, destination)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            tmp_path.unlink()
        raise


def calculate_hash(filename: Path, *, algorithm: str) -> str:
    """Calculate the hash of the given file.

    :param filename: The path to the file to digest.
    :param algorithm: The algorithm to use, as defined by ``hashlib``.

    :return: The file hash.

    :raise ValueError: If the algorithm is unsupported.
    """
    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"unsupported algorithm {algorithm!r}")

    hasher = hashlib.new(algorithm)

    for block in _file_reader_iter(filename):
        hasher.update(block)
    return hasher.hexdigest()


def _file_reader_iter(
    path: Path, block_size: int = 2**20
) -> Generator[bytes, None, None]:
    """Read a file in blocks.

    :param path: The path to the file to read.
    :param block_size: The size of the block to read, default is 1MiB.
    """
    with path.open("rb") as file:
        block = file.read(block_size)
        while len(block) > 0:
            yield block
            block = file.read(block_size)
