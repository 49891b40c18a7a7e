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

"""Prepare an assembled image tree for reorganization."""

import errno
import logging
import os
import shutil
import stat
from pathlib import Path

from craft_runtime import errors

logger = logging.getLogger(__name__)

# Paths managed by the host system at runtime, and files left over from
# image assembly.
SYSTEM_PATHS = (
    "dev",
    "home",
    "media",
    "mnt",
    "proc",
    "root",
    "run",
    "sys",
    "tmp",
    "var/cache",
    "var/mail",
    "var/tmp",
    "var/run",
    "content",
    "manifest.json",
)


def remove_system_paths(root: Path) -> None:
    """Remove host-managed directories and assembly leftovers from a tree.

    :param root: The tree to clean.

    :raise FilesystemError: If an entry can't be removed.
    """
    for name in SYSTEM_PATHS:
        path = root / name
        try:
            _remove(path)
        except OSError as err:
            raise errors.FilesystemError.from_os_error("remove", err) from err


def _remove(path: Path) -> None:
    if path.is_symlink() or (path.exists() and not path.is_dir()):
        path.unlink()
    else:
        try:
            path.rmdir()
        except (FileNotFoundError, NotADirectoryError):
            return
        except OSError as err:
            if err.errno not in (errno.ENOTEMPTY, errno.EEXIST):
                raise
            shutil.rmtree(path)

    logger.debug("removed %s", path)


def make_owner_writable(root: Path) -> None:
    """Grant the owner read and write permission on every entry of a tree.

    Directories are also made searchable. Symlinks are not changed.

    :param root: The tree to change.

    :raise FilesystemError: If permissions can't be changed.
    """
    try:
        _add_mode(root, stat.S_IRWXU)
        for dirpath, dirnames, filenames in os.walk(root):
            for name in dirnames:
                path = Path(dirpath, name)
                if not path.is_symlink():
                    # Must happen before the walk descends into it.
                    _add_mode(path, stat.S_IRWXU)
            for name in filenames:
                path = Path(dirpath, name)
                if not path.is_symlink():
                    _add_mode(path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError as err:
        raise errors.FilesystemError.from_os_error(
            "change permissions of", err
        ) from err


def _add_mode(path: Path, mode: int) -> None:
    current = stat.S_IMODE(path.lstat().st_mode)
    if current & mode != mode:
        path.chmod(current | mode)
