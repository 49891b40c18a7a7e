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

"""Staging directories for conversion runs."""

import fcntl
import logging
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from craft_runtime import errors

from .cleanup import make_owner_writable

logger = logging.getLogger(__name__)


class StagingArea:
    """Manage the staging directories of conversion runs.

    Each run works in its own directory, which is never reused. A run holds
    an exclusive lock on ``<staging dir>.lock`` until its directory is
    removed or released, so other processes leave it alone.

    :param work_dir: The work directory containing the staging area.
    """

    def __init__(self, work_dir: Path) -> None:
        self.path = work_dir / "staging"
        self._locks: dict[Path, TextIO] = {}

    def create(self) -> Path:
        """Create a new, empty staging directory."""
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            staging_dir = Path(tempfile.mkdtemp(prefix="run-", dir=self.path))
            staging_dir.chmod(0o755)
            lock_file = self._lock(staging_dir)
        except OSError as err:
            raise errors.FilesystemError.from_os_error("create", err) from err

        self._locks[staging_dir] = lock_file
        logger.debug("created staging directory %s", staging_dir)
        return staging_dir

    def list_dirs(self) -> list[Path]:
        """List existing staging directories."""
        if not self.path.is_dir():
            return []

        return sorted(p for p in self.path.iterdir() if p.is_dir())

    def remove(self, staging_dir: Path) -> None:
        """Remove a staging directory and its contents.

        :param staging_dir: The staging directory to remove.
        """
        make_owner_writable(staging_dir)
        try:
            shutil.rmtree(staging_dir)
            self._lock_path(staging_dir).unlink(missing_ok=True)
        except OSError as err:
            raise errors.FilesystemError.from_os_error("remove", err) from err

        self.release(staging_dir)
        logger.debug("removed staging directory %s", staging_dir)

    def release(self, staging_dir: Path) -> None:
        """Drop the lock on a staging directory kept after a run.

        :param staging_dir: The staging directory to release.
        """
        lock_file = self._locks.pop(staging_dir, None)
        if lock_file is not None:
            lock_file.close()

    def remove_stale(self, keep: Iterable[Path] = ()) -> int:
        """Remove staging directories left by previous runs.

        Directories of runs still in progress are skipped.

        :param keep: Staging directories to preserve.

        :return: The number of directories removed.
        """
        keep_dirs = {p.resolve() for p in keep}
        removed = 0
        for staging_dir in self.list_dirs():
            if staging_dir.resolve() in keep_dirs:
                continue

            try:
                lock_file = self._lock(staging_dir, blocking=False)
            except BlockingIOError:
                logger.debug("staging directory %s is in use", staging_dir)
                continue
            except OSError as err:
                raise errors.FilesystemError.from_os_error("lock", err) from err

            self._locks[staging_dir] = lock_file
            self.remove(staging_dir)
            removed += 1

        if removed:
            logger.info("Removed %d staging directories", removed)
        return removed

    def _lock_path(self, staging_dir: Path) -> Path:
        return staging_dir.with_name(staging_dir.name + ".lock")

    def _lock(self, staging_dir: Path, *, blocking: bool = True) -> TextIO:
        operation = fcntl.LOCK_EX if blocking else fcntl.LOCK_EX | fcntl.LOCK_NB
        lock_file = open(self._lock_path(staging_dir), "a")
        try:
            fcntl.flock(lock_file.fileno(), operation)
        except OSError:
            lock_file.close()
            raise
        return lock_file
