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

"""Definitions for runtime conversion directories."""

from pathlib import Path

from xdg import BaseDirectory  # type: ignore

APP_NAME = "craft-runtime"


class RuntimeDirs:
    """The conversion's main work directories.

    :param work_dir: The directory containing staging and download
        subdirectories. If not specified, the user cache directory is used.
    :param store_dir: The object store directory. If not specified, a store
        in the user data directory is used.

    :ivar work_dir: The root of the work directories used for conversion.
    :ivar staging_dir: The directory containing staging trees, one per run.
    :ivar download_dir: The directory containing image layouts being imported.
    :ivar store_dir: The object store directory.
    """

    def __init__(
        self,
        *,
        work_dir: Path | str | None = None,
        store_dir: Path | str | None = None,
    ) -> None:
        if work_dir is None:
            work_dir = BaseDirectory.save_cache_path(APP_NAME)
        if store_dir is None:
            store_dir = Path(BaseDirectory.save_data_path(APP_NAME), "store")

        self.work_dir = Path(work_dir).expanduser().resolve()
        self.staging_dir = self.work_dir / "staging"
        self.download_dir = self.work_dir / "download"
        self.store_dir = Path(store_dir).expanduser().resolve()
