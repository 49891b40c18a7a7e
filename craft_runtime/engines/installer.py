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

"""Install runtimes with flatpak."""

import logging

from overrides import overrides

from craft_runtime import errors
from craft_runtime.store import ObjectStore
from craft_runtime.utils import os_utils

from .base import RuntimeInstaller

logger = logging.getLogger(__name__)


class FlatpakInstaller(RuntimeInstaller):
    """Install runtimes for the current user.

    :param executable: The flatpak executable.
    """

    def __init__(self, *, executable: str = "flatpak") -> None:
        self._executable = executable

    @overrides
    def install(self, store: ObjectStore, ref: str) -> None:
        # The commit must be present before it is handed off.
        checksum = store.resolve_rev(ref)
        store.read_commit(checksum)

        command = [
            self._executable,
            "--user",
            "install",
            "--noninteractive",
            "--no-related",
            store.uri,
            ref,
        ]
        logger.info("Installing %s", ref)
        try:
            os_utils.process_run(command, logger.info)
        except FileNotFoundError as err:
            raise errors.ExternalToolError(command=command, exit_code=127) from err
