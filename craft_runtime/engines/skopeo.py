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

"""Fetch images with skopeo."""

import logging
import shutil
import tempfile
from pathlib import Path

from overrides import overrides

from craft_runtime import errors
from craft_runtime.infos import DEFAULT_BRANCH, parse_image_reference
from craft_runtime.layers import import_oci_layout
from craft_runtime.manifest import Manifest
from craft_runtime.store import ObjectStore
from craft_runtime.utils import os_utils

from .base import ContainerEngine

logger = logging.getLogger(__name__)

_TRANSPORTS = (
    "containers-storage:",
    "dir:",
    "docker://",
    "docker-archive:",
    "docker-daemon:",
    "oci:",
    "oci-archive:",
)


class SkopeoEngine(ContainerEngine):
    """Copy images to an OCI image layout and import it to the store.

    :param download_dir: The directory to copy image layouts to.
    :param executable: The skopeo executable.
    """

    def __init__(self, download_dir: Path, *, executable: str = "skopeo") -> None:
        self._download_dir = download_dir
        self._executable = executable

    @overrides
    def pull(self, image: str, store: ObjectStore) -> Manifest:
        tag = parse_image_reference(image).tag or DEFAULT_BRANCH

        self._download_dir.mkdir(parents=True, exist_ok=True)
        layout_dir = Path(tempfile.mkdtemp(prefix="oci-", dir=self._download_dir))
        try:
            logger.info("Pulling %s", image)
            command = [
                self._executable,
                "copy",
                source_name(image),
                f"oci:{layout_dir}:{tag}",
            ]
            try:
                os_utils.process_run(command, logger.debug)
            except FileNotFoundError as err:
                raise errors.ExternalToolError(command=command, exit_code=127) from err

            return import_oci_layout(
                store, layout_dir, tag, work_dir=self._download_dir
            )
        finally:
            shutil.rmtree(layout_dir)


def source_name(image: str) -> str:
    """Obtain the skopeo source name of an image.

    Images without a transport are fetched from a registry.

    :param image: The image name.
    """
    if image.startswith(_TRANSPORTS):
        return image

    return "docker://" + image
