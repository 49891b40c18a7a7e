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

"""Convert container images to runtimes."""

import dataclasses
import logging
from pathlib import Path

from craft_runtime import layers
from craft_runtime.dirs import RuntimeDirs
from craft_runtime.engines import ContainerEngine
from craft_runtime.infos import RuntimeInfo
from craft_runtime.manifest import Manifest
from craft_runtime.store import ObjectStore, commit
from craft_runtime.store.errors import RefConflict

from . import cleanup, merge, metadata
from .staging import StagingArea

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class ConversionResult:
    """The outcome of an image conversion.

    :ivar info: The runtime identity.
    :ivar checksum: The commit containing the runtime.
    :ivar manifest: The manifest of the converted image.
    """

    info: RuntimeInfo
    checksum: str
    manifest: Manifest


class Converter:
    """Convert container images to runtimes committed in the object store.

    :param store: The object store.
    :param dirs: The work directories.
    :param engine: The container engine used to fetch images.
    """

    def __init__(
        self, store: ObjectStore, dirs: RuntimeDirs, engine: ContainerEngine
    ) -> None:
        self._store = store
        self._engine = engine
        self.staging = StagingArea(dirs.work_dir)

    def convert(
        self,
        image: str,
        runtime_id: str | None = None,
        branch: str | None = None,
    ) -> ConversionResult:
        """Convert an image and commit it on its runtime ref.

        The staging directory is removed if the conversion succeeds, and
        kept for inspection otherwise.

        :param image: The image name.
        :param runtime_id: The runtime id, derived from the image name if
            not set.
        :param branch: The runtime branch, derived from the image tag if
            not set.

        :return: The conversion result.
        """
        manifest = self._engine.pull(image, self._store)

        staging_dir = self.staging.create()
        try:
            logger.info("Assembling %s", image)
            layers.assemble(self._store, manifest, staging_dir)
            config = layers.read_image_config(staging_dir)
            info = RuntimeInfo.for_image(
                image, config, runtime_id=runtime_id, branch=branch
            )

            cleanup.remove_system_paths(staging_dir)
            cleanup.make_owner_writable(staging_dir)

            logger.info("Reorganizing %s", info.triplet)
            merge.reorganize(staging_dir)

            metadata.write_metadata(staging_dir, info, config)
            metadata.write_metainfo(staging_dir, info, image)
            metadata.write_command_shim(staging_dir, config)

            checksum = self._commit(staging_dir, info, image)
        except Exception:
            logger.info("Staging directory kept at %s", staging_dir)
            self.staging.release(staging_dir)
            raise

        self.staging.remove(staging_dir)
        logger.info("Converted %s to %s", image, info.ref)
        return ConversionResult(info=info, checksum=checksum, manifest=manifest)

    def _commit(self, staging_dir: Path, info: RuntimeInfo, image: str) -> str:
        subject = f"Convert {image}"
        body = f"Image: {image}\nRuntime: {info.triplet}"
        try:
            return commit(self._store, staging_dir, info.ref, subject, body=body)
        except RefConflict as err:
            # The staging tree is unchanged by a failed commit.
            logger.warning("%s was updated concurrently, retrying", err.name)
            return commit(self._store, staging_dir, info.ref, subject, body=body)
