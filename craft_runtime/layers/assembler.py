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

"""Assemble image layers into a staging directory."""

import logging
from pathlib import Path

from craft_runtime import errors
from craft_runtime.manifest import ImageConfig, Manifest, config_ref, layer_ref
from craft_runtime.store import ObjectStore, OverwriteMode, checkout

logger = logging.getLogger(__name__)

# The image configuration is checked out as this file in the staging root.
CONFIG_FILE_NAME = "content"


def assemble(store: ObjectStore, manifest: Manifest, staging_dir: Path) -> None:
    """Check out the image layers and configuration into a directory.

    Layers are applied in manifest order, later layers overriding files
    from earlier ones and whiting out entries as required. The image
    configuration is placed at the top level as ``content``.

    :param store: The object store containing layers and configuration.
    :param manifest: The image manifest.
    :param staging_dir: The directory to assemble the image in.

    :raise MissingLayer: If a layer is not in the store.
    :raise MissingConfig: If the image configuration is not in the store.
    """
    for number, layer in enumerate(manifest.layers, start=1):
        ref = layer_ref(layer.digest)
        if store.resolve_ref(ref, allow_missing=True) is None:
            raise errors.MissingLayer(layer.digest)

        logger.info("Applying layer %d/%d", number, len(manifest.layers))
        logger.debug("layer %s", layer.digest)
        checkout(store, ref, staging_dir, mode=OverwriteMode.UNION_WHITEOUTS)

    ref = config_ref(manifest.config.digest)
    if store.resolve_ref(ref, allow_missing=True) is None:
        raise errors.MissingConfig(manifest.config.digest)

    checkout(store, ref, staging_dir, mode=OverwriteMode.UNION)


def read_image_config(staging_dir: Path) -> ImageConfig:
    """Read the image configuration placed in an assembled directory.

    :param staging_dir: The directory the image was assembled in.

    :raise InvalidManifest: If the configuration is malformed.
    """
    config_file = staging_dir / CONFIG_FILE_NAME
    try:
        text = config_file.read_bytes()
    except OSError as err:
        raise errors.FilesystemError.from_os_error("read", err) from err

    return ImageConfig.from_json(text)
