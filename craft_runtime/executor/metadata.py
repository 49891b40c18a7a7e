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

"""Write the runtime metadata files.

A runtime is a directory containing the ``metadata`` key file and the
``files`` payload, mounted at ``/usr`` when the runtime is used.
"""

import configparser
import logging
import os
import shlex
import xml.etree.ElementTree as ET
from pathlib import Path

from craft_runtime import errors
from craft_runtime.infos import RuntimeInfo
from craft_runtime.manifest import ImageConfig
from craft_runtime.utils import file_utils

from .merge import FILES_DIR_NAME

logger = logging.getLogger(__name__)

METADATA_FILE_NAME = "metadata"
COMMAND_SHIM_NAME = "image-command"
METADATA_LICENSE = "CC0-1.0"

# The runtime payload mount point.
_RUNTIME_PREFIX = "/usr"


def remap_path(path: str) -> str:
    """Convert an image filesystem path to its location in the runtime.

    Paths under ``/usr/local`` and ``/usr`` are moved to the root of the
    payload, and the payload is mounted at ``/usr``.

    :param path: The absolute path in the image filesystem.

    :return: The path in the runtime, or the path unchanged if relative.
    """
    if not path.startswith("/"):
        return path

    path = os.path.normpath(path)
    for prefix in ("/usr/local", _RUNTIME_PREFIX):
        if path == prefix:
            return _RUNTIME_PREFIX
        if path.startswith(prefix + "/"):
            return _RUNTIME_PREFIX + path[len(prefix) :]

    if path == "/":
        return _RUNTIME_PREFIX

    return _RUNTIME_PREFIX + path


def remap_search_path(value: str) -> str:
    """Convert a colon-separated list of paths to their runtime locations.

    Duplicate entries resulting from the conversion are removed.
    """
    paths: list[str] = []
    for component in value.split(":"):
        if not component:
            continue
        path = remap_path(component)
        if path not in paths:
            paths.append(path)

    return ":".join(paths)


def write_metadata(root: Path, info: RuntimeInfo, config: ImageConfig) -> Path:
    """Write the runtime ``metadata`` key file.

    :param root: The runtime directory.
    :param info: The runtime identity.
    :param config: The image configuration providing the environment.

    :return: The path to the metadata file.
    """
    keyfile = configparser.ConfigParser(interpolation=None)
    keyfile.optionxform = str  # type: ignore[assignment,method-assign]

    keyfile["Runtime"] = {
        "name": info.triplet,
        "runtime": info.triplet,
        "sdk": info.triplet,
    }

    environment = dict(config.config.environment)
    if "PATH" in environment:
        environment["PATH"] = remap_search_path(environment["PATH"])
    if environment:
        keyfile["Environment"] = environment

    path = root / METADATA_FILE_NAME
    try:
        with file_utils.atomic_writer(path) as tmp_file:
            with open(tmp_file, "w") as metadata_file:
                keyfile.write(metadata_file, space_around_delimiters=False)
    except OSError as err:
        raise errors.FilesystemError.from_os_error("write", err) from err

    logger.debug("wrote %s", path)
    return path


def write_metainfo(root: Path, info: RuntimeInfo, image: str) -> Path:
    """Write the runtime component descriptor.

    :param root: The runtime directory.
    :param info: The runtime identity.
    :param image: The name of the image the runtime was created from.

    :return: The path to the descriptor.
    """
    component = ET.Element("component", type="runtime")
    ET.SubElement(component, "id").text = info.runtime_id
    ET.SubElement(component, "metadata_license").text = METADATA_LICENSE
    ET.SubElement(component, "name").text = info.runtime_id
    ET.SubElement(component, "summary").text = f"Runtime created from {image}"
    ET.indent(component)

    metainfo_dir = root / FILES_DIR_NAME / "share" / "metainfo"
    path = metainfo_dir / f"{info.runtime_id}.metainfo.xml"
    try:
        metainfo_dir.mkdir(parents=True, exist_ok=True)
        ET.ElementTree(component).write(path, encoding="utf-8", xml_declaration=True)
    except OSError as err:
        raise errors.FilesystemError.from_os_error("write", err) from err

    logger.debug("wrote %s", path)
    return path


def write_command_shim(root: Path, config: ImageConfig) -> Path | None:
    """Write an executable that runs the image command.

    Arguments passed to the shim are appended to the image command.

    :param root: The runtime directory.
    :param config: The image configuration.

    :return: The path to the shim, or None if the image has no command.
    """
    command = config.config.command
    if not command:
        logger.debug("image has no command, not writing shim")
        return None

    # Absolute paths in the image are relocated in the runtime.
    command = [remap_path(command[0]), *command[1:]]

    lines = ["#!/bin/sh"]
    working_dir = config.config.working_dir
    if working_dir:
        lines.append(f"cd {shlex.quote(remap_path(working_dir))} || exit 1")
    lines.append(f'exec {shlex.join(command)} "$@"')

    bin_dir = root / FILES_DIR_NAME / "bin"
    path = bin_dir / COMMAND_SHIM_NAME
    try:
        bin_dir.mkdir(parents=True, exist_ok=True)
        with file_utils.atomic_writer(path) as tmp_file:
            tmp_file.write_text("\n".join(lines) + "\n")
            tmp_file.chmod(0o755)
    except OSError as err:
        raise errors.FilesystemError.from_os_error("write", err) from err

    logger.debug("wrote %s", path)
    return path
