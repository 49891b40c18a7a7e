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

"""Helpers to read and write filesystem extended attributes.

Attribute values are exchanged as hexadecimal strings so they can be
stored in object records.
"""

import errno
import logging
import os
import sys

from craft_runtime import errors

logger = logging.getLogger(__name__)


def read_xattrs(path: str) -> dict[str, str]:
    """Get all extended attributes from a file.

    :param path: The file to get metadata from.

    :return: A dictionary mapping attribute names to hex-encoded values.
    """
    if sys.platform != "linux":
        return {}

    # Extended attributes do not apply to symlinks.
    if os.path.islink(path):
        return {}

    try:
        keys = os.listxattr(path, follow_symlinks=False)
    except OSError as error:
        if error.errno == errno.ENOTSUP:
            return {}
        raise errors.FilesystemError(
            action="list extended attributes of", path=path, message=str(error)
        ) from error

    attrs: dict[str, str] = {}
    for key in sorted(keys):
        try:
            value = os.getxattr(path, key, follow_symlinks=False)
        except OSError as error:
            # The attribute was removed since it was listed.
            if error.errno == errno.ENODATA:
                continue
            raise errors.FilesystemError(
                action=f"read attribute {key!r} of", path=path, message=str(error)
            ) from error
        attrs[key] = value.hex()

    return attrs


def write_xattrs(path: str, attrs: dict[str, str]) -> None:
    """Add extended attribute metadata to a file.

    Attributes in namespaces the current user isn't allowed to write
    (e.g. ``security`` or ``trusted`` for unprivileged users) are skipped.

    :param path: The file to add metadata to.
    :param attrs: A dictionary mapping attribute names to hex-encoded values.
    """
    if not attrs or sys.platform != "linux":
        return

    if os.path.islink(path):
        return

    for key, value in attrs.items():
        try:
            os.setxattr(path, key, bytes.fromhex(value), follow_symlinks=False)
        except PermissionError as error:
            logger.debug("Unable to set attribute %s on %s: %s", key, path, error)
        except OSError as error:
            if error.errno == errno.ENOTSUP:
                logger.debug("Extended attributes not supported on %s", path)
                return

            raise errors.FilesystemError(
                action=f"write attribute {key!r} to", path=path, message=str(error)
            ) from error
