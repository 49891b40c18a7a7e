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

"""OCI layer whiteout helpers.

Relevant OCI documentation available at:
https://github.com/opencontainers/image-spec/blob/main/layer.md
"""

WHITEOUT_PREFIX = ".wh."
OPAQUE_MARKER = ".wh..wh..opq"


def is_oci_opaque_marker(name: str) -> bool:
    """Verify if the given entry name is an opaque directory marker.

    :param name: The name of the directory entry.
    """
    return name == OPAQUE_MARKER


def is_oci_whiteout_file(name: str) -> bool:
    """Verify if the given entry name corresponds to an OCI whiteout file.

    :param name: The name of the directory entry.

    :returns: Whether the given name is an OCI whiteout file.
    """
    return name.startswith(WHITEOUT_PREFIX) and name != OPAQUE_MARKER


def oci_whited_out_name(whiteout_name: str) -> str:
    """Find the whited out entry name corresponding to a whiteout file.

    :param whiteout_name: The whiteout file name to process.

    :returns: The name of the entry that was whited out.
    """
    if not is_oci_whiteout_file(whiteout_name):
        raise ValueError("argument is not an OCI whiteout file")

    return whiteout_name[len(WHITEOUT_PREFIX) :]
