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

"""Image conversion pipeline."""

from .cleanup import make_owner_writable, remove_system_paths
from .converter import ConversionResult, Converter
from .gc import CleanupMode
from .merge import promote, reorganize
from .metadata import write_command_shim, write_metadata, write_metainfo
from .staging import StagingArea

__all__ = [
    "CleanupMode",
    "ConversionResult",
    "Converter",
    "StagingArea",
    "make_owner_writable",
    "promote",
    "remove_system_paths",
    "reorganize",
    "write_command_shim",
    "write_metadata",
    "write_metainfo",
]
