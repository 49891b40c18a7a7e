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

"""Content-addressed storage of file trees."""

from .checkout import OverwriteMode, checkout
from .commit import MutableTree, commit, write_directory
from .objects import (
    Commit,
    DirMetadata,
    EntryType,
    FileMetadata,
    FileObject,
    FileType,
    ObjectType,
    Tree,
    TreeEntry,
)
from .repository import ObjectStore, PruneResult
from .transaction import Transaction

__all__ = [
    "Commit",
    "DirMetadata",
    "EntryType",
    "FileMetadata",
    "FileObject",
    "FileType",
    "MutableTree",
    "ObjectStore",
    "ObjectType",
    "OverwriteMode",
    "PruneResult",
    "Transaction",
    "Tree",
    "TreeEntry",
    "checkout",
    "commit",
    "write_directory",
]
