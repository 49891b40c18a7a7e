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

"""Definitions of the objects kept in the store.

Three kinds of immutable objects exist: file objects (blobs) holding
file contents and metadata, trees listing directory entries, and commits
pointing to a root tree and to their parent commit. Each object is
identified by the SHA-256 digest of its type and canonical record.
"""

import enum
import hashlib
import re
from collections.abc import Iterable
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

from . import errors

_CHECKSUM_PATTERN = re.compile(r"^[0-9a-f]{64}$")


class ObjectType(str, enum.Enum):
    """The type of a stored object."""

    FILE = "file"
    TREE = "tree"
    COMMIT = "commit"


class FileType(str, enum.Enum):
    """The type of file a file object represents."""

    REGULAR = "regular"
    SYMLINK = "symlink"


class EntryType(str, enum.Enum):
    """The type of a tree entry."""

    FILE = "file"
    SYMLINK = "symlink"
    DIRECTORY = "directory"

    @property
    def object_type(self) -> ObjectType:
        """The type of the object referenced by entries of this type."""
        if self == EntryType.DIRECTORY:
            return ObjectType.TREE
        return ObjectType.FILE


class _Record(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    def marshal(self) -> dict[str, Any]:
        """Create a dictionary containing the record data."""
        return self.model_dump(mode="json")

    def encode(self) -> bytes:
        """Obtain the canonical serialization of the record."""
        return yaml.safe_dump(self.marshal(), sort_keys=True).encode()

    @classmethod
    def decode(cls, data: bytes):
        """Create a record from its serialized form."""
        return cls.model_validate(yaml.safe_load(data))


class FileMetadata(_Record):
    """The metadata stored with file contents.

    :ivar file_type: Whether the file is a regular file or a symlink.
    :ivar mode: The permission bits.
    :ivar uid: The owner user id.
    :ivar gid: The owner group id.
    :ivar xattrs: Extended attributes, values hex-encoded.
    """

    file_type: FileType = FileType.REGULAR
    mode: int = 0o644
    uid: int = 0
    gid: int = 0
    xattrs: dict[str, str] = {}


class FileObject(FileMetadata):
    """The record of a file object, with the digest of its contents."""

    size: int
    content_digest: str


class DirMetadata(_Record):
    """The metadata of a directory."""

    mode: int = 0o755
    uid: int = 0
    gid: int = 0
    xattrs: dict[str, str] = {}


class TreeEntry(_Record):
    """A named entry in a tree."""

    name: str
    type: EntryType
    checksum: str


class Tree(_Record):
    """A directory listing.

    Entries are kept sorted by name and names are unique.
    """

    metadata: DirMetadata = DirMetadata()
    entries: list[TreeEntry] = []

    @classmethod
    def new(
        cls, entries: Iterable[TreeEntry], metadata: DirMetadata | None = None
    ) -> "Tree":
        """Create a tree from entries in any order.

        :param entries: The tree entries.
        :param metadata: The directory metadata.

        :raise InvalidTree: If entry names are invalid or not unique.
        """
        sorted_entries = sorted(entries, key=lambda e: e.name)
        validate_entries(sorted_entries)
        return cls(metadata=metadata or DirMetadata(), entries=sorted_entries)

    def get(self, name: str) -> TreeEntry | None:
        """Obtain the entry with the given name, if any."""
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None


class Commit(_Record):
    """A snapshot of a root tree, linked to its parent commit."""

    parent: str | None = None
    root: str
    subject: str
    body: str | None = None
    timestamp: int


def validate_entries(entries: list[TreeEntry]) -> None:
    """Verify that tree entries have valid, unique names.

    :param entries: The tree entries.

    :raise InvalidTree: If entry names are invalid or not unique.
    """
    seen: set[str] = set()
    for entry in entries:
        if entry.name in ("", ".", "..") or "/" in entry.name or "\0" in entry.name:
            raise errors.InvalidTree(f"invalid entry name {entry.name!r}")
        if entry.name in seen:
            raise errors.InvalidTree(f"duplicate entry name {entry.name!r}")
        if not is_checksum(entry.checksum):
            raise errors.InvalidTree(
                f"entry {entry.name!r} has invalid checksum {entry.checksum!r}"
            )
        seen.add(entry.name)


def is_checksum(value: str) -> bool:
    """Verify if the given string is a well-formed object checksum."""
    return bool(_CHECKSUM_PATTERN.match(value))


def object_checksum(object_type: ObjectType, record: bytes) -> str:
    """Compute the checksum of an object.

    :param object_type: The type of the object.
    :param record: The canonical serialization of the object record.

    :return: The hex-encoded SHA-256 digest.
    """
    hasher = hashlib.sha256()
    hasher.update(object_type.value.encode())
    hasher.update(b"\0")
    hasher.update(record)
    return hasher.hexdigest()
