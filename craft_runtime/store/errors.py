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

"""Object store error definitions."""

from craft_runtime import errors


class StoreError(errors.ImageRuntimeError):
    """Base class for object store errors."""


class StoreNotFound(StoreError):
    """The object store does not exist or is not initialized.

    :param path: The store location.
    """

    def __init__(self, path: str):
        self.path = path
        brief = f"No object store found at {path!r}."
        resolution = "Create the store before using it."

        super().__init__(brief=brief, resolution=resolution)


class StoreLocked(StoreError):
    """The store is being written to and cannot be garbage collected.

    :param path: The store location.
    """

    def __init__(self, path: str):
        self.path = path
        brief = f"Object store {path!r} has transactions in progress."
        resolution = "Wait for running conversions to finish and try again."

        super().__init__(brief=brief, resolution=resolution)


class ObjectNotFound(StoreError):
    """An object is not present in the store.

    :param checksum: The object checksum.
    :param object_type: The type of the object.
    """

    def __init__(self, checksum: str, object_type: str):
        self.checksum = checksum
        self.object_type = object_type
        brief = f"The {object_type} object {checksum!r} was not found."

        super().__init__(brief=brief)


class RevisionNotFound(StoreError):
    """A revision could not be resolved to a commit.

    :param rev: The ref name or checksum.
    """

    def __init__(self, rev: str):
        self.rev = rev
        brief = f"Revision {rev!r} not found."
        resolution = "Make sure the ref or commit exists in the store."

        super().__init__(brief=brief, resolution=resolution)


class RefNotFound(StoreError):
    """A ref does not exist.

    :param name: The ref name.
    """

    def __init__(self, name: str):
        self.name = name
        brief = f"Ref {name!r} not found."

        super().__init__(brief=brief)


class InvalidRefName(StoreError):
    """A ref name is not valid.

    :param name: The invalid ref name.
    """

    def __init__(self, name: str):
        self.name = name
        brief = f"Invalid ref name {name!r}."
        resolution = (
            "Ref names are slash-separated and must not contain empty, "
            "'.' or '..' components."
        )

        super().__init__(brief=brief, resolution=resolution)


class RefConflict(StoreError):
    """A ref was changed by someone else since it was read.

    :param name: The ref name.
    :param expected: The value the ref was expected to have.
    :param current: The value the ref actually has.
    """

    def __init__(self, *, name: str, expected: str | None, current: str | None):
        self.name = name
        self.expected = expected
        self.current = current
        brief = (
            f"Ref {name!r} was updated concurrently: expected {expected}, "
            f"found {current}."
        )
        resolution = "Run the operation again."

        super().__init__(brief=brief, resolution=resolution)


class ChecksumMismatch(StoreError):
    """Stored or restored content doesn't match its checksum.

    :param expected: The expected checksum.
    :param obtained: The actual checksum.
    :param path: The file that was verified, if any.
    """

    def __init__(self, *, expected: str, obtained: str, path: str | None = None):
        self.expected = expected
        self.obtained = obtained
        self.path = path
        brief = f"Expected digest {expected}, obtained {obtained}."
        details = f"Corrupted content in {path!r}." if path else None
        resolution = "The object store may be corrupted."

        super().__init__(brief=brief, details=details, resolution=resolution)


class InvalidTree(StoreError):
    """A tree has invalid entries.

    :param message: The error message.
    """

    def __init__(self, message: str):
        self.message = message
        brief = f"Invalid tree: {message}."

        super().__init__(brief=brief)
