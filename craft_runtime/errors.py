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

"""Craft runtime errors."""

import dataclasses
from collections.abc import Sequence


@dataclasses.dataclass(repr=True)
class ImageRuntimeError(Exception):
    """Unexpected error.

    :param brief: Brief description of error.
    :param details: Detailed information.
    :param resolution: Recommendation, if any.
    """

    brief: str
    details: str | None = None
    resolution: str | None = None

    def __str__(self) -> str:
        components = [self.brief]

        if self.details:
            components.append(self.details)

        if self.resolution:
            components.append(self.resolution)

        return "\n".join(components)


class FilesystemError(ImageRuntimeError):
    """A filesystem operation failed while processing a tree.

    :param action: The operation being performed.
    :param path: The path of the entry being processed.
    :param message: The error message.
    """

    def __init__(self, *, action: str, path: str, message: str):
        self.action = action
        self.path = path
        self.message = message
        brief = f"Failed to {action} {path!r}: {message}."
        resolution = "Make sure paths and permissions are correct."

        super().__init__(brief=brief, resolution=resolution)

    @classmethod
    def from_os_error(cls, action: str, err: OSError) -> "FilesystemError":
        """Create a FilesystemError from an OSError.

        :param action: The operation being performed.
        :param err: The error raised by the operating system.
        """
        return cls(
            action=action,
            path=str(err.filename) if err.filename else "",
            message=err.strerror or str(err),
        )


class MissingLayer(ImageRuntimeError):
    """A layer listed in the image manifest is not in the store.

    :param digest: The layer digest.
    """

    def __init__(self, digest: str):
        self.digest = digest
        brief = f"Layer {digest!r} is not available in the store."
        resolution = "Make sure the image was pulled before converting it."

        super().__init__(brief=brief, resolution=resolution)


class MissingConfig(ImageRuntimeError):
    """The image configuration is not in the store.

    :param digest: The config digest.
    """

    def __init__(self, digest: str):
        self.digest = digest
        brief = f"Image configuration {digest!r} is not available in the store."
        resolution = "Make sure the image was pulled before converting it."

        super().__init__(brief=brief, resolution=resolution)


class InvalidManifest(ImageRuntimeError):
    """An image manifest or configuration document is malformed.

    :param message: The error message.
    """

    def __init__(self, message: str):
        self.message = message
        brief = f"Invalid image manifest: {message}"
        resolution = "Make sure the image is a valid OCI image."

        super().__init__(brief=brief, resolution=resolution)


class ExternalToolError(ImageRuntimeError):
    """An external tool exited with an error.

    :param command: The command that was executed.
    :param exit_code: The command exit status.
    """

    def __init__(self, *, command: Sequence[str], exit_code: int):
        self.command = command
        self.exit_code = exit_code
        brief = f"Command {' '.join(command)!r} failed with exit code {exit_code}."

        super().__init__(brief=brief)


class InvalidRuntimeName(ImageRuntimeError):
    """The runtime id or branch is not valid.

    :param message: The error message.
    """

    def __init__(self, message: str):
        self.message = message
        brief = f"Invalid runtime name: {message}"
        resolution = "Use --runtime-id and --runtime-branch to set valid names."

        super().__init__(brief=brief, resolution=resolution)
