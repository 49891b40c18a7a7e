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

"""Image and runtime naming information."""

import logging
import re
from typing import NamedTuple

import pydantic

from craft_runtime import errors
from craft_runtime.manifest import ImageConfig

logger = logging.getLogger(__name__)

# Architecture name translation from OCI to runtime conventions.
_OCI_TO_RUNTIME_ARCH = {
    "386": "i386",
    "amd64": "x86_64",
    "arm": "arm",
    "arm64": "aarch64",
    "ppc64le": "ppc64le",
    "riscv64": "riscv64",
    "s390x": "s390x",
}

_RUNTIME_ID_PATTERN = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_-]*){2,}$"
)
_BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")

DEFAULT_ID_PREFIX = "org.oci"
DEFAULT_BRANCH = "latest"


class ImageReference(NamedTuple):
    """The components of an image name."""

    registry: str | None
    path: list[str]
    tag: str | None
    digest: str | None


def parse_image_reference(image: str) -> ImageReference:
    """Split an image name into its components.

    Transport prefixes such as ``docker://`` are ignored.

    :param image: The image name, e.g. ``docker.io/library/debian:12``.
    """
    name = image.split("://", 1)[-1]

    digest = None
    if "@" in name:
        name, digest = name.split("@", 1)

    tag = None
    last_slash = name.rfind("/")
    if ":" in name[last_slash + 1 :]:
        name, tag = name.rsplit(":", 1)

    components = [c for c in name.split("/") if c]
    registry = None
    if len(components) > 1 and (
        "." in components[0] or ":" in components[0] or components[0] == "localhost"
    ):
        registry = components.pop(0)

    return ImageReference(registry=registry, path=components, tag=tag, digest=digest)


def runtime_arch(oci_arch: str) -> str:
    """Convert an OCI architecture name to the runtime convention."""
    return _OCI_TO_RUNTIME_ARCH.get(oci_arch, oci_arch)


def default_runtime_id(image: str) -> str:
    """Derive a runtime id from an image name.

    :param image: The image name.
    """
    reference = parse_image_reference(image)
    components: list[str] = []
    for component in reference.path:
        sanitized = re.sub(r"[^A-Za-z0-9_]", "_", component)
        if sanitized[:1].isdigit():
            sanitized = "_" + sanitized
        components.append(sanitized)

    return ".".join([DEFAULT_ID_PREFIX, *components])


class RuntimeInfo(pydantic.BaseModel):
    """The identity of the runtime produced from an image.

    :ivar runtime_id: The runtime id, in reverse DNS notation.
    :ivar arch: The runtime architecture.
    :ivar branch: The runtime branch.
    """

    model_config = pydantic.ConfigDict(frozen=True, extra="forbid")

    runtime_id: str
    arch: str
    branch: str

    @pydantic.field_validator("runtime_id")
    @classmethod
    def _validate_runtime_id(cls, runtime_id: str) -> str:
        if not _RUNTIME_ID_PATTERN.match(runtime_id):
            raise ValueError(f"invalid runtime id {runtime_id!r}")
        return runtime_id

    @pydantic.field_validator("branch")
    @classmethod
    def _validate_branch(cls, branch: str) -> str:
        if not _BRANCH_PATTERN.match(branch):
            raise ValueError(f"invalid branch {branch!r}")
        return branch

    @classmethod
    def for_image(
        cls,
        image: str,
        config: ImageConfig,
        *,
        runtime_id: str | None = None,
        branch: str | None = None,
    ) -> "RuntimeInfo":
        """Create the runtime information for an image.

        :param image: The image name.
        :param config: The image configuration.
        :param runtime_id: Override the runtime id derived from the image name.
        :param branch: Override the branch derived from the image tag.

        :raise InvalidRuntimeName: If the id or branch are not valid.
        """
        reference = parse_image_reference(image)
        try:
            info = cls(
                runtime_id=runtime_id or default_runtime_id(image),
                arch=runtime_arch(config.architecture),
                branch=branch or reference.tag or DEFAULT_BRANCH,
            )
        except pydantic.ValidationError as err:
            messages = [e.get("msg", "") for e in err.errors()]
            raise errors.InvalidRuntimeName("; ".join(messages)) from err

        logger.debug("runtime for %s: %s", image, info.triplet)
        return info

    @property
    def triplet(self) -> str:
        """The ``id/arch/branch`` runtime name."""
        return f"{self.runtime_id}/{self.arch}/{self.branch}"

    @property
    def ref(self) -> str:
        """The name of the store ref holding the runtime."""
        return f"runtime/{self.triplet}"
