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

"""OCI image manifest and configuration models."""

import json
import re
from typing import Any

import pydantic
from pydantic import ConfigDict, Field

from craft_runtime import errors

_DIGEST_PATTERN = re.compile(r"^sha256:[0-9a-f]{64}$")

LAYER_REF_PREFIX = "layer/"
CONFIG_REF_PREFIX = "config/"
REF_NAME_ANNOTATION = "org.opencontainers.image.ref.name"


def digest_hex(digest: str) -> str:
    """Obtain the hex portion of a ``sha256:<hex>`` digest.

    :param digest: The digest to split.

    :raise InvalidManifest: If the digest is not a sha256 digest.
    """
    if not _DIGEST_PATTERN.match(digest):
        raise errors.InvalidManifest(f"unsupported digest {digest!r}")

    return digest.split(":", 1)[1]


def layer_ref(digest: str) -> str:
    """Obtain the name of the store ref holding a layer."""
    return LAYER_REF_PREFIX + digest_hex(digest)


def config_ref(digest: str) -> str:
    """Obtain the name of the store ref holding an image configuration."""
    return CONFIG_REF_PREFIX + digest_hex(digest)


class _Document(pydantic.BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    @classmethod
    def unmarshal(cls, data: dict[str, Any]):
        """Create and populate a new model from dictionary data.

        :param data: The document data.

        :raise InvalidManifest: If the data is not a valid document.
        """
        if not isinstance(data, dict):
            raise errors.InvalidManifest("document is not a JSON object")

        try:
            return cls.model_validate(data)
        except pydantic.ValidationError as err:
            raise errors.InvalidManifest(_format_errors(err)) from err

    @classmethod
    def from_json(cls, text: str | bytes):
        """Create and populate a new model from a JSON document.

        :param text: The JSON document.

        :raise InvalidManifest: If the text is not a valid document.
        """
        try:
            data = json.loads(text)
        except ValueError as err:
            raise errors.InvalidManifest(f"malformed JSON: {err}") from err

        return cls.unmarshal(data)


class Descriptor(_Document):
    """A reference to a blob in an image."""

    media_type: str | None = Field(default=None, alias="mediaType")
    digest: str
    size: int | None = None
    annotations: dict[str, str] = {}

    @pydantic.field_validator("digest")
    @classmethod
    def _validate_digest(cls, digest: str) -> str:
        if not _DIGEST_PATTERN.match(digest):
            raise ValueError(f"unsupported digest {digest!r}")
        return digest

    @property
    def hex(self) -> str:
        """The hex portion of the digest."""
        return digest_hex(self.digest)


class Manifest(_Document):
    """The ordered list of layers and the configuration of an image."""

    config: Descriptor
    layers: list[Descriptor]

    @property
    def digests(self) -> list[str]:
        """The digests of all blobs in the image."""
        return [self.config.digest, *(layer.digest for layer in self.layers)]


class ContainerConfig(_Document):
    """The execution parameters of an image."""

    env: list[str] = Field(default=[], alias="Env")
    cmd: list[str] = Field(default=[], alias="Cmd")
    entrypoint: list[str] = Field(default=[], alias="Entrypoint")
    working_dir: str = Field(default="", alias="WorkingDir")

    @pydantic.field_validator("env", "cmd", "entrypoint", mode="before")
    @classmethod
    def _coerce_null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @pydantic.field_validator("working_dir", mode="before")
    @classmethod
    def _coerce_null_str(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def environment(self) -> dict[str, str]:
        """The environment variables, in definition order."""
        environment: dict[str, str] = {}
        for entry in self.env:
            name, _, value = entry.partition("=")
            if name:
                environment[name] = value
        return environment

    @property
    def command(self) -> list[str]:
        """The full command line the image runs."""
        return [*self.entrypoint, *self.cmd]


class ImageConfig(_Document):
    """The configuration of an image."""

    architecture: str
    os: str = "linux"
    config: ContainerConfig = ContainerConfig()

    @pydantic.field_validator("config", mode="before")
    @classmethod
    def _coerce_null_config(cls, value: Any) -> Any:
        return {} if value is None else value


class ImageIndex(_Document):
    """The list of manifests in an OCI image layout."""

    manifests: list[Descriptor]

    def select(self, tag: str | None = None) -> Descriptor:
        """Select a manifest by its reference name.

        :param tag: The reference name. If not set, the index must contain
            a single manifest.

        :raise InvalidManifest: If no single manifest matches.
        """
        if tag is None:
            if len(self.manifests) != 1:
                raise errors.InvalidManifest(
                    f"expected one manifest in index, found {len(self.manifests)}"
                )
            return self.manifests[0]

        for descriptor in self.manifests:
            if descriptor.annotations.get(REF_NAME_ANNOTATION) == tag:
                return descriptor

        raise errors.InvalidManifest(f"no manifest for tag {tag!r} in index")


def _format_errors(err: pydantic.ValidationError) -> str:
    formatted_errors: list[str] = []
    for error in err.errors():
        loc = ".".join(str(part) for part in error.get("loc", ()))
        msg = error.get("msg", "invalid value")
        if loc:
            formatted_errors.append(f"{msg} in field {loc!r}")
        else:
            formatted_errors.append(msg)

    return "; ".join(formatted_errors)
