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

"""Import OCI image layouts into the object store.

An OCI image layout is a directory containing an ``index.json`` file
listing image manifests, and content-addressed blobs under
``blobs/<algorithm>/<hex>``. Each layer is committed on ``layer/<hex>``
and the image configuration on ``config/<hex>``.
"""

import logging
import re
import tarfile
import tempfile
from collections.abc import Iterator
from pathlib import Path

from craft_runtime import errors
from craft_runtime.manifest import (
    Descriptor,
    ImageIndex,
    Manifest,
    config_ref,
    layer_ref,
)
from craft_runtime.store import (
    EntryType,
    FileMetadata,
    FileType,
    ObjectStore,
    TreeEntry,
    commit,
)
from craft_runtime.store.errors import ChecksumMismatch
from craft_runtime.utils import file_utils

from .assembler import CONFIG_FILE_NAME

logger = logging.getLogger(__name__)


def import_oci_layout(
    store: ObjectStore,
    layout_dir: Path,
    tag: str | None = None,
    *,
    work_dir: Path | None = None,
) -> Manifest:
    """Commit the layers and configuration of an image layout to the store.

    Layers and configurations already in the store are not imported again.

    :param store: The object store.
    :param layout_dir: The OCI image layout directory.
    :param tag: The reference name of the image to import. If not set, the
        layout must contain a single image.
    :param work_dir: The directory to extract layers in. If not set, the
        system temporary directory is used.

    :return: The image manifest.

    :raise InvalidManifest: If the index or manifest are malformed.
    :raise MissingLayer: If a layer blob is not in the layout.
    :raise MissingConfig: If the configuration blob is not in the layout.
    :raise ChecksumMismatch: If a blob doesn't match its digest.
    """
    index = ImageIndex.from_json(_read_blob_file(layout_dir / "index.json"))
    descriptor = index.select(tag)
    manifest = Manifest.from_json(
        _read_blob_file(_blob_path(layout_dir, descriptor))
    )

    for layer in manifest.layers:
        ref = layer_ref(layer.digest)
        if store.resolve_ref(ref, allow_missing=True):
            logger.debug("layer %s already imported", layer.digest)
            continue

        blob = _blob_path(layout_dir, layer)
        if not blob.is_file():
            raise errors.MissingLayer(layer.digest)

        _verify_blob(blob, layer)
        _import_layer(store, blob, layer, work_dir)

    ref = config_ref(manifest.config.digest)
    if store.resolve_ref(ref, allow_missing=True) is None:
        blob = _blob_path(layout_dir, manifest.config)
        if not blob.is_file():
            raise errors.MissingConfig(manifest.config.digest)

        _verify_blob(blob, manifest.config)
        _import_config(store, blob.read_bytes(), manifest.config)

    store.regenerate_summary()
    return manifest


def _blob_path(layout_dir: Path, descriptor: Descriptor) -> Path:
    return layout_dir / "blobs" / "sha256" / descriptor.hex


def _read_blob_file(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as err:
        raise errors.InvalidManifest(f"{str(path)!r} not found") from err
    except OSError as err:
        raise errors.FilesystemError.from_os_error("read", err) from err


def _verify_blob(blob: Path, descriptor: Descriptor) -> None:
    obtained = file_utils.calculate_hash(blob, algorithm="sha256")
    if obtained != descriptor.hex:
        raise ChecksumMismatch(
            expected=descriptor.hex, obtained=obtained, path=str(blob)
        )


def _import_layer(
    store: ObjectStore, blob: Path, layer: Descriptor, work_dir: Path | None
) -> None:
    logger.info("Importing layer %s", layer.digest)

    if work_dir:
        work_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(prefix="layer-", dir=work_dir) as tmp:
        layer_dir = Path(tmp)
        try:
            _extract(blob, layer_dir)
        except (OSError, tarfile.TarError) as err:
            raise errors.FilesystemError(
                action="extract", path=str(blob), message=str(err)
            ) from err

        commit(
            store, layer_dir, layer_ref(layer.digest), f"Import layer {layer.digest}"
        )


def _import_config(store: ObjectStore, content: bytes, config: Descriptor) -> None:
    logger.debug("import config %s", config.digest)
    metadata = FileMetadata(file_type=FileType.REGULAR, mode=0o644)

    with store.transaction() as txn:
        checksum = txn.put_blob(content, metadata)
        root = txn.put_tree(
            [TreeEntry(name=CONFIG_FILE_NAME, type=EntryType.FILE, checksum=checksum)]
        )
        commit_checksum = txn.put_commit(
            None, root, f"Import image configuration {config.digest}"
        )
        txn.update_ref(config_ref(config.digest), commit_checksum, None)


def _extract(tarball: Path, dst: Path) -> None:
    with tarfile.open(tarball) as tar:

        def filter_members(tar: tarfile.TarFile) -> Iterator[tarfile.TarInfo]:
            """Strip leading path components and skip special files."""
            for member in tar.getmembers():
                if member.ischr() or member.isblk() or member.isfifo():
                    logger.debug("skip special file %s", member.name)
                    continue

                _strip_prefix(member)
                if not member.name:
                    continue

                # Extracted entries must remain readable and writable so they
                # can be committed and removed.
                member.mode = member.mode | (0o700 if member.isdir() else 0o600)
                yield member

        tar.extractall(members=filter_members(tar), path=dst, filter="tar")


def _strip_prefix(member: tarfile.TarInfo) -> None:
    # strip leading '/', './' or '../' as many times as needed
    member.name = re.sub(r"^(\.{0,2}/)*", r"", member.name).rstrip("/")
    if member.name == ".":
        member.name = ""
    # do the same for linkname if this is a hardlink
    if member.islnk() and not member.issym():
        member.linkname = re.sub(r"^(\.{0,2}/)*", r"", member.linkname)
