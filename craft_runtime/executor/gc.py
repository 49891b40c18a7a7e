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

"""Remove unused data from the object store and work directories."""

import enum
import logging
from collections.abc import Iterable

from craft_runtime.manifest import CONFIG_REF_PREFIX, LAYER_REF_PREFIX, digest_hex
from craft_runtime.store import ObjectStore, PruneResult

from .staging import StagingArea

logger = logging.getLogger(__name__)


class CleanupMode(enum.Enum):
    """The data to remove.

    - ``PRUNE``: objects not reachable from any ref.
    - ``UNUSED``: image layers and configurations not used by the given
      images, then unreachable objects.
    - ``OCI``: all image layers and configurations, then unreachable
      objects.
    - ``ALL``: as ``OCI``, also removing stale staging directories.
    """

    PRUNE = "prune"
    UNUSED = "unused"
    OCI = "oci"
    ALL = "all"


def cleanup(
    store: ObjectStore,
    staging: StagingArea,
    mode: CleanupMode,
    keep_digests: Iterable[str] = (),
) -> PruneResult:
    """Remove unused data.

    :param store: The object store.
    :param staging: The staging area.
    :param mode: The data to remove.
    :param keep_digests: The layer and configuration digests to preserve
        in ``UNUSED`` mode.

    :return: The result of the store pruning.

    :raise StoreLocked: If a transaction is in progress.
    """
    logger.debug("cleanup mode %s", mode.value)

    if mode == CleanupMode.UNUSED:
        keep = {digest_hex(digest) for digest in keep_digests}
        _remove_image_refs(store, keep)
    elif mode in (CleanupMode.OCI, CleanupMode.ALL):
        _remove_image_refs(store, set())

    if mode == CleanupMode.ALL:
        staging.remove_stale()

    result = store.prune()
    store.regenerate_summary()
    return result


def _remove_image_refs(store: ObjectStore, keep: set[str]) -> None:
    for prefix in (LAYER_REF_PREFIX, CONFIG_REF_PREFIX):
        for name in store.list_refs(prefix):
            if name[len(prefix) :] in keep:
                continue
            logger.debug("remove ref %s", name)
            store.remove_ref(name, allow_missing=True)
