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

"""Interfaces to the external tools used in conversions."""

import abc

from craft_runtime.manifest import Manifest
from craft_runtime.store import ObjectStore


class ContainerEngine(abc.ABC):
    """Fetch container images into the object store."""

    @abc.abstractmethod
    def pull(self, image: str, store: ObjectStore) -> Manifest:
        """Make the layers and configuration of an image available.

        Each layer must be committed on ``layer/<hex>`` and the image
        configuration on ``config/<hex>``.

        :param image: The image name.
        :param store: The object store to populate.

        :return: The image manifest.
        """


class RuntimeInstaller(abc.ABC):
    """Install runtimes from the object store into the system."""

    @abc.abstractmethod
    def install(self, store: ObjectStore, ref: str) -> None:
        """Install the runtime published on a ref.

        :param store: The object store containing the runtime.
        :param ref: The runtime ref.
        """
