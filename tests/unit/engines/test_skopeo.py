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

from pathlib import Path

import pytest
import pytest_subprocess
from craft_runtime import errors
from craft_runtime.engines import ContainerEngine, SkopeoEngine
from craft_runtime.engines.skopeo import source_name

from tests.fake_image import LayerBuilder, image_config, write_layout


@pytest.fixture
def download_dir(tmp_path):
    return tmp_path / "download"


@pytest.fixture
def layer():
    return LayerBuilder().add_file("usr/bin/hello", b"hello", mode=0o755).build()


def _copy_layout(layers: list[bytes]):
    """Simulate skopeo writing an image layout."""

    def callback(process):
        destination = process.args[-1]
        assert destination.startswith("oci:")
        layout_dir, tag = destination[len("oci:") :].rsplit(":", 1)
        write_layout(Path(layout_dir), layers, image_config(), tag=tag)

    return callback


class TestSkopeoEngine:
    """Pull images with skopeo."""

    def test_is_engine(self, download_dir):
        assert isinstance(SkopeoEngine(download_dir), ContainerEngine)

    def test_pull(
        self, store, download_dir, layer, fake_process: pytest_subprocess.FakeProcess
    ):
        fake_process.register(
            ["skopeo", "copy", "docker://alpine:3.19", fake_process.any(min=1, max=1)],
            callback=_copy_layout([layer]),
        )
        engine = SkopeoEngine(download_dir)

        manifest = engine.pull("alpine:3.19", store)

        assert len(manifest.layers) == 1
        assert store.resolve_ref(f"layer/{manifest.layers[0].hex}") is not None
        assert store.resolve_ref(f"config/{manifest.config.hex}") is not None
        assert list(download_dir.iterdir()) == []

    def test_pull_layout_arguments(
        self, store, download_dir, layer, fake_process: pytest_subprocess.FakeProcess
    ):
        fake_process.register(
            ["skopeo", "copy", "docker://quay.io/app", fake_process.any(min=1, max=1)],
            callback=_copy_layout([layer]),
        )

        SkopeoEngine(download_dir).pull("quay.io/app", store)

        command = list(fake_process.calls)[0]
        layout, tag = command[-1][len("oci:") :].rsplit(":", 1)
        assert tag == "latest"
        assert Path(layout).parent == download_dir
        assert Path(layout).name.startswith("oci-")

    def test_pull_executable(
        self, store, download_dir, layer, fake_process: pytest_subprocess.FakeProcess
    ):
        fake_process.register(
            ["/opt/skopeo", "copy", "oci:/images/app:v1", fake_process.any()],
            callback=_copy_layout([layer]),
        )
        engine = SkopeoEngine(download_dir, executable="/opt/skopeo")

        engine.pull("oci:/images/app:v1", store)

        assert fake_process.call_count(["/opt/skopeo", fake_process.any()]) == 1

    def test_pull_error(
        self, store, download_dir, fake_process: pytest_subprocess.FakeProcess
    ):
        fake_process.register(
            ["skopeo", "copy", fake_process.any()],
            stdout=["manifest unknown"],
            returncode=1,
        )

        with pytest.raises(errors.ExternalToolError) as raised:
            SkopeoEngine(download_dir).pull("alpine", store)

        assert raised.value.exit_code == 1
        assert raised.value.command[:3] == ["skopeo", "copy", "docker://alpine"]
        assert list(download_dir.iterdir()) == []
        assert store.list_refs() == {}

    def test_pull_missing_executable(self, store, download_dir):
        engine = SkopeoEngine(download_dir, executable="/nonexistent/skopeo")

        with pytest.raises(errors.ExternalToolError) as raised:
            engine.pull("alpine", store)

        assert raised.value.exit_code == 127
        assert list(download_dir.iterdir()) == []

    def test_pull_invalid_layout(
        self, store, download_dir, fake_process: pytest_subprocess.FakeProcess
    ):
        fake_process.register(["skopeo", "copy", fake_process.any()])

        with pytest.raises(errors.InvalidManifest):
            SkopeoEngine(download_dir).pull("alpine", store)

        assert list(download_dir.iterdir()) == []


@pytest.mark.parametrize(
    ("image", "name"),
    [
        ("alpine", "docker://alpine"),
        ("docker.io/library/debian:12", "docker://docker.io/library/debian:12"),
        ("docker://alpine", "docker://alpine"),
        ("oci:/images/app:v1", "oci:/images/app:v1"),
        ("oci-archive:/images/app.tar", "oci-archive:/images/app.tar"),
        ("docker-daemon:app:latest", "docker-daemon:app:latest"),
        ("containers-storage:localhost/app", "containers-storage:localhost/app"),
        ("dir:/images/app", "dir:/images/app"),
    ],
)
def test_source_name(image, name):
    assert source_name(image) == name
