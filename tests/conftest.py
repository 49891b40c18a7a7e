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
from craft_runtime.store import ObjectStore


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Use collection hook to mark all integration tests as slow"""
    for item in items:
        if "tests/integration" in str(item.path):
            item.add_marker(pytest.mark.slow)


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: tests exercising the whole pipeline")


@pytest.fixture
def new_dir(monkeypatch, tmpdir):
    """Change to a new temporary directory."""
    monkeypatch.chdir(tmpdir)
    return tmpdir


@pytest.fixture
def new_path(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def store(tmp_path) -> ObjectStore:
    """An empty object store."""
    return ObjectStore(tmp_path / "store", create=True)


@pytest.fixture(autouse=True)
def xdg_dirs(monkeypatch, tmp_path):
    """Keep default directories out of the user's home."""
    data_home = tmp_path / "xdg-data"
    cache_home = tmp_path / "xdg-cache"
    monkeypatch.setattr("xdg.BaseDirectory.xdg_data_home", str(data_home))
    monkeypatch.setattr("xdg.BaseDirectory.xdg_cache_home", str(cache_home))
    return data_home, cache_home


@pytest.fixture
def file_tree():
    """Create files from a dictionary mapping paths to contents."""

    def _create(root: Path, files: dict[str, bytes | str | None]) -> Path:
        for name, content in files.items():
            path = root / name
            if content is None:
                path.mkdir(parents=True, exist_ok=True)
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                content = content.encode()
            path.write_bytes(content)
        return root

    return _create
