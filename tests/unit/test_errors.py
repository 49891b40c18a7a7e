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

import errno

import pytest
from craft_runtime import errors
from craft_runtime.store import errors as store_errors


def test_image_runtime_error_brief():
    err = errors.ImageRuntimeError(brief="A brief description.")
    assert str(err) == "A brief description."
    assert (
        repr(err)
        == "ImageRuntimeError(brief='A brief description.', details=None, resolution=None)"
    )
    assert err.brief == "A brief description."
    assert err.details is None
    assert err.resolution is None


def test_image_runtime_error_full():
    err = errors.ImageRuntimeError(
        brief="Brief", details="Details", resolution="Resolution"
    )
    assert str(err) == "Brief\nDetails\nResolution"
    assert err.brief == "Brief"
    assert err.details == "Details"
    assert err.resolution == "Resolution"


def test_filesystem_error():
    err = errors.FilesystemError(action="remove", path="/foo", message="bummer")
    assert err.action == "remove"
    assert err.path == "/foo"
    assert err.message == "bummer"
    assert err.brief == "Failed to remove '/foo': bummer."
    assert err.details is None
    assert err.resolution == "Make sure paths and permissions are correct."


def test_filesystem_error_from_os_error():
    os_error = OSError(errno.EACCES, "Permission denied", "/some/file")
    err = errors.FilesystemError.from_os_error("write", os_error)
    assert err.path == "/some/file"
    assert err.brief == "Failed to write '/some/file': Permission denied."


def test_missing_layer():
    err = errors.MissingLayer("sha256:1234")
    assert err.digest == "sha256:1234"
    assert err.brief == "Layer 'sha256:1234' is not available in the store."
    assert err.resolution == "Make sure the image was pulled before converting it."


def test_missing_config():
    err = errors.MissingConfig("sha256:1234")
    assert err.digest == "sha256:1234"
    assert err.brief == (
        "Image configuration 'sha256:1234' is not available in the store."
    )


def test_invalid_manifest():
    err = errors.InvalidManifest("bad things")
    assert err.message == "bad things"
    assert err.brief == "Invalid image manifest: bad things"
    assert err.resolution == "Make sure the image is a valid OCI image."


def test_external_tool_error():
    err = errors.ExternalToolError(command=["skopeo", "copy"], exit_code=2)
    assert err.command == ["skopeo", "copy"]
    assert err.exit_code == 2
    assert err.brief == "Command 'skopeo copy' failed with exit code 2."


def test_invalid_runtime_name():
    err = errors.InvalidRuntimeName("invalid runtime id 'x'")
    assert err.brief == "Invalid runtime name: invalid runtime id 'x'"
    assert err.resolution == (
        "Use --runtime-id and --runtime-branch to set valid names."
    )


@pytest.mark.parametrize(
    ("err", "brief"),
    [
        (store_errors.StoreNotFound("/s"), "No object store found at '/s'."),
        (
            store_errors.StoreLocked("/s"),
            "Object store '/s' has transactions in progress.",
        ),
        (
            store_errors.ObjectNotFound("abc", "tree"),
            "The tree object 'abc' was not found.",
        ),
        (store_errors.RevisionNotFound("foo"), "Revision 'foo' not found."),
        (store_errors.RefNotFound("foo/bar"), "Ref 'foo/bar' not found."),
        (store_errors.InvalidRefName("foo//bar"), "Invalid ref name 'foo//bar'."),
        (
            store_errors.RefConflict(name="r", expected="a", current="b"),
            "Ref 'r' was updated concurrently: expected a, found b.",
        ),
        (
            store_errors.ChecksumMismatch(expected="a", obtained="b"),
            "Expected digest a, obtained b.",
        ),
        (store_errors.InvalidTree("oops"), "Invalid tree: oops."),
    ],
)
def test_store_errors(err, brief):
    assert isinstance(err, store_errors.StoreError)
    assert isinstance(err, errors.ImageRuntimeError)
    assert err.brief == brief


def test_checksum_mismatch_details():
    err = store_errors.ChecksumMismatch(expected="a", obtained="b", path="/x")
    assert err.details == "Corrupted content in '/x'."
    assert err.resolution == "The object store may be corrupted."
