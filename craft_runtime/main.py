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

"""Command line interface for craft-runtime."""

import argparse
import logging
import sys
from typing import NoReturn

import craft_runtime
import craft_runtime.errors
from craft_runtime.dirs import RuntimeDirs
from craft_runtime.engines import FlatpakInstaller, SkopeoEngine
from craft_runtime.executor import CleanupMode, Converter
from craft_runtime.executor.gc import cleanup
from craft_runtime.store import ObjectStore


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        print(f"Error: {message}", file=sys.stderr)
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    """Run the command-line interface."""
    options = _parse_arguments(argv)

    if options.version:
        print(f"craft-runtime {craft_runtime.__version__}")
        sys.exit()

    if options.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    logging.basicConfig(level=log_level, format="%(message)s")

    try:
        _run(options)
    except craft_runtime.errors.ExternalToolError as err:
        print(f"Error: {err}", file=sys.stderr)
        sys.exit(err.exit_code)
    except craft_runtime.errors.ImageRuntimeError as err:
        print(f"Error: {err}", file=sys.stderr)
        sys.exit(1)
    except OSError as err:
        msg = err.strerror
        if err.filename:
            msg = f"{err.filename}: {msg}"
        print(f"Error: {msg}.", file=sys.stderr)
        sys.exit(1)


def _run(options: argparse.Namespace) -> None:
    dirs = RuntimeDirs(work_dir=options.work_dir, store_dir=options.store)
    store = ObjectStore(dirs.store_dir, create=True)
    converter = Converter(store, dirs, SkopeoEngine(dirs.download_dir))
    keep_digests: list[str] = []

    if options.image:
        result = converter.convert(
            options.image,
            runtime_id=options.runtime_id,
            branch=options.runtime_branch,
        )
        keep_digests = result.manifest.digests
        print(f"{result.info.ref} {result.checksum}")

        if options.install:
            FlatpakInstaller().install(store, result.info.ref)

    if options.cleanup:
        cleanup(store, converter.staging, CleanupMode(options.cleanup), keep_digests)


def _parse_arguments(argv: list[str] | None) -> argparse.Namespace:
    prog = "craft-runtime"
    description = "Convert a container image to an installable runtime."

    parser = _ArgumentParser(prog=prog, description=description, add_help=False)
    parser.add_argument(
        "-h",
        "--help",
        action="help",
        default=argparse.SUPPRESS,
        help="Show this help message and exit.",
    )
    parser.add_argument(
        "image",
        nargs="?",
        help="The image to convert, e.g. 'docker.io/library/debian:12'.",
    )
    parser.add_argument(
        "-i",
        "--runtime-id",
        metavar="id",
        help="Set the runtime id. Default is derived from the image name.",
    )
    parser.add_argument(
        "-b",
        "--runtime-branch",
        metavar="branch",
        help="Set the runtime branch. Default is the image tag.",
    )
    parser.add_argument(
        "--store",
        metavar="dirname",
        help="Use the specified object store.",
    )
    parser.add_argument(
        "--work-dir",
        metavar="dirname",
        help="Use the specified work directory.",
    )
    parser.add_argument(
        "--install",
        action="store_true",
        help="Install the runtime after converting it.",
    )
    parser.add_argument(
        "--cleanup",
        choices=[mode.value for mode in CleanupMode],
        help="Remove unused data from the store.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug messages.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Display the craft-runtime version and exit.",
    )

    options = parser.parse_args(argv)

    if not options.version and not options.image and not options.cleanup:
        parser.error("an image to convert or a cleanup mode is required")

    if options.install and not options.image:
        parser.error("--install requires an image")

    return options
