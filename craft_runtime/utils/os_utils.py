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

"""Utilities related to the operating system."""

import logging
import subprocess
from collections.abc import Callable, Sequence

from craft_runtime import errors

logger = logging.getLogger(__name__)


def process_run(
    command: Sequence[str], log_func: Callable[[str], None], **kwargs
) -> None:
    """Run a command and handle its output.

    :param command: The command to run.
    :param log_func: The function called with each output line.

    :raise ExternalToolError: If the command exits with a non-zero status.
    """
    logger.debug("Executing %s", command)
    with subprocess.Popen(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        universal_newlines=True,
        **kwargs,
    ) as proc:
        if not proc.stdout:
            return
        for line in iter(proc.stdout.readline, ""):
            log_func(":: " + line.strip())
        ret = proc.wait()

    if ret:
        raise errors.ExternalToolError(command=list(command), exit_code=ret)
