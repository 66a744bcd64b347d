"""Shell primitive — run a command line in a directory and return its exit status.

Output goes straight to the runner's own stdout/stderr.  There is no
timeout unless the caller asks for one.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_STATUS = 124


def shell_argv(command: str, shell: str | None = None) -> list[str]:
    """Build the argv that runs *command* through the platform shell."""
    if sys.platform == "win32":
        return [shell or "cmd", "/d", "/s", "/c", command]
    return [shell or os.environ.get("SHELL") or "/bin/bash", "-lc", command]


def run_shell(
    command: str,
    cwd: str | None = None,
    *,
    timeout: float | None = None,
    shell: str | None = None,
) -> int:
    """Run *command* and block until it exits.

    Returns the exit status, or ``TIMEOUT_EXIT_STATUS`` if *timeout* elapsed
    and the process was killed.  Errors starting the process propagate.
    """
    argv = shell_argv(command, shell)
    logger.debug("Running %r in %s", command, cwd)
    try:
        result = subprocess.run(argv, cwd=cwd, timeout=timeout, check=False)
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %ss: %s", timeout, command)
        return TIMEOUT_EXIT_STATUS
    return result.returncode
