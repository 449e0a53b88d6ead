"""Privilege checks and re-running a scan with elevated privileges."""

from __future__ import annotations

import errno
import os
import subprocess
import sys
from collections.abc import Sequence

_PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM)
_PERMISSION_MESSAGES = (
    "permission denied",
    "operation not permitted",
    "access is denied",
)


def is_running_as_root() -> bool:
    """Tell whether the process runs with root privileges; always False on Windows."""
    if sys.platform == "win32":
        return False
    return os.geteuid() == 0


def is_permission_error(err: BaseException | None) -> bool:
    """Tell whether an exception signals a permission problem."""
    if err is None:
        return False
    if isinstance(err, OSError) and err.errno is not None:
        if err.errno in _PERMISSION_ERRNOS:
            return True
    message = str(err)
    return any(text in message for text in _PERMISSION_MESSAGES)


def _read_answer(prompt: str) -> str:
    try:
        return input(prompt)
    except EOFError:
        return ""


def run_with_sudo(args: Sequence[str], verbose: bool = False) -> None:
    """Ask for confirmation, then run the scan command again under sudo.

    Raises RuntimeError on Windows or when the running program cannot be
    located, and subprocess.CalledProcessError when the command fails.
    """
    if sys.platform == "win32":
        raise RuntimeError("sudo functionality is not supported on Windows")

    print("🔐 Requesting elevated privileges...")
    print("⚠️  WARNING: You are about to run fman with sudo privileges.")
    answer = _read_answer("   Continue? (y/N): ").strip().lower()
    if answer not in ("y", "yes"):
        print("Operation cancelled.")
        return

    program = sys.argv[0] if sys.argv else ""
    if not program:
        raise RuntimeError("failed to get executable path")
    executable = os.path.abspath(program)

    command = ["sudo", executable, "scan", *args]
    if verbose:
        command.append("--verbose")

    subprocess.run(command, check=True)