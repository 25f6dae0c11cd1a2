"""Removal primitives: trash, in-place removal and elevated batch removal."""

import shlex
import shutil
import subprocess
import sys
from pathlib import Path

from loguru import logger
from send2trash import send2trash

from declutter.errors import DirectRemoveFailure, PrivilegeError, SoftDeleteFailure

# Timeout for the consent prompt plus the removal batch (seconds).
ELEVATION_TIMEOUT = 300

# osascript exit status and message when the user dismisses the prompt
OSASCRIPT_CANCELLED = "-128"


def move_to_trash(path: str) -> None:
    """Move a path to the user's trash.

    Raises:
        SoftDeleteFailure: If the trash refuses the item
    """
    try:
        send2trash(path)
    except OSError as e:
        raise SoftDeleteFailure(f"Could not move to trash: {e}") from e


def remove_path(path: str) -> None:
    """Remove a file, symlink or directory tree in place.

    Raises:
        DirectRemoveFailure: If anything is left behind
    """
    target = Path(path)
    try:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        else:
            target.unlink()
    except FileNotFoundError:
        return
    except OSError as e:
        raise DirectRemoveFailure(f"Could not remove: {e.strerror or e}") from e


def removal_commands(paths: list[str]) -> list[str]:
    """One quoted ``rm -rf`` command per path."""
    return [f"rm -rf {shlex.quote(path)}" for path in paths]


def _applescript_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class ElevatedExecutor:
    """Run a batch of shell commands behind a single administrator prompt.

    Only the outcome of the prompt is reported; callers verify the effect
    of each command themselves.
    """

    def __init__(self, platform: str | None = None, timeout: int = ELEVATION_TIMEOUT):
        self.platform = platform or sys.platform
        self.timeout = timeout

    def method(self) -> str | None:
        if self.platform == "darwin" and shutil.which("osascript"):
            return "osascript"
        if shutil.which("pkexec"):
            return "pkexec"
        return None

    def build_argv(self, commands: list[str]) -> list[str]:
        # Later commands still run when an earlier path cannot be removed
        script = "; ".join(commands)
        method = self.method()
        if method == "osascript":
            source = f"do shell script {_applescript_string(script)} with administrator privileges"
            return ["osascript", "-e", source]
        if method == "pkexec":
            return ["pkexec", "/bin/sh", "-c", script]
        raise PrivilegeError("No privilege escalation method available (osascript or pkexec)")

    def run(self, commands: list[str]) -> None:
        """
        Execute commands with elevated privileges.

        Raises:
            PrivilegeError: If the prompt is dismissed or denied, or elevation
                is unavailable
        """
        if not commands:
            return

        argv = self.build_argv(commands)
        logger.info("Requesting elevated removal of {} items via {}", len(commands), argv[0])
        try:
            proc = subprocess.run(argv, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise PrivilegeError("Privileged removal timed out")
        except OSError as e:
            raise PrivilegeError(f"Could not start {argv[0]}: {e}")

        stderr = (proc.stderr or "").strip()
        if argv[0] == "osascript" and proc.returncode != 0:
            if OSASCRIPT_CANCELLED in stderr:
                raise PrivilegeError("Authentication dismissed by user")
            raise PrivilegeError(f"Privileged removal failed: {stderr}")
        if proc.returncode == 126:
            raise PrivilegeError("Authentication dismissed by user")
        if proc.returncode == 127:
            raise PrivilegeError("Authentication denied")
        if proc.returncode != 0:
            # rm failures inside the batch are found by re-checking each path
            logger.warning("Elevated batch exited {}: {}", proc.returncode, stderr)
