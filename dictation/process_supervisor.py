"""Spawning, signalling and liveness checks for the external capture process."""

import logging
import os
import signal
import subprocess
import sys
from typing import List, Optional, Sequence

from .errors import SpawnFailed

logger = logging.getLogger(__name__)

# How long the launcher may take to report the capture pid
LAUNCH_TIMEOUT_S = 10.0

# Exit code the launcher uses when the program does not exist
EXIT_NOT_FOUND = 127

# Starts the program in its own session, prints its pid and exits without
# waiting, so the program is re-parented to init instead of staying a child
# of the long-lived invocation that asked for it.
LAUNCHER = """\
import subprocess
import sys

try:
    process = subprocess.Popen(
        sys.argv[1:],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
        close_fds=True,
    )
except FileNotFoundError:
    sys.exit(127)
except OSError as e:
    print(e, file=sys.stderr)
    sys.exit(1)
print(process.pid, flush=True)
"""


def process_state(pid: int) -> Optional[str]:
    """Return the kernel state letter of a process from /proc, if available."""
    try:
        with open(f"/proc/{pid}/stat", encoding="utf-8") as f:
            stat = f.read()
    except OSError:
        return None

    # The command name is parenthesized and may itself contain spaces or parens
    fields = stat[stat.rfind(")") + 1 :].split()
    return fields[0] if fields else None


class ProcessSupervisor:
    """Manages a detached OS process by pid.

    The process is started in its own session and is not a child of the
    invocation that spawned it, so it survives that invocation and is reaped
    by init when it exits. All later operations work from the pid alone, so
    they can be performed by a different process.
    """

    def spawn(self, command: Sequence[str]) -> int:
        """Launch a detached process.

        The binary is executed directly (no shell), so the returned pid is the
        pid of the capture process itself.

        Args:
            command: Program and arguments.

        Returns:
            The pid of the spawned process.

        Raises:
            SpawnFailed: If the program could not be launched.
        """
        argv: List[str] = [str(part) for part in command]
        logger.debug(f"Spawning: {' '.join(argv)}")

        try:
            launched = subprocess.run(
                [sys.executable, "-I", "-c", LAUNCHER, *argv],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=LAUNCH_TIMEOUT_S,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SpawnFailed(f"Failed to start {argv[0]}: {e}") from e

        if launched.returncode == EXIT_NOT_FOUND:
            raise SpawnFailed(f"'{argv[0]}' command not found.")
        if launched.returncode != 0:
            raise SpawnFailed(f"Failed to start {argv[0]}: {launched.stderr.strip()}")

        try:
            pid = int(launched.stdout.strip())
        except ValueError:
            raise SpawnFailed(
                f"Failed to start {argv[0]}: no pid reported"
            ) from None

        logger.info(f"Started {argv[0]} with PID: {pid}")
        return pid

    def is_alive(self, pid: int) -> bool:
        """Check whether a process exists without affecting it."""
        if pid <= 0:
            return False

        # A child of ours that already exited stays a zombie until reaped
        try:
            reaped_pid, _ = os.waitpid(pid, os.WNOHANG)
            if reaped_pid == pid:
                return False
        except ChildProcessError:
            pass  # Not our child

        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True  # Exists, owned by someone else

        # A zombie still answers kill(pid, 0) while its parent has not reaped it
        return process_state(pid) != "Z"

    def signal_graceful(self, pid: int) -> bool:
        """Send SIGINT so the capture tool can finalize its output file."""
        return self._send(pid, signal.SIGINT)

    def signal_force(self, pid: int) -> bool:
        """Send SIGKILL."""
        return self._send(pid, signal.SIGKILL)

    def _send(self, pid: int, sig: signal.Signals) -> bool:
        if pid <= 0:
            return False
        try:
            os.kill(pid, sig)
            logger.debug(f"Sent {sig.name} to PID {pid}")
            return True
        except ProcessLookupError:
            logger.debug(f"PID {pid} already gone, {sig.name} not sent")
            return False
        except PermissionError as e:
            logger.warning(f"Not permitted to signal PID {pid}: {e}")
            return False
