"""Injection of transcribed text into the focused window."""

import logging
import os
import shutil
import subprocess
import time
from typing import List, Literal, Optional, Tuple, Union

from .config import OutputConfig

logger = logging.getLogger(__name__)

# Delay between setting the clipboard and pasting it
CLIPBOARD_SETTLE_S = 0.05


def get_session_type() -> Literal["wayland", "x11", "unknown"]:
    """Detect the current session type (Wayland/X11/unknown).

    Returns:
        Session type as string: "wayland", "x11", or "unknown"
    """
    session_type = os.environ.get("XDG_SESSION_TYPE", "").lower()

    if session_type == "wayland":
        return "wayland"
    elif session_type == "x11":
        return "x11"
    else:
        return "unknown"


def run_output_command(
    command: Union[List[str], str],
    stdin_text: Optional[str] = None,
    timeout: float = 5.0,
    capture_output: bool = True,
) -> Tuple[bool, Optional[str]]:
    """Run an output command.

    Args:
        command: Argument list, or a shell command line when given a string.
        stdin_text: Optional text to write to the command's stdin.
        timeout: Maximum time to wait for command execution.
        capture_output: Collect stdout/stderr. Disable for commands that leave
            a background process holding the pipes open (wl-copy).

    Returns:
        Tuple of (success, error_message)
        - success: True if command executed successfully
        - error_message: Error details if command failed, None otherwise
    """
    display = command if isinstance(command, str) else " ".join(command[:2])
    logger.debug(f"Executing output command: {display}")

    try:
        completed = subprocess.run(
            command,
            shell=isinstance(command, str),
            input=stdin_text.encode("utf-8") if stdin_text is not None else None,
            stdout=subprocess.PIPE if capture_output else subprocess.DEVNULL,
            stderr=subprocess.PIPE if capture_output else subprocess.DEVNULL,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        msg = f"Command timed out after {timeout}s: {display}"
        logger.error(msg)
        return False, msg
    except FileNotFoundError:
        msg = f"Command not found: {display}"
        logger.error(msg)
        return False, msg
    except PermissionError:
        msg = f"Permission denied executing: {display}"
        logger.error(msg)
        return False, msg
    except OSError as e:
        msg = f"Error executing command: {e}"
        logger.exception(msg)
        return False, msg

    if completed.returncode != 0:
        error_msg = (
            f"Command failed with code {completed.returncode}:\n"
            f"Command: {display}\n"
            f"Stderr: {(completed.stderr or b'').decode('utf-8', errors='replace')}"
        )
        logger.error(error_msg)
        return False, error_msg

    return True, None


class TextInjector:
    """Types or pastes text into the focused window using desktop tools."""

    def __init__(self, config: OutputConfig):
        """Initialize the injector.

        Args:
            config: Output configuration.
        """
        self.config = config

    def resolve_injector(self, injector: Optional[str] = None) -> str:
        """Resolve the backend name, expanding "auto" by session type."""
        name = injector or self.config.injector
        if name != "auto":
            return name

        session = get_session_type()
        if session == "wayland":
            return "wtype"
        elif session == "x11":
            return "xdotool"
        raise ValueError(
            f"Couldn't determine injector for session type: {session}"
        )

    def is_available(self, injector: Optional[str] = None) -> bool:
        """Check whether the tools the backend needs are installed."""
        if self.config.keyboard_command:
            return True

        required = {
            "wtype": ["wtype"],
            "wl-paste": ["wl-copy", "xdotool"],
            "ydotool": ["ydotool"],
            "xdotool": ["xdotool"],
        }.get(self.resolve_injector(injector), [])
        return bool(required) and all(shutil.which(cmd) for cmd in required)

    def inject(self, text: str, injector: Optional[str] = None) -> bool:
        """Inject text into the focused window.

        Args:
            text: The text to inject.
            injector: Backend overriding the configured one.

        Returns:
            True if the text was injected.

        Raises:
            ValueError: If the injector name is not supported.
        """
        if not text.strip():
            logger.warning("Skipping injection of empty text")
            return False

        timeout = self.config.timeout_s

        if self.config.keyboard_command:
            success, _ = run_output_command(
                self.config.keyboard_command, stdin_text=text, timeout=timeout
            )
            return success

        name = self.resolve_injector(injector)
        logger.debug(f"Injecting {len(text)} chars via {name}")

        if name == "wtype":
            success, _ = run_output_command(["wtype", "--", text], timeout=timeout)
        elif name == "ydotool":
            success, _ = run_output_command(
                ["ydotool", "type", "--", text], timeout=timeout
            )
        elif name == "xdotool":
            success, _ = run_output_command(
                ["xdotool", "type", "--delay", "0", "--", text], timeout=timeout
            )
        elif name == "wl-paste":
            success = self._inject_via_clipboard(text, timeout)
        else:
            raise ValueError(f"Unknown injector: {name}")

        return success

    def _inject_via_clipboard(self, text: str, timeout: float) -> bool:
        # Copy to the clipboard, then simulate Ctrl+V
        success, _ = run_output_command(
            ["wl-copy"], stdin_text=text, timeout=timeout, capture_output=False
        )
        if not success:
            return False

        time.sleep(CLIPBOARD_SETTLE_S)

        success, _ = run_output_command(["xdotool", "key", "ctrl+v"], timeout=timeout)
        return success
