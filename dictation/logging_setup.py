"""Logging configuration.

Diagnostics always go to stderr (and optionally a file). Stdout is reserved
for protocol output when running the stdio server.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Configure the root logger.

    Args:
        level: Logging level name.
        log_file: Optional file to also write logs to.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    # Replace handlers so repeated calls don't duplicate output
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    root.addHandler(stderr_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            root.warning(f"Could not open log file {log_file}: {e}")
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
