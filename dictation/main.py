"""Main entry point for the dictation stdio server."""

import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

from .config import AppConfig, load_config
from .logging_setup import setup_logging
from .mcp_server import MCPServer
from .service import DictationService
from .tools import build_registry

logger = logging.getLogger(__name__)

__all__ = ["run"]  # Export the run function


def serve(config: AppConfig) -> int:
    """Run the stdio server until its input is exhausted.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    try:
        service = DictationService.from_config(config)
        server = MCPServer(build_registry(service))
    except Exception:
        logger.exception("Fatal error in server startup:")
        return 1

    server.serve()
    return 0


def main(config_path: Optional[Path] = None) -> int:
    """Load configuration, set up logging and serve.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    # Load configuration first
    try:
        config = load_config(config_path)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.daemon.log_level, config.daemon.log_file)
    return serve(config)


def run() -> NoReturn:
    """Entry point for the server."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        # Fallback logger in case of early failure
        logging.basicConfig(stream=sys.stderr)
        logger.exception(f"Server failed with unhandled exception: {e}")
        sys.exit(1)
