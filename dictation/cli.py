"""Command-line interface for dictation."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional, get_args

from . import __version__
from .config import AppConfig, InjectorName, load_config
from .errors import DictationError
from .logging_setup import setup_logging
from .main import serve
from .service import DictationService
from .tools import format_result

logger = logging.getLogger(__name__)

UNITS = ["B", "KB", "MB", "GB"]

SETTINGS_FIELDS = ["model", "language", "injector", "auto_inject", "auto_delete_audio"]


def format_bytes(size: float) -> str:
    i = 0
    while size >= 1024 and i < len(UNITS) - 1:
        size /= 1024
        i += 1
    return f"{round(size, 1)} {UNITS[i]}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dictation", description="Local speech-to-text dictation."
    )
    parser.add_argument("--config", type=Path, help="Path to config.toml")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("start", help="Start recording audio")

    stop = sub.add_parser("stop", help="Stop recording and transcribe")
    stop.add_argument(
        "--no-inject",
        action="store_true",
        help="Do not inject text into the focused window",
    )

    transcribe = sub.add_parser("transcribe", help="Transcribe an audio file")
    transcribe.add_argument("file", type=Path, help="Path to audio file")
    transcribe.add_argument("--model", help="Whisper model to use")
    transcribe.add_argument("--language", help="Language code")

    sub.add_parser("status", help="Show recording status")

    history = sub.add_parser("history", help="Show recent transcriptions")
    history.add_argument(
        "-n", "--limit", type=int, default=10, help="Number of entries to show"
    )

    settings = sub.add_parser("settings", help="Show or change stored preferences")
    settings.add_argument("--model", help="Default whisper model")
    settings.add_argument("--language", help="Default language code")
    settings.add_argument(
        "--injector", choices=get_args(InjectorName), help="Text injection backend"
    )
    settings.add_argument(
        "--auto-inject",
        action=argparse.BooleanOptionalAction,
        help="Inject text after stopping a recording",
    )
    settings.add_argument(
        "--auto-delete-audio",
        action=argparse.BooleanOptionalAction,
        help="Delete recordings after transcription",
    )

    model = sub.add_parser("model", help="Manage whisper models")
    model.add_argument("action", choices=["list", "download", "delete"])
    model.add_argument("name", nargs="?", help="Model name (e.g., base.en)")

    sub.add_parser("serve", help="Run the stdio tool server")

    return parser


def cmd_start(service: DictationService, args: argparse.Namespace) -> int:
    if service.is_recording():
        print("Recording already in progress.", file=sys.stderr)
        return 1

    filepath = service.start_recording()
    print("Recording started.")
    print(f"Audio file: {filepath}")
    return 0


def cmd_stop(service: DictationService, args: argparse.Namespace) -> int:
    if not service.is_recording():
        print("No recording in progress.", file=sys.stderr)
        return 1

    print("Stopping recording...")
    outcome = service.stop_recording(inject=False if args.no_inject else None)
    if outcome is None:
        print("Recording stopped but no audio was captured.", file=sys.stderr)
        return 1

    print(format_result(outcome.result))
    if outcome.injected:
        print("Text injected into focused window.")
    return 0


def cmd_transcribe(service: DictationService, args: argparse.Namespace) -> int:
    if not args.file.is_file():
        print(f"File not found: {args.file}", file=sys.stderr)
        return 1

    outcome = service.process(
        args.file,
        model=args.model,
        language=args.language,
        inject=False,
        delete_audio=False,
    )
    print(format_result(outcome.result))
    return 0


def cmd_status(service: DictationService, args: argparse.Namespace) -> int:
    info = service.recording_info()
    if info is None:
        print("Not recording.")
    else:
        print(f"Recording in progress for {info.elapsed_seconds}s (PID {info.pid}).")
        print(f"File: {info.file}")
    return 0


def cmd_history(service: DictationService, args: argparse.Namespace) -> int:
    entries = service.history_entries(args.limit)
    if not entries:
        print("No transcriptions yet.")
        return 0

    for entry in entries:
        created = entry.created_at.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{created}  [{entry.model}, {entry.language}]  {entry.text}")
    return 0


def cmd_settings(service: DictationService, args: argparse.Namespace) -> int:
    changes = {
        name: getattr(args, name)
        for name in SETTINGS_FIELDS
        if getattr(args, name) is not None
    }
    if changes:
        settings = service.update_settings(**changes)
        print("Preferences saved.")
    else:
        settings = service.user_settings()

    for name in SETTINGS_FIELDS:
        value = getattr(settings, name)
        print(f"{name}: {'(default)' if value is None else value}")
    return 0


def cmd_model(service: DictationService, args: argparse.Namespace) -> int:
    if args.action == "list":
        current = service.active_model()
        for model in service.list_models():
            active = " (active)" if model.name == current else ""
            state = "installed" if model.installed else "-"
            size = format_bytes(model.size) if model.size else "-"
            print(f"{model.name + active:<24} {state:<10} {size}")
        return 0

    if not args.name:
        print("Please specify a model name.", file=sys.stderr)
        return 1

    if args.action == "download":
        if service.model_exists(args.name):
            print(f"Model '{args.name}' is already downloaded.")
            return 0
        print(f"Downloading model '{args.name}'...")
        path = service.download_model(args.name)
        print(f"Model downloaded to: {path}")
        return 0

    if not service.model_exists(args.name):
        print(f"Model '{args.name}' is not installed.")
        return 0
    if service.delete_model(args.name):
        print(f"Model '{args.name}' deleted.")
        return 0
    print(f"Failed to delete model '{args.name}'.", file=sys.stderr)
    return 1


COMMANDS = {
    "start": cmd_start,
    "stop": cmd_stop,
    "transcribe": cmd_transcribe,
    "status": cmd_status,
    "history": cmd_history,
    "settings": cmd_settings,
    "model": cmd_model,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Run a CLI command.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    args = build_parser().parse_args(argv)

    try:
        config: AppConfig = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    level = "DEBUG" if args.verbose else config.daemon.log_level
    setup_logging(level, config.daemon.log_file)

    if args.command == "serve":
        return serve(config)

    service = DictationService.from_config(config)
    try:
        return COMMANDS[args.command](service, args)
    except DictationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"Command '{args.command}' failed")
        print(f"Error: {e}", file=sys.stderr)
        return 1


def run() -> NoReturn:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
