"""Dictation tools exposed to protocol clients."""

from pathlib import Path
from typing import Any, Dict, List

from .models import TranscriptionResult
from .registry import ToolDefinition, ToolParameter, ToolRegistry
from .service import DictationService

BYTES_PER_MB = 1048576


def format_result(result: TranscriptionResult) -> str:
    """Describe a transcription for display."""
    return (
        f"Transcription: {result.text}\n"
        f"Model: {result.model} | Language: {result.language} | "
        f"Processing: {result.processing_ms / 1000:.1f}s | "
        f"Segments: {len(result.segments)}"
    )


def _optional_str(arguments: Dict[str, Any], key: str) -> Any:
    value = arguments.get(key)
    return value if value else None


def build_dictation_tools(service: DictationService) -> List[ToolDefinition]:
    """Create the dictation tools, in the order they are advertised."""

    def start(arguments: Dict[str, Any]) -> str:
        if service.is_recording():
            return "Already recording. Use dictation_stop to stop and transcribe."

        filepath = service.start_recording()
        return (
            f"Recording started. Audio file: {filepath}\n"
            "Speak now, then use dictation_stop when done."
        )

    def stop(arguments: Dict[str, Any]) -> str:
        if not service.is_recording():
            return "No recording in progress. Use dictation_start first."

        inject = arguments.get("inject", True) is not False
        outcome = service.stop_recording(inject=inject)
        if outcome is None:
            return "Recording stopped but no audio was captured."

        output = format_result(outcome.result)
        if outcome.injected:
            output += "\nText injected into focused window."
        return output

    def transcribe(arguments: Dict[str, Any]) -> str:
        file = str(arguments.get("file") or "")
        if not file or not Path(file).is_file():
            return f"File not found: {file}"

        outcome = service.process(
            Path(file),
            model=_optional_str(arguments, "model"),
            language=_optional_str(arguments, "language"),
            inject=False,
            delete_audio=False,
        )
        return format_result(outcome.result)

    def status(arguments: Dict[str, Any]) -> str:
        info = service.recording_info()
        if info is None:
            return "Not recording."
        return f"Recording in progress for {info.elapsed_seconds}s.\nFile: {info.file}"

    def models(arguments: Dict[str, Any]) -> str:
        current = service.active_model()
        lines = [f"Available whisper models (active: {current}):\n"]

        for model in service.list_models():
            state = "installed" if model.installed else "not downloaded"
            size = f" ({round(model.size / BYTES_PER_MB)} MB)" if model.size else ""
            active = " *" if model.name == current else ""
            lines.append(f"  {model.name}{active}: {state}{size}")

        return "\n".join(lines)

    def model_download(arguments: Dict[str, Any]) -> str:
        model = str(arguments.get("model") or "")
        if not model:
            raise ValueError("Missing required parameter: model")

        if service.model_exists(model):
            return f"Model '{model}' is already downloaded."

        path = service.download_model(model)
        return f"Model '{model}' downloaded to: {path}"

    return [
        ToolDefinition(
            name="dictation_start",
            description=(
                "Start recording audio from the microphone for speech-to-text "
                "dictation. Returns the audio file path."
            ),
            handler=start,
        ),
        ToolDefinition(
            name="dictation_stop",
            description=(
                "Stop recording and transcribe the audio to text. Returns the "
                "transcribed text. Optionally injects text into the focused window."
            ),
            handler=stop,
            input_schema={
                "inject": ToolParameter(
                    "boolean",
                    "Inject transcribed text into the focused window (default: true)",
                ),
            },
        ),
        ToolDefinition(
            name="dictation_transcribe",
            description="Transcribe an existing audio file to text.",
            handler=transcribe,
            input_schema={
                "file": ToolParameter(
                    "string", "Path to audio file (WAV format)", required=True
                ),
                "model": ToolParameter(
                    "string", "Whisper model to use (default: configured model)"
                ),
                "language": ToolParameter(
                    "string", "Language code (default: configured language)"
                ),
            },
        ),
        ToolDefinition(
            name="dictation_status",
            description="Check if dictation is currently recording.",
            handler=status,
        ),
        ToolDefinition(
            name="dictation_models",
            description="List available whisper models and their installation status.",
            handler=models,
        ),
        ToolDefinition(
            name="dictation_model_download",
            description="Download a whisper model for transcription.",
            handler=model_download,
            input_schema={
                "model": ToolParameter(
                    "string",
                    "Model name (e.g., tiny.en, base.en, small.en, medium.en, large-v3)",
                    required=True,
                ),
            },
        ),
    ]


def build_registry(service: DictationService) -> ToolRegistry:
    return ToolRegistry(build_dictation_tools(service))
