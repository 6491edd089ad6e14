"""Tests for the dictation tool handlers."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from dictation.models import (
    DictationOutcome,
    RecordingInfo,
    Segment,
    StepOutcome,
    StepStatus,
    TranscriptionResult,
)
from dictation.service import DictationService
from dictation.tools import build_registry, format_result
from dictation.transcriber import ModelStatus


def make_outcome(injected: bool = False) -> DictationOutcome:
    result = TranscriptionResult(
        text="Hello world.",
        segments=[Segment(start=0.0, end=1.0, text=" Hello world.")],
        source_audio_file=Path("/tmp/recording.wav"),
        model="base.en",
        language="en",
        processing_ms=1234,
    )
    status = StepStatus.OK if injected else StepStatus.SKIPPED
    return DictationOutcome(result=result, steps=[StepOutcome(step="inject", status=status)])


@pytest.fixture
def service():
    service = MagicMock(spec=DictationService)
    service.is_recording.return_value = False
    return service


@pytest.fixture
def registry(service):
    return build_registry(service)


def call(registry, name, **arguments):
    return registry.get(name).handler(arguments)


def test_tool_order(registry):
    assert [tool.name for tool in registry] == [
        "dictation_start",
        "dictation_stop",
        "dictation_transcribe",
        "dictation_status",
        "dictation_models",
        "dictation_model_download",
    ]


def test_required_parameters(registry):
    schemas = {tool.name: tool.json_schema() for tool in registry}

    assert schemas["dictation_transcribe"]["required"] == ["file"]
    assert schemas["dictation_model_download"]["required"] == ["model"]
    assert schemas["dictation_stop"]["properties"]["inject"]["type"] == "boolean"
    assert schemas["dictation_start"]["properties"] == {}


def test_format_result():
    assert format_result(make_outcome().result) == (
        "Transcription: Hello world.\n"
        "Model: base.en | Language: en | Processing: 1.2s | Segments: 1"
    )


def test_start(registry, service):
    service.start_recording.return_value = Path("/tmp/recording.wav")

    output = call(registry, "dictation_start")

    assert output.startswith("Recording started. Audio file: /tmp/recording.wav")
    service.start_recording.assert_called_once()


def test_start_already_recording(registry, service):
    service.is_recording.return_value = True

    assert call(registry, "dictation_start").startswith("Already recording.")
    service.start_recording.assert_not_called()


def test_stop_idle(registry, service):
    output = call(registry, "dictation_stop")

    assert output == "No recording in progress. Use dictation_start first."
    service.stop_recording.assert_not_called()


def test_stop_injects_by_default(registry, service):
    service.is_recording.return_value = True
    service.stop_recording.return_value = make_outcome(injected=True)

    output = call(registry, "dictation_stop")

    service.stop_recording.assert_called_once_with(inject=True)
    assert output.startswith("Transcription: Hello world.")
    assert output.endswith("\nText injected into focused window.")


def test_stop_without_inject(registry, service):
    service.is_recording.return_value = True
    service.stop_recording.return_value = make_outcome()

    output = call(registry, "dictation_stop", inject=False)

    service.stop_recording.assert_called_once_with(inject=False)
    assert "injected" not in output


@pytest.mark.parametrize("value", ["false", 0, None])
def test_stop_only_json_false_disables_inject(registry, service, value):
    service.is_recording.return_value = True
    service.stop_recording.return_value = make_outcome()

    call(registry, "dictation_stop", inject=value)

    service.stop_recording.assert_called_once_with(inject=True)


def test_stop_no_audio(registry, service):
    service.is_recording.return_value = True
    service.stop_recording.return_value = None

    assert call(registry, "dictation_stop") == "Recording stopped but no audio was captured."


def test_transcribe_file(registry, service, tmp_path):
    audio = tmp_path / "clip.wav"
    audio.write_bytes(b"\0" * 1000)
    service.process.return_value = make_outcome()

    output = call(registry, "dictation_transcribe", file=str(audio), model="tiny.en")

    assert output.startswith("Transcription: Hello world.")
    service.process.assert_called_once_with(
        audio, model="tiny.en", language=None, inject=False, delete_audio=False
    )


def test_transcribe_missing_file(registry, service, tmp_path):
    missing = tmp_path / "nope.wav"

    assert call(registry, "dictation_transcribe", file=str(missing)) == f"File not found: {missing}"
    service.process.assert_not_called()


def test_status(registry, service):
    service.recording_info.return_value = None
    assert call(registry, "dictation_status") == "Not recording."

    service.recording_info.return_value = RecordingInfo(
        pid=123, file=Path("/tmp/recording.wav"), elapsed_seconds=7
    )
    assert call(registry, "dictation_status") == (
        "Recording in progress for 7s.\nFile: /tmp/recording.wav"
    )


def test_models(registry, service):
    service.active_model.return_value = "base.en"
    service.list_models.return_value = [
        ModelStatus(name="tiny.en", installed=False),
        ModelStatus(
            name="base.en",
            installed=True,
            path=Path("/models/base.en"),
            size=145 * 1048576,
        ),
    ]

    output = call(registry, "dictation_models")

    assert output.splitlines() == [
        "Available whisper models (active: base.en):",
        "",
        "  tiny.en: not downloaded",
        "  base.en *: installed (145 MB)",
    ]


def test_model_download(registry, service):
    service.model_exists.return_value = False
    service.download_model.return_value = Path("/models/tiny.en")

    output = call(registry, "dictation_model_download", model="tiny.en")

    assert output == "Model 'tiny.en' downloaded to: /models/tiny.en"
    service.download_model.assert_called_once_with("tiny.en")


def test_model_download_already_installed(registry, service):
    service.model_exists.return_value = True

    output = call(registry, "dictation_model_download", model="tiny.en")

    assert output == "Model 'tiny.en' is already downloaded."
    service.download_model.assert_not_called()


def test_model_download_requires_name(registry):
    with pytest.raises(ValueError, match="Missing required parameter: model"):
        call(registry, "dictation_model_download")
