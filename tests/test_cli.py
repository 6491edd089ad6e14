"""Tests for the command-line interface."""

from datetime import datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from dictation.cli import build_parser, format_bytes, main
from dictation.errors import AlreadyRecording, TranscriptionFailed
from dictation.models import (
    DictationOutcome,
    HistoryEntry,
    RecordingInfo,
    StepOutcome,
    StepStatus,
    TranscriptionResult,
    UserSettings,
)
from dictation.service import DictationService
from dictation.transcriber import ModelStatus


@pytest.fixture
def service(config):
    """Patch the CLI to use a mock service and the test config."""
    service = MagicMock(spec=DictationService)
    service.is_recording.return_value = False
    with (
        patch("dictation.cli.load_config", return_value=config),
        patch("dictation.cli.setup_logging"),
        patch("dictation.cli.DictationService.from_config", return_value=service),
    ):
        yield service


def make_outcome(injected: bool) -> DictationOutcome:
    result = TranscriptionResult(
        text="Hello world.",
        source_audio_file=Path("/tmp/recording.wav"),
        model="base.en",
        language="en",
        processing_ms=500,
    )
    status = StepStatus.OK if injected else StepStatus.SKIPPED
    return DictationOutcome(result=result, steps=[StepOutcome(step="inject", status=status)])


def test_format_bytes():
    assert format_bytes(512) == "512 B"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(145 * 1048576) == "145.0 MB"


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_parser_model_action():
    args = build_parser().parse_args(["model", "download", "tiny.en"])
    assert (args.command, args.action, args.name) == ("model", "download", "tiny.en")

    with pytest.raises(SystemExit):
        build_parser().parse_args(["model", "upgrade"])


def test_start(service, capsys):
    service.start_recording.return_value = Path("/tmp/recording.wav")

    assert main(["start"]) == 0
    assert "Audio file: /tmp/recording.wav" in capsys.readouterr().out


def test_start_already_recording(service, capsys):
    service.is_recording.return_value = True

    assert main(["start"]) == 1
    assert "already in progress" in capsys.readouterr().err
    service.start_recording.assert_not_called()


def test_start_race_reports_error(service, capsys):
    service.start_recording.side_effect = AlreadyRecording()

    assert main(["start"]) == 1
    assert "Error: Recording already in progress." in capsys.readouterr().err


def test_stop(service, capsys):
    service.is_recording.return_value = True
    service.stop_recording.return_value = make_outcome(injected=True)

    assert main(["stop"]) == 0

    service.stop_recording.assert_called_once_with(inject=None)
    out = capsys.readouterr().out
    assert "Transcription: Hello world." in out
    assert "Text injected into focused window." in out


def test_stop_no_inject(service):
    service.is_recording.return_value = True
    service.stop_recording.return_value = make_outcome(injected=False)

    assert main(["stop", "--no-inject"]) == 0
    service.stop_recording.assert_called_once_with(inject=False)


def test_stop_idle(service, capsys):
    assert main(["stop"]) == 1
    assert "No recording in progress." in capsys.readouterr().err


def test_stop_no_audio(service, capsys):
    service.is_recording.return_value = True
    service.stop_recording.return_value = None

    assert main(["stop"]) == 1
    assert "no audio was captured" in capsys.readouterr().err


def test_stop_transcription_failure(service, capsys):
    service.is_recording.return_value = True
    service.stop_recording.side_effect = TranscriptionFailed("model exploded")

    assert main(["stop"]) == 1
    assert "Error: model exploded" in capsys.readouterr().err


def test_transcribe(service, tmp_path, capsys):
    audio = tmp_path / "clip.wav"
    audio.write_bytes(b"\0" * 1000)
    service.process.return_value = make_outcome(injected=False)

    assert main(["transcribe", str(audio), "--language", "de"]) == 0

    service.process.assert_called_once_with(
        audio, model=None, language="de", inject=False, delete_audio=False
    )
    assert "Transcription: Hello world." in capsys.readouterr().out


def test_transcribe_missing_file(service, tmp_path, capsys):
    assert main(["transcribe", str(tmp_path / "nope.wav")]) == 1
    assert "File not found" in capsys.readouterr().err
    service.process.assert_not_called()


def test_status(service, capsys):
    service.recording_info.return_value = None
    assert main(["status"]) == 0
    assert capsys.readouterr().out == "Not recording.\n"

    service.recording_info.return_value = RecordingInfo(
        pid=42, file=Path("/tmp/recording.wav"), elapsed_seconds=3
    )
    assert main(["status"]) == 0
    assert "Recording in progress for 3s (PID 42)." in capsys.readouterr().out


def test_model_list(service, capsys):
    service.active_model.return_value = "base.en"
    service.list_models.return_value = [
        ModelStatus(name="tiny.en", installed=False),
        ModelStatus(name="base.en", installed=True, size=2048),
    ]

    assert main(["model", "list"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["tiny.en", "-", "-"]
    assert lines[1].split() == ["base.en", "(active)", "installed", "2.0", "KB"]


def test_model_download(service, capsys):
    service.model_exists.return_value = False
    service.download_model.return_value = Path("/models/tiny.en")

    assert main(["model", "download", "tiny.en"]) == 0
    assert "Model downloaded to: /models/tiny.en" in capsys.readouterr().out


def test_model_download_requires_name(service, capsys):
    assert main(["model", "download"]) == 1
    assert "specify a model name" in capsys.readouterr().err


def test_model_delete(service, capsys):
    service.model_exists.return_value = True
    service.delete_model.return_value = True

    assert main(["model", "delete", "tiny.en"]) == 0
    assert "Model 'tiny.en' deleted." in capsys.readouterr().out


def test_config_error(capsys, tmp_path):
    bad = tmp_path / "config.toml"
    bad.write_text("[whisper\n")

    assert main(["--config", str(bad), "status"]) == 1
    assert "Error loading configuration" in capsys.readouterr().err


def test_serve_command(config):
    with (
        patch("dictation.cli.load_config", return_value=config),
        patch("dictation.cli.setup_logging"),
        patch("dictation.cli.serve", return_value=0) as serve,
    ):
        assert main(["serve"]) == 0

    serve.assert_called_once_with(config)


def test_history(service, capsys):
    service.history_entries.return_value = [
        HistoryEntry(
            text="Hello world.",
            source_audio_file=Path("/tmp/recording.wav"),
            model="base.en",
            language="en",
            created_at=datetime(2024, 5, 1, 9, 30, 0),
        )
    ]

    assert main(["history", "-n", "5"]) == 0

    service.history_entries.assert_called_once_with(5)
    assert capsys.readouterr().out == (
        "2024-05-01 09:30:00  [base.en, en]  Hello world.\n"
    )


def test_history_empty(service, capsys):
    service.history_entries.return_value = []

    assert main(["history"]) == 0
    service.history_entries.assert_called_once_with(10)
    assert capsys.readouterr().out == "No transcriptions yet.\n"


def test_settings_show(service, capsys):
    service.user_settings.return_value = UserSettings(model="small.en", auto_inject=False)

    assert main(["settings"]) == 0

    service.update_settings.assert_not_called()
    assert capsys.readouterr().out == (
        "model: small.en\n"
        "language: (default)\n"
        "injector: (default)\n"
        "auto_inject: False\n"
        "auto_delete_audio: (default)\n"
    )


def test_settings_update(service, capsys):
    service.update_settings.return_value = UserSettings(
        language="de", injector="wtype", auto_inject=True, auto_delete_audio=False
    )

    args = [
        "settings",
        "--language",
        "de",
        "--injector",
        "wtype",
        "--auto-inject",
        "--no-auto-delete-audio",
    ]
    assert main(args) == 0

    service.update_settings.assert_called_once_with(
        language="de", injector="wtype", auto_inject=True, auto_delete_audio=False
    )
    out = capsys.readouterr().out
    assert out.startswith("Preferences saved.\n")
    assert "injector: wtype\n" in out
    assert "auto_delete_audio: False\n" in out


def test_settings_rejects_unknown_injector():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["settings", "--injector", "xclip"])
