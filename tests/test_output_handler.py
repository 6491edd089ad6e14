"""Tests for text injection."""

import subprocess
from unittest.mock import call, patch

import pytest

from dictation.config import OutputConfig
from dictation.output_handler import TextInjector, get_session_type, run_output_command


def completed(returncode=0, stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=b"", stderr=stderr)


@pytest.fixture
def mock_run():
    with patch("dictation.output_handler.subprocess.run", return_value=completed()) as run:
        yield run


def test_session_type(monkeypatch):
    monkeypatch.setenv("XDG_SESSION_TYPE", "Wayland")
    assert get_session_type() == "wayland"
    monkeypatch.setenv("XDG_SESSION_TYPE", "x11")
    assert get_session_type() == "x11"
    monkeypatch.delenv("XDG_SESSION_TYPE")
    assert get_session_type() == "unknown"


def test_run_output_command_success(mock_run):
    success, error = run_output_command(["wtype", "--", "hi"], timeout=1.0)

    assert success is True
    assert error is None
    mock_run.assert_called_once_with(
        ["wtype", "--", "hi"],
        shell=False,
        input=None,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        timeout=1.0,
    )


def test_run_output_command_failure(mock_run):
    mock_run.return_value = completed(returncode=1, stderr=b"test error")

    success, error = run_output_command(["wtype", "--", "hi"])

    assert success is False
    assert "Command failed with code 1" in error
    assert "test error" in error


def test_run_output_command_not_found(mock_run):
    mock_run.side_effect = FileNotFoundError()

    success, error = run_output_command(["wtype", "--", "hi"])

    assert success is False
    assert "Command not found" in error


def test_run_output_command_timeout(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="wtype", timeout=0.1)

    success, error = run_output_command(["wtype", "--", "hi"], timeout=0.1)

    assert success is False
    assert "timed out" in error


def test_inject_wtype(mock_run):
    injector = TextInjector(OutputConfig(injector="wtype"))

    assert injector.inject("test text") is True
    assert mock_run.call_args.args[0] == ["wtype", "--", "test text"]


def test_inject_clipboard_then_paste(mock_run):
    injector = TextInjector(OutputConfig(injector="wl-paste"))

    with patch("dictation.output_handler.time.sleep"):
        assert injector.inject("test text") is True

    assert [c.args[0] for c in mock_run.call_args_list] == [
        ["wl-copy"],
        ["xdotool", "key", "ctrl+v"],
    ]
    assert mock_run.call_args_list[0].kwargs["input"] == b"test text"
    assert mock_run.call_args_list[0].kwargs["stdout"] == subprocess.DEVNULL


def test_inject_clipboard_copy_fails(mock_run):
    mock_run.return_value = completed(returncode=1)
    injector = TextInjector(OutputConfig(injector="wl-paste"))

    assert injector.inject("test text") is False
    mock_run.assert_called_once()


def test_inject_override_backend(mock_run):
    injector = TextInjector(OutputConfig(injector="wtype"))

    assert injector.inject("hi", injector="ydotool") is True
    assert mock_run.call_args.args[0] == ["ydotool", "type", "--", "hi"]


def test_inject_auto(mock_run, monkeypatch):
    monkeypatch.setenv("XDG_SESSION_TYPE", "x11")
    injector = TextInjector(OutputConfig(injector="auto"))

    assert injector.inject("hi") is True
    assert mock_run.call_args.args[0] == ["xdotool", "type", "--delay", "0", "--", "hi"]


def test_inject_auto_unknown_session(mock_run, monkeypatch):
    monkeypatch.delenv("XDG_SESSION_TYPE", raising=False)
    injector = TextInjector(OutputConfig(injector="auto"))

    with pytest.raises(ValueError, match="session type"):
        injector.inject("hi")


def test_inject_custom_command(mock_run):
    injector = TextInjector(OutputConfig(keyboard_command="my-typer --fast"))

    assert injector.inject("hi") is True
    mock_run.assert_called_once()
    assert mock_run.call_args.args[0] == "my-typer --fast"
    assert mock_run.call_args.kwargs["shell"] is True
    assert mock_run.call_args.kwargs["input"] == b"hi"


def test_inject_empty_text(mock_run):
    injector = TextInjector(OutputConfig())

    assert injector.inject("   ") is False
    mock_run.assert_not_called()


def test_inject_unknown_backend(mock_run):
    injector = TextInjector(OutputConfig())

    with pytest.raises(ValueError, match="Unknown injector"):
        injector.inject("hi", injector="telepathy")


def test_is_available():
    injector = TextInjector(OutputConfig(injector="wl-paste"))

    with patch("dictation.output_handler.shutil.which", return_value="/usr/bin/x") as which:
        assert injector.is_available() is True
    assert which.call_args_list == [call("wl-copy"), call("xdotool")]

    with patch("dictation.output_handler.shutil.which", return_value=None):
        assert injector.is_available() is False
