"""Shared fixtures."""

import pytest

from dictation.config import AppConfig, OutputConfig, SessionConfig, StorageConfig, WhisperConfig


@pytest.fixture
def config(tmp_path):
    """Create a test config with all paths under tmp_path."""
    return AppConfig(
        session=SessionConfig(
            recordings_path=tmp_path / "recordings",
            lock_file=tmp_path / "state" / "recording.lock",
            spawn_grace_s=0.1,
            stop_timeout_s=1.0,
            poll_interval_s=0.02,
        ),
        whisper=WhisperConfig(models_path=tmp_path / "models", cpu_threads=1),
        output=OutputConfig(auto_inject=False),
        storage=StorageConfig(
            history_file=tmp_path / "data" / "history.jsonl",
            settings_file=tmp_path / "data" / "settings.json",
            auto_delete_audio=False,
        ),
    )
