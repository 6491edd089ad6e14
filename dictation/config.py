"""Configuration handling for dictation."""

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def get_default_config_path() -> Path:
    """Get the default config file path following XDG spec."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base_dir = Path(xdg_config)
    else:
        base_dir = Path.home() / ".config"

    return base_dir / "dictation" / "config.toml"


def get_default_state_dir() -> Path:
    """Get the directory for runtime state (lock record, recordings)."""
    xdg_state = os.environ.get("XDG_STATE_HOME")
    if xdg_state:
        base_dir = Path(xdg_state)
    else:
        base_dir = Path.home() / ".local" / "state"

    return base_dir / "dictation"


def get_default_data_dir() -> Path:
    """Get the directory for persistent data (models, history, settings)."""
    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        base_dir = Path(xdg_data)
    else:
        base_dir = Path.home() / ".local" / "share"

    return base_dir / "dictation"


class RecorderConfig(BaseModel):
    """Capture process configuration."""

    command: str = Field(
        default="pw-record", description="Capture binary (PipeWire's pw-record)."
    )
    rate: int = Field(default=16000, gt=0, description="Sample rate in Hz.")
    channels: int = Field(default=1, ge=1, description="Number of channels.")
    format: str = Field(default="s16", description="Sample format.")
    target: Optional[str] = Field(
        default=None, description="Optional PipeWire node to record from."
    )


class SessionConfig(BaseModel):
    """Recording session lifecycle configuration."""

    recordings_path: Path = Field(
        default_factory=lambda: get_default_state_dir() / "recordings",
        description="Directory where recordings are written.",
    )
    lock_file: Path = Field(
        default_factory=lambda: get_default_state_dir() / "recording.lock",
        description="Lock record identifying the active recording.",
    )
    max_duration_s: int = Field(
        default=300, gt=0, description="Safety limit for a single recording (s)."
    )
    min_capture_bytes: int = Field(
        default=100,
        ge=0,
        description="Recordings smaller than this are treated as truncated.",
    )
    spawn_grace_s: float = Field(
        default=0.2, ge=0, description="Delay before verifying the capture started."
    )
    stop_timeout_s: float = Field(
        default=2.0, ge=0, description="How long to wait for a graceful stop."
    )
    poll_interval_s: float = Field(
        default=0.05, gt=0, description="Liveness poll interval while stopping."
    )


class WhisperConfig(BaseModel):
    """Whisper model configuration."""

    model: str = Field(
        default="base.en",
        description="Whisper model identifier (e.g., base.en, small.en).",
    )
    language: str = Field(default="en", description="Language code.")
    models_path: Path = Field(
        default_factory=lambda: get_default_data_dir() / "models",
        description="Directory where whisper models are stored.",
    )
    device: str = Field(
        default="auto", description="Device for inference (auto, cpu, cuda)."
    )
    compute_type: str = Field(
        default="auto",
        description="Compute type for inference (auto, float32, float16, int8).",
    )
    cpu_threads: int = Field(
        default=4, ge=0, description="Number of CPU threads for inference (0 = auto)."
    )
    beam_size: int = Field(
        default=5,
        ge=1,
        description="Beam size for search (1-10, higher is slower but more accurate).",
    )

    @field_validator("model")
    @classmethod
    def check_model_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Whisper model identifier cannot be empty")
        return v


InjectorName = Literal["wl-paste", "wtype", "ydotool", "xdotool", "auto"]


class OutputConfig(BaseModel):
    """Text injection configuration."""

    injector: InjectorName = Field(
        default="wl-paste",
        description="Backend used to inject text into the focused window.",
    )
    keyboard_command: Optional[str] = Field(
        default=None,
        description="Custom command receiving the text on stdin; overrides injector.",
    )
    auto_inject: bool = Field(
        default=True, description="Inject transcribed text automatically."
    )
    timeout_s: float = Field(
        default=5.0, gt=0, description="Timeout for each injection command (s)."
    )


class StorageConfig(BaseModel):
    """History and preference storage configuration."""

    history_file: Path = Field(
        default_factory=lambda: get_default_data_dir() / "history.jsonl",
        description="Append-only transcription history.",
    )
    settings_file: Path = Field(
        default_factory=lambda: get_default_data_dir() / "settings.json",
        description="Stored user preferences.",
    )
    auto_delete_audio: bool = Field(
        default=True, description="Delete recordings after transcription."
    )


class DaemonConfig(BaseModel):
    """Server runtime configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).",
    )
    log_file: Optional[Path] = Field(
        default=None, description="Optional log file path."
    )

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in allowed_levels:
            raise ValueError(f"Invalid log level. Choose from {allowed_levels}")
        return upper_v


class AppConfig(BaseModel):
    """Root configuration."""

    recorder: RecorderConfig = Field(default_factory=RecorderConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    whisper: WhisperConfig = Field(default_factory=WhisperConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``whisper.model``.

        Args:
            key: Dotted path of section and field names.
            default: Value returned when any part of the path is missing.
        """
        value: Any = self
        for part in key.split("."):
            if not isinstance(value, BaseModel) or part not in type(value).model_fields:
                return default
            value = getattr(value, part)
        return value


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration.

    If path is not provided, looks for config in standard locations.
    If no config file is found, returns default configuration.

    Args:
        path: Optional path to config file.

    Returns:
        Validated AppConfig instance.

    Raises:
        ValueError: If config file exists but has invalid format/content.
        OSError: If config file exists but can't be read.
    """
    if path is None:
        path = get_default_config_path()

    if not path.exists():
        return AppConfig()  # Use defaults

    try:
        with open(path, "rb") as f:
            config_data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Error decoding TOML file: {path}\n{e}") from e
    except OSError as e:
        raise OSError(f"Error reading file: {path}\n{e}") from e

    try:
        return AppConfig(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
