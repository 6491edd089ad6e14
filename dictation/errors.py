"""Error types raised by dictation components."""


class DictationError(Exception):
    """Base class for recoverable, user-facing dictation errors."""


class AlreadyRecording(DictationError):
    """A live recording session already owns the lock record."""

    def __init__(self, message: str = "Recording already in progress."):
        super().__init__(message)


class SpawnFailed(DictationError):
    """The capture process could not be launched or exited immediately."""


class TranscriptionFailed(DictationError):
    """The speech engine failed to transcribe an audio file."""


class ModelNotFound(TranscriptionFailed):
    """The requested whisper model is unknown or not downloaded."""

    def __init__(self, model: str, message: str = ""):
        self.model = model
        super().__init__(message or f"Whisper model '{model}' not found.")


class ToolNotFound(DictationError):
    """No tool with the requested name is registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class UnknownMethod(DictationError):
    """The JSON-RPC method is outside the supported set."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Method not found: {method}")
