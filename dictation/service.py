"""Dictation workflow: recording, transcription and follow-up steps."""

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from .config import AppConfig
from .errors import TranscriptionFailed
from .models import (
    DictationOutcome,
    HistoryEntry,
    RecordingInfo,
    StepOutcome,
    StepStatus,
    TranscriptionResult,
    UserSettings,
)
from .output_handler import TextInjector
from .session import RecordingSession
from .store import HistoryStore, SettingsStore
from .transcriber import ModelStatus, WhisperEngine

logger = logging.getLogger(__name__)

# Size of a canonical WAV header
WAV_HEADER_BYTES = 44
# 16 kHz * 16-bit * mono = 32000 bytes/s = 32 bytes/ms
PCM_BYTES_PER_MS = 32


def estimate_duration_ms(file_size: int) -> Optional[int]:
    """Estimate audio duration from the size of a 16 kHz 16-bit mono WAV."""
    if file_size <= WAV_HEADER_BYTES:
        return None
    return (file_size - WAV_HEADER_BYTES) // PCM_BYTES_PER_MS


class DictationService:
    """Coordinates the recording session, speech engine and side effects."""

    def __init__(
        self,
        config: AppConfig,
        session: RecordingSession,
        engine: WhisperEngine,
        injector: TextInjector,
        history: HistoryStore,
        settings: SettingsStore,
    ):
        """Initialize the service.

        Args:
            config: The application configuration.
            session: Recording session controller.
            engine: Speech-to-text engine.
            injector: Text injection backend.
            history: Transcription history store.
            settings: User preference store.
        """
        self.config = config
        self.session = session
        self.engine = engine
        self.injector = injector
        self.history = history
        self.settings = settings

    @classmethod
    def from_config(cls, config: AppConfig) -> "DictationService":
        """Build the service with its default collaborators."""
        return cls(
            config,
            RecordingSession(config),
            WhisperEngine(config.whisper),
            TextInjector(config.output),
            HistoryStore(config.storage.history_file),
            SettingsStore(config.storage.settings_file),
        )

    def start_recording(self) -> Path:
        return self.session.start()

    def is_recording(self) -> bool:
        return self.session.is_recording()

    def recording_info(self) -> Optional[RecordingInfo]:
        return self.session.info()

    def stop_recording(self, inject: Optional[bool] = None) -> Optional[DictationOutcome]:
        """Stop the recording and transcribe it.

        Returns:
            The outcome, or None if no usable audio was captured.

        Raises:
            TranscriptionFailed: If the speech engine fails.
        """
        audio_file = self.session.stop()
        if audio_file is None:
            logger.warning("No audio was captured, skipping transcription.")
            return None

        return self.process(audio_file, inject=inject)

    def transcribe(
        self,
        audio_file: Path,
        model: Optional[str] = None,
        language: Optional[str] = None,
    ) -> TranscriptionResult:
        """Transcribe a file and run the configured follow-up steps.

        Raises:
            TranscriptionFailed: If the speech engine fails.
        """
        return self.process(audio_file, model=model, language=language).result

    def process(
        self,
        audio_file: Path,
        model: Optional[str] = None,
        language: Optional[str] = None,
        inject: Optional[bool] = None,
        delete_audio: Optional[bool] = None,
    ) -> DictationOutcome:
        """Transcribe a file, then persist, inject and clean up.

        Explicit arguments take precedence over stored user preferences,
        which take precedence over configured defaults. Only an engine
        failure is raised; each follow-up step fails on its own.

        Args:
            audio_file: Audio file to transcribe.
            model: Whisper model name.
            language: Language code.
            inject: Whether to inject the text into the focused window.
            delete_audio: Whether to delete the audio file afterwards.

        Raises:
            TranscriptionFailed: If the speech engine fails.
        """
        audio_file = Path(audio_file)
        prefs = self.settings.load()

        model = model or prefs.model or self.config.whisper.model
        language = language or prefs.language or self.config.whisper.language
        if inject is None:
            inject = _first_set(prefs.auto_inject, self.config.output.auto_inject)
        if delete_audio is None:
            delete_audio = _first_set(
                prefs.auto_delete_audio, self.config.storage.auto_delete_audio
            )

        result = self._run_engine(audio_file, model, language)

        steps = [
            self._run_step("persist", lambda: self.history.save(result)),
            self._run_step(
                "inject",
                lambda: self._inject(result.text, prefs),
                enabled=inject and bool(result.text.strip()),
            ),
            self._run_step(
                "delete_audio",
                lambda: self._delete_audio(audio_file),
                enabled=delete_audio,
            ),
        ]

        return DictationOutcome(result=result, steps=steps)

    def list_models(self) -> List[ModelStatus]:
        return self.engine.list_models()

    def model_exists(self, model: str) -> bool:
        return self.engine.model_exists(model)

    def download_model(self, model: str) -> Path:
        return self.engine.download_model(model)

    def delete_model(self, model: str) -> bool:
        return self.engine.delete_model(model)

    def history_entries(self, limit: Optional[int] = None) -> List[HistoryEntry]:
        return self.history.entries(limit)

    def active_model(self) -> str:
        return self.settings.load().model or self.config.whisper.model

    def user_settings(self) -> UserSettings:
        return self.settings.load()

    def update_settings(self, **changes) -> UserSettings:
        """Store new preferences, keeping the ones not given."""
        settings = self.settings.update(**changes)
        logger.info(f"Updated preferences: {', '.join(sorted(changes))}")
        return settings

    def _run_engine(self, audio_file: Path, model: str, language: str) -> TranscriptionResult:
        logger.info(f"Transcribing {audio_file} (model: {model}, language: {language})")
        started = time.perf_counter()
        try:
            transcript = self.engine.transcribe(audio_file, model, language)
        except TranscriptionFailed:
            raise
        except Exception as e:
            logger.exception("Speech engine failed")
            raise TranscriptionFailed(f"Transcription failed: {e}") from e
        processing_ms = int((time.perf_counter() - started) * 1000)

        result = TranscriptionResult(
            text=transcript.text,
            segments=transcript.segments,
            source_audio_file=audio_file,
            model=model,
            language=language,
            duration_ms=estimate_duration_ms(transcript.file_size),
            processing_ms=processing_ms,
        )
        logger.info(
            f"Transcribed [{language}] in {processing_ms}ms: {result.text[:100]}"
        )
        return result

    def _run_step(
        self, name: str, action: Callable[[], object], enabled: bool = True
    ) -> StepOutcome:
        if not enabled:
            logger.debug(f"Step '{name}' skipped")
            return StepOutcome(step=name, status=StepStatus.SKIPPED)

        try:
            succeeded = action()
        except Exception as e:
            logger.exception(f"Step '{name}' failed")
            return StepOutcome(step=name, status=StepStatus.FAILED, error=str(e))

        if succeeded is False:
            logger.warning(f"Step '{name}' did not complete")
            return StepOutcome(step=name, status=StepStatus.FAILED)

        logger.debug(f"Step '{name}' completed")
        return StepOutcome(step=name, status=StepStatus.OK)

    def _inject(self, text: str, prefs: UserSettings) -> bool:
        if not self.injector.is_available(prefs.injector):
            logger.warning("Text injection tools are not installed")
            return False
        return self.injector.inject(text, injector=prefs.injector)

    def _delete_audio(self, audio_file: Path) -> bool:
        if not audio_file.exists():
            return True
        audio_file.unlink()
        logger.debug(f"Deleted audio file {audio_file}")
        return True


def _first_set(*values: Optional[bool]) -> bool:
    for value in values:
        if value is not None:
            return value
    return False
