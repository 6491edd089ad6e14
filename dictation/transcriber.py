"""Speech-to-text engine using faster-whisper."""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from faster_whisper import WhisperModel, available_models, download_model

from .config import WhisperConfig
from .errors import ModelNotFound, TranscriptionFailed
from .models import Segment

logger = logging.getLogger(__name__)

# faster-whisper stores the CTranslate2 weights in this file
MODEL_WEIGHTS_FILE = "model.bin"


@dataclass
class EngineTranscript:
    """Raw engine output before it is wrapped into a TranscriptionResult."""

    text: str
    segments: List[Segment] = field(default_factory=list)
    file_size: int = 0


@dataclass
class ModelStatus:
    """Installation status of a whisper model."""

    name: str
    installed: bool
    path: Optional[Path] = None
    size: Optional[int] = None


class WhisperEngine:
    """Transcribes audio files and manages locally installed whisper models."""

    def __init__(self, config: WhisperConfig):
        """Initialize the engine.

        Args:
            config: Whisper configuration.
        """
        self.whisper_config = config
        self.models_path = config.models_path

        # Loaded models, kept for the lifetime of a long-running server
        self._models: Dict[str, WhisperModel] = {}

    def model_path(self, model: str) -> Path:
        return self.models_path / model

    def model_exists(self, model: str) -> bool:
        return (self.model_path(model) / MODEL_WEIGHTS_FILE).is_file()

    def list_models(self) -> List[ModelStatus]:
        """List the known whisper models and whether each is installed."""
        statuses = []
        for name in available_models():
            path = self.model_path(name)
            installed = self.model_exists(name)
            size = None
            if installed:
                size = sum(f.stat().st_size for f in path.rglob("*") if f.is_file())
            statuses.append(
                ModelStatus(
                    name=name,
                    installed=installed,
                    path=path if installed else None,
                    size=size,
                )
            )
        return statuses

    def download_model(self, model: str) -> Path:
        """Download a model into the models directory.

        Raises:
            ModelNotFound: If the name is not a known whisper model.
        """
        if model not in available_models():
            raise ModelNotFound(model, f"Unknown whisper model '{model}'.")

        output_dir = self.model_path(model)
        output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Downloading whisper model '{model}' to {output_dir}")
        return Path(download_model(model, output_dir=str(output_dir)))

    def delete_model(self, model: str) -> bool:
        """Delete an installed model. Returns False if it was not installed."""
        path = self.model_path(model)
        if not path.is_dir():
            return False

        self._models.pop(model, None)
        shutil.rmtree(path)
        logger.info(f"Deleted whisper model '{model}'")
        return True

    def _load_model(self, model: str) -> WhisperModel:
        if model in self._models:
            return self._models[model]

        if not self.model_exists(model):
            raise ModelNotFound(
                model,
                f"Whisper model '{model}' not found. "
                f"Run: dictation model download {model}",
            )

        logger.info(
            f"Loading Whisper model '{model}' "
            f"(Device: {self.whisper_config.device}, "
            f"Compute: {self.whisper_config.compute_type}, "
            f"CPU threads: {self.whisper_config.cpu_threads})"
        )
        whisper_model = WhisperModel(
            str(self.model_path(model)),
            device=self.whisper_config.device,
            compute_type=self.whisper_config.compute_type,
            cpu_threads=self.whisper_config.cpu_threads,
            local_files_only=True,
        )
        self._models[model] = whisper_model
        logger.info("Whisper model loaded successfully")
        return whisper_model

    def transcribe(self, audio_file: Path, model: str, language: str) -> EngineTranscript:
        """Transcribe an audio file.

        Args:
            audio_file: Path to the audio file.
            model: Whisper model name.
            language: Language code.

        Raises:
            ModelNotFound: If the model is not installed.
            TranscriptionFailed: If decoding or inference fails.
        """
        whisper_model = self._load_model(model)

        try:
            segments_generator, info = whisper_model.transcribe(
                str(audio_file),
                language=language or None,
                beam_size=self.whisper_config.beam_size,
            )
            segments = [
                Segment(start=seg.start, end=seg.end, text=seg.text)
                for seg in segments_generator
            ]
            file_size = Path(audio_file).stat().st_size
        except Exception as e:
            logger.exception("Error during transcription")
            raise TranscriptionFailed(f"Transcription failed: {e}") from e

        text = "".join(seg.text for seg in segments).strip()
        logger.debug(
            f"Transcribed {len(segments)} segments "
            f"[{info.language}] from {audio_file}"
        )
        return EngineTranscript(text=text, segments=segments, file_size=file_size)
