"""Value types shared by the recording, transcription and storage layers."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Segment(BaseModel):
    """A timed span of transcribed text."""

    model_config = ConfigDict(frozen=True)

    start: float = Field(description="Segment start time in seconds.")
    end: float = Field(description="Segment end time in seconds.")
    text: str


class TranscriptionResult(BaseModel):
    """Result of transcribing one audio file."""

    model_config = ConfigDict(frozen=True)

    text: str
    segments: List[Segment] = Field(default_factory=list)
    source_audio_file: Path
    model: str
    language: str
    duration_ms: Optional[int] = Field(
        default=None, description="Audio duration estimated from the file size."
    )
    processing_ms: int = Field(
        default=0, description="Wall time spent in the speech engine."
    )

    def __str__(self) -> str:
        return self.text


class LockRecord(BaseModel):
    """Durable marker for the single active recording session."""

    pid: int
    file: Path
    started_at: int = Field(description="Epoch seconds when recording started.")


class RecordingInfo(BaseModel):
    """Read-only snapshot of the active recording."""

    pid: int
    file: Path
    elapsed_seconds: int


class StepStatus(str, Enum):
    """Outcome of a post-transcription step."""

    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


class StepOutcome(BaseModel):
    """Outcome of a single best-effort step after transcription."""

    step: str
    status: StepStatus
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.OK


class DictationOutcome(BaseModel):
    """A transcription result along with the outcome of every follow-up step."""

    result: TranscriptionResult
    steps: List[StepOutcome] = Field(default_factory=list)

    def step(self, name: str) -> Optional[StepOutcome]:
        for outcome in self.steps:
            if outcome.step == name:
                return outcome
        return None

    @property
    def injected(self) -> bool:
        outcome = self.step("inject")
        return outcome is not None and outcome.succeeded


class HistoryEntry(TranscriptionResult):
    """A transcription as stored in the history file."""

    created_at: datetime = Field(default_factory=datetime.now)
    injected: bool = False


class UserSettings(BaseModel):
    """Stored user preferences. Unset fields fall back to configuration."""

    model: Optional[str] = None
    language: Optional[str] = None
    injector: Optional[str] = None
    auto_inject: Optional[bool] = None
    auto_delete_audio: Optional[bool] = None
