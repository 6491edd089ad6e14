"""File-backed transcription history and user preferences."""

import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .models import HistoryEntry, TranscriptionResult, UserSettings

logger = logging.getLogger(__name__)


class HistoryStore:
    """Append-only transcription history stored as JSON lines."""

    def __init__(self, path: Path):
        self.path = path

    def save(self, result: TranscriptionResult) -> HistoryEntry:
        """Append a transcription to the history.

        Raises:
            OSError: If the history file cannot be written.
        """
        entry = HistoryEntry(**result.model_dump())
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Single write per entry; O_APPEND keeps concurrent writers line-atomic
        line = entry.model_dump_json() + "\n"
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)

        logger.debug(f"Saved transcription to history: {self.path}")
        return entry

    def entries(self, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Return stored entries, newest first."""
        if not self.path.exists():
            return []

        entries = []
        with open(self.path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(HistoryEntry.model_validate_json(line))
                except ValidationError as e:
                    logger.warning(f"Skipping invalid history line {lineno}: {e}")

        entries.reverse()
        if limit is not None:
            entries = entries[:limit]
        return entries


class SettingsStore:
    """User preferences stored as a single JSON document."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> UserSettings:
        """Load preferences. Missing or invalid files yield empty preferences."""
        try:
            data = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return UserSettings()
        except OSError as e:
            logger.error(f"Error reading settings file {self.path}: {e}")
            return UserSettings()

        try:
            return UserSettings.model_validate_json(data)
        except ValidationError as e:
            logger.warning(f"Ignoring invalid settings file {self.path}: {e}")
            return UserSettings()

    def save(self, settings: UserSettings) -> None:
        """Replace the stored preferences."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{os.getpid()}")
        tmp_path.write_text(
            settings.model_dump_json(exclude_none=True, indent=2), encoding="utf-8"
        )
        os.replace(tmp_path, self.path)

    def update(self, **changes) -> UserSettings:
        """Update individual preferences and persist them."""
        settings = UserSettings(**{**self.load().model_dump(), **changes})
        self.save(settings)
        return settings
