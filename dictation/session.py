"""Recording session lifecycle.

The session state lives in a lock file rather than in memory because start,
stop and status requests arrive from independent processes (the CLI, the
stdio server). Ownership is validated by checking that the recorded pid is
still alive, not by the mere existence of the file.
"""

import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import AppConfig
from .errors import AlreadyRecording, SpawnFailed
from .models import LockRecord, RecordingInfo
from .process_supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)

# Settle time after SIGKILL before checking the output file
FORCE_KILL_SETTLE_S = 0.1


class PendingLockRecord(LockRecord):
    """Lock claimed by a process that is still launching the capture."""

    pending: bool = True


class _StoredLockRecord(LockRecord):
    pending: bool = False


class RecordingSession:
    """Idle/Recording state machine backed by a durable lock record."""

    def __init__(
        self, config: AppConfig, supervisor: Optional[ProcessSupervisor] = None
    ):
        """Initialize the session controller.

        Args:
            config: The application configuration.
            supervisor: Process supervisor, created if not given.
        """
        self.recorder_config = config.recorder
        self.session_config = config.session
        self.supervisor = supervisor or ProcessSupervisor()

    @property
    def lock_file(self) -> Path:
        return self.session_config.lock_file

    def capture_command(self, filepath: Path) -> List[str]:
        """Build the pw-record command line for a recording."""
        command = [
            self.recorder_config.command,
            f"--format={self.recorder_config.format}",
            f"--rate={self.recorder_config.rate}",
            f"--channels={self.recorder_config.channels}",
        ]
        if self.recorder_config.target:
            command.append(f"--target={self.recorder_config.target}")
        command.append(str(filepath))
        return command

    def start(self) -> Path:
        """Start a new recording.

        Returns:
            Path of the audio file being recorded.

        Raises:
            AlreadyRecording: If a live recording already exists, or another
                process claimed the lock first.
            SpawnFailed: If the capture process could not be started or the
                lock file could not be created.
        """
        if self.is_recording():
            raise AlreadyRecording()

        recordings_path = self.session_config.recordings_path
        recordings_path.mkdir(parents=True, exist_ok=True)
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)

        filename = f"recording_{time.strftime('%Y%m%d_%H%M%S')}.wav"
        filepath = recordings_path / filename
        started_at = int(time.time())

        self._claim_lock(
            PendingLockRecord(pid=os.getpid(), file=filepath, started_at=started_at)
        )

        committed = False
        try:
            command = self.capture_command(filepath)
            pid = self.supervisor.spawn(command)

            # Give the process a moment to fail on bad arguments or devices
            time.sleep(self.session_config.spawn_grace_s)
            if not self.supervisor.is_alive(pid):
                raise SpawnFailed(f"{command[0]} process exited immediately.")

            self._write_lock(LockRecord(pid=pid, file=filepath, started_at=started_at))
            committed = True
        finally:
            if not committed:
                self._release_lock()

        logger.info(f"Recording started (PID {pid}): {filepath}")
        return filepath

    def stop(self) -> Optional[Path]:
        """Stop the active recording.

        Returns:
            Path of the captured audio, or None if nothing was recording or the
            capture is missing or too small to be usable.
        """
        record = self._read_live_record()
        if record is None:
            logger.debug("Stop requested but no recording is active")
            return None

        if isinstance(record, PendingLockRecord):
            logger.warning(
                f"Recording is still being started by PID {record.pid}, not stopping"
            )
            return None

        return self._terminate(record)

    def is_recording(self) -> bool:
        """Check whether a recording is active.

        Removes stale lock records and stops recordings that exceeded the
        configured maximum duration.
        """
        record = self._read_live_record()
        if record is None:
            return False

        if isinstance(record, PendingLockRecord):
            return True

        elapsed = int(time.time()) - record.started_at
        if elapsed > self.session_config.max_duration_s:
            logger.warning(
                f"Recording exceeded max duration "
                f"({elapsed}s > {self.session_config.max_duration_s}s), stopping"
            )
            self._terminate(record)
            return False

        return True

    def info(self) -> Optional[RecordingInfo]:
        """Snapshot of the active recording, or None when idle."""
        if not self.is_recording():
            return None

        record = self._read_lock()
        if record is None:
            return None

        return RecordingInfo(
            pid=record.pid,
            file=record.file,
            elapsed_seconds=max(0, int(time.time()) - record.started_at),
        )

    def _terminate(self, record: LockRecord) -> Optional[Path]:
        """Stop the capture process, release the lock and validate the output."""
        pid = record.pid
        logger.info(f"Stopping recording (PID {pid})")

        try:
            if self.supervisor.signal_graceful(pid):
                deadline = time.monotonic() + self.session_config.stop_timeout_s
                while self.supervisor.is_alive(pid) and time.monotonic() < deadline:
                    time.sleep(self.session_config.poll_interval_s)

                if self.supervisor.is_alive(pid):
                    logger.warning(
                        f"Timeout waiting for PID {pid} to exit, killing."
                    )
                    self.supervisor.signal_force(pid)
                    time.sleep(FORCE_KILL_SETTLE_S)
        except Exception:
            logger.exception(f"Error stopping capture process {pid}")
        finally:
            self._release_lock()

        filepath = record.file
        try:
            size = filepath.stat().st_size
        except OSError:
            logger.warning(f"Recording file missing: {filepath}")
            return None

        if size < self.session_config.min_capture_bytes:
            logger.warning(f"Recording too small ({size} bytes), discarding: {filepath}")
            return None

        logger.info(f"Recording stopped: {filepath} ({size} bytes)")
        return filepath

    def _read_lock(self) -> Optional[LockRecord]:
        """Read the lock record, removing it if it cannot be parsed."""
        try:
            data = self.lock_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Error reading lock file {self.lock_file}: {e}")
            return None

        try:
            record = _StoredLockRecord.model_validate_json(data)
        except ValidationError as e:
            logger.warning(f"Removing unreadable lock file {self.lock_file}: {e}")
            self._release_lock()
            return None

        fields = record.model_dump(exclude={"pending"})
        if record.pending:
            return PendingLockRecord(**fields)
        return LockRecord(**fields)

    def _read_live_record(self) -> Optional[LockRecord]:
        """Read the lock record, removing it if its process is gone."""
        record = self._read_lock()
        if record is None:
            return None

        if not self.supervisor.is_alive(record.pid):
            logger.info(f"Removing stale lock file (PID {record.pid} not running)")
            self._remove_stale(record)
            return None

        return record

    def _claim_lock(self, record: PendingLockRecord) -> None:
        """Create the lock file exclusively. The first writer wins.

        The record is written to a private file first and hard-linked into
        place, so readers never observe a half-written lock.

        Raises:
            AlreadyRecording: If the lock file already exists.
            SpawnFailed: If the lock file cannot be created at all.
        """
        tmp_path = self._tmp_path()
        try:
            tmp_path.write_text(record.model_dump_json(), encoding="utf-8")
            os.link(tmp_path, self.lock_file)
        except FileExistsError:
            raise AlreadyRecording() from None
        except OSError as e:
            raise SpawnFailed(f"Cannot create lock file {self.lock_file}: {e}") from e
        finally:
            tmp_path.unlink(missing_ok=True)

    def _write_lock(self, record: LockRecord) -> None:
        """Atomically replace the lock file contents."""
        tmp_path = self._tmp_path()
        tmp_path.write_text(record.model_dump_json(), encoding="utf-8")
        os.replace(tmp_path, self.lock_file)

    def _tmp_path(self) -> Path:
        return self.lock_file.with_name(f".{self.lock_file.name}.{os.getpid()}")

    def _release_lock(self) -> None:
        try:
            self.lock_file.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove lock file {self.lock_file}: {e}")

    def _remove_stale(self, record: LockRecord) -> None:
        # Only remove the lock if nobody replaced it in the meantime
        current = self._read_lock()
        if current is not None and current.pid == record.pid:
            self._release_lock()
