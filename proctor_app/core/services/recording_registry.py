"""Tracks proctoring recordings attached to attempts.

Capturing and uploading media happens elsewhere; this registry only owns the
recording lifecycle (recording -> processing -> available | error) so that
submission can close any capture still running.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from threading import Lock
from typing import Protocol
from uuid import uuid4

from proctor_app.core.errors import ConflictError, NotFoundError, ValidationError
from proctor_app.core.models import Recording, RecordingStatus, RecordingType
from proctor_app.utils.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)

FINISHED_STATUSES = frozenset({RecordingStatus.AVAILABLE, RecordingStatus.ERROR})


class RecordingCollaborator(Protocol):
    def start(self, attempt_id: str, user_id: str, recording_type: RecordingType) -> Recording: ...

    def stop_active_recordings(self, attempt_id: str) -> int: ...


class RecordingRegistry:
    """In-memory recording store."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._recordings: dict[str, Recording] = {}
        self._lock = Lock()
        self._clock = clock

    def start(self, attempt_id: str, user_id: str, recording_type: RecordingType) -> Recording:
        recording = Recording(
            id=uuid4().hex,
            attempt_id=attempt_id,
            user_id=user_id,
            type=recording_type,
            start_time=self._clock(),
        )
        with self._lock:
            self._recordings[recording.id] = recording
        return recording

    def get(self, recording_id: str) -> Recording:
        with self._lock:
            recording = self._recordings.get(recording_id)
        if recording is None:
            raise NotFoundError("Recording not found", code="RECORDING_NOT_FOUND")
        return recording

    def stop(self, recording_id: str) -> Recording:
        with self._lock:
            recording = self._recordings.get(recording_id)
            if recording is None:
                raise NotFoundError("Recording not found", code="RECORDING_NOT_FOUND")
            if recording.status is not RecordingStatus.RECORDING:
                raise ConflictError("Recording is not active.")
            stopped = self._to_processing(recording)
            self._recordings[recording_id] = stopped
            return stopped

    def mark(self, recording_id: str, status: RecordingStatus) -> Recording:
        """Finish processing: move a ``processing`` recording to ``available`` or ``error``."""
        if status not in FINISHED_STATUSES:
            raise ValidationError(f"Recording cannot be marked {status.value}", code="INVALID_RECORDING_STATUS")
        with self._lock:
            recording = self._recordings.get(recording_id)
            if recording is None:
                raise NotFoundError("Recording not found", code="RECORDING_NOT_FOUND")
            if recording.status is not RecordingStatus.PROCESSING:
                raise ConflictError("Recording is not being processed.")
            updated = replace(recording, status=status)
            logger.info("Recording %s is %s", recording_id, status.value)
            self._recordings[recording_id] = updated
            return updated

    def stop_active_recordings(self, attempt_id: str) -> int:
        """Move every still-running recording of the attempt to ``processing``."""
        stopped = 0
        with self._lock:
            for recording_id, recording in self._recordings.items():
                if recording.attempt_id == attempt_id and recording.status is RecordingStatus.RECORDING:
                    self._recordings[recording_id] = self._to_processing(recording)
                    stopped += 1
        if stopped:
            logger.info("Stopped %d active recording(s) for attempt %s", stopped, attempt_id)
        return stopped

    def list_for_attempt(self, attempt_id: str) -> list[Recording]:
        with self._lock:
            return sorted(
                (r for r in self._recordings.values() if r.attempt_id == attempt_id),
                key=lambda r: r.start_time,
            )

    def _to_processing(self, recording: Recording) -> Recording:
        return replace(recording, status=RecordingStatus.PROCESSING, end_time=self._clock())
