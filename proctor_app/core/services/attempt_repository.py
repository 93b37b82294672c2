"""Storage for attempts.

The store is where the cross-request invariants live: at most one in-progress
attempt per (user, quiz) and compare-and-swap saves, so that when two requests
race on the same attempt exactly one of them wins.
"""

from __future__ import annotations

from dataclasses import replace
from threading import Lock
from typing import Iterable, Protocol
from uuid import uuid4

from proctor_app.core.errors import ConflictError, DuplicateAttemptError, NotFoundError
from proctor_app.core.models import Attempt, AttemptStatus


class AttemptStore(Protocol):
    def insert(self, attempt: Attempt) -> Attempt: ...

    def find(self, attempt_id: str) -> Attempt | None: ...

    def get(self, attempt_id: str) -> Attempt: ...

    def find_in_progress(self, user_id: str, quiz_id: str) -> Attempt | None: ...

    def find_latest(self, user_id: str, quiz_id: str) -> Attempt | None: ...

    def list_for_quiz(self, quiz_id: str, statuses: Iterable[AttemptStatus]) -> list[Attempt]: ...

    def list_by_status(self, status: AttemptStatus) -> list[Attempt]: ...

    def save(self, attempt: Attempt, expected_status: AttemptStatus | None = None) -> Attempt: ...


class AttemptRepository:
    """In-memory attempt store."""

    def __init__(self) -> None:
        self._attempts: dict[str, Attempt] = {}
        self._order: list[str] = []
        self._lock = Lock()

    def insert(self, attempt: Attempt) -> Attempt:
        if not attempt.id:
            attempt = replace(attempt, id=uuid4().hex)
        with self._lock:
            if attempt.status is AttemptStatus.IN_PROGRESS and self._in_progress_locked(
                attempt.user_id, attempt.quiz_id
            ):
                raise DuplicateAttemptError(
                    "You already have an in-progress attempt for this quiz"
                )
            if attempt.id in self._attempts:
                raise ConflictError(f"Attempt {attempt.id} already exists.")
            stored = replace(attempt, version=1)
            self._attempts[stored.id] = stored
            self._order.append(stored.id)
            return stored

    def find(self, attempt_id: str) -> Attempt | None:
        with self._lock:
            return self._attempts.get(attempt_id)

    def get(self, attempt_id: str) -> Attempt:
        attempt = self.find(attempt_id)
        if attempt is None:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        return attempt

    def find_in_progress(self, user_id: str, quiz_id: str) -> Attempt | None:
        with self._lock:
            return self._in_progress_locked(user_id, quiz_id)

    def find_latest(self, user_id: str, quiz_id: str) -> Attempt | None:
        with self._lock:
            for attempt_id in reversed(self._order):
                attempt = self._attempts[attempt_id]
                if attempt.user_id == user_id and attempt.quiz_id == quiz_id:
                    return attempt
            return None

    def list_for_quiz(self, quiz_id: str, statuses: Iterable[AttemptStatus]) -> list[Attempt]:
        wanted = set(statuses)
        with self._lock:
            return [
                self._attempts[attempt_id]
                for attempt_id in self._order
                if self._attempts[attempt_id].quiz_id == quiz_id
                and self._attempts[attempt_id].status in wanted
            ]

    def list_by_status(self, status: AttemptStatus) -> list[Attempt]:
        with self._lock:
            return [
                self._attempts[attempt_id]
                for attempt_id in self._order
                if self._attempts[attempt_id].status is status
            ]

    def save(self, attempt: Attempt, expected_status: AttemptStatus | None = None) -> Attempt:
        """Store ``attempt`` if the stored copy still has the version it was read at.

        ``expected_status`` additionally pins the stored status, mirroring a
        status filter on a document update.
        """
        with self._lock:
            current = self._attempts.get(attempt.id)
            if current is None:
                raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
            if current.version != attempt.version:
                raise ConflictError(
                    "Attempt was modified by another request.", code="CONCURRENT_MODIFICATION"
                )
            if expected_status is not None and current.status is not expected_status:
                raise ConflictError(
                    f"Attempt is {current.status.value}, expected {expected_status.value}."
                )
            stored = replace(attempt, version=attempt.version + 1)
            self._attempts[stored.id] = stored
            return stored

    def _in_progress_locked(self, user_id: str, quiz_id: str) -> Attempt | None:
        for attempt in self._attempts.values():
            if (
                attempt.user_id == user_id
                and attempt.quiz_id == quiz_id
                and attempt.status is AttemptStatus.IN_PROGRESS
            ):
                return attempt
        return None
