"""Storage for quiz definitions."""

from __future__ import annotations

from dataclasses import replace
from threading import Lock
from typing import Protocol
from uuid import uuid4

from proctor_app.core.errors import ConflictError, NotFoundError
from proctor_app.core.models import Quiz
from proctor_app.core.quiz_validator import ensure_valid_quiz


class QuizStore(Protocol):
    def find(self, quiz_id: str) -> Quiz | None: ...

    def get(self, quiz_id: str) -> Quiz: ...

    def list_all(self) -> list[Quiz]: ...

    def save(self, quiz: Quiz) -> Quiz: ...


class QuizRepository:
    """In-memory quiz store; validates on write and version-checks every save."""

    def __init__(self) -> None:
        self._quizzes: dict[str, Quiz] = {}
        self._lock = Lock()

    def add(self, quiz: Quiz) -> Quiz:
        """Validate and store a new quiz, assigning an id when it has none."""
        prepared = ensure_valid_quiz(quiz)
        if not prepared.id:
            prepared = replace(prepared, id=uuid4().hex)
        with self._lock:
            if prepared.id in self._quizzes:
                raise ConflictError(f"Quiz {prepared.id} already exists.")
            stored = replace(prepared, version=1)
            self._quizzes[stored.id] = stored
            return stored

    def find(self, quiz_id: str) -> Quiz | None:
        with self._lock:
            return self._quizzes.get(quiz_id)

    def get(self, quiz_id: str) -> Quiz:
        quiz = self.find(quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found", code="QUIZ_NOT_FOUND")
        return quiz

    def list_all(self) -> list[Quiz]:
        with self._lock:
            return list(self._quizzes.values())

    def save(self, quiz: Quiz) -> Quiz:
        """Replace the stored quiz if nobody saved it since ``quiz`` was read."""
        ensure_valid_quiz(quiz)
        with self._lock:
            current = self._quizzes.get(quiz.id)
            if current is None:
                raise NotFoundError("Quiz not found", code="QUIZ_NOT_FOUND")
            if current.version != quiz.version:
                raise ConflictError(
                    "Quiz was modified by another request.", code="CONCURRENT_MODIFICATION"
                )
            stored = replace(quiz, version=quiz.version + 1)
            self._quizzes[stored.id] = stored
            return stored
