"""Re-applies a quiz's negative-marking policy to its finished attempts.

Triggered whenever negative marking is switched or its penalty changes.
Correctness and positive scores are kept as graded; only penalties and totals
move. Running it twice in a row updates nothing the second time.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging

from proctor_app.core.answer_grader import negative_score_for, total_score
from proctor_app.core.models import Attempt, AttemptStatus, Quiz, Requester
from proctor_app.core.services.access_policy import ensure_admin
from proctor_app.core.services.attempt_repository import AttemptStore
from proctor_app.core.services.quiz_repository import QuizStore

logger = logging.getLogger(__name__)

RECALCULATED_STATUSES = (AttemptStatus.SUBMITTED, AttemptStatus.REVIEWED)


@dataclass(slots=True, frozen=True)
class RecalculationFailure:
    attempt_id: str
    error: str


@dataclass(slots=True, frozen=True)
class RecalculationReport:
    quiz_id: str
    processed: int
    updated: int
    negative_marking_enabled: bool
    penalty_value: float
    failures: tuple[RecalculationFailure, ...] = ()


def rescore_attempt(attempt: Attempt, quiz: Quiz) -> Attempt | None:
    """Return ``attempt`` with penalties recomputed, or ``None`` if nothing changes."""
    changed = attempt.negative_marking_applied != quiz.negative_marking.enabled
    answers = []
    for answer in attempt.answers:
        question = quiz.get_question(answer.question_id)
        if question is None:
            answers.append(answer)
            continue
        penalty = negative_score_for(question.type, answer.is_correct, quiz.negative_marking)
        if penalty != (answer.negative_score or 0.0):
            changed = True
            answer = replace(answer, negative_score=penalty)
        answers.append(answer)

    if not changed:
        return None
    return replace(
        attempt,
        answers=tuple(answers),
        negative_marking_applied=quiz.negative_marking.enabled,
        total_score=total_score(answers),
    )


class ScoreRecalculator:
    """Walks every finished attempt of a quiz and persists changed scores."""

    def __init__(self, quizzes: QuizStore, attempts: AttemptStore) -> None:
        self._quizzes = quizzes
        self._attempts = attempts

    def recalculate_quiz(self, quiz_id: str, requester: Requester) -> RecalculationReport:
        ensure_admin(requester)
        return self.recalculate(self._quizzes.get(quiz_id))

    def recalculate(self, quiz: Quiz) -> RecalculationReport:
        attempts = self._attempts.list_for_quiz(quiz.id, RECALCULATED_STATUSES)
        updated = 0
        failures: list[RecalculationFailure] = []
        for attempt in attempts:
            try:
                rescored = rescore_attempt(attempt, quiz)
                if rescored is None:
                    continue
                self._attempts.save(rescored, expected_status=attempt.status)
                updated += 1
            except Exception as exc:
                logger.exception("Failed to recalculate attempt %s", attempt.id)
                failures.append(RecalculationFailure(attempt_id=attempt.id, error=str(exc)))

        logger.info(
            "Recalculated quiz %s: %d processed, %d updated, %d failed",
            quiz.id,
            len(attempts),
            updated,
            len(failures),
        )
        return RecalculationReport(
            quiz_id=quiz.id,
            processed=len(attempts),
            updated=updated,
            negative_marking_enabled=quiz.negative_marking.enabled,
            penalty_value=quiz.negative_marking.penalty_value,
            failures=tuple(failures),
        )
