"""Manual grading of finished attempts by administrators."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Iterable

from proctor_app.core.answer_grader import total_score
from proctor_app.core.errors import ConflictError, NotFoundError, ValidationError
from proctor_app.core.models import Answer, Attempt, AttemptStatus, Requester
from proctor_app.core.services.access_policy import ensure_admin
from proctor_app.core.services.attempt_repository import AttemptStore
from proctor_app.core.services.quiz_repository import QuizStore
from proctor_app.core.services.result_visibility import requires_manual_review
from proctor_app.utils.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)

GRADABLE_STATUSES = frozenset(
    {AttemptStatus.SUBMITTED, AttemptStatus.TIME_UP, AttemptStatus.REVIEWED}
)


class BatchAction(str, Enum):
    MARK_REVIEWED = "mark-reviewed"
    UNREVIEW = "unreview"


@dataclass(slots=True, frozen=True)
class AnswerGradeUpdate:
    """Manual grade for one answer; ``None`` fields are left as they are."""

    question_id: str
    score: float | None = None
    negative_score: float | None = None
    is_correct: bool | None = None
    feedback: str | None = None


@dataclass(slots=True, frozen=True)
class BatchResult:
    matched: int
    modified: int


class ReviewService:
    """Review transitions: grade, complete, unreview, in bulk or one by one."""

    def __init__(self, quizzes: QuizStore, attempts: AttemptStore, clock: Clock = utc_now) -> None:
        self._quizzes = quizzes
        self._attempts = attempts
        self._clock = clock

    def review_attempt(
        self,
        attempt_id: str,
        reviewer: Requester,
        updates: Iterable[AnswerGradeUpdate],
    ) -> Attempt:
        """Apply manual grades and mark the attempt reviewed."""
        ensure_admin(reviewer)
        attempt = self._gradable(attempt_id)
        answers = attempt.answers
        for update in updates:
            answers = _apply_update(answers, update)

        reviewed = replace(
            attempt,
            answers=answers,
            total_score=total_score(answers),
            status=AttemptStatus.REVIEWED,
            reviewed_by=reviewer.user_id,
            reviewed_at=self._clock(),
        )
        stored = self._attempts.save(reviewed, expected_status=attempt.status)
        logger.info("Attempt %s reviewed by %s", stored.id, reviewer.user_id)
        return stored

    def update_answer_grade(
        self,
        attempt_id: str,
        update: AnswerGradeUpdate,
        reviewer: Requester,
    ) -> Attempt:
        """Regrade a single answer without changing the attempt status."""
        ensure_admin(reviewer)
        attempt = self._gradable(attempt_id)
        answers = _apply_update(attempt.answers, update)
        regraded = replace(attempt, answers=answers, total_score=total_score(answers))
        return self._attempts.save(regraded, expected_status=attempt.status)

    def complete_review(self, attempt_id: str, reviewer: Requester) -> Attempt:
        ensure_admin(reviewer)
        attempt = self._get(attempt_id)
        if attempt.status is AttemptStatus.REVIEWED:
            raise ConflictError("Attempt is already reviewed", code="ALREADY_REVIEWED")
        if attempt.status not in GRADABLE_STATUSES:
            raise ConflictError(f"Attempt is {attempt.status.value} and cannot be reviewed")
        return self._mark_reviewed(attempt, reviewer)

    def unreview(self, attempt_id: str, reviewer: Requester) -> Attempt:
        ensure_admin(reviewer)
        attempt = self._get(attempt_id)
        if attempt.status is not AttemptStatus.REVIEWED:
            raise ConflictError("Attempt is not reviewed", code="NOT_REVIEWED")
        return self._unmark_reviewed(attempt)

    def batch_update(
        self,
        attempt_ids: Iterable[str],
        action: BatchAction | str,
        reviewer: Requester,
    ) -> BatchResult:
        """Apply ``action`` to many attempts; ineligible ones are matched only."""
        ensure_admin(reviewer)
        try:
            action = BatchAction(action)
        except ValueError as exc:
            raise ValidationError(f"Unknown batch action: {action}") from exc

        matched = 0
        modified = 0
        for attempt_id in dict.fromkeys(attempt_ids):
            attempt = self._attempts.find(attempt_id)
            if attempt is None:
                continue
            matched += 1
            try:
                if action is BatchAction.MARK_REVIEWED:
                    if attempt.status not in GRADABLE_STATUSES - {AttemptStatus.REVIEWED}:
                        continue
                    self._mark_reviewed(attempt, reviewer)
                else:
                    if attempt.status is not AttemptStatus.REVIEWED:
                        continue
                    self._unmark_reviewed(attempt)
            except ConflictError:
                logger.warning("Attempt %s changed during batch %s; skipped", attempt_id, action.value)
                continue
            modified += 1

        logger.info("Batch %s: %d matched, %d modified", action.value, matched, modified)
        return BatchResult(matched=matched, modified=modified)

    def pending_reviews(self, requester: Requester) -> list[Attempt]:
        """Submitted attempts still waiting for a reviewer, newest first."""
        ensure_admin(requester)
        pending = []
        for attempt in self._attempts.list_by_status(AttemptStatus.SUBMITTED):
            quiz = self._quizzes.find(attempt.quiz_id)
            if quiz is not None and requires_manual_review(quiz):
                pending.append(attempt)
        pending.sort(key=lambda a: a.end_time or a.start_time, reverse=True)
        return pending

    def _get(self, attempt_id: str) -> Attempt:
        attempt = self._attempts.find(attempt_id)
        if attempt is None:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        return attempt

    def _gradable(self, attempt_id: str) -> Attempt:
        attempt = self._get(attempt_id)
        if attempt.status not in GRADABLE_STATUSES:
            raise ConflictError(f"Attempt is {attempt.status.value} and cannot be graded")
        return attempt

    def _mark_reviewed(self, attempt: Attempt, reviewer: Requester) -> Attempt:
        reviewed = replace(
            attempt,
            status=AttemptStatus.REVIEWED,
            reviewed_by=reviewer.user_id,
            reviewed_at=self._clock(),
        )
        return self._attempts.save(reviewed, expected_status=attempt.status)

    def _unmark_reviewed(self, attempt: Attempt) -> Attempt:
        reopened = replace(
            attempt,
            status=AttemptStatus.SUBMITTED,
            reviewed_by=None,
            reviewed_at=None,
        )
        return self._attempts.save(reopened, expected_status=AttemptStatus.REVIEWED)


def _apply_update(answers: tuple[Answer, ...], update: AnswerGradeUpdate) -> tuple[Answer, ...]:
    for value, label in ((update.score, "Score"), (update.negative_score, "Negative score")):
        if value is not None and value < 0:
            raise ValidationError(f"{label} must not be negative")

    if not any(answer.question_id == update.question_id for answer in answers):
        raise NotFoundError(
            f"No answer for question {update.question_id}", code="ANSWER_NOT_FOUND"
        )

    def regrade(answer: Answer) -> Answer:
        if answer.question_id != update.question_id:
            return answer
        changes = {}
        if update.score is not None:
            changes["score"] = update.score
        if update.negative_score is not None:
            changes["negative_score"] = update.negative_score
        if update.is_correct is not None:
            changes["is_correct"] = update.is_correct
        if update.feedback is not None:
            changes["feedback"] = update.feedback
        return replace(answer, **changes)

    return tuple(regrade(answer) for answer in answers)
