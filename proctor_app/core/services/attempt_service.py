"""Lifecycle of a quiz attempt: start, resume, autosave, timeouts and submission.

Attempt states::

    in-progress --submit--------------> submitted --review--> reviewed
    in-progress --submit(time expired)-> time_up ----review--> reviewed
    in-progress --expiry seen on read--> expired
    reviewed ----unreview--------------> submitted

Review transitions are handled by :mod:`proctor_app.core.services.review_service`.
Expiry is detected lazily: :meth:`AttemptService.check_and_expire` runs on the
read paths, so reading an attempt may persist its transition to ``expired``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Any, Iterable, Mapping
from uuid import uuid4

from proctor_app.core.answer_grader import ScoreBreakdown, grade_answers, score_breakdown
from proctor_app.core.answer_parser import merge_partial_answer, parse_answers
from proctor_app.core.errors import (
    AccessDeniedError,
    ConflictError,
    DuplicateAttemptError,
    ExpiredError,
    NotFoundError,
    ValidationError,
)
from proctor_app.core.models import (
    ActivityEntry,
    Answer,
    Attempt,
    AttemptStatus,
    Question,
    Quiz,
    Recording,
    RecordingType,
    Requester,
    TimingMode,
)
from proctor_app.core.quiz_validator import AnswerValidationReport, validate_answers
from proctor_app.core.services.access_policy import (
    AccessPolicy,
    ActivationListPolicy,
    ensure_quiz_access,
)
from proctor_app.core.services.activity_log import ActivitySink, LoggingActivitySink
from proctor_app.core.services.attempt_repository import AttemptStore
from proctor_app.core.services.quiz_repository import QuizStore
from proctor_app.core.services.recording_registry import RecordingCollaborator
from proctor_app.core.services.result_visibility import (
    AttemptView,
    AttemptVisibilityStatus,
    attempt_visibility_status,
    needs_manual_grading,
    present,
)
from proctor_app.core.timing_policy import (
    TimingInfo,
    expiry_deadline,
    is_expired,
    remaining_time,
    timing_info,
)
from proctor_app.core.timing_validator import validate_attempt_timing
from proctor_app.utils.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AttemptAvailability:
    """Whether a user may start or resume a quiz right now."""

    can_start: bool
    can_resume: bool
    attempt_status: AttemptStatus | None = None
    attempt_id: str | None = None
    remaining_time: int | None = None


@dataclass(slots=True, frozen=True)
class ResumedAttempt:
    attempt: Attempt
    timing: TimingInfo


@dataclass(slots=True, frozen=True)
class SubmissionResult:
    """Outcome of a submit. ``view`` is what the submitter may be shown."""

    attempt: Attempt
    view: AttemptView
    auto_graded: bool
    requires_manual_grading: bool
    breakdown: ScoreBreakdown


class AttemptService:
    """Owns every transition out of ``in-progress``."""

    def __init__(
        self,
        quizzes: QuizStore,
        attempts: AttemptStore,
        recordings: RecordingCollaborator,
        access_policy: AccessPolicy | None = None,
        activity_sink: ActivitySink | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._quizzes = quizzes
        self._attempts = attempts
        self._recordings = recordings
        self._access_policy = access_policy or ActivationListPolicy()
        self._activity_sink = activity_sink or LoggingActivitySink()
        self._clock = clock

    # --- Starting -------------------------------------------------------

    def start(self, quiz_id: str, requester: Requester) -> Attempt:
        quiz = self._quizzes.get(quiz_id)
        ensure_quiz_access(quiz, requester, self._access_policy)
        if self._attempts.find_in_progress(requester.user_id, quiz.id) is not None:
            raise DuplicateAttemptError("You already have an in-progress attempt for this quiz")

        now = self._clock()
        question_start_times = {}
        if quiz.timing_mode is TimingMode.PER_QUESTION and quiz.questions:
            question_start_times[quiz.questions[0].id] = now

        attempt = Attempt(
            id=uuid4().hex,
            quiz_id=quiz.id,
            user_id=requester.user_id,
            start_time=now,
            max_score=quiz.max_score(),
            timing_mode=quiz.timing_mode,
            question_start_times=question_start_times,
        ).with_activity(
            ActivityEntry(
                timestamp=now,
                type="QUIZ_STARTED",
                description="Quiz attempt started",
                metadata={"timingMode": quiz.timing_mode.value},
            )
        )
        stored = self._commit(None, attempt)
        logger.info("User %s started attempt %s on quiz %s", requester.user_id, stored.id, quiz.id)
        return stored

    def check(self, quiz_id: str, requester: Requester) -> AttemptAvailability:
        """Report whether the requester can start or resume ``quiz_id``.

        Like resume, this may expire a stale in-progress attempt.
        """
        quiz = self._quizzes.get(quiz_id)
        ensure_quiz_access(quiz, requester, self._access_policy)
        latest = self._attempts.find_latest(requester.user_id, quiz.id)
        if latest is None:
            return AttemptAvailability(can_start=True, can_resume=False)

        if latest.status is AttemptStatus.IN_PROGRESS:
            latest = self.check_and_expire(latest, quiz)

        if latest.status is AttemptStatus.IN_PROGRESS:
            return AttemptAvailability(
                can_start=False,
                can_resume=True,
                attempt_status=latest.status,
                attempt_id=latest.id,
                remaining_time=remaining_time(latest, quiz, self._clock()),
            )
        return AttemptAvailability(
            can_start=False,
            can_resume=False,
            attempt_status=latest.status,
            attempt_id=latest.id,
        )

    # --- Reading --------------------------------------------------------

    def check_and_expire(self, attempt: Attempt, quiz: Quiz) -> Attempt:
        """Persist ``expired`` on an in-progress attempt whose budget ran out.

        Called before an attempt is returned from any read path, so a read can
        change stored state. The end time is pinned to the moment the budget
        ran out, not to the moment the expiry was noticed.
        """
        if not is_expired(attempt, quiz, self._clock()):
            return attempt

        expired = replace(
            attempt,
            status=AttemptStatus.EXPIRED,
            end_time=expiry_deadline(attempt, quiz),
        ).with_activity(
            ActivityEntry(
                timestamp=self._clock(),
                type="ATTEMPT_EXPIRED",
                description="Attempt expired before it was submitted",
                metadata={"startTime": attempt.start_time.isoformat()},
            )
        )
        try:
            stored = self._commit(attempt, expired, expected_status=AttemptStatus.IN_PROGRESS)
        except ConflictError:
            # Another request saved first; decide again on what it stored.
            return self.check_and_expire(self._attempts.get(attempt.id), quiz)
        logger.info("Attempt %s expired", stored.id)
        return stored

    def resume(self, attempt_id: str, requester: Requester) -> ResumedAttempt:
        attempt = self._attempts.find(attempt_id)
        if (
            attempt is None
            or attempt.user_id != requester.user_id
            or attempt.status is not AttemptStatus.IN_PROGRESS
        ):
            raise NotFoundError("Attempt not found or already completed", code="ATTEMPT_NOT_FOUND")

        quiz = self._quizzes.get(attempt.quiz_id)
        attempt = self.check_and_expire(attempt, quiz)
        if attempt.status is AttemptStatus.EXPIRED:
            raise ExpiredError("Quiz time has expired")
        if attempt.status is not AttemptStatus.IN_PROGRESS:
            raise ConflictError("Attempt is no longer in progress")
        return ResumedAttempt(attempt=attempt, timing=timing_info(attempt, quiz, self._clock()))

    def get_attempt(self, attempt_id: str, requester: Requester) -> AttemptView:
        """Return the attempt with timing, trimmed to what the requester may see."""
        attempt = self._readable_attempt(attempt_id, requester)
        quiz = self._quizzes.get(attempt.quiz_id)
        attempt = self.check_and_expire(attempt, quiz)
        return present(attempt, quiz, requester, timing_info(attempt, quiz, self._clock()))

    def visibility_status(self, attempt_id: str, requester: Requester) -> AttemptVisibilityStatus:
        attempt = self._readable_attempt(attempt_id, requester)
        quiz = self._quizzes.get(attempt.quiz_id)
        return attempt_visibility_status(attempt, quiz, requester)

    # --- Answer capture -------------------------------------------------

    def parse_answers(self, attempt_id: str, raw_answers: Iterable[Mapping[str, Any]]) -> tuple[Answer, ...]:
        """Resolve raw answer payloads against the quiz behind ``attempt_id``."""
        attempt = self._attempts.find(attempt_id)
        if attempt is None:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        return parse_answers(raw_answers, self._quizzes.get(attempt.quiz_id))

    def save_answers(self, attempt_id: str, requester: Requester, answers: Iterable[Answer]) -> Attempt:
        """Autosave: replace the whole answer set without grading it."""
        attempt = self._owned_in_progress(attempt_id, requester)
        updated = replace(attempt, answers=tuple(answer.ungraded() for answer in answers))
        return self._commit(attempt, updated, expected_status=AttemptStatus.IN_PROGRESS)

    def validate_answers(
        self,
        attempt_id: str,
        requester: Requester,
        answers: Iterable[Answer],
        quiz_id: str | None = None,
    ) -> AnswerValidationReport:
        attempt = self._owned_in_progress(attempt_id, requester, quiz_id)
        return validate_answers(answers, self._quizzes.get(attempt.quiz_id))

    def log_activities(
        self,
        attempt_id: str,
        requester: Requester,
        activities: Iterable[ActivityEntry],
    ) -> int:
        """Append client-side activity events; returns the new log length."""
        attempt = self._attempts.find(attempt_id)
        if attempt is None or attempt.user_id != requester.user_id:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        updated = replace(attempt, activities=attempt.activities + tuple(activities))
        return len(self._commit(attempt, updated).activities)

    def start_recording(
        self,
        attempt_id: str,
        requester: Requester,
        recording_type: RecordingType,
    ) -> Recording:
        attempt = self._owned_in_progress(attempt_id, requester)
        return self._recordings.start(attempt.id, requester.user_id, recording_type)

    # --- Per-question timing -------------------------------------------

    def start_question(self, attempt_id: str, question_id: str, requester: Requester) -> Attempt:
        """Anchor a question's countdown the first time it is shown."""
        attempt, _ = self._per_question_context(attempt_id, question_id, requester)
        if question_id in attempt.question_start_times:
            return attempt
        updated = replace(
            attempt,
            question_start_times={**attempt.question_start_times, question_id: self._clock()},
        )
        return self._commit(attempt, updated, expected_status=AttemptStatus.IN_PROGRESS)

    def checkpoint_question_time(
        self,
        attempt_id: str,
        question_id: str,
        time_remaining: int,
        requester: Requester,
    ) -> Attempt:
        attempt, _ = self._per_question_context(attempt_id, question_id, requester)
        start_times = dict(attempt.question_start_times)
        start_times.setdefault(question_id, self._clock())
        updated = replace(
            attempt,
            question_start_times=start_times,
            question_time_remaining={
                **attempt.question_time_remaining,
                question_id: max(0, int(time_remaining)),
            },
        )
        return self._commit(attempt, updated, expected_status=AttemptStatus.IN_PROGRESS)

    def handle_question_timeout(
        self,
        attempt_id: str,
        question_id: str,
        requester: Requester,
        partial_answer: Answer | None = None,
    ) -> Attempt:
        """Close one question whose own countdown ran out.

        The partial answer, when given, is stored ungraded. A question that
        already timed out is left alone.
        """
        attempt, _ = self._per_question_context(attempt_id, question_id, requester)
        if attempt.is_question_timed_out(question_id):
            return attempt

        answers = attempt.answers
        if partial_answer is not None:
            merged = merge_partial_answer(
                attempt.get_answer(question_id), replace(partial_answer, question_id=question_id)
            )
            answers = _upsert_answer(answers, merged)

        updated = replace(
            attempt,
            answers=answers,
            timed_out_questions=attempt.timed_out_questions + (question_id,),
        ).with_activity(
            ActivityEntry(
                timestamp=self._clock(),
                type="QUESTION_TIMEOUT",
                description=f"Question {question_id} timed out",
                metadata={"questionId": question_id, "hadAnswer": partial_answer is not None},
            )
        )
        return self._commit(attempt, updated, expected_status=AttemptStatus.IN_PROGRESS)

    # --- Submission -----------------------------------------------------

    def submit(
        self,
        attempt_id: str,
        requester: Requester,
        answers: Iterable[Answer],
        *,
        time_expired: bool = False,
        quiz_id: str | None = None,
    ) -> SubmissionResult:
        """Grade and close an attempt, then stop its running recordings."""
        attempt = self._owned_in_progress(attempt_id, requester, quiz_id)
        quiz = self._quizzes.get(attempt.quiz_id)
        now = self._clock()

        working = attempt
        if not time_expired:
            problems = validate_attempt_timing(attempt, quiz, now)
            if problems:
                logger.warning("Timing validation failed for attempt %s: %s", attempt.id, problems)
                working = working.with_activity(
                    ActivityEntry(
                        timestamp=now,
                        type="TIMING_VIOLATION",
                        description="Submission arrived outside the allowed time",
                        metadata={"errors": list(problems)},
                    )
                )

        graded = grade_answers(answers, quiz)
        breakdown = score_breakdown(graded)
        status = AttemptStatus.TIME_UP if time_expired else AttemptStatus.SUBMITTED
        submitted = replace(
            working,
            answers=graded,
            status=status,
            end_time=now,
            negative_marking_applied=quiz.negative_marking.enabled,
            total_score=breakdown.total_score,
        ).with_activity(
            ActivityEntry(
                timestamp=now,
                type="QUIZ_SUBMITTED",
                description=(
                    "Quiz auto-submitted due to time expiration"
                    if time_expired
                    else "Quiz manually submitted"
                ),
                metadata={
                    "timeExpired": time_expired,
                    "totalScore": breakdown.total_score,
                    "maxScore": attempt.max_score,
                },
            )
        )
        stored = self._commit(attempt, submitted, expected_status=AttemptStatus.IN_PROGRESS)
        self._recordings.stop_active_recordings(stored.id)

        logger.info(
            "Attempt %s %s with score %s/%s",
            stored.id,
            stored.status.value,
            stored.total_score,
            stored.max_score,
        )
        manual = needs_manual_grading(quiz)
        return SubmissionResult(
            attempt=stored,
            view=present(stored, quiz, requester),
            auto_graded=not manual,
            requires_manual_grading=manual,
            breakdown=breakdown,
        )

    # --- Helpers --------------------------------------------------------

    def _owned_in_progress(
        self,
        attempt_id: str,
        requester: Requester,
        quiz_id: str | None = None,
    ) -> Attempt:
        attempt = self._attempts.find(attempt_id)
        if attempt is None or attempt.user_id != requester.user_id:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        if quiz_id is not None and attempt.quiz_id != quiz_id:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        if attempt.status is AttemptStatus.EXPIRED:
            raise ExpiredError("Quiz time has expired")
        if attempt.status is not AttemptStatus.IN_PROGRESS:
            raise ConflictError("Attempt is not in progress")
        return attempt

    def _readable_attempt(self, attempt_id: str, requester: Requester) -> Attempt:
        attempt = self._attempts.find(attempt_id)
        if attempt is None:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        if not requester.is_admin and attempt.user_id != requester.user_id:
            raise AccessDeniedError("You do not have access to this attempt")
        return attempt

    def _per_question_context(
        self,
        attempt_id: str,
        question_id: str,
        requester: Requester,
    ) -> tuple[Attempt, Question]:
        attempt = self._owned_in_progress(attempt_id, requester)
        if attempt.timing_mode is not TimingMode.PER_QUESTION:
            raise ValidationError(
                "Question timing only applies to per-question timing mode", code="INVALID_TIMING"
            )
        question = self._quizzes.get(attempt.quiz_id).get_question(question_id)
        if question is None:
            raise NotFoundError("Question not found", code="QUESTION_NOT_FOUND")
        return attempt, question

    def _commit(
        self,
        previous: Attempt | None,
        updated: Attempt,
        expected_status: AttemptStatus | None = None,
    ) -> Attempt:
        if previous is None:
            stored = self._attempts.insert(updated)
        else:
            stored = self._attempts.save(updated, expected_status=expected_status)
        known = len(previous.activities) if previous is not None else 0
        for entry in stored.activities[known:]:
            self._activity_sink.record(stored.id, entry)
        return stored


def _upsert_answer(answers: tuple[Answer, ...], answer: Answer) -> tuple[Answer, ...]:
    if any(existing.question_id == answer.question_id for existing in answers):
        return tuple(answer if a.question_id == answer.question_id else a for a in answers)
    return answers + (answer,)
