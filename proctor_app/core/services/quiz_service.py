"""Administrative changes to quiz settings that affect attempts.

Authoring screens live elsewhere; this service covers the settings that the
attempt lifecycle depends on: negative marking, result release, timing and
who may take the quiz.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
import logging
from typing import Iterable, Mapping

from proctor_app.core.errors import ValidationError
from proctor_app.core.models import NegativeMarking, Quiz, Requester, TimingMode
from proctor_app.core.services.access_policy import (
    AccessPolicy,
    ActivationListPolicy,
    ensure_admin,
    ensure_quiz_access,
)
from proctor_app.core.services.quiz_repository import QuizRepository
from proctor_app.core.services.result_visibility import QuizVisibilityStatus, quiz_visibility_status
from proctor_app.core.services.score_recalculator import RecalculationReport, ScoreRecalculator
from proctor_app.core.timing_policy import TimingInfo, quiz_timing
from proctor_app.core.timing_validator import (
    parse_timing_mode,
    validate_quiz_timing,
    validate_timing_mode_change,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class NegativeMarkingUpdate:
    quiz: Quiz
    recalculation: RecalculationReport | None = None


@dataclass(slots=True, frozen=True)
class TimingUpdate:
    quiz: Quiz
    warnings: tuple[str, ...] = ()


class QuizService:
    """Quiz reads gated by activation, plus admin-only setting changes."""

    def __init__(
        self,
        quizzes: QuizRepository,
        recalculator: ScoreRecalculator,
        access_policy: AccessPolicy | None = None,
    ) -> None:
        self._quizzes = quizzes
        self._recalculator = recalculator
        self._access_policy = access_policy or ActivationListPolicy()

    def create_quiz(self, quiz: Quiz, requester: Requester) -> Quiz:
        ensure_admin(requester)
        if quiz.created_by is None:
            quiz = replace(quiz, created_by=requester.user_id)
        stored = self._quizzes.add(quiz)
        logger.info("Quiz %s created by %s", stored.id, requester.user_id)
        return stored

    def get_quiz(self, quiz_id: str, requester: Requester) -> Quiz:
        quiz = self._quizzes.get(quiz_id)
        ensure_quiz_access(quiz, requester, self._access_policy)
        return quiz

    def list_quizzes(self, requester: Requester) -> list[Quiz]:
        """Admins see every quiz; users only active quizzes they are activated for."""
        quizzes = self._quizzes.list_all()
        if requester.is_admin:
            return quizzes
        return [
            quiz
            for quiz in quizzes
            if quiz.is_active and self._access_policy.is_activated(requester.user_id, quiz)
        ]

    def update_negative_marking(
        self,
        quiz_id: str,
        requester: Requester,
        *,
        enabled: bool | None = None,
        penalty_value: float | None = None,
    ) -> NegativeMarkingUpdate:
        """Change the penalty policy; finished attempts are rescored on change."""
        ensure_admin(requester)
        if penalty_value is not None and penalty_value < 0:
            raise ValidationError("Penalty value must be positive.")

        quiz = self._quizzes.get(quiz_id)
        current = quiz.negative_marking
        wanted = NegativeMarking(
            enabled=current.enabled if enabled is None else enabled,
            penalty_value=current.penalty_value if penalty_value is None else penalty_value,
        )
        if wanted == current:
            return NegativeMarkingUpdate(quiz=quiz)

        stored = self._quizzes.save(replace(quiz, negative_marking=wanted))
        logger.info(
            "Negative marking of quiz %s set to enabled=%s penalty=%s",
            stored.id,
            wanted.enabled,
            wanted.penalty_value,
        )
        return NegativeMarkingUpdate(quiz=stored, recalculation=self._recalculator.recalculate(stored))

    def update_result_visibility(
        self,
        quiz_id: str,
        show_results_immediately: bool,
        requester: Requester,
    ) -> Quiz:
        ensure_admin(requester)
        quiz = self._quizzes.get(quiz_id)
        if quiz.show_results_immediately == show_results_immediately:
            return quiz
        return self._quizzes.save(replace(quiz, show_results_immediately=show_results_immediately))

    def result_visibility_status(self, quiz_id: str, requester: Requester) -> QuizVisibilityStatus:
        ensure_admin(requester)
        return quiz_visibility_status(self._quizzes.get(quiz_id))

    def update_timing(
        self,
        quiz_id: str,
        requester: Requester,
        *,
        timing_mode: TimingMode | str,
        duration_minutes: int | None = None,
        question_time_limits: Mapping[str, int] | None = None,
    ) -> TimingUpdate:
        """Switch timing configuration; running attempts keep their own mode."""
        ensure_admin(requester)
        mode = parse_timing_mode(timing_mode)
        if mode is None:
            raise ValidationError(
                'Invalid timing mode. Must be either "total" or "per-question"', code="INVALID_TIMING"
            )

        quiz = self._quizzes.get(quiz_id)
        limits = dict(question_time_limits or {})
        unknown = set(limits) - {question.id for question in quiz.questions}
        if unknown:
            raise ValidationError(
                f"Unknown question ids: {', '.join(sorted(unknown))}", code="INVALID_TIMING"
            )
        questions = tuple(
            replace(question, time_limit_seconds=limits[question.id]) if question.id in limits else question
            for question in quiz.questions
        )
        duration = duration_minutes if duration_minutes is not None else quiz.duration_minutes

        change = validate_timing_mode_change(quiz.timing_mode, mode, questions)
        errors = change.errors + validate_quiz_timing(mode, duration, questions)
        if errors:
            raise ValidationError("; ".join(errors), code="INVALID_TIMING", errors=errors)

        stored = self._quizzes.save(
            replace(quiz, timing_mode=mode, duration_minutes=duration, questions=questions)
        )
        logger.info("Timing of quiz %s set to %s", stored.id, mode.value)
        return TimingUpdate(quiz=stored, warnings=tuple(change.warnings))

    def timing_settings(self, quiz_id: str, requester: Requester) -> TimingInfo:
        return quiz_timing(self.get_quiz(quiz_id, requester))

    def update_activation(
        self,
        quiz_id: str,
        requester: Requester,
        *,
        is_active: bool | None = None,
        add_users: Iterable[str] = (),
        remove_users: Iterable[str] = (),
    ) -> Quiz:
        """Open or close a quiz and edit the list of users allowed to take it."""
        ensure_admin(requester)
        quiz = self._quizzes.get(quiz_id)
        activated = (quiz.activated_users | frozenset(add_users)) - frozenset(remove_users)
        updated = replace(
            quiz,
            is_active=quiz.is_active if is_active is None else is_active,
            activated_users=activated,
        )
        if updated == quiz:
            return quiz
        return self._quizzes.save(updated)
