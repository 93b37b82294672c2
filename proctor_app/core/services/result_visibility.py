"""Decides whether a user may see scores and feedback of an attempt.

Admins always see everything. Everyone else sees results once the attempt has
been reviewed, or straight away when the quiz releases results immediately and
holds no free-text question. Hidden results are removed from the attempt
before it leaves the service, not merely flagged.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from proctor_app.core.models import (
    Answer,
    Attempt,
    AttemptStatus,
    Quiz,
    Requester,
    ResultVisibilitySettings,
)
from proctor_app.core.timing_policy import TimingInfo


@dataclass(slots=True, frozen=True)
class AttemptView:
    """An attempt as a given requester is allowed to see it."""

    attempt: Attempt
    results_visible: bool
    requires_manual_review: bool
    timing: TimingInfo | None = None


@dataclass(slots=True, frozen=True)
class QuizVisibilityStatus:
    quiz_id: str
    show_results_immediately: bool
    has_free_text_questions: bool
    requires_manual_review: bool


@dataclass(slots=True, frozen=True)
class AttemptVisibilityStatus:
    attempt_id: str
    status: AttemptStatus
    results_visible: bool
    quiz: QuizVisibilityStatus


def needs_manual_grading(quiz: Quiz) -> bool:
    """Free-text answers can only be scored by a reviewer."""
    return quiz.has_free_text_questions()


def requires_manual_review(quiz: Quiz) -> bool:
    """True when users must wait for a review before seeing results."""
    return needs_manual_grading(quiz) or not quiz.show_results_immediately


def is_visible(attempt: Attempt, quiz: Quiz, requester: Requester) -> bool:
    if requester.is_admin:
        return True
    if attempt.status is AttemptStatus.REVIEWED:
        return True
    return quiz.show_results_immediately and not needs_manual_grading(quiz)


def sanitize(attempt: Attempt) -> Attempt:
    """Strip every score, correctness flag and feedback from ``attempt``."""
    return replace(
        attempt,
        total_score=None,
        answers=tuple(_strip_answer(answer) for answer in attempt.answers),
    )


def _strip_answer(answer: Answer) -> Answer:
    # The penalty goes too: a non-zero negative score gives correctness away.
    return replace(answer, score=None, is_correct=None, feedback=None, negative_score=None)


def apply_visibility_settings(attempt: Attempt, settings: ResultVisibilitySettings) -> Attempt:
    """Trim a released result down to what the quiz chooses to show."""
    if not settings.show_question_details:
        return replace(attempt, answers=())

    def trim(answer: Answer) -> Answer:
        if not settings.show_feedback:
            answer = replace(answer, feedback=None)
        if not settings.show_correct_answers:
            answer = replace(answer, is_correct=None)
        if not settings.show_user_answers:
            answer = replace(answer, response=None)
        return answer

    return replace(attempt, answers=tuple(trim(answer) for answer in attempt.answers))


def present(
    attempt: Attempt,
    quiz: Quiz,
    requester: Requester,
    timing: TimingInfo | None = None,
) -> AttemptView:
    """Build the view of ``attempt`` that ``requester`` may receive."""
    visible = is_visible(attempt, quiz, requester)
    shown = attempt
    if not visible:
        shown = sanitize(attempt)
    elif not requester.is_admin:
        shown = apply_visibility_settings(attempt, quiz.result_visibility)
    return AttemptView(
        attempt=shown,
        results_visible=visible,
        requires_manual_review=requires_manual_review(quiz),
        timing=timing,
    )


def quiz_visibility_status(quiz: Quiz) -> QuizVisibilityStatus:
    return QuizVisibilityStatus(
        quiz_id=quiz.id,
        show_results_immediately=quiz.show_results_immediately,
        has_free_text_questions=needs_manual_grading(quiz),
        requires_manual_review=requires_manual_review(quiz),
    )


def attempt_visibility_status(attempt: Attempt, quiz: Quiz, requester: Requester) -> AttemptVisibilityStatus:
    return AttemptVisibilityStatus(
        attempt_id=attempt.id,
        status=attempt.status,
        results_visible=is_visible(attempt, quiz, requester),
        quiz=quiz_visibility_status(quiz),
    )
