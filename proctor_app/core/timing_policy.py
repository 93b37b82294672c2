"""Remaining and elapsed time for whole-quiz and per-question timing.

Everything here is computed from timestamps already stored on the attempt; no
function mutates its inputs, so read paths may call them as often as they like.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import math

from proctor_app.constants.timing_constants import DEFAULT_QUESTION_TIME_LIMIT_SECONDS
from proctor_app.core.models import Attempt, AttemptStatus, Question, Quiz, TimingMode
from proctor_app.utils.time_utils import utc_now


@dataclass(slots=True, frozen=True)
class QuestionTimeLimit:
    question_id: str
    time_limit: int
    time_remaining: int


@dataclass(slots=True, frozen=True)
class TimingInfo:
    """Timing snapshot returned alongside an attempt."""

    timing_mode: TimingMode
    remaining_time: int
    total_time: int
    is_expired: bool = False
    question_time_limits: tuple[QuestionTimeLimit, ...] | None = None


def elapsed_seconds(start: datetime, now: datetime) -> int:
    """Whole seconds from ``start`` to ``now``, floored and never negative."""
    return max(0, math.floor((now - start).total_seconds()))


def question_time_limit(question: Question) -> int:
    return question.time_limit_seconds or DEFAULT_QUESTION_TIME_LIMIT_SECONDS


def total_time_seconds(quiz: Quiz, timing_mode: TimingMode | None = None) -> int:
    """Time budget of a quiz in seconds under ``timing_mode`` (defaults to the quiz's)."""
    mode = timing_mode or quiz.timing_mode
    if mode is TimingMode.TOTAL:
        return (quiz.duration_minutes or 0) * 60
    return sum(question_time_limit(question) for question in quiz.questions)


def remaining_time(attempt: Attempt, quiz: Quiz, now: datetime | None = None) -> int:
    if attempt.status is not AttemptStatus.IN_PROGRESS:
        return 0
    now = now or utc_now()
    budget = total_time_seconds(quiz, attempt.timing_mode)
    return max(0, budget - elapsed_seconds(attempt.start_time, now))


def is_expired(attempt: Attempt, quiz: Quiz, now: datetime | None = None) -> bool:
    """True when an in-progress attempt has used up its whole budget."""
    if attempt.status is not AttemptStatus.IN_PROGRESS:
        return False
    now = now or utc_now()
    budget = total_time_seconds(quiz, attempt.timing_mode)
    return elapsed_seconds(attempt.start_time, now) >= budget


def expiry_deadline(attempt: Attempt, quiz: Quiz) -> datetime:
    return attempt.start_time + timedelta(seconds=total_time_seconds(quiz, attempt.timing_mode))


def question_remaining_time(
    attempt: Attempt,
    question_id: str,
    limit: int,
    now: datetime | None = None,
) -> int:
    """Remaining seconds on one question's own countdown.

    The countdown is anchored to the first time the question was shown. A
    checkpointed remaining value can only shorten it, never extend it.
    """
    if attempt.timing_mode is not TimingMode.PER_QUESTION:
        return limit

    remaining = limit
    started_at = attempt.question_start_times.get(question_id)
    if started_at is not None:
        remaining = max(0, limit - elapsed_seconds(started_at, now or utc_now()))

    checkpoint = attempt.question_time_remaining.get(question_id)
    if checkpoint is not None:
        remaining = min(remaining, max(0, checkpoint))
    return remaining


def timing_info(attempt: Attempt, quiz: Quiz, now: datetime | None = None) -> TimingInfo:
    now = now or utc_now()
    mode = attempt.timing_mode
    question_limits = None
    if mode is TimingMode.PER_QUESTION:
        question_limits = tuple(
            QuestionTimeLimit(
                question_id=question.id,
                time_limit=question_time_limit(question),
                time_remaining=question_remaining_time(
                    attempt, question.id, question_time_limit(question), now
                ),
            )
            for question in quiz.questions
        )
    return TimingInfo(
        timing_mode=mode,
        remaining_time=remaining_time(attempt, quiz, now),
        total_time=total_time_seconds(quiz, mode),
        is_expired=is_expired(attempt, quiz, now),
        question_time_limits=question_limits,
    )


def quiz_timing(quiz: Quiz) -> TimingInfo:
    """Timing settings of a quiz before any attempt exists."""
    total = total_time_seconds(quiz)
    question_limits = None
    if quiz.timing_mode is TimingMode.PER_QUESTION:
        question_limits = tuple(
            QuestionTimeLimit(q.id, question_time_limit(q), question_time_limit(q))
            for q in quiz.questions
        )
    return TimingInfo(
        timing_mode=quiz.timing_mode,
        remaining_time=total,
        total_time=total,
        question_time_limits=question_limits,
    )
