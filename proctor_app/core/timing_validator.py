"""Validation rules for quiz timing configuration.

Total mode needs a duration between 1 and 300 minutes. Per-question mode needs
every question to carry a limit between 10 and 3600 seconds. The helpers return
lists of human-readable problems so callers can report all of them at once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from proctor_app.constants.timing_constants import (
    FALLBACK_RECOMMENDED_TIME_LIMITS_SECONDS,
    MAX_QUESTION_TIME_LIMIT_SECONDS,
    MAX_QUIZ_DURATION_MINUTES,
    MIN_QUESTION_TIME_LIMIT_SECONDS,
    MIN_QUIZ_DURATION_MINUTES,
    RECOMMENDED_TIME_LIMITS_SECONDS,
    SUBMIT_TOLERANCE_SECONDS,
)
from proctor_app.core.models import Attempt, Question, Quiz, TimingMode
from proctor_app.core.timing_policy import elapsed_seconds, total_time_seconds


@dataclass(slots=True)
class TimingChangeReport:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def parse_timing_mode(value: TimingMode | str | None) -> TimingMode | None:
    if isinstance(value, TimingMode):
        return value
    try:
        return TimingMode(value)
    except ValueError:
        return None


def validate_quiz_timing(
    timing_mode: TimingMode | str | None,
    duration_minutes: object,
    questions: Iterable[Question],
) -> list[str]:
    mode = parse_timing_mode(timing_mode)
    if mode is None:
        return ['Invalid timing mode. Must be either "total" or "per-question"']
    if mode is TimingMode.TOTAL:
        return validate_total_mode(duration_minutes)
    return validate_per_question_mode(questions)


def validate_total_mode(duration_minutes: object) -> list[str]:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, (int, float)) or not duration_minutes:
        return ["Duration is required for total timing mode"]
    errors: list[str] = []
    if duration_minutes < MIN_QUIZ_DURATION_MINUTES:
        errors.append(f"Duration must be at least {MIN_QUIZ_DURATION_MINUTES} minute")
    if duration_minutes > MAX_QUIZ_DURATION_MINUTES:
        errors.append(f"Duration cannot exceed {MAX_QUIZ_DURATION_MINUTES} minutes (5 hours)")
    return errors


def validate_per_question_mode(questions: Iterable[Question]) -> list[str]:
    errors: list[str] = []
    for number, question in enumerate(questions, start=1):
        errors.extend(
            f"Question {number}: {problem}"
            for problem in validate_question_timing(question, TimingMode.PER_QUESTION)
        )
    return errors


def validate_question_timing(question: Question, timing_mode: TimingMode) -> list[str]:
    if timing_mode is not TimingMode.PER_QUESTION:
        return []
    limit = question.time_limit_seconds
    if not limit:
        return ["Time limit is required for per-question timing mode"]
    if isinstance(limit, bool) or not isinstance(limit, int):
        return ["Time limit must be a whole number of seconds"]
    errors: list[str] = []
    if limit < MIN_QUESTION_TIME_LIMIT_SECONDS:
        errors.append(f"Time limit must be at least {MIN_QUESTION_TIME_LIMIT_SECONDS} seconds")
    if limit > MAX_QUESTION_TIME_LIMIT_SECONDS:
        errors.append(f"Time limit cannot exceed {MAX_QUESTION_TIME_LIMIT_SECONDS} seconds (1 hour)")
    return errors


def validate_timing_mode_change(
    old_mode: TimingMode,
    new_mode: TimingMode,
    questions: Iterable[Question],
) -> TimingChangeReport:
    report = TimingChangeReport(is_valid=True)
    if old_mode is new_mode:
        return report

    if new_mode is TimingMode.PER_QUESTION:
        if any(not question.time_limit_seconds for question in questions):
            report.errors.append(
                "All questions must have time limits when switching to per-question timing mode"
            )
        report.warnings.append("Switching to per-question timing will change how users experience the quiz")
    else:
        report.warnings.append("Question time limits will be ignored when switching to total timing mode")
        report.warnings.append("You may want to adjust the total quiz duration accordingly")

    report.is_valid = not report.errors
    return report


def recommended_time_limits(question_type: str) -> tuple[int, ...]:
    return RECOMMENDED_TIME_LIMITS_SECONDS.get(question_type, FALLBACK_RECOMMENDED_TIME_LIMITS_SECONDS)


def validate_attempt_timing(attempt: Attempt, quiz: Quiz, now: datetime) -> list[str]:
    """Consistency problems of an attempt that is about to be submitted."""
    errors: list[str] = []
    if attempt.timing_mode is not quiz.timing_mode:
        errors.append("Attempt timing mode does not match quiz timing mode")

    allowed = total_time_seconds(quiz, attempt.timing_mode) + SUBMIT_TOLERANCE_SECONDS
    if elapsed_seconds(attempt.start_time, now) > allowed:
        errors.append("Attempt has exceeded maximum allowed time")
    return errors
