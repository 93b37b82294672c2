from dataclasses import replace
from datetime import timedelta

from conftest import START, make_quiz, single_select
from proctor_app.core.models import Attempt, AttemptStatus, TimingMode
from proctor_app.core.timing_policy import (
    elapsed_seconds,
    expiry_deadline,
    is_expired,
    question_remaining_time,
    quiz_timing,
    remaining_time,
    timing_info,
    total_time_seconds,
)


def _attempt(quiz, **overrides) -> Attempt:
    values = dict(
        id="att-1",
        quiz_id=quiz.id,
        user_id="alice",
        start_time=START,
        max_score=quiz.max_score(),
        timing_mode=quiz.timing_mode,
    )
    values.update(overrides)
    return Attempt(**values)


def test_elapsed_seconds_floors_and_never_goes_negative() -> None:
    assert elapsed_seconds(START, START + timedelta(seconds=59.9)) == 59
    assert elapsed_seconds(START, START - timedelta(seconds=5)) == 0


def test_total_time_for_total_mode_uses_duration() -> None:
    quiz = make_quiz(duration_minutes=10)
    assert total_time_seconds(quiz) == 600


def test_total_time_for_per_question_mode_sums_limits() -> None:
    quiz = make_quiz(
        single_select("q1", time_limit=30),
        single_select("q2", time_limit=45),
        timing_mode=TimingMode.PER_QUESTION,
    )
    assert total_time_seconds(quiz) == 75


def test_missing_question_limit_falls_back_to_sixty_seconds() -> None:
    quiz = make_quiz(
        single_select("q1", time_limit=30),
        single_select("q2"),
        timing_mode=TimingMode.PER_QUESTION,
    )
    assert total_time_seconds(quiz) == 90


def test_remaining_time_counts_down_and_clamps_at_zero() -> None:
    quiz = make_quiz(duration_minutes=1)
    attempt = _attempt(quiz)
    assert remaining_time(attempt, quiz, START + timedelta(seconds=20)) == 40
    assert remaining_time(attempt, quiz, START + timedelta(minutes=5)) == 0


def test_remaining_time_is_zero_once_finished() -> None:
    quiz = make_quiz(duration_minutes=10)
    attempt = _attempt(quiz, status=AttemptStatus.SUBMITTED)
    assert remaining_time(attempt, quiz, START) == 0


def test_expiry_is_reached_exactly_at_budget() -> None:
    quiz = make_quiz(duration_minutes=1)
    attempt = _attempt(quiz)
    assert not is_expired(attempt, quiz, START + timedelta(seconds=59))
    assert is_expired(attempt, quiz, START + timedelta(seconds=60))


def test_only_in_progress_attempts_expire() -> None:
    quiz = make_quiz(duration_minutes=1)
    attempt = _attempt(quiz, status=AttemptStatus.SUBMITTED)
    assert not is_expired(attempt, quiz, START + timedelta(hours=1))


def test_expiry_deadline_is_start_plus_budget() -> None:
    quiz = make_quiz(duration_minutes=10)
    assert expiry_deadline(_attempt(quiz), quiz) == START + timedelta(minutes=10)


def test_attempt_keeps_its_own_timing_mode_when_quiz_changes() -> None:
    quiz = make_quiz(single_select("q1", time_limit=30), duration_minutes=10)
    attempt = _attempt(quiz)
    switched = replace(quiz, timing_mode=TimingMode.PER_QUESTION, duration_minutes=None)
    assert remaining_time(attempt, switched, START) == 0
    assert total_time_seconds(switched, attempt.timing_mode) == 0
    assert total_time_seconds(switched) == 30


def test_question_countdown_anchors_to_first_display() -> None:
    quiz = make_quiz(single_select("q1", time_limit=30), timing_mode=TimingMode.PER_QUESTION)
    attempt = _attempt(quiz, question_start_times={"q1": START + timedelta(seconds=10)})
    assert question_remaining_time(attempt, "q1", 30, START + timedelta(seconds=25)) == 15
    assert question_remaining_time(attempt, "q1", 30, START + timedelta(seconds=90)) == 0


def test_question_checkpoint_can_only_shorten_the_countdown() -> None:
    quiz = make_quiz(single_select("q1", time_limit=30), timing_mode=TimingMode.PER_QUESTION)
    attempt = _attempt(
        quiz,
        question_start_times={"q1": START},
        question_time_remaining={"q1": 5},
    )
    assert question_remaining_time(attempt, "q1", 30, START + timedelta(seconds=10)) == 5

    generous = replace(attempt, question_time_remaining={"q1": 29})
    assert question_remaining_time(generous, "q1", 30, START + timedelta(seconds=10)) == 20


def test_unstarted_question_reports_its_full_limit() -> None:
    quiz = make_quiz(single_select("q1", time_limit=30), timing_mode=TimingMode.PER_QUESTION)
    attempt = _attempt(quiz)
    assert question_remaining_time(attempt, "q1", 30, START + timedelta(minutes=3)) == 30


def test_timing_info_for_per_question_attempt_lists_every_question() -> None:
    quiz = make_quiz(
        single_select("q1", time_limit=30),
        single_select("q2", time_limit=45),
        timing_mode=TimingMode.PER_QUESTION,
    )
    attempt = _attempt(quiz, question_start_times={"q1": START})
    info = timing_info(attempt, quiz, START + timedelta(seconds=10))

    assert info.total_time == 75
    assert info.remaining_time == 65
    assert not info.is_expired
    assert [(q.question_id, q.time_limit, q.time_remaining) for q in info.question_time_limits] == [
        ("q1", 30, 20),
        ("q2", 45, 45),
    ]


def test_timing_info_for_total_attempt_has_no_question_limits() -> None:
    quiz = make_quiz(duration_minutes=10)
    info = timing_info(_attempt(quiz), quiz, START)
    assert info.question_time_limits is None
    assert info.remaining_time == info.total_time == 600


def test_quiz_timing_before_any_attempt() -> None:
    quiz = make_quiz(single_select("q1", time_limit=20), timing_mode=TimingMode.PER_QUESTION)
    info = quiz_timing(quiz)
    assert info.total_time == 20
    assert info.question_time_limits[0].time_remaining == 20
