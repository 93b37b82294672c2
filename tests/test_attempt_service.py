from datetime import timedelta

import pytest

from conftest import ADMIN, ALICE, BOB, free_text, make_quiz, single_select
from proctor_app.core.answer_parser import build_answer
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
    AttemptStatus,
    NegativeMarking,
    RecordingStatus,
    RecordingType,
    TimingMode,
)
from proctor_app.server.serializers import submission_to_dict


def _answer(question_id, *options):
    return build_answer(question_id, list(options))


@pytest.fixture
def quiz(manager):
    return manager.quiz_repository.add(make_quiz(duration_minutes=10))


@pytest.fixture
def per_question_quiz(manager):
    return manager.quiz_repository.add(
        make_quiz(
            single_select("q1", time_limit=30),
            single_select("q2", time_limit=45),
            quiz_id="pq",
            timing_mode=TimingMode.PER_QUESTION,
        )
    )


def _types(attempt):
    return [entry.type for entry in attempt.activities]


def test_start_creates_in_progress_attempt(manager, quiz, clock, activity_sink) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)

    assert attempt.status is AttemptStatus.IN_PROGRESS
    assert attempt.start_time == clock.now
    assert attempt.max_score == 2
    assert attempt.timing_mode is TimingMode.TOTAL
    assert _types(attempt) == ["QUIZ_STARTED"]
    assert [entry.type for _, entry in activity_sink.entries] == ["QUIZ_STARTED"]


def test_second_start_conflicts_while_first_is_in_progress(manager, quiz) -> None:
    manager.attempts.start(quiz.id, ALICE)
    with pytest.raises(DuplicateAttemptError) as excinfo:
        manager.attempts.start(quiz.id, ALICE)
    assert excinfo.value.code == "ATTEMPT_IN_PROGRESS"

    assert manager.attempts.start(quiz.id, BOB).user_id == "bob"


def test_start_requires_activation(manager) -> None:
    quiz = manager.quiz_repository.add(make_quiz(activated_users=("bob",)))
    with pytest.raises(AccessDeniedError):
        manager.attempts.start(quiz.id, ALICE)


def test_start_on_inactive_quiz_is_denied(manager) -> None:
    quiz = manager.quiz_repository.add(make_quiz(is_active=False))
    with pytest.raises(AccessDeniedError) as excinfo:
        manager.attempts.start(quiz.id, ALICE)
    assert excinfo.value.code == "QUIZ_ACCESS_DENIED"


def test_start_unknown_quiz_is_not_found(manager) -> None:
    with pytest.raises(NotFoundError):
        manager.attempts.start("nope", ALICE)


def test_per_question_start_anchors_first_question(manager, per_question_quiz, clock) -> None:
    attempt = manager.attempts.start(per_question_quiz.id, ALICE)
    assert dict(attempt.question_start_times) == {"q1": clock.now}
    resumed = manager.attempts.resume(attempt.id, ALICE)
    assert resumed.timing.total_time == 75


def test_resume_reports_remaining_time(manager, quiz, clock) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(minutes=4)
    resumed = manager.attempts.resume(attempt.id, ALICE)
    assert resumed.timing.remaining_time == 360
    assert resumed.attempt.id == attempt.id


def test_resume_of_expired_attempt_persists_expiry(manager, quiz, clock) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(minutes=11)

    with pytest.raises(ExpiredError):
        manager.attempts.resume(attempt.id, ALICE)

    stored = manager.attempt_repository.get(attempt.id)
    assert stored.status is AttemptStatus.EXPIRED
    assert stored.end_time == attempt.start_time + timedelta(minutes=10)
    assert _types(stored)[-1] == "ATTEMPT_EXPIRED"


def test_resume_of_foreign_or_finished_attempt_is_not_found(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    with pytest.raises(NotFoundError):
        manager.attempts.resume(attempt.id, BOB)

    manager.attempts.submit(attempt.id, ALICE, [])
    with pytest.raises(NotFoundError):
        manager.attempts.resume(attempt.id, ALICE)


def test_check_and_expire_leaves_live_attempt_alone(manager, quiz, clock) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(minutes=9)
    assert manager.attempts.check_and_expire(attempt, quiz) == attempt
    assert manager.attempt_repository.get(attempt.id).version == attempt.version


def test_check_expires_stale_attempt_and_reports_it_finished(manager, quiz, clock) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(minutes=10)

    availability = manager.attempts.check(quiz.id, ALICE)
    assert not availability.can_start and not availability.can_resume
    assert availability.attempt_status is AttemptStatus.EXPIRED
    assert manager.attempt_repository.get(attempt.id).status is AttemptStatus.EXPIRED

    assert manager.attempts.start(quiz.id, ALICE).id != attempt.id


def test_expiry_defers_to_a_submit_that_saved_first(manager, quiz, clock) -> None:
    stale = manager.attempts.start(quiz.id, ALICE)
    clock.advance(minutes=11)
    manager.attempts.submit(stale.id, ALICE, [_answer("q1", "a")])

    current = manager.attempts.check_and_expire(stale, quiz)

    assert current.status is AttemptStatus.SUBMITTED
    assert current == manager.attempt_repository.get(stale.id)
    assert "ATTEMPT_EXPIRED" not in _types(current)


def test_check_before_and_during_attempt(manager, quiz, clock) -> None:
    assert manager.attempts.check(quiz.id, ALICE).can_start

    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(seconds=100)
    availability = manager.attempts.check(quiz.id, ALICE)
    assert availability.can_resume and not availability.can_start
    assert availability.attempt_id == attempt.id
    assert availability.remaining_time == 500


def test_save_answers_overwrites_without_grading(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    manager.attempts.save_answers(attempt.id, ALICE, [_answer("q1", "b")])
    saved = manager.attempts.save_answers(attempt.id, ALICE, [_answer("q1", "a"), _answer("q2", "b")])

    assert [a.selected_options for a in saved.answers] == [("a",), ("b",)]
    assert all(a.is_correct is None and a.score == 0 for a in saved.answers)
    assert saved.status is AttemptStatus.IN_PROGRESS


def test_save_after_submit_conflicts(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    manager.attempts.submit(attempt.id, ALICE, [])
    with pytest.raises(ConflictError):
        manager.attempts.save_answers(attempt.id, ALICE, [_answer("q1", "a")])


def test_submit_grades_with_live_negative_marking(manager, clock) -> None:
    quiz = manager.quiz_repository.add(
        make_quiz(negative_marking=NegativeMarking(enabled=True, penalty_value=0.5))
    )
    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(minutes=2)

    result = manager.attempts.submit(attempt.id, ALICE, [_answer("q1", "a"), _answer("q2", "b")])

    assert result.attempt.status is AttemptStatus.SUBMITTED
    assert result.attempt.end_time == clock.now
    assert result.attempt.total_score == 0.5
    assert result.attempt.negative_marking_applied is True
    assert result.breakdown.positive_score == 1
    assert result.breakdown.negative_score == 0.5
    assert result.auto_graded and not result.requires_manual_grading
    assert _types(result.attempt)[-1] == "QUIZ_SUBMITTED"


def test_submit_with_expired_timer_ends_as_time_up(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    result = manager.attempts.submit(attempt.id, ALICE, [_answer("q1", "a")], time_expired=True)
    assert result.attempt.status is AttemptStatus.TIME_UP
    assert result.attempt.total_score == 1


def test_submit_twice_conflicts(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    manager.attempts.submit(attempt.id, ALICE, [])
    with pytest.raises(ConflictError):
        manager.attempts.submit(attempt.id, ALICE, [])


def test_submit_of_expired_attempt_is_rejected(manager, quiz, clock) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(minutes=11)
    manager.attempts.check(quiz.id, ALICE)
    with pytest.raises(ExpiredError):
        manager.attempts.submit(attempt.id, ALICE, [])


def test_late_submission_is_accepted_but_logged(manager, quiz, clock) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(minutes=11)
    result = manager.attempts.submit(attempt.id, ALICE, [])
    assert result.attempt.status is AttemptStatus.SUBMITTED
    assert "TIMING_VIOLATION" in _types(result.attempt)


def test_submit_with_free_text_needs_manual_grading(manager) -> None:
    quiz = manager.quiz_repository.add(
        make_quiz(
            single_select("q1"),
            free_text("q3"),
            negative_marking=NegativeMarking(enabled=True, penalty_value=1),
        )
    )
    attempt = manager.attempts.start(quiz.id, ALICE)
    answers = [_answer("q1", "a"), build_answer("q3", text_answer="essay", question=quiz.questions[1])]

    result = manager.attempts.submit(attempt.id, ALICE, answers)

    assert result.requires_manual_grading and not result.auto_graded
    text_answer = result.attempt.get_answer("q3")
    assert text_answer.is_correct is None
    assert text_answer.negative_score == 0


def test_submit_stops_running_recordings(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    screen = manager.attempts.start_recording(attempt.id, ALICE, RecordingType.SCREEN)
    camera = manager.attempts.start_recording(attempt.id, ALICE, RecordingType.CAMERA)
    manager.recordings.stop(camera.id)
    manager.recordings.mark(camera.id, RecordingStatus.AVAILABLE)

    manager.attempts.submit(attempt.id, ALICE, [])

    statuses = {r.id: r.status for r in manager.recordings.list_for_attempt(attempt.id)}
    assert statuses == {screen.id: RecordingStatus.PROCESSING, camera.id: RecordingStatus.AVAILABLE}


def test_submit_with_mismatched_quiz_id_is_not_found(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    with pytest.raises(NotFoundError):
        manager.attempts.submit(attempt.id, ALICE, [], quiz_id="other")


def test_question_timeout_marks_question_once(manager, per_question_quiz, activity_sink) -> None:
    attempt = manager.attempts.start(per_question_quiz.id, ALICE)

    timed_out = manager.attempts.handle_question_timeout(attempt.id, "q1", ALICE, _answer("q1", "b"))
    assert timed_out.timed_out_questions == ("q1",)
    assert timed_out.get_answer("q1").selected_options == ("b",)
    assert timed_out.activities[-1].metadata == {"questionId": "q1", "hadAnswer": True}

    again = manager.attempts.handle_question_timeout(attempt.id, "q1", ALICE, _answer("q1", "a"))
    assert again == timed_out
    assert _types(again).count("QUESTION_TIMEOUT") == 1
    assert [e.type for _, e in activity_sink.entries].count("QUESTION_TIMEOUT") == 1


def test_question_timeout_requires_per_question_mode(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    with pytest.raises(ValidationError):
        manager.attempts.handle_question_timeout(attempt.id, "q1", ALICE)


def test_question_timeout_for_unknown_question(manager, per_question_quiz) -> None:
    attempt = manager.attempts.start(per_question_quiz.id, ALICE)
    with pytest.raises(NotFoundError) as excinfo:
        manager.attempts.handle_question_timeout(attempt.id, "nope", ALICE)
    assert excinfo.value.code == "QUESTION_NOT_FOUND"


def test_question_countdown_survives_resume(manager, per_question_quiz, clock) -> None:
    attempt = manager.attempts.start(per_question_quiz.id, ALICE)
    clock.advance(seconds=20)
    manager.attempts.start_question(attempt.id, "q2", ALICE)
    clock.advance(seconds=5)
    manager.attempts.checkpoint_question_time(attempt.id, "q2", 44, ALICE)

    timing = manager.attempts.resume(attempt.id, ALICE).timing
    limits = {q.question_id: q.time_remaining for q in timing.question_time_limits}
    assert limits == {"q1": 5, "q2": 40}


def test_start_question_keeps_first_anchor(manager, per_question_quiz, clock) -> None:
    attempt = manager.attempts.start(per_question_quiz.id, ALICE)
    first = manager.attempts.start_question(attempt.id, "q2", ALICE)
    clock.advance(seconds=10)
    second = manager.attempts.start_question(attempt.id, "q2", ALICE)
    assert second.question_start_times["q2"] == first.question_start_times["q2"]


def test_log_activities_appends_and_forwards(manager, quiz, clock, activity_sink) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    entry = ActivityEntry(timestamp=clock.now, type="TAB_SWITCH", description="left the tab")
    assert manager.attempts.log_activities(attempt.id, ALICE, [entry]) == 2
    assert activity_sink.entries[-1] == (attempt.id, entry)


def test_get_attempt_hides_results_until_released(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    manager.attempts.submit(attempt.id, ALICE, [_answer("q1", "a")])

    view = manager.attempts.get_attempt(attempt.id, ALICE)
    assert not view.results_visible
    assert view.attempt.total_score is None
    assert view.attempt.answers[0].score is None

    admin_view = manager.attempts.get_attempt(attempt.id, ADMIN)
    assert admin_view.results_visible
    assert admin_view.attempt.total_score == 1


def test_get_attempt_of_other_user_is_denied(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    with pytest.raises(AccessDeniedError):
        manager.attempts.get_attempt(attempt.id, BOB)


def test_get_attempt_expires_stale_attempt(manager, quiz, clock) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    clock.advance(hours=1)
    view = manager.attempts.get_attempt(attempt.id, ALICE)
    assert view.attempt.status is AttemptStatus.EXPIRED
    assert view.timing.remaining_time == 0


def test_validate_answers_reports_completeness(manager, quiz) -> None:
    attempt = manager.attempts.start(quiz.id, ALICE)
    report = manager.attempts.validate_answers(attempt.id, ALICE, [_answer("q1", "a", "b")])
    assert not report.all_questions_answered
    assert not report.is_valid
    assert report.results[0].error == "Single-select questions require exactly one selected option"


def test_submit_withholds_results_while_free_text_awaits_review(manager) -> None:
    quiz = manager.quiz_repository.add(
        make_quiz(single_select("q1"), free_text("q3"), show_results_immediately=True)
    )
    attempt = manager.attempts.start(quiz.id, ALICE)

    result = manager.attempts.submit(attempt.id, ALICE, [_answer("q1", "b")])

    assert result.attempt.total_score == 0
    assert not result.view.results_visible
    assert result.view.attempt.total_score is None
    assert result.view.attempt.get_answer("q1").is_correct is None
    body = submission_to_dict(result)
    assert body["attempt"]["totalScore"] is None
    assert body["attempt"]["answers"][0]["isCorrect"] is None
    assert body["scoreBreakdown"] is None
