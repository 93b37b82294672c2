from dataclasses import replace

import pytest

from conftest import ADMIN, ALICE, BOB, free_text, make_quiz, single_select
from proctor_app.core.answer_parser import build_answer
from proctor_app.core.errors import AccessDeniedError, ConflictError
from proctor_app.core.models import AttemptStatus, NegativeMarking
from proctor_app.core.services.score_recalculator import ScoreRecalculator


def _answer(question_id, *options):
    return build_answer(question_id, list(options))


@pytest.fixture
def quiz(manager):
    return manager.quiz_repository.add(
        make_quiz(single_select("q1"), single_select("q2"), free_text("q3"))
    )


def _submit(manager, quiz, requester, answers):
    attempt = manager.attempts.start(quiz.id, requester)
    return manager.attempts.submit(attempt.id, requester, answers).attempt


def test_enabling_negative_marking_rescores_finished_attempts(manager, quiz) -> None:
    submitted = _submit(
        manager,
        quiz,
        ALICE,
        [_answer("q1", "a"), _answer("q2", "b"), build_answer("q3", text_answer="x", question=quiz.questions[2])],
    )
    assert submitted.total_score == 1
    assert submitted.negative_marking_applied is False

    update = manager.quizzes.update_negative_marking(quiz.id, ADMIN, enabled=True, penalty_value=0.25)

    report = update.recalculation
    assert (report.processed, report.updated) == (1, 1)
    assert report.negative_marking_enabled is True
    assert report.penalty_value == 0.25
    assert report.failures == ()

    rescored = manager.attempt_repository.get(submitted.id)
    assert rescored.total_score == 0.75
    assert rescored.negative_marking_applied is True
    assert rescored.get_answer("q2").negative_score == 0.25
    assert rescored.get_answer("q1").negative_score == 0
    assert rescored.get_answer("q3").negative_score == 0
    assert rescored.get_answer("q2").is_correct is False


def test_recalculation_is_idempotent(manager, quiz) -> None:
    _submit(manager, quiz, ALICE, [_answer("q1", "a"), _answer("q2", "b")])
    manager.quizzes.update_negative_marking(quiz.id, ADMIN, enabled=True, penalty_value=0.25)

    again = manager.recalculator.recalculate_quiz(quiz.id, ADMIN)
    assert (again.processed, again.updated) == (1, 0)


def test_disabling_negative_marking_restores_positive_totals(manager) -> None:
    quiz = manager.quiz_repository.add(
        make_quiz(negative_marking=NegativeMarking(enabled=True, penalty_value=0.5))
    )
    submitted = _submit(manager, quiz, ALICE, [_answer("q1", "b"), _answer("q2", "b")])
    assert submitted.total_score == -1.0

    update = manager.quizzes.update_negative_marking(quiz.id, ADMIN, enabled=False)

    assert update.recalculation.updated == 1
    rescored = manager.attempt_repository.get(submitted.id)
    assert rescored.total_score == 0
    assert rescored.negative_marking_applied is False


def test_in_progress_and_time_up_attempts_are_left_alone(manager, quiz) -> None:
    live = manager.attempts.start(quiz.id, ALICE)
    late = manager.attempts.start(quiz.id, BOB)
    manager.attempts.submit(late.id, BOB, [_answer("q1", "b")], time_expired=True)

    report = manager.recalculator.recalculate(
        manager.quizzes.update_negative_marking(quiz.id, ADMIN, enabled=True, penalty_value=1).quiz
    )

    assert report.processed == 0
    assert manager.attempt_repository.get(live.id).status is AttemptStatus.IN_PROGRESS
    assert manager.attempt_repository.get(late.id).total_score == 0


def test_reviewed_attempts_are_rescored_too(manager, quiz) -> None:
    submitted = _submit(manager, quiz, ALICE, [_answer("q1", "b")])
    manager.reviews.complete_review(submitted.id, ADMIN)

    report = manager.quizzes.update_negative_marking(
        quiz.id, ADMIN, enabled=True, penalty_value=0.5
    ).recalculation

    assert report.updated == 1
    stored = manager.attempt_repository.get(submitted.id)
    assert stored.status is AttemptStatus.REVIEWED
    assert stored.total_score == -0.5


def test_unchanged_settings_skip_recalculation(manager, quiz) -> None:
    update = manager.quizzes.update_negative_marking(quiz.id, ADMIN, enabled=False, penalty_value=0)
    assert update.recalculation is None


def test_manual_recalculation_is_admin_only(manager, quiz) -> None:
    with pytest.raises(AccessDeniedError):
        manager.recalculator.recalculate_quiz(quiz.id, ALICE)


class _RacingAttemptStore:
    """Delegates to a real store but loses the save race for one attempt."""

    def __init__(self, store, losing_id):
        self._store = store
        self._losing_id = losing_id

    def __getattr__(self, name):
        return getattr(self._store, name)

    def save(self, attempt, expected_status=None):
        if attempt.id == self._losing_id:
            raise ConflictError("Attempt was modified concurrently", code="CONCURRENT_MODIFICATION")
        return self._store.save(attempt, expected_status)


def test_failed_attempt_does_not_abort_the_batch(manager, quiz) -> None:
    alice = _submit(manager, quiz, ALICE, [_answer("q1", "a"), _answer("q2", "b")])
    bob = _submit(manager, quiz, BOB, [_answer("q1", "b"), _answer("q2", "a")])
    enabled = manager.quiz_repository.save(
        replace(quiz, negative_marking=NegativeMarking(enabled=True, penalty_value=0.25))
    )

    recalculator = ScoreRecalculator(
        manager.quiz_repository, _RacingAttemptStore(manager.attempt_repository, bob.id)
    )
    report = recalculator.recalculate(enabled)

    assert (report.processed, report.updated) == (2, 1)
    assert [failure.attempt_id for failure in report.failures] == [bob.id]
    assert "modified concurrently" in report.failures[0].error
    assert manager.attempt_repository.get(alice.id).total_score == 0.75
    assert manager.attempt_repository.get(bob.id).total_score == 1
