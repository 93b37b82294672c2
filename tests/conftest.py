"""Shared fixtures: a controllable clock, quiz builders and a wired manager."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from proctor_app.core.models import (
    NegativeMarking,
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    Requester,
    TimingMode,
)
from proctor_app.core.proctor_manager import ProctorManager
from proctor_app.core.services.activity_log import MemoryActivitySink

START = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)

ADMIN = Requester(user_id="admin-1", is_admin=True)
ALICE = Requester(user_id="alice")
BOB = Requester(user_id="bob")


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def single_select(question_id: str = "q1", points: float = 1, time_limit: int | None = None) -> Question:
    return Question(
        id=question_id,
        type=QuestionType.SINGLE_SELECT,
        text=f"Question {question_id}",
        options=(
            QuestionOption(id="a", text="Right", is_correct=True),
            QuestionOption(id="b", text="Wrong"),
        ),
        points=points,
        time_limit_seconds=time_limit,
    )


def multi_select(question_id: str = "q2", points: float = 1, time_limit: int | None = None) -> Question:
    return Question(
        id=question_id,
        type=QuestionType.MULTI_SELECT,
        text=f"Question {question_id}",
        options=(
            QuestionOption(id="a", text="One", is_correct=True),
            QuestionOption(id="b", text="Two", is_correct=True),
            QuestionOption(id="c", text="Three"),
        ),
        points=points,
        time_limit_seconds=time_limit,
    )


def free_text(question_id: str = "q3", points: float = 2, time_limit: int | None = None) -> Question:
    return Question(
        id=question_id,
        type=QuestionType.FREE_TEXT,
        text=f"Question {question_id}",
        points=points,
        time_limit_seconds=time_limit,
    )


def make_quiz(
    *questions: Question,
    quiz_id: str = "quiz-1",
    timing_mode: TimingMode = TimingMode.TOTAL,
    duration_minutes: int | None = 10,
    negative_marking: NegativeMarking | None = None,
    show_results_immediately: bool = False,
    activated_users: tuple[str, ...] = ("alice", "bob"),
    is_active: bool = True,
) -> Quiz:
    return Quiz(
        id=quiz_id,
        title="Sample quiz",
        description="",
        questions=questions or (single_select("q1"), single_select("q2")),
        timing_mode=timing_mode,
        duration_minutes=duration_minutes if timing_mode is TimingMode.TOTAL else None,
        negative_marking=negative_marking or NegativeMarking(),
        show_results_immediately=show_results_immediately,
        activated_users=frozenset(activated_users),
        is_active=is_active,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def activity_sink() -> MemoryActivitySink:
    return MemoryActivitySink()


@pytest.fixture
def manager(clock: FakeClock, activity_sink: MemoryActivitySink) -> ProctorManager:
    return ProctorManager(clock=clock, activity_sink=activity_sink)
