"""Domain models for quizzes, attempts and proctoring recordings.

Quiz and Attempt are immutable value objects: a change produces a new instance
(``dataclasses.replace``) that is persisted through a repository, which bumps
``version`` so concurrent writers can be detected.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Union


class TimingMode(str, Enum):
    TOTAL = "total"
    PER_QUESTION = "per-question"


class QuestionType(str, Enum):
    SINGLE_SELECT = "single-select"
    MULTI_SELECT = "multi-select"
    FREE_TEXT = "free-text"

    @property
    def is_auto_graded(self) -> bool:
        return self is not QuestionType.FREE_TEXT


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    TIME_UP = "time_up"
    EXPIRED = "expired"


class RecordingType(str, Enum):
    SCREEN = "screen"
    CAMERA = "camera"
    MICROPHONE = "microphone"


class RecordingStatus(str, Enum):
    RECORDING = "recording"
    PROCESSING = "processing"
    AVAILABLE = "available"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class QuestionOption:
    """Selectable option of a single- or multi-select question."""

    id: str
    text: str
    is_correct: bool = False
    probability: float | None = None  # 0-100, informational only


@dataclass(slots=True, frozen=True)
class Question:
    """Question embedded in a quiz, identified by a stable id."""

    id: str
    type: QuestionType
    text: str
    options: tuple[QuestionOption, ...] = ()
    points: float = 1
    time_limit_seconds: int | None = None

    def option_ids(self) -> set[str]:
        return {option.id for option in self.options}

    def correct_option_ids(self) -> set[str]:
        return {option.id for option in self.options if option.is_correct}


@dataclass(slots=True, frozen=True)
class NegativeMarking:
    enabled: bool = False
    penalty_value: float = 0.0


@dataclass(slots=True, frozen=True)
class ResultVisibilitySettings:
    """Which parts of a released result a user may see."""

    show_question_details: bool = True
    show_correct_answers: bool = True
    show_user_answers: bool = True
    show_feedback: bool = True


@dataclass(slots=True, frozen=True)
class RecordingSettings:
    enable_microphone: bool = True
    enable_camera: bool = True
    enable_screen: bool = True


@dataclass(slots=True, frozen=True)
class Quiz:
    """Timed quiz authored by an administrator."""

    id: str
    title: str
    description: str
    questions: tuple[Question, ...] = ()
    timing_mode: TimingMode = TimingMode.TOTAL
    duration_minutes: int | None = None
    negative_marking: NegativeMarking = field(default_factory=NegativeMarking)
    result_visibility: ResultVisibilitySettings = field(default_factory=ResultVisibilitySettings)
    recording_settings: RecordingSettings = field(default_factory=RecordingSettings)
    show_results_immediately: bool = False
    activated_users: frozenset[str] = frozenset()
    is_active: bool = False
    created_by: str | None = None
    version: int = 0

    def max_score(self) -> float:
        return sum(question.points for question in self.questions)

    def get_question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)

    def has_free_text_questions(self) -> bool:
        return any(q.type is QuestionType.FREE_TEXT for q in self.questions)


@dataclass(slots=True, frozen=True)
class SelectionResponse:
    """Option ids picked for a single- or multi-select question."""

    option_ids: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class TextResponse:
    """Free-form text typed for a free-text question."""

    text: str = ""


AnswerResponse = Union[SelectionResponse, TextResponse]


@dataclass(slots=True, frozen=True)
class Answer:
    """A user's answer to one question plus its grading outcome.

    ``is_correct`` of ``None`` means ungraded or awaiting manual review.
    Score fields become ``None`` only in sanitized copies handed to users.
    """

    question_id: str
    response: AnswerResponse | None = field(default_factory=SelectionResponse)
    is_correct: bool | None = None
    score: float | None = 0.0
    negative_score: float | None = 0.0
    feedback: str | None = None

    @property
    def selected_options(self) -> tuple[str, ...]:
        if isinstance(self.response, SelectionResponse):
            return self.response.option_ids
        return ()

    @property
    def text_answer(self) -> str | None:
        if isinstance(self.response, TextResponse):
            return self.response.text
        return None

    def ungraded(self) -> Answer:
        return replace(self, is_correct=None, score=0.0, negative_score=0.0, feedback=None)


@dataclass(slots=True, frozen=True)
class ActivityEntry:
    """One event in an attempt's append-only activity log."""

    timestamp: datetime
    type: str
    description: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class Attempt:
    """One user's run through a quiz."""

    id: str
    quiz_id: str
    user_id: str
    start_time: datetime
    max_score: float
    timing_mode: TimingMode = TimingMode.TOTAL
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    end_time: datetime | None = None
    answers: tuple[Answer, ...] = ()
    total_score: float | None = 0.0
    negative_marking_applied: bool = False
    question_start_times: Mapping[str, datetime] = field(default_factory=dict)
    question_time_remaining: Mapping[str, int] = field(default_factory=dict)
    timed_out_questions: tuple[str, ...] = ()
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    activities: tuple[ActivityEntry, ...] = ()
    version: int = 0

    def get_answer(self, question_id: str) -> Answer | None:
        return next((a for a in self.answers if a.question_id == question_id), None)

    def is_question_timed_out(self, question_id: str) -> bool:
        return question_id in self.timed_out_questions

    def with_activity(self, entry: ActivityEntry) -> Attempt:
        return replace(self, activities=self.activities + (entry,))


@dataclass(slots=True, frozen=True)
class Recording:
    """Screen, camera or microphone capture attached to an attempt."""

    id: str
    attempt_id: str
    user_id: str
    type: RecordingType
    start_time: datetime
    end_time: datetime | None = None
    status: RecordingStatus = RecordingStatus.RECORDING

    @property
    def duration_seconds(self) -> int:
        if self.end_time is None:
            return 0
        return round((self.end_time - self.start_time).total_seconds())


@dataclass(slots=True, frozen=True)
class Requester:
    """Identity handed over by the external authentication layer."""

    user_id: str
    is_admin: bool = False
