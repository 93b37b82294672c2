"""FastAPI server exposing the attempt, review and quiz settings endpoints.

Authentication happens upstream; the requester arrives as ``X-User-Id`` and
``X-User-Role`` headers. Every JSON body is wrapped as
``{"status": "success", "data": ...}`` or ``{"status": "error", "code", "message"}``.
"""

from __future__ import annotations

from datetime import datetime
import logging
from threading import Thread
from typing import Any

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
import uvicorn

from proctor_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from proctor_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from proctor_app.core.errors import (
    AccessDeniedError,
    AuthenticationError,
    ConflictError,
    ExpiredError,
    NotFoundError,
    ProctorError,
    ValidationError,
)
from proctor_app.core.models import (
    ActivityEntry,
    NegativeMarking,
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    Recording,
    RecordingSettings,
    RecordingStatus,
    RecordingType,
    Requester,
    ResultVisibilitySettings,
    TimingMode,
)
from proctor_app.core.proctor_manager import ProctorManager
from proctor_app.core.services.access_policy import ensure_admin
from proctor_app.core.services.review_service import AnswerGradeUpdate, BatchAction
from proctor_app.core.timing_validator import recommended_time_limits
from proctor_app.server import serializers

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

_STATUS_BY_ERROR: tuple[tuple[type[ProctorError], int], ...] = (
    (AuthenticationError, 401),
    (AccessDeniedError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ExpiredError, 410),
    (ValidationError, 422),
)


class _Payload(BaseModel):
    """Base schema accepting camelCase keys (and snake_case field names)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OptionPayload(_Payload):
    id: str
    text: str
    is_correct: bool = False
    probability: float | None = None


class QuestionPayload(_Payload):
    id: str
    type: QuestionType
    question: str
    options: list[OptionPayload] = Field(default_factory=list)
    points: float = 1
    time_limit: int | None = None


class NegativeMarkingPayload(_Payload):
    enabled: bool | None = None
    penalty_value: float | None = None


class VisibilitySettingsPayload(_Payload):
    show_question_details: bool = True
    show_correct_answers: bool = True
    show_user_answers: bool = True
    show_feedback: bool = True


class RecordingSettingsPayload(_Payload):
    enable_microphone: bool = True
    enable_camera: bool = True
    enable_screen: bool = True


class QuizPayload(_Payload):
    """Payload schema for creating a quiz."""

    id: str = ""
    title: str
    description: str = ""
    questions: list[QuestionPayload] = Field(default_factory=list)
    timing_mode: TimingMode = TimingMode.TOTAL
    duration: int | None = None
    negative_marking: NegativeMarkingPayload = Field(default_factory=NegativeMarkingPayload)
    result_visibility_settings: VisibilitySettingsPayload = Field(default_factory=VisibilitySettingsPayload)
    recording_settings: RecordingSettingsPayload = Field(default_factory=RecordingSettingsPayload)
    show_results_immediately: bool = False
    activated_users: list[str] = Field(default_factory=list)
    is_active: bool = False

    def to_quiz(self) -> Quiz:
        return Quiz(
            id=self.id,
            title=self.title,
            description=self.description,
            questions=tuple(
                Question(
                    id=q.id,
                    type=q.type,
                    text=q.question,
                    options=tuple(
                        QuestionOption(o.id, o.text, o.is_correct, o.probability) for o in q.options
                    ),
                    points=q.points,
                    time_limit_seconds=q.time_limit,
                )
                for q in self.questions
            ),
            timing_mode=self.timing_mode,
            duration_minutes=self.duration,
            negative_marking=NegativeMarking(
                enabled=bool(self.negative_marking.enabled),
                penalty_value=self.negative_marking.penalty_value or 0.0,
            ),
            result_visibility=ResultVisibilitySettings(
                **self.result_visibility_settings.model_dump()
            ),
            recording_settings=RecordingSettings(**self.recording_settings.model_dump()),
            show_results_immediately=self.show_results_immediately,
            activated_users=frozenset(self.activated_users),
            is_active=self.is_active,
        )


class TimingPayload(_Payload):
    timing_mode: TimingMode
    duration: int | None = None
    question_time_limits: dict[str, int] | None = None


class ResultVisibilityPayload(_Payload):
    show_results_immediately: bool


class ActivationPayload(_Payload):
    is_active: bool | None = None
    add_users: list[str] = Field(default_factory=list)
    remove_users: list[str] = Field(default_factory=list)


class StartAttemptPayload(_Payload):
    quiz_id: str


class AnswerPayload(_Payload):
    question_id: str
    selected_options: list[str] | None = None
    text_answer: str | None = None


class AnswersPayload(_Payload):
    answers: list[AnswerPayload] = Field(default_factory=list)
    quiz_id: str | None = None


class SubmitPayload(AnswersPayload):
    time_expired: bool = False


class QuestionTimePayload(_Payload):
    time_remaining: int = Field(ge=0)


class PartialAnswerPayload(_Payload):
    selected_options: list[str] | None = None
    text_answer: str | None = None


class QuestionTimeoutPayload(_Payload):
    answer: PartialAnswerPayload | None = None


class ActivityPayload(_Payload):
    type: str
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime | None = None


class ActivitiesPayload(_Payload):
    activities: list[ActivityPayload]


class GradePayload(_Payload):
    score: float | None = None
    negative_score: float | None = None
    is_correct: bool | None = None
    feedback: str | None = None


class ReviewAnswerPayload(GradePayload):
    question_id: str


class ReviewPayload(_Payload):
    answers: list[ReviewAnswerPayload] = Field(default_factory=list)


class BatchPayload(_Payload):
    attempt_ids: list[str]
    action: BatchAction


class RecordingPayload(_Payload):
    type: RecordingType


class RecordingStatusPayload(_Payload):
    status: RecordingStatus


def _success(data: Any) -> dict[str, Any]:
    return {"status": "success", "data": data}


def _error_response(status_code: int, code: str, message: str, **extra: Any) -> JSONResponse:
    content = {"status": "error", "code": code, "message": message, **extra}
    return JSONResponse(status_code=status_code, content=content)


def status_for(error: ProctorError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 500


def _get_proctor_manager_dependency(proctor_manager: ProctorManager):
    def dependency() -> ProctorManager:
        return proctor_manager

    return dependency


def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Requester:
    """Identity supplied by the authentication layer in front of the API."""
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("Missing X-User-Id header")
    return Requester(
        user_id=x_user_id.strip(),
        is_admin=(x_user_role or "").strip().lower() == ADMIN_ROLE,
    )


def create_api_app(proctor_manager: ProctorManager) -> FastAPI:
    """Create a FastAPI application wired to the provided proctor manager."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    manager_dep = _get_proctor_manager_dependency(proctor_manager)

    @app.exception_handler(ProctorError)
    async def handle_domain_error(request: Request, exc: ProctorError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("Unhandled domain error on %s: %s", request.url.path, exc)
        extra = {"errors": exc.errors} if isinstance(exc, ValidationError) else {}
        return _error_response(status_code, exc.code, exc.message, **extra)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        ]
        return _error_response(422, "INVALID_REQUEST", "Request validation failed", errors=errors)

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "name": APP_NAME, "version": APP_VERSION}

    # --- Quizzes --------------------------------------------------------

    @app.post("/api/quizzes", status_code=201)
    def create_quiz(
        payload: QuizPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        quiz = manager.quizzes.create_quiz(payload.to_quiz(), requester)
        return _success(serializers.quiz_to_dict(quiz, include_answers=True))

    @app.get("/api/quizzes")
    def list_quizzes(
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        quizzes = manager.quizzes.list_quizzes(requester)
        return _success([serializers.quiz_to_dict(q, include_answers=requester.is_admin) for q in quizzes])

    @app.get("/api/timing/recommendations/{question_type}")
    def get_recommended_time_limits(
        question_type: str,
        requester: Requester = Depends(get_requester),
    ) -> dict[str, object]:
        return _success(
            {"questionType": question_type, "recommendedLimits": list(recommended_time_limits(question_type))}
        )

    @app.get("/api/quizzes/{quiz_id}")
    def get_quiz(
        quiz_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        quiz = manager.quizzes.get_quiz(quiz_id, requester)
        return _success(serializers.quiz_to_dict(quiz, include_answers=requester.is_admin))

    @app.get("/api/quizzes/{quiz_id}/timing")
    def get_quiz_timing(
        quiz_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return _success(serializers.timing_to_dict(manager.quizzes.timing_settings(quiz_id, requester)))

    @app.put("/api/quizzes/{quiz_id}/timing")
    def update_quiz_timing(
        quiz_id: str,
        payload: TimingPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        update = manager.quizzes.update_timing(
            quiz_id,
            requester,
            timing_mode=payload.timing_mode,
            duration_minutes=payload.duration,
            question_time_limits=payload.question_time_limits,
        )
        return _success(
            {
                "quiz": serializers.quiz_to_dict(update.quiz, include_answers=True),
                "warnings": list(update.warnings),
            }
        )

    @app.put("/api/quizzes/{quiz_id}/negative-marking")
    def update_negative_marking(
        quiz_id: str,
        payload: NegativeMarkingPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        update = manager.quizzes.update_negative_marking(
            quiz_id,
            requester,
            enabled=payload.enabled,
            penalty_value=payload.penalty_value,
        )
        return _success(
            {
                "negativeMarking": {
                    "enabled": update.quiz.negative_marking.enabled,
                    "penaltyValue": update.quiz.negative_marking.penalty_value,
                },
                "recalculation": serializers.recalculation_to_dict(update.recalculation),
            }
        )

    @app.post("/api/quizzes/{quiz_id}/recalculate")
    def recalculate_scores(
        quiz_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        report = manager.recalculator.recalculate_quiz(quiz_id, requester)
        return _success(serializers.recalculation_to_dict(report))

    @app.get("/api/quizzes/{quiz_id}/result-visibility")
    def get_quiz_result_visibility(
        quiz_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        status = manager.quizzes.result_visibility_status(quiz_id, requester)
        return _success(serializers.quiz_visibility_to_dict(status))

    @app.put("/api/quizzes/{quiz_id}/result-visibility")
    def update_quiz_result_visibility(
        quiz_id: str,
        payload: ResultVisibilityPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        manager.quizzes.update_result_visibility(quiz_id, payload.show_results_immediately, requester)
        status = manager.quizzes.result_visibility_status(quiz_id, requester)
        return _success(serializers.quiz_visibility_to_dict(status))

    @app.put("/api/quizzes/{quiz_id}/activation")
    def update_quiz_activation(
        quiz_id: str,
        payload: ActivationPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        quiz = manager.quizzes.update_activation(
            quiz_id,
            requester,
            is_active=payload.is_active,
            add_users=payload.add_users,
            remove_users=payload.remove_users,
        )
        return _success(serializers.quiz_to_dict(quiz, include_answers=True))

    # --- Attempts: fixed paths before /{attempt_id} -----------------------

    @app.post("/api/attempts/start", status_code=201)
    def start_attempt(
        payload: StartAttemptPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        attempt = manager.attempts.start(payload.quiz_id, requester)
        quiz = manager.quiz_repository.get(attempt.quiz_id)
        return _success(
            {
                "attempt": serializers.attempt_to_dict(attempt),
                "quiz": serializers.quiz_to_dict(quiz, include_answers=requester.is_admin),
            }
        )

    @app.get("/api/attempts/check/{quiz_id}")
    def check_attempt(
        quiz_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return _success(serializers.availability_to_dict(manager.attempts.check(quiz_id, requester)))

    @app.get("/api/attempts/pending-review")
    def pending_reviews(
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        attempts = manager.reviews.pending_reviews(requester)
        return _success([serializers.attempt_to_dict(attempt) for attempt in attempts])

    @app.put("/api/attempts/batch")
    def batch_update(
        payload: BatchPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        result = manager.reviews.batch_update(payload.attempt_ids, payload.action, requester)
        return _success(serializers.batch_result_to_dict(result))

    # --- Attempts: lifecycle --------------------------------------------

    @app.get("/api/attempts/{attempt_id}/resume")
    def resume_attempt(
        attempt_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        resumed = manager.attempts.resume(attempt_id, requester)
        quiz = manager.quiz_repository.get(resumed.attempt.quiz_id)
        return _success(
            {
                "attempt": serializers.attempt_to_dict(resumed.attempt),
                "quiz": serializers.quiz_to_dict(quiz, include_answers=requester.is_admin),
                "timing": serializers.timing_to_dict(resumed.timing),
            }
        )

    @app.put("/api/attempts/{attempt_id}/answers")
    def save_answers(
        attempt_id: str,
        payload: AnswersPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        answers = manager.attempts.parse_answers(attempt_id, _raw_answers(payload.answers))
        attempt = manager.attempts.save_answers(attempt_id, requester, answers)
        return _success(serializers.attempt_to_dict(attempt))

    @app.post("/api/attempts/{attempt_id}/validate")
    def validate_answers(
        attempt_id: str,
        payload: AnswersPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        answers = manager.attempts.parse_answers(attempt_id, _raw_answers(payload.answers))
        report = manager.attempts.validate_answers(attempt_id, requester, answers, payload.quiz_id)
        return _success(serializers.validation_report_to_dict(report))

    @app.post("/api/attempts/{attempt_id}/submit")
    def submit_attempt(
        attempt_id: str,
        payload: SubmitPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        answers = manager.attempts.parse_answers(attempt_id, _raw_answers(payload.answers))
        result = manager.attempts.submit(
            attempt_id,
            requester,
            answers,
            time_expired=payload.time_expired,
            quiz_id=payload.quiz_id,
        )
        return _success(serializers.submission_to_dict(result))

    @app.post("/api/attempts/{attempt_id}/questions/{question_id}/start")
    def start_question(
        attempt_id: str,
        question_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        attempt = manager.attempts.start_question(attempt_id, question_id, requester)
        return _success(serializers.attempt_to_dict(attempt))

    @app.put("/api/attempts/{attempt_id}/questions/{question_id}/time")
    def checkpoint_question_time(
        attempt_id: str,
        question_id: str,
        payload: QuestionTimePayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        attempt = manager.attempts.checkpoint_question_time(
            attempt_id, question_id, payload.time_remaining, requester
        )
        return _success(serializers.attempt_to_dict(attempt))

    @app.post("/api/attempts/{attempt_id}/questions/{question_id}/timeout")
    def question_timeout(
        attempt_id: str,
        question_id: str,
        payload: QuestionTimeoutPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        partial = None
        if payload.answer is not None:
            raw = {"questionId": question_id, **payload.answer.model_dump(by_alias=True)}
            (partial,) = manager.attempts.parse_answers(attempt_id, [raw])
        attempt = manager.attempts.handle_question_timeout(attempt_id, question_id, requester, partial)
        return _success(serializers.attempt_to_dict(attempt))

    @app.post("/api/attempts/{attempt_id}/activities")
    def log_activities(
        attempt_id: str,
        payload: ActivitiesPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        now = manager.clock()
        entries = [
            ActivityEntry(
                timestamp=activity.timestamp or now,
                type=activity.type,
                description=activity.description,
                metadata=activity.metadata,
            )
            for activity in payload.activities
        ]
        count = manager.attempts.log_activities(attempt_id, requester, entries)
        return _success({"activityCount": count})

    @app.post("/api/attempts/{attempt_id}/recordings", status_code=201)
    def start_recording(
        attempt_id: str,
        payload: RecordingPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        recording = manager.attempts.start_recording(attempt_id, requester, payload.type)
        return _success(serializers.recording_to_dict(recording))

    @app.get("/api/recordings/{recording_id}")
    def get_recording(
        recording_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return _success(serializers.recording_to_dict(_owned_recording(manager, recording_id, requester)))

    @app.post("/api/recordings/{recording_id}/stop")
    def stop_recording(
        recording_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        _owned_recording(manager, recording_id, requester)
        return _success(serializers.recording_to_dict(manager.recordings.stop(recording_id)))

    @app.put("/api/recordings/{recording_id}/status")
    def finish_recording(
        recording_id: str,
        payload: RecordingStatusPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        ensure_admin(requester)
        return _success(serializers.recording_to_dict(manager.recordings.mark(recording_id, payload.status)))

    @app.get("/api/attempts/{attempt_id}/result-visibility")
    def get_attempt_result_visibility(
        attempt_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        status = manager.attempts.visibility_status(attempt_id, requester)
        return _success(serializers.attempt_visibility_to_dict(status))

    @app.get("/api/attempts/{attempt_id}")
    def get_attempt(
        attempt_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        view = manager.attempts.get_attempt(attempt_id, requester)
        data = serializers.attempt_view_to_dict(view, include_activities=requester.is_admin)
        if requester.is_admin:
            data["recordings"] = [
                serializers.recording_to_dict(r) for r in manager.recordings.list_for_attempt(attempt_id)
            ]
        return _success(data)

    # --- Review (admin) -------------------------------------------------

    @app.put("/api/attempts/{attempt_id}/review")
    def review_attempt(
        attempt_id: str,
        payload: ReviewPayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        updates = [
            AnswerGradeUpdate(
                question_id=item.question_id,
                score=item.score,
                negative_score=item.negative_score,
                is_correct=item.is_correct,
                feedback=item.feedback,
            )
            for item in payload.answers
        ]
        attempt = manager.reviews.review_attempt(attempt_id, requester, updates)
        return _success(serializers.attempt_to_dict(attempt))

    @app.put("/api/attempts/{attempt_id}/answers/{question_id}/grade")
    def update_answer_grade(
        attempt_id: str,
        question_id: str,
        payload: GradePayload,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        update = AnswerGradeUpdate(
            question_id=question_id,
            score=payload.score,
            negative_score=payload.negative_score,
            is_correct=payload.is_correct,
            feedback=payload.feedback,
        )
        attempt = manager.reviews.update_answer_grade(attempt_id, update, requester)
        return _success(serializers.attempt_to_dict(attempt))

    @app.post("/api/attempts/{attempt_id}/complete-review")
    def complete_review(
        attempt_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        attempt = manager.reviews.complete_review(attempt_id, requester)
        return _success(serializers.attempt_to_dict(attempt))

    @app.post("/api/attempts/{attempt_id}/unreview")
    def unreview_attempt(
        attempt_id: str,
        requester: Requester = Depends(get_requester),
        manager: ProctorManager = Depends(manager_dep),
    ) -> dict[str, object]:
        attempt = manager.reviews.unreview(attempt_id, requester)
        return _success(serializers.attempt_to_dict(attempt))

    return app


def _owned_recording(manager: ProctorManager, recording_id: str, requester: Requester) -> Recording:
    recording = manager.recordings.get(recording_id)
    if not requester.is_admin and recording.user_id != requester.user_id:
        raise AccessDeniedError("You do not have access to this recording")
    return recording


def _raw_answers(answers: list[AnswerPayload]) -> list[dict[str, Any]]:
    return [answer.model_dump(by_alias=True) for answer in answers]


def start_api_server(
    proctor_manager: ProctorManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(proctor_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ProctorApiServer", daemon=True)
    thread.start()
    return thread
