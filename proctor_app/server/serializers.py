"""JSON shapes of the domain objects returned by the API (camelCase keys)."""

from __future__ import annotations

from typing import Any

from proctor_app.core.answer_grader import ScoreBreakdown
from proctor_app.core.models import (
    ActivityEntry,
    Answer,
    Attempt,
    Question,
    Quiz,
    Recording,
    SelectionResponse,
    TextResponse,
)
from proctor_app.core.quiz_validator import AnswerValidationReport
from proctor_app.core.services.attempt_service import AttemptAvailability, SubmissionResult
from proctor_app.core.services.result_visibility import (
    AttemptView,
    AttemptVisibilityStatus,
    QuizVisibilityStatus,
)
from proctor_app.core.services.review_service import BatchResult
from proctor_app.core.services.score_recalculator import RecalculationReport
from proctor_app.core.timing_policy import TimingInfo
from proctor_app.utils.time_utils import to_iso_utc


def question_to_dict(question: Question, include_answers: bool) -> dict[str, Any]:
    options = []
    for option in question.options:
        item: dict[str, Any] = {"id": option.id, "text": option.text}
        if include_answers:
            item["isCorrect"] = option.is_correct
            item["probability"] = option.probability
        options.append(item)
    return {
        "id": question.id,
        "type": question.type.value,
        "question": question.text,
        "options": options,
        "points": question.points,
        "timeLimit": question.time_limit_seconds,
    }


def quiz_to_dict(quiz: Quiz, include_answers: bool = False) -> dict[str, Any]:
    """Quiz definition; correct options are only included for admins."""
    data: dict[str, Any] = {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "questions": [question_to_dict(q, include_answers) for q in quiz.questions],
        "timingMode": quiz.timing_mode.value,
        "duration": quiz.duration_minutes,
        "maxScore": quiz.max_score(),
        "showResultsImmediately": quiz.show_results_immediately,
        "negativeMarking": {
            "enabled": quiz.negative_marking.enabled,
            "penaltyValue": quiz.negative_marking.penalty_value,
        },
        "recordingSettings": {
            "enableMicrophone": quiz.recording_settings.enable_microphone,
            "enableCamera": quiz.recording_settings.enable_camera,
            "enableScreen": quiz.recording_settings.enable_screen,
        },
    }
    if include_answers:
        data["resultVisibilitySettings"] = {
            "showQuestionDetails": quiz.result_visibility.show_question_details,
            "showCorrectAnswers": quiz.result_visibility.show_correct_answers,
            "showUserAnswers": quiz.result_visibility.show_user_answers,
            "showFeedback": quiz.result_visibility.show_feedback,
        }
        data["activatedUsers"] = sorted(quiz.activated_users)
        data["isActive"] = quiz.is_active
        data["createdBy"] = quiz.created_by
    return data


def answer_to_dict(answer: Answer) -> dict[str, Any]:
    selected = None
    text = None
    if isinstance(answer.response, SelectionResponse):
        selected = list(answer.response.option_ids)
    elif isinstance(answer.response, TextResponse):
        text = answer.response.text
    return {
        "questionId": answer.question_id,
        "selectedOptions": selected,
        "textAnswer": text,
        "isCorrect": answer.is_correct,
        "score": answer.score,
        "negativeScore": answer.negative_score,
        "feedback": answer.feedback,
    }


def activity_to_dict(entry: ActivityEntry) -> dict[str, Any]:
    return {
        "timestamp": to_iso_utc(entry.timestamp),
        "type": entry.type,
        "description": entry.description,
        "metadata": dict(entry.metadata),
    }


def attempt_to_dict(attempt: Attempt, include_activities: bool = False) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": attempt.id,
        "quizId": attempt.quiz_id,
        "userId": attempt.user_id,
        "status": attempt.status.value,
        "timingMode": attempt.timing_mode.value,
        "startTime": to_iso_utc(attempt.start_time),
        "endTime": to_iso_utc(attempt.end_time),
        "answers": [answer_to_dict(answer) for answer in attempt.answers],
        "totalScore": attempt.total_score,
        "maxScore": attempt.max_score,
        "negativeMarkingApplied": attempt.negative_marking_applied,
        "questionStartTimes": {
            question_id: to_iso_utc(started) for question_id, started in attempt.question_start_times.items()
        },
        "questionTimeRemaining": dict(attempt.question_time_remaining),
        "timedOutQuestions": list(attempt.timed_out_questions),
        "reviewedBy": attempt.reviewed_by,
        "reviewedAt": to_iso_utc(attempt.reviewed_at),
    }
    if include_activities:
        data["activities"] = [activity_to_dict(entry) for entry in attempt.activities]
    return data


def timing_to_dict(timing: TimingInfo | None) -> dict[str, Any] | None:
    if timing is None:
        return None
    data: dict[str, Any] = {
        "timingMode": timing.timing_mode.value,
        "remainingTime": timing.remaining_time,
        "totalTime": timing.total_time,
        "isExpired": timing.is_expired,
    }
    if timing.question_time_limits is not None:
        data["questionTimeLimits"] = [
            {
                "questionId": limit.question_id,
                "timeLimit": limit.time_limit,
                "timeRemaining": limit.time_remaining,
            }
            for limit in timing.question_time_limits
        ]
    return data


def attempt_view_to_dict(view: AttemptView, include_activities: bool = False) -> dict[str, Any]:
    data = attempt_to_dict(view.attempt, include_activities)
    data["resultsVisible"] = view.results_visible
    data["requiresManualReview"] = view.requires_manual_review
    data["timing"] = timing_to_dict(view.timing)
    return data


def availability_to_dict(availability: AttemptAvailability) -> dict[str, Any]:
    return {
        "canStart": availability.can_start,
        "canResume": availability.can_resume,
        "attemptStatus": availability.attempt_status.value if availability.attempt_status else None,
        "attemptId": availability.attempt_id,
        "remainingTime": availability.remaining_time,
    }


def breakdown_to_dict(breakdown: ScoreBreakdown, attempt: Attempt) -> dict[str, Any]:
    return {
        "positiveScore": breakdown.positive_score,
        "negativeScore": breakdown.negative_score,
        "totalScore": breakdown.total_score,
        "maxScore": attempt.max_score,
        "negativeMarkingApplied": attempt.negative_marking_applied,
    }


def submission_to_dict(result: SubmissionResult) -> dict[str, Any]:
    view = result.view
    breakdown = None
    if view.results_visible:
        breakdown = breakdown_to_dict(result.breakdown, result.attempt)
    return {
        "attempt": attempt_view_to_dict(view),
        "autoGraded": result.auto_graded,
        "requiresManualReview": result.requires_manual_grading,
        "scoreBreakdown": breakdown,
    }


def validation_report_to_dict(report: AnswerValidationReport) -> dict[str, Any]:
    return {
        "isValid": report.is_valid,
        "allQuestionsAnswered": report.all_questions_answered,
        "results": [
            {"questionId": check.question_id, "valid": check.valid, "error": check.error}
            for check in report.results
        ],
    }


def recalculation_to_dict(report: RecalculationReport | None) -> dict[str, Any] | None:
    if report is None:
        return None
    return {
        "quizId": report.quiz_id,
        "processed": report.processed,
        "updated": report.updated,
        "negativeMarkingEnabled": report.negative_marking_enabled,
        "penaltyValue": report.penalty_value,
        "failures": [{"attemptId": f.attempt_id, "error": f.error} for f in report.failures],
    }


def quiz_visibility_to_dict(status: QuizVisibilityStatus) -> dict[str, Any]:
    return {
        "quizId": status.quiz_id,
        "showResultsImmediately": status.show_results_immediately,
        "hasFreeTextQuestions": status.has_free_text_questions,
        "requiresManualReview": status.requires_manual_review,
    }


def attempt_visibility_to_dict(status: AttemptVisibilityStatus) -> dict[str, Any]:
    return {
        "attemptId": status.attempt_id,
        "status": status.status.value,
        "resultsVisible": status.results_visible,
        "quiz": quiz_visibility_to_dict(status.quiz),
    }


def batch_result_to_dict(result: BatchResult) -> dict[str, Any]:
    return {"matched": result.matched, "modified": result.modified}


def recording_to_dict(recording: Recording) -> dict[str, Any]:
    return {
        "id": recording.id,
        "attemptId": recording.attempt_id,
        "userId": recording.user_id,
        "type": recording.type.value,
        "status": recording.status.value,
        "startTime": to_iso_utc(recording.start_time),
        "endTime": to_iso_utc(recording.end_time),
        "duration": recording.duration_seconds,
    }
