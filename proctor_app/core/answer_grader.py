"""Auto-grading of single answers and attempt score arithmetic.

Single- and multi-select questions are graded all-or-nothing. Free-text answers
are never auto-graded and are always exempt from negative marking, even when
the quiz enables it: they wait for a reviewer.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from proctor_app.core.models import Answer, NegativeMarking, Question, QuestionType, Quiz


@dataclass(slots=True, frozen=True)
class GradeResult:
    is_correct: bool | None
    score: float
    negative_score: float


@dataclass(slots=True, frozen=True)
class ScoreBreakdown:
    positive_score: float
    negative_score: float
    total_score: float


def grade(answer: Answer, question: Question, negative_marking: NegativeMarking) -> GradeResult:
    if question.type is QuestionType.FREE_TEXT:
        return GradeResult(is_correct=None, score=0.0, negative_score=0.0)

    if question.type is QuestionType.SINGLE_SELECT:
        is_correct = _is_single_select_correct(answer, question)
    else:
        is_correct = set(answer.selected_options) == question.correct_option_ids()

    return GradeResult(
        is_correct=is_correct,
        score=question.points if is_correct else 0.0,
        negative_score=negative_score_for(question.type, is_correct, negative_marking),
    )


def _is_single_select_correct(answer: Answer, question: Question) -> bool:
    selected = answer.selected_options
    if len(selected) != 1:
        return False
    option = next((o for o in question.options if o.id == selected[0]), None)
    return option is not None and option.is_correct


def negative_score_for(
    question_type: QuestionType,
    is_correct: bool | None,
    negative_marking: NegativeMarking,
) -> float:
    """Penalty owed by an answer; only graded-incorrect select answers pay one."""
    if not negative_marking.enabled or not question_type.is_auto_graded:
        return 0.0
    if is_correct is False:
        return negative_marking.penalty_value
    return 0.0


def apply_grade(answer: Answer, result: GradeResult) -> Answer:
    return replace(
        answer,
        is_correct=result.is_correct,
        score=result.score,
        negative_score=result.negative_score,
    )


def grade_answers(answers: Iterable[Answer], quiz: Quiz) -> tuple[Answer, ...]:
    """Grade a full answer set against the live quiz definition.

    Answers whose question id is unknown to the quiz pass through untouched.
    """
    graded: list[Answer] = []
    for answer in answers:
        question = quiz.get_question(answer.question_id)
        if question is None:
            graded.append(answer)
            continue
        graded.append(apply_grade(answer, grade(answer, question, quiz.negative_marking)))
    return tuple(graded)


def score_breakdown(answers: Iterable[Answer]) -> ScoreBreakdown:
    positive = 0.0
    negative = 0.0
    for answer in answers:
        positive += answer.score or 0.0
        negative += answer.negative_score or 0.0
    # Negative totals are reported as-is; there is no floor at zero.
    return ScoreBreakdown(positive_score=positive, negative_score=negative, total_score=positive - negative)


def total_score(answers: Iterable[Answer]) -> float:
    return score_breakdown(answers).total_score
