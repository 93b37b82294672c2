"""Structural validation for quizzes and for answer sets before submission."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from proctor_app.core.errors import ValidationError
from proctor_app.core.models import Answer, Question, QuestionType, Quiz
from proctor_app.core.timing_validator import validate_quiz_timing


@dataclass(slots=True, frozen=True)
class AnswerCheck:
    question_id: str
    valid: bool
    error: str | None = None


@dataclass(slots=True, frozen=True)
class AnswerValidationReport:
    results: tuple[AnswerCheck, ...]
    all_questions_answered: bool

    @property
    def is_valid(self) -> bool:
        return self.all_questions_answered and all(check.valid for check in self.results)


def validate_quiz(quiz: Quiz) -> list[str]:
    """Return every problem found in ``quiz``; an empty list means valid."""
    errors: list[str] = []
    if not quiz.title.strip():
        errors.append("Quiz title must not be empty.")
    if len(quiz.title) > 100:
        errors.append("Title cannot be more than 100 characters.")
    if quiz.negative_marking.penalty_value < 0:
        errors.append("Penalty value must be positive.")

    errors.extend(validate_quiz_timing(quiz.timing_mode, quiz.duration_minutes, quiz.questions))

    seen_ids: set[str] = set()
    for number, question in enumerate(quiz.questions, start=1):
        if question.id in seen_ids:
            errors.append(f"Question {number}: duplicate question id {question.id!r}.")
        seen_ids.add(question.id)
        errors.extend(f"Question {number}: {problem}" for problem in _validate_question(question))
    return errors


def ensure_valid_quiz(quiz: Quiz) -> Quiz:
    errors = validate_quiz(quiz)
    if errors:
        raise ValidationError("; ".join(errors), code="INVALID_QUIZ", errors=errors)
    return quiz


def _validate_question(question: Question) -> list[str]:
    errors: list[str] = []
    if not question.text.strip():
        errors.append("Question text must not be empty.")
    if question.points < 0:
        errors.append("Points must not be negative.")

    option_ids = [option.id for option in question.options]
    if len(option_ids) != len(set(option_ids)):
        errors.append("Option ids must be unique.")
    for option in question.options:
        if not option.text.strip():
            errors.append("Option text cannot be empty.")
        if option.probability is not None and not 0 <= option.probability <= 100:
            errors.append("Option probability must be between 0 and 100.")

    if question.type is not QuestionType.FREE_TEXT and not question.options:
        errors.append("Select questions need at least one option.")
    return errors


def validate_answers(answers: Iterable[Answer], quiz: Quiz) -> AnswerValidationReport:
    """Check an answer set for completeness without grading it."""
    answers = tuple(answers)
    results = tuple(_check_answer(answer, quiz.get_question(answer.question_id)) for answer in answers)
    answered = {answer.question_id for answer in answers}
    return AnswerValidationReport(
        results=results,
        all_questions_answered=all(question.id in answered for question in quiz.questions),
    )


def _check_answer(answer: Answer, question: Question | None) -> AnswerCheck:
    def invalid(message: str) -> AnswerCheck:
        return AnswerCheck(question_id=answer.question_id, valid=False, error=message)

    if question is None:
        return invalid("Question not found")

    selected = answer.selected_options
    if question.type is QuestionType.SINGLE_SELECT:
        if len(selected) != 1:
            return invalid("Single-select questions require exactly one selected option")
        if selected[0] not in question.option_ids():
            return invalid("Selected option does not exist")
    elif question.type is QuestionType.MULTI_SELECT:
        if not selected:
            return invalid("Multi-select questions require at least one selected option")
        if not set(selected) <= question.option_ids():
            return invalid("One or more selected options do not exist")
    elif not (answer.text_answer or "").strip():
        return invalid("Free-text questions require a non-empty answer")

    return AnswerCheck(question_id=answer.question_id, valid=True)
