"""Turns raw answer payloads into :class:`Answer` values.

Clients send either a list of option ids or a free-form text for every answer.
The payload is resolved once here, against the question type when the question
is known, so the rest of the core only sees the tagged response types.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from proctor_app.core.errors import ValidationError
from proctor_app.core.models import (
    Answer,
    AnswerResponse,
    Question,
    QuestionType,
    Quiz,
    SelectionResponse,
    TextResponse,
)


def build_response(
    question: Question | None,
    selected_options: Sequence[str] | None,
    text_answer: str | None,
) -> AnswerResponse:
    if question is not None:
        if question.type is QuestionType.FREE_TEXT:
            return TextResponse(text=text_answer or "")
        return SelectionResponse(option_ids=tuple(str(o) for o in selected_options or ()))

    # Unknown question: keep whichever shape the client sent.
    if selected_options:
        return SelectionResponse(option_ids=tuple(str(o) for o in selected_options))
    if text_answer:
        return TextResponse(text=text_answer)
    return SelectionResponse()


def build_answer(
    question_id: str,
    selected_options: Sequence[str] | None = None,
    text_answer: str | None = None,
    question: Question | None = None,
) -> Answer:
    return Answer(question_id=question_id, response=build_response(question, selected_options, text_answer))


def parse_answers(raw_answers: Iterable[Mapping[str, object]], quiz: Quiz) -> tuple[Answer, ...]:
    """Parse ``{"questionId", "selectedOptions", "textAnswer"}`` mappings."""
    answers: list[Answer] = []
    for raw in raw_answers:
        question_id = raw.get("questionId") or raw.get("question_id")
        if not question_id:
            raise ValidationError("Every answer must include a questionId.", code="MISSING_FIELDS")
        selected = raw.get("selectedOptions", raw.get("selected_options"))
        text = raw.get("textAnswer", raw.get("text_answer"))
        if selected is not None and not isinstance(selected, (list, tuple)):
            raise ValidationError("selectedOptions must be a list of option ids.")
        if text is not None and not isinstance(text, str):
            raise ValidationError("textAnswer must be a string.")
        question_id = str(question_id)
        answers.append(build_answer(question_id, selected, text, quiz.get_question(question_id)))
    return tuple(answers)


def merge_partial_answer(existing: Answer | None, partial: Answer) -> Answer:
    """Overlay a partial answer on a previously saved one for the same question."""
    if existing is None:
        return partial.ungraded()
    response = existing.response
    if isinstance(partial.response, SelectionResponse) and partial.response.option_ids:
        response = partial.response
    elif isinstance(partial.response, TextResponse) and partial.response.text:
        response = partial.response
    return Answer(question_id=existing.question_id, response=response)
