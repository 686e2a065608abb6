"""Immutable quiz value types and construction-time validation.

Quizzes arrive from the generation collaborator (or a JSON file on disk) in
the wire shape::

    {"questions": [{"question": str, "options": [str, ...],
                    "answer": str, "reason": str}, ...]}

:func:`build_quiz` turns that payload into a :class:`Quiz`, rejecting any
question whose designated answer is not one of its options. A session never
starts from an invalid quiz.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

__all__ = [
    "QuizValidationError",
    "Question",
    "Quiz",
    "build_quiz",
    "quiz_to_payload",
]

_CUSTOM_PREFIX = "custom quiz:"


class QuizValidationError(ValueError):
    """Raised when quiz data is malformed and cannot back a session."""


@dataclass(frozen=True)
class Question:
    """A single multiple-choice question at a fixed position in its quiz."""

    index: int
    question: str
    options: tuple[str, ...]
    answer: str
    explanation: str = ""

    def is_correct(self, option: str) -> bool:
        return option == self.answer

    def has_option(self, option: str) -> bool:
        return option in self.options

    def option_key(self, option: str) -> str:
        """Letter shown next to ``option`` in the front ends (A, B, ...)."""
        return chr(ord("A") + self.options.index(option))

    def option_for_key(self, key: str) -> Optional[str]:
        normalized = key.strip().upper()[:1]
        if not normalized:
            return None
        position = ord(normalized) - ord("A")
        if 0 <= position < len(self.options):
            return self.options[position]
        return None


@dataclass(frozen=True, eq=False)
class Quiz:
    """Ordered, non-empty question list plus optional hint/submit context.

    Equality is identity: two quizzes with identical content are still
    distinct sessions, and replacing one with the other resets the engine.
    """

    questions: tuple[Question, ...]
    document_summary: Optional[str] = None
    label: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.questions:
            raise QuizValidationError("quiz must contain at least one question")
        for position, question in enumerate(self.questions):
            if question.index != position:
                raise QuizValidationError(
                    f"question at position {position} carries index "
                    f"{question.index}"
                )
            _validate_question(question)

    def __len__(self) -> int:
        return len(self.questions)

    def __getitem__(self, index: int) -> Question:
        return self.questions[index]

    @property
    def hints_enabled(self) -> bool:
        return bool(self.document_summary and self.document_summary.strip())

    @property
    def submission_enabled(self) -> bool:
        return bool(self.label and self.label.strip())

    @property
    def title(self) -> str:
        """Heading shown above a session, derived from the label."""
        label = (self.label or "").strip()
        if not label:
            return "Generated Quiz"
        if label.lower().startswith(_CUSTOM_PREFIX):
            topic = label[len(_CUSTOM_PREFIX):].strip()
            return f'Quiz for Topic: "{topic}"'
        return f'Quiz on: "{label}"'

    def with_question_text(self, index: int, text: str) -> "Quiz":
        """Return a new quiz whose question ``index`` reads ``text``.

        Blank text is rejected so the result still passes :func:`build_quiz`.
        """
        if isinstance(index, bool) or not 0 <= index < len(self.questions):
            raise IndexError(f"question index {index} out of range")
        if not isinstance(text, str) or not text.strip():
            raise QuizValidationError(
                f"question {index + 1}: question text is required"
            )
        updated = tuple(
            dataclasses.replace(q, question=text) if q.index == index else q
            for q in self.questions
        )
        return dataclasses.replace(self, questions=updated)


def _validate_question(question: Question) -> None:
    label = f"question {question.index + 1}"
    if not isinstance(question.question, str):
        raise QuizValidationError(f"{label}: text must be a string")
    if not question.options:
        raise QuizValidationError(f"{label}: options must be a non-empty list")
    if not all(isinstance(o, str) and o.strip() for o in question.options):
        raise QuizValidationError(f"{label}: option text must be non-empty")
    if len(set(question.options)) != len(question.options):
        raise QuizValidationError(f"{label}: duplicate options detected")
    if not isinstance(question.answer, str) or not question.answer:
        raise QuizValidationError(f"{label}: answer is required")
    if question.answer not in question.options:
        raise QuizValidationError(
            f"{label}: answer must match one of the options"
        )


def build_quiz(
    payload: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    *,
    document_summary: Optional[str] = None,
    label: Optional[str] = None,
) -> Quiz:
    """Validate a wire-shaped payload and return a :class:`Quiz`.

    ``payload`` is either ``{"questions": [...]}`` or the bare list. Summary
    and label keys present in the payload are used unless overridden.
    """
    if isinstance(payload, Mapping):
        raw_questions = payload.get("questions")
        if document_summary is None:
            document_summary = _optional_text(payload.get("document_summary"))
        if label is None:
            label = _optional_text(payload.get("label"))
    else:
        raw_questions = payload
    if isinstance(raw_questions, (str, bytes)) or not isinstance(
        raw_questions, Sequence
    ):
        raise QuizValidationError("questions must be a list")
    if not raw_questions:
        raise QuizValidationError("quiz must contain at least one question")

    questions = tuple(
        _question_from_mapping(item, position)
        for position, item in enumerate(raw_questions)
    )
    return Quiz(questions, document_summary=document_summary, label=label)


def _question_from_mapping(item: Any, position: int) -> Question:
    label = f"question {position + 1}"
    if not isinstance(item, Mapping):
        raise QuizValidationError(f"{label}: must be an object")
    text = item.get("question")
    if not isinstance(text, str) or not text.strip():
        raise QuizValidationError(f"{label}: question text is required")
    options = item.get("options")
    if isinstance(options, (str, bytes)) or not isinstance(options, Sequence):
        raise QuizValidationError(f"{label}: options must be a non-empty list")
    answer = item.get("answer")
    if isinstance(answer, list):
        raise QuizValidationError(
            f"{label}: exactly one answer is required, not multiple"
        )
    explanation = item.get("reason", item.get("explanation", ""))
    return Question(
        index=position,
        question=text,
        options=tuple(str(o) if o is not None else "" for o in options),
        answer=answer if isinstance(answer, str) else "",
        explanation=str(explanation or ""),
    )


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def quiz_to_payload(quiz: Quiz) -> dict[str, Any]:
    """Serialize ``quiz`` back to the wire shape accepted by build_quiz."""
    payload: dict[str, Any] = {
        "questions": [
            {
                "question": q.question,
                "options": list(q.options),
                "answer": q.answer,
                "reason": q.explanation,
            }
            for q in quiz.questions
        ]
    }
    if quiz.label:
        payload["label"] = quiz.label
    if quiz.document_summary:
        payload["document_summary"] = quiz.document_summary
    return payload
