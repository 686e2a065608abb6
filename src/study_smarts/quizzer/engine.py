"""Quiz session engine: selection, grading, hints, submission and results.

One :class:`QuizSessionEngine` owns the state of one live quiz. Front ends
feed it four events (select an option, request a hint, edit question text,
submit) and read back derived views (feedback, score, results summary).

Two modes exist. ``EDIT`` lets the author change question text and answers
freely and shows results once every question has an answer. ``DISPLAY`` is
the student view: results stay hidden until a single explicit submission,
after which selections are locked.

State per question lives in fixed-size lists indexed by position, because
the question count never changes for a given quiz. Replacing the quiz
(including through :meth:`QuizSessionEngine.edit_question_text`) discards
all of it and bumps :attr:`QuizSessionEngine.generation`. Hint requests are
tagged with the generation they started under, and a reply that arrives
after a reset is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from .attempts import AttemptRecord, AttemptRecorder
from .hints import HintProvider
from .models import Question, Quiz

__all__ = [
    "QuizSessionError",
    "SessionLockedError",
    "SessionModeError",
    "SessionMode",
    "SessionPhase",
    "HintStatus",
    "HintState",
    "Feedback",
    "ScoreSnapshot",
    "ResultRow",
    "QuizSessionEngine",
]

NO_HINT_TEXT = "No hint available."

QuizChangeCallback = Callable[[Quiz], None]


class QuizSessionError(RuntimeError):
    """Base class for rejected session operations."""


class SessionLockedError(QuizSessionError):
    """Raised when a submitted display-mode session receives a selection."""


class SessionModeError(QuizSessionError):
    """Raised when an operation is not available in the current mode."""


class SessionMode(str, Enum):
    EDIT = "edit"
    DISPLAY = "display"

    @classmethod
    def from_value(cls, value: "str | SessionMode") -> "SessionMode":
        if isinstance(value, SessionMode):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(
            f"Unknown session mode '{value}'. Expected 'edit' or 'display'."
        )


class SessionPhase(str, Enum):
    IN_PROGRESS = "in_progress"
    ALL_ATTEMPTED = "all_attempted"
    SUBMITTED = "submitted"


class HintStatus(str, Enum):
    NOT_REQUESTED = "not_requested"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class HintState:
    """Hint slot for one question."""

    status: HintStatus = HintStatus.NOT_REQUESTED
    text: Optional[str] = None

    @property
    def display_text(self) -> Optional[str]:
        if self.status is HintStatus.READY:
            return self.text
        if self.status is HintStatus.FAILED:
            return NO_HINT_TEXT
        return None


_NOT_REQUESTED = HintState()
_LOADING = HintState(HintStatus.LOADING)
_FAILED = HintState(HintStatus.FAILED)


@dataclass(frozen=True)
class Feedback:
    """Grading outcome for the latest selection of a question."""

    is_correct: bool
    explanation: str


@dataclass(frozen=True)
class ScoreSnapshot:
    correct: int
    total: int
    answered: int

    @property
    def all_attempted(self) -> bool:
        return self.total > 0 and self.answered == self.total

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0


@dataclass(frozen=True)
class ResultRow:
    """One line of the results summary; ``position`` is 1-based."""

    position: int
    is_correct: bool
    explanation: str


# (generation, quiz) pair captured when a hint request starts.
_HintTag = Tuple[int, Quiz]


class QuizSessionEngine:
    """State container for one interactive quiz session."""

    def __init__(
        self,
        quiz: Quiz,
        *,
        mode: "SessionMode | str" = SessionMode.DISPLAY,
        subject_id: Optional[str] = None,
        hint_provider: Optional[HintProvider] = None,
        recorder: Optional[AttemptRecorder] = None,
        on_quiz_change: Optional[QuizChangeCallback] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._mode = SessionMode.from_value(mode)
        self._subject_id = subject_id
        self._hint_provider = hint_provider
        self._recorder = recorder
        self._on_quiz_change = on_quiz_change
        self._logger = logger or logging.getLogger("study_smarts.quizzer")
        self._hint_tasks: Set["asyncio.Task[Optional[HintState]]"] = set()
        self._generation = 0
        self._quiz = quiz
        self._reset()

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------
    @property
    def quiz(self) -> Quiz:
        return self._quiz

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def subject_id(self) -> Optional[str]:
        return self._subject_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def submitted(self) -> bool:
        return self._submitted

    @property
    def attempt(self) -> Optional[AttemptRecord]:
        return self._attempt

    @property
    def attempt_recorded(self) -> bool:
        return self._attempt_recorded

    @property
    def hints_enabled(self) -> bool:
        return self._hint_provider is not None and self._quiz.hints_enabled

    @property
    def is_locked(self) -> bool:
        return self._mode is SessionMode.DISPLAY and self._submitted

    @property
    def phase(self) -> SessionPhase:
        if self._submitted:
            return SessionPhase.SUBMITTED
        if self.compute_score().all_attempted:
            return SessionPhase.ALL_ATTEMPTED
        return SessionPhase.IN_PROGRESS

    @property
    def selections(self) -> Dict[int, str]:
        return {
            i: value
            for i, value in enumerate(self._selections)
            if value is not None
        }

    @property
    def feedback(self) -> Dict[int, Feedback]:
        return {
            i: value
            for i, value in enumerate(self._feedback)
            if value is not None
        }

    @property
    def hints(self) -> Dict[int, HintState]:
        return dict(enumerate(self._hints))

    def selection_for(self, index: int) -> Optional[str]:
        self._question(index)
        return self._selections[index]

    def feedback_for(self, index: int) -> Optional[Feedback]:
        self._question(index)
        return self._feedback[index]

    def hint_for(self, index: int) -> HintState:
        self._question(index)
        return self._hints[index]

    @property
    def can_submit(self) -> bool:
        return (
            self._mode is SessionMode.DISPLAY
            and not self._submitted
            and self.compute_score().all_attempted
            and bool(self._subject_id and self._subject_id.strip())
            and self._quiz.submission_enabled
        )

    @property
    def results_unlocked(self) -> bool:
        if self._mode is SessionMode.EDIT:
            return self.compute_score().all_attempted
        return self._submitted

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def replace_quiz(self, quiz: Quiz) -> bool:
        """Make ``quiz`` the session subject, resetting all state.

        Passing the quiz that is already active is not a replacement and
        leaves the state untouched. Returns whether a reset happened.
        """
        if quiz is self._quiz:
            return False
        previous = self._generation
        self._quiz = quiz
        self._reset()
        self._logger.info(
            "Quiz replaced; session state reset",
            extra={
                "previous_generation": previous,
                "generation": self._generation,
                "question_count": len(quiz),
            },
        )
        return True

    def select_option(self, index: int, option: str) -> Feedback:
        """Record ``option`` for question ``index`` and grade it.

        Raises ``IndexError`` for an unknown question, ``ValueError`` for an
        option that does not belong to it and :class:`SessionLockedError`
        once a display-mode quiz has been submitted.
        """
        question = self._question(index)
        if not question.has_option(option):
            raise ValueError(
                f"'{option}' is not an option of question {index + 1}"
            )
        if self.is_locked:
            raise SessionLockedError(
                "quiz already submitted; selections are read-only"
            )
        result = Feedback(
            is_correct=question.is_correct(option),
            explanation=question.explanation,
        )
        self._selections[index] = option
        self._feedback[index] = result
        self._logger.debug(
            "Option selected",
            extra={
                "generation": self._generation,
                "question": index,
                "correct": result.is_correct,
            },
        )
        return result

    def edit_question_text(self, index: int, text: str) -> Quiz:
        """Replace question ``index``'s text; only allowed in edit mode.

        Blank text raises ``QuizValidationError`` and leaves the session
        untouched.
        """
        if self._mode is not SessionMode.EDIT:
            raise SessionModeError("question text can only change in edit mode")
        self._question(index)
        updated = self._quiz.with_question_text(index, text)
        self.replace_quiz(updated)
        if self._on_quiz_change is not None:
            self._on_quiz_change(updated)
        return updated

    def submit_quiz(self) -> Optional[AttemptRecord]:
        """Finalize a display-mode quiz and emit its attempt record once.

        Returns the emitted record, or ``None`` when any precondition fails
        (in which case nothing changes). A failing recorder is logged and
        the submission stays in place.
        """
        if not self.can_submit:
            self._logger.debug(
                "Submit ignored",
                extra={
                    "generation": self._generation,
                    "mode": self._mode,
                    "submitted": self._submitted,
                },
            )
            return None
        score = self.compute_score()
        record = AttemptRecord(
            subject_id=str(self._subject_id),
            score=score.correct,
            total=score.total,
            label=str(self._quiz.label),
        )
        self._submitted = True
        self._attempt = record
        self._logger.info(
            "Quiz submitted",
            extra={
                "generation": self._generation,
                "score": record.score,
                "total": record.total,
                "label": record.label,
            },
        )
        if self._recorder is None:
            self._logger.warning("No attempt recorder configured")
            return record
        try:
            self._recorder.record(record)
        except Exception:
            self._logger.warning(
                "Attempt could not be recorded",
                exc_info=True,
                extra={"label": record.label},
            )
        else:
            self._attempt_recorded = True
        return record

    # ------------------------------------------------------------------
    # Hints
    # ------------------------------------------------------------------
    async def request_hint(self, index: int) -> Optional[HintState]:
        """Fetch a hint for question ``index`` and store it.

        Returns the stored state, the current state when the request was
        ignored (hints disabled or a request already loading), or ``None``
        when the quiz was replaced before the reply arrived.
        """
        tag = self._begin_hint(index)
        if tag is None:
            return self._hints[index]
        return await self._finish_hint(index, tag)

    def schedule_hint(
        self, index: int
    ) -> "Optional[asyncio.Task[Optional[HintState]]]":
        """Start a hint request in the background (needs a running loop).

        The slot reads ``LOADING`` as soon as this returns.
        """
        loop = asyncio.get_running_loop()
        tag = self._begin_hint(index)
        if tag is None:
            return None
        task = loop.create_task(self._finish_hint(index, tag))
        self._hint_tasks.add(task)
        task.add_done_callback(self._hint_tasks.discard)
        return task

    async def drain_hints(self) -> None:
        """Wait for every background hint request to settle."""
        while self._hint_tasks:
            await asyncio.gather(*list(self._hint_tasks))

    def _begin_hint(self, index: int) -> Optional[_HintTag]:
        self._question(index)
        if not self.hints_enabled:
            self._logger.debug(
                "Hint ignored; hints disabled", extra={"question": index}
            )
            return None
        if self._hints[index].status is HintStatus.LOADING:
            self._logger.debug(
                "Hint ignored; request in flight", extra={"question": index}
            )
            return None
        self._hints[index] = _LOADING
        return (self._generation, self._quiz)

    async def _finish_hint(
        self, index: int, tag: _HintTag
    ) -> Optional[HintState]:
        generation, quiz = tag
        question = quiz[index]
        summary = quiz.document_summary or ""
        assert self._hint_provider is not None
        try:
            text = await self._hint_provider.generate_hint(
                question.question, summary
            )
        except Exception:
            self._logger.warning(
                "Hint request failed",
                exc_info=True,
                extra={"generation": generation, "question": index},
            )
            result = _FAILED
        else:
            text = (text or "").strip()
            result = HintState(HintStatus.READY, text) if text else _FAILED

        if generation != self._generation or quiz is not self._quiz:
            self._logger.debug(
                "Discarding stale hint",
                extra={
                    "question": index,
                    "request_generation": generation,
                    "generation": self._generation,
                },
            )
            return None
        self._hints[index] = result
        return result

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    def compute_score(self) -> ScoreSnapshot:
        correct = sum(1 for f in self._feedback if f is not None and f.is_correct)
        answered = sum(1 for s in self._selections if s is not None)
        return ScoreSnapshot(
            correct=correct, total=len(self._quiz), answered=answered
        )

    def compute_results_summary(self) -> Tuple[ResultRow, ...]:
        """Per-question results, or an empty tuple while still locked away."""
        if not self.results_unlocked:
            return ()
        rows: List[ResultRow] = []
        for question, outcome in zip(self._quiz.questions, self._feedback):
            rows.append(
                ResultRow(
                    position=question.index + 1,
                    is_correct=bool(outcome and outcome.is_correct),
                    explanation=question.explanation,
                )
            )
        return tuple(rows)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _question(self, index: int) -> Question:
        if isinstance(index, bool) or not 0 <= index < len(self._quiz):
            raise IndexError(f"question index {index} out of range")
        return self._quiz[index]

    def _reset(self) -> None:
        size = len(self._quiz)
        self._generation += 1
        self._selections: List[Optional[str]] = [None] * size
        self._feedback: List[Optional[Feedback]] = [None] * size
        self._hints: List[HintState] = [_NOT_REQUESTED] * size
        self._submitted = False
        self._attempt: Optional[AttemptRecord] = None
        self._attempt_recorded = False
