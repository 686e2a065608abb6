from __future__ import annotations

import asyncio
import logging

import pytest

from study_smarts.quizzer.engine import (
    NO_HINT_TEXT,
    HintStatus,
    QuizSessionEngine,
    SessionLockedError,
    SessionMode,
    SessionModeError,
    SessionPhase,
)
from study_smarts.quizzer.models import QuizValidationError, build_quiz
from study_smarts.quizzer.utils import read_quiz_file, write_quiz_file

from fixtures import ListRecorder, sample_questions


def _engine(quiz, **kwargs) -> QuizSessionEngine:
    kwargs.setdefault("logger", logging.getLogger("tests.engine"))
    return QuizSessionEngine(quiz, **kwargs)


def test_select_option_grades_and_scores(quiz) -> None:
    engine = _engine(quiz)

    first = engine.select_option(0, "Paris")
    second = engine.select_option(1, "36")

    assert first.is_correct is True
    assert first.explanation == "Paris is the capital of France."
    assert second.is_correct is False
    score = engine.compute_score()
    assert (score.correct, score.total, score.answered) == (1, 2, 2)
    assert score.all_attempted
    assert engine.selections == {0: "Paris", 1: "36"}


def test_two_question_scenario_scores_and_summarizes() -> None:
    questions = sample_questions()
    questions[1]["options"] = ["42", "7"]
    quiz = build_quiz({"questions": questions})
    engine = _engine(quiz, mode=SessionMode.EDIT)

    engine.select_option(0, "Paris")
    engine.select_option(1, "7")

    score = engine.compute_score()
    assert (score.correct, score.total, score.answered) == (1, 2, 2)
    assert score.all_attempted
    assert [
        (row.position, row.is_correct)
        for row in engine.compute_results_summary()
    ] == [(1, True), (2, False)]


def test_reselecting_replaces_previous_answer(quiz) -> None:
    engine = _engine(quiz)
    engine.select_option(0, "Rome")
    engine.select_option(0, "Paris")

    assert engine.selection_for(0) == "Paris"
    assert engine.feedback_for(0).is_correct
    assert engine.compute_score().correct == 1
    assert engine.compute_score().answered == 1


def test_select_option_rejects_bad_input(quiz) -> None:
    engine = _engine(quiz)

    with pytest.raises(IndexError):
        engine.select_option(2, "Paris")
    with pytest.raises(IndexError):
        engine.select_option(-1, "Paris")
    with pytest.raises(IndexError):
        engine.select_option(True, "Paris")
    with pytest.raises(ValueError):
        engine.select_option(0, "Berlin")
    assert engine.selections == {}


def test_fresh_session_has_empty_state(quiz) -> None:
    engine = _engine(quiz)

    assert engine.phase is SessionPhase.IN_PROGRESS
    assert engine.compute_score().correct == 0
    assert engine.compute_results_summary() == ()
    assert all(
        state.status is HintStatus.NOT_REQUESTED
        for state in engine.hints.values()
    )


def test_display_mode_hides_results_until_submit(quiz, recorder) -> None:
    engine = _engine(quiz, subject_id="student-1", recorder=recorder)
    engine.select_option(0, "Paris")
    engine.select_option(1, "42")

    assert engine.phase is SessionPhase.ALL_ATTEMPTED
    assert engine.compute_results_summary() == ()

    record = engine.submit_quiz()

    assert record is not None
    assert (record.subject_id, record.score, record.total, record.label) == (
        "student-1",
        2,
        2,
        "geo-basics",
    )
    assert recorder.records == [record]
    assert engine.attempt_recorded
    assert engine.phase is SessionPhase.SUBMITTED
    rows = engine.compute_results_summary()
    assert [(r.position, r.is_correct) for r in rows] == [(1, True), (2, True)]
    assert rows[1].explanation == "Six sevens are forty-two."


def test_submit_emits_attempt_only_once(quiz, recorder) -> None:
    engine = _engine(quiz, subject_id="student-1", recorder=recorder)
    engine.select_option(0, "Rome")
    engine.select_option(1, "42")

    assert engine.submit_quiz() is not None
    assert engine.submit_quiz() is None
    assert len(recorder.records) == 1
    assert recorder.records[0].score == 1


def test_submit_requires_every_precondition(quiz, recorder) -> None:
    partial = _engine(quiz, subject_id="s", recorder=recorder)
    partial.select_option(0, "Paris")
    assert partial.can_submit is False
    assert partial.submit_quiz() is None

    anonymous = _engine(quiz, subject_id="  ", recorder=recorder)
    anonymous.select_option(0, "Paris")
    anonymous.select_option(1, "42")
    assert anonymous.submit_quiz() is None

    unlabeled = build_quiz({"questions": sample_questions()})
    no_label = _engine(unlabeled, subject_id="s", recorder=recorder)
    no_label.select_option(0, "Paris")
    no_label.select_option(1, "42")
    assert no_label.submit_quiz() is None

    assert recorder.records == []
    assert not partial.submitted
    assert not anonymous.submitted
    assert not no_label.submitted


def test_selection_after_submit_is_locked(quiz, recorder) -> None:
    engine = _engine(quiz, subject_id="s", recorder=recorder)
    engine.select_option(0, "Paris")
    engine.select_option(1, "42")
    engine.submit_quiz()

    with pytest.raises(SessionLockedError):
        engine.select_option(0, "Rome")
    assert engine.selection_for(0) == "Paris"
    assert engine.is_locked


def test_recorder_failure_keeps_submission(quiz, caplog) -> None:
    failing = ListRecorder(error=OSError("disk full"))
    engine = _engine(quiz, subject_id="s", recorder=failing)
    engine.select_option(0, "Paris")
    engine.select_option(1, "42")

    with caplog.at_level(logging.WARNING, logger="tests.engine"):
        record = engine.submit_quiz()

    assert record is not None
    assert engine.submitted
    assert engine.attempt == record
    assert engine.attempt_recorded is False
    assert "Attempt could not be recorded" in caplog.text
    assert engine.submit_quiz() is None


def test_submit_without_recorder_still_finalizes(quiz) -> None:
    engine = _engine(quiz, subject_id="s")
    engine.select_option(0, "Paris")
    engine.select_option(1, "36")

    record = engine.submit_quiz()

    assert record is not None and record.score == 1
    assert engine.submitted
    assert engine.attempt_recorded is False


def test_edit_mode_unlocks_results_once_all_answered(quiz) -> None:
    engine = _engine(quiz, mode=SessionMode.EDIT)
    engine.select_option(0, "Rome")
    assert engine.compute_results_summary() == ()

    engine.select_option(1, "42")
    rows = engine.compute_results_summary()

    assert [r.is_correct for r in rows] == [False, True]
    assert rows[0].explanation == "Paris is the capital of France."
    # Answers stay editable and results follow them.
    engine.select_option(0, "Paris")
    assert [r.is_correct for r in engine.compute_results_summary()] == [
        True,
        True,
    ]


def test_edit_mode_never_submits(quiz, recorder) -> None:
    engine = _engine(
        quiz, mode="edit", subject_id="s", recorder=recorder
    )
    engine.select_option(0, "Paris")
    engine.select_option(1, "42")

    assert engine.can_submit is False
    assert engine.submit_quiz() is None
    assert recorder.records == []


def test_edit_question_text_resets_session(quiz) -> None:
    seen = []
    engine = _engine(quiz, mode=SessionMode.EDIT, on_quiz_change=seen.append)
    engine.select_option(0, "Paris")
    engine.select_option(1, "42")
    generation = engine.generation

    updated = engine.edit_question_text(0, "Which city is France's capital?")

    assert engine.quiz is updated
    assert updated[0].question == "Which city is France's capital?"
    assert updated[0].answer == "Paris"
    assert quiz[0].question == "Capital of France?"
    assert engine.generation == generation + 1
    assert engine.selections == {}
    assert engine.feedback == {}
    assert engine.compute_score().answered == 0
    assert engine.compute_results_summary() == ()
    assert seen == [updated]


def test_edit_question_text_rejects_blank_text(quiz) -> None:
    engine = _engine(quiz, mode=SessionMode.EDIT)
    engine.select_option(0, "Paris")
    generation = engine.generation

    for text in ("", "   "):
        with pytest.raises(QuizValidationError):
            engine.edit_question_text(1, text)

    assert engine.quiz is quiz
    assert engine.generation == generation
    assert engine.selection_for(0) == "Paris"


def test_edited_quiz_still_loads_from_disk(quiz, tmp_path) -> None:
    engine = _engine(quiz, mode=SessionMode.EDIT)
    path = write_quiz_file(
        tmp_path / "quiz.json", engine.edit_question_text(0, "Name it.")
    )

    assert read_quiz_file(path)[0].question == "Name it."


def test_edit_question_text_rejects_bool_index(quiz) -> None:
    engine = _engine(quiz, mode=SessionMode.EDIT)

    with pytest.raises(IndexError):
        engine.edit_question_text(True, "x")
    with pytest.raises(IndexError):
        engine.edit_question_text(2, "x")
    assert engine.quiz is quiz
    assert engine.quiz[1].question == "6 x 7?"


def test_edit_question_text_outside_edit_mode_raises(quiz) -> None:
    engine = _engine(quiz)
    engine.select_option(0, "Paris")

    with pytest.raises(SessionModeError):
        engine.edit_question_text(0, "changed")
    assert engine.quiz is quiz
    assert engine.selection_for(0) == "Paris"


def test_replace_quiz_resets_state_and_ignores_same_object(quiz) -> None:
    engine = _engine(quiz)
    engine.select_option(0, "Paris")

    assert engine.replace_quiz(quiz) is False
    assert engine.selection_for(0) == "Paris"

    other = build_quiz({"questions": sample_questions()}, label="geo-basics")
    assert engine.replace_quiz(other) is True
    assert engine.quiz is other
    assert engine.selections == {}


def test_request_hint_stores_ready_text(quiz, hint_provider) -> None:
    engine = _engine(quiz, hint_provider=hint_provider)

    state = asyncio.run(engine.request_hint(0))

    assert state.status is HintStatus.READY
    assert state.display_text == "Think about the Seine."
    assert engine.hint_for(0) == state
    assert hint_provider.calls == [
        ("Capital of France?", "France is in Europe; multiplication basics.")
    ]
    assert engine.hint_for(1).status is HintStatus.NOT_REQUESTED


def test_request_hint_without_summary_is_ignored(hint_provider) -> None:
    quiz = build_quiz({"questions": sample_questions()}, label="x")
    engine = _engine(quiz, hint_provider=hint_provider)

    state = asyncio.run(engine.request_hint(0))

    assert engine.hints_enabled is False
    assert state.status is HintStatus.NOT_REQUESTED
    assert hint_provider.calls == []


def test_request_hint_without_provider_is_ignored(quiz) -> None:
    engine = _engine(quiz)

    state = asyncio.run(engine.request_hint(1))

    assert engine.hints_enabled is False
    assert state.status is HintStatus.NOT_REQUESTED


def test_duplicate_hint_request_while_loading_makes_one_call(
    quiz, hint_provider
) -> None:
    hint_provider.blocking = True
    engine = _engine(quiz, hint_provider=hint_provider)

    async def scenario():
        task = engine.schedule_hint(0)
        assert engine.hint_for(0).status is HintStatus.LOADING
        assert engine.schedule_hint(0) is None
        ignored = await engine.request_hint(0)
        assert ignored.status is HintStatus.LOADING
        hint_provider.release(1)
        return await task

    state = asyncio.run(scenario())

    assert len(hint_provider.calls) == 1
    assert state.status is HintStatus.READY


def test_hint_can_be_requested_again_after_it_settles(
    quiz, hint_provider
) -> None:
    engine = _engine(quiz, hint_provider=hint_provider)

    async def scenario():
        await engine.request_hint(0)
        hint_provider.text = "Second hint."
        return await engine.request_hint(0)

    state = asyncio.run(scenario())

    assert len(hint_provider.calls) == 2
    assert state.text == "Second hint."


def test_stale_hint_is_discarded_after_edit(quiz, hint_provider) -> None:
    hint_provider.blocking = True
    engine = _engine(quiz, mode=SessionMode.EDIT, hint_provider=hint_provider)

    async def scenario():
        task = engine.schedule_hint(0)
        await asyncio.sleep(0)
        engine.edit_question_text(0, "France's capital city?")
        hint_provider.release(1)
        return await task

    result = asyncio.run(scenario())

    assert result is None
    assert engine.hint_for(0).status is HintStatus.NOT_REQUESTED
    assert hint_provider.calls[0][0] == "Capital of France?"


def test_hint_after_reset_uses_new_question_text(quiz, hint_provider) -> None:
    hint_provider.blocking = True
    engine = _engine(quiz, mode=SessionMode.EDIT, hint_provider=hint_provider)

    async def scenario():
        stale = engine.schedule_hint(0)
        await asyncio.sleep(0)
        engine.edit_question_text(0, "France's capital city?")
        fresh = engine.schedule_hint(0)
        hint_provider.release(1)
        hint_provider.release(2)
        await engine.drain_hints()
        return stale.result(), fresh.result()

    stale, fresh = asyncio.run(scenario())

    assert stale is None
    assert fresh.status is HintStatus.READY
    assert hint_provider.calls[1][0] == "France's capital city?"
    assert engine.hint_for(0) == fresh


def test_failed_hint_shows_fallback_text(quiz, hint_provider) -> None:
    hint_provider.error = RuntimeError("rate limited")
    engine = _engine(quiz, hint_provider=hint_provider)

    state = asyncio.run(engine.request_hint(1))

    assert state.status is HintStatus.FAILED
    assert state.display_text == NO_HINT_TEXT


def test_blank_hint_counts_as_failure(quiz, hint_provider) -> None:
    hint_provider.text = "   "
    engine = _engine(quiz, hint_provider=hint_provider)

    state = asyncio.run(engine.request_hint(0))

    assert state.status is HintStatus.FAILED


def test_hints_work_in_both_modes(quiz, hint_provider) -> None:
    for mode in (SessionMode.EDIT, SessionMode.DISPLAY):
        engine = _engine(quiz, mode=mode, hint_provider=hint_provider)
        state = asyncio.run(engine.request_hint(0))
        assert state.status is HintStatus.READY


def test_session_mode_from_value() -> None:
    assert SessionMode.from_value(" EDIT ") is SessionMode.EDIT
    assert SessionMode.from_value(SessionMode.DISPLAY) is SessionMode.DISPLAY
    with pytest.raises(ValueError):
        SessionMode.from_value("review")
