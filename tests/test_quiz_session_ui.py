from __future__ import annotations

import asyncio
import logging

from textual.containers import Container
from textual.widgets import Input

from study_smarts.quizzer.engine import (
    Feedback,
    HintState,
    HintStatus,
    QuizSessionEngine,
    SessionMode,
)
from study_smarts.quizzer.view.quiz import QuestionView, QuizApp

from fixtures import ListRecorder


def make_app(quiz, **kwargs) -> QuizApp:
    kwargs.setdefault("logger", logging.getLogger("tests.ui"))
    return QuizApp(QuizSessionEngine(quiz, **kwargs))


def test_question_view_feedback_text(quiz):
    question = quiz[0]
    hidden = QuestionView(
        question,
        total=2,
        selected="Rome",
        feedback=Feedback(False, "Paris is the capital of France."),
    )
    revealed = QuestionView(
        question,
        total=2,
        selected="Rome",
        feedback=Feedback(False, "Paris is the capital of France."),
        reveal=True,
    )
    correct = QuestionView(
        question,
        total=2,
        selected="Paris",
        feedback=Feedback(True, ""),
        reveal=True,
    )

    assert hidden.feedback_text() == "Selected: B"
    assert revealed.feedback_text().startswith("Incorrect.")
    assert "Paris is the capital" in revealed.feedback_text()
    assert correct.feedback_text() == "Correct."
    assert QuestionView(question, total=2).feedback_text() == ""


def test_question_view_hint_text(quiz):
    question = quiz[0]
    assert QuestionView(question, 2).hint_text() == ""
    loading = QuestionView(question, 2, hint=HintState(HintStatus.LOADING))
    assert loading.hint_text() == "Hint loading..."
    ready = QuestionView(question, 2, hint=HintState(HintStatus.READY, "Seine"))
    assert ready.hint_text() == "Hint: Seine"
    failed = QuestionView(question, 2, hint=HintState(HintStatus.FAILED))
    assert failed.hint_text() == "Hint: No hint available."


def test_quiz_app_navigation_and_selection(quiz):
    app = make_app(quiz)

    assert app.current_question().question == "Capital of France?"
    assert app.answered_count() == 0
    assert app.select_answer("B") is True
    assert app.select_answer("Z") is False
    app.action_select_a()
    assert app.engine.selection_for(0) == "Paris"
    assert app.answered_count() == 1

    assert app.next_question() == 1
    assert app.next_question() == 1
    assert app.current_question().question == "6 x 7?"
    assert app.prev_question() == 0


def test_quiz_app_submit_flow(quiz):
    recorder = ListRecorder()
    app = make_app(quiz, subject_id="s", recorder=recorder)

    app.select_answer("A")
    assert app.submit() is False
    assert "Answer every question first (1/2)" in app.status_text()
    assert app.results_text() == ""

    app.next_question()
    app.select_answer("B")
    assert app.submit() is True
    assert app.status_text() == "Quiz submitted! Your score: 1/2."
    assert app.results_text().splitlines()[0] == "Your Score: 1 / 2"
    assert "Q2: Incorrect. Six sevens are forty-two." in app.results_text()
    assert len(recorder.records) == 1

    assert app.select_answer("A") is False
    assert "locked" in app.status_text()


def test_quiz_app_edit_mode(quiz):
    app = make_app(quiz, mode=SessionMode.EDIT)
    app.select_answer("A")

    assert app.edit_current_question("Name France's capital.") is True
    assert app.current_question().question == "Name France's capital."
    assert app.answered_count() == 0

    display = make_app(quiz)
    assert display.edit_current_question("nope") is False
    assert "edit mode" in display.status_text()


def test_quiz_app_rejects_blank_edit(quiz):
    app = make_app(quiz, mode=SessionMode.EDIT)
    app.select_answer("A")

    assert app.edit_current_question("   ") is False
    assert app.status_text() == "Question text cannot be blank."
    assert app.engine.quiz is quiz
    assert app.answered_count() == 1


def test_quiz_app_edits_question_from_keyboard(quiz):
    app = make_app(quiz, mode=SessionMode.EDIT)
    app.select_answer("A")

    async def scenario():
        async with app.run_test() as pilot:
            await pilot.press("e")
            editor = app.query_one("#editor", Input)
            prefilled = editor.value
            editor.value = ""
            await pilot.press("p", "a", "r", "i", "s", "enter")
            await pilot.pause()
            slot = app.query_one("#editor-slot", Container)
            return prefilled, len(slot.children)

    prefilled, open_editors = asyncio.run(scenario())

    assert prefilled == "Capital of France?"
    assert open_editors == 0
    assert app.current_question().question == "paris"
    assert app.answered_count() == 0
    assert app.status_text() == "Question updated; answers were reset."


def test_quiz_app_edit_can_be_cancelled(quiz):
    app = make_app(quiz, mode=SessionMode.EDIT)

    async def scenario():
        async with app.run_test() as pilot:
            await pilot.press("e")
            await app.run_action("cancel_edit")
            await pilot.pause()
            return len(app.query_one("#editor-slot", Container).children)

    assert asyncio.run(scenario()) == 0
    assert app.engine.quiz is quiz


def test_quiz_app_edit_key_in_display_mode(quiz):
    app = make_app(quiz)

    async def scenario():
        async with app.run_test() as pilot:
            await pilot.press("e")
            await pilot.pause()
            return len(app.query_one("#editor-slot", Container).children)

    assert asyncio.run(scenario()) == 0
    assert app.status_text() == "Questions can only be edited in edit mode."
