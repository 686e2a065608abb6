from typing import List, Optional

from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.widget import Widget
from textual.widgets import Button, Input, Static

from ..engine import (
    Feedback,
    HintState,
    HintStatus,
    QuizSessionEngine,
    SessionLockedError,
    SessionMode,
    SessionModeError,
)
from ..models import Question, QuizValidationError


class QuizApp(App):
    CSS_PATH = None
    CSS = """
#choices Button.selected { background: $accent; color: black; }
#choices Button.correct { background: $success; }
#choices Button.incorrect { background: $error; }
#hint { color: $warning; }
#results { margin-top: 1; }
#title { text-style: bold; }
#stage, #footer, #editor-slot { height: auto; }
"""
    BINDINGS = [
        ("n", "next", "Next"),
        ("p", "prev", "Prev"),
        ("h", "hint", "Hint"),
        ("a", "select_a", "Select A"),
        ("b", "select_b", "Select B"),
        ("c", "select_c", "Select C"),
        ("d", "select_d", "Select D"),
        ("e", "edit", "Edit"),
        ("escape", "cancel_edit", "Cancel edit"),
        ("s", "submit", "Submit"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, engine: QuizSessionEngine):
        super().__init__()
        self._engine = engine
        self._index = 0
        self._status = ""

    @property
    def engine(self) -> QuizSessionEngine:
        return self._engine

    def compose(self) -> ComposeResult:
        yield Static(self._engine.quiz.title, id="title")
        with Container(id="stage"):
            yield self._question_view()
        with Container(id="footer"):
            yield Button("Prev", id="prev")
            yield Button("Next", id="next")
            if self._engine.hints_enabled:
                yield Button("Hint", id="hint")
            if self._engine.mode is SessionMode.DISPLAY:
                yield Button("Submit", id="submit")
            yield Static(self._answered_text(), id="answered")
            yield Static("", id="status")
        yield Container(id="editor-slot")
        yield Static(self.results_text(), id="results")

    # Pure helpers for navigation and selection (testable without running App)
    def current_question(self) -> Question:
        return self._engine.quiz[self._index]

    def next_question(self) -> int:
        if self._index + 1 < len(self._engine.quiz):
            self._index += 1
        self._update_stage()
        return self._index

    def prev_question(self) -> int:
        if self._index > 0:
            self._index -= 1
        self._update_stage()
        return self._index

    def select_answer(self, key: str) -> bool:
        option = self.current_question().option_for_key(key)
        if option is None:
            return False
        try:
            self._engine.select_option(self._index, option)
        except SessionLockedError:
            self._status = "Quiz already submitted; answers are locked."
            self._update_stage()
            return False
        self._status = ""
        self._update_stage()
        return True

    def edit_current_question(self, text: str) -> bool:
        try:
            self._engine.edit_question_text(self._index, text)
        except SessionModeError:
            self._status = "Questions can only be edited in edit mode."
            self._update_stage()
            return False
        except QuizValidationError:
            self._status = "Question text cannot be blank."
            self._update_stage()
            return False
        self._status = "Question updated; answers were reset."
        self._update_stage()
        return True

    def submit(self) -> bool:
        record = self._engine.submit_quiz()
        if record is None:
            score = self._engine.compute_score()
            self._status = (
                f"Answer every question first ({score.answered}/{score.total})."
                if not score.all_attempted
                else "Quiz cannot be submitted."
            )
            self._update_stage()
            return False
        self._status = f"Quiz submitted! Your score: {record.score}/{record.total}."
        if not self._engine.attempt_recorded:
            self._status += " (attempt not recorded)"
        self._update_stage()
        return True

    def answered_count(self) -> int:
        return self._engine.compute_score().answered

    def results_text(self) -> str:
        rows = self._engine.compute_results_summary()
        if not rows:
            return ""
        score = self._engine.compute_score()
        lines: List[str] = [f"Your Score: {score.correct} / {score.total}"]
        for row in rows:
            status = "Correct" if row.is_correct else "Incorrect"
            lines.append(f"Q{row.position}: {status}. {row.explanation}".strip())
        return "\n".join(lines)

    def status_text(self) -> str:
        return self._status

    def _question_view(self) -> "QuestionView":
        return QuestionView(
            self.current_question(),
            total=len(self._engine.quiz),
            selected=self._engine.selection_for(self._index),
            feedback=self._engine.feedback_for(self._index),
            hint=self._engine.hint_for(self._index),
            reveal=self._engine.mode is SessionMode.EDIT
            or self._engine.submitted,
        )

    def _update_stage(self) -> None:
        # Index survives quiz replacement because the question count is fixed.
        try:
            stage = self.query_one("#stage", Container)
        except Exception:
            return
        stage.remove_children()
        stage.mount(self._question_view())
        self.query_one("#answered", Static).update(self._answered_text())
        self.query_one("#status", Static).update(self._status)
        self.query_one("#results", Static).update(self.results_text())

    def action_next(self) -> None:
        self.next_question()

    def action_prev(self) -> None:
        self.prev_question()

    def action_select_a(self) -> None:
        self.select_answer("A")

    def action_select_b(self) -> None:
        self.select_answer("B")

    def action_select_c(self) -> None:
        self.select_answer("C")

    def action_select_d(self) -> None:
        self.select_answer("D")

    def action_submit(self) -> None:
        self.submit()

    async def action_edit(self) -> None:
        if self._engine.mode is not SessionMode.EDIT:
            self._status = "Questions can only be edited in edit mode."
            self._update_stage()
            return
        slot = self.query_one("#editor-slot", Container)
        if slot.children:
            return
        editor = Input(value=self.current_question().question, id="editor")
        await slot.mount(editor)
        editor.focus()

    async def action_cancel_edit(self) -> None:
        await self._close_editor()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id != "editor":
            return
        await self._close_editor()
        self.edit_current_question(event.value)

    async def _close_editor(self) -> None:
        slot = self.query_one("#editor-slot", Container)
        if slot.children:
            await slot.remove_children()

    def action_hint(self) -> None:
        task = self._engine.schedule_hint(self._index)
        if task is not None:
            task.add_done_callback(lambda _task: self._update_stage())
        self._update_stage()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = getattr(event.button, "id", "") or ""
        if bid.startswith("choice-") and len(bid) >= 8:
            self.select_answer(bid[-1])
        elif bid == "submit":
            self.action_submit()
        elif bid == "hint":
            self.action_hint()
        elif bid == "next":
            self.action_next()
        elif bid == "prev":
            self.action_prev()

    def _answered_text(self) -> str:
        score = self._engine.compute_score()
        return f"Answered: {score.answered}/{score.total}"


class QuestionView(Widget):
    """Renders a single question with its options, feedback and hint."""

    def __init__(
        self,
        question: Question,
        total: int,
        *,
        selected: Optional[str] = None,
        feedback: Optional[Feedback] = None,
        hint: Optional[HintState] = None,
        reveal: bool = False,
    ) -> None:
        super().__init__()
        self.question = question
        self.total = total
        self.selected = selected
        self.feedback = feedback
        self.hint = hint or HintState()
        self.reveal = reveal

    def compose(self) -> ComposeResult:
        yield Static(
            f"Question {self.question.index + 1}/{self.total}", id="progress"
        )
        yield Static(self.question.question, id="stem")
        with Vertical(id="choices"):
            for option in self.question.options:
                key = self.question.option_key(option)
                btn = Button(f"{key}) {option}", id=f"choice-{key}")
                if option == self.selected:
                    btn.add_class(self._selected_class())
                yield btn
        yield Static(self.hint_text(), id="hint")
        yield Static(self.feedback_text(), id="feedback")

    def _selected_class(self) -> str:
        if not self.reveal or self.feedback is None:
            return "selected"
        return "correct" if self.feedback.is_correct else "incorrect"

    def hint_text(self) -> str:
        if self.hint.status is HintStatus.LOADING:
            return "Hint loading..."
        text = self.hint.display_text
        return f"Hint: {text}" if text else ""

    def feedback_text(self) -> str:
        if self.feedback is None:
            return ""
        if not self.reveal:
            return f"Selected: {self.question.option_key(self.selected)}"
        if self.feedback.is_correct:
            return "Correct."
        expl = self.feedback.explanation
        return f"Incorrect. {expl}" if expl else "Incorrect."
