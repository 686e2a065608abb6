"""Rich-powered console front end for the quiz session engine.

The loop renders one question at a time, reads a command, and forwards it to
:class:`~study_smarts.quizzer.engine.QuizSessionEngine`. Input is read on a
worker thread so hint requests scheduled by the engine keep running while
the user thinks.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .attempts import AttemptRecord
from .engine import (
    HintStatus,
    QuizSessionEngine,
    ResultRow,
    ScoreSnapshot,
    SessionLockedError,
    SessionMode,
    SessionModeError,
)
from .models import Quiz, QuizValidationError

InputProvider = Callable[[], str]
ExitAction = Literal["submitted", "quit"]
CommandType = Literal[
    "next", "prev", "submit", "quit", "select", "hint", "edit", "results"
]


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: CommandType
    argument: Optional[str] = None


@dataclass(frozen=True)
class QuizSessionResult:
    """Return value from ``run_quiz_session``."""

    quiz: Quiz
    exit_action: ExitAction
    score: ScoreSnapshot
    results: tuple[ResultRow, ...]
    attempt: Optional[AttemptRecord] = None


@dataclass
class ConsoleState:
    """Cursor over the engine's questions."""

    engine: QuizSessionEngine
    index: int = 0

    @property
    def total_questions(self) -> int:
        return len(self.engine.quiz)

    def next(self) -> None:
        if self.index + 1 < self.total_questions:
            self.index += 1

    def previous(self) -> None:
        if self.index > 0:
            self.index -= 1


def parse_session_command(raw: Optional[str]) -> Optional[SessionCommand]:
    """Parse raw user input into a structured command."""

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    head, _, rest = text.partition(" ")
    lowered = head.lower()
    if lowered in {"e", "edit"}:
        return SessionCommand("edit", rest.strip() or None)
    if rest:
        return None
    if lowered in {"n", "next"}:
        return SessionCommand("next")
    if lowered in {"p", "prev", "previous"}:
        return SessionCommand("prev")
    if lowered in {"h", "hint"}:
        return SessionCommand("hint")
    if lowered in {"r", "results"}:
        return SessionCommand("results")
    if lowered in {"s", "submit"}:
        return SessionCommand("submit")
    if lowered in {"q", "quit", "exit"}:
        return SessionCommand("quit")
    if len(head) == 1 and head.isalpha():
        return SessionCommand("select", head.upper())
    return None


def run_quiz_session(
    engine: QuizSessionEngine,
    console: Console,
    input_provider: InputProvider,
) -> QuizSessionResult:
    """Run an interactive session until the user submits or quits."""

    return asyncio.run(
        run_quiz_session_async(engine, console, input_provider)
    )


async def run_quiz_session_async(
    engine: QuizSessionEngine,
    console: Console,
    input_provider: InputProvider,
) -> QuizSessionResult:
    state = ConsoleState(engine)
    exit_action: ExitAction = "quit"
    console.print(Text(engine.quiz.title, style="bold magenta"))
    while True:
        _render_question(console, state)
        try:
            raw = await asyncio.to_thread(_read_command, input_provider)
        except (EOFError, KeyboardInterrupt):
            console.print("\n[bold yellow]Session interrupted.[/]")
            break
        command = parse_session_command(raw)
        if command is None:
            console.print("[red]Unrecognized command. Try again.[/]")
            continue
        outcome = _apply_command(command, state, console)
        if outcome is not None:
            exit_action = outcome
            break

    await engine.drain_hints()
    return QuizSessionResult(
        quiz=engine.quiz,
        exit_action=exit_action,
        score=engine.compute_score(),
        results=engine.compute_results_summary(),
        attempt=engine.attempt,
    )


def _read_command(input_provider: InputProvider) -> str:
    # StopIteration cannot travel through a Future; treat it as end of input.
    try:
        return input_provider()
    except StopIteration as exc:
        raise EOFError from exc


def _apply_command(
    command: SessionCommand,
    state: ConsoleState,
    console: Console,
) -> Optional[ExitAction]:
    engine = state.engine
    if command.type == "select" and command.argument:
        _select(command.argument, state, console)
        return None
    if command.type == "next":
        state.next()
        return None
    if command.type == "prev":
        state.previous()
        return None
    if command.type == "hint":
        _request_hint(state, console)
        return None
    if command.type == "edit":
        _edit(command.argument, state, console)
        return None
    if command.type == "results":
        if engine.results_unlocked:
            _render_results(console, engine)
        elif engine.mode is SessionMode.EDIT:
            console.print(
                "[yellow]Answer every question to see the results.[/]"
            )
        else:
            console.print("[yellow]Submit the quiz to see the results.[/]")
        return None
    if command.type == "quit":
        console.print("\n[bold yellow]Ending session without submission.[/]")
        return "quit"
    if command.type == "submit":
        return _submit(state, console)
    return None


def _select(key: str, state: ConsoleState, console: Console) -> None:
    engine = state.engine
    question = engine.quiz[state.index]
    option = question.option_for_key(key)
    if option is None:
        console.print(
            "[red]'%s' is not a valid choice for this question.[/red]" % key
        )
        return
    try:
        feedback = engine.select_option(state.index, option)
    except SessionLockedError:
        console.print("[red]Quiz already submitted; answers are locked.[/]")
        return
    if engine.mode is SessionMode.EDIT:
        border = "green" if feedback.is_correct else "red"
        title = "Correct!" if feedback.is_correct else "Incorrect."
        console.print(
            Panel(
                feedback.explanation or "No reason provided.",
                title=title,
                border_style=border,
            )
        )
    else:
        console.print(f"Selected [bold]{key}[/].")


def _request_hint(state: ConsoleState, console: Console) -> None:
    engine = state.engine
    if not engine.hints_enabled:
        console.print("[yellow]Hints need a document summary.[/]")
        return
    if engine.hint_for(state.index).status is HintStatus.LOADING:
        console.print("[dim]Hint already on its way.[/]")
        return
    engine.schedule_hint(state.index)
    console.print("[dim]Fetching hint...[/]")


def _edit(text: Optional[str], state: ConsoleState, console: Console) -> None:
    if not text:
        console.print("[red]Usage: e <new question text>[/]")
        return
    try:
        state.engine.edit_question_text(state.index, text)
    except SessionModeError:
        console.print("[red]Questions can only be edited in edit mode.[/]")
        return
    except QuizValidationError as exc:
        console.print(f"[red]{exc}[/]")
        return
    console.print("[yellow]Question updated; answers were reset.[/]")


def _submit(state: ConsoleState, console: Console) -> Optional[ExitAction]:
    engine = state.engine
    if engine.mode is SessionMode.EDIT:
        console.print(
            "[yellow]Edit mode has no submission; use 'r' for results.[/]"
        )
        return None
    score = engine.compute_score()
    if not score.all_attempted:
        console.print(
            f"[red]Answer every question first "
            f"({score.answered}/{score.total} answered).[/]"
        )
        return None
    if not engine.quiz.submission_enabled or not engine.subject_id:
        console.print(
            "[red]Submission needs a subject id and a quiz label.[/]"
        )
        return None
    record = engine.submit_quiz()
    if record is None:
        console.print("[red]Quiz already submitted.[/]")
        return None
    console.print(
        f"[bold green]Quiz submitted![/] Your score: "
        f"{record.score}/{record.total}."
    )
    if not engine.attempt_recorded:
        console.print("[yellow]Your attempt could not be recorded.[/]")
    _render_results(console, engine)
    return "submitted"


def _render_question(console: Console, state: ConsoleState) -> None:
    engine = state.engine
    question = engine.quiz[state.index]
    header = Text.assemble(
        (f"Question {state.index + 1}", "bold cyan"),
        (f" / {state.total_questions}", "dim"),
    )
    console.print()
    console.rule(header)
    console.print(Text(question.question, style="bold"))

    table = Table(show_header=False, box=box.SIMPLE, expand=True)
    table.add_column("Key", justify="center", style="cyan")
    table.add_column("Choice")

    selected = engine.selection_for(state.index)
    feedback = engine.feedback_for(state.index)
    reveal = engine.mode is SessionMode.EDIT or engine.submitted
    for option in question.options:
        chosen = option == selected
        row_text = Text("• " if chosen else "  ")
        choice_text = Text(option)
        if chosen:
            if reveal and feedback is not None:
                style = "bold green" if feedback.is_correct else "bold red"
            else:
                style = "bold"
            choice_text.stylize(style)
        row_text += choice_text
        table.add_row(question.option_key(option), row_text)
    console.print(table)

    hint = engine.hint_for(state.index)
    if hint.status is HintStatus.LOADING:
        console.print(Text("Hint loading...", style="dim yellow"))
    elif hint.display_text:
        console.print(
            Panel(hint.display_text, title="Hint", border_style="yellow")
        )

    score = engine.compute_score()
    commands = ["choices", "n", "p"]
    if engine.hints_enabled:
        commands.append("h (hint)")
    if engine.mode is SessionMode.EDIT:
        commands.extend(["e <text>", "r (results)"])
    else:
        commands.append("submit")
    commands.append("quit")
    console.print(
        Text(
            f"Answered {score.answered}/{score.total} | "
            f"Commands: {', '.join(commands)}",
            style="dim",
        )
    )


def _render_results(console: Console, engine: QuizSessionEngine) -> None:
    console.print()
    console.rule(Text("Quiz Results", style="bold magenta"))
    score = engine.compute_score()
    console.print(
        Text(f"Your Score: {score.correct} / {score.total}", style="bold")
    )

    table = Table(box=box.SIMPLE, expand=True)
    table.add_column("Q #", justify="right")
    table.add_column("Status")
    table.add_column("Explanation", overflow="fold")
    for row in engine.compute_results_summary():
        status = (
            Text("Correct", style="green")
            if row.is_correct
            else Text("Incorrect", style="red")
        )
        table.add_row(str(row.position), status, row.explanation)
    console.print(table)
