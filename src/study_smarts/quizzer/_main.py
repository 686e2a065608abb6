import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from openai import OpenAIError
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core import configure_logger, ensure_workspace, load_client
from .attempts import AttemptStore, AttemptStoreError
from .config import (
    ConfigOverrides,
    LoadResult,
    QuizzerConfigError,
    default_config_path,
    load_config,
    write_template,
)
from .engine import QuizSessionEngine
from .generator import (
    QuizGenerationError,
    chat_with_bot,
    generate_quiz,
    summarize_document,
)
from .hints import OpenAIHintProvider
from .models import Quiz, QuizValidationError
from .session import run_quiz_session
from .utils import read_quiz_file, read_text, slugify, write_quiz_file
from .view.quiz import QuizApp


def _error(message: str) -> None:
    sys.stderr.write(f"Error: {message}\n")


def _load(args: argparse.Namespace) -> LoadResult:
    overrides = ConfigOverrides(
        model=getattr(args, "model", None),
        mode=getattr(args, "mode", None),
        subject_id=getattr(args, "subject", None),
        log_level=getattr(args, "log_level", None),
    )
    return load_config(
        config_path=args.config,
        overrides=overrides,
        workspace_path=args.workspace,
    )


def _logger_for(loaded: LoadResult, verbose: bool) -> logging.Logger:
    logger, _ = configure_logger(
        "study_smarts.quizzer",
        log_dir=loaded.layout.path_for("logs"),
        level=loaded.config.log_level,
        verbose=verbose,
    )
    return logger


def _cmd_config_init(args: argparse.Namespace) -> int:
    try:
        loaded = _load(args)
    except QuizzerConfigError:
        # A broken or missing file must not block writing a fresh template.
        layout = ensure_workspace(path=args.workspace)
        target = args.config or default_config_path(layout)
    else:
        target = args.config or default_config_path(loaded.layout)
    try:
        path = write_template(Path(target), overwrite=args.force)
    except QuizzerConfigError as exc:
        _error(f"{exc} (use --force to overwrite)")
        return 1
    print(f"Created template {path}")
    return 0


def _cmd_summarize(args: argparse.Namespace) -> int:
    loaded = _load(args)
    logger = _logger_for(loaded, args.verbose)
    try:
        text = read_text(args.document)
    except OSError as exc:
        _error(f"cannot read {args.document}: {exc}")
        return 1
    try:
        summary = summarize_document(
            text,
            client=load_client(),
            model=loaded.config.model,
            temperature=loaded.config.temperature,
            max_tokens=loaded.config.max_tokens,
        )
    except (QuizGenerationError, RuntimeError) as exc:
        logger.error("Summary failed", extra={"document": args.document})
        _error(str(exc))
        return 1
    out = args.out or args.document.with_suffix(".summary.md")
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(summary + "\n", encoding="utf-8")
    logger.info("Summary written", extra={"path": out})
    print(f"Wrote summary -> {out}")
    return 0


def _cmd_generate(args: argparse.Namespace) -> int:
    loaded = _load(args)
    config = loaded.config
    logger = _logger_for(loaded, args.verbose)
    try:
        source = read_text(args.source)
        summary = read_text(args.summary) if args.summary else None
    except OSError as exc:
        _error(str(exc))
        return 1
    label = args.label or args.source.stem
    num = args.num if args.num is not None else config.num_questions
    try:
        client = load_client()
        if summary is None and args.summarize:
            summary = summarize_document(
                source,
                client=client,
                model=config.model,
                temperature=config.temperature,
                max_tokens=config.max_tokens,
            )
        quiz = generate_quiz(
            source,
            num_questions=num,
            client=client,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            focus=args.focus,
            label=label,
            document_summary=summary,
        )
    except (QuizGenerationError, RuntimeError, ValueError) as exc:
        logger.error("Quiz generation failed", extra={"source": args.source})
        _error(str(exc))
        return 1
    out = args.out or (
        loaded.layout.path_for("quizzes") / f"{slugify(label)}.json"
    )
    write_quiz_file(out, quiz)
    logger.info(
        "Quiz written", extra={"path": out, "questions": len(quiz)}
    )
    print(f"Wrote {len(quiz)} question(s) -> {out}")
    return 0


def _cmd_start(args: argparse.Namespace) -> int:
    """Start an interactive session over a quiz JSON file."""
    loaded = _load(args)
    config = loaded.config
    logger = _logger_for(loaded, args.verbose)
    try:
        summary = read_text(args.summary) if args.summary else None
        quiz = read_quiz_file(
            args.quiz, document_summary=summary, label=args.label
        )
    except FileNotFoundError as exc:
        _error(str(exc))
        return 1
    except (QuizValidationError, json.JSONDecodeError) as exc:
        _error(f"invalid quiz {args.quiz}: {exc}")
        return 2

    def save_edits(updated: Quiz) -> None:
        write_quiz_file(args.quiz, updated)

    engine = QuizSessionEngine(
        quiz,
        mode=config.mode,
        subject_id=config.subject_id,
        hint_provider=OpenAIHintProvider(
            model=config.model,
            max_tokens=config.hint_max_tokens,
        ),
        recorder=AttemptStore(config.attempts_path),
        on_quiz_change=save_edits if args.save_edits else None,
        logger=logger,
    )
    logger.info(
        "Session started",
        extra={
            "quiz": args.quiz,
            "mode": config.mode,
            "questions": len(quiz),
            "hints": engine.hints_enabled,
        },
    )
    if args.tui:
        QuizApp(engine).run()
        score = engine.compute_score()
        print(f"Score: {score.correct}/{score.total}")
        return 0

    console = Console()
    result = run_quiz_session(
        engine, console, lambda: console.input("[bold]> [/]")
    )
    logger.info(
        "Session ended",
        extra={
            "exit_action": result.exit_action,
            "correct": result.score.correct,
            "answered": result.score.answered,
        },
    )
    return 0


def _cmd_attempts(args: argparse.Namespace) -> int:
    loaded = _load(args)
    store = AttemptStore(loaded.config.attempts_path)
    try:
        attempts = store.list(subject_id=args.subject, label=args.label)
    except AttemptStoreError as exc:
        _error(str(exc))
        return 1
    if not attempts:
        print("No attempts recorded.")
        return 1
    table = Table(title="Attempts", box=box.SIMPLE)
    table.add_column("Submitted")
    table.add_column("Subject")
    table.add_column("Quiz")
    table.add_column("Score", justify="right")
    for attempt in attempts:
        table.add_row(
            attempt.submitted_at,
            attempt.subject_id,
            attempt.label,
            f"{attempt.score}/{attempt.total} ({attempt.accuracy:.0%})",
        )
    Console().print(table)
    return 0


def _chat_reply(
    console: Console,
    logger: logging.Logger,
    client: object,
    loaded: LoadResult,
    message: str,
) -> bool:
    try:
        reply = chat_with_bot(
            message,
            client=client,
            model=loaded.config.model,
            max_tokens=loaded.config.max_tokens,
        )
    except (QuizGenerationError, OpenAIError) as exc:
        logger.warning("Chat reply failed", exc_info=True)
        console.print(f"[red]Error:[/] {exc}")
        return False
    console.print(Panel(reply, title="StudySmarts"))
    return True


def _cmd_chat(args: argparse.Namespace) -> int:
    """Talk to the study assistant, one completion per message."""
    loaded = _load(args)
    logger = _logger_for(loaded, args.verbose)
    try:
        client = load_client()
    except RuntimeError as exc:
        _error(str(exc))
        return 1
    console = Console()
    if args.message:
        ok = _chat_reply(console, logger, client, loaded, args.message)
        return 0 if ok else 1

    console.print(
        Panel(
            "Ask anything about your studies. Type exit to leave.",
            title="StudySmarts Chat",
        )
    )
    while True:
        try:
            prompt = console.input("[bold green]You[/]> ")
        except (EOFError, KeyboardInterrupt):
            console.print("\nExiting chat.")
            break
        prompt = prompt.strip()
        if prompt in {":quit", ":q", "exit", "quit"}:
            console.print("Goodbye!")
            break
        if not prompt:
            continue
        _chat_reply(console, logger, client, loaded, prompt)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", type=Path, help="Path to quizzer.toml (default: workspace)"
    )
    common.add_argument(
        "--workspace", type=Path, help="Override the workspace root"
    )
    common.add_argument("--model", help="Override the AI model")
    common.add_argument("--log-level", dest="log_level")
    common.add_argument(
        "--verbose", action="store_true", help="Mirror logs to stderr"
    )

    p = argparse.ArgumentParser(
        prog="studysmarts quizzer",
        description="Generate quizzes and run interactive quiz sessions",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True)

    sp_cfg = sub.add_parser("config", help="Configuration commands")
    cfg_sub = sp_cfg.add_subparsers(dest="action", required=True)
    sp_cfg_init = cfg_sub.add_parser(
        "init", parents=[common], help="Write the quizzer.toml template"
    )
    sp_cfg_init.add_argument("--force", action="store_true")

    sp_sum = sub.add_parser(
        "summarize", parents=[common], help="Summarize a study document"
    )
    sp_sum.add_argument("document", type=Path)
    sp_sum.add_argument("--out", type=Path)

    sp_gen = sub.add_parser(
        "generate", parents=[common], help="Generate a quiz from a document"
    )
    sp_gen.add_argument("source", type=Path)
    sp_gen.add_argument("--num", type=int)
    sp_gen.add_argument("--label", help="Quiz label (default: file stem)")
    sp_gen.add_argument("--focus", help="Topic to emphasize")
    sp_gen.add_argument(
        "--summary", type=Path, help="Existing summary file to attach"
    )
    sp_gen.add_argument(
        "--summarize",
        action="store_true",
        help="Summarize the source and attach it so hints are available",
    )
    sp_gen.add_argument("--out", type=Path)

    sp_start = sub.add_parser(
        "start", parents=[common], help="Start a quiz session"
    )
    sp_start.add_argument("quiz", type=Path)
    sp_start.add_argument("--mode", choices=["edit", "display"])
    sp_start.add_argument("--summary", type=Path, help="Enables hints")
    sp_start.add_argument("--subject", help="Subject id for the attempt")
    sp_start.add_argument("--label", help="Quiz label for the attempt")
    sp_start.add_argument(
        "--save-edits",
        action="store_true",
        help="Write edited question text back to the quiz file",
    )
    sp_start.add_argument(
        "--tui", action="store_true", help="Use the Textual interface"
    )

    sp_chat = sub.add_parser(
        "chat", parents=[common], help="Chat with the study assistant"
    )
    sp_chat.add_argument(
        "message", nargs="?", help="Send one message and exit"
    )

    sp_att = sub.add_parser(
        "attempts", parents=[common], help="List recorded attempts"
    )
    sp_att.add_argument("--subject")
    sp_att.add_argument("--label")
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "config" and args.action == "init":
            return _cmd_config_init(args)
        if args.command == "summarize":
            return _cmd_summarize(args)
        if args.command == "generate":
            return _cmd_generate(args)
        if args.command == "start":
            return _cmd_start(args)
        if args.command == "attempts":
            return _cmd_attempts(args)
        if args.command == "chat":
            return _cmd_chat(args)
    except QuizzerConfigError as exc:
        parser.error(str(exc))
    parser.print_help()  # pragma: no cover - fallback guard
    return 2
