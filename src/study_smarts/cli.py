"""Top-level ``studysmarts`` command dispatcher."""

from __future__ import annotations

import inspect
import sys
from dataclasses import dataclass
from importlib import import_module, metadata
from typing import Callable, Mapping, Optional, Sequence


CommandHandler = Callable[[Sequence[str]], int]

DIST_NAME = "study-smarts"


@dataclass(frozen=True)
class CommandSpec:
    """A subcommand and the module entry point that serves it."""

    name: str
    summary: str
    module: str
    is_tui: bool = False

    def run(self, argv: Sequence[str]) -> int:
        target = getattr(import_module(self.module), "main")
        return _invoke_main(target, f"studysmarts {self.name}", argv)


_COMMAND_SPECS: Sequence[CommandSpec] = (
    CommandSpec(
        name="init",
        summary="Create the study-smarts workspace.",
        module="study_smarts.workspace.cli",
    ),
    CommandSpec(
        name="quizzer",
        summary="Generate quizzes and run interactive quiz sessions.",
        module="study_smarts.quizzer._main",
        is_tui=True,
    ),
)

COMMANDS: Mapping[str, CommandSpec] = {
    spec.name: spec for spec in _COMMAND_SPECS
}


def format_command_table() -> str:
    width = max(len(spec.name) for spec in _COMMAND_SPECS)
    lines = ["Available commands:"]
    for spec in _COMMAND_SPECS:
        suffix = " (TUI)" if spec.is_tui else ""
        lines.append(f"  {spec.name.ljust(width)}  {spec.summary}{suffix}")
    return "\n".join(lines)


def format_usage() -> str:
    return "\n".join(
        [
            "Usage: studysmarts <command> [args...]",
            "Run `studysmarts list` for commands or "
            "`studysmarts help <name>` for details.",
            "",
            format_command_table(),
        ]
    )


def _out(text: str) -> None:
    sys.stdout.write(text + "\n")


def _err(text: str) -> None:
    sys.stderr.write(text + "\n")


def _handle_version() -> int:
    try:
        version = metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        version = "unknown"
    _out(version)
    return 0


def _handle_help(argv: Sequence[str]) -> int:
    if not argv:
        _out(format_usage())
        return 0
    spec = COMMANDS.get(argv[0])
    if spec is None:
        _err(f"Unknown command '{argv[0]}'.")
        _err(format_command_table())
        return 2
    _out(f"{spec.name}: {spec.summary}")
    _out(f"Run `studysmarts {spec.name} --help` for CLI-specific options.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(argv if argv is not None else sys.argv[1:])
    if not args:
        _out(format_usage())
        return 2

    head, *tail = args
    if head in ("-h", "--help"):
        _out(format_usage())
        return 0
    if head in ("-V", "--version", "version"):
        return _handle_version()
    if head == "list":
        _out(format_command_table())
        return 0
    if head == "help":
        return _handle_help(tail)

    spec = COMMANDS.get(head)
    if spec is None:
        _err(f"Unknown command '{head}'.")
        _err(format_command_table())
        return 2
    return spec.run(tail)


def _invoke_main(
    func: Callable[..., object], prog_name: str, argv: Sequence[str]
) -> int:
    takes_argv = bool(inspect.signature(func).parameters)
    args = list(argv)
    old_argv = sys.argv
    sys.argv = [prog_name, *args]
    try:
        result = func(args) if takes_argv else func()
    except SystemExit as exc:
        return _exit_code(exc)
    finally:
        sys.argv = old_argv
    return result if isinstance(result, int) else 0


def _exit_code(exc: SystemExit) -> int:
    code = exc.code
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    _err(str(code))
    return 1


if __name__ == "__main__":  # pragma: no cover - manual invocation guard
    raise SystemExit(main())
