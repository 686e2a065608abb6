"""``studysmarts init``: create the shared workspace directories."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Mapping, Sequence

from study_smarts.core import workspace as workspace_mod


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="studysmarts init",
        description=(
            "Create the study-smarts workspace with its config, logs, "
            "quizzes and attempts directories."
        ),
    )
    parser.add_argument(
        "--path",
        type=Path,
        help=(
            f"Workspace root (defaults to {workspace_mod.WORKSPACE_ENV} "
            "or ~/.study-smarts-data)."
        ),
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Print nothing on success.",
    )
    return parser


def _status(created: Mapping[str, bool], key: str) -> str:
    return "new" if created.get(key, False) else "found"


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(list(argv) if argv is not None else None)
    try:
        layout = workspace_mod.ensure_workspace(path=args.path)
    except workspace_mod.WorkspaceError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1

    if args.quiet:
        return 0

    lines = [f"Workspace: {layout.home} ({_status(layout.created, 'home')})"]
    width = max((len(name) for name in layout.directories), default=0)
    for name, directory in layout.items():
        lines.append(
            f"  {name.ljust(width)}  {directory} "
            f"({_status(layout.created, name)})"
        )
    sys.stdout.write("\n".join(lines) + "\n")
    return 0


if __name__ == "__main__":  # pragma: no cover - module CLI guard
    raise SystemExit(main())
