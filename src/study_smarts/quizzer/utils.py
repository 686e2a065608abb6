import json
import re

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .models import Quiz, build_quiz, quiz_to_payload


_slug_re = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    s = name.strip().lower()
    s = _slug_re.sub("-", s).strip("-")
    return s or "quiz"


def read_jsonl(path: Path) -> List[dict]:
    data: List[dict] = []
    with Path(path).open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            data.append(json.loads(line))
    return data


def write_jsonl(path: Path, records: Sequence[dict]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as fh:
        for rec in records:
            fh.write(json.dumps(rec, ensure_ascii=False))
            fh.write("\n")


def read_quiz_file(
    path: Path,
    *,
    document_summary: Optional[str] = None,
    label: Optional[str] = None,
) -> Quiz:
    """Load and validate a quiz JSON file.

    Raises ``QuizValidationError`` for malformed content and ``ValueError``
    (from ``json``) when the file is not JSON at all.
    """
    with Path(path).open("r", encoding="utf-8") as fh:
        payload: Any = json.load(fh)
    return build_quiz(payload, document_summary=document_summary, label=label)


def write_quiz_file(path: Path, quiz: Quiz) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload: Dict[str, Any] = quiz_to_payload(quiz)
    p.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )
    return p


def read_text(path: Path) -> str:
    """Read a UTF-8 text file, replacing undecodable bytes."""
    return Path(path).read_text(encoding="utf-8", errors="replace")
