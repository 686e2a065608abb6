"""Finalized quiz attempts and their JSONL-backed store."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping, MutableMapping, Optional, Protocol

from .utils import read_jsonl

__all__ = [
    "ATTEMPTS_FILENAME",
    "AttemptStoreError",
    "AttemptRecord",
    "AttemptRecorder",
    "AttemptStore",
]

ATTEMPTS_FILENAME = "attempts.jsonl"


class AttemptStoreError(RuntimeError):
    """Raised when an attempt cannot be validated, written or read back."""


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class AttemptRecord:
    """Score tuple emitted once per submitted quiz."""

    subject_id: str
    score: int
    total: int
    label: str
    submitted_at: str = field(default_factory=_timestamp)

    def __post_init__(self) -> None:
        if not self.subject_id.strip():
            raise AttemptStoreError("subject_id must be a non-empty string")
        if not self.label.strip():
            raise AttemptStoreError("label must be a non-empty string")
        if self.total <= 0:
            raise AttemptStoreError("total must be a positive integer")
        if not 0 <= self.score <= self.total:
            raise AttemptStoreError("score must be between 0 and total")

    @property
    def accuracy(self) -> float:
        return self.score / self.total

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "subject_id": self.subject_id,
            "score": self.score,
            "total": self.total,
            "label": self.label,
            "submitted_at": self.submitted_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AttemptRecord":
        try:
            return cls(
                subject_id=str(payload["subject_id"]),
                score=int(payload["score"]),
                total=int(payload["total"]),
                label=str(payload["label"]),
                submitted_at=str(payload.get("submitted_at", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AttemptStoreError(
                f"Attempt payload is malformed: {exc}"
            ) from exc


class AttemptRecorder(Protocol):
    """Anything able to persist a finalized attempt.

    Implementations raise on failure; the session engine logs the error and
    keeps the submission in place.
    """

    def record(self, attempt: AttemptRecord) -> None:
        """Persist ``attempt``."""


class AttemptStore:
    """Append-only attempt log stored as JSON lines."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @classmethod
    def in_directory(
        cls, directory: Path, filename: str = ATTEMPTS_FILENAME
    ) -> "AttemptStore":
        return cls(Path(directory) / filename)

    @property
    def path(self) -> Path:
        return self._path

    def record(self, attempt: AttemptRecord) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(attempt.to_dict(), ensure_ascii=False))
                fh.write("\n")
        except OSError as exc:
            raise AttemptStoreError(
                f"Unable to record attempt in {self._path}: {exc}"
            ) from exc

    def list(
        self,
        *,
        subject_id: Optional[str] = None,
        label: Optional[str] = None,
    ) -> List[AttemptRecord]:
        """Return stored attempts, oldest first, optionally filtered."""
        if not self._path.exists():
            return []
        try:
            rows = read_jsonl(self._path)
        except (OSError, json.JSONDecodeError) as exc:
            raise AttemptStoreError(
                f"Unable to read attempts from {self._path}: {exc}"
            ) from exc
        attempts = [AttemptRecord.from_dict(row) for row in rows]
        if subject_id is not None:
            attempts = [a for a in attempts if a.subject_id == subject_id]
        if label is not None:
            attempts = [a for a in attempts if a.label == label]
        return attempts
