from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent
for extra in (TESTS_DIR, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import (  # noqa: E402
    ChatClientFactory,
    ListRecorder,
    RecordingHintProvider,
    WorkspaceBuilder,
    sample_questions,
)
from study_smarts.core import ai as core_ai  # noqa: E402
from study_smarts.core.logging import release_logger  # noqa: E402
from study_smarts.quizzer.models import Quiz, build_quiz  # noqa: E402


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceBuilder:
    """Provide a helper bound to pytest's per-test tmp directory."""

    return WorkspaceBuilder(tmp_path)


@pytest.fixture
def quiz() -> Quiz:
    return build_quiz(
        {"questions": sample_questions()},
        document_summary="France is in Europe; multiplication basics.",
        label="geo-basics",
    )


@pytest.fixture
def hint_provider() -> RecordingHintProvider:
    return RecordingHintProvider()


@pytest.fixture
def recorder() -> ListRecorder:
    return ListRecorder()


@pytest.fixture
def openai_factory(monkeypatch: pytest.MonkeyPatch) -> ChatClientFactory:
    """Patch the OpenAI class used by ``load_client`` with a stub factory."""

    factory = ChatClientFactory()
    monkeypatch.setattr(core_ai, "OpenAI", factory)
    monkeypatch.setattr(core_ai, "load_dotenv", lambda *a, **k: False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    return factory


@pytest.fixture
def isolated_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[Path]:
    """Point the workspace at tmp and clear quizzer env overrides."""

    home = tmp_path / "data-home"
    monkeypatch.setenv("STUDY_SMARTS_DATA_HOME", str(home))
    for key in (
        "STUDY_SMARTS_QUIZZER_CONFIG",
        "STUDY_SMARTS_QUIZZER_MODEL",
        "STUDY_SMARTS_QUIZZER_MODE",
        "STUDY_SMARTS_QUIZZER_SUBJECT_ID",
        "STUDY_SMARTS_QUIZZER_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    yield home
    release_logger(logging.getLogger("study_smarts.quizzer"))
