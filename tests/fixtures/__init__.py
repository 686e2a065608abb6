"""Shared testing fixtures for the study_smarts test suite."""

from .openai import ChatClientFactory, ChatClientStub, completion  # noqa: F401
from .session import ListRecorder, RecordingHintProvider  # noqa: F401
from .workspace import (  # noqa: F401
    WorkspaceBuilder,
    question_payload,
    sample_questions,
)

__all__ = [
    "ChatClientFactory",
    "ChatClientStub",
    "ListRecorder",
    "RecordingHintProvider",
    "WorkspaceBuilder",
    "completion",
    "question_payload",
    "sample_questions",
]
