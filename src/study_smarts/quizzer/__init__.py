from ._main import build_arg_parser
from .attempts import AttemptRecord, AttemptStore, AttemptStoreError
from .engine import (
    Feedback,
    HintState,
    HintStatus,
    QuizSessionEngine,
    QuizSessionError,
    ResultRow,
    ScoreSnapshot,
    SessionLockedError,
    SessionMode,
    SessionModeError,
    SessionPhase,
)
from .generator import (
    QuizGenerationError,
    chat_with_bot,
    generate_quiz,
    summarize_document,
)
from .hints import HintGenerationError, HintProvider, OpenAIHintProvider
from .models import Question, Quiz, QuizValidationError, build_quiz
from .session import (
    QuizSessionResult,
    SessionCommand,
    parse_session_command,
    run_quiz_session,
)
from .utils import read_jsonl, read_quiz_file, write_jsonl, write_quiz_file
from .view.quiz import QuestionView, QuizApp

__all__ = [
    "build_arg_parser",
    "AttemptRecord",
    "AttemptStore",
    "AttemptStoreError",
    "Feedback",
    "HintState",
    "HintStatus",
    "QuizSessionEngine",
    "QuizSessionError",
    "ResultRow",
    "ScoreSnapshot",
    "SessionLockedError",
    "SessionMode",
    "SessionModeError",
    "SessionPhase",
    "QuizGenerationError",
    "generate_quiz",
    "summarize_document",
    "chat_with_bot",
    "HintGenerationError",
    "HintProvider",
    "OpenAIHintProvider",
    "Question",
    "Quiz",
    "QuizValidationError",
    "build_quiz",
    "QuizSessionResult",
    "SessionCommand",
    "parse_session_command",
    "run_quiz_session",
    "read_jsonl",
    "write_jsonl",
    "read_quiz_file",
    "write_quiz_file",
    "QuizApp",
    "QuestionView",
]
