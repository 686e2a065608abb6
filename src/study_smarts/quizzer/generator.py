import json
import logging

from typing import Any, Dict, List, Optional, Tuple

from ..core.ai import chat_completion_content, load_client, strip_code_fence
from .models import Quiz, QuizValidationError, build_quiz

logger = logging.getLogger("study_smarts.quizzer")


class QuizGenerationError(RuntimeError):
    """Raised when the model output cannot be turned into a quiz."""


def _ensure_ai_client(client: Optional[object]) -> object:
    if client is not None:
        return client
    return load_client()


def _build_quiz_prompts(
    source_text: str, num_questions: int, focus: Optional[str]
) -> Tuple[str, str]:
    sys_prompt = "You write fair multiple-choice quizzes for students."
    schema_line = (
        '{"questions": [{"question": str, "options": [str, str, str, str], '
        '"answer": str, "reason": str}]}\n'
    )
    constraints = (
        "Constraints: exactly one correct option; `answer` must repeat that "
        "option's text verbatim; plausible distractors; `reason` explains why "
        "the answer is right in one or two sentences."
    )
    focus_line = f"Focus: {focus.strip()}\n" if focus and focus.strip() else ""
    user_prompt = (
        "Create a quiz from the material below. Output a single JSON object."
        f"\n\nSchema:\n{schema_line}"
        f"Count: {num_questions}\n"
        f"{focus_line}"
        f"{constraints}\n\n"
        f"Material:\n{source_text.strip()}"
    )
    return sys_prompt, user_prompt


def _extract_question_list(content: str) -> List[Any]:
    if not content:
        return []
    try:
        data = json.loads(strip_code_fence(content))
    except ValueError:
        return []
    if isinstance(data, dict):
        data = data.get("questions", [])
    return data if isinstance(data, list) else []


def _normalize_options(raw_options: Any) -> List[str]:
    out: List[str] = []
    if not isinstance(raw_options, list):
        return out
    for option in raw_options:
        if isinstance(option, dict):
            text = str(option.get("text", "")).strip()
        else:
            text = str(option).strip()
        if text and text not in out:
            out.append(text)
    return out


def _resolve_answer(raw_answer: Any, options: List[str]) -> str:
    """Map an index, option letter, or option text onto the option text."""
    if isinstance(raw_answer, int) and 0 <= raw_answer < len(options):
        return options[raw_answer]
    if not isinstance(raw_answer, str):
        return ""
    candidate = raw_answer.strip()
    if candidate in options:
        return candidate
    for option in options:
        if candidate.lower() == option.lower():
            return option
    letter = candidate.rstrip(").").upper()
    if len(letter) == 1 and letter.isalpha():
        position = ord(letter) - ord("A")
        if 0 <= position < len(options):
            return options[position]
    return candidate


def _normalize_records(records: List[Any], *, limit: int) -> List[Dict]:
    items: List[Dict] = []
    for rec in records:
        if len(items) >= limit:
            break
        if not isinstance(rec, dict):
            continue
        text = str(rec.get("question") or rec.get("stem") or "").strip()
        if not text:
            continue
        options = _normalize_options(rec.get("options", rec.get("choices")))
        if len(options) < 2:
            continue
        answer = _resolve_answer(rec.get("answer"), options)
        if answer not in options:
            continue
        reason = str(rec.get("reason") or rec.get("explanation") or "")
        items.append(
            {
                "question": text,
                "options": options,
                "answer": answer,
                "reason": reason.strip(),
            }
        )
    return items


def generate_quiz(
    source_text: str,
    *,
    num_questions: int = 5,
    client: object = None,
    model: str = "gpt-4o-mini",
    temperature: float = 0.2,
    max_tokens: int = 1500,
    focus: Optional[str] = None,
    label: Optional[str] = None,
    document_summary: Optional[str] = None,
) -> Quiz:
    """Ask the model for a quiz over ``source_text`` and validate it.

    Malformed entries are skipped; at most ``num_questions`` are kept.
    Raises ``QuizGenerationError`` when no valid question survives.
    """
    if num_questions <= 0:
        raise ValueError("num_questions must be positive")
    if not source_text.strip():
        raise QuizGenerationError("source material is empty")
    resolved_client = _ensure_ai_client(client)
    sys_prompt, user_prompt = _build_quiz_prompts(
        source_text, num_questions, focus
    )
    content = chat_completion_content(
        resolved_client,
        model=model,
        system_prompt=sys_prompt,
        user_prompt=user_prompt,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    records = _extract_question_list(content)
    items = _normalize_records(records, limit=num_questions)
    logger.info(
        "Quiz generated",
        extra={
            "returned": len(records),
            "kept": len(items),
            "requested": num_questions,
        },
    )
    if not items:
        raise QuizGenerationError("model returned no usable questions")
    try:
        return build_quiz(
            {"questions": items},
            document_summary=document_summary,
            label=label,
        )
    except QuizValidationError as exc:  # pragma: no cover - normalized above
        raise QuizGenerationError(str(exc)) from exc


def summarize_document(
    text: str,
    *,
    client: object = None,
    model: str = "gpt-4o-mini",
    temperature: float = 0.3,
    max_tokens: int = 800,
) -> str:
    """Return a study summary of ``text`` used later as hint context."""
    if not text.strip():
        raise QuizGenerationError("document is empty")
    resolved_client = _ensure_ai_client(client)
    summary = chat_completion_content(
        resolved_client,
        model=model,
        system_prompt=(
            "You summarize study material into clear, well-organized notes."
        ),
        user_prompt=(
            "Summarize the document below. Start with a short overview "
            "paragraph, then list the key points of each section.\n\n"
            f"{text.strip()}"
        ),
        temperature=temperature,
        max_tokens=max_tokens,
    )
    if not summary:
        raise QuizGenerationError("model returned an empty summary")
    return summary


def chat_with_bot(
    user_input: str,
    *,
    client: object = None,
    model: str = "gpt-4o-mini",
    temperature: float = 0.7,
    max_tokens: int = 800,
) -> str:
    """Answer one study-assistant message. Each call is independent."""
    if not user_input.strip():
        raise QuizGenerationError("message is empty")
    resolved_client = _ensure_ai_client(client)
    reply = chat_completion_content(
        resolved_client,
        model=model,
        system_prompt=(
            "You are StudySmarts, a friendly and helpful AI study assistant. "
            "Respond clearly and concisely."
        ),
        user_prompt=user_input.strip(),
        temperature=temperature,
        max_tokens=max_tokens,
    )
    if not reply:
        raise QuizGenerationError("model returned an empty reply")
    return reply
