"""Hint generation for individual quiz questions.

The session engine only depends on :class:`HintProvider`; the OpenAI-backed
implementation below is what the CLI wires in.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol

from ..core.ai import chat_completion_content, load_client

__all__ = [
    "HintGenerationError",
    "HintProvider",
    "OpenAIHintProvider",
    "build_hint_prompts",
]

_SYSTEM_PROMPT = (
    "You are StudySmarts, a patient tutor. You give short hints that nudge "
    "a student toward the answer without ever stating it."
)


class HintGenerationError(RuntimeError):
    """Raised when a hint could not be produced."""


class HintProvider(Protocol):
    """Asynchronous source of per-question hints."""

    async def generate_hint(
        self, question_text: str, document_summary: str
    ) -> str:
        """Return a hint for ``question_text`` grounded in the summary."""


def build_hint_prompts(
    question_text: str, document_summary: str
) -> tuple[str, str]:
    user_prompt = (
        "Using the document summary below, write a hint (one or two "
        "sentences) for the quiz question. Do not reveal or paraphrase the "
        "correct option.\n\n"
        f"Question: {question_text.strip()}\n\n"
        f"Document summary:\n{document_summary.strip()}"
    )
    return _SYSTEM_PROMPT, user_prompt


class OpenAIHintProvider:
    """Hint provider backed by an OpenAI chat completion client.

    The synchronous client call runs in a worker thread so the event loop
    driving the session stays responsive while the request is in flight.
    """

    def __init__(
        self,
        *,
        client: Optional[Any] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.4,
        max_tokens: int = 150,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = load_client()
        return self._client

    async def generate_hint(
        self, question_text: str, document_summary: str
    ) -> str:
        system_prompt, user_prompt = build_hint_prompts(
            question_text, document_summary
        )
        content = await asyncio.to_thread(
            chat_completion_content,
            self.client,
            model=self._model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        if not content:
            raise HintGenerationError("model returned an empty hint")
        return content
