"""Shared AI helper utilities."""

from __future__ import annotations

import os
import re
from typing import Any

from dotenv import load_dotenv

try:  # Allow module import even when the OpenAI dependency is absent.
    from openai import OpenAI  # type: ignore
except Exception:  # pragma: no cover - optional dependency guard
    OpenAI = None  # type: ignore

__all__ = ["load_client", "chat_completion_content", "strip_code_fence"]

_FENCE_RE = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL)


def load_client() -> Any:
    """Initialize an OpenAI client using environment-derived credentials."""
    if OpenAI is None:
        raise RuntimeError(
            "The 'openai' package is required to create a client. "
            "Install it and retry."
        )
    load_dotenv()
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError(
            "OPENAI_API_KEY not found in environment. Set it or add to .env"
        )
    return OpenAI(api_key=api_key)


def chat_completion_content(
    client: Any,
    *,
    model: str,
    system_prompt: str,
    user_prompt: str,
    temperature: float,
    max_tokens: int,
) -> str:
    """Run a single chat completion and return the stripped message text.

    Errors raised by the client propagate; callers decide whether a failed
    completion is fatal.
    """
    resp = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
    )
    raw_content = resp.choices[0].message.content
    return (raw_content or "").strip()


def strip_code_fence(content: str) -> str:
    """Return the payload inside a Markdown code fence, if any."""
    fenced = _FENCE_RE.search(content or "")
    return fenced.group(1).strip() if fenced else (content or "").strip()
