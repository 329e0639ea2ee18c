"""
SitePortal — Text generation backend.

The AI assistant asks for two kinds of short text: a bullet summary of a
job's internal chat and a client SMS draft. Both go through `complete()`,
which forwards a system prompt and one user message to whichever provider
LLM_PROVIDER names (gemini by default, or anthropic, openai, cohere).

The provider is resolved on the first request and reused afterwards.
Configuration and provider errors propagate; assistant.py turns them into
the fixed strings the portal shows.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# (api_key, model, system, user_message, max_tokens) -> generated text
_Backend = Callable[[str, str, str, str, int], Awaitable[str]]


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


async def _gemini(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(model_name=model, system_instruction=system)
    response = await gm.generate_content_async(
        user_message,
        generation_config=genai.types.GenerationConfig(max_output_tokens=max_tokens),
    )
    return response.text


async def _anthropic(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": user_message}],
    )
    return "".join(block.text for block in response.content if block.type == "text")


async def _openai(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.choices[0].message.content or ""


async def _cohere(api_key: str, model: str, system: str, user_message: str, max_tokens: int) -> str:
    import cohere

    client = cohere.AsyncClientV2(api_key=api_key)
    response = await client.chat(
        model=model,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return "".join(part.text for part in response.message.content)


# Small, fast models: outputs are a few bullets or one SMS
_BACKENDS: dict[str, tuple[_Backend, str]] = {
    "gemini":    (_gemini,    "gemini-2.0-flash"),
    "anthropic": (_anthropic, "claude-haiku-4-5-20251001"),
    "openai":    (_openai,    "gpt-4o-mini"),
    "cohere":    (_cohere,    "command-a-03-2025"),
}


def _select_provider() -> tuple[_Backend, str, str]:
    """Resolve (backend, model, api_key) from settings.

    Raises ValueError for an unknown provider or a missing key.
    """
    from siteportal.config import settings

    name = settings.LLM_PROVIDER.lower()
    if name not in _BACKENDS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={name!r}. Supported: {', '.join(_BACKENDS)}"
        )
    if not settings.LLM_API_KEY:
        raise ValueError("LLM_API_KEY is not configured")

    backend, default_model = _BACKENDS[name]
    model = settings.LLM_MODEL or default_model
    logger.info("Assistant text generation via %s (%s)", name, model)
    return backend, model, settings.LLM_API_KEY


_selected: tuple[_Backend, str, str] | None = None


def reset_provider() -> None:
    """Drop the resolved provider; the next request reads settings again."""
    global _selected
    _selected = None


async def complete(system: str, user_message: str, max_tokens: int = 256) -> str:
    """Generate text for one assistant request."""
    global _selected

    if _selected is None:
        _selected = _select_provider()
    backend, model, api_key = _selected
    return await backend(api_key, model, system, user_message, max_tokens)
