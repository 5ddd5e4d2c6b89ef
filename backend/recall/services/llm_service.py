"""
LLM inference service for Recall.

Primary path:  hosted OpenAI-compatible chat completions API
               ({llm_base_url}/chat/completions, Groq by default).
Fallback path: local Ollama (http://localhost:11434/api/chat) when
               RECALL_OLLAMA_MODEL is set and the model is pulled.

Usage:
    text = await chat(messages, model=settings.chat_model, system=prompt)
    result_dict = await chat_json(system_prompt, user_prompt, model=...)
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from recall.config import settings

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class LLMUnavailableError(Exception):
    """Raised when neither the hosted API nor a local Ollama model is usable."""


class LLMResponseError(ValueError):
    """Raised when the model reply is empty or not the expected JSON."""


async def _hosted_chat(
    messages: list[dict[str, str]],
    model: str,
    max_tokens: int,
    temperature: float | None,
    json_mode: bool,
) -> str:
    payload: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
    }
    if temperature is not None:
        payload["temperature"] = temperature
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    async with httpx.AsyncClient(base_url=settings.llm_base_url) as client:
        res = await client.post(
            "/chat/completions",
            json=payload,
            headers={"Authorization": f"Bearer {settings.llm_api_key}"},
            timeout=settings.llm_timeout,
        )
        res.raise_for_status()
        return res.json()["choices"][0]["message"]["content"] or ""


async def _ollama_ready() -> bool:
    """True if the configured Ollama model is pulled on the local server."""
    if not settings.ollama_model:
        return False
    try:
        async with httpx.AsyncClient() as client:
            res = await client.get(f"{settings.ollama_url}/api/tags", timeout=1.5)
            if res.status_code != 200:
                return False
            tags = res.json()
        wanted = settings.ollama_model.split(":")[0]
        return any(m["name"].split(":")[0] == wanted for m in tags.get("models", []))
    except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError):
        # Unreachable server or a non-Ollama reply on that port
        return False


async def _ollama_chat(
    messages: list[dict[str, str]],
    max_tokens: int,
    temperature: float | None,
    json_mode: bool,
) -> str:
    options: dict[str, Any] = {"num_predict": max_tokens}
    if temperature is not None:
        options["temperature"] = temperature
    payload: dict[str, Any] = {
        "model": settings.ollama_model,
        "messages": messages,
        "stream": False,
        "options": options,
    }
    if json_mode:
        payload["format"] = "json"

    async with httpx.AsyncClient() as client:
        res = await client.post(
            f"{settings.ollama_url}/api/chat",
            json=payload,
            timeout=settings.llm_timeout,
        )
        res.raise_for_status()
        return res.json()["message"]["content"] or ""


async def chat(
    messages: list[dict[str, str]],
    *,
    model: str,
    system: str | None = None,
    max_tokens: int = 1024,
    temperature: float | None = None,
    json_mode: bool = False,
) -> str:
    """
    Send a chat request and return the reply text, stripped.

    Tries the hosted API first; falls back to Ollama.
    Raises LLMUnavailableError if neither path is available or the reply
    is malformed; transport and decode errors never escape.
    """
    full = ([{"role": "system", "content": system}] if system else []) + list(messages)

    # --- Attempt 1: hosted API ---
    if settings.llm_api_key:
        try:
            text = await _hosted_chat(full, model, max_tokens, temperature, json_mode)
            return text.strip()
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("Hosted LLM call failed (%s), trying Ollama fallback", e)

    # --- Attempt 2: local Ollama ---
    if not await _ollama_ready():
        raise LLMUnavailableError(
            "No LLM available: hosted API failed or unconfigured and no Ollama model found."
        )
    try:
        text = await _ollama_chat(full, max_tokens, temperature, json_mode)
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
        raise LLMUnavailableError(f"Ollama inference failed: {e}") from e
    return text.strip()


def parse_json_reply(text: str) -> dict:
    """
    Parse a model reply that should be a single JSON object.

    Tolerates markdown code fences and prose around the object.
    """
    cleaned = _FENCE_RE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise LLMResponseError(f"Reply is not JSON: {text[:200]!r}") from None
        try:
            data = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Reply is not JSON: {text[:200]!r}") from e
    if not isinstance(data, dict):
        raise LLMResponseError("Reply JSON is not an object")
    return data


async def chat_json(
    system_prompt: str | None,
    user_prompt: str,
    *,
    model: str,
    max_tokens: int = 1024,
    temperature: float | None = 0,
) -> dict:
    """Chat expecting a JSON object back. Raises LLMResponseError on bad JSON."""
    text = await chat(
        [{"role": "user", "content": user_prompt}],
        model=model,
        system=system_prompt,
        max_tokens=max_tokens,
        temperature=temperature,
        json_mode=True,
    )
    return parse_json_reply(text)
