"""Tests for the LLM client: reply parsing and hosted -> Ollama fallback."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from recall.config import settings
from recall.services import llm_service
from recall.services.llm_service import (
    LLMResponseError,
    LLMUnavailableError,
    chat,
    chat_json,
    parse_json_reply,
)


class TestParseJsonReply:
    def test_plain_object(self):
        assert parse_json_reply('{"correct": true}') == {"correct": True}

    def test_code_fence(self):
        assert parse_json_reply('```json\n{"question": "Q?"}\n```') == {"question": "Q?"}

    def test_prose_around_object(self):
        text = 'Sure! Here it is:\n{"correct": false, "message": "no"}\nHope that helps.'
        assert parse_json_reply(text) == {"correct": False, "message": "no"}

    @pytest.mark.parametrize("text", ["", "not json", "[1, 2]", "{broken"])
    def test_rejects_non_objects(self, text):
        with pytest.raises(LLMResponseError):
            parse_json_reply(text)


@pytest.fixture
def hosted_key(monkeypatch):
    monkeypatch.setattr(settings, "llm_api_key", "test-key")


@pytest.mark.asyncio
async def test_chat_uses_hosted_api_with_system_prompt(hosted_key):
    hosted = AsyncMock(return_value="  hello  ")
    with patch.object(llm_service, "_hosted_chat", new=hosted):
        text = await chat([{"role": "user", "content": "hi"}], model="m", system="be brief")

    assert text == "hello"
    messages, model, max_tokens, temperature, json_mode = hosted.await_args.args
    assert messages[0] == {"role": "system", "content": "be brief"}
    assert messages[1] == {"role": "user", "content": "hi"}
    assert model == "m"
    assert json_mode is False


@pytest.mark.asyncio
async def test_chat_falls_back_to_ollama(hosted_key):
    with (
        patch.object(
            llm_service, "_hosted_chat", new=AsyncMock(side_effect=httpx.ConnectError("boom"))
        ),
        patch.object(llm_service, "_ollama_ready", new=AsyncMock(return_value=True)),
        patch.object(llm_service, "_ollama_chat", new=AsyncMock(return_value="local")) as local,
    ):
        text = await chat([{"role": "user", "content": "hi"}], model="m")

    assert text == "local"
    local.assert_awaited_once()


@pytest.mark.asyncio
async def test_chat_skips_hosted_without_key(monkeypatch):
    monkeypatch.setattr(settings, "llm_api_key", "")
    hosted = AsyncMock()
    with (
        patch.object(llm_service, "_hosted_chat", new=hosted),
        patch.object(llm_service, "_ollama_ready", new=AsyncMock(return_value=True)),
        patch.object(llm_service, "_ollama_chat", new=AsyncMock(return_value="local")),
    ):
        assert await chat([{"role": "user", "content": "hi"}], model="m") == "local"
    hosted.assert_not_awaited()


@pytest.mark.asyncio
async def test_chat_unavailable_when_nothing_configured(monkeypatch):
    monkeypatch.setattr(settings, "llm_api_key", "")
    monkeypatch.setattr(settings, "ollama_model", "")
    with pytest.raises(LLMUnavailableError):
        await chat([{"role": "user", "content": "hi"}], model="m")


@pytest.mark.asyncio
async def test_ollama_failure_is_unavailable(monkeypatch):
    monkeypatch.setattr(settings, "llm_api_key", "")
    with (
        patch.object(llm_service, "_ollama_ready", new=AsyncMock(return_value=True)),
        patch.object(
            llm_service, "_ollama_chat", new=AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        ),
    ):
        with pytest.raises(LLMUnavailableError):
            await chat([{"role": "user", "content": "hi"}], model="m")


@pytest.mark.asyncio
async def test_chat_json_requests_json_mode(hosted_key):
    hosted = AsyncMock(return_value='{"question": "Q?"}')
    with patch.object(llm_service, "_hosted_chat", new=hosted):
        result = await chat_json("sys", "user prompt", model="m")

    assert result == {"question": "Q?"}
    assert hosted.await_args.args[4] is True


@pytest.mark.asyncio
async def test_ollama_ready_matches_model_prefix(monkeypatch):
    monkeypatch.setattr(settings, "ollama_model", "qwen2.5:3b")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": [{"name": "qwen2.5:7b"}]})

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient
    with patch.object(
        llm_service.httpx, "AsyncClient", side_effect=lambda **kw: real_client(transport=transport, **kw)
    ):
        assert await llm_service._ollama_ready() is True
