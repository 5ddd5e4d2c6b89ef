"""Tests for the LLM-backed services: categorizer, question generator, grader, memory."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from recall.config import settings
from recall.db.sqlite import add_message, create_conversation, update_conversation
from recall.models.conversation import Message
from recall.models.memory import Memory
from recall.models.note import Note, NoteStatus
from recall.models.review import Review
from recall.services import (
    answer_evaluator,
    brain,
    categorizer,
    llm_service,
    memory_updater,
    question_generator,
    tutor,
)
from recall.services.llm_service import LLMResponseError, LLMUnavailableError
from recall.services.memory_updater import build_prompt, format_conversation


def _note(**overrides) -> Note:
    data = dict(
        id=1,
        content="The determinant is the volume scaling factor",
        explanation=None,
        tags=[],
        category="Linear algebra",
        status=NoteStatus.ACTIVE,
        difficulty_estimate=None,
        next_review_at="2026-01-01 00:00:00",
        current_interval=1,
        easiness_factor=2.5,
        review_count=0,
        consecutive_correct=0,
        last_reviewed_at=None,
        created_at="2026-01-01 00:00:00",
    )
    data.update(overrides)
    return Note(**data)


class TestCategorizer:
    @pytest.mark.parametrize(
        "reply,expected",
        [
            ("Biology", "Biology"),
            ("  machine learning.\n", "Machine learning"),
            ('"Finance"', "Finance"),
            ("Astrology", None),
        ],
    )
    def test_match_category(self, reply, expected):
        assert categorizer.match_category(reply) == expected

    @pytest.mark.asyncio
    async def test_known_category(self):
        with patch.object(categorizer, "chat", new=AsyncMock(return_value="Robotics")):
            assert await categorizer.categorize_note("PID loops") == "Robotics"

    @pytest.mark.asyncio
    async def test_unknown_category_falls_back(self):
        with patch.object(categorizer, "chat", new=AsyncMock(return_value="Cooking")):
            assert await categorizer.categorize_note("Bread") == "Miscellaneous"

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back(self):
        with patch.object(
            categorizer, "chat", new=AsyncMock(side_effect=LLMUnavailableError("down"))
        ):
            assert await categorizer.categorize_note("anything") == "Miscellaneous"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tags_ok", [False, True])
    async def test_non_json_server_falls_back(self, monkeypatch, tags_ok):
        monkeypatch.setattr(settings, "llm_api_key", "")
        monkeypatch.setattr(settings, "ollama_model", "llama3")

        def handler(request: httpx.Request) -> httpx.Response:
            if tags_ok and request.url.path == "/api/tags":
                return httpx.Response(200, json={"models": [{"name": "llama3:latest"}]})
            return httpx.Response(200, text="<html>not ollama</html>")

        transport = httpx.MockTransport(handler)
        real_client = httpx.AsyncClient
        with patch.object(
            llm_service.httpx,
            "AsyncClient",
            side_effect=lambda **kw: real_client(transport=transport, **kw),
        ):
            assert await categorizer.categorize_note("PID loops") == "Miscellaneous"

    def test_prompt_lists_every_category(self):
        for name in categorizer.CATEGORIES:
            assert name in categorizer.SYSTEM_PROMPT


class TestQuestionGenerator:
    def test_prompt_includes_explanation(self):
        prompt = question_generator.build_prompt(_note(explanation="det(AB) = det(A)det(B)"))
        assert "Additional context: det(AB) = det(A)det(B)" in prompt

    @pytest.mark.asyncio
    async def test_generate_question(self):
        reply = {"question": " Why does det = 0 mean singular? ", "expected_answer": "Volume collapses"}
        with patch.object(question_generator, "chat_json", new=AsyncMock(return_value=reply)):
            generated = await question_generator.generate_question(_note())

        assert generated.question == "Why does det = 0 mean singular?"
        assert generated.expected_answer == "Volume collapses"
        assert "volume scaling factor" in generated.prompt

    @pytest.mark.asyncio
    async def test_missing_question_is_an_error(self):
        with patch.object(question_generator, "chat_json", new=AsyncMock(return_value={})):
            with pytest.raises(LLMResponseError):
                await question_generator.generate_question(_note())


class TestAnswerEvaluator:
    @pytest.mark.parametrize(
        "value,expected",
        [(True, True), (False, False), ("True", True), (" false ", False), ("yes", None), (1, None)],
    )
    def test_parse_boolean(self, value, expected):
        assert answer_evaluator.parse_boolean(value) is expected

    def test_correct_verdict_is_quality_five(self):
        verdict = answer_evaluator.read_verdict({"correct": True, "message": " Good "})
        assert (verdict.correct, verdict.feedback, verdict.quality) == (True, "Good", 5)

    def test_capitalised_message_key(self):
        verdict = answer_evaluator.read_verdict({"correct": "false", "Message": "Not quite"})
        assert (verdict.correct, verdict.quality) == (False, 2)

    @pytest.mark.parametrize(
        "data",
        [{"message": "x"}, {"correct": True}, {"correct": True, "message": "  "}, {"correct": "maybe", "message": "x"}],
    )
    def test_incomplete_verdict(self, data):
        with pytest.raises(LLMResponseError):
            answer_evaluator.read_verdict(data)

    @pytest.mark.asyncio
    async def test_evaluate_answer_prompt(self):
        llm = AsyncMock(return_value={"correct": True, "message": "ok"})
        with patch.object(answer_evaluator, "chat_json", new=llm):
            await answer_evaluator.evaluate_answer(_note(), "What is det?", "volume factor")

        prompt = llm.await_args.args[1]
        assert "volume scaling factor" in prompt
        assert "What is det?" in prompt
        assert "volume factor" in prompt


class TestTutorAndBrain:
    def test_followup_system_prompt(self):
        review = Review(
            id=3, note_id=1, generated_at="2026-01-01 00:00:00", question_text="Q?",
            expected_answer=None, model_name=None, user_answer="A", answered_at=None,
            evaluation_feedback="Close", quality=5, correct=True, previous_interval=1,
            new_interval=6, previous_easiness_factor=2.5, new_easiness_factor=2.6,
        )
        system = tutor.build_followup_system(_note(), review)
        assert "- Question asked: Q?" in system
        assert "- Student's answer: A" in system
        assert "- Answer was correct" in system

    def test_no_memory_no_system_prompt(self):
        assert brain.build_system_prompt(None) is None

    def test_memory_system_prompt(self):
        memory = Memory(id=1, content="Likes jazz", last_updated_at="x", last_processed_at=None)
        assert "<user_context>\nLikes jazz\n</user_context>" in brain.build_system_prompt(memory)

    @pytest.mark.asyncio
    async def test_title_is_cleaned(self):
        with patch.object(brain, "chat", new=AsyncMock(return_value='"Jazz Chords"')):
            assert await brain.generate_title("tell me about jazz") == "Jazz Chords"

    @pytest.mark.asyncio
    async def test_empty_reply_is_an_error(self):
        history = [Message(id="m", conversation_id="c", role="user", content="hi", created_at="x")]
        with patch.object(brain, "chat", new=AsyncMock(return_value="")):
            with pytest.raises(LLMResponseError):
                await brain.reply(history, None)


class TestMemoryPrompt:
    def test_format_conversation(self):
        text = format_conversation("Jazz", "2026-02-03 10:00:00", ["q1", "q2"])
        assert text == "[2026-02-03] Jazz\nq1\n\nq2"

    def test_build_prompt_sections(self):
        prompt = build_prompt(None, ["[d] a", "[d] b"])
        assert "## Current Memory\n\nNo existing memory." in prompt
        assert "[d] a\n\n---\n\n[d] b" in prompt
        assert prompt.endswith("## Updated Memory")

    def test_build_prompt_without_conversations(self):
        assert "No conversations to process." in build_prompt("old", [])


class TestMemoryRefresh:
    @pytest.mark.asyncio
    async def test_conversation_updated_during_refresh_is_picked_up_next_run(self, db):
        first = await create_conversation(db, "Quantum homework")
        await add_message(db, first.id, "user", "Explain qubits")
        await update_conversation(db, first.id)
        late = await create_conversation(db, "Robot arm")

        async def chat_while_user_keeps_talking(messages, **kwargs):
            await add_message(db, late.id, "user", "Tune the PID gains")
            await update_conversation(db, late.id)
            return "**Work context**\nStudies quantum computing"

        llm = AsyncMock(side_effect=chat_while_user_keeps_talking)
        with patch.object(memory_updater, "chat", new=llm):
            result = await memory_updater.refresh_memory(db)
        assert result.updated
        assert result.conversations_processed == 1

        llm = AsyncMock(return_value="**Work context**\nQuantum computing and robotics")
        with patch.object(memory_updater, "chat", new=llm):
            result = await memory_updater.refresh_memory(db)

        assert result.updated
        assert result.conversations_processed == 1
        prompt = llm.await_args.args[0][0]["content"]
        assert "Tune the PID gains" in prompt
        assert "Explain qubits" not in prompt

    @pytest.mark.asyncio
    async def test_nothing_new_skips_the_llm(self, db):
        conv = await create_conversation(db, "Quantum homework")
        await add_message(db, conv.id, "user", "Explain qubits")

        with patch.object(memory_updater, "chat", new=AsyncMock(return_value="memory")):
            await memory_updater.refresh_memory(db)

        llm = AsyncMock()
        with patch.object(memory_updater, "chat", new=llm):
            result = await memory_updater.refresh_memory(db)
        assert result.updated is False
        llm.assert_not_awaited()
