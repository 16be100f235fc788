"""
Tests for the tutor chat and research assistant.
"""

import asyncio

import pytest

from techtutor.errors import GenerationError
from techtutor.schemas import ChatMessage, ResearchResult

from conftest import SAMPLE_RESEARCH, failure, settle


class TestServiceOperations:
    """Test the chat and research calls on GeminiService."""

    @pytest.mark.asyncio
    async def test_send_message_payload(self, service, channel):
        history = [
            ChatMessage(role="user", text="What is DNS?"),
            ChatMessage(role="model", text="A naming system."),
        ]
        reply = await service.send_message(history, "And DHCP?", "bn", thinking=True)

        assert reply == "Reply to And DHCP?"
        assert channel.calls_for("sendMessage") == [{
            "history": [
                {"role": "user", "parts": [{"text": "What is DNS?"}]},
                {"role": "model", "parts": [{"text": "A naming system."}]},
            ],
            "message": "And DHCP?",
            "isThinkingMode": True,
            "language": "bn",
        }]

    @pytest.mark.asyncio
    async def test_send_message_empty_reply(self, service, channel):
        channel.respond("sendMessage", {"text": "  "})
        with pytest.raises(GenerationError):
            await service.send_message([], "Hi", "en")

    @pytest.mark.asyncio
    async def test_grounded_search_parsed(self, service, channel):
        result = await service.grounded_search("Wasm news")

        assert isinstance(result, ResearchResult)
        assert result.text == SAMPLE_RESEARCH["text"]
        assert len(result.citations) == 3
        assert [s.uri for s in result.web_sources] == [
            "https://webassembly.org/news",
            "https://example.org/wasm-gc",
        ]
        assert result.citations[0].label == "WebAssembly News"
        assert result.citations[1].label == "https://example.org/wasm-gc"
        assert result.citations[2].label is None
        assert channel.calls_for("groundedSearch") == [{"query": "Wasm news"}]

    @pytest.mark.asyncio
    async def test_grounded_search_without_citations(self, service, channel):
        channel.respond("groundedSearch", {"text": "No sources needed."})
        result = await service.grounded_search("2 + 2")
        assert result.citations == []

    @pytest.mark.asyncio
    async def test_grounded_search_malformed(self, service, channel):
        channel.respond("groundedSearch", {"citations": []})
        with pytest.raises(GenerationError):
            await service.grounded_search("Wasm news")


class TestTutorChat:
    """Test conversation state around the tutor."""

    @pytest.mark.asyncio
    async def test_conversation_builds_history(self, tutor_chat, channel):
        await tutor_chat.send("What is DNS?")
        reply = await tutor_chat.send("  And DHCP?  ")

        assert reply.text == "Reply to And DHCP?"
        assert [(m.role, m.text) for m in tutor_chat.messages] == [
            ("user", "What is DNS?"),
            ("model", "Reply to What is DNS?"),
            ("user", "And DHCP?"),
            ("model", "Reply to And DHCP?"),
        ]
        second = channel.calls_for("sendMessage")[1]
        assert [turn["role"] for turn in second["history"]] == ["user", "model"]
        assert not tutor_chat.pending

    @pytest.mark.asyncio
    async def test_replies_in_display_language(self, tutor_chat, context, channel):
        context.set_language("bn")
        tutor_chat.thinking = True
        await tutor_chat.send("Hi")

        payload = channel.calls_for("sendMessage")[0]
        assert payload["language"] == "bn"
        assert payload["isThinkingMode"] is True

    @pytest.mark.asyncio
    async def test_failure_becomes_model_message(self, tutor_chat, channel):
        channel.respond("sendMessage", failure("Quota exceeded"))
        reply = await tutor_chat.send("Hi")

        assert reply.role == "model"
        assert reply.text == "Quota exceeded"
        assert len(tutor_chat.messages) == 2

    @pytest.mark.asyncio
    async def test_failure_without_message_uses_fallback(self, tutor_chat, context, channel):
        channel.respond("sendMessage", GenerationError(""))
        reply = await tutor_chat.send("Hi")
        assert reply.text == context.t("chat_error")

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, tutor_chat, channel):
        with pytest.raises(ValueError):
            await tutor_chat.send("   ")
        assert channel.calls_for("sendMessage") == []

    @pytest.mark.asyncio
    async def test_pending_while_waiting(self, tutor_chat, channel):
        channel.defer("sendMessage")
        task = asyncio.create_task(tutor_chat.send("Hi"))
        await settle()
        assert tutor_chat.pending

        channel.release("sendMessage", {"text": "Hello!"})
        assert (await task).text == "Hello!"
        assert not tutor_chat.pending

    @pytest.mark.asyncio
    async def test_reply_dropped_after_clear(self, tutor_chat, channel):
        channel.defer("sendMessage")
        task = asyncio.create_task(tutor_chat.send("Hi"))
        await settle()

        tutor_chat.clear()
        channel.release("sendMessage", {"text": "Late reply"})

        assert await task is None
        assert tutor_chat.messages == []
        assert not tutor_chat.pending


class TestResearchAssistant:
    """Test grounded research state."""

    @pytest.mark.asyncio
    async def test_search_success(self, research):
        result = await research.search("  Wasm news ")
        assert research.query == "Wasm news"
        assert research.result is result
        assert research.error is None
        assert not research.searching

    @pytest.mark.asyncio
    async def test_search_failure(self, research, channel):
        channel.respond("groundedSearch", failure("Search unavailable"))
        assert await research.search("Wasm news") is None
        assert research.error == "Search unavailable"
        assert research.result is None
        assert not research.searching

    @pytest.mark.asyncio
    async def test_blank_query_rejected(self, research):
        with pytest.raises(ValueError):
            await research.search("")

    @pytest.mark.asyncio
    async def test_newer_search_supersedes_older(self, research, channel):
        channel.defer("groundedSearch", count=2)
        first = asyncio.create_task(research.search("first"))
        await settle()
        second = asyncio.create_task(research.search("second"))
        await settle()

        channel.release("groundedSearch", {"text": "Second answer"}, index=-1)
        channel.release("groundedSearch", {"text": "First answer"})

        assert (await second).text == "Second answer"
        assert await first is None
        assert research.query == "second"
        assert research.result.text == "Second answer"

    @pytest.mark.asyncio
    async def test_clear(self, research):
        await research.search("Wasm news")
        research.clear()
        assert research.result is None
        assert research.query is None
