"""
Tests for GeminiService and the generation channels.
"""

import base64
import json
from types import SimpleNamespace

import httpx
import pytest

from techtutor.config import Settings
from techtutor.errors import ConfigurationError, GenerationError
from techtutor.services import GeminiChannel, HttpChannel, create_service

from conftest import SAMPLE_QUIZ, SAMPLE_STRUCTURE, failure


class TestGeminiService:
    """Test response validation and per-action failure handling."""

    @pytest.mark.asyncio
    async def test_chapter_content(self, service, channel):
        assert await service.generate_chapter_content("Caches") == "Content for Caches"
        assert channel.calls_for("generateChapterContent") == [{"title": "Caches"}]

    @pytest.mark.asyncio
    async def test_chapter_content_malformed(self, service, channel):
        channel.respond("generateChapterContent", {"body": "wrong key"})
        with pytest.raises(GenerationError):
            await service.generate_chapter_content("Caches")

    @pytest.mark.asyncio
    async def test_chapter_content_error_propagates(self, service, channel):
        channel.respond("generateChapterContent", failure("Rate limited"))
        with pytest.raises(GenerationError, match="Rate limited"):
            await service.generate_chapter_content("Caches")

    @pytest.mark.asyncio
    async def test_quiz_parsed(self, service):
        questions = await service.generate_quiz("CPU", "text")
        assert [q.correct_answer_index for q in questions] == [1, 1, 2]

    @pytest.mark.asyncio
    async def test_quiz_failure_returns_empty(self, service, channel):
        channel.respond("generateQuiz", failure())
        assert await service.generate_quiz("CPU", "text") == []

    @pytest.mark.asyncio
    async def test_quiz_bad_answer_index_returns_empty(self, service, channel):
        channel.respond("generateQuiz", [dict(SAMPLE_QUIZ[0], correctAnswerIndex=7)])
        assert await service.generate_quiz("CPU", "text") == []

    @pytest.mark.asyncio
    async def test_topic_structure(self, service):
        subtopics = await service.generate_topic_structure("Networking")
        assert [s.title for s in subtopics] == [s["title"] for s in SAMPLE_STRUCTURE]

    @pytest.mark.asyncio
    async def test_topic_structure_needs_chapters(self, service, channel):
        channel.respond("generateTopicStructure", [{"title": "Empty", "chapters": []}])
        with pytest.raises(GenerationError):
            await service.generate_topic_structure("Networking")

    @pytest.mark.asyncio
    async def test_translate_default_language_skips_call(self, service, channel):
        assert await service.translate_content("Hello", "en") == "Hello"
        assert await service.translate_content("", "bn") == ""
        assert channel.calls_for("translateContent") == []

    @pytest.mark.asyncio
    async def test_translate_fails_open(self, service, channel):
        channel.respond("translateContent", failure())
        assert await service.translate_content("Hello", "bn") == "Hello"

    @pytest.mark.asyncio
    async def test_translate_strict_raises(self, service, channel):
        channel.respond("translateContent", failure())
        with pytest.raises(GenerationError):
            await service.translate_content("Hello", "bn", fail_open=False)

    @pytest.mark.asyncio
    async def test_visual_concept(self, service):
        visual = await service.generate_visual_concept("CPU", "text")
        assert visual.image_bytes.startswith(b"\x89PNG")


def _http_channel(handler) -> HttpChannel:
    return HttpChannel("https://tutor.example/api/gemini", transport=httpx.MockTransport(handler))


class TestHttpChannel:
    """Test the remote endpoint channel and its error mapping."""

    @pytest.mark.asyncio
    async def test_posts_action_and_payload(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"text": "ok"})

        channel = _http_channel(handler)
        result = await channel.call("generateChapterContent", {"title": "Caches"})

        assert result == {"text": "ok"}
        assert seen == {"action": "generateChapterContent", "payload": {"title": "Caches"}}

    @pytest.mark.asyncio
    async def test_each_call_uses_its_own_client(self):
        count = 0

        def handler(request):
            nonlocal count
            count += 1
            return httpx.Response(200, json={"text": str(count)})

        channel = _http_channel(handler)
        assert await channel.call("generateChapterContent", {"title": "A"}) == {"text": "1"}
        assert await channel.call("generateChapterContent", {"title": "B"}) == {"text": "2"}
        assert not hasattr(channel, "_client")

    @pytest.mark.asyncio
    async def test_structured_error(self):
        channel = _http_channel(lambda request: httpx.Response(500, json={"error": "Quota exceeded"}))
        with pytest.raises(GenerationError) as excinfo:
            await channel.call("generateQuiz", {})
        assert str(excinfo.value) == "Quota exceeded"
        assert excinfo.value.status_code == 500
        assert excinfo.value.action == "generateQuiz"

    @pytest.mark.asyncio
    async def test_short_raw_error(self):
        channel = _http_channel(lambda request: httpx.Response(502, text="Bad upstream"))
        with pytest.raises(GenerationError, match="Bad upstream"):
            await channel.call("generateQuiz", {})

    @pytest.mark.asyncio
    async def test_long_raw_error_uses_status_text(self):
        channel = _http_channel(lambda request: httpx.Response(503, text="x" * 500))
        with pytest.raises(GenerationError) as excinfo:
            await channel.call("generateQuiz", {})
        assert str(excinfo.value) == "Server error: Service Unavailable"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        channel = _http_channel(handler)
        with pytest.raises(GenerationError, match="Could not reach"):
            await channel.call("generateQuiz", {})

    @pytest.mark.asyncio
    async def test_unreadable_success_body(self):
        channel = _http_channel(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(GenerationError):
            await channel.call("generateQuiz", {})


class _FakeModels:
    def __init__(self, response):
        self.response = response
        self.requests = []

    async def generate_content(self, model, contents, config):
        self.requests.append({"model": model, "contents": contents, "config": config})
        return self.response


def _fake_client(response):
    models = _FakeModels(response)
    return SimpleNamespace(aio=SimpleNamespace(models=models)), models


class TestGeminiChannel:
    """Test the direct Gemini channel against a fake client."""

    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            GeminiChannel(api_key=None)

    @pytest.mark.asyncio
    async def test_unknown_action(self):
        client, _ = _fake_client(SimpleNamespace(text="unused"))
        channel = GeminiChannel(client=client)
        with pytest.raises(GenerationError) as excinfo:
            await channel.call("summarize", {})
        assert excinfo.value.status_code == 400

    @pytest.mark.asyncio
    async def test_chapter_content_uses_title(self):
        client, models = _fake_client(SimpleNamespace(text="# Caches\nFast memory."))
        channel = GeminiChannel(client=client, text_model="text-model")
        result = await channel.call("generateChapterContent", {"title": "Caches"})
        assert result == {"text": "# Caches\nFast memory."}
        assert models.requests[0]["model"] == "text-model"
        assert "Caches" in models.requests[0]["contents"]

    @pytest.mark.asyncio
    async def test_quiz_json_parsed(self):
        client, _ = _fake_client(SimpleNamespace(text=json.dumps(SAMPLE_QUIZ)))
        channel = GeminiChannel(client=client)
        result = await channel.call("generateQuiz", {"chapterTitle": "CPU", "chapterContent": "text"})
        assert result == SAMPLE_QUIZ

    @pytest.mark.asyncio
    async def test_invalid_json_is_generation_error(self):
        client, _ = _fake_client(SimpleNamespace(text="not json"))
        channel = GeminiChannel(client=client)
        with pytest.raises(GenerationError):
            await channel.call("generateQuiz", {"chapterTitle": "CPU", "chapterContent": "text"})

    @pytest.mark.asyncio
    async def test_empty_text_is_generation_error(self):
        client, _ = _fake_client(SimpleNamespace(text=None))
        channel = GeminiChannel(client=client)
        with pytest.raises(GenerationError):
            await channel.call("generateChapterContent", {"title": "Caches"})

    @pytest.mark.asyncio
    async def test_translate_names_language(self):
        client, models = _fake_client(SimpleNamespace(text="অনুবাদ"))
        channel = GeminiChannel(client=client)
        result = await channel.call("translateContent", {"text": "Hello", "language": "bn"})
        assert result == {"text": "অনুবাদ"}
        assert "Bengali" in models.requests[0]["contents"]

    @pytest.mark.asyncio
    async def test_visual_concept_image_extracted(self):
        part = SimpleNamespace(inline_data=SimpleNamespace(data=b"png-bytes", mime_type="image/png"))
        response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])
        client, models = _fake_client(response)
        channel = GeminiChannel(client=client, image_model="image-model")

        result = await channel.call("generateVisualConcept", {"chapterTitle": "CPU", "chapterContent": "text"})
        assert base64.b64decode(result["imageData"]) == b"png-bytes"
        assert result["mimeType"] == "image/png"
        assert models.requests[0]["model"] == "image-model"

    @pytest.mark.asyncio
    async def test_visual_concept_without_image(self):
        part = SimpleNamespace(inline_data=None)
        response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])
        client, _ = _fake_client(response)
        channel = GeminiChannel(client=client)
        with pytest.raises(GenerationError, match="Image data was not found"):
            await channel.call("generateVisualConcept", {"chapterTitle": "CPU", "chapterContent": "text"})

    @pytest.mark.asyncio
    async def test_send_message_builds_conversation(self):
        client, models = _fake_client(SimpleNamespace(text="DHCP hands out addresses."))
        channel = GeminiChannel(client=client, text_model="text-model")
        result = await channel.call("sendMessage", {
            "history": [{"role": "user", "parts": [{"text": "What is DNS?"}]},
                        {"role": "model", "parts": [{"text": "A naming system."}]}],
            "message": "And DHCP?",
            "isThinkingMode": False,
            "language": "en",
        })

        assert result == {"text": "DHCP hands out addresses."}
        request = models.requests[0]
        assert request["model"] == "text-model"
        assert [c.role for c in request["contents"]] == ["user", "model", "user"]
        assert request["contents"][-1].parts[0].text == "And DHCP?"
        assert "technology" in request["config"].system_instruction
        assert "Bengali" not in request["config"].system_instruction
        assert request["config"].thinking_config is None

    @pytest.mark.asyncio
    async def test_send_message_thinking_and_language(self):
        client, models = _fake_client(SimpleNamespace(text="উত্তর"))
        channel = GeminiChannel(client=client, thinking_model="thinking-model")
        await channel.call("sendMessage", {
            "history": [], "message": "Hi", "isThinkingMode": True, "language": "bn",
        })

        request = models.requests[0]
        assert request["model"] == "thinking-model"
        assert request["config"].thinking_config.thinking_budget == 32768
        assert "Bengali" in request["config"].system_instruction

    @pytest.mark.asyncio
    async def test_grounded_search_collects_web_citations(self):
        chunks = [
            SimpleNamespace(web=SimpleNamespace(uri="https://webassembly.org/news", title="WebAssembly News")),
            SimpleNamespace(web=None),
            SimpleNamespace(web=SimpleNamespace(uri="", title="No link")),
        ]
        response = SimpleNamespace(
            text="WebAssembly now supports garbage collection.",
            candidates=[SimpleNamespace(grounding_metadata=SimpleNamespace(grounding_chunks=chunks))],
        )
        client, models = _fake_client(response)
        channel = GeminiChannel(client=client)

        result = await channel.call("groundedSearch", {"query": "Wasm news"})
        assert result == {
            "text": "WebAssembly now supports garbage collection.",
            "citations": [{"web": {"uri": "https://webassembly.org/news", "title": "WebAssembly News"}}],
        }
        assert models.requests[0]["contents"] == "Wasm news"
        assert models.requests[0]["config"].tools[0].google_search is not None

    @pytest.mark.asyncio
    async def test_grounded_search_without_metadata(self):
        response = SimpleNamespace(text="Plain answer", candidates=None)
        client, _ = _fake_client(response)
        channel = GeminiChannel(client=client)
        result = await channel.call("groundedSearch", {"query": "2 + 2"})
        assert result == {"text": "Plain answer", "citations": []}


class TestCreateService:
    """Test channel selection from settings."""

    def test_endpoint_selects_http_channel(self):
        service = create_service(Settings(api_endpoint="https://tutor.example/api"))
        assert isinstance(service.channel, HttpChannel)

    def test_endpoint_selects_http_channel_with_timeout(self):
        service = create_service(Settings(api_endpoint="https://tutor.example/api", request_timeout=5))
        assert service.channel.timeout == 5

    def test_api_key_selects_gemini_channel(self):
        service = create_service(Settings(api_key="test-key"))
        assert isinstance(service.channel, GeminiChannel)
        assert service.channel.thinking_model == Settings().thinking_model

    def test_missing_key_and_endpoint(self):
        with pytest.raises(ConfigurationError):
            create_service(Settings())
