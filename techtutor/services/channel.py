"""
Generation channels - the single request/response path to the AI backend.

Every request is an action name plus a JSON-compatible payload. Two
implementations are provided:
- GeminiChannel: calls Google Gemini directly through google-genai
- HttpChannel: POSTs {"action", "payload"} to a remote generation endpoint

Both raise GenerationError for any failure, so callers never see SDK or
transport exceptions.
"""

import base64
import json
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from techtutor.config import (
    DEFAULT_IMAGE_MODEL,
    DEFAULT_LANGUAGE,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TEXT_MODEL,
    DEFAULT_THINKING_MODEL,
    SUPPORTED_LANGUAGES,
    THINKING_BUDGET,
)
from techtutor.errors import ConfigurationError, GenerationError
from techtutor.utils.prompt_loader import build_prompt, load_prompt


logger = logging.getLogger(__name__)

MAX_RAW_ERROR_LENGTH = 300
QUIZ_QUESTION_COUNT = 3


class GenerationChannel(Protocol):
    async def call(self, action: str, payload: dict[str, Any]) -> Any:
        ...


# -----------------------------------------------------------------------------
# Gemini (direct)
# -----------------------------------------------------------------------------

RELAXED_SAFETY_SETTINGS = [
    genai_types.SafetySetting(category=category, threshold=genai_types.HarmBlockThreshold.BLOCK_NONE)
    for category in (
        genai_types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
        genai_types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        genai_types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        genai_types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    )
]

QUIZ_RESPONSE_SCHEMA = genai_types.Schema(
    type=genai_types.Type.ARRAY,
    items=genai_types.Schema(
        type=genai_types.Type.OBJECT,
        properties={
            "question": genai_types.Schema(type=genai_types.Type.STRING),
            "options": genai_types.Schema(
                type=genai_types.Type.ARRAY,
                items=genai_types.Schema(type=genai_types.Type.STRING),
            ),
            "correctAnswerIndex": genai_types.Schema(type=genai_types.Type.INTEGER),
            "explanation": genai_types.Schema(type=genai_types.Type.STRING),
        },
        required=["question", "options", "correctAnswerIndex", "explanation"],
    ),
)

TOPIC_STRUCTURE_SCHEMA = genai_types.Schema(
    type=genai_types.Type.ARRAY,
    items=genai_types.Schema(
        type=genai_types.Type.OBJECT,
        properties={
            "title": genai_types.Schema(type=genai_types.Type.STRING),
            "chapters": genai_types.Schema(
                type=genai_types.Type.ARRAY,
                items=genai_types.Schema(
                    type=genai_types.Type.OBJECT,
                    properties={"title": genai_types.Schema(type=genai_types.Type.STRING)},
                    required=["title"],
                ),
            ),
        },
        required=["title", "chapters"],
    ),
)


class GeminiChannel:
    """Serve generation actions by calling the Gemini API directly."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        text_model: str = DEFAULT_TEXT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        thinking_model: str = DEFAULT_THINKING_MODEL,
        client: Optional[genai.Client] = None,
    ):
        if client is None:
            if not api_key:
                raise ConfigurationError("GEMINI_API_KEY not set. Check your .env file.")
            client = genai.Client(api_key=api_key)

        self.client = client
        self.text_model = text_model
        self.image_model = image_model
        self.thinking_model = thinking_model
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[Any]]] = {
            "generateChapterContent": self._generate_chapter_content,
            "generateQuiz": self._generate_quiz,
            "generateTopicStructure": self._generate_topic_structure,
            "translateContent": self._translate_content,
            "generateVisualConcept": self._generate_visual_concept,
            "sendMessage": self._send_message,
            "groundedSearch": self._grounded_search,
        }

    async def call(self, action: str, payload: dict[str, Any]) -> Any:
        handler = self._handlers.get(action)
        if handler is None:
            raise GenerationError("Invalid action", action=action, status_code=400)

        try:
            return await handler(payload)
        except GenerationError:
            raise
        except genai_errors.APIError as e:
            logger.error(f"Gemini API call failed for {action}: {e}")
            raise GenerationError(e.message or str(e), action=action, status_code=e.code) from e
        except httpx.HTTPError as e:
            logger.error(f"Transport error for {action}: {e}")
            raise GenerationError(f"Could not reach the AI service: {e}", action=action) from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed request or response for {action}: {e}")
            raise GenerationError(f"The AI service returned an unusable response: {e}", action=action) from e

    async def _generate_text(self, prompt: str, config: genai_types.GenerateContentConfig) -> str:
        response = await self.client.aio.models.generate_content(
            model=self.text_model,
            contents=prompt,
            config=config,
        )
        if response.text is None:
            raise ValueError("Empty response from API")
        return response.text

    async def _generate_chapter_content(self, payload: dict[str, Any]) -> dict[str, Any]:
        prompt, _ = build_prompt("chapter_content", title=payload["title"])
        text = await self._generate_text(
            prompt,
            genai_types.GenerateContentConfig(safety_settings=RELAXED_SAFETY_SETTINGS),
        )
        return {"text": text}

    async def _generate_quiz(self, payload: dict[str, Any]) -> Any:
        prompt, _ = build_prompt(
            "quiz",
            chapter_title=payload["chapterTitle"],
            chapter_content=payload["chapterContent"],
            question_count=QUIZ_QUESTION_COUNT,
        )
        text = await self._generate_text(
            prompt,
            genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=QUIZ_RESPONSE_SCHEMA,
                safety_settings=RELAXED_SAFETY_SETTINGS,
            ),
        )
        return json.loads(text)

    async def _generate_topic_structure(self, payload: dict[str, Any]) -> Any:
        prompt, _ = build_prompt("topic_structure", topic_title=payload["topicTitle"])
        text = await self._generate_text(
            prompt,
            genai_types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=TOPIC_STRUCTURE_SCHEMA,
                safety_settings=RELAXED_SAFETY_SETTINGS,
            ),
        )
        return json.loads(text)

    async def _translate_content(self, payload: dict[str, Any]) -> dict[str, Any]:
        language = payload["language"]
        prompt, _ = build_prompt(
            "translate",
            language_name=SUPPORTED_LANGUAGES.get(language, language),
            text=payload["text"],
        )
        text = await self._generate_text(prompt, genai_types.GenerateContentConfig())
        return {"text": text}

    async def _generate_visual_concept(self, payload: dict[str, Any]) -> dict[str, Any]:
        prompt, _ = build_prompt(
            "visual_concept",
            chapter_title=payload["chapterTitle"],
            chapter_content=payload["chapterContent"],
        )
        response = await self.client.aio.models.generate_content(
            model=self.image_model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                response_modalities=["IMAGE"],
                safety_settings=RELAXED_SAFETY_SETTINGS,
            ),
        )

        for candidate in response.candidates or []:
            parts = candidate.content.parts if candidate.content else None
            for part in parts or []:
                if part.inline_data and part.inline_data.data:
                    return {
                        "imageData": base64.b64encode(part.inline_data.data).decode("ascii"),
                        "mimeType": part.inline_data.mime_type or "image/png",
                    }
        raise GenerationError("Image data was not found in the response.", action="generateVisualConcept")

    async def _send_message(self, payload: dict[str, Any]) -> dict[str, Any]:
        template = load_prompt("chat")
        system_instruction = template.system.strip()
        language = payload.get("language", DEFAULT_LANGUAGE)
        if language != DEFAULT_LANGUAGE:
            note = template.meta["language_note"].format(
                language_name=SUPPORTED_LANGUAGES.get(language, language)
            )
            system_instruction = f"{system_instruction} {note}"

        contents = [
            genai_types.Content(
                role=turn["role"],
                parts=[genai_types.Part(text=part["text"]) for part in turn["parts"]],
            )
            for turn in payload.get("history", [])
        ]
        contents.append(genai_types.Content(
            role="user",
            parts=[genai_types.Part(text=template.user_template.format(message=payload["message"]))],
        ))

        thinking = bool(payload.get("isThinkingMode"))
        config = genai_types.GenerateContentConfig(
            system_instruction=system_instruction,
            thinking_config=genai_types.ThinkingConfig(thinking_budget=THINKING_BUDGET) if thinking else None,
        )

        response = await self.client.aio.models.generate_content(
            model=self.thinking_model if thinking else self.text_model,
            contents=contents,
            config=config,
        )
        if response.text is None:
            raise ValueError("Empty response from API")
        return {"text": response.text}

    async def _grounded_search(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self.client.aio.models.generate_content(
            model=self.text_model,
            contents=payload["query"],
            config=genai_types.GenerateContentConfig(
                tools=[genai_types.Tool(google_search=genai_types.GoogleSearch())],
            ),
        )
        if response.text is None:
            raise ValueError("Empty response from API")

        citations = []
        candidates = response.candidates or []
        metadata = candidates[0].grounding_metadata if candidates else None
        for chunk in (metadata.grounding_chunks if metadata else None) or []:
            if chunk.web and chunk.web.uri:
                citations.append({"web": {"uri": chunk.web.uri, "title": chunk.web.title}})
        return {"text": response.text, "citations": citations}


# -----------------------------------------------------------------------------
# HTTP (remote generation endpoint)
# -----------------------------------------------------------------------------

class HttpChannel:
    """
    Send actions to a remote generation function over HTTP.

    The endpoint receives {"action": ..., "payload": ...} and answers with the
    action's JSON result, or a non-2xx status with {"error": message}.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    async def call(self, action: str, payload: dict[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    json={"action": action, "payload": payload},
                )
        except httpx.HTTPError as e:
            logger.error(f"API call failed for action {action}: {e}")
            raise GenerationError(f"Could not reach the AI service: {e}", action=action) from e

        if not response.is_success:
            message = self._error_message(response)
            logger.error(f"API call failed for action {action}: {response.status_code} {message}")
            raise GenerationError(message, action=action, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise GenerationError(
                "The AI service returned an unreadable response.", action=action,
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Prefer the backend's structured error, then short raw text."""
        error_text = response.text
        try:
            error_payload = json.loads(error_text)
        except ValueError:
            error_payload = None

        if isinstance(error_payload, dict) and error_payload.get("error"):
            return str(error_payload["error"])
        if 0 < len(error_text) < MAX_RAW_ERROR_LENGTH:
            return error_text
        return f"Server error: {response.reason_phrase}"
