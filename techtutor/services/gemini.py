"""
GeminiService - Typed access to the generation actions.

Wraps a GenerationChannel and validates every response with Pydantic before
it reaches the course core. Failure handling per action:
- generate_chapter_content: raises GenerationError
- generate_quiz: returns [] (no usable quiz)
- generate_topic_structure: raises GenerationError
- translate_content: returns the original text (fail-open)
- generate_visual_concept: raises GenerationError
- send_message: raises GenerationError
- grounded_search: raises GenerationError
"""

import logging
from typing import Annotated, Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from techtutor.config import DEFAULT_LANGUAGE
from techtutor.errors import GenerationError
from techtutor.schemas import (
    ChatMessage,
    QuizQuestion,
    ResearchResult,
    Subtopic,
    VisualConcept,
)

from .channel import GenerationChannel


logger = logging.getLogger(__name__)


class TextResponse(BaseModel):
    text: str


_TEXT_ADAPTER = TypeAdapter(TextResponse)
_QUIZ_ADAPTER = TypeAdapter(list[QuizQuestion])
_STRUCTURE_ADAPTER = TypeAdapter(Annotated[list[Subtopic], Field(min_length=1)])
_VISUAL_ADAPTER = TypeAdapter(VisualConcept)
_RESEARCH_ADAPTER = TypeAdapter(ResearchResult)


class GeminiService:
    """Generation collaborator used by the content pipeline and quiz engine."""

    def __init__(self, channel: GenerationChannel, default_language: str = DEFAULT_LANGUAGE):
        self.channel = channel
        self.default_language = default_language

    async def _call(self, action: str, payload: dict[str, Any], adapter: TypeAdapter) -> Any:
        """Send one action and validate the response."""
        raw = await self.channel.call(action, payload)
        try:
            return adapter.validate_python(raw)
        except ValidationError as e:
            logger.error(f"Malformed response for {action}: {e}")
            raise GenerationError(
                "The AI service returned data in an unexpected format.", action=action
            ) from e

    async def generate_chapter_content(self, title: str) -> str:
        result = await self._call("generateChapterContent", {"title": title}, _TEXT_ADAPTER)
        if not result.text.strip():
            raise GenerationError("The AI service returned an empty lesson.", action="generateChapterContent")
        return result.text

    async def generate_quiz(self, chapter_title: str, chapter_content: str) -> list[QuizQuestion]:
        try:
            return await self._call(
                "generateQuiz",
                {"chapterTitle": chapter_title, "chapterContent": chapter_content},
                _QUIZ_ADAPTER,
            )
        except GenerationError as e:
            logger.warning(f"Quiz generation failed for '{chapter_title}': {e}")
            return []

    async def generate_topic_structure(self, topic_title: str) -> list[Subtopic]:
        return await self._call("generateTopicStructure", {"topicTitle": topic_title}, _STRUCTURE_ADAPTER)

    async def translate_content(self, text: str, language: str, fail_open: bool = True) -> str:
        """
        Translate text into language.

        Args:
            text: Source text in the generation language
            language: Target language code
            fail_open: Return the source text on failure instead of raising

        Returns:
            Translated text, or text unchanged for the default language,
            empty input, or a fail-open failure
        """
        if language == self.default_language or not text:
            return text
        try:
            result = await self._call(
                "translateContent", {"text": text, "language": language}, _TEXT_ADAPTER
            )
        except GenerationError as e:
            if not fail_open:
                raise
            logger.warning(f"Translation to {language} failed, showing original text: {e}")
            return text
        return result.text

    async def generate_visual_concept(self, chapter_title: str, chapter_content: str) -> VisualConcept:
        return await self._call(
            "generateVisualConcept",
            {"chapterTitle": chapter_title, "chapterContent": chapter_content},
            _VISUAL_ADAPTER,
        )

    async def send_message(
        self,
        history: list[ChatMessage],
        message: str,
        language: str,
        thinking: bool = False,
    ) -> str:
        """
        Ask the tutor one question in the context of earlier turns.

        Args:
            history: Earlier messages, oldest first, without this message
            message: The learner's new message
            language: Reply language code
            thinking: Use the slower reasoning model

        Returns:
            The tutor's reply text
        """
        result = await self._call(
            "sendMessage",
            {
                "history": [m.to_content() for m in history],
                "message": message,
                "isThinkingMode": thinking,
                "language": language,
            },
            _TEXT_ADAPTER,
        )
        if not result.text.strip():
            raise GenerationError("The AI service returned an empty reply.", action="sendMessage")
        return result.text

    async def grounded_search(self, query: str) -> ResearchResult:
        """Answer a research query with web search grounding and its sources."""
        return await self._call("groundedSearch", {"query": query}, _RESEARCH_ADAPTER)
