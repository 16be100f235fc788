"""
Assistant flows outside the chapter pipeline.

Provides:
- TutorChat: free-form conversation with the tutor, replying in the display language
- ResearchAssistant: web-grounded answers with their sources

Both keep backend failures inside their own state, so a failed reply or
search never affects the open chapter or quiz.
"""

import logging
from typing import Optional

from techtutor.errors import GenerationError
from techtutor.schemas import ChatMessage, ResearchResult
from techtutor.services import GeminiService

from .context import SessionContext


logger = logging.getLogger(__name__)


class TutorChat:
    """Conversation history and the thinking-mode switch."""

    def __init__(self, service: GeminiService, context: SessionContext):
        self.service = service
        self.context = context
        self.messages: list[ChatMessage] = []
        self.thinking = False
        self.pending = False
        self._token = 0

    async def send(self, text: str) -> Optional[ChatMessage]:
        """
        Send a message and append the tutor's reply.

        A failed call appends a model message carrying the error text, as the
        conversation would show it.

        Returns:
            The reply appended, or None if the chat was cleared meanwhile

        Raises:
            ValueError: If text is blank
        """
        text = text.strip()
        if not text:
            raise ValueError("Message must not be empty")

        self._token += 1
        token = self._token
        history = list(self.messages)
        self.messages.append(ChatMessage(role="user", text=text))
        self.pending = True

        try:
            reply_text = await self.service.send_message(
                history, text, self.context.language, thinking=self.thinking
            )
        except GenerationError as e:
            logger.warning(f"Tutor chat failed: {e}")
            reply_text = str(e) or self.context.t("chat_error")

        if token != self._token:
            return None
        self.pending = False
        reply = ChatMessage(role="model", text=reply_text)
        self.messages.append(reply)
        return reply

    def clear(self):
        self._token += 1
        self.messages = []
        self.pending = False


class ResearchAssistant:
    """Latest grounded search, its sources and any error."""

    def __init__(self, service: GeminiService, context: SessionContext):
        self.service = service
        self.context = context
        self.query: Optional[str] = None
        self.result: Optional[ResearchResult] = None
        self.error: Optional[str] = None
        self.searching = False
        self._token = 0

    async def search(self, query: str) -> Optional[ResearchResult]:
        """
        Run a grounded search; a newer search supersedes an older one.

        Returns:
            The committed result, or None on failure or supersession
        """
        query = query.strip()
        if not query:
            raise ValueError("Research query must not be empty")

        self._token += 1
        token = self._token
        self.query = query
        self.result = None
        self.error = None
        self.searching = True

        try:
            result = await self.service.grounded_search(query)
        except GenerationError as e:
            if token != self._token:
                return None
            logger.warning(f"Research search failed for '{query}': {e}")
            self.searching = False
            self.error = str(e) or self.context.t("research_error_generic")
            return None

        if token != self._token:
            logger.info(f"Discarding superseded research result for '{query}'")
            return None
        self.searching = False
        self.result = result
        return result

    def clear(self):
        self._token += 1
        self.query = None
        self.result = None
        self.error = None
        self.searching = False
