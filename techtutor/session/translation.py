"""
Translator - Cached, fail-open translation of generated text.

Failures are logged and the source text is returned, so a broken
translation never blocks a lesson or a quiz. Only successful translations
are cached.
"""

import logging
from typing import Optional

from techtutor.errors import GenerationError
from techtutor.services import GeminiService

from .context import SessionContext


logger = logging.getLogger(__name__)


class Translator:
    def __init__(self, service: GeminiService, context: SessionContext):
        self.service = service
        self.context = context

    async def translate(self, text: str, language: Optional[str] = None) -> str:
        """
        Translate text from the generation language.

        Args:
            text: Source text
            language: Target language (defaults to the active language)

        Returns:
            Translated text, or text unchanged on failure
        """
        language = language or self.context.language
        if language == self.context.default_language or not text:
            return text

        cached = self.context.cached_translation(text, language)
        if cached is not None:
            return cached

        try:
            translated = await self.service.translate_content(text, language, fail_open=False)
        except GenerationError as e:
            logger.warning(f"Translation to {language} failed, keeping original text: {e}")
            return text

        self.context.remember_translation(text, language, translated)
        return translated
