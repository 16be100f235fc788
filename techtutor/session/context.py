"""
SessionContext - Per-learner display state shared by the session components.

Holds the active display language and the cache of translated texts, and
gives the components a shortcut to localized UI strings.
"""

import logging
from typing import Any, Optional

from techtutor.config import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from techtutor.i18n import translate_ui


logger = logging.getLogger(__name__)


class SessionContext:
    """Display language and translation cache for one learner session."""

    def __init__(self, language: str = DEFAULT_LANGUAGE, default_language: str = DEFAULT_LANGUAGE):
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        self.default_language = default_language
        self._language = language
        self._translations: dict[tuple[str, str], str] = {}

    @property
    def language(self) -> str:
        return self._language

    @property
    def is_default_language(self) -> bool:
        return self._language == self.default_language

    def set_language(self, language: str) -> bool:
        """
        Switch the display language.

        Args:
            language: Language code from SUPPORTED_LANGUAGES

        Returns:
            True if the language actually changed
        """
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        if language == self._language:
            return False
        logger.info(f"Display language changed: {self._language} -> {language}")
        self._language = language
        return True

    # -------------------------------------------------------------------------
    # Translation cache
    # -------------------------------------------------------------------------

    def cached_translation(self, text: str, language: str) -> Optional[str]:
        return self._translations.get((language, text))

    def remember_translation(self, text: str, language: str, translated: str):
        self._translations[(language, text)] = translated

    def clear_translations(self):
        self._translations.clear()

    def t(self, key: str, **replacements: Any) -> str:
        """Localized UI string in the active language."""
        return translate_ui(key, self._language, **replacements)
