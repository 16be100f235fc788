"""
ContentPipeline - Loading, translating and visualizing the open chapter.

Provides:
- Chapter content loading with supersession of stale requests
- Display-language translation (stale-while-revalidate, fail-open)
- On-demand concept visualization with failures kept local
- Completion handoff when the learner leaves a loaded chapter

Every flow takes a token when it starts and only commits its result if the
token is still current when the result arrives. Starting a newer flow of the
same kind, or leaving the chapter, invalidates older tokens.
"""

import logging
from typing import Optional

from techtutor.errors import ChapterNotReadyError, GenerationError
from techtutor.schemas import (
    ChapterContent,
    ChapterPath,
    ContentState,
    TranslationState,
    VisualConcept,
    VisualState,
)
from techtutor.services import GeminiService

from .context import SessionContext
from .translation import Translator


logger = logging.getLogger(__name__)


class ContentPipeline:
    """State machine for the chapter currently on screen."""

    def __init__(self, service: GeminiService, context: SessionContext, translator: Optional[Translator] = None):
        """
        Initialize the pipeline.

        Args:
            service: Generation collaborator
            context: Session display state
            translator: Translator to use (built from service and context if omitted)
        """
        self.service = service
        self.context = context
        self.translator = translator or Translator(service, context)

        self.state = ContentState.IDLE
        self.path: Optional[ChapterPath] = None
        self.title: Optional[str] = None
        self.content: Optional[ChapterContent] = None
        self.error: Optional[str] = None
        self.translation_state = TranslationState.IDLE
        self.visual_state = VisualState.IDLE
        self.visual: Optional[VisualConcept] = None
        self.visual_error: Optional[str] = None

        self._load_token = 0
        self._translation_token = 0
        self._visual_token = 0
        self._loaded_path: Optional[ChapterPath] = None

    @property
    def raw_content(self) -> Optional[str]:
        return self.content.raw_content if self.content else None

    @property
    def display_content(self) -> Optional[str]:
        """Text to show: the latest translation, else the raw text."""
        if self.content is None:
            return None
        if self.context.is_default_language:
            return self.content.raw_content
        return self.content.display_content or self.content.raw_content

    @property
    def is_ready(self) -> bool:
        return self.state == ContentState.READY

    @property
    def loaded_path(self) -> Optional[ChapterPath]:
        """Path whose content finished loading while it was open."""
        return self._loaded_path

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load_chapter(self, path: ChapterPath, title: str) -> bool:
        """
        Load content for a chapter, superseding any earlier load.

        Args:
            path: Chapter position
            title: Chapter title sent to the generator

        Returns:
            True if this request's result was committed
        """
        self._load_token += 1
        token = self._load_token
        self._translation_token += 1
        self._visual_token += 1

        if path != self._loaded_path:
            self._loaded_path = None
        self.path = path
        self.title = title
        self.state = ContentState.LOADING
        self.content = None
        self.error = None
        self.translation_state = TranslationState.IDLE
        self._clear_visual()

        logger.info(f"Loading chapter {path}: {title}")
        try:
            text = await self.service.generate_chapter_content(title)
        except GenerationError as e:
            if token != self._load_token:
                logger.info(f"Discarding superseded failure for chapter {path}")
                return False
            self.state = ContentState.FAILED
            self.error = str(e) or self.context.t("chapter_generation_error")
            logger.warning(f"Chapter {path} failed to load: {e}")
            return True

        if token != self._load_token:
            logger.info(f"Discarding superseded content for chapter {path}")
            return False

        self.content = ChapterContent(
            path=path,
            title=title,
            raw_content=text,
            display_content=text if self.context.is_default_language else None,
        )
        self.state = ContentState.READY
        self._loaded_path = path

        if not self.context.is_default_language:
            await self.refresh_translation()
        return True

    async def retry(self) -> bool:
        """Re-issue the load for the current chapter."""
        if self.path is None or self.title is None:
            raise ChapterNotReadyError("No chapter is open")
        return await self.load_chapter(self.path, self.title)

    def leave(self) -> Optional[ChapterPath]:
        """
        Stop showing the current chapter and invalidate its in-flight work.

        Returns:
            The chapter path if its content had loaded, else None
        """
        finished = self._loaded_path
        self.reset()
        return finished

    def reset(self):
        self._load_token += 1
        self._translation_token += 1
        self._visual_token += 1
        self.state = ContentState.IDLE
        self.path = None
        self.title = None
        self.content = None
        self.error = None
        self.translation_state = TranslationState.IDLE
        self._loaded_path = None
        self._clear_visual()

    # -------------------------------------------------------------------------
    # Translation
    # -------------------------------------------------------------------------

    async def refresh_translation(self) -> bool:
        """
        Bring display text in line with the active language.

        The previous display text stays visible until the new translation
        arrives; a failed translation leaves the raw text.

        Returns:
            True if display text was updated by this call
        """
        self._translation_token += 1
        token = self._translation_token
        content = self.content
        if content is None or self.state != ContentState.READY:
            self.translation_state = TranslationState.IDLE
            return False

        language = self.context.language
        if language == self.context.default_language:
            content.display_content = content.raw_content
            self.translation_state = TranslationState.IDLE
            return True

        self.translation_state = TranslationState.TRANSLATING
        translated = await self.translator.translate(content.raw_content, language)

        if token != self._translation_token or self.content is not content:
            logger.info(f"Discarding superseded translation for chapter {content.path}")
            return False

        content.display_content = translated
        self.translation_state = TranslationState.TRANSLATED
        return True

    # -------------------------------------------------------------------------
    # Visualization
    # -------------------------------------------------------------------------

    async def visualize(self) -> Optional[VisualConcept]:
        """
        Generate a concept image for the loaded chapter.

        Failure sets visual_error and never touches the chapter content.

        Returns:
            The image, or None on failure or supersession
        """
        if self.state != ContentState.READY or self.content is None:
            raise ChapterNotReadyError("Chapter content is not loaded")

        self._visual_token += 1
        token = self._visual_token
        content = self.content
        self.visual_state = VisualState.GENERATING
        self.visual = None
        self.visual_error = None

        try:
            visual = await self.service.generate_visual_concept(content.title, content.raw_content)
        except GenerationError as e:
            if token != self._visual_token:
                return None
            logger.warning(f"Visualization failed for chapter {content.path}: {e}")
            self.visual_state = VisualState.FAILED
            self.visual_error = self.context.t("visualizer_error_message")
            return None

        if token != self._visual_token:
            return None
        self.visual = visual
        self.visual_state = VisualState.READY
        return visual

    def dismiss_visual(self):
        self._visual_token += 1
        self._clear_visual()

    def _clear_visual(self):
        self.visual_state = VisualState.IDLE
        self.visual = None
        self.visual_error = None
