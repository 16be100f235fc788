"""
QuizEngine - Multiple-choice quiz for the loaded chapter.

Provides:
- Quiz generation from raw chapter content
- Answer checking with a single reveal per question
- Atomic translation of the whole question set
- Score summary for the results screen
"""

import asyncio
import logging
from typing import Optional

from techtutor.errors import EmptyContentError, QuizStateError
from techtutor.schemas import QuizQuestion, QuizSessionState, QuizStatus, TranslationState
from techtutor.services import GeminiService

from .context import SessionContext
from .translation import Translator


logger = logging.getLogger(__name__)


def calculate_quiz_score(total: int, correct_count: int) -> dict:
    """
    Calculate quiz score.

    Args:
        total: Number of questions
        correct_count: Number answered correctly

    Returns:
        Dict with score info
    """
    if total == 0:
        return {"score": 0.0, "percent": 0, "correct": 0, "total": 0}

    score = correct_count / total
    return {
        "score": round(score, 2),
        "percent": round(score * 100),
        "correct": correct_count,
        "total": total,
    }


class QuizEngine:
    """
    Runs one quiz at a time.

    Answers are always checked against the original questions; translated
    questions are for display only and keep the original option order.
    """

    def __init__(self, service: GeminiService, context: SessionContext, translator: Optional[Translator] = None):
        self.service = service
        self.context = context
        self.translator = translator or Translator(service, context)

        self.status = QuizStatus.IDLE
        self.title: Optional[str] = None
        self.questions: list[QuizQuestion] = []
        self.translated_questions: Optional[list[QuizQuestion]] = None
        self.translation_state = TranslationState.IDLE
        self.session = QuizSessionState()

        self._load_token = 0
        self._translation_token = 0

    @property
    def display_questions(self) -> list[QuizQuestion]:
        if self.context.is_default_language or self.translated_questions is None:
            return self.questions
        return self.translated_questions

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        """Question at the current index, in the display language."""
        if self.status != QuizStatus.IN_PROGRESS:
            return None
        return self.display_questions[self.session.current_index]

    @property
    def is_active(self) -> bool:
        return self.status != QuizStatus.IDLE

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load_quiz(self, chapter_title: str, raw_content: str) -> QuizStatus:
        """
        Generate a quiz for a chapter.

        Args:
            chapter_title: Title of the loaded chapter
            raw_content: Untranslated chapter text

        Returns:
            Resulting status (EMPTY when no usable quiz came back)
        """
        if not raw_content or not raw_content.strip():
            raise EmptyContentError(f"Chapter '{chapter_title}' has no content")

        self._load_token += 1
        token = self._load_token
        self._translation_token += 1

        self.title = chapter_title
        self.status = QuizStatus.LOADING
        self.questions = []
        self.translated_questions = None
        self.translation_state = TranslationState.IDLE
        self.session = QuizSessionState()

        questions = await self.service.generate_quiz(chapter_title, raw_content)
        if token != self._load_token:
            logger.info(f"Discarding superseded quiz for '{chapter_title}'")
            return self.status

        self.questions = list(questions)
        if not self.questions:
            logger.info(f"No usable quiz for '{chapter_title}'")
            self.status = QuizStatus.EMPTY
            return self.status

        self.status = QuizStatus.IN_PROGRESS
        logger.info(f"Quiz ready for '{chapter_title}': {len(self.questions)} questions")
        if not self.context.is_default_language:
            await self.refresh_translation()
        return self.status

    # -------------------------------------------------------------------------
    # Translation
    # -------------------------------------------------------------------------

    async def refresh_translation(self) -> bool:
        """
        Translate every question into the active language.

        The translated set is committed all at once and only if no newer
        quiz or translation started meanwhile.

        Returns:
            True if the translated set was updated by this call
        """
        self._translation_token += 1
        token = self._translation_token
        questions = self.questions
        if not questions:
            self.translated_questions = None
            self.translation_state = TranslationState.IDLE
            return False

        language = self.context.language
        if language == self.context.default_language:
            self.translated_questions = None
            self.translation_state = TranslationState.IDLE
            return True

        self.translation_state = TranslationState.TRANSLATING
        translated = await asyncio.gather(
            *(self._translate_question(q, language) for q in questions)
        )

        if token != self._translation_token or self.questions is not questions:
            logger.info("Discarding superseded quiz translation")
            return False

        self.translated_questions = list(translated)
        self.translation_state = TranslationState.TRANSLATED
        return True

    async def _translate_question(self, question: QuizQuestion, language: str) -> QuizQuestion:
        text, explanation, *options = await asyncio.gather(
            self.translator.translate(question.question, language),
            self.translator.translate(question.explanation, language),
            *(self.translator.translate(option, language) for option in question.options),
        )
        return question.model_copy(update={
            "question": text,
            "explanation": explanation,
            "options": list(options),
        })

    # -------------------------------------------------------------------------
    # Answering
    # -------------------------------------------------------------------------

    def select_answer(self, option_index: int) -> bool:
        """
        Submit an answer for the current question.

        Returns:
            False if this question was already answered (no change)
        """
        if self.status != QuizStatus.IN_PROGRESS:
            raise QuizStateError(f"Cannot answer while quiz is {self.status.value}")
        if self.session.revealed:
            return False

        question = self.questions[self.session.current_index]
        if not 0 <= option_index < len(question.options):
            raise ValueError(f"Option index {option_index} out of range")

        self.session.selected_answer = option_index
        self.session.is_correct = option_index == question.correct_answer_index
        if self.session.is_correct:
            self.session.score += 1
        self.session.revealed = True
        return True

    def advance(self) -> bool:
        """
        Move past an answered question; finishes after the last one.

        Returns:
            False if the current question has not been answered yet
        """
        if self.status != QuizStatus.IN_PROGRESS or not self.session.revealed:
            return False

        self.session.current_index += 1
        self.session.selected_answer = None
        self.session.is_correct = None
        self.session.revealed = False
        if self.session.current_index >= len(self.questions):
            self.status = QuizStatus.FINISHED
            logger.info(f"Quiz finished: {self.session.score}/{len(self.questions)}")
        return True

    def score_summary(self) -> dict:
        return calculate_quiz_score(len(self.questions), self.session.score)

    def exit(self):
        """Drop the quiz and invalidate any in-flight generation or translation."""
        self._load_token += 1
        self._translation_token += 1
        self.status = QuizStatus.IDLE
        self.title = None
        self.questions = []
        self.translated_questions = None
        self.translation_state = TranslationState.IDLE
        self.session = QuizSessionState()
