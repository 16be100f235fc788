"""
TechTutor Session - Per-learner state for the open chapter.

This module provides:
- SessionContext: display language and translation cache
- Translator: cached, fail-open translation
- ContentPipeline: chapter loading, translation and visualization
- QuizEngine: quiz generation, answering and scoring
- TutorChat / ResearchAssistant: tutor conversation and grounded research
"""

from .context import SessionContext

from .translation import Translator

from .content import ContentPipeline

from .quiz import (
    QuizEngine,
    calculate_quiz_score,
)

from .assistant import (
    TutorChat,
    ResearchAssistant,
)

__all__ = [
    "SessionContext",
    "Translator",
    "ContentPipeline",
    "QuizEngine",
    "calculate_quiz_score",
    "TutorChat",
    "ResearchAssistant",
]
