"""
TechTutor Schemas - Pydantic models for the course viewer.

This module exports all schema classes for:
- Course: topic/subtopic/chapter hierarchy and chapter paths
- Content: chapter content and pipeline states
- Quiz: quiz questions and answering state
- Progress: learner progress tracking
- Assistant: tutor chat messages and grounded research results
"""

# Course schemas
from .course import (
    Chapter,
    Subtopic,
    Topic,
    ChapterPath,
    SearchResult,
)

# Content schemas
from .content import (
    ContentState,
    TranslationState,
    VisualState,
    ChapterContent,
    VisualConcept,
)

# Quiz schemas
from .quiz import (
    OPTIONS_PER_QUESTION,
    QuizQuestion,
    QuizStatus,
    QuizSessionState,
)

# Progress schemas
from .progress import (
    ChapterStatus,
    ChapterProgress,
    ProgressSummary,
)

# Assistant schemas
from .assistant import (
    ChatMessage,
    WebSource,
    GroundingChunk,
    ResearchResult,
)

__all__ = [
    # Course
    'Chapter',
    'Subtopic',
    'Topic',
    'ChapterPath',
    'SearchResult',
    # Content
    'ContentState',
    'TranslationState',
    'VisualState',
    'ChapterContent',
    'VisualConcept',
    # Quiz
    'OPTIONS_PER_QUESTION',
    'QuizQuestion',
    'QuizStatus',
    'QuizSessionState',
    # Progress
    'ChapterStatus',
    'ChapterProgress',
    'ProgressSummary',
    # Assistant
    'ChatMessage',
    'WebSource',
    'GroundingChunk',
    'ResearchResult',
]
