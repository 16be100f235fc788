"""
Progress tracking schemas for TechTutor.

Defines Pydantic models for learner progress including:
- Chapter status for navigation display
- Per-chapter ledger rows
- Aggregate completion summary
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ChapterStatus(str, Enum):
    NOT_STARTED = "not_started"
    CURRENT = "current"
    COMPLETED = "completed"


class ChapterProgress(BaseModel):
    chapter_key: str
    completed: bool = False
    completed_at: Optional[datetime] = None


class ProgressSummary(BaseModel):
    total_chapters: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)
    completion_percent: float = Field(..., ge=0, le=100)
    completed_topics: int = 0
    total_topics: int = 0
