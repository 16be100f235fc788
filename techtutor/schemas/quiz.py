"""
Quiz schemas for TechTutor.

Defines:
- QuizQuestion as returned by the generation backend
- QuizSessionState for a single quiz attempt
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


OPTIONS_PER_QUESTION = 4


class QuizQuestion(BaseModel):
    """
    Multiple-choice question.

    The backend sends camelCase field names; both spellings are accepted.
    """
    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION)
    correct_answer_index: int = Field(..., alias="correctAnswerIndex", ge=0)
    explanation: str

    @model_validator(mode="after")
    def answer_in_range(self):
        if self.correct_answer_index >= len(self.options):
            raise ValueError(
                f"correct_answer_index {self.correct_answer_index} outside "
                f"{len(self.options)} options"
            )
        return self


class QuizStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    EMPTY = "empty"             # generation produced no usable quiz
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


@dataclass
class QuizSessionState:
    """Answering state for one quiz attempt. Never persisted."""
    current_index: int = 0
    score: int = 0
    selected_answer: Optional[int] = None
    is_correct: Optional[bool] = None
    revealed: bool = False
