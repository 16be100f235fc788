"""
Chapter content schemas for TechTutor.

Defines:
- Pipeline states for chapter loading, translation and visualization
- ChapterContent holding raw and display text
- VisualConcept image payload
"""

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .course import ChapterPath


class ContentState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class TranslationState(str, Enum):
    IDLE = "idle"
    TRANSLATING = "translating"
    TRANSLATED = "translated"


class VisualState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    FAILED = "failed"


@dataclass
class ChapterContent:
    """
    Loaded text for one chapter.

    raw_content is the canonical generation-language text and the only input
    for quizzes and visualizations. display_content is None until the first
    translation for a non-default language arrives.
    """
    path: ChapterPath
    title: str
    raw_content: str
    display_content: Optional[str] = None


class VisualConcept(BaseModel):
    """Generated concept image; accepts the backend's camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(..., alias="imageData", min_length=1)  # base64
    mime_type: str = Field(default="image/png", alias="mimeType")

    @field_validator("image_data")
    @classmethod
    def must_be_base64(cls, v):
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"image_data is not valid base64: {e}")
        return v

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.image_data}"

    @property
    def image_bytes(self) -> bytes:
        return base64.b64decode(self.image_data)
