"""
Course structure schemas for TechTutor.

Defines Pydantic models for the three-level course hierarchy:
- Topic -> Subtopic -> Chapter
- ChapterPath addressing a single chapter
"""

from pydantic import BaseModel, ConfigDict, Field


class Chapter(BaseModel):
    title: str = Field(..., min_length=1)


class Subtopic(BaseModel):
    title: str = Field(..., min_length=1)
    chapters: list[Chapter] = Field(..., min_length=1)


class Topic(BaseModel):
    """A course topic; every topic has at least one subtopic with one chapter."""
    title: str = Field(..., min_length=1)
    subtopics: list[Subtopic] = Field(..., min_length=1)


class ChapterPath(BaseModel):
    """
    Position of a chapter in the course tree.

    Immutable and hashable; two paths are equal when their indices are.
    """
    model_config = ConfigDict(frozen=True)

    topic_index: int = Field(..., ge=0)
    subtopic_index: int = Field(..., ge=0)
    chapter_index: int = Field(..., ge=0)

    @property
    def key(self) -> str:
        """Stable ledger key, e.g. "0-1-2"."""
        return f"{self.topic_index}-{self.subtopic_index}-{self.chapter_index}"

    @classmethod
    def from_key(cls, key: str) -> "ChapterPath":
        parts = key.split("-")
        if len(parts) != 3:
            raise ValueError(f"Invalid chapter key: {key!r}")
        topic, subtopic, chapter = (int(p) for p in parts)
        return cls(topic_index=topic, subtopic_index=subtopic, chapter_index=chapter)

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.topic_index, self.subtopic_index, self.chapter_index)

    def __str__(self) -> str:
        return self.key


class SearchResult(BaseModel):
    path: ChapterPath
    topic_title: str
    subtopic_title: str
    chapter_title: str
