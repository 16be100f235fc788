"""
Assistant schemas for TechTutor.

Defines:
- ChatMessage for the tutor conversation
- WebSource / GroundingChunk citations returned by grounded search
- ResearchResult combining the answer text with its sources
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field


ChatRole = Literal["user", "model"]


class ChatMessage(BaseModel):
    role: ChatRole
    text: str

    def to_content(self) -> dict:
        """Gemini chat-history shape: {"role", "parts": [{"text"}]}."""
        return {"role": self.role, "parts": [{"text": self.text}]}


class WebSource(BaseModel):
    uri: str = Field(..., min_length=1)
    title: Optional[str] = None


class GroundingChunk(BaseModel):
    """One citation; chunks without a web source are kept but not linkable."""
    web: Optional[WebSource] = None

    @property
    def label(self) -> Optional[str]:
        if self.web is None:
            return None
        return self.web.title or self.web.uri


class ResearchResult(BaseModel):
    text: str
    citations: list[GroundingChunk] = Field(default_factory=list)

    @property
    def web_sources(self) -> list[WebSource]:
        return [c.web for c in self.citations if c.web is not None]
