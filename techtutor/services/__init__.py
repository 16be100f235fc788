"""
TechTutor Services - Access to the generative AI backend.

This module provides:
- GeminiService: typed, validated generation operations
- GeminiChannel / HttpChannel: transports for generation actions
- create_service: build a service from Settings
"""

from techtutor.config import Settings

from .channel import (
    GenerationChannel,
    GeminiChannel,
    HttpChannel,
)

from .gemini import (
    GeminiService,
    TextResponse,
)


def create_service(settings: Settings) -> GeminiService:
    """Use the remote endpoint when one is configured, otherwise Gemini directly."""
    if settings.api_endpoint:
        channel = HttpChannel(settings.api_endpoint, timeout=settings.request_timeout)
    else:
        channel = GeminiChannel(
            api_key=settings.api_key,
            text_model=settings.text_model,
            image_model=settings.image_model,
            thinking_model=settings.thinking_model,
        )
    return GeminiService(channel)


__all__ = [
    "GenerationChannel",
    "GeminiChannel",
    "HttpChannel",
    "GeminiService",
    "TextResponse",
    "create_service",
]
