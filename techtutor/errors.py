"""
Custom exception classes for TechTutor.

Every failure the course core can surface inherits from TechTutorError so
the presentation layer can turn it into a message with a single handler.
"""

from typing import Optional


class TechTutorError(Exception):
    """Base exception for all TechTutor errors."""
    pass


class OutOfRangeError(TechTutorError, IndexError):
    """Raised when a chapter path points outside the course tree."""

    def __init__(self, message: str, path=None):
        self.path = path
        super().__init__(message)


class GenerationError(TechTutorError):
    """
    Raised when the content-generation collaborator fails.

    Covers transport errors, non-success responses and payloads that do not
    match the expected schema. The message is safe to show to the learner.
    """

    def __init__(self, message: str, action: Optional[str] = None, status_code: Optional[int] = None):
        self.action = action
        self.status_code = status_code
        super().__init__(message)


class EmptyContentError(TechTutorError):
    """Raised when a quiz is requested for a chapter with no content."""
    pass


class ChapterNotReadyError(TechTutorError):
    """Raised when a chapter action needs loaded content that is not there yet."""
    pass


class QuizStateError(TechTutorError):
    """Raised when a quiz action is not valid for the current quiz status."""
    pass


class ConfigurationError(TechTutorError):
    """Raised when configuration is invalid or missing."""
    pass


USER_FRIENDLY_MESSAGES = {
    OutOfRangeError: "That chapter does not exist in this course.",
    GenerationError: "{error}",
    EmptyContentError: "This chapter has no content to build a quiz from yet.",
    ChapterNotReadyError: "Please wait until the chapter has finished loading.",
    QuizStateError: "That quiz action is not available right now.",
    ConfigurationError: (
        "TechTutor is not configured correctly.\n\n"
        "Technical details: {error}"
    ),
}


def get_user_friendly_message(error: Exception) -> str:
    """
    Get a user-friendly error message for an exception.

    Args:
        error: Exception instance

    Returns:
        str: Message suitable for display
    """
    template = USER_FRIENDLY_MESSAGES.get(type(error))
    if not template:
        return f"An error occurred: {error}"
    return template.format(error=str(error))
