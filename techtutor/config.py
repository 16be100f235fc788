"""
Runtime configuration for TechTutor.

Values come from the environment (a local .env file is loaded first), with
module-level defaults for everything except the Gemini API key.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .errors import ConfigurationError

load_dotenv()


DEFAULT_DATA_DIR = Path.home() / ".techtutor"
DEFAULT_DB_PATH = DEFAULT_DATA_DIR / "techtutor.db"
DEFAULT_TEXT_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_THINKING_MODEL = "gemini-2.5-pro"
THINKING_BUDGET = 32768
DEFAULT_LANGUAGE = "en"
DEFAULT_REQUEST_TIMEOUT = 60.0

# Display languages; the first one is the generation language
SUPPORTED_LANGUAGES = {
    "en": "English",
    "bn": "Bengali",
}

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    """Resolved application settings."""
    api_key: Optional[str] = None
    api_endpoint: Optional[str] = None
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    thinking_model: str = DEFAULT_THINKING_MODEL
    db_path: Path = DEFAULT_DB_PATH
    language: str = DEFAULT_LANGUAGE
    log_level: str = "INFO"
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        language = os.environ.get("TECHTUTOR_LANGUAGE", DEFAULT_LANGUAGE)
        if language not in SUPPORTED_LANGUAGES:
            raise ConfigurationError(f"Unsupported language: {language}")

        try:
            timeout = float(os.environ.get("TECHTUTOR_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT))
        except ValueError as e:
            raise ConfigurationError(f"TECHTUTOR_REQUEST_TIMEOUT must be a number: {e}") from e
        if timeout <= 0:
            raise ConfigurationError("TECHTUTOR_REQUEST_TIMEOUT must be positive")

        return cls(
            api_key=os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY"),
            api_endpoint=os.environ.get("TECHTUTOR_API_ENDPOINT") or None,
            text_model=os.environ.get("TECHTUTOR_TEXT_MODEL", DEFAULT_TEXT_MODEL),
            image_model=os.environ.get("TECHTUTOR_IMAGE_MODEL", DEFAULT_IMAGE_MODEL),
            thinking_model=os.environ.get("TECHTUTOR_THINKING_MODEL", DEFAULT_THINKING_MODEL),
            db_path=Path(os.environ.get("TECHTUTOR_DB_PATH", str(DEFAULT_DB_PATH))).expanduser(),
            language=language,
            log_level=os.environ.get("TECHTUTOR_LOG_LEVEL", "INFO").upper(),
            request_timeout=timeout,
        )


def configure_logging(level: str = "INFO"):
    """Set up root logging for the application entry point."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
