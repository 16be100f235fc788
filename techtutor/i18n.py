"""
UI string localization for TechTutor.

Strings live in locales/<language>.yaml. Lookups fall back to English and
then to the key itself; {{name}} placeholders are substituted.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from techtutor.config import DEFAULT_LANGUAGE


LOCALES_DIR = Path(__file__).parent / "locales"


@lru_cache(maxsize=None)
def load_locale(language: str) -> dict[str, str]:
    """Load the string table for a language; unknown languages are empty."""
    file_path = LOCALES_DIR / f"{language}.yaml"
    if not file_path.exists():
        return {}
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def translate_ui(key: str, language: str = DEFAULT_LANGUAGE, **replacements: Any) -> str:
    """
    Get the UI string for key in language.

    Args:
        key: String identifier (e.g., "next")
        language: Language code
        **replacements: Values for {{placeholder}} tokens

    Returns:
        Localized string
    """
    text = load_locale(language).get(key) or load_locale(DEFAULT_LANGUAGE).get(key) or key
    for placeholder, value in replacements.items():
        text = text.replace(f"{{{{{placeholder}}}}}", str(value))
    return text
