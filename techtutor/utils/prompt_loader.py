"""
Prompt templates for the generation actions.

Each action has a YAML file in techtutor/prompts/ with a meta block, a
system prompt and a user template whose {placeholders} are filled from the
action payload.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


class PromptTemplate(BaseModel):
    name: str
    meta: dict[str, Any] = Field(default_factory=dict)
    system: str = ""
    user_template: str

    def render(self, **kwargs) -> str:
        """Fill the user template and prepend the system prompt, if any."""
        user_prompt = self.user_template.format(**kwargs)
        system_prompt = self.system.strip()
        if not system_prompt:
            return user_prompt
        return f"{system_prompt}\n\n---\n\n{user_prompt}"


@lru_cache(maxsize=None)
def _read_template(file_path: Path) -> PromptTemplate:
    with open(file_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return PromptTemplate(name=file_path.stem, **data)


def load_prompt(name: str, prompts_dir: Optional[Path] = None) -> PromptTemplate:
    """
    Load a prompt template by name.

    Args:
        name: Template name without .yaml extension (e.g., "quiz")
        prompts_dir: Optional custom prompts directory

    Raises:
        FileNotFoundError: If the template doesn't exist
        pydantic.ValidationError: If the template has no user_template
    """
    file_path = (prompts_dir or PROMPTS_DIR) / f"{name}.yaml"
    if not file_path.exists():
        raise FileNotFoundError(f"Prompt template not found: {file_path}")
    return _read_template(file_path)


def build_prompt(name: str, prompts_dir: Optional[Path] = None, **kwargs) -> tuple[str, dict[str, Any]]:
    """
    Render a template into one prompt string.

    Returns:
        Tuple of (full prompt text, template meta)
    """
    template = load_prompt(name, prompts_dir)
    return template.render(**kwargs), template.meta


def get_available_prompts(prompts_dir: Optional[Path] = None) -> list[str]:
    """Names of all templates in the prompts directory, sorted."""
    dir_path = prompts_dir or PROMPTS_DIR
    if not dir_path.exists():
        return []
    return sorted(p.stem for p in dir_path.glob("*.yaml"))
