"""TechTutor utilities."""

from .prompt_loader import PromptTemplate, load_prompt, build_prompt, get_available_prompts

__all__ = ["PromptTemplate", "load_prompt", "build_prompt", "get_available_prompts"]
