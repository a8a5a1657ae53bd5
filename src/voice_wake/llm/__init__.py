from .llm import LLM, load_system_prompt

__all__ = ["LLM", "load_system_prompt"]
