"""Completion backends used for trip extraction."""

from travel_tracker.config import Settings
from travel_tracker.llm.ollama_client import OllamaClient
from travel_tracker.llm.openai_client import OpenAIClient
from travel_tracker.protocols import CompletionClient


def build_completion_client(settings: Settings) -> CompletionClient:
    """Create the completion client selected by ``settings.llm_provider``."""

    if settings.llm_provider == "openai":
        return OpenAIClient(settings)
    return OllamaClient(settings)


__all__ = ["OllamaClient", "OpenAIClient", "build_completion_client"]
