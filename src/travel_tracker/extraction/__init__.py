"""LLM-based extraction of trip candidates from travel emails."""

from .extractor import ExtractionResult, TripExtractor, build_candidate
from .prompt import PROMPT_VERSION, SYSTEM_PROMPT, build_trip_extraction_prompt

__all__ = [
    "ExtractionResult",
    "PROMPT_VERSION",
    "SYSTEM_PROMPT",
    "TripExtractor",
    "build_candidate",
    "build_trip_extraction_prompt",
]
