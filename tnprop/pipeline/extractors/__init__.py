"""Segment extractors, selected by configuration."""

from tnprop.config import EXTRACTOR_BACKEND
from tnprop.pipeline.errors import ExtractorNotConfiguredError

from .base import BaseSegmentExtractor
from .llm import LLMSegmentExtractor

# backend name → extractor class
EXTRACTOR_BACKENDS: dict[str, type[BaseSegmentExtractor]] = {
    "llm": LLMSegmentExtractor,
}


def get_segment_extractor(backend: str | None = None) -> BaseSegmentExtractor:
    """Build the configured extractor and verify it can run.

    Raises:
        ExtractorNotConfiguredError: unknown backend, or the backend's
            capability check fails (e.g. no API key).
    """
    name = backend or EXTRACTOR_BACKEND
    cls = EXTRACTOR_BACKENDS.get(name)
    if cls is None:
        raise ExtractorNotConfiguredError(
            f"Unknown extractor backend '{name}'. Available: {', '.join(sorted(EXTRACTOR_BACKENDS))}"
        )
    extractor = cls()
    if not extractor.is_configured():
        raise ExtractorNotConfiguredError(
            f"Extractor backend '{name}' is not configured. "
            "Set LLM_API_KEY (or OPENAI_API_KEY) in the environment."
        )
    return extractor


__all__ = [
    "BaseSegmentExtractor",
    "LLMSegmentExtractor",
    "EXTRACTOR_BACKENDS",
    "get_segment_extractor",
]
