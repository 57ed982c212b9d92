"""Segment extractor interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseSegmentExtractor(ABC):
    """Turns one segment of document text into transaction records.

    Implementations must only return records that carry both
    ``surveyNumber`` and ``documentNumber``, and must raise an
    ``ExtractionError`` subclass on failure so the retry controller can
    tell extraction failures from programmer errors.
    """

    name: str = "base"

    @abstractmethod
    async def extract(self, segment_text: str, task_label: str = "") -> list[dict]:
        """Extract records from ``segment_text``."""

    def is_configured(self) -> bool:
        """Capability check run once when the pipeline is built."""
        return True
