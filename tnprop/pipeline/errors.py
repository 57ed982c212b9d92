"""Error taxonomy for the extraction pipeline.

Segment-local failures (format, transport, exhausted retries) are absorbed
by the batch scheduler.  Only ``PipelineFatalError`` is meant to reach the
HTTP layer as a user-visible failure.
"""


class PipelineError(Exception):
    """Base class for every pipeline error."""


class ChunkingError(PipelineError):
    """Segments do not reconstruct the source text."""


class ExtractionError(PipelineError):
    """A single segment extraction failed."""


class ExtractionFormatError(ExtractionError):
    """Model response is not parseable JSON or not a JSON array."""


class ExtractionTransportError(ExtractionError):
    """Network, quota or auth failure from the model endpoint."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SegmentExhaustedError(PipelineError):
    """Every retry for one segment failed."""

    def __init__(self, segment_index: int, attempts: int, last_error: Exception):
        super().__init__(
            f"Segment {segment_index + 1} failed after {attempts} attempt(s): {last_error}"
        )
        self.segment_index = segment_index
        self.attempts = attempts
        self.last_error = last_error


class PipelineFatalError(PipelineError):
    """No partial result can be recovered (e.g. every segment failed)."""


class ExtractorNotConfiguredError(PipelineFatalError):
    """The selected segment extractor cannot run (missing key, unknown backend)."""


class UnreadableDocumentError(PipelineError):
    """The uploaded file could not be opened as a PDF."""
