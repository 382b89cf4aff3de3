"""Pipeline error taxonomy.

Every failure that can end a request is a ``PipelineError`` carrying a
machine-readable ``code``, a human-readable ``message`` and the HTTP status
the router answers with.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code: int = 500

    def __init__(self, code: str, message: str, status_code: int | None = None) -> None:
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class InputValidationError(PipelineError):
    """A required document or text field is missing or blank."""

    status_code = 400


class ExtractionError(PipelineError):
    """An encoded document could not be converted to text."""

    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(code="EXTRACTION_ERROR", message=message)


class UpstreamQuotaError(PipelineError):
    """The generation service signalled rate limiting or a billing problem."""

    status_code = 429


class UpstreamTimeoutError(PipelineError):
    """A generation call exceeded its timeout."""

    status_code = 504

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(
            code="UPSTREAM_TIMEOUT",
            message=(
                "Processing timed out. Please try again with shorter input."
            ),
        )


class StructuredParseError(PipelineError):
    """A generation response did not contain the expected structure."""

    status_code = 502


class GenerationError(PipelineError):
    """Any other generation-service failure."""

    status_code = 502
