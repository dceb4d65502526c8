"""
Error taxonomy for the extraction loop.

Only ValidationError and StorageError abort an operation. ExtractionFailure is
caught by the extraction engine and degrades to an empty update set; guardrail
rejections are not errors at all, just reasons recorded per update.
"""
from typing import Optional


class LifePlanError(Exception):
    """Base class for LifePlan errors."""


class ValidationError(LifePlanError):
    """Missing or malformed caller input. Raised before any state mutation."""


class StorageError(LifePlanError):
    """Durable storage medium unavailable (permissions, disk full, corrupt record)."""


class ExtractionFailure(LifePlanError):
    """
    Extraction collaborator unreachable or returned unparseable output.

    raw_text carries whatever the model returned, for diagnostics.
    """

    def __init__(self, message: str, raw_text: Optional[str] = None):
        super().__init__(message)
        self.raw_text = raw_text


class GuardrailReason:
    """Stable, machine-readable reasons for ignoring an extraction update."""

    UNKNOWN_QUESTION = "unknown question"
    LOW_CONFIDENCE = "low confidence"
    EMPTY_ANSWER = "empty answer"
