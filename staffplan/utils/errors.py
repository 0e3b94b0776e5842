from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional


class StaffPlanError(Exception):
    """Base class for every error raised by the staffing planner."""


class ConfigurationError(StaffPlanError):
    """Raised at startup when required configuration is missing."""


class ValidationError(StaffPlanError, ValueError):
    """A required request field is missing or invalid (user-correctable)."""


class PlanNotFoundError(StaffPlanError):
    def __init__(self, plan_id: str):
        super().__init__(f"Staffing plan not found: {plan_id}")
        self.plan_id = plan_id


class ExtractionFailure(StaffPlanError):
    """Document text extraction broke."""


class UnsupportedFileType(ExtractionFailure):
    def __init__(self, mime_type: Optional[str]):
        super().__init__(f"Unsupported file type: {mime_type or 'unknown'}")
        self.mime_type = mime_type


class ExtractionFailed(ExtractionFailure):
    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class EmptyFileError(ExtractionFailed):
    def __init__(self):
        super().__init__("Empty file buffer received")


class JsonRecoveryExhausted(StaffPlanError):
    """The model never produced parseable JSON within the repair budget."""

    def __init__(self, raw_text: str, parse_error: str, attempts: int):
        super().__init__(
            f"Failed to parse JSON after {attempts} repair attempt(s): {parse_error}"
        )
        self.raw_text = raw_text
        self.parse_error = parse_error
        self.attempts = attempts


class StructuralValidationError(StaffPlanError):
    """Parsed JSON does not have the shape a stage or a plan update requires."""

    def __init__(self, message: str, payload: Any, failures: List[str]):
        super().__init__(message)
        self.payload = payload
        self.failures = failures

    def __str__(self) -> str:
        base = super().__str__()
        if not self.failures:
            return base
        return f"{base}: " + "; ".join(self.failures[:5])


class TransportErrorKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    CONTEXT_LENGTH = "context_length"
    CONNECTION = "connection"
    API_ERROR = "api_error"


class TransportError(StaffPlanError):
    """A model call failed below the application layer."""

    def __init__(self, kind: TransportErrorKind, message: str, op: str = ""):
        super().__init__(message)
        self.kind = kind
        self.op = op
