"""Exception hierarchy for the compliance validation engine.

Callers must be able to tell "validation ran and scored 0%" apart from
"validation could not run", so every failure mode that prevents a result
has its own type.
"""

from typing import Optional


class ComplianceValidationError(Exception):
    """Base class for all engine errors."""

    code = "compliance_validation_error"
    retryable = False

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class InputValidationError(ComplianceValidationError, ValueError):
    """The request is missing form data or form type. No run was attempted."""

    code = "invalid_input"


class StandardsNotReadyError(ComplianceValidationError):
    """The standards catalog has not been loaded yet."""

    code = "standards_not_ready"
    retryable = True


class ValidationUnavailableError(ComplianceValidationError):
    """Validation could not be performed, not even by the local engine."""

    code = "validation_unavailable"


class ExternalServiceError(ComplianceValidationError):
    """The external validation API failed, timed out or returned garbage."""

    code = "external_service_error"
    retryable = True
