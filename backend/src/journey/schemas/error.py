"""Structured error response schemas."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field: str | None = Field(default=None, description="Field that caused the error (for validation errors)")
    value: Any | None = Field(default=None, description="Invalid value (for validation errors)")


class ErrorResponse(BaseModel):
    """Standard error response structure.

    This provides consistent error responses across the API with:
    - Machine-readable error codes
    - Human-readable messages
    - Remediation hints
    - Request tracing information
    """

    error: str = Field(..., description="Error type (e.g., 'ValidationError', 'NotFound')")
    message: str = Field(..., description="Primary error message")
    details: list[ErrorDetail] | None = Field(
        default=None, description="Detailed error information (for validation errors)"
    )
    remediation: str | None = Field(default=None, description="Suggestion for fixing the error")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "ValidationError",
                "message": "Campos obrigatórios",
                "details": [
                    {
                        "code": "missing_required_field",
                        "message": "Preencha o assunto e a mensagem do email personalizado",
                        "field": "subject",
                    }
                ],
                "remediation": "Provide both subject and message for custom reminders",
                "request_id": "req_1234567890",
                "timestamp": "2025-11-21T10:30:00Z",
            }
        }
    )


# Error codes enum for consistency
class ErrorCode:
    """Standard error codes used across the API."""

    # Validation errors (400/422)
    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_ENUM_VALUE = "invalid_enum_value"
    INVALID_DATE_RANGE = "invalid_date_range"
    VALUE_TOO_SMALL = "value_too_small"
    VALUE_TOO_LARGE = "value_too_large"

    # Business logic errors (400/409)
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    TRAFFIC_ALLOCATION_EXCEEDED = "traffic_allocation_exceeded"
    TEMPLATE_INACTIVE = "template_inactive"
    CONFIRMATION_REQUIRED = "confirmation_required"

    # Not found errors (404)
    USER_JOURNEY_NOT_FOUND = "user_journey_not_found"
    TEMPLATE_NOT_FOUND = "template_not_found"
    VARIANT_NOT_FOUND = "variant_not_found"

    # Data integrity (500)
    UNKNOWN_STAGE = "unknown_stage"

    # External service errors (502, 503)
    NOTIFICATION_ERROR = "notification_error"
    DATABASE_ERROR = "database_error"

    # Internal errors (500)
    INTERNAL_ERROR = "internal_error"


# Remediation hints for common errors
REMEDIATION_HINTS = {
    ErrorCode.MISSING_REQUIRED_FIELD: "Provide both subject and message for custom reminders",
    ErrorCode.INVALID_DATE_RANGE: "start_date must be on or before end_date",
    ErrorCode.TRAFFIC_ALLOCATION_EXCEEDED: "Lower traffic_percentage or deactivate another variant of the template",
    ErrorCode.UNKNOWN_STAGE: "A stored journey stage is not part of the stage vocabulary; fix the record upstream",
    ErrorCode.NOTIFICATION_ERROR: "The email relay rejected or did not answer the send. Retry manually.",
    ErrorCode.DATABASE_ERROR: "Database temporarily unavailable. Please try again in a few moments.",
}
