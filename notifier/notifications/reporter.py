"""Translate dispatch results into HTTP-style responses."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .models import DispatchResult, ErrorKind

STATUS_BY_ERROR_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFIGURATION: 500,
    ErrorKind.TRANSPORT: 500,
    ErrorKind.RENDER: 500,
    ErrorKind.DELIVERY: 502,
}

METHOD_NOT_ALLOWED_MESSAGE = "Method not allowed. Use POST."


@dataclass(frozen=True)
class HandlerResponse:
    """Status code plus JSON-serializable body."""

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


def build_response(
    result: DispatchResult, success_message: Optional[str] = None
) -> HandlerResponse:
    """Build the caller-facing response for a dispatch result.

    Failure bodies carry only the public error message and its kind;
    diagnostics stay in the logs.

    Args:
        result: Outcome of the dispatch
        success_message: Kind-specific confirmation text

    Returns:
        HandlerResponse with status 200 on success or the error kind's status
    """
    if not result.is_success():
        error_kind = ErrorKind(result.error_kind)
        return HandlerResponse(
            status_code=STATUS_BY_ERROR_KIND[error_kind],
            body={
                "success": False,
                "error": result.error_message,
                "errorKind": error_kind.value,
            },
        )

    entry: Dict[str, Any] = {
        "type": result.kind,
        "recipient": result.recipient,
        "messageId": result.message_id,
        "acceptedRecipients": list(result.accepted_recipients),
        "rejectedRecipients": list(result.rejected_recipients),
    }
    # Kind-specific metadata never replaces the standard keys
    for key, value in result.metadata.items():
        entry.setdefault(key, value)

    return HandlerResponse(
        status_code=200,
        body={
            "success": True,
            "message": success_message or "Notification sent successfully",
            "results": [entry],
        },
    )


def method_not_allowed() -> HandlerResponse:
    """405 response for non-POST requests."""
    return HandlerResponse(
        status_code=405,
        body={"success": False, "error": METHOD_NOT_ALLOWED_MESSAGE},
    )


def bad_request(message: str) -> HandlerResponse:
    """400 response for bodies that cannot be turned into a request."""
    return HandlerResponse(
        status_code=400,
        body={
            "success": False,
            "error": message,
            "errorKind": ErrorKind.VALIDATION.value,
        },
    )
