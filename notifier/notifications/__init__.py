"""Transactional notification dispatch.

This package provides the complete dispatch pipeline:
- DispatchExecutor: Validates, renders and delivers one notification
- TemplateRenderer: Jinja2-based per-kind content rendering
- TransportProvider / SMTPTransport: SMTP wrapper with TLS/SSL support
- Result reporting: HTTP-style responses for dispatch results

Every notification kind runs through the same executor; what differs between
kinds lives in the kind registry (notifier/config/kinds.yaml).
"""

from .executor import DispatchExecutor
from .models import (
    DeliveryError,
    DispatchResult,
    DispatchState,
    ErrorKind,
    NotificationError,
    NotificationRequest,
    OutgoingMessage,
    RecipientOverrides,
    Recipients,
    RenderedContent,
    RenderError,
    SendReceipt,
    TransportError,
    ValidationError,
)
from .reporter import HandlerResponse, build_response, method_not_allowed
from .templates import TemplateRenderer
from .transport import SMTPTransport, Transport, TransportProvider

__all__ = [
    # Main executor
    "DispatchExecutor",
    # Requests and results
    "NotificationRequest",
    "RecipientOverrides",
    "DispatchResult",
    "DispatchState",
    "Recipients",
    "RenderedContent",
    "OutgoingMessage",
    "SendReceipt",
    # Exceptions
    "ErrorKind",
    "NotificationError",
    "ValidationError",
    "TransportError",
    "RenderError",
    "DeliveryError",
    # Components
    "TemplateRenderer",
    "Transport",
    "TransportProvider",
    "SMTPTransport",
    # Reporting
    "HandlerResponse",
    "build_response",
    "method_not_allowed",
]
