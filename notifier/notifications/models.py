"""Data models and exceptions for the notification dispatch pipeline.

This module defines the request/result types and the error taxonomy used
throughout the pipeline. Every failure leaving the Dispatch Executor is one of
the five classified error kinds.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union


class ErrorKind(str, Enum):
    """Classified failure kinds reported to callers."""

    VALIDATION = "ValidationError"
    CONFIGURATION = "ConfigurationError"
    TRANSPORT = "TransportError"
    RENDER = "RenderError"
    DELIVERY = "DeliveryError"


class DispatchState(str, Enum):
    """States of the Dispatch Executor state machine."""

    VALIDATING = "validating"
    CONFIG_RESOLVING = "config_resolving"
    TRANSPORT_OPENING = "transport_opening"
    VERIFYING = "verifying"
    RENDERING = "rendering"
    SENDING = "sending"
    CLOSED = "closed"
    SUCCEEDED = "succeeded"


class NotificationError(Exception):
    """Base exception for notification-related errors.

    ``message`` is safe to show to HTTP callers; ``detail`` carries internal
    diagnostics (relay responses, exception text) and only goes to logs.
    """

    error_kind: ErrorKind

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message if detail is None else f"{message}: {detail}")


class ValidationError(NotificationError):
    """Raised when a request is incomplete or malformed. Not retried."""

    error_kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        missing_fields: Optional[Sequence[str]] = None,
        detail: Optional[str] = None,
    ):
        self.missing_fields = list(missing_fields or [])
        super().__init__(message, detail)


class TransportError(NotificationError):
    """Raised when the relay is unreachable or rejects credentials during verify."""

    error_kind = ErrorKind.TRANSPORT


class RenderError(NotificationError):
    """Raised when template rendering fails (template/field mismatch)."""

    error_kind = ErrorKind.RENDER


class DeliveryError(NotificationError):
    """Raised when a verified relay fails to accept a specific message. Retryable."""

    error_kind = ErrorKind.DELIVERY


def _as_address_list(value: Union[None, str, Sequence[str]]) -> Tuple[str, ...]:
    """Normalize a comma-separated string or a list into a tuple of addresses.

    Raises:
        TypeError: If value is neither a string nor a list/tuple
    """
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value if item is not None]
    else:
        raise TypeError(
            f"expected an address or a list of addresses, got {type(value).__name__}"
        )
    return tuple(item.strip() for item in items if item and item.strip())


def _single_address(key: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Recipient override '{key}' must be a string")
    return value.strip() or None


@dataclass(frozen=True)
class RecipientOverrides:
    """Explicit envelope addresses that take precedence over payload-derived ones."""

    to: Optional[str] = None
    cc: Optional[Tuple[str, ...]] = None
    reply_to: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> Optional["RecipientOverrides"]:
        """Build overrides from a JSON-style mapping (``to``, ``cc``, ``replyTo``).

        Raises:
            ValueError: If ``to``/``replyTo`` is not a string, or ``cc`` is
                neither a string nor a list
        """
        if not data:
            return None
        reply_key = "replyTo" if "replyTo" in data else "reply_to"
        cc = data.get("cc")
        try:
            cc_addresses = _as_address_list(cc) if cc is not None else None
        except TypeError as e:
            raise ValueError(
                "Recipient override 'cc' must be a string or a list of strings"
            ) from e
        return cls(
            to=_single_address("to", data.get("to")),
            cc=cc_addresses,
            reply_to=_single_address(reply_key, data.get(reply_key)),
        )


@dataclass(frozen=True)
class NotificationRequest:
    """A request to dispatch one notification. Immutable, one per call."""

    kind: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    recipient_overrides: Optional[RecipientOverrides] = None

    def __post_init__(self):
        kind = self.kind.value if isinstance(self.kind, Enum) else self.kind
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload or {})))


@dataclass(frozen=True)
class Recipients:
    """Resolved envelope addresses for one message."""

    to: str
    cc: Tuple[str, ...] = ()
    reply_to: Optional[str] = None

    @property
    def all(self) -> List[str]:
        """Every address the relay is asked to deliver to (to first)."""
        return [self.to, *self.cc]


@dataclass(frozen=True)
class RenderedContent:
    """Subject plus the text and HTML representations of one notification."""

    subject: str
    text: str
    html: str


@dataclass(frozen=True)
class OutgoingMessage:
    """A fully formed message ready for a Transport."""

    sender_name: str
    sender_address: str
    recipients: Recipients
    content: RenderedContent


@dataclass(frozen=True)
class SendReceipt:
    """Relay confirmation of a send attempt."""

    message_id: str
    accepted: List[str]
    rejected: List[str]


@dataclass
class DispatchResult:
    """Outcome of one Dispatch Executor invocation.

    Attributes:
        kind: Notification kind as requested
        success: Whether the message was accepted by the relay
        message_id: Message-ID assigned to the sent message
        recipient: Primary (``to``) recipient, when known
        accepted_recipients: Addresses the relay accepted
        rejected_recipients: Addresses the relay refused
        error_kind: Classified failure kind (None on success)
        error_message: Caller-safe failure description (None on success)
        failed_at: State in which the dispatch failed
        metadata: Kind-specific fields echoed back to callers
    """

    kind: str
    success: bool
    message_id: Optional[str] = None
    recipient: Optional[str] = None
    accepted_recipients: List[str] = field(default_factory=list)
    rejected_recipients: List[str] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    failed_at: Optional[DispatchState] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_success(self) -> bool:
        """Check if the notification was accepted by the relay."""
        return self.success

    @classmethod
    def failure(
        cls,
        kind: str,
        error_kind: ErrorKind,
        message: str,
        state: DispatchState,
        recipient: Optional[str] = None,
    ) -> "DispatchResult":
        """Build a failed result from a classified error."""
        return cls(
            kind=kind,
            success=False,
            recipient=recipient,
            error_kind=error_kind,
            error_message=message,
            failed_at=state,
        )
