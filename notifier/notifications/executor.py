"""Dispatch Executor: the single pipeline every notification kind runs through.

validate -> resolve configuration -> open transport -> verify -> render ->
send -> close. Each stage maps its failures to exactly one classified error
kind, and the transport is closed exactly once on every path that opened it.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Mapping, Optional

from notifier.config.environment import resolve_transport_config
from notifier.config.exceptions import ConfigurationError
from notifier.config.loader import default_kind_registry
from notifier.config.models import AppSettings, KindRegistry
from notifier.logging import get_logger
from notifier.logging.context import log_context, new_dispatch_id

from .models import (
    DeliveryError,
    DispatchResult,
    DispatchState,
    ErrorKind,
    NotificationError,
    NotificationRequest,
    OutgoingMessage,
    Recipients,
    RenderError,
    TransportError,
    ValidationError,
)
from .payloads import build_result_metadata, resolve_envelope
from .templates import TemplateRenderer
from .transport import TransportProvider
from .validation import validate_request

logger = get_logger(__name__, component="dispatch")


class DispatchExecutor:
    """Runs one notification request through the dispatch state machine.

    Instances hold only immutable collaborators (registry, settings, renderer,
    transport provider) and can be shared across threads; every call to
    ``dispatch`` opens its own short-lived transport.
    """

    def __init__(
        self,
        registry: Optional[KindRegistry] = None,
        settings: Optional[AppSettings] = None,
        renderer: Optional[TemplateRenderer] = None,
        transport_provider: Optional[TransportProvider] = None,
        environ: Optional[Mapping[str, str]] = None,
        logger_instance: Optional[logging.LoggerAdapter] = None,
    ):
        """Initialize the executor.

        Args:
            registry: Kind registry (defaults to the packaged registry)
            settings: Deployment settings (defaults to declared defaults)
            renderer: Template renderer (creates default if None)
            transport_provider: Transport provider (creates SMTP provider if None)
            environ: Mapping credentials are read from (os.environ if None)
            logger_instance: Logger instance (uses module logger if None)
        """
        self.registry = registry or default_kind_registry()
        self.settings = settings or AppSettings()
        self.renderer = renderer or TemplateRenderer(self.registry, self.settings)
        self.transport_provider = transport_provider or TransportProvider(
            timeout=self.settings.smtp_timeout_seconds
        )
        self.environ = environ
        self.logger = logger_instance or logger

    def dispatch(
        self, request: NotificationRequest, now: Optional[datetime] = None
    ) -> DispatchResult:
        """Dispatch one notification.

        Never raises for pipeline failures: every error is classified and
        returned as a failed DispatchResult. KeyboardInterrupt and SystemExit
        propagate after the transport (if opened) has been closed.

        Args:
            request: Notification request
            now: Dispatch timestamp (current UTC time if None)

        Returns:
            DispatchResult describing the outcome
        """
        now = now or datetime.now(timezone.utc)

        with log_context(dispatch_id=new_dispatch_id(), kind=request.kind):
            self.logger.info(
                f"Dispatching {request.kind} notification",
                extra={"event": "dispatch.started"},
            )
            result = self._run(request, now)

            if result.is_success():
                self.logger.info(
                    f"Dispatch of {request.kind} succeeded "
                    f"(message_id={result.message_id})",
                    extra={
                        "event": "dispatch.succeeded",
                        "recipient": result.recipient,
                        "accepted": result.accepted_recipients,
                        "rejected": result.rejected_recipients,
                    },
                )
            return result

    def _run(self, request: NotificationRequest, now: datetime) -> DispatchResult:
        kind = request.kind

        # Validating
        try:
            spec = validate_request(request, self.registry, self.settings, now)
        except ValidationError as e:
            return self._failure(kind, e, DispatchState.VALIDATING)
        except Exception as e:
            return self._unexpected(kind, ValidationError, e, DispatchState.VALIDATING)

        self.logger.debug(
            "Request validated", extra={"event": "dispatch.validation.passed"}
        )

        # ConfigResolving
        try:
            environ = self.environ if self.environ is not None else os.environ
            config = resolve_transport_config(spec.scheme, environ)
        except ConfigurationError as e:
            self.logger.error(
                f"Transport configuration unavailable for {spec.scheme}: {e}",
                extra={
                    "event": "dispatch.config.failed",
                    "error_kind": ErrorKind.CONFIGURATION.value,
                    "missing_keys": e.missing_keys,
                },
            )
            return DispatchResult.failure(
                kind, ErrorKind.CONFIGURATION, e.message, DispatchState.CONFIG_RESOLVING
            )

        with log_context(scheme=spec.scheme.value):
            # TransportOpening
            try:
                transport = self.transport_provider.open(config)
            except TransportError as e:
                return self._failure(kind, e, DispatchState.TRANSPORT_OPENING)
            except Exception as e:
                return self._unexpected(
                    kind, TransportError, e, DispatchState.TRANSPORT_OPENING
                )

            try:
                return self._deliver(transport, request, spec, config, now)
            finally:
                transport.close()
                self.logger.debug(
                    "Transport closed", extra={"event": "dispatch.transport.closed"}
                )

    def _deliver(self, transport, request, spec, config, now) -> DispatchResult:
        kind = request.kind

        # Verifying
        try:
            transport.verify()
        except TransportError as e:
            return self._failure(kind, e, DispatchState.VERIFYING)
        except Exception as e:
            return self._unexpected(kind, TransportError, e, DispatchState.VERIFYING)

        self.logger.info(
            "Mail relay verified", extra={"event": "dispatch.transport.verified"}
        )

        # Rendering
        try:
            context = self.renderer.build_context(spec, request.payload, now)
            content = self.renderer.render_context(spec, context)
        except RenderError as e:
            return self._failure(kind, e, DispatchState.RENDERING)
        except Exception as e:
            return self._unexpected(kind, RenderError, e, DispatchState.RENDERING)

        # Sending
        try:
            to, cc, reply_to = resolve_envelope(
                spec,
                request.payload,
                self.settings,
                now,
                request.recipient_overrides,
                sender=config.sender_address,
            )
            message = OutgoingMessage(
                sender_name=spec.sender_name,
                sender_address=config.sender_address,
                recipients=Recipients(to=to, cc=cc, reply_to=reply_to),
                content=content,
            )
            receipt = transport.send(message)
        except DeliveryError as e:
            return self._failure(kind, e, DispatchState.SENDING, recipient=to)
        except Exception as e:
            return self._unexpected(kind, DeliveryError, e, DispatchState.SENDING)

        self.logger.info(
            f"Message {receipt.message_id} accepted for {to}",
            extra={"event": "dispatch.send.success", "message_id": receipt.message_id},
        )

        return DispatchResult(
            kind=kind,
            success=True,
            message_id=receipt.message_id,
            recipient=to,
            accepted_recipients=list(receipt.accepted),
            rejected_recipients=list(receipt.rejected),
            metadata=build_result_metadata(spec, context),
        )

    def _failure(
        self,
        kind: str,
        error: NotificationError,
        state: DispatchState,
        recipient: Optional[str] = None,
    ) -> DispatchResult:
        """Log a classified failure and turn it into a result."""
        event = f"dispatch.{state.value}.failed"
        log = self.logger.warning if state == DispatchState.VALIDATING else self.logger.error
        log(
            f"Dispatch failed while {state.value}: {error}",
            extra={"event": event, "error_kind": error.error_kind.value},
        )
        return DispatchResult.failure(
            kind, error.error_kind, error.message, state, recipient=recipient
        )

    def _unexpected(
        self,
        kind: str,
        error_class: type,
        exc: Exception,
        state: DispatchState,
    ) -> DispatchResult:
        """Classify an unexpected exception as the stage's error kind."""
        error = error_class(
            f"Unexpected error while {state.value.replace('_', ' ')}",
            detail=f"{type(exc).__name__}: {exc}",
        )
        self.logger.error(
            f"Unexpected {type(exc).__name__} while {state.value}: {exc}",
            exc_info=True,
            extra={
                "event": f"dispatch.{state.value}.failed",
                "error_kind": error.error_kind.value,
            },
        )
        return DispatchResult.failure(kind, error.error_kind, error.message, state)
