"""SMTP transport for email delivery.

This module provides a thin wrapper around Python's smtplib with support for
implicit TLS and STARTTLS, authentication, bounded timeouts and explicit
connection lifecycle management. Both transport schemes (hosted mailbox and
generic SMTP) resolve to host/port/secure parameters, so one Transport
implementation serves both.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from typing import Callable, Optional, Protocol

from notifier.config.models import TransportConfig

from .models import DeliveryError, OutgoingMessage, SendReceipt, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class Transport(Protocol):
    """Capability interface the Dispatch Executor works against."""

    def verify(self) -> None:  # pragma: no cover - protocol
        ...

    def send(self, message: OutgoingMessage) -> SendReceipt:  # pragma: no cover - protocol
        ...

    def close(self) -> None:  # pragma: no cover - protocol
        ...


def build_email_message(message: OutgoingMessage) -> EmailMessage:
    """Build a multipart/alternative MIME message (text first, then HTML).

    Args:
        message: Fully formed outgoing message

    Returns:
        EmailMessage with From, To, optional Cc/Reply-To, Subject,
        Date and Message-ID headers
    """
    recipients = message.recipients
    domain = message.sender_address.rpartition("@")[2] or None

    email_message = EmailMessage()
    email_message["Subject"] = message.content.subject
    email_message["From"] = formataddr((message.sender_name, message.sender_address))
    email_message["To"] = recipients.to
    if recipients.cc:
        email_message["Cc"] = ", ".join(recipients.cc)
    if recipients.reply_to:
        email_message["Reply-To"] = recipients.reply_to
    email_message["Date"] = formatdate(localtime=False)
    email_message["Message-ID"] = make_msgid(domain=domain)

    email_message.set_content(message.content.text)
    email_message.add_alternative(message.content.html, subtype="html")
    return email_message


class SMTPTransport:
    """One short-lived SMTP connection: verify, send, close.

    Construction performs no network I/O. ``verify`` opens and authenticates
    the connection, ``send`` reuses it, and ``close`` releases it
    unconditionally (safe to call more than once).
    """

    def __init__(
        self,
        config: TransportConfig,
        smtp_factory: Callable = smtplib.SMTP,
        smtp_ssl_factory: Callable = smtplib.SMTP_SSL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.config = config
        self.host, self.port, self.secure = config.connection_params()
        self.smtp_factory = smtp_factory
        self.smtp_ssl_factory = smtp_ssl_factory
        self.timeout = timeout
        self._smtp = None
        self._verified = False
        self._closed = False

    @property
    def is_verified(self) -> bool:
        return self._verified

    def verify(self) -> None:
        """Connect, negotiate TLS and authenticate against the relay.

        Raises:
            TransportError: If the relay is unreachable, times out, or rejects
                the credentials
        """
        if self._closed:
            raise TransportError("Mail transport is closed")

        address = f"{self.host}:{self.port}"
        try:
            context = ssl.create_default_context()
            if self.secure:
                # Implicit TLS (typically port 465)
                logger.debug(f"Connecting to {address} with implicit TLS")
                self._smtp = self.smtp_ssl_factory(
                    self.host, self.port, timeout=self.timeout, context=context
                )
                self._smtp.ehlo()
            else:
                logger.debug(f"Connecting to {address}")
                self._smtp = self.smtp_factory(self.host, self.port, timeout=self.timeout)
                self._smtp.ehlo()
                if self._smtp.has_extn("starttls"):
                    logger.debug("Upgrading connection with STARTTLS")
                    self._smtp.starttls(context=context)
                    self._smtp.ehlo()

            logger.debug(f"Authenticating as {self.config.user}")
            self._smtp.login(self.config.user, self.config.password.get_secret_value())

        except smtplib.SMTPAuthenticationError as e:
            error_msg = f"Authentication rejected by {address}: {e.smtp_code} {e.smtp_error!r}"
            logger.error(error_msg)
            raise TransportError(
                "Mail relay rejected the configured credentials", detail=error_msg
            ) from e
        except smtplib.SMTPException as e:
            error_msg = f"SMTP error while verifying {address}: {e}"
            logger.error(error_msg)
            raise TransportError("Unable to verify the mail relay", detail=error_msg) from e
        except OSError as e:
            # Includes socket timeouts and TLS handshake failures
            error_msg = f"Network error while connecting to {address}: {e}"
            logger.error(error_msg)
            raise TransportError("Unable to connect to the mail relay", detail=error_msg) from e
        except Exception as e:
            error_msg = f"Unexpected error while verifying {address}: {e}"
            logger.error(error_msg)
            raise TransportError("Unable to verify the mail relay", detail=error_msg) from e

        self._verified = True
        logger.debug(f"Mail relay {address} verified")

    def send(self, message: OutgoingMessage) -> SendReceipt:
        """Transmit a message on the verified connection.

        Individual recipients refused by the relay are reported in the
        receipt; the send only fails when the primary recipient (or every
        recipient) is refused.

        Raises:
            DeliveryError: If the message could not be delivered
        """
        if not self._verified or self._smtp is None or self._closed:
            raise DeliveryError(
                "Email delivery failed", detail="Transport has not been verified"
            )

        email_message = build_email_message(message)
        recipients = message.recipients.all

        try:
            refused = self._smtp.send_message(
                email_message,
                from_addr=message.sender_address,
                to_addrs=recipients,
            )
        except smtplib.SMTPRecipientsRefused as e:
            error_msg = f"All recipients refused: {e.recipients}"
            logger.error(error_msg)
            raise DeliveryError(
                "The mail relay refused all recipients", detail=error_msg
            ) from e
        except smtplib.SMTPException as e:
            error_msg = f"SMTP error during message delivery: {e}"
            logger.error(error_msg)
            raise DeliveryError("Email delivery failed", detail=error_msg) from e
        except OSError as e:
            error_msg = f"Network error during message delivery: {e}"
            logger.error(error_msg)
            raise DeliveryError("Email delivery failed", detail=error_msg) from e

        refused_addresses = {address.lower(): address for address in (refused or {})}
        rejected = [a for a in recipients if a.lower() in refused_addresses]
        accepted = [a for a in recipients if a.lower() not in refused_addresses]

        if message.recipients.to in rejected:
            error_msg = f"Primary recipient refused: {refused}"
            logger.error(error_msg)
            raise DeliveryError(
                "The mail relay refused the primary recipient", detail=error_msg
            )

        if rejected:
            logger.warning(f"Relay refused {len(rejected)} recipient(s): {', '.join(rejected)}")

        message_id = email_message["Message-ID"]
        logger.debug(f"Message {message_id} sent to {', '.join(accepted)}")
        return SendReceipt(message_id=message_id, accepted=accepted, rejected=rejected)

    def close(self) -> None:
        """Release the connection. Never raises; repeated calls are no-ops."""
        if self._closed:
            return
        self._closed = True

        if self._smtp is None:
            return
        try:
            self._smtp.quit()
        except Exception as e:
            logger.warning(f"Error closing SMTP connection: {e}")
            try:
                self._smtp.close()
            except Exception:
                logger.debug("SMTP socket already closed")
        finally:
            self._smtp = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class TransportProvider:
    """Builds transports for resolved configurations.

    Factories are injectable so tests can substitute fake SMTP classes.
    """

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """Initialize provider with optional factory injection.

        Args:
            smtp_factory: Factory for SMTP instances (for mocking)
            smtp_ssl_factory: Factory for SMTP_SSL instances (for mocking)
            timeout: Connect/greeting/socket timeout in seconds
        """
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL
        self.timeout = timeout

    def open(self, config: TransportConfig) -> SMTPTransport:
        """Construct a transport for the configuration. Performs no network I/O."""
        return SMTPTransport(
            config,
            smtp_factory=self.smtp_factory,
            smtp_ssl_factory=self.smtp_ssl_factory,
            timeout=self.timeout,
        )
