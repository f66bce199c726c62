"""Configuration management module for the notification dispatcher."""

from .environment import (
    load_settings,
    required_keys,
    resolve_transport_config,
)
from .exceptions import ConfigurationError
from .loader import default_kind_registry, load_kind_registry
from .models import (
    AppSettings,
    FieldSpec,
    GenericSmtpConfig,
    HostedMailboxConfig,
    KindRegistry,
    KindSpec,
    LogFormat,
    LogLevel,
    NotificationKind,
    RecipientSpec,
    TransportConfig,
    TransportScheme,
)

__all__ = [
    # Loader functions
    "load_settings",
    "load_kind_registry",
    "default_kind_registry",
    "resolve_transport_config",
    "required_keys",
    # Configuration models
    "AppSettings",
    "HostedMailboxConfig",
    "GenericSmtpConfig",
    "TransportConfig",
    "KindRegistry",
    "KindSpec",
    "FieldSpec",
    "RecipientSpec",
    # Enums
    "NotificationKind",
    "TransportScheme",
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
