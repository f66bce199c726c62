"""Environment variable loading and validation.

Two mutually exclusive credential families are supported:

- hosted-mailbox: HOSTED_MAILBOX_USER, HOSTED_MAILBOX_PASSWORD
  (optional HOSTED_MAILBOX_SERVICE, default "gmail")
- generic-smtp: SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, FROM_EMAIL
  (optional SMTP_SECURE, default: true when SMTP_PORT is 465)
"""

import os
from typing import Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models import (
    AppSettings,
    GenericSmtpConfig,
    HostedMailboxConfig,
    TransportConfig,
    TransportScheme,
)

REQUIRED_KEYS: Dict[TransportScheme, List[str]] = {
    TransportScheme.HOSTED_MAILBOX: ["HOSTED_MAILBOX_USER", "HOSTED_MAILBOX_PASSWORD"],
    TransportScheme.GENERIC_SMTP: [
        "SMTP_HOST",
        "SMTP_PORT",
        "SMTP_USER",
        "SMTP_PASS",
        "FROM_EMAIL",
    ],
}

# AppSettings field -> environment variable
SETTINGS_ENV_KEYS: Dict[str, str] = {
    "public_app_url": "PUBLIC_APP_URL",
    "admin_email": "ADMIN_EMAIL",
    "support_email": "SUPPORT_EMAIL",
    "smtp_timeout_seconds": "SMTP_TIMEOUT_SECONDS",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
    "environment": "ENVIRONMENT",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def required_keys(scheme: Union[str, TransportScheme]) -> List[str]:
    """Return the environment keys a scheme needs, in declaration order."""
    return list(REQUIRED_KEYS[TransportScheme(scheme)])


def resolve_transport_config(
    scheme: Union[str, TransportScheme],
    environ: Optional[Mapping[str, str]] = None,
) -> TransportConfig:
    """
    Resolve connection parameters for a transport scheme.

    Reads every required key for the scheme and fails with a single
    ConfigurationError listing all missing keys, so configuration can be fixed
    in one pass. Performs no I/O beyond reading the mapping.

    Args:
        scheme: Transport scheme identifier
        environ: Configuration source (defaults to os.environ)

    Returns:
        HostedMailboxConfig or GenericSmtpConfig

    Raises:
        ConfigurationError: If keys are missing or values are invalid
    """
    env = os.environ if environ is None else environ
    try:
        scheme = TransportScheme(scheme)
    except ValueError:
        raise ConfigurationError(
            f"Unknown transport scheme: {scheme}",
            suggestions=[
                f"Use one of: {', '.join(s.value for s in TransportScheme)}",
            ],
        )

    values = {key: (env.get(key) or "").strip() for key in REQUIRED_KEYS[scheme]}
    missing = [key for key, value in values.items() if not value]

    if missing:
        raise ConfigurationError.missing(
            missing,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                f"The {scheme.value} scheme requires: {', '.join(REQUIRED_KEYS[scheme])}",
            ],
        )

    if scheme == TransportScheme.HOSTED_MAILBOX:
        return _build_hosted_mailbox_config(values, env)
    return _build_generic_smtp_config(values, env)


def _build_hosted_mailbox_config(
    values: Dict[str, str], env: Mapping[str, str]
) -> HostedMailboxConfig:
    service = (env.get("HOSTED_MAILBOX_SERVICE") or "gmail").strip()
    try:
        return HostedMailboxConfig(
            service=service,
            user=values["HOSTED_MAILBOX_USER"],
            password=values["HOSTED_MAILBOX_PASSWORD"],
        )
    except ValidationError as e:
        raise _invalid_values_error(e, "HOSTED_MAILBOX_")


def _build_generic_smtp_config(
    values: Dict[str, str], env: Mapping[str, str]
) -> GenericSmtpConfig:
    errors = []

    port_str = values["SMTP_PORT"]
    port = None
    try:
        port = int(port_str)
        if port < 1 or port > 65535:
            errors.append(f"Invalid SMTP_PORT: {port}. Must be between 1 and 65535.")
    except ValueError:
        errors.append(f"Invalid SMTP_PORT: '{port_str}'. Must be a valid integer.")

    secure_str = (env.get("SMTP_SECURE") or "").strip().lower()
    if not secure_str:
        secure = port == 465
    elif secure_str in _TRUE_VALUES:
        secure = True
    elif secure_str in _FALSE_VALUES:
        secure = False
    else:
        secure = False
        errors.append(
            f"Invalid SMTP_SECURE: '{secure_str}'. Must be true or false."
        )

    if errors:
        raise ConfigurationError(
            "Invalid environment variables",
            errors=errors,
            suggestions=["Verify SMTP_PORT is a number between 1 and 65535"],
        )

    try:
        return GenericSmtpConfig(
            host=values["SMTP_HOST"],
            port=port,
            secure=secure,
            user=values["SMTP_USER"],
            password=values["SMTP_PASS"],
            from_email=values["FROM_EMAIL"],
        )
    except ValidationError as e:
        raise _invalid_values_error(e, "SMTP_")


def _invalid_values_error(error: ValidationError, prefix: str) -> ConfigurationError:
    errors = []
    for item in error.errors():
        field_path = ".".join(str(loc) for loc in item["loc"])
        errors.append(f"{prefix}{field_path.upper()}: {item['msg']}")
    return ConfigurationError("Invalid environment variables", errors=errors)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> AppSettings:
    """
    Load deployment-wide settings from the environment.

    Unset variables fall back to the defaults declared on AppSettings.

    Args:
        environ: Configuration source (defaults to os.environ)

    Returns:
        Validated AppSettings

    Raises:
        ConfigurationError: If any provided value is invalid
    """
    env = os.environ if environ is None else environ
    raw = {}
    for field_name, key in SETTINGS_ENV_KEYS.items():
        value = env.get(key)
        if value is not None and value.strip():
            raw[field_name] = value.strip()

    if "log_level" in raw:
        raw["log_level"] = raw["log_level"].upper()

    try:
        return AppSettings.model_validate(raw)
    except ValidationError as e:
        errors = []
        for item in e.errors():
            field_name = str(item["loc"][0]) if item["loc"] else ""
            key = SETTINGS_ENV_KEYS.get(field_name, field_name)
            errors.append(f"Invalid {key}: {item['msg']}")
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Check that email addresses are valid",
                "LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL",
                "LOG_FORMAT must be 'json' or 'key-value'",
            ],
        )
