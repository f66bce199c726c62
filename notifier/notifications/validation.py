"""Request validation for the dispatch pipeline.

Validation runs before any configuration is read or transport opened: the
kind must be registered, every required payload path must be present and
non-blank, and every envelope address must be syntactically valid.
"""

from datetime import datetime
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from notifier.config.models import AppSettings, KindRegistry, KindSpec

from .models import NotificationRequest, ValidationError
from .payloads import is_blank, lookup_path, resolve_envelope


def check_address(address: str) -> Optional[str]:
    """Return a reason string if the address is invalid, else None."""
    try:
        validate_email(address, check_deliverability=False)
    except EmailNotValidError as e:
        return str(e)
    return None


def find_missing_fields(spec: KindSpec, request: NotificationRequest) -> List[str]:
    """Return required payload paths that are absent or blank, in declared order."""
    return [path for path in spec.required if is_blank(lookup_path(request.payload, path))]


def validate_request(
    request: NotificationRequest,
    registry: KindRegistry,
    settings: AppSettings,
    now: datetime,
) -> KindSpec:
    """
    Validate a dispatch request against its kind's registry entry.

    Args:
        request: Request to validate
        registry: Kind registry
        settings: Deployment settings (admin address for admin-facing kinds)
        now: Dispatch timestamp

    Returns:
        The KindSpec of the requested kind

    Raises:
        ValidationError: If the kind is unknown, required fields are missing,
            or an envelope address is malformed
    """
    spec = registry.get(request.kind)
    if spec is None:
        raise ValidationError(f"Unknown notification kind: {request.kind}")

    missing = find_missing_fields(spec, request)
    if missing:
        raise ValidationError(
            f"{spec.requirement}. Missing: {', '.join(missing)}",
            missing_fields=missing,
        )

    try:
        to, cc, reply_to = resolve_envelope(
            spec, request.payload, settings, now, request.recipient_overrides
        )
    except TypeError as e:
        raise ValidationError(f"Invalid recipient data: {e}") from e
    if to is None:
        raise ValidationError(
            f"{spec.requirement}. Missing: recipient address",
            missing_fields=list(spec.recipients.to),
        )

    problems = []
    for address in [to, *cc, *([reply_to] if reply_to else [])]:
        reason = check_address(address)
        if reason is not None:
            problems.append(f"'{address}' - {reason}")

    if problems:
        raise ValidationError(
            f"Invalid email address: {'; '.join(problems)}",
        )

    return spec
