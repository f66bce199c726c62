"""Payload resolution for notification templates and envelopes.

This module turns a raw request payload into the flat context a kind's
templates render from, applying the registry's per-field sources and fixed
fallback strings, and resolves envelope addresses the same way.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from notifier.config.models import AppSettings, FieldSpec, KindSpec

from .models import RecipientOverrides, _as_address_list

SENDER_SOURCE = "$sender"
NOW_PREFIX = "$now."
SETTINGS_PREFIX = "$settings."


def is_blank(value: Any) -> bool:
    """Return True for values that should fall through to the next source.

    None, False, empty or whitespace-only strings and empty containers are
    blank. Zero is a real value.
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def lookup_path(payload: Mapping[str, Any], path: str) -> Any:
    """Walk a dotted path (``projectData.contactEmail``) through nested mappings.

    Returns None when any segment is missing or not a mapping.
    """
    current: Any = payload
    for segment in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
        if current is None:
            return None
    return current


def format_display_date(now: datetime) -> str:
    """Format a date the way US-locale browsers do (``1/5/2026``)."""
    return f"{now.month}/{now.day}/{now.year}"


def format_display_time(now: datetime) -> str:
    """Format a time as ``3:04:05 PM``."""
    hour = now.hour % 12 or 12
    suffix = "AM" if now.hour < 12 else "PM"
    return f"{hour}:{now.minute:02d}:{now.second:02d} {suffix}"


def resolve_source(
    source: str,
    payload: Mapping[str, Any],
    now: datetime,
    settings: AppSettings,
    sender: Optional[str] = None,
) -> Any:
    """Resolve one source expression to a value (None when unavailable).

    Raises:
        ValueError: If the source names an unknown special source
    """
    if source == SENDER_SOURCE:
        return sender

    if source.startswith(NOW_PREFIX):
        part = source[len(NOW_PREFIX):]
        if part == "date":
            return format_display_date(now)
        if part == "time":
            return format_display_time(now)
        if part == "datetime":
            return f"{format_display_date(now)} at {format_display_time(now)}"
        raise ValueError(f"Unknown time source: {source}")

    if source.startswith(SETTINGS_PREFIX):
        name = source[len(SETTINGS_PREFIX):]
        if name not in AppSettings.model_fields:
            raise ValueError(f"Unknown settings source: {source}")
        return getattr(settings, name)

    if source.startswith("$"):
        raise ValueError(f"Unknown special source: {source}")

    return lookup_path(payload, source)


def _first_present(
    sources: Iterable[str],
    payload: Mapping[str, Any],
    now: datetime,
    settings: AppSettings,
    sender: Optional[str] = None,
) -> Any:
    for source in sources:
        value = resolve_source(source, payload, now, settings, sender)
        if not is_blank(value):
            return value.strip() if isinstance(value, str) else value
    return None


def resolve_field(
    spec: FieldSpec,
    payload: Mapping[str, Any],
    now: datetime,
    settings: AppSettings,
) -> Any:
    """Resolve a template field, falling back to its declared default."""
    value = _first_present(spec.sources, payload, now, settings)
    return spec.default if value is None else value


def build_template_context(
    spec: KindSpec,
    payload: Mapping[str, Any],
    now: datetime,
    settings: AppSettings,
) -> Dict[str, Any]:
    """Build the template context for a kind.

    The context holds every declared field (resolved or defaulted) plus
    shared values: app_url, admin_email, support_email, now_date, now_time,
    now_year.
    ``now`` is formatted here once so the text and HTML variants agree.

    Args:
        spec: Registry entry of the kind being rendered
        payload: Request payload
        now: Dispatch timestamp
        settings: Deployment settings

    Returns:
        Dictionary of template variables
    """
    context: Dict[str, Any] = {
        "app_url": settings.public_app_url,
        "admin_email": str(settings.admin_email),
        "support_email": str(settings.support_email),
        "now_date": format_display_date(now),
        "now_time": format_display_time(now),
        "now_year": str(now.year),
    }
    for name, field_spec in spec.fields.items():
        context[name] = resolve_field(field_spec, payload, now, settings)
    return context


def resolve_envelope(
    spec: KindSpec,
    payload: Mapping[str, Any],
    settings: AppSettings,
    now: datetime,
    overrides: Optional[RecipientOverrides] = None,
    sender: Optional[str] = None,
) -> Tuple[Optional[str], Tuple[str, ...], Optional[str]]:
    """Resolve (to, cc, reply_to) for a kind; overrides win over the payload.

    ``$sender`` sources resolve only when ``sender`` is given, so the envelope
    can be checked before the transport configuration is known.
    """
    overrides = overrides or RecipientOverrides()

    to = overrides.to or _first_present(spec.recipients.to, payload, now, settings, sender)

    if overrides.cc is not None:
        cc_candidates: List[str] = list(overrides.cc)
    else:
        cc_candidates = []
        for source in spec.recipients.cc:
            cc_candidates.extend(
                _as_address_list(resolve_source(source, payload, now, settings, sender))
            )

    cc: List[str] = []
    for address in cc_candidates:
        if address != to and address not in cc:
            cc.append(address)

    reply_to = overrides.reply_to or _first_present(
        spec.recipients.reply_to, payload, now, settings, sender
    )

    return (
        str(to) if to is not None else None,
        tuple(cc),
        str(reply_to) if reply_to is not None else None,
    )


def build_result_metadata(spec: KindSpec, context: Mapping[str, Any]) -> Dict[str, Any]:
    """Pick the kind-specific fields echoed back in the dispatch result."""
    return {key: context.get(field_name) for key, field_name in spec.result_metadata.items()}
