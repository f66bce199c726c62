"""Framework-independent notification handlers.

Each handler takes an HTTP method and an already decoded JSON body and
returns a HandlerResponse, so the same logic serves the Flask app, the CLI
and serverless-style callers.
"""

from typing import Any, Optional

from notifier.logging import get_logger
from notifier.notifications.executor import DispatchExecutor
from notifier.notifications.models import NotificationRequest, RecipientOverrides
from notifier.notifications.reporter import (
    HandlerResponse,
    bad_request,
    build_response,
    method_not_allowed,
)

logger = get_logger(__name__, component="api")

OVERRIDES_KEY = "recipientOverrides"


def _parse_overrides(raw: Any):
    """Return (overrides, problem); problem is a 400 message or None."""
    if raw is not None and not isinstance(raw, dict):
        return None, f"{OVERRIDES_KEY} must be a JSON object"
    try:
        return RecipientOverrides.from_mapping(raw), None
    except ValueError as e:
        return None, str(e)


def _split_overrides(body: dict):
    """Separate recipient overrides from the payload proper."""
    overrides, problem = _parse_overrides(body.get(OVERRIDES_KEY))
    payload = {key: value for key, value in body.items() if key != OVERRIDES_KEY}
    return payload, overrides, problem


def _dispatch(
    kind: str,
    payload: dict,
    overrides: Optional[RecipientOverrides],
    executor: DispatchExecutor,
) -> HandlerResponse:
    result = executor.dispatch(
        NotificationRequest(kind=kind, payload=payload, recipient_overrides=overrides)
    )
    spec = executor.registry.get(kind)
    return build_response(result, spec.success_message if spec else None)


def handle(
    kind: str, method: str, body: Any, executor: DispatchExecutor
) -> HandlerResponse:
    """Handle a per-kind request (the body is the kind's payload).

    Args:
        kind: Notification kind the route is bound to
        method: HTTP method
        body: Decoded JSON body (None if absent or unparseable)
        executor: Dispatch executor

    Returns:
        HandlerResponse (405 for non-POST, 400 for non-object bodies)
    """
    if (method or "").upper() != "POST":
        logger.info(
            f"Rejected {method} request for {kind}",
            extra={"event": "api.method_not_allowed", "kind": kind},
        )
        return method_not_allowed()

    if not isinstance(body, dict):
        return bad_request("Request body must be a JSON object")

    payload, overrides, problem = _split_overrides(body)
    if problem:
        return bad_request(problem)

    return _dispatch(kind, payload, overrides, executor)


def handle_dispatch(method: str, body: Any, executor: DispatchExecutor) -> HandlerResponse:
    """Handle a generic request of the form ``{kind, payload, recipientOverrides?}``."""
    if (method or "").upper() != "POST":
        return method_not_allowed()

    if not isinstance(body, dict):
        return bad_request("Request body must be a JSON object")

    kind = body.get("kind")
    if not isinstance(kind, str) or not kind.strip():
        return bad_request("Notification kind is required")

    payload = body.get("payload") or {}
    if not isinstance(payload, dict):
        return bad_request("payload must be a JSON object")

    overrides, problem = _parse_overrides(body.get(OVERRIDES_KEY))
    if problem:
        return bad_request(problem)

    return _dispatch(kind.strip(), payload, overrides, executor)
