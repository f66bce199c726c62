"""Per-dispatch logging context.

Fields pushed here (dispatch_id, kind, scheme, ...) are stamped onto every
record emitted inside the scope by ContextualFilter. The fields live in a
ContextVar, so dispatches served concurrently by different threads or tasks
never see each other's values.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping

_EMPTY: Mapping[str, Any] = MappingProxyType({})

_dispatch_fields: ContextVar[Mapping[str, Any]] = ContextVar(
    "dispatch_log_fields", default=_EMPTY
)


def get_log_context() -> Dict[str, Any]:
    """Return the active fields as a new dict (safe to mutate)."""
    return dict(_dispatch_fields.get())


def push_log_context(**fields: Any) -> Token:
    """Layer ``fields`` over the active context; later keys shadow earlier ones.

    Returns the token pop_log_context() needs to undo exactly this push.
    """
    merged = {**_dispatch_fields.get(), **fields}
    return _dispatch_fields.set(MappingProxyType(merged))


def pop_log_context(token: Token) -> None:
    _dispatch_fields.reset(token)


def clear_log_context() -> None:
    """Drop every field (test isolation)."""
    _dispatch_fields.set(_EMPTY)


def new_dispatch_id() -> str:
    """Short random id correlating every record of one dispatch."""
    return uuid.uuid4().hex[:12]


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Scope ``fields`` to a ``with`` block.

    The previous context is restored on every exit path, including
    KeyboardInterrupt raised inside the block.

    Example:
        >>> with log_context(dispatch_id=new_dispatch_id(), kind="event_published"):
        ...     logger.info("Dispatch started")
    """
    token = push_log_context(**fields)
    try:
        yield
    finally:
        pop_log_context(token)
