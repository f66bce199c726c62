"""Structured logging for the notification dispatcher.

Modules obtain loggers through get_logger(); passing ``component`` tags every
record from that module (``dispatch``, ``api``, ``cli``) so output can be
filtered by pipeline layer.
"""

import logging
from typing import Optional, Union


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """Adds ``component`` to every record; keys in a call's ``extra`` win."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(
    name: str, component: Optional[str] = None
) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Return the named logger, wrapped in a ComponentLoggerAdapter when a component is given.

    Example:
        >>> logger = get_logger(__name__, component="dispatch")
        >>> logger.info("Dispatch started", extra={"event": "dispatch.started"})
    """
    logger = logging.getLogger(name)
    if component:
        return ComponentLoggerAdapter(logger, {"component": component})
    return logger
