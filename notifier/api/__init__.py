"""HTTP boundary for the notification dispatcher.

- handlers: framework-independent request handling (method check, body
  parsing, dispatch, response building)
- server: Flask application exposing one route per notification kind
"""

from .handlers import handle, handle_dispatch
from .server import create_app

__all__ = ["handle", "handle_dispatch", "create_app"]
