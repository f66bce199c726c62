"""Flask application exposing the notification handlers over HTTP."""

from typing import Optional

from flask import Flask, jsonify, request

from notifier.config.environment import load_settings
from notifier.logging import get_logger
from notifier.notifications.executor import DispatchExecutor
from notifier.notifications.reporter import HandlerResponse

from .handlers import handle, handle_dispatch

logger = get_logger(__name__, component="api")

# Every method reaches the handlers so non-POST requests get the JSON 405 body
ROUTE_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _to_flask(response: HandlerResponse):
    return jsonify(response.body), response.status_code


def _request_body():
    if request.method != "POST":
        return None
    return request.get_json(force=True, silent=True)


def create_app(executor: Optional[DispatchExecutor] = None) -> Flask:
    """Create the Flask application.

    Args:
        executor: Dispatch executor (built from environment settings if None)

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    app.json.sort_keys = False

    if executor is None:
        executor = DispatchExecutor(settings=load_settings())
    app.extensions["dispatch_executor"] = executor

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/notifications/dispatch", methods=ROUTE_METHODS)
    def dispatch():
        return _to_flask(handle_dispatch(request.method, _request_body(), executor))

    @app.route("/api/notifications/<route>", methods=ROUTE_METHODS)
    def send_notification(route: str):
        spec = executor.registry.by_route(route)
        if spec is None:
            return (
                jsonify({"success": False, "error": f"Unknown notification route: {route}"}),
                404,
            )
        return _to_flask(
            handle(spec.kind.value, request.method, _request_body(), executor)
        )

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(405)
    def not_allowed(_error):
        return jsonify({"success": False, "error": "Method not allowed. Use POST."}), 405

    logger.debug(
        f"Registered {len(executor.registry.kinds)} notification routes",
        extra={"event": "api.routes.registered"},
    )
    return app
