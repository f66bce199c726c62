"""Main entry point for the notification dispatcher."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from notifier.api.handlers import handle
from notifier.api.server import create_app
from notifier.config.environment import load_settings, resolve_transport_config
from notifier.config.exceptions import ConfigurationError
from notifier.config.loader import load_kind_registry
from notifier.config.models import AppSettings, NotificationKind, TransportScheme
from notifier.logging import get_logger
from notifier.logging.config import configure_logging
from notifier.notifications.executor import DispatchExecutor
from notifier.notifications.models import RenderError, TransportError
from notifier.notifications.templates import TemplateRenderer
from notifier.notifications.transport import TransportProvider

logger = get_logger(__name__, component="cli")

KIND_CHOICES = [kind.value for kind in NotificationKind]


def read_payload(path: str) -> Any:
    """Read a JSON payload from a file path, or stdin when path is '-'."""
    if path == "-":
        return json.load(sys.stdin)
    with Path(path).open(encoding="utf-8") as fh:
        return json.load(fh)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notifier",
        description="Transactional notification dispatcher - validates, renders and delivers platform emails",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides LOG_LEVEL)",
    )
    parser.add_argument(
        "--registry",
        type=Path,
        default=None,
        help="Path to an alternative kind registry YAML file",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")

    send = subparsers.add_parser("send", help="Dispatch one notification")
    send.add_argument("kind", choices=KIND_CHOICES)
    send.add_argument(
        "--payload", required=True, help="JSON payload file ('-' for stdin)"
    )

    render = subparsers.add_parser(
        "render", help="Preview rendered content without opening a transport"
    )
    render.add_argument("kind", choices=KIND_CHOICES)
    render.add_argument(
        "--payload", required=True, help="JSON payload file ('-' for stdin)"
    )
    render.add_argument(
        "--format",
        choices=["text", "html", "subject"],
        default="text",
        help="Which part to print (default: text)",
    )

    check = subparsers.add_parser(
        "check-config", help="Resolve transport configuration and verify the relay"
    )
    check.add_argument(
        "--scheme",
        choices=[scheme.value for scheme in TransportScheme],
        default=None,
        help="Only check one scheme (default: every scheme the registry uses)",
    )
    check.add_argument(
        "--no-verify",
        action="store_true",
        help="Only resolve configuration; do not connect to the relay",
    )
    return parser


def run_send(args, settings: AppSettings, registry) -> int:
    payload = read_payload(args.payload)
    executor = DispatchExecutor(registry=registry, settings=settings)
    response = handle(args.kind, "POST", payload, executor)
    print(json.dumps(response.body, indent=2))
    return 0 if response.status_code == 200 else 1


def run_render(args, settings: AppSettings, registry) -> int:
    payload = read_payload(args.payload)
    if not isinstance(payload, dict):
        print("Payload must be a JSON object", file=sys.stderr)
        return 1

    renderer = TemplateRenderer(registry=registry, settings=settings)
    try:
        content = renderer.render(args.kind, payload, datetime.now(timezone.utc))
    except RenderError as e:
        print(f"Render Error: {e}", file=sys.stderr)
        return 1

    print(getattr(content, args.format))
    return 0


def run_check_config(args, settings: AppSettings, registry) -> int:
    if args.scheme:
        schemes: List[TransportScheme] = [TransportScheme(args.scheme)]
    else:
        schemes = sorted({spec.scheme for spec in registry.kinds.values()}, key=lambda s: s.value)

    provider = TransportProvider(timeout=settings.smtp_timeout_seconds)
    failures = 0
    for scheme in schemes:
        try:
            config = resolve_transport_config(scheme)
        except ConfigurationError as e:
            print(f"[FAIL] {scheme.value}: {e}")
            failures += 1
            continue

        if args.no_verify:
            print(f"[OK]   {scheme.value}: configuration resolved")
            continue

        transport = provider.open(config)
        try:
            transport.verify()
            print(f"[OK]   {scheme.value}: relay verified ({transport.host}:{transport.port})")
        except TransportError as e:
            print(f"[FAIL] {scheme.value}: {e}")
            failures += 1
        finally:
            transport.close()

    return 1 if failures else 0


def run_serve(args, settings: AppSettings, registry) -> int:
    executor = DispatchExecutor(registry=registry, settings=settings)
    app = create_app(executor)
    logger.info(
        f"Serving notification API on {args.host}:{args.port}",
        extra={"event": "service.starting", "host": args.host, "port": args.port},
    )
    app.run(host=args.host, port=args.port)
    logger.info("Notification API stopped", extra={"event": "service.stopping"})
    return 0


COMMANDS = {
    "serve": run_serve,
    "send": run_send,
    "render": run_render,
    "check-config": run_check_config,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the notification dispatcher CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
        if args.log_level:
            settings = settings.model_copy(update={"log_level": args.log_level})

        configure_logging(
            level=settings.log_level,
            format_type=settings.log_format,
            environment=settings.environment,
        )

        registry = load_kind_registry(args.registry)
        logger.debug(
            "Configuration loaded",
            extra={"event": "config.loaded", "command": args.command},
        )

        return COMMANDS[args.command](args, settings, registry)

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e.message}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"Could not read payload: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error",
            extra={
                "event": "service.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
