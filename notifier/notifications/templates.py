"""Template rendering for email notifications using Jinja2.

Each notification kind has three templates in the email_templates package
directory: ``<kind>_subject.j2``, ``<kind>_body.html.j2`` and
``<kind>_body.txt.j2``. All three render from the same resolved context, so
the text and HTML variants never diverge in substance.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from jinja2 import (
    Environment,
    PackageLoader,
    StrictUndefined,
    TemplateError,
    select_autoescape,
)

from notifier.config.loader import default_kind_registry
from notifier.config.models import AppSettings, KindRegistry, KindSpec

from .models import RenderedContent, RenderError
from .payloads import build_template_context

logger = logging.getLogger(__name__)


class TemplateRenderer:
    """Renders notification content from per-kind Jinja2 templates.

    Rendering is a pure function of (kind, payload, now): templates are
    loaded from the package and cached by Jinja2, and the only time-dependent
    values come from the ``now`` argument.
    """

    def __init__(
        self,
        registry: Optional[KindRegistry] = None,
        settings: Optional[AppSettings] = None,
        template_dir: str = "email_templates",
    ):
        """Initialize template renderer with Jinja2 environment.

        Args:
            registry: Kind registry (defaults to the packaged registry)
            settings: Deployment settings (defaults to declared defaults)
            template_dir: Directory name within the notifier.notifications package
        """
        self.registry = registry or default_kind_registry()
        self.settings = settings or AppSettings()

        self.env = Environment(
            loader=PackageLoader("notifier.notifications", template_dir),
            # Only HTML bodies are escaped; subjects and text bodies are plain text
            autoescape=select_autoescape(
                enabled_extensions=("html.j2",),
                default_for_string=False,
                default=False,
            ),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    @staticmethod
    def template_names(kind: str) -> Dict[str, str]:
        """Return the subject/html/text template file names for a kind."""
        return {
            "subject": f"{kind}_subject.j2",
            "html": f"{kind}_body.html.j2",
            "text": f"{kind}_body.txt.j2",
        }

    def build_context(
        self, spec: KindSpec, payload: Mapping[str, Any], now: datetime
    ) -> Dict[str, Any]:
        """Resolve the template context for a kind.

        Raises:
            RenderError: If the registry entry references an unknown source
        """
        try:
            return build_template_context(spec, payload, now, self.settings)
        except ValueError as e:
            raise RenderError(
                "Failed to render notification content", detail=str(e)
            ) from e

    def render_context(self, spec: KindSpec, context: Mapping[str, Any]) -> RenderedContent:
        """Render subject, text and HTML from an already resolved context.

        Raises:
            RenderError: If template rendering fails or produces an empty body
        """
        kind = spec.kind.value
        names = self.template_names(kind)
        try:
            subject = self.env.get_template(names["subject"]).render(context)
            html_body = self.env.get_template(names["html"]).render(context)
            text_body = self.env.get_template(names["text"]).render(context)
        except TemplateError as e:
            logger.error(f"Template rendering failed for {kind}: {e}", exc_info=True)
            raise RenderError(
                "Failed to render notification content", detail=f"{kind}: {e}"
            ) from e

        subject = " ".join(subject.split())
        html_body = html_body.strip()
        text_body = text_body.strip()

        if not subject or not html_body or not text_body:
            raise RenderError(
                "Failed to render notification content",
                detail=f"{kind}: template produced an empty subject or body",
            )

        logger.debug(f"Rendered templates for kind: {kind}")

        return RenderedContent(subject=subject, text=text_body + "\n", html=html_body + "\n")

    def render(
        self, kind: str, payload: Mapping[str, Any], now: datetime
    ) -> RenderedContent:
        """Render all content for a notification.

        Args:
            kind: Notification kind
            payload: Request payload
            now: Timestamp used for "sent at" style fields

        Returns:
            RenderedContent with subject, text and html

        Raises:
            RenderError: If the kind is unknown or rendering fails
        """
        spec = self.registry.get(kind)
        if spec is None:
            raise RenderError(
                "Failed to render notification content",
                detail=f"No registry entry for kind '{kind}'",
            )
        context = self.build_context(spec, payload, now)
        return self.render_context(spec, context)
