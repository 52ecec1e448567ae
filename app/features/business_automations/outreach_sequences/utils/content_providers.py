"""
Content providers for sequence steps.

A provider turns a step's content/subject templates plus the prospect
context into the text of an outbound message. The step executor only
depends on the ``render(step, prospect_context)`` coroutine.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from jinja2 import TemplateError
from jinja2.sandbox import SandboxedEnvironment

from app.features.core.sqlalchemy_imports import get_logger
from app.features.business_automations.outreach_sequences.exceptions import ContentRenderError

logger = get_logger(__name__)


@dataclass(frozen=True)
class RenderedContent:
    """Message text produced for one step."""
    content: str
    subject: Optional[str] = None


class ContentProvider(Protocol):
    async def render(self, step, prospect_context: Dict[str, Any]) -> RenderedContent:
        ...


class TemplateContentProvider:
    """
    Renders step templates with Jinja2.

    Templates run in a sandbox since they are user-authored. Unknown
    variables render as empty strings.
    """

    def __init__(self):
        self.jinja_env = SandboxedEnvironment(autoescape=False)

    def render_template(self, template: Optional[str], context: Dict[str, Any]) -> Optional[str]:
        if template is None:
            return None
        try:
            return self.jinja_env.from_string(template).render(**context).strip()
        except TemplateError as e:
            raise ContentRenderError(f"Template rendering failed: {e}") from e

    async def render(self, step, prospect_context: Dict[str, Any]) -> RenderedContent:
        content = self.render_template(step.content, prospect_context)
        if not content:
            raise ContentRenderError(f"Step {step.step_order} rendered empty content")

        subject = self.render_template(step.subject, prospect_context)
        return RenderedContent(content=content, subject=subject or None)


def get_content_provider(settings=None) -> ContentProvider:
    """
    Build the configured content provider.

    SEQUENCE_CONTENT_PROVIDER selects "template" (default) or "openai".
    """
    if settings is None:
        from app.features.core.config import get_settings
        settings = get_settings()

    provider_name = (settings.SEQUENCE_CONTENT_PROVIDER or "template").lower()

    if provider_name == "openai":
        from .openai_client import OpenAIContentProvider
        return OpenAIContentProvider(
            api_key=settings.OPENAI_API_KEY or None,
            model=settings.SEQUENCE_OPENAI_MODEL,
            temperature=settings.SEQUENCE_OPENAI_TEMPERATURE,
        )

    if provider_name != "template":
        logger.warning("Unknown content provider, using templates", provider=provider_name)

    return TemplateContentProvider()
