"""
OpenAI-backed content provider for sequence steps.

Renders the step template first, then asks a GPT model to personalize the
draft for the prospect. Any failure is raised as ContentRenderError so the
step executor treats it like every other execution failure.
"""

from typing import Any, Dict, Optional
from openai import AsyncOpenAI

from app.features.core.sqlalchemy_imports import get_logger
from app.features.business_automations.outreach_sequences.exceptions import ContentRenderError
from .content_providers import RenderedContent, TemplateContentProvider

logger = get_logger(__name__)

SYSTEM_PROMPT = "You are a professional LinkedIn outreach specialist writing personalized messages."


class OpenAIContentProvider:
    """Content provider that personalizes template drafts with OpenAI."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 300,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Chat model name
            temperature: Sampling temperature
            max_tokens: Completion token limit
            client: Preconfigured client (overrides api_key)
        """
        if client is not None:
            self.client = client
        elif not api_key:
            logger.warning("OpenAI API key not provided")
            self.client = None
        else:
            self.client = AsyncOpenAI(api_key=api_key)

        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.templates = TemplateContentProvider()

    async def render(self, step, prospect_context: Dict[str, Any]) -> RenderedContent:
        if not self.client:
            raise ContentRenderError("OpenAI client not configured")

        draft = await self.templates.render(step, prospect_context)
        prompt = self._build_personalization_prompt(step, draft.content, prospect_context)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error(
                "OpenAI message generation failed",
                step_order=step.step_order,
                prospect_id=prospect_context.get("prospect_id"),
                error=str(e),
            )
            raise ContentRenderError(f"OpenAI generation failed: {e}") from e

        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise ContentRenderError("OpenAI returned an empty message")

        logger.info(
            "Outreach message generated",
            step_order=step.step_order,
            prospect_id=prospect_context.get("prospect_id"),
            tokens_used=getattr(response.usage, "total_tokens", None),
        )

        return RenderedContent(content=content, subject=draft.subject)

    def _build_personalization_prompt(
        self,
        step,
        draft: str,
        prospect_context: Dict[str, Any]
    ) -> str:
        """Build prompt for personalizing a drafted message."""
        parts = [
            f"Personalize this {step.action_type.replace('_', ' ')} for the prospect below.\n",
            f"Draft: {draft}\n",
            "Prospect Information:",
            f"- Name: {prospect_context.get('name', 'there')}",
        ]

        for label, key in (("Title", "title"), ("Company", "company"),
                           ("Location", "location"), ("Industry", "industry")):
            if prospect_context.get(key):
                parts.append(f"- {label}: {prospect_context[key]}")

        parts.append("\nGuidelines:")
        parts.append("1. Keep the message between 50-150 words")
        if step.action_type == "connection_request":
            parts.append("2. Stay under 300 characters (LinkedIn connection note limit)")
        else:
            parts.append("2. Include a clear call to action")
        parts.append("3. Avoid being salesy or pushy")
        parts.append("4. Return only the message text")

        return "\n".join(parts)
