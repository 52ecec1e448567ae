"""
Unit tests for sequence content providers.

The OpenAI client is replaced with AsyncMock doubles; no network access.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.features.business_automations.outreach_sequences.exceptions import (
    ContentRenderError,
    ExecutionFailure,
)
from app.features.business_automations.outreach_sequences.utils import (
    OpenAIContentProvider,
    TemplateContentProvider,
    get_content_provider,
)


def make_step(content="Hi {{ first_name }}", subject=None, action_type="message", step_order=1):
    return SimpleNamespace(content=content, subject=subject, action_type=action_type, step_order=step_order)


CONTEXT = {
    "prospect_id": "p1",
    "name": "Jane Doe",
    "first_name": "Jane",
    "company": "Acme",
    "title": "CTO",
}


def openai_response(text, tokens=42):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(total_tokens=tokens),
    )


@pytest.mark.unit
class TestTemplateContentProvider:
    """Test Jinja2 template rendering."""

    async def test_renders_content_and_subject(self):
        provider = TemplateContentProvider()
        rendered = await provider.render(
            make_step("Hi {{ first_name }} at {{ company }}", subject="For {{ name }}"), CONTEXT
        )

        assert rendered.content == "Hi Jane at Acme"
        assert rendered.subject == "For Jane Doe"

    async def test_missing_variables_render_empty(self):
        provider = TemplateContentProvider()
        rendered = await provider.render(make_step("Hi {{ nickname }}there"), CONTEXT)
        assert rendered.content == "Hi there"

    async def test_no_subject_is_none(self):
        rendered = await TemplateContentProvider().render(make_step(), CONTEXT)
        assert rendered.subject is None

    async def test_syntax_error_raises_content_render_error(self):
        with pytest.raises(ContentRenderError) as exc_info:
            await TemplateContentProvider().render(make_step("Hi {{ first_name "), CONTEXT)

        assert isinstance(exc_info.value, ExecutionFailure)

    async def test_empty_render_raises(self):
        with pytest.raises(ContentRenderError):
            await TemplateContentProvider().render(make_step("{{ missing }}"), CONTEXT)

    async def test_sandbox_blocks_unsafe_attribute_access(self):
        with pytest.raises(ContentRenderError):
            await TemplateContentProvider().render(
                make_step("{{ first_name.__class__.__mro__[1].__subclasses__() }}"), CONTEXT
            )


@pytest.mark.unit
class TestOpenAIContentProvider:
    """Test AI personalization with a mocked client."""

    def make_client(self, **create_kwargs):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(**create_kwargs)
        return client

    async def test_personalizes_rendered_draft(self):
        client = self.make_client(return_value=openai_response("  Hi Jane, great work at Acme!  "))
        provider = OpenAIContentProvider(client=client, model="gpt-test")

        rendered = await provider.render(make_step(subject="Hello {{ first_name }}"), CONTEXT)

        assert rendered.content == "Hi Jane, great work at Acme!"
        assert rendered.subject == "Hello Jane"

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        prompt = kwargs["messages"][1]["content"]
        assert "Draft: Hi Jane" in prompt
        assert "- Company: Acme" in prompt

    async def test_connection_request_prompt_mentions_length_limit(self):
        client = self.make_client(return_value=openai_response("Hi"))
        provider = OpenAIContentProvider(client=client)

        await provider.render(make_step(action_type="connection_request"), CONTEXT)

        prompt = client.chat.completions.create.await_args.kwargs["messages"][1]["content"]
        assert "300 characters" in prompt

    async def test_missing_api_key_raises(self):
        provider = OpenAIContentProvider(api_key=None)
        with pytest.raises(ContentRenderError):
            await provider.render(make_step(), CONTEXT)

    async def test_api_failure_raises_content_render_error(self):
        client = self.make_client(side_effect=RuntimeError("rate limited"))
        provider = OpenAIContentProvider(client=client)

        with pytest.raises(ContentRenderError) as exc_info:
            await provider.render(make_step(), CONTEXT)

        assert "rate limited" in str(exc_info.value)

    async def test_empty_completion_raises(self):
        client = self.make_client(return_value=openai_response("   "))
        with pytest.raises(ContentRenderError):
            await OpenAIContentProvider(client=client).render(make_step(), CONTEXT)


@pytest.mark.unit
class TestGetContentProvider:
    """Test provider selection from settings."""

    def settings(self, provider):
        return SimpleNamespace(
            SEQUENCE_CONTENT_PROVIDER=provider,
            OPENAI_API_KEY="sk-test",
            SEQUENCE_OPENAI_MODEL="gpt-4o-mini",
            SEQUENCE_OPENAI_TEMPERATURE=0.2,
        )

    def test_template_is_default(self):
        assert isinstance(get_content_provider(self.settings("template")), TemplateContentProvider)

    def test_openai_selected(self):
        provider = get_content_provider(self.settings("OpenAI"))
        assert isinstance(provider, OpenAIContentProvider)
        assert provider.temperature == 0.2

    def test_unknown_falls_back_to_template(self):
        assert isinstance(get_content_provider(self.settings("carrier-pigeon")), TemplateContentProvider)
