"""Utility modules for Outreach Sequences."""

from .content_providers import (
    ContentProvider,
    RenderedContent,
    TemplateContentProvider,
    get_content_provider
)
from .openai_client import OpenAIContentProvider

__all__ = [
    "ContentProvider",
    "RenderedContent",
    "TemplateContentProvider",
    "OpenAIContentProvider",
    "get_content_provider"
]
