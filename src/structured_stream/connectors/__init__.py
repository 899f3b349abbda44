"""
Upstream producers of fragment events.

``fragment_events`` adapts any iterable of text chunks; the OpenAI-compatible
source streams a chat completion over HTTP.
"""

from .fragment_sources import fragment_events
from .openai_compatible import OpenAICompatibleFragmentSource

__all__ = ["OpenAICompatibleFragmentSource", "fragment_events"]
