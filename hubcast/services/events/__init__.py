"""
Event classification and rendering.

Usage: `from hubcast.services.events import classify, render`

- classifier.py: RawActivityItem -> ClassifiedEvent
- renderer.py: ClassifiedEvent -> RenderedMessage
- types.py: Payload dataclasses (one per GitHub event type) and Unhandled
"""

from hubcast.services.events.classifier import classify
from hubcast.services.events.renderer import describe_unhandled, render, render_body
from hubcast.services.events.types import (
    ClassifiedEvent,
    Commit,
    EventPayload,
    RenderedMessage,
    Unhandled,
    WikiPage,
)

__all__ = [
    "classify",
    "render",
    "render_body",
    "describe_unhandled",
    "ClassifiedEvent",
    "Commit",
    "EventPayload",
    "RenderedMessage",
    "Unhandled",
    "WikiPage",
]
