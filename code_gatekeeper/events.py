"""
Inbound session event normalizer.

The voice service has emitted several payload shapes over time. Each known
shape is parsed into a small tagged variant; anything else becomes
``IgnoredEvent`` rather than a runtime type fault.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from .session_schema import Speaker

logger = logging.getLogger(__name__)

USER_TRANSCRIPT_TYPES = frozenset({"user_transcript", "transcript"})
AGENT_RESPONSE_TYPE = "agent_response"
# Legacy ``source`` value used for the agent
LEGACY_AGENT_SOURCE = "ai"


@dataclass(frozen=True)
class UserTranscriptEvent:
    """The user's speech, transcribed by the service."""

    text: str


@dataclass(frozen=True)
class AgentResponseEvent:
    """An utterance by the agent."""

    text: str


@dataclass(frozen=True)
class LegacyMessageEvent:
    """Older ``{source, message}`` payload."""

    source: str
    text: str


@dataclass(frozen=True)
class IgnoredEvent:
    """Unknown shape, or a known shape without text."""

    kind: str


InboundEvent = Union[UserTranscriptEvent, AgentResponseEvent, LegacyMessageEvent, IgnoredEvent]


@dataclass(frozen=True)
class Utterance:
    """A normalized ``(speaker, text)`` pair."""

    speaker: Speaker
    text: str


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _nested(event: dict[str, Any], container: str, key: str) -> str:
    inner = event.get(container)
    if isinstance(inner, dict):
        return _text(inner.get(key))
    return ""


def _first_text(event: dict[str, Any], nested: str) -> str:
    return nested or _text(event.get("text")) or _text(event.get("message"))


def parse_event(raw: Any) -> InboundEvent:
    """
    Parse a raw inbound payload into a tagged variant.

    Args:
        raw: Decoded payload (dict) or a JSON string

    Returns:
        The matching variant, ``IgnoredEvent`` for anything unrecognized
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return IgnoredEvent(kind="unparseable")

    if not isinstance(raw, dict):
        return IgnoredEvent(kind=type(raw).__name__)

    event_type = raw.get("type")

    if event_type in USER_TRANSCRIPT_TYPES:
        text = _first_text(raw, _nested(raw, "user_transcription_event", "user_transcript"))
        return UserTranscriptEvent(text=text) if text else IgnoredEvent(kind=str(event_type))

    if event_type == AGENT_RESPONSE_TYPE:
        text = _first_text(raw, _nested(raw, "agent_response_event", "agent_response"))
        return AgentResponseEvent(text=text) if text else IgnoredEvent(kind=event_type)

    source = raw.get("source")
    message = _text(raw.get("message"))
    if isinstance(source, str) and source and message:
        return LegacyMessageEvent(source=source, text=message)

    return IgnoredEvent(kind=str(event_type or "unknown"))


def to_utterance(event: InboundEvent) -> Utterance | None:
    """Map a variant to a ``(speaker, text)`` pair, or None to drop it."""
    if isinstance(event, UserTranscriptEvent):
        return Utterance(Speaker.USER, event.text)
    if isinstance(event, AgentResponseEvent):
        return Utterance(Speaker.AGENT, event.text)
    if isinstance(event, LegacyMessageEvent):
        speaker = Speaker.AGENT if event.source == LEGACY_AGENT_SOURCE else Speaker.USER
        return Utterance(speaker, event.text)
    return None


def normalize_event(raw: Any) -> Utterance | None:
    """Parse and normalize in one step."""
    event = parse_event(raw)
    if isinstance(event, IgnoredEvent):
        logger.debug(f"Ignoring inbound event: {event.kind}")
    return to_utterance(event)


__all__ = [
    "AgentResponseEvent",
    "IgnoredEvent",
    "InboundEvent",
    "LegacyMessageEvent",
    "UserTranscriptEvent",
    "Utterance",
    "normalize_event",
    "parse_event",
    "to_utterance",
]
