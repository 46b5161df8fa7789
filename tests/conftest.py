"""
Shared fixtures for Code Gatekeeper tests.

Provides a fully configured config, an in-memory session transport that
plays inbound events through the callbacks, and a canned LLM client.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from code_gatekeeper.api_client import APIResponse, Provider
from code_gatekeeper.config import CredentialsConfig, GatekeeperConfig
from code_gatekeeper.errors import MicrophonePermissionError
from code_gatekeeper.session_schema import GeneratedArtifact, Segment

RATE_LIMITER_CODE = """import { Request, Response, NextFunction } from 'express';

interface RateLimitOptions {
  windowMs: number;
  max: number;
}

export const rateLimiter = (options: RateLimitOptions) => {
  const hits = new Map<string, number[]>();
  return (req: Request, res: Response, next: NextFunction) => {
    const now = Date.now();
    const recent = (hits.get(req.ip) ?? []).filter((t) => now - t < options.windowMs);
    if (recent.length >= options.max) {
      return res.status(429).json({ error: 'Too many requests' });
    }
    hits.set(req.ip, [...recent, now]);
    next();
  };
};
"""


class FakeTransport:
    """
    In-memory ``SessionTransport``.

    ``open`` records the call and fires ``on_connected``; tests push events
    with ``emit`` and end the session with ``close`` or ``drop``.
    """

    def __init__(self, fail_with: Exception | None = None):
        self.fail_with = fail_with
        self.callbacks = None
        self.signed_url: str | None = None
        self.overrides: dict[str, Any] | None = None
        self.sent: list[str] = []
        self.open_calls = 0
        self.close_calls = 0

    @property
    def is_open(self) -> bool:
        return self.callbacks is not None

    async def open(self, signed_url, overrides, callbacks) -> None:
        self.open_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        self.signed_url = signed_url
        self.overrides = overrides
        self.callbacks = callbacks
        callbacks.on_connected()

    async def close(self) -> None:
        self.close_calls += 1
        self.drop()

    async def send_user_message(self, text: str) -> None:
        self.sent.append(text)

    def emit(self, event: Any) -> None:
        self.callbacks.on_message(event)

    def agent_says(self, text: str) -> None:
        self.emit({"type": "agent_response", "agent_response_event": {"agent_response": text}})

    def user_says(self, text: str) -> None:
        self.emit({"type": "user_transcript", "user_transcription_event": {"user_transcript": text}})

    def drop(self) -> None:
        """Remote side closes the channel."""
        callbacks, self.callbacks = self.callbacks, None
        if callbacks is not None:
            callbacks.on_disconnected()


class DenyingMicrophone:
    """Microphone gate that always refuses."""

    def __init__(self):
        self.released = 0

    async def acquire(self) -> None:
        raise MicrophonePermissionError("Microphone permission denied")

    def release(self) -> None:
        self.released += 1


class FakeHandshake:
    """Signed URL client that never touches the network."""

    def __init__(self, error: Exception | None = None, url: str = "wss://agent.test/session?token=abc"):
        self.error = error
        self.url = url
        self.calls = 0

    async def get_signed_url(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.url


class FakeLLM:
    """Completion client returning queued replies (or raising queued errors)."""

    def __init__(self, *replies: str | Exception):
        self.replies = list(replies)
        self.prompts: list[str] = []

    async def complete(self, messages=None, prompt=None, system=None, model=None, max_tokens=None, temperature=None):
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return APIResponse(
            content=reply,
            input_tokens=10,
            output_tokens=20,
            model="fake-model",
            provider=Provider.ANTHROPIC,
        )


def generation_reply(code: str = RATE_LIMITER_CODE) -> str:
    """A fenced JSON generation reply, as the LLM tends to send it."""
    payload = {
        "code": code,
        "language": "typescript",
        "blocks": [
            {
                "id": "block_1",
                "code": "const hits = new Map<string, number[]>();",
                "explanation": "Stores request timestamps per client IP.",
                "question": "What does the hits map store?",
            },
            {
                "id": "block_2",
                "code": "if (recent.length >= options.max) {",
                "explanation": "Rejects the request with 429 once the window is full.",
                "question": "When does the middleware reject a request?",
            },
        ],
    }
    return f"Here you go:\n```json\n{json.dumps(payload)}\n```"


@pytest.fixture
def credentials() -> CredentialsConfig:
    return CredentialsConfig(
        elevenlabs_api_key="xi-test-key",
        elevenlabs_agent_id="agent-123",
        anthropic_api_key="sk-ant-test",
    )


@pytest.fixture
def config(credentials) -> GatekeeperConfig:
    """Fully configured config, independent of the environment."""
    return GatekeeperConfig(credentials=credentials)


@pytest.fixture
def unconfigured_config() -> GatekeeperConfig:
    return GatekeeperConfig(credentials=CredentialsConfig())


@pytest.fixture
def artifact() -> GeneratedArtifact:
    return GeneratedArtifact(
        source_text=RATE_LIMITER_CODE,
        language="typescript",
        segments=(
            Segment(
                id="block_1",
                code="const hits = new Map<string, number[]>();",
                explanation="Stores request timestamps per client IP.",
                question="What does the hits map store?",
            ),
            Segment(
                id="block_2",
                code="if (recent.length >= options.max) {",
                explanation="Rejects the request with 429 once the window is full.",
                question="When does the middleware reject a request?",
            ),
        ),
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def handshake() -> FakeHandshake:
    return FakeHandshake()


@pytest.fixture
def denying_microphone() -> DenyingMicrophone:
    return DenyingMicrophone()


@pytest.fixture
def make_llm():
    """Factory: ``make_llm(reply_or_error, ...)`` builds a canned client."""
    return FakeLLM


@pytest.fixture
def make_transport():
    """Factory for extra transports, e.g. ``make_transport(fail_with=...)``."""
    return FakeTransport


@pytest.fixture
def make_handshake():
    return FakeHandshake


@pytest.fixture
def generated_reply() -> str:
    return generation_reply()
