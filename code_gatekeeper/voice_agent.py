"""
Voice agent plumbing: handshake, microphone gate and session transport.

The session manager only sees the ``SessionTransport`` and ``MicrophoneGate``
interfaces, so tests can drive a session without network or audio devices.
``WebSocketTransport`` is the real channel to the hosted conversational agent.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import aiohttp
import httpx

from .config import GatekeeperConfig
from .errors import HandshakeError, InvalidAgentError, MicrophonePermissionError, TransportError

logger = logging.getLogger(__name__)


class SessionCallbacks(Protocol):
    """Callbacks the transport invokes on the event loop."""

    def on_connected(self) -> None:
        ...

    def on_disconnected(self) -> None:
        ...

    def on_message(self, event: Any) -> None:
        ...

    def on_error(self, error: BaseException | str) -> None:
        ...


class SessionTransport(Protocol):
    """Bidirectional channel to the remote conversational agent."""

    @property
    def is_open(self) -> bool:
        ...

    async def open(self, signed_url: str, overrides: dict[str, Any], callbacks: SessionCallbacks) -> None:
        ...

    async def close(self) -> None:
        ...

    async def send_user_message(self, text: str) -> None:
        ...


class MicrophoneGate(Protocol):
    """Exclusive access to the capture device for the length of a session."""

    async def acquire(self) -> None:
        """Raises MicrophonePermissionError when denied or unavailable."""
        ...

    def release(self) -> None:
        ...


class TextModeMicrophone:
    """
    Gate for text-only sessions.

    No audio is captured, so permission is always granted; it still enforces
    exclusive use so two sessions cannot hold it at once.
    """

    def __init__(self) -> None:
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    async def acquire(self) -> None:
        if self._held:
            raise MicrophonePermissionError("Microphone is already in use by another session")
        self._held = True

    def release(self) -> None:
        self._held = False


def build_overrides(prompt: str, first_message: str | None = None, text_only: bool = True) -> dict[str, Any]:
    """Conversation overrides sent when the session opens."""
    agent: dict[str, Any] = {"prompt": {"prompt": prompt}}
    if first_message:
        agent["first_message"] = first_message
    overrides: dict[str, Any] = {"agent": agent}
    if text_only:
        overrides["conversation"] = {"text_only": True}
    return overrides


class SignedUrlClient:
    """Exchange the API key and agent id for a short-lived session URL."""

    def __init__(
        self,
        config: GatekeeperConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self._transport = transport

    async def get_signed_url(self) -> str:
        """
        Request a signed session URL.

        Raises:
            InvalidAgentError: The agent id is unknown (HTTP 404)
            HandshakeError: Any other failure
        """
        credentials = self.config.credentials
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.session.request_timeout_seconds,
            ) as client:
                response = await client.get(
                    self.config.session.signed_url_endpoint,
                    params={"agent_id": credentials.elevenlabs_agent_id},
                    headers={"xi-api-key": credentials.elevenlabs_api_key},
                )
        except httpx.RequestError as e:
            logger.error(f"Handshake request failed: {e}")
            raise HandshakeError(f"Failed to connect to ElevenLabs: {e}") from e

        if response.status_code == 404:
            raise InvalidAgentError()
        if response.is_error:
            logger.error(f"Handshake returned HTTP {response.status_code}: {response.text[:200]}")
            raise HandshakeError("Failed to connect to ElevenLabs")

        try:
            signed_url = response.json().get("signed_url")
        except (ValueError, AttributeError) as e:
            raise HandshakeError("Failed to get signed URL") from e
        if not isinstance(signed_url, str) or not signed_url:
            raise HandshakeError("Failed to get signed URL")
        return signed_url


class WebSocketTransport:
    """
    Websocket session channel.

    Sends the initiation payload with the overrides, answers pings, and hands
    every other JSON event to ``callbacks.on_message``. ``on_disconnected``
    fires exactly once, whichever side closes.
    """

    def __init__(self, session: aiohttp.ClientSession | None = None):
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task | None = None
        self._callbacks: SessionCallbacks | None = None

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def open(self, signed_url: str, overrides: dict[str, Any], callbacks: SessionCallbacks) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(signed_url)
            await self._ws.send_json(
                {
                    "type": "conversation_initiation_client_data",
                    "conversation_config_override": overrides,
                }
            )
        except aiohttp.ClientError as e:
            await self._release_session()
            raise TransportError(f"Failed to open session channel: {e}") from e

        self._callbacks = callbacks
        callbacks.on_connected()
        self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        assert self._ws is not None and self._callbacks is not None
        callbacks = self._callbacks
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._dispatch(msg.data, callbacks)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    callbacks.on_error(TransportError(str(self._ws.exception() or "Connection failed")))
        except aiohttp.ClientError as e:
            callbacks.on_error(TransportError(str(e)))
        finally:
            self._callbacks = None
            self._ws = None
            await self._release_session()
            callbacks.on_disconnected()

    async def _dispatch(self, data: str, callbacks: SessionCallbacks) -> None:
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Dropping non-JSON session frame")
            return

        if isinstance(event, dict) and event.get("type") == "ping":
            ping = event.get("ping_event") or {}
            await self._ws.send_json({"type": "pong", "event_id": ping.get("event_id")})
            return
        callbacks.on_message(event)

    async def send_user_message(self, text: str) -> None:
        if not self.is_open:
            raise TransportError("Session is not connected")
        await self._ws.send_json({"type": "user_message", "text": text})

    async def close(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._reader is not None:
            await self._reader
            self._reader = None
        self._ws = None
        await self._release_session()

    async def _release_session(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None


__all__ = [
    "MicrophoneGate",
    "SessionCallbacks",
    "SessionTransport",
    "SignedUrlClient",
    "TextModeMicrophone",
    "WebSocketTransport",
    "build_overrides",
]
