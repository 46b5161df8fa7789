"""
Error taxonomy for Code Gatekeeper.

Every failure degrades to a visible, recoverable state; none of these is
process-fatal. The ``surface`` attribute names where the failure is shown.
"""

from __future__ import annotations


class GatekeeperError(Exception):
    """Base class for all Code Gatekeeper errors."""

    surface: str = "notification"


class ConfigurationError(GatekeeperError):
    """Required credentials are missing."""

    surface = "banner"

    def __init__(self, missing: list[str] | None = None, message: str | None = None):
        self.missing = list(missing or [])
        if message is None:
            names = ", ".join(self.missing) or "credentials"
            message = f"API keys not configured ({names}). Add them to your .env file."
        super().__init__(message)


class GenerationError(GatekeeperError):
    """Code generation call failed or returned an unusable payload."""


class HandshakeError(GatekeeperError):
    """Could not obtain a signed session URL from the voice service."""

    surface = "transcript"


class InvalidAgentError(HandshakeError):
    """The configured agent id does not exist on the voice service."""

    REMEDIATION = (
        "Invalid Agent ID. Create an agent at elevenlabs.io/app/conversational-ai "
        "and update ELEVENLABS_AGENT_ID"
    )

    def __init__(self, message: str | None = None):
        super().__init__(message or self.REMEDIATION)


class MicrophonePermissionError(GatekeeperError, PermissionError):
    """Microphone capture was denied or is unavailable."""

    surface = "transcript"


class SelectionError(GatekeeperError):
    """Tutor session requested without a valid topic selection."""


class SessionActiveError(GatekeeperError):
    """A session is already open."""


class TransportError(GatekeeperError):
    """The session channel failed mid-session."""

    surface = "transcript"


__all__ = [
    "ConfigurationError",
    "GatekeeperError",
    "GenerationError",
    "HandshakeError",
    "InvalidAgentError",
    "MicrophonePermissionError",
    "SelectionError",
    "SessionActiveError",
    "TransportError",
]
