"""
Conversational session manager for Code Gatekeeper.

Owns one remote conversation at a time: opens it seeded with a prompt built
from the generated artifact, turns inbound events into transcript entries,
keeps the quiz score, and decides pass/fail when the session ends.

Transcript, score and status live in a ``SessionState`` object shared by
reference with whoever renders them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .config import GatekeeperConfig
from .errors import (
    ConfigurationError,
    GatekeeperError,
    SelectionError,
    SessionActiveError,
    TransportError,
)
from .events import normalize_event
from .prompts import (
    QUIZ_FIRST_MESSAGE,
    TUTOR_FIRST_MESSAGE,
    build_quiz_agent_prompt,
    build_tutor_prompt,
)
from .scoring import ScoreSignal, ScoringHeuristic
from .session_schema import (
    GeneratedArtifact,
    SessionMode,
    SessionStatus,
    Speaker,
    TranscriptEntry,
)
from .topics import extract_topics
from .voice_agent import (
    MicrophoneGate,
    SessionTransport,
    SignedUrlClient,
    TextModeMicrophone,
    WebSocketTransport,
    build_overrides,
)

logger = logging.getLogger(__name__)

CONNECTED_MESSAGE = "Connected! The agent should start speaking..."
TUTOR_ENDED_MESSAGE = "Session ended. Happy coding!"
TRANSPORT_ERROR_HINT = 'Make sure your ElevenLabs agent has "Override" enabled in the agent settings.'

# Called with (passed, score) when a quiz session reaches a verdict
CompletionCallback = Callable[[bool, int], None]


@dataclass
class SessionState:
    """
    Mutable state of the current session.

    ``score`` is None outside quiz sessions.
    """

    status: SessionStatus = SessionStatus.IDLE
    mode: SessionMode | None = None
    topic: str | None = None
    transcript: list[TranscriptEntry] = field(default_factory=list)
    score: int | None = None

    def append(self, speaker: Speaker, text: str) -> TranscriptEntry:
        """Append a transcript entry and return it."""
        entry = TranscriptEntry(speaker=speaker, text=text)
        self.transcript.append(entry)
        return entry

    def begin(self, mode: SessionMode, topic: str | None, seed_score: int | None) -> None:
        """Clear the transcript and seed the score for a new session."""
        self.transcript.clear()
        self.mode = mode
        self.topic = topic
        self.score = seed_score


class ConversationSessionManager:
    """
    Manage a single conversation with the remote voice agent.

    Implements the transport callbacks (``on_connected``, ``on_disconnected``,
    ``on_message``, ``on_error``); the transport is injected so tests can
    play inbound events without a network or microphone.
    """

    def __init__(
        self,
        config: GatekeeperConfig | None = None,
        state: SessionState | None = None,
        transport: SessionTransport | None = None,
        microphone: MicrophoneGate | None = None,
        handshake: SignedUrlClient | None = None,
        scoring: ScoringHeuristic | None = None,
        on_complete: CompletionCallback | None = None,
    ):
        self.config = config or GatekeeperConfig.load()
        self.state = state if state is not None else SessionState()
        self.transport = transport if transport is not None else WebSocketTransport()
        self.microphone = microphone if microphone is not None else TextModeMicrophone()
        self.handshake = handshake if handshake is not None else SignedUrlClient(self.config)
        self.scoring = scoring if scoring is not None else ScoringHeuristic(self.config.scoring)
        self.on_complete = on_complete
        self._open = False
        self._holding_microphone = False
        # Status to return to when a tutor session ends
        self._resume_status: SessionStatus = SessionStatus.READY

    @property
    def is_open(self) -> bool:
        """True while a session channel is open."""
        return self._open

    def _check_start(
        self,
        artifact: GeneratedArtifact | None,
        mode: SessionMode,
        selected_topic: str | None,
    ) -> None:
        missing = self.config.missing_credentials()
        if missing:
            raise ConfigurationError(missing)

        if mode is SessionMode.TUTOR and artifact is not None:
            topics = extract_topics(artifact.source_text)
            if topics and not selected_topic:
                raise SelectionError("Select a topic to learn about first")
            if selected_topic and selected_topic not in topics:
                raise SelectionError(f"Unknown topic: {selected_topic}")

        if self._open or self.state.status is SessionStatus.ACTIVE:
            raise SessionActiveError("A session is already active")

        if mode is SessionMode.QUIZ and artifact is None:
            raise GatekeeperError("Generate code before starting the quiz")

    def _session_prompt(
        self,
        artifact: GeneratedArtifact | None,
        mode: SessionMode,
        selected_topic: str | None,
    ) -> tuple[str, str | None]:
        if mode is SessionMode.QUIZ:
            return build_quiz_agent_prompt(artifact), QUIZ_FIRST_MESSAGE
        # A code-specific lecture opens with its own instructed line
        first_message = None if artifact is not None and selected_topic else TUTOR_FIRST_MESSAGE
        return build_tutor_prompt(artifact, selected_topic), first_message

    async def start_session(
        self,
        artifact: GeneratedArtifact | None,
        mode: SessionMode = SessionMode.QUIZ,
        selected_topic: str | None = None,
    ) -> None:
        """
        Open a quiz or tutor session.

        Args:
            artifact: Generated code (required for quiz mode)
            mode: Quiz or tutor
            selected_topic: Tutor topic, one of the artifact's extracted topics

        Raises:
            ConfigurationError: Required credentials missing (no network call)
            SessionActiveError: A session is already open
            SelectionError: Tutor mode without a valid topic
            MicrophonePermissionError: Capture denied or unavailable
            HandshakeError: Signed URL request failed (InvalidAgentError on 404)
            TransportError: The channel could not be opened
        """
        self._check_start(artifact, mode, selected_topic)

        try:
            await self.microphone.acquire()
            self._holding_microphone = True

            signed_url = await self.handshake.get_signed_url()

            prompt, first_message = self._session_prompt(artifact, mode, selected_topic)
            overrides = build_overrides(prompt, first_message, text_only=self.config.session.text_only)

            seed = self.config.scoring.seed_score if mode is SessionMode.QUIZ else None
            self.state.begin(mode, selected_topic, seed)
            if self.state.status is not SessionStatus.ACTIVE:
                self._resume_status = self.state.status

            self._open = True
            logger.info(f"Opening {mode.value} session")
            await self.transport.open(signed_url, overrides, self)
        except GatekeeperError as e:
            self._open = False
            self._release_microphone()
            logger.error(f"Failed to start {mode.value} session: {e}")
            self.state.append(Speaker.AGENT, f"Failed to start: {e}")
            raise

    async def end_session(self) -> None:
        """Close the session channel. No-op when no session is open."""
        if not self._open:
            return
        logger.info("Ending session")
        await self.transport.close()

    async def send_text(self, text: str) -> None:
        """Send a typed user message over the open channel."""
        if not self._open:
            raise TransportError("No active session")
        await self.transport.send_user_message(text)

    # Transport callbacks

    def on_connected(self) -> None:
        logger.info("Connected to voice agent")
        self.state.status = SessionStatus.ACTIVE
        self.state.append(Speaker.AGENT, CONNECTED_MESSAGE)

    def on_disconnected(self) -> None:
        logger.info("Disconnected from voice agent")
        was_open = self._open
        self._open = False
        self._release_microphone()

        if not was_open or self.state.status is not SessionStatus.ACTIVE:
            return

        if self.state.mode is SessionMode.QUIZ:
            score = self.state.score if self.state.score is not None else 0
            passed = self.scoring.passed(score)
            self.state.status = SessionStatus.PASSED if passed else SessionStatus.FAILED
            logger.info(f"Quiz finished with score {score}: {'passed' if passed else 'failed'}")
            if self.on_complete is not None:
                self.on_complete(passed, score)
        else:
            self.state.status = self._resume_status
            self.state.append(Speaker.AGENT, TUTOR_ENDED_MESSAGE)

    def on_message(self, event: Any) -> None:
        logger.debug(f"Inbound event: {event!r}")
        utterance = normalize_event(event)
        if utterance is None:
            return

        self.state.append(utterance.speaker, utterance.text)

        if (
            self.state.mode is SessionMode.QUIZ
            and utterance.speaker is Speaker.AGENT
            and self.state.score is not None
        ):
            update = self.scoring.apply(self.state.score, utterance.text)
            if update.signal is not ScoreSignal.NONE:
                logger.info(f"Score {update.previous} -> {update.score} ({update.keyword!r})")
            self.state.score = update.score

    def on_error(self, error: BaseException | str) -> None:
        message = error if isinstance(error, str) else str(error)
        message = message or "Connection failed"
        logger.error(f"Voice agent error: {message}")
        self.state.append(Speaker.AGENT, f"Error: {message}. {TRANSPORT_ERROR_HINT}")

    def _release_microphone(self) -> None:
        if self._holding_microphone:
            self.microphone.release()
            self._holding_microphone = False


__all__ = [
    "CONNECTED_MESSAGE",
    "CompletionCallback",
    "ConversationSessionManager",
    "SessionState",
    "TUTOR_ENDED_MESSAGE",
]
