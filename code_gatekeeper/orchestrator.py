"""
Application flow for Code Gatekeeper.

``GatekeeperApp`` owns the generated artifact and the gatekeeper status and
wires the collaborators together:

    prompt -> generate -> ready -> quiz session -> passed|failed -> approve
                                                               -> reset -> idle

Front-ends (the terminal script, the HTTP server) drive it and read back
its state and notifications.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from .approval import ApprovalService, generate_code_review
from .code_generation import CodeGenerator
from .config import GatekeeperConfig
from .errors import GatekeeperError, GenerationError, SessionActiveError
from .session_manager import ConversationSessionManager, SessionState
from .session_schema import (
    ApprovalRecord,
    GeneratedArtifact,
    QuizResult,
    SessionMode,
    SessionStatus,
)
from .topics import extract_topics
from .voice_agent import MicrophoneGate, SessionTransport, SignedUrlClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A transient user-facing message."""

    level: Literal["success", "error", "info"]
    message: str


class GatekeeperApp:
    """Top-level application state and control flow."""

    def __init__(
        self,
        config: GatekeeperConfig | None = None,
        generator: CodeGenerator | None = None,
        approval: ApprovalService | None = None,
        transport: SessionTransport | None = None,
        microphone: MicrophoneGate | None = None,
        handshake: SignedUrlClient | None = None,
    ):
        self.config = config or GatekeeperConfig.load()
        self.state = SessionState()
        self.generator = generator or CodeGenerator(self.config)
        self.approval_service = approval or ApprovalService(self.config)
        self.sessions = ConversationSessionManager(
            config=self.config,
            state=self.state,
            transport=transport,
            microphone=microphone,
            handshake=handshake,
            on_complete=self._on_quiz_complete,
        )
        self.artifact: GeneratedArtifact | None = None
        self.selected_topic: str | None = None
        self.final_score: int = 0
        self.quiz_passed: bool = False
        self.approval: ApprovalRecord | None = None
        self.notifications: list[Notification] = []

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def topics(self) -> list[str]:
        """Tutor topics for the current artifact (empty before generation)."""
        if self.artifact is None:
            return []
        return extract_topics(self.artifact.source_text)

    @property
    def can_start_quiz(self) -> bool:
        return self.config.is_configured() and self.status is SessionStatus.READY

    def notify(self, level: Literal["success", "error", "info"], message: str) -> None:
        self.notifications.append(Notification(level, message))

    def drain_notifications(self) -> list[Notification]:
        """Return and clear pending notifications."""
        pending, self.notifications = self.notifications, []
        return pending

    async def generate(self, feature_prompt: str) -> GeneratedArtifact:
        """
        Generate code and move to ``ready``.

        Raises:
            GenerationError: Status reverts to idle and an error notification
                is recorded
        """
        if self.status not in (SessionStatus.IDLE, SessionStatus.GENERATING):
            raise GatekeeperError("Reset before generating new code")

        self.state.status = SessionStatus.GENERATING
        self.artifact = None
        self.selected_topic = None
        try:
            artifact = await self.generator.generate(feature_prompt)
        except GenerationError as e:
            logger.error(f"Generation failed: {e}")
            self.state.status = SessionStatus.IDLE
            self.notify("error", "Failed to generate code. Check your API key.")
            raise

        self.artifact = artifact
        self.state.status = SessionStatus.READY
        self.notify("success", "Code generated! Ready for the quiz.")
        return artifact

    def select_topic(self, topic: str) -> None:
        self.selected_topic = topic

    async def start_quiz(self) -> None:
        """Open the quiz session for the current artifact."""
        if self.status is not SessionStatus.READY:
            if self.status is SessionStatus.ACTIVE:
                raise SessionActiveError("A session is already active")
            raise GatekeeperError(f"Cannot start a quiz while {self.status.value}")
        await self._start(SessionMode.QUIZ, None)

    async def start_tutor(self, topic: str | None = None) -> None:
        """Open a tutor session on ``topic`` (or the selected topic)."""
        topic = topic or self.selected_topic
        if topic:
            self.selected_topic = topic
        await self._start(SessionMode.TUTOR, topic)

    async def _start(self, mode: SessionMode, topic: str | None) -> None:
        try:
            await self.sessions.start_session(self.artifact, mode, topic)
        except GatekeeperError as e:
            self.notify("error", f"Failed to start: {e}")
            raise
        if mode is SessionMode.TUTOR:
            self.notify("success", "Voice tutor connected!")

    async def end_session(self) -> None:
        await self.sessions.end_session()

    async def send_text(self, text: str) -> None:
        await self.sessions.send_text(text)

    def _on_quiz_complete(self, passed: bool, score: int) -> None:
        self.quiz_passed = passed
        self.final_score = score
        if passed:
            self.notify("success", "Quiz passed! You can now ship the code.")
        else:
            self.notify("error", "Quiz failed. Review the code and try again.")

    async def approve(self, results: Sequence[QuizResult] = ()) -> ApprovalRecord:
        """Run the approval step for a finished quiz."""
        if self.status not in (SessionStatus.PASSED, SessionStatus.FAILED):
            raise GatekeeperError("Finish the quiz before requesting approval")
        self.approval = await self.approval_service.decide(self.final_score, self.artifact, results)
        return self.approval

    def review(self) -> str:
        """Canned code review for the current artifact."""
        if self.artifact is None:
            raise GatekeeperError("No code to review")
        return generate_code_review(self.artifact.source_text, self.artifact.language)

    def reset(self) -> None:
        """Drop the artifact and verdict and return to idle."""
        if self.sessions.is_open:
            raise SessionActiveError("End the session before resetting")
        self.state.status = SessionStatus.IDLE
        self.state.transcript.clear()
        self.state.mode = None
        self.state.topic = None
        self.state.score = None
        self.artifact = None
        self.selected_topic = None
        self.final_score = 0
        self.quiz_passed = False
        self.approval = None


__all__ = ["GatekeeperApp", "Notification"]
