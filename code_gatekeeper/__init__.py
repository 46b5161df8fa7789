"""Code Gatekeeper: if you can't explain it, you can't ship it.

Generates code from a feature description with a hosted LLM, then quizzes the
developer about it through a hosted voice agent before approving it.

Layers:
- Collaborators: code generation, handshake/transport, approval webhook
- Core: conversational session manager + keyword scoring
- Presentation: transcript, score and status rendering
"""

__version__ = "0.1.0"

# Core
from .session_manager import ConversationSessionManager, SessionState
from .scoring import ScoringHeuristic, ScoreSignal, ScoreUpdate
from .events import normalize_event, parse_event
from .topics import extract_topics

# Collaborators
from .code_generation import CodeGenerator
from .approval import ApprovalService, generate_code_review
from .voice_agent import SignedUrlClient, TextModeMicrophone, WebSocketTransport
from .transcription import Transcriber
from .orchestrator import GatekeeperApp

# Types, errors & config
from .session_schema import (
    ApprovalRecord,
    GeneratedArtifact,
    Segment,
    SessionMode,
    SessionStatus,
    Speaker,
    TranscriptEntry,
)
from .errors import (
    ConfigurationError,
    GatekeeperError,
    GenerationError,
    HandshakeError,
    InvalidAgentError,
    MicrophonePermissionError,
    SelectionError,
    SessionActiveError,
    TransportError,
)
from .config import GatekeeperConfig, configure_logging

__all__ = [
    # Core
    "ConversationSessionManager",
    "SessionState",
    "ScoringHeuristic",
    "ScoreSignal",
    "ScoreUpdate",
    "normalize_event",
    "parse_event",
    "extract_topics",
    # Collaborators
    "CodeGenerator",
    "ApprovalService",
    "generate_code_review",
    "SignedUrlClient",
    "TextModeMicrophone",
    "WebSocketTransport",
    "Transcriber",
    "GatekeeperApp",
    # Types
    "ApprovalRecord",
    "GeneratedArtifact",
    "Segment",
    "SessionMode",
    "SessionStatus",
    "Speaker",
    "TranscriptEntry",
    # Errors
    "ConfigurationError",
    "GatekeeperError",
    "GenerationError",
    "HandshakeError",
    "InvalidAgentError",
    "MicrophonePermissionError",
    "SelectionError",
    "SessionActiveError",
    "TransportError",
    # Config
    "GatekeeperConfig",
    "configure_logging",
]
