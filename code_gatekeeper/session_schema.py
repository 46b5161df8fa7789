"""
Data model for Code Gatekeeper.

Pydantic models for generated artifacts, transcript entries and approval
records. Everything produced by a collaborator is frozen once created.
"""

from __future__ import annotations

import random
import time
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator


class SessionStatus(str, Enum):
    """Application-wide gatekeeper status."""

    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    ACTIVE = "active"
    # Reserved for a synchronous post-session grading step; no transition reaches it
    EVALUATING = "evaluating"
    PASSED = "passed"
    FAILED = "failed"


class SessionMode(str, Enum):
    """Kind of conversational session."""

    QUIZ = "quiz"
    TUTOR = "tutor"


class Speaker(str, Enum):
    """Author of a transcript entry."""

    USER = "user"
    AGENT = "agent"


class Segment(BaseModel):
    """A slice of generated code with its explanation and quiz question."""

    id: str
    code: str
    explanation: str = ""
    question: str = ""

    model_config = {"frozen": True}


class GeneratedArtifact(BaseModel):
    """Generated source text, its language and the annotated segments."""

    source_text: str
    language: str = "typescript"
    segments: tuple[Segment, ...] = ()

    model_config = {"frozen": True}

    @field_validator("language", mode="before")
    @classmethod
    def _default_language(cls, value: object) -> object:
        return value or "typescript"

    @model_validator(mode="after")
    def _unique_segment_ids(self) -> "GeneratedArtifact":
        ids = [s.id for s in self.segments]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Segment ids must be unique: {ids}")
        return self

    @classmethod
    def from_payload(cls, payload: dict) -> "GeneratedArtifact":
        """
        Build an artifact from the generation JSON payload.

        The payload uses the wire names ``code``, ``language`` and ``blocks``.
        Blocks without an id get ``block_<n>`` (1-based position).
        """
        blocks = payload.get("blocks") or []
        segments = []
        for index, block in enumerate(blocks):
            segments.append(
                Segment(
                    id=str(block.get("id") or f"block_{index + 1}"),
                    code=str(block.get("code", "")),
                    explanation=str(block.get("explanation", "")),
                    question=str(block.get("question", "")),
                )
            )
        return cls(
            source_text=payload["code"],
            language=payload.get("language") or "typescript",
            segments=tuple(segments),
        )


def new_entry_id() -> str:
    """Timestamp plus random suffix. Collisions are possible but unlikely."""
    return f"{int(time.time() * 1000)}-{random.random()}"


class TranscriptEntry(BaseModel):
    """One normalized utterance."""

    id: str = Field(default_factory=new_entry_id)
    speaker: Speaker
    text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}


class ExplanationEvaluation(BaseModel):
    """LLM grading of a free-text explanation."""

    score: int = Field(ge=0, le=100)
    feedback: str = ""
    passed: bool = False

    model_config = {"frozen": True}


class QuizResult(BaseModel):
    """Per-segment outcome of an explanation quiz."""

    segment_id: str
    user_explanation: str
    score: int = Field(ge=0, le=100)
    passed: bool
    feedback: str = ""

    model_config = {"frozen": True}

    def to_wire(self) -> dict:
        """Camel-cased payload for the approval webhook."""
        return {
            "blockId": self.segment_id,
            "userExplanation": self.user_explanation,
            "score": self.score,
            "passed": self.passed,
            "feedback": self.feedback,
        }


class ApprovalRecord(BaseModel):
    """Outcome of the approval step."""

    approved: bool
    external_reference: str | None = None
    feedback: str | None = None

    model_config = {"frozen": True}


__all__ = [
    "ApprovalRecord",
    "ExplanationEvaluation",
    "GeneratedArtifact",
    "QuizResult",
    "Segment",
    "SessionMode",
    "SessionStatus",
    "Speaker",
    "TranscriptEntry",
    "new_entry_id",
]
