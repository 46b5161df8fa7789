"""
Keyword scoring heuristic for quiz sessions.

A crude stand-in for semantic grading: it reacts to what the agent says
("Correct!", "Not quite") rather than checking the user's answer. Treat the
keyword lists as configuration, not business logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .config import ScoringConfig


class ScoreSignal(Enum):
    """Which keyword class an utterance matched."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NONE = "none"


@dataclass(frozen=True)
class ScoreUpdate:
    """Result of scoring one utterance."""

    signal: ScoreSignal
    previous: int
    score: int
    keyword: str | None = None

    @property
    def delta(self) -> int:
        return self.score - self.previous


class ScoringHeuristic:
    """
    Priority-ordered substring scan, first match wins.

    Positive keywords are checked first. A positive keyword that only occurs
    inside a negative keyword ("correct" in "incorrect") does not count.
    """

    def __init__(self, config: ScoringConfig | None = None):
        self.config = config or ScoringConfig()
        self._positive = [k.lower() for k in self.config.positive_keywords if k]
        self._negative = [k.lower() for k in self.config.negative_keywords if k]
        # Negative keywords that would otherwise trigger a positive match
        self._masking = [n for n in self._negative if any(p in n for p in self._positive)]

    def clamp(self, score: int) -> int:
        return max(self.config.min_score, min(self.config.max_score, score))

    def classify(self, text: str) -> tuple[ScoreSignal, str | None]:
        """Classify an utterance and return the keyword that decided it."""
        lowered = (text or "").lower()

        masked = lowered
        for keyword in self._masking:
            masked = masked.replace(keyword, " ")

        for keyword in self._positive:
            if keyword in masked:
                return ScoreSignal.POSITIVE, keyword
        for keyword in self._negative:
            if keyword in lowered:
                return ScoreSignal.NEGATIVE, keyword
        return ScoreSignal.NONE, None

    def apply(self, score: int, text: str) -> ScoreUpdate:
        """
        Score one agent utterance.

        Args:
            score: Current session score
            text: Agent utterance

        Returns:
            The update, with the new score clamped to [min_score, max_score]
        """
        signal, keyword = self.classify(text)
        if signal is ScoreSignal.POSITIVE:
            new_score = self.clamp(score + self.config.positive_delta)
        elif signal is ScoreSignal.NEGATIVE:
            new_score = self.clamp(score - self.config.negative_delta)
        else:
            new_score = score
        return ScoreUpdate(signal=signal, previous=score, score=new_score, keyword=keyword)

    def passed(self, score: int) -> bool:
        """Pass iff score reaches the threshold."""
        return score >= self.config.pass_threshold


__all__ = ["ScoreSignal", "ScoreUpdate", "ScoringHeuristic"]
