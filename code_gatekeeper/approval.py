"""
Approval collaborator.

Turns a final quiz score into an ``ApprovalRecord``. When a workflow webhook
is configured it is notified; any webhook failure falls back to a locally
synthesized record. The local record's PR URL is a random placeholder, not a
real resource.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from datetime import datetime, timezone

import httpx

from .config import GatekeeperConfig
from .session_schema import ApprovalRecord, GeneratedArtifact, QuizResult

logger = logging.getLogger(__name__)

PLACEHOLDER_PR_BASE = "https://github.com/your-org/your-repo/pull"


def placeholder_pr_url() -> str:
    """A non-authoritative PR URL for demo approvals."""
    return f"{PLACEHOLDER_PR_BASE}/{random.randint(1, 1000)}"


class ApprovalService:
    """Decide pass/fail for a score and notify the approval workflow."""

    def __init__(
        self,
        config: GatekeeperConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or GatekeeperConfig.load()
        self._transport = transport

    @property
    def threshold(self) -> int:
        return self.config.scoring.pass_threshold

    def is_approved(self, score: int) -> bool:
        return score >= self.threshold

    async def decide(
        self,
        score: int,
        artifact: GeneratedArtifact | None = None,
        results: Sequence[QuizResult] = (),
    ) -> ApprovalRecord:
        """
        Approve iff ``score`` reaches the threshold.

        Args:
            score: Final session score
            artifact: Code being approved (sent to the webhook)
            results: Per-segment results, if the quiz was graded per block

        Returns:
            The approval record; never raises for webhook failures
        """
        approved = self.is_approved(score)
        webhook_url = self.config.credentials.webhook_url

        if webhook_url:
            record = await self._notify_webhook(webhook_url, score, approved, artifact, results)
            if record is not None:
                return record

        return self.local_record(score)

    def local_record(self, score: int) -> ApprovalRecord:
        """Record synthesized without the workflow."""
        if self.is_approved(score):
            return ApprovalRecord(
                approved=True,
                external_reference=placeholder_pr_url(),
                feedback=f"Code approved with score {score}/100. PR created successfully.",
            )
        return ApprovalRecord(
            approved=False,
            feedback=(
                f"Code blocked. Score {score}/100 is below the {self.threshold}% threshold. "
                "Please review and try again."
            ),
        )

    async def _notify_webhook(
        self,
        url: str,
        score: int,
        approved: bool,
        artifact: GeneratedArtifact | None,
        results: Sequence[QuizResult],
    ) -> ApprovalRecord | None:
        body = {
            "code": artifact.source_text if artifact else "",
            "language": artifact.language if artifact else "",
            "quizResults": [r.to_wire() for r in results],
            "overallScore": score,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "approved": approved,
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.session.request_timeout_seconds,
            ) as client:
                response = await client.post(url, json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Approval webhook failed: {e}")
            return None

        if not isinstance(data, dict):
            data = {}

        if approved:
            default_feedback = "Code approved and workflow triggered!"
        else:
            default_feedback = self.local_record(score).feedback
        return ApprovalRecord(
            approved=approved,
            external_reference=data.get("prUrl") or (placeholder_pr_url() if approved else None),
            feedback=data.get("feedback") or default_feedback,
        )


CODE_REVIEW_TEMPLATE = """## CodeRabbit Review Summary

### Security
✅ No obvious security vulnerabilities detected

### Code Quality
- Clean code structure
- Proper error handling recommended
- Consider adding input validation

### Suggestions
1. Add {language} types for better type safety
2. Consider extracting reusable functions
3. Add unit tests for critical paths

**Overall**: Code looks good for merge after quiz verification."""


def generate_code_review(code: str, language: str) -> str:
    """Canned review summary shown next to the approval."""
    label = "TypeScript" if (language or "").lower() in ("", "typescript", "ts") else language
    return CODE_REVIEW_TEMPLATE.format(language=label)


__all__ = ["ApprovalService", "generate_code_review", "placeholder_pr_url"]
