"""Tests for the approval collaborator."""
import json

import httpx
import pytest

from code_gatekeeper.approval import ApprovalService, generate_code_review, placeholder_pr_url
from code_gatekeeper.session_schema import QuizResult

WEBHOOK = "https://n8n.test/webhook/gatekeeper"


@pytest.fixture
def webhook_config(config):
    config.credentials.webhook_url = WEBHOOK
    return config


def _service(config, handler) -> ApprovalService:
    return ApprovalService(config, transport=httpx.MockTransport(handler))


class TestLocalDecision:
    """Without a webhook the record is synthesized locally."""

    @pytest.mark.asyncio
    async def test_approved(self, config):
        record = await ApprovalService(config).decide(80)
        assert record.approved is True
        assert record.external_reference.startswith("https://github.com/your-org/your-repo/pull/")
        assert record.feedback == "Code approved with score 80/100. PR created successfully."

    @pytest.mark.asyncio
    async def test_blocked(self, config):
        record = await ApprovalService(config).decide(55)
        assert record.approved is False
        assert record.external_reference is None
        assert "Score 55/100 is below the 70% threshold" in record.feedback

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, config):
        assert (await ApprovalService(config).decide(70)).approved is True
        assert (await ApprovalService(config).decide(69)).approved is False


class TestWebhook:
    """Webhook notification and fallback."""

    @pytest.mark.asyncio
    async def test_payload_and_response(self, webhook_config, artifact):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"prUrl": "https://github.com/acme/app/pull/7", "feedback": "Merged"})

        results = [QuizResult(segment_id="block_1", user_explanation="timestamps", score=90, passed=True)]
        record = await _service(webhook_config, handler).decide(85, artifact, results)

        assert record.approved is True
        assert record.external_reference == "https://github.com/acme/app/pull/7"
        assert record.feedback == "Merged"
        assert seen["url"] == WEBHOOK
        body = seen["body"]
        assert body["code"] == artifact.source_text
        assert body["language"] == "typescript"
        assert body["overallScore"] == 85
        assert body["approved"] is True
        assert body["quizResults"][0]["blockId"] == "block_1"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_default_feedback(self, webhook_config, artifact):
        record = await _service(webhook_config, lambda r: httpx.Response(200, json={})).decide(90, artifact)
        assert record.feedback == "Code approved and workflow triggered!"
        assert record.external_reference.startswith("https://github.com/your-org/your-repo/pull/")

    @pytest.mark.asyncio
    async def test_webhook_cannot_approve_low_score(self, webhook_config, artifact):
        handler = lambda r: httpx.Response(200, json={"prUrl": "https://github.com/acme/app/pull/8"})
        record = await _service(webhook_config, handler).decide(40, artifact)
        assert record.approved is False

    @pytest.mark.asyncio
    async def test_http_error_falls_back(self, webhook_config, artifact):
        record = await _service(webhook_config, lambda r: httpx.Response(500)).decide(80, artifact)
        assert record.approved is True
        assert record.feedback == "Code approved with score 80/100. PR created successfully."

    @pytest.mark.asyncio
    async def test_network_error_falls_back(self, webhook_config, artifact):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        record = await _service(webhook_config, handler).decide(60, artifact)
        assert record.approved is False

    @pytest.mark.asyncio
    async def test_non_json_falls_back(self, webhook_config, artifact):
        record = await _service(webhook_config, lambda r: httpx.Response(200, text="ok")).decide(75, artifact)
        assert record.feedback == "Code approved with score 75/100. PR created successfully."


def test_placeholder_pr_url_range():
    for _ in range(20):
        number = int(placeholder_pr_url().rsplit("/", 1)[1])
        assert 1 <= number <= 1000


def test_code_review():
    review = generate_code_review("const x = 1;", "typescript")
    assert review.startswith("## CodeRabbit Review Summary")
    assert "Add TypeScript types" in review
    assert "Add python types" in generate_code_review("x = 1", "python")
