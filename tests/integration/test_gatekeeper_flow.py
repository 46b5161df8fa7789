"""
End-to-end gatekeeper flow with in-memory collaborators.

Generation runs against a canned LLM reply, the session against the fake
transport, and approval against a mocked webhook.
"""

import json

import httpx
import pytest

from code_gatekeeper.approval import ApprovalService
from code_gatekeeper.code_generation import CodeGenerator
from code_gatekeeper.orchestrator import GatekeeperApp
from code_gatekeeper.session_schema import SessionStatus, Speaker
from code_gatekeeper.visualization import ExportFormat, SessionRenderer


@pytest.fixture
def webhook_calls():
    return []


@pytest.fixture
def app(config, transport, handshake, make_llm, generated_reply, webhook_calls):
    config.credentials.webhook_url = "https://n8n.test/webhook/gatekeeper"

    def handler(request: httpx.Request) -> httpx.Response:
        webhook_calls.append(json.loads(request.content))
        return httpx.Response(200, json={"feedback": "Workflow notified"})

    return GatekeeperApp(
        config=config,
        generator=CodeGenerator(config, client=make_llm(generated_reply)),
        approval=ApprovalService(config, transport=httpx.MockTransport(handler)),
        transport=transport,
        handshake=handshake,
    )


@pytest.mark.asyncio
async def test_rate_limiter_quiz_blocked(app, transport, webhook_calls):
    """Right then wrong answer: 50 -> 65 -> 55, blocked."""
    await app.generate("Create a rate limiter middleware for Express")
    assert app.status is SessionStatus.READY

    await app.start_quiz()
    transport.agent_says("What does the hits map store?")
    transport.user_says("Request timestamps per IP")
    transport.agent_says("Correct! Next: when does it reject a request?")
    assert app.state.score == 65
    transport.user_says("When the map is empty")
    transport.agent_says("Not quite. It rejects once the window is full.")
    assert app.state.score == 55

    transport.drop()

    assert app.status is SessionStatus.FAILED
    assert app.final_score == 55
    assert len(app.state.transcript) == 6

    record = await app.approve()

    assert record.approved is False
    assert record.external_reference is None
    assert record.feedback == "Workflow notified"
    assert webhook_calls[0]["overallScore"] == 55
    assert webhook_calls[0]["approved"] is False
    assert webhook_calls[0]["code"] == app.artifact.source_text


@pytest.mark.asyncio
async def test_rate_limiter_quiz_approved(app, transport, webhook_calls, tmp_path):
    await app.generate("Create a rate limiter middleware for Express")
    await app.start_quiz()
    transport.agent_says("Correct!")
    transport.agent_says("Exactly, that's the sliding window.")
    await app.end_session()

    assert app.status is SessionStatus.PASSED
    record = await app.approve()
    assert record.approved is True
    assert record.external_reference.startswith("https://github.com/your-org/your-repo/pull/")

    path = tmp_path / "transcript.md"
    SessionRenderer(app.state).export(ExportFormat.MARKDOWN, path)
    assert "Exactly, that's the sliding window." in path.read_text()


@pytest.mark.asyncio
async def test_tutor_then_quiz(app, transport):
    """A tutor session leaves the artifact ready for the quiz."""
    await app.generate("Create a rate limiter middleware for Express")
    await app.start_tutor("Spread/Rest Operators")
    transport.agent_says("Let me teach you about Spread/Rest Operators. Looking at this code...")
    await app.end_session()

    assert app.status is SessionStatus.READY
    assert app.state.transcript[-1].speaker is Speaker.AGENT

    await app.start_quiz()
    assert app.state.score == 50
    assert app.state.transcript[0].text.startswith("Connected!")
