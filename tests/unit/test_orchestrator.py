"""Tests for the application flow."""
import pytest

from code_gatekeeper.api_client import LLMError
from code_gatekeeper.approval import ApprovalService
from code_gatekeeper.code_generation import CodeGenerator
from code_gatekeeper.errors import (
    ConfigurationError,
    GatekeeperError,
    GenerationError,
    SessionActiveError,
)
from code_gatekeeper.orchestrator import GatekeeperApp
from code_gatekeeper.session_schema import SessionMode, SessionStatus


@pytest.fixture
def make_app(config, transport, handshake, make_llm, generated_reply):
    def factory(*replies, app_config=None):
        app_config = app_config or config
        return GatekeeperApp(
            config=app_config,
            generator=CodeGenerator(app_config, client=make_llm(*(replies or (generated_reply,)))),
            approval=ApprovalService(app_config),
            transport=transport,
            handshake=handshake,
        )

    return factory


class TestGenerate:
    @pytest.mark.asyncio
    async def test_success_moves_to_ready(self, make_app):
        app = make_app()
        assert app.status is SessionStatus.IDLE
        assert app.topics == []

        artifact = await app.generate("Create a rate limiter middleware for Express")

        assert app.status is SessionStatus.READY
        assert app.artifact is artifact
        assert "TypeScript Types" in app.topics
        assert app.can_start_quiz
        assert [n.level for n in app.drain_notifications()] == ["success"]
        assert app.drain_notifications() == []

    @pytest.mark.asyncio
    async def test_failure_returns_to_idle(self, make_app):
        app = make_app(LLMError("upstream down"))

        with pytest.raises(GenerationError):
            await app.generate("anything")

        assert app.status is SessionStatus.IDLE
        assert app.artifact is None
        notes = app.drain_notifications()
        assert notes[-1].level == "error"
        assert notes[-1].message == "Failed to generate code. Check your API key."

    @pytest.mark.asyncio
    async def test_generate_again_requires_reset(self, make_app):
        app = make_app()
        await app.generate("first")
        with pytest.raises(GatekeeperError):
            await app.generate("second")


class TestQuizFlow:
    @pytest.mark.asyncio
    async def test_start_quiz_requires_ready(self, make_app):
        app = make_app()
        with pytest.raises(GatekeeperError):
            await app.start_quiz()

    @pytest.mark.asyncio
    async def test_quiz_passes(self, make_app, transport):
        app = make_app()
        await app.generate("rate limiter")
        await app.start_quiz()
        assert app.status is SessionStatus.ACTIVE

        with pytest.raises(SessionActiveError):
            await app.start_quiz()

        for text in ("Correct!", "Exactly.", "Good job."):
            transport.agent_says(text)
        await app.end_session()

        assert app.status is SessionStatus.PASSED
        assert app.final_score == 95
        assert app.quiz_passed is True

        record = await app.approve()
        assert record.approved is True
        assert app.approval is record

    @pytest.mark.asyncio
    async def test_approve_before_verdict(self, make_app):
        app = make_app()
        await app.generate("rate limiter")
        with pytest.raises(GatekeeperError):
            await app.approve()

    @pytest.mark.asyncio
    async def test_unconfigured_start_notifies(self, make_app, unconfigured_config, handshake):
        app = make_app(app_config=unconfigured_config)
        await app.generate("rate limiter")
        app.drain_notifications()
        assert not app.can_start_quiz

        with pytest.raises(ConfigurationError):
            await app.start_quiz()

        assert handshake.calls == 0
        assert app.status is SessionStatus.READY
        assert app.drain_notifications()[0].message.startswith("Failed to start:")


class TestTutorFlow:
    @pytest.mark.asyncio
    async def test_selected_topic_used(self, make_app, transport):
        app = make_app()
        await app.generate("rate limiter")
        app.select_topic("Arrow Functions")

        await app.start_tutor()

        assert app.state.mode is SessionMode.TUTOR
        assert app.state.topic == "Arrow Functions"
        await app.end_session()
        assert app.status is SessionStatus.READY

    @pytest.mark.asyncio
    async def test_general_tutor_from_idle(self, make_app, transport):
        app = make_app()
        await app.start_tutor()
        assert app.status is SessionStatus.ACTIVE
        await app.end_session()
        assert app.status is SessionStatus.IDLE


class TestResetAndReview:
    @pytest.mark.asyncio
    async def test_reset(self, make_app, transport):
        app = make_app()
        await app.generate("rate limiter")
        await app.start_quiz()

        with pytest.raises(SessionActiveError):
            app.reset()

        await app.end_session()
        app.reset()

        assert app.status is SessionStatus.IDLE
        assert app.artifact is None
        assert app.state.transcript == []
        assert app.state.score is None
        assert app.final_score == 0

    @pytest.mark.asyncio
    async def test_review(self, make_app):
        app = make_app()
        with pytest.raises(GatekeeperError):
            app.review()
        await app.generate("rate limiter")
        assert "CodeRabbit Review Summary" in app.review()
