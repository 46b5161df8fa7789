"""
HTTP surface for Code Gatekeeper.

Two groups of endpoints:
- ``/functions/v1/generate-code``: thin proxy to the LLM for browser clients
  that must not hold provider keys (generate or evaluate).
- ``/api/...``: JSON API over a single ``GatekeeperApp``.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .api_client import LLMError, MultiProviderClient
from .code_generation import CompletionClient
from .config import GatekeeperConfig, configure_logging
from .errors import (
    ConfigurationError,
    GatekeeperError,
    GenerationError,
    HandshakeError,
    MicrophonePermissionError,
    SelectionError,
    SessionActiveError,
    TransportError,
)
from .orchestrator import GatekeeperApp
from .prompts import build_evaluation_prompt, build_generation_prompt
from .session_schema import SessionMode
from .transcription import DEFAULT_AUDIO_FILENAME, Transcriber
from .visualization import SessionRenderer

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type[GatekeeperError], int]] = [
    (ConfigurationError, 503),
    (SessionActiveError, 409),
    (SelectionError, 400),
    (MicrophonePermissionError, 403),
    (HandshakeError, 502),
    (TransportError, 502),
    (GenerationError, 502),
]


def status_for(error: GatekeeperError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 400


class GenerateCodeRequest(BaseModel):
    """Body of the generate-code proxy."""
    action: str = "generate"
    featurePrompt: Optional[str] = None
    code: Optional[str] = None
    expectedExplanation: Optional[str] = None
    userExplanation: Optional[str] = None


class GenerateRequest(BaseModel):
    prompt: str


class StartSessionRequest(BaseModel):
    mode: Literal["quiz", "tutor"] = "quiz"
    topic: Optional[str] = None


class MessageRequest(BaseModel):
    text: str


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(
    config: GatekeeperConfig | None = None,
    gatekeeper: GatekeeperApp | None = None,
    llm_client: CompletionClient | None = None,
    transcriber: Transcriber | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Configuration (loaded from env/file if None)
        gatekeeper: Application state to serve (created if None)
        llm_client: Client for the generate-code proxy (created lazily)
        transcriber: Speech-to-text for spoken feature descriptions

    Returns:
        Configured FastAPI application
    """
    config = config or GatekeeperConfig.load()
    app = FastAPI(title="Code Gatekeeper", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    app.state.config = config
    app.state.gatekeeper = gatekeeper or GatekeeperApp(config)
    app.state.llm_client = llm_client
    app.state.transcriber = transcriber or Transcriber(config)

    @app.exception_handler(GatekeeperError)
    async def gatekeeper_error_handler(request: Request, exc: GatekeeperError) -> JSONResponse:
        return _error(str(exc), status_for(exc))

    def _gatekeeper(request: Request) -> GatekeeperApp:
        return request.app.state.gatekeeper

    def _state_payload(gk: GatekeeperApp) -> dict[str, Any]:
        payload = SessionRenderer(gk.state, gk.config.scoring.pass_threshold).to_dict()
        payload["artifact"] = gk.artifact.model_dump() if gk.artifact else None
        payload["final_score"] = gk.final_score
        payload["approval"] = gk.approval.model_dump() if gk.approval else None
        payload["notifications"] = [
            {"level": n.level, "message": n.message} for n in gk.drain_notifications()
        ]
        return payload

    @app.post("/functions/v1/generate-code")
    async def generate_code(body: GenerateCodeRequest, request: Request):
        """Proxy a generate or evaluate prompt to the LLM and return its raw content."""
        if body.action == "generate":
            prompt = build_generation_prompt(body.featurePrompt or "")
        elif body.action == "evaluate":
            prompt = build_evaluation_prompt(
                body.code or "",
                body.expectedExplanation or "",
                body.userExplanation or "",
                request.app.state.config.scoring.pass_threshold,
            )
        else:
            return _error("Invalid action", 500)

        client = request.app.state.llm_client
        if client is None:
            try:
                client = MultiProviderClient(models=config.models, credentials=config.credentials)
            except ValueError as e:
                logger.error(f"generate-code has no LLM provider: {e}")
                return _error(str(e), 500)
            request.app.state.llm_client = client

        logger.info(f"Processing {body.action} request")
        try:
            response = await client.complete(prompt=prompt)
        except LLMError as e:
            logger.error(f"AI gateway error: {e}")
            if e.status_code == 429:
                return _error("Rate limit exceeded. Please try again later.", 429)
            if e.status_code == 402:
                return _error("Payment required. Please add credits to continue.", 402)
            return _error(str(e), 500)

        if not response.content:
            return _error("No content in AI response", 500)

        logger.info(f"{body.action} completed successfully")
        return {"content": response.content}

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy", "service": "code-gatekeeper"}

    @app.get("/api/config")
    async def get_config(request: Request):
        cfg: GatekeeperConfig = request.app.state.config
        return {"configured": cfg.is_configured(), **cfg.banner_items()}

    @app.get("/api/state")
    async def get_state(request: Request):
        return _state_payload(_gatekeeper(request))

    @app.post("/api/transcribe")
    async def transcribe(request: Request, filename: str = DEFAULT_AUDIO_FILENAME):
        """Transcribe a recorded feature description sent as the raw request body."""
        audio = await request.body()
        text = await request.app.state.transcriber.transcribe_bytes(audio, filename)
        return {"text": text}

    @app.post("/api/generate")
    async def generate(body: GenerateRequest, request: Request):
        gk = _gatekeeper(request)
        artifact = await gk.generate(body.prompt)
        return artifact.model_dump()

    @app.get("/api/topics")
    async def get_topics(request: Request):
        gk = _gatekeeper(request)
        return {"topics": gk.topics, "selected": gk.selected_topic}

    @app.post("/api/session/start")
    async def start_session(body: StartSessionRequest, request: Request):
        gk = _gatekeeper(request)
        if SessionMode(body.mode) is SessionMode.QUIZ:
            await gk.start_quiz()
        else:
            await gk.start_tutor(body.topic)
        return _state_payload(gk)

    @app.post("/api/session/message")
    async def send_message(body: MessageRequest, request: Request):
        gk = _gatekeeper(request)
        await gk.send_text(body.text)
        return {"sent": True}

    @app.post("/api/session/end")
    async def end_session(request: Request):
        gk = _gatekeeper(request)
        await gk.end_session()
        return _state_payload(gk)

    @app.post("/api/approve")
    async def approve(request: Request):
        record = await _gatekeeper(request).approve()
        return record.model_dump()

    @app.post("/api/review")
    async def review(request: Request):
        return {"review": _gatekeeper(request).review()}

    @app.post("/api/reset")
    async def reset(request: Request):
        gk = _gatekeeper(request)
        gk.reset()
        return _state_payload(gk)

    return app


def run_server(host: str = "127.0.0.1", port: int = 8000, config: GatekeeperConfig | None = None) -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    configure_logging()
    uvicorn.run(create_app(config), host=host, port=port)


__all__ = ["create_app", "run_server", "status_for"]
