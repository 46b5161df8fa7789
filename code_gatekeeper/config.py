"""
Configuration management for Code Gatekeeper.

Credentials come from the environment (a project-root ``.env`` is loaded
automatically). Tunables (models, scoring keywords, session endpoints) come
from an optional JSON file and fall back to defaults.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv

# Auto-load .env from project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".code-gatekeeper" / "config.json"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _filter_dataclass_fields(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter dict to only include fields that exist in the dataclass."""
    valid_fields = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_fields}


def _env(*names: str) -> str:
    """
    Read the first non-empty environment variable among ``names``.

    Each name is also tried with the ``VITE_`` prefix used by the browser build.
    """
    for name in names:
        for candidate in (name, f"VITE_{name}"):
            value = os.environ.get(candidate, "").strip()
            if value:
                return value
    return ""


@dataclass
class CredentialsConfig:
    """External service credentials. Never written to the config file."""

    elevenlabs_api_key: str = ""
    elevenlabs_agent_id: str = ""
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    gateway_api_key: str = ""
    webhook_url: str = ""
    clerk_publishable_key: str = ""

    @classmethod
    def from_env(cls) -> "CredentialsConfig":
        """Read credentials from the environment."""
        return cls(
            elevenlabs_api_key=_env("ELEVENLABS_API_KEY"),
            elevenlabs_agent_id=_env("ELEVENLABS_AGENT_ID"),
            anthropic_api_key=_env("ANTHROPIC_API_KEY", "ANTHROPIC_AUTH_TOKEN"),
            openai_api_key=_env("OPENAI_API_KEY"),
            gateway_api_key=_env("AI_GATEWAY_API_KEY", "LOVABLE_API_KEY"),
            webhook_url=_env("N8N_WEBHOOK_URL"),
            clerk_publishable_key=_env("CLERK_PUBLISHABLE_KEY"),
        )


# Credentials that gate the quiz and tutor sessions, with display names
REQUIRED_CREDENTIALS: dict[str, str] = {
    "elevenlabs_api_key": "ElevenLabs API Key",
    "elevenlabs_agent_id": "ElevenLabs Agent ID",
    "anthropic_api_key": "Anthropic API Key",
}

OPTIONAL_CREDENTIALS: dict[str, str] = {
    "webhook_url": "n8n Webhook URL",
    "clerk_publishable_key": "Clerk Publishable Key",
}

CREDENTIAL_URLS: dict[str, str] = {
    "elevenlabs_api_key": "https://elevenlabs.io",
    "elevenlabs_agent_id": "https://elevenlabs.io/conversational-ai",
    "anthropic_api_key": "https://console.anthropic.com",
}


@dataclass
class ModelConfig:
    """Configuration for the generation and evaluation models."""

    provider: Literal["anthropic", "openai", "gateway"] = "anthropic"
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_model: str = "gpt-4o"
    gateway_model: str = "google/gemini-2.5-flash"
    gateway_url: str = "https://ai.gateway.lovable.dev/v1"
    max_tokens: int = 4096
    evaluation_max_tokens: int = 256
    transcription_model: str = "whisper-1"
    temperature: float = 0.2

    def model_for_provider(self) -> str:
        """Model id for the configured provider."""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "gateway": self.gateway_model,
        }[self.provider]


@dataclass
class ScoringConfig:
    """
    Quiz scoring heuristic settings.

    Keyword sets are matched case-insensitively as substrings of agent
    utterances. Positive keywords take priority over negative ones.
    """

    seed_score: int = 50
    pass_threshold: int = 70
    min_score: int = 0
    max_score: int = 100
    positive_keywords: list[str] = field(
        default_factory=lambda: ["pass", "correct", "good job", "exactly"]
    )
    negative_keywords: list[str] = field(
        default_factory=lambda: ["fail", "incorrect", "not quite"]
    )
    positive_delta: int = 15
    negative_delta: int = 10


@dataclass
class SessionConfig:
    """Voice session endpoints and limits."""

    signed_url_endpoint: str = "https://api.elevenlabs.io/v1/convai/conversation/get-signed-url"
    request_timeout_seconds: float = 30.0
    text_only: bool = True


@dataclass
class GatekeeperConfig:
    """Complete Code Gatekeeper configuration."""

    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    models: ModelConfig = field(default_factory=ModelConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    @classmethod
    def load(cls, path: Path | None = None) -> "GatekeeperConfig":
        """
        Load configuration.

        Args:
            path: JSON config file. Defaults to $GATEKEEPER_CONFIG or
                ~/.code-gatekeeper/config.json

        Returns:
            Config with file values merged over defaults and credentials
            read from the environment
        """
        if path is None:
            env_path = os.environ.get("GATEKEEPER_CONFIG")
            path = Path(env_path) if env_path else CONFIG_PATH

        data: dict[str, Any] = {}
        if path.exists():
            try:
                data = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Ignoring unreadable config file {path}: {e}")

        models_data = dict(data.get("models", {}))
        if os.environ.get("GATEKEEPER_PROVIDER"):
            models_data["provider"] = os.environ["GATEKEEPER_PROVIDER"]
        if os.environ.get("AI_GATEWAY_URL"):
            models_data["gateway_url"] = os.environ["AI_GATEWAY_URL"]

        models = ModelConfig(**_filter_dataclass_fields(models_data, ModelConfig))
        if os.environ.get("GATEKEEPER_MODEL"):
            setattr(models, f"{models.provider}_model", os.environ["GATEKEEPER_MODEL"])

        return cls(
            credentials=CredentialsConfig.from_env(),
            models=models,
            scoring=ScoringConfig(**_filter_dataclass_fields(data.get("scoring", {}), ScoringConfig)),
            session=SessionConfig(**_filter_dataclass_fields(data.get("session", {}), SessionConfig)),
        )

    def save(self, path: Path | None = None) -> None:
        """Save tunables (not credentials) to file."""
        if path is None:
            path = CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(
                {
                    "models": asdict(self.models),
                    "scoring": asdict(self.scoring),
                    "session": asdict(self.session),
                },
                f,
                indent=2,
            )

    def missing_credentials(self) -> list[str]:
        """Display names of required credentials that are not set."""
        return [
            label
            for name, label in REQUIRED_CREDENTIALS.items()
            if not getattr(self.credentials, name)
        ]

    def is_configured(self) -> bool:
        """True when every required credential is present."""
        return not self.missing_credentials()

    def banner_items(self) -> dict[str, list[dict[str, Any]]]:
        """Required and optional credential status for the config banner."""
        return {
            "required": [
                {
                    "name": label,
                    "configured": bool(getattr(self.credentials, name)),
                    "url": CREDENTIAL_URLS.get(name),
                }
                for name, label in REQUIRED_CREDENTIALS.items()
            ],
            "optional": [
                {"name": label, "configured": bool(getattr(self.credentials, name))}
                for name, label in OPTIONAL_CREDENTIALS.items()
            ],
        }


def configure_logging(level: str | int | None = None) -> None:
    """Configure root logging from ``level`` or $GATEKEEPER_LOG_LEVEL."""
    if level is None:
        level = os.environ.get("GATEKEEPER_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
