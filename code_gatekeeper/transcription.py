"""Speech-to-text for spoken feature descriptions, via the OpenAI audio API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import openai

from .config import GatekeeperConfig
from .errors import GenerationError

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_FILENAME = "audio.webm"


class Transcriber:
    """Turn a recorded feature description into prompt text."""

    def __init__(self, config: GatekeeperConfig | None = None, client: Any = None):
        self.config = config or GatekeeperConfig.load()
        self.client = client

    def _ensure_client(self) -> Any:
        if self.client is None:
            api_key = self.config.credentials.openai_api_key
            if not api_key:
                raise GenerationError("OpenAI API key required for transcription. Set OPENAI_API_KEY.")
            self.client = openai.AsyncOpenAI(api_key=api_key)
        return self.client

    async def transcribe(self, audio_path: str | Path) -> str:
        """
        Transcribe an audio file.

        Raises:
            GenerationError: The file cannot be read, or transcription failed
        """
        path = Path(audio_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise GenerationError(f"Cannot read audio file {path}: {e}") from e
        return await self.transcribe_bytes(data, path.name)

    async def transcribe_bytes(self, data: bytes, filename: str = DEFAULT_AUDIO_FILENAME) -> str:
        """Transcribe raw audio; ``filename`` tells the API the container format."""
        if not data:
            raise GenerationError("No audio to transcribe")

        client = self._ensure_client()
        logger.info(f"Transcribing {len(data)} bytes of audio ({filename})")
        try:
            result = await client.audio.transcriptions.create(
                model=self.config.models.transcription_model,
                file=(filename, data),
            )
        except openai.OpenAIError as e:
            logger.error(f"Transcription failed: {e}")
            raise GenerationError(f"Transcription failed: {e}") from e

        text = (getattr(result, "text", None) or "").strip()
        if not text:
            raise GenerationError("Transcription returned no text")
        return text


__all__ = ["DEFAULT_AUDIO_FILENAME", "Transcriber"]
