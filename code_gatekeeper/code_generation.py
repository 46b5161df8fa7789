"""
Code-generation collaborator.

Turns a feature description into a ``GeneratedArtifact`` through a hosted LLM,
and grades free-text explanations of generated code. Every call is single
shot: failures surface as ``GenerationError`` and are never retried.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError

from .api_client import APIResponse, LLMError, MultiProviderClient
from .config import GatekeeperConfig
from .errors import GenerationError
from .json_parser import JSONExtractionError, clamp_score, extract_json_object
from .prompts import (
    build_block_question_prompt,
    build_evaluation_prompt,
    build_generation_prompt,
)
from .session_schema import ExplanationEvaluation, GeneratedArtifact

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """What the generator needs from an LLM client."""

    async def complete(
        self,
        messages: list[dict[str, str]] | None = None,
        prompt: str | None = None,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> APIResponse:
        ...


class CodeGenerator:
    """Generate code artifacts and grade explanations via a hosted LLM."""

    def __init__(
        self,
        config: GatekeeperConfig | None = None,
        client: CompletionClient | None = None,
    ):
        self.config = config or GatekeeperConfig.load()
        self.client = client

    def _ensure_client(self) -> CompletionClient:
        """Create the LLM client on first use."""
        if self.client is None:
            try:
                self.client = MultiProviderClient(
                    models=self.config.models,
                    credentials=self.config.credentials,
                )
            except ValueError as e:
                raise GenerationError(str(e)) from e
        return self.client

    async def _complete(self, prompt: str, max_tokens: int | None = None) -> str:
        client = self._ensure_client()
        try:
            response = await client.complete(prompt=prompt, max_tokens=max_tokens)
        except LLMError as e:
            logger.error(f"LLM call failed: {e}")
            raise GenerationError(f"Failed to generate code: {e}") from e
        if not response.content:
            raise GenerationError("No content in AI response")
        return response.content

    async def generate(self, feature_prompt: str) -> GeneratedArtifact:
        """
        Generate code for a feature description.

        Args:
            feature_prompt: Free-text description of the feature

        Returns:
            The generated artifact with its quiz segments

        Raises:
            GenerationError: On empty input, upstream failure or an
                unparseable reply
        """
        if not feature_prompt or not feature_prompt.strip():
            raise GenerationError("Feature description cannot be empty")

        logger.info(f"Generating code for: {feature_prompt[:80]}")
        content = await self._complete(build_generation_prompt(feature_prompt.strip()))
        return parse_generation_reply(content)

    async def evaluate_explanation(
        self,
        code: str,
        expected_explanation: str,
        user_explanation: str,
    ) -> ExplanationEvaluation:
        """
        Grade a developer's explanation of a code block.

        Raises:
            GenerationError: On upstream failure or an unparseable reply
        """
        threshold = self.config.scoring.pass_threshold
        content = await self._complete(
            build_evaluation_prompt(code, expected_explanation, user_explanation, threshold),
            max_tokens=self.config.models.evaluation_max_tokens,
        )
        try:
            data = extract_json_object(content)
        except JSONExtractionError as e:
            raise GenerationError("Failed to parse evaluation response") from e

        score = clamp_score(data.get("score"))
        passed = data.get("passed")
        if not isinstance(passed, bool):
            passed = score >= threshold
        return ExplanationEvaluation(
            score=score,
            feedback=str(data.get("feedback") or ""),
            passed=passed,
        )

    async def analyze_block(self, code: str, explanation: str) -> str:
        """Ask the LLM for one comprehension question about a block."""
        content = await self._complete(
            build_block_question_prompt(code, explanation),
            max_tokens=self.config.models.evaluation_max_tokens,
        )
        return content.strip()


def parse_generation_reply(content: str) -> GeneratedArtifact:
    """
    Parse the generation reply into an artifact.

    Raises:
        GenerationError: If the reply has no JSON object, or the object lacks
            ``code`` or ``blocks``
    """
    try:
        data = extract_json_object(content)
    except JSONExtractionError as e:
        raise GenerationError("Failed to parse code generation response") from e

    if not isinstance(data.get("code"), str) or not data["code"].strip():
        raise GenerationError("Code generation response has no code")
    if not isinstance(data.get("blocks"), list):
        raise GenerationError("Code generation response has no blocks")
    if not all(isinstance(block, dict) for block in data["blocks"]):
        raise GenerationError("Code generation response has malformed blocks")

    try:
        artifact = GeneratedArtifact.from_payload(data)
    except ValidationError as e:
        raise GenerationError(f"Invalid code generation response: {e}") from e

    logger.info(f"Generated {artifact.language} code with {len(artifact.segments)} segments")
    return artifact


__all__ = ["CodeGenerator", "CompletionClient", "parse_generation_reply"]
