"""Tests for the code-generation collaborator."""
import json

import pytest

from code_gatekeeper.api_client import LLMError
from code_gatekeeper.code_generation import CodeGenerator, parse_generation_reply
from code_gatekeeper.errors import GenerationError


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generate(self, config, make_llm, generated_reply):
        llm = make_llm(generated_reply)
        generator = CodeGenerator(config, client=llm)

        artifact = await generator.generate("Create a rate limiter middleware for Express")

        assert "rateLimiter" in artifact.source_text
        assert artifact.language == "typescript"
        assert [s.id for s in artifact.segments] == ["block_1", "block_2"]
        assert "Create a rate limiter middleware for Express" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_empty_prompt(self, config, make_llm):
        llm = make_llm()
        with pytest.raises(GenerationError):
            await CodeGenerator(config, client=llm).generate("   ")
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_upstream_error(self, config, make_llm):
        generator = CodeGenerator(config, client=make_llm(LLMError("boom", status_code=500)))
        with pytest.raises(GenerationError, match="Failed to generate code"):
            await generator.generate("anything")

    @pytest.mark.asyncio
    async def test_empty_content(self, config, make_llm):
        with pytest.raises(GenerationError, match="No content"):
            await CodeGenerator(config, client=make_llm("")).generate("anything")

    @pytest.mark.asyncio
    async def test_no_provider(self, monkeypatch, unconfigured_config):
        for name in ("ANTHROPIC_API_KEY", "ANTHROPIC_AUTH_TOKEN", "OPENAI_API_KEY", "AI_GATEWAY_API_KEY", "LOVABLE_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(GenerationError, match="No LLM provider"):
            await CodeGenerator(unconfigured_config).generate("anything")


class TestParseGenerationReply:
    def test_reply_without_json(self):
        with pytest.raises(GenerationError):
            parse_generation_reply("Sorry, I can't do that.")

    def test_reply_missing_blocks(self):
        with pytest.raises(GenerationError, match="no blocks"):
            parse_generation_reply(json.dumps({"code": "const a = 1;"}))

    def test_reply_missing_code(self):
        with pytest.raises(GenerationError, match="no code"):
            parse_generation_reply(json.dumps({"blocks": []}))

    def test_malformed_blocks(self):
        with pytest.raises(GenerationError, match="malformed"):
            parse_generation_reply(json.dumps({"code": "x", "blocks": ["not a block"]}))

    def test_duplicate_ids(self):
        reply = json.dumps({"code": "x", "blocks": [{"id": "a", "code": "1"}, {"id": "a", "code": "2"}]})
        with pytest.raises(GenerationError, match="Invalid"):
            parse_generation_reply(reply)


class TestEvaluateExplanation:
    @pytest.mark.asyncio
    async def test_evaluate(self, config, make_llm):
        llm = make_llm('{"score": 85, "feedback": "Solid", "passed": true}')
        evaluation = await CodeGenerator(config, client=llm).evaluate_explanation(
            "const hits = new Map();", "Stores timestamps", "It keeps request times per IP"
        )
        assert evaluation.score == 85
        assert evaluation.passed is True
        assert evaluation.feedback == "Solid"
        assert "It keeps request times per IP" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_passed_derived_from_threshold(self, config, make_llm):
        llm = make_llm('```json\n{"score": 140, "feedback": "Great"}\n```')
        evaluation = await CodeGenerator(config, client=llm).evaluate_explanation("c", "e", "u")
        assert evaluation.score == 100
        assert evaluation.passed is True

    @pytest.mark.asyncio
    async def test_unparseable(self, config, make_llm):
        with pytest.raises(GenerationError, match="parse evaluation"):
            await CodeGenerator(config, client=make_llm("no idea")).evaluate_explanation("c", "e", "u")


@pytest.mark.asyncio
async def test_analyze_block(config, make_llm):
    llm = make_llm("  What happens when the window is full?\n")
    question = await CodeGenerator(config, client=llm).analyze_block("if (x) {}", "guard")
    assert question == "What happens when the window is full?"
