"""
Commentary Layer Tests

The LLM is always mocked. Covers prompt content, response parsing, retries,
and the timeout/failure fallback that keeps numeric results intact.
"""

import asyncio
import json
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from commentary import (
    CommentaryConfig,
    CommentaryError,
    CommentaryGenerator,
    CommentaryInput,
    CommentaryLLMClient,
    CommentaryOutput,
    LLMResponse,
)
from result_assembler import run_full_simulation


VALID_PAYLOAD = {
    "simulation_analysis": "Revenue fell on heavier discounting.",
    "suggestions": ["1. Reduce discount to 8%", "2. Tighten AR days"],
    "risk_assessment": "Margin compression (medium).",
}


def _llm(text=None, side_effect=None, enabled=True):
    llm = MagicMock(spec=CommentaryLLMClient)
    llm.enabled = enabled
    llm.config = CommentaryConfig(api_key="test-key", timeout=5.0, max_retries=1)
    llm.complete = AsyncMock(
        return_value=LLMResponse(text=text or "", tokens_used=42, model="gpt-4o", finish_reason="stop", latency_ms=10),
        side_effect=side_effect,
    )
    return llm


@pytest.fixture
def commentary_input(defaults, config):
    result = run_full_simulation(defaults.replace(discount=15), config)
    return CommentaryInput.from_result(result, scenario_note="Aggressive promotion in Q3")


# ═══════════════════════════════════════════════════════════════════════════════
# INPUT & PROMPT
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.unit
class TestCommentaryInput:

    def test_from_result(self, commentary_input):
        assert commentary_input.parameter_summary == "Modified parameters: discount: 5 → 15"
        assert commentary_input.revenue_change == -6.0
        assert commentary_input.net_income_change < 0
        assert commentary_input.risk_level in {"low", "medium", "high", "critical"}
        assert commentary_input.scenario_note == "Aggressive promotion in Q3"

    def test_blank_note_dropped(self, defaults, config):
        result = run_full_simulation(defaults, config)
        assert CommentaryInput.from_result(result, scenario_note="").scenario_note is None

    def test_prompt_carries_numbers_and_note(self, commentary_input):
        prompt = CommentaryGenerator(llm_client=_llm()).build_prompt(commentary_input)
        assert "Revenue change: -6.0%" in prompt
        assert f"Health score: {commentary_input.health_score}/100" in prompt
        assert "Aggressive promotion in Q3" in prompt
        assert "simulation_analysis, suggestions, risk_assessment" in prompt


# ═══════════════════════════════════════════════════════════════════════════════
# RESPONSE PARSING
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.unit
class TestResponseParsing:

    def test_plain_json(self):
        output = CommentaryGenerator._parse_response(json.dumps(VALID_PAYLOAD))
        assert output.simulation_analysis == "Revenue fell on heavier discounting."
        assert output.suggestions == "1. Reduce discount to 8%\n2. Tighten AR days"
        assert not output.is_placeholder

    def test_fenced_json(self):
        text = "Here you go:\n```json\n" + json.dumps(VALID_PAYLOAD) + "\n```"
        output = CommentaryGenerator._parse_response(text)
        assert output.risk_assessment == "Margin compression (medium)."

    def test_missing_key(self):
        payload = dict(VALID_PAYLOAD, risk_assessment="")
        with pytest.raises(CommentaryError):
            CommentaryGenerator._parse_response(json.dumps(payload))

    def test_not_json(self):
        with pytest.raises(CommentaryError):
            CommentaryGenerator._parse_response("The outlook is cautious.")

    def test_not_an_object(self):
        with pytest.raises(CommentaryError):
            CommentaryGenerator._parse_response("[1, 2, 3]")


# ═══════════════════════════════════════════════════════════════════════════════
# GENERATION & FALLBACK
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.unit
class TestGenerateSafe:

    def test_success(self, commentary_input):
        llm = _llm(text=json.dumps(VALID_PAYLOAD))
        output = asyncio.run(CommentaryGenerator(llm_client=llm).generate_safe(commentary_input))
        assert output.simulation_analysis == VALID_PAYLOAD["simulation_analysis"]
        assert not output.is_placeholder
        llm.complete.assert_awaited_once()

    def test_transport_failure_returns_placeholder(self, commentary_input):
        llm = _llm(side_effect=CommentaryError("connection reset"))
        output = asyncio.run(CommentaryGenerator(llm_client=llm).generate_safe(commentary_input))
        assert output.is_placeholder
        assert "Automated commentary is unavailable" in output.simulation_analysis

    def test_unparseable_response_returns_placeholder(self, commentary_input):
        llm = _llm(text="not json at all")
        output = asyncio.run(CommentaryGenerator(llm_client=llm).generate_safe(commentary_input))
        assert output.is_placeholder

    def test_timeout_returns_placeholder(self, commentary_input):
        async def slow(*args, **kwargs):
            await asyncio.sleep(5)

        llm = _llm(side_effect=slow)
        generator = CommentaryGenerator(llm_client=llm, timeout=0.05)
        output = asyncio.run(generator.generate_safe(commentary_input))
        assert output.is_placeholder

    def test_disabled_client_skips_call(self, commentary_input):
        llm = _llm(enabled=False)
        output = asyncio.run(CommentaryGenerator(llm_client=llm).generate_safe(commentary_input))
        assert output.is_placeholder
        llm.complete.assert_not_awaited()

    def test_generate_raises(self, commentary_input):
        llm = _llm(text="{}")
        with pytest.raises(CommentaryError):
            asyncio.run(CommentaryGenerator(llm_client=llm).generate(commentary_input))

    def test_placeholder_uses_numbers(self, commentary_input):
        output = CommentaryGenerator.placeholder(commentary_input)
        assert "Revenue is down 6.0%" in output.simulation_analysis
        assert f"{commentary_input.health_score}/100" in output.simulation_analysis
        assert isinstance(output, CommentaryOutput)


# ═══════════════════════════════════════════════════════════════════════════════
# LLM CLIENT
# ═══════════════════════════════════════════════════════════════════════════════

def _completion(text):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=100, completion_tokens=50, total_tokens=150),
        model="gpt-4o",
    )


def _openai_stub(side_effect):
    create = AsyncMock(side_effect=side_effect)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create))), create


@pytest.mark.unit
class TestLLMClient:

    def test_no_api_key_disables_client(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        client = CommentaryLLMClient(CommentaryConfig())
        assert not client.enabled
        with pytest.raises(CommentaryError):
            asyncio.run(client.complete("hello"))

    def test_env_configuration(self, monkeypatch):
        monkeypatch.setenv("SIMULATION_LLM_TIMEOUT", "12.5")
        monkeypatch.setenv("SIMULATION_LLM_MAX_RETRIES", "5")
        monkeypatch.setenv("SIMULATION_LLM_MODEL", "gpt-4o-mini")
        config = CommentaryConfig(api_key="k")
        assert config.timeout == 12.5
        assert config.max_retries == 5
        assert config.model == "gpt-4o-mini"

    def test_retries_then_succeeds(self):
        stub, create = _openai_stub([RuntimeError("rate limited"), _completion("{}")])
        client = CommentaryLLMClient(CommentaryConfig(api_key="k", max_retries=2, retry_delay=0), client=stub)
        response = asyncio.run(client.complete("hello"))
        assert response.text == "{}"
        assert response.tokens_used == 150
        assert create.await_count == 2
        assert client.get_usage_stats() == {
            "prompt_tokens": 100,
            "completion_tokens": 50,
            "total_tokens": 150,
        }

    def test_exhausted_retries_raise(self):
        stub, create = _openai_stub(RuntimeError("down"))
        client = CommentaryLLMClient(CommentaryConfig(api_key="k", max_retries=2, retry_delay=0), client=stub)
        with pytest.raises(CommentaryError):
            asyncio.run(client.complete("hello"))
        assert create.await_count == 2

    def test_latency_is_measured(self):
        stub, _ = _openai_stub([_completion("{}")])
        client = CommentaryLLMClient(CommentaryConfig(api_key="k", max_retries=1), client=stub)
        response = asyncio.run(client.complete("hello"))
        assert isinstance(response.latency_ms, int)
        assert response.latency_ms >= 0

    def test_aclose_closes_openai_client(self):
        stub, _ = _openai_stub([_completion("{}")])
        stub.close = AsyncMock()
        client = CommentaryLLMClient(CommentaryConfig(api_key="k"), client=stub)
        asyncio.run(client.aclose())
        stub.close.assert_awaited_once()
        assert client._client is None

    def test_aclose_without_client_is_noop(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        client = CommentaryLLMClient(CommentaryConfig())
        asyncio.run(client.aclose())
        assert client._client is None
