"""Tests for map-reduce summarization."""

import pytest

from src.ai.analysis.config import AnalysisSettings
from src.ai.analysis.summarizer import Summarizer
from src.ai.openai.config import OpenAISettings
from src.ai.openai.exceptions import OpenAICredentialsMissingError


@pytest.fixture
def openai_settings():
    return OpenAISettings(
        api_key="sk-test",
        model_name="text-model",
        reasoning_effort="medium",
        summary_reasoning_effort="high",
    )


def numbered_responder():
    """Answer map calls with '  summary N  ' and the reduce call with 'FINAL'."""
    counter = {"n": 0}

    def respond(call):
        if call.texts[0].startswith("You are given"):
            return "  FINAL  \n"
        counter["n"] += 1
        return f"  summary {counter['n']}  "

    return respond


class TestSummarizer:
    """Test suite for Summarizer."""

    @pytest.mark.asyncio
    async def test_one_map_call_per_chunk_then_one_reduce_call(
        self, make_provider, openai_settings
    ):
        provider = make_provider(responder=numbered_responder())
        summarizer = Summarizer(
            provider, openai_settings, AnalysisSettings(chunk_max_chars=3000)
        )

        result = await summarizer.summarize("a" * 6000)

        assert result == "FINAL"
        assert len(provider.text_calls) == 3
        first, second, reduce_call = provider.text_calls
        assert "Passage 1/2" in first.texts[0]
        assert "Passage 2/2" in second.texts[0]
        assert first.texts[0].endswith("a" * 3000)
        assert reduce_call.texts[0].startswith("You are given 2 chunk summaries")
        # Map outputs are stripped before being joined
        assert reduce_call.texts[1] == "summary 1\n\nsummary 2"

    @pytest.mark.asyncio
    async def test_reasoning_effort_per_phase(self, make_provider, openai_settings):
        provider = make_provider(responder=numbered_responder())
        summarizer = Summarizer(
            provider, openai_settings, AnalysisSettings(chunk_max_chars=10)
        )

        await summarizer.summarize("x" * 25)

        efforts = [call.kwargs["reasoning_effort"] for call in provider.text_calls]
        assert efforts == ["medium", "medium", "medium", "high"]
        assert all(call.model == "text-model" for call in provider.text_calls)

    @pytest.mark.asyncio
    async def test_short_text_still_runs_reduce(self, make_provider, openai_settings):
        provider = make_provider(responder=numbered_responder())
        summarizer = Summarizer(provider, openai_settings, AnalysisSettings())

        result = await summarizer.summarize("short document")

        assert result == "FINAL"
        assert len(provider.text_calls) == 2

    @pytest.mark.asyncio
    async def test_missing_credentials_raises_before_any_call(
        self, make_provider, openai_settings
    ):
        provider = make_provider(has_credentials=False)
        summarizer = Summarizer(provider, openai_settings, AnalysisSettings())

        with pytest.raises(OpenAICredentialsMissingError) as exc_info:
            await summarizer.summarize("anything")

        assert exc_info.value.message == "Missing OPENAI_API_KEY"
        assert provider.text_calls == []

    @pytest.mark.asyncio
    async def test_map_failure_aborts_summary(self, make_provider, openai_settings):
        def respond(call):
            if "Passage 2/" in call.texts[0]:
                raise RuntimeError("rate limited")
            return "ok"

        provider = make_provider(responder=respond)
        summarizer = Summarizer(
            provider, openai_settings, AnalysisSettings(chunk_max_chars=5)
        )

        with pytest.raises(RuntimeError, match="rate limited"):
            await summarizer.summarize("x" * 15)

        assert len(provider.text_calls) == 2
