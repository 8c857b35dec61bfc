"""Tests for the base agent retry loop and the three concrete agents."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from kachisuji.agents.base import extract_json
from kachisuji.agents.evolution.agent import EvolutionAgent, format_sources
from kachisuji.agents.strategy_explorer.agent import StrategyExplorerAgent
from kachisuji.agents.swot.agent import SwotAgent, format_external_data
from kachisuji.errors import ValidationFailed
from kachisuji.schemas.evolution import EvolveMode, SourceStrategy
from kachisuji.schemas.finder import get_finder_settings
from kachisuji.schemas.swot import ExternalData, SwotRequest

_EXPLORER_JSON = json.dumps({
    "strategies": [{"name": "保守サブスク", "howToObtain": "試行", "scores": {"revenuePotential": 4}}],
    "thinkingProcess": "考えた",
})


def _fake_client(*responses: str) -> SimpleNamespace:
    return SimpleNamespace(simple_completion=AsyncMock(side_effect=list(responses)))


class TestExtractJson:
    def test_clean(self) -> None:
        assert extract_json('{"a": 1}') == {"a": 1}

    def test_trailing_text(self) -> None:
        assert extract_json('{"a": 1}\nthanks!') == {"a": 1}

    def test_fenced(self) -> None:
        assert extract_json('Here:\n```json\n{"a": 2}\n```') == {"a": 2}

    def test_leading_prose(self) -> None:
        assert extract_json('Result: {"a": 3} done') == {"a": 3}

    def test_no_json(self) -> None:
        with pytest.raises(ValueError, match="Could not extract JSON"):
            extract_json("no braces here")


class TestCompleteRetry:
    @pytest.mark.asyncio
    async def test_retries_once_on_bad_json(self) -> None:
        client = _fake_client("I think the answer is...", _EXPLORER_JSON)
        agent = StrategyExplorerAgent(client)

        output = await agent.complete("質問")

        assert output.strategies[0].how_to_obtain == "試行"
        assert client.simple_completion.await_count == 2
        retry_message = client.simple_completion.await_args.kwargs["user_message"]
        assert "I think the answer is..." in retry_message
        assert "raw JSON" in retry_message

    @pytest.mark.asyncio
    async def test_schema_mismatch_also_retried(self) -> None:
        client = _fake_client('{"unexpected": true}', _EXPLORER_JSON)
        output = await StrategyExplorerAgent(client).complete("質問")
        assert len(output.strategies) == 1

    @pytest.mark.asyncio
    async def test_second_failure_propagates(self) -> None:
        client = _fake_client("nope", "still nope")
        with pytest.raises(ValueError):
            await StrategyExplorerAgent(client).complete("質問")


class TestStrategyExplorerAgent:
    def test_system_prompt_uses_finder_axes(self) -> None:
        agent = StrategyExplorerAgent(_fake_client(), get_finder_settings("talent"))
        prompt = agent.get_system_prompt()
        assert "人材ファインダー" in prompt
        for axis in agent.finder.score_axes:
            assert f'"{axis.key}": 1-5' in prompt

    def test_default_finder(self) -> None:
        assert StrategyExplorerAgent(_fake_client()).finder.id == "winning-strategy"

    def test_user_message_placeholders(self) -> None:
        message = StrategyExplorerAgent(_fake_client()).build_user_message("新規事業は？")
        assert "新規事業は？" in message
        assert "未登録" in message
        assert "取得できませんでした" in message

    @pytest.mark.asyncio
    async def test_run_with_dry_client(self, dry_client) -> None:
        output = await StrategyExplorerAgent(dry_client).run("新規事業は？", rag_context="資料")
        assert len(output.strategies) == 2
        assert output.strategies[0].scores["timeToRevenue"] == 5
        assert output.follow_up_questions


class TestSwotAgent:
    @pytest.mark.asyncio
    async def test_requires_industry(self, dry_client) -> None:
        with pytest.raises(ValidationFailed):
            await SwotAgent(dry_client).run(SwotRequest(industry="  "))

    @pytest.mark.asyncio
    async def test_run_with_dry_client(self, dry_client) -> None:
        result = await SwotAgent(dry_client).run(SwotRequest(industry="海運"))
        assert result.swot.strengths[0].text == "長年の顧客基盤"
        assert result.summary

    @pytest.mark.asyncio
    async def test_accepts_plain_string_items(self) -> None:
        client = _fake_client(json.dumps({"swot": {"strengths": ["顧客基盤"], "threats": None}}))
        result = await SwotAgent(client).run(SwotRequest(industry="海運"))
        assert result.swot.strengths[0].text == "顧客基盤"
        assert result.swot.threats == []

    def test_user_message_defaults(self) -> None:
        message = SwotAgent(_fake_client()).build_user_message(SwotRequest(industry="海運"))
        assert "（記載なし）" in message
        assert "（取得なし）" in message

    def test_format_external_data(self) -> None:
        data = {
            "市場": ExternalData(
                answer="拡大中",
                results=[{"title": f"t{i}", "content": "x" * 300} for i in range(5)],
            ),
        }
        text = format_external_data(data)
        assert text.startswith("【市場】\n拡大中\n")
        assert text.count("- t") == 3
        assert "x" * 201 not in text


class TestEvolutionAgent:
    _MIXED = json.dumps({
        "strategies": [
            {"name": "M", "evolveType": "mutation", "scores": {"revenuePotential": 4}},
            {"name": "C", "evolveType": "crossover", "sourceStrategies": ["a", "b"]},
        ],
        "thinkingProcess": "進化",
    })

    @pytest.mark.asyncio
    async def test_drops_types_outside_mode(self) -> None:
        agent = EvolutionAgent(_fake_client(self._MIXED), mode=EvolveMode.MUTATION)
        output = await agent.run([SourceStrategy(name="a")])
        assert [s.name for s in output.strategies] == ["M"]
        assert output.thinking_process == "進化"

    @pytest.mark.asyncio
    async def test_all_keeps_everything(self) -> None:
        agent = EvolutionAgent(_fake_client(self._MIXED))
        output = await agent.run([SourceStrategy(name="a")])
        assert [s.evolve_type for s in output.strategies] == ["mutation", "crossover"]
        assert output.strategies[1].source_strategies == ["a", "b"]

    def test_prompt_lists_only_mode_instructions(self) -> None:
        prompt = EvolutionAgent(_fake_client(), mode=EvolveMode.REFUTATION).get_system_prompt()
        assert "戦略進化" in prompt
        assert "【refutation" in prompt
        assert "【crossover" not in prompt

    def test_format_sources(self) -> None:
        text = format_sources([
            SourceStrategy(name="A", reason="理由", total_score=4.3, origin="adopted"),
            SourceStrategy(name="B", origin="top"),
        ])
        assert "### 1. A（採用済み）" in text
        assert "- スコア: 4.30" in text
        assert "### 2. B（高スコア）" in text
