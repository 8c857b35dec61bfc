"""Tests for the service layer: exploration, decisions, weights, core data, export, evolution, SWOT."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from conftest import HIGH_SCORES, MID_SCORES
from kachisuji.db.models import Exploration, ScoreBaseline, StrategyDecision
from kachisuji.errors import NotFoundError, PermissionDenied, ValidationFailed
from kachisuji.schemas.core import AssetIn, ConstraintIn, ServiceIn
from kachisuji.schemas.decision import DecisionRequest
from kachisuji.schemas.evolution import EvolveMode
from kachisuji.schemas.finder import get_default_weights
from kachisuji.schemas.strategy import ExploreRequest
from kachisuji.schemas.swot import SwotRequest
from kachisuji.services import core_data, decisions, exploration, export, score_config
from kachisuji.services import evolution as evolution_service
from kachisuji.services import swot as swot_service


def _decide(db, exploration_id: str, name: str, decision: str, *, user_id: str = "local", reason=None):
    return decisions.record_decision(
        db,
        DecisionRequest(exploration_id=exploration_id, strategy_name=name, decision=decision, reason=reason),
        user_id=user_id,
    )


class TestExplore:
    @pytest.mark.asyncio
    async def test_completed_with_dry_client(self, db, dry_client) -> None:
        row = await exploration.explore(db, dry_client, ExploreRequest(question=" 新規事業は？ "), user_id="local")
        assert row.status == "completed"
        assert row.question == "新規事業は？"
        assert row.finder_id == "winning-strategy"
        assert row.kind == "explore"
        assert len(row.result["strategies"]) == 2
        assert row.result["strategies"][0]["how_to_obtain"]

    @pytest.mark.asyncio
    async def test_blank_question(self, db, dry_client) -> None:
        with pytest.raises(ValidationFailed):
            await exploration.explore(db, dry_client, ExploreRequest(question="  "))

    @pytest.mark.asyncio
    async def test_failure_is_stored_and_raised(self, db) -> None:
        client = SimpleNamespace(
            simple_completion=AsyncMock(side_effect=RuntimeError("LLM down")),
            embeddings_available=False,
        )
        with pytest.raises(RuntimeError):
            await exploration.explore(db, client, ExploreRequest(question="問い"))
        row = db.scalars(select(Exploration)).one()
        assert row.status == "failed"
        assert row.error == "LLM down"

    @pytest.mark.asyncio
    async def test_prompt_includes_core_data_and_constraints(self, db, dry_client) -> None:
        core_data.create_service(db, ServiceIn(name="船舶保守", category="保守"))
        core_data.create_asset(db, AssetIn(name="訓練施設", type="facility"))
        core_data.create_constraint(db, ConstraintIn(name="既定制約", is_default=True))
        picked = core_data.create_constraint(db, ConstraintIn(name="選択制約"))
        core_data.create_constraint(db, ConstraintIn(name="未選択制約"))
        dry_client.simple_completion = AsyncMock(wraps=dry_client.simple_completion)

        await exploration.explore(
            db, dry_client, ExploreRequest(question="問い", constraint_ids=[picked.id], finder_id="talent"),
        )

        message = dry_client.simple_completion.await_args.kwargs["user_message"]
        assert "- 船舶保守 (保守)" in message
        assert "- 訓練施設 [facility]" in message
        assert "既定制約" in message
        assert "選択制約" in message
        assert "未選択制約" not in message


class TestHistory:
    def test_list_filters(self, db, add_exploration) -> None:
        add_exploration([], user_id="alice")
        add_exploration([], user_id="alice", kind="evolution")
        add_exploration([], user_id="bob")
        assert len(exploration.list_history(db, user_id="alice")) == 2
        assert len(exploration.list_history(db, user_id="alice", kind="evolution")) == 1
        assert len(exploration.list_history(db, limit=1)) == 1

    def test_get_and_delete(self, db, add_exploration) -> None:
        row = add_exploration([])
        assert exploration.get_exploration(db, row.id) is row
        exploration.delete_exploration(db, row.id)
        with pytest.raises(NotFoundError):
            exploration.get_exploration(db, row.id)

    def test_clear_for_one_user(self, db, add_exploration) -> None:
        add_exploration([], user_id="alice")
        add_exploration([], user_id="bob")
        assert exploration.clear_history(db, user_id="alice") == 1
        assert len(exploration.list_history(db)) == 1


class TestDecisions:
    def test_upsert(self, db) -> None:
        first = _decide(db, "1", "A", "pending")
        second = _decide(db, "1", "A", "adopt")
        assert first.id == second.id
        assert db.scalar(select(func.count()).select_from(StrategyDecision)) == 1
        assert second.decision == "adopt"

    def test_per_user(self, db) -> None:
        _decide(db, "1", "A", "adopt", user_id="alice")
        _decide(db, "1", "A", "reject", user_id="bob")
        assert [d.decision for d in decisions.list_decisions(db, user_id="alice")] == ["adopt"]

    @pytest.mark.parametrize(
        "request_kwargs",
        [
            {"exploration_id": "", "strategy_name": "A", "decision": "adopt"},
            {"exploration_id": "1", "strategy_name": "A", "decision": "maybe"},
        ],
    )
    def test_invalid(self, db, request_kwargs: dict) -> None:
        with pytest.raises(ValidationFailed):
            decisions.record_decision(db, DecisionRequest(**request_kwargs), user_id="local")

    def test_accepts_camel_case(self) -> None:
        req = DecisionRequest.model_validate(
            {"explorationId": "3", "strategyName": "A", "decision": "adopt", "feasibilityNote": "要予算"},
        )
        assert req.exploration_id == "3"
        assert req.feasibility_note == "要予算"

    def test_list_by_exploration_and_decision(self, db) -> None:
        _decide(db, "1", "A", "adopt")
        _decide(db, "1", "B", "reject")
        _decide(db, "2", "C", "adopt")
        assert {d.strategy_name for d in decisions.list_decisions(db, user_id="local", exploration_id="1")} == {"A", "B"}
        assert {d.strategy_name for d in decisions.list_decisions(db, user_id="local", decision="adopt")} == {"A", "C"}

    def test_stats(self, db) -> None:
        _decide(db, "1", "A", "adopt")
        _decide(db, "1", "B", "adopt")
        _decide(db, "1", "C", "reject", reason="高コスト")
        _decide(db, "1", "D", "reject", reason="高コスト")
        _decide(db, "1", "E", "reject", reason="人材不足")
        _decide(db, "1", "F", "pending")
        stats = decisions.decision_stats(db, user_id="local")
        assert (stats.total, stats.adopted, stats.rejected, stats.pending) == (6, 2, 3, 1)
        assert stats.adoption_rate == 33.3
        assert stats.top_reject_reasons[0].reason == "高コスト"
        assert stats.top_reject_reasons[0].count == 2

    def test_stats_empty(self, db) -> None:
        assert decisions.decision_stats(db, user_id="nobody").adoption_rate == 0.0

    def test_delete_checks_owner(self, db) -> None:
        row = _decide(db, "1", "A", "adopt", user_id="alice")
        with pytest.raises(PermissionDenied):
            decisions.delete_decision(db, row.id, user_id="bob")
        decisions.delete_decision(db, row.id, user_id="alice")
        with pytest.raises(NotFoundError):
            decisions.delete_decision(db, row.id, user_id="alice")

    def test_bulk_deletes(self, db) -> None:
        _decide(db, "ranking-1", "A", "adopt")
        _decide(db, "ranking-2", "B", "adopt")
        _decide(db, "5", "C", "adopt")
        _decide(db, "5", "D", "adopt")
        _decide(db, "5", "E", "adopt", user_id="other")
        assert decisions.clear_ranking(db, user_id="local") == 2
        assert decisions.delete_by_strategy(db, "5", "C", user_id="local") == 1
        assert decisions.clear_all(db, user_id="local") == 1
        assert len(decisions.list_decisions(db, user_id="other")) == 1


class TestScoreConfig:
    def test_defaults(self, db) -> None:
        cfg = score_config.get_score_config(db, user_id="local", finder_id="talent")
        assert cfg.is_default
        assert cfg.weights == get_default_weights("talent")
        assert score_config.user_weights(db, user_id="local") is None

    def test_save_and_reset(self, db) -> None:
        saved = score_config.save_score_config(db, {"revenuePotential": 50, "timeToRevenue": 50}, user_id="local")
        assert not saved.is_default
        assert score_config.user_weights(db, user_id="local") == {"revenuePotential": 50.0, "timeToRevenue": 50.0}
        assert score_config.get_score_config(db, user_id="other").is_default

        score_config.save_score_config(db, {"revenuePotential": 10}, user_id="local")
        assert score_config.user_weights(db, user_id="local") == {"revenuePotential": 10.0}

        score_config.reset_score_config(db, user_id="local")
        assert score_config.get_score_config(db, user_id="local").is_default

    @pytest.mark.parametrize("weights", [{"a": 101}, {"a": -1}, {"a": "10"}, {"a": True}])
    def test_invalid_weights(self, db, weights: dict) -> None:
        with pytest.raises(ValidationFailed):
            score_config.save_score_config(db, weights, user_id="local")


class TestCoreData:
    def test_service_crud(self, db) -> None:
        row = core_data.create_service(db, ServiceIn(name=" 保守 ", category="", url="  "))
        assert row.name == "保守"
        assert row.category is None
        assert row.url is None

        core_data.update_service(db, row.id, ServiceIn(name="保守2", description="説明"))
        assert core_data.list_services(db)[0].description == "説明"

        core_data.delete_service(db, row.id)
        assert core_data.list_services(db) == []
        with pytest.raises(NotFoundError):
            core_data.delete_service(db, row.id)

    def test_service_name_required(self, db) -> None:
        with pytest.raises(ValidationFailed):
            core_data.create_service(db, ServiceIn(name=" "))

    def test_asset_type_required(self, db) -> None:
        with pytest.raises(ValidationFailed):
            core_data.create_asset(db, AssetIn(name="施設", type=""))

    def test_asset_update_missing(self, db) -> None:
        with pytest.raises(NotFoundError):
            core_data.update_asset(db, 99, AssetIn(name="x", type="y"))

    def test_constraints(self, db) -> None:
        row = core_data.create_constraint(db, ConstraintIn(name="予算上限", is_default=True))
        assert core_data.list_constraints(db)[0].is_default
        core_data.delete_constraint(db, row.id)
        assert core_data.list_constraints(db) == []


class TestExport:
    def test_services_csv(self, db) -> None:
        core_data.create_service(db, ServiceIn(name="保守, 点検", description='"引用"'))
        text = export.export_text(db, "services", "csv")
        assert text.startswith("\ufeffid,name,category,description,url,created_at\n")
        assert '"保守, 点検"' in text
        assert '"""引用"""' in text

    def test_history_json(self, db, add_exploration) -> None:
        add_exploration([{"name": "A", "scores": HIGH_SCORES}])
        rows = json.loads(export.export_text(db, "history", "json"))
        assert json.loads(rows[0]["result"])["strategies"][0]["name"] == "A"
        assert rows[0]["constraints"] == "[]"

    def test_invalid_type_and_format(self, db) -> None:
        with pytest.raises(ValidationFailed):
            export.export_text(db, "secrets")
        with pytest.raises(ValidationFailed):
            export.export_text(db, "assets", "xml")
        with pytest.raises(ValidationFailed):
            export.export_filename("secrets", "csv")

    def test_filename(self) -> None:
        assert export.export_filename("history", "csv") == "exploration_history.csv"

    def test_import_csv_with_bom(self, db) -> None:
        rows = export.parse_import_rows("\ufeffname,category\n保守,サービス\n,空行\n")
        assert export.import_rows(db, "services", rows) == {"imported": 1, "skipped": 1}
        assert core_data.list_services(db)[0].category == "サービス"

    def test_import_assets_json(self, db) -> None:
        rows = export.parse_import_rows(
            json.dumps([{"name": "施設", "type": "facility"}, {"name": "型なし"}, "junk"]), "json",
        )
        assert export.import_rows(db, "assets", rows) == {"imported": 1, "skipped": 1}

    def test_import_rejects(self, db) -> None:
        with pytest.raises(ValidationFailed):
            export.parse_import_rows('{"name": "x"}', "json")
        with pytest.raises(ValidationFailed):
            export.import_rows(db, "history", [])


class TestEvolution:
    def _adopted(self, db, add_exploration) -> Exploration:
        row = add_exploration([
            {"name": "A", "reason": "強み", "scores": HIGH_SCORES},
            {"name": "B", "scores": MID_SCORES},
        ])
        _decide(db, f"ranking-{row.id}", "A", "adopt")
        return row

    def test_collect_sources_from_adopted(self, db, add_exploration) -> None:
        self._adopted(db, add_exploration)
        sources = evolution_service.collect_sources(db, user_id="local")
        assert len(sources) == 1
        assert sources[0].origin == "adopted"
        assert sources[0].reason == "強み"
        assert sources[0].total_score == pytest.approx(4.30)

    @pytest.mark.asyncio
    async def test_requires_sources(self, db, dry_client) -> None:
        with pytest.raises(ValidationFailed):
            await evolution_service.evolve(db, dry_client, user_id="local")

    @pytest.mark.asyncio
    async def test_evolve_and_save(self, db, dry_client, add_exploration) -> None:
        self._adopted(db, add_exploration)
        result = await evolution_service.evolve(db, dry_client, user_id="local")

        assert result.source_count == 1
        assert result.strategies[0].evolve_type == "crossover"
        assert result.strategies[0].total_score == pytest.approx(4.30)
        assert result.archived_count == 2

        stored = db.get(Exploration, result.exploration_id)
        assert stored.kind == "evolution"
        assert stored.result["evolve_mode"] == "all"
        assert stored.result["strategies"][0]["tags"] == ["crossover"]
        assert db.scalar(select(func.count()).select_from(ScoreBaseline)) == 1

        info = evolution_service.evolve_info(db, user_id="local")
        assert info.can_evolve
        assert info.adopted_count == 1
        assert info.top_strategy_count == 2
        assert info.recent_evolutions[0]["strategy_count"] == 1

    @pytest.mark.asyncio
    async def test_no_save(self, db, dry_client, add_exploration) -> None:
        self._adopted(db, add_exploration)
        result = await evolution_service.evolve(db, dry_client, save=False, user_id="local")
        assert result.exploration_id is None
        assert len(exploration.list_history(db, kind="evolution")) == 0

    @pytest.mark.asyncio
    async def test_mode_filters_types(self, db, dry_client, add_exploration) -> None:
        self._adopted(db, add_exploration)
        result = await evolution_service.evolve(
            db, dry_client, EvolveMode.MUTATION, save=False, user_id="local",
        )
        assert result.strategies == []

    def test_info_empty(self, db) -> None:
        info = evolution_service.evolve_info(db, user_id="local")
        assert not info.can_evolve
        assert info.recent_evolutions == []


class TestSwotService:
    @pytest.mark.asyncio
    async def test_core_info_from_database(self, db, dry_client) -> None:
        core_data.create_service(db, ServiceIn(name="船舶保守"))
        dry_client.simple_completion = AsyncMock(wraps=dry_client.simple_completion)

        result = await swot_service.analyze(db, dry_client, SwotRequest(industry="海運"), use_documents=False)

        assert result.swot.weaknesses
        message = dry_client.simple_completion.await_args.kwargs["user_message"]
        assert "- 船舶保守" in message

    @pytest.mark.asyncio
    async def test_requires_industry(self, db, dry_client) -> None:
        with pytest.raises(ValidationFailed):
            await swot_service.analyze(db, dry_client, SwotRequest(industry=""))
