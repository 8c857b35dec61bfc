"""Tests for the FastAPI routes, run against an in-memory database and the dry-run client."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from kachisuji.api.app import create_app
from kachisuji.rag.retrieval import invalidate_retrieval_cache
from kachisuji.schemas.config import AppConfig
from kachisuji.schemas.strategy import CONDITIONAL, PRIORITY
from kachisuji.shared.llm_client import DryRunClient

FIRST_STRATEGY = "既存顧客向け保守サービスのサブスクリプション化"
SECOND_STRATEGY = "業界特化型データ分析プラットフォーム"


@pytest.fixture
def api() -> TestClient:
    invalidate_retrieval_cache()
    app = create_app(AppConfig(database_url="sqlite://", industry="海運"), DryRunClient())
    return TestClient(app)


def _explore(api: TestClient, user: str | None = None) -> dict:
    headers = {"X-User-Id": user} if user else {}
    response = api.post("/api/explore", json={"question": "新規事業は？"}, headers=headers)
    assert response.status_code == 200
    return response.json()


class TestExploreRoutes:
    def test_explore(self, api) -> None:
        body = _explore(api)
        assert body["status"] == "completed"
        assert body["user_id"] == "local"
        assert body["finder_id"] == "winning-strategy"
        assert len(body["result"]["strategies"]) == 2

    def test_user_header(self, api) -> None:
        assert _explore(api, user="alice")["user_id"] == "alice"
        assert api.get("/api/history").json() == []
        assert len(api.get("/api/history", headers={"X-User-Id": "alice"}).json()) == 1

    def test_blank_question(self, api) -> None:
        response = api.post("/api/explore", json={"question": " "})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_get_and_delete(self, api) -> None:
        exploration_id = _explore(api)["id"]
        assert api.get(f"/api/explore/{exploration_id}").json()["question"] == "新規事業は？"
        assert api.delete(f"/api/explore/{exploration_id}").json() == {"success": True}
        assert api.get(f"/api/explore/{exploration_id}").status_code == 404

    def test_clear_history(self, api) -> None:
        _explore(api)
        _explore(api)
        assert api.delete("/api/history").json() == {"success": True, "deleted": 2}

    def test_llm_failure_is_bad_gateway(self) -> None:
        client = SimpleNamespace(
            simple_completion=AsyncMock(side_effect=RuntimeError("upstream down")),
            embeddings_available=False,
        )
        app = create_app(AppConfig(database_url="sqlite://"), client)
        response = TestClient(app).post("/api/explore", json={"question": "問い"})
        assert response.status_code == 502
        assert response.json()["error"] == "探索に失敗しました: upstream down"

    def test_other_users_exploration(self, api) -> None:
        exploration_id = _explore(api, user="alice")["id"]
        bob = {"X-User-Id": "bob"}
        assert api.get(f"/api/explore/{exploration_id}", headers=bob).status_code == 403
        assert api.delete(f"/api/explore/{exploration_id}", headers=bob).status_code == 403
        assert api.get(f"/api/explore/{exploration_id}", headers={"X-User-Id": "alice"}).status_code == 200


class TestRankingRoutes:
    def test_ranking(self, api) -> None:
        _explore(api)
        body = api.get("/api/ranking").json()
        assert [s["name"] for s in body["strategies"]] == [FIRST_STRATEGY, SECOND_STRATEGY]
        assert body["strategies"][0]["total_score"] == pytest.approx(4.30)
        assert body["strategies"][0]["judgment"] == PRIORITY
        assert body["stats"]["total_strategies"] == 2

    def test_judgment_filter(self, api) -> None:
        _explore(api)
        body = api.get("/api/ranking", params={"judgment": CONDITIONAL}).json()
        assert [s["name"] for s in body["strategies"]] == [SECOND_STRATEGY]

    def test_invalid_judgment(self, api) -> None:
        assert api.get("/api/ranking", params={"judgment": "maybe"}).status_code == 400

    def test_saved_weights_change_order(self, api) -> None:
        _explore(api)
        saved = api.post("/api/score-config", json={"weights": {"revenuePotential": 100}})
        assert saved.status_code == 200
        assert saved.json()["is_default"] is False

        body = api.get("/api/ranking").json()
        assert body["strategies"][0]["name"] == SECOND_STRATEGY

        assert api.delete("/api/score-config").json() == {"success": True}
        assert api.get("/api/score-config").json()["is_default"] is True

    def test_invalid_weights(self, api) -> None:
        response = api.post("/api/score-config", json={"weights": {"revenuePotential": 150}})
        assert response.status_code == 400

    def test_archive_top_strategies(self, api) -> None:
        _explore(api)
        body = api.post("/api/top-strategies").json()
        assert body["success"] is True
        assert body["archived"] == 1
        assert body["total"] == 1

        again = api.post("/api/top-strategies", json={"min_score": 3.5}).json()
        assert again["archived"] == 1
        assert again["total"] == 2

        listed = api.get("/api/top-strategies").json()
        assert listed["total"] == 2
        assert listed["strategies"][0]["name"] == FIRST_STRATEGY


class TestDecisionRoutes:
    def _decide(self, api, name: str, decision: str = "adopt", user: str = "local", reason=None):
        return api.post(
            "/api/decisions",
            json={"explorationId": "ranking-1", "strategyName": name, "decision": decision, "reason": reason},
            headers={"X-User-Id": user},
        )

    def test_record_and_list(self, api) -> None:
        response = self._decide(api, "A")
        assert response.status_code == 200
        assert response.json()["exploration_id"] == "ranking-1"
        listed = api.get("/api/decisions", params={"exploration_id": "ranking-1"}).json()
        assert [d["strategy_name"] for d in listed["decisions"]] == ["A"]

    def test_invalid_decision(self, api) -> None:
        assert self._decide(api, "A", decision="maybe").status_code == 400

    def test_stats(self, api) -> None:
        self._decide(api, "A")
        self._decide(api, "B", decision="reject", reason="高コスト")
        stats = api.get("/api/decisions", params={"stats": True}).json()
        assert stats["total"] == 2
        assert stats["adoption_rate"] == 50.0
        assert stats["top_reject_reasons"] == [{"reason": "高コスト", "count": 1}]

    def test_delete_other_users_decision(self, api) -> None:
        decision_id = self._decide(api, "A", user="alice").json()["id"]
        response = api.delete("/api/decisions", params={"id": decision_id}, headers={"X-User-Id": "bob"})
        assert response.status_code == 403

    def test_delete_variants(self, api) -> None:
        self._decide(api, "A")
        self._decide(api, "B")
        by_strategy = api.delete("/api/decisions", params={"exploration_id": "ranking-1", "strategy_name": "A"})
        assert by_strategy.json() == {"success": True, "deleted": 1}
        assert api.delete("/api/decisions", params={"clear_ranking": True}).json()["deleted"] == 1

    def test_delete_needs_target(self, api) -> None:
        assert api.delete("/api/decisions").status_code == 400


class TestSwotRoute:
    def test_uses_configured_industry(self, api) -> None:
        response = api.post("/api/swot-analyze", json={})
        assert response.status_code == 200
        assert response.json()["swot"]["strengths"][0]["text"] == "長年の顧客基盤"

    def test_industry_required(self) -> None:
        app = create_app(AppConfig(database_url="sqlite://"), DryRunClient())
        assert TestClient(app).post("/api/swot-analyze", json={}).status_code == 400

    def test_llm_failure_is_bad_gateway(self) -> None:
        client = SimpleNamespace(
            simple_completion=AsyncMock(side_effect=RuntimeError("timeout")),
            embeddings_available=False,
        )
        app = create_app(AppConfig(database_url="sqlite://", industry="海運"), client)
        response = TestClient(app).post("/api/swot-analyze", json={})
        assert response.status_code == 502
        assert response.json() == {"error": "SWOT分析に失敗しました: timeout"}


class TestEvolveRoutes:
    def test_nothing_to_evolve(self, api) -> None:
        assert api.get("/api/evolve").json()["can_evolve"] is False
        assert api.post("/api/evolve").status_code == 400

    def test_evolve_from_adopted(self, api) -> None:
        exploration_id = _explore(api)["id"]
        api.post("/api/decisions", json={
            "exploration_id": f"ranking-{exploration_id}", "strategy_name": FIRST_STRATEGY, "decision": "adopt",
        })

        body = api.post("/api/evolve", json={"mode": "all"}).json()
        assert body["source_count"] == 1
        assert body["strategies"][0]["evolve_type"] == "crossover"
        assert body["archived_count"] == 2
        assert body["exploration_id"] is not None

        history = api.get("/api/history", params={"kind": "evolution"}).json()
        assert len(history) == 1

    def test_invalid_mode(self, api) -> None:
        assert api.post("/api/evolve", json={"mode": "explode"}).status_code == 422


class TestRagRoutes:
    def _upload(self, api, name: str = "wind.txt", content: bytes = "洋上風力の保守事業".encode("utf-8")):
        return api.post("/api/rag", files={"file": (name, content, "text/plain")}, data={"scope": "shared"})

    def test_upload_list_delete(self, api) -> None:
        response = self._upload(api)
        assert response.status_code == 200
        body = response.json()
        assert body["processing"]["chunks_created"] == 1
        assert body["document"]["file_type"] == "txt"

        listed = api.get("/api/rag").json()
        assert listed[0]["chunk_count"] == 1
        assert listed[0]["content_length"] == len("洋上風力の保守事業")

        doc_id = body["document"]["id"]
        assert api.delete("/api/rag", params={"id": doc_id}).json() == {"success": True}
        assert api.delete("/api/rag", params={"id": doc_id}).status_code == 404

    def test_unsupported_type(self, api) -> None:
        assert self._upload(api, name="tool.exe").status_code == 400

    def test_empty_text(self, api) -> None:
        assert self._upload(api, content=b"   ").status_code == 400

    @pytest.mark.parametrize(
        ("name", "content"),
        [("bad.pdf", b"not a pdf at all"), ("bad.json", b"{oops"), ("bad.docx", b"not a zip")],
    )
    def test_corrupt_file(self, api, name: str, content: bytes) -> None:
        response = self._upload(api, name=name, content=content)
        assert response.status_code == 400
        assert response.json()["error"].startswith("インポート中にエラーが発生しました")
        assert api.get("/api/rag").json() == []

    def test_reprocess(self, api) -> None:
        self._upload(api)
        body = api.post("/api/rag/reprocess").json()
        assert body["total"] == 1
        assert body["success"] == 1

    def test_scope_filter(self, api) -> None:
        self._upload(api)
        assert api.get("/api/rag", params={"scope": "private"}).json() == []


class TestCoreRoutes:
    def test_service_crud(self, api) -> None:
        created = api.post("/api/core/services", json={"name": "船舶保守"}).json()
        updated = api.put(f"/api/core/services/{created['id']}", json={"name": "船舶保守2"}).json()
        assert updated["name"] == "船舶保守2"
        assert len(api.get("/api/core/services").json()) == 1
        assert api.delete(f"/api/core/services/{created['id']}").json() == {"success": True}

    def test_missing_asset(self, api) -> None:
        assert api.put("/api/core/assets/99", json={"name": "x", "type": "y"}).status_code == 404

    def test_asset_validation(self, api) -> None:
        assert api.post("/api/core/assets", json={"name": "x"}).status_code == 400

    def test_constraints(self, api) -> None:
        created = api.post("/api/core/constraints", json={"name": "予算上限", "is_default": True}).json()
        assert created["is_default"] is True
        assert api.delete(f"/api/core/constraints/{created['id']}").status_code == 200


class TestExportRoutes:
    def test_export_csv(self, api) -> None:
        api.post("/api/core/services", json={"name": "船舶保守"})
        response = api.get("/api/export", params={"type": "services"})
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="services.csv"'
        assert "船舶保守" in response.text

    def test_export_invalid(self, api) -> None:
        assert api.get("/api/export", params={"type": "services", "format": "xml"}).status_code == 400
        assert api.get("/api/export", params={"type": "secrets"}).status_code == 400

    def test_import_json(self, api) -> None:
        payload = json.dumps([{"name": "施設", "type": "facility"}, {"name": ""}]).encode("utf-8")
        response = api.post(
            "/api/import", data={"type": "assets"}, files={"file": ("assets.json", payload, "application/json")},
        )
        assert response.json() == {"success": True, "imported": 1, "skipped": 1}

    def test_import_broken_json(self, api) -> None:
        response = api.post(
            "/api/import", data={"type": "assets"}, files={"file": ("assets.json", b"{oops", "application/json")},
        )
        assert response.status_code == 400


class TestFinderRoute:
    def test_lists_finders(self, api) -> None:
        ids = {f["id"] for f in api.get("/api/finders").json()}
        assert ids == {"winning-strategy", "defensive-dx", "talent"}
