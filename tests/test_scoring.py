"""Tests for score totals, judgments, ranking, archiving and baselines."""

from __future__ import annotations

import pytest

from conftest import HIGH_SCORES, MID_SCORES, VETO_SCORES
from kachisuji.db.models import TopStrategy
from kachisuji.schemas.strategy import CONDITIONAL, DECLINE, PRIORITY
from kachisuji.scoring import (
    archive_top_strategies,
    calculate_total_score,
    completed_explorations,
    get_baseline_history,
    get_judgment,
    get_top_strategies,
    rank_strategies,
    record_baseline,
)

ALL_FIVES = {k: 5 for k in HIGH_SCORES}


class TestCalculateTotalScore:
    def test_default_weights(self) -> None:
        assert calculate_total_score(HIGH_SCORES) == pytest.approx(4.30)
        assert calculate_total_score(MID_SCORES) == pytest.approx(3.65)

    def test_unknown_keys_plain_mean(self) -> None:
        assert calculate_total_score({"a": 4, "b": 2}) == pytest.approx(3.0)

    def test_explicit_weights(self) -> None:
        assert calculate_total_score({"a": 5, "b": 1}, {"a": 3, "b": 1}) == pytest.approx(4.0)

    def test_empty(self) -> None:
        assert calculate_total_score({}) == 0.0

    def test_zero_weights(self) -> None:
        assert calculate_total_score({"a": 5}, {"a": 0}) == 0.0

    def test_ignores_non_numeric(self) -> None:
        assert calculate_total_score({"a": True, "b": 4, "c": "x"}) == pytest.approx(4.0)


class TestGetJudgment:
    def test_priority(self) -> None:
        assert get_judgment(HIGH_SCORES) == PRIORITY

    def test_conditional(self) -> None:
        assert get_judgment(MID_SCORES) == CONDITIONAL

    def test_veto_on_single_axis(self) -> None:
        assert calculate_total_score(VETO_SCORES) >= 3.0
        assert get_judgment(VETO_SCORES) == DECLINE

    def test_low_total(self) -> None:
        assert get_judgment({"a": 2, "b": 3}) == DECLINE

    @pytest.mark.parametrize(
        ("scores", "expected"),
        [({"a": 4, "b": 4}, PRIORITY), ({"a": 3, "b": 3}, CONDITIONAL)],
    )
    def test_boundaries_inclusive(self, scores: dict, expected: str) -> None:
        assert get_judgment(scores) == expected


class TestRankStrategies:
    def test_ranks_and_stats(self, add_exploration) -> None:
        exploration = add_exploration([
            {"name": "B", "scores": MID_SCORES},
            {"name": "A", "howToObtain": "試行", "scores": HIGH_SCORES},
            {"name": "unscored"},
            {"reason": "name missing"},
        ])
        result = rank_strategies([exploration])
        assert [s.name for s in result.strategies] == ["A", "B"]
        assert [s.rank for s in result.strategies] == [1, 2]
        assert result.strategies[0].how_to_obtain == "試行"
        assert result.strategies[0].judgment == PRIORITY
        assert result.stats.total_strategies == 2
        assert result.stats.priority_count == 1
        assert result.stats.conditional_count == 1
        assert result.stats.avg_score == pytest.approx(3.975)
        assert result.stats.top_score == pytest.approx(4.30)

    def test_filters(self, add_exploration) -> None:
        exploration = add_exploration([
            {"name": "A", "scores": HIGH_SCORES},
            {"name": "B", "scores": MID_SCORES},
            {"name": "V", "scores": VETO_SCORES},
        ])
        assert [s.name for s in rank_strategies([exploration], min_score=4.0).strategies] == ["A"]
        assert [s.name for s in rank_strategies([exploration], judgment=DECLINE).strategies] == ["V"]

    def test_limit_keeps_full_stats(self, add_exploration) -> None:
        exploration = add_exploration([
            {"name": "A", "scores": HIGH_SCORES},
            {"name": "B", "scores": MID_SCORES},
        ])
        result = rank_strategies([exploration], limit=1)
        assert len(result.strategies) == 1
        assert result.stats.total_strategies == 2

    def test_custom_weights(self, add_exploration) -> None:
        exploration = add_exploration([
            {"name": "A", "scores": HIGH_SCORES},
            {"name": "B", "scores": MID_SCORES},
        ])
        result = rank_strategies([exploration], weights={"revenuePotential": 1})
        assert [s.name for s in result.strategies] == ["B", "A"]
        assert result.strategies[0].total_score == pytest.approx(5.0)

    def test_skips_incomplete_and_malformed(self, add_exploration) -> None:
        pending = add_exploration([{"name": "P", "scores": HIGH_SCORES}], status="pending")
        broken = add_exploration([])
        broken.result = {"strategies": "oops"}
        assert rank_strategies([pending, broken]).strategies == []

    def test_empty_stats(self) -> None:
        result = rank_strategies([])
        assert result.strategies == []
        assert result.stats.top_score == 0.0


class TestCompletedExplorations:
    def test_filters_by_user_and_finder(self, db, add_exploration) -> None:
        add_exploration([], user_id="alice")
        add_exploration([], user_id="bob")
        add_exploration([], user_id="alice", finder_id="talent")
        add_exploration([], user_id="alice", status="failed")

        assert len(completed_explorations(db)) == 3
        assert len(completed_explorations(db, user_id="alice")) == 2
        assert len(completed_explorations(db, user_id="alice", finder_id="talent")) == 1


class TestArchive:
    def test_archives_once(self, db, add_exploration) -> None:
        add_exploration([
            {"name": "A", "scores": HIGH_SCORES},
            {"name": "B", "scores": MID_SCORES},
            {"name": "V", "scores": VETO_SCORES},
        ])
        assert archive_top_strategies(db) == {"archived": 1, "total": 1}
        db.commit()
        assert archive_top_strategies(db) == {"archived": 0, "total": 1}

        top = get_top_strategies(db)
        assert [t.name for t in top] == ["A"]
        assert top[0].judgment == PRIORITY

    def test_lower_threshold(self, db, add_exploration) -> None:
        add_exploration([
            {"name": "A", "scores": HIGH_SCORES},
            {"name": "B", "scores": MID_SCORES},
        ])
        assert archive_top_strategies(db, min_score=3.5)["archived"] == 2

    def test_scoped_to_user(self, db, add_exploration) -> None:
        add_exploration([{"name": "A", "scores": HIGH_SCORES}], user_id="alice")
        add_exploration([{"name": "B", "scores": HIGH_SCORES}], user_id="bob")
        archive_top_strategies(db, user_id="alice")
        db.commit()
        assert [t.name for t in get_top_strategies(db, user_id="alice")] == ["A"]
        assert get_top_strategies(db, user_id="bob") == []
        assert db.query(TopStrategy).count() == 1


class TestBaselines:
    def test_none_without_strategies(self, db) -> None:
        assert record_baseline(db) is None

    def test_improvement_vs_previous(self, db, add_exploration) -> None:
        add_exploration([
            {"name": "A", "scores": HIGH_SCORES},
            {"name": "B", "scores": MID_SCORES},
        ])
        first = record_baseline(db, run_id="r1")
        db.commit()
        assert first.improvement is None
        assert first.top_score == pytest.approx(4.30)
        assert first.high_score_count == 2
        assert first.total_strategies == 2

        add_exploration([{"name": "C", "scores": ALL_FIVES}])
        second = record_baseline(db, run_id="r2")
        db.commit()
        assert second.improvement == pytest.approx((5.0 - 4.30) / 4.30 * 100)

        history = get_baseline_history(db)
        assert [b.run_id for b in history] == ["r2", "r1"]
