"""
Tests for insight synthesis.

Verifies:
- Confidence tiers and tag inference
- Overall success-rate insights
- Idempotence of repeated passes
- Stats aggregation
"""

import pytest

from learning_loop.analyze import Analyzer, compute_stats, confidence_for
from learning_loop.analyze.analyzer import infer_tags, insight_text
from learning_loop.db.models import PatternModel, RunModel
from learning_loop.db.services import InsightService, PatternService, RunService
from learning_loop.errors import StorageError
from learning_loop.schemas.results import Stats


def ingest_outcomes(ingester, run_factory, successes, failures, **fields):
    for i in range(successes):
        ingester.ingest_json(run_factory(f"s{i}", outcome="success", **fields))
    for i in range(failures):
        ingester.ingest_json(run_factory(f"f{i}", outcome="failure", **fields))


class TestConfidence:
    @pytest.mark.parametrize(
        "frequency,expected",
        [(3, 0.5), (4, 0.5), (5, 0.75), (9, 0.75), (10, 0.9), (42, 0.9)],
    )
    def test_tiers(self, frequency, expected):
        assert confidence_for(frequency) == expected


class TestInferTags:
    @pytest.mark.parametrize(
        "category,tags",
        [
            ("process", ["process", "workflow"]),
            ("code", ["code-quality", "testing"]),
            ("scope", ["scope", "efficiency"]),
            ("security", ["security"]),
        ],
    )
    def test_category_mapping(self, category, tags):
        assert infer_tags(PatternModel(name="x", category=category)) == tags


class TestInsightText:
    def test_known_template(self):
        pattern = PatternModel(name="tests-failed", frequency=3, description="d")
        text = insight_text(pattern, Stats(total_runs=6))
        assert text == (
            "Tests failed in 3 runs (50% of all runs). "
            "Run tests early and often — don't wait until the end."
        )

    def test_scope_creep_template(self):
        pattern = PatternModel(name="scope-creep", frequency=4, description="d")
        text = insight_text(pattern, Stats(total_runs=8))
        assert text == (
            "Scope creep detected in 4 runs (50%). "
            "Stay focused on the specific task — resist refactoring unrelated code."
        )

    def test_generic_fallback(self):
        pattern = PatternModel(name="custom-rule", frequency=4, description="Something odd")
        text = insight_text(pattern, Stats(total_runs=8))
        assert "custom-rule" in text
        assert "4 times" in text
        assert "50%" in text
        assert "Something odd" in text


class TestComputeStats:
    def test_empty_history(self):
        stats = compute_stats([], 0, 0, 0)
        assert stats.success_rate == 0.0
        assert stats.avg_duration_seconds == 0.0
        assert stats.top_tags == []

    def test_rates_durations_and_tags(self):
        runs = [
            RunModel(id="a", duration_seconds=100, tags=["auth", "bug"]),
            RunModel(id="b", duration_seconds=300, tags=["auth"]),
            RunModel(id="c", duration_seconds=None, tags=["api", "bug"]),
        ]
        stats = compute_stats(runs, 4, 3, 1)

        assert stats.success_rate == 0.75
        assert stats.failure_rate == 0.25
        assert stats.avg_duration_seconds == 200
        assert [(t.tag, t.count) for t in stats.top_tags] == [
            ("auth", 2),
            ("bug", 2),
            ("api", 1),
        ]

    def test_top_tags_truncated_to_ten(self):
        runs = [RunModel(id="a", tags=[f"t{i:02d}" for i in range(12)])]
        assert len(compute_stats(runs, 1, 1, 0).top_tags) == 10


class TestAnalyzer:
    """Tests for Analyzer.analyze()."""

    def test_no_runs_is_a_noop(self, db_session):
        result = Analyzer(db_session).analyze()

        assert result.runs_analyzed == 0
        assert result.insights_created == []

    def test_six_run_scenario(self, db_session, ingester, run_factory):
        for i in range(3):
            ingester.ingest_json(run_factory(f"s{i}", outcome="success", tests_passed=True))
        for i in range(3):
            ingester.ingest_json(run_factory(f"f{i}", outcome="failure", tests_passed=False))

        result = Analyzer(db_session).analyze()

        assert result.runs_analyzed == 6
        assert PatternService(db_session).get_by_name("tests-failed").frequency == 3
        assert RunService(db_session).get_unanalyzed() == []

        referencing = [i for i in result.insights_created if "tests-failed" in i.patterns]
        assert len(referencing) == 1
        assert referencing[0].id == "ins-tests-failed-6"
        assert referencing[0].confidence == 0.5
        assert referencing[0].tags == ["code-quality", "testing"]
        assert referencing[0].based_on_runs == 6

    def test_patterns_below_threshold_produce_no_insight(self, db_session, ingester, run_factory):
        ingester.ingest_json(run_factory("r1", tests_passed=False))
        ingester.ingest_json(run_factory("r2", tests_passed=False))

        result = Analyzer(db_session).analyze()

        assert result.insights_created == []
        assert [(p.name, p.count) for p in result.patterns_found] == [("tests-failed", 2)]

    def test_low_success_rate(self, db_session, ingester, run_factory):
        ingest_outcomes(ingester, run_factory, successes=1, failures=4, tests_passed=True)

        result = Analyzer(db_session).analyze()

        overall = [i for i in result.insights_created if i.id == "ins-overall-5"]
        assert len(overall) == 1
        assert overall[0].text.startswith("Low success rate: only 20% across 5 runs.")
        assert overall[0].confidence == 0.85
        assert overall[0].patterns == []
        assert overall[0].tags == []

    def test_strong_performance(self, db_session, ingester, run_factory):
        ingest_outcomes(ingester, run_factory, successes=4, failures=1, tests_passed=True)

        result = Analyzer(db_session).analyze()

        texts = [i.text for i in result.insights_created]
        assert any(t.startswith("Strong performance: 80% success rate across 5 runs.") for t in texts)

    def test_middling_rate_has_no_overall_insight(self, db_session, ingester, run_factory):
        ingest_outcomes(ingester, run_factory, successes=3, failures=3, tests_passed=True)

        result = Analyzer(db_session).analyze()

        assert not any(i.id.startswith("ins-overall") for i in result.insights_created)

    def test_fewer_than_five_runs_has_no_overall_insight(self, db_session, ingester, run_factory):
        ingest_outcomes(ingester, run_factory, successes=4, failures=0, tests_passed=True)

        result = Analyzer(db_session).analyze()

        assert result.insights_created == []

    def test_second_pass_is_idempotent(self, db_session, ingester, run_factory):
        ingest_outcomes(ingester, run_factory, successes=1, failures=4, tests_passed=False)
        analyzer = Analyzer(db_session)
        first = analyzer.analyze()
        count_after_first = InsightService(db_session).count()

        second = analyzer.analyze()

        assert first.runs_analyzed == 5
        assert second.runs_analyzed == 0
        assert second.insights_created == []
        assert InsightService(db_session).count() == count_after_first
        assert PatternService(db_session).get_by_name("tests-failed").frequency == 5

    def test_same_totals_do_not_duplicate_insights(self, db_session, ingester, run_factory):
        ingest_outcomes(ingester, run_factory, successes=1, failures=4, tests_passed=False)
        Analyzer(db_session).analyze()
        # Force the runs back into the pending set without changing the totals
        for run in db_session.query(RunModel).all():
            run.analyzed = False
        db_session.commit()

        result = Analyzer(db_session).analyze()

        assert result.runs_analyzed == 5
        assert result.insights_created == []

    def test_new_runs_produce_new_insight_ids(self, db_session, ingester, run_factory):
        ingest_outcomes(ingester, run_factory, successes=0, failures=5, tests_passed=False)
        Analyzer(db_session).analyze()
        ingester.ingest_json(run_factory("late", outcome="failure", tests_passed=False))

        result = Analyzer(db_session).analyze()

        ids = {i.id for i in result.insights_created}
        assert "ins-tests-failed-6" in ids
        tests_failed = next(i for i in result.insights_created if i.id == "ins-tests-failed-6")
        assert tests_failed.confidence == 0.75

    def test_failed_insight_write_leaves_runs_pending(
        self, db_session, ingester, run_factory, monkeypatch
    ):
        ingest_outcomes(ingester, run_factory, successes=0, failures=5, tests_passed=False)

        def broken_insert(self, insight):
            raise StorageError("insert insight")

        monkeypatch.setattr(InsightService, "insert", broken_insert)

        with pytest.raises(StorageError):
            Analyzer(db_session).analyze()

        assert len(RunService(db_session).get_unanalyzed()) == 5
