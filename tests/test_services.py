"""
Tests for the storage services.

Verifies:
- RunService insert/get/list/count and the analyzed flag
- PatternService upsert merge semantics and idempotent matches
- InsightService ordering, tag filtering and soft deactivation
"""

import pytest

from learning_loop.db import Database, get_database_url
from learning_loop.db.models import InsightModel, PatternModel, RunModel
from learning_loop.db.services import InsightService, PatternService, RunService
from learning_loop.errors import DuplicateEntityError, NotFoundError, RunValidationError
from learning_loop.schemas.run import RunRecord


def record(run_id, **fields):
    data = {
        "id": run_id,
        "task": "Fix login",
        "outcome": "success",
        "timestamp": "2026-01-10T09:00:00Z",
    }
    data.update(fields)
    return RunRecord(**data)


def pattern(name, frequency=1, seen="2026-01-10T09:00:00Z", description="desc"):
    return PatternModel(
        id=f"pat-{name}",
        name=name,
        description=description,
        category="process",
        impact="high",
        outcome_correlation="failure",
        frequency=frequency,
        first_seen=seen,
        last_seen=seen,
    )


def insight(insight_id, confidence=0.5, tags=None):
    return InsightModel(
        id=insight_id,
        text=f"insight {insight_id}",
        confidence=confidence,
        based_on_runs=5,
        patterns=[],
        tags=tags or [],
        cadence="analysis",
    )


class TestDatabaseUrl:
    """Tests for database URL normalization."""

    def test_bare_path_becomes_sqlite_url(self):
        assert get_database_url("data/loop.db") == "sqlite:///data/loop.db"

    def test_async_sqlite_driver_is_made_sync(self):
        assert get_database_url("sqlite+aiosqlite:///x.db") == "sqlite:///x.db"

    def test_file_database_creates_parent_directory(self, tmp_path):
        target = tmp_path / "nested" / "dir" / "loop.db"
        db = Database(str(target))
        try:
            db.init_schema()
            assert target.parent.is_dir()
            assert db.path == str(target)
        finally:
            db.close()

    def test_memory_database_has_no_path(self, database):
        assert database.path is None


class TestRunService:
    """Tests for RunService."""

    def test_insert_and_get(self, db_session):
        runs = RunService(db_session)
        runs.insert(record("r1", tags=["auth"], metadata={"pr": 12}))

        stored = runs.get("r1")
        assert stored.task == "Fix login"
        assert stored.tags == ["auth"]
        assert stored.meta == {"pr": 12}
        assert stored.analyzed is False

    def test_optional_booleans_stay_unset(self, db_session):
        runs = RunService(db_session)
        runs.insert(record("r1", tests_passed=False))

        stored = runs.get("r1")
        assert stored.tests_passed is False
        assert stored.lint_passed is None
        assert stored.duration_seconds is None

    def test_duplicate_id_raises(self, db_session):
        runs = RunService(db_session)
        runs.insert(record("r1"))

        with pytest.raises(DuplicateEntityError) as exc_info:
            runs.insert(record("r1", task="Other"))

        assert exc_info.value.entity_id == "r1"
        assert runs.get("r1").task == "Fix login"

    def test_insert_requires_timestamp(self, db_session):
        with pytest.raises(RunValidationError) as exc_info:
            RunService(db_session).insert(record("r1", timestamp=None))
        assert exc_info.value.code == "MISSING_FIELD"

    def test_get_missing_raises_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            RunService(db_session).get("nope")

    def test_list_newest_first_with_limit_and_outcome(self, db_session):
        runs = RunService(db_session)
        runs.insert(record("old", timestamp="2026-01-01T00:00:00Z"))
        runs.insert(record("mid", timestamp="2026-01-05T00:00:00Z", outcome="failure"))
        runs.insert(record("new", timestamp="2026-01-09T00:00:00Z"))

        assert [r.id for r in runs.list()] == ["new", "mid", "old"]
        assert [r.id for r in runs.list(limit=2)] == ["new", "mid"]
        assert [r.id for r in runs.list(outcome="failure")] == ["mid"]

    def test_count(self, db_session):
        runs = RunService(db_session)
        runs.insert(record("a"))
        runs.insert(record("b", outcome="failure"))
        runs.insert(record("c", outcome="partial"))

        assert runs.count() == (3, 1, 1)

    def test_mark_analyzed_is_one_way(self, db_session):
        runs = RunService(db_session)
        runs.insert(record("a", timestamp="2026-01-02T00:00:00Z"))
        runs.insert(record("b", timestamp="2026-01-01T00:00:00Z"))

        assert [r.id for r in runs.get_unanalyzed()] == ["b", "a"]

        runs.mark_analyzed("a")
        runs.mark_analyzed("a")

        assert runs.get("a").analyzed is True
        assert [r.id for r in runs.get_unanalyzed()] == ["b"]


class TestPatternService:
    """Tests for PatternService."""

    def test_upsert_creates_then_merges(self, db_session):
        patterns = PatternService(db_session)
        patterns.upsert(pattern("tests-failed", seen="2026-01-01T00:00:00Z"))
        merged = patterns.upsert(
            pattern("tests-failed", seen="2026-01-03T00:00:00Z", description="newer")
        )

        assert merged.frequency == 2
        assert merged.first_seen == "2026-01-01T00:00:00Z"
        assert merged.last_seen == "2026-01-03T00:00:00Z"
        assert merged.description == "newer"
        assert len(patterns.list()) == 1

    def test_get_by_name(self, db_session):
        patterns = PatternService(db_session)
        patterns.upsert(pattern("scope-creep"))

        assert patterns.get_by_name("scope-creep").id == "pat-scope-creep"
        with pytest.raises(NotFoundError):
            patterns.get_by_name("missing")

    def test_list_orders_by_frequency_then_name(self, db_session):
        patterns = PatternService(db_session)
        patterns.upsert(pattern("b-pattern", frequency=2))
        patterns.upsert(pattern("a-pattern", frequency=2))
        patterns.upsert(pattern("c-pattern", frequency=5))

        assert [p.name for p in patterns.list()] == ["c-pattern", "a-pattern", "b-pattern"]

    def test_add_match_is_idempotent(self, db_session):
        RunService(db_session).insert(record("r1"))
        patterns = PatternService(db_session)
        stored = patterns.upsert(pattern("tests-failed"))

        patterns.add_match("r1", stored.id)
        patterns.add_match("r1", stored.id)

        assert [p.name for p in patterns.for_run("r1")] == ["tests-failed"]
        assert patterns.for_run("other") == []


class TestInsightService:
    """Tests for InsightService."""

    def test_duplicate_insight_raises(self, db_session):
        insights = InsightService(db_session)
        insights.insert(insight("ins-a"))

        with pytest.raises(DuplicateEntityError):
            insights.insert(insight("ins-a"))
        assert insights.count() == 1

    def test_list_orders_by_confidence(self, db_session):
        insights = InsightService(db_session)
        insights.insert(insight("ins-low", confidence=0.5))
        insights.insert(insight("ins-high", confidence=0.9))

        assert [i.id for i in insights.list()] == ["ins-high", "ins-low"]

    def test_tag_filter_matches_any_tag(self, db_session):
        insights = InsightService(db_session)
        insights.insert(insight("ins-ab", tags=["A", "B"]))

        assert [i.id for i in insights.list(tags=["A"])] == ["ins-ab"]
        assert [i.id for i in insights.list(tags=["B"])] == ["ins-ab"]
        assert insights.list(tags=["C"]) == []

    def test_deactivate_is_soft(self, db_session):
        insights = InsightService(db_session)
        insights.insert(insight("ins-a"))

        insights.deactivate("ins-a")

        assert insights.list() == []
        assert insights.count() == 0
        assert [i.id for i in insights.list(active_only=False)] == ["ins-a"]
        assert insights.get("ins-a").active is False

    def test_deactivate_unknown_raises(self, db_session):
        with pytest.raises(NotFoundError):
            InsightService(db_session).deactivate("ins-missing")


class TestModelSerialization:
    """Tests for to_dict()/to_view() on the ORM models."""

    def test_run_to_view_uses_wire_names(self, db_session):
        RunService(db_session).insert(record("r1", metadata={"k": "v"}, agent="bot"))
        view = db_session.get(RunModel, "r1").to_view()

        assert view.metadata == {"k": "v"}
        assert view.agent == "bot"
        assert view.created_at is not None
