"""
Tests for run ingestion.

Verifies:
- JSON parsing and validation error codes
- Timestamp defaulting
- Duplicate run rejection
- Pattern detection on ingest
"""

import io
import json
import re

import pytest

from learning_loop.db.services import RunService
from learning_loop.errors import DuplicateEntityError, RunValidationError
from learning_loop.ingest import parse_run, validate_run
from learning_loop.ingest.ingester import utc_timestamp
from learning_loop.schemas.run import RunRecord


class TestParseRun:
    """Tests for parse_run()."""

    def test_invalid_json(self):
        with pytest.raises(RunValidationError) as exc_info:
            parse_run("{not json")
        assert exc_info.value.code == "INVALID_JSON"

    def test_non_object_is_invalid_record(self):
        with pytest.raises(RunValidationError) as exc_info:
            parse_run("[1, 2]")
        assert exc_info.value.code == "INVALID_RECORD"

    def test_wrong_field_type_is_invalid_record(self):
        with pytest.raises(RunValidationError) as exc_info:
            parse_run({"id": "r1", "task": "x", "outcome": "success", "tags": "auth"})
        assert exc_info.value.code == "INVALID_RECORD"

    def test_null_lists_become_empty(self):
        record = parse_run('{"id": "r1", "files_touched": null, "metadata": null}')
        assert record.files_touched == []
        assert record.metadata == {}

    def test_unknown_fields_are_ignored(self):
        record = parse_run({"id": "r1", "extra": 1})
        assert record.id == "r1"

    def test_error_to_dict(self):
        with pytest.raises(RunValidationError) as exc_info:
            parse_run("nope")
        payload = exc_info.value.to_dict()
        assert payload["error"] == "validation_failed"
        assert payload["code"] == "INVALID_JSON"


class TestValidateRun:
    """Tests for validate_run()."""

    @pytest.mark.parametrize("missing", ["id", "task", "outcome"])
    def test_missing_required_field(self, missing):
        data = {"id": "r1", "task": "Fix", "outcome": "success"}
        data[missing] = ""
        with pytest.raises(RunValidationError) as exc_info:
            validate_run(RunRecord(**data))
        assert exc_info.value.code == "MISSING_FIELD"
        assert missing in exc_info.value.message

    def test_invalid_outcome(self):
        with pytest.raises(RunValidationError) as exc_info:
            validate_run(RunRecord(id="r1", task="Fix", outcome="done"))
        assert exc_info.value.code == "INVALID_OUTCOME"

    def test_missing_timestamp_is_filled(self):
        validated = validate_run(RunRecord(id="r1", task="Fix", outcome="error"))
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", validated.timestamp)

    def test_given_timestamp_is_kept(self):
        validated = validate_run(
            RunRecord(id="r1", task="Fix", outcome="error", timestamp="2025-12-01T00:00:00Z")
        )
        assert validated.timestamp == "2025-12-01T00:00:00Z"

    def test_utc_timestamp_format(self):
        assert utc_timestamp().endswith("Z")


class TestIngester:
    """Tests for Ingester."""

    def test_ingest_json_stores_run(self, db_session, ingester, run_factory):
        result = ingester.ingest_json(json.dumps(run_factory("r1", tags=["docs"])))

        assert result.run.id == "r1"
        assert result.patterns == []
        assert RunService(db_session).get("r1").tags == ["docs"]

    def test_ingest_reports_matched_patterns(self, ingester, run_factory):
        result = ingester.ingest_json(
            run_factory("r1", outcome="failure", tests_passed=False, duration_seconds=30)
        )
        assert result.patterns == ["tests-failed", "quick-failure"]

    def test_duplicate_run_rejected(self, db_session, ingester, run_factory):
        ingester.ingest_json(run_factory("r1"))

        with pytest.raises(DuplicateEntityError):
            ingester.ingest_json(run_factory("r1", outcome="failure"))

        assert RunService(db_session).count() == (1, 1, 0)

    def test_invalid_record_writes_nothing(self, db_session, ingester):
        with pytest.raises(RunValidationError):
            ingester.ingest_json({"id": "r1", "task": "Fix", "outcome": "maybe"})
        assert RunService(db_session).count() == (0, 0, 0)

    def test_ingest_stream(self, ingester, run_factory):
        stream = io.StringIO(json.dumps(run_factory("r1")))
        assert ingester.ingest_stream(stream).run.id == "r1"

    def test_ingest_file(self, tmp_path, ingester, run_factory):
        path = tmp_path / "run.json"
        path.write_text(json.dumps(run_factory("r1", lint_passed=False)))

        result = ingester.ingest_file(path)

        assert result.patterns == ["lint-failed"]
