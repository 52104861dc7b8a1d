"""
Run ingestion.

Parses a run record, validates it, stores it, and runs pattern detection.
Validation follows the same shape as a policy gate: every rejection is a
RunValidationError with a stable code.

Validation Rules:
- id, task and outcome must be present and non-empty
- outcome must be one of: success, partial, failure, error
- a missing timestamp is filled with the current UTC time
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, IO, List, Union

import pydantic
import structlog
from sqlalchemy.orm import Session

from ..db.models import RunModel
from ..db.services import RunService
from ..errors import DuplicateEntityError, RunValidationError
from ..schemas.enums import OUTCOME_VALUES
from ..schemas.run import RunRecord
from .patterns import detect_and_store

logger = structlog.get_logger()

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_timestamp() -> str:
    """Current UTC time as an RFC 3339 string with second precision."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def validate_run(record: RunRecord) -> RunRecord:
    """Check required fields and fill defaults. Returns a new record."""
    for field_name in ("id", "task", "outcome"):
        if not getattr(record, field_name):
            raise RunValidationError(
                code="MISSING_FIELD",
                message=f"missing required field: {field_name}",
            )

    if record.outcome not in OUTCOME_VALUES:
        raise RunValidationError(
            code="INVALID_OUTCOME",
            message=f"invalid outcome {record.outcome!r}: must be success, partial, failure, or error",
        )

    if not record.timestamp:
        return record.model_copy(update={"timestamp": utc_timestamp()})
    return record


def parse_run(data: Union[str, bytes, Dict[str, Any]]) -> RunRecord:
    """Parse raw JSON (or an already-decoded object) into a RunRecord."""
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise RunValidationError("INVALID_JSON", f"parse run record: {exc}") from exc

    if not isinstance(data, dict):
        raise RunValidationError("INVALID_RECORD", "run record must be a JSON object")

    try:
        return RunRecord.model_validate(data)
    except pydantic.ValidationError as exc:
        raise RunValidationError("INVALID_RECORD", str(exc)) from exc


@dataclass
class IngestResult:
    """A stored run and the names of the patterns it matched."""

    run: RunModel
    patterns: List[str] = field(default_factory=list)


class Ingester:
    """Records agent runs and detects patterns in them.

    Usage:
        ingester = Ingester(db_session)
        result = ingester.ingest_json('{"id": "r1", "task": "Fix bug", "outcome": "success"}')
    """

    def __init__(self, db: Session):
        self.db = db
        self.runs = RunService(db)

    def ingest_record(self, record: RunRecord) -> IngestResult:
        run = validate_run(record)
        log = logger.bind(run_id=run.id)

        if self.runs.exists(run.id):
            raise DuplicateEntityError("run", run.id)

        db_run = self.runs.insert(run)
        matched = detect_and_store(self.db, run)

        log.info("run_ingested", outcome=run.outcome, patterns=matched)
        return IngestResult(run=db_run, patterns=matched)

    def ingest_json(self, data: Union[str, bytes, Dict[str, Any]]) -> IngestResult:
        """Parse, validate, store and pattern-match one run record."""
        return self.ingest_record(parse_run(data))

    def ingest_stream(self, stream: IO) -> IngestResult:
        return self.ingest_json(stream.read())

    def ingest_file(self, path: Union[str, Path]) -> IngestResult:
        return self.ingest_json(Path(path).read_text(encoding="utf-8"))
