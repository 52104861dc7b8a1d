"""
Built-in pattern rules.

Each rule is a pure predicate over a single run. Rules are evaluated in
declaration order and the names of the matching rules are returned in that
same order, so the order of BUILTIN_RULES is part of the public contract.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

import structlog
from sqlalchemy.orm import Session

from ..db.models import PatternModel
from ..db.services import PatternService
from ..schemas.enums import Impact, Outcome, PatternCategory
from ..schemas.run import RunRecord

logger = structlog.get_logger()

SCOPE_CREEP_SECONDS = 1800
SCOPE_CREEP_FILES = 8
QUICK_FAILURE_SECONDS = 60
LONG_RUNNING_SECONDS = 3600

SOURCE_EXTENSIONS = (".go", ".ts", ".js", ".py", ".rs", ".java")
TEST_FILE_MARKERS = ("_test", ".test.", "test_")


@dataclass(frozen=True)
class PatternRule:
    """A named behavioral signature and the predicate that detects it."""

    name: str
    description: str
    category: PatternCategory
    impact: Impact
    correlation: Outcome
    match: Callable[[RunRecord], bool]

    @property
    def pattern_id(self) -> str:
        return f"pat-{self.name}"


def is_test_file(path: str) -> bool:
    lower = path.lower()
    return any(marker in lower for marker in TEST_FILE_MARKERS)


def is_source_file(path: str) -> bool:
    return path.lower().endswith(SOURCE_EXTENSIONS)


def _tests_skipped(run: RunRecord) -> bool:
    return run.outcome != Outcome.SUCCESS.value and run.tests_passed is None


def _tests_failed(run: RunRecord) -> bool:
    return run.tests_passed is False


def _lint_failed(run: RunRecord) -> bool:
    return run.lint_passed is False


def _scope_creep(run: RunRecord) -> bool:
    if run.duration_seconds is not None and run.duration_seconds > SCOPE_CREEP_SECONDS:
        return True
    return len(run.files_touched) > SCOPE_CREEP_FILES


def _quick_failure(run: RunRecord) -> bool:
    return (
        run.outcome == Outcome.FAILURE.value
        and run.duration_seconds is not None
        and run.duration_seconds < QUICK_FAILURE_SECONDS
    )


def _long_running(run: RunRecord) -> bool:
    return run.duration_seconds is not None and run.duration_seconds > LONG_RUNNING_SECONDS


def _no_test_files(run: RunRecord) -> bool:
    has_source = False
    for path in run.files_touched:
        if is_test_file(path):
            return False
        if is_source_file(path):
            has_source = True
    return has_source


def _success_with_errors(run: RunRecord) -> bool:
    return run.outcome == Outcome.SUCCESS.value and bool(run.error_message)


BUILTIN_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        name="tests-skipped",
        description="Agent completed the task but did not run tests",
        category=PatternCategory.PROCESS,
        impact=Impact.HIGH,
        correlation=Outcome.FAILURE,
        match=_tests_skipped,
    ),
    PatternRule(
        name="tests-failed",
        description="Tests were run but failed",
        category=PatternCategory.CODE,
        impact=Impact.HIGH,
        correlation=Outcome.FAILURE,
        match=_tests_failed,
    ),
    PatternRule(
        name="lint-failed",
        description="Linter was run but found issues",
        category=PatternCategory.CODE,
        impact=Impact.MEDIUM,
        correlation=Outcome.PARTIAL,
        match=_lint_failed,
    ),
    PatternRule(
        name="scope-creep",
        description="Task took too long or touched too many files, suggesting scope expansion",
        category=PatternCategory.SCOPE,
        impact=Impact.MEDIUM,
        correlation=Outcome.FAILURE,
        match=_scope_creep,
    ),
    PatternRule(
        name="quick-failure",
        description="Task failed very quickly, suggesting a fundamental misunderstanding or blocker",
        category=PatternCategory.PROCESS,
        impact=Impact.HIGH,
        correlation=Outcome.FAILURE,
        match=_quick_failure,
    ),
    PatternRule(
        name="long-running",
        description="Task took over an hour, suggesting high complexity or inefficiency",
        category=PatternCategory.SCOPE,
        impact=Impact.MEDIUM,
        correlation=Outcome.PARTIAL,
        match=_long_running,
    ),
    PatternRule(
        name="no-test-files",
        description="Source files were modified but no test files were touched",
        category=PatternCategory.PROCESS,
        impact=Impact.MEDIUM,
        correlation=Outcome.FAILURE,
        match=_no_test_files,
    ),
    PatternRule(
        name="success-with-errors",
        description="Task was marked successful but had an error message",
        category=PatternCategory.PROCESS,
        impact=Impact.MEDIUM,
        correlation=Outcome.PARTIAL,
        match=_success_with_errors,
    ),
)


def evaluate_rules(
    run: RunRecord, rules: Sequence[PatternRule] = BUILTIN_RULES
) -> List[PatternRule]:
    """Return the rules a run matches, in rule order. Touches no storage."""
    return [rule for rule in rules if rule.match(run)]


def detect_and_store(
    db: Session, run: RunRecord, rules: Sequence[PatternRule] = BUILTIN_RULES
) -> List[str]:
    """Evaluate the rules against a run and record every match.

    Any storage failure propagates immediately; the rules after it are not
    evaluated and no partial list is returned.
    """
    patterns = PatternService(db)
    matched: List[str] = []

    for rule in evaluate_rules(run, rules):
        pattern = PatternModel(
            id=rule.pattern_id,
            name=rule.name,
            description=rule.description,
            category=rule.category.value,
            impact=rule.impact.value,
            outcome_correlation=rule.correlation.value,
            frequency=1,
            first_seen=run.timestamp,
            last_seen=run.timestamp,
        )
        stored = patterns.upsert(pattern)
        patterns.add_match(run.id, stored.id)
        logger.debug("pattern_matched", run_id=run.id, pattern=rule.name)
        matched.append(rule.name)

    return matched
