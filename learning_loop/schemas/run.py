"""
Run record schema.

This is the wire format accepted by ingestion: one JSON object per agent run.
Required fields are checked by the ingester so the error codes stay stable;
the schema itself only enforces types.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RunRecord(BaseModel):
    """One recorded agent task execution."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = Field(None, description="Unique run identifier")
    task: Optional[str] = Field(None, description="What the agent was asked to do")
    outcome: Optional[str] = Field(
        None, description="success, partial, failure or error"
    )
    duration_seconds: Optional[int] = Field(None, description="Wall time in seconds")
    timestamp: Optional[str] = Field(
        None, description="When the run happened (RFC 3339); defaults to ingestion time"
    )

    tools_used: List[str] = Field(default_factory=list)
    files_touched: List[str] = Field(default_factory=list)
    tests_passed: Optional[bool] = None
    lint_passed: Optional[bool] = None
    error_message: Optional[str] = None

    tags: List[str] = Field(default_factory=list)
    agent: Optional[str] = None
    model: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("tools_used", "files_touched", "tags", mode="before")
    @classmethod
    def null_list_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def null_metadata_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class StoredRun(RunRecord):
    """A run as read back from the store."""

    analyzed: bool = False
    created_at: Optional[str] = None
