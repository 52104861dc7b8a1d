"""
Error taxonomy for Learning Loop.

Every error raised by the core derives from LearningLoopError so callers can
catch one type at the process boundary.
"""

from typing import Any, Dict, Optional


class LearningLoopError(Exception):
    """Base class for all Learning Loop errors."""


class RunValidationError(LearningLoopError):
    """
    Raised when a run record is rejected before it is written.

    Attributes:
        code: Stable error code for programmatic handling
        message: Human-readable error description
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "error": "validation_failed",
            "code": self.code,
            "message": self.message,
        }


class DuplicateEntityError(LearningLoopError):
    """Raised when an insert collides with an existing unique key."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id!r} already exists")


class NotFoundError(LearningLoopError):
    """Raised when a lookup by key finds nothing."""

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} {key!r} not found")


class StorageError(LearningLoopError):
    """Wraps a database failure with the name of the operation that failed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = operation if cause is None else f"{operation}: {cause}"
        super().__init__(message)
