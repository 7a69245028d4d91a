"""
Error handling framework for VibeSnap.

This module provides:
- Hierarchical exception classes
- Error context preservation
- Structured error responses
- An error context manager that wraps unexpected failures
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from contextlib import contextmanager
import sqlite3

from .logging import get_logger


logger = get_logger("vibesnap.errors")


class ErrorSeverity(Enum):
    """Error severity levels."""
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    REPOSITORY = "repository"
    STORAGE = "storage"
    HISTORY = "history"
    USER_INPUT = "user_input"
    CONFIGURATION = "configuration"
    WATCHER = "watcher"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class VibeSnapError(Exception):
    """Base exception for all VibeSnap errors."""

    code: str = "VIBESNAP_ERROR"
    default_message: str = "An error occurred in VibeSnap"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause
        super().__init__(self.message)

    def get_suggestions(self) -> List[str]:
        """Get error resolution suggestions."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "severity": self.severity.value,
                "category": self.category.value,
                "suggestions": self.get_suggestions(),
                "context": {
                    "timestamp": self.context.timestamp.isoformat(),
                    "component": self.context.component,
                    "operation": self.context.operation,
                    "metadata": self.context.metadata,
                },
            }
        }


# Repository errors

class NotInRepoError(VibeSnapError):
    """No repository marker directory above the starting point."""
    code = "NOT_IN_REPO"
    default_message = "Not inside a VibeSnap repo. Run 'vibesnap init' first."
    category = ErrorCategory.REPOSITORY

    def get_suggestions(self) -> List[str]:
        return ["Run 'vibesnap init' in the project directory"]


class RepoExistsError(VibeSnapError):
    """Repository already initialised."""
    code = "REPO_EXISTS"
    default_message = ".vibe already exists in this directory"
    category = ErrorCategory.REPOSITORY


class InvalidHeadError(VibeSnapError):
    """HEAD record has an unexpected number of tokens."""
    code = "INVALID_HEAD"
    default_message = "Invalid HEAD file format"
    category = ErrorCategory.REPOSITORY
    severity = ErrorSeverity.CRITICAL


# Storage errors

class StorageError(VibeSnapError):
    """Underlying file system or database failure."""
    code = "STORAGE_ERROR"
    default_message = "Storage error"
    category = ErrorCategory.STORAGE


class ObjectNotFoundError(StorageError):
    """Blob missing from the object store."""
    code = "OBJECT_NOT_FOUND"

    def __init__(self, content_hash: str, **kwargs):
        self.content_hash = content_hash
        super().__init__(f"Object not found in store: {content_hash}", **kwargs)


class ManifestNotFoundError(StorageError):
    """No manifest record for a checkpoint."""
    code = "MANIFEST_NOT_FOUND"

    def __init__(self, checkpoint_id: str, **kwargs):
        self.checkpoint_id = checkpoint_id
        super().__init__(f"Snapshot manifest not found for {checkpoint_id}", **kwargs)


class ManifestExistsError(StorageError):
    """A manifest is already recorded under this checkpoint id."""
    code = "MANIFEST_EXISTS"

    def __init__(self, checkpoint_id: str, **kwargs):
        self.checkpoint_id = checkpoint_id
        super().__init__(f"A manifest already exists for checkpoint {checkpoint_id}", **kwargs)


class ManifestSerializationError(StorageError):
    """Manifest could not be encoded."""
    code = "MANIFEST_SERIALIZATION_ERROR"

    def __init__(self, detail: str, **kwargs):
        super().__init__(f"Could not serialize manifest: {detail}", **kwargs)


class ManifestDeserializationError(StorageError):
    """Manifest record is malformed."""
    code = "MANIFEST_DESERIALIZATION_ERROR"

    def __init__(self, detail: str, **kwargs):
        super().__init__(f"Could not deserialize manifest: {detail}", **kwargs)


# History errors

class TrackExistsError(VibeSnapError):
    code = "TRACK_EXISTS"
    category = ErrorCategory.HISTORY

    def __init__(self, name: str, **kwargs):
        self.name = name
        super().__init__(f"Track already exists: {name}", **kwargs)


class TrackNotFoundError(VibeSnapError):
    code = "TRACK_NOT_FOUND"
    category = ErrorCategory.HISTORY

    def __init__(self, name: str, **kwargs):
        self.name = name
        super().__init__(f"Track not found in DB: {name}", **kwargs)


class CheckpointNotFoundError(VibeSnapError):
    """No checkpoint matches an id or a time query."""
    code = "CHECKPOINT_NOT_FOUND"
    default_message = "Checkpoint not found"
    category = ErrorCategory.HISTORY


class NotEnoughCheckpointsError(VibeSnapError):
    code = "NOT_ENOUGH_CHECKPOINTS"
    default_message = "Need at least two checkpoints to diff"
    category = ErrorCategory.HISTORY
    severity = ErrorSeverity.WARNING

    def get_suggestions(self) -> List[str]:
        return ["Create another checkpoint with 'vibesnap snap', or pass two checkpoint ids"]


# Input and configuration errors

class ParseError(VibeSnapError):
    """Unparsable duration, time-of-day or other user input."""
    code = "PARSE_ERROR"
    default_message = "Could not parse input"
    category = ErrorCategory.USER_INPUT
    severity = ErrorSeverity.WARNING


class ConfigurationError(VibeSnapError):
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION

    def get_suggestions(self) -> List[str]:
        return [
            "Check your configuration file syntax",
            "Run 'vibesnap config reset' to restore defaults",
        ]


# Watcher errors

class WatcherError(VibeSnapError):
    """Unrecoverable failure of the file-change notification source."""
    code = "WATCHER_ERROR"
    default_message = "Watcher failed"
    category = ErrorCategory.WATCHER


class WatcherAlreadyRunningError(WatcherError):
    code = "WATCHER_RUNNING"
    severity = ErrorSeverity.WARNING

    def __init__(self, pid: int, **kwargs):
        self.pid = pid
        super().__init__(
            f"Watch is already running (PID: {pid}). Use --stop to stop it.", **kwargs
        )


@contextmanager
def error_context(component: str, operation: str, **metadata):
    """
    Attach component/operation context to errors raised inside the block.

    VibeSnap errors are annotated and re-raised; OS and database failures
    are wrapped in StorageError.
    """
    context = ErrorContext(component=component, operation=operation, metadata=metadata)
    try:
        yield context
    except VibeSnapError as e:
        e.context.component = e.context.component or component
        e.context.operation = e.context.operation or operation
        e.context.metadata.update(metadata)
        raise
    except (OSError, sqlite3.Error) as e:
        logger.error("storage_failure", component=component, operation=operation, error=str(e))
        raise StorageError(str(e), context=context, cause=e) from e


__all__ = [
    'VibeSnapError',
    'ErrorContext',
    'ErrorSeverity',
    'ErrorCategory',
    'NotInRepoError',
    'RepoExistsError',
    'InvalidHeadError',
    'StorageError',
    'ObjectNotFoundError',
    'ManifestNotFoundError',
    'ManifestExistsError',
    'ManifestSerializationError',
    'ManifestDeserializationError',
    'TrackExistsError',
    'TrackNotFoundError',
    'CheckpointNotFoundError',
    'NotEnoughCheckpointsError',
    'ParseError',
    'ConfigurationError',
    'WatcherError',
    'WatcherAlreadyRunningError',
    'error_context',
]
