"""Data models and schemas."""

from exttrust.models.schemas import (
    BatchResult,
    Decision,
    EvaluationResult,
    ExtensionMetadata,
    ExtensionRecord,
    Policy,
    RepoFetchError,
    RepoMetadata,
    RepoRecord,
    RepoRef,
)

__all__ = [
    "BatchResult",
    "Decision",
    "EvaluationResult",
    "ExtensionMetadata",
    "ExtensionRecord",
    "Policy",
    "RepoFetchError",
    "RepoMetadata",
    "RepoRecord",
    "RepoRef",
]
