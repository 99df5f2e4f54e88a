"""Error taxonomy for schema translation and incremental sync.

Invocation-fatal: ConfigInvalid, RemoteUnavailable, RemoteShapeInvalid,
SchemaSyncFailed. Record-scoped (caught and counted by the orchestrator):
RecordExtractFailed, WriteFailed. ContentFlattenFailed never escapes the
content flattener.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for every error raised by the sync core."""


class ConfigInvalid(SyncError):
    """Raised when environment configuration fails validation.

    Attributes:
        problems: One human-readable line per violation.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("Environment validation failed:\n" + "\n".join(problems))


class RemoteUnavailable(SyncError):
    """Raised when a Notion call fails after retries (not found, auth, outage)."""


class RemoteShapeInvalid(SyncError):
    """Raised when a Notion response lacks the structure the sync relies on."""


class SchemaSyncFailed(SyncError):
    """Raised when a DDL or introspection statement fails during reconciliation.

    Attributes:
        statement: The SQL that failed.
        original_error: The underlying driver exception.
    """

    def __init__(self, statement: str, original_error: Exception) -> None:
        self.statement = statement
        self.original_error = original_error
        super().__init__(f"Schema statement failed [{statement}]: {original_error}")


class RecordExtractFailed(SyncError):
    """Raised when a page's properties cannot be turned into column values."""

    def __init__(self, page_id: str, original_error: Exception) -> None:
        self.page_id = page_id
        self.original_error = original_error
        super().__init__(f"Extraction failed for page {page_id}: {original_error}")


class WriteFailed(SyncError):
    """Raised when the upsert statement for one page fails."""

    def __init__(self, page_id: str, original_error: Exception) -> None:
        self.page_id = page_id
        self.original_error = original_error
        super().__init__(f"Upsert failed for page {page_id}: {original_error}")


class ContentFlattenFailed(SyncError):
    """Raised by content converters; the flattener degrades it to empty content."""
