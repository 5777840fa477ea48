"""Exception hierarchy shared by every StudyPath layer.

Callers catch the specific subclass they can render a message for; the HTTP
layer and the CLI map each kind to a status code or exit message.
"""

from __future__ import annotations


class StudyPathError(Exception):
    """Base class for all StudyPath failures."""


class SchemaError(StudyPathError):
    """A roadmap document is malformed (generator output, import or storage)."""


class InvalidJson(StudyPathError):
    """Import input could not be parsed as JSON."""


class NotFoundError(StudyPathError):
    """An operation referenced a roadmap or node id that does not exist."""


class GenerationFailed(StudyPathError):
    """The roadmap generator failed after exhausting its retries.

    ``kind`` tells the UI which message to show:
    ``rate_limited``, ``timeout``, ``content_policy`` or ``failed``.
    """

    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    CONTENT_POLICY = "content_policy"
    FAILED = "failed"

    def __init__(self, message: str, kind: str = FAILED) -> None:
        super().__init__(message)
        self.kind = kind


class ResourceFetchFailed(StudyPathError):
    """Every resource provider failed for a node."""


class StorageError(StudyPathError):
    """The key/value store rejected a read or write."""


class StorageUnavailable(StorageError):
    """The key/value store cannot be used at all."""


class StorageQuotaExceeded(StorageError):
    """A write was rejected because the store is full, even after eviction."""


class InvalidTopic(StudyPathError):
    """A topic was empty, too short or too long, or nothing survived sanitising."""
