"""knowledge_rag.common.errors

Typed error taxonomy shared by every layer of the RAG stack.

Component-level functions fail fast with one of these exceptions. The HTTP
layer (:mod:`knowledge_rag.app.api`) maps each class to a stable ``category``
string and status code, so callers can branch on the category without parsing
messages.

Classes
-------
KnowledgeRAGError
    Base class carrying ``message``, ``details``, ``category`` and ``status_code``.
ValidationError
    Bad or missing input. Always a client error, never retried.
EmptyQueryError
    Query text is empty or whitespace-only.
EmptyInputError
    Text to chunk is empty or whitespace-only ("nothing to index").
UnsupportedSourceTypeError
    Source ``type`` is not one of ``pdf``, ``text`` or ``url``.
FetchError
    Remote content (PDF, web page) could not be retrieved.
EmbeddingProviderError
    Embedding provider transport, quota or response-shape failure.
StoreReadError
    Vector store search or scroll failure.
StoreWriteError
    Vector store upsert or delete failure. ``completed`` reports how many
    points were written or deleted before the failure.
PartialIndexError
    An ingestion wrote only part of a source's points.
RerankProviderError
    Rerank provider failure.
GenerationProviderError
    Chat-completion provider failure.
"""

from __future__ import annotations

from typing import Any


class KnowledgeRAGError(Exception):
    """Base class for all errors raised by ``knowledge_rag``.

    Parameters
    ----------
    message : str
        Human-readable summary, safe to show to an end user.
    details : str or None, optional
        Additional detail for operators (provider message, status code, ...).
    """

    category: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Return the structured error envelope used by the HTTP layer."""
        return {
            "error": self.message,
            "details": self.details or self.message,
            "category": self.category,
        }


class ValidationError(KnowledgeRAGError):
    category = "validation_error"
    status_code = 400


class EmptyQueryError(ValidationError):
    category = "empty_query"


class EmptyInputError(ValidationError):
    category = "empty_input"


class UnsupportedSourceTypeError(ValidationError):
    category = "unsupported_source_type"


class FetchError(KnowledgeRAGError):
    category = "fetch_error"


class EmbeddingProviderError(KnowledgeRAGError):
    category = "embedding_provider_error"


class StoreReadError(KnowledgeRAGError):
    category = "store_read_error"


class StoreWriteError(KnowledgeRAGError):
    """Vector store write failure.

    Parameters
    ----------
    message : str
        Human-readable summary.
    details : str or None, optional
        Provider detail.
    completed : int, optional
        Number of points successfully written (or deleted) before the failing
        batch. Defaults to ``0``.
    """

    category = "store_write_error"

    def __init__(self, message: str, details: str | None = None, *, completed: int = 0):
        super().__init__(message, details)
        self.completed = completed

    def to_dict(self) -> dict[str, Any]:
        envelope = super().to_dict()
        envelope["completedCount"] = self.completed
        return envelope


class PartialIndexError(KnowledgeRAGError):
    """Raised when an upsert wrote only some of a source's points.

    The caller owns cleanup, typically by deindexing ``source_id``.

    Parameters
    ----------
    source_id : str
        Source whose points were partially written.
    written : int
        Number of points actually written.
    expected : int
        Number of points the ingestion attempted to write.
    details : str or None, optional
        Underlying store error detail.
    """

    category = "partial_index_error"

    def __init__(self, source_id: str, written: int, expected: int, details: str | None = None):
        super().__init__(
            f"Partially indexed source {source_id!r}: wrote {written} of {expected} points",
            details,
        )
        self.source_id = source_id
        self.written = written
        self.expected = expected

    def to_dict(self) -> dict[str, Any]:
        envelope = super().to_dict()
        envelope.update({"sourceId": self.source_id, "writtenCount": self.written, "expectedCount": self.expected})
        return envelope


class RerankProviderError(KnowledgeRAGError):
    category = "rerank_provider_error"


class GenerationProviderError(KnowledgeRAGError):
    category = "generation_provider_error"


__all__ = [
    "KnowledgeRAGError",
    "ValidationError",
    "EmptyQueryError",
    "EmptyInputError",
    "UnsupportedSourceTypeError",
    "FetchError",
    "EmbeddingProviderError",
    "StoreReadError",
    "StoreWriteError",
    "PartialIndexError",
    "RerankProviderError",
    "GenerationProviderError",
]
