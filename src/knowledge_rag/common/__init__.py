"""
Common building blocks shared across the RAG stack.

This package provides small, widely-used primitives (source and point
schemas, the error taxonomy and token counting) intended to be imported by
multiple layers of the system.

Classes
-------
Source
    A user-supplied knowledge unit.
VectorPoint
    A stored vector plus ``{content, metadata}`` payload.
RetrievedDocument
    Projection of a point returned by similarity search.
AnswerResult
    Response of the retrieval orchestrator.

Attributes
----------
SourceId : TypeAlias
    Type alias for source identifiers.
PointId : TypeAlias
    Type alias for vector point identifiers.

See Also
--------
knowledge_rag.common.schemas
knowledge_rag.common.errors
"""
from __future__ import annotations
from typing import TypeAlias

from .errors import KnowledgeRAGError
from .schemas import (
    AnswerResult,
    ChunkMetadata,
    DeindexResult,
    IngestResult,
    RetrievedDocument,
    Source,
    SourceAttribution,
    SourceType,
    VectorPoint,
    chunk_point_id,
)

SourceId: TypeAlias = str
PointId: TypeAlias = str

__all__ = [
    "AnswerResult",
    "ChunkMetadata",
    "DeindexResult",
    "IngestResult",
    "KnowledgeRAGError",
    "RetrievedDocument",
    "Source",
    "SourceAttribution",
    "SourceType",
    "VectorPoint",
    "chunk_point_id",
    "SourceId",
    "PointId",
]
