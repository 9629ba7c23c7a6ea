"""knowledge_rag.common.schemas

Core data schemas shared across the RAG pipeline.

These lightweight dataclasses describe the canonical shapes for user-supplied
sources, the points stored in the vector collection and the ephemeral
results returned by retrieval. They are passed between ingestion, deindexing,
retrieval and the HTTP layer.

Classes
-------
SourceType
    Supported source kinds (``pdf``, ``text``, ``url``).
Source
    A user-supplied knowledge unit, as received from the client.
ChunkMetadata
    Metadata stored alongside each chunk in the vector collection.
VectorPoint
    A stored vector plus its ``{content, metadata}`` payload.
RetrievedDocument
    Projection of a point returned by similarity search.
SourceAttribution
    One entry of the ``sources`` list in an answer.
AnswerResult
    Response of the retrieval orchestrator.
IngestResult
    Outcome of an ingestion call.
DeindexResult
    Outcome of a deindex call.

Notes
-----
Payload field names (``content``, ``metadata.sourceId``, ``metadata.chunkIndex``
...) are part of the wire contract between ingestion and retrieval. They are
camelCase on the wire and snake_case in Python; the conversion lives here and
nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import NAMESPACE_URL, uuid5

from .errors import UnsupportedSourceTypeError, ValidationError


class SourceType(str, Enum):
    PDF = "pdf"
    TEXT = "text"
    URL = "url"


@dataclass
class Source:
    """A user-supplied knowledge unit.

    Attributes
    ----------
    id : str
        Opaque identifier assigned by the client, stable for the source's lifetime.
    type : SourceType
        Source kind; decides how ``content`` is interpreted.
    content : str
        A fetchable PDF location for ``pdf``, raw text for ``text`` and a page
        URL to crawl for ``url``.
    name : str
        Display label.
    created_at : str or None
        Client-side creation timestamp (ISO-8601), if provided.
    is_indexed : bool
        Whether the client believes the source currently has points in the
        collection.
    """
    id: str
    type: SourceType
    content: str
    name: str
    created_at: Optional[str] = None
    is_indexed: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Source":
        """Parse a source from its wire representation.

        Parameters
        ----------
        data : Mapping[str, Any]
            Mapping with keys ``id``, ``type``, ``content`` and optionally
            ``name``, ``createdAt`` and ``isIndexed``.

        Returns
        -------
        Source
            Parsed source.

        Raises
        ------
        ValidationError
            If ``data`` is not a mapping, ``id`` or ``type`` is missing or blank,
            ``content`` is not a string, or a ``pdf``/``url`` source has a blank
            location. Blank ``text`` content is accepted; it indexes nothing.
        UnsupportedSourceTypeError
            If ``type`` is not a supported :class:`SourceType`.
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Invalid source data", f"expected an object, got {type(data).__name__}")

        for key in ("id", "type"):
            value = data.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError("Invalid source data", f"missing or empty field {key!r}")
        if not isinstance(data.get("content"), str):
            raise ValidationError("Invalid source data", "missing field 'content'")

        raw_type = data["type"].strip().lower()
        try:
            source_type = SourceType(raw_type)
        except ValueError as exc:
            supported = ", ".join(t.value for t in SourceType)
            raise UnsupportedSourceTypeError(
                "Invalid source type",
                f"unsupported source type {data['type']!r}; expected one of: {supported}",
            ) from exc

        if source_type != SourceType.TEXT and not data["content"].strip():
            raise ValidationError("Invalid source data", f"missing or empty field 'content' for {source_type.value} source")

        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            name = data["id"]

        created_at = data.get("createdAt")
        return cls(
            id=data["id"],
            type=source_type,
            content=data["content"],
            name=name,
            created_at=str(created_at) if created_at is not None else None,
            is_indexed=bool(data.get("isIndexed", False)),
        )


@dataclass
class ChunkMetadata:
    """Metadata stored with every chunk of a source."""
    source_id: str
    source_type: str
    source_name: str
    chunk_index: int
    chunk_count: int
    created_at: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "sourceId": self.source_id,
            "sourceType": self.source_type,
            "sourceName": self.source_name,
            "chunkIndex": self.chunk_index,
            "chunkCount": self.chunk_count,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "ChunkMetadata":
        payload = payload or {}
        return cls(
            source_id=payload.get("sourceId"),
            source_type=payload.get("sourceType"),
            source_name=payload.get("sourceName"),
            chunk_index=payload.get("chunkIndex"),
            chunk_count=payload.get("chunkCount"),
            created_at=payload.get("createdAt"),
        )


def chunk_point_id(source_id: str, chunk_index: int) -> str:
    """Return the deterministic point id for chunk ``chunk_index`` of ``source_id``.

    Re-ingesting a source therefore overwrites its points rather than
    duplicating them.
    """
    return str(uuid5(NAMESPACE_URL, f"{source_id}:{chunk_index}"))


@dataclass
class VectorPoint:
    """The unit stored in the vector collection.

    Attributes
    ----------
    id : str
        Point identifier, unique within the collection.
    content : str
        Chunk text.
    metadata : ChunkMetadata
        Source attribution for the chunk.
    vector : list[float] or None
        Embedding of ``content``. ``None`` when read back without vectors.
    """
    id: str
    content: str
    metadata: ChunkMetadata
    vector: Optional[list[float]] = None

    def to_payload(self) -> dict[str, Any]:
        return {"content": self.content, "metadata": self.metadata.to_payload()}

    @classmethod
    def from_record(
            cls,
            point_id: Any,
            payload: Mapping[str, Any] | None,
            vector: Optional[list[float]] = None,
        ) -> "VectorPoint":
        """Build a point from a raw store record, tolerating missing payload keys."""
        payload = payload or {}
        return cls(
            id=str(point_id),
            content=payload.get("content") or "",
            metadata=ChunkMetadata.from_payload(payload.get("metadata")),
            vector=vector,
        )


@dataclass
class RetrievedDocument:
    """A similarity-search hit.

    ``rank`` is the 0-based position in the similarity results and
    ``relevance_score`` stays ``None`` until a reranker has scored the hit.
    """
    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    similarity_score: float = 0.0
    rank: int = 0
    relevance_score: Optional[float] = None


@dataclass
class SourceAttribution:
    index: int
    relevance_score: float
    preview: str
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "relevanceScore": self.relevance_score,
            "preview": self.preview,
            "metadata": dict(self.metadata),
        }


@dataclass
class AnswerResult:
    """Ephemeral answer returned by :class:`~knowledge_rag.pipelines.rag_pipeline.RAGPipeline`."""
    answer: str
    query: str
    sources: list[SourceAttribution] = field(default_factory=list)

    @property
    def total_sources(self) -> int:
        return len(self.sources)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "answer": self.answer,
            "query": self.query,
            "sources": [s.to_dict() for s in self.sources],
            "totalSources": self.total_sources,
        }


@dataclass
class IngestResult:
    source_id: str
    chunk_count: int
    point_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "chunkCount": self.chunk_count,
            "sourceId": self.source_id,
            "pointIds": list(self.point_ids),
        }


@dataclass
class DeindexResult:
    """Outcome of a deindex call.

    ``available_source_ids`` is only populated when nothing matched, as a
    diagnostic listing of the source ids currently present in the collection.
    """
    source_id: str
    deleted_count: int
    point_ids: list[str] = field(default_factory=list)
    operation_id: Optional[int] = None
    available_source_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        if self.deleted_count == 0:
            return {
                "success": True,
                "sourceId": self.source_id,
                "message": "No points found for this source",
                "deletedCount": 0,
                "availableSourceIds": list(self.available_source_ids),
            }
        return {
            "success": True,
            "sourceId": self.source_id,
            "deletedCount": self.deleted_count,
            "pointIds": list(self.point_ids),
            "operation_id": self.operation_id,
        }
