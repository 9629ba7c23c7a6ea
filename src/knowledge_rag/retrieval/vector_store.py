"""knowledge_rag.retrieval.vector_store

Vector store interfaces and factories for the retrieval layer.

This module defines a small capability interface over one named vector
collection and a concrete implementation backed by Qdrant. The main
responsibilities are:
- writing :class:`~knowledge_rag.common.schemas.VectorPoint` records (idempotent by id)
- nearest-neighbour search returning ranked
  :class:`~knowledge_rag.common.schemas.RetrievedDocument` hits
- a paginated, restartable full-collection scan
- deleting points by id, and finding a source's points with a server-side
  filter where the backend supports one

Classes
-------
BaseVectorStore
    Abstract interface for vector store adapters.
QdrantVectorStore
    Qdrant-backed adapter built on :class:`qdrant_client.QdrantClient`.

Functions
---------
create_vector_store
    Create a vector store implementation from a configuration mapping.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterator, Mapping, Optional, Sequence

from qdrant_client import QdrantClient, models

from knowledge_rag.common.errors import StoreReadError, StoreWriteError
from knowledge_rag.common.schemas import RetrievedDocument, VectorPoint

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "knowledge-sources"
DEFAULT_SCROLL_PAGE_SIZE = 1000
SOURCE_ID_FIELD = "metadata.sourceId"

_DISTANCES = {
    "cosine": models.Distance.COSINE,
    "dot": models.Distance.DOT,
    "euclid": models.Distance.EUCLID,
    "manhattan": models.Distance.MANHATTAN,
}


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"


class BaseVectorStore(ABC):
    """Abstract interface for vector store adapters.

    Concrete implementations wrap a single named collection.
    """

    @abstractmethod
    def upsert(self, points: Sequence[VectorPoint]) -> None:
        """Insert or overwrite points by id.

        Raises
        ------
        StoreWriteError
            If a write fails. ``completed`` reports how many points were
            written before the failure.
        """

    @abstractmethod
    def similarity_search(self, query_vector: Sequence[float], k: int) -> list[RetrievedDocument]:
        """Return up to ``k`` nearest points, best match first.

        Tie order is backend-defined and must not be relied upon.
        """

    @abstractmethod
    def scroll_pages(
            self,
            page_size: int = DEFAULT_SCROLL_PAGE_SIZE,
            scroll_filter: Any = None,
        ) -> Iterator[list[VectorPoint]]:
        """Yield the collection page by page.

        Iteration ends only when the backend returns no continuation token.
        """

    def scroll_all(
            self,
            page_size: int = DEFAULT_SCROLL_PAGE_SIZE,
            scroll_filter: Any = None,
        ) -> Iterator[VectorPoint]:
        """Lazily iterate every point in the collection.

        Each call starts a new scan, so the sequence is restartable.
        """
        for page in self.scroll_pages(page_size=page_size, scroll_filter=scroll_filter):
            yield from page

    @abstractmethod
    def delete_by_ids(self, ids: Sequence[str]) -> Optional[int]:
        """Delete points by id and return the backend operation id, if any.

        Raises
        ------
        StoreWriteError
            On failure. ``completed`` reports how many ids were deleted before
            the failing batch, so partial deletes are never silent.
        """

    @property
    def supports_filtered_scan(self) -> bool:
        """Whether :meth:`find_point_ids_by_source` pushes the filter to the server."""
        return False

    def find_point_ids_by_source(
            self,
            source_id: str,
            page_size: int = DEFAULT_SCROLL_PAGE_SIZE,
        ) -> list[str]:
        """Return the ids of every point whose ``metadata.sourceId`` equals ``source_id``.

        The default implementation scans the whole collection client-side.
        """
        return [
            point.id
            for point in self.scroll_all(page_size=page_size)
            if point.metadata.source_id == source_id
        ]


class QdrantVectorStore(BaseVectorStore):
    """Qdrant-backed vector store adapter.

    The collection is created lazily on the first write, using ``vector_size``
    when configured and otherwise the dimensionality of the first vector.

    Parameters
    ----------
    client : QdrantClient or None, optional
        Pre-built client. When omitted, one is created from ``url``/``api_key``,
        ``host``/``port`` or ``location``.
    url : str or None, optional
        Qdrant URL (e.g., ``"http://localhost:6333"``).
    api_key : str or None, optional
        Qdrant API key for managed deployments.
    host, port : optional
        Alternative to ``url``. Defaults to ``localhost:6333``.
    location : str or None, optional
        ``":memory:"`` for an in-process store (local use and tests).
    collection_name : str, optional
        Collection name. Defaults to ``"knowledge-sources"``.
    vector_size : int or None, optional
        Embedding dimensionality used when creating the collection.
    distance : str, optional
        Distance metric (``cosine``, ``dot``, ``euclid``, ``manhattan``).
    timeout : int or None, optional
        Per-request timeout in seconds for remote clients.
    upsert_batch_size : int, optional
        Points sent per upsert request. Defaults to ``256``.
    delete_batch_size : int, optional
        Ids sent per delete request. Defaults to ``1000``.
    """

    @classmethod
    def from_config_dict(cls, config: Mapping[str, Any]) -> "QdrantVectorStore":
        """Create a QdrantVectorStore from a configuration mapping.

        Parameters
        ----------
        config : Mapping[str, Any]
            Expected keys include ``url`` or ``host``/``port`` or ``location``,
            plus optional ``api_key``, ``collection_name``, ``vector_size``,
            ``distance``, ``timeout``, ``upsert_batch_size`` and
            ``delete_batch_size``. Empty strings (e.g., an unset
            ``${QDRANT_API_KEY}``) are treated as missing.

        Returns
        -------
        QdrantVectorStore
            Initialised adapter.
        """
        def _opt(key):
            value = config.get(key)
            if isinstance(value, str) and not value.strip():
                return None
            return value

        vector_size = _opt("vector_size")
        timeout = _opt("timeout")
        return cls(
            url=_opt("url"),
            api_key=_opt("api_key"),
            host=_opt("host"),
            port=int(_opt("port") or 6333),
            location=_opt("location"),
            collection_name=_opt("collection_name") or DEFAULT_COLLECTION_NAME,
            vector_size=int(vector_size) if vector_size is not None else None,
            distance=str(_opt("distance") or "cosine"),
            timeout=int(timeout) if timeout is not None else None,
            upsert_batch_size=int(_opt("upsert_batch_size") or 256),
            delete_batch_size=int(_opt("delete_batch_size") or 1000),
        )

    def __init__(
            self,
            *,
            client: Optional[QdrantClient] = None,
            url: Optional[str] = None,
            api_key: Optional[str] = None,
            host: Optional[str] = None,
            port: int = 6333,
            location: Optional[str] = None,
            collection_name: str = DEFAULT_COLLECTION_NAME,
            vector_size: Optional[int] = None,
            distance: str = "cosine",
            timeout: Optional[int] = None,
            upsert_batch_size: int = 256,
            delete_batch_size: int = 1000,
        ):
        distance_key = distance.lower()
        if distance_key not in _DISTANCES:
            raise ValueError(f"Unsupported distance {distance!r}. Supported: {sorted(_DISTANCES)}")
        if upsert_batch_size <= 0 or delete_batch_size <= 0:
            raise ValueError("Batch sizes must be positive integers.")

        if client is None:
            if location:
                client = QdrantClient(location=location)
            elif url:
                client = QdrantClient(url=url, api_key=api_key, timeout=timeout)
            else:
                client = QdrantClient(host=host or "localhost", port=port, api_key=api_key, timeout=timeout)

        self.client = client
        self.collection_name = collection_name
        self.vector_size = vector_size
        self.distance = _DISTANCES[distance_key]
        self.upsert_batch_size = upsert_batch_size
        self.delete_batch_size = delete_batch_size
        self._collection_ready = False

    # ----------------- collection lifecycle -----------------

    def collection_exists(self) -> bool:
        if self._collection_ready:
            return True
        try:
            exists = self.client.collection_exists(self.collection_name)
        except Exception as exc:
            raise StoreReadError("Could not reach the vector store", _describe(exc)) from exc
        self._collection_ready = bool(exists)
        return self._collection_ready

    def ensure_collection(self, vector_size: Optional[int] = None) -> None:
        """Create the collection if it does not exist yet.

        Raises
        ------
        ValueError
            If the collection must be created and no vector size is known.
        StoreWriteError
            If collection creation fails.
        """
        if self.collection_exists():
            return

        size = self.vector_size or vector_size
        if not size:
            raise ValueError("Cannot create collection without a vector size.")

        try:
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(size=int(size), distance=self.distance),
            )
        except Exception as exc:
            raise StoreWriteError("Could not create the vector collection", _describe(exc)) from exc

        logger.info("Created collection %r (size=%s, distance=%s)", self.collection_name, size, self.distance)
        self._collection_ready = True

    # ----------------- capability operations -----------------

    def upsert(self, points: Sequence[VectorPoint]) -> None:
        points = list(points)
        if not points:
            return

        for point in points:
            if point.vector is None:
                raise ValueError(f"Point {point.id!r} has no vector.")

        try:
            self.ensure_collection(vector_size=len(points[0].vector))
        except StoreReadError as exc:
            raise StoreWriteError(exc.message, exc.details) from exc

        written = 0
        for start in range(0, len(points), self.upsert_batch_size):
            batch = points[start:start + self.upsert_batch_size]
            structs = [
                models.PointStruct(id=p.id, vector=list(p.vector), payload=p.to_payload())
                for p in batch
            ]
            try:
                self.client.upsert(collection_name=self.collection_name, points=structs, wait=True)
            except Exception as exc:
                raise StoreWriteError(
                    "Vector store upsert failed",
                    _describe(exc),
                    completed=written,
                ) from exc
            written += len(batch)

        logger.debug("Upserted %d points into %r", written, self.collection_name)

    def similarity_search(self, query_vector: Sequence[float], k: int) -> list[RetrievedDocument]:
        if k <= 0 or not self.collection_exists():
            return []

        try:
            response = self.client.query_points(
                collection_name=self.collection_name,
                query=list(query_vector),
                limit=int(k),
                with_payload=True,
            )
        except Exception as exc:
            raise StoreReadError("Similarity search failed", _describe(exc)) from exc

        documents: list[RetrievedDocument] = []
        for rank, hit in enumerate(response.points):
            payload = hit.payload or {}
            documents.append(
                RetrievedDocument(
                    id=str(hit.id),
                    content=payload.get("content") or "",
                    metadata=dict(payload.get("metadata") or {}),
                    similarity_score=float(hit.score),
                    rank=rank,
                )
            )
        return documents

    def scroll_pages(
            self,
            page_size: int = DEFAULT_SCROLL_PAGE_SIZE,
            scroll_filter: Any = None,
        ) -> Iterator[list[VectorPoint]]:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}.")
        if not self.collection_exists():
            return

        offset = None
        page_number = 0
        while True:
            try:
                records, next_offset = self.client.scroll(
                    collection_name=self.collection_name,
                    scroll_filter=scroll_filter,
                    limit=page_size,
                    offset=offset,
                    with_payload=True,
                    with_vectors=False,
                )
            except Exception as exc:
                raise StoreReadError("Collection scroll failed", _describe(exc)) from exc

            page_number += 1
            logger.debug("Scroll page %d: %d points", page_number, len(records))
            yield [VectorPoint.from_record(r.id, r.payload) for r in records]

            if next_offset is None:
                return
            offset = next_offset

    def delete_by_ids(self, ids: Sequence[str]) -> Optional[int]:
        ids = list(ids)
        if not ids:
            return None

        deleted = 0
        operation_id = None
        for start in range(0, len(ids), self.delete_batch_size):
            batch = ids[start:start + self.delete_batch_size]
            try:
                result = self.client.delete(
                    collection_name=self.collection_name,
                    points_selector=models.PointIdsList(points=batch),
                    wait=True,
                )
            except Exception as exc:
                raise StoreWriteError(
                    "Vector store delete failed",
                    f"{_describe(exc)} (deleted {deleted} of {len(ids)} points before failure)",
                    completed=deleted,
                ) from exc
            deleted += len(batch)
            operation_id = getattr(result, "operation_id", None)

        logger.debug("Deleted %d points from %r", deleted, self.collection_name)
        return operation_id

    @property
    def supports_filtered_scan(self) -> bool:
        return True

    def find_point_ids_by_source(
            self,
            source_id: str,
            page_size: int = DEFAULT_SCROLL_PAGE_SIZE,
        ) -> list[str]:
        source_filter = models.Filter(
            must=[models.FieldCondition(key=SOURCE_ID_FIELD, match=models.MatchValue(value=source_id))]
        )
        return [point.id for point in self.scroll_all(page_size=page_size, scroll_filter=source_filter)]

    def count(self) -> int:
        if not self.collection_exists():
            return 0
        try:
            return self.client.count(collection_name=self.collection_name, exact=True).count
        except Exception as exc:
            raise StoreReadError("Could not count points", _describe(exc)) from exc


def _get_vector_store_kind(cfg: Mapping[str, Any]):
    for key in ("kind", "type", "provider", "backend", "impl"):
        val = cfg.get(key)
        if val is not None:
            return val
    return None


def _normalize_vector_store_kind(kind) -> str:
    if not kind:
        return "qdrant"
    k = str(kind).lower()
    if k in {"qdrant", "qdrantvectorstore", "qdrant_vector_store"}:
        return "qdrant"
    return k


def create_vector_store(config: Mapping[str, Any]) -> BaseVectorStore:
    """Create a vector store implementation from a configuration mapping.

    Parameters
    ----------
    config : Mapping[str, Any]
        Configuration mapping. The backend is selected by ``kind``, ``type``,
        ``provider``, ``backend`` or ``impl``; Qdrant is the default.

    Returns
    -------
    BaseVectorStore
        Initialised adapter.

    Raises
    ------
    ValueError
        If the requested backend kind is not supported.
    """
    kind = _normalize_vector_store_kind(_get_vector_store_kind(config))
    if kind == "qdrant":
        return QdrantVectorStore.from_config_dict(config)
    raise ValueError(f"Unknown vector store kind: {kind!r}")


__all__ = [
    "BaseVectorStore",
    "QdrantVectorStore",
    "create_vector_store",
    "DEFAULT_COLLECTION_NAME",
    "DEFAULT_SCROLL_PAGE_SIZE",
]
