"""knowledge_rag.pipelines.ingestion_pipeline

Source ingestion: acquire text, chunk it, embed the chunks and store them.

Classes
-------
IngestionPipeline
    Orchestrates extraction → chunking → embedding → upsert for one source.

Notes
-----
All extraction, chunking and embedding work completes before the first
write, so a failure in those steps leaves the collection untouched. Point
ids are derived from ``(source_id, chunk_index)``, which makes re-ingesting a
source overwrite its earlier points in place.
"""

from datetime import datetime, timezone
import logging
from typing import Optional

from knowledge_rag.common.errors import (
    EmptyInputError,
    PartialIndexError,
    StoreWriteError,
    UnsupportedSourceTypeError,
)
from knowledge_rag.common.schemas import (
    ChunkMetadata,
    IngestResult,
    Source,
    SourceType,
    VectorPoint,
    chunk_point_id,
)
from knowledge_rag.retrieval.document_loader import DocumentLoader
from knowledge_rag.retrieval.embedder import BaseEmbedder
from knowledge_rag.retrieval.text_splitter import RecursiveTextChunker
from knowledge_rag.retrieval.vector_store import BaseVectorStore

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Index one source at a time into the vector collection.

    Parameters
    ----------
    embedder : BaseEmbedder
        Embeds chunk texts.
    vector_store : BaseVectorStore
        Destination collection.
    chunker : RecursiveTextChunker, optional
        Splits extracted text. Defaults to 1000-character chunks with a
        200-character overlap.
    loader : DocumentLoader, optional
        Fetches ``pdf`` and ``url`` sources. Defaults to a loader with the
        default crawler bounds.
    """

    def __init__(self,
                 embedder: BaseEmbedder,
                 vector_store: BaseVectorStore,
                 chunker: Optional[RecursiveTextChunker] = None,
                 loader: Optional[DocumentLoader] = None,
        ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.chunker = chunker or RecursiveTextChunker()
        self.loader = loader or DocumentLoader()

    def extract_text(self, source: Source) -> str:
        """Return the raw text of ``source``, fetching remote content where needed.

        Raises
        ------
        UnsupportedSourceTypeError
            If the source type has no extractor.
        FetchError
            If remote content cannot be retrieved.
        """
        if source.type == SourceType.PDF:
            return self.loader.fetch_pdf_text(source.content)
        if source.type == SourceType.TEXT:
            return source.content
        if source.type == SourceType.URL:
            return self.loader.crawl_text(source.content)
        raise UnsupportedSourceTypeError("Invalid source type", f"unsupported source type {source.type!r}")

    def build_points(self, source: Source, text: str) -> list[VectorPoint]:
        """Chunk ``text`` and wrap each chunk as an un-embedded point."""
        try:
            chunks = list(self.chunker.split(text))
        except EmptyInputError as exc:
            raise EmptyInputError("Nothing to index", f"source {source.id!r} produced no text") from exc
        if not chunks:
            raise EmptyInputError("Nothing to index", f"source {source.id!r} produced no chunks")

        created_at = datetime.now(timezone.utc).isoformat()
        source_type = source.type.value if isinstance(source.type, SourceType) else str(source.type)
        return [
            VectorPoint(
                id=chunk_point_id(source.id, index),
                content=chunk,
                metadata=ChunkMetadata(
                    source_id=source.id,
                    source_type=source_type,
                    source_name=source.name,
                    chunk_index=index,
                    chunk_count=len(chunks),
                    created_at=created_at,
                ),
            )
            for index, chunk in enumerate(chunks)
        ]

    def ingest(self, source: Source) -> IngestResult:
        """Index ``source`` and report how many chunks were written.

        A source that yields no text is not an error: nothing is written and
        the result reports zero chunks.

        Raises
        ------
        PartialIndexError
            If the store failed after some points were already written.
        StoreWriteError
            If the store failed before anything was written.
        """
        text = self.extract_text(source)
        try:
            points = self.build_points(source, text)
        except EmptyInputError:
            logger.info("Nothing to index for source %r (%s)", source.id, source.name)
            return IngestResult(source_id=source.id, chunk_count=0, point_ids=[])

        vectors = self.embedder.embed_batch([p.content for p in points])
        for point, vector in zip(points, vectors):
            point.vector = vector

        try:
            self.vector_store.upsert(points)
        except StoreWriteError as exc:
            if exc.completed > 0:
                raise PartialIndexError(
                    source.id,
                    written=exc.completed,
                    expected=len(points),
                    details=exc.details,
                ) from exc
            raise

        logger.info("Indexed source %r (%s): %d chunks", source.id, source.name, len(points))
        return IngestResult(
            source_id=source.id,
            chunk_count=len(points),
            point_ids=[p.id for p in points],
        )

    def __call__(self, source: Source) -> IngestResult:
        return self.ingest(source)


__all__ = ["IngestionPipeline"]
