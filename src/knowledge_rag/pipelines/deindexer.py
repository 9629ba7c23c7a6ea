"""knowledge_rag.pipelines.deindexer

Removal of every point belonging to one source.

Classes
-------
Deindexer
    Finds a source's points and deletes them by id.
"""

import logging
from typing import Optional

from knowledge_rag.common.errors import ValidationError
from knowledge_rag.common.schemas import DeindexResult
from knowledge_rag.retrieval.vector_store import DEFAULT_SCROLL_PAGE_SIZE, BaseVectorStore

logger = logging.getLogger(__name__)


class Deindexer:
    """Delete all points of a source from the vector collection.

    By default matching points are found with a full client-side scan of the
    collection. With ``use_server_filter=True`` and a store that supports it,
    the ``metadata.sourceId`` filter is evaluated by the store instead; the
    full scan then only runs to list the available source ids when nothing
    matched.

    Parameters
    ----------
    vector_store : BaseVectorStore
        Collection to delete from.
    page_size : int, optional
        Scroll page size. Defaults to ``1000``.
    use_server_filter : bool, optional
        Push the source filter down to the store when possible. Defaults to
        ``False``.
    """

    def __init__(self,
                 vector_store: BaseVectorStore,
                 page_size: int = DEFAULT_SCROLL_PAGE_SIZE,
                 use_server_filter: bool = False,
        ):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}.")
        self.vector_store = vector_store
        self.page_size = int(page_size)
        self.use_server_filter = use_server_filter

    def _scan(self, source_id: str) -> tuple[list[str], set[str]]:
        matched: list[str] = []
        seen_sources: set[str] = set()
        for point in self.vector_store.scroll_all(page_size=self.page_size):
            point_source = point.metadata.source_id
            if point_source is not None:
                seen_sources.add(str(point_source))
            if point_source == source_id:
                matched.append(point.id)
        return matched, seen_sources

    def find_point_ids(self, source_id: str) -> tuple[list[str], Optional[set[str]]]:
        """Return the matching point ids and, when scanned, the source ids seen."""
        if self.use_server_filter and self.vector_store.supports_filtered_scan:
            return self.vector_store.find_point_ids_by_source(source_id, page_size=self.page_size), None
        return self._scan(source_id)

    def deindex(self, source_id: str) -> DeindexResult:
        """Delete every point whose ``metadata.sourceId`` equals ``source_id``.

        Deleting a source with no points is a successful no-op whose result
        lists the source ids present in the collection.

        Raises
        ------
        ValidationError
            If ``source_id`` is empty.
        StoreReadError
            If the scan fails.
        StoreWriteError
            If deletion fails; ``completed`` reports any partial progress.
        """
        if not isinstance(source_id, str) or not source_id.strip():
            raise ValidationError("Missing sourceId", "sourceId must be a non-empty string")

        point_ids, seen_sources = self.find_point_ids(source_id)

        if not point_ids:
            if seen_sources is None:
                _, seen_sources = self._scan(source_id)
            logger.info("No points found for source %r", source_id)
            return DeindexResult(
                source_id=source_id,
                deleted_count=0,
                available_source_ids=sorted(seen_sources),
            )

        operation_id = self.vector_store.delete_by_ids(point_ids)
        logger.info("Deindexed source %r: deleted %d points", source_id, len(point_ids))
        return DeindexResult(
            source_id=source_id,
            deleted_count=len(point_ids),
            point_ids=point_ids,
            operation_id=operation_id,
        )

    def __call__(self, source_id: str) -> DeindexResult:
        return self.deindex(source_id)


__all__ = ["Deindexer"]
