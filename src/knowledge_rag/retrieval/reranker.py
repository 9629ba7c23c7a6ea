"""knowledge_rag.retrieval.reranker

Reranker abstractions and implementations for query-time relevance scoring.

This module defines:
- a normalized rerank result container
- an abstract reranker interface
- a concrete reranker backed by Cohere's v2 rerank REST endpoint
- a passthrough reranker that keeps similarity order
- a small reranker factory for configuration-driven construction
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import requests

from knowledge_rag.common.errors import RerankProviderError
from knowledge_rag.common.schemas import RetrievedDocument

logger = logging.getLogger(__name__)

DEFAULT_RERANK_URL = "https://api.cohere.com/v2/rerank"
DEFAULT_RERANK_MODEL = "rerank-v3.5"
DEFAULT_TOP_N = 5


@dataclass(frozen=True)
class RerankResult:
    """Relevance of one input document.

    ``index`` refers to the position of the document in the list passed to
    :meth:`BaseReranker.rerank`.
    """

    index: int
    relevance_score: float


def _clamp(score: float) -> float:
    return min(1.0, max(0.0, float(score)))


def normalize_results(results: Sequence[RerankResult], limit: int) -> list[RerankResult]:
    """Clamp scores to ``[0, 1]`` and order best-first, ties by original index.

    Examples
    --------
    >>> normalize_results([RerankResult(0, 0.5), RerankResult(1, 1.7)], 5)
    [RerankResult(index=1, relevance_score=1.0), RerankResult(index=0, relevance_score=0.5)]
    """
    clamped = [RerankResult(r.index, _clamp(r.relevance_score)) for r in results]
    clamped.sort(key=lambda r: (-r.relevance_score, r.index))
    return clamped[:limit]


class BaseReranker(ABC):
    """Abstract interface for reranking retrieved documents against a query."""

    @abstractmethod
    def rerank(
            self,
            query: str,
            documents: Sequence[str],
            top_n: int = DEFAULT_TOP_N,
        ) -> list[RerankResult]:
        """Score ``documents`` against ``query``.

        Parameters
        ----------
        query : str
            The user query.
        documents : Sequence[str]
            Candidate texts, in similarity order.
        top_n : int, optional
            Maximum number of results to return.

        Returns
        -------
        list[RerankResult]
            At most ``top_n`` results with scores in ``[0, 1]``, ordered by
            descending score; equal scores keep their input order.
        """
        raise NotImplementedError

    def rerank_documents(
            self,
            query: str,
            documents: Sequence[RetrievedDocument],
            top_n: int = DEFAULT_TOP_N,
        ) -> list[RerankResult]:
        """Rerank retrieved documents by their content."""
        return self.rerank(query, [doc.content for doc in documents], top_n)


class CohereReranker(BaseReranker):
    """Reranker calling Cohere's ``/v2/rerank`` endpoint with :mod:`requests`."""

    def __init__(
            self,
            *,
            api_key: Optional[str],
            model: str = DEFAULT_RERANK_MODEL,
            url: str = DEFAULT_RERANK_URL,
            timeout: float = 30.0,
            session: Optional[requests.Session] = None,
        ):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = float(timeout)
        self.session = session or requests.Session()

    def rerank(
            self,
            query: str,
            documents: Sequence[str],
            top_n: int = DEFAULT_TOP_N,
        ) -> list[RerankResult]:
        documents = list(documents)
        if not documents or top_n <= 0:
            return []

        payload = {
            "model": self.model,
            "query": query,
            "documents": documents,
            "top_n": min(int(top_n), len(documents)),
        }
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = self.session.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise RerankProviderError("Rerank request failed", f"{type(exc).__name__}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise RerankProviderError(
                "Rerank request failed",
                f"POST {self.url} returned HTTP {response.status_code}: {response.text[:500]}",
            )

        try:
            body = response.json()
            results = [
                RerankResult(int(item["index"]), float(item["relevance_score"]))
                for item in body["results"]
            ]
        except (ValueError, KeyError, TypeError) as exc:
            raise RerankProviderError("Malformed rerank response", f"{type(exc).__name__}: {exc}") from exc

        for result in results:
            if not 0 <= result.index < len(documents):
                raise RerankProviderError(
                    "Malformed rerank response",
                    f"index {result.index} out of range for {len(documents)} documents",
                )

        logger.debug("Reranked %d documents with %s", len(documents), self.model)
        return normalize_results(results, top_n)


class PassthroughReranker(BaseReranker):
    """Keep similarity order, reporting the similarity scores as relevance."""

    def rerank(
            self,
            query: str,
            documents: Sequence[str],
            top_n: int = DEFAULT_TOP_N,
        ) -> list[RerankResult]:
        results = [RerankResult(i, 1.0) for i in range(len(documents))]
        return normalize_results(results, max(int(top_n), 0))

    def rerank_documents(
            self,
            query: str,
            documents: Sequence[RetrievedDocument],
            top_n: int = DEFAULT_TOP_N,
        ) -> list[RerankResult]:
        results = [RerankResult(i, doc.similarity_score) for i, doc in enumerate(documents)]
        return normalize_results(results, max(int(top_n), 0))


def create_reranker(config: Mapping[str, Any] | None = None) -> BaseReranker:
    """Create a reranker from a ``reranker`` configuration section.

    ``type: cohere`` selects :class:`CohereReranker`; ``none``/``passthrough``
    or an absent section selects :class:`PassthroughReranker`.
    """
    cfg = dict(config or {})
    kind = str(cfg.get("type", "cohere" if cfg else "passthrough")).lower().strip()

    if kind == "cohere":
        return CohereReranker(
            api_key=cfg.get("api_key") or None,
            model=cfg.get("model", DEFAULT_RERANK_MODEL),
            url=cfg.get("url", DEFAULT_RERANK_URL),
            timeout=float(cfg.get("timeout", 30.0)),
        )
    if kind in {"none", "passthrough", "similarity"}:
        return PassthroughReranker()

    raise ValueError(f"Unsupported reranker type {kind!r}. Supported rerankers: ['cohere', 'passthrough'].")


__all__ = [
    "RerankResult",
    "BaseReranker",
    "CohereReranker",
    "PassthroughReranker",
    "normalize_results",
    "create_reranker",
]
