"""knowledge_rag.app.container

Composition root for the knowledge RAG service.

This module is the single place where concrete implementations are wired
together from configuration (embedder, vector store, reranker, LLM client,
and the ingestion, deindex and RAG pipelines). Components are constructed
lazily and cached on first access to avoid repeated expensive initialisation.

Notes
-----
- Keep this module importable with minimal side effects:
  - do not perform network calls at import time
  - do not read files at import time
  - construct expensive objects lazily (cached on first access)

- Components are created via the existing factories. This module centralises
  those calls to prevent accidental duplication of clients per request.

Examples
--------
>>> from knowledge_rag.config import GlobalConfig
>>> from knowledge_rag.app.container import build_container
>>> cfg = GlobalConfig.load("config/config.yaml")
>>> c = build_container(cfg)
>>> answer = c.pipeline.run("my question")
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any, Mapping


@dataclass(frozen=True)
class KnowledgeRAGContainer:
    """Holds the configured, cached runtime components for the application.

    Parameters
    ----------
    config : Any
        Loaded global configuration object (typically :class:`knowledge_rag.config.GlobalConfig`).
    """

    config: Any

    @cached_property
    def embedder(self) -> Any:
        """Return the embedding client used for chunks and queries."""
        from knowledge_rag.retrieval.embedder import create_embedder

        return create_embedder(_as_mapping(self.config.embedder))

    @cached_property
    def vector_store(self) -> Any:
        """Return the vector store adapter over the configured collection."""
        from knowledge_rag.retrieval.vector_store import create_vector_store

        return create_vector_store(_as_mapping(self.config.vector_store))

    @cached_property
    def reranker(self) -> Any:
        from knowledge_rag.retrieval.reranker import create_reranker

        return create_reranker(_as_mapping(getattr(self.config, "reranker", {})))

    @cached_property
    def generator_llm(self) -> Any:
        """Return the LLM used to generate final answers."""
        from knowledge_rag.generation.llm_interface import create_llm

        return create_llm(dict(_as_mapping(self.config.generator_llm)))

    @cached_property
    def prompt_builder(self) -> Any:
        """Return the prompt builder.

        The builder always holds the packaged default templates; a file named
        by ``config.prompts`` is registered on top of them.

        Notes
        -----
        Prompt sources are resolved relative to the loaded config file
        directory (when available), not the current working directory.
        """
        from knowledge_rag.generation.prompt_builder import create_prompt_builder

        prompts = getattr(self.config, "prompts", None)
        cfg_path = getattr(self.config, "config_path", None)
        base_dir = Path(cfg_path).expanduser().resolve().parent if cfg_path else None
        return create_prompt_builder(prompts, base_dir=base_dir)

    @cached_property
    def token_counter(self) -> Any:
        """Return the token counter used for context budgeting.

        Configuration is read from ``config.tokenization``; a missing section
        selects the heuristic counter.
        """
        from knowledge_rag.common.tokenisation import create_token_counter

        return create_token_counter(_as_mapping(getattr(self.config, "tokenization", {})))

    @cached_property
    def chunker(self) -> Any:
        from knowledge_rag.retrieval.text_splitter import create_text_chunker

        return create_text_chunker(_as_mapping(getattr(self.config, "chunking", {})))

    @cached_property
    def document_loader(self) -> Any:
        from knowledge_rag.retrieval.document_loader import create_document_loader

        return create_document_loader(_as_mapping(getattr(self.config, "crawler", {})))

    @cached_property
    def ingestion_pipeline(self) -> Any:
        """Return the ingestion pipeline for ``pdf``, ``text`` and ``url`` sources."""
        from knowledge_rag.pipelines.ingestion_pipeline import IngestionPipeline

        return IngestionPipeline(
            embedder=self.embedder,
            vector_store=self.vector_store,
            chunker=self.chunker,
            loader=self.document_loader,
        )

    @cached_property
    def deindexer(self) -> Any:
        from knowledge_rag.pipelines.deindexer import Deindexer
        from knowledge_rag.retrieval.vector_store import DEFAULT_SCROLL_PAGE_SIZE

        section = _as_mapping(getattr(self.config, "deindex", {}))
        return Deindexer(
            vector_store=self.vector_store,
            page_size=int(section.get("page_size", DEFAULT_SCROLL_PAGE_SIZE)),
            use_server_filter=bool(section.get("use_server_filter", False)),
        )

    @cached_property
    def pipeline(self) -> Any:
        """Return the fully wired RAG pipeline.

        Returns
        -------
        Any
            A :class:`knowledge_rag.pipelines.rag_pipeline.RAGPipeline` instance.
        """
        from knowledge_rag.pipelines.rag_pipeline import RAGPipeline

        section = _as_mapping(getattr(self.config, "retrieval", {}))
        max_context_tokens = section.get("max_context_tokens")
        return RAGPipeline(
            embedder=self.embedder,
            vector_store=self.vector_store,
            reranker=self.reranker,
            llm=self.generator_llm,
            prompt_builder=self.prompt_builder,
            token_counter=self.token_counter,
            top_k=int(section.get("top_k", 5)),
            rerank_top_n=int(section.get("rerank_top_n", 5)),
            temperature=float(section.get("temperature", 0.1)),
            max_tokens=int(section.get("max_tokens", 4096)),
            max_context_tokens=int(max_context_tokens) if max_context_tokens is not None else None,
            preview_chars=int(section.get("preview_chars", 200)),
        )


def build_container(config: Any) -> KnowledgeRAGContainer:
    """Create a :class:`~knowledge_rag.app.container.KnowledgeRAGContainer`.

    This function is intentionally small so it can serve as a single entry point
    for FastAPI startup hooks, CLI scripts, and tests.
    """
    return KnowledgeRAGContainer(config=config)


def _as_mapping(obj: Any) -> Mapping[str, Any]:
    """Coerce an object into a mapping.

    Raises
    ------
    TypeError
        If ``obj`` cannot be interpreted as a mapping.
    """
    if obj is None:
        return {}

    if isinstance(obj, Mapping):
        return obj

    if hasattr(obj, "__dict__"):
        return dict(vars(obj))

    raise TypeError(f"Expected mapping type but got {type(obj)}")


__all__ = ["KnowledgeRAGContainer", "build_container"]
