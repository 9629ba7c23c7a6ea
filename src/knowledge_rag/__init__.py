"""knowledge_rag

Knowledge-base Retrieval-Augmented Generation (RAG) service package.

This package ingests PDF documents, raw text and crawled websites into a
single vector collection, removes a source's vectors on request, and answers
questions grounded in the indexed content.

Attributes
----------
__version__ : str
    Package version string. Defaults to ``"0.0.0-dev"`` when package metadata is
    unavailable.

Modules
-------
config
    Global configuration loader, cached accessors and logging setup.
app
    Application container and HTTP API.
pipelines
    Ingestion, deindexing and retrieval-augmented answering.
retrieval
    Document loading, preprocessing, chunking, embedding, storage and reranking.
generation
    LLM and prompt-building interfaces and factories.
common
    Shared schemas, the error taxonomy and token counting.

Exports
-------
GlobalConfig
    Global configuration loader and accessor.
KnowledgeRAGContainer
    Cached runtime component container for applications.
build_container
    Factory function to construct a configured
    :class:`~knowledge_rag.app.container.KnowledgeRAGContainer`.
RAGPipeline
    End-to-end Retrieval-Augmented Generation pipeline.
IngestionPipeline
    Source indexing pipeline.
Deindexer
    Source removal.
Source
    User-supplied knowledge unit.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("knowledge-rag")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from .config import GlobalConfig
from .app.container import KnowledgeRAGContainer, build_container
from .pipelines.rag_pipeline import RAGPipeline
from .pipelines.ingestion_pipeline import IngestionPipeline
from .pipelines.deindexer import Deindexer
from .common import Source

__all__ = [
    "__version__",
    "GlobalConfig",
    "KnowledgeRAGContainer",
    "build_container",
    "RAGPipeline",
    "IngestionPipeline",
    "Deindexer",
    "Source",
]
