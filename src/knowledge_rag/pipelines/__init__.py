"""knowledge_rag.pipelines

Pipeline orchestration components for the knowledge RAG service.

This package contains the high-level pipelines that coordinate the
retrieval and generation components. Pipelines are stateless beyond their
configured components, making them safe to reuse across requests and
execution contexts.

Modules
-------
ingestion_pipeline
    Source extraction, chunking, embedding and indexing.
deindexer
    Deletion of all points belonging to a source.
rag_pipeline
    End-to-end Retrieval-Augmented Generation (RAG) pipeline.
"""
