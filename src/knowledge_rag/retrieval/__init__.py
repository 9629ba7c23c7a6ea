"""
Retrieval layer of the RAG pipeline.

This package covers everything needed to turn raw sources into searchable
vectors and to score stored chunks against a query. It includes a document
loader and web crawler, text pre-processing and splitting utilities,
embedding model wrappers, the vector store adapter and rerankers.

Submodules
----------
document_loader
    Fetches PDF documents and crawls websites.
document_preprocessor
    HTML sanitising and PDF text extraction applied prior to chunking.
text_splitter
    Chunking of long documents into overlapping pieces.
embedder
    Embedding model wrappers and factory.
vector_store
    Qdrant-backed vector store adapter and factory.
reranker
    Second-stage relevance scoring of retrieved chunks.
"""
