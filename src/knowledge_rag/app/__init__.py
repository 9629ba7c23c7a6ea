"""knowledge_rag.app

Application layer: the composition root and the HTTP API.

Modules
-------
container
    Lazily wired, cached runtime components.
api
    FastAPI application exposing index, deindex and query endpoints.
"""
