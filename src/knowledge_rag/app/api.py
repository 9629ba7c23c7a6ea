# knowledge_rag/app/api.py
from __future__ import annotations

import logging
import os
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from knowledge_rag.app.container import build_container
from knowledge_rag.common.errors import KnowledgeRAGError
from knowledge_rag.common.schemas import Source
from knowledge_rag.config import GlobalConfig, configure_logging
from knowledge_rag.config.global_config import DEFAULT_CONFIG_ENV, DEFAULT_CONFIG_PATH

logger = logging.getLogger("knowledge_rag.api")


class IndexRequest(BaseModel):
    """Source wire record. Field values are validated by :meth:`Source.from_dict`."""
    model_config = ConfigDict(extra="allow")

    id: Any = None
    type: Any = None
    content: Any = None
    name: Any = None
    createdAt: Any = None
    isIndexed: Any = None


class DeindexRequest(BaseModel):
    sourceId: Optional[str] = None


class QueryRequest(BaseModel):
    query: Optional[str] = None


class SourceAttributionModel(BaseModel):
    index: int
    relevanceScore: float
    preview: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class QueryResponse(BaseModel):
    success: bool = True
    answer: str
    query: str
    sources: list[SourceAttributionModel] = Field(default_factory=list)
    totalSources: int = 0


def _error_response(status_code: int, error: str, details: str, category: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "details": details, "category": category},
    )


def create_app(container: Any = None) -> FastAPI:
    """Create the HTTP application.

    Parameters
    ----------
    container : KnowledgeRAGContainer, optional
        Pre-built component container. When omitted, the container is built
        at startup from the file named by ``KNOWLEDGE_RAG_CONFIG``.
    """
    app = FastAPI(title="Knowledge RAG API", version="0.1.0")
    app.state.container = container

    @app.on_event("startup")
    def startup():
        if app.state.container is not None:
            return
        cfg_path = os.environ.get(DEFAULT_CONFIG_ENV, DEFAULT_CONFIG_PATH)
        cfg = GlobalConfig.load(cfg_path)
        configure_logging(cfg)
        app.state.container = build_container(cfg)
        logger.info("Loaded configuration from %s", cfg_path)

    @app.exception_handler(KnowledgeRAGError)
    def handle_knowledge_rag_error(request: Request, exc: KnowledgeRAGError):
        if exc.status_code >= 500:
            logger.exception("Error while handling %s %s", request.method, request.url.path, exc_info=exc)
        else:
            logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    def handle_request_validation_error(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request body for %s %s", request.method, request.url.path)
        return _error_response(400, "Invalid request body", str(exc.errors()), "validation_error")

    @app.exception_handler(Exception)
    def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error while handling %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(500, "Internal server error", f"{type(exc).__name__}: {exc}", "internal_error")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/v1/index")
    def index(req: IndexRequest):
        source = Source.from_dict(req.model_dump())
        result = app.state.container.ingestion_pipeline.ingest(source)
        return result.to_dict()

    @app.api_route("/v1/deindex", methods=["DELETE", "POST"])
    def deindex(req: DeindexRequest):
        result = app.state.container.deindexer.deindex(req.sourceId or "")
        return result.to_dict()

    @app.post("/v1/query", response_model=QueryResponse)
    def query(req: QueryRequest):
        result = app.state.container.pipeline.run(req.query or "")
        return result.to_dict()

    return app


app = create_app()
