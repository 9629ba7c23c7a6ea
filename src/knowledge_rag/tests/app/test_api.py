from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from knowledge_rag.app.api import create_app
from knowledge_rag.common.errors import GenerationProviderError
from knowledge_rag.generation.prompt_builder import create_prompt_builder
from knowledge_rag.pipelines.deindexer import Deindexer
from knowledge_rag.pipelines.ingestion_pipeline import IngestionPipeline
from knowledge_rag.pipelines.rag_pipeline import NO_RESULTS_ANSWER, RAGPipeline


class BlankLoader:
    """Loader double for scanned documents with no extractable text."""

    def fetch_pdf_text(self, url):
        return ""

    def crawl_text(self, url):
        return ""


class FailingLLM:
    def generate(self, prompt, *, system=None, **kwargs):
        raise GenerationProviderError("Generation request failed", "401 Unauthorized")


@pytest.fixture
def container(embedder, memory_store, make_reranker, llm):
    return SimpleNamespace(
        ingestion_pipeline=IngestionPipeline(embedder, memory_store),
        deindexer=Deindexer(memory_store),
        pipeline=RAGPipeline(embedder, memory_store, make_reranker([0.9, 0.8]), llm, create_prompt_builder()),
        vector_store=memory_store,
    )


@pytest.fixture
def client(container):
    with TestClient(create_app(container=container)) as c:
        yield c


def _index(client, **overrides):
    body = {"id": "doc-1", "type": "text", "content": "Paris is the capital of France.", "name": "Geo"}
    body.update(overrides)
    return client.post("/v1/index", json=body)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_index_text_source(client, container):
    response = _index(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["sourceId"] == "doc-1"
    assert body["chunkCount"] == 1
    assert len(body["pointIds"]) == 1
    assert container.vector_store.count() == 1


def test_index_whitespace_text_reports_zero_chunks(client, container):
    response = _index(client, content="  \n\t ")

    assert response.status_code == 200
    assert response.json() == {"success": True, "chunkCount": 0, "sourceId": "doc-1", "pointIds": []}
    assert container.vector_store.count() == 0


def test_index_pdf_without_text_reports_zero_chunks(client, container, embedder, memory_store):
    container.ingestion_pipeline = IngestionPipeline(embedder, memory_store, loader=BlankLoader())

    response = _index(client, type="pdf", content="https://files.example.com/scan.pdf")

    assert response.status_code == 200
    assert response.json()["chunkCount"] == 0
    assert response.json()["pointIds"] == []
    assert container.vector_store.count() == 0


@pytest.mark.parametrize(
    "overrides, category",
    [
        ({"id": ""}, "validation_error"),
        ({"type": "url", "content": "   "}, "validation_error"),
        ({"type": "docx"}, "unsupported_source_type"),
    ],
)
def test_index_rejects_bad_sources(client, container, overrides, category):
    response = _index(client, **overrides)

    assert response.status_code == 400
    assert response.json()["category"] == category
    assert container.vector_store.count() == 0


def test_deindex_with_delete_and_post(client, container):
    _index(client)
    _index(client, id="doc-2", content="Berlin is the capital of Germany.")

    response = client.request("DELETE", "/v1/deindex", json={"sourceId": "doc-1"})
    assert response.status_code == 200
    assert response.json()["deletedCount"] == 1
    assert container.vector_store.count() == 1

    again = client.post("/v1/deindex", json={"sourceId": "doc-1"})
    assert again.status_code == 200
    assert again.json() == {
        "success": True,
        "sourceId": "doc-1",
        "message": "No points found for this source",
        "deletedCount": 0,
        "availableSourceIds": ["doc-2"],
    }


def test_deindex_requires_source_id(client):
    response = client.request("DELETE", "/v1/deindex", json={})
    assert response.status_code == 400
    assert response.json()["error"] == "Missing sourceId"


def test_query_flow(client):
    empty = client.post("/v1/query", json={"query": "What is the capital of France?"})
    assert empty.status_code == 200
    assert empty.json()["answer"] == NO_RESULTS_ANSWER
    assert empty.json()["totalSources"] == 0

    _index(client)
    response = client.post("/v1/query", json={"query": "What is the capital of France?"})

    body = response.json()
    assert response.status_code == 200
    assert body["answer"] == "A grounded answer."
    assert body["totalSources"] == 1
    assert body["sources"][0]["relevanceScore"] == 0.9
    assert body["sources"][0]["metadata"]["sourceName"] == "Geo"


@pytest.mark.parametrize("body", [{"query": ""}, {"query": "  "}, {}])
def test_query_requires_text(client, body):
    response = client.post("/v1/query", json=body)
    assert response.status_code == 400
    assert response.json()["category"] == "empty_query"


def test_malformed_body_is_a_validation_error(client):
    response = client.post("/v1/query", json={"query": ["not", "a", "string"]})
    assert response.status_code == 400
    assert response.json()["category"] == "validation_error"


def test_provider_failure_envelope(container, embedder, memory_store, make_reranker):
    container.pipeline = RAGPipeline(
        embedder, memory_store, make_reranker([0.5]), FailingLLM(), create_prompt_builder()
    )
    with TestClient(create_app(container=container)) as client:
        _index(client)
        response = client.post("/v1/query", json={"query": "capital?"})

    assert response.status_code == 500
    assert response.json() == {
        "error": "Generation request failed",
        "details": "401 Unauthorized",
        "category": "generation_provider_error",
    }


def test_unexpected_errors_are_wrapped(container):
    def explode(source):
        raise RuntimeError("disk full")

    container.ingestion_pipeline = SimpleNamespace(ingest=explode)
    with TestClient(create_app(container=container), raise_server_exceptions=False) as client:
        response = _index(client)

    assert response.status_code == 500
    assert response.json()["category"] == "internal_error"
    assert "disk full" in response.json()["details"]
