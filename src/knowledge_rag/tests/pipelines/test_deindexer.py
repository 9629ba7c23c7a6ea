import pytest

from knowledge_rag.common.errors import ValidationError
from knowledge_rag.common.schemas import Source, SourceType
from knowledge_rag.pipelines.deindexer import Deindexer
from knowledge_rag.pipelines.ingestion_pipeline import IngestionPipeline
from knowledge_rag.retrieval.text_splitter import RecursiveTextChunker


def _text(topic, n=12):
    return " ".join(f"Paragraph {i} about {topic}." for i in range(n))


@pytest.fixture
def populated_store(embedder, memory_store):
    ingest = IngestionPipeline(
        embedder,
        memory_store,
        chunker=RecursiveTextChunker(chunk_size=80, chunk_overlap=10),
    )
    counts = {}
    for source_id, topic in (("alpha", "gardening"), ("beta", "astronomy")):
        result = ingest(Source(id=source_id, type=SourceType.TEXT, content=_text(topic), name=topic))
        counts[source_id] = result.chunk_count
    return memory_store, counts


@pytest.mark.parametrize("use_server_filter", [False, True])
def test_deindex_removes_only_the_source(populated_store, use_server_filter):
    store, counts = populated_store
    deindexer = Deindexer(store, page_size=3, use_server_filter=use_server_filter)

    result = deindexer.deindex("alpha")

    assert result.deleted_count == counts["alpha"]
    assert len(result.point_ids) == counts["alpha"]
    remaining = list(store.scroll_all())
    assert len(remaining) == counts["beta"]
    assert {p.metadata.source_id for p in remaining} == {"beta"}


def test_deindex_twice_is_a_noop_with_diagnostics(populated_store):
    store, counts = populated_store
    deindexer = Deindexer(store)

    deindexer("alpha")
    again = deindexer("alpha")

    assert again.deleted_count == 0
    assert again.available_source_ids == ["beta"]
    assert again.to_dict()["message"] == "No points found for this source"
    assert store.count() == counts["beta"]


def test_no_match_with_server_filter_still_lists_sources(populated_store):
    store, _ = populated_store
    result = Deindexer(store, use_server_filter=True).deindex("gamma")
    assert result.deleted_count == 0
    assert result.available_source_ids == ["alpha", "beta"]


def test_deindex_on_missing_collection(memory_store):
    result = Deindexer(memory_store).deindex("anything")
    assert result.deleted_count == 0
    assert result.available_source_ids == []


@pytest.mark.parametrize("source_id", ["", "   ", None])
def test_missing_source_id_is_rejected(memory_store, source_id):
    with pytest.raises(ValidationError):
        Deindexer(memory_store).deindex(source_id)


def test_page_size_must_be_positive(memory_store):
    with pytest.raises(ValueError):
        Deindexer(memory_store, page_size=0)
