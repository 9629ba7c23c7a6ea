import pytest

from knowledge_rag.common.errors import (
    FetchError,
    PartialIndexError,
    StoreWriteError,
    UnsupportedSourceTypeError,
)
from knowledge_rag.common.schemas import Source, SourceType, chunk_point_id
from knowledge_rag.pipelines.ingestion_pipeline import IngestionPipeline
from knowledge_rag.retrieval.text_splitter import RecursiveTextChunker

ARTICLE = " ".join(
    f"Sentence number {i} talks about vector databases and retrieval." for i in range(40)
)


class FakeLoader:
    def __init__(self, pdf_text="", site_text="", error=None):
        self.pdf_text = pdf_text
        self.site_text = site_text
        self.error = error
        self.calls = []

    def fetch_pdf_text(self, url):
        self.calls.append(("pdf", url))
        if self.error:
            raise self.error
        return self.pdf_text

    def crawl_text(self, url):
        self.calls.append(("url", url))
        if self.error:
            raise self.error
        return self.site_text


class FailingStore:
    """Store double that fails every upsert after ``completed`` points."""

    def __init__(self, completed):
        self.completed = completed

    def upsert(self, points):
        raise StoreWriteError("Vector store upsert failed", "connection reset", completed=self.completed)


def _source(content=ARTICLE, type_=SourceType.TEXT, source_id="src-1"):
    return Source(id=source_id, type=type_, content=content, name="Article")


@pytest.fixture
def pipeline(embedder, memory_store):
    return IngestionPipeline(
        embedder,
        memory_store,
        chunker=RecursiveTextChunker(chunk_size=200, chunk_overlap=40),
        loader=FakeLoader(),
    )


def test_text_ingest_writes_every_chunk(pipeline, memory_store):
    result = pipeline.ingest(_source())

    assert result.chunk_count > 1
    assert memory_store.count() == result.chunk_count
    points = list(memory_store.scroll_all())
    assert sorted(p.metadata.chunk_index for p in points) == list(range(result.chunk_count))
    assert {p.metadata.chunk_count for p in points} == {result.chunk_count}
    assert {p.metadata.source_id for p in points} == {"src-1"}
    assert {p.metadata.source_type for p in points} == {"text"}
    assert len({p.metadata.created_at for p in points}) == 1
    assert all(len(p.content) <= 200 for p in points)
    assert result.point_ids[0] == chunk_point_id("src-1", 0)


def test_embedding_happens_in_one_batch(pipeline, embedder):
    result = pipeline.ingest(_source())
    assert len(embedder.batch_calls) == 1
    assert len(embedder.batch_calls[0]) == result.chunk_count


def test_reingest_overwrites_in_place(pipeline, memory_store):
    first = pipeline.ingest(_source())
    second = pipeline(_source())

    assert first.point_ids == second.point_ids
    assert memory_store.count() == first.chunk_count


def test_whitespace_text_writes_nothing(pipeline, memory_store, embedder):
    result = pipeline.ingest(_source(content="  \n\t "))

    assert result.chunk_count == 0
    assert result.point_ids == []
    assert embedder.batch_calls == []
    assert memory_store.count() == 0


def test_pdf_without_text_writes_nothing(embedder, memory_store):
    loader = FakeLoader(pdf_text="")
    pipeline = IngestionPipeline(embedder, memory_store, loader=loader)

    result = pipeline.ingest(_source("https://files.example.com/scan.pdf", SourceType.PDF))

    assert loader.calls == [("pdf", "https://files.example.com/scan.pdf")]
    assert result.chunk_count == 0
    assert embedder.batch_calls == []
    assert memory_store.count() == 0


def test_url_and_pdf_sources_use_the_loader(embedder, memory_store):
    loader = FakeLoader(pdf_text="Invoice totals for March.", site_text="Welcome to the docs.")
    pipeline = IngestionPipeline(embedder, memory_store, loader=loader)

    pipeline.ingest(_source("https://files.example.com/a.pdf", SourceType.PDF, "pdf-1"))
    pipeline.ingest(_source("https://docs.example.com/", SourceType.URL, "url-1"))

    assert loader.calls == [("pdf", "https://files.example.com/a.pdf"), ("url", "https://docs.example.com/")]
    by_source = {p.metadata.source_id: p for p in memory_store.scroll_all()}
    assert by_source["pdf-1"].content == "Invoice totals for March."
    assert by_source["pdf-1"].metadata.source_type == "pdf"
    assert by_source["url-1"].metadata.source_type == "url"


def test_fetch_failure_leaves_store_untouched(embedder, memory_store):
    loader = FakeLoader(error=FetchError("Failed to fetch PDF", "404"))
    pipeline = IngestionPipeline(embedder, memory_store, loader=loader)

    with pytest.raises(FetchError):
        pipeline.ingest(_source("https://files.example.com/missing.pdf", SourceType.PDF))
    assert memory_store.count() == 0


def test_unsupported_type(pipeline):
    with pytest.raises(UnsupportedSourceTypeError):
        pipeline.extract_text(_source(type_="docx"))


def test_partial_write_is_reported(embedder):
    pipeline = IngestionPipeline(
        embedder,
        FailingStore(completed=2),
        chunker=RecursiveTextChunker(chunk_size=200, chunk_overlap=40),
    )

    with pytest.raises(PartialIndexError) as excinfo:
        pipeline.ingest(_source())

    err = excinfo.value
    assert err.source_id == "src-1"
    assert err.written == 2
    assert err.expected > 2
    assert err.to_dict()["writtenCount"] == 2


def test_failed_write_before_any_point_is_a_store_error(embedder):
    pipeline = IngestionPipeline(embedder, FailingStore(completed=0))
    with pytest.raises(StoreWriteError):
        pipeline.ingest(_source("short text"))
