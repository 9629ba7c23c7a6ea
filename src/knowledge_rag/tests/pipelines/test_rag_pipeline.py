import pytest

from knowledge_rag.common.errors import EmptyQueryError
from knowledge_rag.common.schemas import RetrievedDocument, Source, SourceType
from knowledge_rag.common.tokenisation import HeuristicTokenCounter
from knowledge_rag.generation.prompt_builder import create_prompt_builder
from knowledge_rag.pipelines.ingestion_pipeline import IngestionPipeline
from knowledge_rag.pipelines.rag_pipeline import FALLBACK_ANSWER, NO_RESULTS_ANSWER, RAGPipeline


class FixedHitsStore:
    """Store double returning the same hits for every search."""

    def __init__(self, hits):
        self.hits = hits
        self.searches = []

    def similarity_search(self, query_vector, k):
        self.searches.append(k)
        return self.hits[:k]


def _hits(n=5):
    return [
        RetrievedDocument(
            id=f"p{i}",
            content=f"Chunk {i} " + "lorem " * 60,
            metadata={"sourceName": f"Doc {i}", "sourceType": "text", "chunkIndex": i, "sourceId": f"s{i}"},
            similarity_score=1.0 - i / 10,
            rank=i,
        )
        for i in range(n)
    ]


def _pipeline(embedder, store, reranker, llm, **kwargs):
    return RAGPipeline(embedder, store, reranker, llm, create_prompt_builder(), **kwargs)


def test_empty_collection_skips_generation(embedder, memory_store, make_reranker, llm):
    reranker = make_reranker()
    result = _pipeline(embedder, memory_store, reranker, llm).run("What is Qdrant?")

    assert result.answer == NO_RESULTS_ANSWER
    assert result.sources == []
    assert result.to_dict()["totalSources"] == 0
    assert llm.calls == []
    assert reranker.calls == []


def test_sources_follow_rerank_order(embedder, make_reranker, llm):
    store = FixedHitsStore(_hits())
    reranker = make_reranker([0.9, 0.2, 0.7, 0.95, 0.4])

    result = _pipeline(embedder, store, reranker, llm).run("lorem?")

    assert [s.relevance_score for s in result.sources] == [0.95, 0.9, 0.7, 0.4, 0.2]
    assert [s.metadata["chunkIndex"] for s in result.sources] == [3, 0, 2, 4, 1]
    assert [s.index for s in result.sources] == [1, 2, 3, 4, 5]
    assert store.searches == [5]
    assert reranker.calls[0][2] == 5

    prompt = llm.calls[0]["prompt"]
    assert prompt.index("[1] Chunk 3") < prompt.index("[2] Chunk 0") < prompt.index("[5] Chunk 1")


def test_generation_parameters_and_system_prompt(embedder, make_reranker, llm):
    result = _pipeline(embedder, FixedHitsStore(_hits(2)), make_reranker([0.5, 0.6]), llm).run("q")

    call = llm.calls[0]
    assert "Use only the information from the context" in call["system"]
    assert call["kwargs"] == {"temperature": 0.1, "max_tokens": 4096}
    assert result.answer == "A grounded answer."


def test_attribution_preview_and_metadata(embedder, make_reranker, llm):
    result = _pipeline(embedder, FixedHitsStore(_hits(1)), make_reranker([0.8]), llm).run("q")

    source = result.sources[0].to_dict()
    assert source["preview"].endswith("...")
    assert len(source["preview"]) == 203
    assert source["metadata"] == {"sourceName": "Doc 0", "sourceType": "text", "chunkIndex": 0}


def test_empty_generation_falls_back(embedder, make_reranker, llm):
    llm.reply = None
    result = _pipeline(embedder, FixedHitsStore(_hits(2)), make_reranker([0.5, 0.6]), llm).run("q")
    assert result.answer == FALLBACK_ANSWER
    assert len(result.sources) == 2


@pytest.mark.parametrize("query", ["", "   ", None])
def test_empty_query_is_rejected(embedder, memory_store, make_reranker, llm, query):
    with pytest.raises(EmptyQueryError):
        _pipeline(embedder, memory_store, make_reranker(), llm).run(query)
    assert embedder.query_calls == []


def test_context_budget_keeps_best_documents(embedder, make_reranker, llm):
    counter = HeuristicTokenCounter()
    per_doc = counter.count("[1] " + _hits(1)[0].content)
    pipeline = _pipeline(
        embedder,
        FixedHitsStore(_hits()),
        make_reranker([0.1, 0.2, 0.3, 0.4, 0.5]),
        llm,
        token_counter=counter,
        max_context_tokens=per_doc * 2 + 1,
    )

    result = pipeline.run("q")

    assert [s.metadata["chunkIndex"] for s in result.sources] == [4, 3]
    assert "[3]" not in llm.calls[0]["prompt"]


def test_context_budget_always_keeps_one_document(embedder, make_reranker, llm):
    pipeline = _pipeline(
        embedder,
        FixedHitsStore(_hits(3)),
        make_reranker([0.3, 0.2, 0.1]),
        llm,
        token_counter=HeuristicTokenCounter(),
        max_context_tokens=1,
    )
    assert len(pipeline.run("q").sources) == 1


def test_budget_requires_counter(embedder, memory_store, make_reranker, llm):
    with pytest.raises(ValueError):
        _pipeline(embedder, memory_store, make_reranker(), llm, max_context_tokens=100)


def test_ingest_then_query_round_trip(embedder, memory_store, make_reranker, llm):
    ingest = IngestionPipeline(embedder, memory_store)
    geo = ingest(Source(id="geo", type=SourceType.TEXT, content="Paris is the capital of France.", name="Geography"))
    ingest(Source(id="bio", type=SourceType.TEXT, content="Mitochondria produce cellular energy.", name="Biology"))

    result = _pipeline(embedder, memory_store, make_reranker([0.9, 0.1]), llm, top_k=2).run(
        "What is the capital of France?"
    )

    assert result.sources[0].metadata["sourceName"] == "Geography"
    assert result.sources[0].metadata["chunkIndex"] == 0
    assert 0 <= result.sources[0].metadata["chunkIndex"] < geo.chunk_count
    assert result.sources[0].relevance_score == 0.9
    assert "Paris is the capital of France." in llm.calls[0]["prompt"]
    assert result.query == "What is the capital of France?"
