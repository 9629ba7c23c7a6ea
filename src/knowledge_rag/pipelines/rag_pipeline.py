"""knowledge_rag.pipelines.rag_pipeline

End-to-end Retrieval-Augmented Generation (RAG) pipeline orchestration.

This module defines the :class:`RAGPipeline`, which coordinates query-time
embedding, similarity search, reranking, prompt construction, LLM invocation
and source attribution.

Classes
-------
RAGPipeline
    Orchestrates retrieval → rerank → prompt building → generation.
"""

from dataclasses import replace
import logging
from typing import Optional

from knowledge_rag.common.errors import EmptyQueryError
from knowledge_rag.common.schemas import AnswerResult, RetrievedDocument, SourceAttribution
from knowledge_rag.common.tokenisation import TokenCounter
from knowledge_rag.generation.llm_interface import BaseLLM
from knowledge_rag.generation.prompt_builder import ANSWER_PROMPT, PromptBuilder
from knowledge_rag.retrieval.embedder import BaseEmbedder
from knowledge_rag.retrieval.reranker import BaseReranker
from knowledge_rag.retrieval.vector_store import BaseVectorStore

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = "I couldn't find any relevant information to answer your question."
FALLBACK_ANSWER = "Sorry, I couldn't generate a response."


class RAGPipeline:
    """Retrieval-Augmented Generation (RAG) orchestrator.

    This class wires together:
    - an embedder and a vector store to fetch the nearest chunks
    - a reranker to reorder them by relevance to the query
    - a prompt builder and an LLM to generate the answer

    The pipeline is stateless beyond its configured components, making it
    safe to reuse across requests.

    Parameters
    ----------
    embedder : BaseEmbedder
        Embeds the query.
    vector_store : BaseVectorStore
        Collection searched for candidate chunks.
    reranker : BaseReranker
        Second-stage relevance scorer.
    llm : BaseLLM
        Language model interface used for generation.
    prompt_builder : PromptBuilder
        Registry holding the ``answer`` template.
    token_counter : TokenCounter, optional
        Measures context size when ``max_context_tokens`` is set.
    top_k : int, optional
        Number of similarity hits fetched. Defaults to ``5``.
    rerank_top_n : int, optional
        Number of reranked documents kept. Defaults to ``5``.
    temperature : float, optional
        Sampling temperature. Defaults to ``0.1``.
    max_tokens : int, optional
        Generation length limit. Defaults to ``4096``.
    max_context_tokens : int, optional
        Context budget. ``None`` disables budgeting.
    preview_chars : int, optional
        Length of the content preview in each source. Defaults to ``200``.
    """

    def __init__(self,
                 embedder: BaseEmbedder,
                 vector_store: BaseVectorStore,
                 reranker: BaseReranker,
                 llm: BaseLLM,
                 prompt_builder: PromptBuilder,
                 token_counter: Optional[TokenCounter] = None,
                 top_k: int = 5,
                 rerank_top_n: int = 5,
                 temperature: float = 0.1,
                 max_tokens: int = 4096,
                 max_context_tokens: Optional[int] = None,
                 preview_chars: int = 200,
        ):
        if max_context_tokens is not None and token_counter is None:
            raise ValueError("max_context_tokens requires a token_counter.")
        self.embedder = embedder
        self.vector_store = vector_store
        self.reranker = reranker
        self.llm = llm
        self.prompt_builder = prompt_builder
        self.token_counter = token_counter
        self.top_k = int(top_k)
        self.rerank_top_n = int(rerank_top_n)
        self.temperature = float(temperature)
        self.max_tokens = int(max_tokens)
        self.max_context_tokens = max_context_tokens
        self.preview_chars = int(preview_chars)

    def retrieve(self, query: str) -> list[RetrievedDocument]:
        """Return the reranked documents for ``query``, most relevant first."""
        query_vector = self.embedder.embed_one(query)
        hits = self.vector_store.similarity_search(query_vector, self.top_k)
        if not hits:
            return []

        results = self.reranker.rerank_documents(query, hits, top_n=self.rerank_top_n)
        return [replace(hits[r.index], relevance_score=r.relevance_score) for r in results]

    def fit_context(self, documents: list[RetrievedDocument]) -> list[RetrievedDocument]:
        """Drop trailing documents that would overflow the context budget.

        The first document is always kept.
        """
        if self.max_context_tokens is None or not documents:
            return documents

        kept: list[RetrievedDocument] = []
        used = 0
        for i, doc in enumerate(documents, start=1):
            cost = self.token_counter.count(f"[{i}] {doc.content}")
            if kept and used + cost > self.max_context_tokens:
                logger.debug("Context budget reached after %d of %d documents", len(kept), len(documents))
                break
            kept.append(doc)
            used += cost
        return kept

    @staticmethod
    def build_context(documents: list[RetrievedDocument]) -> str:
        return "\n\n".join(f"[{i}] {doc.content}" for i, doc in enumerate(documents, start=1))

    def attribute(self, documents: list[RetrievedDocument]) -> list[SourceAttribution]:
        sources = []
        for i, doc in enumerate(documents, start=1):
            metadata = doc.metadata or {}
            sources.append(
                SourceAttribution(
                    index=i,
                    relevance_score=doc.relevance_score if doc.relevance_score is not None else 0.0,
                    preview=doc.content[:self.preview_chars] + "...",
                    metadata={
                        "sourceName": metadata.get("sourceName"),
                        "sourceType": metadata.get("sourceType"),
                        "chunkIndex": metadata.get("chunkIndex"),
                    },
                )
            )
        return sources

    def run(self, query: str) -> AnswerResult:
        """Answer ``query`` from the indexed sources.

        The execution order is:
        1. Embed the query and fetch the ``top_k`` nearest chunks.
        2. Rerank them and keep the best ``rerank_top_n``.
        3. Build the numbered context and render the prompts.
        4. Generate the answer and attribute it to its sources.

        Returns
        -------
        AnswerResult
            The answer with its sources. When nothing is indexed the answer is
            :data:`NO_RESULTS_ANSWER` with no sources.

        Raises
        ------
        EmptyQueryError
            If ``query`` is empty or whitespace-only.
        """
        if not isinstance(query, str) or not query.strip():
            raise EmptyQueryError("Query is required", "query must be a non-empty string")

        documents = self.retrieve(query)
        if not documents:
            logger.info("No documents retrieved for query")
            return AnswerResult(answer=NO_RESULTS_ANSWER, query=query, sources=[])

        documents = self.fit_context(documents)
        context = self.build_context(documents)

        system_prompt, user_prompt = self.prompt_builder.build_messages(
            ANSWER_PROMPT, context=context, query=query
        )

        answer = self.llm.generate(
            user_prompt,
            system=system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        logger.info("Answered query with %d sources", len(documents))
        return AnswerResult(
            answer=answer or FALLBACK_ANSWER,
            query=query,
            sources=self.attribute(documents),
        )

    def __call__(self, query: str) -> AnswerResult:
        """Execute the pipeline as a callable.

        This is a convenience wrapper around :meth:`run`.
        """
        return self.run(query)


__all__ = ["RAGPipeline", "NO_RESULTS_ANSWER", "FALLBACK_ANSWER"]
