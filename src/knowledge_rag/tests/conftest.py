import uuid
import zlib

import pytest

from knowledge_rag.generation.llm_interface import BaseLLM
from knowledge_rag.retrieval.embedder import BaseEmbedder
from knowledge_rag.retrieval.reranker import BaseReranker, RerankResult, normalize_results
from knowledge_rag.retrieval.vector_store import QdrantVectorStore


class HashingEmbedder(BaseEmbedder):
    """
    Deterministic bag-of-words embedder for tests.

    Each lower-cased word increments one of ``dim`` buckets chosen by CRC32,
    so texts sharing words have a high cosine similarity.
    """

    def __init__(self, dim: int = 32):
        self.dim = dim
        self.batch_calls = []
        self.query_calls = []

    def _vector(self, text: str):
        vec = [0.01] * self.dim
        for word in text.lower().split():
            word = word.strip(".,;:!?()[]\"'")
            if word:
                vec[zlib.crc32(word.encode("utf-8")) % self.dim] += 1.0
        return vec

    def embed_batch(self, texts):
        texts = list(texts)
        self.batch_calls.append(texts)
        return [self._vector(t) for t in texts]

    def embed_one(self, text):
        self.query_calls.append(text)
        return self._vector(text)


@pytest.fixture
def embedder():
    return HashingEmbedder()


@pytest.fixture
def memory_store():
    """A Qdrant store running in-process, isolated per test."""
    return QdrantVectorStore(location=":memory:", collection_name=f"test-{uuid.uuid4().hex[:8]}")


def build_pdf(page_texts):
    """
    Build a minimal, valid PDF with one Helvetica text line per page.

    Object layout: 1 catalog, 2 page tree, 3 font, then a (page, content)
    pair per page. Cross-reference offsets are computed exactly.
    """
    n = len(page_texts)
    page_ids = [4 + 2 * i for i in range(n)]
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{' '.join(f'{pid} 0 R' for pid in page_ids)}] /Count {n} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for pid, text in zip(page_ids, page_texts):
        content = f"BT /F1 12 Tf 20 100 Td ({text}) Tj ET".encode()
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 300 200] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >>"
            ).encode()
        )
        objects.append(b"<< /Length %d >>\nstream\n" % len(content) + content + b"\nendstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at)
    return bytes(out)


@pytest.fixture
def make_pdf():
    return build_pdf


class RecordingLLM(BaseLLM):
    """LLM double returning a fixed reply and recording every prompt."""

    def __init__(self, reply="A grounded answer."):
        self.reply = reply
        self.calls = []

    @classmethod
    def from_config_dict(cls, config):
        return cls(config.get("reply", "A grounded answer."))

    def generate(self, prompt, *, system=None, **kwargs):
        self.calls.append({"prompt": prompt, "system": system, "kwargs": kwargs})
        return self.reply


class ScriptedReranker(BaseReranker):
    """
    Reranker double assigning ``scores[i]`` to the i-th candidate.

    Candidates beyond the script score 0.
    """

    def __init__(self, scores=()):
        self.scores = list(scores)
        self.calls = []

    def rerank(self, query, documents, top_n=5):
        self.calls.append((query, list(documents), top_n))
        results = [
            RerankResult(i, self.scores[i] if i < len(self.scores) else 0.0)
            for i in range(len(documents))
        ]
        return normalize_results(results, top_n)


@pytest.fixture
def llm():
    return RecordingLLM()


@pytest.fixture
def make_reranker():
    return ScriptedReranker
