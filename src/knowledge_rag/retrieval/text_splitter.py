"""knowledge_rag.retrieval.text_splitter

Text chunking utilities for the ingestion pipeline.

Extracted source text is split into overlapping, bounded windows before
embedding. Boundaries prefer semantic breakpoints: separators are tried in
order of decreasing granularity (paragraph, line, sentence, word) before
falling back to a hard character cut. The recursive splitting itself is
delegated to LangChain's :class:`RecursiveCharacterTextSplitter`.

Classes
-------
RecursiveTextChunker
    Chunker producing a lazy, restartable sequence of chunk strings.

Functions
---------
create_text_chunker
    Create a chunker from a ``chunking`` configuration mapping.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Sequence

from langchain_text_splitters import RecursiveCharacterTextSplitter

from knowledge_rag.common.errors import EmptyInputError

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_SEPARATORS = ("\n\n", "\n", ". ", " ", "")


class RecursiveTextChunker:
    """Split text into overlapping windows of at most ``chunk_size`` characters.

    Parameters
    ----------
    chunk_size : int, optional
        Maximum chunk length in characters. Defaults to ``1000``.
    chunk_overlap : int, optional
        Maximum overlap between consecutive chunks. Defaults to ``200``.
    separators : Sequence[str], optional
        Separators tried in order, most to least granular. The empty string
        is the hard-cut fallback.

    Raises
    ------
    ValueError
        If ``chunk_size`` is not positive or ``chunk_overlap`` is not in
        ``[0, chunk_size)``.
    """

    def __init__(
            self,
            chunk_size: int = DEFAULT_CHUNK_SIZE,
            chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
            separators: Sequence[str] = DEFAULT_SEPARATORS,
        ):
        chunk_size = int(chunk_size)
        chunk_overlap = int(chunk_overlap)
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} for chunk_size {chunk_size}."
            )

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators)
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
            separators=self.separators,
            keep_separator="end",
            strip_whitespace=True,
        )

    def split(self, text: str) -> Iterator[str]:
        """Return a lazy iterator over the chunks of ``text``.

        Each call returns a fresh iterator, so the sequence can be restarted
        by calling :meth:`split` again.

        Parameters
        ----------
        text : str
            Normalised document text.

        Returns
        -------
        Iterator[str]
            Non-empty chunks in document order.

        Raises
        ------
        EmptyInputError
            If ``text`` is empty or whitespace-only. Raised eagerly, before
            iteration starts.
        """
        if not text or not text.strip():
            raise EmptyInputError("Nothing to index", "input text is empty or whitespace-only")
        return self._iter_chunks(text)

    def split_text(self, text: str) -> list[str]:
        return list(self.split(text))

    def _iter_chunks(self, text: str) -> Iterator[str]:
        for chunk in self._splitter.split_text(text):
            if not chunk.strip():
                continue
            # The splitter may emit a single oversize piece when no separator applies.
            if len(chunk) > self.chunk_size:
                for start in range(0, len(chunk), self.chunk_size - self.chunk_overlap):
                    piece = chunk[start:start + self.chunk_size]
                    if piece.strip():
                        yield piece
                    if start + self.chunk_size >= len(chunk):
                        break
                continue
            yield chunk


def create_text_chunker(config: Mapping[str, Any] | None = None) -> RecursiveTextChunker:
    """Create a chunker from a ``chunking`` configuration section.

    Parameters
    ----------
    config : Mapping[str, Any] or None, optional
        Mapping with optional ``chunk_size``, ``chunk_overlap`` and
        ``separators`` keys. Missing keys fall back to 1000/200 and the
        default separator ladder.

    Returns
    -------
    RecursiveTextChunker
        Configured chunker.
    """
    cfg = dict(config or {})
    separators = cfg.get("separators") or DEFAULT_SEPARATORS
    return RecursiveTextChunker(
        chunk_size=int(cfg.get("chunk_size", DEFAULT_CHUNK_SIZE)),
        chunk_overlap=int(cfg.get("chunk_overlap", DEFAULT_CHUNK_OVERLAP)),
        separators=separators,
    )


__all__ = [
    "RecursiveTextChunker",
    "create_text_chunker",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_CHUNK_OVERLAP",
]
