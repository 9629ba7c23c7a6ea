"""knowledge_rag.common.tokenisation

Token counting utilities.

The retrieval orchestrator bounds the context it sends to the generation
model by *token count*. This module keeps that budgeting independent of any
particular model or tokenizer library: orchestration code depends only on the
minimal :class:`TokenCounter` interface and the concrete implementation is
selected via configuration.

Classes
-------
TokenCounter
    Minimal protocol defining the token-counting interface.
HeuristicTokenCounter
    Lightweight, dependency-free approximate token counter.
TiktokenTokenCounter
    Exact token counter backed by the ``tiktoken`` library.

Functions
---------
create_token_counter
    Build a token counter from a ``tokenization`` configuration mapping.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol


class TokenCounter(Protocol):
    """A minimal interface for token-based sizing."""

    def count(self, text: str) -> int:
        """Return the number of tokens in ``text``."""

    def head(self, text: str, n_tokens: int) -> str:
        """Return the first ``n_tokens`` tokens of ``text`` as text."""


@dataclass(frozen=True)
class HeuristicTokenCounter:
    """Dependency-free, approximate token counter.

    Token counts are estimated with a fixed characters-per-token ratio, which
    is close enough for context budgeting.

    Attributes
    ----------
    chars_per_token : int
        Approximate number of characters per token. Defaults to ``4``.
    """

    chars_per_token: int = 4

    def count(self, text: str) -> int:
        if not text:
            return 0
        cpt = max(1, int(self.chars_per_token))
        return -(-len(text) // cpt)

    def head(self, text: str, n_tokens: int) -> str:
        if not text or n_tokens <= 0:
            return ""
        cpt = max(1, int(self.chars_per_token))
        return text[: n_tokens * cpt]


@dataclass(frozen=True)
class TiktokenTokenCounter:
    """Token counter backed by the ``tiktoken`` library.

    Attributes
    ----------
    encoding_name : str
        Name of the ``tiktoken`` encoding.
    _enc : Any
        Internal ``tiktoken`` encoding object.
    """

    encoding_name: str
    _enc: Any

    @classmethod
    def from_encoding_name(cls, encoding_name: str) -> "TiktokenTokenCounter":
        import tiktoken

        enc = tiktoken.get_encoding(encoding_name)
        return cls(encoding_name=encoding_name, _enc=enc)

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self._enc.encode(text))

    def head(self, text: str, n_tokens: int) -> str:
        if not text or n_tokens <= 0:
            return ""
        toks = self._enc.encode(text)
        return self._enc.decode(toks[:n_tokens])


def create_token_counter(config: Mapping[str, Any] | None) -> TokenCounter:
    """Create a token counter from a ``tokenization`` configuration section.

    Parameters
    ----------
    config : Mapping[str, Any] or None
        Mapping with a ``type`` key (``"heuristic"`` or ``"tiktoken"``) and
        type-specific options (``chars_per_token`` or ``encoding``). ``None``
        or an empty mapping selects the heuristic counter.

    Returns
    -------
    TokenCounter
        Configured token counter.

    Raises
    ------
    ValueError
        If ``type`` is not recognised.
    """
    cfg = dict(config or {})
    kind = str(cfg.get("type") or "heuristic").lower().replace("-", "_")

    if kind in {"heuristic", "char", "chars"}:
        try:
            cpt = int(cfg.get("chars_per_token", 4))
        except (TypeError, ValueError):
            cpt = 4
        return HeuristicTokenCounter(chars_per_token=cpt)

    if kind in {"tiktoken", "openai", "openai_like"}:
        return TiktokenTokenCounter.from_encoding_name(str(cfg.get("encoding") or "cl100k_base"))

    raise ValueError(f"Unknown tokenization type: {kind!r}")


__all__ = [
    "TokenCounter",
    "HeuristicTokenCounter",
    "TiktokenTokenCounter",
    "create_token_counter",
]
