"""knowledge_rag.retrieval.embedder

Embedding interfaces and factories for the retrieval layer.

This module defines a small provider-agnostic interface for producing vector
embeddings from text, used both when indexing chunks and when embedding a
query, along with a concrete implementation backed by LlamaIndex's
OpenAI-compatible embedding wrapper. The default endpoint is Cohere's
OpenAI-compatibility API.

No caching is performed here; callers own caching policy, if any.

Classes
-------
BaseEmbedder
    Abstract interface specifying the API used by the pipelines.
OpenAILikeEmbedder
    Embedder backed by an OpenAI-compatible HTTP API via LlamaIndex.

Functions
---------
create_embedder
    Create an embedder implementation from a configuration mapping.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Sequence
import logging

from llama_index.core.base.embeddings.base import BaseEmbedding as LlamaIndexBaseEmbedding

from knowledge_rag.common.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.cohere.ai/compatibility/v1"
DEFAULT_MODEL_NAME = "embed-v4.0"


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return bool(value)


class BaseEmbedder(ABC):
    """Abstract interface for text embedding.

    Concrete implementations wrap a provider-specific client. Implementations
    must preserve input order and length and raise
    :class:`~knowledge_rag.common.errors.EmbeddingProviderError` on transport,
    quota or timeout failures.
    """

    @abstractmethod
    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed several texts.

        Parameters
        ----------
        texts : Sequence[str]
            Texts to embed.

        Returns
        -------
        list[list[float]]
            One vector per input text, in input order.
        """

    @abstractmethod
    def embed_one(self, text: str) -> list[float]:
        """Embed a single query string."""


class OpenAILikeEmbedder(BaseEmbedder):
    """Embedder backed by an OpenAI-compatible embedding API via LlamaIndex.

    This implementation wraps
    :class:`llama_index.embeddings.openai_like.OpenAILikeEmbedding`.

    Parameters
    ----------
    model_name : str
        Model identifier for the embedding endpoint.
    api_base : str
        Base URL for the OpenAI-compatible embedding API endpoint.
    api_key : str or None, optional
        Provider API key.
    model_kwargs : dict[str, Any] or None, optional
        Additional keyword arguments forwarded with every request
        (e.g., ``{"encoding_format": "float"}``).
    timeout : float, optional
        Per-request timeout in seconds. Defaults to ``60.0``.
    max_retries : int, optional
        Client-level retries. Defaults to ``0``; retry policy belongs to callers.
    embed_batch_size : int, optional
        Maximum number of texts sent per provider request. Defaults to ``96``.
    """

    def __init__(
            self,
            model_name: str,
            *,
            api_base: str,
            api_key: str = None,
            model_kwargs: dict[str, Any] = None,
            timeout: float = 60.0,
            max_retries: int = 0,
            embed_batch_size: int = 96,
            num_workers: Optional[int] = None,
            reuse_client: bool = True,
            embedder: LlamaIndexBaseEmbedding = None,
        ):
        self.model_name = model_name
        if embedder is not None:
            self.embedder = embedder
            return

        from llama_index.embeddings.openai_like import OpenAILikeEmbedding

        self.embedder = OpenAILikeEmbedding(
            model_name=model_name,
            api_base=api_base,
            api_key=api_key,
            additional_kwargs=model_kwargs or {},
            timeout=timeout,
            max_retries=max_retries,
            embed_batch_size=embed_batch_size,
            num_workers=num_workers,
            reuse_client=reuse_client,
        )

    @classmethod
    def from_config_dict(cls, config: Dict[str, Any]) -> "OpenAILikeEmbedder":
        """Create an OpenAI-compatible embedder from a configuration mapping.

        Parameters
        ----------
        config : dict[str, Any]
            Configuration mapping. ``model_name`` and ``api_base`` default to
            Cohere's ``embed-v4.0`` on its OpenAI-compatible endpoint.

        Returns
        -------
        OpenAILikeEmbedder
            An initialised embedder instance.
        """
        return cls(
            model_name=config.get("model_name", DEFAULT_MODEL_NAME),
            api_base=config.get("api_base", DEFAULT_API_BASE),
            api_key=config.get("api_key") or None,
            model_kwargs=config.get("model_kwargs", {"encoding_format": "float"}),
            timeout=float(config.get("timeout", config.get("request_timeout", 60.0))),
            max_retries=int(config.get("max_retries", 0)),
            embed_batch_size=int(config.get("embed_batch_size", 96)),
            num_workers=config.get("num_workers"),
            reuse_client=_as_bool(config.get("reuse_client"), True),
        )

    def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        texts = list(texts)
        if not texts:
            return []
        try:
            vectors = self.embedder.get_text_embedding_batch(texts)
        except Exception as exc:
            raise EmbeddingProviderError(
                "Embedding request failed",
                f"{type(exc).__name__}: {exc}",
            ) from exc

        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                "Embedding response has the wrong length",
                f"expected {len(texts)} vectors, got {len(vectors)}",
            )
        logger.debug("Embedded %d texts with %s", len(texts), self.model_name)
        return [list(v) for v in vectors]

    def embed_one(self, text: str) -> list[float]:
        try:
            return list(self.embedder.get_query_embedding(text))
        except Exception as exc:
            raise EmbeddingProviderError(
                "Query embedding request failed",
                f"{type(exc).__name__}: {exc}",
            ) from exc


# ----------------- Factory helpers -----------------

def _get_embedder_kind(cfg: Mapping[str, Any]) -> str:
    """Return the first non-empty ``kind``/``type``/``provider`` discriminator, or ``""``."""
    for key in ("kind", "type", "provider", "backend", "impl"):
        val = cfg.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _normalize_embedder_kind(kind: str) -> str:
    """Normalise a kind string to a registry key (e.g., ``"OpenAILike"`` -> ``"openai_like"``)."""
    k = kind.strip()
    if not k:
        return ""
    out: list[str] = []
    prev = ""
    for ch in k:
        if prev and prev.islower() and ch.isupper():
            out.append("_")
        out.append(ch)
        prev = ch
    k2 = "".join(out).replace("-", "_").replace(" ", "_")
    while "__" in k2:
        k2 = k2.replace("__", "_")
    k2 = k2.lower()
    for alias in ("openailike", "open_ailike", "open_ai_like"):
        k2 = k2.replace(alias, "openai_like")
    return k2


def create_embedder(config: Mapping[str, Any]) -> BaseEmbedder:
    """Create an embedder implementation from a configuration mapping.

    The implementation is selected by a discriminator field (one of ``kind``,
    ``type``, ``provider``, ``backend``, ``impl``). ``openai_like`` and
    ``cohere`` both select :class:`OpenAILikeEmbedder`; a missing
    discriminator defaults to it as well.

    Parameters
    ----------
    config : Mapping[str, Any]
        Embedder configuration section.

    Returns
    -------
    BaseEmbedder
        Initialised embedder.

    Raises
    ------
    TypeError
        If ``config`` is not a mapping.
    ValueError
        If the discriminator names an unsupported embedder.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"create_embedder expected a mapping/dict, got {type(config)}")

    kind = _normalize_embedder_kind(_get_embedder_kind(config)) or "openai_like"
    if kind in {"openai_like", "openai", "cohere"}:
        return OpenAILikeEmbedder.from_config_dict(dict(config))

    raise ValueError(f"Unsupported embedder kind {kind!r}. Supported embedders: ['openai_like', 'cohere'].")


__all__ = [
    "BaseEmbedder",
    "OpenAILikeEmbedder",
    "create_embedder",
]
