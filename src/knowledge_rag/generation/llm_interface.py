"""knowledge_rag.generation.llm_interface

Unified interface and factory for large language model (LLM) backends.

This module defines a small, provider-agnostic abstraction for answer
generation and a concrete implementation backed by LangChain's
``ChatOpenAI`` wrapper, pointed at any OpenAI-compatible chat completions
endpoint (GitHub Models by default). A factory function is provided to
instantiate the appropriate LLM implementation from a configuration mapping.

Credentials are drawn per request from a token pool so that load is spread
over several keys.

Classes
-------
BaseLLM
    Abstract interface specifying the API used by the RAG pipeline.
OpenAIChatLikeLLM
    Chat completions using an OpenAI-compatible HTTP API via LangChain.

Functions
---------
parse_token_pool
    Normalise a token pool given as a list or a comma-separated string.
select_token
    Pick one token from a pool.
create_llm
    Construct an LLM implementation from a configuration mapping.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence, Union
import logging
import random
import threading

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from knowledge_rag.common.errors import GenerationProviderError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://models.github.ai/inference"
DEFAULT_MODEL_NAME = "openai/gpt-4o"

TokenPool = Union[str, Sequence[str], None]

_RNG = random.Random()


def parse_token_pool(pool: TokenPool) -> list[str]:
    """Normalise a token pool to a list of non-empty tokens.

    Examples
    --------
    >>> parse_token_pool("a, b,,c ")
    ['a', 'b', 'c']
    """
    if pool is None:
        return []
    if isinstance(pool, str):
        items = pool.split(",")
    else:
        items = list(pool)
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def select_token(pool: TokenPool, rng: Optional[random.Random] = None) -> str:
    """Return one token drawn uniformly from ``pool``.

    Parameters
    ----------
    pool : str or Sequence[str]
        Tokens, as a list or a comma-separated string.
    rng : random.Random, optional
        Source of randomness. Defaults to a module-level generator.

    Raises
    ------
    ValueError
        If the pool contains no tokens.
    """
    tokens = parse_token_pool(pool)
    if not tokens:
        raise ValueError("Token pool is empty; set at least one API token.")
    return (rng or _RNG).choice(tokens)


class BaseLLM(ABC):
    """Abstract interface for LLM text generation.

    Concrete implementations wrap provider-specific clients and expose a
    small, consistent API used by the RAG pipeline.
    """

    @classmethod
    @abstractmethod
    def from_config_dict(cls, config: dict):
        """Create an LLM instance from a configuration mapping.

        Parameters
        ----------
        config : dict
            Configuration parameters for the concrete implementation.

        Returns
        -------
        BaseLLM
            An initialised LLM implementation.

        Raises
        ------
        ValueError
            If required configuration keys are missing or invalid.
        """
        pass

    @abstractmethod
    def generate(
            self,
            prompt: str,
            *,
            system: Optional[str] = None,
            **kwargs
        ) -> Optional[str]:
        """Generate a completion for a single prompt.

        Parameters
        ----------
        prompt : str
            User prompt text.
        system : str, optional
            System instructions sent before the prompt.
        **kwargs
            Sampling parameters forwarded to the model (e.g., ``temperature``,
            ``max_tokens``).

        Returns
        -------
        str or None
            The generated text, or ``None`` if the provider returned no content.

        Raises
        ------
        GenerationProviderError
            On transport, authentication, quota or timeout failures.
        """
        pass


class OpenAIChatLikeLLM(BaseLLM):
    """LLM interface using an OpenAI-compatible Chat Completions API via LangChain.

    This implementation wraps :class:`langchain_openai.ChatOpenAI`. One client
    is created lazily per token in the pool and reused afterwards.

    Parameters
    ----------
    model_name : str
        Model identifier (e.g., ``"openai/gpt-4o"``).
    api_base : str
        Base URL for the OpenAI-compatible API endpoint.
    api_keys : str or Sequence[str]
        Token pool, as a list or a comma-separated string.
    timeout : float, optional
        Per-request timeout in seconds. Defaults to ``60``.
    max_retries : int, optional
        Client-level retries. Defaults to ``0``.
    rng : random.Random, optional
        Source of randomness for token selection.
    **model_kwargs : Any
        Additional keyword arguments forwarded to ``ChatOpenAI``.
    """

    def __init__(
        self,
        model_name: str,
        api_base: str,
        api_keys: TokenPool,
        *,
        timeout: float = 60.0,
        max_retries: int = 0,
        rng: Optional[random.Random] = None,
        **model_kwargs: Any,
    ):
        self.model_name = model_name
        self.api_base = api_base
        self.tokens = parse_token_pool(api_keys)
        if not self.tokens:
            raise ValueError("OpenAIChatLikeLLM requires at least one API token.")
        self.timeout = float(timeout)
        self.max_retries = int(max_retries)
        self.rng = rng
        self.model_kwargs = dict(model_kwargs)
        self._clients: dict[str, ChatOpenAI] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config_dict(cls, config: dict) -> "OpenAIChatLikeLLM":
        """Create an OpenAI-compatible chat LLM from a mapping.

        ``api_keys`` (or ``api_key``) holds the token pool; ``model_name`` and
        ``api_base`` default to ``openai/gpt-4o`` on GitHub Models.
        """
        api_keys = config.get("api_keys", config.get("api_key"))
        return cls(
            model_name=config.get("model_name", DEFAULT_MODEL_NAME),
            api_base=config.get("api_base", DEFAULT_API_BASE),
            api_keys=api_keys,
            timeout=float(config.get("timeout", 60.0)),
            max_retries=int(config.get("max_retries", 0)),
            **config.get("model_kwargs", {}),
        )

    def get_llm(self, token: Optional[str] = None) -> ChatOpenAI:
        """Return the LangChain chat model bound to ``token`` (a random one if omitted)."""
        token = token or select_token(self.tokens, self.rng)
        with self._lock:
            client = self._clients.get(token)
            if client is None:
                client = ChatOpenAI(
                    model=self.model_name,
                    base_url=self.api_base,
                    api_key=token,
                    timeout=self.timeout,
                    max_retries=self.max_retries,
                    **self.model_kwargs,
                )
                self._clients[token] = client
        return client

    def generate(
            self,
            prompt: str,
            *,
            system: Optional[str] = None,
            **kwargs
        ) -> Optional[str]:
        if not isinstance(prompt, str):
            prompt = prompt.to_string() if hasattr(prompt, "to_string") else str(prompt)

        messages = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        llm = self.get_llm()
        try:
            response = llm.invoke(messages, **kwargs)
        except Exception as exc:
            raise GenerationProviderError(
                "Generation request failed",
                f"{type(exc).__name__}: {exc}",
            ) from exc

        content = response.content if hasattr(response, "content") else response
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        if not content or not str(content).strip():
            logger.info("Model %s returned no content", self.model_name)
            return None
        return str(content)


# ----------------- Factory helpers -----------------

def _get_llm_kind(cfg: Mapping[str, Any]) -> str:
    """Extract the LLM kind/type/provider discriminator from a config mapping.

    Returns
    -------
    str
        The first non-empty discriminator value found, or an empty string if none
        is present.
    """
    for key in ("kind", "type", "provider", "backend", "impl"):
        val = cfg.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


def _normalize_llm_kind(kind: str) -> str:
    """Normalise an LLM kind/type string to a stable registry key.

    Notes
    -----
    The normalisation process converts CamelCase to snake_case, replaces
    whitespace and hyphens with underscores, collapses repeated underscores
    and applies a small set of provider aliases.
    """
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

    k2 = "".join(out)
    k2 = k2.replace("-", "_").replace(" ", "_")

    while "__" in k2:
        k2 = k2.replace("__", "_")

    k2 = k2.lower()

    for alias in ("chatopenai", "chat_openai", "openai_chatlike", "open_ai_chatlike",
                  "openai_chat_like", "open_aichat_like", "open_ai_chat_like"):
        k2 = k2.replace(alias, "openai_chat")

    return k2


def create_llm(config: Mapping[str, Any]) -> BaseLLM:
    """Create an LLM implementation from a configuration mapping.

    This is the preferred entry point for wiring LLMs (used by the application
    container). The implementation is selected by a discriminator field (one
    of ``kind``, ``type``, ``provider``, ``backend`` or ``impl``); a missing
    discriminator selects :class:`OpenAIChatLikeLLM`.

    Raises
    ------
    TypeError
        If ``config`` is not a mapping.
    ValueError
        If the discriminator selects an unsupported implementation.
    """
    if not isinstance(config, Mapping):
        raise TypeError(f"create_llm expected a mapping/dict, got {type(config)}")

    kind_raw = _get_llm_kind(config)
    kind = _normalize_llm_kind(kind_raw) or "openai_chat"

    registry: dict[str, type[BaseLLM]] = {
        "openai_chat": OpenAIChatLikeLLM,
        "openai": OpenAIChatLikeLLM,
        "github_models": OpenAIChatLikeLLM,
    }

    cls = registry.get(kind)
    if cls is None:
        raise ValueError(
            f"Unknown LLM kind '{kind_raw}' (normalized to '{kind}'). Supported kinds: {sorted(registry.keys())}."
        )

    return cls.from_config_dict(dict(config))


__all__ = [
    "BaseLLM",
    "OpenAIChatLikeLLM",
    "parse_token_pool",
    "select_token",
    "create_llm",
]
