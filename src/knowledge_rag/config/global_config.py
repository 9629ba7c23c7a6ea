"""knowledge_rag.config.global_config

Global configuration loader and accessors.

This module defines a lightweight wrapper around a raw YAML configuration
dictionary, providing validated, cached access to the configuration sections
used across ingestion, deindexing and retrieval.

Environment variables of the form ``${VAR}`` are expanded recursively in all
string values at load time, which is how provider credentials
(``COHERE_API_KEY``, ``GITHUB_TOKEN``, ``QDRANT_API_KEY`` ...) reach the
components without being written to disk.

Classes
-------
GlobalConfig
    Loader and accessor for global project configuration.
"""

import os
import re
import yaml
from pathlib import Path
from functools import cached_property

DEFAULT_CONFIG_ENV = "KNOWLEDGE_RAG_CONFIG"
DEFAULT_CONFIG_PATH = "config/config.yaml"

_UNSET_VAR = re.compile(r"\$\{?\w+\}?")


def _expand_env(obj):
    """Recursively expand environment variables in a nested structure.

    Parameters
    ----------
    obj : Any
        Object to expand. Dictionaries, lists and strings are walked; other
        types are returned unchanged.

    Returns
    -------
    Any
        A structure of the same shape as ``obj`` with ``${VAR}`` patterns
        expanded in all string values. A value consisting solely of an unset
        variable becomes an empty string.
    """
    if isinstance(obj, dict):
        return {k: _expand_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env(v) for v in obj]
    if isinstance(obj, str):
        expanded = os.path.expandvars(obj)
        # A value that is only an unset variable means "not configured".
        return "" if _UNSET_VAR.fullmatch(expanded) else expanded
    return obj


def _optional_section(raw: dict, name: str) -> dict:
    section = raw.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise TypeError(f"'{name}' must be a mapping, got {type(section)}.")
    return section


def _required_section(raw: dict, name: str) -> dict:
    if raw.get(name) is None:
        raise KeyError(f"Missing '{name}' in configuration.")
    return _optional_section(raw, name)


class GlobalConfig:
    """Loader and accessor for global project configuration.

    Parameters
    ----------
    raw : dict
        Raw configuration data as loaded from a YAML file.
    config_path : Path or None, optional
        Absolute path of the loaded file, used to resolve relative paths
        (e.g., a prompts file) independently of the working directory.
    """

    def __init__(
            self,
            raw: dict,
            config_path: Path | None = None,
        ):
        self.raw = raw or {}
        self.config_path = config_path

    @classmethod
    def load(
            cls,
            path: str | Path,
        ) -> "GlobalConfig":
        """Load configuration from a YAML file.

        Parameters
        ----------
        path : str or Path
            Path to the YAML configuration file.

        Returns
        -------
        GlobalConfig
            An instance initialised with the loaded and environment-expanded data.
        """
        cfg_path = Path(path).expanduser().resolve()
        with cfg_path.open("r") as f:
            data = yaml.safe_load(f) or {}
        data = _expand_env(data)
        return cls(data, config_path=cfg_path)

    @classmethod
    def from_env(cls) -> "GlobalConfig":
        """Load the file named by ``KNOWLEDGE_RAG_CONFIG`` (default ``config/config.yaml``)."""
        return cls.load(os.environ.get(DEFAULT_CONFIG_ENV, DEFAULT_CONFIG_PATH))

    @cached_property
    def embedder(self) -> dict:
        """Return the ``embedder`` section.

        Raises
        ------
        KeyError
            If the section is missing.
        """
        return _required_section(self.raw, "embedder")

    @cached_property
    def vector_store(self) -> dict:
        """Return the ``vector_store`` section.

        Raises
        ------
        KeyError
            If the section is missing.
        """
        return _required_section(self.raw, "vector_store")

    @cached_property
    def generator_llm(self) -> dict:
        """Return the ``generator_llm`` section.

        Raises
        ------
        KeyError
            If the section is missing.
        """
        return _required_section(self.raw, "generator_llm")

    @cached_property
    def reranker(self) -> dict:
        """Return the ``reranker`` section, or an empty dict (passthrough reranking)."""
        return _optional_section(self.raw, "reranker")

    @cached_property
    def chunking(self) -> dict:
        """Return the ``chunking`` section (``chunk_size``, ``chunk_overlap``)."""
        return _optional_section(self.raw, "chunking")

    @cached_property
    def crawler(self) -> dict:
        """Return the ``crawler`` section (depth, exclusions, timeout, skip selectors)."""
        return _optional_section(self.raw, "crawler")

    @cached_property
    def retrieval(self) -> dict:
        """Return the ``retrieval`` section.

        Recognised keys are ``top_k``, ``rerank_top_n``, ``temperature``,
        ``max_tokens``, ``max_context_tokens`` and ``preview_chars``.
        """
        return _optional_section(self.raw, "retrieval")

    @cached_property
    def deindex(self) -> dict:
        """Return the ``deindex`` section (``page_size``, ``use_server_filter``)."""
        return _optional_section(self.raw, "deindex")

    @cached_property
    def tokenization(self) -> dict:
        return _optional_section(self.raw, "tokenization")

    @cached_property
    def logging(self) -> dict:
        return _optional_section(self.raw, "logging")

    @cached_property
    def prompts(self) -> str | None:
        """Return the optional path to a JSON prompt-template file.

        Returns
        -------
        str or None
            Path as configured, or ``None`` when the built-in templates are used.

        Raises
        ------
        TypeError
            If ``prompts`` is set to something other than a string.
        """
        prompts = self.raw.get("prompts")
        if prompts is not None and not isinstance(prompts, str):
            raise TypeError(f"'prompts' must be a path string, got {type(prompts)}.")
        return prompts
