"""knowledge_rag.config

Configuration subsystem for the knowledge RAG service.

This package provides structured access to the configuration loaded from a
YAML file. It exposes validated, documented accessors rather than raw
configuration dictionaries.

Modules
-------
global_config
    Global configuration loader and cached accessors.
logging_setup
    Root logger configuration from the ``logging`` section.
"""
from .global_config import GlobalConfig
from .logging_setup import configure_logging

__all__ = ["GlobalConfig", "configure_logging"]
