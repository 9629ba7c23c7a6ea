import logging
import textwrap

import pytest

from knowledge_rag.app.container import build_container
from knowledge_rag.config import GlobalConfig, configure_logging
from knowledge_rag.config import logging_setup
from knowledge_rag.generation.llm_interface import OpenAIChatLikeLLM
from knowledge_rag.pipelines.rag_pipeline import RAGPipeline
from knowledge_rag.retrieval.reranker import CohereReranker

CONFIG = textwrap.dedent(
    """
    embedder:
      type: cohere
      api_key: ${COHERE_API_KEY}
    vector_store:
      location: ":memory:"
      collection_name: sources-${STAGE}
      api_key: ${QDRANT_API_KEY}
    reranker:
      type: cohere
      api_key: ${COHERE_API_KEY}
    generator_llm:
      api_keys: ${GITHUB_TOKEN}
    retrieval:
      top_k: 7
      max_context_tokens: 3000
    deindex:
      use_server_filter: true
    logging:
      level: debug
    """
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.setenv("COHERE_API_KEY", "co-key")
    monkeypatch.setenv("GITHUB_TOKEN", "gh-1,gh-2")
    monkeypatch.setenv("STAGE", "test")
    monkeypatch.delenv("QDRANT_API_KEY", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG)
    return path


def test_env_vars_are_expanded(config_file):
    cfg = GlobalConfig.load(config_file)

    assert cfg.embedder["api_key"] == "co-key"
    assert cfg.vector_store["collection_name"] == "sources-test"
    assert cfg.vector_store["api_key"] == ""
    assert cfg.generator_llm["api_keys"] == "gh-1,gh-2"
    assert cfg.config_path == config_file.resolve()


def test_optional_sections_default_to_empty(config_file):
    cfg = GlobalConfig.load(config_file)
    assert cfg.chunking == {}
    assert cfg.crawler == {}
    assert cfg.prompts is None


def test_missing_required_section():
    with pytest.raises(KeyError):
        GlobalConfig({"vector_store": {}}).embedder


def test_section_type_is_checked():
    with pytest.raises(TypeError):
        GlobalConfig({"retrieval": ["top_k", 5]}).retrieval
    with pytest.raises(TypeError):
        GlobalConfig({"prompts": {"file": "x.json"}}).prompts


def test_from_env(config_file, monkeypatch):
    monkeypatch.setenv("KNOWLEDGE_RAG_CONFIG", str(config_file))
    assert GlobalConfig.from_env().retrieval["top_k"] == 7


def test_container_wires_components_from_config(config_file):
    container = build_container(GlobalConfig.load(config_file))

    assert isinstance(container.reranker, CohereReranker)
    assert isinstance(container.generator_llm, OpenAIChatLikeLLM)
    assert container.generator_llm.tokens == ["gh-1", "gh-2"]
    assert container.vector_store.collection_name == "sources-test"
    assert container.deindexer.use_server_filter is True

    pipeline = container.pipeline
    assert isinstance(pipeline, RAGPipeline)
    assert pipeline.top_k == 7
    assert pipeline.max_context_tokens == 3000
    assert container.pipeline is pipeline


def test_configure_logging(config_file, monkeypatch):
    calls = []
    monkeypatch.setattr(logging_setup.logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging(GlobalConfig.load(config_file))
    configure_logging({"level": "warning", "format": "%(message)s"})
    configure_logging(None)

    assert calls[0]["level"] == logging.DEBUG
    assert calls[1] == {"level": logging.WARNING, "format": "%(message)s", "force": True}
    assert calls[2]["level"] == logging.INFO

    with pytest.raises(ValueError):
        configure_logging({"level": "chatty"})
