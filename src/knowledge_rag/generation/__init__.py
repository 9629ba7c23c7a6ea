"""knowledge_rag.generation

Answer generation components.

Modules
-------
llm_interface
    Provider-agnostic LLM interface, token pool selection and factory.
prompt_builder
    Jinja2 prompt templates and the template registry.
"""
