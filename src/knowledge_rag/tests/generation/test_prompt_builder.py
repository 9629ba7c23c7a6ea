import json

import pytest
from jinja2 import UndefinedError

from knowledge_rag.generation.prompt_builder import (
    ANSWER_PROMPT,
    PromptBuilder,
    PromptTemplate,
    create_prompt_builder,
)


def test_default_answer_template_is_packaged():
    builder = create_prompt_builder()

    assert builder.list_prompts() == [ANSWER_PROMPT]

    system, user = builder.build_messages(ANSWER_PROMPT, context="[1] Paris is in France.", query="Where is Paris?")
    assert "Use only the information from the context" in system
    assert "clear and concise" in system
    assert user == (
        "Context: [1] Paris is in France.\n\n"
        "Question: Where is Paris?\n\n"
        "Please provide a comprehensive answer based on the context above."
    )


def test_missing_variables_fail_loudly():
    with pytest.raises(UndefinedError):
        create_prompt_builder().build_messages(ANSWER_PROMPT, query="no context given")


def test_examples_precede_the_user_message():
    template = PromptTemplate("t", system="Sys {{ lang }}", user="Q: {{ q }}", examples=["Q: 1+1\nA: 2"])
    assert template.render(lang="en", q="2+2") == ("Sys en", "Q: 1+1\nA: 2\n\nQ: 2+2")


def test_file_templates_override_defaults(tmp_path):
    prompts = tmp_path / "prompts.json"
    prompts.write_text(json.dumps({"name": "answer", "system": "Answer in French.", "user": "{{ query }}"}))

    builder = create_prompt_builder("file:prompts.json", base_dir=tmp_path)

    assert builder.build_messages("answer", query="Où est Paris ?") == ("Answer in French.", "Où est Paris ?")


def test_missing_prompt_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        create_prompt_builder("absent.json", base_dir=tmp_path)


def test_register_from_dict_validation():
    builder = PromptBuilder()
    with pytest.raises(KeyError):
        builder.register_from_dict({"user": "x"})
    with pytest.raises(ValueError):
        builder.register_from_dict({"name": "  "})
    with pytest.raises(TypeError):
        builder.register_from_dict({"name": "x", "examples": "not a list"})
    with pytest.raises(TypeError):
        builder.register_from_json("[1, 2]")


def test_unknown_template_lists_available():
    with pytest.raises(KeyError) as excinfo:
        create_prompt_builder().build_messages("missing")
    assert "answer" in str(excinfo.value)
