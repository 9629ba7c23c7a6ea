import pytest

from knowledge_rag.common.tokenisation import HeuristicTokenCounter, create_token_counter


def test_heuristic_counter_rounds_up():
    counter = HeuristicTokenCounter(chars_per_token=4)
    assert counter.count("") == 0
    assert counter.count("abcd") == 1
    assert counter.count("abcde") == 2
    assert counter.head("abcdefghij", 2) == "abcdefgh"
    assert counter.head("abc", 0) == ""


def test_factory_defaults_to_heuristic():
    assert create_token_counter(None) == HeuristicTokenCounter()
    assert create_token_counter({"type": "chars", "chars_per_token": 3}) == HeuristicTokenCounter(3)
    with pytest.raises(ValueError):
        create_token_counter({"type": "sentencepiece"})
