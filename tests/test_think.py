import pytest

from askme.models.request import Token
from askme.streaming.think import ThinkTagSplitter, split_think_tags


def run_splitter(fragments):
    splitter = ThinkTagSplitter()
    tokens = []
    for fragment in fragments:
        tokens.extend(splitter.feed(fragment))
    tokens.extend(splitter.flush())
    answer = "".join(t.text for t in tokens if not t.is_reasoning)
    reasoning = "".join(t.text for t in tokens if t.is_reasoning)
    return answer, reasoning


def test_split_think_tags_complete_text():
    assert split_think_tags("<think>\nweighing options\n</think>\n\nThe answer is 4.") == (
        "The answer is 4.", "weighing options")


def test_split_think_tags_without_tags_is_unchanged():
    assert split_think_tags("  plain answer\n") == ("  plain answer\n", None)


def test_splitter_passes_plain_text_through():
    splitter = ThinkTagSplitter()
    assert splitter.feed("Hello") == [Token.answer("Hello")]
    assert splitter.flush() == []


TEXT = "<think>a < b, so</think>Result: a<b"


@pytest.mark.parametrize("offset", range(1, len(TEXT)))
def test_tags_split_across_fragments(offset):
    assert run_splitter([TEXT[:offset], TEXT[offset:]]) == ("Result: a<b", "a < b, so")


def test_one_character_fragments():
    assert run_splitter(list(TEXT)) == ("Result: a<b", "a < b, so")


def test_partial_tag_at_end_is_flushed_as_text():
    assert run_splitter(["answer ends with <thi"]) == ("answer ends with <thi", "")


def test_unclosed_think_block_stays_reasoning():
    assert run_splitter(["<think>still going"]) == ("", "still going")
