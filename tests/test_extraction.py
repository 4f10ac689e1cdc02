import time

import pytest

from askme.errors import ExtractionError
from askme.processing.extraction import balanced_spans, extract_json, find_json_values, scan_json_spans


def test_single_json_fence_returns_value():
    text = 'Here you go:\n```json\n{"name": "Ada", "tags": ["math", "code"]}\n```\nAnything else?'
    assert extract_json(text) == {"name": "Ada", "tags": ["math", "code"]}


def test_multiple_fences_return_list_in_order():
    text = (
        "First:\n```json\n{\"id\": 1}\n```\n"
        "Second:\n```json\n[{\"id\": 2}, {\"id\": 3}]\n```\n"
        "Third:\n```json\n{\"id\": 4}\n```"
    )
    assert extract_json(text) == [{"id": 1}, [{"id": 2}, {"id": 3}], {"id": 4}]


def test_json_fences_win_over_other_fences():
    text = "```\n{\"from\": \"plain\"}\n```\n```JSON\n{\"from\": \"json\"}\n```"
    assert extract_json(text) == {"from": "json"}


def test_untagged_fence_used_when_no_json_fence():
    text = "Result:\n```\n{\"ok\": true}\n```"
    assert extract_json(text) == {"ok": True}


def test_fence_with_prose_inside_is_scanned():
    text = "```json\n// settings\n{\"debug\": false}\n```"
    assert extract_json(text) == {"debug": False}


def test_prose_objects_found_without_fences():
    text = 'The user is {"name": "Grace"} and the config is {"retries": 3, "hosts": ["a", "b"]}.'
    assert extract_json(text) == [{"name": "Grace"}, {"retries": 3, "hosts": ["a", "b"]}]


def test_braces_inside_strings_do_not_confuse_nesting():
    text = 'Answer: {"pattern": "a}b{c", "quote": "say \\"}\\" now", "list": "[1,"} trailing }'
    assert extract_json(text) == {"pattern": "a}b{c", "quote": 'say "}" now', "list": "[1,"}


def test_nested_values_are_returned_whole():
    text = 'Data: {"outer": {"inner": [1, {"deep": [2, 3]}]}} end'
    assert extract_json(text) == {"outer": {"inner": [1, {"deep": [2, 3]}]}}


def test_bare_lists_and_citations_are_ignored():
    text = "See reference [1] and [sic]; the payload is [{\"a\": 1}]."
    assert extract_json(text) == [{"a": 1}]


def test_no_json_raises():
    with pytest.raises(ExtractionError, match="No JSON data found"):
        extract_json("Sorry, I cannot help with that. {not json}")


def test_invalid_fences_fall_through_to_prose():
    text = "```python\nprint('hi')\n```\nBut here: {\"x\": 1}"
    assert find_json_values(text) == [{"x": 1}]


def test_unbalanced_opener_is_skipped():
    assert scan_json_spans('{"a": 1 and then {"b": 2}') == [{"b": 2}]


def test_balanced_spans():
    text = 'x{"a": [1, 2], "b": "}"}y'
    assert balanced_spans(text) == [(1, len(text) - 1), (7, 13)]
    assert balanced_spans("{[}]") == []
    assert balanced_spans("{") == []


def test_unfenced_array_of_scalars():
    assert extract_json("The primes are [2, 3, 5, 7].") == [2, 3, 5, 7]
    assert extract_json('Pick one of ["red"] please') == ["red"]


def test_single_number_in_brackets_is_a_citation():
    with pytest.raises(ExtractionError):
        extract_json("As shown in [12], the method converges.")


def test_invalid_outer_span_falls_back_to_inner_spans():
    assert scan_json_spans('{note: see {"a": 1} and [2, 3]}') == [{"a": 1}, [2, 3]]


def test_stray_quote_does_not_hide_later_values():
    text = 'Use {braces like "this\nResult: {"b": 2}'
    assert extract_json(text) == {"b": 2}


def test_mismatched_closer_resets_the_scan():
    assert scan_json_spans('{"a": [1} then {"c": 3}') == [{"c": 3}]


def test_many_unclosed_openers_scan_in_linear_time():
    text = "{ " * 20000 + '{"ok": true}' + "[ " * 20000
    started = time.monotonic()
    assert extract_json(text) == {"ok": True}
    with pytest.raises(ExtractionError):
        extract_json("{ " * 20000)
    assert time.monotonic() - started < 2
