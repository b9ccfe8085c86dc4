from __future__ import annotations

from whut.core.agent.planner import extract_json_array


def test_plain_array() -> None:
    assert extract_json_array('[{"description": "a"}]') == [{"description": "a"}]


def test_array_inside_markdown_fence() -> None:
    text = 'Here is the plan:\n```json\n[{"description": "fetch", "toolName": "fetch_emails"}]\n```\nLet me know.'
    assert extract_json_array(text) == [{"description": "fetch", "toolName": "fetch_emails"}]


def test_trailing_commentary_with_brackets() -> None:
    text = '[{"description": "send"}]\n\nNote: steps [1] and [2] are optional.'
    assert extract_json_array(text) == [{"description": "send"}]


def test_leading_prose_with_brackets() -> None:
    text = 'Options [see below]: [{"description": "only"}]'
    assert extract_json_array(text) == [{"description": "only"}]


def test_nested_arrays_and_brackets_in_strings() -> None:
    text = '[{"description": "mail [draft]", "toolParams": {"to": ["a@b.com", "c@d.com"]}}]'
    parsed = extract_json_array(text)
    assert parsed == [{"description": "mail [draft]", "toolParams": {"to": ["a@b.com", "c@d.com"]}}]


def test_truncated_array_is_rejected() -> None:
    assert extract_json_array('[{"description": "a"}, {"description": "b"') is None


def test_no_array() -> None:
    assert extract_json_array("I cannot help with that.") is None
    assert extract_json_array("") is None
    assert extract_json_array('{"description": "object only"}') is None
