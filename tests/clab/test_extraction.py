"""Tests for clab.extraction."""

import json

import pytest

from clab.errors import ExtractionError
from clab.extraction import extract_json, find_json_span


class TestExtractJson:
    """Recovering JSON from model prose."""

    def test_object_wrapped_in_prose(self):
        payload = {"summary": "ok", "insights": ["a", "b"], "confidence": 80}
        text = f"Here is my analysis:\n{json.dumps(payload)}\nLet me know if you need more."

        assert extract_json(text) == payload

    def test_markdown_fence(self):
        text = '```json\n{"summary": "fenced"}\n```'
        assert extract_json(text) == {"summary": "fenced"}

    def test_top_level_array(self):
        assert extract_json("List: [1, [2, 3], {\"a\": 4}] done") == [1, [2, 3], {"a": 4}]

    def test_first_value_wins(self):
        assert extract_json('{"first": 1} and then {"second": 2}') == {"first": 1}

    def test_braces_inside_strings_do_not_count(self):
        text = 'Result: {"summary": "uses {braces} and ]brackets[", "n": 1} trailing }'
        assert extract_json(text) == {"summary": "uses {braces} and ]brackets[", "n": 1}

    def test_escaped_quotes_inside_strings(self):
        text = r'{"summary": "she said \"}\" loudly"}'
        assert extract_json(text) == {"summary": 'she said "}" loudly'}

    def test_unicode_content(self):
        assert extract_json('Voilà: {"résumé": "ça marche ✓"}') == {"résumé": "ça marche ✓"}


ROUND_TRIP_VALUES = [
    {},
    [],
    {"a": {}, "b": []},
    [[], [[]], {"x": [{}]}],
    {"summary": "deep", "nested": {"level": {"list": [1, 2.5, -3, True, False, None]}}},
    [{"path": "a/b.py"}, {"path": "c\\d.py"}],
    {"quote": "say \"hi\"", "newline": "line1\nline2", "tab": "a\tb"},
    {"brackets": "}{][", "slashes": "\\\\", "unicode": "caf\u00e9 \u2713 \U0001f600"},
    {"": "", "keys with spaces": [" ", "\u0000"]},
]

NOISE = [
    ("", ""),
    ("Here you go:\n", "\nHope that helps."),
    ("Résumé \u2192 ", " \u2190 fin } ] extra"),
    ("```json\n", "\n```\nAnything else?"),
]


class TestRoundTrip:
    """Serialized values survive any surrounding prose."""

    @pytest.mark.parametrize("ensure_ascii", [True, False])
    @pytest.mark.parametrize("prefix,suffix", NOISE)
    @pytest.mark.parametrize("value", ROUND_TRIP_VALUES)
    def test_value_recovered(self, value, prefix, suffix, ensure_ascii):
        text = prefix + json.dumps(value, ensure_ascii=ensure_ascii) + suffix
        assert extract_json(text) == value

    @pytest.mark.parametrize("value", ROUND_TRIP_VALUES)
    def test_indented_value_recovered(self, value):
        assert extract_json("Analysis:\n" + json.dumps(value, indent=2) + "\n") == value


class TestExtractionFailures:
    """Inputs with no recoverable JSON."""

    def test_no_brackets(self):
        with pytest.raises(ExtractionError, match="No JSON"):
            extract_json("I could not analyze this file.")

    def test_unbalanced(self):
        with pytest.raises(ExtractionError, match="Unbalanced JSON starting at offset 5"):
            extract_json('Oops {"summary": "cut off')

    def test_balanced_but_invalid(self):
        with pytest.raises(ExtractionError, match="Invalid JSON"):
            extract_json("{summary: no quotes}")

    def test_mismatched_bracket_kinds_rejected_by_parser(self):
        with pytest.raises(ExtractionError):
            extract_json('{"a": 1]')

    def test_non_text_input(self):
        with pytest.raises(ExtractionError):
            extract_json(None)

    def test_empty_string(self):
        with pytest.raises(ExtractionError):
            extract_json("")


class TestFindJsonSpan:
    """Tests for the span scanner."""

    def test_span_bounds(self):
        text = 'abc {"x": [1, 2]} def'
        start, end = find_json_span(text)
        assert text[start:end] == '{"x": [1, 2]}'
