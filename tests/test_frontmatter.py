"""Tests for front matter parsing."""

import pytest
import os
from datetime import datetime, timezone

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from vellum_pkg.errors import FrontMatterError
from vellum_pkg.frontmatter import (
    ValueKind, VariableValue, format_timestamp, parse_front_matter, parse_timestamp
)


SAMPLE_DOCUMENT = """---
title: "Hello world"
draft: false
difficulty: 2.5
tags: ["python", "web"]
date: 2024-03-01T10:00:00Z
---
# Body

Text.
"""


class TestParseFrontMatter:
    """Test cases for splitting front matter from markdown."""

    def test_typed_values(self):
        """Test every value kind is recognised."""
        values, _ = parse_front_matter(SAMPLE_DOCUMENT)

        assert values['title'] == VariableValue.string('Hello world')
        assert values['draft'] == VariableValue.boolean(False)
        assert values['difficulty'] == VariableValue.number(2.5)
        assert values['tags'] == VariableValue.array([
            VariableValue.string('python'), VariableValue.string('web')
        ])
        assert values['date'] == VariableValue.date(datetime(2024, 3, 1, 10, tzinfo=timezone.utc))

    def test_body_has_front_matter_removed(self):
        """Test the returned body starts after the closing delimiter."""
        _, body = parse_front_matter(SAMPLE_DOCUMENT)
        assert body == "# Body\n\nText.\n"

    def test_document_without_front_matter(self):
        """Test a document without a block is returned unchanged."""
        text = "# Just markdown\n\n---\n"
        values, body = parse_front_matter(text)
        assert values == {}
        assert body == text

    def test_crlf_line_endings(self):
        """Test Windows line endings are accepted."""
        values, body = parse_front_matter('---\r\ntitle: "x"\r\n---\r\nBody')
        assert values['title'] == VariableValue.string('x')
        assert body == 'Body'

    def test_line_without_separator_warns(self, report):
        """Test a line without ':' is skipped with a warning."""
        values, _ = parse_front_matter('---\ntitle: "x"\nnonsense\n---\n', report)
        assert list(values) == ['title']
        assert len(report.warnings) == 1
        assert 'line 3' in report.warnings[0].message

    def test_invalid_value_reports_line_and_key(self):
        """Test an unparseable value fails the document."""
        with pytest.raises(FrontMatterError) as excinfo:
            parse_front_matter('---\ntitle: "x"\ncount: abc\n---\n')
        assert 'Line 3' in str(excinfo.value)
        assert "'count'" in str(excinfo.value)

    def test_value_may_contain_colons(self):
        """Test only the first ':' separates key and value."""
        values, _ = parse_front_matter('---\nurl: "https://example.com"\n---\n')
        assert values['url'] == VariableValue.string('https://example.com')


class TestVariableValue:
    """Test cases for typed front matter values."""

    @pytest.mark.parametrize('value', [
        VariableValue.string('Hello world'),
        VariableValue.boolean(True),
        VariableValue.boolean(False),
        VariableValue.number(2.5),
        VariableValue.number(-3),
        VariableValue.array([VariableValue.string('a'), VariableValue.number(1)]),
        VariableValue.date(datetime(2024, 3, 1, 10, 30, tzinfo=timezone.utc)),
    ])
    def test_serialize_parses_back(self, value):
        """Test serialized values parse to an equal value."""
        assert VariableValue.from_str(value.serialize()) == value

    def test_unterminated_string_warns(self, report):
        """Test an unterminated string keeps its text and warns."""
        value = VariableValue.from_str('"abc', report)
        assert value == VariableValue.string('abc')
        assert len(report.warnings) == 1

    def test_unterminated_array_warns(self, report):
        """Test an unterminated array keeps its elements and warns."""
        value = VariableValue.from_str('[1, 2', report)
        assert value == VariableValue.array([VariableValue.number(1), VariableValue.number(2)])
        assert len(report.warnings) == 1

    def test_empty_array_elements_are_skipped(self):
        """Test empty elements between commas are dropped."""
        value = VariableValue.from_str('["a", , "b"]')
        assert value == VariableValue.array([VariableValue.string('a'), VariableValue.string('b')])

    def test_unknown_value_raises(self):
        """Test a value of no known type is an error."""
        with pytest.raises(FrontMatterError):
            VariableValue.from_str('not a value')

    def test_out_of_range_timestamp_raises(self):
        """Test a timestamp that leaves the supported range after conversion to UTC is an error."""
        with pytest.raises(FrontMatterError):
            VariableValue.from_str('0001-01-01T00:00:00+05:00')

    def test_out_of_range_timestamp_names_line(self):
        """Test the failing line is reported for an out of range timestamp."""
        with pytest.raises(FrontMatterError, match="key 'when'"):
            parse_front_matter('---\ntitle: "x"\nwhen: 0001-01-01T00:00:00+05:00\n---\n')

    def test_to_variable_escapes_strings(self):
        """Test string values are HTML-escaped when used as variables."""
        assert VariableValue.string('<b>"x"</b>').to_variable() == '&lt;b&gt;&quot;x&quot;&lt;/b&gt;'

    def test_to_variable_formats(self):
        """Test variable rendering of the non-string kinds."""
        assert VariableValue.number(3).to_variable() == '3'
        assert VariableValue.number(2.5).to_variable() == '2.5'
        assert VariableValue.boolean(True).to_variable() == 'true'
        array = VariableValue.array([VariableValue.string('a'), VariableValue.string('b')])
        assert array.to_variable() == 'a, b'
        assert array.kind is ValueKind.ARRAY


class TestTimestamps:
    """Test cases for timestamp parsing and formatting."""

    def test_offset_is_converted_to_utc(self):
        """Test timestamps with an offset are normalised to UTC."""
        parsed = parse_timestamp('2024-03-01T12:00:00+02:00')
        assert parsed == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    def test_naive_timestamp_is_utc(self):
        """Test timestamps without an offset are read as UTC."""
        assert parse_timestamp('2024-03-01 10:00:00') == datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

    def test_format_uses_z_suffix(self):
        """Test UTC timestamps are written with a Z suffix."""
        assert format_timestamp(datetime(2024, 3, 1, 10, tzinfo=timezone.utc)) == '2024-03-01T10:00:00Z'
