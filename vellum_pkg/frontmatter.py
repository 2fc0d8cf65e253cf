"""
Front matter parsing.

A markdown file may start with a block delimited by two `---` lines holding
`key: value` pairs. Values are typed:

    title: "Hello world"          string
    draft: false                  bool
    difficulty: 2.5               number
    tags: ["python", "web"]       array
    date: 2024-03-01T10:00:00Z    date

Anything that is not one of the above must be a timestamp, otherwise the file
fails to parse.
"""

import html
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Tuple

from .errors import FrontMatterError

FRONT_MATTER_PATTERN = re.compile(
    r'\A\ufeff?\s*^---[ \t]*\r?\n(?P<block>.*?)^---[ \t]*(?:\r?\n|\Z)',
    re.MULTILINE | re.DOTALL,
)


class ValueKind(Enum):
    STRING = 'string'
    BOOL = 'bool'
    NUMBER = 'number'
    ARRAY = 'array'
    DATE = 'date'


def parse_timestamp(text):
    """Parse an RFC3339-like timestamp into an aware UTC datetime."""
    candidate = text.strip()
    if candidate.endswith(('Z', 'z')):
        candidate = candidate[:-1] + '+00:00'
    # Python before 3.11 only accepts a `T` separator
    if len(candidate) > 10 and candidate[10] in ' t':
        candidate = candidate[:10] + 'T' + candidate[11:]
    parsed = datetime.fromisoformat(candidate)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value):
    text = value.astimezone(timezone.utc).isoformat()
    return text.replace('+00:00', 'Z')


def format_number(value):
    if value.is_integer():
        return str(int(value))
    return repr(value)


class VariableValue:
    """A typed front matter value."""

    __slots__ = ('kind', 'value')

    def __init__(self, kind, value):
        self.kind = kind
        self.value = value

    @classmethod
    def string(cls, value):
        return cls(ValueKind.STRING, value)

    @classmethod
    def boolean(cls, value):
        return cls(ValueKind.BOOL, value)

    @classmethod
    def number(cls, value):
        return cls(ValueKind.NUMBER, float(value))

    @classmethod
    def array(cls, values):
        return cls(ValueKind.ARRAY, list(values))

    @classmethod
    def date(cls, value):
        return cls(ValueKind.DATE, value)

    @classmethod
    def from_str(cls, text, report=None):
        """
        Parse a raw front matter value.

        Args:
            text: The text after the first `:` of a front matter line.
            report: Optional FileReport receiving syntax warnings.

        Raises:
            FrontMatterError: If the value is none of the known types.
        """
        text = text.strip()

        if text.startswith('['):
            if text.endswith(']'):
                inner = text[1:-1]
            else:
                if report:
                    report.warning(f"Array value is not terminated: {text}")
                inner = text[1:]
            # Nested arrays and quoted commas are not supported
            elements = [element.strip() for element in inner.split(',')]
            return cls.array(cls.from_str(element, report) for element in elements if element)

        if text.startswith('"'):
            if len(text) >= 2 and text.endswith('"'):
                return cls.string(text[1:-1])
            if report:
                report.warning(f"String value is not terminated: {text}")
            return cls.string(text[1:])

        if text == 'true':
            return cls.boolean(True)
        if text == 'false':
            return cls.boolean(False)

        try:
            return cls.number(float(text))
        except ValueError:
            pass

        try:
            return cls.date(parse_timestamp(text))
        except (ValueError, OverflowError):
            raise FrontMatterError(f"Unable to parse value '{text}'.")

    def serialize(self):
        """Write the value back in front matter syntax."""
        if self.kind is ValueKind.STRING:
            return f'"{self.value}"'
        if self.kind is ValueKind.BOOL:
            return 'true' if self.value else 'false'
        if self.kind is ValueKind.NUMBER:
            return repr(self.value)
        if self.kind is ValueKind.ARRAY:
            return '[' + ', '.join(item.serialize() for item in self.value) + ']'
        return format_timestamp(self.value)

    def to_variable(self):
        """Render the value as an HTML-escaped content variable."""
        if self.kind is ValueKind.STRING:
            return html.escape(self.value)
        if self.kind is ValueKind.BOOL:
            return 'true' if self.value else 'false'
        if self.kind is ValueKind.NUMBER:
            return format_number(self.value)
        if self.kind is ValueKind.ARRAY:
            return ', '.join(item.to_variable() for item in self.value)
        return format_timestamp(self.value)

    def __eq__(self, other):
        if not isinstance(other, VariableValue):
            return NotImplemented
        return self.kind is other.kind and self.value == other.value

    def __hash__(self):
        if self.kind is ValueKind.ARRAY:
            return hash((self.kind, tuple(self.value)))
        return hash((self.kind, self.value))

    def __repr__(self):
        return f"VariableValue({self.kind.value}, {self.value!r})"


def parse_front_matter(text, report=None) -> Tuple[Dict[str, VariableValue], str]:
    """
    Split front matter from a markdown document.

    Returns the parsed values and the document with the front matter block
    removed. A document without front matter yields an empty mapping and the
    text unchanged.
    """
    match = FRONT_MATTER_PATTERN.match(text)
    if not match:
        return {}, text

    values = {}
    for line_number, line in enumerate(match.group('block').splitlines(), start=2):
        if not line.strip():
            continue
        key, separator, raw_value = line.partition(':')
        if not separator:
            if report:
                report.warning(f"Front matter line {line_number} has no ':' separator.")
            continue
        try:
            values[key.strip()] = VariableValue.from_str(raw_value, report)
        except FrontMatterError as e:
            raise FrontMatterError(f"Line {line_number}, key '{key.strip()}': {e.message}")

    return values, text[:match.start()] + text[match.end():]
