"""
Content variables and `{{...}}` substitution.

Templates and content reference variables with `{{key}}` and define them
inline with `{{key:value}}`. Definitions are removed from the output. The
reserved key `md_post_list` resolves to the global post list, which is only
available once every content file has been analysed.
"""

from typing import Dict, Iterator, Optional, Tuple

from .errors import VariableError

POST_LIST_KEY = 'md_post_list'

OPEN_MARKER = b'{{'
CLOSE_MARKER = b'}}'


class ContentVariables:
    """Ordered key to string mapping owned by the task processing one file."""

    def __init__(self, variables: Optional[Dict[str, str]] = None):
        self.variables: Dict[str, str] = dict(variables or {})

    def insert(self, key, value):
        self.variables[key] = value

    def get(self, key, default=None):
        return self.variables.get(key, default)

    def __getitem__(self, key):
        return self.variables[key]

    def __contains__(self, key):
        return key in self.variables

    def __iter__(self) -> Iterator[str]:
        return iter(self.variables)

    def __len__(self):
        return len(self.variables)

    def items(self):
        return self.variables.items()

    def __eq__(self, other):
        if not isinstance(other, ContentVariables):
            return NotImplemented
        return self.variables == other.variables

    def __repr__(self):
        return f"ContentVariables({self.variables!r})"


def _find_closing(buffer, start, end) -> int:
    """Return the index of the `}}` closing the marker whose content starts at `start`."""
    depth = 0
    index = start
    while index < end - 1:
        pair = buffer[index:index + 2]
        if pair == OPEN_MARKER:
            depth += 1
            index += 2
        elif pair == CLOSE_MARKER:
            if depth == 0:
                return index
            depth -= 1
            index += 2
        else:
            index += 1
    return -1


def _split_assignment(content) -> Optional[Tuple[bytes, bytes]]:
    """Split `key:value` on the first `:` outside nested markers."""
    depth = 0
    index = 0
    while index < len(content):
        pair = content[index:index + 2]
        if pair == OPEN_MARKER:
            depth += 1
            index += 2
            continue
        if pair == CLOSE_MARKER and depth:
            depth -= 1
            index += 2
            continue
        if content[index:index + 1] == b':' and depth == 0:
            return content[:index], content[index + 1:]
        index += 1
    return None


def _decode(raw, position):
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError as e:
        raise VariableError(f"Variable marker is not valid UTF-8: {e.reason}.",
                            position=position + e.start)


def _resolve_nested(raw, variables, post_list, position) -> bytes:
    if OPEN_MARKER not in raw:
        return bytes(raw)
    nested = bytearray(raw)
    try:
        substitute_variables(nested, variables, post_list=post_list)
    except VariableError as e:
        if e.position is not None:
            e.position += position
        raise
    return bytes(nested)


def lookup_variable(key, variables, post_list=None, position=None) -> str:
    if key == POST_LIST_KEY:
        if post_list is None:
            raise VariableError(f"Variable '{key}' is not available here.", key=key, position=position)
        return post_list.get()
    value = variables.get(key)
    if value is None:
        raise VariableError(f"Unknown variable '{key}'.", key=key, position=position)
    return value


def substitute_variables(buffer: bytearray, variables: ContentVariables, start=0, end=None,
                         post_list=None) -> int:
    """
    Resolve every `{{...}}` marker in `buffer[start:end]` in place.

    Substituted values are not scanned again. Returns the end of the range
    after all replacements.

    Raises:
        VariableError: For an unknown key or an unterminated marker.
        CellNotAssignedError: If `md_post_list` is read before the post list
            has been built.
    """
    if end is None:
        end = len(buffer)

    index = start
    while True:
        open_index = buffer.find(OPEN_MARKER, index, end)
        if open_index == -1:
            return end

        content_start = open_index + len(OPEN_MARKER)
        close_index = _find_closing(buffer, content_start, end)
        if close_index == -1:
            raise VariableError("Variable marker is not terminated.", position=open_index)

        marker_end = close_index + len(CLOSE_MARKER)
        content = bytes(buffer[content_start:close_index])

        assignment = _split_assignment(content)
        if assignment is not None:
            raw_key, raw_value = assignment
            key = _decode(_resolve_nested(raw_key, variables, post_list, content_start),
                          content_start).strip()
            value_position = content_start + len(raw_key) + 1
            value = _decode(_resolve_nested(raw_value, variables, post_list, value_position),
                            value_position)
            variables.insert(key, value)
            replacement = b''
        else:
            key = _decode(_resolve_nested(content, variables, post_list, content_start),
                          content_start).strip()
            replacement = lookup_variable(key, variables, post_list, open_index).encode('utf-8')

        buffer[open_index:marker_end] = replacement
        end += len(replacement) - (marker_end - open_index)
        index = open_index + len(replacement)
