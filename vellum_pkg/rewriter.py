"""
Streaming markup rewriter.

The page skeleton is read into an owned byte buffer and scanned with a small
re-entrant tokenizer. While scanning, the buffer is edited in place:

* a start tag named after a template fragment is replaced by the fragment and
  scanning restarts from the beginning, so fragments may include fragments,
* `{{...}}` markers are substituted after every inclusion,
* `h2`-`h9` headings get an id and a link to themselves.

Every edit moves the reader to a known offset before scanning resumes.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from .errors import ContentError, RewriteError
from .markdown_renderer import get_id_from_name
from .minify import minify_markup
from .variables import substitute_variables

START_TAG_PATTERN = re.compile(
    rb'<(?P<name>[A-Za-z\x80-\xff][^\s/>]*)(?P<attrs>(?:[^>"\']|"[^"]*"|\'[^\']*\')*)>'
)
END_TAG_PATTERN = re.compile(rb'</(?P<name>[A-Za-z\x80-\xff][^\s/>]*)\s*>')
CLASS_ATTRIBUTE_PATTERN = re.compile(rb'(\sclass\s*=\s*")([^"]*)(")', re.IGNORECASE)
ID_ATTRIBUTE_PATTERN = re.compile(rb'\sid\s*=\s*"([^"]*)"', re.IGNORECASE)
LINK_START_PATTERN = re.compile(rb'<a[\s>]', re.IGNORECASE)

RAW_TEXT_ELEMENTS = (b'script', b'style')
HEADING_NAMES = frozenset(f'h{level}' for level in range(2, 10))
HEADER_CLASS = b'header-text'

logger = logging.getLogger('ContentProcessor')


class EventKind(Enum):
    START = 'start'
    END = 'end'
    TEXT = 'text'
    EOF = 'eof'


@dataclass
class MarkupEvent:
    kind: EventKind
    start: int
    end: int
    name: bytes = b''
    self_closing: bool = False


class MarkupReader:
    """Tokenizer over a mutable buffer; `position` may be moved between reads."""

    def __init__(self, buffer: bytearray):
        self.buffer = buffer
        self.position = 0

    def reset(self, position=0):
        self.position = position

    def _skip_to(self, terminator, start):
        end = self.buffer.find(terminator, start)
        return len(self.buffer) if end == -1 else end + len(terminator)

    def read_event(self) -> MarkupEvent:
        buffer = self.buffer
        while True:
            start = self.position
            if start >= len(buffer):
                return MarkupEvent(EventKind.EOF, start, start)

            if buffer[start:start + 1] != b'<':
                end = buffer.find(b'<', start)
                self.position = len(buffer) if end == -1 else end
                return MarkupEvent(EventKind.TEXT, start, self.position)

            if buffer.startswith(b'<!--', start):
                self.position = self._skip_to(b'-->', start + 4)
                continue
            if buffer.startswith(b'<!', start) or buffer.startswith(b'<?', start):
                self.position = self._skip_to(b'>', start + 2)
                continue

            match = END_TAG_PATTERN.match(buffer, start)
            if match:
                self.position = match.end()
                return MarkupEvent(EventKind.END, start, match.end(), bytes(match.group('name')))

            match = START_TAG_PATTERN.match(buffer, start)
            if match:
                name = bytes(match.group('name'))
                self_closing = match.group('attrs').rstrip().endswith(b'/')
                self.position = match.end()
                if not self_closing and name.lower() in RAW_TEXT_ELEMENTS:
                    closing = re.compile(rb'</' + re.escape(name) + rb'\s*>', re.IGNORECASE)
                    raw_end = closing.search(buffer, self.position)
                    if raw_end:
                        self.position = raw_end.start()
                return MarkupEvent(EventKind.START, start, match.end(), name, self_closing)

            # A lone `<` is text
            end = buffer.find(b'<', start + 1)
            self.position = len(buffer) if end == -1 else end
            return MarkupEvent(EventKind.TEXT, start, self.position)


class RewriteEngine:
    """Expands fragments, substitutes variables and anchors headings for one page."""

    MAX_EXPANSIONS = 10000

    def __init__(self, templates, production=False):
        self.templates = templates
        self.production = production

    def rewrite(self, source_path, variables, post_list=None, content=None) -> bytes:
        """
        Produce the final markup for a page.

        Args:
            source_path: Skeleton file to read, also used in diagnostics.
            variables: The page's ContentVariables, updated by inline assignments.
            post_list: OnceCell holding the global post list.
            content: Skeleton bytes, read from `source_path` when omitted.

        Raises:
            ContentError: If the page cannot be rendered.
        """
        if content is None:
            with open(source_path, 'rb') as f:
                content = f.read()

        try:
            buffer = bytearray(content)
            substitute_variables(buffer, variables, post_list=post_list)
            self._expand(buffer, source_path, variables, post_list)
            return self._finish(buffer)
        except ContentError as e:
            if e.path is None:
                e.path = str(source_path)
            raise

    def _decode_name(self, event, source_path):
        try:
            return event.name.decode('utf-8')
        except UnicodeDecodeError as e:
            raise RewriteError(f"Element name is not valid UTF-8: {e.reason}.",
                               path=str(source_path), position=event.start + 1 + e.start)

    def _expand(self, buffer, source_path, variables, post_list):
        reader = MarkupReader(buffer)
        open_heading = None
        expansions = 0

        while True:
            event = reader.read_event()

            if event.kind is EventKind.EOF:
                return

            if event.kind is EventKind.START:
                name = self._decode_name(event, source_path)
                template = self.templates.get(name)
                if template is not None:
                    expansions += 1
                    if expansions > self.MAX_EXPANSIONS:
                        raise RewriteError(f"Template inclusion of '{name}' does not terminate.",
                                           position=event.start)
                    logger.debug(f"Including template '{name}' at position {event.start} of {source_path}")
                    buffer[event.start:event.end] = template.content
                    substitute_variables(buffer, variables, event.start,
                                         event.start + len(template.content), post_list)
                    reader.reset(0)
                    open_heading = None
                    continue
                if name.lower() in HEADING_NAMES and not event.self_closing:
                    open_heading = (name.lower(), event.start, event.end)
                continue

            if event.kind is EventKind.END:
                name = self._decode_name(event, source_path)
                if name in self.templates:
                    del buffer[event.start:event.end]
                    reader.reset(event.start)
                    continue
                if open_heading is not None and open_heading[0] == name.lower():
                    upgraded_end = self._upgrade_heading(buffer, open_heading, event)
                    if upgraded_end is not None:
                        reader.reset(upgraded_end)
                    open_heading = None

    def _upgrade_heading(self, buffer, open_heading, end_event):
        """Anchor a heading in place; returns where scanning continues, or None if unchanged."""
        _, start, start_end = open_heading
        start_tag = bytes(buffer[start:start_end])
        inner = bytes(buffer[start_end:end_event.start])
        # Upgraded headings and headings that already link somewhere are left alone
        if HEADER_CLASS in start_tag or LINK_START_PATTERN.search(inner):
            return None

        try:
            text = inner.decode('utf-8')
        except UnicodeDecodeError as e:
            raise RewriteError(f"Heading text is not valid UTF-8: {e.reason}.",
                               position=start_end + e.start)

        existing_id = ID_ATTRIBUTE_PATTERN.search(start_tag)
        if existing_id:
            anchor_id = existing_id.group(1)
        else:
            anchor_id = get_id_from_name(text.strip()).encode('utf-8')

        tag_body = start_tag[:-1].rstrip()
        if CLASS_ATTRIBUTE_PATTERN.search(tag_body):
            tag_body = CLASS_ATTRIBUTE_PATTERN.sub(
                lambda m: m.group(1) + HEADER_CLASS + b' ' + m.group(2) + m.group(3), tag_body, count=1
            )
        else:
            tag_body += b' class="' + HEADER_CLASS + b'"'
        if not existing_id:
            tag_body += b' id="' + anchor_id + b'"'

        replacement = tag_body + b'><a href="#' + anchor_id + b'">' + inner + b'</a>'
        buffer[start:end_event.start] = replacement
        return start + len(replacement) + (end_event.end - end_event.start)

    def _finish(self, buffer) -> bytes:
        if not self.production:
            return bytes(buffer)
        try:
            markup = buffer.decode('utf-8')
        except UnicodeDecodeError as e:
            raise RewriteError(f"Page is not valid UTF-8: {e.reason}.", position=e.start)
        return minify_markup(markup).encode('utf-8')
