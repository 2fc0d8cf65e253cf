"""
Markdown rendering with citation notes and a table of contents.
"""

import html
import logging
import re
from dataclasses import dataclass
from urllib.parse import urlparse

import mistune

from .errors import CitationError

CITE_NOTE_MARKER = '[_cn '
ARCHIVE_PREFIX = 'https://web.archive.org/'

NO_HEADERS_PLACEHOLDER = 'Unfortunately, there are no headers in this article :('
NO_REFERENCES_PLACEHOLDER = 'Unfortunately, there are no references in this article :('

TOP_LINK = '<li><a class="top" href="#">(Top)</a></li>'
REFERENCES_LINK = '<li><a href="#references">References</a></li>'

HEADING_PATTERN = re.compile(r'<h([1-9])(?:\s[^>]*)?>(.*?)</h\1\s*>', re.IGNORECASE | re.DOTALL)
TAG_PATTERN = re.compile(r'<[^>]*>')
WORD_PATTERN = re.compile(r'\w+')

BASE_WORDS_PER_MINUTE = 240.0
DIFFICULTY_PENALTY = 15.0

logger = logging.getLogger('ContentProcessor')


def get_id_from_name(name):
    """
    Turn heading text into an anchor id.

    A single leading digit and then a single leading dot are dropped (so
    `1. Intro` becomes `intro`), spaces and underscores become dashes and
    everything that is not an ASCII letter, digit or dash is removed.
    """
    name = html.unescape(TAG_PATTERN.sub('', name))
    if name[:1].isascii() and name[:1].isdigit():
        name = name[1:]
    if name.startswith('.'):
        name = name[1:]
    name = name.strip()

    slug = []
    for char in name:
        if char.isascii() and char.isalnum():
            slug.append(char.lower())
        elif char in ' _-':
            slug.append('-')
    return ''.join(slug)


def _table_of_contents_entry(header, depth, next_depth):
    entry_id = get_id_from_name(header)
    entry = '<li>'
    if next_depth > depth:
        entry += '<details open><summary>'
    entry += f'<a href="#{entry_id}">{header}</a>'
    if next_depth > depth:
        entry += '</summary><ul>'
    for _ in range(next_depth, depth):
        entry += '</li></ul></details>'
    if next_depth <= depth:
        entry += '</li>'
    return entry


def generate_table_of_contents(html_content, link_references=False):
    """
    Build the table of contents for rendered HTML.

    Returns a `(desktop, mobile)` pair. The desktop variant starts with a link
    back to the top of the page. When the document has no `h2`-`h9` headings
    both variants are a placeholder sentence.
    """
    headers = []
    stack = []
    for match in HEADING_PATTERN.finditer(html_content):
        level = int(match.group(1))
        if level == 1:
            continue
        while stack and stack[-1] >= level:
            stack.pop()
        headers.append((match.group(2).strip(), len(stack)))
        stack.append(level)

    if not headers:
        return NO_HEADERS_PLACEHOLDER, NO_HEADERS_PLACEHOLDER

    entries = []
    for index, (header, depth) in enumerate(headers):
        next_depth = headers[index + 1][1] if index + 1 < len(headers) else 0
        entries.append(_table_of_contents_entry(header, depth, next_depth))

    table_of_contents = ''.join(entries)
    if link_references:
        table_of_contents += REFERENCES_LINK

    return TOP_LINK + table_of_contents, table_of_contents


def _host_name(link):
    try:
        host = urlparse(html.unescape(link)).hostname
    except ValueError:
        host = None
    if not host:
        raise CitationError(f"Cite note link '{link}' is not a valid URL.")
    if host.startswith('www.'):
        host = host[len('www.'):]
    return host


def generate_cite_note(payload, cite_note_id, report=None):
    """
    Render the list item for one citation payload.

    The payload is the text between the marker and the closing parenthesis,
    `description](url1 url2 ... archive-url`.
    """
    bracket_index = payload.find('](')
    if bracket_index == -1:
        raise CitationError("Unable to find the link separator '](' of a cite note.")

    description = payload[:bracket_index].strip()
    if description.startswith('['):
        description = description[1:].strip()
    links = payload[bracket_index + 2:].split()

    item = f'<li id="cite-note-{cite_note_id}">'
    if description:
        item += description

    if not links:
        message = f"Cite note {cite_note_id} does not have any link."
        if report:
            report.warning(message)
        else:
            logger.warning(message)
        return item + '</li>'

    archive = None
    if links[-1].startswith(ARCHIVE_PREFIX):
        archive = links.pop()
    else:
        message = f"Cite note {cite_note_id} does not have a link to '{ARCHIVE_PREFIX}'."
        if report:
            report.warning(message)
        else:
            logger.warning(message)

    sources = ', '.join(f'<a href="{link}">{_host_name(link)}</a>' for link in links)
    if description and sources:
        item += ' - '
    item += sources
    if archive:
        item += f' - <a href="{archive}">archive</a>'
    return item + '</li>'


def generate_cite_notes(html_content, report=None):
    """
    Replace citation markers with numbered backlinks.

    Returns `(html, cite_notes, count)` where `cite_notes` is the list items of
    the reference list, or a placeholder sentence when there are none.
    """
    cite_notes = []
    index = 0
    while True:
        position = html_content.find(CITE_NOTE_MARKER, index)
        if position == -1:
            break

        payload_start = position + len(CITE_NOTE_MARKER)
        end = html_content.find(')', payload_start)
        if end == -1:
            raise CitationError("Unable to find the closing parenthesis of a cite note.",
                                position=position)

        payload = html_content[payload_start:end]
        cite_note_id = len(cite_notes) + 1
        try:
            cite_notes.append(generate_cite_note(payload, cite_note_id, report))
        except CitationError as e:
            raise CitationError(e.message, position=position)

        marker_end = end + 1
        # `[_cn [description](links)]` form closes with an extra bracket
        if payload.lstrip().startswith('[') and html_content[marker_end:marker_end + 1] == ']':
            marker_end += 1

        backlink = (f'<a href="#cite-note-{cite_note_id}" class="cite-note">'
                    f'<sup>[{cite_note_id}]</sup></a>')
        html_content = html_content[:position] + backlink + html_content[marker_end:]
        index = position + len(backlink)

    if not cite_notes:
        return html_content, NO_REFERENCES_PLACEHOLDER, 0
    return html_content, ''.join(cite_notes), len(cite_notes)


def count_words(text):
    return len(WORD_PATTERN.findall(text))


def compute_read_time(word_count, difficulty=0.0):
    """Estimated reading time in whole minutes; harder articles read slower."""
    words_per_minute = max(BASE_WORDS_PER_MINUTE - difficulty * DIFFICULTY_PENALTY, 1.0)
    return round(word_count / words_per_minute)


@dataclass
class RenderedMarkdown:
    html: str
    toc_desktop: str
    toc_mobile: str
    cite_notes: str
    citation_count: int
    word_count: int


class MarkdownRenderer:
    def __init__(self):
        self.markdown_parser = self.create_markdown_parser()

    def create_markdown_parser(self):
        """Create a Mistune markdown parser with a custom renderer."""
        class CustomRenderer(mistune.HTMLRenderer):
            def __init__(self):
                super().__init__(escape=False)

            def block_code(self, code, info=None):
                escaped_code = mistune.escape(code)
                return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>\n'.format(escaped_code)

            def link(self, text, url, title=None):
                # Cite notes with a single URL parse as links, keep them as markers
                if text.startswith('_cn '):
                    return '[' + text + '](' + self.safe_url(url) + ')'
                return super().link(text, url, title)

        return mistune.create_markdown(
            renderer=CustomRenderer(),
            plugins=['table', 'task_lists', 'strikethrough']
        )

    def markdown_filter(self, text):
        """Convert markdown text to HTML."""
        return self.markdown_parser(text)

    def render(self, body, link_references=True, report=None) -> RenderedMarkdown:
        """Render a markdown body (front matter already removed)."""
        html_content = self.markdown_filter(body)
        html_content, cite_notes, citation_count = generate_cite_notes(html_content, report)
        toc_desktop, toc_mobile = generate_table_of_contents(
            html_content, link_references=link_references and citation_count > 0
        )
        return RenderedMarkdown(
            html=html_content,
            toc_desktop=toc_desktop,
            toc_mobile=toc_mobile,
            cite_notes=cite_notes,
            citation_count=citation_count,
            word_count=count_words(body),
        )
