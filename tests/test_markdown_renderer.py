"""Tests for markdown rendering, citation notes and the table of contents."""

import pytest
import os
import re

import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from vellum_pkg.errors import CitationError
from vellum_pkg.markdown_renderer import (
    MarkdownRenderer, NO_HEADERS_PLACEHOLDER, NO_REFERENCES_PLACEHOLDER, REFERENCES_LINK,
    TOP_LINK, compute_read_time, count_words, generate_cite_notes,
    generate_table_of_contents, get_id_from_name
)

ARCHIVE = 'https://web.archive.org/web/2024/https://example.com/a'


class TestGetIdFromName:
    """Test cases for heading slugs."""

    def test_simple_heading(self):
        """Test words are lowercased and joined with dashes."""
        assert get_id_from_name('Hello World_again') == 'hello-world-again'

    def test_leading_number_and_dot_are_dropped(self):
        """Test numbered headings lose their number."""
        assert get_id_from_name('1. Introduction') == 'introduction'

    def test_markup_and_entities(self):
        """Test inline tags are stripped and entities decoded."""
        assert get_id_from_name('<code>Fish</code> &amp; Chips') == 'fish--chips'

    @pytest.mark.parametrize('name', [
        'C++ & Rust!', 'Ünïcödé heading', '3.14 is pi', '  padded  ', 'a/b\\c', '日本語',
    ])
    def test_slug_alphabet(self, name):
        """Test slugs only contain lowercase ASCII letters, digits and dashes."""
        assert re.fullmatch(r'[a-z0-9-]*', get_id_from_name(name))


class TestTableOfContents:
    """Test cases for table of contents generation."""

    def test_nested_headings(self):
        """Test h2, h3, h3, h2 nests the h3 entries under the first h2."""
        desktop, mobile = generate_table_of_contents('<h2>A</h2><h3>B</h3><h3>C</h3><h2>D</h2>')

        expected = (
            '<li><details open><summary><a href="#a">A</a></summary><ul>'
            '<li><a href="#b">B</a></li>'
            '<li><a href="#c">C</a></li></ul></details></li>'
            '<li><a href="#d">D</a></li>'
        )
        assert mobile == expected
        assert desktop == TOP_LINK + expected

    @pytest.mark.parametrize('html', [
        '<h2>A</h2><h3>B</h3><h4>C</h4>',
        '<h2>A</h2><h4>B</h4><h3>C</h3><h2>D</h2>',
        '<h3>A</h3><h2>B</h2><h5>C</h5>',
        '<h2>A</h2><h3>B</h3><h4>C</h4><h3>D</h3><h4>E</h4><h2>F</h2>',
    ])
    def test_output_is_balanced(self, html):
        """Test every opened list, item and details element is closed."""
        _, mobile = generate_table_of_contents(html)
        for tag in ('li', 'ul', 'details', 'summary'):
            assert mobile.count(f'<{tag}>') + mobile.count(f'<{tag} ') == mobile.count(f'</{tag}>')

    def test_h1_is_ignored(self):
        """Test the page title does not appear in the table of contents."""
        _, mobile = generate_table_of_contents('<h1>Title</h1><h2>Part</h2>')
        assert mobile == '<li><a href="#part">Part</a></li>'

    def test_no_headings_placeholder(self):
        """Test documents without headings get a placeholder."""
        assert generate_table_of_contents('<p>text</p>') == (NO_HEADERS_PLACEHOLDER, NO_HEADERS_PLACEHOLDER)

    def test_references_link(self):
        """Test the references entry is appended on request."""
        desktop, mobile = generate_table_of_contents('<h2>Part</h2>', link_references=True)
        assert mobile.endswith(REFERENCES_LINK)
        assert desktop.startswith(TOP_LINK)


class TestCiteNotes:
    """Test cases for citation markers."""

    def test_numbering_and_notes(self, report):
        """Test markers become numbered backlinks with matching notes."""
        html = (f'<p>One[_cn First](https://www.example.com/a {ARCHIVE}) and '
                f'two[_cn Second](https://example.org/b).</p>')
        html, notes, count = generate_cite_notes(html, report)

        assert count == 2
        assert html == (
            '<p>One<a href="#cite-note-1" class="cite-note"><sup>[1]</sup></a> and '
            'two<a href="#cite-note-2" class="cite-note"><sup>[2]</sup></a>.</p>'
        )
        assert notes == (
            '<li id="cite-note-1">First - <a href="https://www.example.com/a">example.com</a>'
            f' - <a href="{ARCHIVE}">archive</a></li>'
            '<li id="cite-note-2">Second - <a href="https://example.org/b">example.org</a></li>'
        )

    def test_missing_archive_warns(self, report):
        """Test a citation without an archive link is kept with a warning."""
        generate_cite_notes('[_cn Source](https://example.org/b)', report)
        assert len(report.warnings) == 1
        assert 'web.archive.org' in report.warnings[0].message

    def test_missing_links_warns(self, report):
        """Test a citation without links renders its description only."""
        _, notes, _ = generate_cite_notes('[_cn Just words]()', report)
        assert notes == '<li id="cite-note-1">Just words</li>'
        assert len(report.warnings) == 1

    def test_bracketed_description_form(self, report):
        """Test the [_cn [description](links)] form consumes its closing bracket."""
        html, notes, count = generate_cite_notes(f'x[_cn [Desc](https://example.com/a {ARCHIVE})]y', report)
        assert count == 1
        assert html == 'x<a href="#cite-note-1" class="cite-note"><sup>[1]</sup></a>y'
        assert notes.startswith('<li id="cite-note-1">Desc - ')

    def test_unclosed_marker_raises(self):
        """Test a marker without a closing parenthesis fails the file."""
        with pytest.raises(CitationError) as excinfo:
            generate_cite_notes('<p>text [_cn broken</p>')
        assert excinfo.value.position == 8

    def test_malformed_url_raises(self, report):
        """Test a link that cannot be parsed as a URL fails the file."""
        with pytest.raises(CitationError, match="not a valid URL"):
            generate_cite_notes(f'[_cn [Desc](http://[x {ARCHIVE})]', report)

    def test_marker_without_separator_raises(self):
        """Test a marker without '](' fails the file."""
        with pytest.raises(CitationError):
            generate_cite_notes('[_cn no separator)')

    def test_no_citations_placeholder(self):
        """Test pages without citations get the placeholder."""
        html, notes, count = generate_cite_notes('<p>plain</p>')
        assert html == '<p>plain</p>'
        assert notes == NO_REFERENCES_PLACEHOLDER
        assert count == 0


class TestMarkdownRenderer:
    """Test cases for the full markdown rendering pass."""

    def test_render_with_citations(self, report):
        """Test markdown citations survive parsing and are numbered."""
        renderer = MarkdownRenderer()
        rendered = renderer.render(
            f'## Intro\n\nText[_cn First](https://www.example.com/a {ARCHIVE}) '
            f'more[_cn Second](https://example.org/b).\n',
            report=report,
        )

        assert rendered.citation_count == 2
        assert '<sup>[1]</sup>' in rendered.html
        assert '<sup>[2]</sup>' in rendered.html
        assert '[_cn' not in rendered.html
        assert rendered.toc_mobile == '<li><a href="#intro">Intro</a></li>' + REFERENCES_LINK
        assert len(report.warnings) == 1

    def test_render_without_citations_has_no_references_link(self):
        """Test the references entry only appears when there are citations."""
        rendered = MarkdownRenderer().render('## Intro\n\nText.\n')
        assert REFERENCES_LINK not in rendered.toc_desktop
        assert rendered.cite_notes == NO_REFERENCES_PLACEHOLDER

    def test_code_blocks_are_escaped(self):
        """Test fenced code is escaped and wrapped."""
        html = MarkdownRenderer().markdown_filter('```\n<b>{{x}}</b>\n```\n')
        assert '<pre style="white-space: pre-wrap;"><code>&lt;b&gt;' in html

    def test_ordinary_links(self):
        """Test links that are not citations render as anchors."""
        html = MarkdownRenderer().markdown_filter('[home](https://example.com)\n')
        assert '<a href="https://example.com">home</a>' in html

    def test_word_count(self):
        """Test the word count of the markdown body."""
        rendered = MarkdownRenderer().render('One two three.\n\nFour five.\n')
        assert rendered.word_count == 5


class TestReadTime:
    """Test cases for the reading time estimate."""

    def test_read_time(self):
        """Test reading time is rounded minutes at the base rate."""
        assert count_words('a b c') == 3
        assert compute_read_time(480) == 2
        assert compute_read_time(0) == 0

    def test_difficulty_slows_reading(self):
        """Test harder articles take longer to read."""
        assert compute_read_time(2400, difficulty=4) > compute_read_time(2400)
