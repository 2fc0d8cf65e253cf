"""
Preliminary analysis of content files.

The first pass over the content tree. Each file is analysed on its own:
markdown is parsed and rendered into variables and the page skeleton it will
be poured into is located. Nothing here expands templates or looks at other
files.
"""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from .errors import ContentError, TemplateNotFoundError
from .frontmatter import format_timestamp, parse_front_matter
from .markdown_renderer import compute_read_time
from .metadata import BlogContent, ContentMetadata, build_metadata
from .variables import ContentVariables

TEMPLATE_FILE_NAME = '_template.html'
CONTENT_EXTENSIONS = ('.html', '.md')
# Front matter may not override variables set by the generator
RESERVED_VARIABLE = 'link'
GENERATED_VARIABLE_PREFIX = 'md_'

logger = logging.getLogger('ContentProcessor')


@dataclass
class PreliminaryAnalysisOutput:
    path: str
    template_path: str
    variables: ContentVariables
    content: Optional[ContentMetadata] = None

    @property
    def is_markdown(self):
        return self.path.endswith('.md')


def discover_content_files(content_dir) -> List[str]:
    """Get all content files below a directory, skipping page skeletons."""
    content_files = []
    if not os.path.isdir(content_dir):
        return content_files
    for root, dirs, files in os.walk(content_dir):
        dirs.sort()
        for file in sorted(files):
            if file == TEMPLATE_FILE_NAME or not file.endswith(CONTENT_EXTENSIONS):
                continue
            content_files.append(os.path.join(root, file))
            logger.debug(f"Added file '{os.path.join(root, file)}' to processing tasks.")
    return content_files


def get_file_link(content_dir, path):
    """Permalink of a content file: its path below the content root without extension."""
    relative_path = os.path.relpath(path, content_dir)
    link = os.path.splitext(relative_path)[0]
    return link.replace(os.sep, '/')


def find_template(project_dir, path):
    """Find the nearest `_template.html` above a file, stopping at the project root."""
    project_dir = os.path.abspath(project_dir)
    directory = os.path.dirname(os.path.abspath(path))
    while True:
        candidate = os.path.join(directory, TEMPLATE_FILE_NAME)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(directory)
        if directory == project_dir or parent == directory:
            break
        directory = parent

    raise TemplateNotFoundError(f"Template not found for file '{path}'.", path=str(path))


def read_text(path):
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise ContentError(f"File is not valid UTF-8: {e.reason}.", path=str(path), position=e.start)


def analyze_markdown(path, link, renderer, variables, report=None) -> ContentMetadata:
    """Render a markdown file into `variables` and return its section metadata."""
    values, body = parse_front_matter(read_text(path), report)
    content = build_metadata(link, values)

    for key, value in values.items():
        if key == RESERVED_VARIABLE or key.startswith(GENERATED_VARIABLE_PREFIX):
            if report:
                report.warning(f"Front matter key '{key}' is reserved and was ignored.")
            continue
        variables.insert(key, value.to_variable())

    rendered = renderer.render(body, link_references=True, report=report)
    variables.insert('md_content', rendered.html)
    variables.insert('md_cite_notes', rendered.cite_notes)
    variables.insert('md_table_of_contents', rendered.toc_desktop)
    variables.insert('md_table_of_contents_mobile', rendered.toc_mobile)

    difficulty = content.difficulty if isinstance(content, BlogContent) else 0.0
    variables.insert('md_word_count', str(rendered.word_count))
    variables.insert('md_read_time', str(compute_read_time(rendered.word_count, difficulty)))

    if isinstance(content, BlogContent):
        variables.insert('md_publish_date', content.publish_date.strftime('%B %d, %Y'))
        variables.insert('md_publish_timestamp', format_timestamp(content.publish_date))

    return content


def analyze_file(path, project_dir, content_dir, renderer, report=None) -> PreliminaryAnalysisOutput:
    """
    Analyse one content file.

    Markdown files are rendered and matched with the closest `_template.html`;
    HTML files are their own skeleton.

    Raises:
        ContentError: If the file cannot be analysed. Other files are unaffected.
    """
    logger.info(f"Analyzing file '{path}'")

    variables = ContentVariables()
    link = get_file_link(content_dir, path)
    variables.insert('link', link)

    content = None
    try:
        if path.endswith('.md'):
            content = analyze_markdown(path, link, renderer, variables, report)
            template_path = find_template(project_dir, path)
        else:
            template_path = path
    except ContentError as e:
        if e.path is None:
            e.path = str(path)
        raise

    return PreliminaryAnalysisOutput(
        path=path,
        template_path=template_path,
        variables=variables,
        content=content,
    )
