"""
Typed content metadata per site section.

The section of a markdown file is decided by the first directory of its path
below the content root. Blog posts must carry a full set of front matter
fields; the other sections carry no extra fields.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from .errors import MetadataError
from .frontmatter import ValueKind


class Section(Enum):
    BLOG = 'blog'
    EXP = 'exp'
    PAGE = 'page'


SECTION_DIRECTORIES = {
    'blog': Section.BLOG,
    'exp': Section.EXP,
}


@dataclass
class BlogContent:
    link: str
    title: str
    description: str
    tags: List[str] = field(default_factory=list)
    publish_date: Optional[datetime] = None
    draft: bool = False
    technical: bool = False
    difficulty: float = 0.0

    section = Section.BLOG


@dataclass
class ExpContent:
    link: str

    section = Section.EXP


@dataclass
class PageContent:
    link: str

    section = Section.PAGE


ContentMetadata = Union[BlogContent, ExpContent, PageContent]


def classify_path(link) -> Section:
    """
    Return the section for a content link such as `blog/my-post`.

    Files directly below the content root are pages. Files in any directory
    other than a known section raise MetadataError.
    """
    parts = link.split('/')
    if len(parts) == 1:
        return Section.PAGE
    section = SECTION_DIRECTORIES.get(parts[0])
    if section is None:
        raise MetadataError(f"Unable to classify content path '{link}' into a site section.")
    return section


def _require(values, key, kind):
    value = values.get(key)
    if value is None:
        raise MetadataError(f"Missing required front matter field '{key}'.")
    if value.kind is not kind:
        raise MetadataError(
            f"Front matter field '{key}' must be of type {kind.value}, got {value.kind.value}."
        )
    return value.value


def build_metadata(link, values) -> ContentMetadata:
    """Validate the front matter of a file and build its section metadata."""
    section = classify_path(link)

    if section is Section.BLOG:
        tags = _require(values, 'tags', ValueKind.ARRAY)
        for tag in tags:
            if tag.kind is not ValueKind.STRING:
                raise MetadataError("Front matter field 'tags' must only contain strings.")
        return BlogContent(
            link=link,
            title=_require(values, 'title', ValueKind.STRING),
            description=_require(values, 'description', ValueKind.STRING),
            tags=[tag.value for tag in tags],
            publish_date=_require(values, 'date', ValueKind.DATE),
            draft=_require(values, 'draft', ValueKind.BOOL),
            technical=_require(values, 'technical', ValueKind.BOOL),
            difficulty=_require(values, 'difficulty', ValueKind.NUMBER),
        )

    if section is Section.EXP:
        return ExpContent(link=link)

    return PageContent(link=link)
