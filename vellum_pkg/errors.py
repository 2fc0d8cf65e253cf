"""
Exception types raised while building a Vellum site.

ContentError and its subclasses stop processing of a single content file and
are recorded in the build result. The remaining VellumError subclasses abort
the whole run.
"""

from typing import Optional


class VellumError(Exception):
    """Base class for all Vellum errors."""


class ContentError(VellumError):
    """An error that is fatal to one content file only."""

    def __init__(self, message: str, path: Optional[str] = None, position: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.position = position

    def __str__(self):
        location = ''
        if self.path:
            location = f"{self.path}"
            if self.position is not None:
                location += f" at position {self.position}"
            location += ": "
        return f"{location}{self.message}"


class FrontMatterError(ContentError):
    """A front matter value could not be parsed."""


class MetadataError(ContentError):
    """Required front matter fields are missing or have the wrong type."""


class TemplateNotFoundError(ContentError):
    """No `_template.html` exists above a markdown file."""


class CitationError(ContentError):
    """A citation marker is malformed."""


class VariableError(ContentError):
    """A `{{...}}` marker could not be resolved."""

    def __init__(self, message: str, key: Optional[str] = None, path: Optional[str] = None,
                 position: Optional[int] = None):
        super().__init__(message, path=path, position=position)
        self.key = key


class RewriteError(ContentError):
    """The markup of a page could not be rewritten."""


class TemplateRepositoryError(VellumError):
    """The template fragments could not be loaded."""


class PostListError(VellumError):
    """The global post list could not be built."""


class CellAlreadyAssignedError(RuntimeError):
    """A single-assignment cell was written twice."""


class CellNotAssignedError(RuntimeError):
    """A single-assignment cell was read before it was written."""
