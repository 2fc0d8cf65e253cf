"""
Vellum - A small static site generator for markdown blogs.

Vellum renders markdown content with front matter, citation notes and a table
of contents, pours it into HTML page skeletons built from reusable template
fragments, and writes a minified, deflate-compressed site. Blog posts are
collected into a global post list that every page can include.
"""

__version__ = "1.0.0"

from .core import Vellum, ContentProcessor

__all__ = ['Vellum', 'ContentProcessor']
