"""
Template fragment repository.

Every file below `<project>/templates` is a fragment. The fragment's name is
the file name without its extension; a page includes it by using an element
of the same name, e.g. `<site-header>` for `templates/site-header.html`.
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

from .errors import TemplateRepositoryError


@dataclass
class Template:
    name: str
    content: bytes

    @classmethod
    def load(cls, file_path):
        name = os.path.splitext(os.path.basename(file_path))[0]
        with open(file_path, 'rb') as f:
            return cls(name=name, content=f.read())


class TemplateRepository:
    """Name to fragment lookup, loaded once before the build starts."""

    def __init__(self, templates: Optional[Dict[str, Template]] = None):
        self.templates = templates or {}

    @classmethod
    def load(cls, project_dir):
        templates_dir = os.path.join(project_dir, 'templates')
        if not os.path.isdir(templates_dir):
            raise TemplateRepositoryError(f"Templates directory not found: {templates_dir}")

        logger = logging.getLogger('Vellum')
        templates = {}
        for root, dirs, files in os.walk(templates_dir):
            dirs.sort()
            for file in sorted(files):
                file_path = os.path.join(root, file)
                try:
                    template = Template.load(file_path)
                except (IOError, OSError) as e:
                    raise TemplateRepositoryError(f"Failed to read template {file_path}: {e}")
                # A later file with the same stem replaces the earlier one
                templates[template.name] = template
                logger.debug(f"Loaded template: {file_path}")

        return cls(templates)

    @classmethod
    def from_strings(cls, fragments):
        """Build a repository from a name to markup mapping."""
        return cls({
            name: Template(name=name, content=content.encode('utf-8'))
            for name, content in fragments.items()
        })

    def get(self, name) -> Optional[Template]:
        return self.templates.get(name)

    def __contains__(self, name):
        return name in self.templates

    def __len__(self):
        return len(self.templates)
