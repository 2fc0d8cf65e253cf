"""Test configuration and fixtures for Vellum tests."""

import pytest
import tempfile
import shutil
import logging
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from vellum_pkg.results import FileReport


def write_blog_post(content_dir, name, title, date, draft='false', difficulty='1', body=None):
    """Write a blog post with a complete front matter block."""
    post = Path(content_dir) / 'blog' / f'{name}.md'
    post.parent.mkdir(parents=True, exist_ok=True)
    post.write_text(f"""---
title: "{title}"
description: "About {title}"
tags: ["python", "web"]
date: {date}
draft: {draft}
technical: true
difficulty: {difficulty}
---

{body or f'## {title}'}
""", encoding='utf-8')
    return str(post)


@pytest.fixture(autouse=True)
def reset_loggers():
    """Drop build log handlers so every test configures logging afresh."""
    yield
    for name in ('Vellum', 'ContentProcessor'):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers = []


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def report():
    """A file report collecting warnings."""
    return FileReport('content/test.md')


@pytest.fixture
def sample_project(temp_dir):
    """Create a small project with fragments, skeletons, content and static files."""
    project = Path(temp_dir) / 'project'
    templates_dir = project / 'templates'
    content_dir = project / 'content'
    static_dir = project / 'static' / 'css'
    templates_dir.mkdir(parents=True)
    content_dir.mkdir(parents=True)
    static_dir.mkdir(parents=True)

    (templates_dir / 'site-head.html').write_text('<title>{{title}}</title>\n')
    (templates_dir / 'site-nav.html').write_text('<nav><a href="/{{link}}">here</a></nav>\n')

    (content_dir / '_template.html').write_text("""<!DOCTYPE html>
<html>
<head>
<site-head>
</head>
<body>
<site-nav>
<ul class="toc">{{md_table_of_contents}}</ul>
<main>{{md_content}}</main>
<ol class="references">{{md_cite_notes}}</ol>
</body>
</html>
""")
    (content_dir / 'index.html').write_text("""<!DOCTYPE html>
<html>
<head>
{{title:Home}}
<site-head>
</head>
<body>
<section class="posts">{{md_post_list}}</section>
</body>
</html>
""")
    (content_dir / 'about.md').write_text("""---
title: "About"
---

## Who we are

Two people writing about the web[_cn The web](https://www.example.com/web https://web.archive.org/web/2024/https://example.com/web).
""")

    write_blog_post(content_dir, 'first', 'First Post', '2024-01-01T10:00:00Z')
    write_blog_post(content_dir, 'second', 'Second Post', '2024-02-01T10:00:00Z')
    write_blog_post(content_dir, 'hidden', 'Hidden Post', '2024-03-01T10:00:00Z', draft='true')

    (static_dir / 'style.css').write_text('body {\n    margin: 0;\n}\n')
    (project / 'static' / 'app.js').write_text('function add(a, b) {\n    return a + b;\n}\n')

    return str(project)
