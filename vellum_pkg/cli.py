#!/usr/bin/env python3
"""
Command-line interface for Vellum - static site generator.
"""

import os
import sys
import argparse
import time
from typing import List, Optional

from . import __version__
from .core import Vellum
from .errors import VellumError
from .settings import VellumSettings

STARTER_FILES = {
    'templates/site-head.html': """<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<link rel="stylesheet" href="/static/css/style.css">
""",
    'templates/site-nav.html': """<nav class="site-nav">
<a href="/index.html">Home</a>
<a href="/blog/welcome.html">Blog</a>
</nav>
""",
    'content/_template.html': """<!DOCTYPE html>
<html lang="en">
<head>
<site-head>
<title>{{title}}</title>
</head>
<body>
<site-nav>
<main>
<aside class="toc"><ul>{{md_table_of_contents}}</ul></aside>
<article>
<h1>{{title}}</h1>
{{md_content}}
<h2 id="references">References</h2>
<ol class="references">{{md_cite_notes}}</ol>
</article>
</main>
</body>
</html>
""",
    'content/blog/welcome.md': """---
title: "Welcome to Vellum"
description: "The first post of a new site."
tags: ["meta", "vellum"]
date: 2025-01-01T09:00:00Z
draft: false
technical: false
difficulty: 1
---

# Welcome to Vellum

## What is this?

A post written in markdown[_cn The Vellum sources](https://example.com/vellum https://web.archive.org/web/2025/https://example.com/vellum).

## What next?

Edit `content/blog/welcome.md` and run `vellum` again.
""",
    'content/index.html': """<!DOCTYPE html>
<html lang="en">
<head>
<site-head>
{{title:Home}}
<title>{{title}}</title>
</head>
<body>
<site-nav>
<main>
<h1>Latest posts</h1>
{{md_post_list}}
</main>
</body>
</html>
""",
    'static/css/style.css': """body {
    font-family: sans-serif;
    margin: 0 auto;
    max-width: 48rem;
}
""",
}


def create_starter_structure() -> None:
    """Create a starter project with templates, content and static files."""
    current_dir = os.getcwd()

    for relative_path, content in STARTER_FILES.items():
        file_path = os.path.join(current_dir, relative_path)
        if os.path.exists(file_path):
            print(f"File already exists: {relative_path}")
            continue
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(content)
        print(f"Created file: {relative_path}")

    print("\n✅ Starter structure created successfully!")
    print("\nNext steps:")
    print("1. Edit the configuration file (vellum.yml)")
    print("2. Add template fragments to the 'templates/' directory")
    print("3. Add your content to 'content/'")
    print("4. Run 'vellum' to build your site")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Vellum - Static Site Generator')
    parser.add_argument('--project', type=str,
                        help='Project directory holding templates/, content/ and static/')
    parser.add_argument('--output', type=str,
                        help='Output directory for generated site')
    parser.add_argument('--production', action='store_true', default=None,
                        help='Minify generated HTML, CSS and JS')
    parser.add_argument('--no-compress', dest='compress', action='store_false', default=None,
                        help='Do not write .deflate files next to the output')
    parser.add_argument('--strict', action='store_true', default=None,
                        help='Exit with an error if any content file fails')
    parser.add_argument('--workers', type=int,
                        help='Number of worker processes for large sites')
    parser.add_argument('--logs', type=str,
                        help='Directory for build log files')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and starter project')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    # Handle init command
    if args.init:
        settings_loader = VellumSettings()
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample configuration file: {config_path}")

        print("\nCreating starter project structure...")
        create_starter_structure()
        return 0

    # Load settings from configuration file
    settings_loader = VellumSettings()
    settings_loader.load_settings()

    # Command line arguments take precedence
    args_dict = {k: v for k, v in vars(args).items() if v is not None}
    final_settings = settings_loader.merge_with_args(args_dict)

    output_dir = os.path.expanduser(final_settings['output'])

    overall_start_time = time.time()
    generator = Vellum(
        project_dir=os.path.expanduser(final_settings['project']),
        output_dir=output_dir,
        production=final_settings['production'],
        compress=final_settings['compress'],
        workers=final_settings['workers'],
        strict=final_settings['strict'],
        log_dir=final_settings['logs'],
    )

    try:
        result = generator.build()
    except VellumError as e:
        generator.logger.error(f"Build failed: {e}")
        return 1

    total_time = time.time() - overall_start_time
    generator.logger.info(f"Generated website in {total_time:.6f} seconds.")

    for issue in result.errors:
        print(f"Error: {issue}", file=sys.stderr)

    if generator.failed:
        generator.logger.error(f"{len(result.errors)} content files failed in strict mode.")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
