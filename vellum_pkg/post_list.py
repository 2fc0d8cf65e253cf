"""
The global post list: every published blog post, newest first.

Built once, after every content file has been analysed, and shared read-only
with every page through the `{{md_post_list}}` variable.
"""

import logging

from jinja2 import Environment, TemplateError

from .errors import PostListError
from .frontmatter import format_timestamp
from .metadata import BlogContent

POST_CARD_TEMPLATE = """\
<article class="post-card">
<h3 class="post-title"><a href="/{{ post.link }}">{{ post.title }}</a></h3>
<time datetime="{{ timestamp }}" title="{{ full_date }}">{{ date }}</time>
<p class="post-description">{{ post.description }}</p>
<ul class="post-tags">{% for tag in post.tags %}<li class="tag">{{ tag }}</li>{% endfor %}</ul>
</article>
"""

EMPTY_POST_LIST = '<p class="post-list-empty">There are no posts yet.</p>'

env = Environment(autoescape=True, keep_trailing_newline=True)
post_card_template = env.from_string(POST_CARD_TEMPLATE)


def published_posts(analyses):
    """Non-draft blog posts sorted by publish date, newest first; ties keep input order."""
    posts = [
        analysis.content for analysis in analyses
        if isinstance(analysis.content, BlogContent) and not analysis.content.draft
    ]
    return sorted(posts, key=lambda post: post.publish_date, reverse=True)


def render_post_card(post: BlogContent):
    return post_card_template.render(
        post=post,
        timestamp=format_timestamp(post.publish_date),
        full_date=post.publish_date.strftime('%A, %B %d, %Y %H:%M:%S UTC'),
        date=post.publish_date.strftime('%B %d, %Y'),
    )


def build_post_list(analyses):
    """
    Render the post list fragment from all preliminary analysis outputs.

    Raises:
        PostListError: If a post cannot be rendered.
    """
    posts = published_posts(analyses)
    logging.getLogger('Vellum').info(f"Building post list with {len(posts)} posts")
    if not posts:
        return EMPTY_POST_LIST
    try:
        return ''.join(render_post_card(post) for post in posts)
    except (TemplateError, AttributeError, ValueError) as e:
        raise PostListError(f"Unable to render the post list: {e}")
