"""
Minification of generated pages and static assets.

Static CSS goes through csscompressor and static JS through rjsmin. Whole
pages, including their inline styles and scripts, are handed to minify-html.
"""

import csscompressor
import minify_html
import rjsmin


def minify_css(css):
    return csscompressor.compress(css)


def minify_js(js):
    return rjsmin.jsmin(js)


def minify_markup(markup):
    """Minify a complete HTML page."""
    return minify_html.minify(markup, minify_css=True, minify_js=True)
