"""Small helpers shared by the termrender test modules."""

from termrender.adapters.base import parse
from termrender.adapters.registry import get_adapter
from termrender.render.renderer import render_block


def texts(lines):
    """Plain text of each styled line."""
    return [line.text for line in lines]


def parse_fmt(text, fmt="markdown", options=None):
    return parse(get_adapter(fmt), text, options)


def render_md(text, width=80, options=None, highlighter=None):
    """Render markdown blocks the way Document joins them (one blank line between)."""
    out = []
    for block in parse_fmt(text, "markdown", options):
        lines = render_block(block, width, highlighter)
        if lines and out:
            out.append("")
        out.extend(line.text for line in lines)
    return out
