"""Bridge from styled lines to the terminal surface.

Tokens are resolved against a RenderTheme here and nowhere else. Textual
widgets take `Strip`s; plain console output takes rich `Text`.
"""

from __future__ import annotations

from typing import Iterable

from rich.segment import Segment
from rich.text import Text
from textual.strip import Strip

from termrender.core.lines import StyledLine
from termrender.render.cache import CacheEntry
from termrender.theme import RenderTheme


def line_to_segments(line: StyledLine, theme: RenderTheme) -> list[Segment]:
    return [Segment(span.text, theme.resolve(span.token) or None) for span in line.spans]


def line_to_strip(line: StyledLine, theme: RenderTheme, width: int | None = None) -> Strip:
    strip = Strip(line_to_segments(line, theme), line.cell_length)
    return strip.adjust_cell_length(width) if width is not None else strip


def to_strips(lines: Iterable[StyledLine], theme: RenderTheme, width: int | None = None) -> list[Strip]:
    return [line_to_strip(line, theme, width) for line in lines]


def entry_strips(entry: CacheEntry, theme: RenderTheme, width: int) -> list[Strip]:
    """Strips for a cache entry, memoized on the entry per theme and width."""
    memo_key = f"{theme.version}:{width}"
    strips = entry.strips.get(memo_key)
    if strips is None:
        strips = to_strips(entry.lines, theme, width)
        entry.strips[memo_key] = strips
    return strips


def line_to_text(line: StyledLine, theme: RenderTheme) -> Text:
    text = Text(no_wrap=True, end="")
    for span in line.spans:
        text.append(span.text, theme.resolve(span.token) or None)
    return text
