"""Static document: source text → blocks → cached styled lines.

set_source() re-parses and invalidates only the blocks whose fingerprint
changed. Theme and highlighter swaps are explicit calls; render output is a
function of (blocks, width, theme version, highlighter) and nothing else.
"""

from __future__ import annotations

import logging
from typing import Iterable, TypeVar

from textual.strip import Strip

from termrender import golden
from termrender.adapters.base import parse
from termrender.adapters.registry import get_adapter
from termrender.core.blocks import Block, BlockKind
from termrender.core.lines import BLANK, StyledLine
from termrender.highlight import NO_HIGHLIGHT, Highlighter, highlighter_key
from termrender.options import RenderOptions
from termrender.render.cache import WidthKeyedCache
from termrender.render.strips import entry_strips
from termrender.theme import RenderTheme, build_theme

logger = logging.getLogger(__name__)

T = TypeVar("T")


def join_blocks(rendered: Iterable[list[T]], separator: int, blank: T) -> list[T]:
    """Concatenate per-block lines with `separator` blanks between non-empty blocks."""
    out: list[T] = []
    for lines in rendered:
        if not lines:
            continue
        if out and separator:
            out.extend([blank] * separator)
        out.extend(lines)
    return out


def display_order(blocks: list[Block], options: RenderOptions) -> list[Block]:
    """Blocks in render order: source order, or footnotes last when footnotes_at_end."""
    if not options.footnotes_at_end:
        return blocks
    body = [block for block in blocks if block.kind is not BlockKind.FOOTNOTE]
    notes = [block for block in blocks if block.kind is BlockKind.FOOTNOTE]
    return body + notes


class Document:
    def __init__(
        self,
        fmt: str = "markdown",
        options: RenderOptions | None = None,
        theme: RenderTheme | None = None,
        highlighter: Highlighter | None = None,
    ):
        self.adapter = get_adapter(fmt)
        self.options = options or RenderOptions()
        self.theme = theme or build_theme()
        self.highlighter = highlighter or NO_HIGHLIGHT
        self.cache = WidthKeyedCache()
        self.blocks: list[Block] = []
        self._source: str | bytes = ""

    @classmethod
    def from_text(cls, raw: str | bytes, fmt: str = "markdown", **kwargs) -> "Document":
        doc = cls(fmt, **kwargs)
        doc.set_source(raw)
        return doc

    # ─── inputs ───

    def set_source(self, raw: str | bytes) -> list[int]:
        """Re-parse; return the indices of blocks whose content changed."""
        self._source = raw
        blocks = parse(self.adapter, raw, self.options)
        changed = [
            block.index
            for block in blocks
            if block.index >= len(self.blocks) or self.blocks[block.index].fingerprint != block.fingerprint
        ]
        for index in changed:
            self.cache.invalidate_block(index)
        self.cache.prune(range(len(blocks)))
        self.blocks = blocks
        logger.debug("parsed %d blocks (%d changed)", len(blocks), len(changed))
        return changed

    def set_options(self, options: RenderOptions) -> list[int]:
        self.options = options
        return self.set_source(self._source)

    def set_theme(self, theme: RenderTheme) -> None:
        if theme.version != self.theme.version:
            self.cache.invalidate_all()
        self.theme = theme

    def set_highlighter(self, highlighter: Highlighter) -> None:
        if highlighter_key(highlighter) != highlighter_key(self.highlighter):
            self.cache.invalidate_highlighted()
        self.highlighter = highlighter

    # ─── outputs ───

    def render(self, width: int) -> list[StyledLine]:
        rendered = (
            self.cache.get_or_render(block, width, self.theme.version, self.highlighter)
            for block in display_order(self.blocks, self.options)
        )
        return join_blocks(rendered, self.adapter.separator, BLANK)

    def render_strips(self, width: int) -> list[Strip]:
        rendered = (
            entry_strips(self.cache.entry(block, width, self.theme.version, self.highlighter), self.theme, width)
            for block in display_order(self.blocks, self.options)
        )
        return join_blocks(rendered, self.adapter.separator, Strip.blank(width))

    def content_width(self, width: int) -> int:
        """Widest rendered line in cells, for horizontal scroll bounds."""
        return max(
            (self.cache.entry(block, width, self.theme.version, self.highlighter).max_width for block in self.blocks),
            default=0,
        )

    def render_plain(self, width: int) -> str:
        return golden.to_plain(self.render(width))
