"""Width-keyed render cache.

One slot per block index. A slot holds the block fingerprint it was rendered
from plus a single entry keyed by

    (block index, width, theme version, highlighter key or None)

The highlighter key is (name, version) for blocks that use highlighting and
None for everything else, so swapping highlighters leaves plain-text entries
valid. An entry is used only on an exact key match; a new fingerprint, width,
theme version or highlighter replaces the slot. There is no size- or
time-based eviction: the live slot count is bounded by the document.

// [LAW:one-source-of-truth] Cache validity is key equality; no other checks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from textual.strip import Strip

from termrender.core.blocks import Block
from termrender.core.lines import StyledLine
from termrender.highlight import NO_HIGHLIGHT, Highlighter, highlighter_key
from termrender.render.renderer import render_block

logger = logging.getLogger(__name__)

CacheKey = tuple[int, int, str, "tuple[str, str] | None"]


@dataclass
class CacheEntry:
    key: CacheKey
    lines: list[StyledLine]
    max_width: int  # display cells, for horizontal scroll bounds
    char_length: int  # characters across all lines
    uses_highlighter: bool = False
    strips: dict[str, list[Strip]] = field(default_factory=dict, repr=False)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    renders: int = 0
    invalidations: int = 0


def cache_key(block: Block, width: int, theme_version: str, highlighter: Highlighter) -> CacheKey:
    hl = highlighter_key(highlighter) if block.uses_highlighter else None
    return (block.index, width, theme_version, hl)


class WidthKeyedCache:
    def __init__(self) -> None:
        self._slots: dict[int, tuple[str, CacheEntry]] = {}
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, index: int) -> bool:
        return index in self._slots

    def entry(
        self,
        block: Block,
        width: int,
        theme_version: str,
        highlighter: Highlighter | None = None,
    ) -> CacheEntry:
        highlighter = highlighter or NO_HIGHLIGHT
        key = cache_key(block, width, theme_version, highlighter)
        slot = self._slots.get(block.index)
        if slot is not None and slot[0] == block.fingerprint and slot[1].key == key:
            self.stats.hits += 1
            return slot[1]
        self.stats.misses += 1
        lines = render_block(block, width, highlighter)
        self.stats.renders += 1
        entry = CacheEntry(
            key=key,
            lines=lines,
            max_width=max((line.cell_length for line in lines), default=0),
            char_length=sum(len(line) for line in lines),
            uses_highlighter=block.uses_highlighter,
        )
        self._slots[block.index] = (block.fingerprint, entry)
        return entry

    def get_or_render(
        self,
        block: Block,
        width: int,
        theme_version: str,
        highlighter: Highlighter | None = None,
    ) -> list[StyledLine]:
        """Cached lines for `block`; renders and stores them on a miss.

        The returned list is owned by the cache. Callers must not mutate it.
        """
        return self.entry(block, width, theme_version, highlighter).lines

    # ─── invalidation ───

    def invalidate_all(self) -> None:
        self.stats.invalidations += len(self._slots)
        self._slots.clear()

    def invalidate_highlighted(self) -> None:
        stale = [i for i, (_, entry) in self._slots.items() if entry.uses_highlighter]
        for index in stale:
            del self._slots[index]
        self.stats.invalidations += len(stale)

    def invalidate_block(self, index: int) -> None:
        if self._slots.pop(index, None) is not None:
            self.stats.invalidations += 1

    def prune(self, live: Iterable[int]) -> None:
        """Drop slots for block indices that no longer exist."""
        keep = set(live)
        for index in [i for i in self._slots if i not in keep]:
            del self._slots[index]
            self.stats.invalidations += 1

