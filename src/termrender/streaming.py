"""Streaming document: an append-only arena of committed blocks plus one
pending tail that grows with every delta.

    append(delta)   → pending text grows; completed chunks are sealed
    finalize()      → everything left is sealed
    render(width)   → committed lines (cached, built incrementally)
                      ++ a fresh render of the pending tail

Sealing is one-directional (OPEN → SEALED). A sealed block is built once,
rendered once per layout (width, theme, highlighter) through the cache, and
never touched again. Chunk boundaries come from the same adapter split()
used by a one-shot parse, run only over complete lines of the pending text,
so the finalized stream renders exactly like Document over the full text.

finalize() also re-resolves document-wide context (markdown link references
defined after their use) and rebuilds the committed blocks it changes; their
indices are reported in StreamUpdate.revised.

Open code fences in the pending tail are capped to their last N lines while
streaming. The cap applies to the transient view only; sealed content is
always rendered in full.

// [LAW:single-enforcer] Only _seal() moves text from the pending slot into the arena.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass
from enum import Enum

from termrender.adapters.registry import get_adapter
from termrender.core.blocks import Block, BlockKind, text_fingerprint
from termrender.core.lines import BLANK, StyledLine
from termrender.core.segmentation import Chunk
from termrender.document import join_blocks
from termrender.highlight import NO_HIGHLIGHT, Highlighter, highlighter_key
from termrender.options import RenderOptions
from termrender.render.cache import WidthKeyedCache
from termrender.render.renderer import render_block
from termrender.theme import RenderTheme

logger = logging.getLogger(__name__)


class BlockState(Enum):
    OPEN = "open"
    SEALED = "sealed"


@dataclass(frozen=True)
class StreamUpdate:
    sealed: tuple[int, ...]  # arena indices sealed by this call
    pending_fingerprint: str | None  # None when the pending slot is empty
    revised: tuple[int, ...] = ()  # committed indices rebuilt by finalize()


@dataclass
class _PendingRender:
    key: tuple
    lines: list[StyledLine]


class StreamingDocument:
    def __init__(self, fmt: str = "markdown", options: RenderOptions | None = None):
        self.adapter = get_adapter(fmt)
        self.options = options or RenderOptions()
        self.cache = WidthKeyedCache()
        self.reset()

    def reset(self) -> None:
        """Drop all content so the document can take a new stream."""
        self._committed: list[Block] = []
        self._env = self.adapter.initial_env()
        self._pending = ""
        self._pending_fp: str | None = None
        self._carry_cr = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.cache.invalidate_all()

        # incremental committed render state, valid for one layout key
        self._layout: tuple | None = None
        self._committed_lines: list[StyledLine] = []
        self._footnote_lines: list[StyledLine] = []
        self._rendered_count = 0
        self._pending_render: _PendingRender | None = None

    # ─── inspection ───

    @property
    def committed(self) -> tuple[Block, ...]:
        return tuple(self._committed)

    @property
    def pending_text(self) -> str:
        return self._pending

    @property
    def pending_state(self) -> BlockState | None:
        return BlockState.OPEN if self._pending else None

    def text(self) -> str:
        return "".join(block.source for block in self._committed) + self._pending

    # ─── input ───

    def _normalize(self, delta: str | bytes, final: bool = False) -> str:
        if isinstance(delta, (bytes, bytearray)):
            text = self._decoder.decode(bytes(delta), final=final)
        else:
            text = delta
        if self._carry_cr:
            text = "\r" + text
        self._carry_cr = text.endswith("\r") and not final
        if self._carry_cr:
            text = text[:-1]
        return text.replace("\r\n", "\n").replace("\r", "\n").replace("\x00", "�")

    def append(self, delta: str | bytes) -> StreamUpdate:
        """Grow the pending block and seal whatever the delta completed."""
        text = self._normalize(delta)
        if text:
            self._pending += text
            self._pending_fp = text_fingerprint(self._pending)
            self._pending_render = None
        sealed = self._seal(final=False)
        return StreamUpdate(sealed, self._pending_fp if self._pending else None)

    def finalize(self) -> StreamUpdate:
        """Flush buffered input and seal everything."""
        tail = self._normalize(b"", final=True)
        if tail:
            self._pending += tail
        sealed = self._seal(final=True)
        revised = self._resolve_document()
        return StreamUpdate(sealed, None, revised)

    def _seal(self, final: bool) -> tuple[int, ...]:
        if final:
            chunks = self.adapter.split(self._pending)
        else:
            cut = self._pending.rfind("\n") + 1
            if cut == 0:
                return ()
            chunks = self.adapter.split(self._pending[:cut])
            if chunks and not chunks[-1].closed:
                chunks = chunks[:-1]
        sealed = []
        for chunk in chunks:
            sealed.append(self._commit(chunk))
        if sealed:
            self._pending_fp = text_fingerprint(self._pending) if self._pending else None
            self._pending_render = None
        return tuple(sealed)

    def _commit(self, chunk: Chunk) -> int:
        index = len(self._committed)
        block, self._env = self.adapter.build(chunk.text, index, self.options, self._env)
        self._committed.append(block)
        self._pending = self._pending[len(chunk.text):]
        logger.debug("sealed block %d (%s, %d chars)", index, block.kind.value, len(chunk.text))
        return index

    def _resolve_document(self) -> tuple[int, ...]:
        if self.adapter.document_env is None:
            return ()
        env = self.adapter.seed_env(self.text())
        revised = []
        for index, block in enumerate(self._committed):
            rebuilt, env = self.adapter.build(block.source, index, self.options, env)
            if rebuilt.fingerprint != block.fingerprint:
                self._committed[index] = rebuilt
                self.cache.invalidate_block(index)
                revised.append(index)
        self._env = env
        if revised:
            self._layout = None
            logger.debug("finalize revised blocks %s", revised)
        return tuple(revised)

    # ─── output ───

    def _pending_block(self) -> Block | None:
        if not self._pending:
            return None
        text = self._pending
        if self.adapter.truncate_pending is not None:
            text = self.adapter.truncate_pending(text, self.options.pending_fence_cap)
        block, _ = self.adapter.build(text, len(self._committed), self.options, dict(self._env, pending=True))
        return block

    def render(
        self,
        width: int,
        theme: RenderTheme | None = None,
        highlighter: Highlighter | None = None,
    ) -> list[StyledLine]:
        highlighter = highlighter or NO_HIGHLIGHT
        theme_version = theme.version if theme is not None else ""
        layout = (width, theme_version, highlighter_key(highlighter))
        if layout != self._layout:
            self._layout = layout
            self._committed_lines = []
            self._footnote_lines = []
            self._rendered_count = 0
            self._pending_render = None

        separator = self.adapter.separator
        for block in self._committed[self._rendered_count:]:
            lines = self.cache.get_or_render(block, width, theme_version, highlighter)
            target = self._committed_lines
            if self.options.footnotes_at_end and block.kind is BlockKind.FOOTNOTE:
                target = self._footnote_lines
            if lines:
                if target and separator:
                    target.extend([BLANK] * separator)
                target.extend(lines)
            self._rendered_count += 1

        pending_key = (self._pending_fp, layout)
        if self._pending_render is None or self._pending_render.key != pending_key:
            block = self._pending_block()
            lines = render_block(block, width, highlighter) if block is not None else []
            self._pending_render = _PendingRender(pending_key, lines)

        return join_blocks(
            [self._committed_lines, self._pending_render.lines, self._footnote_lines], separator, BLANK
        )
