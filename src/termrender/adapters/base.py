"""Source adapter contract and the generic parse driver.

An adapter is a pair of pure functions:

    split(text) -> list[Chunk]            top-level chunk boundaries
    build(text, index, options, env) -> (Block, env)

`env` is the cross-block context an adapter threads from one chunk to the
next (link reference definitions, the current diff language, the ANSI style
left open at a chunk end). It is a plain dict that build() never mutates in
place; each call returns a fresh one. Both the one-shot parse below and the
streaming document drive adapters through the same two functions.

Adapters whose blocks depend on facts from anywhere in the document (markdown
link references) also provide document_env(text), which seeds the first
build() with what the whole text defines.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from termrender.core.blocks import Block
from termrender.core.segmentation import Chunk, normalize_text
from termrender.options import RenderOptions


@dataclass(frozen=True)
class SourceAdapter:
    name: str
    split: Callable[[str], list[Chunk]]
    build: Callable[[str, int, RenderOptions, dict], tuple[Block, dict]]
    separator: int = 0  # blank lines between rendered blocks
    truncate_pending: Callable[[str, int], str] | None = None
    initial_env: Callable[[], dict] = field(default=dict)
    document_env: Callable[[str], dict] | None = None

    def seed_env(self, text: str) -> dict:
        if self.document_env is not None:
            return self.document_env(text)
        return self.initial_env()


def parse(adapter: SourceAdapter, raw: str | bytes, options: RenderOptions | None = None) -> list[Block]:
    """Parse raw text into blocks. Total over arbitrary input."""
    options = options or RenderOptions()
    text = normalize_text(raw)
    env = adapter.seed_env(text)
    blocks: list[Block] = []
    for index, chunk in enumerate(adapter.split(text)):
        block, env = adapter.build(chunk.text, index, options, env)
        blocks.append(block)
    return blocks
