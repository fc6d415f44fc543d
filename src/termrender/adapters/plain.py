"""Plain text adapter: paragraph groups, no styling."""

from __future__ import annotations

from termrender.adapters.base import SourceAdapter
from termrender.core.blocks import Block, BlockKind, Inline, ProsePart, fingerprint
from termrender.core.segmentation import split_paragraph_groups
from termrender.options import RenderOptions


def build(text: str, index: int, options: RenderOptions, env: dict) -> tuple[Block, dict]:
    raw_lines = text.split("\n")
    if text.endswith("\n"):
        raw_lines.pop()
    lines = tuple((Inline(line),) if line else () for line in raw_lines)
    kind = BlockKind.PLAIN if any(raw_lines) else BlockKind.BLANK
    block = Block(
        index=index,
        kind=kind,
        fingerprint=fingerprint(kind, text, options),
        parts=(ProsePart(lines, wrap=options.wrap_plain),) if lines else (),
        source=text,
    )
    return block, env


ADAPTER = SourceAdapter(name="plain", split=split_paragraph_groups, build=build, separator=0)
