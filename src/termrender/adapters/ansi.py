"""ANSI-colored terminal output adapter.

SGR escapes (colors, bold, italic, underline, ...) and OSC 8 links are
decoded by rich's AnsiDecoder into `ansi:<style>` tokens. Other escape
categories (cursor movement, erase, ...) are dropped by the decoder while
the text around them is kept. The style left open at the end of a chunk
carries into the next one through `env`.
"""

from __future__ import annotations

from rich.ansi import AnsiDecoder
from rich.style import Style
from rich.text import Text

from termrender.adapters.base import SourceAdapter
from termrender.core.blocks import Block, BlockKind, Inline, ProsePart, fingerprint
from termrender.core.segmentation import split_paragraph_groups
from termrender.options import RenderOptions

TOKEN_PREFIX = "ansi:"


def style_token(style: Style | str | None) -> str:
    if not style:
        return ""
    return TOKEN_PREFIX + str(style)


def text_to_inlines(text: Text) -> tuple[Inline, ...]:
    plain = text.plain
    out: list[Inline] = []
    pos = 0
    for span in sorted(text.spans, key=lambda s: s.start):
        if span.start > pos:
            out.append(Inline(plain[pos:span.start]))
        start = max(pos, span.start)
        if span.end > start:
            out.append(Inline(plain[start:span.end], style_token(span.style)))
        pos = max(pos, span.end)
    if pos < len(plain):
        out.append(Inline(plain[pos:]))
    return tuple(out)


def build(text: str, index: int, options: RenderOptions, env: dict) -> tuple[Block, dict]:
    decoder = AnsiDecoder()
    carried = env.get("style", "")
    if carried:
        decoder.style = Style.parse(carried)
    raw_lines = text.split("\n")
    if text.endswith("\n"):
        raw_lines.pop()
    lines = tuple(text_to_inlines(decoder.decode_line(raw)) for raw in raw_lines)
    end_style = str(decoder.style) if decoder.style else ""

    kind = BlockKind.ANSI if any(line for line in lines) else BlockKind.BLANK
    block = Block(
        index=index,
        kind=kind,
        fingerprint=fingerprint(kind, text, options, carried),
        parts=(ProsePart(lines, wrap=options.wrap_ansi),) if lines else (),
        source=text,
    )
    return block, {"style": end_style}


ADAPTER = SourceAdapter(
    name="ansi",
    split=split_paragraph_groups,
    build=build,
    separator=0,
    initial_env=lambda: {"style": ""},
)
