"""Block renderer: intermediate blocks → styled lines at one width.

Wrapping policy is decided per part type:
    ProsePart  word-wrapped (unless the part opts out)
    CodePart   natural width, optional hard wrap
    DiffPart   natural width, optional hard wrap
    TablePart  fitted columns, per-cell fallback when too narrow
    RulePart   fixed literal, independent of width
    BlankPart  one (prefixed) empty line

Style tokens stay unresolved; themes apply at the surface boundary
(termrender.render.strips), so render output depends only on block, width
and highlighter.

// [LAW:dataflow-not-control-flow] Part dispatch is a table lookup.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from termrender.core.blocks import (
    BlankPart,
    Block,
    CodePart,
    DiffLine,
    DiffLineKind,
    DiffPart,
    ProsePart,
    RulePart,
    TablePart,
)
from termrender.core.lines import Span, StyledLine, make_line, spans_width
from termrender.highlight import NO_HIGHLIGHT, Highlighter, highlight_lines
from termrender.render.tables import render_table, render_table_fallback
from termrender.render.wrap import TAB, hard_wrap, wrap_inlines

logger = logging.getLogger(__name__)

RULE = "--------"

# [LAW:one-source-of-truth] Diff line kind → (marker, token)
DIFF_SPECS = {
    DiffLineKind.FILE: ("", "diff.header"),
    DiffLineKind.HUNK: ("", "diff.hunk"),
    DiffLineKind.CONTEXT: (" ", "diff.context"),
    DiffLineKind.ADD: ("+", "diff.add"),
    DiffLineKind.REMOVE: ("-", "diff.remove"),
    DiffLineKind.META: ("", "diff.meta"),
}
_CODE_KINDS = (DiffLineKind.CONTEXT, DiffLineKind.ADD, DiffLineKind.REMOVE)


def _compose(base: str, token: str) -> str:
    if not token:
        return base
    if not base:
        return token
    return f"{base}+{token}"


def _highlighted(
    highlighter: Highlighter, language: str | None, lines: Sequence[str], base: str
) -> list[list[Span]]:
    """Highlight once; fall back to one plain span per line."""
    result = highlight_lines(highlighter, language, lines) if lines else None
    if result is None:
        return [[Span(line, base)] if line else [] for line in lines]
    return [[Span(s.text, _compose(base, s.token)) for s in line.spans] for line in result]


def _emit_rows(
    out: list[StyledLine],
    prefix: Sequence[Span],
    content: list[Span],
    width: int,
    wrap: bool,
    rest: Sequence[Span] | None = None,
) -> None:
    """Append one source row; wrapped continuation rows take `rest` as prefix."""
    prefix = list(prefix)
    if not wrap:
        out.append(make_line(prefix + content))
        return
    rest = prefix if rest is None else list(rest)
    inner = width - max(spans_width(prefix), spans_width(rest))
    for n, row in enumerate(hard_wrap(content, inner)):
        out.append(make_line((prefix if n == 0 else rest) + row))


# ─── Part renderers ──────────────────────────────────────────────────────────


def _render_prose(part: ProsePart, width: int, highlighter: Highlighter) -> list[StyledLine]:
    return wrap_inlines(part.lines, width, part.first_prefix, part.rest_prefix, part.wrap)


def _render_code(part: CodePart, width: int, highlighter: Highlighter) -> list[StyledLine]:
    source = [line.replace("\t", TAB) for line in part.lines]
    rows = _highlighted(highlighter, part.language, source, part.token) if part.highlight else [
        [Span(line, part.token)] if line else [] for line in source
    ]
    out: list[StyledLine] = []
    indent = [Span(" " * part.indent)] if part.indent else []
    if part.notice is not None:
        out.append(make_line(list(part.prefix) + indent + [Span(part.notice, "markdown.pending")]))
    digits = len(str(len(rows)))
    for n, row in enumerate(rows, 1):
        lead = list(part.prefix if not out else part.rest_prefix) + indent
        rest = list(part.rest_prefix) + indent
        if part.line_numbers:
            lead.append(Span(f"{n:>{digits}} │ ", "markdown.code_line_number"))
            rest.append(Span(" " * digits + " │ ", "markdown.code_line_number"))
        _emit_rows(out, lead, row, width, part.wrap, rest)
    return out


def _render_table(part: TablePart, width: int, highlighter: Highlighter) -> list[StyledLine]:
    lines = render_table(part, width)
    if lines is None:
        logger.debug("table with %d columns does not fit width %d", len(part.aligns), width)
        return render_table_fallback(part, width)
    return lines


def _render_rule(part: RulePart, width: int, highlighter: Highlighter) -> list[StyledLine]:
    return [make_line(list(part.prefix) + [Span(RULE, "markdown.hr")])]


def _render_blank(part: BlankPart, width: int, highlighter: Highlighter) -> list[StyledLine]:
    return [make_line(part.prefix)]


def _split_ranges(spans: list[Span], ranges: Sequence[tuple[int, int]], token: str) -> list[Span]:
    """Compose `token` onto the characters covered by `ranges`."""
    if not ranges:
        return spans
    out: list[Span] = []
    pos = 0
    for span in spans:
        start = pos
        pos += len(span.text)
        cuts = {0, len(span.text)}
        for a, b in ranges:
            for edge in (a, b):
                if start < edge < pos:
                    cuts.add(edge - start)
        bounds = sorted(cuts)
        for a, b in zip(bounds, bounds[1:]):
            mid = start + a
            inside = any(lo <= mid < hi for lo, hi in ranges)
            out.append(Span(span.text[a:b], _compose(span.token, token) if inside else span.token))
    return out


def _gutter(line: DiffLine) -> list[Span]:
    old = "" if line.old_no is None else str(line.old_no)
    new = "" if line.new_no is None else str(line.new_no)
    return [Span(f"{old:>4} {new:>4} │ ", "diff.gutter")]


GUTTER_BLANK = [Span(" " * 9 + " │ ", "diff.gutter")]


def _render_diff(part: DiffPart, width: int, highlighter: Highlighter) -> list[StyledLine]:
    code_lines = [line.text.replace("\t", TAB) for line in part.lines if line.kind in _CODE_KINDS]
    highlighted: list[list[Span]] = []
    if part.highlight and code_lines:
        result = highlight_lines(highlighter, part.language, code_lines)
        if result is not None:
            highlighted = [list(line.spans) for line in result]

    out: list[StyledLine] = []
    code_index = 0
    for line in part.lines:
        marker, token = DIFF_SPECS[line.kind]
        prefix = _gutter(line) if part.line_numbers else []
        rest = GUTTER_BLANK if part.line_numbers else []
        if line.kind in _CODE_KINDS:
            text = line.text.replace("\t", TAB)
            if highlighted:
                content = [Span(s.text, _compose(token, s.token)) for s in highlighted[code_index]]
            else:
                content = [Span(text, token)] if text else []
            code_index += 1
            change_token = f"{token}.change"
            # tab expansion shifts offsets; only mark ranges on tab-free lines
            if line.changes and "\t" not in line.text:
                content = _split_ranges(content, line.changes, change_token)
            content = [Span(marker, token)] + content
        else:
            content = [Span(line.text.replace("\t", TAB), token)]
        _emit_rows(out, prefix, content, width, part.wrap, rest)
    return out


_PART_RENDERERS: dict[type, Callable[[object, int, Highlighter], list[StyledLine]]] = {
    ProsePart: _render_prose,
    CodePart: _render_code,
    TablePart: _render_table,
    RulePart: _render_rule,
    BlankPart: _render_blank,
    DiffPart: _render_diff,
}


def render_block(block: Block, width: int, highlighter: Highlighter | None = None) -> list[StyledLine]:
    """Render one block at `width`. Never raises for any parsed block."""
    highlighter = highlighter or NO_HIGHLIGHT
    width = max(1, width)
    out: list[StyledLine] = []
    for part in block.parts:
        out.extend(_PART_RENDERERS[type(part)](part, width, highlighter))
    return out
