"""Table layout.

Column widths start at the widest rendered cell in each column. While the
table is wider than the available width, the widest column shrinks by one
cell, down to a per-style minimum. Header and body cells are word-wrapped,
and every physical line of a wrapped row repeats the column separators.
Header truncation with "…" is available behind `table_header_truncate`.
The first row carries the part's first prefix (a list bullet, say) and every
later row the hanging rest prefix.

Styles:
    glow   " a │ b "   header rule "───┼───"
    box    "│ a │ b │" with ┌┬┐ ├┼┤ └┴┘ borders
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from termrender.core.blocks import Inline, TablePart
from termrender.core.lines import Span, StyledLine, crop_spans, make_line, spans_width
from termrender.render.wrap import wrap_inlines

BORDER = "markdown.table.border"
HEADER = "markdown.table.header"
ELLIPSIS = "…"


@dataclass(frozen=True)
class _Style:
    min_width: int
    outer: bool  # draw left/right/top/bottom borders

    def chrome(self, cols: int) -> int:
        # two padding cells per column plus the separators
        return 2 * cols + (cols - 1) + (2 if self.outer else 0)


STYLES = {
    "glow": _Style(min_width=1, outer=False),
    "box": _Style(min_width=3, outer=True),
}


def _cell_spans(cell: Sequence[Inline], base: str = "") -> list[Span]:
    return [Span(i.text.replace("\t", "    "), "+".join(t for t in (base, i.token) if t)) for i in cell]


def column_widths(part: TablePart, avail: int) -> list[int] | None:
    """Fitted column widths, or None when even minimum widths do not fit."""
    rows = [part.head, *part.body]
    cols = max((len(r) for r in rows), default=0)
    if cols == 0:
        return None
    style = STYLES.get(part.style, STYLES["glow"])
    widths = [style.min_width] * cols
    for row in rows:
        for c, cell in enumerate(row):
            widths[c] = max(widths[c], spans_width(_cell_spans(cell)))
    budget = avail - style.chrome(cols)
    while sum(widths) > budget:
        widest = max(range(cols), key=lambda c: widths[c])
        if widths[widest] <= style.min_width:
            return None
        widths[widest] -= 1
    return widths


def _align(spans: list[Span], width: int, align: str) -> list[Span]:
    gap = width - spans_width(spans)
    if gap <= 0:
        return spans
    if align == "right":
        return [Span(" " * gap)] + spans
    if align == "center":
        left = gap // 2
        return [Span(" " * left)] + spans + [Span(" " * (gap - left))]
    return spans + [Span(" " * gap)]


def _truncate(spans: list[Span], width: int) -> list[Span]:
    if spans_width(spans) <= width:
        return spans
    return crop_spans(spans, 0, max(0, width - 1)) + [Span(ELLIPSIS, BORDER)]


def _row_lines(
    cells: list[list[list[Span]]], widths: list[int], aligns: Sequence[str], style: _Style
) -> list[list[Span]]:
    height = max((len(c) for c in cells), default=1)
    out = []
    for n in range(height):
        spans: list[Span] = [Span("│ ", BORDER)] if style.outer else [Span(" ")]
        for c, width in enumerate(widths):
            physical = cells[c][n] if n < len(cells[c]) else []
            align = aligns[c] if c < len(aligns) else "left"
            spans.extend(_align(list(physical), width, align))
            if c < len(widths) - 1:
                spans.append(Span(" │ ", BORDER))
        spans.append(Span(" │", BORDER) if style.outer else Span(" "))
        out.append(spans)
    return out


def _rule(widths: list[int], left: str, mid: str, right: str) -> list[Span]:
    return [Span(left + mid.join("─" * (w + 2) for w in widths) + right, BORDER)]


def _wrapped_cell(cell: Sequence[Inline], width: int, base: str = "") -> list[list[Span]]:
    if not cell:
        return [[]]
    if base:
        cell = [Inline(i.text, "+".join(t for t in (base, i.token) if t), i.group) for i in cell]
    return [list(line.spans) for line in wrap_inlines([tuple(cell)], width)]


def render_table(part: TablePart, width: int) -> list[StyledLine] | None:
    """Lay out a table below `width` cells; None when it cannot fit."""
    first = list(part.prefix)
    rest = list(part.rest_prefix)
    avail = width - max(spans_width(first), spans_width(rest))
    widths = column_widths(part, avail)
    if widths is None:
        return None
    style = STYLES.get(part.style, STYLES["glow"])
    cols = len(widths)

    def pad(row):
        return list(row) + [()] * (cols - len(row))

    if part.truncate_header:
        head_cells = [[_truncate(_cell_spans(cell, HEADER), widths[c])] for c, cell in enumerate(pad(part.head))]
    else:
        head_cells = [_wrapped_cell(cell, widths[c], HEADER) for c, cell in enumerate(pad(part.head))]
    rows: list[list[Span]] = []
    if style.outer:
        rows.append(_rule(widths, "┌", "┬", "┐"))
    rows.extend(_row_lines(head_cells, widths, part.aligns, style))
    if style.outer:
        rows.append(_rule(widths, "├", "┼", "┤"))
    else:
        rows.append([Span("┼".join("─" * (w + 2) for w in widths), BORDER)])
    for body_row in part.body:
        cells = [_wrapped_cell(cell, widths[c]) for c, cell in enumerate(pad(body_row))]
        rows.extend(_row_lines(cells, widths, part.aligns, style))
    if style.outer:
        rows.append(_rule(widths, "└", "┴", "┘"))
    return [make_line((first if n == 0 else rest) + row) for n, row in enumerate(rows)]


def render_table_fallback(part: TablePart, width: int) -> list[StyledLine]:
    """One wrapped line group per cell, for tables too narrow to lay out."""
    out: list[StyledLine] = []
    for row in [part.head, *part.body]:
        for cell in row:
            first = part.prefix if not out else part.rest_prefix
            out.extend(wrap_inlines([tuple(cell)], width, first, part.rest_prefix))
    return out
