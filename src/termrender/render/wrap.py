"""Word wrapping for prose and hard wrapping for code.

Prose is tokenized into words and whitespace runs. A word is a maximal run of
non-whitespace across inline boundaries, so "**bold**," stays one unit. Inline
groups (link text, inline code) are single words even when they contain
spaces. A group wider than a whole line falls back to its ordinary words.

Greedy fill: a word goes on the current line when it fits, otherwise it
starts the next line; a word wider than an empty line is split by display
cells, breaking http(s) URLs after a URL separator when one is available.
Prefixes are measured first, so the content width is `width - prefix width`
and no output line is ever wider than `width`.
"""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Sequence

from rich.cells import cell_len

from termrender.core.blocks import Inline
from termrender.core.lines import Span, StyledLine, crop_spans, make_line, spans_width, split_spans_at

TAB = "    "
URL_BREAK_CHARS = "/.-_~?&#="

_SPACE_SPLIT_RE = re.compile(r"(\s+)")


@dataclass
class _Unit:
    spans: list[Span]
    width: int
    space: bool
    fallback: list["_Unit"] | None = None


def _expand(text: str) -> str:
    return text.replace("\t", TAB)


def _pieces(text: str, token: str) -> list[_Unit]:
    units = []
    for piece in _SPACE_SPLIT_RE.split(_expand(text)):
        if piece:
            units.append(_Unit([Span(piece, token)], cell_len(piece), piece.isspace()))
    return units


def tokenize(inlines: Sequence[Inline]) -> list[_Unit]:
    units: list[_Unit] = []

    def push(unit: _Unit) -> None:
        prev = units[-1] if units else None
        if prev is not None and not unit.space and not prev.space:
            # glue adjacent words; keep a way back to the pieces
            fallback = (prev.fallback or [_Unit(list(prev.spans), prev.width, False)]) + (
                unit.fallback or [_Unit(list(unit.spans), unit.width, False)]
            )
            units[-1] = _Unit(prev.spans + unit.spans, prev.width + unit.width, False, fallback)
        elif prev is not None and unit.space and prev.space:
            units[-1] = _Unit(prev.spans + unit.spans, prev.width + unit.width, True)
        else:
            units.append(unit)

    i = 0
    while i < len(inlines):
        inline = inlines[i]
        if inline.group:
            j = i
            spans: list[Span] = []
            pieces: list[_Unit] = []
            while j < len(inlines) and inlines[j].group == inline.group:
                spans.append(Span(_expand(inlines[j].text), inlines[j].token))
                pieces.extend(_pieces(inlines[j].text, inlines[j].token))
                j += 1
            spans = [s for s in spans if s.text]
            if spans:
                push(_Unit(spans, spans_width(spans), False, pieces))
            i = j
            continue
        for unit in _pieces(inline.text, inline.token):
            push(unit)
        i += 1
    return units


def _fit_prefix(prefix: Sequence[Span], width: int) -> tuple[list[Span], int]:
    prefix = list(prefix)
    if spans_width(prefix) >= width:
        prefix = crop_spans(prefix, 0, max(0, width - 1))
    return prefix, width - spans_width(prefix)


def _split_word(spans: list[Span], limit: int) -> tuple[list[Span], list[Span]]:
    head, tail = split_spans_at(spans, limit)
    text = "".join(s.text for s in spans)
    if not tail or not text.startswith(("http://", "https://")):
        return head, tail
    head_text = "".join(s.text for s in head)
    cut = max(head_text.rfind(ch) for ch in URL_BREAK_CHARS)
    if cut <= 0 or cut + 1 >= len(head_text):
        return head, tail
    return _split_chars(spans, cut + 1)


def _split_chars(spans: list[Span], n: int) -> tuple[list[Span], list[Span]]:
    head: list[Span] = []
    tail: list[Span] = []
    for span in spans:
        if n <= 0:
            tail.append(span)
        elif len(span.text) <= n:
            head.append(span)
            n -= len(span.text)
        else:
            head.append(Span(span.text[:n], span.token))
            tail.append(Span(span.text[n:], span.token))
            n = 0
    return head, tail


def wrap_inlines(
    lines: Iterable[Sequence[Inline]],
    width: int,
    first_prefix: Sequence[Span] = (),
    rest_prefix: Sequence[Span] = (),
    wrap: bool = True,
) -> list[StyledLine]:
    width = max(1, width)
    out: list[StyledLine] = []

    def prefix_for_next() -> Sequence[Span]:
        return first_prefix if not out else rest_prefix

    for logical in lines:
        if not wrap:
            spans = [Span(_expand(i.text), i.token) for i in logical]
            out.append(make_line(list(prefix_for_next()) + spans))
            continue

        units = deque(tokenize(logical))
        prefix, avail = _fit_prefix(prefix_for_next(), width)
        _, fresh_avail = _fit_prefix(rest_prefix, width)
        cur: list[Span] = []
        used = 0
        has_word = False
        pending_space: _Unit | None = None
        emitted = False

        while units:
            unit = units.popleft()
            if unit.space:
                if has_word:
                    pending_space = unit
                elif used + unit.width < avail:
                    # leading indentation of a logical line
                    cur.extend(unit.spans)
                    used += unit.width
                continue
            gap = pending_space.width if pending_space is not None else 0
            if used + gap + unit.width <= avail:
                if pending_space is not None:
                    cur.extend(pending_space.spans)
                    used += gap
                cur.extend(unit.spans)
                used += unit.width
                has_word = True
                pending_space = None
                continue
            if unit.fallback and unit.width > fresh_avail:
                units.extendleft(reversed(unit.fallback))
                continue
            if has_word:
                out.append(make_line(prefix + cur))
                emitted = True
                prefix, avail = _fit_prefix(rest_prefix, width)
                cur, used, has_word, pending_space = [], 0, False, None
                units.appendleft(unit)
                continue
            head, tail = _split_word(unit.spans, max(1, avail - used))
            out.append(make_line(prefix + cur + head))
            emitted = True
            prefix, avail = _fit_prefix(rest_prefix, width)
            cur, used, has_word, pending_space = [], 0, False, None
            if tail:
                units.appendleft(_Unit(tail, spans_width(tail), False))

        if cur or not emitted:
            out.append(make_line(prefix + cur))
    return out


def hard_wrap(spans: Sequence[Span], width: int) -> list[list[Span]]:
    """Split spans into rows of at most `width` cells, without regard to words."""
    width = max(1, width)
    rows: list[list[Span]] = []
    rest = list(spans)
    while rest and spans_width(rest) > width:
        head, rest = split_spans_at(rest, width)
        rows.append(head)
    rows.append(rest)
    return rows
