"""Styled line model: the common output type of every renderer.

A StyledLine is an ordered run of (text, token) spans. Tokens are opaque
semantic names ("markdown.h1", "diff.add", "code.Keyword") resolved against
a RenderTheme only when lines are handed to the terminal surface.

// [LAW:one-source-of-truth] Display width is always measured by rich.cells.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Iterable

from rich.cells import cell_len, get_character_cell_size


@dataclass(frozen=True)
class Span:
    text: str
    token: str = ""


@dataclass(frozen=True)
class StyledLine:
    spans: tuple[Span, ...] = ()

    @cached_property
    def text(self) -> str:
        return "".join(span.text for span in self.spans)

    @cached_property
    def cell_length(self) -> int:
        return cell_len(self.text)

    def __len__(self) -> int:
        return len(self.text)


BLANK = StyledLine()


def make_line(spans: Iterable[Span]) -> StyledLine:
    """Build a line, dropping empty spans and merging same-token neighbours."""
    merged: list[Span] = []
    for span in spans:
        if not span.text:
            continue
        if merged and merged[-1].token == span.token:
            merged[-1] = Span(merged[-1].text + span.text, span.token)
        else:
            merged.append(span)
    return StyledLine(tuple(merged))


def plain_line(text: str, token: str = "") -> StyledLine:
    return make_line((Span(text, token),))


def spans_width(spans: Iterable[Span]) -> int:
    return sum(cell_len(span.text) for span in spans)


def crop_spans(spans: Iterable[Span], start: int, end: int) -> list[Span]:
    """Return the part of `spans` covering display columns [start, end).

    A double-width character straddling either edge is dropped rather than
    split, so the result is never wider than end - start.
    """
    out: list[Span] = []
    col = 0
    for span in spans:
        buf: list[str] = []
        for ch in span.text:
            w = get_character_cell_size(ch)
            if col >= start and col + w <= end:
                buf.append(ch)
            col += w
        if buf:
            out.append(Span("".join(buf), span.token))
        if col >= end:
            break
    return out


def crop_line(line: StyledLine, start: int, width: int) -> StyledLine:
    return make_line(crop_spans(line.spans, start, start + width))


def split_spans_at(spans: Iterable[Span], limit: int) -> tuple[list[Span], list[Span]]:
    """Split spans into a head of at most `limit` columns and the remaining tail.

    The head always takes at least one character so callers make progress.
    """
    head: list[Span] = []
    tail: list[Span] = []
    col = 0
    for span in spans:
        if tail:
            tail.append(span)
            continue
        for i, ch in enumerate(span.text):
            w = get_character_cell_size(ch)
            if col + w > limit and (col > 0 or head):
                if i:
                    head.append(Span(span.text[:i], span.token))
                tail.append(Span(span.text[i:], span.token))
                break
            col += w
        else:
            head.append(span)
    return head, tail
