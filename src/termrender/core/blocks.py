"""Intermediate block model produced by source adapters.

Blocks are immutable. A re-parse produces new Block values; the renderer and
the cache only ever read them. Each block carries a list of parts, and the
renderer dispatches on part type.

// [LAW:dataflow-not-control-flow] Block payload is data; rendering policy
// lives in termrender.render.renderer.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum

from termrender.core.lines import Span


class BlockKind(Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    BLOCKQUOTE = "blockquote"
    LIST = "list"
    CODE = "code"
    TABLE = "table"
    RULE = "rule"
    HTML = "html"
    FOOTNOTE = "footnote"
    DIFF_HEADER = "diff_header"
    DIFF_HUNK = "diff_hunk"
    ANSI = "ansi"
    PLAIN = "plain"
    BLANK = "blank"


# ─── Parts ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Inline:
    """A run of inline text. Non-zero `group` ties runs into one unwrappable unit."""

    text: str
    token: str = ""
    group: int = 0


@dataclass(frozen=True)
class ProsePart:
    lines: tuple[tuple[Inline, ...], ...]  # hard-broken logical lines
    first_prefix: tuple[Span, ...] = ()
    rest_prefix: tuple[Span, ...] = ()
    wrap: bool = True


@dataclass(frozen=True)
class CodePart:
    language: str | None
    lines: tuple[str, ...]
    prefix: tuple[Span, ...] = ()
    indent: int = 0
    wrap: bool = False
    token: str = "markdown.code_block"
    highlight: bool = True
    line_numbers: bool = False
    notice: str | None = None  # transient status line shown above the body
    rest_prefix: tuple[Span, ...] = ()


@dataclass(frozen=True)
class TablePart:
    aligns: tuple[str, ...]  # "left" | "center" | "right"
    head: tuple[tuple[Inline, ...], ...]
    body: tuple[tuple[tuple[Inline, ...], ...], ...]
    prefix: tuple[Span, ...] = ()
    style: str = "glow"
    rest_prefix: tuple[Span, ...] = ()
    truncate_header: bool = False


@dataclass(frozen=True)
class RulePart:
    prefix: tuple[Span, ...] = ()


@dataclass(frozen=True)
class BlankPart:
    prefix: tuple[Span, ...] = ()


class DiffLineKind(Enum):
    FILE = "file"
    HUNK = "hunk"
    CONTEXT = "context"
    ADD = "add"
    REMOVE = "remove"
    META = "meta"


@dataclass(frozen=True)
class DiffLine:
    kind: DiffLineKind
    text: str  # content without the +/-/space marker for CONTEXT/ADD/REMOVE
    old_no: int | None = None
    new_no: int | None = None
    changes: tuple[tuple[int, int], ...] = ()  # intraline [start, end) char ranges


@dataclass(frozen=True)
class DiffPart:
    lines: tuple[DiffLine, ...]
    language: str | None = None
    wrap: bool = False
    line_numbers: bool = False

    @property
    def highlight(self) -> bool:
        return self.language is not None


# ─── Block ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Block:
    index: int
    kind: BlockKind
    fingerprint: str
    parts: tuple = ()
    source: str = ""

    @property
    def uses_highlighter(self) -> bool:
        return any(getattr(part, "highlight", False) for part in self.parts)


def fingerprint(kind: BlockKind, raw: str, *context) -> str:
    """Content hash over kind, raw text and whatever context changes the render."""
    h = hashlib.blake2b(digest_size=16)
    h.update(kind.value.encode("ascii"))
    h.update(b"\x00")
    h.update(raw.encode("utf-8", "surrogatepass"))
    for item in context:
        h.update(b"\x00")
        h.update(repr(item).encode("utf-8", "backslashreplace"))
    return h.hexdigest()


def text_fingerprint(raw: str) -> str:
    return hashlib.blake2b(raw.encode("utf-8", "surrogatepass"), digest_size=16).hexdigest()
