"""Markdown source adapter.

Parses with markdown-it-py (CommonMark plus tables and strikethrough) and turns
the token stream into prose/code/table/rule parts. Container structure
(blockquotes, list items) is flattened into per-part line prefixes: a part's
first line gets each container's "first" prefix (list marker, quote bar) and
later lines get the hanging "rest" prefix.

Chunking: each top-level markdown-it block owns one chunk. Lines between
blocks travel with the following block. The last block's chunk runs to the end
of the text unless it is a closed code fence, which can never grow again.

Footnote definitions are not part of CommonMark. Their lines are masked to
blank before markdown-it sees them and emitted as FOOTNOTE parts.

Link reference definitions resolve document-wide with the first definition
winning: document_env() collects them from the full text and every build()
starts from that set. A block's fingerprint covers only the definitions whose
labels appear in its own text, so adding a definition re-renders just the
blocks that can use it.

Fence info strings, link titles and reference definitions are metadata: the
info string picks the highlighter language and the rest feeds link
resolution. None of them is displayed.

// [LAW:one-source-of-truth] List tightness comes from markdown-it's paragraph
// `hidden` flag, never from counting blank lines.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import urljoin

from markdown_it import MarkdownIt
from markdown_it.common.utils import normalizeReference
from markdown_it.token import Token

from termrender.adapters.base import SourceAdapter
from termrender.core.blocks import (
    BlankPart,
    Block,
    BlockKind,
    CodePart,
    Inline,
    ProsePart,
    RulePart,
    TablePart,
    fingerprint,
)
from termrender.core.lines import Span
from termrender.core.segmentation import (
    FOOTNOTE_DEF_RE,
    PENDING_FENCE_MARKER,
    Chunk,
    is_fence_close,
    match_fence_open,
    normalize_language,
    split_lines,
    truncate_pending_code_fence,
)
from termrender.options import RenderOptions

logger = logging.getLogger(__name__)

_MD = MarkdownIt("commonmark").enable(["table", "strikethrough"])

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")
_TASK_RE = re.compile(r"^\[([ xX])\][ \t]+")
_ALIGN_RE = re.compile(r"text-align:\s*(left|center|right)")
# Anything that could be a link label: bracketed text without unescaped brackets
_LABEL_RE = re.compile(r"\[((?:[^\[\]\\]|\\.)*)\]")
_UNESCAPED_PIPE_RE = re.compile(r"(?<!\\)\|")
_CONTAINER_LEAD_RE = re.compile(r"^[ \t>]*")
_LABEL_RE = re.compile(r"\[((?:[^\[\]\\]|\\.)*)\]")
_UNESCAPED_PIPE_RE = re.compile(r"(?<!\\)\|")

BULLET = "• "
TASK_DONE = "[✓] "
TASK_OPEN = "[ ] "
QUOTE_BAR = "│ "

# [LAW:dataflow-not-control-flow] Top-level token type → block kind
_KIND_BY_TOKEN = {
    "heading_open": BlockKind.HEADING,
    "paragraph_open": BlockKind.PARAGRAPH,
    "blockquote_open": BlockKind.BLOCKQUOTE,
    "bullet_list_open": BlockKind.LIST,
    "ordered_list_open": BlockKind.LIST,
    "fence": BlockKind.CODE,
    "code_block": BlockKind.CODE,
    "table_open": BlockKind.TABLE,
    "hr": BlockKind.RULE,
    "html_block": BlockKind.HTML,
}

_INLINE_STYLES = {
    "em_open": "markdown.em",
    "strong_open": "markdown.strong",
    "s_open": "markdown.s",
}
_INLINE_STYLE_CLOSE = {"em_close", "strong_close", "s_close"}


def resolve_url(href: str, base_url: str | None) -> str:
    """Join a relative destination onto `base_url`; absolute and fragment links pass through."""
    if not href or not base_url:
        return href
    if _SCHEME_RE.match(href) or href.startswith("#") or href.startswith("//"):
        return href
    return urljoin(base_url, href)


# ─── Footnote masking ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class _Footnote:
    start: int
    end: int  # exclusive line index
    label: str
    text: str


def _mask_footnotes(lines: list[str]) -> tuple[list[str], list[_Footnote]]:
    masked = list(lines)
    footnotes: list[_Footnote] = []
    fence = None
    i = 0
    while i < len(lines):
        line = lines[i]
        if fence is not None:
            if is_fence_close(line, fence):
                fence = None
            i += 1
            continue
        fence = match_fence_open(line)
        if fence is not None:
            i += 1
            continue
        m = FOOTNOTE_DEF_RE.match(line.rstrip("\n"))
        if not m:
            i += 1
            continue
        parts = [m.group(2).strip()]
        j = i + 1
        while j < len(lines) and lines[j].strip() and lines[j][:1] in (" ", "\t"):
            parts.append(lines[j].strip())
            j += 1
        for k in range(i, j):
            masked[k] = "\n" if lines[k].endswith("\n") else ""
        footnotes.append(_Footnote(i, j, m.group(1), " ".join(p for p in parts if p)))
        i = j
    return masked, footnotes


# ─── Chunking ────────────────────────────────────────────────────────────────


def _top_level_groups(tokens: list[Token]) -> list[list[Token]]:
    groups: list[list[Token]] = []
    current: list[Token] = []
    depth = 0
    for tok in tokens:
        current.append(tok)
        depth += tok.nesting
        if depth == 0:
            groups.append(current)
            current = []
    if current:
        groups.append(current)
    return groups


def _fence_closed(lines: list[str], start: int, end: int) -> bool:
    if end - start < 2 or end > len(lines):
        return False
    meta = match_fence_open(lines[start])
    return meta is not None and is_fence_close(lines[end - 1], meta)


def document_env(text: str) -> dict:
    """Build env seeded with every reference definition in `text`."""
    env: dict = {"references": {}}
    lines = split_lines(text)
    if lines:
        masked, _ = _mask_footnotes(lines)
        _MD.parse("".join(masked), env)
    return {"references": env.get("references", {})}


def split(text: str) -> list[Chunk]:
    lines = split_lines(text)
    if not lines:
        return []
    masked, footnotes = _mask_footnotes(lines)
    tokens = _MD.parse("".join(masked), {"references": {}})

    ranges: list[tuple[int, int, Token | None]] = [
        (group[0].map[0], group[0].map[1], group[0])
        for group in _top_level_groups(tokens)
        if group[0].map
    ]
    ranges.extend((fn.start, fn.end, None) for fn in footnotes)
    ranges.sort(key=lambda r: r[0])

    chunks: list[Chunk] = []
    pos = 0
    for k, (start, end, tok) in enumerate(ranges):
        if k < len(ranges) - 1:
            chunks.append(Chunk("".join(lines[pos:end])))
            pos = end
            continue
        closed = tok is not None and tok.type == "fence" and _fence_closed(lines, start, end)
        stop = end if closed else len(lines)
        chunks.append(Chunk("".join(lines[pos:stop]), closed=closed))
        pos = stop
    if pos < len(lines):
        chunks.append(Chunk("".join(lines[pos:])))
    return chunks


# ─── Part building ───────────────────────────────────────────────────────────


@dataclass
class _Frame:
    first: tuple[Span, ...]
    rest: tuple[Span, ...]
    used: bool = False


@dataclass
class _ListContext:
    ordered: bool
    next_number: int
    tight: bool


def _strip_trailing_space(spans: tuple[Span, ...]) -> tuple[Span, ...]:
    out = list(spans)
    while out:
        stripped = out[-1].text.rstrip()
        if stripped:
            out[-1] = Span(stripped, out[-1].token)
            break
        out.pop()
    return tuple(out)


class _PartBuilder:
    def __init__(self, options: RenderOptions, env: dict, source_lines: list[str], pending: bool = False):
        self.options = options
        self.env = env
        self.source_lines = source_lines
        self.pending = pending
        self.parts: list = []
        self.frames: list[_Frame] = []
        self.containers: list[_ListContext | str] = []
        self.need_blank = False
        self.group_seq = 0
        self.strip_task: int = 0

    # ─── prefixes ───

    def _take_prefixes(self) -> tuple[tuple[Span, ...], tuple[Span, ...]]:
        first = tuple(s for f in self.frames for s in (f.rest if f.used else f.first))
        rest = tuple(s for f in self.frames for s in f.rest)
        for f in self.frames:
            f.used = True
        return first, rest

    def _blank_prefix(self) -> tuple[Span, ...]:
        return _strip_trailing_space(tuple(s for f in self.frames if f.used for s in f.rest))

    def _emit(self, make) -> None:
        if self.need_blank and self.parts:
            self.parts.append(BlankPart(self._blank_prefix()))
        self.need_blank = False
        first, rest = self._take_prefixes()
        self.parts.append(make(first, rest))

    def _tight(self) -> bool:
        if not self.containers or isinstance(self.containers[-1], str):
            return False
        return self.containers[-1].tight or self.options.loose_list_join

    def _after_block(self) -> None:
        self.need_blank = not self._tight()

    def _next_group(self) -> int:
        self.group_seq += 1
        return self.group_seq

    # ─── inline ───

    def inlines(self, children: list[Token] | None, base: str) -> tuple[tuple[Inline, ...], ...]:
        lines: list[list[Inline]] = [[]]
        styles = [base] if base else []
        group = 0
        link_stack: list[tuple[str, int, str]] = []
        strip = self.strip_task
        self.strip_task = 0

        def token() -> str:
            return "+".join(styles)

        for child in children or []:
            kind = child.type
            if kind == "text":
                text = child.content
                if strip:
                    cut = min(strip, len(text))
                    text, strip = text[cut:], strip - cut
                lines[-1].append(Inline(text, token(), group))
            elif kind == "softbreak":
                if self.options.preserve_new_lines and not link_stack:
                    lines.append([])
                else:
                    lines[-1].append(Inline(" ", token(), group))
            elif kind == "hardbreak":
                lines.append([])
            elif kind == "code_inline":
                lines[-1].append(Inline(child.content, "+".join(styles + ["markdown.code"]), group or self._next_group()))
            elif kind in _INLINE_STYLES:
                styles.append(_INLINE_STYLES[kind])
            elif kind in _INLINE_STYLE_CLOSE:
                if len(styles) > (1 if base else 0):
                    styles.pop()
            elif kind == "link_open":
                href = resolve_url(str(child.attrGet("href") or ""), self.options.base_url)
                link_stack.append((href, len(lines[-1]), child.markup))
                styles.append("markdown.link")
                group = self._next_group()
            elif kind == "link_close":
                if len(styles) > (1 if base else 0):
                    styles.pop()
                group = 0
                if link_stack:
                    href, start, markup = link_stack.pop()
                    label = "".join(i.text for i in lines[-1][start:])
                    lines[-1].extend(self._link_destination(label, href, markup))
            elif kind == "image":
                lines[-1].extend(self._image(child, token()))
            elif kind == "html_inline":
                lines[-1].append(Inline(child.content, "+".join(styles + ["markdown.html"]), group))
            elif child.content:
                lines[-1].append(Inline(child.content, token(), group))
        return tuple(tuple(line) for line in lines)

    def _link_destination(self, label: str, href: str, markup: str) -> list[Inline]:
        policy = self.options.link_display
        hidden = (
            policy == "hide"
            or not href
            or label == href
            or (markup == "autolink" and href.endswith(label))
        )
        if hidden:
            return []
        if policy == "paren":
            return [Inline(" ", ""), Inline(f"({href})", "markdown.link_url")]
        return [Inline(" ", ""), Inline(href, "markdown.link_url")]

    def _image(self, tok: Token, base: str) -> list[Inline]:
        src = resolve_url(str(tok.attrGet("src") or ""), self.options.base_url)
        alt = "".join(c.content for c in (tok.children or []) if c.content) or tok.content
        token = "+".join(t for t in (base, "markdown.image") if t)
        out = [Inline("Image: ", token)]
        if alt:
            out.append(Inline(alt, token, self._next_group()))
        if src and self.options.link_display != "hide":
            out.append(Inline(" → ", token))
            out.append(Inline(src, "markdown.link_url"))
        return out

    # ─── blocks ───

    def walk(self, tokens: list[Token]) -> None:
        i = 0
        while i < len(tokens):
            i = self._step(tokens, i)

    def _step(self, tokens: list[Token], i: int) -> int:
        tok = tokens[i]
        kind = tok.type
        if kind == "heading_open":
            self._heading(tok, tokens[i + 1] if i + 1 < len(tokens) else None)
            return i + 3
        if kind == "paragraph_open":
            inline = tokens[i + 1] if i + 1 < len(tokens) else None
            lines = self.inlines(inline.children if inline else None, "markdown.paragraph")
            wrap = self.options.wrap_prose
            self._emit(lambda first, rest: ProsePart(lines, first, rest, wrap))
            self._after_block()
            return i + 3
        if kind == "blockquote_open":
            bar = (Span(QUOTE_BAR, "markdown.block_quote.marker"),)
            self.frames.append(_Frame(bar, bar))
            self.containers.append("quote")
            return i + 1
        if kind == "blockquote_close":
            self.frames.pop()
            self.containers.pop()
            self._after_block()
            return i + 1
        if kind in ("bullet_list_open", "ordered_list_open"):
            start = int(tok.attrGet("start") or 1) if kind == "ordered_list_open" else 1
            self.containers.append(_ListContext(kind == "ordered_list_open", start, self._list_is_tight(tokens, i)))
            return i + 1
        if kind in ("bullet_list_close", "ordered_list_close"):
            self.containers.pop()
            self._after_block()
            return i + 1
        if kind == "list_item_open":
            self._list_item(tokens, i)
            return i + 1
        if kind == "list_item_close":
            self.frames.pop()
            self._after_block()
            return i + 1
        if kind in ("fence", "code_block"):
            self._code(tok)
            return i + 1
        if kind == "hr":
            self._emit(lambda first, rest: RulePart(first))
            self._after_block()
            return i + 1
        if kind == "html_block":
            self._html(tok)
            return i + 1
        if kind == "table_open":
            return self._table(tokens, i)
        if kind == "inline":
            # Stray inline content outside a known container: keep it visible.
            lines = self.inlines(tok.children, "markdown.paragraph")
            self._emit(lambda first, rest: ProsePart(lines, first, rest, self.options.wrap_prose))
            return i + 1
        return i + 1

    def _heading(self, tok: Token, inline: Token | None) -> None:
        level = min(6, max(1, int(tok.tag[1:]) if tok.tag[1:].isdigit() else 1))
        lines = self.inlines(inline.children if inline else None, f"markdown.h{level}")
        marker: tuple[Span, ...] = ()
        if self.options.heading_markers:
            marker = (Span("#" * level + " ", "markdown.heading_marker"),)
        hang = (Span(" " * (level + 1), ""),) if marker else ()
        wrap = self.options.wrap_prose
        self._emit(lambda first, rest: ProsePart(lines, first + marker, rest + hang, wrap))
        self._after_block()

    def _list_is_tight(self, tokens: list[Token], i: int) -> bool:
        level = tokens[i].level
        for tok in tokens[i + 1:]:
            if tok.level == level and tok.nesting == -1:
                break
            if tok.type == "paragraph_open" and tok.level == level + 2 and not tok.hidden:
                return False
        return True

    def _list_item(self, tokens: list[Token], i: int) -> None:
        ctx = self.containers[-1] if self.containers else None
        if isinstance(ctx, _ListContext) and ctx.ordered:
            marker = (Span(f"{ctx.next_number}. ", "markdown.item.number"),)
            ctx.next_number += 1
        else:
            marker = (Span(BULLET, "markdown.item.bullet"),)
        inline = tokens[i + 2] if i + 2 < len(tokens) else None
        if (
            inline is not None
            and inline.type == "inline"
            and tokens[i + 1].type == "paragraph_open"
        ):
            m = _TASK_RE.match(inline.content)
            if m:
                done = m.group(1) in "xX"
                marker += (Span(TASK_DONE if done else TASK_OPEN, "markdown.task"),)
                self.strip_task = len(m.group(0))
        width = sum(len(s.text) for s in marker)
        self.frames.append(_Frame(marker, (Span(" " * width, ""),)))

    def _code(self, tok: Token) -> None:
        lines = tok.content.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        language = normalize_language(tok.info) if tok.type == "fence" else None
        notice = None
        if self.pending and tok.type == "fence" and lines and lines[0].strip() == PENDING_FENCE_MARKER:
            notice = lines.pop(0).strip()
        in_quote = "quote" in self.containers
        options = self.options
        indent = options.quote_code_indent if in_quote else options.code_indent
        highlight = len(lines) <= options.max_highlight_lines
        self._emit(
            lambda first, rest: CodePart(
                language,
                tuple(lines),
                first,
                indent,
                options.wrap_code,
                highlight=highlight,
                line_numbers=options.show_code_line_numbers,
                notice=notice,
                rest_prefix=rest,
            )
        )
        self._after_block()

    def _html(self, tok: Token) -> None:
        raw = tok.content.rstrip("\n").split("\n")
        lines = tuple((Inline(line, "markdown.html"),) for line in raw)
        wrap = self.options.wrap_prose
        self._emit(lambda first, rest: ProsePart(lines, first, rest, wrap))
        self._after_block()

    def _surplus_cells(self, row_map: list[int] | None, known: int) -> list[tuple[Inline, ...]]:
        """Cells past the header's column count, which markdown-it discards."""
        if not row_map or row_map[0] >= len(self.source_lines):
            return []
        text = _CONTAINER_LEAD_RE.sub("", self.source_lines[row_map[0]].rstrip("\n")).strip()
        if text.startswith("|"):
            text = text[1:]
        if text.endswith("|") and not text.endswith("\\|"):
            text = text[:-1]
        cells = [cell.strip() for cell in _UNESCAPED_PIPE_RE.split(text)]
        out = []
        for cell in cells[known:]:
            parsed = _MD.parseInline(cell, self.env) if cell else []
            children = parsed[0].children if parsed else []
            out.append(tuple(inline for line in self.inlines(children, "") for inline in line))
        return out

    def _table(self, tokens: list[Token], i: int) -> int:
        aligns: list[str] = []
        head: list[tuple[Inline, ...]] = []
        body: list[tuple[tuple[Inline, ...], ...]] = []
        row: list[tuple[Inline, ...]] = []
        row_map: list[int] | None = None
        in_head = False
        j = i + 1
        while j < len(tokens) and tokens[j].type != "table_close":
            t = tokens[j]
            if t.type == "thead_open":
                in_head = True
            elif t.type == "thead_close":
                in_head = False
            elif t.type == "tr_open":
                row = []
                row_map = t.map
            elif t.type == "tr_close":
                if in_head:
                    head = row
                else:
                    body.append(tuple(row + self._surplus_cells(row_map, len(row))))
            elif t.type == "th_open":
                m = _ALIGN_RE.search(str(t.attrGet("style") or ""))
                aligns.append(m.group(1) if m else "left")
            elif t.type == "inline":
                cell_lines = self.inlines(t.children, "")
                row.append(tuple(inline for line in cell_lines for inline in line))
            j += 1
        style = self.options.table_style
        truncate = self.options.table_header_truncate
        self._emit(
            lambda first, rest: TablePart(
                tuple(aligns), tuple(head), tuple(body), first, style, rest_prefix=rest, truncate_header=truncate
            )
        )
        self._after_block()
        return j + 1

    def footnote(self, fn: _Footnote) -> None:
        inline_tokens = _MD.parseInline(fn.text, self.env) if fn.text else []
        children = inline_tokens[0].children if inline_tokens else []
        lines = self.inlines(children, "markdown.footnote")
        label = f"[^{fn.label}]: "
        marker = (Span(label, "markdown.footnote.label"),)
        hang = (Span(" " * len(label), ""),)
        wrap = self.options.wrap_prose
        self._emit(lambda first, rest: ProsePart(lines, first + marker, rest + hang, wrap))
        self.need_blank = True


def _used_references(text: str, refs: dict) -> dict:
    """Definitions whose label occurs in `text` as bracketed content."""
    labels = {normalizeReference(m.group(1)) for m in _LABEL_RE.finditer(text)}
    return {label: refs[label] for label in labels if label in refs}


def _references_key(refs: dict) -> tuple:
    return tuple(
        sorted((label, str(ref.get("href", "")), str(ref.get("title", ""))) for label, ref in refs.items())
    )


def build(text: str, index: int, options: RenderOptions, env: dict) -> tuple[Block, dict]:
    lines = split_lines(text)
    masked, footnotes = _mask_footnotes(lines)
    md_env = {"references": dict(env.get("references", {}))}
    tokens = _MD.parse("".join(masked), md_env)

    items: list[tuple[int, object]] = [
        (group[0].map[0] if group[0].map else 0, group) for group in _top_level_groups(tokens)
    ]
    items.extend((fn.start, fn) for fn in footnotes)
    items.sort(key=lambda item: item[0])

    builder = _PartBuilder(options, md_env, masked, pending=bool(env.get("pending")))
    kind = BlockKind.BLANK
    for n, (_, item) in enumerate(items):
        if isinstance(item, _Footnote):
            kind = kind if n else BlockKind.FOOTNOTE
            builder.footnote(item)
        else:
            kind = kind if n else _KIND_BY_TOKEN.get(item[0].type, BlockKind.PARAGRAPH)
            builder.walk(item)
        builder.need_blank = True

    refs = md_env.get("references", {})
    new_env = {"references": refs}
    block = Block(
        index=index,
        kind=kind,
        fingerprint=fingerprint(kind, text, options, _references_key(_used_references(text, refs))),
        parts=tuple(builder.parts),
        source=text,
    )
    return block, new_env


ADAPTER = SourceAdapter(
    name="markdown",
    split=split,
    build=build,
    separator=1,
    truncate_pending=truncate_pending_code_fence,
    initial_env=lambda: {"references": {}},
    document_env=document_env,
)
