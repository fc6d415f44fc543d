"""Text normalization and chunk-boundary helpers shared by the source adapters.

A Chunk is a contiguous slice of source text holding at most one top-level
block. Adapters guarantee that the concatenation of their chunks equals the
input, which is what lets the streaming renderer seal chunks one at a time
and still match a one-shot parse.

// [LAW:dataflow-not-control-flow] Every helper here is a pure function: text in, values out.
// [LAW:one-source-of-truth] Fence open/close recognition lives here only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


# ─── Data model ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Chunk:
    text: str
    closed: bool = False  # block is complete and cannot grow with more input


@dataclass(frozen=True)
class FenceMeta:
    indent: str
    marker_char: str  # "`" or "~"
    marker_len: int  # 3 or more
    info: str

    @property
    def closing_line(self) -> str:
        return self.indent + self.marker_char * self.marker_len


# ─── Regex patterns ──────────────────────────────────────────────────────────

# Fence open: optional indent, 3+ backticks or tildes, optional info string
FENCE_OPEN_RE = re.compile(r"^([ \t]*)((`{3,})|(~{3,}))(.*)$")

# Footnote definition: [^label]: text
FOOTNOTE_DEF_RE = re.compile(r"^ {0,3}\[\^([^\]\s]+)\]:[ \t]?(.*)$")

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")

PENDING_FENCE_MARKER = "… generating more …"


# ─── Normalization ───────────────────────────────────────────────────────────


def normalize_text(raw: str | bytes) -> str:
    """Decode and normalize input. Total: never raises, never drops characters.

    Invalid UTF-8 becomes U+FFFD, CRLF and lone CR become LF, NUL becomes U+FFFD.
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8", errors="replace")
    return raw.replace("\r\n", "\n").replace("\r", "\n").replace("\x00", "�")


def split_lines(text: str) -> list[str]:
    """Split into lines keeping their "\\n" terminators; splits on LF only."""
    return _LINE_RE.findall(text)


# ─── Fences ──────────────────────────────────────────────────────────────────


def match_fence_open(line: str) -> FenceMeta | None:
    m = FENCE_OPEN_RE.match(line.rstrip("\n"))
    if not m:
        return None
    indent = m.group(1)
    if len(indent.expandtabs(4)) > 3:
        return None
    marker = m.group(2)
    info = m.group(5).strip()
    # Backtick fences cannot carry backticks in their info string
    if marker[0] == "`" and "`" in info:
        return None
    return FenceMeta(indent=indent, marker_char=marker[0], marker_len=len(marker), info=info)


def is_fence_close(line: str, meta: FenceMeta) -> bool:
    stripped = line.rstrip("\n").strip(" \t")
    if len(stripped) < meta.marker_len:
        return False
    return stripped == meta.marker_char * len(stripped)


def normalize_language(info: str | None) -> str | None:
    """First token of a fence info string, without "language-" or braces."""
    if not info:
        return None
    token = info.strip().split(None, 1)[0] if info.strip() else ""
    token = token.strip("{}").split(",", 1)[0].strip()
    if token.startswith("."):
        token = token[1:]
    if token.startswith("language-"):
        token = token[len("language-"):]
    return token.lower() or None


def truncate_pending_code_fence(text: str, cap: int) -> str:
    """Cap an open fence at the head of `text` to its last `cap` body lines.

    Returns `text` unchanged when it does not start with a fence, when the
    fence is already closed, or when the body fits. The result keeps the
    opening line, inserts a marker line, and re-closes the fence.
    """
    lines = text.split("\n")
    trailing_newline = text.endswith("\n")
    if trailing_newline:
        lines.pop()
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1
    if start >= len(lines):
        return text
    meta = match_fence_open(lines[start])
    if meta is None:
        return text
    body = lines[start + 1:]
    if any(is_fence_close(line, meta) for line in body):
        return text
    if len(body) <= cap:
        return text
    kept = lines[: start + 1] + [meta.indent + PENDING_FENCE_MARKER] + body[-cap:]
    return "\n".join(kept + [meta.closing_line]) + "\n"


# ─── Generic chunking ────────────────────────────────────────────────────────


def split_paragraph_groups(text: str) -> list[Chunk]:
    """Chunk at the first non-blank line after a blank run.

    Blank lines stay with the chunk they follow, so concatenating the chunks
    gives back `text` exactly.
    """
    chunks: list[Chunk] = []
    current: list[str] = []
    seen_blank = False
    for line in split_lines(text):
        blank = not line.strip()
        if not blank and seen_blank and current:
            chunks.append(Chunk("".join(current)))
            current = []
            seen_blank = False
        current.append(line)
        seen_blank = seen_blank or blank
    if current:
        chunks.append(Chunk("".join(current)))
    return chunks
