"""Unified diff source adapter.

Chunks: a run of file-header lines (diff --git, index, ---/+++, mode and
rename lines) is one chunk, and every @@ hunk is one chunk. Text before the
first header is kept as a META preamble. Inside a hunk the header's line
counts decide which lines are hunk content, so a removed line that happens
to read "-- a/file" is never mistaken for a file header.

The language hint for syntax highlighting comes from the most recent file
header's path extension and is threaded to later hunks through `env`.
"""

from __future__ import annotations

import dataclasses
import difflib
import posixpath
import re

from termrender.adapters.base import SourceAdapter
from termrender.core.blocks import Block, BlockKind, DiffLine, DiffLineKind, DiffPart, fingerprint
from termrender.core.segmentation import Chunk, split_lines
from termrender.options import RenderOptions

HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")

FILE_HEADER_PREFIXES = (
    "diff --git ",
    "diff --cc ",
    "index ",
    "--- ",
    "+++ ",
    "new file mode",
    "deleted file mode",
    "old mode",
    "new mode",
    "similarity index",
    "dissimilarity index",
    "rename from",
    "rename to",
    "copy from",
    "copy to",
    "Binary files ",
)

# Lines below this similarity are a rewrite; marking characters adds nothing.
INTRALINE_MIN_RATIO = 0.5


def is_file_header(line: str) -> bool:
    return line.startswith(FILE_HEADER_PREFIXES)


def split(text: str) -> list[Chunk]:
    chunks: list[Chunk] = []
    current: list[str] = []
    state = "pre"
    old_left = new_left = 0

    def flush():
        if current:
            chunks.append(Chunk("".join(current)))
            current.clear()

    for line in split_lines(text):
        body = line.rstrip("\n")
        if state == "hunk" and (old_left > 0 or new_left > 0) and (body[:1] in (" ", "+", "-", "\\", "")):
            marker = body[:1]
            if marker in (" ", ""):
                old_left, new_left = old_left - 1, new_left - 1
            elif marker == "-":
                old_left -= 1
            elif marker == "+":
                new_left -= 1
            current.append(line)
            continue
        m = HUNK_RE.match(body)
        if m:
            flush()
            state = "hunk"
            old_left = int(m.group(2)) if m.group(2) is not None else 1
            new_left = int(m.group(4)) if m.group(4) is not None else 1
        elif is_file_header(body):
            if state != "header":
                flush()
            state = "header"
        current.append(line)
    flush()
    return chunks


def language_for_path(path: str) -> str | None:
    path = path.strip().split("\t", 1)[0]
    if path in ("/dev/null", ""):
        return None
    if path[:2] in ("a/", "b/"):
        path = path[2:]
    ext = posixpath.splitext(path)[1]
    return ext[1:].lower() or None


def _header_language(lines: list[str], current: str | None) -> str | None:
    paths: dict[str, str] = {}
    for line in lines:
        if line.startswith("+++ "):
            paths["new"] = line[4:]
        elif line.startswith("--- "):
            paths["old"] = line[4:]
        elif line.startswith("diff --git "):
            parts = line.split()
            if len(parts) >= 4:
                paths.setdefault("git", parts[3])
    if not paths:
        return current
    for key in ("new", "old", "git"):
        path = paths.get(key, "").strip().split("\t", 1)[0]
        if path and path != "/dev/null":
            return language_for_path(path)
    return None


def _merge(ranges: list[tuple[int, int]]) -> tuple[tuple[int, int], ...]:
    merged: list[tuple[int, int]] = []
    for start, end in ranges:
        if merged and merged[-1][1] >= start:
            merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
        else:
            merged.append((start, end))
    return tuple(merged)


def char_changes(old: str, new: str) -> tuple[tuple[tuple[int, int], ...], tuple[tuple[int, int], ...]]:
    """Changed character ranges on each side of an aligned remove/add pair."""
    matcher = difflib.SequenceMatcher(None, old, new, autojunk=False)
    if matcher.ratio() < INTRALINE_MIN_RATIO:
        return (), ()
    old_ranges: list[tuple[int, int]] = []
    new_ranges: list[tuple[int, int]] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        if i2 > i1:
            old_ranges.append((i1, i2))
        if j2 > j1:
            new_ranges.append((j1, j2))
    return _merge(old_ranges), _merge(new_ranges)


def add_intraline(lines: list[DiffLine]) -> list[DiffLine]:
    """Pair each run of removals with the run of additions right after it."""
    out = list(lines)
    i = 0
    while i < len(out):
        if out[i].kind is not DiffLineKind.REMOVE:
            i += 1
            continue
        j = i
        while j < len(out) and out[j].kind is DiffLineKind.REMOVE:
            j += 1
        k = j
        while k < len(out) and out[k].kind is DiffLineKind.ADD:
            k += 1
        for a, b in zip(range(i, j), range(j, k)):
            old_r, new_r = char_changes(out[a].text, out[b].text)
            out[a] = dataclasses.replace(out[a], changes=old_r)
            out[b] = dataclasses.replace(out[b], changes=new_r)
        i = k
    return out


def parse_hunk(lines: list[str]) -> list[DiffLine]:
    m = HUNK_RE.match(lines[0])
    old_no = int(m.group(1)) if m else 0
    new_no = int(m.group(3)) if m else 0
    out = [DiffLine(DiffLineKind.HUNK, lines[0])]
    for raw in lines[1:]:
        marker = raw[:1]
        if marker == "+":
            out.append(DiffLine(DiffLineKind.ADD, raw[1:], None, new_no))
            new_no += 1
        elif marker == "-":
            out.append(DiffLine(DiffLineKind.REMOVE, raw[1:], old_no, None))
            old_no += 1
        elif marker in (" ", ""):
            out.append(DiffLine(DiffLineKind.CONTEXT, raw[1:], old_no, new_no))
            old_no += 1
            new_no += 1
        else:
            out.append(DiffLine(DiffLineKind.META, raw))
    return out


def build(text: str, index: int, options: RenderOptions, env: dict) -> tuple[Block, dict]:
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    language = env.get("language")
    new_env = dict(env)

    if lines and HUNK_RE.match(lines[0]):
        kind = BlockKind.DIFF_HUNK
        diff_lines = parse_hunk(lines)
        if options.diff_intraline:
            diff_lines = add_intraline(diff_lines)
        highlight_language = language if len(diff_lines) <= options.max_highlight_lines else None
        part = DiffPart(tuple(diff_lines), highlight_language, options.wrap_diff, options.diff_line_numbers)
    elif lines and is_file_header(lines[0]):
        kind = BlockKind.DIFF_HEADER
        new_env["language"] = _header_language(lines, language)
        part = DiffPart(tuple(DiffLine(DiffLineKind.FILE, line) for line in lines), None, options.wrap_diff)
    else:
        kind = BlockKind.PLAIN
        part = DiffPart(tuple(DiffLine(DiffLineKind.META, line) for line in lines), None, options.wrap_diff)

    block = Block(
        index=index,
        kind=kind,
        fingerprint=fingerprint(kind, text, options, language),
        parts=(part,) if lines else (),
        source=text,
    )
    return block, new_env


ADAPTER = SourceAdapter(name="diff", split=split, build=build, separator=0)
