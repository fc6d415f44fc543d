"""Plain-text snapshot mode for regression comparison.

Both sides of a comparison go through normalize(): trailing whitespace
stripped per line, the common leading margin removed, trailing blank lines
dropped.
"""

from __future__ import annotations

from typing import Iterable

from termrender.core.lines import StyledLine


def normalize(text: str) -> str:
    lines = [line.rstrip() for line in text.split("\n")]
    while lines and not lines[-1]:
        lines.pop()
    margins = [len(line) - len(line.lstrip(" ")) for line in lines if line]
    margin = min(margins, default=0)
    return "\n".join(line[margin:] for line in lines)


def to_plain(lines: Iterable[StyledLine]) -> str:
    return normalize("\n".join(line.text for line in lines))
