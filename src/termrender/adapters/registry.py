"""Format name → source adapter."""

from __future__ import annotations

from termrender.adapters import ansi, diff, markdown, plain
from termrender.adapters.base import SourceAdapter

# [LAW:dataflow-not-control-flow] Format dispatch is a table lookup.
ADAPTERS: dict[str, SourceAdapter] = {
    "markdown": markdown.ADAPTER,
    "diff": diff.ADAPTER,
    "ansi": ansi.ADAPTER,
    "plain": plain.ADAPTER,
}

FORMATS = tuple(ADAPTERS)


def get_adapter(fmt: str) -> SourceAdapter:
    try:
        return ADAPTERS[fmt]
    except KeyError:
        raise ValueError(f"unknown format {fmt!r}; expected one of {', '.join(FORMATS)}") from None
