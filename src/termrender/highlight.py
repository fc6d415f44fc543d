"""Pluggable syntax highlighting.

A highlighter is anything with `name`, `version` and

    highlight(language, lines) -> list[StyledLine] | None

returning exactly one StyledLine per input line, whose text equals the input
line, or None when it cannot handle the language ("unavailable").
Implementations must be deterministic and side-effect free: the render cache
keys entries on (name, version) and never re-checks output.

Backends are registered by name; nothing subclasses anything.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable, Protocol, Sequence, runtime_checkable

import pygments
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from termrender.core.lines import Span, StyledLine, make_line

logger = logging.getLogger(__name__)


@runtime_checkable
class Highlighter(Protocol):
    name: str
    version: str

    def highlight(self, language: str | None, lines: Sequence[str]) -> list[StyledLine] | None: ...


def highlighter_key(highlighter: Highlighter) -> tuple[str, str]:
    return (highlighter.name, highlighter.version)


class NoHighlight:
    """Pass-through: every line comes back as one unstyled span."""

    name = "none"
    version = "1"

    def highlight(self, language: str | None, lines: Sequence[str]) -> list[StyledLine] | None:
        return [StyledLine((Span(line),)) if line else StyledLine() for line in lines]


NO_HIGHLIGHT = NoHighlight()


@lru_cache(maxsize=128)
def _lexer_for(language: str) -> Lexer | None:
    try:
        return get_lexer_by_name(language, stripnl=False, ensurenl=False, stripall=False)
    except ClassNotFound:
        return None


def token_name(ttype) -> str:
    """`Token.Keyword.Constant` → `code.Keyword.Constant`; the root token → `code`."""
    name = str(ttype)
    if name.startswith("Token."):
        return "code." + name[len("Token."):]
    return "code"


class PygmentsHighlighter:
    name = "pygments"
    version = pygments.__version__

    def highlight(self, language: str | None, lines: Sequence[str]) -> list[StyledLine] | None:
        if not language:
            return None
        lexer = _lexer_for(language.lower())
        if lexer is None:
            return None
        out: list[list[Span]] = [[]]
        for ttype, value in lexer.get_tokens("\n".join(lines)):
            pieces = value.split("\n")
            for n, piece in enumerate(pieces):
                if n:
                    out.append([])
                if piece:
                    out[-1].append(Span(piece, token_name(ttype)))
        return [make_line(spans) for spans in out]


class FallbackHighlighter:
    """Try each highlighter in order; the first non-None answer wins."""

    def __init__(self, *highlighters: Highlighter):
        self.highlighters = highlighters
        self.name = "+".join(h.name for h in highlighters)
        self.version = ",".join(h.version for h in highlighters)

    def highlight(self, language: str | None, lines: Sequence[str]) -> list[StyledLine] | None:
        for h in self.highlighters:
            result = h.highlight(language, lines)
            if result is not None:
                return result
        return None


# ─── Registry ────────────────────────────────────────────────────────────────

_REGISTRY: dict[str, Callable[[], Highlighter]] = {
    "none": NoHighlight,
    "pygments": PygmentsHighlighter,
}


def register_highlighter(name: str, factory: Callable[[], Highlighter]) -> None:
    _REGISTRY[name] = factory


def available_highlighters() -> list[str]:
    return sorted(_REGISTRY)


def get_highlighter(name: str) -> Highlighter:
    try:
        factory = _REGISTRY[name]
    except KeyError:
        raise ValueError(f"unknown highlighter {name!r}; expected one of {', '.join(available_highlighters())}") from None
    return factory()


def highlight_lines(highlighter: Highlighter, language: str | None, lines: Sequence[str]) -> list[StyledLine] | None:
    """Call a highlighter and validate its answer.

    Returns None (plain fallback) when the backend declines, raises, returns
    the wrong number of lines, or alters the text.
    """
    try:
        result = highlighter.highlight(language, lines)
    except Exception:
        logger.debug("highlighter %s failed for language %r", highlighter.name, language, exc_info=True)
        return None
    if result is None:
        return None
    if len(result) != len(lines):
        logger.debug(
            "highlighter %s returned %d lines for %d; using plain text",
            highlighter.name,
            len(result),
            len(lines),
        )
        return None
    if any(line.text != src for line, src in zip(result, lines)):
        logger.debug("highlighter %s altered text; using plain text", highlighter.name)
        return None
    return result
