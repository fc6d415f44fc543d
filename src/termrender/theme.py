"""Style-token resolution.

Renderers emit opaque tokens; a RenderTheme turns them into rich Styles at
the surface boundary. Themes are derived from Textual's built-in themes and
carry a `version` string that feeds the render cache key, so a theme swap is
a pure change of arguments, never of ambient state.

Token grammar:
    "markdown.h1"                  looked up in the theme, falling back to the
                                   parent name ("markdown.item.bullet" →
                                   "markdown.item")
    "code.Keyword.Constant"        Pygments token type, styled by `code_theme`
    "ansi:bold red on blue"        literal rich style string
    "a+b"                          compose left to right; later parts win
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from functools import lru_cache

from pygments.styles import get_style_by_name
from pygments.token import string_to_tokentype
from pygments.util import ClassNotFound
from rich.errors import StyleSyntaxError
from rich.style import Style
from textual.color import Color
from textual.theme import BUILTIN_THEMES

logger = logging.getLogger(__name__)

DEFAULT_THEME = "textual-dark"


def _normalize_color(color: str | None, fallback: str) -> str:
    """Normalize a theme color to #RRGGBB hex.

    Textual's ANSI themes use names like "ansi_green" that Rich can't parse
    in style strings; "ansi_default" is unknowable and takes the fallback.
    // [LAW:single-enforcer] All color normalization goes through here.
    """
    if color is None or color == "ansi_default":
        return fallback
    if color.startswith("#") and len(color) == 7:
        return color
    try:
        r, g, b = Color.parse(color).rgb
    except Exception:
        return fallback
    return "#{:02X}{:02X}{:02X}".format(r, g, b)


@lru_cache(maxsize=1024)
def _code_style(code_theme: str, token_name: str) -> Style:
    try:
        style_cls = get_style_by_name(code_theme)
    except ClassNotFound:
        logger.debug("unknown pygments style %r", code_theme)
        return Style.null()
    spec = style_cls.style_for_token(string_to_tokentype(token_name))
    return Style(
        color=f"#{spec['color']}" if spec.get("color") else None,
        bold=True if spec.get("bold") else None,
        italic=True if spec.get("italic") else None,
        underline=True if spec.get("underline") else None,
    )


@dataclass(frozen=True)
class RenderTheme:
    name: str
    dark: bool
    code_theme: str
    styles: dict[str, str]
    version: str
    _resolved: dict[str, Style] = field(default_factory=dict, compare=False, repr=False)

    def _lookup(self, name: str) -> Style:
        while name:
            if name in self.styles:
                return Style.parse(self.styles[name])
            name = name.rpartition(".")[0]
        return Style.null()

    def _resolve_one(self, part: str) -> Style:
        if part.startswith("ansi:"):
            try:
                return Style.parse(part[len("ansi:"):])
            except StyleSyntaxError:
                return Style.null()
        if part == "code" or part.startswith("code."):
            return _code_style(self.code_theme, part[len("code."):] if part != "code" else "")
        return self._lookup(part)

    def resolve(self, token: str) -> Style:
        if not token:
            return Style.null()
        cached = self._resolved.get(token)
        if cached is None:
            cached = Style.null()
            for part in token.split("+"):
                cached += self._resolve_one(part)
            self._resolved[token] = cached
        return cached


def _version(name: str, code_theme: str, styles: dict[str, str]) -> str:
    h = hashlib.blake2b(digest_size=8)
    h.update(name.encode())
    h.update(code_theme.encode())
    for key in sorted(styles):
        h.update(f"{key}={styles[key]};".encode())
    return h.hexdigest()


def available_themes() -> list[str]:
    return sorted(BUILTIN_THEMES)


def build_theme(name: str = DEFAULT_THEME, code_theme: str | None = None) -> RenderTheme:
    """Map a Textual built-in theme to render styles."""
    try:
        textual_theme = BUILTIN_THEMES[name]
    except KeyError:
        raise ValueError(f"unknown theme {name!r}") from None
    dark = textual_theme.dark

    primary = _normalize_color(textual_theme.primary, "#0178D4")
    secondary = _normalize_color(textual_theme.secondary, primary)
    accent = _normalize_color(textual_theme.accent, primary)
    error = _normalize_color(textual_theme.error, "#ba3c5b")
    success = _normalize_color(textual_theme.success, "#4EBF71")
    foreground = _normalize_color(textual_theme.foreground, "#e0e0e0" if dark else "#1e1e1e")
    background = _normalize_color(textual_theme.background, "#1e1e1e" if dark else "#e0e0e0")
    surface = _normalize_color(textual_theme.surface, "#2b2b2b" if dark else "#d0d0d0")

    code_theme = code_theme or ("github-dark" if dark else "friendly")

    # [LAW:one-source-of-truth] every style token is defined here
    styles = {
        "markdown.paragraph": foreground,
        "markdown.strong": "bold",
        "markdown.em": "italic",
        "markdown.s": "strike",
        "markdown.code": f"{foreground} on {surface}",
        "markdown.code_block": f"on {surface}",
        "markdown.h1": f"bold underline {primary}",
        "markdown.h2": f"bold {primary}",
        "markdown.h3": f"bold {secondary}",
        "markdown.h4": f"italic {secondary}",
        "markdown.h5": f"italic {foreground}",
        "markdown.h6": "dim italic",
        "markdown.heading_marker": f"dim {primary}",
        "markdown.link": f"underline {primary}",
        "markdown.link_url": f"dim underline {primary}",
        "markdown.image": f"italic {accent}",
        "markdown.block_quote": f"italic {foreground}",
        "markdown.block_quote.marker": f"dim {secondary}",
        "markdown.item": f"bold {primary}",
        "markdown.task": f"bold {success}",
        "markdown.table.border": f"dim {foreground}",
        "markdown.table.header": f"bold {primary}",
        "markdown.hr": f"dim {foreground}",
        "markdown.html": f"dim {foreground}",
        "markdown.footnote": foreground,
        "markdown.footnote.label": f"bold {accent}",
        "markdown.pending": f"dim italic {foreground}",
        "markdown.code_line_number": f"dim {foreground}",
        "diff.header": f"bold {foreground}",
        "diff.hunk": f"dim {accent}",
        "diff.context": foreground,
        "diff.add": success,
        "diff.remove": error,
        "diff.add.change": f"bold {background} on {success}",
        "diff.remove.change": f"bold {background} on {error}",
        "diff.meta": f"dim {foreground}",
        "diff.gutter": f"dim {foreground}",
    }
    return RenderTheme(
        name=name,
        dark=dark,
        code_theme=code_theme,
        styles=styles,
        version=_version(name, code_theme, styles),
    )
