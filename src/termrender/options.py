"""Render configuration record.

RenderOptions is passed explicitly into every parse and render call; there is
no ambient configuration state. Persisted values come from termrender.settings
through RenderOptions.from_mapping().
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

LINK_DISPLAYS = ("hide", "paren", "space")
TABLE_STYLES = ("glow", "box")


@dataclass(frozen=True)
class RenderOptions:
    # Word wrap per content kind
    wrap_prose: bool = True
    wrap_code: bool = False
    wrap_diff: bool = False
    wrap_ansi: bool = False
    wrap_plain: bool = False

    # Indentation widths
    code_indent: int = 4
    quote_code_indent: int = 2

    # Markdown presentation
    link_display: str = "paren"  # "hide" | "paren" | "space"
    table_style: str = "glow"  # "glow" | "box"
    heading_markers: bool = False
    base_url: str | None = None
    preserve_new_lines: bool = False  # soft breaks inside paragraphs become line breaks
    footnotes_at_end: bool = False
    show_code_line_numbers: bool = False

    # Code blocks and hunks longer than this render unhighlighted
    max_highlight_lines: int = 200

    # Streaming
    pending_fence_cap: int = 40

    # Diff
    diff_intraline: bool = True
    diff_line_numbers: bool = False

    # Reference-renderer compatibility quirks; all off by default
    loose_list_join: bool = False
    table_header_truncate: bool = False

    def __post_init__(self):
        if self.link_display not in LINK_DISPLAYS:
            raise ValueError(f"link_display must be one of {LINK_DISPLAYS}, got {self.link_display!r}")
        if self.table_style not in TABLE_STYLES:
            raise ValueError(f"table_style must be one of {TABLE_STYLES}, got {self.table_style!r}")
        if self.pending_fence_cap < 1:
            raise ValueError("pending_fence_cap must be >= 1")
        if self.code_indent < 0 or self.quote_code_indent < 0:
            raise ValueError("indent widths must be >= 0")
        if self.max_highlight_lines < 0:
            raise ValueError("max_highlight_lines must be >= 0")

    def with_overrides(self, **overrides) -> "RenderOptions":
        return dataclasses.replace(self, **overrides)

    @classmethod
    def from_mapping(cls, data: dict | None) -> "RenderOptions":
        """Build options from a settings dict.

        Unknown keys and invalid values are logged and skipped; the defaults
        stand in for them.
        """
        options = cls()
        if not isinstance(data, dict):
            return options
        known = {f.name for f in dataclasses.fields(cls)}
        for key, value in data.items():
            if key not in known:
                logger.debug("ignoring unknown render option %r", key)
                continue
            try:
                options = dataclasses.replace(options, **{key: value})
            except (TypeError, ValueError) as exc:
                logger.warning("ignoring render option %s=%r: %s", key, value, exc)
        return options

    def to_mapping(self) -> dict:
        return dataclasses.asdict(self)
