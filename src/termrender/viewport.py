"""Viewport window over a styled-line sequence.

slice_lines() is a pure function of (line count, requested offset, height):
the offset is clamped to [0, max(0, total - height)] and the clamp is
reported back so callers can react (e.g. hide a "jump to bottom" hint).
Horizontal offsets for unwrapped content clamp to [0, max(0, widest - width)].

ViewportState keeps offsets valid across content and size changes and can
follow the tail while new lines stream in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from termrender.core.lines import StyledLine, crop_line


@dataclass(frozen=True)
class ClampInfo:
    requested: int
    offset: int
    max_offset: int
    total: int
    clamped: bool

    @property
    def at_top(self) -> bool:
        return self.offset == 0

    @property
    def at_bottom(self) -> bool:
        return self.offset >= self.max_offset


def max_offset(total: int, height: int) -> int:
    return max(0, total - max(0, height))


def clamp_offset(offset: int, total: int, height: int) -> int:
    return min(max(0, offset), max_offset(total, height))


def slice_lines(lines: Sequence[StyledLine], offset: int, height: int) -> tuple[list[StyledLine], ClampInfo]:
    total = len(lines)
    effective = clamp_offset(offset, total, height)
    info = ClampInfo(
        requested=offset,
        offset=effective,
        max_offset=max_offset(total, height),
        total=total,
        clamped=effective != offset,
    )
    return list(lines[effective : effective + max(0, height)]), info


def clamp_x(x: int, width: int, max_line_width: int) -> int:
    return min(max(0, x), max(0, max_line_width - max(0, width)))


def crop_horizontal(lines: Sequence[StyledLine], x: int, width: int) -> list[StyledLine]:
    return [crop_line(line, x, width) for line in lines]


@dataclass
class ViewportState:
    height: int
    width: int
    offset: int = 0
    x_offset: int = 0
    total: int = 0
    max_line_width: int = 0
    follow: bool = True  # stick to the bottom while content grows

    def _clamp(self) -> None:
        self.offset = clamp_offset(self.offset, self.total, self.height)
        self.x_offset = clamp_x(self.x_offset, self.width, self.max_line_width)

    @property
    def at_bottom(self) -> bool:
        return self.offset >= max_offset(self.total, self.height)

    @property
    def percent(self) -> float:
        """Scroll position as 0.0–1.0; 1.0 when everything fits."""
        limit = max_offset(self.total, self.height)
        return 1.0 if limit == 0 else self.offset / limit

    # ─── content and size changes ───

    def on_content(self, total: int, max_line_width: int = 0) -> None:
        was_at_bottom = self.at_bottom
        self.total = total
        self.max_line_width = max_line_width
        if self.follow and was_at_bottom:
            self.offset = max_offset(total, self.height)
        self._clamp()

    def resize(self, height: int, width: int) -> None:
        was_at_bottom = self.at_bottom
        self.height = max(0, height)
        self.width = max(0, width)
        if self.follow and was_at_bottom:
            self.offset = max_offset(self.total, self.height)
        self._clamp()

    # ─── scrolling ───

    def scroll_to(self, offset: int) -> ClampInfo:
        requested = offset
        self.offset = offset
        self._clamp()
        self.follow = self.at_bottom
        return ClampInfo(
            requested=requested,
            offset=self.offset,
            max_offset=max_offset(self.total, self.height),
            total=self.total,
            clamped=self.offset != requested,
        )

    def scroll_by(self, delta: int) -> ClampInfo:
        return self.scroll_to(self.offset + delta)

    def page_down(self) -> ClampInfo:
        return self.scroll_by(max(1, self.height))

    def page_up(self) -> ClampInfo:
        return self.scroll_by(-max(1, self.height))

    def to_top(self) -> ClampInfo:
        return self.scroll_to(0)

    def to_bottom(self) -> ClampInfo:
        return self.scroll_to(max_offset(self.total, self.height))

    def scroll_x_by(self, delta: int) -> int:
        self.x_offset = clamp_x(self.x_offset + delta, self.width, self.max_line_width)
        return self.x_offset

    def window(self, lines: Sequence[StyledLine], crop: bool = False) -> tuple[list[StyledLine], ClampInfo]:
        """Visible slice of `lines`; crops columns to the horizontal window when `crop`."""
        if len(lines) != self.total:
            self.on_content(len(lines), self.max_line_width)
        visible, info = slice_lines(lines, self.offset, self.height)
        if crop:
            visible = crop_horizontal(visible, self.x_offset, self.width)
        return visible, info
