"""Tests for termrender.core.segmentation: normalization, fences and chunk helpers."""

import pytest

from termrender.core.segmentation import (
    PENDING_FENCE_MARKER,
    is_fence_close,
    match_fence_open,
    normalize_language,
    normalize_text,
    split_lines,
    split_paragraph_groups,
    truncate_pending_code_fence,
)


# ─── Test 1: Normalization ───────────────────────────────────────────────────


class TestNormalize:
    def test_crlf_and_lone_cr_become_lf(self):
        assert normalize_text("a\r\nb\rc\n") == "a\nb\nc\n"

    def test_invalid_utf8_becomes_replacement_character(self):
        out = normalize_text(b"ok \xff end")
        assert out == "ok � end"

    def test_nul_becomes_replacement_character(self):
        assert normalize_text("a\x00b") == "a�b"

    def test_valid_bytes_decode(self):
        assert normalize_text("café".encode("utf-8")) == "café"


def test_split_lines_keeps_terminators():
    assert split_lines("a\nb\n\nc") == ["a\n", "b\n", "\n", "c"]
    assert "".join(split_lines("x\n\ny")) == "x\n\ny"
    assert split_lines("") == []


# ─── Test 2: Fences ──────────────────────────────────────────────────────────


class TestFences:
    def test_backtick_fence_with_info(self):
        meta = match_fence_open("```python\n")
        assert meta is not None
        assert meta.marker_char == "`"
        assert meta.marker_len == 3
        assert meta.info == "python"

    def test_tilde_fence(self):
        meta = match_fence_open("~~~~")
        assert meta.marker_char == "~"
        assert meta.marker_len == 4

    def test_four_space_indent_is_not_a_fence(self):
        assert match_fence_open("    ```") is None

    def test_backtick_in_info_is_not_a_fence(self):
        assert match_fence_open("``` a`b") is None

    def test_close_needs_at_least_opening_length(self):
        meta = match_fence_open("````")
        assert not is_fence_close("```", meta)
        assert is_fence_close("`````\n", meta)
        assert not is_fence_close("~~~~", meta)

    @pytest.mark.parametrize(
        "info,expected",
        [
            ("python", "python"),
            ("Python title=x", "python"),
            ("{.rust}", "rust"),
            ("language-go", "go"),
            ("", None),
            (None, None),
        ],
    )
    def test_normalize_language(self, info, expected):
        assert normalize_language(info) == expected


# ─── Test 3: Pending fence truncation ────────────────────────────────────────


class TestTruncatePending:
    def test_long_open_fence_keeps_last_lines(self):
        body = "".join(f"line {i}\n" for i in range(10))
        out = truncate_pending_code_fence("```py\n" + body, 3)
        lines = out.split("\n")
        assert lines[0] == "```py"
        assert lines[1] == PENDING_FENCE_MARKER
        assert lines[2:5] == ["line 7", "line 8", "line 9"]
        assert lines[5] == "```"

    def test_short_fence_unchanged(self):
        text = "```\na\nb\n"
        assert truncate_pending_code_fence(text, 5) == text

    def test_closed_fence_unchanged(self):
        text = "```\n" + "x\n" * 20 + "```\n"
        assert truncate_pending_code_fence(text, 3) == text

    def test_non_fence_unchanged(self):
        text = "para\n" * 50
        assert truncate_pending_code_fence(text, 3) == text

    def test_leading_blank_lines_are_kept(self):
        text = "\n```\n" + "x\n" * 10
        out = truncate_pending_code_fence(text, 2)
        assert out.startswith("\n```\n" + PENDING_FENCE_MARKER + "\n")


# ─── Test 4: Paragraph groups ────────────────────────────────────────────────


class TestParagraphGroups:
    def test_blank_lines_stay_with_preceding_group(self):
        chunks = split_paragraph_groups("a\nb\n\n\nc\n\nd")
        assert [c.text for c in chunks] == ["a\nb\n\n\n", "c\n\n", "d"]

    def test_concatenation_is_identity(self):
        text = "\n\nlead\n\nx\ny\n\n\n"
        assert "".join(c.text for c in split_paragraph_groups(text)) == text

    def test_empty(self):
        assert split_paragraph_groups("") == []
