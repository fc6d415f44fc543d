"""Tests for the unified diff adapter and diff rendering."""

from termrender.adapters import diff
from termrender.core.blocks import BlockKind, DiffLineKind
from termrender.options import RenderOptions
from termrender.render.renderer import render_block

from helpers import parse_fmt, texts

PATCH = """\
diff --git a/app.py b/app.py
index 1234567..89abcde 100644
--- a/app.py
+++ b/app.py
@@ -1,5 +1,5 @@
 one
 two
-value = 1
-name = "old"
+value = 2
+name = "new"
 three
"""


def hunk_lines(text=PATCH, options=None):
    block = [b for b in parse_fmt(text, "diff", options) if b.kind is BlockKind.DIFF_HUNK][0]
    return block, block.parts[0].lines


# ─── Test 1: Chunking ────────────────────────────────────────────────────────


class TestSplit:
    def test_header_and_hunk_chunks(self):
        chunks = diff.split(PATCH)
        assert len(chunks) == 2
        assert chunks[0].text.startswith("diff --git")
        assert chunks[1].text.startswith("@@ -1,5 +1,5 @@")
        assert "".join(c.text for c in chunks) == PATCH

    def test_removed_line_looking_like_header_stays_in_hunk(self):
        text = "@@ -1,2 +1,1 @@\n--- a/fake\n keep\n"
        chunks = diff.split(text)
        assert len(chunks) == 1

    def test_preamble_is_kept(self):
        text = "From abc\nSubject: x\n\n" + PATCH
        blocks = parse_fmt(text, "diff")
        assert [b.kind for b in blocks] == [BlockKind.PLAIN, BlockKind.DIFF_HEADER, BlockKind.DIFF_HUNK]

    def test_each_hunk_is_a_chunk(self):
        text = PATCH + "@@ -10,1 +10,1 @@\n-a\n+b\n"
        blocks = parse_fmt(text, "diff")
        assert [b.kind for b in blocks] == [BlockKind.DIFF_HEADER, BlockKind.DIFF_HUNK, BlockKind.DIFF_HUNK]


# ─── Test 2: Hunk content ────────────────────────────────────────────────────


class TestHunk:
    def test_line_kinds_in_order(self):
        _, lines = hunk_lines()
        assert [line.kind for line in lines] == [
            DiffLineKind.HUNK,
            DiffLineKind.CONTEXT,
            DiffLineKind.CONTEXT,
            DiffLineKind.REMOVE,
            DiffLineKind.REMOVE,
            DiffLineKind.ADD,
            DiffLineKind.ADD,
            DiffLineKind.CONTEXT,
        ]

    def test_line_numbers(self):
        _, lines = hunk_lines()
        assert [(line.old_no, line.new_no) for line in lines[1:]] == [
            (1, 1),
            (2, 2),
            (3, None),
            (4, None),
            (None, 3),
            (None, 4),
            (5, 5),
        ]

    def test_language_from_file_header(self):
        block, _ = hunk_lines()
        assert block.parts[0].language == "py"
        assert block.uses_highlighter

    def test_long_hunk_is_not_highlighted(self):
        block, _ = hunk_lines(options=RenderOptions(max_highlight_lines=6))
        assert block.parts[0].language is None
        assert not block.uses_highlighter

    def test_language_carries_past_long_hunk(self):
        text = PATCH + "@@ -10,1 +10,1 @@\n-a\n+b\n"
        blocks = parse_fmt(text, "diff", RenderOptions(max_highlight_lines=6))
        assert [b.parts[0].language for b in blocks[1:]] == [None, "py"]

    def test_intraline_ranges_only_on_changed_lines(self):
        _, lines = hunk_lines()
        by_text = {line.text: line for line in lines}
        assert by_text["value = 1"].changes == ((8, 9),)
        assert by_text["value = 2"].changes == ((8, 9),)
        assert by_text['name = "old"'].changes == ((8, 11),)
        assert all(line.changes == () for line in lines if line.kind is DiffLineKind.CONTEXT)

    def test_intraline_can_be_disabled(self):
        _, lines = hunk_lines(options=RenderOptions(diff_intraline=False))
        assert all(line.changes == () for line in lines)

    def test_rewrite_gets_no_intraline_marks(self):
        old, new = diff.char_changes("completely different", "xyz 123")
        assert old == () and new == ()


# ─── Test 3: Rendering ───────────────────────────────────────────────────────


class TestRender:
    def test_prefixes_and_order(self):
        block, _ = hunk_lines()
        assert texts(render_block(block, 80)) == [
            "@@ -1,5 +1,5 @@",
            " one",
            " two",
            "-value = 1",
            '-name = "old"',
            "+value = 2",
            '+name = "new"',
            " three",
        ]

    def test_change_token_only_on_add_and_remove(self):
        block, _ = hunk_lines()
        lines = render_block(block, 80)
        for line in lines:
            marked = any(".change" in span.token for span in line.spans)
            assert marked == (line.text[:1] in ("+", "-"))

    def test_change_span_covers_changed_characters(self):
        block, _ = hunk_lines()
        line = render_block(block, 80)[3]
        changed = [s.text for s in line.spans if s.token.endswith("diff.remove.change")]
        assert changed == ["1"]

    def test_gutter_line_numbers(self):
        block, _ = hunk_lines(options=RenderOptions(diff_line_numbers=True))
        lines = texts(render_block(block, 80))
        assert lines[1] == "   1    1 │  one"
        assert lines[3] == "   3      │ -value = 1"

    def test_natural_width_without_wrap(self):
        text = "@@ -1,1 +1,1 @@\n-" + "a" * 100 + "\n+" + "b" * 100 + "\n"
        block = parse_fmt(text, "diff")[0]
        lines = render_block(block, 40)
        assert max(line.cell_length for line in lines) == 101

    def test_wrap_diff_option(self):
        text = "@@ -1,1 +1,1 @@\n-" + "a" * 100 + "\n"
        block = parse_fmt(text, "diff", RenderOptions(wrap_diff=True))[0]
        assert all(line.cell_length <= 40 for line in render_block(block, 40))

    def test_truncated_hunk_renders(self):
        text = "@@ -1,3 +1,3 @@\n context\n-gone\n"
        block = parse_fmt(text, "diff")[0]
        assert texts(render_block(block, 80)) == ["@@ -1,3 +1,3 @@", " context", "-gone"]


def test_language_for_path():
    assert diff.language_for_path("b/src/main.rs") == "rs"
    assert diff.language_for_path("/dev/null") is None
    assert diff.language_for_path("Makefile") is None
