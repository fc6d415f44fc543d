"""Tests for the markdown source adapter and its rendering."""

import pytest

from termrender.adapters import markdown
from termrender.core.blocks import BlockKind, CodePart
from termrender.core.lines import Span
from termrender.document import Document
from termrender.options import RenderOptions
from termrender.render.renderer import render_block

from helpers import parse_fmt, render_md


def kinds(text):
    return [block.kind for block in parse_fmt(text)]


# ─── Test 1: Chunking ────────────────────────────────────────────────────────


SAMPLE = """\
# Title

Some *text* with a [link](https://example.com).

- one
- two

```python
def f():
    return 1
```

> quote

| a | b |
|---|---|
| 1 | 2 |

---

Final paragraph.
"""


class TestSplit:
    @pytest.mark.parametrize(
        "text",
        [
            SAMPLE,
            "",
            "\n\n\n",
            "no trailing newline",
            "```\nunterminated\n",
            "para\n\n[^1]: note\n\nafter\n",
            "\n\nleading blank\n\n\n",
        ],
    )
    def test_chunks_concatenate_to_input(self, text):
        assert "".join(c.text for c in markdown.split(text)) == text

    def test_one_chunk_per_top_level_block(self):
        assert kinds(SAMPLE) == [
            BlockKind.HEADING,
            BlockKind.PARAGRAPH,
            BlockKind.LIST,
            BlockKind.CODE,
            BlockKind.BLOCKQUOTE,
            BlockKind.TABLE,
            BlockKind.RULE,
            BlockKind.PARAGRAPH,
        ]

    def test_gap_lines_travel_with_following_block(self):
        chunks = markdown.split("a\n\nb\n")
        assert [c.text for c in chunks] == ["a\n", "\nb\n"]

    def test_closed_fence_at_end_is_closed_chunk(self):
        chunks = markdown.split("text\n\n```\ncode\n```\n")
        assert chunks[-1].closed
        assert chunks[-1].text == "\n```\ncode\n```\n"

    def test_open_fence_at_end_is_not_closed(self):
        chunks = markdown.split("```\ncode\n")
        assert not chunks[-1].closed


# ─── Test 2: Headings and paragraphs ─────────────────────────────────────────


class TestProse:
    def test_heading_and_paragraph(self):
        assert render_md("# Title\n\nHello **world**.\n") == ["Title", "", "Hello world."]

    def test_heading_markers_option(self):
        options = RenderOptions(heading_markers=True)
        assert render_md("## Sub\n", options=options) == ["## Sub"]

    def test_heading_token(self):
        block = parse_fmt("### Three\n")[0]
        inline = block.parts[0].lines[0][0]
        assert inline.token == "markdown.h3"

    def test_hard_break_starts_new_line(self):
        assert render_md("one  \ntwo\n") == ["one", "two"]

    def test_soft_break_is_a_space(self):
        assert render_md("one\ntwo\n") == ["one two"]

    def test_unclosed_emphasis_is_literal(self):
        assert render_md("**unclosed bold\n") == ["**unclosed bold"]

    def test_every_line_fits_width(self):
        text = "word " * 60 + "\n\n- " + "item " * 30 + "\n\n> " + "quoted " * 30 + "\n"
        for width in (10, 17, 33):
            assert all(len(line) <= width for line in render_md(text, width))


# ─── Test 3: Lists ───────────────────────────────────────────────────────────


class TestLists:
    def test_tight_list(self):
        assert render_md("- one\n- two\n") == ["• one", "• two"]

    def test_loose_list_has_blank_between_items(self):
        assert render_md("- one\n\n- two\n") == ["• one", "", "• two"]

    def test_loose_list_join_quirk(self):
        options = RenderOptions(loose_list_join=True)
        assert render_md("- one\n\n- two\n", options=options) == ["• one", "• two"]

    def test_ordered_list_numbers(self):
        assert render_md("3. a\n4. b\n") == ["3. a", "4. b"]

    def test_nested_list_indents(self):
        assert render_md("- a\n  - b\n") == ["• a", "  • b"]

    def test_task_items(self):
        assert render_md("- [ ] todo\n- [x] done\n") == ["• [ ] todo", "• [✓] done"]

    def test_wrapped_item_hangs_under_text(self):
        lines = render_md("- alpha beta gamma\n", width=10)
        assert lines == ["• alpha", "  beta", "  gamma"]


# ─── Test 4: Links and images ────────────────────────────────────────────────


class TestLinks:
    def test_paren_display(self):
        assert render_md("[site](https://example.com)\n") == ["site (https://example.com)"]

    def test_hidden_display(self):
        options = RenderOptions(link_display="hide")
        assert render_md("[site](https://example.com)\n", options=options) == ["site"]

    def test_space_display(self):
        options = RenderOptions(link_display="space")
        assert render_md("[site](https://example.com)\n", options=options) == ["site https://example.com"]

    def test_autolink_shows_url_once(self):
        assert render_md("<https://example.com>\n") == ["https://example.com"]

    def test_link_text_stays_together(self):
        options = RenderOptions(link_display="hide")
        lines = render_md("click [the docs page](https://x.io) now\n", width=14, options=options)
        assert lines == ["click", "the docs page", "now"]

    def test_reference_defined_before_use(self):
        text = "[ref]: https://example.com\n\nSee [site][ref].\n"
        assert render_md(text) == ["See site (https://example.com)."]

    def test_reference_carries_across_blocks(self):
        text = "[ref]: https://x.io\n\nFirst [a][ref].\n\nSecond [b][ref].\n"
        assert render_md(text) == ["First a (https://x.io).", "", "Second b (https://x.io)."]

    def test_unknown_reference_is_literal(self):
        assert render_md("See [site][nope].\n") == ["See [site][nope]."]

    def test_base_url_resolves_relative_links(self):
        options = RenderOptions(base_url="https://ex.com/docs/")
        assert render_md("[guide](guide.md)\n", options=options) == ["guide (https://ex.com/docs/guide.md)"]

    def test_base_url_leaves_absolute_links(self):
        assert markdown.resolve_url("https://a.io/x", "https://b.io/") == "https://a.io/x"
        assert markdown.resolve_url("#anchor", "https://b.io/") == "#anchor"

    def test_image(self):
        options = RenderOptions(base_url="https://ex.com/docs/")
        lines = render_md("![alt text](img.png)\n", options=options)
        assert lines == ["Image: alt text → https://ex.com/docs/img.png"]


# ─── Test 5: Code, quotes, rules, html ───────────────────────────────────────


class TestBlocks:
    def test_fenced_code_is_indented(self):
        assert render_md("```python\nx = 1\n```\n") == ["    x = 1"]

    def test_code_language_is_normalized(self):
        block = parse_fmt("```Python title=x\nx\n```\n")[0]
        part = block.parts[0]
        assert isinstance(part, CodePart)
        assert part.language == "python"
        assert block.uses_highlighter

    def test_code_keeps_natural_width(self):
        long = "x" * 120
        assert render_md(f"```\n{long}\n```\n", width=40) == ["    " + long]

    def test_wrap_code_option_hard_wraps(self):
        options = RenderOptions(wrap_code=True)
        lines = render_md("```\n" + "y" * 50 + "\n```\n", width=20, options=options)
        assert all(len(line) <= 20 for line in lines)
        assert "".join(line.strip() for line in lines) == "y" * 50

    def test_unterminated_fence_shows_code(self):
        assert render_md("```\ncode here\n") == ["    code here"]

    def test_blockquote(self):
        assert render_md("> a\n>\n> b\n") == ["│ a", "│", "│ b"]

    def test_code_in_quote_uses_quote_indent(self):
        assert render_md("> ```\n> x\n> ```\n") == ["│   x"]

    @pytest.mark.parametrize("width", [40, 80])
    def test_rule_is_fixed_literal(self, width):
        assert render_md("---\n", width=width) == ["--------"]

    def test_html_block_is_literal(self):
        assert render_md("<div>\nhi\n</div>\n") == ["<div>", "hi", "</div>"]

    def test_html_keeps_tags_and_entities_muted(self):
        assert render_md("<div>&amp; x</div>\n") == ["<div>&amp; x</div>"]
        inline = parse_fmt("a <b>bold</b> c\n")[0].parts[0].lines[0]
        assert [i.text for i in inline if "markdown.html" in i.token] == ["<b>", "</b>"]


# ─── Test 6: Tables ──────────────────────────────────────────────────────────


TABLE = "| a | b |\n|---|--:|\n| 1 | 22 |\n"


class TestTables:
    def test_glow_style(self):
        assert render_md(TABLE) == [" a │  b ", "───┼────", " 1 │ 22 "]

    def test_box_style(self):
        options = RenderOptions(table_style="box")
        assert render_md(TABLE, options=options) == [
            "┌───┬────┐",
            "│ a │  b │",
            "├───┼────┤",
            "│ 1 │ 22 │",
            "└───┴────┘",
        ]

    def test_narrow_table_wraps_cells(self):
        text = "| name | description |\n|---|---|\n| x | a long description here |\n"
        lines = render_md(text, width=20)
        assert all(len(line) <= 20 for line in lines)
        assert len(lines) == 5
        assert all("│" in line for line in lines[2:])

    def test_table_too_narrow_falls_back_to_cells(self):
        lines = render_md(TABLE, width=4)
        joined = " ".join(lines)
        for cell in ("a", "b", "1", "22"):
            assert cell in joined
        assert all(len(line) <= 4 for line in lines)


# ─── Test 7: Footnotes ───────────────────────────────────────────────────────


class TestFootnotes:
    def test_footnote_definition(self):
        text = "Text[^1].\n\n[^1]: The note.\n"
        assert render_md(text) == ["Text[^1].", "", "[^1]: The note."]
        assert kinds(text) == [BlockKind.PARAGRAPH, BlockKind.FOOTNOTE]

    def test_footnote_inside_fence_is_code(self):
        text = "```\n[^1]: not a note\n```\n"
        assert render_md(text) == ["    [^1]: not a note"]

    def test_footnote_continuation_hangs(self):
        text = "[^n]: first part\n    second part\n"
        assert render_md(text, width=18) == ["[^n]: first part", "      second part"]

    def test_footnotes_at_end_moves_definitions_last(self):
        text = "Text[^1].\n\n[^1]: The note.\n\nMore text.\n"
        options = RenderOptions(footnotes_at_end=True)
        lines = [line.text for line in Document.from_text(text, options=options).render(80)]
        assert lines == ["Text[^1].", "", "More text.", "", "[^1]: The note."]

    def test_footnotes_stay_in_place_by_default(self):
        text = "Text[^1].\n\n[^1]: The note.\n\nMore text.\n"
        lines = [line.text for line in Document.from_text(text).render(80)]
        assert lines == ["Text[^1].", "", "[^1]: The note.", "", "More text."]


# ─── Test 8: Reference resolution ────────────────────────────────────────────


class TestReferences:
    def test_definition_after_use_resolves(self):
        text = "see [foo]\n\nmiddle\n\n[foo]: https://example.com\n"
        assert render_md(text) == ["see foo (https://example.com)", "", "middle"]

    def test_full_reference_defined_at_end(self):
        text = "See [site][ref].\n\n[ref]: https://x.io\n"
        assert render_md(text) == ["See site (https://x.io)."]

    def test_first_definition_wins(self):
        text = "[x]\n\n[x]: https://a.io\n\n[x]: https://b.io\n"
        assert render_md(text) == ["x (https://a.io)"]

    def test_labels_match_case_insensitively(self):
        text = "see [Foo Bar]\n\n[foo   bar]: https://x.io\n"
        assert render_md(text) == ["see Foo Bar (https://x.io)"]

    def test_adding_definition_changes_only_referencing_blocks(self):
        doc = Document.from_text("see [foo]\n\nmiddle\n\nend\n")
        changed = doc.set_source("see [foo]\n\nmiddle\n\n[foo]: https://x.io\n\nend\n")
        assert changed == [0, 2]
        assert doc.render_plain(80).splitlines()[0] == "see foo (https://x.io)"

    def test_definition_text_is_not_displayed(self):
        assert render_md("[a]: https://x.io 'title'\n\ntext\n") == ["text"]


# ─── Test 9: Layout options and containers ───────────────────────────────────


class TestLayoutOptions:
    def test_preserve_new_lines(self):
        options = RenderOptions(preserve_new_lines=True)
        assert render_md("one\ntwo\n", options=options) == ["one", "two"]

    def test_preserve_new_lines_keeps_link_together(self):
        options = RenderOptions(preserve_new_lines=True, link_display="hide")
        assert render_md("a [b\nc](https://x.io) d\n", options=options) == ["a b c d"]

    def test_code_line_numbers(self):
        options = RenderOptions(show_code_line_numbers=True)
        text = "```\n" + "x\n" * 10 + "```\n"
        lines = render_md(text, options=options)
        assert lines[0] == "     1 │ x"
        assert lines[-1] == "    10 │ x"

    def test_code_line_number_token(self):
        options = RenderOptions(show_code_line_numbers=True)
        block = parse_fmt("```\na\n```\n", options=options)[0]
        line = render_block(block, 80)[0]
        assert Span("1 │ ", "markdown.code_line_number") in line.spans

    def test_long_code_block_is_not_highlighted(self):
        options = RenderOptions(max_highlight_lines=2)
        block = parse_fmt("```python\na = 1\nb = 2\nc = 3\n```\n", options=options)[0]
        assert block.parts[0].highlight is False
        assert not block.uses_highlighter
        short = parse_fmt("```python\na = 1\nb = 2\n```\n", options=options)[0]
        assert short.uses_highlighter

    def test_code_in_list_item_bullets_first_row_only(self):
        assert render_md("- ```\n  x\n  y\n  ```\n") == ["•     x", "      y"]

    def test_table_in_list_item_bullets_first_row_only(self):
        text = "- | a | b |\n  |---|---|\n  | 1 | 2 |\n"
        assert render_md(text) == ["•  a │ b ", "  ───┼───", "   1 │ 2 "]

    def test_narrow_table_fallback_in_list_item(self):
        text = "- | a | b |\n  |---|---|\n  | 1 | 22 |\n"
        lines = render_md(text, width=5)
        assert lines[0].startswith("• ")
        assert all(line.startswith("  ") for line in lines[1:])

    def test_long_header_wraps_without_loss(self):
        text = "| alpha_header_long | b |\n|---|---|\n| 1 | 2 |\n"
        lines = render_md(text, width=14)
        assert all(len(line) <= 14 for line in lines)
        rule = next(n for n, line in enumerate(lines) if line.startswith("─"))
        assert rule > 1
        assert "".join(line.split("│")[0].strip() for line in lines[:rule]) == "alpha_header_long"
        assert "…" not in "".join(lines)

    def test_header_truncate_option(self):
        text = "| alpha_header_long | b |\n|---|---|\n| 1 | 2 |\n"
        options = RenderOptions(table_header_truncate=True)
        lines = render_md(text, width=14, options=options)
        assert lines[0] == " alpha_h… │ b "

    def test_body_cells_beyond_header_are_kept(self):
        lines = render_md("| a | b |\n|---|---|\n| 1 | 2 | 3 |\n")
        assert "3" in lines[-1]
        assert lines[-1].split("│")[2].strip() == "3"

    def test_fence_info_is_metadata(self):
        lines = render_md("```python title=example.py\nx = 1\n```\n")
        assert lines == ["    x = 1"]
