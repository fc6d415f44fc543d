"""Golden plain-text snapshots: normalized render output for fixed inputs."""

from termrender import golden
from termrender.document import Document
from termrender.options import RenderOptions


def test_normalize_strips_trailing_space_and_margin():
    assert golden.normalize("  a  \n    b\n\n\n") == "a\n  b"


def test_normalize_keeps_interior_blank_lines():
    assert golden.normalize("a\n\n\nb") == "a\n\n\nb"


def test_normalize_all_blank():
    assert golden.normalize("\n \n") == ""


MARKDOWN = """\
# Release notes

Version **2.0** adds [streaming](https://example.com/streaming) output.

1. Faster tables
2. Fewer allocations

```sh
termrender --stream 16 notes.md
```

---

| flag | meaning |
|------|:-------:|
| -w | width |
"""

MARKDOWN_GOLDEN = """\
Release notes

Version 2.0 adds streaming (https://example.com/streaming) output.

1. Faster tables
2. Fewer allocations

    termrender --stream 16 notes.md

--------

 flag │ meaning
──────┼─────────
 -w   │  width"""


def test_markdown_snapshot():
    assert Document.from_text(MARKDOWN).render_plain(80) == MARKDOWN_GOLDEN


def test_markdown_snapshot_is_width_stable_for_rules_and_code():
    narrow = Document.from_text(MARKDOWN).render_plain(40).split("\n")
    assert "--------" in narrow
    assert "    termrender --stream 16 notes.md" in narrow


def test_markdown_box_table_snapshot():
    options = RenderOptions(table_style="box")
    text = "| k | v |\n|---|---|\n| x | 1 |\n"
    assert Document.from_text(text, options=options).render_plain(80) == (
        "┌───┬───┐\n│ k │ v │\n├───┼───┤\n│ x │ 1 │\n└───┴───┘"
    )


DIFF = """\
--- a/notes.txt
+++ b/notes.txt
@@ -1,2 +1,2 @@
 keep
-old line
+new line
"""


def test_diff_snapshot():
    assert Document.from_text(DIFF, "diff").render_plain(80) == (
        "--- a/notes.txt\n+++ b/notes.txt\n@@ -1,2 +1,2 @@\n keep\n-old line\n+new line"
    )


def test_ansi_snapshot():
    text = "\x1b[32mok\x1b[0m   passed\n\x1b[31mFAIL\x1b[0m failed\n"
    assert Document.from_text(text, "ansi").render_plain(80) == "ok   passed\nFAIL failed"
