"""CLI entry point for termrender: render a file (or stdin) to the terminal."""

import argparse
import logging
import shutil
import sys
from pathlib import Path

from rich.console import Console

import termrender.logging_setup
import termrender.settings
from termrender import golden
from termrender.adapters.registry import FORMATS
from termrender.document import Document
from termrender.highlight import available_highlighters, get_highlighter
from termrender.options import LINK_DISPLAYS, TABLE_STYLES
from termrender.render.strips import line_to_text
from termrender.streaming import StreamingDocument
from termrender.theme import available_themes, build_theme

logger = logging.getLogger(__name__)

# [LAW:dataflow-not-control-flow] File extension → format
_FORMAT_BY_SUFFIX = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".diff": "diff",
    ".patch": "diff",
    ".ans": "ansi",
    ".ansi": "ansi",
    ".log": "ansi",
    ".txt": "plain",
}


def guess_format(path: str | None) -> str:
    if not path or path == "-":
        return "markdown"
    return _FORMAT_BY_SUFFIX.get(Path(path).suffix.lower(), "markdown")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="termrender", description="Render Markdown, diffs and ANSI text for the terminal")
    parser.add_argument("path", nargs="?", default="-", help="Input file (default: stdin)")
    parser.add_argument("--format", choices=FORMATS, default=None, help="Input format (default: from file extension)")
    parser.add_argument("--width", type=int, default=None, help="Render width in cells (default: terminal width)")
    parser.add_argument("--plain", action="store_true", help="Print normalized plain text (golden snapshot mode)")
    parser.add_argument(
        "--stream",
        type=int,
        default=0,
        metavar="N",
        help="Feed the input through the streaming renderer in N-byte deltas",
    )
    parser.add_argument("--highlighter", choices=available_highlighters(), default=None)
    parser.add_argument("--theme", choices=available_themes(), default=None)
    parser.add_argument("--table-style", choices=TABLE_STYLES, default=None)
    parser.add_argument("--links", choices=LINK_DISPLAYS, default=None, help="Link destination display")
    parser.add_argument("--heading-markers", action="store_true", default=None, help="Show '#' heading markers")
    parser.add_argument("--base-url", default=None, help="Base URL for relative links and images")
    parser.add_argument("--wrap-code", action="store_true", default=None, help="Soft-wrap code blocks")
    parser.add_argument("--line-numbers", action="store_true", default=None, help="Show diff line numbers")
    parser.add_argument("--no-intraline", action="store_true", help="Disable intraline diff highlighting")
    parser.add_argument(
        "--code-line-numbers", action="store_true", default=None, help="Number the lines of code blocks"
    )
    parser.add_argument(
        "--footnotes-at-end", action="store_true", default=None, help="Move footnote definitions to the end"
    )
    parser.add_argument(
        "--preserve-new-lines", action="store_true", default=None, help="Keep line breaks inside paragraphs"
    )
    parser.add_argument("--save-settings", action="store_true", help="Persist the effective options as defaults")
    parser.add_argument("--log-level", default=None, help="Log level (default: $TERMRENDER_LOG_LEVEL or WARNING)")
    return parser


def _options_from_args(args, options):
    overrides = {
        "table_style": args.table_style,
        "link_display": args.links,
        "heading_markers": args.heading_markers,
        "base_url": args.base_url,
        "wrap_code": args.wrap_code,
        "diff_line_numbers": args.line_numbers,
        "diff_intraline": False if args.no_intraline else None,
        "show_code_line_numbers": args.code_line_numbers,
        "footnotes_at_end": args.footnotes_at_end,
        "preserve_new_lines": args.preserve_new_lines,
    }
    return options.with_overrides(**{k: v for k, v in overrides.items() if v is not None})


def _theme(name: str):
    try:
        return build_theme(name)
    except ValueError:
        logger.warning("unknown theme %r in settings; using %s", name, termrender.settings.DEFAULT_THEME)
        return build_theme(termrender.settings.DEFAULT_THEME)


def _highlighter(name: str):
    try:
        return get_highlighter(name)
    except ValueError:
        logger.warning("unknown highlighter %r in settings; using %s", name, termrender.settings.DEFAULT_HIGHLIGHTER)
        return get_highlighter(termrender.settings.DEFAULT_HIGHLIGHTER)


def _read_input(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


def _render_streaming(raw: bytes, fmt, options, width, theme, highlighter, step: int):
    doc = StreamingDocument(fmt, options)
    for start in range(0, len(raw), step):
        doc.append(raw[start : start + step])
    doc.finalize()
    return doc.render(width, theme, highlighter)


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    termrender.logging_setup.configure(args.log_level)

    try:
        raw = _read_input(args.path)
    except OSError as exc:
        print(f"termrender: cannot read {args.path}: {exc}", file=sys.stderr)
        return 1

    fmt = args.format or guess_format(args.path)
    prefs = termrender.settings.load_preferences()
    options = _options_from_args(args, prefs.options)
    theme = _theme(args.theme or prefs.theme)
    highlighter = _highlighter(args.highlighter or prefs.highlighter)
    width = args.width or shutil.get_terminal_size((80, 24)).columns
    logger.debug("rendering %s as %s at width %d", args.path, fmt, width)

    if args.stream > 0:
        lines = _render_streaming(raw, fmt, options, width, theme, highlighter, args.stream)
    else:
        doc = Document(fmt, options=options, theme=theme, highlighter=highlighter)
        doc.set_source(raw)
        lines = doc.render(width)

    if args.save_settings:
        termrender.settings.save_preferences(termrender.settings.Preferences(options, theme.name, highlighter.name))

    if args.plain:
        sys.stdout.write(golden.to_plain(lines) + "\n")
        return 0

    console = Console(highlight=False)
    for line in lines:
        console.print(line_to_text(line, theme), soft_wrap=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
