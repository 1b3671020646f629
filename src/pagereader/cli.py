# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page Reader CLI: parse and check commands.

Usage:
    pagereader parse FILE [--url URL] [--json] [--char-threshold N] [--max-elems N] [--keep-classes]
    pagereader check FILE

FILE may be ``-`` to read from stdin. Defaults come from the ``PAGEREADER_*``
environment variables; flags override them.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path

from pagereader.config import ReadabilityOptions
from pagereader.errors import ReadabilityError
from pagereader.logging_config import configure

logger = logging.getLogger(__name__)


def _read_source(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


def _options_from_args(args: argparse.Namespace) -> ReadabilityOptions:
    options = ReadabilityOptions.from_env()
    overrides: dict = {}
    if args.char_threshold is not None:
        overrides["char_threshold"] = args.char_threshold
    if args.max_elems is not None:
        overrides["max_elems_to_parse"] = args.max_elems
    if args.keep_classes:
        overrides["keep_classes"] = True
    return dataclasses.replace(options, **overrides) if overrides else options


def cmd_parse(args: argparse.Namespace) -> None:
    """Extract the article and print its HTML (or the full result as JSON)."""
    from pagereader.pipeline import parse

    options = _options_from_args(args)
    result = parse(_read_source(args.file), url=args.url, options=options)
    if result.below_threshold:
        logger.warning("Article shorter than char_threshold=%d (%d chars)", options.char_threshold, result.length)

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(result.content)


def cmd_check(args: argparse.Namespace) -> None:
    """Print whether the document looks like an article."""
    from pagereader.pipeline import load_document
    from pagereader.readerable import is_probably_readerable

    root = load_document(_read_source(args.file))
    print("true" if is_probably_readerable(root) else "false")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Page Reader CLI",
        prog="pagereader",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", required=True)

    _parse_epilog = """\
examples:
  %(prog)s page.html                                Print article HTML
  %(prog)s page.html --url https://example.com/a    Resolve relative links
  %(prog)s page.html --json                         Full result as JSON
  curl -s https://example.com | %(prog)s -          Read from stdin
"""
    p_parse = subparsers.add_parser(
        "parse",
        help="Extract the readable article from an HTML file",
        epilog=_parse_epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p_parse.add_argument("file", metavar="FILE", help="HTML file, or - for stdin")
    p_parse.add_argument("--url", type=str, metavar="URL", help="Document URL used to resolve relative links")
    p_parse.add_argument("--json", action="store_true", help="Print the full result as JSON")
    p_parse.add_argument("--char-threshold", type=int, metavar="N", help="Minimum article length in characters")
    p_parse.add_argument(
        "--max-elems", type=int, metavar="N", help="Refuse documents with more elements (0 = no limit)"
    )
    p_parse.add_argument("--keep-classes", action="store_true", help="Keep class attributes in the output")

    p_check = subparsers.add_parser("check", help="Quick check whether a page looks like an article")
    p_check.add_argument("file", metavar="FILE", help="HTML file, or - for stdin")

    commands = {"parse": cmd_parse, "check": cmd_check}

    args = parser.parse_args(argv)
    configure(level="DEBUG" if args.verbose else None)

    try:
        commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)
    except (ReadabilityError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
