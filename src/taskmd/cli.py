#!/usr/bin/env python3
"""
todo - query and lint markdown task lists

Usage:
    todo query "<query>" [-o table|json]
    todo lint <file>
    todo help

Examples:
    todo query "SELECT * FROM tasks.md"
    todo query -o json "SELECT title, priority FROM tasks.md WHERE completed = false"
    todo query "SELECT * FROM tasks.md ORDER BY priority ASC, due DESC LIMIT 5"
    todo query "SELECT * FROM tasks.md ORDER BY weight DESC INTO sorted.md"
    todo query "UPDATE tasks.md SET priority = 'A' WHERE id = 'a1b2c3d4'"
    todo query "DELETE FROM tasks.md WHERE completed = true"
    todo query "INSERT INTO tasks.md SET title = 'New task', stakeholders = 'Rosa, Bob'"
    todo lint tasks.md
"""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from .config import Settings
from .formatting import format_json, format_table
from .linter import LintFailure, lint_lines
from .query import QueryError, QueryValidationError, parse_query
from .evaluator import execute_query
from .sections import load_lines

log = logging.getLogger(__name__)

SYNTAX_HELP = """
Task syntax:
    Tasks are markdown bullets under a "## TODO" heading (the whole file when
    the heading is missing). Nesting is by indentation, two spaces per level.

    Single-line task:
      - [x] A @Alice #urgent "Fix login bug" due: 2025-10-01 weight: 10

    Multi-line task:
      - A @Alice #urgent "Fix login bug"
        due: 2025-10-01
        description: |
          Users with special characters in their
          passwords cannot sign in.

    Prefix shorthand (only at the start of the bullet):
      [x] or x     completed: true
      [_]          completed: false
      [-] or -     skipped: true
      A-D          priority
      @name        adds to stakeholders
      #name        adds to tags

    Values: key: value, key: "quoted value", key: 'single', key: `verbatim`,
    and key: | followed by indented lines for multi-line text.

Queries:
    SELECT <*|fields> FROM <file> [WHERE cond] [ORDER BY key [ASC|DESC], ...]
           [LIMIT n] [INTO <file>]
    UPDATE <file> SET field = value, ... [WHERE cond]
    DELETE FROM <file> [WHERE cond]
    INSERT INTO <file> SET field = value, ...

    Conditions: field = v, field > v, field < v, field CONTAINS v,
    field IS NULL, field IS NOT NULL; at most one AND or OR.
    Missing values sort first. SET field = NULL removes a field.

Exit status:
    0 on success, 1 on lint errors, missing files, or invalid queries.
"""


def load_settings(args) -> Settings:
    try:
        return Settings.from_env(indent_size=args.indent_size,
                                 section_heading=args.section)
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}", file=sys.stderr)
        sys.exit(1)


def lint_cmd(args):
    """Lint a task file and print one line per issue."""
    settings = args.settings
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)

    result = lint_lines(load_lines(path), settings.indent_size, settings.section_heading)
    if not result.issues:
        print("No lint issues found.")
        return
    for issue in result.issues:
        print(issue.format(path))
    if result.errors:
        sys.exit(1)


def query_cmd(args):
    """Run a query and print rows or a summary of what changed."""
    settings = args.settings
    try:
        query = parse_query(args.query)
        result = execute_query(query, settings)
    except QueryValidationError as e:
        for problem in e.problems:
            print(f"Error: {problem}", file=sys.stderr)
        sys.exit(1)
    except LintFailure as e:
        print(f"Error: {e.file_path} has lint errors; fix them before querying.",
              file=sys.stderr)
        print(str(e), file=sys.stderr)
        sys.exit(1)
    except (QueryError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if 'rows' in result:
        rows = result['rows']
        print(format_json(rows) if args.format == 'json' else format_table(rows))
    else:
        print(result['message'])


def help_cmd(args):
    print(__doc__.strip())
    print(SYNTAX_HELP)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='todo',
        description="Query and lint markdown task lists",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--indent-size', type=int, help='Spaces per nesting level')
    parser.add_argument('--section', help='Heading of the task section (default: ## TODO)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging to stderr')
    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # --- query ---
    query_p = subparsers.add_parser('query', help='Run a SELECT/UPDATE/DELETE/INSERT query')
    query_p.add_argument('query', help='Query text')
    query_p.add_argument('-o', '--format', choices=['table', 'json'], default='table',
                         help='Output format for SELECT (default: table)')
    query_p.set_defaults(func=query_cmd)

    # --- lint ---
    lint_p = subparsers.add_parser('lint', help='Check a task file for syntax problems')
    lint_p.add_argument('file', help='Markdown file to lint')
    lint_p.set_defaults(func=lint_cmd)

    # --- help ---
    help_p = subparsers.add_parser('help', help='Show syntax and query help')
    help_p.set_defaults(func=help_cmd)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    args.settings = load_settings(args)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else args.settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not hasattr(args, 'func'):
        parser.print_help()
        sys.exit(1)
    log.debug("Running %s with %s", args.command, args.settings)
    args.func(args)


if __name__ == '__main__':
    main()
