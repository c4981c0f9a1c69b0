#!/usr/bin/env python3
"""
Linter for markdown task sections.

Main API:
- lint_lines(lines, indent_size, section_heading) -> LintResult
- lint_content(content, ...) -> LintResult

The linter is a single pass over the task region. All cross-line state
(open bullet stack, seen ids, open multi-line block) lives on one
`_LintState` object, so nothing leaks between runs.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set

from .lexer import (KEY_TOKEN_RE, QUOTE_KINDS, MULTILINE_MARKER, Token,
                    find_unclosed_quote, is_quoted, tokenize, unquote)
from .sections import DEFAULT_SECTION_HEADING, find_task_region
from .syntax import Line, measure, prefix_class

log = logging.getLogger(__name__)


ERROR_CODES = {
    'UNCLOSED_DOUBLE_QUOTE': 'TD001',
    'UNCLOSED_SINGLE_QUOTE': 'TD002',
    'UNCLOSED_BACKTICK': 'TD003',
    'MISPLACED_STAKEHOLDER': 'TD010',
    'MISPLACED_TAG': 'TD011',
    'MISPLACED_SHORTHAND': 'TD012',
    'UNQUOTED_TITLE': 'TD020',
    'VALUE_WITHOUT_KEY': 'TD021',
    'INDENT_NOT_MULTIPLE': 'TD030',
    'EMPTY_BULLET': 'TD031',
    'ORPHAN_CHILD': 'TD032',
    'INDENT_JUMP': 'TD033',
    'MULTILINE_WITHOUT_PIPE': 'TD040',
    'INVALID_CONTINUATION': 'TD041',
    'EMPTY_MULTILINE': 'TD042',
    'DUPLICATE_ID': 'TD050',
    'UNQUOTED_SPACES': 'TD100',
    'MULTIPLE_PRIORITIES': 'TD101',
}

ERROR_INFO = {
    'TD001': 'Double-quoted string is never closed',
    'TD002': 'Single-quoted string is never closed',
    'TD003': 'Backtick-quoted string is never closed',
    'TD010': '@stakeholder shorthand outside the bullet prefix',
    'TD011': '#tag shorthand outside the bullet prefix',
    'TD012': 'Priority or completion shorthand outside the bullet prefix',
    'TD020': 'Unquoted title followed by key: value pairs',
    'TD021': 'Bare value that is neither prefix, title nor key value',
    'TD030': 'Bullet indentation is not a multiple of the indent size',
    'TD031': 'Bullet has no content',
    'TD032': 'Indented bullet has no parent bullet',
    'TD033': 'Bullet indented more than one level past its parent',
    'TD040': 'Indented multi-line content without a `key: |` marker',
    'TD041': 'Continuation line is not `key: value`',
    'TD042': 'Multi-line `key: |` block has no content',
    'TD050': 'Id used by more than one task',
    'TD100': 'Unquoted value containing spaces',
    'TD101': 'More than one priority shorthand on a bullet',
}

_UNCLOSED = {
    'double': 'UNCLOSED_DOUBLE_QUOTE',
    'single': 'UNCLOSED_SINGLE_QUOTE',
    'backtick': 'UNCLOSED_BACKTICK',
}

_MISPLACED = {
    'stakeholder': ('MISPLACED_STAKEHOLDER',
                    '@stakeholder tags are only allowed at the beginning of the task prefix'),
    'tag': ('MISPLACED_TAG',
            '#tags are only allowed at the beginning of the task prefix'),
    'priority': ('MISPLACED_SHORTHAND',
                 'priority and completion shorthand are only allowed at the beginning of the task prefix'),
    'completion': ('MISPLACED_SHORTHAND',
                   'priority and completion shorthand are only allowed at the beginning of the task prefix'),
}


@dataclass
class LintIssue:
    """A single diagnostic. `line` is 1-based; char offsets are 0-based."""
    line: int
    msg: str
    code: str
    start_char: int = 0
    end_char: int = 0
    severity: str = 'error'

    def format(self, file_path: Optional[Path] = None) -> str:
        label = 'ERROR' if self.severity == 'error' else 'WARN'
        location = f"{file_path}:{self.line}" if file_path else f"line {self.line}"
        return f"{location} {label}: {self.msg}"


@dataclass
class LintResult:
    errors: List[LintIssue] = field(default_factory=list)
    warnings: List[LintIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def issues(self) -> List[LintIssue]:
        return sorted(self.errors + self.warnings, key=lambda i: (i.line, i.start_char))


class LintFailure(ValueError):
    """Raised when a file that must be lint-clean has lint errors."""

    def __init__(self, file_path: Optional[Path], result: LintResult):
        self.file_path = file_path
        self.errors = result.errors
        self.warnings = result.warnings
        super().__init__('\n'.join(i.format(file_path) for i in result.issues))


@dataclass
class _LintState:
    indent_size: int
    result: LintResult = field(default_factory=LintResult)
    seen_ids: Set[str] = field(default_factory=set)
    bullet_stack: List[int] = field(default_factory=list)
    # indent of the last bullet whose continuation lines we are in
    bullet_indent: Optional[int] = None
    # indent of the key line that owns an open multi-line block
    block_indent: Optional[int] = None

    def error(self, line: Line, name: str, msg: str, start: int = 0, end: int = 0):
        self.result.errors.append(
            LintIssue(line.index + 1, msg, ERROR_CODES[name], start, end or len(line.raw)))

    def warn(self, line: Line, name: str, msg: str, start: int = 0, end: int = 0):
        self.result.warnings.append(
            LintIssue(line.index + 1, msg, ERROR_CODES[name], start, end or len(line.raw),
                      severity='warning'))


def lint_lines(lines: List[str], indent_size: int = 2,
               section_heading: Optional[str] = DEFAULT_SECTION_HEADING) -> LintResult:
    """
    Lint the task region of a document.

    Args:
        lines: Document lines
        indent_size: Spaces per nesting level
        section_heading: Heading that scopes the task region (None for whole file)

    Returns:
        LintResult with errors and warnings in line order
    """
    start, end = find_task_region(lines, section_heading)
    state = _LintState(indent_size)
    measured = [measure(i, lines[i], indent_size) for i in range(start, end)]

    for pos, line in enumerate(measured):
        if state.block_indent is not None and not line.is_blank:
            if line.indent > state.block_indent:
                continue
            state.block_indent = None
        if line.is_blank:
            continue
        if line.is_bullet:
            _check_bullet(state, line)
            state.bullet_indent = line.indent
            continue
        if (line.heading_level is not None or line.is_rule
                or state.bullet_indent is None or line.indent <= state.bullet_indent):
            # plain markdown between or after task lists
            state.bullet_indent = None
            continue
        _check_continuation(state, line, measured, pos + 1)

    log.debug("Linted lines %d-%d: %d errors, %d warnings",
              start + 1, end, len(state.result.errors), len(state.result.warnings))
    return state.result


def lint_content(content: str, **kwargs) -> LintResult:
    return lint_lines(content.split('\n'), **kwargs)


def _check_bullet(state: _LintState, line: Line) -> None:
    size = state.indent_size
    if line.indent % size:
        state.error(line, 'INDENT_NOT_MULTIPLE',
                    f"Indentation {line.indent} not multiple of {size} spaces",
                    0, line.indent)

    content = line.bullet_content
    if not content:
        state.error(line, 'EMPTY_BULLET', 'Bullet line missing content')
    else:
        _check_bullet_content(state, line, content, line.content_offset)

    stack = state.bullet_stack
    while stack and stack[-1] >= line.indent:
        stack.pop()
    if stack:
        jump = line.indent - stack[-1]
        if jump > size:
            state.warn(line, 'INDENT_JUMP',
                       f"Indentation jumped by {jump} spaces (expected {size})",
                       0, line.indent)
    elif line.indent > 0:
        state.error(line, 'ORPHAN_CHILD',
                    'bullet hierarchy is not indented correctly; child exists without parent',
                    0, line.indent)
    stack.append(line.indent)


def _check_bullet_content(state: _LintState, line: Line, content: str, offset: int) -> None:
    issue = find_unclosed_quote(content)
    if issue:
        state.error(line, _UNCLOSED[issue.kind], f"Unclosed {issue.kind} quote",
                    offset + issue.offset)

    tokens = tokenize(content)
    prefix_end = 0
    priorities = 0
    while prefix_end < len(tokens) and prefix_class(tokens[prefix_end].text):
        if prefix_class(tokens[prefix_end].text) == 'priority':
            priorities += 1
        prefix_end += 1
    if priorities > 1:
        state.warn(line, 'MULTIPLE_PRIORITIES',
                   'multiple priority shorthands; only the first is used',
                   offset, offset + tokens[prefix_end - 1].end)

    # an unquoted run straight after the prefix is the implicit title
    run_end = prefix_end
    while run_end < len(tokens) and not tokens[run_end].quoted and not tokens[run_end].is_key:
        run_end += 1
    if run_end > prefix_end and _has_key_after(tokens, run_end):
        state.error(line, 'UNQUOTED_TITLE',
                    'strings need to be quoted or the remainder of the line '
                    'will be assumed to be the task title',
                    offset + tokens[prefix_end].start, offset + tokens[run_end - 1].end)

    values = _pair_values(tokens, run_end)
    last_key = None
    for idx in range(run_end, len(tokens)):
        token = tokens[idx]
        if idx in values:
            continue
        if token.is_key:
            last_key = KEY_TOKEN_RE.match(token.text).group(1)
            if last_key == 'id':
                _check_id(state, line, _inline_value(tokens, idx), offset + token.start)
            continue
        if token.quoted:
            continue
        cls = prefix_class(token.text)
        if cls:
            name, msg = _MISPLACED[cls]
            state.error(line, name, msg, offset + token.start, offset + token.end)
            continue
        if last_key is not None:
            # a second word after a pair's value would be dropped
            state.error(line, 'VALUE_WITHOUT_KEY',
                        f"values without keys are not allowed "
                        f"(quote the value of '{last_key}' if it contains spaces): {token.text}",
                        offset + token.start, offset + token.end)
        elif _has_key_after(tokens, idx + 1):
            state.error(line, 'VALUE_WITHOUT_KEY',
                        f"values without keys are not allowed "
                        f"(except in task prefix shorthand): {token.text}",
                        offset + token.start, offset + token.end)


def _has_key_after(tokens: List[Token], start: int) -> bool:
    return any(t.is_key for t in tokens[start:])


def _pair_values(tokens: List[Token], start: int) -> Set[int]:
    """Indexes of the tokens that pair_tokens takes as the value of the key before them."""
    values = set()
    idx = start
    while idx < len(tokens):
        token = tokens[idx]
        bare_key = token.is_key and KEY_TOKEN_RE.match(token.text).end() == len(token.text)
        if bare_key and idx + 1 < len(tokens):
            values.add(idx + 1)
            idx += 2
            continue
        idx += 1
    return values


def _inline_value(tokens: List[Token], idx: int) -> str:
    rest = tokens[idx].text[len('id:'):]
    if rest:
        return rest
    return tokens[idx + 1].text if idx + 1 < len(tokens) else ''


def _check_id(state: _LintState, line: Line, raw: str, start: int) -> None:
    value = unquote(raw)
    if not value:
        return
    if value in state.seen_ids:
        state.error(line, 'DUPLICATE_ID', f"Duplicate id '{value}'", start)
    state.seen_ids.add(value)


def _has_deeper_content(lines: List[Line], start: int, indent: int,
                        bullets_count: bool) -> bool:
    """True if the next non-blank line from `start` is indented past `indent`."""
    for i in range(start, len(lines)):
        line = lines[i]
        if line.is_blank:
            continue
        if line.is_bullet and not bullets_count:
            return False
        return line.indent > indent
    return False


def _check_continuation(state: _LintState, line: Line, lines: List[Line], pos: int) -> None:
    kv = line.key_value
    if kv is None:
        if _has_deeper_content(lines, pos, line.indent, bullets_count=False):
            state.error(line, 'MULTILINE_WITHOUT_PIPE',
                        'multi-line string value indentation without pipe; '
                        'unexpected lines appearing indented within task',
                        line.indent)
            state.block_indent = line.indent
        else:
            state.error(line, 'INVALID_CONTINUATION',
                        'Expected key: value or multi-line content indented under key with |',
                        line.indent)
        return

    key, value = kv
    if value == MULTILINE_MARKER:
        if not _has_deeper_content(lines, pos, line.indent, bullets_count=True):
            state.error(line, 'EMPTY_MULTILINE',
                        f"Multi-line '|' for key '{key}' has no indented content",
                        line.indent)
        state.block_indent = line.indent
        return
    if value == '':
        if _has_deeper_content(lines, pos, line.indent, bullets_count=True):
            state.error(line, 'MULTILINE_WITHOUT_PIPE',
                        'multi-line string value indentation without pipe; '
                        'unexpected lines appearing indented within task',
                        line.indent)
            state.block_indent = line.indent
        return

    value_start = line.indent + line.text.index(value, len(key) + 1)
    if value[0] in QUOTE_KINDS:
        issue = find_unclosed_quote(value)
        if issue:
            state.error(line, _UNCLOSED[issue.kind], f"Unclosed {issue.kind} quote",
                        value_start + issue.offset)
    if not is_quoted(value) and any(c.isspace() for c in value):
        state.warn(line, 'UNQUOTED_SPACES',
                   f'Unquoted value with spaces for key "{key}" (consider quoting)',
                   value_start)
    if key == 'id':
        _check_id(state, line, value, value_start)
