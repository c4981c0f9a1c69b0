#!/usr/bin/env python3
"""
Line classification shared by the linter and the parser.

Every physical line is measured once (tabs expanded, leading spaces counted)
and then classified as blank, bullet, heading, horizontal rule, `key: value`
continuation, or other text.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

BULLET_RE = re.compile(r'^-(?:\s+(.*))?$')
KEY_VALUE_RE = re.compile(r'^([A-Za-z_][A-Za-z0-9_-]*):\s*(.*)$')
HEADING_RE = re.compile(r'^ {0,3}(#{1,6})\s+\S')
RULE_RE = re.compile(r'^(?:-{3,}|\*{3,}|_{3,})$')

# headings and rules may be indented by at most this many spaces
MAX_MARKER_INDENT = 3

PRIORITY_RE = re.compile(r'^[A-D]$')
NAME_TOKEN_RE = re.compile(r'^[@#][^\s@#]')

# Completion shorthand: value is what `completed` is set to
COMPLETION_MARKERS = {'x': True, 'X': True, '[x]': True, '[X]': True, '[_]': False}
SKIP_MARKERS = ('-', '[-]')


@dataclass(frozen=True)
class Line:
    """One physical line after tab expansion."""
    index: int
    raw: str
    indent: int
    text: str

    @property
    def is_blank(self) -> bool:
        return self.text == ''

    @property
    def is_rule(self) -> bool:
        return self.indent <= MAX_MARKER_INDENT and RULE_RE.match(self.text) is not None

    @property
    def is_bullet(self) -> bool:
        return not self.is_rule and BULLET_RE.match(self.text) is not None

    @property
    def bullet_content(self) -> str:
        match = BULLET_RE.match(self.text)
        return (match.group(1) or '').rstrip() if match else ''

    @property
    def content_offset(self) -> int:
        """Column where the bullet content starts."""
        return self.indent + len(self.text) - len(self.text[1:].lstrip())

    @property
    def heading_level(self) -> Optional[int]:
        if self.indent > MAX_MARKER_INDENT:
            return None
        match = HEADING_RE.match(self.text)
        return len(match.group(1)) if match else None

    @property
    def key_value(self) -> Optional[Tuple[str, str]]:
        match = KEY_VALUE_RE.match(self.text)
        return (match.group(1), match.group(2).rstrip()) if match else None


def expand_tabs(raw: str, indent_size: int = 2) -> str:
    return raw.replace('\t', ' ' * indent_size)


def measure(index: int, raw: str, indent_size: int = 2) -> Line:
    expanded = expand_tabs(raw, indent_size).rstrip('\r')
    stripped = expanded.lstrip(' ')
    return Line(index, expanded, len(expanded) - len(stripped), stripped.strip())


def prefix_class(token: str) -> Optional[str]:
    """
    Classify a bullet-prefix shorthand token.

    Returns 'priority', 'completion', 'stakeholder', 'tag' or None.
    """
    if PRIORITY_RE.match(token):
        return 'priority'
    if token in COMPLETION_MARKERS or token in SKIP_MARKERS:
        return 'completion'
    if NAME_TOKEN_RE.match(token):
        return 'stakeholder' if token[0] == '@' else 'tag'
    return None
