#!/usr/bin/env python3
"""
Quote-aware tokenizing and value codec for bullet-line content.

Three quote dialects are recognised:
- "double": backslash escapes for \\" \\\\ \\n \\t \\r
- 'single': backslash escapes for \\' and \\\\ only
- `backtick`: verbatim

Main API:
- find_unclosed_quote(text) -> QuoteIssue | None
- tokenize(text) -> List[Token]
- pair_tokens(tokens) -> List[(key, raw_value)]
- parse_scalar(text) -> FieldValue
- format_scalar(value) / quote_string(text) -> str
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .models import FieldValue

QUOTE_KINDS = {'"': 'double', "'": 'single', '`': 'backtick'}

KEY_TOKEN_RE = re.compile(r'^([A-Za-z_][A-Za-z0-9_-]*):')
NUMBER_RE = re.compile(r'^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?$')
INTEGER_RE = re.compile(r'^[-+]?\d+$')

MULTILINE_MARKER = '|'

_DOUBLE_ESCAPES = {'"': '"', '\\': '\\', 'n': '\n', 't': '\t', 'r': '\r'}
_SINGLE_ESCAPES = {"'": "'", '\\': '\\'}


@dataclass(frozen=True)
class QuoteIssue:
    """An opening quote with no matching close."""
    kind: str
    offset: int


@dataclass(frozen=True)
class Token:
    """A whitespace-delimited token with its character span in the source."""
    text: str
    start: int
    end: int

    @property
    def quoted(self) -> bool:
        return is_quoted(self.text)

    @property
    def is_key(self) -> bool:
        return not self.quoted and KEY_TOKEN_RE.match(self.text) is not None


def is_quoted(text: str) -> bool:
    """True if text is exactly one quoted string in any dialect."""
    if len(text) < 2 or text[0] not in QUOTE_KINDS or text[-1] != text[0]:
        return False
    if text[0] == '`':
        return '`' not in text[1:-1]
    # closing quote must not be escaped
    backslashes = len(text[1:-1]) - len(text[1:-1].rstrip('\\'))
    return backslashes % 2 == 0


def find_unclosed_quote(text: str) -> Optional[QuoteIssue]:
    """
    Scan text once and report the first quote left open at end of input.

    Backslash escapes the following character, inside or outside quotes.
    """
    open_char = None
    open_at = -1
    escaped = False
    for i, ch in enumerate(text):
        if escaped:
            escaped = False
            continue
        if ch == '\\':
            escaped = True
            continue
        if open_char is None:
            if ch in QUOTE_KINDS:
                open_char, open_at = ch, i
        elif ch == open_char:
            open_char = None
    if open_char is None:
        return None
    return QuoteIssue(QUOTE_KINDS[open_char], open_at)


def tokenize(text: str) -> List[Token]:
    """
    Split text on whitespace and commas that sit outside quotes.

    Quoted spans stay inside a single token; an unclosed quote swallows the
    rest of the line.
    """
    tokens = []
    start = None
    quote = None
    escaped = False
    for i, ch in enumerate(text):
        if escaped:
            escaped = False
            continue
        if ch == '\\':
            escaped = True
            if start is None:
                start = i
            continue
        if quote is not None:
            if ch == quote:
                quote = None
            continue
        if ch.isspace() or ch == ',':
            if start is not None:
                tokens.append(Token(text[start:i], start, i))
                start = None
            continue
        if start is None:
            start = i
        if ch in QUOTE_KINDS:
            quote = ch
    if start is not None:
        tokens.append(Token(text[start:], start, len(text)))
    return tokens


def pair_tokens(tokens: List[Token]) -> List[Tuple[str, str]]:
    """
    Pair `key:` tokens with their raw values.

    A value attached to the key (`due:2025`) is used directly; otherwise the
    next token is the value whatever it looks like. Tokens that are neither
    keys nor values are dropped.
    """
    pairs = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        match = KEY_TOKEN_RE.match(token.text) if not token.quoted else None
        if not match:
            i += 1
            continue
        key = match.group(1)
        rest = token.text[match.end():]
        if rest:
            pairs.append((key, rest))
            i += 1
        elif i + 1 < len(tokens):
            pairs.append((key, tokens[i + 1].text))
            i += 2
        else:
            pairs.append((key, ''))
            i += 1
    return pairs


def unquote(text: str) -> str:
    """Decode a quoted token; unquoted text is returned as-is."""
    if not is_quoted(text):
        return text
    quote, body = text[0], text[1:-1]
    if quote == '`':
        return body
    escapes = _DOUBLE_ESCAPES if quote == '"' else _SINGLE_ESCAPES
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == '\\' and i + 1 < len(body) and body[i + 1] in escapes:
            out.append(escapes[body[i + 1]])
            i += 2
            continue
        out.append(ch)
        i += 1
    return ''.join(out)


def parse_number(text: str) -> Optional[float]:
    if not NUMBER_RE.match(text):
        return None
    if INTEGER_RE.match(text):
        return int(text)
    return float(text)


def parse_scalar(text: str) -> FieldValue:
    """
    Convert a raw value token to a typed value.

    Quoted text is always a string. Unquoted `true`/`false` become booleans,
    numeric text becomes int or float, and anything else stays a string.
    """
    if is_quoted(text):
        return unquote(text)
    if text == 'true':
        return True
    if text == 'false':
        return False
    number = parse_number(text)
    if number is not None:
        return number
    return text


def quote_string(text: str) -> str:
    """Quote text in the simplest dialect that round-trips it."""
    if not any(c in text for c in '"\\\n\r\t'):
        return f'"{text}"'
    if not any(c in text for c in '`\\\n\r\t'):
        return f'`{text}`'
    escaped = (text.replace('\\', '\\\\').replace('"', '\\"')
               .replace('\n', '\\n').replace('\r', '\\r').replace('\t', '\\t'))
    return f'"{escaped}"'


def needs_quoting(text: str) -> bool:
    """True if text would not parse back to the same string unquoted."""
    if text == '' or text != text.strip() or text == MULTILINE_MARKER:
        return True
    if any(c.isspace() for c in text):
        return True
    if any(c in text for c in ',"\'`\\'):
        return True
    if text[0] in '#@':
        return True
    return not isinstance(parse_scalar(text), str)


def format_scalar(value: FieldValue) -> str:
    """Render a field value as it should appear after `key: `."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, list):
        return quote_string(','.join(str(v) for v in value))
    text = str(value)
    return quote_string(text) if needs_quoting(text) else text
