#!/usr/bin/env python3
"""
Query language front end.

Grammar (keywords case-insensitive):

    SELECT <* | field[, field...]> FROM <file> [WHERE <cond>]
        [ORDER BY <field> [ASC|DESC][, ...]] [LIMIT <n>] [INTO <file>]
    UPDATE <file> SET <field> = <value>[, ...] [WHERE <cond>]
    DELETE FROM <file> [WHERE <cond>]
    INSERT INTO <file> SET <field> = <value>[, ...]

    <cond> := <clause> [AND|OR <clause>]
    <clause> := <field> (= | > | < | CONTAINS) <value>
              | <field> IS [NOT] NULL

Main API:
- tokenize_query(text) -> List[QueryToken]
- parse_query(text) -> SelectQuery | UpdateQuery | DeleteQuery | InsertQuery
"""

import re
from typing import List, Literal, Optional, Union

from pydantic import BaseModel

from .lexer import parse_number
from .models import FieldValue

COMPARISON_OPS = ('=', '>', '<', 'CONTAINS')
FIELD_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_-]*$')

_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '\\': '\\'}
_ESCAPE_RE = re.compile(r'\\(.)', re.DOTALL)


class QueryError(ValueError):
    """The query text could not be parsed."""


class QueryValidationError(QueryError):
    """A mutation's assignments are invalid; nothing was written."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__('; '.join(self.problems))


class QueryToken(BaseModel):
    text: str
    quoted: bool = False

    def keyword(self) -> Optional[str]:
        """Upper-cased text for unquoted tokens, None for quoted ones."""
        return None if self.quoted else self.text.upper()

    def coerce(self) -> Optional[FieldValue]:
        """
        Typed value of a literal.

        Unquoted true/false are booleans and unquoted NULL is None. Numeric
        text becomes a number whether quoted or not; everything else is a
        string with backslash escapes decoded.
        """
        if not self.quoted:
            if self.text.lower() == 'true':
                return True
            if self.text.lower() == 'false':
                return False
            if self.text.upper() == 'NULL':
                return None
        number = parse_number(self.text)
        if number is not None:
            return number
        return decode_escapes(self.text)

    def as_text(self) -> str:
        return decode_escapes(self.text)


class Condition(BaseModel):
    key: str
    op: Literal['=', '>', '<', 'CONTAINS', 'IS NULL', 'IS NOT NULL']
    value: Optional[QueryToken] = None


class WhereClause(BaseModel):
    left: Condition
    combinator: Optional[Literal['AND', 'OR']] = None
    right: Optional[Condition] = None


class SortKey(BaseModel):
    key: str
    direction: Literal['ASC', 'DESC'] = 'ASC'


class Assignment(BaseModel):
    key: str
    value: QueryToken


class SelectQuery(BaseModel):
    command: Literal['SELECT'] = 'SELECT'
    columns: List[str]
    file: str
    where: Optional[WhereClause] = None
    order_by: List[SortKey] = []
    limit: Optional[int] = None
    into: Optional[str] = None


class UpdateQuery(BaseModel):
    command: Literal['UPDATE'] = 'UPDATE'
    file: str
    assignments: List[Assignment]
    where: Optional[WhereClause] = None


class DeleteQuery(BaseModel):
    command: Literal['DELETE'] = 'DELETE'
    file: str
    where: Optional[WhereClause] = None


class InsertQuery(BaseModel):
    command: Literal['INSERT'] = 'INSERT'
    file: str
    assignments: List[Assignment]


Query = Union[SelectQuery, UpdateQuery, DeleteQuery, InsertQuery]


def decode_escapes(text: str) -> str:
    """Decode \\n, \\t, \\r and \\\\ in one pass; other escapes stay as written."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(0)), text)


def tokenize_query(text: str) -> List[QueryToken]:
    """
    Split query text into tokens.

    Quoted strings use ' or "; the quote character is escaped by doubling it
    or with a backslash. Other backslash sequences are kept for
    decode_escapes. `=`, `<`, `>` and `,` are tokens of their own.
    """
    tokens: List[QueryToken] = []
    current: List[str] = []
    i = 0

    def flush():
        if current:
            tokens.append(QueryToken(text=''.join(current)))
            current.clear()

    while i < len(text):
        ch = text[i]
        if ch in '\'"':
            flush()
            quote = ch
            value: List[str] = []
            i += 1
            while True:
                if i >= len(text):
                    raise QueryError(f"Unterminated {quote} string in query")
                ch = text[i]
                if ch == '\\' and i + 1 < len(text) and text[i + 1] == quote:
                    value.append(quote)
                    i += 2
                elif ch == '\\' and i + 1 < len(text):
                    value.append(text[i:i + 2])
                    i += 2
                elif ch == quote and i + 1 < len(text) and text[i + 1] == quote:
                    value.append(quote)
                    i += 2
                elif ch == quote:
                    i += 1
                    break
                else:
                    value.append(ch)
                    i += 1
            tokens.append(QueryToken(text=''.join(value), quoted=True))
            continue
        if ch.isspace():
            flush()
        elif ch in '=<>,':
            flush()
            tokens.append(QueryToken(text=ch))
        else:
            current.append(ch)
        i += 1
    flush()
    return tokens


class _Cursor:
    """Read position over a token list."""

    def __init__(self, tokens: List[QueryToken]):
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> Optional[QueryToken]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def at(self, *keywords: str) -> bool:
        token = self.peek()
        return token is not None and token.keyword() in keywords

    def next(self, what: str) -> QueryToken:
        token = self.peek()
        if token is None:
            raise QueryError(f"Expected {what} but the query ended")
        self.pos += 1
        return token

    def expect(self, keyword: str) -> None:
        token = self.next(keyword)
        if token.keyword() != keyword:
            raise QueryError(f"Expected {keyword} but found '{token.text}'")

    def take_until(self, *keywords: str) -> List[QueryToken]:
        taken = []
        while self.peek() is not None and not self.at(*keywords):
            taken.append(self.next('token'))
        return taken

    def done(self) -> None:
        token = self.peek()
        if token is not None:
            raise QueryError(f"Unexpected token '{token.text}'")


def parse_query(text: str) -> Query:
    """
    Parse a query string.

    Raises:
        QueryError: Unknown command, missing clause, or malformed syntax
    """
    cursor = _Cursor(tokenize_query(text.strip()))
    command = cursor.next('a command').keyword()
    if command == 'SELECT':
        return _parse_select(cursor)
    if command == 'UPDATE':
        return _parse_update(cursor)
    if command == 'DELETE':
        return _parse_delete(cursor)
    if command == 'INSERT':
        return _parse_insert(cursor)
    raise QueryError(f"Unknown command '{cursor.tokens[0].text}'. "
                     "Expected SELECT, UPDATE, DELETE or INSERT")


def _parse_select(cursor: _Cursor) -> SelectQuery:
    columns = [t.text for t in cursor.take_until('FROM') if t.text != ',']
    if not columns:
        raise QueryError("SELECT requires a field list or *")
    cursor.expect('FROM')
    file = cursor.next('a file name').text

    where = None
    order_by: List[SortKey] = []
    limit = None
    into = None
    if cursor.at('WHERE'):
        cursor.next('WHERE')
        where = _parse_where(cursor.take_until('ORDER', 'LIMIT', 'INTO'))
    if cursor.at('ORDER'):
        cursor.next('ORDER')
        cursor.expect('BY')
        order_by = _parse_order_by(cursor.take_until('LIMIT', 'INTO'))
    if cursor.at('LIMIT'):
        cursor.next('LIMIT')
        raw = cursor.next('a LIMIT value').text
        if not raw.isdigit():
            raise QueryError(f"LIMIT must be a non-negative integer, got '{raw}'")
        limit = int(raw)
    if cursor.at('INTO'):
        cursor.next('INTO')
        into = cursor.next('a target file name').text
    cursor.done()
    return SelectQuery(columns=columns, file=file, where=where, order_by=order_by,
                       limit=limit, into=into)


def _parse_update(cursor: _Cursor) -> UpdateQuery:
    file = cursor.next('a file name').text
    cursor.expect('SET')
    assignments = _parse_assignments(cursor.take_until('WHERE'))
    where = None
    if cursor.at('WHERE'):
        cursor.next('WHERE')
        where = _parse_where(cursor.take_until())
    return UpdateQuery(file=file, assignments=assignments, where=where)


def _parse_delete(cursor: _Cursor) -> DeleteQuery:
    cursor.expect('FROM')
    file = cursor.next('a file name').text
    where = None
    if cursor.at('WHERE'):
        cursor.next('WHERE')
        where = _parse_where(cursor.take_until())
    cursor.done()
    return DeleteQuery(file=file, where=where)


def _parse_insert(cursor: _Cursor) -> InsertQuery:
    cursor.expect('INTO')
    file = cursor.next('a file name').text
    cursor.expect('SET')
    assignments = _parse_assignments(cursor.take_until())
    return InsertQuery(file=file, assignments=assignments)


def _split_commas(tokens: List[QueryToken]) -> List[List[QueryToken]]:
    groups: List[List[QueryToken]] = [[]]
    for token in tokens:
        if token.text == ',' and not token.quoted:
            groups.append([])
        else:
            groups[-1].append(token)
    return groups


def _check_field_name(name: str) -> str:
    if not FIELD_NAME_RE.match(name):
        raise QueryError(f"Invalid field name '{name}'")
    return name


def _parse_assignments(tokens: List[QueryToken]) -> List[Assignment]:
    if not tokens:
        raise QueryError("SET requires at least one field = value assignment")
    assignments = []
    for group in _split_commas(tokens):
        if len(group) != 3 or group[1].quoted or group[1].text != '=':
            shown = ' '.join(t.text for t in group)
            raise QueryError(f"Invalid assignment '{shown}'. Expected field = value")
        assignments.append(Assignment(key=_check_field_name(group[0].text), value=group[2]))
    return assignments


def _parse_order_by(tokens: List[QueryToken]) -> List[SortKey]:
    keys = []
    for group in _split_commas(tokens):
        if not group or len(group) > 2:
            raise QueryError("ORDER BY expects field [ASC|DESC] items")
        direction = 'ASC'
        if len(group) == 2:
            direction = group[1].keyword()
            if direction not in ('ASC', 'DESC'):
                raise QueryError(f"Unknown sort direction '{group[1].text}'")
        keys.append(SortKey(key=group[0].text, direction=direction))
    return keys


def _parse_where(tokens: List[QueryToken]) -> WhereClause:
    if not tokens:
        raise QueryError("WHERE requires a condition")
    splits = [i for i, t in enumerate(tokens) if t.keyword() in ('AND', 'OR')]
    if len(splits) > 1:
        raise QueryError("Only a single AND or OR is supported in WHERE")
    if not splits:
        return WhereClause(left=_parse_condition(tokens))
    at = splits[0]
    return WhereClause(left=_parse_condition(tokens[:at]),
                       combinator=tokens[at].keyword(),
                       right=_parse_condition(tokens[at + 1:]))


def _parse_condition(tokens: List[QueryToken]) -> Condition:
    shown = ' '.join(t.text for t in tokens)
    if len(tokens) >= 3 and tokens[1].keyword() == 'IS':
        rest = [t.keyword() for t in tokens[2:]]
        if rest == ['NULL']:
            return Condition(key=tokens[0].text, op='IS NULL')
        if rest == ['NOT', 'NULL']:
            return Condition(key=tokens[0].text, op='IS NOT NULL')
        raise QueryError(f"Malformed IS condition '{shown}'")
    if len(tokens) != 3:
        raise QueryError(f"Malformed condition '{shown}'. Expected field op value")
    op = tokens[1].keyword()
    if op not in COMPARISON_OPS:
        raise QueryError(f"Unknown operator '{tokens[1].text}'")
    return Condition(key=tokens[0].text, op=op, value=tokens[2])
