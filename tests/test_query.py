#!/usr/bin/env python3
"""
Unit tests for query tokenizing and parsing (src/taskmd/query.py).
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from taskmd.query import (
    DeleteQuery, InsertQuery, QueryError, QueryToken, SelectQuery, UpdateQuery,
    decode_escapes, parse_query, tokenize_query,
)


# ============================================================
# Tokenizer
# ============================================================

class TestTokenizeQuery:
    def test_operators_are_separate(self):
        tokens = tokenize_query("priority='A'")
        assert [t.text for t in tokens] == ['priority', '=', 'A']
        assert tokens[2].quoted

    def test_doubled_quote(self):
        tokens = tokenize_query("title = 'It''s here'")
        assert tokens[2].text == "It's here"

    def test_backslash_quote(self):
        tokens = tokenize_query('title = "say \\"hi\\""')
        assert tokens[2].text == 'say "hi"'

    def test_other_backslashes_are_kept_for_decoding(self):
        tokens = tokenize_query("note = 'a\\nb'")
        assert tokens[2].text == 'a\\nb'
        assert tokens[2].as_text() == 'a\nb'

    def test_commas(self):
        assert [t.text for t in tokenize_query('title,priority , due')] == ['title', ',', 'priority', ',', 'due']

    def test_quoted_comma_is_text(self):
        tokens = tokenize_query("tags = 'a,b'")
        assert tokens[2].text == 'a,b'

    def test_unterminated_string(self):
        with pytest.raises(QueryError, match='Unterminated'):
            tokenize_query("title = 'oops")


class TestCoerce:
    def test_booleans_and_null(self):
        assert QueryToken(text='true').coerce() is True
        assert QueryToken(text='FALSE').coerce() is False
        assert QueryToken(text='null').coerce() is None

    def test_quoted_keywords_are_strings(self):
        assert QueryToken(text='true', quoted=True).coerce() == 'true'
        assert QueryToken(text='NULL', quoted=True).coerce() == 'NULL'

    def test_numbers_quoted_or_not(self):
        assert QueryToken(text='10').coerce() == 10
        assert QueryToken(text='2.5', quoted=True).coerce() == 2.5

    def test_strings(self):
        assert QueryToken(text='hello', quoted=True).coerce() == 'hello'

    def test_decode_escapes(self):
        assert decode_escapes('a\\tb\\\\c\\q') == 'a\tb\\c\\q'


# ============================================================
# SELECT
# ============================================================

class TestSelect:
    def test_star(self):
        query = parse_query('SELECT * FROM tasks.md')
        assert isinstance(query, SelectQuery)
        assert query.columns == ['*']
        assert query.file == 'tasks.md'
        assert query.where is None
        assert query.order_by == []
        assert query.limit is None

    def test_full_query(self):
        query = parse_query(
            "SELECT title FROM tasks.md WHERE tags CONTAINS 'urgent' "
            "ORDER BY weight DESC LIMIT 1")
        assert query.columns == ['title']
        assert query.where.left.key == 'tags'
        assert query.where.left.op == 'CONTAINS'
        assert query.where.left.value.text == 'urgent'
        assert [(k.key, k.direction) for k in query.order_by] == [('weight', 'DESC')]
        assert query.limit == 1

    def test_field_list_and_sort_keys(self):
        query = parse_query('select title, priority from t.md order by priority asc, due desc, weight into out.md')
        assert query.columns == ['title', 'priority']
        assert [(k.key, k.direction) for k in query.order_by] == [
            ('priority', 'ASC'), ('due', 'DESC'), ('weight', 'ASC')]
        assert query.into == 'out.md'

    def test_quoted_file_name(self):
        assert parse_query('SELECT * FROM "my tasks.md"').file == 'my tasks.md'

    def test_and_or(self):
        where = parse_query("SELECT * FROM t.md WHERE priority = 'A' OR weight > 5").where
        assert where.combinator == 'OR'
        assert where.right.key == 'weight'
        assert where.right.op == '>'

    def test_is_null(self):
        where = parse_query('SELECT * FROM t.md WHERE due IS NULL AND weight IS NOT NULL').where
        assert where.left.op == 'IS NULL'
        assert where.right.op == 'IS NOT NULL'

    def test_missing_field_list(self):
        with pytest.raises(QueryError, match='field list'):
            parse_query('SELECT FROM t.md')

    def test_missing_from(self):
        with pytest.raises(QueryError):
            parse_query('SELECT *')

    def test_two_combinators(self):
        with pytest.raises(QueryError, match='single AND or OR'):
            parse_query("SELECT * FROM t.md WHERE a = 1 AND b = 2 OR c = 3")

    def test_bad_limit(self):
        with pytest.raises(QueryError, match='LIMIT'):
            parse_query('SELECT * FROM t.md LIMIT abc')

    def test_unknown_operator(self):
        with pytest.raises(QueryError, match='Unknown operator'):
            parse_query("SELECT * FROM t.md WHERE title LIKE 'x'")

    def test_bad_direction(self):
        with pytest.raises(QueryError, match='sort direction'):
            parse_query('SELECT * FROM t.md ORDER BY due UP')

    def test_trailing_tokens(self):
        with pytest.raises(QueryError, match='Unexpected token'):
            parse_query('SELECT * FROM t.md LIMIT 1 extra')


# ============================================================
# Mutations
# ============================================================

class TestMutations:
    def test_update(self):
        query = parse_query("UPDATE t.md SET priority = 'B', weight = 3 WHERE id = 'abc'")
        assert isinstance(query, UpdateQuery)
        assert [(a.key, a.value.coerce()) for a in query.assignments] == [('priority', 'B'), ('weight', 3)]
        assert query.where.left.value.text == 'abc'

    def test_update_without_where(self):
        assert parse_query('UPDATE t.md SET completed = true').where is None

    def test_delete(self):
        query = parse_query('DELETE FROM t.md WHERE completed = true')
        assert isinstance(query, DeleteQuery)
        assert query.where.left.key == 'completed'

    def test_insert(self):
        query = parse_query("INSERT INTO t.md SET title = 'New task', stakeholders = 'Rosa, Bob'")
        assert isinstance(query, InsertQuery)
        assert [a.key for a in query.assignments] == ['title', 'stakeholders']

    def test_bad_assignment(self):
        with pytest.raises(QueryError, match='Invalid assignment'):
            parse_query("UPDATE t.md SET priority 'B'")

    def test_missing_set(self):
        with pytest.raises(QueryError, match='Expected SET'):
            parse_query("UPDATE t.md priority = 'B'")

    def test_invalid_field_name(self):
        with pytest.raises(QueryError, match='Invalid field name'):
            parse_query("INSERT INTO t.md SET 1abc = 'x'")


def test_unknown_command():
    with pytest.raises(QueryError, match='Unknown command'):
        parse_query('DROP TABLE t.md')


def test_empty_query():
    with pytest.raises(QueryError):
        parse_query('   ')


def test_query_error_is_value_error():
    assert issubclass(QueryError, ValueError)
