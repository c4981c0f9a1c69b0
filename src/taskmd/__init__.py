#!/usr/bin/env python3
"""
Markdown task lists as a schemaless hierarchical store.

Main API:
    from taskmd import parse_file, serialize_tasks, lint_lines, parse_query, execute_query

    # Parse a file (refuses files with lint errors)
    document = parse_file(Path("project.md"))

    # Query it
    rows = run_select(document.tasks, parse_query("SELECT * FROM project.md WHERE priority = 'A'"))

    # Or run a query end to end, writing changes back
    execute_query(parse_query("UPDATE project.md SET priority = 'B' WHERE id = 'a1b2c3d4'"))
"""

from .models import (
    Task,
    TaskDocument,
    FieldValue,
    ARRAY_FIELDS,
    BOOLEAN_FIELDS,
    PRIORITIES,
)
from .lexer import (
    Token,
    QuoteIssue,
    find_unclosed_quote,
    tokenize,
    parse_scalar,
    format_scalar,
    quote_string,
    unquote,
)
from .linter import (
    ERROR_CODES,
    ERROR_INFO,
    LintIssue,
    LintResult,
    LintFailure,
    lint_lines,
    lint_content,
)
from .parser import (
    TaskParser,
    parse_lines,
    parse_content,
    parse_file,
)
from .serializer import (
    serialize_tasks,
    format_task_lines,
    needs_multiline,
)
from .sections import (
    DEFAULT_SECTION_HEADING,
    find_task_region,
    replace_task_section,
    load_lines,
    write_lines,
)
from .query import (
    QueryError,
    QueryValidationError,
    SelectQuery,
    UpdateQuery,
    DeleteQuery,
    InsertQuery,
    tokenize_query,
    parse_query,
)
from .evaluator import (
    select_tasks,
    run_select,
    rebuild_hierarchy,
    update_tasks,
    delete_tasks,
    insert_task,
    validate_assignments,
    execute_query,
)
from .formatting import format_table, format_json
from .utils import (
    compute_task_id,
    flatten_tasks,
    is_valid_name,
)
from .config import Settings

__all__ = [
    # Models
    'Task',
    'TaskDocument',
    'FieldValue',
    'ARRAY_FIELDS',
    'BOOLEAN_FIELDS',
    'PRIORITIES',
    # Tokens and values
    'Token',
    'QuoteIssue',
    'find_unclosed_quote',
    'tokenize',
    'parse_scalar',
    'format_scalar',
    'quote_string',
    'unquote',
    # Linter
    'ERROR_CODES',
    'ERROR_INFO',
    'LintIssue',
    'LintResult',
    'LintFailure',
    'lint_lines',
    'lint_content',
    # Parser
    'TaskParser',
    'parse_lines',
    'parse_content',
    'parse_file',
    # Serializer
    'serialize_tasks',
    'format_task_lines',
    'needs_multiline',
    # Sections
    'DEFAULT_SECTION_HEADING',
    'find_task_region',
    'replace_task_section',
    'load_lines',
    'write_lines',
    # Queries
    'QueryError',
    'QueryValidationError',
    'SelectQuery',
    'UpdateQuery',
    'DeleteQuery',
    'InsertQuery',
    'tokenize_query',
    'parse_query',
    'select_tasks',
    'run_select',
    'rebuild_hierarchy',
    'update_tasks',
    'delete_tasks',
    'insert_task',
    'validate_assignments',
    'execute_query',
    # Output
    'format_table',
    'format_json',
    # Utilities
    'compute_task_id',
    'flatten_tasks',
    'is_valid_name',
    'Settings',
]
