#!/usr/bin/env python3
"""
Serialize task forests back to markdown lines.

Main API:
- serialize_tasks(tasks, ...) -> List[str]
- format_task_lines(task, level, ...) -> List[str]

Each task is written either on one bullet line or as a bullet line followed
by indented `key: value` lines. Output re-parses to an equal forest.
"""

import textwrap
from typing import List, Optional, Tuple

from .lexer import MULTILINE_MARKER, format_scalar, quote_string
from .models import ARRAY_FIELDS, BOOLEAN_FIELDS, PRIORITIES, FieldValue, Task
from .utils import is_valid_name

UNSAFE_ID_CHARS = set(' \t,"\'`\\')


def _prefix_tokens(task: Task, include_names: bool) -> Tuple[List[str], set]:
    """Prefix shorthand tokens and the field names they cover."""
    data = task.data
    tokens: List[str] = []
    covered = set()

    if data.get('completed') is True:
        tokens.append('[x]')
        covered.add('completed')
    elif data.get('completed') is False:
        tokens.append('[_]')
        covered.add('completed')
    if data.get('skipped') is True:
        tokens.append('[-]')
        covered.add('skipped')
    if data.get('priority') in PRIORITIES:
        tokens.append(str(data['priority']))
        covered.add('priority')
    if include_names:
        for key, marker in (('stakeholders', '@'), ('tags', '#')):
            value = data.get(key)
            if isinstance(value, list):
                tokens.extend(marker + name for name in value)
                covered.add(key)
    return tokens, covered


def _format_id(task_id: str) -> str:
    if task_id and not any(c in UNSAFE_ID_CHARS for c in task_id):
        return task_id
    return quote_string(task_id)


def needs_multiline(task: Task, long_value_threshold: int = 25) -> bool:
    """
    True if a task must be written in multi-line form.

    That is the case when it was multi-line in its source, when any
    non-prefix value contains a newline or is longer than the threshold,
    or when a name list holds items that cannot be written as shorthand.
    """
    if not task.inline:
        return True
    for key, value in task.data.items():
        if key == 'id':
            continue
        if key in ARRAY_FIELDS:
            if isinstance(value, list) and not all(is_valid_name(v) for v in value):
                return True
            continue
        if key in BOOLEAN_FIELDS or key == 'priority':
            continue
        if isinstance(value, str) and ('\n' in value or len(value) > long_value_threshold):
            return True
    return False


def _block_lines(value: str, wrap_width: Optional[int]) -> List[str]:
    lines = value.split('\n')
    if not wrap_width:
        return lines
    wrapped: List[str] = []
    for line in lines:
        if len(line) <= wrap_width:
            wrapped.append(line)
        else:
            wrapped.extend(textwrap.wrap(line, wrap_width, break_on_hyphens=False))
    return wrapped


def format_task_lines(task: Task, level: int = 0, indent_size: int = 2,
                      long_value_threshold: int = 25,
                      wrap_width: Optional[int] = None) -> List[str]:
    """
    Format one task (without its children).

    Args:
        task: Task to format
        level: Nesting depth of the bullet
        indent_size: Spaces per level
        long_value_threshold: Strings longer than this force multi-line form
        wrap_width: Reflow multi-line block text to this width (None keeps it)

    Returns:
        Lines for the task, bullet first
    """
    multiline = needs_multiline(task, long_value_threshold)
    prefix, covered = _prefix_tokens(task, include_names=not multiline)
    indent = ' ' * (level * indent_size)

    head = list(prefix)
    title = task.data.get('title')
    if title is not None:
        head.append(quote_string(str(title)))
    covered.update(('title', 'id'))
    fields = [(k, v) for k, v in task.data.items() if k not in covered]

    if not multiline:
        head.extend(f"{k}: {format_scalar(v)}" for k, v in fields)
        if task.id:
            head.append(f"id: {_format_id(task.id)}")
        return [f"{indent}- {' '.join(head)}".rstrip()]

    if task.id:
        head.append(f"id: {_format_id(task.id)}")
    lines = [f"{indent}- {' '.join(head)}".rstrip()]
    field_indent = indent + ' ' * indent_size
    block_indent = field_indent + ' ' * indent_size
    for key, value in fields:
        lines.extend(_format_field(key, value, field_indent, block_indent,
                                   long_value_threshold, wrap_width))
    return lines


def _is_block_value(value: str, long_value_threshold: int) -> bool:
    """Multi-line text, or long text that a `|` block keeps intact."""
    if '\n' in value:
        return True
    # block lines lose surrounding whitespace
    return len(value) > long_value_threshold and value == value.strip()


def _format_field(key: str, value: FieldValue, field_indent: str, block_indent: str,
                  long_value_threshold: int, wrap_width: Optional[int]) -> List[str]:
    if isinstance(value, list):
        return [f"{field_indent}{key}: {quote_string(','.join(value))}"]
    if isinstance(value, str) and _is_block_value(value, long_value_threshold):
        lines = [f"{field_indent}{key}: {MULTILINE_MARKER}"]
        lines.extend(block_indent + line if line else ''
                     for line in _block_lines(value, wrap_width))
        return lines
    return [f"{field_indent}{key}: {format_scalar(value)}"]


def serialize_tasks(tasks: List[Task], indent_size: int = 2,
                    long_value_threshold: int = 25,
                    wrap_width: Optional[int] = None) -> List[str]:
    """Serialize a forest in document order, children one level deeper."""
    lines: List[str] = []
    stack = [(task, 0) for task in reversed(tasks)]
    while stack:
        task, level = stack.pop()
        lines.extend(format_task_lines(task, level, indent_size,
                                       long_value_threshold, wrap_width))
        stack.extend((child, level + 1) for child in reversed(task.children))
    return lines
