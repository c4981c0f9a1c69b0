#!/usr/bin/env python3
"""
Evaluate parsed queries against task forests.

SELECT filters, sorts, limits and projects the flattened forest. UPDATE,
DELETE and INSERT never modify their input: they rebuild a new forest and
return it along with a count. `execute_query` ties evaluation to files.
"""

import logging
from functools import cmp_to_key
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import Settings
from .models import (ARRAY_FIELDS, BOOLEAN_FIELDS, PRIORITIES, FieldValue, Task,
                     TaskDocument, copy_data)
from .parser import parse_file
from .query import (Assignment, Condition, DeleteQuery, InsertQuery, Query, QueryToken,
                    QueryValidationError, SelectQuery, SortKey, UpdateQuery,
                    WhereClause)
from .sections import load_lines, replace_task_section, write_lines
from .serializer import serialize_tasks
from .utils import (clone_task, ensure_task_id, flatten_tasks, is_valid_name,
                    rebuild_tree, split_names)

log = logging.getLogger(__name__)

# --- conditions ---

def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _text(value: FieldValue) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, list):
        return ','.join(value)
    return str(value)


def field_value(task: Task, key: str) -> Optional[FieldValue]:
    """Value used when filtering: computed id/parent, false for unset flags."""
    if key == 'id':
        return task.id
    if key == 'parent':
        return task.parent
    value = task.data.get(key)
    if value is None and key in BOOLEAN_FIELDS:
        return False
    return value


def _literal_text(token: QueryToken, literal: FieldValue) -> str:
    return token.as_text() if _is_number(literal) else _text(literal)


def _equals(value: Optional[FieldValue], token: QueryToken) -> bool:
    literal = token.coerce()
    if literal is None:
        return value is None
    if value is None:
        return False
    if isinstance(value, bool) or isinstance(literal, bool):
        return isinstance(value, bool) and isinstance(literal, bool) and value == literal
    if _is_number(value) and _is_number(literal):
        return value == literal
    return _text(value) == _literal_text(token, literal)


def _order(value: Optional[FieldValue], token: QueryToken) -> Optional[int]:
    """-1/0/1 comparing value to the literal, None when not comparable."""
    literal = token.coerce()
    if value is None or literal is None or isinstance(value, list):
        return None
    if isinstance(value, bool) or isinstance(literal, bool):
        if not (isinstance(value, bool) and isinstance(literal, bool)):
            return None
        value, literal = int(value), int(literal)
    elif _is_number(value) != _is_number(literal):
        try:
            value, literal = float(value), float(literal)
        except ValueError:
            value, literal = _text(value), _literal_text(token, literal)
    elif not _is_number(value):
        value, literal = _text(value), _text(literal)
    return (value > literal) - (value < literal)


def evaluate_condition(task: Task, condition: Condition) -> bool:
    value = field_value(task, condition.key)
    op = condition.op
    if op == 'IS NULL':
        return value is None or (condition.key in BOOLEAN_FIELDS and value is False)
    if op == 'IS NOT NULL':
        return not evaluate_condition(task, Condition(key=condition.key, op='IS NULL'))
    if op == '=':
        return _equals(value, condition.value)
    if op == 'CONTAINS':
        if value is None:
            return False
        literal = condition.value.coerce()
        needle = _literal_text(condition.value, literal) if literal is not None else ''
        if isinstance(value, list):
            return needle in value
        return needle in _text(value)
    order = _order(value, condition.value)
    if order is None:
        return False
    return order > 0 if op == '>' else order < 0


def matches(task: Task, where: Optional[WhereClause]) -> bool:
    if where is None:
        return True
    left = evaluate_condition(task, where.left)
    if where.combinator is None:
        return left
    if where.combinator == 'AND':
        return left and evaluate_condition(task, where.right)
    return left or evaluate_condition(task, where.right)


# --- sorting and projection ---

def _sort_value(task: Task, key: str) -> Optional[FieldValue]:
    if key == 'parent':
        return task.parent or ''
    if key == 'id':
        return task.id
    return task.data.get(key)


def _compare(a: Task, b: Task, order_by: List[SortKey]) -> int:
    for sort_key in order_by:
        va = _sort_value(a, sort_key.key)
        vb = _sort_value(b, sort_key.key)
        if va is None and vb is None:
            continue
        # missing values come first in either direction
        if va is None:
            return -1
        if vb is None:
            return 1
        if _is_number(va) and _is_number(vb):
            result = (va > vb) - (va < vb)
        else:
            ta, tb = _text(va), _text(vb)
            result = (ta > tb) - (ta < tb)
        if result:
            return -result if sort_key.direction == 'DESC' else result
    return 0


def sort_tasks(tasks: List[Task], order_by: List[SortKey]) -> List[Task]:
    """Stable multi-key sort; ties keep document order."""
    if not order_by:
        return list(tasks)
    return sorted(tasks, key=cmp_to_key(lambda a, b: _compare(a, b, order_by)))


def project(task: Task, columns: List[str]) -> Dict[str, Optional[FieldValue]]:
    """Row for output: always id and parent, then all or the named fields."""
    row: Dict[str, Optional[FieldValue]] = {'id': task.id, 'parent': task.parent}
    data = copy_data(task.data)
    if columns == ['*']:
        row.update((k, v) for k, v in data.items() if k != 'id')
        return row
    for column in columns:
        if column not in row and column in data:
            row[column] = data[column]
    return row


def select_tasks(tasks: List[Task], where: Optional[WhereClause] = None,
                 order_by: Optional[List[SortKey]] = None,
                 limit: Optional[int] = None) -> List[Task]:
    """Filter, then sort, then limit the flattened forest."""
    selected = [t for t in flatten_tasks(tasks) if matches(t, where)]
    selected = sort_tasks(selected, order_by or [])
    if limit is not None:
        selected = selected[:limit]
    log.debug("Selected %d tasks", len(selected))
    return selected


def run_select(tasks: List[Task], query: SelectQuery) -> List[Dict[str, Optional[FieldValue]]]:
    selected = select_tasks(tasks, query.where, query.order_by, query.limit)
    return [project(task, query.columns) for task in selected]


def rebuild_hierarchy(selected: List[Task]) -> List[Task]:
    """
    Rebuild a forest from flat rows using their parent ids.

    Rows whose parent is not among the selected rows become roots. Row
    order is kept within each level.
    """
    ids = {task.id for task in selected}
    groups: Dict[Optional[str], List[Task]] = {}
    for task in selected:
        parent = task.parent if task.parent in ids else None
        groups.setdefault(parent, []).append(task)

    roots: List[Task] = []
    stack: List[Tuple[Task, Optional[Task]]] = [(t, None) for t in reversed(groups.get(None, []))]
    while stack:
        source, parent = stack.pop()
        rebuilt = clone_task(source)
        rebuilt.parent = parent.id if parent is not None else None
        (parent.children if parent is not None else roots).append(rebuilt)
        stack.extend((child, rebuilt) for child in reversed(groups.get(source.id, [])))
    return roots


# --- mutations ---

def validate_assignments(assignments: List[Assignment], allow_id: bool = False) -> Dict[str, Optional[FieldValue]]:
    """
    Check mutation assignments and convert them to field changes.

    A None change means "remove the field".

    Raises:
        QueryValidationError: Listing every problem found
    """
    problems: List[str] = []
    changes: Dict[str, Optional[FieldValue]] = {}
    for assignment in assignments:
        key = assignment.key
        value = assignment.value.coerce()
        if key == 'parent' or (key == 'id' and not allow_id):
            problems.append(f"Field '{key}' cannot be assigned")
            continue
        if value is None:
            changes[key] = None
        elif key in ARRAY_FIELDS:
            names = split_names(assignment.value.as_text())
            label = 'tag' if key == 'tags' else 'stakeholder'
            for name in names:
                if not is_valid_name(name):
                    problems.append(
                        f"Invalid {label} name '{name}'. Names may only contain "
                        "letters, numbers, hyphens, and underscores.")
            changes[key] = names or None
        elif key in BOOLEAN_FIELDS:
            if not isinstance(value, bool):
                problems.append(f"Field '{key}' must be true or false")
            changes[key] = value
        elif key == 'priority':
            text = assignment.value.as_text()
            if text not in PRIORITIES:
                problems.append(f"Priority must be one of {', '.join(PRIORITIES)}, got '{text}'")
            changes[key] = text
        elif key in ('id', 'title'):
            changes[key] = assignment.value.as_text()
        else:
            changes[key] = value
    if problems:
        raise QueryValidationError(problems)
    return changes


def _apply(data: Dict[str, FieldValue], changes: Dict[str, Optional[FieldValue]]) -> None:
    for key, value in changes.items():
        if value is None:
            data.pop(key, None)
        else:
            data[key] = list(value) if isinstance(value, list) else value


def update_tasks(tasks: List[Task], changes: Dict[str, Optional[FieldValue]],
                 where: Optional[WhereClause] = None) -> Tuple[List[Task], int]:
    """Return a new forest with `changes` applied to matching tasks."""
    count = 0

    def transform(source: Task) -> Task:
        nonlocal count
        rebuilt = clone_task(source)
        if matches(source, where):
            _apply(rebuilt.data, changes)
            count += 1
        return rebuilt

    return rebuild_tree(tasks, transform), count


def delete_tasks(tasks: List[Task], where: Optional[WhereClause] = None) -> Tuple[List[Task], int]:
    """Return a new forest without matching tasks; their subtrees go with them."""
    remaining = rebuild_tree(tasks, lambda t: None if matches(t, where) else clone_task(t))
    return remaining, len(flatten_tasks(tasks)) - len(flatten_tasks(remaining))


def insert_task(tasks: List[Task], changes: Dict[str, Optional[FieldValue]],
                id_length: int = 8) -> Tuple[List[Task], Task]:
    """Return a new forest with one new root task appended."""
    rebuilt = rebuild_tree(tasks, clone_task)
    taken = {t.id for t in flatten_tasks(rebuilt) if t.id}
    task = Task()
    _apply(task.data, changes)
    if task.id and task.id in taken:
        raise QueryValidationError([f"Id '{task.id}' already exists"])
    ensure_task_id(task, taken, id_length)
    rebuilt.append(task)
    return rebuilt, task


# --- files ---

def _write_tasks(target: Path, base_lines: List[str], tasks: List[Task],
                 settings: Settings) -> None:
    task_lines = serialize_tasks(tasks, settings.indent_size,
                                 settings.long_value_threshold, settings.wrap_width)
    lines = replace_task_section(base_lines, task_lines, settings.section_heading,
                                 settings.indent_size)
    write_lines(target, lines)
    log.debug("Wrote %d tasks to %s", len(flatten_tasks(tasks)), target)


def _load(path: Path, settings: Settings, create: bool = False) -> TaskDocument:
    if create and not path.exists():
        log.debug("%s does not exist, starting an empty document", path)
        return TaskDocument(file_path=path)
    return parse_file(path, settings=settings, lint=True)


def execute_query(query: Query, settings: Optional[Settings] = None) -> dict:
    """
    Run a parsed query against the file it names.

    Args:
        query: Parsed query
        settings: Settings for parsing and writing (defaults when omitted)

    Returns:
        Dict with command, count, message, and rows for a plain SELECT

    Raises:
        QueryValidationError: Invalid assignments (checked before any read or write)
        LintFailure: The source file has lint errors
        FileNotFoundError: The source file does not exist
    """
    settings = settings or Settings()
    path = Path(query.file)

    if isinstance(query, SelectQuery):
        document = _load(path, settings)
        if query.into is None:
            rows = run_select(document.tasks, query)
            return {"command": "SELECT", "count": len(rows), "rows": rows,
                    "message": f"{len(rows)} task(s) found"}
        selected = select_tasks(document.tasks, query.where, query.order_by, query.limit)
        target = Path(query.into)
        if target.exists() and target.resolve() != path.resolve():
            base_lines = load_lines(target)
        else:
            base_lines = document.lines
        _write_tasks(target, base_lines, rebuild_hierarchy(selected), settings)
        return {"command": "SELECT", "count": len(selected), "file": str(target),
                "message": f"Saved {len(selected)} tasks into {target}"}

    if isinstance(query, UpdateQuery):
        changes = validate_assignments(query.assignments)
        document = _load(path, settings)
        tasks, count = update_tasks(document.tasks, changes, query.where)
        if count:
            _write_tasks(path, document.lines, tasks, settings)
        return {"command": "UPDATE", "count": count, "file": str(path),
                "message": f"Updated {count} tasks in {path}"}

    if isinstance(query, DeleteQuery):
        document = _load(path, settings)
        tasks, count = delete_tasks(document.tasks, query.where)
        if count:
            _write_tasks(path, document.lines, tasks, settings)
        return {"command": "DELETE", "count": count, "file": str(path),
                "message": f"Deleted {count} tasks from {path}"}

    if isinstance(query, InsertQuery):
        changes = validate_assignments(query.assignments, allow_id=True)
        document = _load(path, settings, create=True)
        tasks, task = insert_task(document.tasks, changes, settings.id_length)
        _write_tasks(path, document.lines, tasks, settings)
        return {"command": "INSERT", "count": 1, "file": str(path), "id": task.id,
                "message": f"Inserted task {task.id} into {path}"}

    raise TypeError(f"Unsupported query type: {type(query).__name__}")
