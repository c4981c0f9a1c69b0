#!/usr/bin/env python3
"""
Shared utilities for task ids and tree traversal.
"""

import hashlib
import json
import logging
import re
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Set

from .models import FieldValue, IDENTITY_FIELDS, Task, copy_data

log = logging.getLogger(__name__)

NAME_RE = re.compile(r'^[A-Za-z0-9_-]+$')


def identity_of(data: Dict[str, FieldValue]) -> Dict[str, FieldValue]:
    """
    The fields that determine a task's computed id.

    Missing fields take fixed defaults so the hash is stable.
    """
    return {
        'title': data.get('title', ''),
        'tags': list(data.get('tags') or []),
        'priority': data.get('priority'),
        'stakeholders': list(data.get('stakeholders') or []),
        'due': data.get('due'),
    }


def compute_task_id(identity: Dict[str, FieldValue], length: int = 8) -> str:
    """
    Hash an identity map into a hex id.

    Args:
        identity: Field map; keys are serialized in sorted order
        length: Number of hex characters to keep

    Returns:
        Lowercase hex prefix of the SHA-1 digest
    """
    canonical = json.dumps(identity, sort_keys=True, separators=(',', ':'),
                           ensure_ascii=False)
    return hashlib.sha1(canonical.encode('utf-8')).hexdigest()[:length]


def ensure_task_id(task: Task, taken: Set[str], length: int = 8) -> str:
    """
    Give task an id if it has none, avoiding ids already in `taken`.

    An explicit id is adopted verbatim. A computed id that collides is
    re-hashed with an occurrence counter until it is unique.
    """
    if task.id:
        taken.add(task.id)
        return task.id

    identity = identity_of(task.data)
    candidate = compute_task_id(identity, length)
    occurrence = 1
    while candidate in taken:
        log.debug("Computed id %s already taken, re-hashing (occurrence %d)",
                  candidate, occurrence)
        candidate = compute_task_id(dict(identity, occurrence=occurrence), length)
        occurrence += 1

    task.data['id'] = candidate
    taken.add(candidate)
    return candidate


def flatten_tasks(tasks: Iterable[Task]) -> List[Task]:
    """Pre-order walk of a forest, without recursion."""
    result = []
    stack = list(reversed(list(tasks)))
    while stack:
        task = stack.pop()
        result.append(task)
        stack.extend(reversed(task.children))
    return result


def assign_parents(tasks: Iterable[Task]) -> None:
    """Set each task's `parent` to its parent's id (None for roots)."""
    stack = [(task, None) for task in reversed(list(tasks))]
    while stack:
        task, parent_id = stack.pop()
        task.parent = parent_id
        stack.extend((child, task.id) for child in reversed(task.children))


def rebuild_tree(tasks: Iterable[Task],
                 transform: Callable[[Task], Optional[Task]]) -> List[Task]:
    """
    Build a new forest from an existing one.

    `transform` receives each source task and returns its replacement (a new
    Task whose children are ignored), or None to drop the task and its whole
    subtree. The source forest is never modified.
    """
    roots = []
    stack = [(task, None) for task in reversed(list(tasks))]
    while stack:
        source, parent = stack.pop()
        rebuilt = transform(source)
        if rebuilt is None:
            continue
        rebuilt.children = []
        rebuilt.parent = parent.id if parent is not None else None
        (parent.children if parent is not None else roots).append(rebuilt)
        stack.extend((child, rebuilt) for child in reversed(source.children))
    return roots


def clone_task(task: Task) -> Task:
    """Shallow copy of a task with its own field map and no children."""
    return replace(task, data=copy_data(task.data), children=[])


def is_valid_name(name: str) -> bool:
    """Tag and stakeholder names: letters, digits, `_` and `-` only."""
    return NAME_RE.match(name) is not None


def split_names(value: str) -> List[str]:
    """Split a comma-separated name list, trimming and dropping empties."""
    return [part.strip() for part in value.split(',') if part.strip()]


def merge_names(existing: List[str], added: Iterable[str]) -> List[str]:
    merged = list(existing)
    for name in added:
        if name not in merged:
            merged.append(name)
    return merged
