#!/usr/bin/env python3
"""
Core data models for schemaless task trees.

A task is an ordered field map plus the child tasks it owns. The structured
fields (completed, skipped, priority, stakeholders, tags) have fixed types;
every other field is opaque and carried through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union


FieldValue = Union[str, int, float, bool, List[str]]

# Fields that have a prefix shorthand on the bullet line
PREFIX_FIELDS = ('completed', 'skipped', 'priority', 'stakeholders', 'tags')
ARRAY_FIELDS = ('stakeholders', 'tags')
BOOLEAN_FIELDS = ('completed', 'skipped')
PRIORITIES = ('A', 'B', 'C', 'D')

# Fields hashed into a computed id
IDENTITY_FIELDS = ('title', 'tags', 'priority', 'stakeholders', 'due')


@dataclass
class Task:
    """
    A single task node.

    Equality compares field maps and children only; parse-time bookkeeping
    (parent, indent, line number, original layout) is ignored.
    """
    data: Dict[str, FieldValue] = field(default_factory=dict)
    children: List[Task] = field(default_factory=list)
    parent: Optional[str] = field(default=None, compare=False)
    indent: int = field(default=0, compare=False)
    line_number: int = field(default=0, compare=False)
    inline: bool = field(default=True, compare=False)

    @property
    def id(self) -> Optional[str]:
        value = self.data.get('id')
        if value is None or value == '':
            return None
        return str(value)

    @property
    def title(self) -> Optional[str]:
        value = self.data.get('title')
        return None if value is None else str(value)

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def get(self, key: str, default: Optional[FieldValue] = None) -> Optional[FieldValue]:
        return self.data.get(key, default)

    def all_tasks(self) -> List[Task]:
        """This task and all descendants in document order."""
        result = []
        stack = [self]
        while stack:
            task = stack.pop()
            result.append(task)
            stack.extend(reversed(task.children))
        return result


@dataclass
class TaskDocument:
    """Parsed tasks plus the raw lines of the file they came from."""
    tasks: List[Task] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)
    file_path: Optional[Path] = None

    def all_tasks(self) -> List[Task]:
        """Flatten all tasks in document order."""
        result = []
        for task in self.tasks:
            result.extend(task.all_tasks())
        return result

    def find_by_id(self, task_id: str) -> Optional[Task]:
        for task in self.all_tasks():
            if task.id == task_id:
                return task
        return None


def copy_data(data: Dict[str, FieldValue]) -> Dict[str, FieldValue]:
    """Copy a field map so list values are not shared."""
    return {k: list(v) if isinstance(v, list) else v for k, v in data.items()}
