#!/usr/bin/env python3
"""
Parser for markdown task sections.

Main API:
- parse_lines(lines, ...) -> List[Task]
- parse_content(content, ...) -> TaskDocument
- parse_file(path, settings, lint=True) -> TaskDocument

Features:
- Prefix shorthand (priority, completion, @stakeholders, #tags)
- Quoted or implicit titles, inline `key: value` pairs
- Continuation `key: value` lines and `key: |` multi-line blocks
- Parent/child relationships via indentation
- Deterministic ids for tasks without an explicit `id`

Parsing is lenient: malformed lines are skipped rather than rejected. Run
the linter first when the input must be well-formed.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from .config import Settings
from .lexer import MULTILINE_MARKER, pair_tokens, parse_scalar, tokenize, unquote
from .linter import LintFailure, lint_lines
from .models import ARRAY_FIELDS, FieldValue, Task, TaskDocument
from .sections import DEFAULT_SECTION_HEADING, find_task_region, load_lines
from .syntax import COMPLETION_MARKERS, SKIP_MARKERS, Line, measure, prefix_class
from .utils import assign_parents, ensure_task_id, flatten_tasks, merge_names, split_names

log = logging.getLogger(__name__)


class TaskParser:
    """
    Single-pass scanner that turns task lines into a forest.

    Open bullets are kept on an explicit stack of (spaces, task) pairs; a new
    bullet pops everything indented at or past it and attaches to what is
    left on top.
    """

    def __init__(self, indent_size: int = 2, id_length: int = 8):
        self.indent_size = indent_size
        self.id_length = id_length

    def parse(self, lines: List[str], region: Optional[Tuple[int, int]] = None) -> List[Task]:
        start, end = region or (0, len(lines))
        measured = [measure(i, lines[i], self.indent_size) for i in range(start, end)]

        roots: List[Task] = []
        stack: List[Tuple[int, Task]] = []
        current: Optional[Tuple[int, Task]] = None
        pos = 0
        while pos < len(measured):
            line = measured[pos]
            pos += 1
            if line.is_blank:
                continue

            if line.is_bullet:
                task = self._parse_bullet(line)
                while stack and stack[-1][0] >= line.indent:
                    stack.pop()
                (stack[-1][1].children if stack else roots).append(task)
                stack.append((line.indent, task))
                current = (line.indent, task)
                continue

            if (current is None or line.heading_level is not None or line.is_rule
                    or line.indent <= current[0]):
                current = None
                continue

            kv = line.key_value
            if kv is None:
                continue
            task = current[1]
            key, value = kv
            task.inline = False
            if value == MULTILINE_MARKER or (value == '' and self._deeper(measured, pos, line.indent)):
                text, pos = self._read_block(measured, pos, line.indent)
                self._assign(task, key, text)
            else:
                self._assign(task, key, unquote(value) if key == 'id' else parse_scalar(value))

        self._assign_ids(roots)
        assign_parents(roots)
        log.debug("Parsed %d tasks from lines %d-%d",
                  len(flatten_tasks(roots)), start + 1, end)
        return roots

    def _parse_bullet(self, line: Line) -> Task:
        task = Task(indent=line.indent // self.indent_size, line_number=line.index + 1)
        content = line.bullet_content
        tokens = tokenize(content)

        idx = 0
        while idx < len(tokens):
            cls = prefix_class(tokens[idx].text)
            if cls is None:
                break
            self._apply_prefix(task, cls, tokens[idx].text)
            idx += 1

        rest = tokens[idx:]
        first_key = next((i for i, t in enumerate(rest) if t.is_key), len(rest))
        head = rest[:first_key]
        if head:
            if first_key == len(rest) and not head[0].quoted:
                task.data['title'] = content[head[0].start:].strip()
            else:
                quoted = next((t for t in head if t.quoted), None)
                if quoted is not None:
                    task.data['title'] = unquote(quoted.text)

        for key, raw in pair_tokens(rest[first_key:]):
            value = unquote(raw) if key == 'id' else parse_scalar(raw)
            self._assign(task, key, value)
        return task

    def _apply_prefix(self, task: Task, cls: str, text: str) -> None:
        data = task.data
        if cls == 'priority':
            data.setdefault('priority', text)
        elif cls == 'completion':
            if text in SKIP_MARKERS:
                data['skipped'] = True
            elif COMPLETION_MARKERS[text] or 'completed' not in data:
                data['completed'] = COMPLETION_MARKERS[text]
        elif cls == 'stakeholder':
            data['stakeholders'] = merge_names(data.get('stakeholders', []), [text[1:]])
        elif cls == 'tag':
            data['tags'] = merge_names(data.get('tags', []), [text[1:]])

    def _assign(self, task: Task, key: str, value: FieldValue) -> None:
        data = task.data
        if key in ARRAY_FIELDS:
            names = value if isinstance(value, list) else split_names(_as_text(value))
            data[key] = merge_names(data.get(key, []), names)
        elif key in ('id', 'title', 'priority'):
            data[key] = _as_text(value)
        else:
            data[key] = value

    def _deeper(self, measured: List[Line], pos: int, indent: int) -> bool:
        for i in range(pos, len(measured)):
            if not measured[i].is_blank:
                return measured[i].indent > indent
        return False

    def _read_block(self, measured: List[Line], pos: int, key_indent: int) -> Tuple[str, int]:
        """
        Collect the lines of a multi-line block.

        Content lines are those indented past the key; each loses up to one
        indent level beyond the key's indentation. Blank lines inside the
        block are kept, trailing ones dropped.
        """
        strip = key_indent + self.indent_size
        collected: List[str] = []
        while pos < len(measured):
            line = measured[pos]
            if line.is_blank:
                collected.append('')
            elif line.indent > key_indent:
                collected.append(line.raw[min(line.indent, strip):].rstrip())
            else:
                break
            pos += 1
        while collected and collected[-1] == '':
            collected.pop()
        return '\n'.join(collected), pos

    def _assign_ids(self, roots: List[Task]) -> None:
        ordered = flatten_tasks(roots)
        taken = {task.id for task in ordered if task.id}
        for task in ordered:
            ensure_task_id(task, taken, self.id_length)


def _as_text(value: FieldValue) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, list):
        return ','.join(value)
    return str(value)


def parse_lines(lines: List[str], indent_size: int = 2, id_length: int = 8,
                section_heading: Optional[str] = DEFAULT_SECTION_HEADING) -> List[Task]:
    """Parse the task region of `lines` into a forest."""
    region = find_task_region(lines, section_heading)
    return TaskParser(indent_size, id_length).parse(lines, region)


def parse_content(content: str, settings: Optional[Settings] = None) -> TaskDocument:
    """Parse markdown text into a TaskDocument (no lint gate)."""
    settings = settings or Settings()
    lines = content.split('\n')
    tasks = parse_lines(lines, settings.indent_size, settings.id_length,
                        settings.section_heading)
    return TaskDocument(tasks=tasks, lines=lines)


def parse_file(path: Path, settings: Optional[Settings] = None,
               lint: bool = True) -> TaskDocument:
    """
    Read and parse a markdown task file.

    Args:
        path: File to read
        settings: Parse settings (defaults when omitted)
        lint: Refuse files with lint errors

    Returns:
        TaskDocument holding the forest and the file's raw lines

    Raises:
        LintFailure: lint is enabled and the task section has errors
        FileNotFoundError: path does not exist
    """
    settings = settings or Settings()
    path = Path(path)
    lines = load_lines(path)
    if lint:
        result = lint_lines(lines, settings.indent_size, settings.section_heading)
        if result.errors:
            log.debug("%s failed lint with %d errors", path, len(result.errors))
            raise LintFailure(path, result)
    tasks = parse_lines(lines, settings.indent_size, settings.id_length,
                        settings.section_heading)
    return TaskDocument(tasks=tasks, lines=lines, file_path=path)
