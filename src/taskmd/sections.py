#!/usr/bin/env python3
"""
Locating and rewriting the task section of a markdown file.

The task section starts at a heading that matches the configured marker
(case-insensitive, surrounding whitespace ignored) and runs until the next
heading of the same or a higher level, or end of file. Everything outside
the section is preserved line for line.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from .syntax import HEADING_RE, measure

log = logging.getLogger(__name__)

DEFAULT_SECTION_HEADING = '## TODO'


def heading_level(line: str) -> Optional[int]:
    """Heading level of a raw line; deeper than three spaces is not a heading."""
    match = HEADING_RE.match(line.rstrip())
    return len(match.group(1)) if match else None


def _normalize(heading: str) -> str:
    return heading.strip().casefold()


def find_section_heading(lines: List[str], heading: str = DEFAULT_SECTION_HEADING) -> int:
    """Index of the section heading line, or -1 if absent."""
    target = _normalize(heading)
    for i, line in enumerate(lines):
        if heading_level(line) is not None and _normalize(line) == target:
            return i
    return -1


def find_section_end(lines: List[str], start: int, level: int) -> int:
    """Index of the first heading after start at `level` or higher, else len(lines)."""
    for i in range(start + 1, len(lines)):
        found = heading_level(lines[i])
        if found is not None and found <= level:
            return i
    return len(lines)


def find_task_region(lines: List[str],
                     heading: Optional[str] = DEFAULT_SECTION_HEADING) -> Tuple[int, int]:
    """
    Line range [start, end) holding the tasks.

    With no heading configured, or none present in the file, the whole file
    is the task region.
    """
    if not heading:
        return 0, len(lines)
    index = find_section_heading(lines, heading)
    if index < 0:
        return 0, len(lines)
    level = heading_level(heading) or 2
    return index + 1, find_section_end(lines, index, level)


def find_task_lines(lines: List[str], indent_size: int = 2) -> List[int]:
    """
    Indexes of the lines that make up task bullets.

    A bullet owns the lines indented deeper than itself (continuation lines
    and block content) and the blank lines between owned lines. Headings,
    rules and shallower text end the run.
    """
    owned: List[int] = []
    pending: List[int] = []
    bullet_indent: Optional[int] = None
    for i, raw in enumerate(lines):
        line = measure(i, raw, indent_size)
        if line.is_blank:
            if bullet_indent is not None:
                pending.append(i)
            continue
        if line.is_bullet:
            bullet_indent = line.indent
        elif (bullet_indent is None or line.heading_level is not None or line.is_rule
                or line.indent <= bullet_indent):
            bullet_indent = None
            pending = []
            continue
        owned.extend(pending)
        owned.append(i)
        pending = []
    return owned


def replace_task_section(lines: List[str], task_lines: List[str],
                         heading: str = DEFAULT_SECTION_HEADING,
                         indent_size: int = 2) -> List[str]:
    """
    Return a copy of lines with the task section body replaced.

    When the heading is missing, the whole file was the task region: its
    bullets are removed and the new section is appended after what is left.

    Args:
        lines: Current file lines
        task_lines: Serialized task lines for the new section body
        heading: Section marker to look for (and to create if missing)
        indent_size: Spaces per level, used to find bullets without a heading

    Returns:
        New list of lines; `lines` is left untouched
    """
    index = find_section_heading(lines, heading)
    if index >= 0:
        level = heading_level(heading) or 2
        end = find_section_end(lines, index, level)
        return lines[:index + 1] + list(task_lines) + [''] + lines[end:]

    dropped = set(find_task_lines(lines, indent_size))
    log.debug("Section %r not found, appending it and dropping %d task lines",
              heading, len(dropped))
    result: List[str] = []
    for i, line in enumerate(lines):
        if i in dropped:
            continue
        # one blank line survives where a run of tasks was cut out
        if line.strip() == '' and i - 1 in dropped and result and result[-1].strip() == '':
            continue
        result.append(line)
    while result and result[-1].strip() == '':
        result.pop()
    if result:
        result.append('')
    result.append(heading.strip())
    result.extend(task_lines)
    if lines and lines[-1] == '':
        result.append('')
    return result


def load_lines(path: Path) -> List[str]:
    """Read a file as a list of lines; a trailing newline yields a final ''."""
    raw = Path(path).read_text(encoding='utf-8')
    if raw == '':
        return []
    return raw.replace('\r\n', '\n').split('\n')


def write_lines(path: Path, lines: List[str]) -> None:
    Path(path).write_text('\n'.join(lines), encoding='utf-8')
