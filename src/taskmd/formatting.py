#!/usr/bin/env python3
"""
Render query result rows as a markdown table or JSON.
"""

import json
import unicodedata
from typing import Dict, List, Optional

from .models import FieldValue

Row = Dict[str, Optional[FieldValue]]

COMMON_COLUMNS = ['id', 'parent', 'title', 'priority', 'stakeholders',
                  'completed', 'skipped', 'due', 'weight']
CHECK_MARK = '✅'
MIN_COLUMN_WIDTH = 3


def display_width(text: str) -> int:
    """Terminal columns taken by text; wide characters count as two."""
    return sum(2 if unicodedata.east_asian_width(c) in ('W', 'F') else 1 for c in text)


def format_cell(value: Optional[FieldValue]) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return CHECK_MARK if value else ''
    if isinstance(value, list):
        text = ', '.join(str(v) for v in value)
    else:
        text = str(value)
    return text.replace('\n', ' ').strip().replace('|', '\\|')


def table_columns(rows: List[Row]) -> List[str]:
    """Common columns in a fixed order, then the rest alphabetically."""
    seen = set()
    for row in rows:
        seen.update(row)
    return ([c for c in COMMON_COLUMNS if c in seen]
            + sorted(c for c in seen if c not in COMMON_COLUMNS))


def format_table(rows: List[Row]) -> str:
    if not rows:
        return 'No tasks found.'

    columns = table_columns(rows)
    cells = [[format_cell(row.get(c)) for c in columns] for row in rows]
    widths = [max([MIN_COLUMN_WIDTH, len(c)] + [display_width(r[i]) for r in cells])
              for i, c in enumerate(columns)]

    def render(values: List[str]) -> str:
        padded = [v + ' ' * (w - display_width(v)) for v, w in zip(values, widths)]
        return '| ' + ' | '.join(padded) + ' |'

    lines = [render(columns), render(['-' * w for w in widths])]
    lines.extend(render(r) for r in cells)
    return '\n'.join(lines)


def format_json(rows: List[Row]) -> str:
    return json.dumps(rows, indent=2, ensure_ascii=False)
