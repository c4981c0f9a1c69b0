#!/usr/bin/env python3
"""
Unit tests for task section location and rewriting (src/taskmd/sections.py).
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from taskmd.sections import (
    find_section_heading, find_task_lines, find_task_region, heading_level, load_lines,
    replace_task_section, write_lines,
)


class TestFindTaskRegion:
    def test_region_after_heading(self):
        lines = ['# Doc', '## TODO', '- "A"', '## Later', 'text']
        assert find_task_region(lines) == (2, 3)

    def test_subheadings_stay_inside(self):
        lines = ['## TODO', '- "A"', '### Sub', '- "B"', '# Top']
        assert find_task_region(lines) == (1, 4)

    def test_heading_match_ignores_case_and_whitespace(self):
        lines = ['intro', '  ## todo  ', '- "A"']
        assert find_section_heading(lines) == 1
        assert find_task_region(lines) == (2, 3)

    def test_missing_heading_means_whole_file(self):
        assert find_task_region(['a', 'b']) == (0, 2)
        assert find_task_region(['a', 'b'], None) == (0, 2)

    def test_custom_level(self):
        lines = ['# Tasks', '- "A"', '## Sub', '- "B"', '# Next']
        assert find_task_region(lines, '# Tasks') == (1, 4)

    def test_indented_heading_is_block_text(self):
        lines = ['## TODO', '- "A"', '  notes: |', '    intro', '    ## Details', '    more', '## Later']
        assert find_task_region(lines) == (1, 6)

    def test_indented_marker_is_not_the_section(self):
        lines = ['- "A"', '  notes: |', '    ## TODO', '## TODO', '- "B"']
        assert find_section_heading(lines) == 3


def test_heading_level():
    assert heading_level('## TODO') == 2
    assert heading_level('   ### Sub') == 3
    assert heading_level('    ## Details') is None
    assert heading_level('\t## Details') is None
    assert heading_level('#hashtag') is None


class TestFindTaskLines:
    def test_bullets_and_continuations(self):
        lines = ['# Doc', '- "A"', '  due: 1', '', '  - "B"', 'text', '---', '- "C"']
        assert find_task_lines(lines) == [1, 2, 3, 4, 7]

    def test_block_content_belongs_to_the_bullet(self):
        lines = ['- "A"', '  notes: |', '    ## not a heading', '', '    more', 'after']
        assert find_task_lines(lines) == [0, 1, 2, 3, 4]

    def test_no_bullets(self):
        assert find_task_lines(['# Doc', 'text', '']) == []


class TestReplaceTaskSection:
    def test_replaces_existing_section(self):
        lines = ['# Doc', '', '## TODO', '- "Old"', '', '## Notes', 'keep me']
        result = replace_task_section(lines, ['- "New"'])
        assert result == ['# Doc', '', '## TODO', '- "New"', '', '## Notes', 'keep me']

    def test_section_at_end_of_file(self):
        lines = ['# Doc', '## TODO', '- "Old"', '']
        assert replace_task_section(lines, ['- "New"']) == ['# Doc', '## TODO', '- "New"', '']

    def test_replaces_subsections_too(self):
        lines = ['## TODO', '- "Old"', '### Done', '- [x] "Older"', '## Notes']
        assert replace_task_section(lines, ['- "New"']) == ['## TODO', '- "New"', '', '## Notes']

    def test_appends_missing_section(self):
        lines = ['# Doc', 'Some text']
        assert replace_task_section(lines, ['- "New"']) == ['# Doc', 'Some text', '', '## TODO', '- "New"']

    def test_append_after_trailing_blank(self):
        lines = ['# Doc', '']
        assert replace_task_section(lines, ['- "New"']) == ['# Doc', '', '## TODO', '- "New"', '']

    def test_empty_file(self):
        assert replace_task_section([], ['- "New"']) == ['## TODO', '- "New"']

    def test_input_is_not_modified(self):
        lines = ['## TODO', '- "Old"']
        replace_task_section(lines, ['- "New"'])
        assert lines == ['## TODO', '- "Old"']

    def test_empty_task_list(self):
        assert replace_task_section(['## TODO', '- "Old"'], []) == ['## TODO', '']

    def test_missing_heading_replaces_existing_bullets(self):
        lines = ['- B "T" id: t1', '']
        assert replace_task_section(lines, ['- A "T" id: t1']) == ['## TODO', '- A "T" id: t1', '']

    def test_missing_heading_keeps_other_text(self):
        lines = ['Intro', '', '- "Old" id: a', '  notes: |', '    text', '', '    more',
                 '- "Other"', '', 'Outro', '']
        assert replace_task_section(lines, ['- "New"']) == [
            'Intro', '', 'Outro', '', '## TODO', '- "New"', '']


class TestFileIO:
    def test_load_and_write(self, tmp_path):
        path = tmp_path / 'a.md'
        path.write_text('one\r\ntwo\n', encoding='utf-8')
        lines = load_lines(path)
        assert lines == ['one', 'two', '']
        write_lines(path, lines)
        assert path.read_text(encoding='utf-8') == 'one\ntwo\n'

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'empty.md'
        path.write_text('', encoding='utf-8')
        assert load_lines(path) == []
