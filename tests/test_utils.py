#!/usr/bin/env python3
"""
Unit tests for id and tree helpers (src/taskmd/utils.py).
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from taskmd.models import Task, TaskDocument
from taskmd.utils import (
    compute_task_id, ensure_task_id, flatten_tasks, identity_of, is_valid_name,
    merge_names, rebuild_tree, split_names,
)


def _task(task_id, *children):
    return Task(data={'title': task_id, 'id': task_id}, children=list(children))


class TestComputeTaskId:
    def test_deterministic(self):
        identity = identity_of({'title': 'T', 'tags': ['a'], 'priority': 'A'})
        assert compute_task_id(identity) == compute_task_id(dict(identity))

    def test_key_order_does_not_matter(self):
        a = {'title': 'T', 'due': '2025', 'priority': 'B'}
        b = {'priority': 'B', 'due': '2025', 'title': 'T'}
        assert compute_task_id(identity_of(a)) == compute_task_id(identity_of(b))

    def test_each_identity_field_counts(self):
        base = {'title': 'T', 'tags': ['a'], 'priority': 'A', 'stakeholders': ['Bo'], 'due': '2025'}
        base_id = compute_task_id(identity_of(base))
        for key, other in [('title', 'U'), ('tags', ['b']), ('priority', 'B'),
                           ('stakeholders', ['Al']), ('due', '2026')]:
            assert compute_task_id(identity_of(dict(base, **{key: other}))) != base_id

    def test_other_fields_ignored(self):
        assert identity_of({'title': 'T', 'weight': 3}) == identity_of({'title': 'T'})

    def test_length_and_hex(self):
        task_id = compute_task_id(identity_of({}), length=12)
        assert len(task_id) == 12
        assert all(c in '0123456789abcdef' for c in task_id)


class TestEnsureTaskId:
    def test_explicit_id_kept(self):
        task = Task(data={'title': 'T', 'id': 'mine'})
        taken = set()
        assert ensure_task_id(task, taken) == 'mine'
        assert taken == {'mine'}

    def test_collision_rehashes(self):
        first, second = Task(data={'title': 'T'}), Task(data={'title': 'T'})
        taken = set()
        ensure_task_id(first, taken)
        ensure_task_id(second, taken)
        assert first.id != second.id
        assert second.data['id'] == second.id


class TestTrees:
    def test_flatten_pre_order(self):
        forest = [_task('a', _task('b', _task('c')), _task('d')), _task('e')]
        assert [t.id for t in flatten_tasks(forest)] == ['a', 'b', 'c', 'd', 'e']

    def test_flatten_deep_chain(self):
        root = leaf = Task(data={'id': '0'})
        for depth in range(1, 5000):
            child = Task(data={'id': str(depth)})
            leaf.children.append(child)
            leaf = child
        flat = flatten_tasks([root])
        assert len(flat) == 5000
        assert flat[-1].id == '4999'

    def test_rebuild_tree_drops_subtrees(self):
        forest = [_task('a', _task('b', _task('c')), _task('d'))]
        rebuilt = rebuild_tree(forest, lambda t: None if t.id == 'b' else Task(data=dict(t.data)))
        assert [t.id for t in flatten_tasks(rebuilt)] == ['a', 'd']
        assert rebuilt[0].children[0].parent == 'a'
        assert [t.id for t in flatten_tasks(forest)] == ['a', 'b', 'c', 'd']

    def test_document_helpers(self):
        document = TaskDocument(tasks=[_task('a', _task('b'))])
        assert [t.id for t in document.all_tasks()] == ['a', 'b']
        assert document.find_by_id('b').title == 'b'
        assert document.find_by_id('zzz') is None


class TestNames:
    def test_is_valid_name(self):
        assert is_valid_name('team-a_1')
        assert not is_valid_name('two words')
        assert not is_valid_name('')
        assert not is_valid_name('Bob!')

    def test_split_names(self):
        assert split_names(' a, b ,,c ') == ['a', 'b', 'c']
        assert split_names('') == []

    def test_merge_names(self):
        assert merge_names(['a', 'b'], ['b', 'c', 'a']) == ['a', 'b', 'c']
