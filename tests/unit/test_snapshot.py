"""
Unit tests for the snapshot model (clickup_backup/backup/snapshot.py).
"""

from datetime import datetime, timezone

import pytest

from clickup_backup.backup.snapshot import (
    Snapshot,
    SnapshotError,
    Sprint,
    Task,
    TaskList,
    format_iso_timestamp,
    parse_timestamp
)
from tests.records import make_list, make_sprint, make_task


class TestParseTimestamp:
    """Test ClickUp timestamp parsing."""

    @pytest.mark.parametrize('value,expected', [
        ('1704067200000', datetime(2024, 1, 1, tzinfo=timezone.utc)),
        (1704067200000, datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ('2024-01-01', datetime(2024, 1, 1, tzinfo=timezone.utc)),
        ('2024-01-01T12:30:00Z', datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)),
        ('2024-01-01T14:30:00+02:00', datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)),
    ])
    def test_parse_valid(self, value, expected):
        """Test epoch milliseconds and ISO strings are parsed to UTC."""
        assert parse_timestamp(value) == expected

    @pytest.mark.parametrize('value', [
        None, '', 'not a date',
        '99999999999999999', 10 ** 20, -10 ** 20,
    ])
    def test_parse_invalid_returns_none(self, value):
        assert parse_timestamp(value) is None

    def test_format_iso_timestamp_milliseconds(self):
        """Test ISO format matches 'YYYY-MM-DDTHH:MM:SS.mmmZ'."""
        value = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)

        assert format_iso_timestamp(value) == '2024-01-15T10:30:00.123Z'


class TestTask:
    """Test Task construction from API records."""

    def test_task_from_api(self):
        task = Task.from_api(make_task(
            'T1', 'Fix bug', '1704067200000',
            status={'status': 'in progress'},
            priority={'priority': 'urgent'},
            assignees=[{'id': 1, 'username': 'alice'}, {'id': 2, 'email': 'bob@example.com'}],
            due_date='1706745600000'
        ))

        assert task.id == 'T1'
        assert task.status == 'in progress'
        assert task.priority == 'urgent'
        assert task.assignees == ('alice', 'bob@example.com')
        assert task.due_date == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert task.created_date == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_task_without_creation_date_raises(self):
        """Test a task without date_created is rejected."""
        record = make_task()
        del record['date_created']

        with pytest.raises(SnapshotError, match='T1'):
            Task.from_api(record)

    def test_task_with_invalid_creation_date_raises(self):
        with pytest.raises(SnapshotError):
            Task.from_api(make_task(created='yesterday'))

    def test_task_with_out_of_range_creation_date_raises(self):
        with pytest.raises(SnapshotError, match='T1'):
            Task.from_api(make_task(created='99999999999999999'))

    def test_out_of_range_due_date_is_dropped(self):
        """Test an unusable due date renders as no due date instead of failing."""
        task = Task.from_api(make_task(due_date='99999999999999999'))

        assert task.due_date is None
        assert task.raw['due_date'] == '99999999999999999'


class TestTaskList:
    def test_folder_reference(self):
        task_list = TaskList.from_api(make_list(folder={'id': 42, 'name': 'Backend'}))

        assert task_list.folder.id == '42'
        assert task_list.folder.name == 'Backend'
        assert task_list.folder.hidden is False

    def test_no_folder_reference(self):
        record = make_list()
        del record['folder']

        assert TaskList.from_api(record).folder is None


class TestSprint:
    """Test sprint enrichment handling."""

    def test_plain_sprint_is_not_enriched(self):
        sprint = Sprint.from_api(make_sprint())

        assert sprint.is_enriched is False
        assert sprint.detail is None
        assert sprint.tasks is None
        assert sprint.to_dict() == make_sprint()

    def test_enriched_sprint(self):
        record = make_sprint(backup_enrichment={
            'details': {'goal': 'Ship v2', 'points': 8},
            'tasks': [make_task()],
        })

        sprint = Sprint.from_api(record)

        assert sprint.is_enriched is True
        assert sprint.detail.goal == 'Ship v2'
        assert sprint.detail.points == 8
        assert [t.id for t in sprint.tasks] == ['T1']
        assert 'backup_enrichment' not in sprint.raw
        assert sprint.to_dict() == record

    def test_enriched_sprint_without_details(self):
        """Test a failed detail fetch still counts as enriched."""
        record = make_sprint(backup_enrichment={'details': None, 'tasks': []})

        sprint = Sprint.from_api(record)

        assert sprint.is_enriched is True
        assert sprint.detail is None
        assert sprint.tasks == ()
        assert sprint.to_dict() == record

    def test_api_task_fields_do_not_mark_enrichment(self):
        """Test 'tasks'/'details' fields of the sprint record stay raw data."""
        record = make_sprint(tasks=[{'id': 'T1'}], details='free text')

        sprint = Sprint.from_api(record)

        assert sprint.is_enriched is False
        assert sprint.tasks is None
        assert sprint.detail is None
        assert sprint.raw['tasks'] == [{'id': 'T1'}]
        assert sprint.to_dict() == record


class TestSnapshot:
    """Test Snapshot helpers and persisted shape."""

    def test_total_tasks(self, sample_snapshot):
        assert sample_snapshot.total_tasks == 2

    def test_find_list_and_folder(self, sample_snapshot):
        assert sample_snapshot.find_list('L2').name == 'Ideas'
        assert sample_snapshot.find_list('missing') is None
        assert sample_snapshot.find_folder('F1').name == 'Backend'
        assert sample_snapshot.find_folder('missing') is None

    def test_to_dict_shape(self, sample_snapshot):
        data = sample_snapshot.to_dict()

        assert list(data.keys()) == ['timestamp', 'workspace', 'folders', 'lists', 'sprints', 'tasks']
        assert data['timestamp'] == '2024-01-15T10:30:00.123Z'
        assert data['workspace']['name'] == 'Eng/Ops'
        assert list(data['tasks'].keys()) == ['L1', 'L2']
        assert data['tasks']['L2'] == []
        assert data['sprints'][0]['backup_enrichment']['details']['goal'] == 'Ship v2'

    def test_from_dict_restores_snapshot(self, sample_snapshot):
        restored = Snapshot.from_dict(sample_snapshot.to_dict())

        assert restored.captured_at == sample_snapshot.captured_at
        assert restored.workspace == sample_snapshot.workspace
        assert restored.lists == sample_snapshot.lists
        assert restored.sprints == sample_snapshot.sprints
        assert restored.task_index == sample_snapshot.task_index

    def test_from_dict_missing_workspace(self):
        with pytest.raises(SnapshotError, match='Malformed'):
            Snapshot.from_dict({'timestamp': '2024-01-15T10:30:00.123Z'})

    def test_from_dict_invalid_timestamp(self):
        with pytest.raises(SnapshotError, match='timestamp'):
            Snapshot.from_dict({'timestamp': 'never', 'workspace': {'id': 'S1'}})
