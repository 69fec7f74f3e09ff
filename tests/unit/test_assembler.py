"""
Unit tests for snapshot assembly (clickup_backup/backup/assembler.py).
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from clickup_backup.backup.assembler import assemble
from clickup_backup.backup.snapshot import SnapshotError
from tests.records import CAPTURED_AT, make_folder, make_list, make_space, make_task


class TestAssemble:
    """Test assemble() normalization and integrity checks."""

    def test_captured_at_truncated_to_milliseconds(self):
        captured = datetime(2024, 1, 15, 10, 30, 0, 123999, tzinfo=timezone.utc)

        snapshot = assemble(make_space(), [], [], [], {}, captured)

        assert snapshot.captured_at.microsecond == 123000

    def test_naive_capture_time_is_utc(self):
        snapshot = assemble(make_space(), [], [], [], {}, datetime(2024, 1, 15, 10, 30))

        assert snapshot.captured_at == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_capture_time_converted_to_utc(self):
        cet = timezone(timedelta(hours=1))

        snapshot = assemble(make_space(), [], [], [], {}, datetime(2024, 1, 15, 11, 30, tzinfo=cet))

        assert snapshot.captured_at == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert snapshot.captured_at.utcoffset() == timedelta(0)

    def test_task_index_keeps_order(self):
        snapshot = assemble(
            make_space(), [], [make_list('L2'), make_list('L1')], [],
            {'L2': [make_task('T2')], 'L1': []},
            CAPTURED_AT
        )

        assert list(snapshot.task_index.keys()) == ['L2', 'L1']
        assert snapshot.task_index['L1'] == ()

    def test_task_without_creation_date(self):
        task = make_task('T7')
        task['date_created'] = None

        with pytest.raises(SnapshotError, match='T7'):
            assemble(make_space(), [], [make_list()], [], {'L1': [task]}, CAPTURED_AT)

    def test_out_of_range_creation_date(self):
        task = make_task('T8', created='99999999999999999')

        with pytest.raises(SnapshotError, match='T8'):
            assemble(make_space(), [], [make_list()], [], {'L1': [task]}, CAPTURED_AT)

    def test_out_of_range_due_date_degrades(self):
        task = make_task('T9', due_date='99999999999999999')

        snapshot = assemble(make_space(), [], [make_list()], [], {'L1': [task]}, CAPTURED_AT)

        assert snapshot.task_index['L1'][0].due_date is None

    def test_dangling_folder_reference_warns(self, caplog):
        """Test a list pointing at an unknown folder is kept and logged."""
        lists = [make_list('L1', 'Orphan', folder={'id': 'F404', 'name': 'Gone'})]

        with caplog.at_level(logging.WARNING, logger='clickup_backup.backup.assembler'):
            snapshot = assemble(make_space(), [make_folder()], lists, [], {'L1': []}, CAPTURED_AT)

        assert snapshot.lists[0].folder.id == 'F404'
        assert "references folder F404" in caplog.text

    def test_known_and_hidden_folders_do_not_warn(self, caplog):
        lists = [
            make_list('L1', folder={'id': 'F1', 'name': 'Backend'}),
            make_list('L2'),  # hidden placeholder folder
        ]

        with caplog.at_level(logging.WARNING, logger='clickup_backup.backup.assembler'):
            assemble(make_space(), [make_folder()], lists, [], {}, CAPTURED_AT)

        assert caplog.records == []

    def test_raw_records_are_copied(self):
        """Test later changes to fetched records do not leak into the snapshot."""
        space = make_space()

        snapshot = assemble(space, [], [], [], {}, CAPTURED_AT)
        space['name'] = 'Renamed'

        assert snapshot.workspace.raw['name'] == 'Eng/Ops'
