"""
Unit tests for database models (clickup_backup/models.py).

Tests run history models and their relationship.
"""

import pytest

from clickup_backup.models import BackupArtifact, BackupRun


class TestBackupRunModel:
    """Test BackupRun model."""

    def test_create_run(self, db):
        """Test creating a run with defaults."""
        record = BackupRun(status='running')
        db.session.add(record)
        db.session.commit()

        assert record.id is not None
        assert record.trigger == 'scheduled'
        assert record.started_at is not None
        assert record.completed_at is None
        assert record.workspaces_total == 0
        assert record.artifacts_written == 0
        assert record.artifacts_deleted == 0

    def test_status_required(self, db):
        db.session.add(BackupRun())

        with pytest.raises(Exception):  # IntegrityError
            db.session.commit()

    def test_run_repr(self, db):
        record = BackupRun(status='success')
        db.session.add(record)
        db.session.commit()

        assert repr(record) == f'<BackupRun {record.id} status=success>'


class TestBackupArtifactModel:
    """Test BackupArtifact model."""

    def test_artifacts_relationship(self, db):
        """Test artifacts belong to their run."""
        record = BackupRun(status='success')
        db.session.add(record)
        db.session.add(BackupArtifact(run=record, name='a.json', format='json', location='/backups/a.json'))
        db.session.add(BackupArtifact(run=record, name='a.md', format='markdown', location='/backups/a.md'))
        db.session.commit()

        assert record.artifacts.count() == 2
        assert {a.format for a in record.artifacts} == {'json', 'markdown'}
        assert all(a.run_id == record.id for a in record.artifacts)

    def test_artifacts_deleted_with_run(self, db):
        record = BackupRun(status='success')
        db.session.add(record)
        db.session.add(BackupArtifact(run=record, name='a.json', format='json', location='/backups/a.json'))
        db.session.commit()

        db.session.delete(record)
        db.session.commit()

        assert BackupArtifact.query.count() == 0

    def test_artifact_repr(self, db):
        record = BackupRun(status='success')
        artifact = BackupArtifact(run=record, name='a.json', format='json', location='/backups/a.json')
        db.session.add_all([record, artifact])
        db.session.commit()

        assert repr(artifact) == '<BackupArtifact a.json deleted=False>'
