"""
Unit tests for HTTP routes (clickup_backup/routes/runs_routes.py and /health).
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from clickup_backup.models import BackupArtifact, BackupRun


def _add_run(db, status='success', minutes_ago=0, **kwargs):
    record = BackupRun(
        status=status,
        trigger=kwargs.pop('trigger', 'scheduled'),
        started_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        **kwargs
    )
    db.session.add(record)
    db.session.commit()
    return record


class TestHealth:
    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json() == {'status': 'healthy'}


class TestListRuns:
    """Test GET /api/runs/."""

    def test_empty(self, client, db):
        response = client.get('/api/runs/')

        assert response.status_code == 200
        data = response.get_json()
        assert data['records'] == []
        assert data['total'] == 0

    def test_newest_first(self, client, db):
        _add_run(db, minutes_ago=60, trigger='scheduled')
        _add_run(db, minutes_ago=5, trigger='manual')

        data = client.get('/api/runs/').get_json()

        assert [r['trigger'] for r in data['records']] == ['manual', 'scheduled']
        assert data['total'] == 2

    def test_status_filter(self, client, db):
        _add_run(db, status='success')
        _add_run(db, status='failed', error_message='Failed to fetch spaces: 401')

        data = client.get('/api/runs/?status=failed').get_json()

        assert data['total'] == 1
        assert data['records'][0]['error_message'] == 'Failed to fetch spaces: 401'

    def test_invalid_status_filter(self, client, db):
        response = client.get('/api/runs/?status=bogus')

        assert response.status_code == 400

    def test_pagination(self, client, db):
        for minutes in range(5):
            _add_run(db, minutes_ago=minutes)

        data = client.get('/api/runs/?limit=2&offset=1').get_json()

        assert len(data['records']) == 2
        assert data['total'] == 5
        assert data['limit'] == 2
        assert data['offset'] == 1

    def test_limit_is_capped(self, client, db):
        data = client.get('/api/runs/?limit=5000').get_json()

        assert data['limit'] == 200


class TestGetRun:
    """Test GET /api/runs/<id>."""

    def test_run_with_artifacts(self, client, db):
        record = _add_run(db, artifacts_written=1, logs='[..] INFO Starting ClickUp backup')
        db.session.add(BackupArtifact(
            run=record,
            name='clickup-backup-Eng_Ops-2024-01-15T10-30-00-123Z.json',
            format='json',
            location='/data/backups/clickup-backup-Eng_Ops-2024-01-15T10-30-00-123Z.json',
            size_bytes=2048
        ))
        db.session.commit()

        response = client.get(f'/api/runs/{record.id}')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'success'
        assert data['artifacts_written'] == 1
        assert data['artifacts'][0]['format'] == 'json'
        assert data['artifacts'][0]['size_bytes'] == 2048
        assert data['artifacts'][0]['deleted_at'] is None
        assert 'Starting ClickUp backup' in data['logs']

    def test_unknown_run(self, client, db):
        assert client.get('/api/runs/9999').status_code == 404


class TestTriggerRun:
    """Test POST /api/runs/trigger."""

    @patch('clickup_backup.routes.runs_routes.trigger_backup_now')
    def test_trigger(self, mock_trigger, client):
        mock_trigger.return_value = 'manual_1704067200'

        response = client.post('/api/runs/trigger')

        assert response.status_code == 202
        assert response.get_json()['job_id'] == 'manual_1704067200'

    def test_trigger_without_scheduler(self, client):
        """Test the testing config runs without a scheduler."""
        response = client.post('/api/runs/trigger')

        assert response.status_code == 503
        assert 'not initialized' in response.get_json()['error']


class TestSchedule:
    def test_schedule_stopped(self, client):
        data = client.get('/api/runs/schedule').get_json()

        assert data == {'scheduler_status': 'stopped', 'jobs': []}

    @patch('clickup_backup.routes.runs_routes.get_scheduled_jobs')
    @patch('clickup_backup.routes.runs_routes.is_scheduler_running')
    def test_schedule_running(self, mock_running, mock_jobs, client):
        mock_running.return_value = True
        mock_jobs.return_value = [{'id': 'clickup_backup', 'name': 'Scheduled ClickUp Backup',
                                   'next_run': '2024-01-16T02:00:00+00:00', 'trigger': 'cron'}]

        data = client.get('/api/runs/schedule').get_json()

        assert data['scheduler_status'] == 'running'
        assert data['jobs'][0]['id'] == 'clickup_backup'
