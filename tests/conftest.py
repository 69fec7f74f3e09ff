"""
Shared pytest fixtures for ClickUp Backup tests.

This module provides fixtures for:
- Flask app and test client
- Database setup with in-memory SQLite
- Raw ClickUp records and an in-memory ClickUp client
- Assembled snapshots
- Artifact stores (local directory, mocked S3)
"""

from unittest.mock import MagicMock, patch

import pytest
import boto3
from moto import mock_aws

from clickup_backup import create_app, db as _db
from clickup_backup.backup.assembler import assemble
from clickup_backup.backup.storage import LocalStorage
from tests.records import (
    CAPTURED_AT,
    FakeClickUp,
    make_folder,
    make_list,
    make_space,
    make_sprint,
    make_task
)


@pytest.fixture(scope='function')
def app(tmp_path):
    """
    Create Flask app with test configuration.

    Uses in-memory SQLite database for fast, isolated tests.
    """
    app = create_app('testing')

    app.config.update({
        'LOCAL_BACKUP_DIR': str(tmp_path / 'backups'),
    })

    yield app


@pytest.fixture(scope='function')
def db(app):
    """
    Create database with all tables.

    Each test gets a fresh database.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Flask test client for making HTTP requests."""
    return app.test_client()


@pytest.fixture
def fake_clickup():
    """
    ClickUp client with one space 'Eng/Ops' (S1), one folder, one list L1
    holding two tasks, and one sprint.
    """
    return FakeClickUp(
        spaces=[make_space()],
        folders={'S1': [make_folder()]},
        lists={'S1': [make_list(folder={'id': 'F1', 'name': 'Backend'})]},
        sprints={'S1': [make_sprint()]},
        tasks={'L1': [
            make_task('T1', 'Fix bug', '2024-01-01'),
            make_task('T2', 'Write docs', '2024-01-02'),
        ]},
        sprint_details={'SP1': {
            'goal': 'Ship v2', 'points': 21, 'completed_points': 13,
            'total_tasks': 2, 'completed_tasks': 1,
        }},
        sprint_tasks={'SP1': [make_task('T1', 'Fix bug', '2024-01-01')]},
    )


@pytest.fixture
def sample_snapshot():
    """Snapshot with folders, lists, an enriched sprint and tasks."""
    return assemble(
        workspace=make_space(),
        folders=[make_folder()],
        lists=[
            make_list(folder={'id': 'F1', 'name': 'Backend'}),
            make_list('L2', 'Ideas'),
        ],
        sprints=[make_sprint(backup_enrichment={
            'details': {'goal': 'Ship v2', 'points': 21, 'completed_points': 13,
                        'total_tasks': 2, 'completed_tasks': 1},
            'tasks': [make_task('T1', 'Fix bug', '2024-01-01')],
        })],
        task_index={
            'L1': [
                make_task('T2', 'Write docs', '1704153600000',
                          assignees=[{'id': 1, 'username': 'alice'}, {'id': 2, 'username': 'bob'}],
                          priority={'priority': 'high', 'color': '#f00'},
                          due_date='1706745600000'),
                make_task('T1', 'Fix bug', '1704067200000'),
            ],
            'L2': [],
        },
        captured_at=CAPTURED_AT,
    )


@pytest.fixture
def empty_snapshot():
    """Snapshot of a space without folders, lists or sprints."""
    return assemble(make_space('S9', 'Empty'), [], [], [], {}, CAPTURED_AT)


@pytest.fixture
def local_store(tmp_path):
    return LocalStorage(str(tmp_path / 'artifacts'))


@pytest.fixture
def mock_s3():
    """
    Mock AWS S3 service using moto.

    Creates a test bucket 'test-bucket' in us-east-1 region.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='test-bucket')
        yield s3


@pytest.fixture(scope='function')
def mock_scheduler():
    """
    Mock APScheduler for testing scheduler functionality.
    """
    with patch('clickup_backup.scheduler.BackgroundScheduler') as mock_sched, \
            patch('clickup_backup.scheduler.SQLAlchemyJobStore'):
        scheduler_instance = MagicMock()
        mock_sched.return_value = scheduler_instance

        scheduler_instance.running = False
        scheduler_instance.state = 0
        scheduler_instance.get_jobs.return_value = []

        yield scheduler_instance
