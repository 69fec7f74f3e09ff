"""
Backup run routes - Run history, schedule and manual triggers.
"""

from flask import Blueprint, jsonify, request

from clickup_backup import db
from clickup_backup.models import BackupRun
from clickup_backup.scheduler import get_scheduled_jobs, is_scheduler_running, trigger_backup_now


bp = Blueprint('runs', __name__, url_prefix='/api/runs')

RUN_STATUSES = ('running', 'success', 'failed')


def _iso(value):
    return value.isoformat() if value else None


def _run_summary(record):
    return {
        'id': record.id,
        'status': record.status,
        'trigger': record.trigger,
        'started_at': _iso(record.started_at),
        'completed_at': _iso(record.completed_at),
        'workspaces_total': record.workspaces_total,
        'workspaces_completed': record.workspaces_completed,
        'artifacts_written': record.artifacts_written,
        'artifacts_deleted': record.artifacts_deleted,
        'error_message': record.error_message
    }


@bp.route('/', methods=['GET'])
def list_runs():
    """
    Get backup runs, newest first.

    Query params:
        - status: Filter by status (running/success/failed)
        - limit: Max number of records (default: 50, max: 200)
        - offset: Number of records to skip (default: 0)

    Returns:
        JSON with run records and pagination metadata
    """
    status_filter = request.args.get('status')
    limit = min(request.args.get('limit', 50, type=int), 200)
    offset = max(request.args.get('offset', 0, type=int), 0)

    query = BackupRun.query

    if status_filter:
        if status_filter not in RUN_STATUSES:
            return jsonify({'error': 'Invalid status filter'}), 400
        query = query.filter(BackupRun.status == status_filter)

    total_count = query.count()
    records = query.order_by(BackupRun.started_at.desc(), BackupRun.id.desc()).limit(limit).offset(offset).all()

    return jsonify({
        'records': [_run_summary(record) for record in records],
        'total': total_count,
        'limit': limit,
        'offset': offset
    })


@bp.route('/<int:run_id>', methods=['GET'])
def get_run(run_id):
    """
    Get one run with its artifacts and captured logs.

    Args:
        run_id: BackupRun ID
    """
    record = db.get_or_404(BackupRun, run_id)

    data = _run_summary(record)
    data['artifacts'] = [
        {
            'name': artifact.name,
            'format': artifact.format,
            'location': artifact.location,
            'size_bytes': artifact.size_bytes,
            'created_at': _iso(artifact.created_at),
            'deleted_at': _iso(artifact.deleted_at)
        }
        for artifact in record.artifacts
    ]
    data['logs'] = record.logs
    return jsonify(data)


@bp.route('/trigger', methods=['POST'])
def trigger_run():
    """Queue an immediate backup run."""
    try:
        job_id = trigger_backup_now()
    except RuntimeError as e:
        return jsonify({'error': str(e)}), 503

    return jsonify({'message': 'Backup queued', 'job_id': job_id}), 202


@bp.route('/schedule', methods=['GET'])
def get_schedule():
    """Get scheduler status and upcoming jobs."""
    return jsonify({
        'scheduler_status': 'running' if is_scheduler_running() else 'stopped',
        'jobs': get_scheduled_jobs()
    })
