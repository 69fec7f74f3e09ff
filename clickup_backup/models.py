from datetime import datetime, timezone
from clickup_backup import db


def utcnow():
    return datetime.now(timezone.utc)


class BackupRun(db.Model):
    """One backup run: every workspace, every format, then retention"""
    __tablename__ = 'backup_runs'

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(20), nullable=False)  # running, success, failed
    trigger = db.Column(db.String(20), default='scheduled', nullable=False)  # scheduled, manual, cli
    started_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    completed_at = db.Column(db.DateTime)
    workspaces_total = db.Column(db.Integer, default=0, nullable=False)
    workspaces_completed = db.Column(db.Integer, default=0, nullable=False)
    artifacts_written = db.Column(db.Integer, default=0, nullable=False)
    artifacts_deleted = db.Column(db.Integer, default=0, nullable=False)
    error_message = db.Column(db.Text)
    logs = db.Column(db.Text)  # Captured log lines of the run

    # Relationship
    artifacts = db.relationship('BackupArtifact', back_populates='run', cascade='all, delete-orphan', lazy='dynamic')

    def __repr__(self):
        return f'<BackupRun {self.id} status={self.status}>'


class BackupArtifact(db.Model):
    """An artifact written by a run"""
    __tablename__ = 'backup_artifacts'

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.Integer, db.ForeignKey('backup_runs.id'), nullable=False)
    name = db.Column(db.String(500), nullable=False, index=True)
    format = db.Column(db.String(20), nullable=False)
    location = db.Column(db.String(1000), nullable=False)
    size_bytes = db.Column(db.BigInteger)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    deleted_at = db.Column(db.DateTime)  # Set when retention removes the artifact

    # Relationship
    run = db.relationship('BackupRun', back_populates='artifacts')

    def __repr__(self):
        return f'<BackupArtifact {self.name} deleted={self.deleted_at is not None}>'
