"""
Backup executor - orchestrates one complete backup run.

Workflow:
1. Enumerate spaces (fatal on failure)
2. For each space, sequentially: fetch, assemble, render every format, store
3. Enforce retention once per series
4. Record the run (status, counters, artifacts, logs) in BackupRun

A render or store failure aborts the rest of the run. Nothing is resumed
and partially written artifacts are left in place.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .client import ClickUpClient, API_BASE
from .fetcher import HierarchicalFetcher, list_spaces, utc_now
from .renderers import FormatRenderer, create_renderers
from .retention import DEFAULT_RETENTION_DAYS, RetentionManager
from .storage import ArtifactRef, artifact_name, create_storage, series_prefix

logger = logging.getLogger(__name__)

DEFAULT_SERIES_PREFIX = 'clickup-backup'
PACKAGE_LOGGER = 'clickup_backup'


class BackupOrchestrator:
    """
    Drives one run over every space of the team.
    """

    def __init__(
        self,
        client,
        store,
        renderers: Sequence[FormatRenderer],
        retention_days: int = DEFAULT_RETENTION_DAYS,
        prefix: str = DEFAULT_SERIES_PREFIX,
        enrich_sprints: bool = False,
        workers: int = 1,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize orchestrator.

        Args:
            client: WorkspaceClient implementation
            store: Artifact store
            renderers: Renderers to run per space, json first
            retention_days: Retention window in days
            prefix: Artifact series prefix
            enrich_sprints: Fetch sprint details and sprint tasks
            workers: Concurrency of per-list/per-sprint fetches (1 = sequential)
            clock: Time source for capture and retention (default: now, UTC)
        """
        self.client = client
        self.store = store
        self.renderers = list(renderers)
        self.retention_days = retention_days
        self.prefix = prefix
        self.clock = clock or utc_now
        self.fetcher = HierarchicalFetcher(client, enrich_sprints=enrich_sprints, workers=workers, clock=self.clock)
        self.retention = RetentionManager(store)

        self.written: List[ArtifactRef] = []
        self.formats: Dict[str, str] = {}  # artifact name -> format name
        self.workspaces_total = 0
        self.workspaces_completed = 0

    @property
    def deleted(self) -> List[ArtifactRef]:
        return self.retention.deleted

    def run(self) -> Dict[str, Any]:
        """
        Execute the run.

        Returns:
            Summary dict:
            {
                'workspaces_total': int,
                'workspaces_completed': int,
                'artifacts_written': int,
                'artifacts_deleted': int
            }

        Raises:
            FatalEnumerationError: If spaces cannot be listed
            SnapshotError: If a space's data fails integrity checks
            RenderError: If a renderer fails
            StorageError: If an artifact cannot be written
        """
        logger.info("Starting ClickUp backup")

        spaces = list_spaces(self.client)
        self.workspaces_total = len(spaces)

        if not spaces:
            logger.warning("No spaces found in ClickUp team")
            return self._summary()

        series = []
        for space in spaces:
            self._backup_space(space)
            self.workspaces_completed += 1
            prefix = series_prefix(self.prefix, space.get('name') or '')
            if prefix not in series:
                series.append(prefix)

        now = self.clock()
        deleted_count = sum(
            self.retention.enforce_series(prefix, now, self.retention_days)
            for prefix in series
        )

        logger.info(
            f"Backup completed successfully. "
            f"Spaces backed up: {self.workspaces_completed}, "
            f"Artifacts written: {len(self.written)}, "
            f"Old backups cleaned: {deleted_count}, "
            f"Retention period: {self.retention_days} days"
        )
        return self._summary()

    def _backup_space(self, space: Dict[str, Any]):
        snapshot = self.fetcher.fetch(space)

        for renderer in self.renderers:
            fmt = renderer.format
            data = renderer.render(snapshot)
            name = artifact_name(self.prefix, snapshot.workspace.name, snapshot.captured_at, fmt.extension)
            ref = self.store.write(name, data, fmt)
            self.written.append(ref)
            self.formats[ref.name] = fmt.name
            logger.info(f"Saved {fmt.name} backup: {ref.name} ({len(data)} bytes)")

    def _summary(self) -> Dict[str, Any]:
        return {
            'workspaces_total': self.workspaces_total,
            'workspaces_completed': self.workspaces_completed,
            'artifacts_written': len(self.written),
            'artifacts_deleted': len(self.deleted),
        }


class RunLogHandler(logging.Handler):
    """Collects formatted log lines of one run for the run record."""

    def __init__(self, level=logging.INFO):
        super().__init__(level)
        self.lines: List[str] = []
        self.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(message)s'))

    def emit(self, record: logging.LogRecord):
        self.lines.append(self.format(record))


def _config_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _config_formats(value: Any) -> List[str]:
    if isinstance(value, str):
        return [part for part in value.split(',') if part.strip()]
    return list(value or [])


def build_orchestrator(config: Mapping[str, Any], clock: Optional[Callable[[], datetime]] = None) -> BackupOrchestrator:
    """
    Wire client, store, renderers and retention from configuration.

    Args:
        config: Flask config (or any mapping with the same keys)
        clock: Optional time source

    Raises:
        ValueError: If the configuration is incomplete or invalid
    """
    client = ClickUpClient(
        api_token=config.get('CLICKUP_API_TOKEN'),
        team_id=config.get('CLICKUP_TEAM_ID'),
        base_url=config.get('CLICKUP_API_URL') or API_BASE,
        timeout=config.get('CLICKUP_TIMEOUT', 30)
    )

    return BackupOrchestrator(
        client=client,
        store=create_storage(config),
        renderers=create_renderers(_config_formats(config.get('BACKUP_FORMATS'))),
        retention_days=int(config.get('BACKUP_RETENTION_DAYS', DEFAULT_RETENTION_DAYS)),
        prefix=config.get('BACKUP_SERIES_PREFIX') or DEFAULT_SERIES_PREFIX,
        enrich_sprints=_config_bool(config.get('BACKUP_ENRICH_SPRINTS', False)),
        workers=int(config.get('BACKUP_FETCH_WORKERS', 1)),
        clock=clock
    )


def run_backup(config: Optional[Mapping[str, Any]] = None, trigger: str = 'scheduled', orchestrator: Optional[BackupOrchestrator] = None):
    """
    Execute one backup run and record it.

    Must be called inside a Flask app context.

    Args:
        config: Configuration mapping (default: current_app.config)
        trigger: What started the run ('scheduled', 'manual', 'cli')
        orchestrator: Pre-built orchestrator (default: build_orchestrator(config))

    Returns:
        BackupRun record with execution results
    """
    from flask import current_app
    from clickup_backup import db
    from clickup_backup.models import BackupArtifact, BackupRun

    if config is None:
        config = current_app.config

    record = BackupRun(status='running', trigger=trigger, started_at=datetime.now(timezone.utc))
    db.session.add(record)
    db.session.commit()

    handler = RunLogHandler()
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.addHandler(handler)
    previous_level = package_logger.level
    if package_logger.getEffectiveLevel() > logging.INFO:
        package_logger.setLevel(logging.INFO)

    try:
        if orchestrator is None:
            orchestrator = build_orchestrator(config)
        orchestrator.run()
        record.status = 'success'

    except Exception as e:
        record.status = 'failed'
        record.error_message = str(e)
        logger.error(f"Backup failed: {e}")

    finally:
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)
        record.completed_at = datetime.now(timezone.utc)

        if orchestrator is not None:
            record.workspaces_total = orchestrator.workspaces_total
            record.workspaces_completed = orchestrator.workspaces_completed
            record.artifacts_written = len(orchestrator.written)
            record.artifacts_deleted = len(orchestrator.deleted)

            for ref in orchestrator.written:
                db.session.add(BackupArtifact(
                    run=record,
                    name=ref.name,
                    format=orchestrator.formats.get(ref.name, ref.extension),
                    location=ref.location,
                    size_bytes=ref.size,
                    created_at=ref.created_at
                ))
            db.session.flush()

            deleted_names = [ref.name for ref in orchestrator.deleted]
            if deleted_names:
                BackupArtifact.query.filter(
                    BackupArtifact.name.in_(deleted_names),
                    BackupArtifact.deleted_at.is_(None)
                ).update({'deleted_at': record.completed_at}, synchronize_session=False)

        record.logs = '\n'.join(handler.lines)
        db.session.commit()

    return record
