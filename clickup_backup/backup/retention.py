"""
Retention policy enforcement for backup artifacts.

One policy for every store: artifacts older than the retention window are
deleted, except the newest artifact of the group, which is always kept so a
series can never be emptied (e.g. after an outage longer than the window).
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List

from .storage import ArtifactRef, StorageError

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


def eviction_set(artifacts: List[ArtifactRef], now: datetime, retention_days: int) -> List[ArtifactRef]:
    """
    Compute which artifacts retention would delete.

    Args:
        artifacts: Artifacts of one group
        now: Reference time (aware)
        retention_days: Retention window in days

    Returns:
        Artifacts created strictly before now - retention_days, minus the
        most recently created artifact of the group, oldest first
    """
    if not artifacts:
        return []

    cutoff = now - timedelta(days=retention_days)
    newest = max(artifacts, key=lambda ref: ref.created_at)

    return sorted(
        (ref for ref in artifacts if ref.created_at < cutoff and ref is not newest),
        key=lambda ref: ref.created_at
    )


class RetentionManager:
    """
    Deletes expired artifacts through an artifact store.

    Deletion is best-effort: a failed delete is logged and the remaining
    candidates are still processed.
    """

    def __init__(self, store):
        """
        Initialize retention manager.

        Args:
            store: Artifact store (LocalStorage, S3Storage or GoogleDriveStorage)
        """
        self.store = store
        self.deleted: List[ArtifactRef] = []
        self.errors: List[str] = []

    def evict(self, artifacts: List[ArtifactRef], now: datetime, retention_days: int) -> int:
        """
        Delete expired artifacts of one group.

        Args:
            artifacts: Artifacts of one group
            now: Reference time (aware)
            retention_days: Retention window in days

        Returns:
            Number of artifacts actually deleted
        """
        deleted_count = 0

        for ref in eviction_set(artifacts, now, retention_days):
            try:
                self.store.delete(ref)
            except StorageError as e:
                error_msg = f"Failed to delete old backup {ref.name}: {e}"
                logger.error(error_msg)
                self.errors.append(error_msg)
                continue

            deleted_count += 1
            self.deleted.append(ref)
            logger.info(f"Deleted old backup: {ref.name}")

        return deleted_count

    def enforce_series(self, prefix: str, now: datetime, retention_days: int) -> int:
        """
        Enforce retention for every artifact of one series.

        The series is split by format (file extension) and each format keeps
        its own newest artifact, so the latest run survives in full.

        Args:
            prefix: Series prefix (see storage.series_prefix)
            now: Reference time (aware)
            retention_days: Retention window in days

        Returns:
            Number of artifacts deleted; 0 if the series cannot be listed
        """
        logger.info(f"Enforcing retention policy for series: {prefix} ({retention_days} days)")

        try:
            artifacts = self.store.list(prefix)
        except StorageError as e:
            error_msg = f"Failed to list backups for series {prefix}: {e}"
            logger.error(error_msg)
            self.errors.append(error_msg)
            return 0

        groups: Dict[str, List[ArtifactRef]] = defaultdict(list)
        for ref in artifacts:
            groups[ref.extension].append(ref)

        return sum(
            self.evict(group, now, retention_days)
            for _, group in sorted(groups.items())
        )
