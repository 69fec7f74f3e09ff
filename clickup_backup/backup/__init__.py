"""
Backup module for ClickUp Backup.

This module handles the core backup functionality including:
- ClickUp API access
- Hierarchical fetch and snapshot assembly
- Rendering (json, markdown, docx, Google Docs)
- Storage (local, S3 and Google Drive)
- Execution orchestration
- Retention policy enforcement
"""

from .client import ClickUpClient, FetchError
from .fetcher import HierarchicalFetcher, FatalEnumerationError
from .assembler import assemble
from .snapshot import Snapshot, SnapshotError
from .renderers import create_renderers, parse_snapshot, RenderError
from .storage import LocalStorage, S3Storage, GoogleDriveStorage, StorageError
from .retention import RetentionManager
from .executor import BackupOrchestrator, run_backup

__all__ = [
    'ClickUpClient',
    'FetchError',
    'HierarchicalFetcher',
    'FatalEnumerationError',
    'assemble',
    'Snapshot',
    'SnapshotError',
    'create_renderers',
    'parse_snapshot',
    'RenderError',
    'LocalStorage',
    'S3Storage',
    'GoogleDriveStorage',
    'StorageError',
    'RetentionManager',
    'BackupOrchestrator',
    'run_backup'
]
