"""
Snapshot assembly - normalizes fetched records into a Snapshot.

Pure: no I/O beyond logging.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from .snapshot import Folder, Snapshot, Sprint, Task, TaskList, Workspace

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def assemble(
    workspace: Record,
    folders: List[Record],
    lists: List[Record],
    sprints: List[Record],
    task_index: Mapping[str, List[Record]],
    captured_at: datetime
) -> Snapshot:
    """
    Build an immutable Snapshot from raw API records.

    Args:
        workspace: Space record
        folders: Folder records of the space
        lists: List records of the space
        sprints: Sprint records, optionally carrying SPRINT_ENRICHMENT_KEY
        task_index: Task records keyed by list ID
        captured_at: Capture time; truncated to milliseconds

    Returns:
        Assembled Snapshot

    Raises:
        SnapshotError: If a task record has no valid creation date
    """
    if captured_at.tzinfo is None:
        captured_at = captured_at.replace(tzinfo=timezone.utc)
    captured_at = captured_at.astimezone(timezone.utc)
    captured_at = captured_at.replace(microsecond=captured_at.microsecond // 1000 * 1000)

    snapshot = Snapshot(
        captured_at=captured_at,
        workspace=Workspace.from_api(workspace),
        folders=tuple(Folder.from_api(f) for f in folders),
        lists=tuple(TaskList.from_api(item) for item in lists),
        sprints=tuple(Sprint.from_api(s) for s in sprints),
        task_index={
            str(list_id): tuple(Task.from_api(t) for t in tasks)
            for list_id, tasks in task_index.items()
        },
    )

    _check_folder_references(snapshot)
    return snapshot


def _check_folder_references(snapshot: Snapshot):
    folder_ids = {folder.id for folder in snapshot.folders}

    for task_list in snapshot.lists:
        ref = task_list.folder
        # Folderless lists point at a hidden placeholder folder
        if ref is None or ref.hidden:
            continue
        if ref.id not in folder_ids:
            logger.warning(
                f"List '{task_list.name}' ({task_list.id}) references folder "
                f"{ref.id} which is not part of space '{snapshot.workspace.name}'"
            )
