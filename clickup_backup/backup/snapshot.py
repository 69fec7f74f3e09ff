"""
Snapshot data model.

A Snapshot is the assembled, immutable capture of one ClickUp space at one
point in time. Every entity keeps the raw API record it was built from; the
typed attributes are derived from that record and exist for rendering only.
Serialising a Snapshot therefore writes the raw records back out, which keeps
the plain-structured artifact lossless.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


class SnapshotError(ValueError):
    """Raised when fetched data violates a snapshot integrity rule."""
    pass


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a ClickUp timestamp into an aware UTC datetime.

    ClickUp sends epoch milliseconds as strings; ISO dates and datetimes are
    accepted too. Naive values are taken as UTC.

    Args:
        value: Raw value from an API record

    Returns:
        Aware datetime, or None if the value is empty or unparseable
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) or str(value).isdigit():
        try:
            return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            # Epoch outside the platform's datetime range
            return None
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_iso_timestamp(value: datetime) -> str:
    """Format an aware datetime the way JavaScript's toISOString() does."""
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _label(value: Any) -> Optional[str]:
    # status/priority come either as plain strings or as {"status": "..."} objects
    if isinstance(value, dict):
        value = value.get('status', value.get('priority'))
    if value is None or value == '':
        return None
    return str(value)


@dataclass(frozen=True)
class Workspace:
    """A ClickUp space."""

    id: str
    name: str
    color: Optional[str]
    private: bool
    archived: bool
    multiple_assignees: bool
    features: Dict[str, Any]
    statuses: Tuple[Any, ...]
    raw: Dict[str, Any] = field(repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Workspace':
        return cls(
            id=str(data['id']),
            name=data.get('name') or '',
            color=data.get('color'),
            private=bool(data.get('private')),
            archived=bool(data.get('archived')),
            multiple_assignees=bool(data.get('multiple_assignees')),
            features=dict(data.get('features') or {}),
            statuses=tuple(data.get('statuses') or ()),
            raw=dict(data),
        )


@dataclass(frozen=True)
class Folder:
    id: str
    name: str
    private: bool
    archived: bool
    status: Optional[str]
    order_index: Any
    raw: Dict[str, Any] = field(repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Folder':
        return cls(
            id=str(data['id']),
            name=data.get('name') or '',
            private=bool(data.get('private')),
            archived=bool(data.get('archived')),
            status=_label(data.get('status')),
            order_index=data.get('orderindex'),
            raw=dict(data),
        )


@dataclass(frozen=True)
class FolderRef:
    """Weak back-reference from a list to the folder that contains it."""

    id: str
    name: Optional[str]
    hidden: bool = False


@dataclass(frozen=True)
class TaskList:
    id: str
    name: str
    private: bool
    archived: bool
    status: Optional[str]
    order_index: Any
    folder: Optional[FolderRef]
    raw: Dict[str, Any] = field(repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TaskList':
        folder = data.get('folder')
        folder_ref = None
        if isinstance(folder, dict) and folder.get('id') is not None:
            folder_ref = FolderRef(
                id=str(folder['id']),
                name=folder.get('name'),
                hidden=bool(folder.get('hidden')),
            )

        return cls(
            id=str(data['id']),
            name=data.get('name') or '',
            private=bool(data.get('private')),
            archived=bool(data.get('archived')),
            status=_label(data.get('status')),
            order_index=data.get('orderindex'),
            folder=folder_ref,
            raw=dict(data),
        )


@dataclass(frozen=True)
class Task:
    """A task record. created_date is mandatory: renderers order by it."""

    id: str
    name: str
    status: Optional[str]
    priority: Optional[str]
    assignees: Tuple[str, ...]
    due_date: Optional[datetime]
    created_date: datetime
    raw: Dict[str, Any] = field(repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Task':
        """
        Build a Task from an API record.

        Raises:
            SnapshotError: If the record has no parseable date_created
        """
        created = parse_timestamp(data.get('date_created'))
        if created is None:
            raise SnapshotError(
                f"Task {data.get('id', '?')} has no valid date_created "
                f"({data.get('date_created')!r})"
            )

        assignees = tuple(
            str(a.get('username') or a.get('email') or a.get('id'))
            if isinstance(a, dict) else str(a)
            for a in data.get('assignees') or ()
        )

        return cls(
            id=str(data['id']),
            name=data.get('name') or '',
            status=_label(data.get('status')),
            priority=_label(data.get('priority')),
            assignees=assignees,
            due_date=parse_timestamp(data.get('due_date')),
            created_date=created,
            raw=dict(data),
        )


@dataclass(frozen=True)
class SprintDetail:
    goal: Optional[str]
    points: Any
    completed_points: Any
    total_tasks: Any
    completed_tasks: Any
    raw: Dict[str, Any] = field(repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'SprintDetail':
        return cls(
            goal=data.get('goal'),
            points=data.get('points'),
            completed_points=data.get('completed_points'),
            total_tasks=data.get('total_tasks'),
            completed_tasks=data.get('completed_tasks'),
            raw=dict(data),
        )


# Enriched sprint records carry {'details': <record or None>, 'tasks': [...]}
# under this key; the sprint's own API fields are left untouched.
SPRINT_ENRICHMENT_KEY = 'backup_enrichment'


@dataclass(frozen=True)
class Sprint:
    """
    A sprint, optionally enriched.

    detail and tasks stay None unless enrichment was requested. An enriched
    sprint whose detail fetch failed has detail None but tasks set.
    """

    id: str
    name: str
    status: Optional[str]
    start_date: Optional[datetime]
    end_date: Optional[datetime]
    created_date: Optional[datetime]
    detail: Optional[SprintDetail]
    tasks: Optional[Tuple[Task, ...]]
    raw: Dict[str, Any] = field(repr=False)

    @property
    def is_enriched(self) -> bool:
        return self.tasks is not None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Sprint':
        raw = dict(data)
        enrichment = raw.pop(SPRINT_ENRICHMENT_KEY, None)

        detail = tasks = None
        if isinstance(enrichment, dict):
            detail_data = enrichment.get('details')
            detail = SprintDetail.from_api(detail_data) if detail_data else None
            tasks = tuple(Task.from_api(t) for t in enrichment.get('tasks') or ())

        return cls(
            id=str(raw['id']),
            name=raw.get('name') or '',
            status=_label(raw.get('status')),
            start_date=parse_timestamp(raw.get('start_date')),
            end_date=parse_timestamp(raw.get('end_date')),
            created_date=parse_timestamp(raw.get('date_created')),
            detail=detail,
            tasks=tasks,
            raw=raw,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.raw)
        if self.is_enriched:
            data[SPRINT_ENRICHMENT_KEY] = {
                'details': dict(self.detail.raw) if self.detail else None,
                'tasks': [dict(t.raw) for t in self.tasks],
            }
        return data


@dataclass(frozen=True)
class Snapshot:
    """
    Point-in-time capture of one workspace.

    task_index maps list id to that list's tasks. Its keys follow the order
    of the list sequence.
    """

    captured_at: datetime
    workspace: Workspace
    folders: Tuple[Folder, ...]
    lists: Tuple[TaskList, ...]
    sprints: Tuple[Sprint, ...]
    task_index: Dict[str, Tuple[Task, ...]]

    @property
    def total_tasks(self) -> int:
        return sum(len(tasks) for tasks in self.task_index.values())

    def find_list(self, list_id: str) -> Optional[TaskList]:
        return next((item for item in self.lists if item.id == list_id), None)

    def find_folder(self, folder_id: str) -> Optional[Folder]:
        return next((item for item in self.folders if item.id == folder_id), None)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialise to the persisted plain-structured shape.

        Returns:
            Dict with 'timestamp', 'workspace', 'folders', 'lists', 'sprints'
            and 'tasks' (keyed by list id)
        """
        return {
            'timestamp': format_iso_timestamp(self.captured_at),
            'workspace': dict(self.workspace.raw),
            'folders': [dict(f.raw) for f in self.folders],
            'lists': [dict(item.raw) for item in self.lists],
            'sprints': [s.to_dict() for s in self.sprints],
            'tasks': {
                list_id: [dict(t.raw) for t in tasks]
                for list_id, tasks in self.task_index.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Snapshot':
        """
        Rebuild a Snapshot from its persisted shape.

        Raises:
            SnapshotError: If required keys are missing or a task is invalid
        """
        try:
            captured_at = parse_timestamp(data['timestamp'])
            workspace_data = data['workspace']
        except (KeyError, TypeError) as e:
            raise SnapshotError(f"Malformed snapshot document: missing {e}")

        if captured_at is None:
            raise SnapshotError(f"Invalid snapshot timestamp: {data['timestamp']!r}")

        return cls(
            captured_at=captured_at,
            workspace=Workspace.from_api(workspace_data),
            folders=tuple(Folder.from_api(f) for f in data.get('folders') or ()),
            lists=tuple(TaskList.from_api(item) for item in data.get('lists') or ()),
            sprints=tuple(Sprint.from_api(s) for s in data.get('sprints') or ()),
            task_index={
                str(list_id): tuple(Task.from_api(t) for t in tasks or ())
                for list_id, tasks in (data.get('tasks') or {}).items()
            },
        )
