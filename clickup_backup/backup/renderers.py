"""
Format renderers for snapshots.

Supports:
- json: Plain structured document, lossless (source of truth)
- markdown: Human-readable sectioned report
- docx: Word document with headings and styled paragraphs
- gdoc: The markdown report, converted to a Google Doc by the Drive store

The narrative formats share build_report(), which walks the snapshot once
and yields format-neutral blocks. Each renderer only maps blocks to output.
"""

import io
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from docx import Document
from docx.shared import Pt

from .snapshot import Snapshot, SnapshotError, Task

NOT_AVAILABLE = 'N/A'
FOOTER_TEXT = 'This backup was generated automatically by the ClickUp Backup Agent.'


class RenderError(Exception):
    """Raised when a snapshot cannot be rendered."""
    pass


@dataclass(frozen=True)
class ArtifactFormat:
    """
    Describes the artifact a renderer produces.

    document_mime_type asks a store that supports conversion (Google Drive)
    to import the upload as that document type.
    """

    name: str
    extension: str
    media_type: str
    document_mime_type: Optional[str] = None


# Report blocks

@dataclass(frozen=True)
class Heading:
    level: int  # 0 = document title
    text: str


@dataclass(frozen=True)
class Field:
    label: str
    value: str
    indent: int = 0


@dataclass(frozen=True)
class Item:
    text: str


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Rule:
    pass


def _yes_no(value: bool) -> str:
    return 'Yes' if value else 'No'


def _or_na(value: Any) -> str:
    if value is None or value == '':
        return NOT_AVAILABLE
    return str(value)


def format_date(value: Optional[datetime], default: str = NOT_AVAILABLE) -> str:
    """Locale date in the local timezone."""
    if value is None:
        return default
    return value.astimezone().strftime('%x')


def format_datetime(value: datetime) -> str:
    """Locale date and time in the local timezone."""
    return value.astimezone().strftime('%x %X')


def _feature_state(value: Any) -> str:
    if isinstance(value, dict) and 'enabled' in value:
        return 'Enabled' if value['enabled'] else 'Disabled'
    if isinstance(value, bool):
        return 'Enabled' if value else 'Disabled'
    return json.dumps(value, sort_keys=True)


def _task_blocks(tasks: Iterable[Task]) -> Iterator[Any]:
    for task in sorted(tasks, key=lambda t: t.created_date):
        yield Item(task.name)
        yield Field('ID', task.id, indent=1)
        yield Field('Status', _or_na(task.status), indent=1)
        yield Field('Priority', _or_na(task.priority), indent=1)
        yield Field('Assignees', ', '.join(task.assignees) or 'None', indent=1)
        yield Field('Due Date', format_date(task.due_date, 'No due date'), indent=1)
        yield Field('Created', format_date(task.created_date), indent=1)


def build_report(snapshot: Snapshot) -> List[Any]:
    """
    Walk a snapshot in report order and return its blocks.

    Order: title block, space attributes and features, folders, lists,
    sprints, tasks by list, statistics.
    """
    ws = snapshot.workspace
    blocks: List[Any] = [
        Heading(0, 'ClickUp Backup Report'),
        Field('Backup Date', format_datetime(snapshot.captured_at)),
        Field('Space', ws.name),
        Field('Space ID', ws.id),
        Rule(),
        Heading(1, 'Space Information'),
        Field('Name', ws.name),
        Field('Color', _or_na(ws.color)),
        Field('Private', _yes_no(ws.private)),
        Field('Archived', _yes_no(ws.archived)),
        Field('Multiple Assignees', _yes_no(ws.multiple_assignees)),
        Heading(2, 'Features'),
    ]
    blocks.extend(Field(name, _feature_state(state)) for name, state in ws.features.items())

    blocks += [Rule(), Heading(1, f'Folders ({len(snapshot.folders)})')]
    for folder in snapshot.folders:
        blocks += [
            Heading(2, folder.name),
            Field('ID', folder.id),
            Field('Private', _yes_no(folder.private)),
            Field('Archived', _yes_no(folder.archived)),
            Field('Status', _or_na(folder.status)),
            Field('Order Index', _or_na(folder.order_index)),
        ]

    blocks += [Rule(), Heading(1, f'Lists ({len(snapshot.lists)})')]
    for task_list in snapshot.lists:
        ref = task_list.folder
        folder = snapshot.find_folder(ref.id) if ref else None
        if folder is not None:
            folder_name = folder.name
        elif ref is not None and ref.hidden:
            folder_name = _or_na(ref.name)
        else:
            folder_name = NOT_AVAILABLE

        blocks += [
            Heading(2, task_list.name),
            Field('ID', task_list.id),
            Field('Private', _yes_no(task_list.private)),
            Field('Archived', _yes_no(task_list.archived)),
            Field('Status', _or_na(task_list.status)),
            Field('Order Index', _or_na(task_list.order_index)),
            Field('Folder ID', ref.id if ref else NOT_AVAILABLE),
            Field('Folder Name', folder_name),
        ]

    blocks += [Rule(), Heading(1, f'Sprints ({len(snapshot.sprints)})')]
    for sprint in snapshot.sprints:
        blocks += [
            Heading(2, sprint.name),
            Field('ID', sprint.id),
            Field('Status', _or_na(sprint.status)),
            Field('Start Date', format_date(sprint.start_date)),
            Field('End Date', format_date(sprint.end_date)),
            Field('Created', format_date(sprint.created_date)),
        ]
        if sprint.detail is not None:
            detail = sprint.detail
            blocks += [
                Heading(3, 'Sprint Details'),
                Field('Goal', _or_na(detail.goal)),
                Field('Points', _or_na(detail.points)),
                Field('Completed Points', _or_na(detail.completed_points)),
                Field('Total Tasks', _or_na(detail.total_tasks)),
                Field('Completed Tasks', _or_na(detail.completed_tasks)),
            ]
        if sprint.tasks is not None:
            blocks.append(Heading(3, f'Sprint Tasks ({len(sprint.tasks)})'))
            blocks.extend(_task_blocks(sprint.tasks))

    blocks += [Rule(), Heading(1, 'Tasks Summary')]
    for list_id, tasks in snapshot.task_index.items():
        task_list = snapshot.find_list(list_id)
        title = task_list.name if task_list else f'List {list_id}'
        blocks.append(Heading(2, f'{title} ({len(tasks)} tasks)'))
        blocks.extend(_task_blocks(tasks))

    blocks += [
        Rule(),
        Heading(1, 'Backup Statistics'),
        Field('Total Folders', str(len(snapshot.folders))),
        Field('Total Lists', str(len(snapshot.lists))),
        Field('Total Sprints', str(len(snapshot.sprints))),
        Field('Total Tasks', str(snapshot.total_tasks)),
        Field('Backup Generated', format_datetime(snapshot.captured_at)),
        Rule(),
        Text(FOOTER_TEXT),
    ]
    return blocks


class FormatRenderer:
    """Base class: render(snapshot) -> bytes."""

    format: ArtifactFormat

    def render(self, snapshot: Snapshot) -> bytes:
        """
        Render a snapshot.

        Raises:
            RenderError: If rendering fails for any reason
        """
        try:
            return self._render(snapshot)
        except RenderError:
            raise
        except Exception as e:
            raise RenderError(
                f"{self.format.name} rendering failed for space "
                f"'{snapshot.workspace.name}': {e}"
            ) from e

    def _render(self, snapshot: Snapshot) -> bytes:
        raise NotImplementedError


class JsonRenderer(FormatRenderer):
    format = ArtifactFormat('json', 'json', 'application/json')

    def _render(self, snapshot: Snapshot) -> bytes:
        return json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False).encode('utf-8')


def parse_snapshot(data: bytes) -> Snapshot:
    """
    Parse a json artifact back into a Snapshot.

    Raises:
        SnapshotError: If the document is not a valid snapshot
    """
    try:
        document = json.loads(data.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Invalid snapshot document: {e}")
    if not isinstance(document, dict):
        raise SnapshotError("Invalid snapshot document: top level is not an object")
    return Snapshot.from_dict(document)


class MarkdownRenderer(FormatRenderer):
    format = ArtifactFormat('markdown', 'md', 'text/markdown')

    def _render(self, snapshot: Snapshot) -> bytes:
        lines: List[str] = []
        for block in build_report(snapshot):
            if isinstance(block, Heading):
                if lines and lines[-1] != '':
                    lines.append('')
                lines += ['#' * (block.level + 1) + ' ' + block.text, '']
            elif isinstance(block, Field):
                lines.append('  ' * block.indent + f'- {block.label}: {block.value}')
            elif isinstance(block, Item):
                lines.append(f'- **{block.text}**')
            elif isinstance(block, Text):
                lines += ['', f'*{block.text}*']
            elif isinstance(block, Rule):
                lines += ['', '---']
        return ('\n'.join(lines) + '\n').encode('utf-8')


class GoogleDocRenderer(MarkdownRenderer):
    """Markdown report uploaded as plain text and imported as a Google Doc."""

    format = ArtifactFormat(
        'gdoc', 'gdoc', 'text/plain',
        document_mime_type='application/vnd.google-apps.document'
    )


class DocxRenderer(FormatRenderer):
    format = ArtifactFormat(
        'docx', 'docx',
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document'
    )

    def _render(self, snapshot: Snapshot) -> bytes:
        doc = Document()
        doc.core_properties.title = f'ClickUp Backup - {snapshot.workspace.name}'
        doc.core_properties.created = snapshot.captured_at.replace(tzinfo=None)

        for block in build_report(snapshot):
            if isinstance(block, Heading):
                doc.add_heading(block.text, level=block.level)
            elif isinstance(block, Field):
                paragraph = doc.add_paragraph()
                paragraph.paragraph_format.left_indent = Pt(18 * block.indent)
                paragraph.paragraph_format.space_after = Pt(2)
                paragraph.add_run(f'{block.label}: ').bold = True
                paragraph.add_run(block.value)
            elif isinstance(block, Item):
                paragraph = doc.add_paragraph(style='List Bullet')
                paragraph.add_run(block.text).bold = True
            elif isinstance(block, Text):
                doc.add_paragraph().add_run(block.text).italic = True
            # Rules have no docx counterpart; headings separate the sections

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()


RENDERERS = {
    'json': JsonRenderer,
    'markdown': MarkdownRenderer,
    'docx': DocxRenderer,
    'gdoc': GoogleDocRenderer,
}


def create_renderers(format_names: Iterable[str]) -> Tuple[FormatRenderer, ...]:
    """
    Build renderers for the configured formats.

    The json renderer always comes first, whether or not it was requested.

    Args:
        format_names: Names from RENDERERS, e.g. ['markdown', 'docx']

    Returns:
        Tuple of renderer instances, json first, without duplicates

    Raises:
        ValueError: If a format name is unknown
    """
    names = ['json']
    for name in format_names:
        name = name.strip().lower()
        if not name:
            continue
        if name not in RENDERERS:
            raise ValueError(
                f"Invalid backup format: {name}. "
                f"Valid options: {list(RENDERERS.keys())}"
            )
        if name not in names:
            names.append(name)
    return tuple(RENDERERS[name]() for name in names)
