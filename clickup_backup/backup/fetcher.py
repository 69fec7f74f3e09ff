"""
Hierarchical fetch of one ClickUp space into a Snapshot.

Workflow:
1. Fetch folders, lists and sprints concurrently (three sibling branches)
2. Fetch tasks of every list
3. Optionally enrich every sprint with its details and tasks
4. Assemble the Snapshot

Only the space enumeration (list_spaces) is fatal. Every branch below a
space degrades to an empty value on FetchError and the run continues.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .assembler import assemble
from .client import FetchError
from .snapshot import SPRINT_ENRICHMENT_KEY, Snapshot

logger = logging.getLogger(__name__)


class FatalEnumerationError(Exception):
    """Raised when the list of spaces cannot be fetched."""
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def list_spaces(client) -> List[Dict[str, Any]]:
    """
    Enumerate the spaces to back up.

    Raises:
        FatalEnumerationError: If the client cannot list spaces
    """
    try:
        return client.list_workspaces()
    except FetchError as e:
        raise FatalEnumerationError(f"Failed to fetch spaces: {e}") from e


class HierarchicalFetcher:
    """
    Fetches one space subtree and assembles it into a Snapshot.

    Task-index policy: every list returned by the list branch gets a key in
    the task index. A list whose task fetch fails is kept with an empty task
    sequence and the failure is logged.
    """

    def __init__(
        self,
        client,
        enrich_sprints: bool = False,
        workers: int = 1,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize fetcher.

        Args:
            client: WorkspaceClient implementation (e.g. ClickUpClient)
            enrich_sprints: Fetch sprint details and sprint tasks
            workers: Concurrency for per-list and per-sprint fetches
                (1 = strictly sequential)
            clock: Returns the capture time (default: now, UTC)
        """
        self.client = client
        self.enrich_sprints = enrich_sprints
        self.workers = max(1, int(workers))
        self.clock = clock or utc_now

    def fetch(self, workspace: Dict[str, Any]) -> Snapshot:
        """
        Fetch a space and assemble its Snapshot.

        Args:
            workspace: Space record from list_spaces()

        Returns:
            Assembled Snapshot

        Raises:
            SnapshotError: If fetched data fails integrity checks
        """
        space_id = str(workspace['id'])
        logger.info(f"Backing up space: {workspace.get('name')} ({space_id})")
        captured_at = self.clock()

        with ThreadPoolExecutor(max_workers=3, thread_name_prefix='branch') as pool:
            folders_future = pool.submit(
                self._fetch_branch, f"folders for space {space_id}",
                self.client.list_folders, space_id, []
            )
            lists_future = pool.submit(
                self._fetch_branch, f"lists for space {space_id}",
                self.client.list_lists, space_id, []
            )
            sprints_future = pool.submit(
                self._fetch_branch, f"sprints for space {space_id}",
                self.client.list_sprints, space_id, []
            )
            folders = folders_future.result()
            lists = lists_future.result()
            sprints = sprints_future.result()

        task_index = self._fetch_list_tasks(lists)

        if self.enrich_sprints and sprints:
            logger.info(f"Processing {len(sprints)} sprints")
            sprints = self._map(self._enrich_sprint, sprints)

        return assemble(workspace, folders, lists, sprints, task_index, captured_at)

    def _fetch_branch(self, description: str, call: Callable, arg: str, default):
        """Run one branch fetch, substituting default on FetchError."""
        try:
            return call(arg)
        except FetchError as e:
            logger.warning(f"Error fetching {description}: {e}")
            return default

    def _fetch_list_tasks(self, lists: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
        def fetch_one(task_list):
            logger.info(f"Processing list: {task_list.get('name')}")
            return self._fetch_branch(
                f"tasks for list {task_list['id']}",
                self.client.list_tasks, str(task_list['id']), []
            )

        results = self._map(fetch_one, lists)
        return {str(task_list['id']): tasks for task_list, tasks in zip(lists, results)}

    def _enrich_sprint(self, sprint: Dict[str, Any]) -> Dict[str, Any]:
        sprint_id = str(sprint['id'])
        logger.info(f"Getting details for sprint: {sprint.get('name')}")

        detail = self._fetch_branch(
            f"sprint details for {sprint_id}", self.client.get_sprint_detail, sprint_id, None
        )
        tasks = self._fetch_branch(
            f"sprint tasks for {sprint_id}", self.client.list_sprint_tasks, sprint_id, []
        )

        enriched = dict(sprint)
        enriched[SPRINT_ENRICHMENT_KEY] = {'details': detail or None, 'tasks': tasks}
        return enriched

    def _map(self, func: Callable, items: List[Any]) -> List[Any]:
        """Apply func to items in order, on a bounded pool when workers > 1."""
        if self.workers == 1 or len(items) < 2:
            return [func(item) for item in items]

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix='fetch') as pool:
            return list(pool.map(func, items))
