"""
ClickUp API client - HTTP access to spaces, folders, lists, sprints and tasks.

No business logic: every method returns raw API records or raises FetchError.
Deciding what a failure means (abort or degrade) is the fetcher's job.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

API_BASE = 'https://api.clickup.com/api/v2'

# Upper bound on pages read per task listing (100 tasks per page)
MAX_TASK_PAGES = 1000


class FetchError(Exception):
    """Raised when a ClickUp API call fails."""
    pass


class ClickUpClient:
    """
    ClickUp v2 API client.

    Implements the workspace read operations used by the fetcher. Credentials
    arrive already provisioned; there is no token exchange here.
    """

    def __init__(self, api_token: str, team_id: str, base_url: str = API_BASE, timeout: float = 30):
        """
        Initialize ClickUp client.

        Args:
            api_token: Personal API token or OAuth access token
            team_id: ClickUp team (workspace) ID whose spaces are backed up
            base_url: API root URL
            timeout: Per-request timeout in seconds
        """
        if not api_token:
            raise ValueError("ClickUp API token is not configured")
        if not team_id:
            raise ValueError("ClickUp team ID is not configured")

        self.team_id = team_id
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            'Authorization': api_token,
            'Content-Type': 'application/json',
        })

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Make an authenticated GET request.

        Raises:
            FetchError: On transport errors, non-2xx responses or invalid JSON
        """
        url = f"{self.base_url}{endpoint}"
        try:
            resp = self._session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else 'unknown'
            raise FetchError(f"GET {endpoint} failed with status {status}: {e}")
        except requests.RequestException as e:
            raise FetchError(f"GET {endpoint} failed: {e}")
        except ValueError as e:
            raise FetchError(f"GET {endpoint} returned invalid JSON: {e}")

    def _get_items(self, endpoint: str, key: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        data = self._get(endpoint, params)
        items = data.get(key) if isinstance(data, dict) else None
        if items is None:
            raise FetchError(f"GET {endpoint} response has no '{key}' field")
        return items

    def _get_task_pages(self, endpoint: str) -> List[Dict[str, Any]]:
        """Collect every page of a task listing."""
        tasks = []
        for page in range(MAX_TASK_PAGES):
            data = self._get(endpoint, {
                'include_closed': 'true',
                'subtasks': 'true',
                'page': page,
            })
            batch = data.get('tasks') or []
            tasks.extend(batch)

            # Responses without a last_page flag are single-page
            if not batch or data.get('last_page', True):
                break
        else:
            logger.warning(
                f"GET {endpoint} stopped after {MAX_TASK_PAGES} pages; "
                f"the task listing may be incomplete ({len(tasks)} tasks read)"
            )
        return tasks

    def list_workspaces(self) -> List[Dict[str, Any]]:
        """Get all spaces of the configured team."""
        return self._get_items(f"/team/{self.team_id}/space", 'spaces')

    def list_folders(self, workspace_id: str) -> List[Dict[str, Any]]:
        return self._get_items(f"/space/{workspace_id}/folder", 'folders')

    def list_lists(self, workspace_id: str) -> List[Dict[str, Any]]:
        """Get the folderless lists of a space."""
        return self._get_items(f"/space/{workspace_id}/list", 'lists')

    def list_sprints(self, workspace_id: str) -> List[Dict[str, Any]]:
        return self._get_items(f"/space/{workspace_id}/sprint", 'sprints')

    def get_sprint_detail(self, sprint_id: str) -> Optional[Dict[str, Any]]:
        """Get goal, points and task counts of one sprint."""
        return self._get(f"/sprint/{sprint_id}") or None

    def list_tasks(self, list_id: str) -> List[Dict[str, Any]]:
        """Get all tasks of a list, closed tasks and subtasks included."""
        return self._get_task_pages(f"/list/{list_id}/task")

    def list_sprint_tasks(self, sprint_id: str) -> List[Dict[str, Any]]:
        return self._get_task_pages(f"/sprint/{sprint_id}/task")
