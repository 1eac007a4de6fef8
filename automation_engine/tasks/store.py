"""
Task store collaborator.

The engine does not own task storage. It reads snapshots and writes
field-level update commands through a TaskStore:

- InMemoryTaskStore: process-local store used by tests and local runs
- HttpTaskStore: REST client for the host application's task service
"""

import logging
from typing import Optional, List, Dict, Any, Protocol

import httpx

from automation_engine.exceptions import TaskStoreError
from automation_engine.tasks.models import (
    Assignee,
    TaskSnapshot,
    TaskUpdate,
    TeamMember,
)

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    """Read accessor and write sink for tasks."""

    async def get_task(self, task_id: str) -> Optional[TaskSnapshot]: ...

    async def list_tasks(
        self, team_id: Optional[str], completed: Optional[bool] = None
    ) -> List[TaskSnapshot]: ...

    async def list_team_members(self, team_id: Optional[str]) -> List[TeamMember]: ...

    async def create_task(self, task: TaskSnapshot) -> TaskSnapshot: ...

    async def apply_update(self, update: TaskUpdate) -> None: ...

    async def dispatch_action(self, task_id: str, action_type: str, params: Dict[str, Any]) -> None: ...


class InMemoryTaskStore:
    """Task store backed by dictionaries."""

    def __init__(
        self,
        tasks: Optional[List[TaskSnapshot]] = None,
        members: Optional[Dict[Optional[str], List[TeamMember]]] = None,
    ):
        self._tasks: Dict[str, TaskSnapshot] = {t.id: t for t in tasks or []}
        self._members = members or {}
        self.updates: List[TaskUpdate] = []
        self.dispatched: List[Dict[str, Any]] = []

    async def get_task(self, task_id: str) -> Optional[TaskSnapshot]:
        return self._tasks.get(task_id)

    async def list_tasks(
        self, team_id: Optional[str], completed: Optional[bool] = None
    ) -> List[TaskSnapshot]:
        return [
            t for t in self._tasks.values()
            if (team_id is None or t.team_id == team_id)
            and (completed is None or t.completed == completed)
        ]

    async def list_team_members(self, team_id: Optional[str]) -> List[TeamMember]:
        return list(self._members.get(team_id, []))

    async def create_task(self, task: TaskSnapshot) -> TaskSnapshot:
        self._tasks[task.id] = task
        return task

    async def apply_update(self, update: TaskUpdate) -> None:
        task = self._tasks.get(update.task_id)
        if task is None:
            raise TaskStoreError(f"Task not found in store: {update.task_id}")
        self.updates.append(update)
        self._tasks[task.id] = TaskSnapshot.model_validate(
            {**task.model_dump(), **update.field_updates}
        )

    async def dispatch_action(self, task_id: str, action_type: str, params: Dict[str, Any]) -> None:
        self.dispatched.append({"task_id": task_id, "type": action_type, "params": params})


class HttpTaskStore:
    """
    REST client for the host task service.

    Endpoints (relative to base_url):
        GET   /tasks/{id}
        GET   /tasks?team_id=&completed=
        GET   /teams/{team_id}/members
        POST  /tasks
        PATCH /tasks/{id}
        POST  /tasks/{id}/actions
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with self._client() as client:
            try:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise TaskStoreError(
                    f"Task store error {e.response.status_code} on {method} {path}: {e.response.text}"
                ) from e
            except httpx.RequestError as e:
                raise TaskStoreError(f"Failed to connect to task store: {str(e)}") from e
            return response

    async def get_task(self, task_id: str) -> Optional[TaskSnapshot]:
        async with self._client() as client:
            try:
                response = await client.get(f"/tasks/{task_id}")
            except httpx.RequestError as e:
                raise TaskStoreError(f"Failed to connect to task store: {str(e)}") from e
        if response.status_code == 404:
            return None
        if response.is_error:
            raise TaskStoreError(f"Task store error {response.status_code} on GET /tasks/{task_id}")
        return parse_task(response.json())

    async def list_tasks(
        self, team_id: Optional[str], completed: Optional[bool] = None
    ) -> List[TaskSnapshot]:
        params: Dict[str, Any] = {}
        if team_id:
            params["team_id"] = team_id
        if completed is not None:
            params["completed"] = str(completed).lower()
        response = await self._request("GET", "/tasks", params=params)
        data = response.json()
        items = data.get("tasks", []) if isinstance(data, dict) else data
        return [parse_task(item) for item in items]

    async def list_team_members(self, team_id: Optional[str]) -> List[TeamMember]:
        if not team_id:
            return []
        response = await self._request("GET", f"/teams/{team_id}/members")
        data = response.json()
        items = data.get("members", []) if isinstance(data, dict) else data
        return [TeamMember.model_validate(item) for item in items]

    async def create_task(self, task: TaskSnapshot) -> TaskSnapshot:
        response = await self._request("POST", "/tasks", json=task.model_dump(mode="json"))
        return parse_task(response.json())

    async def apply_update(self, update: TaskUpdate) -> None:
        await self._request(
            "PATCH",
            f"/tasks/{update.task_id}",
            json=_jsonable(update.field_updates),
        )
        logger.debug(f"Applied update to task {update.task_id}: {list(update.field_updates)}")

    async def dispatch_action(self, task_id: str, action_type: str, params: Dict[str, Any]) -> None:
        await self._request(
            "POST",
            f"/tasks/{task_id}/actions",
            json={"type": action_type, "params": params},
        )
        logger.info(f"Dispatched {action_type} for task {task_id}")


def parse_task(data: Dict[str, Any]) -> TaskSnapshot:
    # The task service may send assignees as plain ids
    assignees = data.get("assignees", [])
    data = {
        **data,
        "assignees": [
            Assignee(id=a) if isinstance(a, str) else a
            for a in assignees
        ],
    }
    return TaskSnapshot.model_validate(data)


def _jsonable(updates: Dict[str, Any]) -> Dict[str, Any]:
    result = {}
    for key, value in updates.items():
        if isinstance(value, list):
            value = [v.model_dump(mode="json") if isinstance(v, Assignee) else v for v in value]
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        result[key] = value
    return result
