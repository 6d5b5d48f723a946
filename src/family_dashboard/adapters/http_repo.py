# src/family_dashboard/adapters/http_repo.py

"""HTTP adapter for the dashboard backend's task endpoints.

Every response uses the envelope ``{"ok": bool, "data": ..., "message": str}``.
Transport errors, non-2xx statuses and ``ok: false`` all surface as RepoError so the
reconciler has a single failure type to log.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.models import Task
from ..errors import RepoError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = httpx.Timeout(connect=5.0, read=10.0, write=10.0, pool=5.0)


class HttpTaskRepo:
    def __init__(
            self,
            base_url: str,
            *,
            timeout: httpx.Timeout | float | None = None,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else DEFAULT_TIMEOUT,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise RepoError(f"{method} {path} failed: {exc!r}") from exc

        if resp.status_code >= 400:
            raise RepoError(f"{resp.status_code} {resp.reason_phrase}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise RepoError(f"{method} {path}: response is not JSON") from exc

        if not isinstance(payload, dict) or not payload.get("ok"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise RepoError(message or "Request failed", status_code=resp.status_code)
        return payload.get("data")

    async def get_tasks(self) -> list[Task]:
        data = await self._request("GET", "/tasks")
        if not isinstance(data, list):
            raise RepoError("GET /tasks: expected a list")

        tasks: list[Task] = []
        for item in data:
            try:
                tasks.append(Task.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed task from backend: %r", item)
        return tasks

    async def create_task(self, task: Task) -> Task:
        data = await self._request("POST", "/tasks", json=task.to_dict())
        return Task.from_dict(data) if isinstance(data, dict) else task

    async def update_task(self, task: Task) -> Task:
        data = await self._request("PUT", f"/tasks/{task.id}", json=task.to_dict())
        return Task.from_dict(data) if isinstance(data, dict) else task

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")
