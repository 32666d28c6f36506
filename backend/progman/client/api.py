"""Async HTTP client for the progress-manager API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import TransientIOError, error_for_status

logger = logging.getLogger(__name__)


class ProgressApiClient:
    """
    Thin wrapper over httpx.AsyncClient. Non-2xx responses are raised as
    NotFound / Conflict / ValidationError / TransientIOError; connection
    failures become TransientIOError. No retries.
    """

    def __init__(self, base_url: str = "http://localhost:8000", *, transport: httpx.AsyncBaseTransport | None = None,
                 timeout: float | None = 10.0):
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ProgressApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransientIOError(f"{method} {url} failed: {e}") from e
        if resp.status_code >= 400:
            try:
                payload = resp.json()
                message = payload.get("error") or payload.get("detail") or resp.text
            except ValueError:
                message = resp.text
            logger.debug("%s %s -> %s %s", method, url, resp.status_code, message)
            raise error_for_status(resp.status_code, str(message))
        return resp.json()

    # -- projects --

    async def list_projects(self) -> list[dict]:
        return await self._request("GET", "/api/projects")

    async def create_project(self, name: str, base_date: str | None = None) -> dict:
        return await self._request("POST", "/api/projects", json={"name": name, "base_date": base_date})

    async def update_project(self, project_id: int, **fields) -> dict:
        return await self._request("PUT", f"/api/projects/{project_id}", json=fields)

    async def delete_project(self, project_id: int) -> dict:
        return await self._request("DELETE", f"/api/projects/{project_id}")

    async def project_summary(self, project_id: int) -> dict:
        return await self._request("GET", f"/api/projects/{project_id}/summary")

    # -- schedules --

    async def list_schedules(self, project_id: int) -> list[dict]:
        return await self._request("GET", f"/api/schedules/{project_id}")

    async def update_schedule(self, schedule_id: int, fields: dict) -> dict:
        return await self._request("PUT", f"/api/schedules/{schedule_id}", json=fields)

    async def import_schedules(self, project_id: int, rows: list[dict]) -> dict:
        return await self._request("POST", f"/api/schedules/{project_id}/import", json={"rows": rows})

    async def list_milestone_estimates(self, project_id: int) -> list[dict]:
        return await self._request("GET", f"/api/schedules/{project_id}/milestone-estimates")

    async def set_milestone_estimate(self, project_id: int, schedule_id: int, estimate_date: str | None) -> dict:
        return await self._request(
            "PUT", f"/api/schedules/{project_id}/milestone-estimates/{schedule_id}",
            json={"estimate_date": estimate_date},
        )

    async def milestone_board(self, project_id: int) -> list[dict]:
        return await self._request("GET", f"/api/schedules/{project_id}/milestones")

    # -- comments --

    async def sections(self) -> dict:
        return await self._request("GET", "/api/comments/sections")

    async def list_pages(self, project_id: int) -> dict:
        return await self._request("GET", f"/api/comments/{project_id}/pages")

    async def create_page(self, project_id: int, comment_date: str) -> dict:
        return await self._request("POST", f"/api/comments/{project_id}/pages", json={"comment_date": comment_date})

    async def delete_page(self, project_id: int, comment_date: str) -> dict:
        return await self._request("DELETE", f"/api/comments/{project_id}/pages/{comment_date}")

    async def list_comments(self, project_id: int, comment_date: str) -> list[dict]:
        return await self._request("GET", f"/api/comments/{project_id}", params={"date": comment_date})

    async def upsert_comment(self, project_id: int, owner: str, body: str, comment_date: str) -> dict:
        return await self._request("POST", "/api/comments", json={
            "project_id": project_id, "owner": owner, "body": body, "comment_date": comment_date,
        })

    async def list_progress(self, project_id: int, progress_date: str) -> list[dict]:
        return await self._request("GET", f"/api/comments/{project_id}/progress", params={"date": progress_date})

    async def set_progress(self, project_id: int, category: str, progress_date: str, status: str) -> dict:
        return await self._request("PUT", f"/api/comments/{project_id}/progress", json={
            "category": category, "progress_date": progress_date, "status": status,
        })
