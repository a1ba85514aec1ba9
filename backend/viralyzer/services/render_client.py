"""HTTP client for the external render service.

The service accepts a finished edit document on ``POST /render`` and answers
``{"response": {"id": "<render id>"}}``. Completion is reported later by a
callback to the URL passed as ``callback`` in the payload.
"""

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from viralyzer.config import Settings, get_settings
from viralyzer.exceptions import RenderDispatchError

logger = logging.getLogger(__name__)

# Statuses reported by the render service while polling
RENDER_SERVICE_STATUSES = frozenset(
    ["submitted", "queued", "fetching", "rendering", "saving", "done", "failed", "cancelled"]
)


@dataclass
class RenderStatus:
    id: str
    status: str
    url: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("done", "failed", "cancelled")


def build_callback_url(project_id: Any, settings: Settings | None = None) -> str:
    """URL the render service calls when the job finishes."""
    settings = settings or get_settings()
    query = urlencode({"projectId": str(project_id)})
    return f"{settings.public_base_url.rstrip('/')}/api/render/callback?{query}"


class RenderServiceClient:
    """Async client for the render service edit API."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.render_api_base_url,
            headers={
                "x-api-key": self.settings.render_api_key,
                "Accept": "application/json",
            },
            timeout=self.settings.render_request_timeout,
            transport=self._transport,
        )

    async def submit(self, edit: dict[str, Any]) -> str:
        """Queue a render and return the render service's job id."""
        if not self.settings.render_api_key:
            raise RenderDispatchError("Render service is not configured (missing API key)")

        try:
            async with self._client() as client:
                resp = await client.post("/render", json=edit)
        except httpx.HTTPError as e:
            logger.error(f"Render service request failed: {e}")
            raise RenderDispatchError(f"Render service request failed: {e}") from e

        if resp.status_code >= 400:
            logger.error(f"Render service error: {resp.status_code} {resp.text}")
            raise RenderDispatchError(f"Render service error ({resp.status_code}): {resp.text}")

        try:
            body = resp.json()
        except ValueError as e:
            raise RenderDispatchError("Render service returned a non-JSON response") from e

        render_id = (body.get("response") or {}).get("id") if isinstance(body, dict) else None
        if not render_id:
            raise RenderDispatchError("Render service returned no render id")
        return str(render_id)

    async def get_status(self, render_id: str) -> RenderStatus:
        """Poll the render service for the current state of a job."""
        try:
            async with self._client() as client:
                resp = await client.get(f"/render/{render_id}")
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise RenderDispatchError(f"Render status request failed: {e}") from e

        data = resp.json().get("response") or {}
        status = data.get("status") or "submitted"
        if status not in RENDER_SERVICE_STATUSES:
            logger.warning(f"Unknown render status '{status}' for render {render_id}")
        return RenderStatus(
            id=str(data.get("id") or render_id),
            status=status,
            url=data.get("url"),
            error=data.get("error"),
        )
