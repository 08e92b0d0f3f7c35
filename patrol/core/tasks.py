"""Async client for the AGV task service.

Only task creation is covered: the assistant decides *whether* to create a
task, and the CLI's --create flag hands the params to this client.

The service wraps every response in an envelope:

    {"code": 200, "data": {...}, "msg": "success"}

Any code other than 200 is a failure, whatever the HTTP status.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .intent.taxonomy import TaskParams

logger = logging.getLogger(__name__)

SUCCESS_CODE = 200
TASK_PATH = "/api/agv/task"


class TaskApiError(Exception):
    """Task service request failed.

    Raised on network errors, HTTP errors, malformed responses and
    envelopes whose code is not 200.
    """

    pass


class TaskApiClient:
    """Async client for creating tasks on the task service.

    Example:
        >>> async with TaskApiClient("http://localhost:8080") as client:
        ...     data = await client.create_task(result.params)
    """

    def __init__(
        self,
        endpoint: str = "http://localhost:8080",
        timeout: float = 30.0,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def create_task(self, params: TaskParams) -> dict[str, Any]:
        """Create a task from resolved params.

        Args:
            params: Complete task parameters

        Returns:
            The envelope's data object (empty dict when the service sends none)

        Raises:
            ValueError: If params are incomplete
            TaskApiError: If the request fails or the service reports an error
        """
        if not params.is_complete():
            raise ValueError(f"Task params incomplete, missing: {params.missing_fields()}")

        payload = params.to_create_payload()
        logger.info(f"Creating task {params.task_name!r} at {self.endpoint}{TASK_PATH}")

        try:
            client = await self._get_client()
            resp = await client.post(f"{self.endpoint}{TASK_PATH}", json=payload)
            resp.raise_for_status()
            envelope = resp.json()
        except httpx.HTTPStatusError as e:
            raise TaskApiError(f"Task creation failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TaskApiError(f"Task creation request failed: {e}") from e
        except ValueError as e:
            raise TaskApiError(f"Task service returned invalid JSON: {e}") from e

        if not isinstance(envelope, dict):
            raise TaskApiError(f"Unexpected task service response: {envelope!r}")

        if envelope.get("code") != SUCCESS_CODE:
            code = envelope.get("code")
            raise TaskApiError(envelope.get("msg") or f"Task service error (code {code})")

        data = envelope.get("data")
        logger.info(f"Task created: {data}")
        return data if isinstance(data, dict) else {}

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TaskApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["TaskApiClient", "TaskApiError"]
