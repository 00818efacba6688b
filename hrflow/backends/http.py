"""HTTP backend for webhook and api actions using httpx."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx
from pydantic import BaseModel

from ..utils.retry import schedule_retry
from .base import BaseBackend

logger = logging.getLogger(__name__)

_CONTEXT_FIELDS = ("instance_id", "workflow_id", "title", "step_id", "assignee_email")


class HttpBackend(BaseBackend):
    """Call an external endpoint, retrying transport errors and 5xx responses."""

    def __init__(
        self,
        timeout: float = 5.0,
        max_attempts: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True

    async def disconnect(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _build_request(
        self, config: BaseModel, context: Mapping[str, Any]
    ) -> tuple[str, str, dict[str, str], dict[str, Any]]:
        payload = {k: context.get(k) for k in _CONTEXT_FIELDS}
        payload["context_data"] = dict(context.get("context_data") or {})
        body = getattr(config, "body", None)
        if body:
            payload = {**payload, **body}
        return (
            getattr(config, "method", "POST").upper(),
            getattr(config, "url"),
            dict(getattr(config, "headers", {}) or {}),
            payload,
        )

    async def send(self, config: BaseModel, context: Mapping[str, Any]) -> None:
        if self._client is None:
            await self.connect()
        method, url, headers, payload = self._build_request(config, context)
        request_kwargs: dict[str, Any] = {"headers": headers, "timeout": self.timeout}
        if method in ("GET", "DELETE"):
            request_kwargs["params"] = {
                k: v for k, v in payload.items() if isinstance(v, (str, int, float))
            }
        else:
            request_kwargs["json"] = payload

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self._client.request(method, url, **request_kwargs)
                if response.status_code < 500 or attempt == self.max_attempts:
                    response.raise_for_status()
                    return
                logger.warning(
                    f"{method} {url} returned {response.status_code}, "
                    f"attempt {attempt}/{self.max_attempts}"
                )
            except httpx.TransportError as exc:
                if attempt == self.max_attempts:
                    raise
                logger.warning(
                    f"{method} {url} failed: {exc}, attempt {attempt}/{self.max_attempts}"
                )
            await schedule_retry(attempt)
