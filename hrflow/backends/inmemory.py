"""In-memory backend for testing."""

from __future__ import annotations

import asyncio
from typing import Any, List, Mapping, Optional, Tuple

from pydantic import BaseModel

from .base import BaseBackend


class RecordingBackend(BaseBackend):
    """Remember every delivery instead of sending it.

    Args:
        fail_with: Exception raised on every send, to exercise failure paths.
        delay: Seconds to sleep before returning, to exercise timeouts.
    """

    def __init__(
        self, fail_with: Optional[Exception] = None, delay: float = 0.0
    ) -> None:
        self.sent: List[Tuple[BaseModel, dict[str, Any]]] = []
        self.fail_with = fail_with
        self.delay = delay

    async def send(self, config: BaseModel, context: Mapping[str, Any]) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        snapshot = dict(context)
        snapshot["context_data"] = dict(context.get("context_data") or {})
        self.sent.append((config, snapshot))
