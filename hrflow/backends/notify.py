"""Log-only delivery for notification style actions.

Stands in for the mail, chat and calendar services until a deployment
registers real backends for those action types.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import BaseModel

from .base import BaseBackend

logger = logging.getLogger(__name__)


class LogNotifier(BaseBackend):
    """Write a one-line delivery record to the ``hrflow.backends.notify`` log."""

    def __init__(self, channel: str) -> None:
        self.channel = channel

    def _target(self, config: BaseModel, context: Mapping[str, Any]) -> str:
        recipients = getattr(config, "recipients", None)
        if recipients:
            return ", ".join(recipients)
        for attr in ("channel", "calendar", "assignee"):
            value = getattr(config, attr, None)
            if value:
                return str(value)
        return str(context.get("assignee_email") or "-")

    async def send(self, config: BaseModel, context: Mapping[str, Any]) -> None:
        message = getattr(config, "message", None) or getattr(config, "template", None)
        logger.info(
            f"[{self.channel.upper()}] {context.get('title')} -> "
            f"{self._target(config, context)}"
            + (f": {message}" if message else "")
        )
