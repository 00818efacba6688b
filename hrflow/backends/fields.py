"""Backends that write back into the running instance."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping

from pydantic import BaseModel

from ..resolver import AssigneeResolver
from .base import BaseBackend

logger = logging.getLogger(__name__)


class UpdateFieldBackend(BaseBackend):
    """Set ``config.field`` in the instance's context data."""

    async def send(self, config: BaseModel, context: MutableMapping[str, Any]) -> None:
        data = context.get("context_data")
        if data is None:
            raise KeyError("context_data missing from dispatch context")
        field = getattr(config, "field")
        data[field] = getattr(config, "value", None)
        logger.debug(f"Set {field} on instance {context.get('instance_id')}")


class AssignUserBackend(BaseBackend):
    """Reassign the instance to a resolved user, role or department."""

    def __init__(self, resolver: AssigneeResolver) -> None:
        self._resolver = resolver

    async def send(self, config: BaseModel, context: MutableMapping[str, Any]) -> None:
        context["assignee_email"] = await self._resolver.resolve(
            getattr(config, "assignee"), getattr(config, "assignee_type", "user")
        )
