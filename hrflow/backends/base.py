"""Base backend interface for action delivery."""

from __future__ import annotations

import abc
from typing import Any, Mapping

from pydantic import BaseModel


class BaseBackend(metaclass=abc.ABCMeta):
    """Delivers one kind of action to an external collaborator.

    ``context`` carries the instance fields (``instance_id``, ``workflow_id``,
    ``title``, ``step_id``, ``assignee_email``) and ``context_data``, the live
    context dict of the instance.
    """

    async def connect(self) -> None:
        """Open connections (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connections (no-op by default)."""
        pass

    @abc.abstractmethod
    async def send(self, config: BaseModel, context: Mapping[str, Any]) -> None:
        """Deliver the action. Raise on failure."""
        raise NotImplementedError
