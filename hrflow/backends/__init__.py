"""Action delivery backends and the default wiring per action type."""

from __future__ import annotations

from typing import Dict, Optional

import httpx

from ..config import HrflowConfig, load_config
from ..resolver import AssigneeResolver, DirectoryResolver
from .base import BaseBackend
from .fields import AssignUserBackend, UpdateFieldBackend
from .http import HttpBackend
from .inmemory import RecordingBackend
from .notify import LogNotifier


def default_backends(
    config: Optional[HrflowConfig] = None,
    resolver: Optional[AssigneeResolver] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, BaseBackend]:
    """Factory mapping every action type to its configured backend."""

    config = config or load_config()
    resolver = resolver or DirectoryResolver.from_config(config.identity)
    http = HttpBackend(
        timeout=config.dispatch.request_timeout(),
        max_attempts=config.dispatch.max_attempts,
        client=client,
    )
    return {
        "email": LogNotifier("email"),
        "slack": LogNotifier("slack"),
        "calendar_event": LogNotifier("calendar"),
        "create_task": LogNotifier("task"),
        "webhook": http,
        "api": http,
        "update_field": UpdateFieldBackend(),
        "assign_user": AssignUserBackend(resolver),
    }


__all__ = [
    "AssignUserBackend",
    "BaseBackend",
    "HttpBackend",
    "LogNotifier",
    "RecordingBackend",
    "UpdateFieldBackend",
    "default_backends",
]
