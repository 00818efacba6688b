"""Best-effort action dispatcher for hrflow."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, MutableMapping, Optional, Union

from .backends import BaseBackend, default_backends
from .config import HrflowConfig
from .constants import DEFAULT_DISPATCH_TIMEOUT_SECONDS
from .contracts import ACTION_ADAPTER, ActionDescriptor, DispatchResult

if TYPE_CHECKING:
    from .db import DispatchLogDB
    from .registry.models import Integration
    from .resolver import AssigneeResolver

logger = logging.getLogger(__name__)

# Integration type that must be enabled (when declared) for an action to fire.
INTEGRATION_KIND = {
    "email": "email",
    "slack": "slack",
    "calendar_event": "calendar",
    "webhook": "webhook",
    "api": "api",
}


def integration_allows(
    action_type: str, integrations: Optional[Iterable["Integration"]]
) -> bool:
    """``False`` only when the definition declares the action's channel and
    every declaration of it is disabled."""
    kind = INTEGRATION_KIND.get(action_type)
    if kind is None or not integrations:
        return True
    declared = [i for i in integrations if i.type == kind]
    return not declared or any(i.enabled for i in declared)


class ActionDispatcher:
    """Delivers step actions through per-type backends.

    Failures never propagate: every call returns a :class:`DispatchResult`,
    failures are logged and, when a dispatch log is attached, recorded.
    """

    def __init__(
        self,
        backends: Optional[Dict[str, BaseBackend]] = None,
        timeout: float = DEFAULT_DISPATCH_TIMEOUT_SECONDS,
        log: Optional["DispatchLogDB"] = None,
    ) -> None:
        self._backends: Dict[str, BaseBackend] = dict(backends or {})
        self.timeout = timeout
        self._log = log

    @classmethod
    def from_config(
        cls,
        config: HrflowConfig,
        resolver: Optional["AssigneeResolver"] = None,
        log: Optional["DispatchLogDB"] = None,
    ) -> "ActionDispatcher":
        return cls(
            backends=default_backends(config, resolver=resolver),
            timeout=config.dispatch.timeout_seconds,
            log=log,
        )

    def register(self, action_type: str, backend: BaseBackend) -> None:
        """Route ``action_type`` to ``backend``, replacing any previous one."""
        self._backends[action_type] = backend

    async def close(self) -> None:
        for backend in {id(b): b for b in self._backends.values()}.values():
            await backend.disconnect()

    async def _record(self, result: DispatchResult, context: MutableMapping[str, Any]) -> None:
        if self._log is None:
            return
        try:
            await self._log.record(result, context)
        except Exception as exc:
            logger.warning(f"Could not record dispatch of {result.action_id}: {exc}")

    async def dispatch(
        self,
        action: Union[ActionDescriptor, dict],
        context: MutableMapping[str, Any],
        integrations: Optional[Iterable["Integration"]] = None,
    ) -> DispatchResult:
        """Deliver one action; never raises for delivery problems."""
        if isinstance(action, dict):
            action = ACTION_ADAPTER.validate_python(action)

        if not integration_allows(action.type, integrations):
            logger.info(
                f"Skipping {action.type} action {action.id}: integration disabled"
            )
            result = DispatchResult(
                action_id=action.id, action_type=action.type, attempted=False, skipped=True
            )
            await self._record(result, context)
            return result

        backend = self._backends.get(action.type)
        error: Optional[str] = None
        if backend is None:
            error = f"No backend registered for '{action.type}'"
        else:
            try:
                await asyncio.wait_for(
                    backend.send(action.config, context), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                error = f"timed out after {self.timeout}s"
            except Exception as exc:
                error = str(exc) or type(exc).__name__

        result = DispatchResult(
            action_id=action.id, action_type=action.type, ok=error is None, error=error
        )
        if error is not None:
            logger.warning(
                f"Action {action.id} ({action.type}) failed for instance "
                f"{context.get('instance_id')}: {error}"
            )
        await self._record(result, context)
        return result

    async def dispatch_all(
        self,
        actions: Iterable[Union[ActionDescriptor, dict]],
        context: MutableMapping[str, Any],
        integrations: Optional[Iterable["Integration"]] = None,
    ) -> list[DispatchResult]:
        """Dispatch ``actions`` in order; one failure does not stop the rest."""
        return [await self.dispatch(a, context, integrations) for a in actions]
