"""Assignee resolution.

The engine never decides who a role or department maps to; it asks an
``AssigneeResolver`` and stores the answer on the instance.
"""

from __future__ import annotations

from typing import Dict, Optional, Protocol

from .config import IdentityConfig

SYSTEM_ASSIGNEE = "system"


class AssigneeResolver(Protocol):
    """Protocol for identity/role lookup backends."""

    async def resolve(self, assignee: str, assignee_type: str) -> str:
        """Return the email or address responsible for ``assignee``."""


class DirectoryResolver(AssigneeResolver):
    """Resolve assignees from a static directory.

    Users that already look like an address resolve to themselves, the
    system resolves to ``"system"``, and anything not in the directory gets
    ``<assignee>@<default_domain>``.
    """

    def __init__(
        self,
        directory: Optional[Dict[str, str]] = None,
        default_domain: str = "company.com",
    ) -> None:
        self.directory = dict(directory or {})
        self.default_domain = default_domain

    @classmethod
    def from_config(cls, config: IdentityConfig) -> "DirectoryResolver":
        return cls(directory=config.directory, default_domain=config.default_domain)

    async def resolve(self, assignee: str, assignee_type: str) -> str:
        if assignee_type == "system":
            return SYSTEM_ASSIGNEE
        if assignee in self.directory:
            return self.directory[assignee]
        if "@" in assignee:
            return assignee
        return f"{assignee}@{self.default_domain}"
