from __future__ import annotations

import os
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_DISPATCH_MAX_ATTEMPTS,
    DEFAULT_DISPATCH_TIMEOUT_SECONDS,
    DEFAULT_ESCALATION_INTERVAL_SECONDS,
    DEFAULT_MAX_HOPS,
)


class EscalationConfig(BaseModel):
    """Settings for the escalation sweep loop."""

    interval_seconds: float = DEFAULT_ESCALATION_INTERVAL_SECONDS


class DispatchConfig(BaseModel):
    """Settings for action dispatch."""

    timeout_seconds: float = DEFAULT_DISPATCH_TIMEOUT_SECONDS
    max_attempts: int = DEFAULT_DISPATCH_MAX_ATTEMPTS

    def request_timeout(self) -> float:
        """Per-request HTTP timeout.

        All attempts of one action share ``timeout_seconds``, so a hung
        request leaves room for the remaining retries. Backoff sleeps count
        against the same budget.
        """
        return self.timeout_seconds / max(1, self.max_attempts)


class IdentityConfig(BaseModel):
    """Settings for the built-in directory resolver."""

    default_domain: str = "company.com"
    directory: Dict[str, str] = Field(default_factory=dict)


class HrflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    dispatch_log_url: Optional[str] = None
    max_hops: int = DEFAULT_MAX_HOPS
    log_level: str = "WARNING"
    escalation: EscalationConfig = EscalationConfig()
    dispatch: DispatchConfig = DispatchConfig()
    identity: IdentityConfig = IdentityConfig()


def load_config(path: Optional[str] = None) -> HrflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to HRFLOW_CONFIG env
            variable or 'hrflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("HRFLOW_CONFIG", "hrflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = HrflowConfig(**data)
    else:
        config = HrflowConfig()

    env_db_url = os.getenv("HRFLOW_DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_log_url = os.getenv("HRFLOW_DISPATCH_LOG_URL")
    if env_log_url:
        config.dispatch_log_url = env_log_url
    return config
