"""Tests for configuration loading."""

from hrflow.config import load_config
from hrflow.orchestrator import WorkflowOrchestrator
from hrflow.persistence import SQLiteRecordStore


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
max_hops: 25
log_level: INFO
escalation:
  interval_seconds: 5
dispatch:
  timeout_seconds: 2.5
  max_attempts: 1
identity:
  default_domain: example.org
  directory:
    department_head: head@example.org
"""
    )
    monkeypatch.setenv("HRFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("HRFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("HRFLOW_DISPATCH_LOG_URL", raising=False)

    config = load_config()
    assert config.max_hops == 25
    assert config.log_level == "INFO"
    assert config.escalation.interval_seconds == 5
    assert config.dispatch.timeout_seconds == 2.5
    assert config.dispatch.max_attempts == 1
    assert config.identity.directory == {"department_head": "head@example.org"}
    assert config.database_url is None


def test_missing_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("HRFLOW_DATABASE_URL", raising=False)
    config = load_config(str(tmp_path / "nope.yaml"))
    assert config.max_hops == 100
    assert config.dispatch.timeout_seconds == 5.0
    assert config.identity.default_domain == "company.com"


def test_env_overrides_urls(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite:///ignored.db\n")
    monkeypatch.setenv("HRFLOW_DATABASE_URL", f"sqlite://{tmp_path / 'env.db'}")
    monkeypatch.setenv("HRFLOW_DISPATCH_LOG_URL", "sqlite+aiosqlite:///log.db")

    config = load_config(str(config_path))
    assert config.database_url == f"sqlite://{tmp_path / 'env.db'}"
    assert config.dispatch_log_url == "sqlite+aiosqlite:///log.db"


def test_orchestrator_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"database_url: sqlite://{tmp_path / 'hr.db'}\nmax_hops: 7\n")
    monkeypatch.setenv("HRFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("HRFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("HRFLOW_DISPATCH_LOG_URL", raising=False)

    orchestrator = WorkflowOrchestrator.from_config()
    assert orchestrator.max_hops == 7
    assert orchestrator.dispatch_log is None
    assert isinstance(orchestrator.registry._store, SQLiteRecordStore)
