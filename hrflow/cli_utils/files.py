"""File helpers for CLI commands that take definition files."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import yaml

_YAML_SUFFIXES = {".yaml", ".yml"}


def load_definition_file(path: Path) -> Dict[str, Any]:
    """Read a workflow definition from a YAML or JSON file.

    The format is chosen by suffix; anything other than ``.yaml``/``.yml``
    is parsed as JSON.
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in _YAML_SUFFIXES:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML: {exc}") from exc
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a workflow definition mapping")
    return data


def parse_context(raw: str | None) -> Dict[str, Any]:
    """Parse the ``--context`` option: a JSON object or nothing."""
    if not raw:
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("--context must be a JSON object")
    return data
