"""Project-level configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


CONFIG_FILENAME = "tagcalc.yaml"

DEFAULT_CONFIG = {
    "suggestions_file": None,  # default: built-in catalog
    "suggestion_limit": 10,
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``tagcalc.yaml``, with defaults.

    Args:
        project_dir: Root of the tagcalc project.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the config file does not hold a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{CONFIG_FILENAME} must contain a mapping, got {type(user_config).__name__}")
        config.update(user_config)
    return config


def resolve_suggestions_path(project_dir: Path, config: dict[str, Any] | None = None) -> Path | None:
    """Return the absolute path of the configured suggestions file, if any."""
    if config is None:
        config = load_project_config(project_dir)
    raw = config.get("suggestions_file")
    if not raw:
        return None
    path = Path(raw)
    if not path.is_absolute():
        path = project_dir / path
    return path
