"""Project-level configuration (``formulary.yaml``)."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from formulary.functions.registry import Variable

CONFIG_FILENAME = "formulary.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "variables": {},
    "stdlib": False,
    "batch_max_workers": 1,
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``formulary.yaml``, with defaults.

    Args:
        project_dir: Directory holding the config file.  A missing file
            yields the defaults.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the file is not valid YAML or not a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        try:
            user_config = yaml.safe_load(config_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid {CONFIG_FILENAME}: {exc}") from exc
        if not isinstance(user_config, dict):
            raise ValueError(f"{CONFIG_FILENAME} must contain a mapping")
        config.update(user_config)
    return config


def config_variables(config: dict[str, Any]) -> list[Variable]:
    """Convert the ``variables:`` block into ``Variable`` models.

    Raises:
        ValueError: If the block is not a mapping or a value is not numeric.
    """
    block = config.get("variables") or {}
    if not isinstance(block, dict):
        raise ValueError("'variables' must be a mapping of name -> number")
    return [Variable(name=str(k), value=v) for k, v in block.items()]
