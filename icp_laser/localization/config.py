"""
Localizer configuration loading.

Provides utilities for loading, validating, and managing localizer
configuration from YAML files and ROS 2 parameters.

This module bridges:
1. YAML configuration files (config/icp_laser.yaml)
2. Pydantic validation model (common/param_models.py)
3. ROS 2 parameter system
4. LocalizerConfig dataclass groups (config.py)

Usage:
    from icp_laser.localization.config import load_localizer_config

    config = load_localizer_config("/path/to/icp_laser.yaml", overrides={"icp_planar": False})
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, TYPE_CHECKING

import yaml
from pydantic import ValidationError

from icp_laser.common.param_models import LocalizerParams
from icp_laser.config import LocalizerConfig

if TYPE_CHECKING:
    from rclpy.node import Node


NODE_SECTION = "icp_laser"


def load_yaml_config(config_path: str | Path) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge configuration dictionaries (later configs override earlier)."""
    result: Dict[str, Any] = {}
    for config in configs:
        if config:
            _deep_merge(result, config)
    return result


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override dict into base dict (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def node_parameters(full_config: Dict[str, Any], section: str = NODE_SECTION) -> Dict[str, Any]:
    """The `<section>.ros__parameters` block of a ROS parameter file (empty if absent)."""
    return (full_config.get(section) or {}).get("ros__parameters") or {}


def load_localizer_params(
    base_path: Optional[str | Path] = None,
    preset_path: Optional[str | Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> LocalizerParams:
    """
    Load and validate localizer parameters from YAML files.

    Args:
        base_path: Path to the base parameter file (icp_laser.yaml)
        preset_path: Optional path to a file overriding the base
        overrides: Optional dictionary of parameter overrides

    Raises:
        ValidationError: If configuration is invalid
    """
    base_config: Dict[str, Any] = {}
    if base_path:
        base_config = node_parameters(load_yaml_config(base_path))

    preset_config: Dict[str, Any] = {}
    if preset_path:
        preset_config = node_parameters(load_yaml_config(preset_path))

    # base <- preset <- overrides
    merged = merge_configs(base_config, preset_config, overrides or {})
    return LocalizerParams(**merged)


def load_localizer_config(
    base_path: Optional[str | Path] = None,
    preset_path: Optional[str | Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> LocalizerConfig:
    """Validated LocalizerConfig from YAML files (see load_localizer_params)."""
    params = load_localizer_params(base_path, preset_path, overrides)
    return LocalizerConfig.from_params(params.model_dump())


def validate_localizer_params(node: "Node") -> LocalizerParams:
    """
    Validate ROS 2 node parameters against the LocalizerParams model.

    Raises:
        ValidationError: If parameters are invalid
    """
    values: Dict[str, Any] = {}
    for name in LocalizerParams.model_fields:
        if node.has_parameter(name):
            values[name] = node.get_parameter(name).value

    try:
        return LocalizerParams(**values)
    except ValidationError as exc:
        node.get_logger().error(f"Invalid icp_laser parameters: {exc}")
        raise


def get_default_config_path() -> Path:
    """Path to the packaged base parameter file."""
    # Package root is two levels above this module's package
    pkg_root = Path(__file__).parent.parent.parent
    return pkg_root / "config" / "icp_laser.yaml"
