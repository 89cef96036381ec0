"""
ROS 2 adapter for icp_laser.

Only icp_laser_node imports rclpy; it is loaded lazily so the conversions
stay importable without a ROS installation.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "IcpLaserNode",
    "main",
]

_LAZY_ATTRS: dict[str, tuple[str, str]] = {
    "IcpLaserNode": ("icp_laser.ros.icp_laser_node", "IcpLaserNode"),
    "main": ("icp_laser.ros.icp_laser_node", "main"),
}


def __getattr__(name: str) -> Any:
    target = _LAZY_ATTRS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    module = import_module(module_name)
    return getattr(module, attr_name)


def __dir__() -> list[str]:
    return sorted(set(globals().keys()) | set(_LAZY_ATTRS.keys()))
