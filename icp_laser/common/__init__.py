"""
Common package for icp_laser.

Shared types, geometry and errors used by every other subpackage.

Subpackages:
- geometry/: SE(3) operations on 6D pose vectors
"""

from icp_laser.common import errors
from icp_laser.common import types
from icp_laser.common.errors import (
    InsufficientPoints,
    LocalizationError,
    MalformedScan,
    MapUnavailable,
    RegistrationFailed,
    TransformUnavailable,
)

__all__ = [
    "errors",
    "types",
    "LocalizationError",
    "MapUnavailable",
    "TransformUnavailable",
    "InsufficientPoints",
    "RegistrationFailed",
    "MalformedScan",
]
