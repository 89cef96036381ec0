"""
Geometry package for icp_laser.

SE(3) operations on 6D pose vectors (x, y, z, rx, ry, rz), NumPy backend.

Usage:
    from icp_laser.common.geometry import (
        se3_compose,
        se3_inverse,
        se3_apply,
        rotvec_to_rotmat,
    )
"""

from __future__ import annotations

from icp_laser.common.geometry.se3_numpy import (
    # Constants
    ROTATION_EPSILON,
    SINGULARITY_EPSILON,
    # SO(3) operations
    skew,
    unskew,
    rotvec_to_rotmat,
    rotmat_to_rotvec,
    rotation_angle,
    yaw_from_rotvec,
    # Quaternion operations
    quat_to_rotmat,
    rotmat_to_quat,
    quat_to_rotvec,
    # SE(3) operations
    se3_identity,
    se3_from_xy_yaw,
    se3_from_rotmat_trans,
    se3_to_matrix,
    se3_from_matrix,
    se3_compose,
    se3_inverse,
    se3_relative,
    se3_conjugate,
    se3_apply,
)

__all__ = [
    # Constants
    "ROTATION_EPSILON",
    "SINGULARITY_EPSILON",
    # SO(3) operations
    "skew",
    "unskew",
    "rotvec_to_rotmat",
    "rotmat_to_rotvec",
    "rotation_angle",
    "yaw_from_rotvec",
    # Quaternion operations
    "quat_to_rotmat",
    "rotmat_to_quat",
    "quat_to_rotvec",
    # SE(3) operations
    "se3_identity",
    "se3_from_xy_yaw",
    "se3_from_rotmat_trans",
    "se3_to_matrix",
    "se3_from_matrix",
    "se3_compose",
    "se3_inverse",
    "se3_relative",
    "se3_conjugate",
    "se3_apply",
]
