"""
Fixed output covariance for accepted poses.

The covariance is configuration, not a function of registration quality.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from icp_laser import constants
from icp_laser.common.types import PoseWithCovariance


def covariance_matrix(xx: float, yy: float, aa: float) -> np.ndarray:
    """6x6 covariance with x, y and yaw variances on the diagonal, zero elsewhere."""
    cov = np.zeros(36, dtype=float)
    cov[constants.COVARIANCE_INDEX_XX] = xx
    cov[constants.COVARIANCE_INDEX_YY] = yy
    cov[constants.COVARIANCE_INDEX_AA] = aa
    return cov.reshape(6, 6)


def pose_with_covariance(pose: np.ndarray, stamp: Optional[float], config) -> PoseWithCovariance:
    """
    Pair a pose with the configured covariance.

    Args:
        pose: 6D pose
        stamp: Time of the accepted update
        config: Anything with pose_covariance_xx / _yy / _aa (CovarianceConfig)
    """
    cov = covariance_matrix(config.pose_covariance_xx, config.pose_covariance_yy, config.pose_covariance_aa)
    cov.setflags(write=False)
    pose = np.array(pose, dtype=float).reshape(-1)
    pose.setflags(write=False)
    return PoseWithCovariance(pose=pose, covariance=cov, stamp=stamp)
