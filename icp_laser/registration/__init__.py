"""
Registration package: point-to-point ICP.

Usage:
    from icp_laser.registration import ICPParams, align

    result = align(laser_cloud, simulated_cloud, ICPParams())
"""

from icp_laser.registration.icp import (
    ICPParams,
    ICPResult,
    ICPState,
    align,
    best_fit_rigid,
    icp,
    mean_nearest_distance,
)

__all__ = [
    "ICPParams",
    "ICPResult",
    "ICPState",
    "align",
    "best_fit_rigid",
    "icp",
    "mean_nearest_distance",
]
