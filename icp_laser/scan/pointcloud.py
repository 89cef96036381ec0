"""
Range scan -> 3D point set conversion.

Pure math, no ROS. The sensor pose comes from the caller (TF lookup or the
hypothesized pose), so the same function serves both the real and the
simulated scan with their own distance / count limits.
"""

from __future__ import annotations

import numpy as np

from icp_laser.common.errors import InsufficientPoints
from icp_laser.common.geometry import se3_apply
from icp_laser.common.types import RangeScan


def scan_to_local_points(scan: RangeScan, max_distance: float) -> np.ndarray:
    """
    Valid scan samples as (N, 3) points in the sensor frame (z = 0).

    Drops samples that are not finite, outside [range_min, range_max], or
    farther than max_distance.
    """
    ranges = scan.ranges
    if ranges.size == 0:
        return np.zeros((0, 3), dtype=float)

    valid = scan.valid_mask()
    valid &= (ranges <= max_distance)

    r = ranges[valid]
    a = scan.angles()[valid]
    x = r * np.cos(a)
    y = r * np.sin(a)
    z = np.zeros_like(x)
    return np.stack([x, y, z], axis=1)


def scan_to_points(
    scan: RangeScan,
    sensor_pose: np.ndarray,
    max_distance: float,
    min_count: int,
    label: str = "cloud",
) -> np.ndarray:
    """
    Convert a scan to points in the reference frame of `sensor_pose`.

    Args:
        scan: Real or simulated range scan
        sensor_pose: 6D pose of the sensor in the reference frame
        max_distance: Samples beyond this range are dropped (meters)
        min_count: Minimum number of surviving points
        label: Name used in the InsufficientPoints message

    Returns:
        (N, 3) float64 points, N >= min_count

    Raises:
        InsufficientPoints: Fewer than min_count points survive filtering
    """
    points_sensor = scan_to_local_points(scan, max_distance)
    if points_sensor.shape[0] < min_count:
        raise InsufficientPoints(points_sensor.shape[0], min_count, label=label)
    if points_sensor.shape[0] == 0:
        return points_sensor
    return se3_apply(sensor_pose, points_sensor)
