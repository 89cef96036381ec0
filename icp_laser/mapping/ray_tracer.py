"""
Scan simulation by ray casting through an occupancy grid.

Rays are traversed cell by cell (Amanatides & Woo grid traversal), all beams
of a scan advancing together as NumPy arrays. The reported range is the
distance from the sensor to the boundary where the ray enters the first
occupied cell, which is what a perfect sensor at that pose would measure.

Unknown cells are traversed like free cells. Cells outside the grid are free.
"""

from __future__ import annotations

import math

import numpy as np

from icp_laser import constants
from icp_laser.common.geometry import rotvec_to_rotmat
from icp_laser.common.types import OccupancyGrid, RangeScan, expected_beam_count


_DIRECTION_EPSILON = 1e-12


def cast_rays(
    grid: OccupancyGrid,
    sensor_pose: np.ndarray,
    angles: np.ndarray,
    max_range: float,
    occupied_threshold: int = constants.OCCUPIED_THRESHOLD_DEFAULT,
) -> np.ndarray:
    """
    Distance to the first occupied cell along each beam.

    Args:
        grid: Occupancy grid to trace through
        sensor_pose: 6D sensor pose in the world frame
        angles: (N,) beam angles in the sensor frame (radians)
        max_range: Rays longer than this report no hit (meters)
        occupied_threshold: Cell value at or above which a cell blocks the ray

    Returns:
        (N,) distances in meters; +inf where nothing is hit within max_range
    """
    sensor_pose = np.asarray(sensor_pose, dtype=float).reshape(-1)
    angles = np.asarray(angles, dtype=float).reshape(-1)
    n = angles.size
    distances = np.full(n, np.inf, dtype=float)
    if n == 0 or max_range <= 0.0:
        return distances

    res = grid.resolution

    # Beam directions expressed in the grid frame, projected onto the map plane
    R_sensor = rotvec_to_rotmat(sensor_pose[3:6])
    R_grid = rotvec_to_rotmat(grid.origin[3:6])
    beams = np.stack([np.cos(angles), np.sin(angles), np.zeros(n)], axis=1)
    dirs = (R_grid.T @ R_sensor @ beams.T).T[:, :2]
    norms = np.linalg.norm(dirs, axis=1)
    active = norms > _DIRECTION_EPSILON
    dirs[active] /= norms[active, None]
    dx, dy = dirs[:, 0], dirs[:, 1]

    # Sensor position in cell units
    origin_local = grid.world_to_grid_frame(sensor_pose[:3])
    px = origin_local[0] / res
    py = origin_local[1] / res

    ix = np.full(n, math.floor(px), dtype=np.int64)
    iy = np.full(n, math.floor(py), dtype=np.int64)

    step_x = np.where(dx > 0.0, 1, -1).astype(np.int64)
    step_y = np.where(dy > 0.0, 1, -1).astype(np.int64)

    with np.errstate(divide="ignore", invalid="ignore"):
        t_delta_x = np.where(dx != 0.0, 1.0 / np.abs(dx), np.inf)
        t_delta_y = np.where(dy != 0.0, 1.0 / np.abs(dy), np.inf)
        t_max_x = np.where(
            dx != 0.0,
            np.where(dx > 0.0, ix + 1 - px, px - ix) * t_delta_x,
            np.inf,
        )
        t_max_y = np.where(
            dy != 0.0,
            np.where(dy > 0.0, iy + 1 - py, py - iy) * t_delta_y,
            np.inf,
        )

    t_limit = max_range / res

    hit = active & _occupied(grid, ix, iy, occupied_threshold)
    distances[hit] = 0.0
    active &= ~hit

    # A ray of length L cells crosses at most 2L + 2 cell boundaries
    max_steps = int(math.ceil(2.0 * t_limit)) + 4
    for _ in range(max_steps):
        if not np.any(active):
            break

        along_x = t_max_x < t_max_y
        move_x = active & along_x
        move_y = active & ~along_x
        t_enter = np.where(along_x, t_max_x, t_max_y)

        ix = np.where(move_x, ix + step_x, ix)
        iy = np.where(move_y, iy + step_y, iy)
        t_max_x = np.where(move_x, t_max_x + t_delta_x, t_max_x)
        t_max_y = np.where(move_y, t_max_y + t_delta_y, t_max_y)

        active &= ~(t_enter > t_limit)

        hit = active & _occupied(grid, ix, iy, occupied_threshold)
        distances[hit] = t_enter[hit] * res
        active &= ~hit

    return distances


def simulate_scan(
    grid: OccupancyGrid,
    sensor_pose: np.ndarray,
    template: RangeScan,
    max_range: float,
    occupied_threshold: int = constants.OCCUPIED_THRESHOLD_DEFAULT,
) -> RangeScan:
    """
    Expected scan of a sensor at `sensor_pose`, using the angular layout of `template`.

    Beams sweep [angle_min, angle_max] in steps of angle_increment. Each sample
    is either invalid (+inf: no hit within max_range, -inf: hit closer than
    template.range_min) or a distance in [range_min, max_range].
    """
    n = expected_beam_count(template.angle_min, template.angle_max, template.angle_increment)
    n = max(n, 0)
    angles = template.angle_min + np.arange(n, dtype=float) * template.angle_increment

    ranges = cast_rays(grid, sensor_pose, angles, max_range, occupied_threshold)
    too_close = np.isfinite(ranges) & (ranges < template.range_min)
    ranges[too_close] = -np.inf

    return RangeScan(
        angle_min=template.angle_min,
        angle_max=template.angle_max,
        angle_increment=template.angle_increment,
        range_min=template.range_min,
        range_max=float(max_range),
        ranges=ranges,
        stamp=template.stamp,
        frame_id=template.frame_id,
    )


def _occupied(grid: OccupancyGrid, ix: np.ndarray, iy: np.ndarray, threshold: int) -> np.ndarray:
    inside = (ix >= 0) & (ix < grid.width) & (iy >= 0) & (iy < grid.height)
    occupied = np.zeros(ix.shape, dtype=bool)
    occupied[inside] = grid.data[iy[inside], ix[inside]] >= threshold
    return occupied
