"""
ROS message <-> core type conversions - NO ROS IMPORTS.

Readers take any object shaped like the ROS message (attribute access only),
so they work on real messages and on test doubles alike. Writers fill the
fields of a message instance the caller created.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from icp_laser.common.geometry import quat_to_rotvec, rotmat_to_quat, rotvec_to_rotmat
from icp_laser.common.types import OccupancyGrid, RangeScan


CLOUD_POINT_STEP = 12  # x, y, z float32


def stamp_to_sec(stamp) -> float:
    """Convert ROS timestamp to seconds."""
    return float(stamp.sec) + float(stamp.nanosec) * 1e-9


def sec_to_stamp(sec: float) -> Tuple[int, int]:
    """Seconds -> (sec, nanosec) for builtin_interfaces/Time."""
    whole = int(np.floor(sec))
    nanosec = int(round((sec - whole) * 1e9))
    if nanosec >= 1_000_000_000:
        whole += 1
        nanosec -= 1_000_000_000
    return whole, nanosec


def pose_from_pose_msg(pose) -> np.ndarray:
    """geometry_msgs/Pose -> 6D pose."""
    p = pose.position
    q = pose.orientation
    rotvec = quat_to_rotvec([q.x, q.y, q.z, q.w])
    return np.array([p.x, p.y, p.z, rotvec[0], rotvec[1], rotvec[2]], dtype=float)


def pose_from_transform_msg(transform) -> np.ndarray:
    """geometry_msgs/Transform -> 6D pose."""
    t = transform.translation
    q = transform.rotation
    rotvec = quat_to_rotvec([q.x, q.y, q.z, q.w])
    return np.array([t.x, t.y, t.z, rotvec[0], rotvec[1], rotvec[2]], dtype=float)


def pose_to_quaternion(pose: np.ndarray) -> Tuple[float, float, float, float]:
    """Orientation of a 6D pose as (x, y, z, w)."""
    pose = np.asarray(pose, dtype=float).reshape(-1)
    x, y, z, w = rotmat_to_quat(rotvec_to_rotmat(pose[3:6]))
    return float(x), float(y), float(z), float(w)


def fill_pose_msg(msg, pose: np.ndarray):
    """Write a 6D pose into a geometry_msgs/Pose."""
    pose = np.asarray(pose, dtype=float).reshape(-1)
    msg.position.x = float(pose[0])
    msg.position.y = float(pose[1])
    msg.position.z = float(pose[2])
    qx, qy, qz, qw = pose_to_quaternion(pose)
    msg.orientation.x = qx
    msg.orientation.y = qy
    msg.orientation.z = qz
    msg.orientation.w = qw
    return msg


def occupancy_grid_from_msg(msg) -> OccupancyGrid:
    """nav_msgs/OccupancyGrid -> OccupancyGrid."""
    info = msg.info
    return OccupancyGrid.from_flat(
        width=int(info.width),
        height=int(info.height),
        resolution=float(info.resolution),
        values=msg.data,
        origin=pose_from_pose_msg(info.origin),
    )


def range_scan_from_msg(msg) -> RangeScan:
    """sensor_msgs/LaserScan -> RangeScan."""
    header = msg.header
    return RangeScan(
        angle_min=float(msg.angle_min),
        angle_max=float(msg.angle_max),
        angle_increment=float(msg.angle_increment),
        range_min=float(msg.range_min),
        range_max=float(msg.range_max),
        ranges=np.asarray(msg.ranges, dtype=float),
        stamp=stamp_to_sec(header.stamp),
        frame_id=str(header.frame_id),
    )


def fill_laser_scan_msg(msg, scan: RangeScan, scan_time: Optional[float] = None):
    """Write a RangeScan into a sensor_msgs/LaserScan (header left to the caller)."""
    msg.angle_min = float(scan.angle_min)
    msg.angle_max = float(scan.angle_max)
    msg.angle_increment = float(scan.angle_increment)
    msg.time_increment = 0.0
    msg.scan_time = 0.0 if scan_time is None else float(scan_time)
    msg.range_min = float(scan.range_min)
    msg.range_max = float(scan.range_max)
    msg.ranges = [float(r) for r in scan.ranges]
    msg.intensities = []
    return msg


def points_to_cloud_bytes(points: np.ndarray) -> bytes:
    """(N, 3) points -> packed little-endian float32 x, y, z records."""
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    return points.astype("<f4").tobytes()


def cloud_bytes_to_points(data: bytes) -> np.ndarray:
    """Inverse of points_to_cloud_bytes."""
    return np.frombuffer(bytes(data), dtype="<f4").reshape(-1, 3).astype(float)
