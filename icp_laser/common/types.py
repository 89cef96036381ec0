"""
Core value types: occupancy grid, range scan, pose estimate.

Point sets are plain (N, 3) float64 arrays and transforms / poses are 6D
vectors (see icp_laser.common.geometry), so neither gets a class here.

Range samples follow REP 117:
    +inf  no return within range_max
    -inf  return closer than range_min
    nan   erroneous / unknown measurement
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from icp_laser.common.geometry import se3_apply, se3_inverse, se3_identity


# Occupancy cell values (nav_msgs/OccupancyGrid convention)
CELL_UNKNOWN = -1
CELL_FREE = 0
CELL_OCCUPIED = 100


@dataclass(frozen=True)
class OccupancyGrid:
    """
    Static 2D occupancy map.

    Attributes:
        resolution: Cell edge length (meters)
        data: (height, width) int8 array, row-major; -1 unknown, 0..100 occupancy
        origin: 6D pose of the corner of cell (0, 0) in the world frame
    """
    resolution: float
    data: np.ndarray
    origin: np.ndarray = field(default_factory=se3_identity)

    def __post_init__(self):
        data = np.array(self.data, dtype=np.int8, copy=True)
        if data.ndim != 2:
            raise ValueError(f"Expected 2D grid, got shape {data.shape}")
        if not self.resolution > 0.0:
            raise ValueError(f"Grid resolution must be positive, got {self.resolution}")
        data.setflags(write=False)
        origin = np.array(self.origin, dtype=float).reshape(-1)
        if origin.shape != (6,):
            raise ValueError(f"Expected 6D origin pose, got shape {origin.shape}")
        origin.setflags(write=False)
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "origin", origin)
        object.__setattr__(self, "resolution", float(self.resolution))

    @classmethod
    def from_flat(cls, width: int, height: int, resolution: float, values, origin=None) -> "OccupancyGrid":
        """Build from a flat row-major cell list, as carried by the map message."""
        values = np.asarray(values, dtype=np.int8).reshape(-1)
        if values.size != width * height:
            raise ValueError(
                f"Grid data has {values.size} cells, expected {width}x{height}={width * height}"
            )
        return cls(
            resolution=resolution,
            data=values.reshape(height, width),
            origin=se3_identity() if origin is None else origin,
        )

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    def world_to_grid_frame(self, points: np.ndarray) -> np.ndarray:
        """Express world points (N, 3) or (3,) in the grid frame (meters)."""
        return se3_apply(se3_inverse(self.origin), points)

    def world_to_cell(self, x: float, y: float) -> Tuple[int, int]:
        """(col, row) of the cell containing a world position; may lie outside the grid."""
        local = self.world_to_grid_frame(np.array([x, y, 0.0], dtype=float))
        return (
            int(math.floor(local[0] / self.resolution)),
            int(math.floor(local[1] / self.resolution)),
        )

    def cell_to_world(self, col: int, row: int) -> Tuple[float, float]:
        """World position of a cell center."""
        local = np.array([(col + 0.5) * self.resolution, (row + 0.5) * self.resolution, 0.0])
        world = se3_apply(self.origin, local)
        return float(world[0]), float(world[1])

    def in_bounds(self, col: int, row: int) -> bool:
        return 0 <= col < self.width and 0 <= row < self.height

    def is_occupied(self, col: int, row: int, threshold: int = 65) -> bool:
        if not self.in_bounds(col, row):
            return False
        return int(self.data[row, col]) >= threshold


@dataclass
class RangeScan:
    """
    Planar range scan.

    Beam i points at angle_min + i * angle_increment in the sensor frame.
    """
    angle_min: float
    angle_max: float
    angle_increment: float
    range_min: float
    range_max: float
    ranges: np.ndarray
    stamp: Optional[float] = None
    frame_id: str = ""

    def __post_init__(self):
        self.ranges = np.asarray(self.ranges, dtype=float).reshape(-1)
        if self.angle_increment == 0.0:
            raise ValueError("angle_increment must be non-zero")

    def beam_count(self) -> int:
        return int(self.ranges.size)

    def angles(self) -> np.ndarray:
        return self.angle_min + np.arange(self.ranges.size, dtype=float) * self.angle_increment

    def valid_mask(self) -> np.ndarray:
        """Samples that are finite and inside [range_min, range_max]."""
        r = self.ranges
        valid = np.isfinite(r)
        valid &= (r >= self.range_min)
        valid &= (r <= self.range_max)
        return valid


def expected_beam_count(angle_min: float, angle_max: float, angle_increment: float) -> int:
    """Beams covering [angle_min, angle_max] inclusive at the given increment."""
    return int(round((angle_max - angle_min) / angle_increment)) + 1


@dataclass
class PoseEstimate:
    """Current best pose and the time of its last accepted update (None if never)."""
    pose: np.ndarray = field(default_factory=se3_identity)
    stamp: Optional[float] = None

    def copy(self) -> "PoseEstimate":
        return PoseEstimate(pose=np.array(self.pose, dtype=float), stamp=self.stamp)


@dataclass(frozen=True)
class PoseWithCovariance:
    """
    Emitted pose with a fixed 6x6 covariance.

    Covariance layout follows geometry_msgs/PoseWithCovariance:
    (x, y, z, rotation about x, rotation about y, rotation about z).
    """
    pose: np.ndarray
    covariance: np.ndarray
    stamp: Optional[float] = None

    def covariance_flat(self) -> list:
        return [float(v) for v in np.asarray(self.covariance, dtype=float).reshape(-1)]
