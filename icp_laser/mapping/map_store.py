"""
Map Store: holds the current occupancy grid.

The grid is replaced wholesale on every map message. Readers take a
`MapSnapshot` once per scan and work against it, so a map arriving mid-scan
never mixes two grids into one registration.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np

from icp_laser import constants
from icp_laser.common.errors import MapUnavailable
from icp_laser.common.types import OccupancyGrid, RangeScan
from icp_laser.mapping.ray_tracer import simulate_scan


@dataclass(frozen=True)
class MapSnapshot:
    """Immutable view of one received map."""
    grid: OccupancyGrid
    version: int
    stamp: Optional[float] = None

    def simulate(
        self,
        sensor_pose: np.ndarray,
        template: RangeScan,
        max_range: float,
        occupied_threshold: int = constants.OCCUPIED_THRESHOLD_DEFAULT,
    ) -> RangeScan:
        return simulate_scan(self.grid, sensor_pose, template, max_range, occupied_threshold)


class MapStore:
    """Thread-safe holder of the latest map snapshot."""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: Optional[MapSnapshot] = None

    @property
    def has_map(self) -> bool:
        return self._snapshot is not None

    @property
    def version(self) -> int:
        snapshot = self._snapshot
        return 0 if snapshot is None else snapshot.version

    def update(self, grid: OccupancyGrid, stamp: Optional[float] = None) -> MapSnapshot:
        """Replace the stored map; returns the new snapshot."""
        with self._lock:
            version = 1 if self._snapshot is None else self._snapshot.version + 1
            self._snapshot = MapSnapshot(grid=grid, version=version, stamp=stamp)
            return self._snapshot

    def snapshot(self) -> Optional[MapSnapshot]:
        with self._lock:
            return self._snapshot

    def require(self) -> MapSnapshot:
        """Current snapshot, or MapUnavailable if no map has arrived."""
        snapshot = self.snapshot()
        if snapshot is None:
            raise MapUnavailable()
        return snapshot

    def simulate(
        self,
        sensor_pose: np.ndarray,
        template: RangeScan,
        max_range: float,
        occupied_threshold: int = constants.OCCUPIED_THRESHOLD_DEFAULT,
    ) -> RangeScan:
        """Simulate a scan against the current map (MapUnavailable if none)."""
        return self.require().simulate(sensor_pose, template, max_range, occupied_threshold)
