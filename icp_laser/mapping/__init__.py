"""
Mapping package: occupancy map storage and scan simulation.
"""

from icp_laser.mapping.map_store import MapSnapshot, MapStore
from icp_laser.mapping.ray_tracer import cast_rays, simulate_scan

__all__ = [
    "MapSnapshot",
    "MapStore",
    "cast_rays",
    "simulate_scan",
]
