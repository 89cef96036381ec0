from icp_laser.scan.pointcloud import scan_to_local_points, scan_to_points

__all__ = [
    "scan_to_local_points",
    "scan_to_points",
]
