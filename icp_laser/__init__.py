"""
icp_laser: laser scan to occupancy map ICP pose correction.

Subpackages:
- common/: geometry, core types, errors, parameter validation
- mapping/: map store and ray-cast scan simulation
- scan/: range scan -> point set conversion
- registration/: point-to-point ICP
- localization/: gating, covariance, per-scan pipeline, config loading
- ros/: ROS 2 node and message conversions
"""
