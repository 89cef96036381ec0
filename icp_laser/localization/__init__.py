"""
Localization package.

Per-scan pipeline plus the pose state it corrects:
- gatekeeper: accept / reject corrections, owns the pose estimate
- covariance: fixed output covariance
- pipeline: simulate -> convert -> align -> gate for one scan
- report: per-scan diagnostics and running counters
- config: YAML / ROS parameter loading and validation
"""

from icp_laser.localization.covariance import covariance_matrix, pose_with_covariance
from icp_laser.localization.gatekeeper import GateDecision, PoseGatekeeper, RejectReason
from icp_laser.localization.pipeline import LocalizerContext, ScanOutcome, process_scan, record_malformed_scan
from icp_laser.localization.report import LocalizerStats, ScanReport, ScanStatus

__all__ = [
    "covariance_matrix",
    "pose_with_covariance",
    "GateDecision",
    "PoseGatekeeper",
    "RejectReason",
    "LocalizerContext",
    "ScanOutcome",
    "process_scan",
    "record_malformed_scan",
    "LocalizerStats",
    "ScanReport",
    "ScanStatus",
]
