"""
Per-scan report for diagnostics.

Every processed scan yields a ScanReport that records:
1. The terminal status of the scan (accepted, rejected, or which failure)
2. Point counts fed into registration
3. Registration outcome (state, iterations, fitness, inliers)
4. The gate decision, when the scan got that far

Reports are plain data. The node logs them and folds them into the periodic
JSON status; nothing in the core logs.
"""

import json
import math
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class ScanStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    MAP_UNAVAILABLE = "map_unavailable"
    TRANSFORM_UNAVAILABLE = "transform_unavailable"
    INSUFFICIENT_POINTS = "insufficient_points"
    REGISTRATION_FAILED = "registration_failed"
    MALFORMED_SCAN = "malformed_scan"


# Statuses that mean the scan never reached the gate
FAILURE_STATUSES = frozenset({
    ScanStatus.MAP_UNAVAILABLE,
    ScanStatus.TRANSFORM_UNAVAILABLE,
    ScanStatus.INSUFFICIENT_POINTS,
    ScanStatus.REGISTRATION_FAILED,
    ScanStatus.MALFORMED_SCAN,
})

# Statuses reached before a map snapshot was taken
_PRE_MAP_STATUSES = frozenset({ScanStatus.MAP_UNAVAILABLE, ScanStatus.MALFORMED_SCAN})


@dataclass
class ScanReport:
    """
    Diagnostics for one scan.

    Attributes:
        status: Terminal status
        map_version: Version of the map snapshot used (0 if none)
        simulated_points: Points in the simulated cloud (None if not built)
        laser_points: Points in the real cloud (None if not built)
        icp_state: Registration terminal state
        icp_iterations: Registration iterations performed
        fitness: Registration fitness
        inlier_count: Inliers after alignment
        reject_reason: Gate rejection reason
        translation_delta: Body-frame correction length (meters)
        rotation_delta: Body-frame correction angle (radians)
        duration_sec: Wall time spent on the scan
        notes: Human-readable detail (exception message on failure)
        timestamp: When the report was generated
    """
    status: ScanStatus
    map_version: int = 0
    simulated_points: Optional[int] = None
    laser_points: Optional[int] = None
    icp_state: Optional[str] = None
    icp_iterations: Optional[int] = None
    fitness: Optional[float] = None
    inlier_count: Optional[int] = None
    reject_reason: Optional[str] = None
    translation_delta: Optional[float] = None
    rotation_delta: Optional[float] = None
    duration_sec: float = 0.0
    notes: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def validate(self) -> None:
        """
        Check the report is internally consistent.

        Raises ValueError if validation fails.
        """
        gated = self.status in (ScanStatus.ACCEPTED, ScanStatus.REJECTED)

        if gated and self.fitness is None:
            raise ValueError("Gated scan must carry a fitness.")
        if self.status == ScanStatus.REJECTED and self.reject_reason is None:
            raise ValueError("Rejected scan must name a reject reason.")
        if self.status == ScanStatus.ACCEPTED and self.reject_reason is not None:
            raise ValueError("Accepted scan cannot carry a reject reason.")
        if self.status in FAILURE_STATUSES and self.notes is None:
            raise ValueError(f"Failed scan ({self.status.value}) must explain the failure in notes.")
        if self.status not in _PRE_MAP_STATUSES and self.map_version <= 0:
            raise ValueError("Scan past the map check must record the map version.")

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "map_version": self.map_version,
            "simulated_points": self.simulated_points,
            "laser_points": self.laser_points,
            "icp_state": self.icp_state,
            "icp_iterations": self.icp_iterations,
            "fitness": _finite_or_none(self.fitness),
            "inlier_count": self.inlier_count,
            "reject_reason": self.reject_reason,
            "translation_delta": _finite_or_none(self.translation_delta),
            "rotation_delta": _finite_or_none(self.rotation_delta),
            "duration_sec": _finite_or_none(self.duration_sec),
            "notes": self.notes,
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, allow_nan=False)


def _finite_or_none(value: Optional[float]) -> Optional[float]:
    # JSON has no inf/nan; an infinite fitness means "no inliers"
    if value is None or not math.isfinite(value):
        return None
    return float(value)


class LocalizerStats:
    """Running outcome counters for the status topic."""

    def __init__(self):
        self.start_time = time.time()
        self.scan_count = 0
        self.map_count = 0
        self.status_counts = Counter()
        self.reject_counts = Counter()
        self.last_report: Optional[ScanReport] = None
        self.last_accept_time: Optional[float] = None

    def record(self, report: ScanReport) -> None:
        self.scan_count += 1
        self.status_counts[report.status.value] += 1
        if report.reject_reason is not None:
            self.reject_counts[report.reject_reason] += 1
        if report.status == ScanStatus.ACCEPTED:
            self.last_accept_time = report.timestamp
        self.last_report = report

    def record_map(self) -> None:
        self.map_count += 1

    def to_dict(self) -> dict:
        now = time.time()
        elapsed = now - self.start_time
        return {
            "timestamp": now,
            "elapsed_sec": elapsed,
            "scan_count": self.scan_count,
            "scan_rate_hz": round(self.scan_count / max(elapsed, 1.0), 1),
            "map_count": self.map_count,
            "status_counts": dict(self.status_counts),
            "reject_counts": dict(self.reject_counts),
            "last_accept_age_sec": (now - self.last_accept_time) if self.last_accept_time else None,
            "last_report": None if self.last_report is None else self.last_report.to_dict(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, allow_nan=False)
