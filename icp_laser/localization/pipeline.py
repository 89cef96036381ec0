"""
Per-scan localization pipeline.

One real scan runs to completion through:

    MapStore snapshot + current pose -> simulate_scan -> simulated scan
    simulated scan -> scan_to_points -> simulated cloud (global frame)
    real scan      -> scan_to_points -> laser cloud     (global frame)
    align(laser cloud -> simulated cloud) -> map-frame correction C
    conjugate C into the body frame -> PoseGatekeeper.consider

Both clouds are projected from the same hypothesized sensor pose, so C is
the correction that moves the hypothesis onto the pose the real scan was
taken from: true ≈ C ∘ current. The gatekeeper right-composes increments,
hence D = current⁻¹ ∘ C ∘ current.

Process-wide state (map store, gatekeeper, configuration) lives in a
LocalizerContext passed in by the caller.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

import numpy as np

from icp_laser.common.errors import (
    InsufficientPoints,
    LocalizationError,
    MalformedScan,
    MapUnavailable,
    RegistrationFailed,
    TransformUnavailable,
)
from icp_laser.common.geometry import se3_apply, se3_compose, se3_conjugate
from icp_laser.common.types import RangeScan
from icp_laser.config import LocalizerConfig
from icp_laser.localization.gatekeeper import GateDecision, PoseGatekeeper
from icp_laser.localization.report import LocalizerStats, ScanReport, ScanStatus
from icp_laser.mapping.map_store import MapStore
from icp_laser.registration.icp import ICPResult, align
from icp_laser.scan.pointcloud import scan_to_points


# Sensor pose relative to the base frame, or a callable producing it per scan
SensorOffset = Union[np.ndarray, Callable[[RangeScan], np.ndarray]]

DEBUG_SIMULATED_SCAN = "simulated_scan"
DEBUG_SIMULATED_CLOUD = "simulated_cloud"
DEBUG_LASER_CLOUD = "laser_cloud"
DEBUG_TRANSFORMED_CLOUD = "transformed_laser_cloud"

_FAILURE_STATUS = {
    MapUnavailable: ScanStatus.MAP_UNAVAILABLE,
    TransformUnavailable: ScanStatus.TRANSFORM_UNAVAILABLE,
    InsufficientPoints: ScanStatus.INSUFFICIENT_POINTS,
    RegistrationFailed: ScanStatus.REGISTRATION_FAILED,
    MalformedScan: ScanStatus.MALFORMED_SCAN,
}


@dataclass
class LocalizerContext:
    """Shared state of one localizer instance."""
    config: LocalizerConfig
    map_store: MapStore
    gatekeeper: PoseGatekeeper
    stats: LocalizerStats = field(default_factory=LocalizerStats)
    lock: threading.Lock = field(default_factory=threading.Lock)

    @classmethod
    def create(
        cls,
        config: Optional[LocalizerConfig] = None,
        initial_pose: Optional[np.ndarray] = None,
    ) -> "LocalizerContext":
        config = config if config is not None else LocalizerConfig()
        return cls(
            config=config,
            map_store=MapStore(),
            gatekeeper=PoseGatekeeper(config.gate, config.covariance, initial_pose=initial_pose),
        )


@dataclass
class ScanOutcome:
    """
    Everything one scan produced.

    `debug` holds the intermediate products enabled in DebugOutputConfig,
    keyed by DEBUG_* names; whatever was computed before a failure is kept.
    """
    status: ScanStatus
    report: ScanReport
    decision: Optional[GateDecision] = None
    icp_result: Optional[ICPResult] = None
    correction: Optional[np.ndarray] = None
    error: Optional[LocalizationError] = None
    debug: Dict[str, object] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.status == ScanStatus.ACCEPTED


def process_scan(
    context: LocalizerContext,
    scan: RangeScan,
    sensor_offset: SensorOffset,
    now: Optional[float] = None,
) -> ScanOutcome:
    """
    Run one real scan through simulate -> convert -> align -> gate.

    Args:
        context: Localizer state
        scan: Real range scan
        sensor_offset: 6D pose of the sensor in the base frame, or a callable
            returning it for this scan (may raise TransformUnavailable)
        now: Time used for gating (defaults to the scan stamp, then wall time)

    Returns:
        ScanOutcome; recoverable failures are reported, not raised, and leave
        the pose estimate untouched
    """
    if now is None:
        now = scan.stamp if scan.stamp is not None else time.time()

    with context.lock:
        return _process_locked(context, scan, sensor_offset, float(now))


def record_malformed_scan(context: LocalizerContext, error: Exception) -> ScanOutcome:
    """
    Account for a scan message that could not be decoded.

    The scan is counted in the stats like any other failure; the pose
    estimate is left untouched.
    """
    exc = error if isinstance(error, MalformedScan) else MalformedScan(f"malformed scan: {error}")
    with context.lock:
        report = ScanReport(
            status=ScanStatus.MALFORMED_SCAN,
            map_version=context.map_store.version,
            notes=str(exc),
        )
        context.stats.record(report)
    return ScanOutcome(status=report.status, report=report, error=exc)


def _process_locked(
    context: LocalizerContext,
    scan: RangeScan,
    sensor_offset: SensorOffset,
    now: float,
) -> ScanOutcome:
    config = context.config
    flags = config.debug
    filters = config.filters
    started = time.perf_counter()

    report = ScanReport(status=ScanStatus.REGISTRATION_FAILED)
    debug: Dict[str, object] = {}
    result: Optional[ICPResult] = None

    try:
        snapshot = context.map_store.require()
        report.map_version = snapshot.version

        offset = sensor_offset(scan) if callable(sensor_offset) else sensor_offset
        estimate = context.gatekeeper.snapshot()
        sensor_pose = se3_compose(estimate.pose, np.asarray(offset, dtype=float).reshape(-1))

        simulated = snapshot.simulate(
            sensor_pose,
            scan,
            max_range=filters.max_simulated_point_distance,
            occupied_threshold=config.simulation.occupied_threshold,
        )
        if flags.publish_simulated_laser_scan:
            debug[DEBUG_SIMULATED_SCAN] = simulated

        sim_cloud = scan_to_points(
            simulated,
            sensor_pose,
            filters.max_simulated_point_distance,
            filters.min_simulated_point_count,
            label="simulated cloud",
        )
        report.simulated_points = int(sim_cloud.shape[0])
        if flags.publish_simulated_laser_cloud:
            debug[DEBUG_SIMULATED_CLOUD] = sim_cloud

        laser_cloud = scan_to_points(
            scan,
            sensor_pose,
            filters.max_laser_point_distance,
            filters.min_laser_point_count,
            label="laser cloud",
        )
        report.laser_points = int(laser_cloud.shape[0])
        if flags.publish_laser_cloud:
            debug[DEBUG_LASER_CLOUD] = laser_cloud

        result = align(laser_cloud, sim_cloud, config.icp.to_params())
        if flags.publish_transformed_laser_cloud:
            debug[DEBUG_TRANSFORMED_CLOUD] = se3_apply(result.transform, laser_cloud)

    except LocalizationError as exc:
        status = _FAILURE_STATUS.get(type(exc), ScanStatus.REGISTRATION_FAILED)
        if isinstance(exc, RegistrationFailed) and exc.result is not None:
            result = exc.result
        report.status = status
        report.notes = str(exc)
        _fill_icp(report, result)
        report.duration_sec = time.perf_counter() - started
        context.stats.record(report)
        return ScanOutcome(
            status=status,
            report=report,
            icp_result=result,
            error=exc,
            debug=debug,
        )

    correction = se3_conjugate(estimate.pose, result.transform)
    decision = context.gatekeeper.consider(correction, result.fitness, now)

    status = ScanStatus.ACCEPTED if decision.accepted else ScanStatus.REJECTED
    report.status = status
    _fill_icp(report, result)
    report.reject_reason = None if decision.reason is None else decision.reason.value
    report.translation_delta = decision.translation_delta
    report.rotation_delta = decision.rotation_delta
    report.duration_sec = time.perf_counter() - started
    context.stats.record(report)

    return ScanOutcome(
        status=status,
        report=report,
        decision=decision,
        icp_result=result,
        correction=correction,
        debug=debug,
    )


def _fill_icp(report: ScanReport, result: Optional[ICPResult]) -> None:
    if result is None:
        return
    report.icp_state = result.state.value
    report.icp_iterations = result.iterations
    report.fitness = float(result.fitness)
    report.inlier_count = result.inlier_count
