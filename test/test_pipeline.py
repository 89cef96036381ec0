"""
End-to-end tests of the per-scan pipeline on a synthetic room.

Scenarios:
- A: hypothesis equals the true pose
- B: hypothesis 0.5 m behind the true pose along x (recoverable)
- C: every real sample invalid
"""

import json
import math

import numpy as np
import pytest

from icp_laser.common.errors import MalformedScan, TransformUnavailable
from icp_laser.common.geometry import (
    rotation_angle,
    se3_compose,
    se3_from_xy_yaw,
    se3_identity,
    se3_relative,
    yaw_from_rotvec,
)
from icp_laser.common.types import RangeScan
from icp_laser.config import LocalizerConfig
from icp_laser.localization.gatekeeper import RejectReason
from icp_laser.localization.pipeline import (
    DEBUG_LASER_CLOUD,
    DEBUG_SIMULATED_CLOUD,
    DEBUG_SIMULATED_SCAN,
    DEBUG_TRANSFORMED_CLOUD,
    LocalizerContext,
    process_scan,
    record_malformed_scan,
)
from icp_laser.localization.report import ScanReport, ScanStatus


OFFSET = np.array([0.5, 0.0, 0.0, 0.0, 0.0, 0.0])


def _reject_constant(token):
    raise ValueError(f"non-standard JSON constant {token}")


def _context(room_grid, initial_pose, config=None) -> LocalizerContext:
    context = LocalizerContext.create(config or LocalizerConfig(), initial_pose=initial_pose)
    context.map_store.update(room_grid, stamp=0.0)
    return context


class TestScenarios:

    def test_identity(self, room_grid, real_scan_at, true_pose):
        context = _context(room_grid, true_pose)
        outcome = process_scan(context, real_scan_at(true_pose), se3_identity(), now=1.0)

        assert outcome.status in (ScanStatus.ACCEPTED, ScanStatus.REJECTED)
        assert outcome.icp_result.fitness == pytest.approx(0.0, abs=1e-9)
        assert np.linalg.norm(outcome.icp_result.transform[:3]) < 1e-6
        assert rotation_angle(outcome.icp_result.transform[3:6]) < 1e-6
        if outcome.decision.reason is not None:
            assert outcome.decision.reason != RejectReason.IMPLAUSIBLE_JUMP
        np.testing.assert_allclose(context.gatekeeper.snapshot().pose, true_pose, atol=1e-6)

    def test_recoverable_offset(self, room_grid, real_scan_at, true_pose):
        hypothesis = true_pose - OFFSET
        context = _context(room_grid, hypothesis)
        outcome = process_scan(context, real_scan_at(true_pose), se3_identity(), now=5.0)

        assert outcome.status == ScanStatus.ACCEPTED
        correction = outcome.icp_result.transform
        np.testing.assert_allclose(correction[:2], OFFSET[:2], atol=0.05)
        assert abs(yaw_from_rotvec(correction[3:6])) < 0.02

        emitted = outcome.decision.pose_with_covariance
        assert emitted is not None
        assert emitted.stamp == 5.0
        np.testing.assert_allclose(emitted.pose[:2], true_pose[:2], atol=0.05)
        assert abs(yaw_from_rotvec(emitted.pose[3:6]) - yaw_from_rotvec(true_pose[3:6])) < 0.02
        np.testing.assert_allclose(context.gatekeeper.snapshot().pose, emitted.pose)

    def test_all_samples_invalid(self, room_grid, scan_template, true_pose):
        context = _context(room_grid, true_pose - OFFSET)
        before = context.gatekeeper.snapshot()
        scan = RangeScan(
            angle_min=scan_template.angle_min,
            angle_max=scan_template.angle_max,
            angle_increment=scan_template.angle_increment,
            range_min=scan_template.range_min,
            range_max=scan_template.range_max,
            ranges=np.full(scan_template.beam_count(), np.inf),
        )
        outcome = process_scan(context, scan, se3_identity(), now=1.0)

        assert outcome.status == ScanStatus.INSUFFICIENT_POINTS
        assert outcome.decision is None
        assert not outcome.accepted
        assert outcome.report.laser_points is None
        after = context.gatekeeper.snapshot()
        np.testing.assert_array_equal(after.pose, before.pose)
        assert after.stamp is None


class TestPipelineFailures:

    def test_no_map(self, real_scan_at, true_pose):
        context = LocalizerContext.create(initial_pose=true_pose)
        outcome = process_scan(context, real_scan_at(true_pose), se3_identity(), now=1.0)
        assert outcome.status == ScanStatus.MAP_UNAVAILABLE
        assert outcome.report.map_version == 0
        outcome.report.validate()

    def test_transform_unavailable(self, room_grid, real_scan_at, true_pose):
        context = _context(room_grid, true_pose)

        def lookup(_scan):
            raise TransformUnavailable("base_link", "laser", "no data")

        outcome = process_scan(context, real_scan_at(true_pose), lookup, now=1.0)
        assert outcome.status == ScanStatus.TRANSFORM_UNAVAILABLE
        assert isinstance(outcome.error, TransformUnavailable)
        assert "laser" in outcome.report.notes
        np.testing.assert_array_equal(context.gatekeeper.snapshot().pose, true_pose)

    def test_implausible_jump_keeps_pose(self, room_grid, real_scan_at, true_pose):
        config = LocalizerConfig()
        config.gate.max_jump_distance = 0.3
        hypothesis = true_pose - OFFSET
        context = _context(room_grid, hypothesis, config)
        outcome = process_scan(context, real_scan_at(true_pose), se3_identity(), now=1.0)

        assert outcome.status == ScanStatus.REJECTED
        assert outcome.decision.reason == RejectReason.IMPLAUSIBLE_JUMP
        np.testing.assert_array_equal(context.gatekeeper.snapshot().pose, hypothesis)
        outcome.report.validate()

    def test_too_few_simulated_points(self, room_grid, real_scan_at, true_pose):
        config = LocalizerConfig()
        config.filters.min_simulated_point_count = 10_000
        context = _context(room_grid, true_pose, config)
        outcome = process_scan(context, real_scan_at(true_pose), se3_identity(), now=1.0)
        assert outcome.status == ScanStatus.INSUFFICIENT_POINTS
        assert "simulated" in outcome.report.notes

    def test_malformed_scan_is_counted(self, room_grid, true_pose):
        context = _context(room_grid, true_pose)
        outcome = record_malformed_scan(context, ValueError("angle_increment must be non-zero"))
        assert outcome.status == ScanStatus.MALFORMED_SCAN
        assert isinstance(outcome.error, MalformedScan)
        assert "angle_increment" in outcome.report.notes
        assert outcome.report.map_version == 1
        outcome.report.validate()
        assert context.stats.scan_count == 1
        assert context.stats.status_counts[ScanStatus.MALFORMED_SCAN.value] == 1
        np.testing.assert_array_equal(context.gatekeeper.snapshot().pose, true_pose)

    def test_malformed_scan_before_map(self, true_pose):
        context = LocalizerContext.create(initial_pose=true_pose)
        outcome = record_malformed_scan(context, ValueError("bad"))
        assert outcome.report.map_version == 0
        outcome.report.validate()


class TestSensorOffset:

    def test_mounted_laser(self, room_grid, real_scan_at, true_pose):
        base_to_laser = se3_from_xy_yaw(0.2, 0.0, 0.0)
        hypothesis = true_pose - OFFSET
        context = _context(room_grid, hypothesis)
        scan = real_scan_at(se3_compose(true_pose, base_to_laser))

        outcome = process_scan(context, scan, lambda _scan: base_to_laser, now=1.0)

        assert outcome.status == ScanStatus.ACCEPTED
        error = se3_relative(true_pose, context.gatekeeper.snapshot().pose)
        assert np.linalg.norm(error[:2]) < 0.05
        assert rotation_angle(error[3:6]) < 0.02


class TestDebugOutputs:

    def test_disabled_by_default(self, room_grid, real_scan_at, true_pose):
        context = _context(room_grid, true_pose)
        outcome = process_scan(context, real_scan_at(true_pose), se3_identity(), now=1.0)
        assert outcome.debug == {}

    def test_enabled_outputs(self, room_grid, real_scan_at, true_pose):
        config = LocalizerConfig()
        config.debug.publish_simulated_laser_scan = True
        config.debug.publish_simulated_laser_cloud = True
        config.debug.publish_laser_cloud = True
        config.debug.publish_transformed_laser_cloud = True
        context = _context(room_grid, true_pose - OFFSET, config)
        outcome = process_scan(context, real_scan_at(true_pose), se3_identity(), now=1.0)

        assert set(outcome.debug) == {
            DEBUG_SIMULATED_SCAN,
            DEBUG_SIMULATED_CLOUD,
            DEBUG_LASER_CLOUD,
            DEBUG_TRANSFORMED_CLOUD,
        }
        assert isinstance(outcome.debug[DEBUG_SIMULATED_SCAN], RangeScan)
        assert outcome.debug[DEBUG_SIMULATED_CLOUD].shape[0] == outcome.report.simulated_points
        assert outcome.debug[DEBUG_LASER_CLOUD].shape[0] == outcome.report.laser_points
        assert outcome.debug[DEBUG_TRANSFORMED_CLOUD].shape == outcome.debug[DEBUG_LASER_CLOUD].shape

    def test_partial_outputs_kept_on_failure(self, room_grid, scan_template, true_pose):
        config = LocalizerConfig()
        config.debug.publish_simulated_laser_cloud = True
        context = _context(room_grid, true_pose, config)
        scan = RangeScan(
            angle_min=scan_template.angle_min,
            angle_max=scan_template.angle_max,
            angle_increment=scan_template.angle_increment,
            range_min=scan_template.range_min,
            range_max=scan_template.range_max,
            ranges=np.full(scan_template.beam_count(), np.nan),
        )
        outcome = process_scan(context, scan, se3_identity(), now=1.0)
        assert outcome.status == ScanStatus.INSUFFICIENT_POINTS
        assert DEBUG_SIMULATED_CLOUD in outcome.debug


class TestReports:

    def test_stats_count_outcomes(self, room_grid, real_scan_at, true_pose):
        context = _context(room_grid, true_pose - OFFSET)
        scan = real_scan_at(true_pose)
        process_scan(context, scan, se3_identity(), now=1.0)
        # Second pass: already corrected, small residual, too soon
        second = process_scan(context, scan, se3_identity(), now=1.2)

        stats = context.stats.to_dict()
        assert stats["scan_count"] == 2
        assert stats["status_counts"][ScanStatus.ACCEPTED.value] >= 1
        assert second.status in (ScanStatus.ACCEPTED, ScanStatus.REJECTED)
        if second.status == ScanStatus.REJECTED:
            assert second.report.reject_reason == RejectReason.INSIGNIFICANT_AND_TOO_SOON.value
        assert '"scan_count": 2' in context.stats.to_json()

    def test_report_is_consistent(self, room_grid, real_scan_at, true_pose):
        context = _context(room_grid, true_pose - OFFSET)
        outcome = process_scan(context, real_scan_at(true_pose), se3_identity(), now=1.0)
        outcome.report.validate()
        d = outcome.report.to_dict()
        assert d["status"] == ScanStatus.ACCEPTED.value
        assert d["map_version"] == 1
        assert d["icp_state"] is not None
        assert d["translation_delta"] == pytest.approx(0.5, abs=0.05)

    def test_non_finite_values_serialize_as_null(self):
        report = ScanReport(
            status=ScanStatus.REGISTRATION_FAILED,
            map_version=1,
            fitness=math.inf,
            rotation_delta=math.nan,
            notes="only 0 inliers",
        )
        d = json.loads(report.to_json(), parse_constant=_reject_constant)
        assert d["fitness"] is None
        assert d["rotation_delta"] is None

    def test_stats_json_with_infinite_fitness(self, true_pose):
        context = LocalizerContext.create(initial_pose=true_pose)
        context.stats.record(ScanReport(
            status=ScanStatus.REGISTRATION_FAILED, map_version=1, fitness=math.inf, notes="no inliers",
        ))
        d = json.loads(context.stats.to_json(), parse_constant=_reject_constant)
        assert d["last_report"]["fitness"] is None
