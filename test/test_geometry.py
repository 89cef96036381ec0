"""
Tests for SE(3) operations on 6D pose vectors.
"""

import math

import numpy as np
import pytest

from icp_laser.common.geometry import (
    quat_to_rotmat,
    quat_to_rotvec,
    rotation_angle,
    rotmat_to_quat,
    rotmat_to_rotvec,
    rotvec_to_rotmat,
    se3_apply,
    se3_compose,
    se3_conjugate,
    se3_from_matrix,
    se3_from_xy_yaw,
    se3_identity,
    se3_inverse,
    se3_relative,
    se3_to_matrix,
    yaw_from_rotvec,
)


class TestRotations:

    def test_rotvec_roundtrip(self, random_pose):
        rotvec = random_pose[3:6]
        np.testing.assert_allclose(rotmat_to_rotvec(rotvec_to_rotmat(rotvec)), rotvec, atol=1e-10)

    def test_rotation_near_pi(self):
        rotvec = np.array([0.0, 0.0, math.pi - 1e-9])
        R = rotvec_to_rotmat(rotvec)
        back = rotmat_to_rotvec(R)
        np.testing.assert_allclose(rotvec_to_rotmat(back), R, atol=1e-8)
        assert rotation_angle(back) == pytest.approx(math.pi, abs=1e-6)

    def test_quaternion_roundtrip(self):
        R = rotvec_to_rotmat(np.array([0.1, -0.2, 0.3]))
        np.testing.assert_allclose(quat_to_rotmat(rotmat_to_quat(R)), R, atol=1e-12)

    def test_quaternion_yaw(self):
        half = 0.25
        R = quat_to_rotmat(0.0, 0.0, math.sin(half), math.cos(half))
        assert yaw_from_rotvec(rotmat_to_rotvec(R)) == pytest.approx(0.5)

    def test_quaternion_to_rotvec(self):
        rotvec = np.array([0.1, -0.2, 0.3])
        q = rotmat_to_quat(rotvec_to_rotmat(rotvec))
        np.testing.assert_allclose(quat_to_rotvec(np.array(q)), rotvec, atol=1e-12)
        # Unnormalized input is normalized first
        np.testing.assert_allclose(quat_to_rotvec(2.0 * np.array(q)), rotvec, atol=1e-12)

    def test_rotation_angle_is_folded(self):
        # 3π/2 about z is the same rotation as π/2 the other way
        assert rotation_angle(np.array([0.0, 0.0, 1.5 * math.pi])) == pytest.approx(0.5 * math.pi)


class TestSE3:

    def test_identity_compose(self, random_pose):
        np.testing.assert_allclose(se3_compose(se3_identity(), random_pose), random_pose, atol=1e-12)
        np.testing.assert_allclose(se3_compose(random_pose, se3_identity()), random_pose, atol=1e-12)

    def test_inverse(self, random_pose):
        np.testing.assert_allclose(se3_compose(random_pose, se3_inverse(random_pose)), se3_identity(), atol=1e-12)

    def test_matrix_roundtrip(self, random_pose):
        np.testing.assert_allclose(se3_from_matrix(se3_to_matrix(random_pose)), random_pose, atol=1e-12)

    def test_compose_matches_matrix_product(self):
        a = se3_from_xy_yaw(1.0, 2.0, 0.3)
        b = se3_from_xy_yaw(-0.5, 0.4, -1.1)
        expected = se3_to_matrix(a) @ se3_to_matrix(b)
        np.testing.assert_allclose(se3_to_matrix(se3_compose(a, b)), expected, atol=1e-12)

    def test_relative(self):
        a = se3_from_xy_yaw(1.0, 0.0, 0.5)
        b = se3_from_xy_yaw(2.0, 1.0, 0.7)
        np.testing.assert_allclose(se3_compose(a, se3_relative(a, b)), b, atol=1e-12)

    def test_apply_batch(self):
        T = se3_from_xy_yaw(1.0, 0.0, math.pi / 2)
        pts = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
        out = se3_apply(T, pts)
        np.testing.assert_allclose(out, [[1.0, 1.0, 0.0], [0.0, 0.0, 0.0]], atol=1e-12)

    def test_conjugate_moves_correction_to_body_frame(self):
        pose = se3_from_xy_yaw(2.0, 1.0, 0.8)
        correction = se3_from_xy_yaw(0.3, -0.2, 0.05)
        body = se3_conjugate(pose, correction)
        # pose ∘ D == C ∘ pose
        np.testing.assert_allclose(
            se3_compose(pose, body), se3_compose(correction, pose), atol=1e-12
        )
        # Same motion length, expressed in another frame
        assert np.linalg.norm(body[:3]) == pytest.approx(
            np.linalg.norm(se3_compose(correction, pose)[:3] - pose[:3])
        )
