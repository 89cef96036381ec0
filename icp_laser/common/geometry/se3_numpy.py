"""
SE(3) geometry on 6D pose vectors.

Pose / transform representation: (x, y, z, rx, ry, rz) where:
- (x, y, z): translation in R^3 (meters)
- (rx, ry, rz): rotation vector (axis-angle) in so(3) (radians)

Every pose, sensor offset and registration correction in the package uses
this representation. Rotation matrices are only materialized for composition
and point transforms, then converted back.

Numerical Policy:
    ROTATION_EPSILON = 1e-10: small-angle branch for stable trig
    SINGULARITY_EPSILON = 1e-6: threshold for the theta ~ pi branch of the log map
"""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np


# =============================================================================
# Numerical Constants (stability, not policy)
# =============================================================================

ROTATION_EPSILON: float = 1e-10

SINGULARITY_EPSILON: float = 1e-6


# =============================================================================
# Rotation vector <-> Rotation matrix conversions (so(3) <-> SO(3))
# =============================================================================


def skew(v: np.ndarray) -> np.ndarray:
    """Skew-symmetric matrix from 3-vector (hat operator)."""
    v = np.asarray(v, dtype=float).reshape(-1)
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0]
    ], dtype=float)


def unskew(S: np.ndarray) -> np.ndarray:
    """Extract 3-vector from skew-symmetric matrix (vee operator)."""
    return np.array([S[2, 1], S[0, 2], S[1, 0]], dtype=float)


def rotvec_to_rotmat(rotvec: np.ndarray) -> np.ndarray:
    """
    Convert rotation vector (axis-angle) to rotation matrix.
    Uses Rodrigues' formula: R = I + sin(θ)[ω]_× + (1-cos(θ))[ω]_×²
    """
    rotvec = np.asarray(rotvec, dtype=float).reshape(-1)
    theta = np.linalg.norm(rotvec)

    if theta < ROTATION_EPSILON:
        return np.eye(3, dtype=float) + skew(rotvec)

    axis = rotvec / theta
    K = skew(axis)
    return np.eye(3, dtype=float) + math.sin(theta) * K + (1.0 - math.cos(theta)) * (K @ K)


def rotmat_to_rotvec(R: np.ndarray) -> np.ndarray:
    """
    Convert rotation matrix to rotation vector (axis-angle).

    Handles three cases:
    1. θ ≈ 0: Extract from skew-symmetric part
    2. θ ≈ π: Axis from the symmetric part (R + I) / 2 = a a^T
    3. Otherwise: Standard formula
    """
    R = np.asarray(R, dtype=float)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")

    RRT = R @ R.T
    if not np.allclose(RRT, np.eye(3), atol=1e-5):
        raise ValueError("Input matrix is not orthogonal (R @ R.T != I)")

    trace = np.trace(R)
    theta = math.acos(np.clip((trace - 1.0) / 2.0, -1.0, 1.0))

    if theta < ROTATION_EPSILON:
        return unskew((R - R.T) / 2.0)

    if abs(theta - math.pi) < SINGULARITY_EPSILON:
        B = (R + np.eye(3)) / 2.0
        col = int(np.argmax(np.diag(B)))
        axis = B[:, col] / math.sqrt(max(B[col, col], ROTATION_EPSILON))
        axis = axis / np.linalg.norm(axis)
        return axis * theta

    rotvec = unskew((R - R.T) / 2.0)
    return rotvec * (theta / math.sin(theta))


def rotation_angle(rotvec: np.ndarray) -> float:
    """Rotation angle in [0, π] of a rotation vector."""
    theta = float(np.linalg.norm(np.asarray(rotvec, dtype=float).reshape(-1)))
    # Rotation vectors are not unique beyond π; fold back to the minimal angle.
    theta = math.fmod(theta, 2.0 * math.pi)
    return 2.0 * math.pi - theta if theta > math.pi else theta


def yaw_from_rotvec(rotvec: np.ndarray) -> float:
    """Heading (rotation about z) of a rotation vector, in (-π, π]."""
    R = rotvec_to_rotmat(rotvec)
    return math.atan2(R[1, 0], R[0, 0])


# =============================================================================
# Quaternion conversions (for ROS compatibility)
# =============================================================================


def quat_to_rotmat(x_or_q, y=None, z=None, w=None) -> np.ndarray:
    """
    Convert quaternion (x, y, z, w) to rotation matrix.

    ROS convention: q = [x, y, z, w] where w is scalar.

    Can be called as:
        quat_to_rotmat(np.array([x, y, z, w]))
        quat_to_rotmat(x, y, z, w)
    """
    if y is not None and z is not None and w is not None:
        q = np.array([x_or_q, y, z, w], dtype=float)
    else:
        q = np.asarray(x_or_q, dtype=float).reshape(-1)

    if len(q) != 4:
        raise ValueError(f"Expected 4-element quaternion, got {len(q)}")

    x, y, z, w = q[0], q[1], q[2], q[3]

    norm = math.sqrt(x*x + y*y + z*z + w*w)
    if norm < 1e-10:
        raise ValueError("Quaternion norm is too small (near zero)")
    x, y, z, w = x/norm, y/norm, z/norm, w/norm

    return np.array([
        [1 - 2*(y*y + z*z), 2*(x*y - z*w), 2*(x*z + y*w)],
        [2*(x*y + z*w), 1 - 2*(x*x + z*z), 2*(y*z - x*w)],
        [2*(x*z - y*w), 2*(y*z + x*w), 1 - 2*(x*x + y*y)]
    ], dtype=float)


def rotmat_to_quat(R: np.ndarray) -> Tuple[float, float, float, float]:
    """
    Convert rotation matrix to quaternion (x, y, z, w).

    Uses Shepperd's method for numerical stability.
    """
    R = np.asarray(R, dtype=float)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")

    trace = np.trace(R)

    if trace > 0:
        s = math.sqrt(trace + 1.0) * 2  # s = 4 * qw
        w = 0.25 * s
        x = (R[2, 1] - R[1, 2]) / s
        y = (R[0, 2] - R[2, 0]) / s
        z = (R[1, 0] - R[0, 1]) / s
    elif (R[0, 0] > R[1, 1]) and (R[0, 0] > R[2, 2]):
        s = math.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2]) * 2
        w = (R[2, 1] - R[1, 2]) / s
        x = 0.25 * s
        y = (R[0, 1] + R[1, 0]) / s
        z = (R[0, 2] + R[2, 0]) / s
    elif R[1, 1] > R[2, 2]:
        s = math.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2]) * 2
        w = (R[0, 2] - R[2, 0]) / s
        x = (R[0, 1] + R[1, 0]) / s
        y = 0.25 * s
        z = (R[1, 2] + R[2, 1]) / s
    else:
        s = math.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1]) * 2
        w = (R[1, 0] - R[0, 1]) / s
        x = (R[0, 2] + R[2, 0]) / s
        y = (R[1, 2] + R[2, 1]) / s
        z = 0.25 * s

    return (x, y, z, w)


def quat_to_rotvec(q: np.ndarray) -> np.ndarray:
    """Convert quaternion to rotation vector."""
    return rotmat_to_rotvec(quat_to_rotmat(q))


# =============================================================================
# SE(3) group operations
# =============================================================================


def se3_identity() -> np.ndarray:
    return np.zeros(6, dtype=float)


def se3_from_xy_yaw(x: float, y: float, yaw: float, z: float = 0.0) -> np.ndarray:
    """Planar pose (x, y, yaw) as a 6D vector."""
    return np.array([x, y, z, 0.0, 0.0, yaw], dtype=float)


def se3_from_rotmat_trans(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    t = np.asarray(t, dtype=float).reshape(-1)
    return np.concatenate([t, rotmat_to_rotvec(R)])


def se3_to_matrix(T: np.ndarray) -> np.ndarray:
    """4x4 homogeneous matrix of a 6D transform."""
    T = _as_pose6(T)
    M = np.eye(4, dtype=float)
    M[:3, :3] = rotvec_to_rotmat(T[3:6])
    M[:3, 3] = T[:3]
    return M


def se3_from_matrix(M: np.ndarray) -> np.ndarray:
    M = np.asarray(M, dtype=float)
    if M.shape != (4, 4):
        raise ValueError(f"Expected 4x4 matrix, got shape {M.shape}")
    return se3_from_rotmat_trans(M[:3, :3], M[:3, 3])


def se3_compose(T1: np.ndarray, T2: np.ndarray) -> np.ndarray:
    """
    Compose two SE(3) transforms: T_result = T1 ∘ T2.

    R_result = R1 R2, t_result = R1 t2 + t1
    """
    T1 = _as_pose6(T1)
    T2 = _as_pose6(T2)

    R1 = rotvec_to_rotmat(T1[3:6])
    R2 = rotvec_to_rotmat(T2[3:6])

    R_result = R1 @ R2
    t_result = R1 @ T2[:3] + T1[:3]

    return np.concatenate([t_result, rotmat_to_rotvec(R_result)])


def se3_inverse(T: np.ndarray) -> np.ndarray:
    """Inverse transform: T ∘ T_inv = I."""
    T = _as_pose6(T)
    R_inv = rotvec_to_rotmat(T[3:6]).T
    t_inv = -R_inv @ T[:3]
    return np.concatenate([t_inv, rotmat_to_rotvec(R_inv)])


def se3_relative(T_from: np.ndarray, T_to: np.ndarray) -> np.ndarray:
    """Relative transform: T_rel = T_from^{-1} ∘ T_to."""
    return se3_compose(se3_inverse(T_from), T_to)


def se3_conjugate(T_frame: np.ndarray, T: np.ndarray) -> np.ndarray:
    """
    Express a transform given in the outer frame in the frame of T_frame:
    T_frame^{-1} ∘ T ∘ T_frame.

    Used to turn a map-frame correction C (new = C ∘ pose) into the
    body-frame increment D with new = pose ∘ D.
    """
    return se3_compose(se3_inverse(T_frame), se3_compose(T, T_frame))


def se3_apply(T: np.ndarray, p: np.ndarray) -> np.ndarray:
    """
    Apply SE(3) transform to point(s): p_transformed = T * p.

    Args:
        T: SE(3) transform as 6D vector
        p: 3D point (3,) or batch of points (N, 3)

    Returns:
        3D transformed point(s), same shape as input
    """
    T = _as_pose6(T)
    p = np.asarray(p, dtype=float)

    R = rotvec_to_rotmat(T[3:6])
    t = T[:3]

    if p.ndim == 1:
        if len(p) != 3:
            raise ValueError(f"Expected 3D point, got shape {p.shape}")
        return R @ p + t
    elif p.ndim == 2:
        if p.shape[1] != 3:
            raise ValueError(f"Expected (N, 3) points, got shape {p.shape}")
        return (R @ p.T).T + t
    else:
        raise ValueError(f"Expected 1D or 2D array, got shape {p.shape}")


def _as_pose6(T: np.ndarray) -> np.ndarray:
    T = np.asarray(T, dtype=float).reshape(-1)
    if len(T) != 6:
        raise ValueError(f"Expected 6D vector, got shape {T.shape}")
    return T
