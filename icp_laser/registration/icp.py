"""
Point-to-point ICP registration.

Aligns a source point set onto a target point set:

    minimize Σ ||R p_i + t - q_nn(i)||^2   over correspondences within
                                           max_correspondence_distance (inclusive)

Nearest neighbors come from a scipy cKDTree built once over the target. Each
iteration solves the rigid fit in closed form (SVD, reflection guarded) and
composes it onto the running estimate.

Termination follows the usual ICP convergence criteria:
- incremental transform: ||Δt||² <= transformation_epsilon and
  cos(Δθ) >= 1 - transformation_epsilon
- correspondence MSE: |mse_k - mse_{k-1}| / mse_{k-1} < euclidean_distance_epsilon,
  or an absolute change below ICP_MSE_ABSOLUTE_EPSILON
- iteration cap: max_iterations

Fitness is the mean squared nearest-neighbor distance over inlier
correspondences (distance <= inlier_distance) after the final transform.
Lower is better; it is bounded by inlier_distance².
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import numpy as np
from scipy.spatial import cKDTree

from icp_laser import constants
from icp_laser.common.errors import RegistrationFailed
from icp_laser.common.geometry import (
    rotvec_to_rotmat,
    se3_from_rotmat_trans,
)


# =============================================================================
# Data Structures
# =============================================================================


class ICPState(str, Enum):
    NOT_STARTED = "not_started"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITERATIONS = "max_iterations"
    INSUFFICIENT_OVERLAP = "insufficient_overlap"


@dataclass(frozen=True)
class ICPParams:
    """Registration parameter bundle."""
    max_correspondence_distance: float = constants.ICP_MAX_CORRESPONDENCE_DISTANCE_DEFAULT
    max_iterations: int = constants.ICP_MAX_ITERATIONS_DEFAULT
    transformation_epsilon: float = constants.ICP_TRANSFORMATION_EPSILON_DEFAULT
    euclidean_distance_epsilon: float = constants.ICP_EUCLIDEAN_DISTANCE_EPSILON_DEFAULT
    inlier_distance: float = constants.INLIER_DISTANCE_DEFAULT
    min_inlier_count: int = constants.ICP_MIN_INLIER_COUNT_DEFAULT
    planar: bool = constants.ICP_PLANAR_DEFAULT


@dataclass
class ICPResult:
    """
    Outcome of one registration.

    Attributes:
        transform: 6D transform mapping source points onto the target
        fitness: Mean squared inlier distance (inf when there are no inliers)
        inlier_count: Correspondences within inlier_distance after alignment
        correspondence_count: Correspondences used in the last iteration
        iterations: Iterations performed
        state: Terminal state
        mse: Correspondence MSE of the last iteration
    """
    transform: np.ndarray
    fitness: float
    inlier_count: int
    correspondence_count: int
    iterations: int
    state: ICPState
    mse: float = math.inf

    @property
    def converged(self) -> bool:
        return self.state == ICPState.CONVERGED

    def to_dict(self) -> dict:
        return {
            "transform": [float(v) for v in self.transform],
            "fitness": float(self.fitness),
            "inlier_count": int(self.inlier_count),
            "correspondence_count": int(self.correspondence_count),
            "iterations": int(self.iterations),
            "state": self.state.value,
            "mse": float(self.mse),
        }


# =============================================================================
# Closed-form rigid fit
# =============================================================================


def best_fit_rigid(
    src: np.ndarray,
    dst: np.ndarray,
    planar: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Least-squares rigid transform (R, t) with R @ src_i + t ≈ dst_i.

    Args:
        src: (N, 3) source points
        dst: (N, 3) matched target points
        planar: Restrict to rotation about z and translation in x/y

    Returns:
        (R, t) with R a proper rotation (det = +1)
    """
    src = np.asarray(src, dtype=float)
    dst = np.asarray(dst, dtype=float)
    if src.shape != dst.shape or src.ndim != 2 or src.shape[1] != 3:
        raise ValueError(f"Expected matching (N, 3) arrays, got {src.shape} and {dst.shape}")

    c_src = src.mean(axis=0)
    c_dst = dst.mean(axis=0)
    H = (src - c_src).T @ (dst - c_dst)

    R = np.eye(3, dtype=float)
    if planar:
        U, _, Vt = np.linalg.svd(H[:2, :2])
        d = 1.0 if np.linalg.det(Vt.T @ U.T) >= 0.0 else -1.0
        R[:2, :2] = Vt.T @ np.diag([1.0, d]) @ U.T
        t = c_dst - R @ c_src
        t[2] = 0.0
    else:
        U, _, Vt = np.linalg.svd(H)
        d = 1.0 if np.linalg.det(Vt.T @ U.T) >= 0.0 else -1.0
        R = Vt.T @ np.diag([1.0, 1.0, d]) @ U.T
        t = c_dst - R @ c_src

    return R, t


# =============================================================================
# Main Operator
# =============================================================================


def icp(
    source: np.ndarray,
    target: np.ndarray,
    params: ICPParams,
    initial_guess: Optional[np.ndarray] = None,
    target_tree: Optional[cKDTree] = None,
) -> ICPResult:
    """
    Run ICP to a terminal state without judging the result.

    Every terminal state carries the transform reached so far; callers
    inspect fitness and inlier_count (see `align`) before trusting it.
    """
    source = _as_points(source, "source")
    target = _as_points(target, "target")
    tree = target_tree if target_tree is not None else cKDTree(target)

    if initial_guess is None:
        R = np.eye(3, dtype=float)
        t = np.zeros(3, dtype=float)
    else:
        guess = np.asarray(initial_guess, dtype=float).reshape(-1)
        R = rotvec_to_rotmat(guess[3:6])
        t = guess[:3].copy()

    min_pairs = max(int(params.min_inlier_count), constants.ICP_MIN_USABLE_POINTS)
    state = ICPState.NOT_STARTED
    iterations = 0
    n_corr = 0
    mse = math.inf
    prev_mse: Optional[float] = None

    for iteration in range(1, int(params.max_iterations) + 1):
        state = ICPState.ITERATING
        moved = source @ R.T + t
        dists, idx = tree.query(moved, k=1, distance_upper_bound=_inclusive(params.max_correspondence_distance))
        matched = np.isfinite(dists)
        n_corr = int(np.count_nonzero(matched))
        if n_corr < min_pairs:
            state = ICPState.INSUFFICIENT_OVERLAP
            break

        mse = float(np.mean(dists[matched] ** 2))
        dR, dt = best_fit_rigid(moved[matched], target[idx[matched]], planar=params.planar)
        R = dR @ R
        t = dR @ t + dt
        iterations = iteration

        if _transform_converged(dR, dt, params.transformation_epsilon):
            state = ICPState.CONVERGED
            break
        if prev_mse is not None and _mse_converged(mse, prev_mse, params.euclidean_distance_epsilon):
            state = ICPState.CONVERGED
            break
        prev_mse = mse
    else:
        state = ICPState.MAX_ITERATIONS

    fitness, inlier_count = _inlier_fitness(source @ R.T + t, tree, params.inlier_distance)

    return ICPResult(
        transform=se3_from_rotmat_trans(R, t),
        fitness=fitness,
        inlier_count=inlier_count,
        correspondence_count=n_corr,
        iterations=iterations,
        state=state,
        mse=mse,
    )


def align(
    source: np.ndarray,
    target: np.ndarray,
    params: ICPParams,
    initial_guess: Optional[np.ndarray] = None,
) -> ICPResult:
    """
    Register `source` onto `target` and check the result is usable.

    Returns:
        ICPResult whose transform maps source points onto the target

    Raises:
        RegistrationFailed: Either set is too small to fit a rigid transform,
            the clouds do not overlap within max_correspondence_distance, or
            fewer than min_inlier_count inliers remain after alignment
    """
    source = _as_points(source, "source")
    target = _as_points(target, "target")

    n_min = constants.ICP_MIN_USABLE_POINTS
    if source.shape[0] < n_min or target.shape[0] < n_min:
        raise RegistrationFailed(
            f"degenerate input: source={source.shape[0]} target={target.shape[0]} points, need {n_min}"
        )

    result = icp(source, target, params, initial_guess=initial_guess)

    if result.state == ICPState.INSUFFICIENT_OVERLAP:
        raise RegistrationFailed(
            f"insufficient overlap: {result.correspondence_count} correspondences "
            f"within {params.max_correspondence_distance:.3f} m",
            result=result,
        )
    if result.inlier_count < params.min_inlier_count:
        raise RegistrationFailed(
            f"only {result.inlier_count} inliers within {params.inlier_distance:.3f} m "
            f"(need {params.min_inlier_count})",
            result=result,
        )
    return result


def mean_nearest_distance(points: np.ndarray, target: np.ndarray) -> float:
    """Mean distance from each point to its nearest neighbor in target."""
    points = _as_points(points, "points")
    target = _as_points(target, "target")
    if points.shape[0] == 0 or target.shape[0] == 0:
        return math.inf
    dists, _ = cKDTree(target).query(points, k=1)
    return float(np.mean(dists))


def _transform_converged(dR: np.ndarray, dt: np.ndarray, epsilon: float) -> bool:
    cos_angle = 0.5 * (float(np.trace(dR)) - 1.0)
    return float(dt @ dt) <= epsilon and cos_angle >= 1.0 - epsilon


def _mse_converged(mse: float, prev_mse: float, epsilon: float) -> bool:
    change = abs(mse - prev_mse)
    if change < constants.ICP_MSE_ABSOLUTE_EPSILON:
        return True
    return prev_mse > 0.0 and change / prev_mse < epsilon


def _inclusive(bound: float) -> float:
    # cKDTree drops neighbors at exactly distance_upper_bound
    return float(np.nextafter(bound, np.inf))


def _inlier_fitness(moved: np.ndarray, tree: cKDTree, inlier_distance: float) -> Tuple[float, int]:
    dists, _ = tree.query(moved, k=1, distance_upper_bound=_inclusive(inlier_distance))
    inliers = np.isfinite(dists)
    count = int(np.count_nonzero(inliers))
    if count == 0:
        return math.inf, 0
    return float(np.mean(dists[inliers] ** 2)), count


def _as_points(points: np.ndarray, name: str) -> np.ndarray:
    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"Expected (N, 3) {name} points, got shape {points.shape}")
    return points
