"""
Pose Gatekeeper: decides whether an ICP correction updates the estimate.

The candidate correction is a body-frame increment D; accepting it sets

    pose <- pose ∘ D

Checks, in order:
1. fitness > fitness_threshold                         -> POOR_FIT
2. |D.t| > max_jump_distance or |D.θ| > max_rotation   -> IMPLAUSIBLE_JUMP
3. |D.t| < min_jump_distance and |D.θ| < min_rotation
   and the last accepted update is younger than
   update_interval                                     -> INSIGNIFICANT_AND_TOO_SOON
4. otherwise accept and stamp the estimate with `now`

An estimate that has never been updated (stamp None) is never "too soon".
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from icp_laser.common.geometry import rotation_angle, se3_compose, se3_identity
from icp_laser.common.types import PoseEstimate, PoseWithCovariance
from icp_laser.config import CovarianceConfig, GateConfig
from icp_laser.localization.covariance import pose_with_covariance


class RejectReason(str, Enum):
    POOR_FIT = "poor_fit"
    IMPLAUSIBLE_JUMP = "implausible_jump"
    INSIGNIFICANT_AND_TOO_SOON = "insignificant_and_too_soon"


@dataclass
class GateDecision:
    """
    Result of one gate check.

    Attributes:
        accepted: True if the estimate was updated
        reason: Why the candidate was rejected (None when accepted)
        translation_delta: |D.t| in meters
        rotation_delta: |D.θ| in radians
        fitness: Registration fitness the decision was made with
        pose_with_covariance: Published pose (only when accepted)
    """
    accepted: bool
    reason: Optional[RejectReason]
    translation_delta: float
    rotation_delta: float
    fitness: float
    pose_with_covariance: Optional[PoseWithCovariance] = None

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "reason": None if self.reason is None else self.reason.value,
            "translation_delta": float(self.translation_delta),
            "rotation_delta": float(self.rotation_delta),
            "fitness": float(self.fitness),
        }


class PoseGatekeeper:
    """Owns the current pose estimate; all reads and updates go through its lock."""

    def __init__(
        self,
        gate: Optional[GateConfig] = None,
        covariance: Optional[CovarianceConfig] = None,
        initial_pose: Optional[np.ndarray] = None,
        initial_stamp: Optional[float] = None,
    ):
        self.gate = gate if gate is not None else GateConfig()
        self.covariance = covariance if covariance is not None else CovarianceConfig()
        self._lock = threading.Lock()
        pose = se3_identity() if initial_pose is None else np.array(initial_pose, dtype=float).reshape(-1)
        self._estimate = PoseEstimate(pose=pose, stamp=initial_stamp)
        self.accepted_count = 0
        self.rejected_counts = {reason: 0 for reason in RejectReason}

    def snapshot(self) -> PoseEstimate:
        """Copy of the current estimate."""
        with self._lock:
            return self._estimate.copy()

    def seed(self, pose: np.ndarray, stamp: Optional[float] = None) -> None:
        """
        Overwrite the estimate with an externally supplied pose.

        stamp=None keeps the "never updated" state, so the next correction
        is not held back by update_interval.
        """
        with self._lock:
            self._estimate = PoseEstimate(pose=np.array(pose, dtype=float).reshape(-1), stamp=stamp)

    def consider(self, candidate: np.ndarray, fitness: float, now: float) -> GateDecision:
        """
        Gate a body-frame correction and apply it if it passes.

        Args:
            candidate: 6D increment D (right-composed onto the estimate)
            fitness: Registration fitness of the scan that produced D
            now: Current time (seconds)
        """
        candidate = np.asarray(candidate, dtype=float).reshape(-1)
        translation_delta = float(np.linalg.norm(candidate[:3]))
        rotation_delta = rotation_angle(candidate[3:6])
        gate = self.gate

        def reject(reason: RejectReason) -> GateDecision:
            self.rejected_counts[reason] += 1
            return GateDecision(
                accepted=False,
                reason=reason,
                translation_delta=translation_delta,
                rotation_delta=rotation_delta,
                fitness=float(fitness),
            )

        with self._lock:
            if not fitness <= gate.fitness_threshold:
                return reject(RejectReason.POOR_FIT)

            if translation_delta > gate.max_jump_distance or rotation_delta > gate.max_rotation:
                return reject(RejectReason.IMPLAUSIBLE_JUMP)

            insignificant = translation_delta < gate.min_jump_distance and rotation_delta < gate.min_rotation
            last = self._estimate.stamp
            too_soon = last is not None and (now - last) < gate.update_interval
            if insignificant and too_soon:
                return reject(RejectReason.INSIGNIFICANT_AND_TOO_SOON)

            pose = se3_compose(self._estimate.pose, candidate)
            self._estimate = PoseEstimate(pose=pose, stamp=now)
            self.accepted_count += 1

            return GateDecision(
                accepted=True,
                reason=None,
                translation_delta=translation_delta,
                rotation_delta=rotation_delta,
                fitness=float(fitness),
                pose_with_covariance=pose_with_covariance(pose, now, self.covariance),
            )
