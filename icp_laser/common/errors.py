"""
Per-scan failure taxonomy.

Every exception here aborts the processing of one scan only; the pipeline
catches `LocalizationError` and moves on to the next scan with the pose
estimate untouched.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from icp_laser.registration.icp import ICPResult


class LocalizationError(Exception):
    """Base class for recoverable per-scan failures."""


class MapUnavailable(LocalizationError):
    """No occupancy grid has been received yet."""

    def __init__(self, message: str = "no map received yet"):
        super().__init__(message)


class TransformUnavailable(LocalizationError):
    """The sensor pose could not be looked up for this scan."""

    def __init__(self, target_frame: str, source_frame: str, reason: str = ""):
        self.target_frame = target_frame
        self.source_frame = source_frame
        detail = f": {reason}" if reason else ""
        super().__init__(f"transform {target_frame} <- {source_frame} unavailable{detail}")


class InsufficientPoints(LocalizationError):
    """A filtered point set holds fewer points than required."""

    def __init__(self, count: int, required: int, label: str = "cloud"):
        self.count = int(count)
        self.required = int(required)
        self.label = label
        super().__init__(f"{label} has {self.count} points, need {self.required}")


class RegistrationFailed(LocalizationError):
    """Registration could not produce a usable alignment."""

    def __init__(self, message: str, result: Optional["ICPResult"] = None):
        self.result = result
        super().__init__(message)


class MalformedScan(LocalizationError):
    """The incoming scan message could not be turned into a RangeScan."""
