"""
Pydantic validation model for localizer parameters.

Mirrors PARAMETER_DEFAULTS in icp_laser.config; loaders validate YAML files
and ROS parameters against it before building a LocalizerConfig.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from icp_laser import constants


class LocalizerParams(BaseModel):
    """Validated flat parameter set for the icp_laser node."""

    model_config = ConfigDict(extra="ignore")

    # Topics
    scan_topic: str = constants.SCAN_TOPIC_DEFAULT
    map_topic: str = constants.MAP_TOPIC_DEFAULT
    pose_topic: str = constants.POSE_TOPIC_DEFAULT
    initial_pose_topic: str = constants.INITIAL_POSE_TOPIC_DEFAULT
    status_topic: str = constants.STATUS_TOPIC_DEFAULT

    # Frames
    global_frame: str = Field(constants.GLOBAL_FRAME_DEFAULT, min_length=1)
    base_frame: str = Field(constants.BASE_FRAME_DEFAULT, min_length=1)
    tf_timeout_sec: float = Field(constants.TF_TIMEOUT_SEC_DEFAULT, ge=0.0)
    track_tf_pose: bool = False

    # Simulation
    occupied_threshold: int = Field(constants.OCCUPIED_THRESHOLD_DEFAULT, ge=0, le=100)

    # Cloud filters
    max_simulated_point_distance: float = Field(constants.MAX_SIMULATED_POINT_DISTANCE_DEFAULT, gt=0.0)
    min_simulated_point_count: int = Field(constants.MIN_SIMULATED_POINT_COUNT_DEFAULT, ge=1)
    max_laser_point_distance: float = Field(constants.MAX_LASER_POINT_DISTANCE_DEFAULT, gt=0.0)
    min_laser_point_count: int = Field(constants.MIN_LASER_POINT_COUNT_DEFAULT, ge=1)

    # ICP
    icp_max_correspondence_distance: float = Field(constants.ICP_MAX_CORRESPONDENCE_DISTANCE_DEFAULT, gt=0.0)
    icp_max_iterations: int = Field(constants.ICP_MAX_ITERATIONS_DEFAULT, ge=1)
    icp_transformation_epsilon: float = Field(constants.ICP_TRANSFORMATION_EPSILON_DEFAULT, ge=0.0)
    icp_euclidean_distance_epsilon: float = Field(constants.ICP_EUCLIDEAN_DISTANCE_EPSILON_DEFAULT, ge=0.0)
    icp_min_inlier_count: int = Field(constants.ICP_MIN_INLIER_COUNT_DEFAULT, ge=constants.ICP_MIN_USABLE_POINTS)
    icp_planar: bool = constants.ICP_PLANAR_DEFAULT
    inlier_distance: float = Field(constants.INLIER_DISTANCE_DEFAULT, gt=0.0)

    # Gating
    fitness_threshold: float = Field(constants.FITNESS_THRESHOLD_DEFAULT, ge=0.0)
    max_jump_distance: float = Field(constants.MAX_JUMP_DISTANCE_DEFAULT, ge=0.0)
    min_jump_distance: float = Field(constants.MIN_JUMP_DISTANCE_DEFAULT, ge=0.0)
    max_rotation: float = Field(constants.MAX_ROTATION_DEFAULT, ge=0.0)
    min_rotation: float = Field(constants.MIN_ROTATION_DEFAULT, ge=0.0)
    update_interval: float = Field(constants.UPDATE_INTERVAL_DEFAULT, ge=0.0)

    # Covariance
    pose_covariance_xx: float = Field(constants.POSE_COVARIANCE_XX_DEFAULT, ge=0.0)
    pose_covariance_yy: float = Field(constants.POSE_COVARIANCE_YY_DEFAULT, ge=0.0)
    pose_covariance_aa: float = Field(constants.POSE_COVARIANCE_AA_DEFAULT, ge=0.0)

    # Debug outputs
    publish_simulated_laser_scan: bool = False
    publish_simulated_laser_cloud: bool = False
    publish_laser_cloud: bool = False
    publish_transformed_laser_cloud: bool = False
    status_period_sec: float = Field(constants.STATUS_PERIOD_SEC_DEFAULT, gt=0.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "LocalizerParams":
        if self.min_jump_distance > self.max_jump_distance:
            raise ValueError(
                f"min_jump_distance ({self.min_jump_distance}) exceeds max_jump_distance ({self.max_jump_distance})"
            )
        if self.min_rotation > self.max_rotation:
            raise ValueError(
                f"min_rotation ({self.min_rotation}) exceeds max_rotation ({self.max_rotation})"
            )
        if self.inlier_distance > self.icp_max_correspondence_distance:
            raise ValueError(
                "inlier_distance must not exceed icp_max_correspondence_distance"
            )
        return self
