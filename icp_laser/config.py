"""
Configuration classes for icp_laser parameters.

Organizes parameters into logical groups. Every ROS parameter the node
declares is listed in PARAMETER_DEFAULTS; the groups are built from that flat
name -> value mapping, whether it comes from a ROS node or a YAML file.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from icp_laser import constants
from icp_laser.registration.icp import ICPParams


PARAMETER_DEFAULTS: Dict[str, Any] = {
    # Topics
    "scan_topic": constants.SCAN_TOPIC_DEFAULT,
    "map_topic": constants.MAP_TOPIC_DEFAULT,
    "pose_topic": constants.POSE_TOPIC_DEFAULT,
    "initial_pose_topic": constants.INITIAL_POSE_TOPIC_DEFAULT,
    "status_topic": constants.STATUS_TOPIC_DEFAULT,
    # Frames
    "global_frame": constants.GLOBAL_FRAME_DEFAULT,
    "base_frame": constants.BASE_FRAME_DEFAULT,
    "tf_timeout_sec": constants.TF_TIMEOUT_SEC_DEFAULT,
    "track_tf_pose": False,
    # Simulation
    "occupied_threshold": constants.OCCUPIED_THRESHOLD_DEFAULT,
    # Cloud filters
    "max_simulated_point_distance": constants.MAX_SIMULATED_POINT_DISTANCE_DEFAULT,
    "min_simulated_point_count": constants.MIN_SIMULATED_POINT_COUNT_DEFAULT,
    "max_laser_point_distance": constants.MAX_LASER_POINT_DISTANCE_DEFAULT,
    "min_laser_point_count": constants.MIN_LASER_POINT_COUNT_DEFAULT,
    # ICP
    "icp_max_correspondence_distance": constants.ICP_MAX_CORRESPONDENCE_DISTANCE_DEFAULT,
    "icp_max_iterations": constants.ICP_MAX_ITERATIONS_DEFAULT,
    "icp_transformation_epsilon": constants.ICP_TRANSFORMATION_EPSILON_DEFAULT,
    "icp_euclidean_distance_epsilon": constants.ICP_EUCLIDEAN_DISTANCE_EPSILON_DEFAULT,
    "icp_min_inlier_count": constants.ICP_MIN_INLIER_COUNT_DEFAULT,
    "icp_planar": constants.ICP_PLANAR_DEFAULT,
    "inlier_distance": constants.INLIER_DISTANCE_DEFAULT,
    # Gating
    "fitness_threshold": constants.FITNESS_THRESHOLD_DEFAULT,
    "max_jump_distance": constants.MAX_JUMP_DISTANCE_DEFAULT,
    "min_jump_distance": constants.MIN_JUMP_DISTANCE_DEFAULT,
    "max_rotation": constants.MAX_ROTATION_DEFAULT,
    "min_rotation": constants.MIN_ROTATION_DEFAULT,
    "update_interval": constants.UPDATE_INTERVAL_DEFAULT,
    # Covariance
    "pose_covariance_xx": constants.POSE_COVARIANCE_XX_DEFAULT,
    "pose_covariance_yy": constants.POSE_COVARIANCE_YY_DEFAULT,
    "pose_covariance_aa": constants.POSE_COVARIANCE_AA_DEFAULT,
    # Debug outputs
    "publish_simulated_laser_scan": False,
    "publish_simulated_laser_cloud": False,
    "publish_laser_cloud": False,
    "publish_transformed_laser_cloud": False,
    "status_period_sec": constants.STATUS_PERIOD_SEC_DEFAULT,
}


@dataclass
class TopicConfig:
    """ROS topic configuration."""
    scan_topic: str = constants.SCAN_TOPIC_DEFAULT
    map_topic: str = constants.MAP_TOPIC_DEFAULT
    pose_topic: str = constants.POSE_TOPIC_DEFAULT
    initial_pose_topic: str = constants.INITIAL_POSE_TOPIC_DEFAULT
    status_topic: str = constants.STATUS_TOPIC_DEFAULT

    sim_scan_topic: str = constants.SIM_SCAN_TOPIC_DEFAULT
    sim_cloud_topic: str = constants.SIM_CLOUD_TOPIC_DEFAULT
    laser_cloud_topic: str = constants.LASER_CLOUD_TOPIC_DEFAULT
    transformed_cloud_topic: str = constants.TRANSFORMED_CLOUD_TOPIC_DEFAULT


@dataclass
class FrameConfig:
    """TF frame configuration."""
    global_frame: str = constants.GLOBAL_FRAME_DEFAULT
    base_frame: str = constants.BASE_FRAME_DEFAULT
    tf_timeout_sec: float = constants.TF_TIMEOUT_SEC_DEFAULT
    track_tf_pose: bool = False  # Re-seed the estimate from TF (global <- base) before each scan


@dataclass
class SimulationConfig:
    """Scan simulation configuration."""
    occupied_threshold: int = constants.OCCUPIED_THRESHOLD_DEFAULT


@dataclass
class CloudFilterConfig:
    """Scan -> point cloud filtering, separately for simulated and real scans."""
    max_simulated_point_distance: float = constants.MAX_SIMULATED_POINT_DISTANCE_DEFAULT
    min_simulated_point_count: int = constants.MIN_SIMULATED_POINT_COUNT_DEFAULT
    max_laser_point_distance: float = constants.MAX_LASER_POINT_DISTANCE_DEFAULT
    min_laser_point_count: int = constants.MIN_LASER_POINT_COUNT_DEFAULT


@dataclass
class ICPConfig:
    """ICP solver configuration."""
    max_correspondence_distance: float = constants.ICP_MAX_CORRESPONDENCE_DISTANCE_DEFAULT
    max_iterations: int = constants.ICP_MAX_ITERATIONS_DEFAULT
    transformation_epsilon: float = constants.ICP_TRANSFORMATION_EPSILON_DEFAULT
    euclidean_distance_epsilon: float = constants.ICP_EUCLIDEAN_DISTANCE_EPSILON_DEFAULT
    inlier_distance: float = constants.INLIER_DISTANCE_DEFAULT
    min_inlier_count: int = constants.ICP_MIN_INLIER_COUNT_DEFAULT
    planar: bool = constants.ICP_PLANAR_DEFAULT

    def to_params(self) -> ICPParams:
        return ICPParams(
            max_correspondence_distance=self.max_correspondence_distance,
            max_iterations=self.max_iterations,
            transformation_epsilon=self.transformation_epsilon,
            euclidean_distance_epsilon=self.euclidean_distance_epsilon,
            inlier_distance=self.inlier_distance,
            min_inlier_count=self.min_inlier_count,
            planar=self.planar,
        )


@dataclass
class GateConfig:
    """Pose update gating configuration."""
    fitness_threshold: float = constants.FITNESS_THRESHOLD_DEFAULT
    max_jump_distance: float = constants.MAX_JUMP_DISTANCE_DEFAULT
    min_jump_distance: float = constants.MIN_JUMP_DISTANCE_DEFAULT
    max_rotation: float = constants.MAX_ROTATION_DEFAULT
    min_rotation: float = constants.MIN_ROTATION_DEFAULT
    update_interval: float = constants.UPDATE_INTERVAL_DEFAULT


@dataclass
class CovarianceConfig:
    """Fixed covariance attached to published poses."""
    pose_covariance_xx: float = constants.POSE_COVARIANCE_XX_DEFAULT
    pose_covariance_yy: float = constants.POSE_COVARIANCE_YY_DEFAULT
    pose_covariance_aa: float = constants.POSE_COVARIANCE_AA_DEFAULT


@dataclass
class DebugOutputConfig:
    """Optional debug outputs, toggled at runtime."""
    publish_simulated_laser_scan: bool = False
    publish_simulated_laser_cloud: bool = False
    publish_laser_cloud: bool = False
    publish_transformed_laser_cloud: bool = False
    status_period_sec: float = constants.STATUS_PERIOD_SEC_DEFAULT

    @property
    def any_enabled(self) -> bool:
        return (
            self.publish_simulated_laser_scan
            or self.publish_simulated_laser_cloud
            or self.publish_laser_cloud
            or self.publish_transformed_laser_cloud
        )


@dataclass
class LocalizerConfig:
    """Complete localizer configuration."""
    topics: TopicConfig = field(default_factory=TopicConfig)
    frames: FrameConfig = field(default_factory=FrameConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    filters: CloudFilterConfig = field(default_factory=CloudFilterConfig)
    icp: ICPConfig = field(default_factory=ICPConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    covariance: CovarianceConfig = field(default_factory=CovarianceConfig)
    debug: DebugOutputConfig = field(default_factory=DebugOutputConfig)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]):
        """Create configuration from a flat parameter mapping (missing keys use defaults)."""
        p = dict(PARAMETER_DEFAULTS)
        p.update({k: v for k, v in params.items() if k in PARAMETER_DEFAULTS})

        topics = TopicConfig(
            scan_topic=str(p["scan_topic"]),
            map_topic=str(p["map_topic"]),
            pose_topic=str(p["pose_topic"]),
            initial_pose_topic=str(p["initial_pose_topic"]),
            status_topic=str(p["status_topic"]),
        )

        frames = FrameConfig(
            global_frame=str(p["global_frame"]),
            base_frame=str(p["base_frame"]),
            tf_timeout_sec=float(p["tf_timeout_sec"]),
            track_tf_pose=bool(p["track_tf_pose"]),
        )

        simulation = SimulationConfig(
            occupied_threshold=int(p["occupied_threshold"]),
        )

        filters = CloudFilterConfig(
            max_simulated_point_distance=float(p["max_simulated_point_distance"]),
            min_simulated_point_count=int(p["min_simulated_point_count"]),
            max_laser_point_distance=float(p["max_laser_point_distance"]),
            min_laser_point_count=int(p["min_laser_point_count"]),
        )

        icp = ICPConfig(
            max_correspondence_distance=float(p["icp_max_correspondence_distance"]),
            max_iterations=int(p["icp_max_iterations"]),
            transformation_epsilon=float(p["icp_transformation_epsilon"]),
            euclidean_distance_epsilon=float(p["icp_euclidean_distance_epsilon"]),
            inlier_distance=float(p["inlier_distance"]),
            min_inlier_count=int(p["icp_min_inlier_count"]),
            planar=bool(p["icp_planar"]),
        )

        gate = GateConfig(
            fitness_threshold=float(p["fitness_threshold"]),
            max_jump_distance=float(p["max_jump_distance"]),
            min_jump_distance=float(p["min_jump_distance"]),
            max_rotation=float(p["max_rotation"]),
            min_rotation=float(p["min_rotation"]),
            update_interval=float(p["update_interval"]),
        )

        covariance = CovarianceConfig(
            pose_covariance_xx=float(p["pose_covariance_xx"]),
            pose_covariance_yy=float(p["pose_covariance_yy"]),
            pose_covariance_aa=float(p["pose_covariance_aa"]),
        )

        debug = DebugOutputConfig(
            publish_simulated_laser_scan=bool(p["publish_simulated_laser_scan"]),
            publish_simulated_laser_cloud=bool(p["publish_simulated_laser_cloud"]),
            publish_laser_cloud=bool(p["publish_laser_cloud"]),
            publish_transformed_laser_cloud=bool(p["publish_transformed_laser_cloud"]),
            status_period_sec=float(p["status_period_sec"]),
        )

        return cls(
            topics=topics,
            frames=frames,
            simulation=simulation,
            filters=filters,
            icp=icp,
            gate=gate,
            covariance=covariance,
            debug=debug,
        )

    @classmethod
    def from_ros_node(cls, node):
        """Create configuration from ROS node parameters (declared beforehand)."""
        values = {name: node.get_parameter(name).value for name in PARAMETER_DEFAULTS}
        return cls.from_params(values)
