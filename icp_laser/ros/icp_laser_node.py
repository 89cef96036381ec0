"""
ICP laser localizer node.

Subscribes to the occupancy map and the laser scan, runs the per-scan
pipeline (simulate -> convert -> align -> gate) and publishes the corrected
pose when the gate accepts it. Debug outputs are toggled at runtime through
the publish_* parameters.
"""

import json

import numpy as np
import rclpy
from rclpy.clock import Clock, ClockType
from rclpy.duration import Duration
from rclpy.node import Node
from rclpy.qos import QoSProfile, ReliabilityPolicy, HistoryPolicy, DurabilityPolicy
from rclpy.time import Time

import tf2_ros
from tf2_ros import TransformException
from geometry_msgs.msg import PoseWithCovarianceStamped
from nav_msgs.msg import OccupancyGrid as OccupancyGridMsg
from rcl_interfaces.msg import SetParametersResult
from sensor_msgs.msg import LaserScan, PointCloud2, PointField
from std_msgs.msg import String

from icp_laser import constants
from icp_laser.common.errors import TransformUnavailable
from icp_laser.config import PARAMETER_DEFAULTS, LocalizerConfig
from icp_laser.localization.config import validate_localizer_params
from icp_laser.localization.pipeline import (
    DEBUG_LASER_CLOUD,
    DEBUG_SIMULATED_CLOUD,
    DEBUG_SIMULATED_SCAN,
    DEBUG_TRANSFORMED_CLOUD,
    LocalizerContext,
    ScanOutcome,
    process_scan,
    record_malformed_scan,
)
from icp_laser.localization.report import ScanStatus
from icp_laser.ros.conversions import (
    CLOUD_POINT_STEP,
    fill_laser_scan_msg,
    fill_pose_msg,
    occupancy_grid_from_msg,
    points_to_cloud_bytes,
    pose_from_pose_msg,
    pose_from_transform_msg,
    range_scan_from_msg,
    stamp_to_sec,
)


_DEBUG_FLAGS = (
    "publish_simulated_laser_scan",
    "publish_simulated_laser_cloud",
    "publish_laser_cloud",
    "publish_transformed_laser_cloud",
)


class IcpLaserNode(Node):
    """Scan-to-map ICP pose corrector."""

    def __init__(self):
        super().__init__("icp_laser")

        self._declare_parameters()
        validate_localizer_params(self)
        self.config = LocalizerConfig.from_ros_node(self)
        self.context = LocalizerContext.create(self.config)

        self._init_ros()
        self.add_on_set_parameters_callback(self._on_set_parameters)

        self.get_logger().info(
            f"icp_laser initialized: scan={self.config.topics.scan_topic}, "
            f"map={self.config.topics.map_topic}, pose={self.config.topics.pose_topic}, "
            f"frames {self.config.frames.global_frame} <- {self.config.frames.base_frame}"
        )

    def _declare_parameters(self):
        """Declare ROS parameters."""
        for name, default in PARAMETER_DEFAULTS.items():
            self.declare_parameter(name, default)

    def _init_ros(self):
        """Initialize ROS interfaces."""
        topics = self.config.topics

        qos_sensor = QoSProfile(
            reliability=ReliabilityPolicy.BEST_EFFORT,
            history=HistoryPolicy.KEEP_LAST,
            depth=10,
            durability=DurabilityPolicy.VOLATILE,
        )
        # map_server latches the map
        qos_map = QoSProfile(
            reliability=ReliabilityPolicy.RELIABLE,
            history=HistoryPolicy.KEEP_LAST,
            depth=1,
            durability=DurabilityPolicy.TRANSIENT_LOCAL,
        )
        qos_reliable = QoSProfile(
            reliability=ReliabilityPolicy.RELIABLE,
            history=HistoryPolicy.KEEP_LAST,
            depth=10,
            durability=DurabilityPolicy.VOLATILE,
        )

        # TF
        self.tf_buffer = tf2_ros.Buffer()
        self.tf_listener = tf2_ros.TransformListener(self.tf_buffer, self)

        # Subscriptions
        self.sub_map = self.create_subscription(
            OccupancyGridMsg, topics.map_topic, self.on_map, qos_map
        )
        self.sub_scan = self.create_subscription(
            LaserScan, topics.scan_topic, self.on_scan, qos_sensor
        )
        self.sub_initial_pose = None
        if topics.initial_pose_topic:
            self.sub_initial_pose = self.create_subscription(
                PoseWithCovarianceStamped, topics.initial_pose_topic, self.on_initial_pose, qos_reliable
            )
            self.get_logger().info(f"Initial pose: {topics.initial_pose_topic}")

        # Publishers
        self.pub_pose = self.create_publisher(PoseWithCovarianceStamped, topics.pose_topic, qos_reliable)
        self.pub_status = self.create_publisher(String, topics.status_topic, 10)
        self.pub_sim_scan = self.create_publisher(LaserScan, topics.sim_scan_topic, 10)
        self.pub_sim_cloud = self.create_publisher(PointCloud2, topics.sim_cloud_topic, 10)
        self.pub_laser_cloud = self.create_publisher(PointCloud2, topics.laser_cloud_topic, 10)
        self.pub_transformed_cloud = self.create_publisher(PointCloud2, topics.transformed_cloud_topic, 10)

        # Status timer
        self._status_clock = Clock(clock_type=ClockType.SYSTEM_TIME)
        self.status_timer = self.create_timer(
            self.config.debug.status_period_sec, self._publish_status, clock=self._status_clock
        )

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    def on_map(self, msg: OccupancyGridMsg):
        try:
            grid = occupancy_grid_from_msg(msg)
        except ValueError as e:
            self.get_logger().error(f"Rejected malformed map: {e}")
            return
        snapshot = self.context.map_store.update(grid, stamp=stamp_to_sec(msg.header.stamp))
        self.context.stats.record_map()
        self.get_logger().info(
            f"Map v{snapshot.version}: {grid.width}x{grid.height} @ {grid.resolution:.3f} m"
        )

    def on_initial_pose(self, msg: PoseWithCovarianceStamped):
        pose = pose_from_pose_msg(msg.pose.pose)
        self.context.gatekeeper.seed(pose)
        self.get_logger().info(
            f"Pose seeded externally: x={pose[0]:.3f} y={pose[1]:.3f}"
        )

    def on_scan(self, msg: LaserScan):
        try:
            scan = range_scan_from_msg(msg)
        except ValueError as e:
            self._log_outcome(record_malformed_scan(self.context, e))
            return
        frames = self.config.frames

        if frames.track_tf_pose:
            try:
                base_pose = self._lookup_pose(frames.global_frame, frames.base_frame, msg.header.stamp)
            except TransformUnavailable as e:
                self.get_logger().warn(f"Pose tracking skipped: {e}", throttle_duration_sec=constants.LOG_THROTTLE_SEC)
            else:
                # Keep the last-update stamp so rate limiting still applies
                self.context.gatekeeper.seed(base_pose, stamp=self.context.gatekeeper.snapshot().stamp)

        sensor_frame = scan.frame_id or frames.base_frame

        def sensor_offset(_scan):
            return self._lookup_pose(frames.base_frame, sensor_frame, msg.header.stamp)

        now = self.get_clock().now().nanoseconds * 1e-9
        outcome = process_scan(self.context, scan, sensor_offset, now=now)

        self._publish_debug(outcome, msg.header)
        self._log_outcome(outcome)

        if outcome.accepted:
            self._publish_pose(outcome, msg.header.stamp)

    def _on_set_parameters(self, params) -> SetParametersResult:
        """Apply debug output toggles at runtime; other parameters need a restart."""
        debug = self.config.debug
        for param in params:
            if param.name in _DEBUG_FLAGS:
                setattr(debug, param.name, bool(param.value))
                self.get_logger().info(f"{param.name} = {bool(param.value)}")
        return SetParametersResult(successful=True)

    # -------------------------------------------------------------------------
    # TF
    # -------------------------------------------------------------------------

    def _lookup_pose(self, target_frame: str, source_frame: str, stamp) -> np.ndarray:
        """Lookup TF transform (target <- source) as 6D pose; raises TransformUnavailable."""
        try:
            timeout = Duration(seconds=self.config.frames.tf_timeout_sec)
            t = self.tf_buffer.lookup_transform(
                target_frame, source_frame, Time.from_msg(stamp), timeout=timeout
            )
        except (TransformException, TypeError, ValueError) as e:
            raise TransformUnavailable(target_frame, source_frame, str(e)) from e
        return pose_from_transform_msg(t.transform)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def _publish_pose(self, outcome: ScanOutcome, stamp):
        pwc = outcome.decision.pose_with_covariance
        msg = PoseWithCovarianceStamped()
        msg.header.stamp = stamp
        msg.header.frame_id = self.config.frames.global_frame
        fill_pose_msg(msg.pose.pose, pwc.pose)
        msg.pose.covariance = pwc.covariance_flat()
        self.pub_pose.publish(msg)

    def _publish_debug(self, outcome: ScanOutcome, scan_header):
        if not outcome.debug:
            return
        global_frame = self.config.frames.global_frame

        simulated = outcome.debug.get(DEBUG_SIMULATED_SCAN)
        if simulated is not None:
            msg = LaserScan()
            msg.header = scan_header
            fill_laser_scan_msg(msg, simulated)
            self.pub_sim_scan.publish(msg)

        for key, publisher in (
            (DEBUG_SIMULATED_CLOUD, self.pub_sim_cloud),
            (DEBUG_LASER_CLOUD, self.pub_laser_cloud),
            (DEBUG_TRANSFORMED_CLOUD, self.pub_transformed_cloud),
        ):
            points = outcome.debug.get(key)
            if points is not None:
                publisher.publish(self._make_cloud(points, scan_header.stamp, global_frame))

    def _make_cloud(self, points: np.ndarray, stamp, frame_id: str) -> PointCloud2:
        msg = PointCloud2()
        msg.header.stamp = stamp
        msg.header.frame_id = frame_id
        msg.height = 1
        msg.width = int(points.shape[0])
        msg.fields = [
            PointField(name="x", offset=0, datatype=PointField.FLOAT32, count=1),
            PointField(name="y", offset=4, datatype=PointField.FLOAT32, count=1),
            PointField(name="z", offset=8, datatype=PointField.FLOAT32, count=1),
        ]
        msg.is_bigendian = False
        msg.point_step = CLOUD_POINT_STEP
        msg.row_step = msg.point_step * msg.width
        msg.is_dense = True
        msg.data = points_to_cloud_bytes(points)
        return msg

    def _publish_status(self):
        """Publish periodic status."""
        status = self.context.stats.to_dict()
        estimate = self.context.gatekeeper.snapshot()
        status["map_version"] = self.context.map_store.version
        status["pose"] = [float(v) for v in estimate.pose]
        status["pose_stamp"] = estimate.stamp

        msg = String()
        msg.data = json.dumps(status, sort_keys=True, allow_nan=False)
        self.pub_status.publish(msg)

        if not self.context.map_store.has_map:
            self.get_logger().warn(
                f"No map received on {self.config.topics.map_topic} yet",
                throttle_duration_sec=constants.LOG_THROTTLE_SEC,
            )

    def _log_outcome(self, outcome: ScanOutcome):
        log = self.get_logger()
        report = outcome.report
        if outcome.status == ScanStatus.ACCEPTED:
            log.info(
                f"Pose corrected: Δt={report.translation_delta:.3f} m, "
                f"Δθ={report.rotation_delta:.3f} rad, fitness={report.fitness:.5f}"
            )
        elif outcome.status == ScanStatus.REJECTED:
            log.debug(
                f"Correction rejected ({report.reject_reason}): Δt={report.translation_delta:.3f} m, "
                f"Δθ={report.rotation_delta:.3f} rad, fitness={report.fitness:.5f}"
            )
        elif outcome.status == ScanStatus.MAP_UNAVAILABLE:
            log.warn(f"Scan skipped: {report.notes}", throttle_duration_sec=constants.LOG_THROTTLE_SEC)
        else:
            log.warn(
                f"Scan skipped ({outcome.status.value}): {report.notes}",
                throttle_duration_sec=constants.LOG_THROTTLE_SEC,
            )


def main():
    rclpy.init()
    node = IcpLaserNode()

    try:
        rclpy.spin(node)
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        rclpy.shutdown()


if __name__ == "__main__":
    main()
