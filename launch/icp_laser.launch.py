"""
ICP Laser Launch: scan-to-map pose correction.

This launch file runs:
- icp_laser_node: corrects the pose estimate by matching /scan against /map

The map and the TF tree (map -> ... -> base_link -> laser frame) must come
from elsewhere (map_server plus a localization filter or a simulator). The
corrected pose is published on pose_topic, /initialpose by default, so a
running AMCL picks it up as a re-seed.
"""
import os

from ament_index_python.packages import get_package_share_directory
from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description():
    default_params = os.path.join(
        get_package_share_directory("icp_laser"), "config", "icp_laser.yaml"
    )

    params_file = LaunchConfiguration("params_file")
    scan_topic = LaunchConfiguration("scan_topic")
    map_topic = LaunchConfiguration("map_topic")
    use_sim_time = LaunchConfiguration("use_sim_time")

    return LaunchDescription([
        # Arguments
        DeclareLaunchArgument("params_file", default_value=default_params,
            description="Parameter file for icp_laser_node"),
        DeclareLaunchArgument("scan_topic", default_value="/scan",
            description="Laser scan topic"),
        DeclareLaunchArgument("map_topic", default_value="/map",
            description="Occupancy grid topic"),
        DeclareLaunchArgument("use_sim_time", default_value="false",
            description="Use /clock (rosbag / simulator)"),

        # Localizer
        # Reads: scan_topic, map_topic, TF
        # Publishes: /initialpose, /icp_laser/status, /icp_laser/* debug outputs
        Node(
            package="icp_laser",
            executable="icp_laser_node",
            name="icp_laser",
            output="screen",
            parameters=[
                params_file,
                {
                    "scan_topic": scan_topic,
                    "map_topic": map_topic,
                    "use_sim_time": use_sim_time,
                },
            ],
        ),
    ])
