"""
icp_laser Constants and Configuration Values.

All default parameter values are centralized here with clear documentation.
ROS parameters and YAML presets override them at runtime.
"""

# =============================================================================
# Topic / Frame Defaults
# =============================================================================

SCAN_TOPIC_DEFAULT = "/scan"
MAP_TOPIC_DEFAULT = "/map"
POSE_TOPIC_DEFAULT = "/initialpose"  # Corrected pose is fed back to the filter
INITIAL_POSE_TOPIC_DEFAULT = ""  # Empty = do not listen for external seeds
STATUS_TOPIC_DEFAULT = "/icp_laser/status"

SIM_SCAN_TOPIC_DEFAULT = "/icp_laser/simulated_scan"
SIM_CLOUD_TOPIC_DEFAULT = "/icp_laser/simulated_cloud"
LASER_CLOUD_TOPIC_DEFAULT = "/icp_laser/laser_cloud"
TRANSFORMED_CLOUD_TOPIC_DEFAULT = "/icp_laser/transformed_laser_cloud"

GLOBAL_FRAME_DEFAULT = "map"
BASE_FRAME_DEFAULT = "base_link"
TF_TIMEOUT_SEC_DEFAULT = 0.1

# =============================================================================
# Scan Simulation
# =============================================================================

# Occupancy value (0..100) at or above which a cell stops a simulated ray.
# map_server trinary maps use 100 for occupied; 65 matches its occupied_thresh.
OCCUPIED_THRESHOLD_DEFAULT = 65

# =============================================================================
# Point Cloud Filtering
# =============================================================================

MAX_SIMULATED_POINT_DISTANCE_DEFAULT = 10.0  # meters
MIN_SIMULATED_POINT_COUNT_DEFAULT = 50
MAX_LASER_POINT_DISTANCE_DEFAULT = 10.0  # meters
MIN_LASER_POINT_COUNT_DEFAULT = 50

# =============================================================================
# ICP Constants
# =============================================================================

ICP_MAX_CORRESPONDENCE_DISTANCE_DEFAULT = 1.0  # meters
ICP_MAX_ITERATIONS_DEFAULT = 100
ICP_TRANSFORMATION_EPSILON_DEFAULT = 1e-8  # squared translation (m^2); rotation converges at cos(dθ) >= 1 - eps
ICP_EUCLIDEAN_DISTANCE_EPSILON_DEFAULT = 1e-8  # MSE change relative to the previous MSE

# MSE change (m^2) treated as no change at all, whatever the relative change
ICP_MSE_ABSOLUTE_EPSILON = 1e-12

# Correspondence count below which the clouds are considered non-overlapping
ICP_MIN_INLIER_COUNT_DEFAULT = 10

# Restrict the correction to rotation about z plus x/y translation
ICP_PLANAR_DEFAULT = True

# Smallest point set a rigid fit can be computed from
ICP_MIN_USABLE_POINTS = 3

# Inlier cutoff for fitness computation (meters); fitness <= inlier_distance^2
INLIER_DISTANCE_DEFAULT = 0.2

# Maximum accepted fitness (mean squared inlier distance, m^2)
FITNESS_THRESHOLD_DEFAULT = 0.01

# =============================================================================
# Pose Update Gating
# =============================================================================

MAX_JUMP_DISTANCE_DEFAULT = 1.0  # meters; larger corrections are spurious
MIN_JUMP_DISTANCE_DEFAULT = 0.02  # meters; smaller corrections are jitter
MAX_ROTATION_DEFAULT = 0.5  # radians
MIN_ROTATION_DEFAULT = 0.02  # radians
UPDATE_INTERVAL_DEFAULT = 1.0  # seconds between small corrections

# =============================================================================
# Output Covariance (x, y, yaw variances)
# =============================================================================

POSE_COVARIANCE_XX_DEFAULT = 0.01
POSE_COVARIANCE_YY_DEFAULT = 0.01
POSE_COVARIANCE_AA_DEFAULT = 0.005

# Row-major indices into a 6x6 ROS covariance (x, y, z, roll, pitch, yaw)
COVARIANCE_INDEX_XX = 0
COVARIANCE_INDEX_YY = 7
COVARIANCE_INDEX_AA = 35

# =============================================================================
# Diagnostics
# =============================================================================

STATUS_PERIOD_SEC_DEFAULT = 5.0
LOG_THROTTLE_SEC = 5.0
