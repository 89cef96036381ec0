"""
Tests for parameter defaults, YAML loading, and validation.
"""

from types import SimpleNamespace

import pytest
import yaml
from pydantic import ValidationError

from icp_laser.common.param_models import LocalizerParams
from icp_laser.config import PARAMETER_DEFAULTS, LocalizerConfig
from icp_laser.localization.config import (
    get_default_config_path,
    load_localizer_config,
    load_localizer_params,
    merge_configs,
    node_parameters,
    validate_localizer_params,
)


class FakeNode:
    """Minimal stand-in for rclpy.node.Node parameter access."""

    def __init__(self, values):
        self._values = dict(values)
        self.errors = []

    def has_parameter(self, name):
        return name in self._values

    def get_parameter(self, name):
        return SimpleNamespace(value=self._values[name])

    def get_logger(self):
        return SimpleNamespace(error=self.errors.append)


class TestDefaults:

    def test_yaml_matches_declared_defaults(self, prod_config):
        assert set(prod_config) == set(PARAMETER_DEFAULTS)
        for name, value in PARAMETER_DEFAULTS.items():
            assert prod_config[name] == value, name

    def test_model_matches_declared_defaults(self):
        assert set(LocalizerParams.model_fields) == set(PARAMETER_DEFAULTS)
        assert LocalizerParams().model_dump() == PARAMETER_DEFAULTS

    def test_default_config_groups(self):
        config = LocalizerConfig()
        assert config.icp.planar is True
        assert config.gate.min_jump_distance <= config.gate.max_jump_distance
        assert not config.debug.any_enabled


class TestFromParams:

    def test_groups_are_populated(self):
        config = LocalizerConfig.from_params({
            "icp_max_iterations": 7,
            "fitness_threshold": 0.5,
            "pose_covariance_aa": 0.2,
            "publish_laser_cloud": True,
            "base_frame": "base_footprint",
        })
        assert config.icp.max_iterations == 7
        assert config.icp.to_params().max_iterations == 7
        assert config.gate.fitness_threshold == 0.5
        assert config.covariance.pose_covariance_aa == 0.2
        assert config.debug.publish_laser_cloud
        assert config.debug.any_enabled
        assert config.frames.base_frame == "base_footprint"

    def test_unknown_keys_ignored(self):
        config = LocalizerConfig.from_params({"not_a_parameter": 3})
        assert config == LocalizerConfig()

    def test_from_ros_node(self):
        values = dict(PARAMETER_DEFAULTS, min_laser_point_count=123)
        config = LocalizerConfig.from_ros_node(FakeNode(values))
        assert config.filters.min_laser_point_count == 123


class TestYamlLoading:

    def test_merge_is_deep(self):
        merged = merge_configs(
            {"icp_laser": {"ros__parameters": {"a": 1, "b": 2}}},
            {"icp_laser": {"ros__parameters": {"b": 3}}},
            None,
        )
        assert merged == {"icp_laser": {"ros__parameters": {"a": 1, "b": 3}}}

    def test_node_parameters_missing_section(self):
        assert node_parameters({}) == {}
        assert node_parameters({"icp_laser": None}) == {}

    def test_base_preset_override_order(self, config_path, tmp_path):
        preset = tmp_path / "preset.yaml"
        preset.write_text(yaml.safe_dump({
            "icp_laser": {"ros__parameters": {"max_jump_distance": 2.0, "update_interval": 3.0}},
        }))
        config = load_localizer_config(config_path, preset, overrides={"update_interval": 0.5})
        assert config.gate.max_jump_distance == 2.0
        assert config.gate.update_interval == 0.5
        assert config.gate.min_jump_distance == PARAMETER_DEFAULTS["min_jump_distance"]

    def test_packaged_file_loads(self):
        path = get_default_config_path()
        assert path.name == "icp_laser.yaml"
        config = load_localizer_config(path)
        assert config == LocalizerConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_localizer_params(tmp_path / "missing.yaml")


class TestValidation:

    @pytest.mark.parametrize("overrides", [
        {"min_jump_distance": 2.0, "max_jump_distance": 1.0},
        {"min_rotation": 1.0, "max_rotation": 0.5},
        {"inlier_distance": 2.0, "icp_max_correspondence_distance": 1.0},
        {"icp_max_iterations": 0},
        {"fitness_threshold": -0.1},
        {"occupied_threshold": 101},
        {"base_frame": ""},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            load_localizer_params(overrides=overrides)

    def test_equal_bounds_allowed(self):
        params = load_localizer_params(overrides={"min_jump_distance": 0.5, "max_jump_distance": 0.5})
        assert params.min_jump_distance == params.max_jump_distance

    def test_node_validation_logs_and_raises(self):
        node = FakeNode({"max_rotation": -1.0})
        with pytest.raises(ValidationError):
            validate_localizer_params(node)
        assert len(node.errors) == 1
        assert "max_rotation" in node.errors[0]

    def test_node_validation_passes(self):
        params = validate_localizer_params(FakeNode(PARAMETER_DEFAULTS))
        assert params.icp_planar is True
