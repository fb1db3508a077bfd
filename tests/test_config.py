import logging

import pytest

from gesture_galaxy.config import (
    DEFAULT_CAPTION, DEFAULT_PARTICLE_COUNT, ConfigurationError, Settings,
    load_settings
)


def test_defaults_from_empty_environment():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.particle_count == DEFAULT_PARTICLE_COUNT
    assert settings.smoothing == 0.05
    assert settings.flow_speed == 0.5
    assert settings.time_normalized is False
    assert settings.seed is None
    assert settings.caption == DEFAULT_CAPTION


def test_reads_environment():
    settings = load_settings({
        "GALAXY_PARTICLE_COUNT": "40000",
        "GALAXY_SMOOTHING": "0.1",
        "GALAXY_FLOW_SPEED": "1.5",
        "GALAXY_TIME_NORMALIZED": "yes",
        "GALAXY_SEED": "99",
        "GALAXY_CAMERA_ID": "2",
        "GALAXY_LOG_LEVEL": "DEBUG",
        "GALAXY_CAPTION": "",
    })
    assert settings.particle_count == 40000
    assert settings.smoothing == 0.1
    assert settings.flow_speed == 1.5
    assert settings.time_normalized is True
    assert settings.seed == 99
    assert settings.camera_id == 2
    assert settings.log_level == "DEBUG"
    assert settings.caption == ""


def test_blank_values_use_defaults():
    settings = load_settings({"GALAXY_SMOOTHING": "  ", "GALAXY_SEED": ""})
    assert settings.smoothing == 0.05
    assert settings.seed is None


@pytest.mark.parametrize("value", ["0", "false", "no", "off", "whatever"])
def test_false_values(value):
    assert load_settings({"GALAXY_TIME_NORMALIZED": value}).time_normalized is False


@pytest.mark.parametrize("env", [
    {"GALAXY_PARTICLE_COUNT": "lots"},
    {"GALAXY_SMOOTHING": "fast"},
    {"GALAXY_SEED": "1.5"},
])
def test_unparseable_values(env):
    with pytest.raises(ConfigurationError):
        load_settings(env)


@pytest.mark.parametrize("env", [
    {"GALAXY_SMOOTHING": "0"},
    {"GALAXY_SMOOTHING": "1.01"},
    {"GALAXY_FLOW_SPEED": "-0.5"},
    {"GALAXY_CAMERA_ID": "-1"},
])
def test_out_of_range_values(env):
    with pytest.raises(ConfigurationError):
        load_settings(env)


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)


def test_non_positive_count_only_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="gesture_galaxy"):
        settings = load_settings({"GALAXY_PARTICLE_COUNT": "0"})
    assert settings.particle_count == 0
    assert "nothing will be rendered" in caplog.text
