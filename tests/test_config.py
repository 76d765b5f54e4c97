"""
tests/test_config.py
Configuration defaults, validation and environment overrides.
"""

from dataclasses import replace

import pytest

from fusion.config import (
    DEFAULT_SETTINGS,
    ConfigError,
    FingerprintConfig,
    FusionConfig,
    FusionSettings,
    UncertaintyConfig,
)

ENV_KEYS = [
    "FUSION_MAX_EXPECTED_LATENCY_MS",
    "FUSION_WEIGHT_FLOOR",
    "FUSION_CALIBRATION_LAMBDA",
    "FUSION_CONFLICT_MARGIN",
    "FUSION_GRID_ROWS",
    "FUSION_GRID_COLS",
    "FUSION_BLEND_RATIO",
    "FUSION_CI_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults_are_valid():
    assert DEFAULT_SETTINGS.validate() is DEFAULT_SETTINGS
    assert DEFAULT_SETTINGS.calibration.shrinkage_lambda == 0.35
    assert DEFAULT_SETTINGS.spatial.rows == 3


def test_from_env_without_overrides(clean_env):
    assert FusionSettings.from_env() == FusionSettings()


def test_from_env_overrides(clean_env):
    clean_env.setenv("FUSION_CALIBRATION_LAMBDA", "0.5")
    clean_env.setenv("FUSION_GRID_ROWS", "5")
    clean_env.setenv("FUSION_CI_LEVEL", "0.9")
    settings = FusionSettings.from_env()
    assert settings.calibration.shrinkage_lambda == 0.5
    assert settings.spatial.rows == 5
    assert settings.uncertainty.interval_level == 0.9


def test_from_env_rejects_non_numbers(clean_env):
    clean_env.setenv("FUSION_CALIBRATION_LAMBDA", "abc")
    with pytest.raises(ConfigError):
        FusionSettings.from_env()


def test_from_env_rejects_out_of_range(clean_env):
    clean_env.setenv("FUSION_CALIBRATION_LAMBDA", "1.5")
    with pytest.raises(ConfigError):
        FusionSettings.from_env()


def test_from_env_rejects_fractional_grid(clean_env):
    clean_env.setenv("FUSION_GRID_COLS", "3.5")
    with pytest.raises(ConfigError):
        FusionSettings.from_env()


def test_config_error_is_a_value_error():
    assert issubclass(ConfigError, ValueError)


@pytest.mark.parametrize("settings", [
    replace(DEFAULT_SETTINGS, fusion=FusionConfig(weight_floor=-0.1)),
    replace(DEFAULT_SETTINGS, uncertainty=UncertaintyConfig(interval_level=1.0)),
    replace(DEFAULT_SETTINGS, fingerprint=FingerprintConfig(spectral_weight=0.9)),
])
def test_invalid_settings_are_rejected(settings):
    with pytest.raises(ConfigError):
        settings.validate()
