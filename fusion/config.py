"""
fusion/config.py

Trust Fusion Configuration
==========================

Centralizes every tunable constant of the fusion core (weights, thresholds,
shrinkage factors, blend ratios) so the algorithms never carry inline magic
numbers.

Each component gets its own frozen config object. `FusionSettings.from_env()`
reads a small set of overrides from the environment (or a .env file):

    FUSION_CALIBRATION_LAMBDA      shrinkage strength λ           (0.35)
    FUSION_CONFLICT_MARGIN         conflict margin around 0.5     (0.35)
    FUSION_WEIGHT_FLOOR            minimum normalized weight      (0.01)
    FUSION_MAX_EXPECTED_LATENCY_MS latency at max penalty         (15000)
    FUSION_GRID_ROWS / _COLS       spatial grid size              (3 x 3)
    FUSION_BLEND_RATIO             primary share in region blend  (0.70)
    FUSION_CI_LEVEL                prediction interval level      (0.95)
"""

import os
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Tuple

from dotenv import load_dotenv


class ConfigError(ValueError):
    """Raised when a configuration object violates its own invariants."""


def _require(condition: bool, message: str):
    if not condition:
        raise ConfigError(message)


def _sums_to_one(values, tol: float = 1e-6) -> bool:
    return abs(math.fsum(values) - 1.0) <= tol


# ═══════════════════════════════════════════════════════════════════════════════
# COMPONENT CONFIGS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReliabilityConfig:
    # Reliability = α*confidence + β*status + γ*latency
    confidence_weight   : float = 0.5
    status_weight       : float = 0.3
    latency_weight      : float = 0.2

    max_expected_latency_ms : float = 15000.0
    max_latency_penalty     : float = 0.5

    # Floor returned for errored detectors and used as the lower clamp
    min_reliability     : float = 0.05

    success_multiplier  : float = 1.0
    fallback_multiplier : float = 0.15   # heuristic fallbacks are unreliable

    def validate(self):
        _require(
            _sums_to_one([self.confidence_weight, self.status_weight, self.latency_weight]),
            "reliability weights α+β+γ must sum to 1",
        )
        _require(self.max_expected_latency_ms > 0, "max_expected_latency_ms must be positive")
        _require(0.0 <= self.max_latency_penalty <= 1.0, "max_latency_penalty must be in [0, 1]")
        _require(0.0 < self.min_reliability < 1.0, "min_reliability must be in (0, 1)")
        _require(0.0 <= self.fallback_multiplier <= self.success_multiplier <= 1.0,
                 "status multipliers must satisfy 0 <= fallback <= success <= 1")


def _default_base_weights() -> Dict[str, float]:
    # Semantic vision model is the most trustworthy, the classifier
    # often runs in fallback, the frequency heuristic sits in between.
    return {
        "huggingface": 0.15,
        "vision_llm":  0.67,
        "dct":         0.18,
    }


@dataclass(frozen=True)
class FusionConfig:
    base_weights        : Dict[str, float] = field(default_factory=_default_base_weights)
    default_base_weight : float = 0.10     # prior for detectors not listed above
    weight_floor        : float = 0.01
    zero_weight_epsilon : float = 1e-12

    # Above this shift (absolute) a weight change is reported as significant
    significant_shift   : float = 0.05

    def validate(self):
        _require(all(w >= 0 for w in self.base_weights.values()), "base weights must be non-negative")
        _require(self.default_base_weight > 0, "default_base_weight must be positive")
        _require(0.0 <= self.weight_floor < 1.0, "weight_floor must be in [0, 1)")
        _require(self.zero_weight_epsilon >= 0, "zero_weight_epsilon must be non-negative")

    def base_weight(self, detector: str) -> float:
        return self.base_weights.get(detector, self.default_base_weight)


def _default_verdict_bands() -> Tuple[Tuple[float, str], ...]:
    return (
        (0.85, "AI_GENERATED"),
        (0.65, "LIKELY_AI"),
        (0.35, "UNCERTAIN"),
        (0.15, "LIKELY_REAL"),
    )


@dataclass(frozen=True)
class CalibrationConfig:
    # λ: sensitivity to disagreement (0.35 = at most 35% shrinkage)
    shrinkage_lambda    : float = 0.35
    neutral_point       : float = 0.5
    conflict_margin     : float = 0.35

    mild_threshold      : float = 0.15
    moderate_threshold  : float = 0.25
    severe_threshold    : float = 0.35

    low_trust_below     : float = 0.5
    moderate_trust_below: float = 0.75

    # Trust reported when no usable detector contributed
    degraded_trust_ceiling : float = 0.25

    # Descending (lower bound, label); anything below the last bound is REAL
    verdict_bands       : Tuple[Tuple[float, str], ...] = field(default_factory=_default_verdict_bands)
    floor_verdict       : str = "REAL"

    def validate(self):
        _require(0.0 < self.shrinkage_lambda < 1.0, "shrinkage_lambda must be in (0, 1)")
        _require(0.0 < self.conflict_margin < 0.5, "conflict_margin must be in (0, 0.5)")
        _require(
            0.0 <= self.mild_threshold < self.moderate_threshold < self.severe_threshold <= 1.0,
            "disagreement thresholds must be ascending: mild < moderate < severe",
        )
        _require(0.0 < self.low_trust_below < self.moderate_trust_below <= 1.0,
                 "trust thresholds must be ascending")
        _require(0.0 <= self.degraded_trust_ceiling < self.low_trust_below,
                 "degraded_trust_ceiling must sit below the low-trust threshold")
        bounds = [b for b, _ in self.verdict_bands]
        _require(len(bounds) > 0, "verdict_bands must not be empty")
        _require(all(a > b for a, b in zip(bounds, bounds[1:])),
                 "verdict band bounds must be strictly descending")
        _require(all(0.0 <= b <= 1.0 for b in bounds), "verdict band bounds must be in [0, 1]")


@dataclass(frozen=True)
class SpatialConfig:
    rows                : int = 3
    cols                : int = 3
    suspicious_threshold: float = 0.6
    medium_severity     : float = 0.65
    high_severity       : float = 0.8

    # Share of the primary (anchor) map when blending with an independent grid
    blend_ratio         : float = 0.7

    composite_uniformity_below : float = 0.5
    composite_range_above      : float = 0.25
    composite_low_bound        : float = 0.35
    composite_high_bound       : float = 0.65

    def validate(self):
        _require(self.rows >= 2 and self.cols >= 2, "spatial grid must be at least 2x2")
        _require(0.0 <= self.suspicious_threshold <= self.medium_severity <= self.high_severity <= 1.0,
                 "hotspot thresholds must be ascending")
        _require(0.0 <= self.blend_ratio <= 1.0, "blend_ratio must be in [0, 1]")
        _require(self.composite_low_bound < self.composite_high_bound,
                 "composite low bound must sit below the high bound")


@dataclass(frozen=True)
class UncertaintyConfig:
    interval_level      : float = 0.95
    # epistemic = min(1, scale * std); std of [0,1] scores never exceeds 0.5
    epistemic_scale     : float = 2.0
    # confidence assumed for auxiliary voters that do not report one
    auxiliary_confidence: float = 0.7
    trust_share         : float = 0.5
    outlier_sigma       : float = 2.0

    high_reliability    : float = 0.8
    moderate_reliability: float = 0.6
    low_reliability     : float = 0.4

    # High-reliability predictions outside this band get a directional recommendation
    confident_ai_above  : float = 0.7
    confident_real_below: float = 0.3

    def validate(self):
        _require(0.0 < self.interval_level < 1.0, "interval_level must be in (0, 1)")
        _require(self.epistemic_scale > 0, "epistemic_scale must be positive")
        _require(0.0 <= self.auxiliary_confidence <= 1.0, "auxiliary_confidence must be in [0, 1]")
        _require(0.0 <= self.trust_share <= 1.0, "trust_share must be in [0, 1]")
        _require(0.0 <= self.low_reliability < self.moderate_reliability < self.high_reliability <= 1.0,
                 "reliability level thresholds must be ascending")
        _require(0.0 <= self.confident_real_below < self.confident_ai_above <= 1.0,
                 "directional recommendation bounds are inverted")


@dataclass(frozen=True)
class FingerprintConfig:
    spectral_weight     : float = 0.40
    color_weight        : float = 0.25
    texture_weight      : float = 0.25
    noise_weight        : float = 0.10

    # Color sub-blend
    saturation_mean_weight     : float = 0.3
    saturation_variance_weight : float = 0.2
    hue_weight                 : float = 0.3
    temperature_weight         : float = 0.2
    temperature_mismatch_credit: float = 0.5

    noise_match_score   : float = 0.8
    noise_mismatch_score: float = 0.4

    # Matching-feature tag thresholds
    spectral_tag_above  : float = 0.8
    color_tag_above     : float = 0.75
    texture_tag_above   : float = 0.75
    noise_tag_above     : float = 0.7

    # AI indicators
    smoothness_above    : float = 0.65
    repetitiveness_below: float = 0.35
    noise_level_below   : float = 0.15
    top_confidence_above: float = 0.7
    min_indicators      : int = 3
    min_indicators_with_baseline_win : int = 2
    min_tags_alone      : int = 3
    baseline_margin     : float = 0.02

    # Confidence shaping
    indicator_boost     : float = 0.05
    feature_boost       : float = 0.03
    max_ai_confidence   : float = 0.95
    real_photo_offset   : float = 0.2
    min_ai_confidence   : float = 0.05

    band_count          : int = 8
    band_sum_tolerance  : float = 1e-6

    def validate(self):
        _require(
            _sums_to_one([self.spectral_weight, self.color_weight, self.texture_weight, self.noise_weight]),
            "fingerprint blend weights must sum to 1",
        )
        _require(
            _sums_to_one([self.saturation_mean_weight, self.saturation_variance_weight,
                          self.hue_weight, self.temperature_weight]),
            "color sub-blend weights must sum to 1",
        )
        _require(0.0 <= self.noise_mismatch_score <= self.noise_match_score <= 1.0,
                 "noise credit must satisfy 0 <= mismatch <= match <= 1")
        _require(self.min_ai_confidence < self.max_ai_confidence, "ai confidence bounds are inverted")
        _require(self.band_count > 0, "band_count must be positive")


# ═══════════════════════════════════════════════════════════════════════════════
# SETTINGS BUNDLE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FusionSettings:
    reliability : ReliabilityConfig = field(default_factory=ReliabilityConfig)
    fusion      : FusionConfig = field(default_factory=FusionConfig)
    calibration : CalibrationConfig = field(default_factory=CalibrationConfig)
    spatial     : SpatialConfig = field(default_factory=SpatialConfig)
    uncertainty : UncertaintyConfig = field(default_factory=UncertaintyConfig)
    fingerprint : FingerprintConfig = field(default_factory=FingerprintConfig)

    def validate(self) -> "FusionSettings":
        for cfg in (self.reliability, self.fusion, self.calibration,
                    self.spatial, self.uncertainty, self.fingerprint):
            cfg.validate()
        return self

    @classmethod
    def from_env(cls) -> "FusionSettings":
        """
        Build settings from defaults plus environment overrides.
        Raises ConfigError if an override breaks an invariant.
        """
        load_dotenv()
        base = cls()

        def _float(name: str, default: float) -> float:
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return float(raw)
            except ValueError:
                raise ConfigError(f"{name} must be a number, got {raw!r}")

        def _int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ConfigError(f"{name} must be an integer, got {raw!r}")

        settings = cls(
            reliability=replace(
                base.reliability,
                max_expected_latency_ms=_float("FUSION_MAX_EXPECTED_LATENCY_MS",
                                               base.reliability.max_expected_latency_ms),
            ),
            fusion=replace(
                base.fusion,
                weight_floor=_float("FUSION_WEIGHT_FLOOR", base.fusion.weight_floor),
            ),
            calibration=replace(
                base.calibration,
                shrinkage_lambda=_float("FUSION_CALIBRATION_LAMBDA", base.calibration.shrinkage_lambda),
                conflict_margin=_float("FUSION_CONFLICT_MARGIN", base.calibration.conflict_margin),
            ),
            spatial=replace(
                base.spatial,
                rows=_int("FUSION_GRID_ROWS", base.spatial.rows),
                cols=_int("FUSION_GRID_COLS", base.spatial.cols),
                blend_ratio=_float("FUSION_BLEND_RATIO", base.spatial.blend_ratio),
            ),
            uncertainty=replace(
                base.uncertainty,
                interval_level=_float("FUSION_CI_LEVEL", base.uncertainty.interval_level),
            ),
            fingerprint=base.fingerprint,
        )
        return settings.validate()


# ── Singleton ─────────────────────────────────────────────────────────────────
DEFAULT_SETTINGS = FusionSettings().validate()
