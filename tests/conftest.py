"""
tests/conftest.py
Shared builders for detector observations and fingerprints.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from fusion.types import (
    ColorProfile,
    ColorTemperature,
    DetectorObservation,
    DetectorStatus,
    FeatureVector,
    NoiseProfile,
    NoiseType,
    RegionId,
    ScoredDetector,
    TextureProfile,
)


def make_obs(name, score, confidence=0.9, status=DetectorStatus.success, latency_ms=1000.0, **kwargs):
    return DetectorObservation(
        name=name,
        raw_score=score,
        internal_confidence=confidence,
        status=status,
        latency_ms=latency_ms,
        **kwargs,
    )


def make_entries(scores, weights=None, confidence=0.9, usable=True):
    weights = weights or [1.0 / len(scores)] * len(scores)
    return [
        ScoredDetector(name=f"d{i}", score=s, weight=w, confidence=confidence, usable=usable)
        for i, (s, w) in enumerate(zip(scores, weights))
    ]


def make_fingerprint(
    bands=(0.15, 0.14, 0.13, 0.125, 0.12, 0.115, 0.11, 0.11),
    saturation_mean=0.30,
    saturation_variance=0.12,
    hue=90.0,
    temperature=ColorTemperature.warm,
    smoothness=0.9,
    repetitiveness=0.1,
    detail=0.85,
    noise_level=0.08,
    noise_type=NoiseType.uniform,
    noise_frequency=0.3,
):
    return FeatureVector(
        spectral_bands=tuple(bands),
        color=ColorProfile(saturation_mean, saturation_variance, hue, temperature),
        texture=TextureProfile(smoothness, repetitiveness, detail),
        noise=NoiseProfile(noise_level, noise_type, noise_frequency),
    )


def make_photo_fingerprint():
    """A vector far from every generator signature: rough, noisy, cool, one dominant band."""
    return make_fingerprint(
        bands=(0, 0, 0, 0, 0, 0, 0, 1),
        saturation_mean=0.1,
        saturation_variance=0.7,
        hue=30.0,
        temperature=ColorTemperature.cool,
        smoothness=0.1,
        repetitiveness=0.05,
        detail=0.2,
        noise_level=0.6,
        noise_type=NoiseType.gaussian,
        noise_frequency=0.7,
    )


COMPOSITE_REGIONS = {
    RegionId.top_left:     0.90,
    RegionId.top_right:    0.10,
    RegionId.bottom_left:  0.85,
    RegionId.bottom_right: 0.15,
    RegionId.center:       0.50,
}


@pytest.fixture
def agreeing_observations():
    return [
        make_obs("huggingface", 0.90),
        make_obs("vision_llm", 0.88),
        make_obs("dct", 0.92),
    ]


@pytest.fixture
def conflicting_observations():
    return [
        make_obs("huggingface", 0.90),
        make_obs("vision_llm", 0.10),
        make_obs("dct", 0.50),
    ]


@pytest.fixture
def synthetic_fingerprint():
    return make_fingerprint()
