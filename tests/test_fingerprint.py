"""
tests/test_fingerprint.py
Generator attribution against the signature registry.
"""

import logging

import pytest

from conftest import make_fingerprint, make_obs, make_photo_fingerprint
from fusion.fingerprint import (
    NOISE_TAG,
    SPECTRAL_TAG,
    TEXTURE_TAG,
    FingerprintMatcher,
    MalformedFingerprint,
)
from fusion.signatures import BASELINE_NAME, DEFAULT_REGISTRY, build_registry
from fusion.types import ColorProfile, ColorTemperature, DetectorStatus, NoiseType

matcher = FingerprintMatcher()


def _generator(name, bands=(1, 1, 1, 1, 1, 1, 1, 1), temperature=ColorTemperature.neutral):
    return {
        "name": name,
        "versions": (f"{name} 1",),
        "spectral": bands,
        "color": (0.5, 0.2, 120, temperature),
        "texture": (0.7, 0.3, 0.7),
        "noise": (0.1, NoiseType.uniform, 0.3),
        "characteristics": ("synthetic",),
    }


# ── Scenario: synthetic image ────────────────────────────────────────────────

def test_synthetic_vector_is_attributed(synthetic_fingerprint):
    attribution = matcher.match(synthetic_fingerprint)
    assert attribution.is_ai_generated
    top = attribution.identified_generator
    assert top.name == "Google Imagen"
    assert top.confidence > 0.7
    assert set(top.matching_features) == {SPECTRAL_TAG, TEXTURE_TAG, NOISE_TAG}
    assert attribution.indicator_count == 5
    assert attribution.ai_confidence == pytest.approx(0.95)
    assert "Google Imagen" in attribution.analysis["overall_assessment"]


def test_all_matches_are_sorted_and_include_baseline(synthetic_fingerprint):
    attribution = matcher.match(synthetic_fingerprint)
    confidences = [m.confidence for m in attribution.all_matches]
    assert confidences == sorted(confidences, reverse=True)
    assert len(attribution.all_matches) == len(DEFAULT_REGISTRY)
    baseline = [m for m in attribution.all_matches if m.is_baseline]
    assert [m.name for m in baseline] == [BASELINE_NAME]
    assert attribution.identified_generator.confidence > baseline[0].confidence


def test_versions_are_reported(synthetic_fingerprint):
    top = matcher.match(synthetic_fingerprint).identified_generator
    assert top.version == DEFAULT_REGISTRY.get("Google Imagen").latest_version


# ── Scenario: real photo ──────────────────────────────────────────────────────

def test_photo_vector_is_not_attributed():
    attribution = matcher.match(make_photo_fingerprint())
    assert not attribution.is_ai_generated
    assert attribution.identified_generator is None
    assert attribution.indicator_count < 3
    baseline = next(m for m in attribution.all_matches if m.is_baseline)
    assert attribution.ai_confidence == pytest.approx(max(0.05, 1.0 - baseline.confidence - 0.2))
    assert attribution.analysis["overall_assessment"].startswith("This image appears to be a real photograph")


def test_indicator_count_is_bounded(synthetic_fingerprint):
    for fp in (synthetic_fingerprint, make_photo_fingerprint()):
        assert 0 <= matcher.match(fp).indicator_count <= 5


# ── Similarity ────────────────────────────────────────────────────────────────

def test_hue_distance_wraps_around():
    near = matcher.color_similarity(
        ColorProfile(0.5, 0.2, 350.0, ColorTemperature.warm),
        ColorProfile(0.5, 0.2, 10.0, ColorTemperature.warm),
    )
    same_gap = matcher.color_similarity(
        ColorProfile(0.5, 0.2, 100.0, ColorTemperature.warm),
        ColorProfile(0.5, 0.2, 120.0, ColorTemperature.warm),
    )
    assert near == pytest.approx(same_gap)


def test_temperature_mismatch_gets_partial_credit():
    warm = ColorProfile(0.5, 0.2, 100.0, ColorTemperature.warm)
    cool = ColorProfile(0.5, 0.2, 100.0, ColorTemperature.cool)
    assert matcher.color_similarity(warm, warm) == pytest.approx(1.0)
    assert matcher.color_similarity(warm, cool) == pytest.approx(0.9)


def test_spectral_similarity_of_identical_profiles():
    bands = (0.2, 0.1, 0.1, 0.1, 0.1, 0.1, 0.1, 0.2)
    assert matcher.spectral_similarity(bands, bands) == pytest.approx(1.0)
    assert matcher.spectral_similarity(bands, bands[:4]) == 0.0


def test_identical_vector_scores_highest_for_its_generator():
    reference = DEFAULT_REGISTRY.get("Midjourney").signature
    confidence, tags = matcher.score(reference, reference)
    assert confidence == pytest.approx(0.4 + 0.25 + 0.25 + 0.1 * 0.8)
    assert len(tags) == 4


# ── Validation ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("bands", [
    (0.5, 0.5),
    (0.1,) * 7 + (float("nan"),),
    (0.3, -0.1, 0.1, 0.1, 0.1, 0.1, 0.2, 0.2),
    (0.0,) * 8,
])
def test_malformed_bands_raise(bands):
    with pytest.raises(MalformedFingerprint):
        matcher.match(make_fingerprint(bands=bands))


def test_bands_are_renormalized(synthetic_fingerprint):
    doubled = make_fingerprint(bands=[2 * b for b in synthetic_fingerprint.spectral_bands])
    a = matcher.match(synthetic_fingerprint)
    b = matcher.match(doubled)
    assert [m.confidence for m in a.all_matches] == pytest.approx([m.confidence for m in b.all_matches])


def test_validation_clamps_and_wraps():
    cleaned = matcher.validate_fingerprint(make_fingerprint(hue=450.0, smoothness=1.4, temperature="cool"))
    assert cleaned.color.dominant_hue == pytest.approx(90.0)
    assert cleaned.texture.smoothness == 1.0
    assert cleaned.color.temperature == ColorTemperature.cool


def test_unknown_noise_type_is_malformed():
    with pytest.raises(MalformedFingerprint):
        matcher.validate_fingerprint(make_fingerprint(noise_type="pink"))


# ── Registry ──────────────────────────────────────────────────────────────────

def test_default_registry_has_one_baseline():
    assert DEFAULT_REGISTRY.baseline.name == BASELINE_NAME
    assert len(DEFAULT_REGISTRY.generators) == len(DEFAULT_REGISTRY) - 1
    for entry in DEFAULT_REGISTRY:
        assert sum(entry.signature.spectral_bands) == pytest.approx(1.0)


def test_ties_break_by_registry_order():
    registry = build_registry(generators=[_generator("First"), _generator("Second")])
    ranked = FingerprintMatcher(registry).rank(registry.get("First").signature)
    assert [m.name for m in ranked[:2]] == ["First", "Second"]
    assert ranked[0].confidence == ranked[1].confidence


def test_registry_rejects_duplicates_and_missing_generators():
    with pytest.raises(ValueError):
        build_registry(generators=[_generator("Same"), _generator("Same")])
    with pytest.raises(ValueError):
        build_registry(generators=[])
    with pytest.raises(ValueError):
        build_registry(generators=[_generator("Short", bands=(1, 1, 1))])


def test_custom_registry_entries_are_matched():
    registry = build_registry(generators=[_generator("Custom")])
    attribution = FingerprintMatcher(registry).match(registry.get("Custom").signature)
    assert attribution.all_matches[0].name == "Custom"


# ── Observations ──────────────────────────────────────────────────────────────

def test_uses_fingerprint_of_highest_weight_usable_detector(synthetic_fingerprint):
    observations = [
        make_obs("huggingface", 0.9, fingerprint=make_photo_fingerprint()),
        make_obs("dct", 0.9, fingerprint=synthetic_fingerprint),
        make_obs("vision_llm", 0.9, status=DetectorStatus.error, fingerprint=make_photo_fingerprint()),
    ]
    weights = {"huggingface": 0.2, "dct": 0.3, "vision_llm": 0.5}
    attribution = matcher.match_observations(observations, weights)
    assert attribution.source_detector == "dct"
    assert attribution.is_ai_generated


def test_malformed_fingerprint_is_skipped(caplog, synthetic_fingerprint):
    observations = [
        make_obs("vision_llm", 0.9, fingerprint=make_fingerprint(bands=(1.0, 2.0))),
        make_obs("dct", 0.9, fingerprint=synthetic_fingerprint),
    ]
    weights = {"vision_llm": 0.7, "dct": 0.3}
    with caplog.at_level(logging.WARNING, logger="trust_fingerprint"):
        attribution = matcher.match_observations(observations, weights)
    assert attribution.source_detector == "dct"
    assert any("vision_llm" in r.getMessage() for r in caplog.records)


def test_no_fingerprint_returns_none():
    assert matcher.match_observations([make_obs("dct", 0.4)], {"dct": 1.0}) is None
    assert matcher.match_observations([], {}) is None


def test_non_vector_fingerprint_is_skipped(caplog, synthetic_fingerprint):
    decoded = {"spectral_bands": [0.125] * 8}
    with pytest.raises(MalformedFingerprint):
        matcher.validate_fingerprint(decoded)

    observations = [
        make_obs("vision_llm", 0.9, fingerprint=decoded),
        make_obs("dct", 0.9, fingerprint=synthetic_fingerprint),
    ]
    with caplog.at_level(logging.WARNING, logger="trust_fingerprint"):
        attribution = matcher.match_observations(observations, {"vision_llm": 0.7, "dct": 0.3})
    assert attribution.source_detector == "dct"
    assert any("vision_llm" in r.getMessage() for r in caplog.records)
    assert matcher.match_observations(observations[:1], {"vision_llm": 1.0}) is None


# ── Confidence shaping ────────────────────────────────────────────────────────

def test_ai_confidence_is_boosted_above_top_similarity():
    # spectral, texture and noise match exactly; color is as far off as it gets
    reference = {
        "name": "Painter",
        "versions": ("Painter 1",),
        "spectral": (1, 1, 1, 1, 1, 1, 1, 1),
        "color": (0.0, 0.0, 0, ColorTemperature.warm),
        "texture": (0.5, 0.5, 0.5),
        "noise": (0.3, NoiseType.gaussian, 0.4),
        "characteristics": ("synthetic",),
    }
    fingerprint = make_fingerprint(
        bands=(0.125,) * 8,
        saturation_mean=1.0,
        saturation_variance=1.0,
        hue=180.0,
        temperature=ColorTemperature.cool,
        smoothness=0.5,
        repetitiveness=0.5,
        detail=0.5,
        noise_level=0.3,
        noise_type=NoiseType.gaussian,
        noise_frequency=0.4,
    )
    attribution = FingerprintMatcher(build_registry(generators=[reference])).match(fingerprint)

    top = attribution.identified_generator
    assert attribution.is_ai_generated
    assert top.name == "Painter"
    assert top.confidence == pytest.approx(0.755)
    assert set(top.matching_features) == {SPECTRAL_TAG, TEXTURE_TAG, NOISE_TAG}
    assert attribution.indicator_count == 2
    assert attribution.ai_confidence == pytest.approx(0.755 + 0.05 * 2 + 0.03 * 3)
    assert attribution.ai_confidence > top.confidence
