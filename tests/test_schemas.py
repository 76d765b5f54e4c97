"""
tests/test_schemas.py
Response envelope built from a core AnalysisResult.
"""

import pytest
from pydantic import ValidationError

from conftest import make_obs
from app.pipeline import TrustFusionPipeline
from app.schemas import AnalysisResponse, build_response
from fusion.types import Recommendation, Verdict

pipeline = TrustFusionPipeline()


def test_build_response_mirrors_result(conflicting_observations):
    result = pipeline.analyze(conflicting_observations)
    response = build_response(result, processing_time_ms=12.5, timestamp="2024-01-01T00:00:00+00:00")
    assert response.verdict == result.verdict
    assert response.confidence == result.confidence
    assert response.calibration.recommendation == Recommendation.human_review_recommended
    assert response.fusion.weights == result.fusion.weights
    assert len(response.fusion.adjustments) == 3
    assert response.spatial.rows == 3 and len(response.spatial.cells) == 9
    assert response.uncertainty.confidence_interval.level == 0.95
    assert response.uncertainty.agreement.member_count == 3
    assert response.uncertainty.recommendation == result.uncertainty.recommendation
    assert response.processing_time_ms == 12.5


def test_attribution_is_serialized(agreeing_observations, synthetic_fingerprint):
    observations = list(agreeing_observations) + [make_obs("fingerprint", 0.9, fingerprint=synthetic_fingerprint)]
    response = build_response(pipeline.analyze(observations))
    attribution = response.attribution
    assert attribution.identified_generator.name == "Google Imagen"
    assert any(m.is_baseline for m in attribution.all_matches)
    assert set(attribution.analysis) == {"spectral_match", "color_match", "texture_match", "overall_assessment"}


def test_out_of_range_confidence_is_rejected(agreeing_observations):
    payload = build_response(pipeline.analyze(agreeing_observations)).model_dump()
    payload["confidence"] = 1.5
    with pytest.raises(ValidationError):
        AnalysisResponse(**payload)


def test_unknown_verdict_is_rejected(agreeing_observations):
    payload = build_response(pipeline.analyze(agreeing_observations)).model_dump()
    assert payload["verdict"] == Verdict.AI_GENERATED
    payload["verdict"] = "PROBABLY_FINE"
    with pytest.raises(ValidationError):
        AnalysisResponse(**payload)


def test_negative_processing_time_is_rejected(agreeing_observations):
    with pytest.raises(ValidationError):
        build_response(pipeline.analyze(agreeing_observations), processing_time_ms=-1.0)
