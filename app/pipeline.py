"""
app/pipeline.py

Trust Fusion Pipeline Orchestrator
==================================

Stage 1: Input hygiene (clamp, dedupe detector names)
Stage 2: Reliability-weighted fusion
Stage 3: Disagreement-aware calibration
Stage 4: Spatial attribution, uncertainty, fingerprint attribution
Stage 5: Composite result + explanation

Detector observations arrive already gathered; every stage is a pure
function of them and the configuration. Only `execute_analysis` reads the
clock, to stamp the response envelope.
"""
import time
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from app.schemas import AnalysisResponse, build_response
from fusion.calibration import DisagreementCalibrator
from fusion.config import FusionSettings, DEFAULT_SETTINGS
from fusion.fingerprint import FingerprintMatcher
from fusion.reliability import ReliabilityEstimator, sanitize_observations
from fusion.signatures import DEFAULT_REGISTRY, SignatureRegistry
from fusion.spatial import SpatialAttributionMapper
from fusion.types import (
    AnalysisResult,
    AuxiliaryVoter,
    CalibratedVerdict,
    DetectorObservation,
    DisagreementAnalysis,
    DisagreementClass,
    GeneratorAttribution,
    Recommendation,
    SpatialAnalysis,
    Verdict,
)
from fusion.uncertainty import UncertaintyQuantifier
from fusion.weighting import ReliabilityWeightedFusion

logger = logging.getLogger("trust_pipeline")


class TrustFusionPipeline:
    def __init__(self, settings: FusionSettings = None, registry: SignatureRegistry = None):
        self.settings = (settings or DEFAULT_SETTINGS).validate()
        self.estimator = ReliabilityEstimator(self.settings.reliability)
        self.fusion = ReliabilityWeightedFusion(self.settings.fusion, self.estimator)
        self.calibrator = DisagreementCalibrator(self.settings.calibration)
        self.spatial = SpatialAttributionMapper(self.settings.spatial)
        self.uncertainty = UncertaintyQuantifier(self.settings.uncertainty)
        self.matcher = FingerprintMatcher(registry or DEFAULT_REGISTRY, self.settings.fingerprint)

    def analyze(
        self,
        observations: Sequence[DetectorObservation],
        auxiliary: Sequence[AuxiliaryVoter] = (),
        secondary_grid: Optional[Sequence[Sequence[float]]] = None,
    ) -> AnalysisResult:
        """Run every stage over one request's detector observations."""
        observations = sanitize_observations(observations)

        fusion = self.fusion.fuse(observations)
        entries = fusion.scored(observations)
        disagreement, calibration = self.calibrator.calibrate(
            fusion.fused_score, entries, degraded=fusion.degraded,
        )

        spatial = self.spatial.map_observations(
            observations, fusion.weights, fusion.fused_score, secondary_grid,
        )
        uncertainty = self.uncertainty.quantify(
            entries,
            auxiliary=auxiliary,
            trust_score=calibration.trust_score,
            disagreement_class=disagreement.classification,
        )
        attribution = self.matcher.match_observations(observations, fusion.weights)

        logger.info(
            f"Analysis: {calibration.verdict.value} "
            f"(calibrated={calibration.calibrated_score:.3f}, trust={calibration.trust_score:.3f}, "
            f"{disagreement.classification.value}, detectors={len(observations)})"
        )

        return AnalysisResult(
            verdict=calibration.verdict,
            confidence=calibration.calibrated_score,
            calibration=calibration,
            disagreement=disagreement,
            fusion=fusion,
            spatial=spatial,
            uncertainty=uncertainty,
            attribution=attribution,
            explanation=overall_explanation(calibration, disagreement, spatial, attribution),
        )


_VERDICT_LINES = {
    Verdict.AI_GENERATED: "This image shows strong indicators of AI generation with a {p}% calibrated confidence score. ",
    Verdict.LIKELY_AI:    "This image shows significant indicators suggesting it may be AI-generated ({p}% calibrated confidence). ",
    Verdict.UNCERTAIN:    "The analysis is inconclusive with a {p}% AI likelihood score. ",
    Verdict.LIKELY_REAL:  "This image appears to be authentic with only minor concerns ({p}% AI likelihood). ",
    Verdict.REAL:         "This image shows strong indicators of being a real photograph ({p}% AI likelihood). ",
}

_RECOMMENDATION_LINES = {
    Recommendation.human_review_recommended: "Due to significant detector disagreement, human review is recommended.",
    Recommendation.low_confidence:           "Results should be interpreted with caution due to detector uncertainty.",
    Recommendation.moderate_confidence:      "Results are reasonably reliable.",
    Recommendation.high_confidence:          "High confidence in this classification.",
}


def overall_explanation(
    calibration: CalibratedVerdict,
    disagreement: DisagreementAnalysis,
    spatial: SpatialAnalysis,
    attribution: Optional[GeneratorAttribution],
) -> str:
    text = _VERDICT_LINES[calibration.verdict].format(p=f"{calibration.calibrated_score * 100:.1f}")

    if disagreement.classification != DisagreementClass.agreement:
        text += f"Note: {disagreement.explanation} "

    if spatial.is_composite:
        text += ("IMPORTANT: Spatial analysis suggests this may be a COMPOSITE image "
                 "with mixed real and AI-generated content. ")
    elif spatial.hotspots:
        text += f"Spatial analysis identified {len(spatial.hotspots)} suspicious region(s). "

    if attribution is not None and attribution.identified_generator is not None:
        text += (f"Fingerprint analysis: characteristics of {attribution.identified_generator.name} "
                 f"generation ({attribution.ai_confidence * 100:.0f}% confidence). ")

    return text + _RECOMMENDATION_LINES[calibration.recommendation]


# ── Singleton ─────────────────────────────────────────────────────────────────
trust_pipeline = TrustFusionPipeline()


def execute_analysis(
    observations: Sequence[DetectorObservation],
    auxiliary: Sequence[AuxiliaryVoter] = (),
    secondary_grid: Optional[Sequence[Sequence[float]]] = None,
    pipeline: TrustFusionPipeline = None,
) -> AnalysisResponse:
    """Run the pipeline and wrap the result in the response envelope."""
    pipeline = pipeline or trust_pipeline
    t_start = time.time()
    result = pipeline.analyze(observations, auxiliary=auxiliary, secondary_grid=secondary_grid)
    elapsed_ms = round((time.time() - t_start) * 1000, 2)
    return build_response(
        result,
        processing_time_ms=elapsed_ms,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
