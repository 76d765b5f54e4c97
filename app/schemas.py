"""
app/schemas.py
Pydantic models for the analysis response contract.

The fusion core returns frozen dataclasses; the HTTP/application layer
serializes these models instead. Every probability-like field is
re-validated to [0, 1] here.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from fusion.types import (
    AnalysisResult,
    DisagreementClass,
    FusionMethod,
    Recommendation,
    ReliabilityLevel,
    Severity,
    UncertaintyRecommendation,
    Verdict,
)


# ── Fusion ────────────────────────────────────────────────────────────────────

class WeightAdjustmentInfo(BaseModel):
    detector        : str
    original_weight : float = Field(..., ge=0.0, le=1.0)
    adjusted_weight : float = Field(..., ge=0.0, le=1.0)
    reliability     : float = Field(..., ge=0.0, le=1.0)
    reason          : str


class FusionInfo(BaseModel):
    weights            : Dict[str, float]
    reliabilities      : Dict[str, float]
    fused_score        : float = Field(..., ge=0.0, le=1.0)
    static_score       : float = Field(..., ge=0.0, le=1.0)
    adjustments        : List[WeightAdjustmentInfo]
    degraded           : bool
    recommended_method : FusionMethod
    explanation        : str


# ── Calibration ───────────────────────────────────────────────────────────────

class DisagreementInfo(BaseModel):
    score             : float = Field(..., ge=0.0, le=1.0)
    std_dev           : float = Field(..., ge=0.0)
    range             : float = Field(..., ge=0.0, le=1.0)
    classification    : DisagreementClass
    conflicting_pairs : List[List[str]]
    explanation       : str


class CalibrationInfo(BaseModel):
    raw_score        : float = Field(..., ge=0.0, le=1.0)
    calibrated_score : float = Field(..., ge=0.0, le=1.0)
    trust_score      : float = Field(..., ge=0.0, le=1.0)
    recommendation   : Recommendation
    explanation      : str


# ── Spatial ───────────────────────────────────────────────────────────────────

class SpatialCellInfo(BaseModel):
    row          : int
    col          : int
    x            : float = Field(..., ge=0.0, le=1.0)
    y            : float = Field(..., ge=0.0, le=1.0)
    width        : float = Field(..., ge=0.0, le=1.0)
    height       : float = Field(..., ge=0.0, le=1.0)
    score        : float = Field(..., ge=0.0, le=1.0)
    anomaly_tags : List[str]
    color        : str
    opacity      : float = Field(..., ge=0.0, le=1.0)


class HotspotInfo(BaseModel):
    region    : str
    score     : float = Field(..., ge=0.0, le=1.0)
    anomalies : List[str]
    severity  : Severity


class SpatialInfo(BaseModel):
    rows               : int
    cols               : int
    cells              : List[SpatialCellInfo]
    hotspots           : List[HotspotInfo]
    suspicious_regions : List[str]
    uniformity_score   : float = Field(..., ge=0.0, le=1.0)
    is_composite       : bool
    explanation        : str


# ── Uncertainty ───────────────────────────────────────────────────────────────

class ConfidenceIntervalInfo(BaseModel):
    lower : float = Field(..., ge=0.0, le=1.0)
    upper : float = Field(..., ge=0.0, le=1.0)
    level : float = Field(..., gt=0.0, lt=1.0)


class UncertaintyDecompositionInfo(BaseModel):
    aleatoric : float = Field(..., ge=0.0, le=1.0)
    epistemic : float = Field(..., ge=0.0, le=1.0)
    total     : float = Field(..., ge=0.0, le=1.0)


class ReliabilityFactorInfo(BaseModel):
    name        : str
    impact      : str
    description : str


class ReliabilityInfo(BaseModel):
    score                    : float = Field(..., ge=0.0, le=1.0)
    level                    : ReliabilityLevel
    human_review_recommended : bool
    reason                   : str
    factors                  : List[ReliabilityFactorInfo]


class EnsembleAgreementInfo(BaseModel):
    member_count             : int = Field(..., ge=0)
    mean_prediction          : float = Field(..., ge=0.0, le=1.0)
    variance                 : float = Field(..., ge=0.0)
    coefficient_of_variation : float = Field(..., ge=0.0)
    max_disagreement         : float = Field(..., ge=0.0, le=1.0)


class UncertaintyInfo(BaseModel):
    prediction          : float = Field(..., ge=0.0, le=1.0)
    confidence_interval : ConfidenceIntervalInfo
    std_dev             : float = Field(..., ge=0.0)
    decomposition       : UncertaintyDecompositionInfo
    reliability         : ReliabilityInfo
    agreement           : EnsembleAgreementInfo
    recommendation      : UncertaintyRecommendation
    outliers            : List[str]


# ── Attribution ───────────────────────────────────────────────────────────────

class GeneratorMatchInfo(BaseModel):
    name              : str
    confidence        : float = Field(..., ge=0.0, le=1.0)
    matching_features : List[str]
    version           : Optional[str] = None
    is_baseline       : bool = False


class AttributionInfo(BaseModel):
    is_ai_generated      : bool
    ai_confidence        : float = Field(..., ge=0.0, le=1.0)
    identified_generator : Optional[GeneratorMatchInfo]
    all_matches          : List[GeneratorMatchInfo]
    indicator_count      : int = Field(..., ge=0, le=5)
    analysis             : Dict[str, str]
    source_detector      : Optional[str]


# ── Envelope ──────────────────────────────────────────────────────────────────

class AnalysisResponse(BaseModel):
    verdict            : Verdict
    confidence         : float = Field(..., ge=0.0, le=1.0)
    explanation        : str
    calibration        : CalibrationInfo
    disagreement       : DisagreementInfo
    fusion             : FusionInfo
    spatial            : SpatialInfo
    uncertainty        : UncertaintyInfo
    attribution        : Optional[AttributionInfo]   # None if no usable fingerprint
    processing_time_ms : float = Field(..., ge=0.0)
    timestamp          : Optional[str] = None


def _match_info(match) -> GeneratorMatchInfo:
    return GeneratorMatchInfo(
        name=match.name,
        confidence=match.confidence,
        matching_features=list(match.matching_features),
        version=match.version,
        is_baseline=match.is_baseline,
    )


def build_response(
    result: AnalysisResult,
    processing_time_ms: float = 0.0,
    timestamp: Optional[str] = None,
) -> AnalysisResponse:
    """Convert a core AnalysisResult into the validated response model."""
    fusion, calibration = result.fusion, result.calibration
    disagreement, spatial = result.disagreement, result.spatial
    uncertainty, attribution = result.uncertainty, result.attribution

    return AnalysisResponse(
        verdict=result.verdict,
        confidence=result.confidence,
        explanation=result.explanation,
        calibration=CalibrationInfo(
            raw_score=calibration.raw_score,
            calibrated_score=calibration.calibrated_score,
            trust_score=calibration.trust_score,
            recommendation=calibration.recommendation,
            explanation=calibration.explanation,
        ),
        disagreement=DisagreementInfo(
            score=disagreement.score,
            std_dev=disagreement.std_dev,
            range=disagreement.range,
            classification=disagreement.classification,
            conflicting_pairs=[list(pair) for pair in disagreement.conflicting_pairs],
            explanation=disagreement.explanation,
        ),
        fusion=FusionInfo(
            weights=dict(fusion.weights),
            reliabilities=dict(fusion.reliabilities),
            fused_score=fusion.fused_score,
            static_score=fusion.static_score,
            adjustments=[
                WeightAdjustmentInfo(
                    detector=a.detector,
                    original_weight=a.original_weight,
                    adjusted_weight=a.adjusted_weight,
                    reliability=a.reliability,
                    reason=a.reason,
                )
                for a in fusion.adjustments
            ],
            degraded=fusion.degraded,
            recommended_method=fusion.recommended_method,
            explanation=fusion.explanation,
        ),
        spatial=SpatialInfo(
            rows=spatial.grid.rows,
            cols=spatial.grid.cols,
            cells=[
                SpatialCellInfo(
                    row=cell.row,
                    col=cell.col,
                    x=cell.bounds.x,
                    y=cell.bounds.y,
                    width=cell.bounds.width,
                    height=cell.bounds.height,
                    score=cell.score,
                    anomaly_tags=list(cell.anomaly_tags),
                    color=cell.color,
                    opacity=cell.opacity,
                )
                for row in spatial.grid.cells
                for cell in row
            ],
            hotspots=[
                HotspotInfo(region=h.region, score=h.score, anomalies=list(h.anomalies), severity=h.severity)
                for h in spatial.hotspots
            ],
            suspicious_regions=list(spatial.suspicious_regions),
            uniformity_score=spatial.uniformity_score,
            is_composite=spatial.is_composite,
            explanation=spatial.explanation,
        ),
        uncertainty=UncertaintyInfo(
            prediction=uncertainty.prediction,
            confidence_interval=ConfidenceIntervalInfo(
                lower=uncertainty.confidence_interval.lower,
                upper=uncertainty.confidence_interval.upper,
                level=uncertainty.confidence_interval.level,
            ),
            std_dev=uncertainty.std_dev,
            decomposition=UncertaintyDecompositionInfo(
                aleatoric=uncertainty.decomposition.aleatoric,
                epistemic=uncertainty.decomposition.epistemic,
                total=uncertainty.decomposition.total,
            ),
            reliability=ReliabilityInfo(
                score=uncertainty.reliability.score,
                level=uncertainty.reliability.level,
                human_review_recommended=uncertainty.reliability.human_review_recommended,
                reason=uncertainty.reliability.reason,
                factors=[
                    ReliabilityFactorInfo(name=f.name, impact=f.impact, description=f.description)
                    for f in uncertainty.reliability.factors
                ],
            ),
            agreement=EnsembleAgreementInfo(
                member_count=uncertainty.agreement.member_count,
                mean_prediction=uncertainty.agreement.mean_prediction,
                variance=uncertainty.agreement.variance,
                coefficient_of_variation=uncertainty.agreement.coefficient_of_variation,
                max_disagreement=uncertainty.agreement.max_disagreement,
            ),
            recommendation=uncertainty.recommendation,
            outliers=list(uncertainty.outliers),
        ),
        attribution=None if attribution is None else AttributionInfo(
            is_ai_generated=attribution.is_ai_generated,
            ai_confidence=attribution.ai_confidence,
            identified_generator=(_match_info(attribution.identified_generator)
                                  if attribution.identified_generator else None),
            all_matches=[_match_info(m) for m in attribution.all_matches],
            indicator_count=attribution.indicator_count,
            analysis=dict(attribution.analysis),
            source_detector=attribution.source_detector,
        ),
        processing_time_ms=processing_time_ms,
        timestamp=timestamp,
    )
