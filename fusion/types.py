"""
fusion/types.py

Typed contracts for the trust fusion core.

Detector collaborators hand in `DetectorObservation`s; every component
returns immutable result objects built from the dataclasses below. Nothing
here inspects free-text labels: status, regions, temperatures and noise
types are all enums.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple


# ── Enums ─────────────────────────────────────────────────────────────────────

class DetectorStatus(str, Enum):
    success  = "success"
    fallback = "fallback"
    error    = "error"


class RegionId(str, Enum):
    top_left     = "top_left"
    top_right    = "top_right"
    bottom_left  = "bottom_left"
    bottom_right = "bottom_right"
    center       = "center"


class ColorTemperature(str, Enum):
    warm    = "warm"
    neutral = "neutral"
    cool    = "cool"


class NoiseType(str, Enum):
    gaussian   = "gaussian"
    uniform    = "uniform"
    structured = "structured"


class DisagreementClass(str, Enum):
    agreement = "agreement"
    mild      = "mild"
    moderate  = "moderate"
    severe    = "severe"
    conflict  = "conflict"


class Recommendation(str, Enum):
    high_confidence          = "high_confidence"
    moderate_confidence      = "moderate_confidence"
    low_confidence           = "low_confidence"
    human_review_recommended = "human_review_recommended"


class Verdict(str, Enum):
    AI_GENERATED = "AI_GENERATED"
    LIKELY_AI    = "LIKELY_AI"
    UNCERTAIN    = "UNCERTAIN"
    LIKELY_REAL  = "LIKELY_REAL"
    REAL         = "REAL"


class ReliabilityLevel(str, Enum):
    high     = "high"
    moderate = "moderate"
    low      = "low"
    very_low = "very_low"


class UncertaintyRecommendation(str, Enum):
    high_confidence_ai            = "high_confidence_ai"
    high_confidence_real          = "high_confidence_real"
    moderate_confidence           = "moderate_confidence"
    low_confidence_needs_review   = "low_confidence_needs_review"
    very_uncertain_human_required = "very_uncertain_human_required"


class Severity(str, Enum):
    low    = "low"
    medium = "medium"
    high   = "high"


class FusionMethod(str, Enum):
    static          = "static"
    dynamic         = "dynamic"
    single_detector = "single_detector"


# ── Fingerprint ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ColorProfile:
    saturation_mean     : float
    saturation_variance : float
    dominant_hue        : float              # degrees, 0–360
    temperature         : ColorTemperature


@dataclass(frozen=True)
class TextureProfile:
    smoothness     : float
    repetitiveness : float
    detail_level   : float


@dataclass(frozen=True)
class NoiseProfile:
    level     : float
    type      : NoiseType
    frequency : float


@dataclass(frozen=True)
class FeatureVector:
    spectral_bands : Tuple[float, ...]       # 8 bands summing to 1
    color          : ColorProfile
    texture        : TextureProfile
    noise          : NoiseProfile


# ── Detector input ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DetectorObservation:
    name                : str
    raw_score           : float
    internal_confidence : float
    status              : DetectorStatus = DetectorStatus.success
    latency_ms          : float = 0.0
    region_scores       : Optional[Mapping[RegionId, float]] = None
    region_anomalies    : Optional[Mapping[RegionId, Sequence[str]]] = None
    fingerprint         : Optional[FeatureVector] = None

    @property
    def usable(self) -> bool:
        return self.status != DetectorStatus.error


@dataclass(frozen=True)
class AuxiliaryVoter:
    """Extra ensemble member (e.g. an additional analysis branch) used only for uncertainty."""
    name       : str
    score      : float
    weight     : float
    confidence : Optional[float] = None


@dataclass(frozen=True)
class ScoredDetector:
    """(score, weight, confidence) triple handed from fusion to calibration and uncertainty."""
    name       : str
    score      : float
    weight     : float
    confidence : float
    usable     : bool = True


# ── Fusion ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WeightAdjustment:
    detector        : str
    original_weight : float
    adjusted_weight : float
    reliability     : float
    reason          : str


@dataclass(frozen=True)
class FusionResult:
    weights            : Dict[str, float]
    reliabilities      : Dict[str, float]
    fused_score        : float
    static_score       : float
    adjustments        : Tuple[WeightAdjustment, ...]
    degraded           : bool
    recommended_method : FusionMethod
    explanation        : str

    def scored(self, observations: Sequence[DetectorObservation]) -> List[ScoredDetector]:
        return [
            ScoredDetector(
                name=obs.name,
                score=obs.raw_score,
                weight=self.weights[obs.name],
                confidence=obs.internal_confidence,
                usable=obs.usable,
            )
            for obs in observations
        ]


# ── Calibration ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DisagreementAnalysis:
    score             : float
    std_dev           : float
    range             : float
    classification    : DisagreementClass
    conflicting_pairs : Tuple[Tuple[str, str], ...]
    explanation       : str


@dataclass(frozen=True)
class CalibratedVerdict:
    raw_score        : float
    calibrated_score : float
    trust_score      : float
    recommendation   : Recommendation
    verdict          : Verdict
    explanation      : str


# ── Spatial ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CellBounds:
    x      : float
    y      : float
    width  : float
    height : float


@dataclass(frozen=True)
class SpatialCell:
    row          : int
    col          : int
    bounds       : CellBounds
    score        : float
    anomaly_tags : Tuple[str, ...] = ()
    color        : str = "#000000"
    opacity      : float = 0.3


@dataclass(frozen=True)
class SpatialGrid:
    rows  : int
    cols  : int
    cells : Tuple[Tuple[SpatialCell, ...], ...]

    def scores(self) -> List[float]:
        return [cell.score for row in self.cells for cell in row]

    def cell(self, row: int, col: int) -> SpatialCell:
        return self.cells[row][col]


@dataclass(frozen=True)
class Hotspot:
    region    : str
    score     : float
    anomalies : Tuple[str, ...]
    severity  : Severity


@dataclass(frozen=True)
class SpatialAnalysis:
    grid               : SpatialGrid
    hotspots           : Tuple[Hotspot, ...]
    suspicious_regions : Tuple[str, ...]
    uniformity_score   : float
    is_composite       : bool
    explanation        : str


# ── Uncertainty ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ConfidenceInterval:
    lower : float
    upper : float
    level : float


@dataclass(frozen=True)
class UncertaintyDecomposition:
    aleatoric : float
    epistemic : float
    total     : float


@dataclass(frozen=True)
class ReliabilityFactor:
    name        : str
    impact      : str            # positive | negative | neutral
    description : str


@dataclass(frozen=True)
class ReliabilityAssessment:
    score                    : float
    level                    : ReliabilityLevel
    human_review_recommended : bool
    reason                   : str
    factors                  : Tuple[ReliabilityFactor, ...] = ()


@dataclass(frozen=True)
class EnsembleAgreement:
    member_count             : int
    mean_prediction          : float
    variance                 : float
    coefficient_of_variation : float
    max_disagreement         : float


@dataclass(frozen=True)
class UncertaintyEstimate:
    prediction          : float
    confidence_interval : ConfidenceInterval
    std_dev             : float
    decomposition       : UncertaintyDecomposition
    reliability         : ReliabilityAssessment
    agreement           : EnsembleAgreement
    recommendation      : UncertaintyRecommendation
    outliers            : Tuple[str, ...] = ()


# ── Attribution ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class GeneratorSignature:
    name            : str
    signature       : FeatureVector
    characteristics : Tuple[str, ...]
    versions        : Tuple[str, ...] = ()
    is_baseline     : bool = False

    @property
    def latest_version(self) -> Optional[str]:
        return self.versions[-1] if self.versions else None


@dataclass(frozen=True)
class GeneratorMatch:
    name              : str
    confidence        : float
    matching_features : Tuple[str, ...]
    version           : Optional[str] = None
    is_baseline       : bool = False


@dataclass(frozen=True)
class GeneratorAttribution:
    all_matches          : Tuple[GeneratorMatch, ...]
    identified_generator : Optional[GeneratorMatch]
    is_ai_generated      : bool
    ai_confidence        : float
    indicator_count      : int
    analysis             : Dict[str, str] = field(default_factory=dict)
    source_detector      : Optional[str] = None


# ── Composite ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AnalysisResult:
    verdict      : Verdict
    confidence   : float
    calibration  : CalibratedVerdict
    disagreement : DisagreementAnalysis
    fusion       : FusionResult
    spatial      : SpatialAnalysis
    uncertainty  : UncertaintyEstimate
    attribution  : Optional[GeneratorAttribution]
    explanation  : str
