"""
fusion/metrics.py
Batch metrics over many analyses, for evaluation runs and dashboards.
"""

from collections import defaultdict
from typing import Dict, Sequence, Tuple

from fusion.config import DEFAULT_SETTINGS
from fusion.stats import population_std
from fusion.types import (
    CalibratedVerdict,
    DisagreementAnalysis,
    DisagreementClass,
    FusionResult,
    SpatialAnalysis,
)

# Disagreement above which calibration is expected to move the score,
# and the movement that counts as "did adjust"
SHOULD_ADJUST_ABOVE = 0.15
DID_ADJUST_ABOVE    = 0.02


def calibration_metrics(results: Sequence[Tuple[DisagreementAnalysis, CalibratedVerdict]]) -> Dict[str, float]:
    """
    `results` are (DisagreementAnalysis, CalibratedVerdict) pairs as returned
    by `DisagreementCalibrator.calibrate`.

    calibration_effectiveness is the share of analyses where calibration
    moved the score exactly when disagreement called for it.
    """
    if not results:
        return {
            "average_trust_score": 0.0,
            "conflict_rate": 0.0,
            "average_adjustment": 0.0,
            "calibration_effectiveness": 0.0,
        }

    n = len(results)
    trust = conflicts = adjustment = effective = 0.0
    for disagreement, verdict in results:
        moved = abs(verdict.raw_score - verdict.calibrated_score)
        trust += verdict.trust_score
        adjustment += moved
        if disagreement.classification == DisagreementClass.conflict:
            conflicts += 1
        should = disagreement.score > SHOULD_ADJUST_ABOVE
        did = moved > DID_ADJUST_ABOVE
        if should == did:
            effective += 1

    return {
        "average_trust_score": trust / n,
        "conflict_rate": conflicts / n,
        "average_adjustment": adjustment / n,
        "calibration_effectiveness": effective / n,
    }


def spatial_metrics(analysis: SpatialAnalysis) -> Dict[str, float]:
    hotspots = analysis.hotspots
    scores = analysis.grid.scores()
    return {
        "hotspot_count": len(hotspots),
        "average_hotspot_score": (sum(h.score for h in hotspots) / len(hotspots)) if hotspots else 0.0,
        "uniformity_score": analysis.uniformity_score,
        "composite_detected": analysis.is_composite,
        "spatial_variance": population_std(scores) ** 2,
    }


def weighting_metrics(results: Sequence[FusionResult], significant_shift: float = None) -> Dict:
    """
    Average absolute weight shift against the static prior, how often a
    significant shift happened, and mean reliability per detector.
    """
    significant_shift = (DEFAULT_SETTINGS.fusion.significant_shift
                         if significant_shift is None else significant_shift)
    if not results:
        return {
            "average_weight_shift": 0.0,
            "adjustment_frequency": 0.0,
            "average_reliability": {},
            "impact_on_scores": 0.0,
        }

    total_shift = 0.0
    shift_terms = 0
    adjusted = 0
    impact = 0.0
    reliability_sum = defaultdict(float)
    reliability_count = defaultdict(int)

    for result in results:
        shifts = [abs(a.adjusted_weight - a.original_weight) for a in result.adjustments]
        total_shift += sum(shifts)
        shift_terms += len(shifts)
        if any(s > significant_shift for s in shifts):
            adjusted += 1
        impact += abs(result.fused_score - result.static_score)
        for name, value in result.reliabilities.items():
            reliability_sum[name] += value
            reliability_count[name] += 1

    return {
        "average_weight_shift": total_shift / shift_terms if shift_terms else 0.0,
        "adjustment_frequency": adjusted / len(results),
        "average_reliability": {
            name: reliability_sum[name] / reliability_count[name] for name in reliability_sum
        },
        "impact_on_scores": impact / len(results),
    }
