"""
fusion/weighting.py

Reliability-Weighted Fusion Engine
==================================

Static ensemble weights assume every detector is equally healthy on every
image. Here each detector's static prior is scaled by its per-image
reliability:

    adjusted_i  = base_i * reliability_i
    weight_i    = adjusted_i / Σ adjusted      (then floored, renormalized)
    fused_score = Σ raw_score_i * weight_i

Every weight change is recorded in an audit trail with a human-readable
reason. If no detector is usable (all errored, or the adjusted mass
collapses to ~0) the static prior is used and the result is flagged as
degraded so downstream trust can never be reported as high.
"""

import math
import logging
from typing import Dict, List, Sequence

from fusion.config import FusionConfig, DEFAULT_SETTINGS
from fusion.reliability import ReliabilityEstimator, reliability_estimator
from fusion.stats import clamp
from fusion.types import (
    DetectorObservation,
    DetectorStatus,
    FusionMethod,
    FusionResult,
    WeightAdjustment,
)

logger = logging.getLogger("trust_weighting")


def normalize(weights: Dict[str, float]) -> Dict[str, float]:
    """Scale weights to sum to 1; uniform if they carry no mass."""
    total = math.fsum(weights.values())
    if not weights:
        return {}
    if total <= 0.0:
        uniform = 1.0 / len(weights)
        return {name: uniform for name in weights}
    return {name: w / total for name, w in weights.items()}


def apply_floor(weights: Dict[str, float], floor: float) -> Dict[str, float]:
    """
    Raise every weight to at least `floor` while keeping the sum at 1.

    Weights below the floor are pinned to it and the remaining mass is
    redistributed proportionally over the others, repeated until stable.
    If `floor * n > 1` no such vector exists and uniform weights are returned.
    """
    n = len(weights)
    if n == 0 or floor <= 0.0:
        return dict(weights)
    if floor * n >= 1.0:
        return {name: 1.0 / n for name in weights}

    pinned = set()
    result = dict(weights)
    while True:
        free = [name for name in result if name not in pinned]
        free_mass = 1.0 - floor * len(pinned)
        free_total = math.fsum(weights[name] for name in free)
        for name in free:
            result[name] = (weights[name] / free_total * free_mass) if free_total > 0 else free_mass / len(free)
        newly_pinned = [name for name in free if result[name] < floor]
        if not newly_pinned:
            break
        for name in newly_pinned:
            pinned.add(name)
            result[name] = floor

    return result


class ReliabilityWeightedFusion:
    def __init__(self, config: FusionConfig = None, estimator: ReliabilityEstimator = None):
        self.config = config or DEFAULT_SETTINGS.fusion
        self.config.validate()
        self.estimator = estimator or reliability_estimator

    def static_prior(self, names: Sequence[str]) -> Dict[str, float]:
        """Base weights for the participating detectors, normalized."""
        return normalize({name: self.config.base_weight(name) for name in names})

    def fuse(self, observations: Sequence[DetectorObservation]) -> FusionResult:
        """
        Run reliability-weighted fusion over one request's observations.
        Expects sanitized observations with unique names.
        """
        names = [obs.name for obs in observations]
        prior = self.static_prior(names)

        if not observations:
            logger.warning("Fusion called with no detector observations, returning a degraded neutral result")
            return FusionResult(
                weights={},
                reliabilities={},
                fused_score=0.5,
                static_score=0.5,
                adjustments=(),
                degraded=True,
                recommended_method=FusionMethod.static,
                explanation="No detector observations were available; the result is neutral.",
            )

        reliabilities = {obs.name: self.estimator.estimate(obs) for obs in observations}
        adjusted = {name: self.config.base_weight(name) * reliabilities[name] for name in names}
        total_adjusted = math.fsum(adjusted.values())

        all_errored = all(obs.status == DetectorStatus.error for obs in observations)
        degraded = all_errored or total_adjusted <= self.config.zero_weight_epsilon

        if degraded:
            logger.warning(
                f"No usable detectors among {len(observations)}, falling back to static prior"
            )
            weights = prior
        else:
            weights = normalize(adjusted)
        weights = apply_floor(weights, self.config.weight_floor)

        fused = clamp(math.fsum(obs.raw_score * weights[obs.name] for obs in observations))
        static_score = clamp(math.fsum(obs.raw_score * prior[obs.name] for obs in observations))

        adjustments = tuple(
            WeightAdjustment(
                detector=obs.name,
                original_weight=prior[obs.name],
                adjusted_weight=weights[obs.name],
                reliability=reliabilities[obs.name],
                reason=self._adjustment_reason(obs, reliabilities[obs.name], degraded),
            )
            for obs in observations
        )
        for adj in adjustments:
            logger.debug(
                f"{adj.detector}: weight {adj.original_weight:.3f} → {adj.adjusted_weight:.3f} "
                f"(reliability {adj.reliability:.3f})"
            )

        return FusionResult(
            weights=weights,
            reliabilities=reliabilities,
            fused_score=fused,
            static_score=static_score,
            adjustments=adjustments,
            degraded=degraded,
            recommended_method=self.recommended_method(list(reliabilities.values())),
            explanation=self._explain(adjustments, degraded),
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _adjustment_reason(self, obs: DetectorObservation, reliability: float, degraded: bool) -> str:
        if degraded:
            return "No usable detectors - static prior weight applied"
        if obs.status == DetectorStatus.error:
            return "Weight reduced due to detector error"
        if obs.status == DetectorStatus.fallback:
            return "Weight reduced due to fallback mode"
        if reliability > 0.8:
            return "High reliability - detector confident in result"
        if reliability > 0.5:
            return "Moderate reliability - standard weight applied"
        return "Lower reliability - reduced influence on final score"

    def _explain(self, adjustments: Sequence[WeightAdjustment], degraded: bool) -> str:
        if degraded:
            return ("All detectors failed or reported no usable signal. "
                    "Static prior weights were applied; treat the result as low-trust.")

        significant = [
            a for a in adjustments
            if abs(a.adjusted_weight - a.original_weight) > self.config.significant_shift
        ]
        final = ", ".join(f"{a.detector}={a.adjusted_weight * 100:.0f}%" for a in adjustments)
        if not significant:
            return f"All detectors showed comparable reliability. Weights stayed close to the prior ({final})."

        parts = []
        for adj in significant:
            change = adj.adjusted_weight - adj.original_weight
            direction = "increased" if change > 0 else "decreased"
            parts.append(f"{adj.detector} {direction} by {abs(change) * 100:.0f}% ({adj.reason})")
        return "Dynamic weight adjustment applied: " + "; ".join(parts) + f". Final weights: {final}."

    @staticmethod
    def recommended_method(reliabilities: List[float]) -> FusionMethod:
        if not reliabilities:
            return FusionMethod.static
        average = sum(reliabilities) / len(reliabilities)
        if average > 0.8 and min(reliabilities) > 0.7:
            return FusionMethod.static
        if sum(1 for r in reliabilities if r > 0.5) == 1:
            return FusionMethod.single_detector
        return FusionMethod.dynamic


# ── Singleton ─────────────────────────────────────────────────────────────────
weighted_fusion = ReliabilityWeightedFusion()
