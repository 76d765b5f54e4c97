"""
fusion/calibration.py

Disagreement-Aware Confidence Calibration
=========================================

A weighted average of detectors that fundamentally disagree still produces
a confident-looking number. This module measures how much the detectors
disagree and pulls the fused score toward "uncertain" in proportion:

    disagreement = min(1, (2 * weighted_std + range) / 2)
    calibrated   = 0.5 + (fused - 0.5) * (1 - λ * disagreement)
    trust        = 1 - disagreement

Two detectors *conflict* when they land on opposite sides of the decision
boundary with a safety gap (one above 0.5 + margin, the other below
0.5 - margin). A conflict overrides the severity ladder and always asks
for human review.
"""

import logging
from itertools import combinations
from typing import List, Sequence, Tuple

from fusion.config import CalibrationConfig, DEFAULT_SETTINGS
from fusion.stats import clamp, weighted_mean_std
from fusion.types import (
    CalibratedVerdict,
    DisagreementAnalysis,
    DisagreementClass,
    Recommendation,
    ScoredDetector,
    Verdict,
)

logger = logging.getLogger("trust_calibration")


class DisagreementCalibrator:
    def __init__(self, config: CalibrationConfig = None):
        self.config = config or DEFAULT_SETTINGS.calibration
        self.config.validate()

    # ═══════════════════════════════════════════════════════════════════════════
    # DISAGREEMENT
    # ═══════════════════════════════════════════════════════════════════════════

    def analyze_disagreement(
        self,
        entries: Sequence[ScoredDetector],
        degraded: bool = False,
    ) -> DisagreementAnalysis:
        """
        Measure inter-detector disagreement.

        The weighted standard deviation runs over every entry with its fusion
        weight (errored detectors already sit at the weight floor). Range and
        conflict pairs only consider usable detectors, so a dead detector's
        placeholder score cannot manufacture a conflict.
        """
        _, std_dev = weighted_mean_std([e.score for e in entries], [e.weight for e in entries])

        usable = [e for e in entries if e.usable]
        usable_scores = [e.score for e in usable]
        score_range = (max(usable_scores) - min(usable_scores)) if len(usable_scores) > 1 else 0.0

        score = clamp((2.0 * std_dev + score_range) / 2.0)
        pairs = self.conflicting_pairs(usable)
        classification = self.classify(score, bool(pairs))

        if degraded:
            classification = DisagreementClass.conflict

        if classification == DisagreementClass.conflict:
            logger.info(
                f"Detector conflict (disagreement={score:.3f}): "
                + (", ".join(f"{a} vs {b}" for a, b in pairs) or "no usable detectors")
            )

        return DisagreementAnalysis(
            score=score,
            std_dev=std_dev,
            range=score_range,
            classification=classification,
            conflicting_pairs=pairs,
            explanation=self._explain_disagreement(usable, classification, pairs, std_dev, degraded),
        )

    def conflicting_pairs(self, entries: Sequence[ScoredDetector]) -> Tuple[Tuple[str, str], ...]:
        upper = self.config.neutral_point + self.config.conflict_margin
        lower = self.config.neutral_point - self.config.conflict_margin

        def side(score: float) -> int:
            if score > upper:
                return 1
            if score < lower:
                return -1
            return 0

        pairs = set()
        for a, b in combinations(entries, 2):
            if side(a.score) * side(b.score) == -1:
                pairs.add(tuple(sorted((a.name, b.name))))
        return tuple(sorted(pairs))

    def classify(self, score: float, has_conflict: bool) -> DisagreementClass:
        cfg = self.config
        if has_conflict and score > cfg.severe_threshold:
            return DisagreementClass.conflict
        if score > cfg.severe_threshold:
            return DisagreementClass.severe
        if score > cfg.moderate_threshold:
            return DisagreementClass.moderate
        if score > cfg.mild_threshold:
            return DisagreementClass.mild
        return DisagreementClass.agreement

    # ═══════════════════════════════════════════════════════════════════════════
    # CALIBRATION
    # ═══════════════════════════════════════════════════════════════════════════

    def shrink(self, fused_score: float, disagreement: float) -> float:
        """Pull `fused_score` toward neutral; exactly `fused_score` at zero disagreement."""
        factor = 1.0 - self.config.shrinkage_lambda * disagreement
        if factor >= 1.0:
            return fused_score
        neutral = self.config.neutral_point
        calibrated = neutral + (fused_score - neutral) * factor

        # Rounding must never push the score past the raw one
        if abs(calibrated - neutral) > abs(fused_score - neutral):
            return fused_score
        return clamp(calibrated)

    def verdict_for(self, score: float) -> Verdict:
        for bound, label in self.config.verdict_bands:
            if score >= bound:
                return Verdict(label)
        return Verdict(self.config.floor_verdict)

    def recommend(self, trust: float, classification: DisagreementClass) -> Recommendation:
        if classification == DisagreementClass.conflict:
            return Recommendation.human_review_recommended
        if trust < self.config.low_trust_below:
            return Recommendation.low_confidence
        if trust < self.config.moderate_trust_below:
            return Recommendation.moderate_confidence
        return Recommendation.high_confidence

    def calibrate(
        self,
        fused_score: float,
        entries: Sequence[ScoredDetector],
        degraded: bool = False,
    ) -> Tuple[DisagreementAnalysis, CalibratedVerdict]:
        fused_score = clamp(fused_score)
        disagreement = self.analyze_disagreement(entries, degraded=degraded)

        calibrated = self.shrink(fused_score, disagreement.score)
        trust = clamp(1.0 - disagreement.score)
        if degraded:
            trust = min(trust, self.config.degraded_trust_ceiling)

        recommendation = self.recommend(trust, disagreement.classification)
        verdict = self.verdict_for(calibrated)

        logger.debug(
            f"Calibrated {fused_score:.3f} → {calibrated:.3f} "
            f"(trust={trust:.3f}, {disagreement.classification.value}, {verdict.value})"
        )

        return disagreement, CalibratedVerdict(
            raw_score=fused_score,
            calibrated_score=calibrated,
            trust_score=trust,
            recommendation=recommendation,
            verdict=verdict,
            explanation=self._explain_calibration(fused_score, calibrated, trust, recommendation),
        )

    # ── Explanations ─────────────────────────────────────────────────────────

    def _explain_disagreement(
        self,
        usable: List[ScoredDetector],
        classification: DisagreementClass,
        pairs: Sequence[Tuple[str, str]],
        std_dev: float,
        degraded: bool,
    ) -> str:
        if degraded:
            return ("No detector produced a usable result. The verdict falls back to static "
                    "prior weights and must be verified by a human.")
        if len(usable) < 2:
            return "Insufficient detectors for disagreement analysis."

        ranked = sorted(usable, key=lambda e: e.score, reverse=True)
        highest, lowest = ranked[0], ranked[-1]

        if classification == DisagreementClass.conflict:
            conflicts = ", ".join(f"{a} vs {b}" for a, b in pairs)
            return (f"Critical disagreement detected: {conflicts}. "
                    f"{highest.name} suggests AI ({highest.score * 100:.0f}%) while "
                    f"{lowest.name} suggests real ({lowest.score * 100:.0f}%). "
                    "Human review is strongly recommended.")
        if classification == DisagreementClass.severe:
            return (f"Significant disagreement between detectors (σ={std_dev:.2f}). "
                    f"Scores range from {lowest.score * 100:.0f}% to {highest.score * 100:.0f}%. "
                    "Results should be interpreted with caution.")
        if classification == DisagreementClass.moderate:
            return (f"Moderate disagreement detected. {highest.name} is most confident about "
                    f"AI-generation while {lowest.name} is least certain.")
        if classification == DisagreementClass.mild:
            return "Minor variation between detectors, but general consensus on the classification."
        return "All detectors show strong agreement."

    @staticmethod
    def _explain_calibration(raw: float, calibrated: float, trust: float,
                             recommendation: Recommendation) -> str:
        text = f"Original score: {raw * 100:.1f}% → Calibrated: {calibrated * 100:.1f}% "
        if abs(raw - calibrated) > 0.01:
            text += f"({(raw - calibrated) * 100:.1f}% adjustment due to detector disagreement). "
        else:
            text += "(minimal adjustment - detectors agree). "
        text += f"Trust level: {trust * 100:.0f}%. "

        text += {
            Recommendation.human_review_recommended:
                "IMPORTANT: Detectors fundamentally disagree or failed. Manual verification is strongly recommended.",
            Recommendation.low_confidence:
                "Confidence is low due to detector disagreement. Treat results with caution.",
            Recommendation.moderate_confidence:
                "Results are reasonably reliable but some detector variation exists.",
            Recommendation.high_confidence:
                "High confidence - all detection methods agree on the classification.",
        }[recommendation]
        return text


# ── Singleton ─────────────────────────────────────────────────────────────────
calibrator = DisagreementCalibrator()
