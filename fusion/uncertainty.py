"""
fusion/uncertainty.py

Ensemble Uncertainty Quantification
===================================

Treats the fused detectors (plus any auxiliary analysis branches) as an
ensemble of voters and reports how far the point estimate can be trusted:

  - prediction          weighted mean of all voter scores
  - confidence interval prediction ± z·σ, clamped to [0, 1]
  - epistemic           cross-voter disagreement, min(1, k·σ)
  - aleatoric           weighted mean of each voter's own (1 − confidence)
  - total               min(1, aleatoric + epistemic)

The composite reliability score mixes the calibrator's trust with the
inverse total uncertainty and is mapped to high / moderate / low /
very_low. Low tiers, or a detector conflict, ask for human review.
The recommendation adds a direction (AI / real) only when reliability is
high and the prediction sits clearly away from 0.5.
"""

import logging
from statistics import NormalDist
from typing import List, Optional, Sequence, Tuple

from fusion.config import UncertaintyConfig, DEFAULT_SETTINGS
from fusion.stats import clamp, finite_or, weighted_mean_std
from fusion.types import (
    AuxiliaryVoter,
    ConfidenceInterval,
    DisagreementClass,
    EnsembleAgreement,
    ReliabilityAssessment,
    ReliabilityFactor,
    ReliabilityLevel,
    ScoredDetector,
    UncertaintyDecomposition,
    UncertaintyEstimate,
    UncertaintyRecommendation,
)

logger = logging.getLogger("trust_uncertainty")


class UncertaintyQuantifier:
    def __init__(self, config: UncertaintyConfig = None):
        self.config = config or DEFAULT_SETTINGS.uncertainty
        self.config.validate()
        self.z = NormalDist().inv_cdf(0.5 + self.config.interval_level / 2.0)

    def _voters(
        self,
        entries: Sequence[ScoredDetector],
        auxiliary: Sequence[AuxiliaryVoter],
    ) -> List[Tuple[str, float, float, float]]:
        """(name, score, weight, confidence) for every voter."""
        voters = [(e.name, clamp(e.score), max(0.0, e.weight), clamp(e.confidence)) for e in entries]
        for aux in auxiliary:
            confidence = aux.confidence if aux.confidence is not None else self.config.auxiliary_confidence
            voters.append((
                aux.name,
                clamp(finite_or(aux.score, 0.5)),
                max(0.0, finite_or(aux.weight, 0.0)),
                clamp(finite_or(confidence, self.config.auxiliary_confidence)),
            ))
        return voters

    def quantify(
        self,
        entries: Sequence[ScoredDetector],
        auxiliary: Sequence[AuxiliaryVoter] = (),
        trust_score: Optional[float] = None,
        disagreement_class: Optional[DisagreementClass] = None,
    ) -> UncertaintyEstimate:
        cfg = self.config
        voters = self._voters(entries, auxiliary)
        scores = [v[1] for v in voters]
        weights = [v[2] for v in voters]

        prediction, std_dev = weighted_mean_std(scores, weights)
        prediction = clamp(prediction)

        interval = ConfidenceInterval(
            lower=clamp(prediction - self.z * std_dev),
            upper=clamp(prediction + self.z * std_dev),
            level=cfg.interval_level,
        )

        epistemic = min(1.0, cfg.epistemic_scale * std_dev)
        if voters:
            mean_doubt, _ = weighted_mean_std([1.0 - v[3] for v in voters], weights)
            aleatoric = clamp(mean_doubt)
        else:
            aleatoric = 1.0
        total = min(1.0, aleatoric + epistemic)
        decomposition = UncertaintyDecomposition(aleatoric=aleatoric, epistemic=epistemic, total=total)

        outliers = tuple(
            name for name, score, _, _ in voters
            if std_dev > 0 and abs(score - prediction) > cfg.outlier_sigma * std_dev
        )

        trust = clamp(trust_score) if trust_score is not None else 1.0 - epistemic
        reliability = self.assess(
            prediction, std_dev, trust, total, outliers, disagreement_class,
        )

        logger.debug(
            f"Uncertainty: {prediction:.3f} ± {self.z * std_dev:.3f} "
            f"(aleatoric={aleatoric:.3f}, epistemic={epistemic:.3f}, level={reliability.level.value})"
        )

        return UncertaintyEstimate(
            prediction=prediction,
            confidence_interval=interval,
            std_dev=std_dev,
            decomposition=decomposition,
            reliability=reliability,
            agreement=self.agreement(scores, prediction, std_dev),
            recommendation=self.recommend(prediction, reliability.level),
            outliers=outliers,
        )

    # ── Ensemble agreement ───────────────────────────────────────────────────

    @staticmethod
    def agreement(scores: Sequence[float], prediction: float, std_dev: float) -> EnsembleAgreement:
        return EnsembleAgreement(
            member_count=len(scores),
            mean_prediction=prediction,
            variance=std_dev * std_dev,
            coefficient_of_variation=(std_dev / prediction) if prediction > 0 else 0.0,
            max_disagreement=(max(scores) - min(scores)) if scores else 0.0,
        )

    def recommend(self, prediction: float, level: ReliabilityLevel) -> UncertaintyRecommendation:
        """Review tiers first; only a high-reliability estimate gets a direction."""
        cfg = self.config
        if level == ReliabilityLevel.very_low:
            return UncertaintyRecommendation.very_uncertain_human_required
        if level == ReliabilityLevel.low:
            return UncertaintyRecommendation.low_confidence_needs_review
        if level == ReliabilityLevel.high:
            if prediction >= cfg.confident_ai_above:
                return UncertaintyRecommendation.high_confidence_ai
            if prediction <= cfg.confident_real_below:
                return UncertaintyRecommendation.high_confidence_real
        return UncertaintyRecommendation.moderate_confidence

    # ── Reliability tiering ──────────────────────────────────────────────────

    def level_for(self, score: float) -> ReliabilityLevel:
        cfg = self.config
        if score >= cfg.high_reliability:
            return ReliabilityLevel.high
        if score >= cfg.moderate_reliability:
            return ReliabilityLevel.moderate
        if score >= cfg.low_reliability:
            return ReliabilityLevel.low
        return ReliabilityLevel.very_low

    def assess(
        self,
        prediction: float,
        std_dev: float,
        trust: float,
        total_uncertainty: float,
        outliers: Sequence[str],
        disagreement_class: Optional[DisagreementClass] = None,
    ) -> ReliabilityAssessment:
        cfg = self.config
        factors = self._factors(prediction, std_dev * std_dev, outliers)

        score = clamp(cfg.trust_share * trust + (1.0 - cfg.trust_share) * (1.0 - total_uncertainty))
        level = self.level_for(score)
        in_conflict = disagreement_class == DisagreementClass.conflict
        review = level in (ReliabilityLevel.low, ReliabilityLevel.very_low) or in_conflict

        if review:
            reasons = []
            if in_conflict:
                reasons.append("Detectors are in conflict")
            reasons.extend(f.description for f in factors if f.impact == "negative")
            reason = "; ".join(reasons) or "Multiple uncertainty factors present"
        else:
            reason = "Prediction meets confidence threshold"

        return ReliabilityAssessment(
            score=score,
            level=level,
            human_review_recommended=review,
            reason=reason,
            factors=tuple(factors),
        )

    @staticmethod
    def _factors(prediction: float, variance: float, outliers: Sequence[str]) -> List[ReliabilityFactor]:
        factors = []
        if variance < 0.02:
            factors.append(ReliabilityFactor(
                "Detector Agreement", "positive", "All detectors show strong agreement"))
        elif variance > 0.1:
            factors.append(ReliabilityFactor(
                "Detector Disagreement", "negative", "Significant disagreement between detection methods"))

        if outliers:
            factors.append(ReliabilityFactor(
                "Outlier Detectors", "negative", f"{len(outliers)} detector(s) gave outlier predictions"))

        if 0.4 < prediction < 0.6:
            factors.append(ReliabilityFactor(
                "Boundary Case", "negative", "Prediction near decision boundary (uncertain)"))
        else:
            factors.append(ReliabilityFactor(
                "Clear Prediction", "positive", "Prediction far from decision boundary"))
        return factors


# ── Singleton ─────────────────────────────────────────────────────────────────
uncertainty_quantifier = UncertaintyQuantifier()
