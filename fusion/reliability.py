"""
fusion/reliability.py

Detector Reliability Estimator
==============================

Turns one detector's self-reported confidence, health status and latency
into a single 0–1 reliability scalar:

    reliability = α*confidence + β*status_multiplier + γ*latency_score

- status == error      → configured floor, immediately
- status == fallback   → small multiplier (heuristic mode is unreliable)
- latency_score        → degrades linearly toward max expected latency,
                         capped at a 50% penalty

Result is clamped to [floor, 1]. Pure and deterministic.

Also hosts input hygiene for raw observations: the core never raises on
bad detector data, it clamps and logs instead.
"""

import math
import logging
from dataclasses import replace
from typing import List, Sequence

from fusion.config import ReliabilityConfig, DEFAULT_SETTINGS
from fusion.stats import clamp, finite_or
from fusion.types import DetectorObservation, DetectorStatus, RegionId

logger = logging.getLogger("trust_reliability")


class ReliabilityEstimator:
    def __init__(self, config: ReliabilityConfig = None):
        self.config = config or DEFAULT_SETTINGS.reliability
        self.config.validate()

    def status_multiplier(self, status: DetectorStatus) -> float:
        if status == DetectorStatus.success:
            return self.config.success_multiplier
        if status == DetectorStatus.fallback:
            return self.config.fallback_multiplier
        return 0.0

    def latency_score(self, latency_ms: float) -> float:
        latency_ms = finite_or(latency_ms, math.inf)
        normalized = min(max(latency_ms, 0.0) / self.config.max_expected_latency_ms, 1.0)
        return 1.0 - normalized * self.config.max_latency_penalty

    def estimate(self, observation: DetectorObservation) -> float:
        cfg = self.config
        if observation.status == DetectorStatus.error:
            return cfg.min_reliability

        reliability = (
            cfg.confidence_weight * clamp(observation.internal_confidence)
            + cfg.status_weight * self.status_multiplier(observation.status)
            + cfg.latency_weight * self.latency_score(observation.latency_ms)
        )
        return clamp(reliability, cfg.min_reliability, 1.0)


# ═══════════════════════════════════════════════════════════════════════════════
# INPUT HYGIENE
# ═══════════════════════════════════════════════════════════════════════════════

def sanitize_observation(observation: DetectorObservation) -> DetectorObservation:
    """
    Clamp an observation into its documented ranges.
    Non-finite scores become neutral (0.5), non-finite confidences become 0.
    Non-finite latencies become infinite and take the full latency penalty.
    """
    name = observation.name
    score = finite_or(observation.raw_score, 0.5)
    confidence = finite_or(observation.internal_confidence, 0.0)
    latency = finite_or(observation.latency_ms, math.inf)

    try:
        status = DetectorStatus(observation.status)
    except ValueError:
        logger.warning(f"Detector {name}: unknown status {observation.status!r}, treating as error")
        status = DetectorStatus.error

    if score != observation.raw_score or not 0.0 <= score <= 1.0:
        logger.warning(f"Detector {name}: raw score {observation.raw_score!r} out of range, clamped")
    if confidence != observation.internal_confidence or not 0.0 <= confidence <= 1.0:
        logger.warning(f"Detector {name}: confidence {observation.internal_confidence!r} out of range, clamped")
    if math.isinf(latency):
        logger.warning(
            f"Detector {name}: latency {observation.latency_ms!r} is not finite, scored as a timeout"
        )
    if latency < 0.0:
        logger.warning(f"Detector {name}: negative latency {latency}, set to 0")

    region_scores = None
    if observation.region_scores:
        region_scores = {}
        for region, value in observation.region_scores.items():
            try:
                region = RegionId(region)
            except ValueError:
                logger.warning(f"Detector {name}: unknown region {region!r} ignored")
                continue
            region_scores[region] = clamp(finite_or(value, 0.5))

    return replace(
        observation,
        raw_score=clamp(score),
        internal_confidence=clamp(confidence),
        latency_ms=max(0.0, latency),
        status=status,
        region_scores=region_scores,
    )


def sanitize_observations(observations: Sequence[DetectorObservation]) -> List[DetectorObservation]:
    """Sanitize every observation and make detector names unique (`name#2`, ...)."""
    used = set()
    cleaned = []
    for obs in observations:
        obs = sanitize_observation(obs)
        if obs.name in used:
            count = 2
            while f"{obs.name}#{count}" in used:
                count += 1
            unique = f"{obs.name}#{count}"
            logger.warning(f"Duplicate detector name {obs.name!r} renamed to {unique!r}")
            obs = replace(obs, name=unique)
        used.add(obs.name)
        cleaned.append(obs)
    return cleaned


# ── Singleton ─────────────────────────────────────────────────────────────────
reliability_estimator = ReliabilityEstimator()
