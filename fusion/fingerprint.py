"""
fusion/fingerprint.py

Generator Fingerprint Matcher
=============================

Compares an image's feature fingerprint against every entry of the
signature registry (known generators + the real-photo baseline) and
decides whether the image is AI-generated.

Similarity per registry entry:

    spectral  1 − mean |Δband|                                   (0.40)
    color     0.3·sat_mean + 0.2·sat_var + 0.3·hue + 0.2·temp     (0.25)
    texture   mean closeness of smoothness/repetitiveness/detail  (0.25)
    noise     0.8 if the noise type matches, else 0.4             (0.10)

The AI decision is a count-based vote over five independent indicators,
never a single threshold:

    1. texture smoothness high        4. top generator has ≥ 2 matching tags
    2. texture repetitiveness low     5. top generator confidence high
    3. uniform or very low noise

    is_ai = indicators ≥ 3
         OR (top generator beats the baseline AND indicators ≥ 2)
         OR top generator alone has ≥ 3 matching tags
"""

import math
import logging
from typing import List, Mapping, Optional, Sequence, Tuple

from fusion.config import FingerprintConfig, DEFAULT_SETTINGS
from fusion.signatures import DEFAULT_REGISTRY, SignatureRegistry
from fusion.stats import clamp
from fusion.types import (
    ColorProfile,
    ColorTemperature,
    DetectorObservation,
    FeatureVector,
    GeneratorAttribution,
    GeneratorMatch,
    NoiseProfile,
    NoiseType,
    TextureProfile,
)

logger = logging.getLogger("trust_fingerprint")

SPECTRAL_TAG = "Spectral signature match"
COLOR_TAG    = "Color profile match"
TEXTURE_TAG  = "Texture pattern match"
NOISE_TAG    = "Noise pattern match"


class MalformedFingerprint(ValueError):
    """Raised by `validate_fingerprint` for vectors that cannot be matched."""


class FingerprintMatcher:
    def __init__(self, registry: SignatureRegistry = None, config: FingerprintConfig = None):
        self.registry = registry or DEFAULT_REGISTRY
        self.config = config or DEFAULT_SETTINGS.fingerprint
        self.config.validate()

    # ═══════════════════════════════════════════════════════════════════════════
    # VALIDATION
    # ═══════════════════════════════════════════════════════════════════════════

    def validate_fingerprint(self, fingerprint: FeatureVector) -> FeatureVector:
        """
        Return a cleaned copy of `fingerprint` or raise MalformedFingerprint.
        Bands are renormalized to sum to 1, scalar features clamped to [0, 1].
        """
        if not isinstance(fingerprint, FeatureVector):
            raise MalformedFingerprint(f"expected a FeatureVector, got {type(fingerprint).__name__}")
        try:
            bands = [float(b) for b in fingerprint.spectral_bands]
        except (TypeError, ValueError) as exc:
            raise MalformedFingerprint(f"spectral bands are not numeric: {exc}")

        if len(bands) != self.config.band_count:
            raise MalformedFingerprint(
                f"expected {self.config.band_count} spectral bands, got {len(bands)}"
            )
        if not all(math.isfinite(b) for b in bands):
            raise MalformedFingerprint("spectral bands contain non-finite values")
        if any(b < 0 for b in bands):
            raise MalformedFingerprint("spectral bands contain negative values")
        total = math.fsum(bands)
        if total <= 0:
            raise MalformedFingerprint("spectral bands carry no energy")
        if abs(total - 1.0) > self.config.band_sum_tolerance:
            logger.debug(f"Spectral bands sum to {total:.4f}, renormalizing")

        try:
            color = ColorProfile(
                saturation_mean=self._unit(fingerprint.color.saturation_mean),
                saturation_variance=self._unit(fingerprint.color.saturation_variance),
                dominant_hue=self._finite(fingerprint.color.dominant_hue) % 360.0,
                temperature=ColorTemperature(fingerprint.color.temperature),
            )
            texture = TextureProfile(
                smoothness=self._unit(fingerprint.texture.smoothness),
                repetitiveness=self._unit(fingerprint.texture.repetitiveness),
                detail_level=self._unit(fingerprint.texture.detail_level),
            )
            noise = NoiseProfile(
                level=self._unit(fingerprint.noise.level),
                type=NoiseType(fingerprint.noise.type),
                frequency=self._unit(fingerprint.noise.frequency),
            )
        except (AttributeError, TypeError, ValueError) as exc:
            raise MalformedFingerprint(f"invalid profile: {exc}")

        return FeatureVector(
            spectral_bands=tuple(b / total for b in bands),
            color=color,
            texture=texture,
            noise=noise,
        )

    @staticmethod
    def _finite(value) -> float:
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"non-finite value {value!r}")
        return value

    def _unit(self, value) -> float:
        return clamp(self._finite(value))

    # ═══════════════════════════════════════════════════════════════════════════
    # SIMILARITY
    # ═══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def spectral_similarity(a: Sequence[float], b: Sequence[float]) -> float:
        if len(a) != len(b) or not a:
            return 0.0
        return clamp(1.0 - math.fsum(abs(x - y) for x, y in zip(a, b)) / len(a))

    def color_similarity(self, a: ColorProfile, b: ColorProfile) -> float:
        cfg = self.config
        hue_delta = abs(a.dominant_hue - b.dominant_hue) % 360.0
        hue_delta = min(hue_delta, 360.0 - hue_delta)
        temperature = 1.0 if a.temperature == b.temperature else cfg.temperature_mismatch_credit
        return clamp(
            cfg.saturation_mean_weight * (1.0 - abs(a.saturation_mean - b.saturation_mean))
            + cfg.saturation_variance_weight * (1.0 - abs(a.saturation_variance - b.saturation_variance))
            + cfg.hue_weight * (1.0 - hue_delta / 180.0)
            + cfg.temperature_weight * temperature
        )

    @staticmethod
    def texture_similarity(a: TextureProfile, b: TextureProfile) -> float:
        return clamp((
            (1.0 - abs(a.smoothness - b.smoothness))
            + (1.0 - abs(a.repetitiveness - b.repetitiveness))
            + (1.0 - abs(a.detail_level - b.detail_level))
        ) / 3.0)

    def noise_similarity(self, a: NoiseProfile, b: NoiseProfile) -> float:
        return self.config.noise_match_score if a.type == b.type else self.config.noise_mismatch_score

    def score(self, extracted: FeatureVector, reference: FeatureVector) -> Tuple[float, Tuple[str, ...]]:
        """Blended similarity and the matching-feature tags."""
        cfg = self.config
        spectral = self.spectral_similarity(extracted.spectral_bands, reference.spectral_bands)
        color = self.color_similarity(extracted.color, reference.color)
        texture = self.texture_similarity(extracted.texture, reference.texture)
        noise = self.noise_similarity(extracted.noise, reference.noise)

        tags = []
        if spectral > cfg.spectral_tag_above:
            tags.append(SPECTRAL_TAG)
        if color > cfg.color_tag_above:
            tags.append(COLOR_TAG)
        if texture > cfg.texture_tag_above:
            tags.append(TEXTURE_TAG)
        if noise > cfg.noise_tag_above:
            tags.append(NOISE_TAG)

        blended = (
            cfg.spectral_weight * spectral
            + cfg.color_weight * color
            + cfg.texture_weight * texture
            + cfg.noise_weight * noise
        )
        return clamp(blended), tuple(tags)

    # ═══════════════════════════════════════════════════════════════════════════
    # ATTRIBUTION
    # ═══════════════════════════════════════════════════════════════════════════

    def rank(self, fingerprint: FeatureVector) -> List[GeneratorMatch]:
        """All registry entries, descending by confidence, ties by registry order."""
        scored = []
        for index, entry in enumerate(self.registry):
            confidence, tags = self.score(fingerprint, entry.signature)
            scored.append((index, GeneratorMatch(
                name=entry.name,
                confidence=confidence,
                matching_features=tags,
                version=entry.latest_version,
                is_baseline=entry.is_baseline,
            )))
        scored.sort(key=lambda item: (-item[1].confidence, item[0]))
        return [match for _, match in scored]

    def indicators(self, fingerprint: FeatureVector, top: GeneratorMatch) -> int:
        cfg = self.config
        votes = [
            fingerprint.texture.smoothness > cfg.smoothness_above,
            fingerprint.texture.repetitiveness < cfg.repetitiveness_below,
            fingerprint.noise.type == NoiseType.uniform or fingerprint.noise.level < cfg.noise_level_below,
            len(top.matching_features) >= 2,
            top.confidence > cfg.top_confidence_above,
        ]
        return sum(1 for vote in votes if vote)

    def match(self, fingerprint: FeatureVector, source_detector: Optional[str] = None) -> GeneratorAttribution:
        """
        Attribute a validated fingerprint. Raises MalformedFingerprint for
        unusable vectors; use `match_observations` for the tolerant path.
        """
        cfg = self.config
        fingerprint = self.validate_fingerprint(fingerprint)
        ranked = self.rank(fingerprint)

        baseline = next(m for m in ranked if m.is_baseline)
        top = next(m for m in ranked if not m.is_baseline)
        tag_count = len(top.matching_features)
        count = self.indicators(fingerprint, top)

        is_ai = (
            count >= cfg.min_indicators
            or (top.confidence > baseline.confidence + cfg.baseline_margin
                and count >= cfg.min_indicators_with_baseline_win)
            or tag_count >= cfg.min_tags_alone
        )

        if is_ai:
            ai_confidence = min(
                cfg.max_ai_confidence,
                top.confidence + cfg.indicator_boost * count + cfg.feature_boost * tag_count,
            )
        else:
            ai_confidence = max(cfg.min_ai_confidence, 1.0 - baseline.confidence - cfg.real_photo_offset)
        ai_confidence = clamp(ai_confidence)

        logger.debug(
            f"Fingerprint: top={top.name} ({top.confidence:.3f}), baseline={baseline.confidence:.3f}, "
            f"indicators={count}/5, ai={is_ai}"
        )

        return GeneratorAttribution(
            all_matches=tuple(ranked),
            identified_generator=top if is_ai else None,
            is_ai_generated=is_ai,
            ai_confidence=ai_confidence,
            indicator_count=count,
            analysis=self._analysis(top, is_ai, ai_confidence, count),
            source_detector=source_detector,
        )

    def match_observations(
        self,
        observations: Sequence[DetectorObservation],
        weights: Mapping[str, float],
    ) -> Optional[GeneratorAttribution]:
        """
        Attribute using the best available fingerprint: the valid one from the
        usable detector with the highest fusion weight. Malformed fingerprints
        are skipped with a warning. Returns None if no fingerprint is usable.
        """
        candidates = [
            (i, obs) for i, obs in enumerate(observations)
            if obs.usable and obs.fingerprint is not None
        ]
        candidates.sort(key=lambda item: (-weights.get(item[1].name, 0.0), item[0]))

        for _, obs in candidates:
            try:
                return self.match(obs.fingerprint, source_detector=obs.name)
            except MalformedFingerprint as exc:
                logger.warning(f"Skipping fingerprint from {obs.name}: {exc}")

        return None

    @staticmethod
    def _analysis(top: GeneratorMatch, is_ai: bool, ai_confidence: float, count: int) -> dict:
        tags = top.matching_features
        if is_ai:
            overall = (
                f"This image shows strong characteristics of {top.name} generation. "
                f"Confidence: {ai_confidence * 100:.1f}%. "
                f"Key indicators: {', '.join(tags) or 'Multiple subtle patterns'}. "
                f"AI indicators detected: {count}/5."
            )
        else:
            overall = "This image appears to be a real photograph based on fingerprint analysis."
        return {
            "spectral_match": (f"Strong spectral match with {top.name} signature"
                               if SPECTRAL_TAG in tags else "Spectral signature inconclusive"),
            "color_match": (f"Color distribution consistent with {top.name}"
                            if COLOR_TAG in tags else "Color profile does not strongly match any generator"),
            "texture_match": (f"Texture patterns characteristic of {top.name}"
                              if TEXTURE_TAG in tags else "Texture analysis inconclusive"),
            "overall_assessment": overall,
        }


# ── Singleton ─────────────────────────────────────────────────────────────────
fingerprint_matcher = FingerprintMatcher()
