"""
fusion/spatial.py

Spatial Attribution Mapper
==========================

Detectors that look at image regions report scores for five named anchors
(four corners + center). This module densifies those anchors into a
rows × cols grid, optionally blends in an independent region grid, and
summarizes where the synthetic evidence is concentrated:

  - hotspots            cells with score ≥ 0.6, severity low/medium/high
  - uniformity_score    max(0, 1 − 2·std(cell scores))
  - is_composite        low uniformity AND both clearly-real and
                        clearly-synthetic regions present

Densification (u, v are the cell's normalized column/row position):

    corner   = bilinear(top_left, top_right, bottom_left, bottom_right; u, v)
    w_center = max(0, 1 − 2·max(|u − ½|, |v − ½|))
    score    = (1 − w_center)·corner + w_center·center

For the default 3×3 grid this reduces to the anchors themselves on the
corners and center, and the midpoint of the two nearest anchors on each
edge cell.
The center anchor cell (rows // 2, cols // 2) is pinned to the center
score unless it coincides with a corner (only on a 2×2 grid).
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from fusion.config import SpatialConfig, DEFAULT_SETTINGS
from fusion.stats import clamp, finite_or, population_std
from fusion.types import (
    CellBounds,
    DetectorObservation,
    Hotspot,
    RegionId,
    Severity,
    SpatialAnalysis,
    SpatialCell,
    SpatialGrid,
)

logger = logging.getLogger("trust_spatial")

_NAMES_3X3 = (
    ("Top-Left", "Top-Center", "Top-Right"),
    ("Middle-Left", "Center", "Middle-Right"),
    ("Bottom-Left", "Bottom-Center", "Bottom-Right"),
)

# Green (real) → yellow (uncertain) → red (AI)
_RAMP = (
    (0.0, (34, 197, 94)),
    (0.5, (234, 179, 8)),
    (1.0, (239, 68, 68)),
)


def score_to_color(score: float) -> str:
    """Piecewise-linear three-stop ramp; returns `#rrggbb`."""
    score = clamp(score)
    for (lo, lo_rgb), (hi, hi_rgb) in zip(_RAMP, _RAMP[1:]):
        if score <= hi:
            t = (score - lo) / (hi - lo)
            rgb = [round(a + (b - a) * t) for a, b in zip(lo_rgb, hi_rgb)]
            return "#{:02x}{:02x}{:02x}".format(*rgb)
    return "#{:02x}{:02x}{:02x}".format(*_RAMP[-1][1])


def score_to_opacity(score: float) -> float:
    return 0.3 + 0.4 * clamp(score)


class SpatialAttributionMapper:
    def __init__(self, config: SpatialConfig = None):
        self.config = config or DEFAULT_SETTINGS.spatial
        self.config.validate()

    # ═══════════════════════════════════════════════════════════════════════════
    # GRID CONSTRUCTION
    # ═══════════════════════════════════════════════════════════════════════════

    def anchor_cells(self) -> Dict[RegionId, Tuple[int, int]]:
        rows, cols = self.config.rows, self.config.cols
        return {
            RegionId.top_left:     (0, 0),
            RegionId.top_right:    (0, cols - 1),
            RegionId.bottom_left:  (rows - 1, 0),
            RegionId.bottom_right: (rows - 1, cols - 1),
            RegionId.center:       (rows // 2, cols // 2),
        }

    def densify(self, anchors: Mapping[RegionId, float]) -> np.ndarray:
        """Fill a rows × cols matrix from the five anchor scores."""
        rows, cols = self.config.rows, self.config.cols
        tl = anchors[RegionId.top_left]
        tr = anchors[RegionId.top_right]
        bl = anchors[RegionId.bottom_left]
        br = anchors[RegionId.bottom_right]
        center = anchors[RegionId.center]

        if tl == tr == bl == br == center:
            return np.full((rows, cols), clamp(center), dtype=np.float64)

        grid = np.empty((rows, cols), dtype=np.float64)
        for r in range(rows):
            v = r / (rows - 1)
            for c in range(cols):
                u = c / (cols - 1)
                corner = (1 - v) * ((1 - u) * tl + u * tr) + v * ((1 - u) * bl + u * br)
                w_center = max(0.0, 1.0 - 2.0 * max(abs(u - 0.5), abs(v - 0.5)))
                grid[r, c] = clamp((1 - w_center) * corner + w_center * center)

        # Anchor cells carry their anchor value; on a 2×2 grid the corner wins
        row, col = self.anchor_cells()[RegionId.center]
        if not (row in (0, rows - 1) and col in (0, cols - 1)):
            grid[row, col] = clamp(center)
        return grid

    def blend(self, primary: np.ndarray, secondary: Optional[Sequence[Sequence[float]]]) -> np.ndarray:
        """Blend an independent region grid into the primary one at the configured ratio."""
        if secondary is None:
            return primary
        try:
            other = np.asarray(secondary, dtype=np.float64)
        except (TypeError, ValueError):
            logger.warning("Secondary region grid is not numeric, ignored")
            return primary
        if other.shape != primary.shape:
            logger.warning(
                f"Secondary region grid shape {other.shape} does not match "
                f"{primary.shape}, ignored"
            )
            return primary

        # Non-finite secondary cells keep the primary value
        other = np.where(np.isfinite(other), np.clip(other, 0.0, 1.0), primary)
        ratio = self.config.blend_ratio
        return np.clip(primary * ratio + other * (1.0 - ratio), 0.0, 1.0)

    def build_grid(
        self,
        scores: np.ndarray,
        anchor_anomalies: Optional[Mapping[RegionId, Sequence[str]]] = None,
    ) -> SpatialGrid:
        rows, cols = self.config.rows, self.config.cols
        tags: Dict[Tuple[int, int], Tuple[str, ...]] = {}
        for region, position in self.anchor_cells().items():
            found = tuple((anchor_anomalies or {}).get(region, ()))
            if found:
                tags[position] = tags.get(position, ()) + found

        cells = []
        for r in range(rows):
            row = []
            for c in range(cols):
                score = float(scores[r, c])
                row.append(SpatialCell(
                    row=r,
                    col=c,
                    bounds=CellBounds(x=c / cols, y=r / rows, width=1 / cols, height=1 / rows),
                    score=score,
                    anomaly_tags=tags.get((r, c), ()),
                    color=score_to_color(score),
                    opacity=score_to_opacity(score),
                ))
            cells.append(tuple(row))
        return SpatialGrid(rows=rows, cols=cols, cells=tuple(cells))

    # ═══════════════════════════════════════════════════════════════════════════
    # ANALYSIS
    # ═══════════════════════════════════════════════════════════════════════════

    def region_name(self, row: int, col: int) -> str:
        if self.config.rows == 3 and self.config.cols == 3:
            return _NAMES_3X3[row][col]
        return f"R{row}C{col}"

    def severity(self, score: float) -> Severity:
        if score >= self.config.high_severity:
            return Severity.high
        if score >= self.config.medium_severity:
            return Severity.medium
        return Severity.low

    def hotspots(self, grid: SpatialGrid) -> Tuple[Hotspot, ...]:
        found = [
            Hotspot(
                region=self.region_name(cell.row, cell.col),
                score=cell.score,
                anomalies=cell.anomaly_tags,
                severity=self.severity(cell.score),
            )
            for row in grid.cells
            for cell in row
            if cell.score >= self.config.suspicious_threshold
        ]
        # Stable sort keeps row-major order among equal scores
        return tuple(sorted(found, key=lambda h: -h.score))

    @staticmethod
    def uniformity(scores: Sequence[float]) -> float:
        return clamp(1.0 - 2.0 * population_std(scores))

    def is_composite(self, scores: Sequence[float], uniformity: float) -> bool:
        cfg = self.config
        if uniformity >= cfg.composite_uniformity_below:
            return False
        low, high = min(scores), max(scores)
        return (
            (high - low) > cfg.composite_range_above
            and low < cfg.composite_low_bound
            and high > cfg.composite_high_bound
        )

    def map(
        self,
        anchor_scores: Mapping[RegionId, float],
        anchor_anomalies: Optional[Mapping[RegionId, Sequence[str]]] = None,
        secondary_grid: Optional[Sequence[Sequence[float]]] = None,
        fallback_score: float = 0.5,
    ) -> SpatialAnalysis:
        """
        Build the spatial analysis from anchor region scores.
        Missing anchors take `fallback_score`.
        """
        anchors = {}
        for region in RegionId:
            value = anchor_scores.get(region) if anchor_scores else None
            anchors[region] = clamp(finite_or(value, fallback_score))

        scores = self.blend(self.densify(anchors), secondary_grid)
        grid = self.build_grid(scores, anchor_anomalies)

        flat = grid.scores()
        hotspots = self.hotspots(grid)
        uniformity = self.uniformity(flat)
        composite = self.is_composite(flat, uniformity)
        suspicious = tuple(
            self.region_name(cell.row, cell.col).lower()
            for row in grid.cells
            for cell in row
            if cell.score >= self.config.suspicious_threshold
        )

        if composite:
            logger.info(
                f"Composite image suspected (uniformity={uniformity:.3f}, "
                f"range={max(flat) - min(flat):.3f})"
            )

        return SpatialAnalysis(
            grid=grid,
            hotspots=hotspots,
            suspicious_regions=suspicious,
            uniformity_score=uniformity,
            is_composite=composite,
            explanation=self._explain(hotspots, uniformity, composite),
        )

    def map_observations(
        self,
        observations: Sequence[DetectorObservation],
        weights: Mapping[str, float],
        fallback_score: float,
        secondary_grid: Optional[Sequence[Sequence[float]]] = None,
    ) -> SpatialAnalysis:
        """
        Merge region reports of every usable detector into one anchor set.
        Each anchor is the fusion-weighted mean of the detectors reporting it.
        """
        anchors: Dict[RegionId, float] = {}
        anomalies: Dict[RegionId, List[str]] = {}

        for region in RegionId:
            reports = [
                (obs.region_scores[region], weights.get(obs.name, 0.0))
                for obs in observations
                if obs.usable and obs.region_scores and region in obs.region_scores
            ]
            if reports:
                values = [s for s, _ in reports]
                mass = sum(w for _, w in reports)
                if mass > 0:
                    anchors[region] = sum(s * w for s, w in reports) / mass
                else:
                    anchors[region] = sum(values) / len(values)

            for obs in observations:
                if obs.usable and obs.region_anomalies:
                    for tag in obs.region_anomalies.get(region, ()):
                        if tag not in anomalies.setdefault(region, []):
                            anomalies[region].append(tag)

        if not anchors:
            logger.debug("No detector reported region scores, spatial map uses the fused score")

        return self.map(anchors, anomalies, secondary_grid, fallback_score=fallback_score)

    # ── Helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def _explain(hotspots: Sequence[Hotspot], uniformity: float, composite: bool) -> str:
        text = ""
        if composite:
            text += ("ATTENTION: This image shows characteristics of a COMPOSITE (partially "
                     "AI-generated/edited) image. Different regions have significantly "
                     "different AI detection scores. ")

        if not hotspots:
            text += "No specific regions show strong indicators of AI generation. "
        elif len(hotspots) == 1:
            hot = hotspots[0]
            text += f"The {hot.region} region shows the strongest AI indicators ({hot.score * 100:.0f}%). "
            if hot.anomalies:
                text += f"Detected issues: {', '.join(hot.anomalies)}. "
        else:
            top = ", ".join(f"{h.region} ({h.score * 100:.0f}%)" for h in hotspots[:3])
            text += f"{len(hotspots)} regions show significant AI indicators: {top}. "

        if uniformity > 0.8:
            text += "AI detection is highly uniform across the image."
        elif uniformity < 0.5:
            text += "Detection varies significantly across regions, suggesting possible editing or composition."
        return text.strip()


# ── Singleton ─────────────────────────────────────────────────────────────────
spatial_mapper = SpatialAttributionMapper()
