"""
scripts/run_scenarios.py

Walk the fusion core through four reference situations and print a summary.
Run with: python scripts/run_scenarios.py

Scenarios:
  1. Detectors agree on an AI image
  2. Detectors conflict
  3. Composite image (half real, half generated)
  4. Fingerprint attribution
"""

import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from rich.console import Console
from rich.table import Table

from app.pipeline import execute_analysis
from fusion.types import (
    ColorProfile,
    ColorTemperature,
    DetectorObservation,
    DetectorStatus,
    FeatureVector,
    NoiseProfile,
    NoiseType,
    RegionId,
    TextureProfile,
)

console = Console()


def obs(name: str, score: float, confidence: float = 0.9, **kwargs) -> DetectorObservation:
    return DetectorObservation(
        name=name,
        raw_score=score,
        internal_confidence=confidence,
        status=kwargs.pop("status", DetectorStatus.success),
        latency_ms=kwargs.pop("latency_ms", 1000.0),
        **kwargs,
    )


SMOOTH_FINGERPRINT = FeatureVector(
    spectral_bands=(0.15, 0.14, 0.13, 0.125, 0.12, 0.115, 0.11, 0.11),
    color=ColorProfile(0.30, 0.12, 90.0, ColorTemperature.warm),
    texture=TextureProfile(0.9, 0.1, 0.85),
    noise=NoiseProfile(0.08, NoiseType.uniform, 0.3),
)

SCENARIOS = {
    "Agreement": [
        obs("huggingface", 0.90),
        obs("vision_llm", 0.88),
        obs("dct", 0.92),
    ],
    "Conflict": [
        obs("huggingface", 0.90),
        obs("vision_llm", 0.10),
        obs("dct", 0.50),
    ],
    "Composite": [
        obs("huggingface", 0.55),
        obs("vision_llm", 0.50, region_scores={
            RegionId.top_left: 0.90,
            RegionId.top_right: 0.10,
            RegionId.bottom_left: 0.85,
            RegionId.bottom_right: 0.15,
            RegionId.center: 0.50,
        }),
        obs("dct", 0.52),
    ],
    "Fingerprint": [
        obs("huggingface", 0.90),
        obs("vision_llm", 0.88),
        obs("dct", 0.92, fingerprint=SMOOTH_FINGERPRINT),
    ],
}


def run_scenarios():
    console.rule("[bold blue]Trust Fusion Scenarios[/bold blue]")
    rows = []

    for name, observations in SCENARIOS.items():
        console.print(f"\n[cyan]{name}[/cyan]")
        t = time.time()
        response = execute_analysis(observations)
        elapsed = (time.time() - t) * 1000

        generator = "-"
        if response.attribution and response.attribution.identified_generator:
            generator = response.attribution.identified_generator.name

        console.print(f"  {response.explanation}")
        rows.append((
            name,
            response.verdict.value,
            f"{response.fusion.fused_score:.3f} → {response.confidence:.3f}",
            response.disagreement.classification.value,
            response.calibration.recommendation.value,
            "yes" if response.spatial.is_composite else "no",
            generator,
            f"{elapsed:.1f}ms",
        ))

    console.rule("\n[bold]Summary[/bold]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Scenario", style="cyan", width=12)
    table.add_column("Verdict")
    table.add_column("Fused → Calibrated")
    table.add_column("Disagreement")
    table.add_column("Recommendation")
    table.add_column("Composite")
    table.add_column("Generator")
    table.add_column("Time", style="dim")

    for row in rows:
        table.add_row(*row)

    console.print(table)
    return rows


if __name__ == "__main__":
    run_scenarios()
