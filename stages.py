"""
stages.py: the six ordered styling phases.

Each phase maps one DNA dimension group onto a fixed chain of filter
primitives. A sub-parameter `v` under a group master `m` runs its chain at
intensity (v/100)*(m/100); the chain's coefficients scale that intensity.
A group whose master is 0 runs nothing.
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np

import filters as F
from dna import DimensionGroup, DnaConfiguration
from pixels import PixelBuffer

log = logging.getLogger("masterdna")


@dataclass(frozen=True)
class Effect:
    """One primitive call: positional args are `coefficient * intensity`, keywords are fixed."""
    primitive: Callable[..., PixelBuffer]
    coefficients: Tuple[float, ...]
    fixed: Tuple[Tuple[str, Any], ...] = ()
    uses_rng: bool = False

    def apply(self, buf: PixelBuffer, intensity: float, rng: Optional[np.random.Generator]) -> None:
        args = [c * intensity for c in self.coefficients]
        kwargs: Dict[str, Any] = dict(self.fixed)
        if self.uses_rng:
            kwargs["rng"] = rng
        log.debug("  %s%s %s", self.primitive.__name__, tuple(round(a, 4) for a in args), kwargs or "")
        self.primitive(buf, *args, **kwargs)


def _fx(primitive: Callable[..., PixelBuffer], *coefficients: float, **fixed: Any) -> Effect:
    uses_rng = "rng" in inspect.signature(primitive).parameters
    return Effect(primitive, tuple(coefficients), tuple(fixed.items()), uses_rng)


Chain = Tuple[Effect, ...]


# ============================ generic phase ============================

@dataclass(frozen=True)
class Stage:
    name: str
    attr: str                                # DnaConfiguration attribute
    chains: Tuple[Tuple[str, Chain], ...]    # sub-parameter -> primitive chain, in run order

    def apply(self, buf: PixelBuffer, group: DimensionGroup, rng: Optional[np.random.Generator]) -> PixelBuffer:
        master = float(group.master)
        if master == 0:
            log.debug("Stage %s skipped (master=0)", self.name)
            return buf
        log.debug("Stage %s master=%.0f", self.name, master)
        for param, chain in self.chains:
            value = float(getattr(group, param))
            if value == 0:
                continue
            intensity = (value / 100.0) * (master / 100.0)
            log.debug(" %s=%.0f -> intensity %.4f", param, value, intensity)
            for effect in chain:
                effect.apply(buf, intensity, rng)
        return buf

    def finish(self, buf: PixelBuffer) -> PixelBuffer:
        return buf


# ============================ historical grading ============================

@dataclass(frozen=True)
class PeriodGrade:
    shadows: Tuple[float, float, float]
    midtones: Tuple[float, float, float]
    highlights: Tuple[float, float, float]
    grain: float

    @property
    def has_offsets(self) -> bool:
        return any(v != 0 for v in self.shadows + self.midtones + self.highlights)


NEUTRAL_GRADE = PeriodGrade((0, 0, 0), (0, 0, 0), (0, 0, 0), 0)

PERIOD_GRADES: Dict[str, PeriodGrade] = {
    "GOLDEN_AGE":             PeriodGrade((5, 3, -5), (8, 5, -3), (3, 2, 0), 4),
    "BAROQUE":                PeriodGrade((8, 2, -8), (5, 2, -4), (2, 1, -2), 6),
    "HIGH_RENAISSANCE":       PeriodGrade((3, 2, -3), (4, 3, -2), (2, 2, 0), 3),
    "EARLY_RENAISSANCE":      PeriodGrade((4, 3, -4), (5, 4, -2), (3, 2, 0), 5),
    "EXPRESSIONISM_MID_20TH": PeriodGrade((2, -1, -3), (0, 0, -2), (0, 0, 0), 8),
    "MODERN":                 NEUTRAL_GRADE,
    "CONTEMPORARY":           NEUTRAL_GRADE,
}


def period_grade(period: str) -> PeriodGrade:
    """Unknown periods fall back to the neutral CONTEMPORARY grade."""
    grade = PERIOD_GRADES.get(period)
    if grade is None:
        log.debug("Unknown period %r, using CONTEMPORARY", period)
        return PERIOD_GRADES["CONTEMPORARY"]
    return grade


@dataclass(frozen=True)
class HistoricalStage(Stage):
    def apply(self, buf: PixelBuffer, group: DimensionGroup, rng: Optional[np.random.Generator]) -> PixelBuffer:
        fidelity = (float(group.fidelity) / 100.0) * (float(group.master) / 100.0)
        if fidelity == 0:
            log.debug("Stage %s skipped (fidelity=0)", self.name)
            return buf
        grade = period_grade(group.period)
        log.debug("Stage %s period=%s fidelity=%.4f", self.name, group.period, fidelity)
        if grade.has_offsets:
            F.three_way_color_grade(buf, grade.shadows, grade.midtones, grade.highlights, fidelity)
        if grade.grain > 0:
            F.film_grain(buf, grade.grain * fidelity, 0.6, rng=rng)
        return buf


# ============================ finition ============================

FINISHING_VIGNETTE = _fx(F.radial_vignette, 0.06, feather_start=0.85)


@dataclass(frozen=True)
class FinitionStage(Stage):
    def finish(self, buf: PixelBuffer) -> PixelBuffer:
        # not gated by the finition master
        FINISHING_VIGNETTE.apply(buf, 1.0, None)
        return buf


# ============================ dispatch table ============================

STAGES: Tuple[Stage, ...] = (
    Stage("TemporalSpatial", "temporal_spatial", (
        ("timeless_frozen", (_fx(F.bilateral_filter, 2.5, 25.0), _fx(F.tone_curve, 0.03, region="highlights"))),
        ("atmospheric_duration", (_fx(F.atmospheric_perspective, 0.15), _fx(F.film_grain, 6.0, chroma_mix=0.7))),
        ("dramatic_moment", (_fx(F.s_curve_contrast, 0.4), _fx(F.local_contrast, 0.3))),
        ("motion_blur", (_fx(F.directional_blur, 3.0, angle=0.0),)),
        ("time_indication", (_fx(F.tone_curve, 0.05, region="midtones"),)),
        ("atmospheric_indication", (_fx(F.atmospheric_perspective, 0.08),)),
        ("depth_precision", (_fx(F.unsharp_mask, 0.8, radius=1.2),)),
    )),
    Stage("MaterialSpiritual", "material_spiritual", (
        ("divine_through_material", (_fx(F.orton_effect, 0.25), _fx(F.highlight_bloom, 0.15))),
        ("material_as_expansion", (_fx(F.texture_enhancement, 0.3), _fx(F.film_grain, 12.0, chroma_mix=0.5))),
        ("material_precision", (_fx(F.high_pass_sharpening, 0.4), _fx(F.local_contrast, 0.2))),
        ("spiritual_symbolism", (_fx(F.tone_curve, 0.08, region="highlights"),)),
        ("surface_perfection", (_fx(F.bilateral_filter, 2.0, 20.0),)),
        ("detail_as_revelation", (_fx(F.frequency_separation, 0.3, layer="high"),)),
    )),
    Stage("LightRevelation", "light_revelation", (
        ("light_as_divine_proof", (
            _fx(F.tone_curve, 0.2, region="highlights"),
            _fx(F.highlight_bloom, 0.2),
            _fx(F.shadow_recovery, 0.15),
        )),
        ("light_as_dramatic_tools", (
            _fx(F.s_curve_contrast, 0.5),
            _fx(F.shadow_crush, 0.25),
            _fx(F.radial_vignette, 0.3, feather_start=0.7),
        )),
        ("shadow_softness", (_fx(F.shadow_recovery, 0.2),)),
        ("reflection_subtlety", (_fx(F.specular_enhancement, 0.15),)),
        ("light_symbolism", (_fx(F.tone_curve, 0.1, region="midtones"),)),
    )),
    Stage("GazePsychology", "gaze_psychology", (
        ("microscopic_scrutiny", (_fx(F.unsharp_mask, 1.2, radius=0.8), _fx(F.local_contrast, 0.35))),
        ("emotional_immersion", (_fx(F.orton_effect, 0.2), _fx(F.film_grain, 8.0, chroma_mix=0.6))),
        ("dramatic_orchestration", (_fx(F.s_curve_contrast, 0.4), _fx(F.radial_vignette, 0.25, feather_start=0.6))),
        ("loop_completeness", (_fx(F.radial_vignette, 0.15, feather_start=0.8),)),
        ("transition_smoothness", (_fx(F.bilateral_filter, 1.5, 15.0),)),
        ("discovery_density", (_fx(F.local_contrast, 0.2),)),
        ("hypnotic_quality", (_fx(F.orton_effect, 0.15), _fx(F.tone_curve, 0.05, region="midtones"))),
    )),
    HistoricalStage("HistoricalConstraints", "historical_constraints", ()),
    FinitionStage("Finition", "finition", (
        ("master_lustre", (_fx(F.vibrance_boost, 0.25), _fx(F.micro_contrast, 0.15))),
        ("final_glow", (_fx(F.highlight_bloom, 0.12), _fx(F.tone_curve, 0.06, region="highlights"))),
    )),
)


def run_stages(
    buf: PixelBuffer,
    config: DnaConfiguration,
    rng: Optional[np.random.Generator] = None,
    *,
    finish: bool = True,
) -> PixelBuffer:
    """Run all six phases in order on `buf` (in place). `finish=False` skips the fixed vignette."""
    for stage in STAGES:
        stage.apply(buf, getattr(config, stage.attr), rng)
        if finish:
            stage.finish(buf)
    return buf
