"""
detector.py: image statistics and painter-style suggestion.

`analyze` samples about 100 pixels whatever the image size and reduces them to
brightness / contrast / warmth / saturation plus the five most frequent
quantized colours. `detect` scores every catalog style against a declarative
rule table and ranks them.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional, Tuple

import numpy as np

from pixels import PixelBuffer, luminance
from presets import CATALOG, Catalog

log = logging.getLogger("masterdna")

RGB = Tuple[int, int, int]

TARGET_SAMPLES = 100
BUCKET_SIZE = 32
TOP_COLORS = 5
MAX_POSSIBLE_SCORE = 85
MAX_CONFIDENCE = 95
MAX_ALT_CONFIDENCE = 90
MAX_ALTERNATIVES = 3


# ============================ analysis ============================

@dataclass(frozen=True)
class AnalysisResult:
    brightness: float
    contrast: float
    warmth: float
    saturation: float
    dominant_colors: Tuple[RGB, ...]

    def to_dict(self) -> dict:
        return {
            "brightness": self.brightness,
            "contrast": self.contrast,
            "warmth": self.warmth,
            "saturation": self.saturation,
            "dominantColors": [{"r": r, "g": g, "b": b} for r, g, b in self.dominant_colors],
        }


def analyze(buf: PixelBuffer) -> AnalysisResult:
    step = max(1, buf.pixel_count // TARGET_SAMPLES)
    samples = buf.pixels.reshape(-1, 4)[::step, :3].astype(np.int64)
    r, g, b = samples[:, 0], samples[:, 1], samples[:, 2]

    lum = luminance(samples)
    warm = r > b + 20
    cool = ~warm & (b > r + 20)

    mx = samples.max(axis=1).astype(np.float64)
    mn = samples.min(axis=1).astype(np.float64)
    sat = np.divide(mx - mn, mx, out=np.zeros_like(mx), where=mx > 0)

    # first sample seen in a bucket represents it; ties keep first-seen order
    buckets: Dict[RGB, List] = {}
    for px in samples:
        key = (int(px[0]) // BUCKET_SIZE, int(px[1]) // BUCKET_SIZE, int(px[2]) // BUCKET_SIZE)
        entry = buckets.get(key)
        if entry is None:
            buckets[key] = [(int(px[0]), int(px[1]), int(px[2])), 1]
        else:
            entry[1] += 1
    ranked = sorted(buckets.values(), key=lambda e: -e[1])

    warm_n = int(warm.sum())
    cool_n = int(cool.sum())
    return AnalysisResult(
        brightness=float(samples.mean(axis=0).mean() / 255.0),
        contrast=float((lum.max() - lum.min()) / 255.0),
        warmth=warm_n / (warm_n + cool_n + 1),
        saturation=float(sat.mean()),
        dominant_colors=tuple(e[0] for e in ranked[:TOP_COLORS]),
    )


@dataclass(frozen=True)
class Histogram:
    r: np.ndarray
    g: np.ndarray
    b: np.ndarray
    lum: np.ndarray
    max_value: int


def histogram(buf: PixelBuffer) -> Histogram:
    """256-bin counts per channel and for rounded BT.601 luminance, over every pixel."""
    rgb = buf.pixels[..., :3].reshape(-1, 3)
    lum = np.floor(luminance(rgb) + 0.5).astype(np.int64)
    r = np.bincount(rgb[:, 0], minlength=256)
    g = np.bincount(rgb[:, 1], minlength=256)
    b = np.bincount(rgb[:, 2], minlength=256)
    lh = np.bincount(np.clip(lum, 0, 255), minlength=256)
    return Histogram(r, g, b, lh, int(max(r.max(), g.max(), b.max(), lh.max())))


# ============================ rules ============================

def _has_golden(a: AnalysisResult) -> bool:
    return any(r > 180 and 140 < g < 200 and b < 100 for r, g, b in a.dominant_colors)


def _has_sepia(a: AnalysisResult) -> bool:
    return any(r > b + 30 and g > b and r < 180 for r, g, b in a.dominant_colors)


@dataclass(frozen=True)
class StyleRule:
    styles: FrozenSet[str]
    predicate: Callable[[AnalysisResult], bool]
    points: int
    reason: str

    def matches(self, style_id: str, analysis: AnalysisResult) -> bool:
        return style_id in self.styles and self.predicate(analysis)


def _rule(styles, predicate, points, reason) -> StyleRule:
    return StyleRule(frozenset(styles), predicate, points, reason)


RULES: Tuple[StyleRule, ...] = (
    _rule(("caravaggio", "bacon", "rembrandt"), lambda a: a.contrast > 0.7,
          25, "High contrast matches dramatic style"),
    _rule(("vermeer", "friedrich"), lambda a: 0.4 < a.contrast <= 0.7,
          20, "Moderate contrast suitable for contemplative style"),
    _rule(("turner", "monet"), lambda a: a.contrast <= 0.4,
          25, "Soft contrast ideal for atmospheric effects"),
    _rule(("caravaggio", "rembrandt", "klimt"), lambda a: a.warmth > 0.6,
          20, "Warm palette detected"),
    _rule(("vermeer", "turner", "monet", "friedrich"), lambda a: a.warmth < 0.4,
          20, "Cool palette detected"),
    _rule(("turner", "monet", "vermeer"), lambda a: a.brightness > 0.6,
          15, "High luminosity matches style"),
    _rule(("caravaggio", "rembrandt", "beksinski"), lambda a: a.brightness < 0.35,
          20, "Dark tones suit dramatic/dystopian style"),
    _rule(("chagall", "klimt", "bacon"), lambda a: a.saturation > 0.5,
          15, "Vibrant colors detected"),
    _rule(("beksinski", "friedrich"), lambda a: a.saturation < 0.25,
          15, "Muted tones detected"),
    _rule(("klimt",), _has_golden, 20, "Golden tones detected"),
    _rule(("beksinski",), _has_sepia, 15, "Sepia/decay tones detected"),
)


# ============================ detection ============================

@dataclass(frozen=True)
class StyleScore:
    style_id: str
    score: int
    reasons: Tuple[str, ...]


@dataclass(frozen=True)
class Alternative:
    master: str
    confidence: int


@dataclass(frozen=True)
class DetectionResult:
    suggested_master: str
    confidence: int
    reasoning: str
    alternatives: Tuple[Alternative, ...]

    def to_dict(self) -> dict:
        return {
            "suggestedMaster": self.suggested_master,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "alternatives": [{"master": a.master, "confidence": a.confidence} for a in self.alternatives],
        }


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _confidence(score: int, cap: int) -> int:
    return min(cap, _round_half_up(score / MAX_POSSIBLE_SCORE * 100))


def score_styles(
    analysis: AnalysisResult,
    catalog: Optional[Catalog] = None,
    rules: Tuple[StyleRule, ...] = RULES,
) -> List[StyleScore]:
    """All catalog styles ranked by score; equal scores keep catalog order."""
    catalog = CATALOG if catalog is None else catalog
    scored = []
    for style_id in catalog:
        hits = [rule for rule in rules if rule.matches(style_id, analysis)]
        scored.append(StyleScore(style_id, sum(r.points for r in hits), tuple(r.reason for r in hits)))
    return sorted(scored, key=lambda s: -s.score)


def detect_from_analysis(analysis: AnalysisResult, catalog: Optional[Catalog] = None) -> DetectionResult:
    catalog = CATALOG if catalog is None else catalog
    ranked = score_styles(analysis, catalog)
    if not ranked:
        raise ValueError("Style catalog is empty")

    top = ranked[0]
    if top.reasons:
        reasoning = ". ".join(top.reasons[:2])
    else:
        preset = catalog.get(top.style_id)
        reasoning = f"Style characteristics match {preset.display_name if preset else top.style_id}"

    result = DetectionResult(
        suggested_master=top.style_id,
        confidence=_confidence(top.score, MAX_CONFIDENCE),
        reasoning=reasoning,
        alternatives=tuple(
            Alternative(s.style_id, _confidence(s.score, MAX_ALT_CONFIDENCE))
            for s in ranked[1: 1 + MAX_ALTERNATIVES]
        ),
    )
    log.info("Detected style %s (%d%%): %s", result.suggested_master, result.confidence, result.reasoning)
    return result


def detect(buf: PixelBuffer, catalog: Optional[Catalog] = None) -> DetectionResult:
    return detect_from_analysis(analyze(buf), catalog)
