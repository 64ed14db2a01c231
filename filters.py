# filters.py: stateless pixel primitives used by the stylization stages
# -----------------------------------------------------------------------------
# Every primitive takes a PixelBuffer, rewrites its RGB planes in place and
# returns the same buffer so calls can be chained. Alpha is never touched.
#
# Spatial primitives sample with clamp-to-edge boundaries (np.pad mode="edge"
# or clipped index arrays). All writes go through PixelBuffer.write_rgb, which
# rounds and clips into [0,255].
#
# Usage (examples):
#   buf = PixelBuffer.from_image(Image.open("in.png"))
#   gaussian_blur(buf, 2.0)
#   tone_curve(buf, 0.2, "highlights")
#   film_grain(buf, 8.0, 0.6, rng=np.random.default_rng(7))
#
# The name -> primitive REGISTRY at the bottom is what `main.py list` prints.
# -----------------------------------------------------------------------------

from __future__ import annotations

import math
from typing import Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from pixels import PixelBuffer, _rng, luminance

__all__ = [
    "REGISTRY",
    "blur_rgb",
    "gaussian_blur",
    "bilateral_filter",
    "unsharp_mask",
    "tone_curve",
    "s_curve_contrast",
    "local_contrast",
    "radial_vignette",
    "orton_effect",
    "highlight_bloom",
    "film_grain",
    "atmospheric_perspective",
    "high_pass_sharpening",
    "frequency_separation",
    "texture_enhancement",
    "shadow_recovery",
    "shadow_crush",
    "specular_enhancement",
    "directional_blur",
    "micro_contrast",
    "vibrance_boost",
    "three_way_color_grade",
]

REGIONS = ("shadows", "midtones", "highlights")
HAZE_RGB = np.array([200.0, 205.0, 215.0])

# ============================ low-level helpers ============================

def _gaussian_kernel(sigma: float) -> Tuple[np.ndarray, int]:
    radius = int(math.ceil(3.0 * sigma))
    k = np.arange(-radius, radius + 1, dtype=np.float64)
    w = np.exp(-(k * k) / (2.0 * sigma * sigma))
    return w / w.sum(), radius


def _convolve_axis(arr: np.ndarray, weights: np.ndarray, radius: int, axis: int) -> np.ndarray:
    """1-D convolution along `axis` with edge-clamped padding."""
    n = arr.shape[axis]
    pad = [(0, 0)] * arr.ndim
    pad[axis] = (radius, radius)
    padded = np.pad(arr, pad, mode="edge")
    out = np.zeros(arr.shape, np.float64)
    for i, wt in enumerate(weights):
        sl = [slice(None)] * arr.ndim
        sl[axis] = slice(i, i + n)
        out += wt * padded[tuple(sl)]
    return out


def _quantize(arr: np.ndarray) -> np.ndarray:
    return np.clip(np.rint(arr), 0.0, 255.0)


def blur_rgb(rgb: np.ndarray, sigma: float) -> np.ndarray:
    """Separable Gaussian blur of an HxWx3 float array, quantized after each pass."""
    rgb = np.asarray(rgb, dtype=np.float64)
    if sigma <= 0:
        return rgb.copy()
    weights, radius = _gaussian_kernel(sigma)
    horiz = _quantize(_convolve_axis(rgb, weights, radius, axis=1))
    return _quantize(_convolve_axis(horiz, weights, radius, axis=0))


def _zone_weight(lum01: np.ndarray, region: str) -> np.ndarray:
    """Triangular membership of normalized luminance in a tonal region."""
    if region == "shadows":
        return np.where(lum01 < 0.33, (0.33 - lum01) / 0.33, 0.0)
    if region == "midtones":
        return np.where((lum01 >= 0.25) & (lum01 <= 0.75), 1.0 - np.abs(lum01 - 0.5) * 4.0, 0.0)
    if region == "highlights":
        return np.where(lum01 > 0.67, (lum01 - 0.67) / 0.33, 0.0)
    raise ValueError(f"Unknown tonal region '{region}'. Expected one of: {', '.join(REGIONS)}")


def _saturation(rgb: np.ndarray) -> np.ndarray:
    mx = rgb.max(axis=2)
    mn = rgb.min(axis=2)
    return np.divide(mx - mn, mx, out=np.zeros_like(mx), where=mx > 0)


# ============================ blurs & sharpening ============================

def gaussian_blur(buf: PixelBuffer, sigma: float) -> PixelBuffer:
    if sigma > 0:
        buf.write_rgb(blur_rgb(buf.rgb, sigma))
    return buf


def bilateral_filter(buf: PixelBuffer, spatial_sigma: float, range_sigma: float) -> PixelBuffer:
    """
    Edge-preserving smoothing over a (2r+1)^2 window, r = ceil(2*spatial_sigma).

    Weight per neighbour: exp(-d / 2σs²) · exp(-c / 2σr²), d the pixel distance
    and c the Euclidean RGB distance to the centre pixel.
    """
    if spatial_sigma <= 0 or range_sigma <= 0:
        return buf
    radius = int(math.ceil(spatial_sigma * 2.0))
    rgb = buf.rgb
    h, w = buf.height, buf.width
    padded = np.pad(rgb, ((radius, radius), (radius, radius), (0, 0)), mode="edge")
    s_den = 2.0 * spatial_sigma * spatial_sigma
    r_den = 2.0 * range_sigma * range_sigma

    acc = np.zeros_like(rgb)
    wsum = np.zeros((h, w), np.float64)
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            nb = padded[radius + dy: radius + dy + h, radius + dx: radius + dx + w]
            spatial = math.exp(-math.hypot(dx, dy) / s_den)
            color = np.sqrt(((rgb - nb) ** 2).sum(axis=2))
            wgt = spatial * np.exp(-color / r_den)
            acc += nb * wgt[..., None]
            wsum += wgt
    buf.write_rgb(acc / wsum[..., None])
    return buf


def unsharp_mask(buf: PixelBuffer, amount: float, radius: float) -> PixelBuffer:
    rgb = buf.rgb
    blurred = blur_rgb(rgb, radius)
    buf.write_rgb(rgb + (rgb - blurred) * amount)
    return buf


def local_contrast(buf: PixelBuffer, strength: float) -> PixelBuffer:
    rgb = buf.rgb
    blurred = blur_rgb(rgb, 15.0)
    buf.write_rgb(rgb + (rgb - blurred) * strength)
    return buf


def high_pass_sharpening(buf: PixelBuffer, strength: float) -> PixelBuffer:
    """Overlay-blend a 128-centred high-pass layer (σ=3) and mix by strength."""
    rgb = buf.rgb
    high = rgb - blur_rgb(rgb, 3.0) + 128.0
    overlay = np.where(
        high < 128.0,
        (2.0 * rgb * high) / 255.0,
        255.0 - (2.0 * (255.0 - rgb) * (255.0 - high)) / 255.0,
    )
    buf.write_rgb(rgb * (1.0 - strength) + overlay * strength)
    return buf


def frequency_separation(buf: PixelBuffer, strength: float, layer: str = "high") -> PixelBuffer:
    if layer != "high":
        raise ValueError(f"Unsupported frequency layer '{layer}' (only 'high')")
    rgb = buf.rgb
    low = blur_rgb(rgb, 5.0)
    buf.write_rgb(low + (rgb - low) * (1.0 + strength))
    return buf


def texture_enhancement(buf: PixelBuffer, strength: float) -> PixelBuffer:
    high_pass_sharpening(buf, strength)
    return micro_contrast(buf, strength * 0.5)


def directional_blur(buf: PixelBuffer, strength: float, angle: float = 0.0) -> PixelBuffer:
    """Average of 2n+1 samples along (cos a, sin a), n = ceil(2*strength), step = strength/2."""
    if strength <= 0:
        return buf
    samples = int(math.ceil(strength * 2.0))
    step = strength * 0.5
    dx, dy = math.cos(angle), math.sin(angle)
    rgb = buf.rgb
    ys0 = np.arange(buf.height)
    xs0 = np.arange(buf.width)
    acc = np.zeros_like(rgb)
    for s in range(-samples, samples + 1):
        ox = int(math.floor(s * dx * step + 0.5))
        oy = int(math.floor(s * dy * step + 0.5))
        ys = np.clip(ys0 + oy, 0, buf.height - 1)
        xs = np.clip(xs0 + ox, 0, buf.width - 1)
        acc += rgb[ys][:, xs]
    buf.write_rgb(acc / (2 * samples + 1))
    return buf


# ============================ tone ============================

def tone_curve(buf: PixelBuffer, amount: float, region: str) -> PixelBuffer:
    rgb = buf.rgb
    boost = 1.0 + amount * _zone_weight(luminance(rgb) / 255.0, region)
    buf.write_rgb(rgb * boost[..., None])
    return buf


def s_curve_contrast(buf: PixelBuffer, strength: float) -> PixelBuffer:
    x = buf.rgb / 255.0
    gamma = max(1.0 + strength, 1e-3)
    curved = np.where(
        x < 0.5,
        0.5 * np.power(2.0 * x, gamma),
        1.0 - 0.5 * np.power(2.0 * (1.0 - x), gamma),
    )
    buf.write_rgb(curved * 255.0)
    return buf


def shadow_recovery(buf: PixelBuffer, strength: float) -> PixelBuffer:
    rgb = buf.rgb
    lum = luminance(rgb) / 255.0
    boost = np.where(lum < 0.4, 1.0 + strength * (0.4 - lum) / 0.4, 1.0)
    buf.write_rgb(rgb * boost[..., None])
    return buf


def shadow_crush(buf: PixelBuffer, strength: float) -> PixelBuffer:
    rgb = buf.rgb
    lum = luminance(rgb) / 255.0
    crush = np.where(lum < 0.3, 1.0 - strength * 0.5 * (0.3 - lum) / 0.3, 1.0)
    buf.write_rgb(rgb * crush[..., None])
    return buf


def specular_enhancement(buf: PixelBuffer, strength: float) -> PixelBuffer:
    rgb = buf.rgb
    mx = rgb.max(axis=2)
    add = np.where(mx > 220.0, strength * 15.0 * (mx - 220.0) / 35.0, 0.0)
    buf.write_rgb(rgb + add[..., None])
    return buf


def micro_contrast(buf: PixelBuffer, strength: float) -> PixelBuffer:
    rgb = buf.rgb
    avg = rgb.mean(axis=2)
    boost = 1.0 + strength * (np.abs(avg - 128.0) / 128.0)
    buf.write_rgb(128.0 + (rgb - 128.0) * boost[..., None])
    return buf


# ============================ glow, haze, vignette ============================

def radial_vignette(buf: PixelBuffer, intensity: float, feather_start: float) -> PixelBuffer:
    """Darken beyond `feather_start` of the centre-to-corner distance."""
    if intensity == 0 or feather_start >= 1.0:
        return buf
    h, w = buf.height, buf.width
    cx, cy = w / 2.0, h / 2.0
    max_dist = math.hypot(cx, cy)
    yy, xx = np.mgrid[0:h, 0:w].astype(np.float64)
    d = np.hypot(xx - cx, yy - cy) / max_dist
    factor = np.where(d > feather_start, 1.0 - ((d - feather_start) / (1.0 - feather_start)) * intensity, 1.0)
    buf.write_rgb(buf.rgb * factor[..., None])
    return buf


def orton_effect(buf: PixelBuffer, strength: float) -> PixelBuffer:
    """Multiply-blend a brightened (x1.5), blurred (σ=8) copy back over the image."""
    rgb = buf.rgb
    bright = _quantize(rgb * 1.5)
    glow = blur_rgb(bright, 8.0)
    buf.write_rgb(rgb * (1.0 - strength) + (rgb * glow / 255.0) * strength)
    return buf


def highlight_bloom(buf: PixelBuffer, strength: float) -> PixelBuffer:
    rgb = buf.rgb
    mean = rgb.mean(axis=2)
    factor = np.where(mean > 200.0, (mean - 200.0) / 55.0, 0.0)
    highlights = _quantize(rgb * factor[..., None])
    bloom = blur_rgb(highlights, 12.0)
    buf.write_rgb(rgb + bloom * strength)
    return buf


def atmospheric_perspective(buf: PixelBuffer, strength: float) -> PixelBuffer:
    rgb = buf.rgb
    haze = strength * (1.0 - (luminance(rgb) / 255.0) * 0.6)
    haze = haze[..., None]
    buf.write_rgb(rgb * (1.0 - haze) + HAZE_RGB * haze)
    return buf


# ============================ grain & colour ============================

def film_grain(
    buf: PixelBuffer,
    intensity: float,
    chroma_mix: float,
    rng: Optional[np.random.Generator] = None,
) -> PixelBuffer:
    """
    Luma-weighted grain, heavier in the shadows.

    Draws from `rng`; pass a seeded generator for reproducible output. Without
    one the grain comes from fresh OS entropy.
    """
    if intensity == 0:
        return buf
    rng = rng if rng is not None else _rng(None)
    rgb = buf.rgb
    amp = intensity * (0.3 + 0.7 * (1.0 - luminance(rgb) / 255.0))
    noise = (rng.random(rgb.shape) - 0.5) * amp[..., None]
    luma = noise.mean(axis=2, keepdims=True)
    buf.write_rgb(rgb + luma * (1.0 - chroma_mix) + noise * chroma_mix)
    return buf


def vibrance_boost(buf: PixelBuffer, strength: float) -> PixelBuffer:
    rgb = buf.rgb
    boost = 1.0 + strength * (1.0 - _saturation(rgb))
    avg = rgb.mean(axis=2, keepdims=True)
    buf.write_rgb(avg + (rgb - avg) * boost[..., None])
    return buf


def three_way_color_grade(
    buf: PixelBuffer,
    shadows: Sequence[float],
    midtones: Sequence[float],
    highlights: Sequence[float],
    strength: float,
) -> PixelBuffer:
    """Add zone-weighted RGB offsets; the three zone weights are normalized to sum to 1."""
    rgb = buf.rgb
    lum = luminance(rgb) / 255.0
    sw = np.where(lum < 0.33, (0.33 - lum) / 0.33, 0.0)
    mw = np.where(lum < 0.33, lum / 0.33, np.where(lum > 0.67, (1.0 - lum) / 0.33, 1.0))
    hw = np.where(lum > 0.67, (lum - 0.67) / 0.33, 0.0)
    total = sw + mw + hw
    total = np.where(total > 0, total, 1.0)
    offset = (
        (sw / total)[..., None] * np.asarray(shadows, np.float64)
        + (mw / total)[..., None] * np.asarray(midtones, np.float64)
        + (hw / total)[..., None] * np.asarray(highlights, np.float64)
    )
    buf.write_rgb(rgb + offset * strength)
    return buf


# ============================ registry ============================

class FilterRegistry:
    def __init__(self) -> None:
        self._by_name: Dict[str, Callable[..., PixelBuffer]] = {}

    def register(self, name: str, fn: Callable[..., PixelBuffer]) -> None:
        key = name.strip().lower()
        self._by_name[key] = fn

    def names(self) -> list[str]:
        return sorted(self._by_name.keys())

    def get(self, name: str) -> Callable[..., PixelBuffer]:
        key = name.strip().lower()
        if key not in self._by_name:
            raise KeyError(f"Unknown filter '{name}'. Available: {', '.join(self.names()) or '(none)'}")
        return self._by_name[key]


REGISTRY = FilterRegistry()

for _fn in (
    gaussian_blur, bilateral_filter, unsharp_mask, tone_curve, s_curve_contrast,
    local_contrast, radial_vignette, orton_effect, highlight_bloom, film_grain,
    atmospheric_perspective, high_pass_sharpening, frequency_separation,
    texture_enhancement, shadow_recovery, shadow_crush, specular_enhancement,
    directional_blur, micro_contrast, vibrance_boost, three_way_color_grade,
):
    REGISTRY.register(_fn.__name__, _fn)
