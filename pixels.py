from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from PIL import Image

# BT.601 luma weights
LUMA_R, LUMA_G, LUMA_B = 0.299, 0.587, 0.114


# =============== RNG ===============
def _rng(seed: Optional[int]) -> np.random.Generator:
    return np.random.default_rng(seed if seed is not None else np.random.SeedSequence().entropy)


# =============== Channel helpers ===============
def clamp_u8(arr: np.ndarray) -> np.ndarray:
    """Round to nearest and clip into [0,255] as uint8 (NaN becomes 0)."""
    arr = np.nan_to_num(np.asarray(arr, dtype=np.float64), nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(np.rint(arr), 0, 255).astype(np.uint8)


def luminance(rgb: np.ndarray) -> np.ndarray:
    """BT.601 luminance of an (...,3) array, in channel units (0..255)."""
    rgb = np.asarray(rgb, dtype=np.float64)
    return LUMA_R * rgb[..., 0] + LUMA_G * rgb[..., 1] + LUMA_B * rgb[..., 2]


# =============== PixelBuffer ===============
@dataclass
class PixelBuffer:
    """
    RGBA8 raster owned as an (height, width, 4) uint8 array.

    Every write goes through `clamp_u8`, so channel values stay in [0,255].
    Alpha is carried along untouched by the filter primitives.
    """
    width: int
    height: int
    pixels: np.ndarray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid buffer size {self.width}x{self.height}")
        arr = np.asarray(self.pixels)
        if arr.ndim == 1:
            if arr.size != self.width * self.height * 4:
                raise ValueError(
                    f"Pixel data has {arr.size} bytes, expected {self.width * self.height * 4}"
                )
            arr = arr.reshape(self.height, self.width, 4)
        if arr.shape != (self.height, self.width, 4):
            raise ValueError(f"Pixel array shape {arr.shape} does not match {self.width}x{self.height}x4")
        self.pixels = arr if arr.dtype == np.uint8 else clamp_u8(arr)

    # ---- constructors ----
    @classmethod
    def blank(cls, width: int, height: int, color: Tuple[int, int, int, int] = (0, 0, 0, 255)) -> "PixelBuffer":
        arr = np.empty((height, width, 4), np.uint8)
        arr[...] = clamp_u8(np.array(color, np.float64))
        return cls(width, height, arr)

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> "PixelBuffer":
        return cls(width, height, np.frombuffer(bytes(data), dtype=np.uint8).copy())

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "PixelBuffer":
        """Accepts HxW (gray), HxWx3 (RGB) or HxWx4 (RGBA) arrays."""
        arr = np.asarray(arr)
        if arr.ndim == 2:
            arr = np.dstack([arr, arr, arr])
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError(f"Unsupported array shape {arr.shape}")
        rgba = np.empty(arr.shape[:2] + (4,), np.uint8)
        rgba[..., :3] = clamp_u8(arr[..., :3])
        rgba[..., 3] = clamp_u8(arr[..., 3]) if arr.shape[2] == 4 else 255
        h, w = rgba.shape[:2]
        return cls(w, h, rgba)

    @classmethod
    def from_image(cls, img: Image.Image) -> "PixelBuffer":
        rgba = np.asarray(img.convert("RGBA"), dtype=np.uint8).copy()
        return cls(img.width, img.height, rgba)

    # ---- conversions ----
    def to_image(self) -> Image.Image:
        return Image.fromarray(self.pixels, "RGBA")

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, self.pixels.copy())

    # ---- access ----
    @property
    def rgb(self) -> np.ndarray:
        """Float64 copy of the RGB planes."""
        return self.pixels[..., :3].astype(np.float64)

    def write_rgb(self, rgb: np.ndarray) -> None:
        self.pixels[..., :3] = clamp_u8(rgb)

    def get_pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        """Read with clamp-to-edge coordinates."""
        x = min(max(int(x), 0), self.width - 1)
        y = min(max(int(y), 0), self.height - 1)
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def set_pixel(self, x: int, y: int, rgba: Tuple[float, ...]) -> None:
        """Write with clamp-to-edge coordinates and clamped channel values."""
        x = min(max(int(x), 0), self.width - 1)
        y = min(max(int(y), 0), self.height - 1)
        vals = clamp_u8(np.array(rgba, np.float64))
        self.pixels[y, x, : vals.size] = vals[:4]

    def luminance(self, normalized: bool = False) -> np.ndarray:
        lum = luminance(self.pixels[..., :3])
        return lum / 255.0 if normalized else lum

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (self.width, self.height) == (other.width, other.height) and np.array_equal(self.pixels, other.pixels)
