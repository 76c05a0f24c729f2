"""
Low-level image quality metrics.

Every metric works on a single-channel luminance map derived from a decoded
RGBA preview and returns a value in 0.0–1.0:

  sharpness: variance of the 3x3 discrete Laplacian, log-compressed
  exposure: closeness of mean luminance to 130 plus a clipping penalty
  composition: share of luminance energy in the centre cell of a 3x3 grid
"""

import math
from dataclasses import dataclass

import cv2
import numpy as np

from bestshot.errors import InvalidBuffer

# BT.601 luma weights
LUMA_R = 0.299
LUMA_G = 0.587
LUMA_B = 0.114

SHARPNESS_LOG_DIVISOR = 5.0  # "visibly sharp" previews land near 0.6–0.9

EXPOSURE_TARGET = 130.0
CLIP_BLACK_MAX = 3
CLIP_WHITE_MIN = 252
CLIP_PENALTY_SCALE = 5.0  # 20% clipped pixels zeroes the clip term

COMPOSITION_FLOOR = 0.11  # uniform image puts ~1/9 of its energy in the centre
COMPOSITION_CEIL = 0.35
COMPOSITION_NEUTRAL = 0.5


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


@dataclass(frozen=True)
class PixelBuffer:
    """Decoded RGBA image, row-major and channel-interleaved."""

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InvalidBuffer(f"Invalid buffer dimensions {self.width}x{self.height}")
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise InvalidBuffer(
                f"Buffer length {len(self.data)} does not match {self.width}x{self.height}x4={expected}"
            )

    def as_array(self) -> np.ndarray:
        """Return a read-only (height, width, 4) uint8 view of the buffer."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)


@dataclass(frozen=True, eq=False)
class LuminanceMap:
    width: int
    height: int
    pixels: np.ndarray  # (height, width) uint8, read-only

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "LuminanceMap":
        arr = np.array(pixels, dtype=np.uint8)
        if arr.ndim != 2:
            raise InvalidBuffer(f"Luminance map must be 2-D, got shape {arr.shape}")
        if arr.size == 0:
            raise InvalidBuffer(f"Luminance map must not be empty, got shape {arr.shape}")
        arr.setflags(write=False)
        height, width = arr.shape
        return cls(width=width, height=height, pixels=arr)


@dataclass(frozen=True)
class QualityMetrics:
    sharpness: float
    exposure: float
    composition: float


# ---------------------------------------------------------------------------
# Grayscale reduction
# ---------------------------------------------------------------------------


def to_luminance(buffer: PixelBuffer) -> LuminanceMap:
    """Convert an RGBA buffer to BT.601 luminance, rounding half up; alpha is ignored."""
    rgba = buffer.as_array().astype(np.float64)
    luma = LUMA_R * rgba[:, :, 0] + LUMA_G * rgba[:, :, 1] + LUMA_B * rgba[:, :, 2]
    rounded = np.clip(np.floor(luma + 0.5), 0, 255)
    return LuminanceMap.from_array(rounded.astype(np.uint8))


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def laplacian_variance(lum: LuminanceMap) -> float:
    """Sample variance (n-1) of the interior Laplacian response, 0.0 when undefined."""
    if lum.width < 3 or lum.height < 3:
        return 0.0
    # ksize=1 is the [[0,1,0],[1,-4,1],[0,1,0]] kernel; the border row/column is dropped.
    response = cv2.Laplacian(lum.pixels.astype(np.float64), cv2.CV_64F, ksize=1)[1:-1, 1:-1]
    if response.size < 2:
        return 0.0
    return float(response.var(ddof=1))


def sharpness_score(lum: LuminanceMap) -> float:
    variance = laplacian_variance(lum)
    return _clamp(math.log10(1.0 + variance) / SHARPNESS_LOG_DIVISOR)


def exposure_score(lum: LuminanceMap) -> float:
    """Score mean brightness against the 130 target and penalize clipped pixels."""
    hist = np.bincount(lum.pixels.ravel(), minlength=256)
    total_px = float(hist.sum())
    clip_black = hist[: CLIP_BLACK_MAX + 1].sum() / total_px
    clip_white = hist[CLIP_WHITE_MIN:].sum() / total_px
    clip_frac = float(clip_black + clip_white)

    mean_lum = float(lum.pixels.mean())
    brightness = max(0.0, 1.0 - abs(mean_lum - EXPOSURE_TARGET) / EXPOSURE_TARGET)
    clipping = 1.0 - _clamp(clip_frac * CLIP_PENALTY_SCALE)
    return _clamp(0.6 * brightness + 0.4 * clipping)


def composition_score(lum: LuminanceMap) -> float:
    """Score how much luminance energy sits in the centre cell of a 3x3 grid.

    Cells are width//3 by height//3; the last row and column absorb the
    remainder. A fully black image is neutral (0.5).
    """
    px = lum.pixels.astype(np.int64)
    total = int(px.sum())
    if total == 0:
        return COMPOSITION_NEUTRAL

    cell_w = lum.width // 3
    cell_h = lum.height // 3
    center = int(px[cell_h : 2 * cell_h, cell_w : 2 * cell_w].sum())
    center_frac = center / total
    return _clamp((center_frac - COMPOSITION_FLOOR) / (COMPOSITION_CEIL - COMPOSITION_FLOOR))


def analyze_luminance(lum: LuminanceMap) -> QualityMetrics:
    return QualityMetrics(
        sharpness=sharpness_score(lum),
        exposure=exposure_score(lum),
        composition=composition_score(lum),
    )
