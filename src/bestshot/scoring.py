"""Score weights, per-asset score records and the weighted blend."""

from dataclasses import dataclass, fields
from typing import Optional

EXPOSURE_FOLD = 0.75  # composition is folded into the exposure channel
COMPOSITION_FOLD = 0.25

REASON_NO_PREVIEW = "no_preview"
REASON_DECODE_FAILED = "decode_failed"


@dataclass(frozen=True)
class ScoreWeights:
    """Weights for the four blended signals.

    The blend is a weighted sum, not an average: weights are never normalized,
    so their magnitudes decide the range of the total.
    """

    sharpness: float = 0.45
    exposure: float = 0.25
    face: float = 0.20
    tags: float = 0.10

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ValueError(f"Score weight '{f.name}' must be non-negative, got {value}")

    @property
    def total(self) -> float:
        return self.sharpness + self.exposure + self.face + self.tags


@dataclass(frozen=True)
class ScoreBreakdown:
    sharpness: float = 0.0
    exposure: float = 0.0  # exposure/composition composite fed to the blend
    composition: float = 0.0
    face: float = 0.0
    tags: float = 0.0
    reason: Optional[str] = None


@dataclass(frozen=True)
class AssetScore:
    asset_id: str
    total: float
    breakdown: ScoreBreakdown

    @classmethod
    def failed(cls, asset_id: str, reason: str) -> "AssetScore":
        return cls(asset_id=asset_id, total=0.0, breakdown=ScoreBreakdown(reason=reason))

    @property
    def reason(self) -> Optional[str]:
        return self.breakdown.reason


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def fold_exposure(exposure: float, composition: float) -> float:
    return _clamp(EXPOSURE_FOLD * exposure + COMPOSITION_FOLD * composition)


def blend_scores(
    sharpness: float,
    exposure: float,
    composition: float,
    face: float,
    tags: float,
    weights: ScoreWeights,
) -> tuple[float, ScoreBreakdown]:
    """Combine component scores into the composite total and its breakdown."""
    exposure_composite = fold_exposure(exposure, composition)
    total = (
        weights.sharpness * sharpness
        + weights.exposure * exposure_composite
        + weights.face * face
        + weights.tags * tags
    )
    breakdown = ScoreBreakdown(
        sharpness=sharpness,
        exposure=exposure_composite,
        composition=composition,
        face=face,
        tags=tags,
    )
    return total, breakdown
