"""Scene metadata signals: detected faces and content tags."""

from dataclasses import dataclass
from typing import Iterable, Optional

FACE_SATURATION = 3  # diminishing returns past three faces

POSITIVE_TAGS = {"person", "people", "portrait", "family", "selfie"}
NEGATIVE_TAGS = {"screenshot", "document", "whiteboard", "qr", "barcode"}
POSITIVE_TAG_BOOST = 0.7
NEGATIVE_TAG_PENALTY = 0.6


@dataclass(frozen=True)
class AssetMetadata:
    """Optional semantic hints for one asset. ``None`` means the signal is absent."""

    face_count: Optional[int] = None
    tags: Optional[tuple[str, ...]] = None


def face_score(face_count: Optional[int]) -> float:
    if not face_count or face_count < 0:
        return 0.0
    return min(1.0, face_count / FACE_SATURATION)


def tag_score(tags: Optional[Iterable[str]]) -> float:
    """Map scene tags to 0.0–1.0; an empty tag list is neutral (0.5), no tags at all is 0."""
    if tags is None:
        return 0.0
    normalized = {str(tag).strip().lower() for tag in tags if tag}
    boost = 0.0
    if normalized & POSITIVE_TAGS:
        boost += POSITIVE_TAG_BOOST
    if normalized & NEGATIVE_TAGS:
        boost -= NEGATIVE_TAG_PENALTY
    boost = max(-1.0, min(1.0, boost))
    return (boost + 1.0) / 2.0


def score_metadata(metadata: Optional[AssetMetadata]) -> tuple[float, float]:
    """Return (face, tags) scores, both zero when metadata is unavailable."""
    if metadata is None:
        return 0.0, 0.0
    return face_score(metadata.face_count), tag_score(metadata.tags)
