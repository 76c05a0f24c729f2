import pytest

from bestshot.metadata import AssetMetadata, face_score, score_metadata, tag_score
from bestshot.scoring import AssetScore, ScoreWeights, blend_scores, fold_exposure


@pytest.mark.parametrize(
    ("faces", "expected"),
    [(0, 0.0), (1, 1 / 3), (3, 1.0), (10, 1.0), (None, 0.0)],
)
def test_face_score_saturates_at_three(faces, expected) -> None:
    assert face_score(faces) == pytest.approx(expected)


@pytest.mark.parametrize(
    ("tags", "expected"),
    [
        (["portrait"], 0.85),
        (["screenshot"], 0.2),
        (["portrait", "screenshot"], 0.55),
        ([], 0.5),
        (["Selfie", "beach"], 0.85),
        (["person", "people", "family"], 0.85),
        (["QR"], 0.2),
        (["sunset", "mountain"], 0.5),
    ],
)
def test_tag_score(tags, expected) -> None:
    assert tag_score(tags) == pytest.approx(expected)


def test_missing_tags_contribute_nothing() -> None:
    assert tag_score(None) == 0.0


def test_score_metadata_absent_is_zero_not_error() -> None:
    assert score_metadata(None) == (0.0, 0.0)
    face, tags = score_metadata(AssetMetadata(face_count=2, tags=("family",)))
    assert face == pytest.approx(2 / 3)
    assert tags == pytest.approx(0.85)


def test_default_weights() -> None:
    weights = ScoreWeights()
    assert (weights.sharpness, weights.exposure, weights.face, weights.tags) == (0.45, 0.25, 0.20, 0.10)
    assert weights.total == pytest.approx(1.0)


def test_negative_weight_is_rejected() -> None:
    with pytest.raises(ValueError, match="face"):
        ScoreWeights(face=-0.1)


def test_fold_exposure_uses_fixed_split_and_clamps() -> None:
    assert fold_exposure(0.8, 0.4) == pytest.approx(0.75 * 0.8 + 0.25 * 0.4)
    assert fold_exposure(2.0, 2.0) == 1.0
    assert fold_exposure(-1.0, 0.0) == 0.0


def test_blend_is_weighted_sum_without_normalization() -> None:
    weights = ScoreWeights(sharpness=1.0, exposure=1.0, face=1.0, tags=1.0)
    total, breakdown = blend_scores(0.5, 0.8, 0.4, 1 / 3, 0.85, weights)

    exposure_composite = 0.75 * 0.8 + 0.25 * 0.4
    assert total == pytest.approx(0.5 + exposure_composite + 1 / 3 + 0.85)
    assert breakdown.exposure == pytest.approx(exposure_composite)
    assert breakdown.composition == 0.4
    assert breakdown.reason is None


def test_blend_with_default_weights() -> None:
    total, _ = blend_scores(1.0, 1.0, 1.0, 1.0, 1.0, ScoreWeights())
    assert total == pytest.approx(1.0)


def test_failed_asset_score_records_reason() -> None:
    score = AssetScore.failed("abc", "no_preview")
    assert score.total == 0.0
    assert score.reason == "no_preview"
    assert score.breakdown.sharpness == 0.0
