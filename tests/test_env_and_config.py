import pytest

import bestshot.config as config
from bestshot.scoring import ScoreWeights

ALL_VARS = [
    config.IMMICH_BASE_URL_ENV_VAR,
    config.IMMICH_API_KEY_ENV_VAR,
    config.ACTION_ENV_VAR,
    config.APPLY_CHANGES_ENV_VAR,
    config.REVIEW_ALBUM_MODE_ENV_VAR,
    config.REVIEW_ALBUM_LIMIT_ENV_VAR,
    config.WINNERS_ALBUM_ENV_VAR,
    config.ALTERNATES_ALBUM_ENV_VAR,
    config.WEIGHT_SHARPNESS_ENV_VAR,
    config.WEIGHT_EXPOSURE_ENV_VAR,
    config.WEIGHT_FACE_ENV_VAR,
    config.WEIGHT_TAGS_ENV_VAR,
    config.CONCURRENCY_ENV_VAR,
    config.FETCH_TIMEOUT_ENV_VAR,
    config.HTTP_TIMEOUT_ENV_VAR,
    config.MAX_RETRIES_ENV_VAR,
    config.RETRY_BACKOFF_ENV_VAR,
    config.SKIP_DEGRADED_ENV_VAR,
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ALL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_read_env_file_parses_comments_exports_and_quotes(tmp_path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text(
        "\n".join(
            [
                "# comment",
                "export IMMICH_API_KEY='abc123'",
                'IMMICH_BASE_URL="http://immich:2283"',
                "INVALID_LINE",
                "  BESTSHOT_ACTION = favorite_and_hide  ",
            ]
        ),
        encoding="utf-8",
    )

    parsed = config._read_env_file(env_file)

    assert parsed["IMMICH_API_KEY"] == "abc123"
    assert parsed["IMMICH_BASE_URL"] == "http://immich:2283"
    assert parsed["BESTSHOT_ACTION"] == "favorite_and_hide"
    assert "INVALID_LINE" not in parsed


def test_defaults_without_environment(clean_env) -> None:
    settings = config.load_settings()

    assert settings.immich_base_url == "http://localhost:2283"
    assert settings.immich_api_key == ""
    assert settings.action == "favorite_only"
    assert settings.apply_changes is False
    assert settings.review_album_mode is False
    assert settings.review_album_limit == 10
    assert settings.winners_album_name == "Best-Shot Review — Winners"
    assert settings.alternates_album_name == "Best-Shot Review — Alternates"
    assert settings.weights == ScoreWeights()
    assert settings.skip_degraded is True
    assert settings.mode_label == "favorite_only"


def test_environment_wins_over_env_file(clean_env, monkeypatch) -> None:
    (clean_env / ".env").write_text("IMMICH_API_KEY=file_value\nAPPLY_CHANGES=false", encoding="utf-8")
    monkeypatch.setenv("IMMICH_API_KEY", "env_value")
    monkeypatch.setenv("APPLY_CHANGES", "TRUE")

    settings = config.load_settings()

    assert settings.immich_api_key == "env_value"
    assert settings.apply_changes is True


def test_env_file_reads_cwd_then_search_dir(clean_env) -> None:
    cwd = clean_env
    search = clean_env / "search"
    search.mkdir()
    (cwd / ".env").write_text("IMMICH_API_KEY=cwd_value", encoding="utf-8")
    (search / ".env").write_text(
        "IMMICH_API_KEY=search_value\nREVIEW_ALBUM_MODE=yes", encoding="utf-8"
    )

    settings = config.load_settings(search_dir=search)
    assert settings.immich_api_key == "cwd_value"
    assert settings.review_album_mode is True
    assert settings.mode_label == "review-albums"

    (cwd / ".env").unlink()
    assert config.load_settings(search_dir=search).immich_api_key == "search_value"


def test_weights_from_environment_clamp_negatives(clean_env, monkeypatch) -> None:
    monkeypatch.setenv("BESTSHOT_WEIGHT_SHARPNESS", "0.7")
    monkeypatch.setenv("BESTSHOT_WEIGHT_EXPOSURE", "0.3")
    monkeypatch.setenv("BESTSHOT_WEIGHT_FACE", "-2")
    monkeypatch.setenv("BESTSHOT_WEIGHT_TAGS", "not-a-number")

    weights = config.load_settings().weights

    assert weights == ScoreWeights(sharpness=0.7, exposure=0.3, face=0.0, tags=0.10)


def test_non_finite_floats_fall_back_to_defaults(clean_env, monkeypatch) -> None:
    monkeypatch.setenv("BESTSHOT_WEIGHT_SHARPNESS", "inf")
    monkeypatch.setenv("BESTSHOT_WEIGHT_FACE", "nan")
    monkeypatch.setenv("BESTSHOT_FETCH_TIMEOUT_SEC", "Infinity")

    settings = config.load_settings()

    assert settings.weights == ScoreWeights()
    assert settings.fetch_timeout_seconds == 30.0


def test_numeric_settings_are_clamped(clean_env, monkeypatch) -> None:
    monkeypatch.setenv("BESTSHOT_CONCURRENCY", "64")
    monkeypatch.setenv("BESTSHOT_MAX_RETRIES", "-3")
    monkeypatch.setenv("BESTSHOT_RETRY_BACKOFF_SEC", "100")
    monkeypatch.setenv("BESTSHOT_FETCH_TIMEOUT_SEC", "0")
    monkeypatch.setenv("REVIEW_ALBUM_LIMIT", "oops")

    settings = config.load_settings()

    assert settings.concurrency == 16
    assert settings.max_retries == 0
    assert settings.retry_backoff_seconds == 10.0
    assert settings.fetch_timeout_seconds == 1.0
    assert settings.review_album_limit == 10


def test_unknown_action_falls_back_to_favorite_only(clean_env, monkeypatch, capsys) -> None:
    monkeypatch.setenv("BESTSHOT_ACTION", "burn_it_all")

    assert config.load_settings().action == "favorite_only"
    assert "Unknown BESTSHOT_ACTION" in capsys.readouterr().out


def test_base_url_trailing_slash_is_stripped(clean_env, monkeypatch) -> None:
    monkeypatch.setenv("IMMICH_BASE_URL", "https://photos.example.com/")
    assert config.load_settings().immich_base_url == "https://photos.example.com"
