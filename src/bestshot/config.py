"""Environment / .env configuration for the best-shot selector."""

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from bestshot.scoring import ScoreWeights

DEFAULT_IMMICH_BASE_URL = "http://localhost:2283"
DEFAULT_WINNERS_ALBUM_NAME = "Best-Shot Review — Winners"
DEFAULT_ALTERNATES_ALBUM_NAME = "Best-Shot Review — Alternates"

ACTION_FAVORITE_ONLY = "favorite_only"
ACTION_FAVORITE_AND_HIDE = "favorite_and_hide"
ACTION_DELETE_ALTERNATES = "delete_alternates"
ACTIONS = (ACTION_FAVORITE_ONLY, ACTION_FAVORITE_AND_HIDE, ACTION_DELETE_ALTERNATES)

IMMICH_BASE_URL_ENV_VAR = "IMMICH_BASE_URL"
IMMICH_API_KEY_ENV_VAR = "IMMICH_API_KEY"
ACTION_ENV_VAR = "BESTSHOT_ACTION"
APPLY_CHANGES_ENV_VAR = "APPLY_CHANGES"
REVIEW_ALBUM_MODE_ENV_VAR = "REVIEW_ALBUM_MODE"
REVIEW_ALBUM_LIMIT_ENV_VAR = "REVIEW_ALBUM_LIMIT"
WINNERS_ALBUM_ENV_VAR = "WINNERS_ALBUM_NAME"
ALTERNATES_ALBUM_ENV_VAR = "ALTERNATES_ALBUM_NAME"
WEIGHT_SHARPNESS_ENV_VAR = "BESTSHOT_WEIGHT_SHARPNESS"
WEIGHT_EXPOSURE_ENV_VAR = "BESTSHOT_WEIGHT_EXPOSURE"
WEIGHT_FACE_ENV_VAR = "BESTSHOT_WEIGHT_FACE"
WEIGHT_TAGS_ENV_VAR = "BESTSHOT_WEIGHT_TAGS"
CONCURRENCY_ENV_VAR = "BESTSHOT_CONCURRENCY"
FETCH_TIMEOUT_ENV_VAR = "BESTSHOT_FETCH_TIMEOUT_SEC"
HTTP_TIMEOUT_ENV_VAR = "BESTSHOT_HTTP_TIMEOUT_SEC"
MAX_RETRIES_ENV_VAR = "BESTSHOT_MAX_RETRIES"
RETRY_BACKOFF_ENV_VAR = "BESTSHOT_RETRY_BACKOFF_SEC"
SKIP_DEGRADED_ENV_VAR = "BESTSHOT_SKIP_DEGRADED"


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------


def _read_env_file(env_path: Path) -> dict[str, str]:
    """Parse a simple .env file into key/value pairs."""
    values: dict[str, str] = {}
    try:
        content = env_path.read_text(encoding="utf-8")
    except OSError:
        return values

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue

        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        values[key] = value

    return values


def load_env_files(search_dir: Optional[Path] = None) -> dict[str, str]:
    """
    Merge .env values from the current directory and, if given, search_dir.
    The current directory wins on conflicting keys.
    """
    candidates = [Path.cwd() / ".env"]
    if search_dir is not None:
        candidates.append(search_dir / ".env")

    merged: dict[str, str] = {}
    seen: set[Path] = set()
    for env_file in candidates:
        resolved = env_file.resolve()
        if resolved in seen or not env_file.exists():
            continue
        seen.add(resolved)
        for key, value in _read_env_file(env_file).items():
            merged.setdefault(key, value)
    return merged


def _lookup(var_name: str, file_values: dict[str, str]) -> str:
    env_value = (os.environ.get(var_name) or "").strip()
    if env_value:
        return env_value
    return (file_values.get(var_name) or "").strip()


def _resolve_env_string(var_name: str, default: str, file_values: dict[str, str]) -> str:
    return _lookup(var_name, file_values) or default


def _resolve_env_int(var_name: str, default: int, file_values: dict[str, str]) -> int:
    raw = _lookup(var_name, file_values)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _resolve_env_float(var_name: str, default: float, file_values: dict[str, str]) -> float:
    raw = _lookup(var_name, file_values)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if not math.isfinite(value):
        return default
    return value


def _resolve_env_bool(var_name: str, default: bool, file_values: dict[str, str]) -> bool:
    raw = _lookup(var_name, file_values).lower()
    if not raw:
        return default
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


def _resolve_action(file_values: dict[str, str]) -> str:
    action = _resolve_env_string(ACTION_ENV_VAR, ACTION_FAVORITE_ONLY, file_values).lower()
    if action not in ACTIONS:
        print(f"  ⚠ Unknown {ACTION_ENV_VAR}={action!r}; using {ACTION_FAVORITE_ONLY}")
        return ACTION_FAVORITE_ONLY
    return action


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    immich_base_url: str = DEFAULT_IMMICH_BASE_URL
    immich_api_key: str = ""
    action: str = ACTION_FAVORITE_ONLY
    apply_changes: bool = False
    review_album_mode: bool = False
    review_album_limit: int = 10
    winners_album_name: str = DEFAULT_WINNERS_ALBUM_NAME
    alternates_album_name: str = DEFAULT_ALTERNATES_ALBUM_NAME
    weight_sharpness: float = 0.45
    weight_exposure: float = 0.25
    weight_face: float = 0.20
    weight_tags: float = 0.10
    concurrency: int = 4
    fetch_timeout_seconds: float = 30.0
    http_timeout_seconds: float = 60.0
    max_retries: int = 2
    retry_backoff_seconds: float = 0.75
    skip_degraded: bool = True

    @property
    def weights(self) -> ScoreWeights:
        return ScoreWeights(
            sharpness=self.weight_sharpness,
            exposure=self.weight_exposure,
            face=self.weight_face,
            tags=self.weight_tags,
        )

    @property
    def mode_label(self) -> str:
        return "review-albums" if self.review_album_mode else self.action


def load_settings(search_dir: Optional[Path] = None) -> Settings:
    """Resolve settings from the environment first, then .env files."""
    values = load_env_files(search_dir)
    defaults = Settings()
    return Settings(
        immich_base_url=_resolve_env_string(
            IMMICH_BASE_URL_ENV_VAR, DEFAULT_IMMICH_BASE_URL, values
        ).rstrip("/"),
        immich_api_key=_resolve_env_string(IMMICH_API_KEY_ENV_VAR, "", values),
        action=_resolve_action(values),
        apply_changes=_resolve_env_bool(APPLY_CHANGES_ENV_VAR, False, values),
        review_album_mode=_resolve_env_bool(REVIEW_ALBUM_MODE_ENV_VAR, False, values),
        review_album_limit=max(0, _resolve_env_int(REVIEW_ALBUM_LIMIT_ENV_VAR, 10, values)),
        winners_album_name=_resolve_env_string(
            WINNERS_ALBUM_ENV_VAR, DEFAULT_WINNERS_ALBUM_NAME, values
        ),
        alternates_album_name=_resolve_env_string(
            ALTERNATES_ALBUM_ENV_VAR, DEFAULT_ALTERNATES_ALBUM_NAME, values
        ),
        weight_sharpness=max(
            0.0, _resolve_env_float(WEIGHT_SHARPNESS_ENV_VAR, defaults.weight_sharpness, values)
        ),
        weight_exposure=max(
            0.0, _resolve_env_float(WEIGHT_EXPOSURE_ENV_VAR, defaults.weight_exposure, values)
        ),
        weight_face=max(0.0, _resolve_env_float(WEIGHT_FACE_ENV_VAR, defaults.weight_face, values)),
        weight_tags=max(0.0, _resolve_env_float(WEIGHT_TAGS_ENV_VAR, defaults.weight_tags, values)),
        concurrency=min(16, max(1, _resolve_env_int(CONCURRENCY_ENV_VAR, 4, values))),
        fetch_timeout_seconds=max(1.0, _resolve_env_float(FETCH_TIMEOUT_ENV_VAR, 30.0, values)),
        http_timeout_seconds=max(5.0, _resolve_env_float(HTTP_TIMEOUT_ENV_VAR, 60.0, values)),
        max_retries=min(8, max(0, _resolve_env_int(MAX_RETRIES_ENV_VAR, 2, values))),
        retry_backoff_seconds=min(
            10.0, max(0.05, _resolve_env_float(RETRY_BACKOFF_ENV_VAR, 0.75, values))
        ),
        skip_degraded=_resolve_env_bool(SKIP_DEGRADED_ENV_VAR, True, values),
    )
