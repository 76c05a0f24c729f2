"""
Group resolution: score every member of a duplicate group and pick a winner.

Per asset:
  1. fetch preview bytes (unavailable or timed out → total 0, "no_preview")
  2. decode (failure → total 0, "decode_failed")
  3. luminance → sharpness / exposure / composition
  4. metadata → face / tags (missing or failed → 0 / 0)
  5. weighted blend

Members are ranked by total with a stable sort, so ties keep enumeration
order and the ranking does not depend on fetch completion order.
"""

import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from bestshot.decode import decode_image
from bestshot.errors import DecodeFailure
from bestshot.metadata import AssetMetadata, score_metadata
from bestshot.quality import PixelBuffer, analyze_luminance, to_luminance
from bestshot.scoring import (
    REASON_DECODE_FAILED,
    REASON_NO_PREVIEW,
    AssetScore,
    ScoreWeights,
    blend_scores,
)
from bestshot.sources import AssetSource, MetadataSource

DEFAULT_FETCH_TIMEOUT_SEC = 30.0
DEFAULT_CONCURRENCY = 4


class _TimedFetch:
    """One collaborator call queued on the pool; records when a worker starts it.

    Any exception it raises costs only that asset's signal, never the group.
    """

    def __init__(self, fn: Callable[[str], object], asset_id: str) -> None:
        self.fn = fn
        self.asset_id = asset_id
        self.started = threading.Event()
        self.started_at = 0.0
        self.future: Optional[Future] = None

    def __call__(self):
        self.started_at = time.monotonic()
        self.started.set()
        return self.fn(self.asset_id)


@dataclass(frozen=True)
class DuplicateGroup:
    group_id: str
    asset_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        unique: list[str] = []
        seen: set[str] = set()
        for asset_id in self.asset_ids:
            if asset_id and asset_id not in seen:
                seen.add(asset_id)
                unique.append(asset_id)
        object.__setattr__(self, "asset_ids", tuple(unique))


@dataclass(frozen=True)
class ResolutionResult:
    group_id: str
    winner: str
    alternates: tuple[str, ...] = ()
    scores: tuple[AssetScore, ...] = field(default_factory=tuple)

    @property
    def degraded(self) -> bool:
        """True when every member scored zero, i.e. the winner is arbitrary."""
        return all(score.total == 0 for score in self.scores)

    @property
    def winner_score(self) -> AssetScore:
        return self.scores[0]


def _describe(error: Exception) -> str:
    if isinstance(error, FutureTimeoutError):
        return "timed out"
    return str(error) or type(error).__name__


def rank_scores(scores: Iterable[AssetScore]) -> list[AssetScore]:
    """Sort descending by total; Python's sort is stable, so ties keep input order."""
    return sorted(scores, key=lambda s: s.total, reverse=True)


class GroupResolver:
    """Scores duplicate groups and splits them into winner and alternates."""

    def __init__(
        self,
        asset_source: AssetSource,
        metadata_source: Optional[MetadataSource] = None,
        *,
        decoder: Callable[[bytes], PixelBuffer] = decode_image,
        weights: Optional[ScoreWeights] = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SEC,
        concurrency: int = DEFAULT_CONCURRENCY,
        skip_degraded_groups: bool = False,
        log: Callable[[str], None] = print,
    ) -> None:
        self.asset_source = asset_source
        self.metadata_source = metadata_source
        self.decoder = decoder
        self.weights = weights or ScoreWeights()
        self.fetch_timeout = fetch_timeout
        self.skip_degraded_groups = skip_degraded_groups
        self.log = log
        self._workers = max(1, concurrency)
        self._executor = ThreadPoolExecutor(
            max_workers=self._workers, thread_name_prefix="bestshot-fetch"
        )

    def close(self) -> None:
        # Do not block on fetches that already blew their timeout.
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "GroupResolver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -- scoring ------------------------------------------------------------

    def score_preview(
        self, asset_id: str, preview: bytes, metadata: Optional[AssetMetadata]
    ) -> AssetScore:
        """Score already-fetched bytes; InvalidBuffer from the decoder propagates."""
        try:
            buffer = self.decoder(preview)
        except DecodeFailure as e:
            self.log(f"  ⚠ Decode failed for {asset_id}: {e}")
            return AssetScore.failed(asset_id, REASON_DECODE_FAILED)

        metrics = analyze_luminance(to_luminance(buffer))
        face, tags = score_metadata(metadata)
        total, breakdown = blend_scores(
            metrics.sharpness,
            metrics.exposure,
            metrics.composition,
            face,
            tags,
            self.weights,
        )
        return AssetScore(asset_id=asset_id, total=total, breakdown=breakdown)

    def _submit(self, fn: Callable[[str], object], asset_id: str) -> _TimedFetch:
        fetch = _TimedFetch(fn, asset_id)
        fetch.future = self._executor.submit(fetch)
        return fetch

    def _await_fetch(self, fetch: _TimedFetch, start_deadline: float):
        """Wait for a fetch; its timeout runs from when a worker picked it up."""
        if not fetch.started.wait(timeout=max(0.0, start_deadline - time.monotonic())):
            raise FutureTimeoutError()
        remaining = fetch.started_at + self.fetch_timeout - time.monotonic()
        return fetch.future.result(timeout=max(0.0, remaining))

    def _await_preview(self, fetch: _TimedFetch, start_deadline: float) -> Optional[bytes]:
        try:
            return self._await_fetch(fetch, start_deadline)
        except Exception as e:
            fetch.future.cancel()
            self.log(f"  ⚠ Preview unavailable for {fetch.asset_id}: {_describe(e)}")
            return None

    def _await_metadata(
        self, fetch: Optional[_TimedFetch], start_deadline: float
    ) -> Optional[AssetMetadata]:
        if fetch is None:
            return None
        try:
            return self._await_fetch(fetch, start_deadline)
        except Exception as e:
            fetch.future.cancel()
            self.log(
                f"  ⚠ Metadata unavailable for {fetch.asset_id}: {_describe(e)} (scoring without it)"
            )
            return None

    def resolve(self, group: DuplicateGroup) -> Optional[ResolutionResult]:
        """Resolve one group; returns None for a group without assets."""
        asset_ids = group.asset_ids
        if not asset_ids:
            return None

        # Preview and metadata are queued per asset so asset k never waits behind
        # every other preview.
        pending: list[tuple[_TimedFetch, Optional[_TimedFetch]]] = []
        for asset_id in asset_ids:
            preview_fetch = self._submit(self.asset_source.fetch_preview, asset_id)
            metadata_fetch = None
            if self.metadata_source is not None:
                metadata_fetch = self._submit(self.metadata_source.fetch_metadata, asset_id)
            pending.append((preview_fetch, metadata_fetch))

        # A queued fetch that never reaches a worker (the pool is stuck on stalled
        # fetches) gives up once every round of the pool could have timed out.
        fetch_count = sum(1 + (meta is not None) for _, meta in pending)
        rounds = math.ceil(fetch_count / self._workers)
        start_deadline = time.monotonic() + self.fetch_timeout * rounds

        scores: list[AssetScore] = []
        for preview_fetch, metadata_fetch in pending:
            asset_id = preview_fetch.asset_id
            preview = self._await_preview(preview_fetch, start_deadline)
            if not preview:
                if metadata_fetch is not None:
                    metadata_fetch.future.cancel()
                scores.append(AssetScore.failed(asset_id, REASON_NO_PREVIEW))
                continue
            metadata = self._await_metadata(metadata_fetch, start_deadline)
            scores.append(self.score_preview(asset_id, preview, metadata))

        ranked = rank_scores(scores)
        return ResolutionResult(
            group_id=group.group_id,
            winner=ranked[0].asset_id,
            alternates=tuple(s.asset_id for s in ranked[1:]),
            scores=tuple(ranked),
        )

    def resolve_groups(self, groups: Iterable[DuplicateGroup]) -> Iterator[ResolutionResult]:
        """Yield results in input order, skipping empty (and optionally degraded) groups."""
        for group in groups:
            result = self.resolve(group)
            if result is None:
                self.log(f"Group {group.group_id}: no assets, skipping")
                continue
            if result.degraded and self.skip_degraded_groups:
                self.log(
                    f"  ⚠ Group {group.group_id}: every asset scored 0, skipping "
                    f"(winner would be arbitrary)"
                )
                continue
            yield result
