#!/usr/bin/env python3
"""
Immich Best-Shot Selector
=========================

Picks one "best" photo from every Immich duplicate group.

Pipeline:
  1. List duplicate groups from the Immich server
  2. Fetch a preview and metadata for every member (concurrently)
  3. Score technical quality (sharpness, exposure, composition) + faces/tags
  4. Rank members; highest total wins, the rest become alternates
  5. Apply the configured action (favorite / hide / delete group / review albums)

Nothing is written to the server unless APPLY_CHANGES=true (or --apply).

Usage:
  bestshot                          # dry run, favorite_only
  bestshot --review-albums --apply  # fill the two review albums for 10 groups
  python -m bestshot --action favorite_and_hide --apply

Configuration is read from the environment or a .env file:
  IMMICH_BASE_URL, IMMICH_API_KEY, BESTSHOT_ACTION, APPLY_CHANGES, ...
"""

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import Optional

import numpy as np
from tqdm.auto import tqdm

from bestshot.actions import NormalActionSink, ReviewAlbumSink, album_display_name, get_or_create_album
from bestshot.config import ACTIONS, Settings, load_settings
from bestshot.errors import ImmichAPIError
from bestshot.immich import ImmichClient
from bestshot.resolver import GroupResolver, ResolutionResult


def _print_score_summary(results: list[ResolutionResult]) -> None:
    """Print winner-score statistics and per-metric averages for the run."""
    if not results:
        return
    winners = [r.winner_score for r in results]
    arr = np.array([w.total for w in winners])
    print(f"  📈 Winner scores (n={len(arr)}):")
    print(
        f"     min={arr.min():.3f}  max={arr.max():.3f}  "
        f"mean={arr.mean():.3f}  median={float(np.median(arr)):.3f}"
    )

    metric_names = ["sharpness", "exposure", "composition", "face", "tags"]
    parts = []
    for m in metric_names:
        vals = [getattr(w.breakdown, m) for w in winners]
        parts.append(f"{m}={float(np.mean(vals)):.2f}")
    print(f"     winner metric avgs: {', '.join(parts)}")

    reasons: dict[str, int] = {}
    for result in results:
        for score in result.scores:
            if score.reason:
                reasons[score.reason] = reasons.get(score.reason, 0) + 1
    if reasons:
        summary = ", ".join(f"{k}={v}" for k, v in sorted(reasons.items()))
        print(f"     ⚠ unscored assets: {summary}")


def run(settings: Settings, client: Optional[ImmichClient] = None) -> list[ResolutionResult]:
    """
    Resolve every duplicate group and apply the configured action.

    Exits with status 1 when the API key is missing or the server cannot be
    queried for groups/albums. Failures while applying one group's action are
    reported and the run continues.
    """
    print("=" * 60)
    print("📸 Best Shot Selector")
    print(f"   Server: {settings.immich_base_url}")
    print(f"   Mode:   {settings.mode_label}")
    print(f"   Apply:  {settings.apply_changes}")
    w = settings.weights
    print(
        f"   Weights: sharpness={w.sharpness:g} exposure={w.exposure:g} "
        f"face={w.face:g} tags={w.tags:g}"
    )
    print("=" * 60)

    if not settings.immich_api_key:
        print("❌ Missing IMMICH_API_KEY in env vars")
        sys.exit(1)

    if client is None:
        client = ImmichClient(
            settings.immich_base_url,
            settings.immich_api_key,
            timeout_seconds=settings.http_timeout_seconds,
            max_retries=settings.max_retries,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        )

    try:
        groups = client.list_groups()
        print(f"🔍 Found {len(groups)} duplicate groups.")

        if settings.review_album_mode:
            # Prep albums once
            winners = get_or_create_album(client, settings.winners_album_name)
            alternates = get_or_create_album(client, settings.alternates_album_name)
            print(
                f"🗂️  Review mode ON (limit {settings.review_album_limit}). "
                f"Winners album=\"{album_display_name(winners)}\", "
                f"Alternates album=\"{album_display_name(alternates)}\". "
                f"APPLY_CHANGES={settings.apply_changes}"
            )
            groups = groups[: settings.review_album_limit]
        else:
            print(f"⚙️  Normal mode. BESTSHOT_ACTION={settings.action} APPLY_CHANGES={settings.apply_changes}")
    except ImmichAPIError as e:
        print(f"❌ Immich API error: {e}")
        sys.exit(1)

    progress_bar = tqdm(groups, total=len(groups), desc="  Resolving groups", unit="group")
    progress_write = tqdm.write

    if settings.review_album_mode:
        sink = ReviewAlbumSink(
            client,
            winners["id"],
            alternates["id"],
            winners_album_name=album_display_name(winners),
            alternates_album_name=album_display_name(alternates),
            apply_changes=settings.apply_changes,
            log=progress_write,
        )
    else:
        sink = NormalActionSink(
            client,
            action=settings.action,
            apply_changes=settings.apply_changes,
            log=progress_write,
        )

    results: list[ResolutionResult] = []
    failed = 0
    with GroupResolver(
        client,
        client,
        weights=settings.weights,
        fetch_timeout=settings.fetch_timeout_seconds,
        concurrency=settings.concurrency,
        skip_degraded_groups=settings.skip_degraded,
        log=progress_write,
    ) as resolver:
        for result in resolver.resolve_groups(progress_bar):
            review_tag = " [review]" if settings.review_album_mode else ""
            progress_write(
                f"Group {result.group_id}: picking {result.winner} as best "
                f"(score {result.winner_score.total:.3f}), "
                f"others={len(result.alternates)}{review_tag}"
            )
            try:
                sink.apply(result)
            except ImmichAPIError as e:
                progress_write(f"  ⚠ Could not apply action for group {result.group_id}: {e}")
                failed += 1
                continue
            results.append(result)
    progress_bar.close()

    _print_score_summary(results)
    print(f"\n{'=' * 60}")
    print(
        f"🏆 Done. Mode={settings.mode_label} Apply={settings.apply_changes} "
        f"Processed={len(results)}" + (f" Failed={failed}" if failed else "")
    )
    print(f"{'=' * 60}")
    return results


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class _HelpOnErrorArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that prints full help text on parse errors."""

    def error(self, message):
        self.print_help(sys.stderr)
        self.exit(2, f"\n{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _HelpOnErrorArgumentParser(
        prog="bestshot",
        description="Pick the best photo from every Immich duplicate group.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                   # dry run
  %(prog)s --apply --action favorite_and_hide
  %(prog)s --review-albums --review-limit 25 --apply
        """,
    )
    parser.add_argument(
        "--apply",
        dest="apply_changes",
        action="store_true",
        default=None,
        help="Write changes to the server (default from APPLY_CHANGES, otherwise dry run).",
    )
    parser.add_argument(
        "--action",
        choices=list(ACTIONS),
        default=None,
        help="What to do with winners/alternates (default from BESTSHOT_ACTION or favorite_only).",
    )
    parser.add_argument(
        "--review-albums",
        dest="review_album_mode",
        action="store_true",
        default=None,
        help="Add winners and alternates to review albums instead of the normal action.",
    )
    parser.add_argument(
        "--review-limit",
        dest="review_album_limit",
        type=int,
        default=None,
        help="Number of groups processed in review mode (default from REVIEW_ALBUM_LIMIT or 10).",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Parallel preview/metadata fetches per group (default from BESTSHOT_CONCURRENCY or 4).",
    )
    parser.add_argument(
        "--env-dir",
        default=None,
        help="Extra directory to search for a .env file (after the current directory).",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(search_dir=Path(args.env_dir) if args.env_dir else None)
    overrides = {
        name: getattr(args, name)
        for name in ("apply_changes", "action", "review_album_mode", "review_album_limit", "concurrency")
        if getattr(args, name) is not None
    }
    if "review_album_limit" in overrides:
        overrides["review_album_limit"] = max(0, overrides["review_album_limit"])
    if "concurrency" in overrides:
        overrides["concurrency"] = min(16, max(1, overrides["concurrency"]))
    settings = dataclasses.replace(settings, **overrides)

    run(settings)


if __name__ == "__main__":
    main()
