"""Effect sinks: what happens to a resolved group's winner and alternates."""

from typing import Callable

from bestshot.config import (
    ACTION_DELETE_ALTERNATES,
    ACTION_FAVORITE_AND_HIDE,
    ACTION_FAVORITE_ONLY,
)
from bestshot.immich import ImmichClient
from bestshot.resolver import ResolutionResult


def album_display_name(album: dict) -> str:
    return album.get("albumName") or album.get("name") or ""


def get_or_create_album(client: ImmichClient, name: str) -> dict:
    """Return the album called *name*, creating an empty one when missing."""
    for album in client.list_albums():
        if album_display_name(album) == name:
            return album
    return client.create_album(name)


class NormalActionSink:
    """Favorite the winner; optionally hide alternates or drop the duplicate group."""

    def __init__(
        self,
        client: ImmichClient,
        action: str = ACTION_FAVORITE_ONLY,
        apply_changes: bool = False,
        log: Callable[[str], None] = print,
    ) -> None:
        self.client = client
        self.action = action
        self.apply_changes = apply_changes
        self.log = log

    def apply(self, result: ResolutionResult) -> None:
        others = list(result.alternates)
        self.log(f"  Would mark {result.winner} as favorite. Mode={self.action}.")
        if not self.apply_changes:
            return

        self.client.bulk_favorite([result.winner])

        if self.action == ACTION_FAVORITE_AND_HIDE and others:
            self.client.bulk_hide(others)

        # Danger: removes the whole duplicate group record.
        if self.action == ACTION_DELETE_ALTERNATES and others:
            self.client.delete_duplicate_group(result.group_id)


class ReviewAlbumSink:
    """Non-destructive mode: collect winners and alternates in two review albums."""

    def __init__(
        self,
        client: ImmichClient,
        winners_album_id: str,
        alternates_album_id: str,
        *,
        winners_album_name: str = "",
        alternates_album_name: str = "",
        apply_changes: bool = False,
        log: Callable[[str], None] = print,
    ) -> None:
        self.client = client
        self.winners_album_id = winners_album_id
        self.alternates_album_id = alternates_album_id
        self.winners_album_name = winners_album_name or winners_album_id
        self.alternates_album_name = alternates_album_name or alternates_album_id
        self.apply_changes = apply_changes
        self.log = log

    def apply(self, result: ResolutionResult) -> None:
        others = list(result.alternates)
        self.log(
            f"  Review mode: add winner {result.winner} -> \"{self.winners_album_name}\", "
            f"alternates ({len(others)}) -> \"{self.alternates_album_name}\""
        )
        # Album writes only happen with APPLY_CHANGES so review stays a dry run by default.
        if not self.apply_changes:
            return

        self.client.add_assets_to_album(self.winners_album_id, [result.winner])
        self.client.add_assets_to_album(self.alternates_album_id, others)
