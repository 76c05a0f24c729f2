"""Collaborator contracts consumed and fed by the group resolver."""

from typing import TYPE_CHECKING, Optional, Protocol

from bestshot.metadata import AssetMetadata

if TYPE_CHECKING:
    from bestshot.resolver import DuplicateGroup, ResolutionResult


class AssetSource(Protocol):
    def fetch_preview(self, asset_id: str) -> Optional[bytes]:
        """Return bounded-size preview bytes, or None when unavailable."""


class MetadataSource(Protocol):
    def fetch_metadata(self, asset_id: str) -> Optional[AssetMetadata]:
        """Return scene tags and face count, or None when unknown."""


class GroupSource(Protocol):
    def list_groups(self) -> list["DuplicateGroup"]:
        ...


class EffectSink(Protocol):
    def apply(self, result: "ResolutionResult") -> None:
        """Perform the configured side effect for one resolved group."""
