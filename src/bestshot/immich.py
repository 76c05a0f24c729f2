"""
Minimal Immich REST client.

Implements the collaborators the resolver consumes (duplicate groups, preview
bytes, scene metadata) plus the asset/album writes used by the effect sinks.
Transient failures (timeouts, dropped connections, truncated bodies and
429/5xx) are retried with exponential backoff; anything else raises
ImmichAPIError.
"""

import http.client
import json
import socket
import time
from typing import Any, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from bestshot.errors import ImmichAPIError
from bestshot.metadata import AssetMetadata
from bestshot.resolver import DuplicateGroup

RETRYABLE_STATUS = {429, 500, 502, 503, 504}

# Tried in order; a 404 falls through to the next path.
PREVIEW_PATHS = (
    "/api/assets/{asset_id}/thumbnail?size=preview",
    "/api/assets/{asset_id}/thumbnail",
)


class _RetryableError(Exception):
    pass


class ImmichClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = 60.0,
        max_retries: int = 2,
        retry_backoff_seconds: float = 0.75,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds

    # -- transport ----------------------------------------------------------

    def _send(self, method: str, path: str, payload: Any, accept: str) -> bytes:
        endpoint = f"{self.base_url}{path}"
        headers = {"x-api-key": self.api_key, "Accept": accept}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        request = Request(endpoint, data=data, headers=headers, method=method)
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:
                return response.read()
        except HTTPError as error:
            details = ""
            try:
                details = error.read().decode("utf-8", errors="ignore")
            except OSError:
                details = ""
            message = f"{method} {path} failed ({error.code}): {details[:300]}"
            if error.code in RETRYABLE_STATUS:
                raise _RetryableError(message) from error
            raise ImmichAPIError(message, status=error.code, details=details[:300]) from error
        except (URLError, socket.timeout, ConnectionError, http.client.HTTPException) as error:
            raise _RetryableError(f"{method} {path} connection failed: {error}") from error

    def request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        *,
        accept: str = "application/json",
    ) -> bytes:
        """Send one request, retrying transient failures with exponential backoff."""
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._send(method, path, payload, accept)
            except _RetryableError as e:
                last_error = e
                if attempt >= self.max_retries:
                    break
                time.sleep(self.retry_backoff_seconds * (2**attempt))
        raise ImmichAPIError(
            f"Immich request failed after {self.max_retries + 1} attempt(s): {last_error}"
        ) from last_error

    def request_json(self, method: str, path: str, payload: Any = None) -> Any:
        body = self.request(method, path, payload)
        if not body:
            return None
        return json.loads(body.decode("utf-8"))

    # -- group / asset / metadata sources ----------------------------------

    def list_groups(self) -> list[DuplicateGroup]:
        data = self.request_json("GET", "/api/duplicates")
        if not isinstance(data, list):
            return []
        groups = []
        for raw in data:
            if not isinstance(raw, dict):
                continue
            assets = raw.get("assets") or []
            ids = tuple(a.get("id") for a in assets if isinstance(a, dict) and a.get("id"))
            groups.append(DuplicateGroup(group_id=str(raw.get("duplicateId", "")), asset_ids=ids))
        return groups

    def fetch_preview(self, asset_id: str) -> Optional[bytes]:
        """Return preview bytes from the first path that answers, or None if all 404."""
        safe_id = quote(asset_id, safe="")
        for template in PREVIEW_PATHS:
            path = template.format(asset_id=safe_id)
            try:
                body = self.request("GET", path, accept="image/*")
            except ImmichAPIError as e:
                if e.status == 404:
                    continue
                raise
            if body:
                return body
        return None

    def fetch_metadata(self, asset_id: str) -> Optional[AssetMetadata]:
        try:
            info = self.request_json("GET", f"/api/assets/{quote(asset_id, safe='')}")
        except ImmichAPIError as e:
            if e.status == 404:
                return None
            raise
        if not isinstance(info, dict):
            return None
        return parse_asset_metadata(info)

    # -- writes -------------------------------------------------------------

    def bulk_favorite(self, ids: list[str]) -> None:
        if not ids:
            return
        self.request("PUT", "/api/assets", {"ids": ids, "isFavorite": True})

    def bulk_hide(self, ids: list[str]) -> None:
        if not ids:
            return
        self.request("PUT", "/api/assets", {"ids": ids, "visibility": "hidden"})

    def delete_duplicate_group(self, group_id: str) -> None:
        self.request("DELETE", f"/api/duplicates/{quote(group_id, safe='')}")

    def list_albums(self) -> list[dict]:
        data = self.request_json("GET", "/api/albums")
        return data if isinstance(data, list) else []

    def create_album(self, name: str) -> dict:
        data = self.request_json("POST", "/api/albums", {"albumName": name})
        if not isinstance(data, dict) or not data.get("id"):
            raise ImmichAPIError(f"Album creation for {name!r} returned no id")
        return data

    def add_assets_to_album(self, album_id: str, ids: list[str]) -> None:
        if not ids:
            return
        self.request("PUT", f"/api/albums/{quote(album_id, safe='')}/assets", {"ids": ids})


def parse_asset_metadata(info: dict) -> AssetMetadata:
    """Extract face count and scene tags from an Immich asset response."""
    face_count: Optional[int] = None
    people = info.get("people")
    unassigned = info.get("unassignedFaces")
    if isinstance(people, list) or isinstance(unassigned, list):
        face_count = len(people or []) + len(unassigned or [])

    tags: list[str] = []
    for tag in info.get("tags") or []:
        if isinstance(tag, dict):
            label = tag.get("value") or tag.get("name")
        else:
            label = tag
        if label:
            # Hierarchical tags ("Events/Family") contribute their leaf name.
            tags.append(str(label).rsplit("/", 1)[-1])
    smart_info = info.get("smartInfo")
    if isinstance(smart_info, dict):
        for key in ("tags", "objects"):
            tags.extend(str(t) for t in smart_info.get(key) or [] if t)

    has_tag_data = "tags" in info or isinstance(smart_info, dict)
    return AssetMetadata(face_count=face_count, tags=tuple(tags) if has_tag_data else None)
