import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from constants import MAX_ITEM_PAGES, MAX_ITEMS_PER_REQUEST, PLAYLIST_PAGE_LIMIT
from .client import SpotifyClient
from .errors import SpotifyAPIError
from .uris import clean_uris, is_removable_item_uri, playlist_id_to_uri

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

CLEAR_CHUNK_DELAY = 0.06


def chunked(items: List[Any], size: int) -> List[List[Any]]:
    size = max(1, int(size))
    return [items[i:i + size] for i in range(0, len(items), size)]


def _snapshot(data: Any) -> Optional[str]:
    if isinstance(data, dict) and data.get("snapshot_id"):
        return str(data["snapshot_id"])
    return None


class PlaylistEditor:
    """Bulk playlist writes paced in fixed-size chunks.

    Each chunk is sent sequentially with a small fixed pause between chunks to stay
    under the upstream per-call item limit. There is no adaptive backpressure.
    """

    def __init__(
        self,
        client: SpotifyClient,
        *,
        chunk_size: int = MAX_ITEMS_PER_REQUEST,
        chunk_delay: float = 0.04,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.chunk_size = min(MAX_ITEMS_PER_REQUEST, max(1, int(chunk_size)))
        self.chunk_delay = float(chunk_delay)
        self._sleep = sleep

    async def list_all_items(self, playlist_id: str, *, market: Optional[str] = None) -> Dict[str, Any]:
        """Fetch every playlist item, page by page."""
        merged: List[Any] = []
        total = None
        offset = 0

        for _ in range(MAX_ITEM_PAGES):
            page = await self.client.playlist_items(playlist_id, limit=PLAYLIST_PAGE_LIMIT, offset=offset, market=market)
            if not isinstance(page, dict):
                break
            items = page.get("items") or []
            merged.extend(items)
            if page.get("total") is not None:
                total = page.get("total")

            if len(items) < PLAYLIST_PAGE_LIMIT:
                break
            offset += PLAYLIST_PAGE_LIMIT
            await self._sleep(self.chunk_delay)

        return {"total": total, "count": len(merged), "items": merged}

    async def add_items(self, playlist_id: str, uris: List[Any], *, position: Optional[int] = None) -> Dict[str, Any]:
        cleaned = clean_uris(uris)
        added = 0
        last_snapshot = None
        pos = position

        for chunk in chunked(cleaned, self.chunk_size):
            data = await self.client.add_playlist_items(playlist_id, chunk, position=pos)
            added += len(chunk)
            last_snapshot = _snapshot(data) or last_snapshot
            if pos is not None:
                pos += len(chunk)
            await self._sleep(self.chunk_delay)

        return {"added": added, "snapshot_id": last_snapshot}

    async def remove_items(self, playlist_id: str, uris: List[Any], *, snapshot_id: Optional[str] = None) -> Dict[str, Any]:
        """Remove track/episode URIs; other URI kinds are ignored."""
        cleaned = [u for u in clean_uris(uris) if is_removable_item_uri(u)]
        removed = 0
        last_snapshot = None
        snap = snapshot_id

        for chunk in chunked(cleaned, self.chunk_size):
            data = await self.client.remove_playlist_items(playlist_id, chunk, snapshot_id=snap)
            removed += len(chunk)
            last_snapshot = _snapshot(data) or last_snapshot
            snap = _snapshot(data) or snap
            await self._sleep(self.chunk_delay)

        return {"removed": removed, "snapshot_id": last_snapshot}

    async def replace_items(self, playlist_id: str, uris: List[Any]) -> Dict[str, Any]:
        """Replace the playlist: first chunk via PUT, the rest appended via POST."""
        cleaned = clean_uris(uris)
        first, rest = cleaned[: self.chunk_size], cleaned[self.chunk_size:]

        await self.client.replace_playlist_items(playlist_id, first)

        appended = 0
        for chunk in chunked(rest, self.chunk_size):
            await self.client.add_playlist_items(playlist_id, chunk)
            appended += len(chunk)
            await self._sleep(self.chunk_delay)

        return {"mode": "replace", "count": len(cleaned), "appendedAfterPut": appended}

    async def clear(self, playlist_id: str, *, market: Optional[str] = None) -> Dict[str, Any]:
        listing = await self.list_all_items(playlist_id, market=market)

        uris = []
        for item in listing["items"]:
            if not isinstance(item, dict):
                continue
            obj = item.get("track") or item.get("episode") or item.get("item") or {}
            uri = obj.get("uri") if isinstance(obj, dict) else None
            if uri and is_removable_item_uri(uri):
                uris.append(uri)

        if not uris:
            return {"removed": 0, "snapshot_id": None}

        removed = 0
        last_snapshot = None
        for chunk in chunked(uris, self.chunk_size):
            data = await self.client.remove_playlist_items(playlist_id, chunk)
            removed += len(chunk)
            last_snapshot = _snapshot(data) or last_snapshot
            await self._sleep(CLEAR_CHUNK_DELAY)

        return {"removed": removed, "snapshot_id": last_snapshot}

    async def set_followed(self, playlist_id: str, follow: bool) -> Dict[str, str]:
        """Follow/unfollow through the library endpoint, falling back to /followers."""
        uri = playlist_id_to_uri(playlist_id)
        try:
            if follow:
                await self.client.save_to_library([uri])
            else:
                await self.client.remove_from_library([uri])
            return {"mode": "library"}
        except SpotifyAPIError as e:
            message = e.message.lower()
            if e.status != 404 and "not found" not in message and "unknown" not in message:
                raise
            logger.info("Library endpoint unavailable (%s), using followers endpoint", e.status)

        if follow:
            await self.client.follow_playlist(playlist_id, public=False)
        else:
            await self.client.unfollow_playlist(playlist_id)
        return {"mode": "followers"}
