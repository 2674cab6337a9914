from typing import Any, Dict, List, Optional

from constants import MAX_PLAYLIST_PAGES, SEARCH_LIMIT_MAX, SEARCH_OFFSET_MAX
from .client import SpotifyClient

SEARCH_BLOCKS = {
    "track": "tracks",
    "playlist": "playlists",
    "artist": "artists",
    "album": "albums",
}


def to_int(value: Any, fallback: int) -> int:
    try:
        return int(str(value if value is not None else "").strip())
    except ValueError:
        return fallback


def clamp(n: int, low: int, high: int) -> int:
    return max(low, min(high, n))


def parse_search_limit(value: Any, fallback: int = SEARCH_LIMIT_MAX) -> int:
    # /search accepts 0-10
    return clamp(to_int(value, fallback), 0, SEARCH_LIMIT_MAX)


def parse_search_offset(value: Any, fallback: int = 0) -> int:
    return clamp(to_int(value, fallback), 0, SEARCH_OFFSET_MAX)


def page_from_block(block: Any, limit: int, offset: int) -> Dict[str, Any]:
    """Standard pagination summary for a Spotify paging object."""
    block = block if isinstance(block, dict) else {}
    total = block.get("total")
    return {
        "limit": int(block.get("limit") if block.get("limit") is not None else limit),
        "offset": int(block.get("offset") if block.get("offset") is not None else offset),
        "total": total if isinstance(total, int) else None,
        "next": block.get("next"),
        "previous": block.get("previous"),
    }


class SpotifyCatalog:
    """Search and listing helpers returning the compact shapes the UI consumes.

    Every normalizer drops entries without an id or uri (Spotify returns null
    placeholders in search results for removed content).
    """

    def __init__(self, client: SpotifyClient):
        self.client = client

    # -----------------
    # Normalizers
    # -----------------

    @staticmethod
    def _artist_names(artists: Any) -> List[Dict[str, str]]:
        if not isinstance(artists, list):
            return []
        return [{"name": str(a.get("name"))} for a in artists if isinstance(a, dict) and a.get("name")]

    @staticmethod
    def _owner(owner: Any) -> Optional[Dict[str, str]]:
        if not isinstance(owner, dict):
            return None
        return {"display_name": owner.get("display_name") or "", "id": owner.get("id") or ""}

    @classmethod
    def _normalize_track(cls, t: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(t, dict) or not t.get("id") or not t.get("uri"):
            return None
        album = t.get("album") if isinstance(t.get("album"), dict) else {}
        return {
            "id": t["id"],
            "name": t.get("name") or "",
            "uri": t["uri"],
            "artists": cls._artist_names(t.get("artists")),
            "album": {"name": album.get("name") or "", "images": album.get("images") or []},
        }

    @classmethod
    def _normalize_playlist(cls, p: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(p, dict) or not p.get("id") or not p.get("uri"):
            return None
        out = {
            "id": p["id"],
            "name": p.get("name") or "",
            "uri": p["uri"],
            "images": p.get("images") or [],
            "tracks": p.get("tracks"),
        }
        owner = cls._owner(p.get("owner"))
        if owner is not None:
            out["owner"] = owner
        return out

    @staticmethod
    def _normalize_artist(a: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(a, dict) or not a.get("id") or not a.get("uri"):
            return None
        return {
            "id": a["id"],
            "name": a.get("name") or "",
            "uri": a["uri"],
            "images": a.get("images") or [],
            "genres": a.get("genres") or [],
            "popularity": a.get("popularity"),
        }

    @staticmethod
    def _normalize_album(a: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(a, dict) or not a.get("id") or not a.get("uri"):
            return None
        artists = a.get("artists") if isinstance(a.get("artists"), list) else []
        return {
            "id": a["id"],
            "name": a.get("name") or "",
            "uri": a["uri"],
            "images": a.get("images") or [],
            # always a string, the UI sorts on it
            "release_date": str(a.get("release_date") or ""),
            "total_tracks": a.get("total_tracks"),
            "album_type": a.get("album_type"),
            "external_urls": a.get("external_urls") or {"spotify": ""},
            "artists": [
                {"id": x.get("id") or "", "name": x.get("name")}
                for x in artists
                if isinstance(x, dict) and x.get("name")
            ],
        }

    # -----------------
    # Search
    # -----------------

    async def search(self, q: str, search_type: str, *, market: Optional[str], limit: int, offset: int) -> Dict[str, Any]:
        block_name = SEARCH_BLOCKS[search_type]
        normalizer = {
            "track": self._normalize_track,
            "playlist": self._normalize_playlist,
            "artist": self._normalize_artist,
            "album": self._normalize_album,
        }[search_type]

        data = await self.client.search(q, search_type, market=market, limit=limit, offset=offset)
        block = data.get(block_name) if isinstance(data, dict) else None
        raw_items = block.get("items") if isinstance(block, dict) else None

        items = [n for n in (normalizer(x) for x in (raw_items or [])) if n]
        out: Dict[str, Any] = {"ok": True, "items": items, "page": page_from_block(block, limit, offset)}

        if search_type == "artist":
            out["artist"] = {"id": items[0]["id"], "name": items[0]["name"], "uri": items[0]["uri"]} if items else None

        return out

    async def artist_albums(self, artist_id: str, *, include_groups: str, market: Optional[str], limit: int, offset: int) -> Dict[str, Any]:
        data = await self.client.artist_albums(
            artist_id, include_groups=include_groups, market=market, limit=limit, offset=offset
        )
        data = data if isinstance(data, dict) else {}
        items = []
        for a in data.get("items") or []:
            if not isinstance(a, dict) or not a.get("id") or not a.get("uri"):
                continue
            items.append(
                {
                    "id": a["id"],
                    "name": a.get("name") or "",
                    "uri": a["uri"],
                    "release_date": str(a.get("release_date") or ""),
                    "images": a.get("images") or [],
                    "external_urls": a.get("external_urls") or {"spotify": ""},
                }
            )
        return {"ok": True, "items": items, "page": page_from_block(data, limit, offset)}

    async def first_track(self, q: str, *, market: Optional[str]) -> Optional[Dict[str, Any]]:
        """Best match for a free-text query, used to resolve AI-planned tracks."""
        result = await self.search(q, "track", market=market, limit=10, offset=0)
        return result["items"][0] if result["items"] else None

    # -----------------
    # Current user's playlists
    # -----------------

    async def my_playlists_page(self, *, limit: int, offset: int) -> Dict[str, Any]:
        data = await self.client.current_user_playlists(limit=limit, offset=offset)
        data = data if isinstance(data, dict) else {}
        items = [n for n in (self._normalize_playlist(p) for p in (data.get("items") or [])) if n]
        return {
            "items": items,
            "next": data.get("next"),
            "total": data.get("total"),
            "limit": data.get("limit", limit),
            "offset": data.get("offset", offset),
        }

    async def list_all_playlists(self, *, limit: int, offset: int = 0) -> Dict[str, Any]:
        """Follow ``next`` cursors (bounded) and merge every page."""
        merged: List[Dict[str, Any]] = []
        next_url = None
        total = None
        off = offset

        for _ in range(MAX_PLAYLIST_PAGES):
            page = await self.my_playlists_page(limit=limit, offset=off)
            merged.extend(page["items"])
            next_url = page["next"]
            total = page["total"]
            if not next_url:
                break
            off += limit

        return {"items": merged, "next": next_url, "total": total, "limit": limit}
