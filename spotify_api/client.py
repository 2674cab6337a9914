import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from constants import SPOTIFY_API_BASE_URL
from utils.json_files import parse_body
from .errors import SpotifyAPIError
from .retry_policy import AuthRetryPolicy
from .token_cache import TokenCache
from .uris import build_library_params

logger = logging.getLogger(__name__)


class _NoContent:
    """Marker for a successful 204: distinct from None and from an empty dict."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_CONTENT"


NO_CONTENT = _NoContent()


@dataclass
class UpstreamRequest:
    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    json: Any = None

    @staticmethod
    def api(method: str, path: str, *, params: Optional[Dict[str, Any]] = None, json: Any = None) -> "UpstreamRequest":
        url = path if path.startswith("http") else f"{SPOTIFY_API_BASE_URL}{path}"
        clean = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
        return UpstreamRequest(method=method.upper(), url=url, params=clean or None, json=json)


class SpotifyClient:
    """Thin async Spotify Web API client.

    Every call goes through the token cache and the 401 retry policy:
    - network failures become SpotifyAPIError(500), never retried
    - 204 returns NO_CONTENT
    - non-2xx raises SpotifyAPIError(status, message, raw_body)
    """

    def __init__(
        self,
        token_cache: TokenCache,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.token_cache = token_cache
        self.retry_policy = AuthRetryPolicy(token_cache)
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    # -----------------
    # Core
    # -----------------

    async def _send(self, request: UpstreamRequest, token: str) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}", **(request.headers or {})}
        try:
            return await self._http.request(
                request.method,
                request.url,
                params=request.params,
                headers=headers,
                json=request.json,
            )
        except httpx.HTTPError as e:
            raise SpotifyAPIError(500, str(e) or "fetch failed") from e

    async def call(self, request: UpstreamRequest) -> Any:
        response = await self.retry_policy.execute(lambda token: self._send(request, token))

        if response.status_code == 204:
            return NO_CONTENT

        data = parse_body(response.text)

        if not response.is_success:
            logger.debug("Spotify %s %s -> %s", request.method, request.url, response.status_code)
            raise SpotifyAPIError.from_response(response.status_code, data, response.reason_phrase)

        return data

    async def request_json(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None, json: Any = None) -> Any:
        return await self.call(UpstreamRequest.api(method, path, params=params, json=json))

    # -----------------
    # Profile / catalog
    # -----------------

    async def me(self) -> Any:
        return await self.request_json("GET", "/me")

    async def search(self, q: str, search_type: str, *, market: Optional[str] = None, limit: int = 10, offset: int = 0) -> Any:
        return await self.request_json(
            "GET",
            "/search",
            params={"q": q, "type": search_type, "market": market, "limit": limit, "offset": offset},
        )

    async def artist_albums(
        self,
        artist_id: str,
        *,
        include_groups: str = "album,single",
        market: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> Any:
        return await self.request_json(
            "GET",
            f"/artists/{artist_id}/albums",
            params={"include_groups": include_groups, "market": market, "limit": limit, "offset": offset},
        )

    # -----------------
    # Playlists
    # -----------------

    async def current_user_playlists(self, *, limit: int = 50, offset: int = 0) -> Any:
        return await self.request_json("GET", "/me/playlists", params={"limit": limit, "offset": offset})

    async def create_playlist(self, name: str, *, public: bool = False, description: str = "") -> Any:
        body = {"name": name, "public": bool(public), "collaborative": False, "description": description}
        return await self.request_json("POST", "/me/playlists", json=body)

    async def get_playlist(self, playlist_id: str, *, market: Optional[str] = None, fields: Optional[str] = None,
                           additional_types: Optional[str] = None) -> Any:
        return await self.request_json(
            "GET",
            f"/playlists/{playlist_id}",
            params={"market": market, "fields": fields, "additional_types": additional_types},
        )

    async def change_playlist_details(self, playlist_id: str, details: Dict[str, Any]) -> Any:
        return await self.request_json("PUT", f"/playlists/{playlist_id}", json=details)

    async def playlist_items(self, playlist_id: str, *, limit: int = 50, offset: int = 0, market: Optional[str] = None) -> Any:
        return await self.request_json(
            "GET",
            f"/playlists/{playlist_id}/items",
            params={"limit": limit, "offset": offset, "market": market},
        )

    async def add_playlist_items(self, playlist_id: str, uris: List[str], *, position: Optional[int] = None) -> Any:
        body: Dict[str, Any] = {"uris": list(uris)}
        if position is not None:
            body["position"] = position
        return await self.request_json("POST", f"/playlists/{playlist_id}/items", json=body)

    async def remove_playlist_items(self, playlist_id: str, uris: List[str], *, snapshot_id: Optional[str] = None) -> Any:
        body: Dict[str, Any] = {"items": [{"uri": u} for u in uris]}
        if snapshot_id:
            body["snapshot_id"] = snapshot_id
        return await self.request_json("DELETE", f"/playlists/{playlist_id}/items", json=body)

    async def replace_playlist_items(self, playlist_id: str, uris: List[str]) -> Any:
        return await self.request_json("PUT", f"/playlists/{playlist_id}/items", json={"uris": list(uris)})

    async def reorder_playlist_items(
        self,
        playlist_id: str,
        *,
        range_start: int,
        insert_before: int,
        range_length: Optional[int] = None,
        snapshot_id: Optional[str] = None,
    ) -> Any:
        body: Dict[str, Any] = {"range_start": range_start, "insert_before": insert_before}
        if range_length is not None:
            body["range_length"] = range_length
        if snapshot_id:
            body["snapshot_id"] = snapshot_id
        return await self.request_json("PUT", f"/playlists/{playlist_id}/items", json=body)

    async def save_to_library(self, uris: List[str]) -> Any:
        return await self.request_json("PUT", "/me/library", params=build_library_params(uris))

    async def remove_from_library(self, uris: List[str]) -> Any:
        return await self.request_json("DELETE", "/me/library", params=build_library_params(uris))

    async def follow_playlist(self, playlist_id: str, *, public: bool = False) -> Any:
        return await self.request_json("PUT", f"/playlists/{playlist_id}/followers", json={"public": public})

    async def unfollow_playlist(self, playlist_id: str) -> Any:
        return await self.request_json("DELETE", f"/playlists/{playlist_id}/followers")

    # -----------------
    # Player
    # -----------------

    async def devices(self) -> Any:
        return await self.request_json("GET", "/me/player/devices")

    async def playback_state(self) -> Any:
        return await self.request_json("GET", "/me/player")

    async def start_playback(self, payload: Optional[Dict[str, Any]] = None, *, device_id: Optional[str] = None) -> Any:
        return await self.request_json("PUT", "/me/player/play", params={"device_id": device_id}, json=payload)

    async def pause(self, *, device_id: Optional[str] = None) -> Any:
        return await self.request_json("PUT", "/me/player/pause", params={"device_id": device_id})

    async def skip_next(self, *, device_id: Optional[str] = None) -> Any:
        return await self.request_json("POST", "/me/player/next", params={"device_id": device_id})

    async def skip_previous(self, *, device_id: Optional[str] = None) -> Any:
        return await self.request_json("POST", "/me/player/previous", params={"device_id": device_id})

    async def seek(self, position_ms: int, *, device_id: Optional[str] = None) -> Any:
        return await self.request_json(
            "PUT", "/me/player/seek", params={"position_ms": int(position_ms), "device_id": device_id}
        )

    async def set_shuffle(self, state: bool, *, device_id: Optional[str] = None) -> Any:
        return await self.request_json(
            "PUT", "/me/player/shuffle", params={"state": "true" if state else "false", "device_id": device_id}
        )
