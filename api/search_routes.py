from typing import Optional

from fastapi import APIRouter, Depends

from api.errors import BadRequest
from api.services import Services, get_services
from spotify_api.catalog import clamp, parse_search_limit, parse_search_offset, to_int

router = APIRouter(prefix="/api", tags=["Search"])


def _query(q: Optional[str]) -> str:
    term = str(q or "").strip()
    if not term:
        raise BadRequest("missing q")
    return term


def _market(services: Services, market: Optional[str]) -> str:
    return str(market or "").strip() or services.default_market


@router.get("/me", summary="Current Spotify user profile")
async def me(services: Services = Depends(get_services)):
    return {"ok": True, "me": await services.client.me()}


@router.get("/search-track")
async def search_track(
    q: Optional[str] = None,
    market: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    services: Services = Depends(get_services),
):
    return await services.catalog.search(
        _query(q),
        "track",
        market=_market(services, market),
        limit=parse_search_limit(limit),
        offset=parse_search_offset(offset),
    )


@router.get("/search-playlist")
async def search_playlist(
    q: Optional[str] = None,
    market: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    services: Services = Depends(get_services),
):
    return await services.catalog.search(
        _query(q),
        "playlist",
        market=_market(services, market),
        limit=parse_search_limit(limit),
        offset=parse_search_offset(offset),
    )


@router.get("/search-artist")
async def search_artist(
    q: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    services: Services = Depends(get_services),
):
    # artist search is not market-scoped
    return await services.catalog.search(
        _query(q),
        "artist",
        market=None,
        limit=parse_search_limit(limit),
        offset=parse_search_offset(offset),
    )


@router.get("/search-album")
async def search_album(
    q: Optional[str] = None,
    market: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    services: Services = Depends(get_services),
):
    return await services.catalog.search(
        _query(q),
        "album",
        market=_market(services, market),
        limit=parse_search_limit(limit),
        offset=parse_search_offset(offset),
    )


@router.get("/artist-albums")
async def artist_albums(
    artistId: Optional[str] = None,
    market: Optional[str] = None,
    include_groups: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    services: Services = Depends(get_services),
):
    artist_id = str(artistId or "").strip()
    if not artist_id:
        raise BadRequest("missing artistId")

    return await services.catalog.artist_albums(
        artist_id,
        include_groups=str(include_groups or "").strip() or "album,single",
        market=_market(services, market),
        limit=clamp(to_int(limit, 10), 0, 10),
        offset=max(0, to_int(offset, 0)),
    )
