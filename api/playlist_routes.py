from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from api.errors import BadRequest
from api.models import AddItemsBody, CreatePlaylistBody, PlaylistDetailsBody, RemoveItemsBody, UpdateItemsBody
from api.services import Services, get_services
from constants import PLAYLIST_PAGE_LIMIT
from spotify_api.catalog import clamp, to_int
from spotify_api.uris import clean_uris, is_non_empty_string, is_removable_item_uri, spotify_url_to_uri

router = APIRouter(prefix="/api", tags=["Playlists"])


def _playlist_id(playlist_id: str) -> str:
    pid = str(playlist_id or "").strip()
    if not pid:
        raise BadRequest("missing playlistId")
    return pid


def _summary(data: Any) -> Dict[str, Any]:
    data = data if isinstance(data, dict) else {}
    return {
        "id": data.get("id"),
        "name": data.get("name"),
        "uri": data.get("uri"),
        "external_urls": data.get("external_urls"),
        "images": data.get("images") or [],
    }


@router.get("/me/playlists")
async def my_playlists(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    all_pages: Optional[str] = Query(None, alias="all"),
    services: Services = Depends(get_services),
):
    page_limit = clamp(to_int(limit, PLAYLIST_PAGE_LIMIT), 1, PLAYLIST_PAGE_LIMIT)
    page_offset = max(0, to_int(offset, 0))

    if str(all_pages or "").strip() != "1":
        page = await services.catalog.my_playlists_page(limit=page_limit, offset=page_offset)
        return {"ok": True, **page}

    merged = await services.catalog.list_all_playlists(limit=page_limit, offset=page_offset)
    return {"ok": True, **merged}


@router.post("/playlists/create")
async def create_playlist(body: CreatePlaylistBody, services: Services = Depends(get_services)):
    name = str(body.name or "").strip()
    if not name:
        raise BadRequest("missing name")

    data = await services.client.create_playlist(
        name,
        public=body.isPublic if body.isPublic is not None else False,
        description=body.description or "",
    )
    return {"ok": True, "playlist": _summary(data)}


@router.get("/playlists/{playlist_id}")
async def get_playlist(
    playlist_id: str,
    market: Optional[str] = None,
    fields: Optional[str] = None,
    additional_types: Optional[str] = None,
    services: Services = Depends(get_services),
):
    data = await services.client.get_playlist(
        _playlist_id(playlist_id),
        market=str(market or "").strip() or services.default_market,
        fields=fields if is_non_empty_string(fields) else None,
        additional_types=additional_types if is_non_empty_string(additional_types) else None,
    )
    return {"ok": True, "playlist": data}


@router.put("/playlists/{playlist_id}/details")
async def update_details(playlist_id: str, body: PlaylistDetailsBody, services: Services = Depends(get_services)):
    details: Dict[str, Any] = {}
    if is_non_empty_string(body.name):
        details["name"] = body.name.strip()
    if body.description is not None:
        details["description"] = body.description
    if body.isPublic is not None:
        details["public"] = body.isPublic
    if body.collaborative is not None:
        details["collaborative"] = body.collaborative

    if not details:
        raise BadRequest("nothing to update. Send { name?, description?, isPublic?, collaborative? }")

    await services.client.change_playlist_details(_playlist_id(playlist_id), details)
    return {"ok": True}


@router.get("/playlists/{playlist_id}/items")
async def list_items(
    playlist_id: str,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    market: Optional[str] = None,
    services: Services = Depends(get_services),
):
    data = await services.client.playlist_items(
        _playlist_id(playlist_id),
        limit=clamp(to_int(limit, PLAYLIST_PAGE_LIMIT), 1, PLAYLIST_PAGE_LIMIT),
        offset=max(0, to_int(offset, 0)),
        market=str(market or "").strip() or services.default_market,
    )
    return {"ok": True, "data": data}


@router.get("/playlists/{playlist_id}/items/all")
async def list_all_items(playlist_id: str, market: Optional[str] = None, services: Services = Depends(get_services)):
    result = await services.editor.list_all_items(
        _playlist_id(playlist_id),
        market=str(market or "").strip() or services.default_market,
    )
    return {"ok": True, **result}


@router.post("/playlists/{playlist_id}/add-items")
async def add_items(playlist_id: str, body: AddItemsBody, services: Services = Depends(get_services)):
    pid = _playlist_id(playlist_id)
    if not body.uris:
        raise BadRequest("missing uris[]")

    result = await services.editor.add_items(pid, body.uris, position=body.position)
    return {"ok": True, **result}


@router.delete("/playlists/{playlist_id}/remove-items")
async def remove_items(playlist_id: str, body: RemoveItemsBody, services: Services = Depends(get_services)):
    pid = _playlist_id(playlist_id)

    if body.items:
        uris = [spotify_url_to_uri(it.get("uri")) for it in body.items]
    elif body.uris:
        uris = clean_uris(body.uris)
    else:
        raise BadRequest("missing uris[] OR items[]")

    uris = [u for u in uris if is_removable_item_uri(u)]
    if not uris:
        raise BadRequest("no valid spotify:track:/spotify:episode: URIs")

    snapshot = body.snapshot_id.strip() if is_non_empty_string(body.snapshot_id) else None
    result = await services.editor.remove_items(pid, uris, snapshot_id=snapshot)
    return {"ok": True, **result}


@router.put("/playlists/{playlist_id}/items")
async def update_items(playlist_id: str, body: UpdateItemsBody, services: Services = Depends(get_services)):
    pid = _playlist_id(playlist_id)

    if body.uris is not None:
        result = await services.editor.replace_items(pid, body.uris)
        return {"ok": True, **result}

    if body.range_start is not None and body.insert_before is not None:
        data = await services.client.reorder_playlist_items(
            pid,
            range_start=body.range_start,
            insert_before=body.insert_before,
            range_length=body.range_length,
            snapshot_id=body.snapshot_id.strip() if is_non_empty_string(body.snapshot_id) else None,
        )
        snapshot = data.get("snapshot_id") if isinstance(data, dict) else None
        return {"ok": True, "mode": "reorder", "snapshot_id": snapshot}

    raise BadRequest(
        "Send { uris:[...] } to replace OR { range_start, insert_before, range_length?, snapshot_id? } to reorder."
    )


@router.put("/playlists/{playlist_id}/clear")
async def clear_playlist(playlist_id: str, services: Services = Depends(get_services)):
    result = await services.editor.clear(_playlist_id(playlist_id), market=services.default_market)
    return {"ok": True, **result}


@router.put("/playlists/{playlist_id}/follow")
async def follow_playlist(playlist_id: str, services: Services = Depends(get_services)):
    result = await services.editor.set_followed(_playlist_id(playlist_id), True)
    return {"ok": True, **result}


@router.delete("/playlists/{playlist_id}/unfollow")
async def unfollow_playlist(playlist_id: str, services: Services = Depends(get_services)):
    result = await services.editor.set_followed(_playlist_id(playlist_id), False)
    return {"ok": True, **result}
