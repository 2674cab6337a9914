from typing import Optional

from fastapi import APIRouter, Depends

from api.errors import BadRequest
from api.models import DeviceBody, PlayContextBody, PlayUrisBody, SeekBody, ShuffleBody
from api.services import Services, get_services
from spotify_api.client import NO_CONTENT
from spotify_api.uris import build_play_payload, clean_uris, is_non_empty_string, is_track_uri

router = APIRouter(prefix="/api/player", tags=["Player"])


def _device(body: Optional[DeviceBody]) -> Optional[str]:
    if body is not None and is_non_empty_string(body.deviceId):
        return body.deviceId.strip()
    return None


@router.get("/devices")
async def devices(services: Services = Depends(get_services)):
    data = await services.client.devices()
    if data is NO_CONTENT or data is None:
        return {"devices": []}
    return data


@router.get("/state")
async def playback_state(services: Services = Depends(get_services)):
    data = await services.client.playback_state()
    # nothing playing
    if data is NO_CONTENT:
        return None
    return data


@router.put("/play-context")
async def play_context(body: PlayContextBody, services: Services = Depends(get_services)):
    if not is_non_empty_string(body.contextUri):
        raise BadRequest("missing contextUri")

    payload = build_play_payload(body.contextUri, True)
    if not payload or "context_uri" not in payload:
        raise BadRequest("invalid contextUri")

    await services.client.start_playback(payload, device_id=_device(body))
    return {"ok": True}


@router.put("/play-uris")
async def play_uris(body: PlayUrisBody, services: Services = Depends(get_services)):
    if not body.uris:
        raise BadRequest("missing uris[]")

    uris = [u for u in clean_uris(body.uris) if is_track_uri(u)]
    if not uris:
        raise BadRequest("no valid spotify:track: uris")

    await services.client.start_playback({"uris": uris, "position_ms": 0}, device_id=_device(body))
    return {"ok": True}


@router.put("/pause")
async def pause(body: Optional[DeviceBody] = None, services: Services = Depends(get_services)):
    await services.client.pause(device_id=_device(body))
    return {"ok": True}


@router.put("/resume")
async def resume(body: Optional[DeviceBody] = None, services: Services = Depends(get_services)):
    await services.client.start_playback(device_id=_device(body))
    return {"ok": True}


@router.post("/next")
async def next_track(body: Optional[DeviceBody] = None, services: Services = Depends(get_services)):
    await services.client.skip_next(device_id=_device(body))
    return {"ok": True}


@router.post("/previous")
async def previous_track(body: Optional[DeviceBody] = None, services: Services = Depends(get_services)):
    await services.client.skip_previous(device_id=_device(body))
    return {"ok": True}


@router.put("/seek")
async def seek(body: SeekBody, services: Services = Depends(get_services)):
    if body.positionMs is None or body.positionMs < 0:
        raise BadRequest("invalid positionMs")

    await services.client.seek(int(body.positionMs), device_id=_device(body))
    return {"ok": True}


@router.put("/shuffle")
async def shuffle(body: Optional[ShuffleBody] = None, services: Services = Depends(get_services)):
    state = bool(body.state) if body is not None else False
    await services.client.set_shuffle(state, device_id=_device(body))
    return {"ok": True}
