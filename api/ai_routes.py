from fastapi import APIRouter, Depends

from api.errors import BadRequest
from api.models import AIPlaylistBody
from api.services import Services, get_services
from spotify_api.errors import ConfigurationError

router = APIRouter(prefix="/api/ai/playlist", tags=["AI"])


def _prompt(body: AIPlaylistBody) -> str:
    prompt = str(body.prompt or "").strip()
    if not prompt:
        raise BadRequest("missing prompt")
    return prompt


def _market(body: AIPlaylistBody, services: Services) -> str:
    return str(body.market or "").strip() or services.default_market


@router.post("/preview", summary="Plan a playlist and resolve it against Spotify search")
async def preview(body: AIPlaylistBody, services: Services = Depends(get_services)):
    prompt = _prompt(body)
    try:
        result = await services.ai.preview(prompt, body.count, _market(body, services))
    except ConfigurationError as e:
        raise BadRequest(str(e)) from e

    return {"ok": True, "plan": result["plan"].summary(), "resolved": result["resolved"]}


@router.post("/create", summary="Plan, resolve and create a private playlist")
async def create(body: AIPlaylistBody, services: Services = Depends(get_services)):
    prompt = _prompt(body)
    try:
        result = await services.ai.create(
            prompt,
            body.count,
            _market(body, services),
            public=bool(body.isPublic) if body.isPublic is not None else False,
        )
    except ConfigurationError as e:
        raise BadRequest(str(e)) from e

    return {
        "ok": True,
        "playlist": result["playlist"],
        "added": result["added"],
        "resolved": result["resolved"],
    }
