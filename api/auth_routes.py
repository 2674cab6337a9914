from typing import Optional

from fastapi import APIRouter, Cookie, Depends
from fastapi.responses import PlainTextResponse, RedirectResponse

from constants import OAUTH_STATE_COOKIE
from api.errors import BadRequest
from api.services import Services, get_services
from utils.logger import log_info, log_success

router = APIRouter()


@router.get("/auth/login", summary="Start the Spotify authorization flow")
def login(services: Services = Depends(get_services)):
    state = services.oauth.generate_state()
    url = services.oauth.get_authorize_url(state=state)
    log_info(f"Redirecting to Spotify authorize URL: {url}")

    response = RedirectResponse(url, status_code=302)
    response.set_cookie(OAUTH_STATE_COOKIE, state, httponly=True, samesite="lax", path="/")
    return response


@router.get("/auth/callback", summary="Spotify OAuth callback", response_class=PlainTextResponse)
async def callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    expected_state: Optional[str] = Cookie(None, alias=OAUTH_STATE_COOKIE),
    services: Services = Depends(get_services),
):
    if not code:
        raise BadRequest("missing code")
    if not state or state != (expected_state or ""):
        raise BadRequest("invalid state")

    grant = await services.oauth.exchange_code(code)
    record = services.credential_store.update_from_token_response(grant.raw or {})
    services.token_cache.invalidate()
    log_success(f"Spotify connected (scope: {record.scope or 'n/a'})")

    response = PlainTextResponse("Connected! tokens.json updated. You can close this page.")
    response.delete_cookie(OAUTH_STATE_COOKIE, path="/")
    return response


@router.get("/api/auth/status", summary="Whether a refresh credential is stored")
def auth_status(services: Services = Depends(get_services)):
    record = services.credential_store.load()
    return {
        "hasRefreshToken": record.has_refresh_token,
        "updated_at": record.updated_at,
        "scope": record.scope,
    }
