import base64
import logging
import secrets
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import httpx

from constants import SPOTIFY_ACCOUNTS_BASE_URL, SPOTIFY_TOKEN_URL
from utils.json_files import parse_body
from .errors import ConfigurationError, SpotifyAPIError

logger = logging.getLogger(__name__)


def basic_auth_header(client_id: str, client_secret: str) -> str:
    raw = f"{client_id}:{client_secret}".encode("utf-8")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate Spotify OAuth config fields and return a structured status dict."""

    config = config or {}
    client_id = str(config.get("spotify_client_id", "")).strip()
    client_secret = str(config.get("spotify_client_secret", "")).strip()
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()

    missing = []
    if not client_id:
        missing.append("SPOTIFY_CLIENT_ID")
    if not client_secret:
        missing.append("SPOTIFY_CLIENT_SECRET")
    if not redirect_uri:
        missing.append("SPOTIFY_REDIRECT_URI")

    if missing:
        return {
            "ok": False,
            "missing": missing,
            "redirect_uri": redirect_uri,
            "message": f"Missing Spotify settings: {', '.join(missing)}",
        }

    return {
        "ok": True,
        "missing": [],
        "redirect_uri": redirect_uri,
        "message": "Spotify credentials look OK.",
    }


@dataclass(frozen=True)
class TokenGrant:
    """Access credential returned by the token endpoint."""

    access_token: str
    expires_in: int
    scope: Optional[str] = None
    refresh_token: Optional[str] = None
    raw: Optional[Dict[str, Any]] = None

    @staticmethod
    def from_spotify_token_response(payload: Dict[str, Any]) -> "TokenGrant":
        """Convert Spotify token response JSON into TokenGrant.

        Spotify returns access_token, token_type, expires_in (seconds), scope and,
        for the authorization-code grant (sometimes also on refresh), refresh_token.
        """
        try:
            expires_in = int(payload.get("expires_in", 3600))
        except (TypeError, ValueError):
            expires_in = 3600

        return TokenGrant(
            access_token=str(payload.get("access_token") or ""),
            expires_in=expires_in,
            scope=payload.get("scope"),
            refresh_token=payload.get("refresh_token"),
            raw=payload,
        )


class SpotifyOAuth:
    """Spotify OAuth (Authorization Code, confidential client) helper.

    Both the code exchange and the refresh grant authenticate the client with
    HTTP Basic credentials.
    """

    def __init__(self, config: Dict[str, Any], *, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config or {}
        self._http_client = http_client

    @property
    def client_id(self) -> str:
        return str(self.config.get("spotify_client_id", "")).strip()

    @property
    def client_secret(self) -> str:
        return str(self.config.get("spotify_client_secret", "")).strip()

    @property
    def redirect_uri(self) -> str:
        return str(self.config.get("spotify_redirect_uri", "")).strip()

    def require_client_identity(self) -> None:
        missing = []
        if not self.client_id:
            missing.append("SPOTIFY_CLIENT_ID")
        if not self.client_secret:
            missing.append("SPOTIFY_CLIENT_SECRET")
        if missing:
            raise ConfigurationError(f"Missing {'/'.join(missing)}")

    @staticmethod
    def generate_state() -> str:
        return secrets.token_hex(16)

    def get_authorize_url(self, *, state: str, scopes: Optional[Iterable[str]] = None, show_dialog: bool = False) -> str:
        if not self.client_id:
            raise ConfigurationError("Missing SPOTIFY_CLIENT_ID")

        scope_list = list(scopes if scopes is not None else self.config.get("spotify_scopes", []))
        scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])

        params: Dict[str, str] = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": str(state),
        }
        if scope_str:
            params["scope"] = scope_str
        if show_dialog:
            params["show_dialog"] = "true"

        return f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize?{urllib.parse.urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code (bootstrap callback) for tokens."""
        payload = await self._post_form(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            }
        )
        return TokenGrant.from_spotify_token_response(payload)

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Mint a new access token from the long-lived refresh credential."""
        payload = await self._post_form({"grant_type": "refresh_token", "refresh_token": refresh_token})
        grant = TokenGrant.from_spotify_token_response(payload)
        if not grant.access_token:
            raise SpotifyAPIError(500, "Spotify token response had no access_token", payload)
        return grant

    async def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        self.require_client_identity()

        data = {k: str(v) for k, v in (form or {}).items() if v is not None}
        headers = {
            "Authorization": basic_auth_header(self.client_id, self.client_secret),
            "Content-Type": "application/x-www-form-urlencoded",
        }

        try:
            if self._http_client is not None:
                resp = await self._http_client.post(SPOTIFY_TOKEN_URL, data=data, headers=headers)
            else:
                timeout = float(self.config.get("http_timeout", 30.0))
                async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as client:
                    resp = await client.post(SPOTIFY_TOKEN_URL, data=data, headers=headers)
        except httpx.HTTPError as e:
            raise SpotifyAPIError(500, f"Spotify token request failed: {e}") from e

        payload = parse_body(resp.text)

        if resp.status_code >= 400:
            message = None
            if isinstance(payload, dict):
                message = payload.get("error_description") or payload.get("error")
            logger.warning("Spotify token request failed (HTTP %s): %s", resp.status_code, payload)
            raise SpotifyAPIError(resp.status_code, str(message or "Token refresh failed"), payload)

        if not isinstance(payload, dict):
            raise SpotifyAPIError(500, "Spotify token response was not an object", payload)

        return payload
